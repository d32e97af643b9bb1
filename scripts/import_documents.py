#!/usr/bin/env python3
"""
Bulk-import clubs, events or games from a JSON file.

The file holds a single object or an array of objects, each with a "hash".
Existing base documents with the same hash are replaced; overrides are untouched.

Usage:
    python -m scripts.import_documents events scraped_events.json
    python -m scripts.import_documents clubs clubs.json --dry-run
"""

import json
import logging
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from audit import log_action
from database import init_db, get_db
from document_store import DocumentStore, ENTITY_TYPES

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def load_documents(path: str) -> dict:
    """Read documents from a JSON file, keyed by hash (first occurrence wins).

    Documents without a hash are skipped with a warning.
    """
    with open(path, encoding="utf-8") as f:
        payload = json.load(f)

    documents = payload if isinstance(payload, list) else [payload]
    unique = {}
    for index, document in enumerate(documents):
        if not isinstance(document, dict) or not isinstance(document.get("hash"), str) or not document["hash"]:
            logger.warning(f"Skipping record {index}: missing hash")
            continue
        unique.setdefault(document["hash"], document)
    return unique


def import_documents(entity_type: str, path: str, dry_run: bool = False) -> int:
    """Import one file into a base collection. Returns the inserted count."""
    if entity_type not in ENTITY_TYPES:
        raise ValueError(f"Unknown entity type: {entity_type}. Must be one of {', '.join(ENTITY_TYPES)}.")

    documents = load_documents(path)
    if dry_run:
        logger.info(f"DRY RUN - would import {len(documents)} {entity_type} from {path}")
        return 0

    init_db()
    with get_db() as conn:
        inserted = DocumentStore(conn).bulk_replace(entity_type, documents.keys(), list(documents.values()))

    log_action(actor="import", action="ingest", target_type=entity_type,
               details=f"{inserted} inserted from {os.path.basename(path)}")
    logger.info(f"Imported {inserted} {entity_type} from {path}")
    return inserted


def main():
    args = [arg for arg in sys.argv[1:] if not arg.startswith("--")]
    if len(args) != 2:
        print(__doc__)
        sys.exit(2)
    import_documents(args[0], args[1], dry_run="--dry-run" in sys.argv)


if __name__ == "__main__":
    main()
