"""
Document store for clubs, events and games.

Each entity type has a base collection (bulk-ingested by scrapers) and an
override collection (``<type>_override``) edited from the admin back-office.
Documents are JSON objects identified by their ``hash`` field.

The store never opens its own connection: callers pass in the connection
obtained from ``database.get_db()`` so acquisition and release stay scoped
to a single request or script run.
"""

import json
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

ENTITY_TYPES = ("clubs", "events", "games")
OVERRIDE_SUFFIX = "_override"


class StoreError(Exception):
    """Exception for persistence failures."""
    pass


def override_collection(entity_type: str) -> str:
    """Name of the override collection for an entity type."""
    return f"{entity_type}{OVERRIDE_SUFFIX}"


COLLECTIONS = frozenset(ENTITY_TYPES) | frozenset(override_collection(t) for t in ENTITY_TYPES)


def _check_collection(collection: str) -> None:
    if collection not in COLLECTIONS:
        raise ValueError(f"Unknown collection: {collection}")


@contextmanager
def _translate_errors(operation: str):
    try:
        yield
    except sqlite3.Error as e:
        raise StoreError(f"{operation} failed: {e}") from e


class DocumentStore:
    """Reads and writes JSON documents through an explicit connection handle."""

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def fetch_all(self, collection: str) -> List[Dict[str, Any]]:
        """Return every document in a collection, in insertion order."""
        _check_collection(collection)
        with _translate_errors(f"fetch_all({collection})"):
            cursor = self.conn.execute(
                "SELECT data FROM documents WHERE collection = ? ORDER BY id",
                (collection,)
            )
            return [json.loads(row["data"]) for row in cursor.fetchall()]

    def get(self, collection: str, hash: str) -> Optional[Dict[str, Any]]:
        """Return one document by hash, or None."""
        _check_collection(collection)
        with _translate_errors(f"get({collection})"):
            row = self.conn.execute(
                "SELECT data FROM documents WHERE collection = ? AND hash = ?",
                (collection, hash)
            ).fetchone()
        return json.loads(row["data"]) if row else None

    def upsert(self, collection: str, hash: str, partial: Dict[str, Any]) -> Dict[str, Any]:
        """
        Merge fields into the document with this hash, creating it if needed.

        The stored document keeps its original position when updated.

        Returns:
            The stored document after the merge
        """
        _check_collection(collection)
        now = datetime.utcnow().isoformat()
        with _translate_errors(f"upsert({collection})"):
            row = self.conn.execute(
                "SELECT data FROM documents WHERE collection = ? AND hash = ?",
                (collection, hash)
            ).fetchone()
            document = json.loads(row["data"]) if row else {}
            document.update(partial)
            document["hash"] = hash
            if row:
                self.conn.execute(
                    "UPDATE documents SET data = ?, updated_at = ? WHERE collection = ? AND hash = ?",
                    (json.dumps(document), now, collection, hash)
                )
            else:
                self.conn.execute(
                    "INSERT INTO documents (collection, hash, data, updated_at) VALUES (?, ?, ?, ?)",
                    (collection, hash, json.dumps(document), now)
                )
        return document

    def bulk_replace(self, collection: str, hashes: Iterable[str], entities: List[Dict[str, Any]]) -> int:
        """
        Delete documents with the given hashes, then insert the entities.

        Entities must carry unique ``hash`` values.

        Returns:
            Number of inserted documents
        """
        _check_collection(collection)
        now = datetime.utcnow().isoformat()
        with _translate_errors(f"bulk_replace({collection})"):
            self.conn.executemany(
                "DELETE FROM documents WHERE collection = ? AND hash = ?",
                [(collection, h) for h in hashes]
            )
            self.conn.executemany(
                "INSERT INTO documents (collection, hash, data, updated_at) VALUES (?, ?, ?, ?)",
                [(collection, e["hash"], json.dumps(e), now) for e in entities]
            )
        return len(entities)

    def delete(self, collection: str, hash: str) -> bool:
        """Delete one document. Returns True if it existed."""
        _check_collection(collection)
        with _translate_errors(f"delete({collection})"):
            cursor = self.conn.execute(
                "DELETE FROM documents WHERE collection = ? AND hash = ?",
                (collection, hash)
            )
        return cursor.rowcount > 0

    def delete_all(self, collection: str) -> int:
        """Delete every document in a collection. Returns the deleted count."""
        _check_collection(collection)
        with _translate_errors(f"delete_all({collection})"):
            cursor = self.conn.execute(
                "DELETE FROM documents WHERE collection = ?",
                (collection,)
            )
        return cursor.rowcount
