"""
Audit logging for Sports Finder.

Every ingestion run, reset and admin change (overrides, sports, articles)
leaves one row in audit_log. Entries are returned with their column names
(actor, action, target_type, target_id, details, ip_address, timestamp).
"""

from datetime import datetime
from typing import Optional, List, Dict, Any, Tuple

from database import get_db


def log_action(
    actor: str,
    action: str,
    target_type: Optional[str] = None,
    target_id: Optional[str] = None,
    details: Optional[str] = None,
    ip_address: Optional[str] = None
) -> None:
    """
    Record one action.

    Args:
        actor: 'admin', 'ingest' or 'import'
        action: e.g. 'override_upsert', 'reset', 'article_create'
        target_type: Collection or content type acted on
        target_id: Document hash or row id
        details: Free-text summary
        ip_address: Client address, when the action came over HTTP
    """
    with get_db() as conn:
        conn.execute(
            """INSERT INTO audit_log (timestamp, actor, action, target_type, target_id, details, ip_address)
               VALUES (?, ?, ?, ?, ?, ?, ?)""",
            (datetime.utcnow().isoformat(), actor, action, target_type, target_id, details, ip_address)
        )


def _filters(action: Optional[str], target_type: Optional[str]) -> Tuple[str, list]:
    clauses = []
    params = []
    if action:
        clauses.append("action = ?")
        params.append(action)
    if target_type:
        clauses.append("target_type = ?")
        params.append(target_type)
    where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
    return where, params


def get_audit_logs(
    limit: int = 100,
    offset: int = 0,
    action: Optional[str] = None,
    target_type: Optional[str] = None
) -> List[Dict[str, Any]]:
    """Get one page of audit entries, newest first."""
    where, params = _filters(action, target_type)
    with get_db() as conn:
        cursor = conn.execute(
            f"SELECT * FROM audit_log{where} ORDER BY timestamp DESC, id DESC LIMIT ? OFFSET ?",
            params + [limit, offset]
        )
        return [dict(row) for row in cursor.fetchall()]


def get_audit_log_count(action: Optional[str] = None, target_type: Optional[str] = None) -> int:
    where, params = _filters(action, target_type)
    with get_db() as conn:
        return conn.execute(f"SELECT COUNT(*) AS count FROM audit_log{where}", params).fetchone()["count"]
