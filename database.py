"""
Database setup for Sports Finder.

Clubs, events and games are stored as JSON documents keyed by (collection, hash).
Sports, articles, the audit log and the geocode cache are plain tables.
"""

import sqlite3
import os
from contextlib import contextmanager

# Import config for DATABASE_PATH - note: config must not import database to avoid circular imports
# We use a function to get the path so tests can override it before imports
def _get_database_path():
    return os.getenv("DATABASE_PATH", "sports_finder.db")


def get_connection() -> sqlite3.Connection:
    """Get a database connection with row factory."""
    # FastAPI may open the connection in a worker thread and use it on the event loop
    conn = sqlite3.connect(_get_database_path(), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


@contextmanager
def get_db():
    """Context manager for database connections."""
    conn = get_connection()
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def init_db():
    """Initialize the database schema."""
    with get_db() as conn:
        conn.executescript("""
            -- Base and override documents (clubs, events, games, *_override)
            -- id preserves insertion order, which is the order reconciliation walks
            CREATE TABLE IF NOT EXISTS documents (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                collection TEXT NOT NULL,
                hash TEXT NOT NULL,
                data TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                UNIQUE (collection, hash)
            );

            CREATE TABLE IF NOT EXISTS sports (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL,
                slug TEXT,
                description TEXT
            );

            -- Articles (markdown content stored verbatim)
            CREATE TABLE IF NOT EXISTS articles (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                title TEXT NOT NULL,
                sport_slug TEXT NOT NULL,
                content TEXT NOT NULL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );

            -- Audit log table
            CREATE TABLE IF NOT EXISTS audit_log (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                timestamp TEXT NOT NULL,
                actor TEXT,
                action TEXT NOT NULL,
                target_type TEXT,
                target_id TEXT,
                details TEXT,
                ip_address TEXT
            );

            -- Geocode cache table (free-text query -> coordinates)
            CREATE TABLE IF NOT EXISTS geocode_cache (
                query TEXT PRIMARY KEY,
                lat REAL NOT NULL,
                lng REAL NOT NULL,
                cached_at TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_documents_collection ON documents(collection);
            CREATE INDEX IF NOT EXISTS idx_sports_slug ON sports(slug);
            CREATE INDEX IF NOT EXISTS idx_articles_sport ON articles(sport_slug);
            CREATE INDEX IF NOT EXISTS idx_audit_log_timestamp ON audit_log(timestamp);
            CREATE INDEX IF NOT EXISTS idx_audit_log_action ON audit_log(action);
        """)


def reset_db():
    """Reset the database (for testing)."""
    db_path = _get_database_path()
    if os.path.exists(db_path):
        os.remove(db_path)
    init_db()
