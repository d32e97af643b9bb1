"""
Sports and articles.

Articles hold markdown text that is stored and served verbatim; rendering is
left to the client.
"""

from datetime import datetime
from typing import Optional, List, Dict, Any

from database import get_db


def _article_to_dict(row) -> Dict[str, Any]:
    return {
        "id": row["id"],
        "title": row["title"],
        "sportSlug": row["sport_slug"],
        "content": row["content"],
        "createdAt": row["created_at"],
        "updatedAt": row["updated_at"],
    }


# ============================================================
# SPORTS
# ============================================================

def list_sports(include_description: bool = True) -> List[Dict[str, Any]]:
    """Get all sports ordered by name."""
    columns = "id, name, slug, description" if include_description else "id, name, slug"
    with get_db() as conn:
        cursor = conn.execute(f"SELECT {columns} FROM sports ORDER BY name COLLATE NOCASE, id")
        return [dict(row) for row in cursor.fetchall()]


def save_sport(sport: Dict[str, Any]) -> int:
    """
    Insert or update a sport.

    Matches an existing sport by slug when one is given, otherwise by name.

    Returns:
        The sport's id
    """
    name = sport["name"]
    slug = sport.get("slug")
    description = sport.get("description")

    with get_db() as conn:
        if slug:
            row = conn.execute("SELECT id FROM sports WHERE slug = ?", (slug,)).fetchone()
        else:
            row = conn.execute("SELECT id FROM sports WHERE name = ?", (name,)).fetchone()

        if row:
            conn.execute(
                """UPDATE sports SET name = ?, slug = COALESCE(?, slug),
                   description = COALESCE(?, description) WHERE id = ?""",
                (name, slug, description, row["id"])
            )
            return row["id"]

        cursor = conn.execute(
            "INSERT INTO sports (name, slug, description) VALUES (?, ?, ?)",
            (name, slug, description)
        )
        return cursor.lastrowid


def update_sport(sport_id: int, name: Optional[str], description: Optional[str]) -> bool:
    """Update a sport's name and description. Returns False if it doesn't exist."""
    with get_db() as conn:
        cursor = conn.execute(
            """UPDATE sports SET name = COALESCE(?, name), description = ?
               WHERE id = ?""",
            (name, description, sport_id)
        )
        return cursor.rowcount > 0


def delete_sport(sport_id: int) -> bool:
    """Delete a sport. Returns False if it doesn't exist."""
    with get_db() as conn:
        cursor = conn.execute("DELETE FROM sports WHERE id = ?", (sport_id,))
        return cursor.rowcount > 0


# ============================================================
# ARTICLES
# ============================================================

def list_articles(sport: Optional[str] = None) -> List[Dict[str, Any]]:
    """
    Get articles newest first.

    Args:
        sport: Sport slug to filter by (case-insensitive); None or "all" for every article
    """
    query = "SELECT * FROM articles"
    params = []
    if sport and sport.lower() != "all":
        query += " WHERE LOWER(sport_slug) = ?"
        params.append(sport.lower())
    query += " ORDER BY created_at DESC, id DESC"

    with get_db() as conn:
        cursor = conn.execute(query, params)
        return [_article_to_dict(row) for row in cursor.fetchall()]


def get_article(article_id: int) -> Optional[Dict[str, Any]]:
    """Get a single article by id."""
    with get_db() as conn:
        row = conn.execute("SELECT * FROM articles WHERE id = ?", (article_id,)).fetchone()
        return _article_to_dict(row) if row else None


def create_article(title: str, sport_slug: str, content: str) -> int:
    """Create an article. Returns the new id."""
    now = datetime.utcnow().isoformat()
    with get_db() as conn:
        cursor = conn.execute(
            """INSERT INTO articles (title, sport_slug, content, created_at, updated_at)
               VALUES (?, ?, ?, ?, ?)""",
            (title, sport_slug, content, now, now)
        )
        return cursor.lastrowid


def update_article(article_id: int, title: Optional[str], content: Optional[str],
                   sport_slug: Optional[str]) -> bool:
    """Update an article's fields that are provided. Returns False if it doesn't exist."""
    now = datetime.utcnow().isoformat()
    with get_db() as conn:
        cursor = conn.execute(
            """UPDATE articles SET title = COALESCE(?, title), content = COALESCE(?, content),
               sport_slug = COALESCE(?, sport_slug), updated_at = ?
               WHERE id = ?""",
            (title, content, sport_slug, now, article_id)
        )
        return cursor.rowcount > 0


def delete_article(article_id: int) -> bool:
    """Delete an article. Returns False if it doesn't exist."""
    with get_db() as conn:
        cursor = conn.execute("DELETE FROM articles WHERE id = ?", (article_id,))
        return cursor.rowcount > 0
