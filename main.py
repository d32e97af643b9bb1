"""
Sports Finder - Main FastAPI Application
"""

import logging
import os
import re
import secrets
from datetime import datetime
from typing import Any, Dict, Optional
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, HTTPException, Depends, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded

from audit import log_action, get_audit_logs, get_audit_log_count
from config import config
from content import (
    list_sports, save_sport, update_sport, delete_sport,
    list_articles, get_article, create_article, update_article, delete_article
)
from database import init_db, get_db
from document_store import DocumentStore, StoreError, ENTITY_TYPES, override_collection
from finder import FinderQuery, DEFAULT_SORT, load_collection, run_query
from geo import EARTH_RADIUS
from geocoding import resolve_location

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


class SensitiveDataFilter(logging.Filter):
    """Filter to redact sensitive data from log messages."""

    # Ingestion endpoints take their key as a query parameter
    SENSITIVE_PATTERNS = [
        (re.compile(r'([?&]key=)[^&\s"]+', re.IGNORECASE), r'\1[REDACTED]'),
        (re.compile(r'([?&]api_key=)[^&\s"]+', re.IGNORECASE), r'\1[REDACTED]'),
    ]

    def _redact(self, text: str) -> str:
        for pattern, replacement in self.SENSITIVE_PATTERNS:
            text = pattern.sub(replacement, text)
        return text

    def filter(self, record: logging.LogRecord) -> bool:
        if record.msg:
            record.msg = self._redact(str(record.msg))
        # httpx and uvicorn pass the URL as a format argument
        if isinstance(record.args, tuple):
            record.args = tuple(
                self._redact(arg) if isinstance(arg, str) else arg
                for arg in record.args
            )
        return True


for _logger_name in ("httpx", "uvicorn.access"):
    logging.getLogger(_logger_name).addFilter(SensitiveDataFilter())


# Rate limiter - disabled in test mode
def get_rate_limit_key(request: Request) -> str:
    """Get rate limit key, return empty string in test mode to disable."""
    if config.TESTING:
        return ""  # Disable rate limiting in tests
    return get_remote_address(request)

limiter = Limiter(key_func=get_rate_limit_key)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown."""
    init_db()
    yield


# Initialize app
app = FastAPI(
    title=config.SITE_NAME,
    description="""
Discover sports clubs, events and games near you.

## Features
- **Finder**: Events and games with text, sport, category, date and distance filters
- **Clubs**: Club directory with distance filtering
- **Overrides**: Admin corrections layered over scraped data by `hash`
- **Articles**: Markdown articles per sport

## Authentication
- Ingestion endpoints require the `key` query parameter
- Admin endpoints require `X-Admin-Key` header

## Distances
- `distance` and the returned `_distance` use the `unit` parameter: `mi` (default), `km` or `m`
    """,
    version="1.0.0",
    lifespan=lifespan,
    openapi_tags=[
        {"name": "public", "description": "Public endpoints (no auth required)"},
        {"name": "ingest", "description": "Scraper ingestion endpoints"},
        {"name": "admin", "description": "Admin management endpoints"},
    ],
    docs_url="/docs",
    redoc_url="/redoc",
)

# Add rate limiter to app
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    """Handle persistence failures with a generic error."""
    logger.error(f"Store error on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


# ============================================================
# REQUEST HELPERS
# ============================================================

def _get_client_ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


def _parse_int(value: Optional[str], default: int) -> int:
    """Parse an integer query parameter, falling back to the default."""
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _parse_float(value: Optional[str]) -> Optional[float]:
    """Parse a numeric query parameter, None if missing or invalid."""
    if value is None or value == "":
        return None
    try:
        number = float(value)
    except ValueError:
        return None
    return None if number != number else number  # NaN


def _parse_bool(value: Optional[str], default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in ("true", "1", "yes")


def _parse_unit(value: Optional[str]) -> str:
    unit = (value or config.DEFAULT_DISTANCE_UNIT).lower()
    return unit if unit in EARTH_RADIUS else config.DEFAULT_DISTANCE_UNIT


def _page_size(value: Optional[str]) -> int:
    return min(_parse_int(value, config.DEFAULT_PAGE_SIZE), config.MAX_PAGE_SIZE)


def verify_admin(request: Request):
    """Verify admin access via key header."""
    admin_key = request.headers.get("X-Admin-Key")
    if admin_key and secrets.compare_digest(admin_key, config.ADMIN_KEY):
        return True
    raise HTTPException(status_code=403, detail="Admin access required")


def verify_ingest_key(key: Optional[str] = None):
    """Verify the scraper ingestion key passed as ?key=."""
    if key and secrets.compare_digest(key, config.INGEST_API_KEY):
        return True
    raise HTTPException(status_code=401, detail="Unauthorized")


# ============================================================
# PUBLIC ENDPOINTS
# ============================================================

@app.get("/api/health", tags=["public"])
async def api_health():
    """Health check endpoint."""
    return {"status": "ok", "timestamp": datetime.utcnow().isoformat()}


@app.get("/api/finder-data", tags=["public"])
@limiter.limit(config.RATE_LIMIT_PUBLIC)
async def finder_data(
    request: Request,
    search: Optional[str] = None,
    sport: Optional[str] = None,
    category: Optional[str] = None,
    sort: str = DEFAULT_SORT,
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    page: Optional[str] = None,
    limit: Optional[str] = None,
    include_events: Optional[str] = Query(None, alias="includeEvents"),
    include_games: Optional[str] = Query(None, alias="includeGames"),
    time_filter: str = Query("", alias="timeFilter"),
    location: Optional[str] = None,
    distance: Optional[str] = None,
    unit: Optional[str] = None,
):
    """
    Search events and games.

    `location` is either "lat,lng" or a place name to geocode. When geocoding
    fails the request still succeeds, just without distance filtering.
    """
    origin = await resolve_location(location)
    if location and origin is None:
        logger.warning("Location could not be resolved, distance filter disabled")

    query = FinderQuery(
        sport=sport,
        category=category,
        search=search,
        start_date=_parse_float(start_date),
        end_date=_parse_float(end_date),
        time_filter=time_filter,
        origin=origin,
        max_distance=_parse_float(distance),
        unit=_parse_unit(unit),
        sort=sort,
        page=_parse_int(page, 1),
        page_size=_page_size(limit),
    )

    items = []
    with get_db() as conn:
        store = DocumentStore(conn)
        if _parse_bool(include_events, True):
            items.extend(load_collection(store, "events"))
        if _parse_bool(include_games, True):
            items.extend(load_collection(store, "games"))

    return run_query(items, query)


@app.get("/api/clubs", tags=["public"])
@limiter.limit(config.RATE_LIMIT_PUBLIC)
async def get_clubs(
    request: Request,
    sport: Optional[str] = None,
    search: Optional[str] = None,
    category: Optional[str] = None,
    sort: str = "name_asc",
    page: Optional[str] = None,
    limit: Optional[str] = None,
    location: Optional[str] = None,
    distance: Optional[str] = None,
    unit: Optional[str] = None,
):
    """List clubs with optional sport, name and distance filters."""
    origin = await resolve_location(location)

    query = FinderQuery(
        sport=sport,
        category=category,
        search=search,
        origin=origin,
        max_distance=_parse_float(distance),
        unit=_parse_unit(unit),
        sort=sort,
        page=_parse_int(page, 1),
        page_size=_page_size(limit),
    )

    with get_db() as conn:
        clubs = load_collection(DocumentStore(conn), "clubs")

    return run_query(clubs, query)


@app.get("/api/clubs/{club_hash}", tags=["public"])
async def get_club(club_hash: str):
    """Get a single club, with its override applied."""
    with get_db() as conn:
        store = DocumentStore(conn)
        club = store.get(override_collection("clubs"), club_hash) or store.get("clubs", club_hash)
    if not club:
        raise HTTPException(status_code=404, detail="Club not found")
    return club


@app.get("/api/sports", tags=["public"])
async def get_sports():
    """List sports for navigation."""
    return list_sports(include_description=False)


@app.get("/api/articles", tags=["public"])
async def get_articles(sport: Optional[str] = None):
    """List articles newest first, optionally for one sport slug."""
    return list_articles(sport)


@app.get("/api/articles/{article_id}", tags=["public"])
async def get_article_by_id(article_id: int):
    """Get a single article (raw markdown content)."""
    article = get_article(article_id)
    if not article:
        raise HTTPException(status_code=404, detail="Article not found")
    return article


# ============================================================
# INGESTION ENDPOINTS
# ============================================================

async def _ingest(request: Request, entity_type: str) -> Dict[str, Any]:
    """
    Replace base documents by hash with the posted object or array.

    Duplicate hashes within one batch keep the first occurrence.
    """
    try:
        payload = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid JSON body")

    if not payload:
        raise HTTPException(status_code=400, detail=f"No {entity_type} provided")

    documents = payload if isinstance(payload, list) else [payload]
    unique = {}
    for document in documents:
        if not isinstance(document, dict) or not isinstance(document.get("hash"), str) or not document["hash"]:
            raise HTTPException(
                status_code=400,
                detail=f"Each {entity_type[:-1]} must have a hash field"
            )
        unique.setdefault(document["hash"], document)

    with get_db() as conn:
        inserted = DocumentStore(conn).bulk_replace(entity_type, unique.keys(), list(unique.values()))

    logger.info(f"Ingested {inserted} {entity_type} ({len(documents)} received)")
    log_action(
        actor="ingest",
        action="ingest",
        target_type=entity_type,
        details=f"{inserted} inserted, {len(documents)} received",
        ip_address=_get_client_ip(request)
    )
    return {"success": True, "insertedCount": inserted}


@app.post("/api/clubs", tags=["ingest"])
async def ingest_clubs(request: Request, _: bool = Depends(verify_ingest_key)):
    """Add or replace clubs by hash."""
    return await _ingest(request, "clubs")


@app.post("/api/events", tags=["ingest"])
async def ingest_events(request: Request, _: bool = Depends(verify_ingest_key)):
    """Add or replace events by hash."""
    return await _ingest(request, "events")


@app.post("/api/games", tags=["ingest"])
async def ingest_games(request: Request, _: bool = Depends(verify_ingest_key)):
    """Add or replace games by hash."""
    return await _ingest(request, "games")


@app.post("/api/admin/reset", tags=["ingest"])
async def reset_collections(request: Request, _: bool = Depends(verify_ingest_key)):
    """Delete all base clubs, events and games. Overrides are kept."""
    with get_db() as conn:
        store = DocumentStore(conn)
        results = [
            {"collection": entity_type, "deletedCount": store.delete_all(entity_type)}
            for entity_type in ENTITY_TYPES
        ]

    logger.info(f"Reset base collections: {results}")
    log_action(
        actor="ingest",
        action="reset",
        details=", ".join(f"{r['collection']}={r['deletedCount']}" for r in results),
        ip_address=_get_client_ip(request)
    )
    return {"success": True, "results": results}


# ============================================================
# ADMIN ENDPOINTS
# ============================================================

class OverrideUpsert(BaseModel):
    collection: Optional[str] = None
    hash: Optional[str] = None
    data: Optional[Dict[str, Any]] = None


class SportSave(BaseModel):
    name: Optional[str] = None
    slug: Optional[str] = None
    description: Optional[str] = None


class SportUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None


class ArticleSave(BaseModel):
    title: Optional[str] = None
    sportSlug: Optional[str] = None
    content: Optional[str] = None


def _entity_type_or_400(collection: Optional[str]) -> str:
    if collection not in ENTITY_TYPES:
        raise HTTPException(status_code=400, detail=f"Unknown collection: {collection}")
    return collection


@app.post("/api/admin/override", tags=["admin"])
async def upsert_override(request: Request, body: OverrideUpsert, _: bool = Depends(verify_admin)):
    """Create or update the override for one club, event or game."""
    if not body.collection or not body.hash or not body.data:
        raise HTTPException(status_code=400, detail="Missing fields")
    entity_type = _entity_type_or_400(body.collection)

    with get_db() as conn:
        override = DocumentStore(conn).upsert(override_collection(entity_type), body.hash, body.data)

    log_action(
        actor="admin",
        action="override_upsert",
        target_type=entity_type,
        target_id=body.hash,
        details=", ".join(sorted(body.data)),
        ip_address=_get_client_ip(request)
    )
    return {"success": True, "override": override}


@app.delete("/api/admin/override/{collection}/{doc_hash}", tags=["admin"])
async def remove_override(request: Request, collection: str, doc_hash: str, _: bool = Depends(verify_admin)):
    """Delete an override, restoring the base document (if any)."""
    entity_type = _entity_type_or_400(collection)
    with get_db() as conn:
        deleted = DocumentStore(conn).delete(override_collection(entity_type), doc_hash)
    if not deleted:
        raise HTTPException(status_code=404, detail="Override not found")

    log_action(
        actor="admin",
        action="override_delete",
        target_type=entity_type,
        target_id=doc_hash,
        ip_address=_get_client_ip(request)
    )
    return {"success": True}


@app.get("/api/admin/sports", tags=["admin"])
async def admin_list_sports(_: bool = Depends(verify_admin)):
    """List sports with descriptions."""
    return list_sports()


@app.post("/api/admin/sports", tags=["admin"])
async def admin_save_sport(request: Request, body: SportSave, _: bool = Depends(verify_admin)):
    """Create a sport, or update the one with the same slug (or name)."""
    if not body.name:
        raise HTTPException(status_code=400, detail="sport must have a name")
    sport_id = save_sport(body.model_dump())
    log_action(actor="admin", action="sport_save", target_type="sport", target_id=str(sport_id),
               details=body.name, ip_address=_get_client_ip(request))
    return {"success": True, "id": sport_id}


@app.put("/api/admin/sports/{sport_id}", tags=["admin"])
async def admin_update_sport(request: Request, sport_id: int, body: SportUpdate, _: bool = Depends(verify_admin)):
    """Update a sport's name and description."""
    if not update_sport(sport_id, body.name, body.description):
        raise HTTPException(status_code=404, detail="Not found")
    log_action(actor="admin", action="sport_update", target_type="sport", target_id=str(sport_id),
               ip_address=_get_client_ip(request))
    return {"success": True}


@app.delete("/api/admin/sports/{sport_id}", tags=["admin"])
async def admin_delete_sport(request: Request, sport_id: int, _: bool = Depends(verify_admin)):
    """Delete a sport."""
    if not delete_sport(sport_id):
        raise HTTPException(status_code=404, detail="Not found")
    log_action(actor="admin", action="sport_delete", target_type="sport", target_id=str(sport_id),
               ip_address=_get_client_ip(request))
    return {"success": True}


@app.get("/api/admin/articles", tags=["admin"])
async def admin_list_articles(sport: Optional[str] = None, _: bool = Depends(verify_admin)):
    """List all articles newest first."""
    return list_articles(sport)


@app.post("/api/admin/articles", tags=["admin"])
async def admin_create_article(request: Request, body: ArticleSave, _: bool = Depends(verify_admin)):
    """Create an article."""
    if not body.title or not body.sportSlug or not body.content:
        raise HTTPException(status_code=400, detail="Missing required fields")
    article_id = create_article(body.title, body.sportSlug, body.content)
    log_action(actor="admin", action="article_create", target_type="article", target_id=str(article_id),
               details=body.title, ip_address=_get_client_ip(request))
    return {"success": True, "id": article_id}


@app.put("/api/admin/articles/{article_id}", tags=["admin"])
async def admin_update_article(request: Request, article_id: int, body: ArticleSave,
                               _: bool = Depends(verify_admin)):
    """Update an article's title, content or sport."""
    if not update_article(article_id, body.title, body.content, body.sportSlug):
        raise HTTPException(status_code=404, detail="Article not found")
    log_action(actor="admin", action="article_update", target_type="article", target_id=str(article_id),
               ip_address=_get_client_ip(request))
    return {"success": True}


@app.delete("/api/admin/articles/{article_id}", tags=["admin"])
async def admin_delete_article(request: Request, article_id: int, _: bool = Depends(verify_admin)):
    """Delete an article."""
    if not delete_article(article_id):
        raise HTTPException(status_code=404, detail="Article not found")
    log_action(actor="admin", action="article_delete", target_type="article", target_id=str(article_id),
               ip_address=_get_client_ip(request))
    return {"success": True}


@app.get("/api/admin/audit", tags=["admin"])
async def admin_audit_log(
    limit: Optional[str] = None,
    offset: Optional[str] = None,
    action: Optional[str] = None,
    _: bool = Depends(verify_admin),
):
    """Get audit log entries newest first."""
    limit_num = max(1, min(_parse_int(limit, 100), 500))
    offset_num = max(0, _parse_int(offset, 0))
    return {
        "entries": get_audit_logs(limit=limit_num, offset=offset_num, action=action),
        "total": get_audit_log_count(action=action),
    }


# Registered last so /api/admin/sports, /articles and /audit match first
@app.get("/api/admin/{entity_type}", tags=["admin"])
async def admin_list_entities(entity_type: str, _: bool = Depends(verify_admin)):
    """Get every club, event or game with overrides applied."""
    if entity_type not in ENTITY_TYPES:
        raise HTTPException(status_code=404, detail="Not found")
    with get_db() as conn:
        return load_collection(DocumentStore(conn), entity_type)


# Run with uvicorn
if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
