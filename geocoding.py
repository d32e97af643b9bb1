"""
Free-text location geocoding via Nominatim, with a local cache.

Geocoding is best-effort: any failure resolves to None so that callers can
skip distance filtering instead of failing the request.
"""

import logging
import sqlite3
from datetime import datetime, timedelta
from typing import Optional

import httpx

from config import config
from database import get_db
from geo import LatLng, parse_location

logger = logging.getLogger(__name__)


def _normalize_query(query: str) -> str:
    return " ".join(query.lower().split())


def get_cached_location(query: str) -> Optional[LatLng]:
    """Get coordinates for a query from cache if not expired."""
    try:
        with get_db() as conn:
            row = conn.execute(
                "SELECT lat, lng, cached_at FROM geocode_cache WHERE query = ?",
                (_normalize_query(query),)
            ).fetchone()
    except sqlite3.Error as e:
        logger.warning(f"Geocode cache read failed: {e}")
        return None
    if row:
        cached_at = datetime.fromisoformat(row["cached_at"])
        if datetime.utcnow() - cached_at < timedelta(days=config.GEOCODE_CACHE_DAYS):
            return (row["lat"], row["lng"])
    return None


def cache_location(query: str, coords: LatLng):
    """Store geocoded coordinates in cache."""
    try:
        with get_db() as conn:
            conn.execute(
                """INSERT OR REPLACE INTO geocode_cache (query, lat, lng, cached_at)
                   VALUES (?, ?, ?, ?)""",
                (_normalize_query(query), coords[0], coords[1], datetime.utcnow().isoformat())
            )
    except sqlite3.Error as e:
        logger.warning(f"Geocode cache write failed: {e}")


async def geocode(query: str, use_cache: bool = True) -> Optional[LatLng]:
    """
    Look up coordinates for a free-text place name.

    Args:
        query: Address or place name (e.g., "Leeds, UK")
        use_cache: Whether to consult and populate the local cache

    Returns:
        (lat, lng) of the best match, or None when nothing was found or the
        geocoder could not be reached
    """
    if not query or not query.strip():
        return None

    if use_cache:
        cached = get_cached_location(query)
        if cached:
            return cached

    try:
        async with httpx.AsyncClient() as client:
            response = await client.get(
                config.GEOCODER_URL,
                params={"format": "json", "limit": 1, "q": query},
                headers={"User-Agent": config.GEOCODER_USER_AGENT},
                timeout=config.GEOCODE_TIMEOUT_SECONDS,
            )
            response.raise_for_status()
            results = response.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.warning(f"Geocoding failed for {query!r}: {e}")
        return None

    if not isinstance(results, list) or not results or not isinstance(results[0], dict):
        logger.info(f"Geocoding found no match for {query!r}")
        return None

    coords = parse_location(f"{results[0].get('lat')},{results[0].get('lon')}")
    if coords is None:
        logger.warning(f"Geocoder returned unusable coordinates for {query!r}")
        return None

    if use_cache:
        cache_location(query, coords)
    return coords


async def resolve_location(text: Optional[str]) -> Optional[LatLng]:
    """
    Resolve a reference location from a request parameter.

    A "lat,lng" pair is used as-is; anything else is geocoded.
    """
    if not text or not text.strip():
        return None
    coords = parse_location(text)
    if coords is not None:
        return coords
    return await geocode(text.strip())
