"""
Finder query engine for clubs, events and games.

Reconciles base documents with admin overrides, narrows them through a fixed
filter pipeline, annotates distances from a reference point, sorts, and
returns one page.

Pipeline order:
1. Sport/category filters
2. Free-text search
3. Time window, then upcoming/past
4. Distance annotation and threshold
then sort and paginate.
"""

import logging
import math
import time
import unicodedata
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence

from document_store import DocumentStore, ENTITY_TYPES, override_collection
from geo import LatLng, earth_radius, entity_position, haversine_distance
from pagination import paginate

logger = logging.getLogger(__name__)

# Number.MAX_SAFE_INTEGER, the upper bound the scrapers and UI agree on
MAX_TIMESTAMP = 2 ** 53 - 1

# Fields searched by free-text queries, in order
SEARCH_FIELDS = (
    "name",
    "category",
    "homeTeamName",
    "awayTeamName",
    "competitionName",
    "clubName",
)

DISTANCE_FIELD = "_distance"
DEFAULT_SORT = "dateStart_asc"

Entity = Dict[str, Any]


@dataclass
class FinderQuery:
    """Caller-supplied parameters for one finder request."""
    sport: Optional[str] = None
    category: Optional[str] = None
    search: Optional[str] = None
    start_date: Optional[float] = None
    end_date: Optional[float] = None
    time_filter: str = ""  # "upcoming", "past", or "" for no filter
    origin: Optional[LatLng] = None
    max_distance: Optional[float] = None  # in `unit`; None or <= 0 disables the threshold
    unit: str = "mi"
    sort: str = DEFAULT_SORT
    page: int = 1
    page_size: int = 20


def reconcile(base: Sequence[Entity], overrides: Sequence[Entity]) -> List[Entity]:
    """
    Layer overrides on top of base documents by ``hash``.

    An override replaces the base document with the same hash in place; overrides
    with an unknown hash are appended in override order. Overrides without a hash
    are ignored and base documents without a hash pass through unchanged.
    """
    override_map = {}
    for doc in overrides:
        if doc.get("hash") is not None:
            override_map.setdefault(doc["hash"], doc)

    merged = []
    base_hashes = set()
    for doc in base:
        doc_hash = doc.get("hash")
        if doc_hash is not None:
            base_hashes.add(doc_hash)
            doc = override_map.get(doc_hash, doc)
        merged.append(doc)

    merged.extend(doc for doc_hash, doc in override_map.items() if doc_hash not in base_hashes)
    return merged


def load_collection(store: DocumentStore, entity_type: str) -> List[Entity]:
    """Fetch and reconcile one entity type."""
    if entity_type not in ENTITY_TYPES:
        raise ValueError(f"Unknown entity type: {entity_type}")
    base = store.fetch_all(entity_type)
    overrides = store.fetch_all(override_collection(entity_type))
    return reconcile(base, overrides)


def _numeric(value: Any, default: float = 0) -> float:
    if isinstance(value, bool) or value is None:
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    return default if math.isnan(number) else number


def filter_by_field(items: Iterable[Entity], field: str, value: Optional[str]) -> List[Entity]:
    """Keep items whose ``field`` equals ``value`` ignoring case. None or "all" keeps everything."""
    if not value or value.lower() == "all":
        return list(items)
    wanted = value.lower()
    return [
        item for item in items
        if isinstance(item.get(field), str) and item[field].lower() == wanted
    ]


def filter_by_text(items: Iterable[Entity], query: Optional[str],
                   fields: Sequence[str] = SEARCH_FIELDS) -> List[Entity]:
    """Keep items where any of ``fields`` contains ``query`` (case-insensitive)."""
    if not query:
        return list(items)
    needle = query.lower()
    results = []
    for item in items:
        for field in fields:
            value = item.get(field)
            if isinstance(value, str) and needle in value.lower():
                results.append(item)
                break
    return results


def filter_by_time_window(items: Iterable[Entity], start: Optional[float],
                          end: Optional[float]) -> List[Entity]:
    """Keep items with ``dateStart >= start`` and ``dateEnd <= end``."""
    if start is None and end is None:
        return list(items)
    lower = 0 if start is None else start
    upper = MAX_TIMESTAMP if end is None else end
    return [
        item for item in items
        if _numeric(item.get("dateStart")) >= lower and _numeric(item.get("dateEnd")) <= upper
    ]


def filter_by_time_state(items: Iterable[Entity], state: Optional[str], now: float) -> List[Entity]:
    """
    Keep upcoming (``dateStart >= now``) or past (``dateStart < now``) items.

    Items without a numeric start match neither state.
    """
    if state not in ("upcoming", "past"):
        return list(items)
    results = []
    for item in items:
        start = _numeric(item.get("dateStart"), default=math.nan)
        if math.isnan(start):
            continue
        if (state == "upcoming" and start >= now) or (state == "past" and start < now):
            results.append(item)
    return results


def annotate_distances(items: Iterable[Entity], origin: LatLng, unit: str) -> List[Entity]:
    """
    Return copies of items with ``_distance`` from ``origin`` in ``unit``.

    Items without a usable position get ``_distance = None``.
    """
    radius = earth_radius(unit)
    annotated = []
    for item in items:
        item = dict(item)
        position = entity_position(item)
        if position is None:
            item[DISTANCE_FIELD] = None
        else:
            item[DISTANCE_FIELD] = haversine_distance(origin[0], origin[1], position[0], position[1], radius)
        annotated.append(item)
    return annotated


def filter_by_distance(items: Iterable[Entity], max_distance: Optional[float]) -> List[Entity]:
    """Keep annotated items within ``max_distance``; unpositioned items are dropped."""
    if max_distance is None or max_distance <= 0:
        return list(items)
    return [
        item for item in items
        if item.get(DISTANCE_FIELD) is not None and item[DISTANCE_FIELD] <= max_distance
    ]


def display_name(item: Entity) -> str:
    """Item name, or "Home vs Away" for games without one."""
    name = item.get("name")
    if isinstance(name, str) and name:
        return name
    return f"{item.get('homeTeamName') or ''} vs {item.get('awayTeamName') or ''}"


def _collation_key(text: str):
    decomposed = unicodedata.normalize("NFKD", text)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return (stripped.casefold(), text)


def parse_sort(token: Optional[str]):
    """Split a ``field_direction`` token. Returns (field, descending)."""
    token = token or DEFAULT_SORT
    field, sep, direction = token.rpartition("_")
    if not sep or direction not in ("asc", "desc"):
        return token, False
    return field, direction == "desc"


def sort_items(items: Iterable[Entity], token: Optional[str]) -> List[Entity]:
    """
    Stable sort by a ``field_direction`` token.

    ``name`` sorts on display_name(); ``distance`` sorts on ``_distance`` with
    unpositioned items last in both directions; any other field sorts numerically
    with missing values as 0.
    """
    items = list(items)
    field, descending = parse_sort(token)

    if field == "distance":
        located = [item for item in items if item.get(DISTANCE_FIELD) is not None]
        unlocated = [item for item in items if item.get(DISTANCE_FIELD) is None]
        located.sort(key=lambda item: item[DISTANCE_FIELD], reverse=descending)
        return located + unlocated

    if field == "name":
        return sorted(items, key=lambda item: _collation_key(display_name(item)), reverse=descending)

    return sorted(items, key=lambda item: _numeric(item.get(field)), reverse=descending)


def apply_filters(items: Iterable[Entity], query: FinderQuery, now: float) -> List[Entity]:
    """Run the filter pipeline and distance annotation, without sorting."""
    results = filter_by_field(items, "sport", query.sport)
    results = filter_by_field(results, "category", query.category)
    results = filter_by_text(results, query.search)
    results = filter_by_time_window(results, query.start_date, query.end_date)
    results = filter_by_time_state(results, query.time_filter, now)
    if query.origin is not None:
        results = annotate_distances(results, query.origin, query.unit)
        results = filter_by_distance(results, query.max_distance)
    return results


def run_query(items: Iterable[Entity], query: FinderQuery, now: Optional[float] = None) -> Dict[str, Any]:
    """
    Filter, sort and paginate reconciled items.

    Args:
        items: Reconciled documents (see load_collection)
        query: Filters, sort token and page
        now: Epoch seconds for upcoming/past; taken once per request when omitted

    Returns:
        Dictionary with data, total, page, pageSize and totalPages
    """
    if now is None:
        now = int(time.time())
    results = apply_filters(items, query, now)
    results = sort_items(results, query.sort)
    page = paginate(results, query.page, query.page_size)
    logger.debug(f"Finder query matched {page['total']} items, returning page {page['page']}")
    return page
