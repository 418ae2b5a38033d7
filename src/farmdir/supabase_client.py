"""Supabase client with service role for listing upserts, moderation and reads."""
from __future__ import annotations

from collections import Counter
from typing import Any, Optional

from loguru import logger

from farmdir.errors import StorageError

LISTINGS_TABLE = "listings"
LOCATIONS_TABLE = "locations"
SEARCH_RPC = "search_listings"

UNIQUE_VIOLATION = "23505"
PAGE_SIZE = 1000

# Columns returned by the public list endpoint.
LIST_COLUMNS = (
    "external_id,name,slug,street,city_name,state_province,postal_code,country,"
    "latitude,longitude,phone,email,website,facebook_url,instagram_url,"
    "categories,service_types,amenities,varieties,payment_methods,pet_friendly,"
    "price_range,price_min,price_max,season_open,season_close,description,"
    "verified,featured"
)
MODERATION_FLAGS = ("verified", "featured", "active")


def get_client(config: Optional[dict] = None):
    from supabase import create_client
    from farmdir.config import config_value, get_config
    cfg = config if config is not None else get_config()
    url = config_value(cfg, "supabase", "url")
    key = config_value(cfg, "supabase", "service_role_key")
    if not url or not key:
        raise StorageError("supabase.url and supabase.service_role_key required (config or env)")
    return create_client(url, key)


def _error_code(exc: Exception) -> Optional[str]:
    code = getattr(exc, "code", None)
    if code:
        return str(code)
    if UNIQUE_VIOLATION in str(exc):
        return UNIQUE_VIOLATION
    return None


def is_slug_conflict(exc: StorageError) -> bool:
    return exc.code == UNIQUE_VIOLATION and "slug" in str(exc).lower()


def slug_taken(client: Any, slug: str, exclude_external_id: Optional[str]) -> bool:
    """True if another listing (not exclude_external_id) already uses slug."""
    try:
        query = client.table(LISTINGS_TABLE).select("external_id").eq("slug", slug)
        if exclude_external_id:
            query = query.neq("external_id", exclude_external_id)
        result = query.limit(1).execute()
    except Exception as e:
        raise StorageError(f"Slug lookup failed: {e}", _error_code(e)) from e
    return bool(result.data)


def upsert_listing(client: Any, row: dict[str, Any]) -> dict[str, Any]:
    """
    Insert-or-update one listing keyed on external_id, as a single statement.
    Moderation flags are not part of row, so inserts take the table defaults
    and updates leave them alone.
    """
    leaked = [flag for flag in MODERATION_FLAGS if flag in row]
    if leaked:
        raise ValueError(f"Moderation flags must not be synced: {leaked}")
    try:
        result = (
            client.table(LISTINGS_TABLE)
            .upsert(row, on_conflict="external_id")
            .execute()
        )
    except Exception as e:
        raise StorageError(f"Listing upsert failed: {e}", _error_code(e)) from e
    data = result.data or [row]
    logger.bind(external_id=row.get("external_id")).info("Upserted listing slug={}", row.get("slug"))
    return data[0]


def set_moderation(
    client: Any,
    external_id: str,
    verified: Optional[bool] = None,
    featured: Optional[bool] = None,
    active: Optional[bool] = None,
) -> int:
    """Update only the given moderation flags. Returns number of rows changed."""
    values = {
        name: value
        for name, value in (("verified", verified), ("featured", featured), ("active", active))
        if value is not None
    }
    if not values:
        return 0
    try:
        result = (
            client.table(LISTINGS_TABLE)
            .update(values)
            .eq("external_id", external_id)
            .execute()
        )
    except Exception as e:
        raise StorageError(f"Moderation update failed: {e}", _error_code(e)) from e
    count = len(result.data or [])
    logger.bind(external_id=external_id).info("Moderation updated {} -> {} row(s)", values, count)
    return count


def fetch_listings(
    client: Any,
    region: Optional[str] = None,
    city: Optional[str] = None,
    limit: int = 50,
) -> list[dict[str, Any]]:
    """Active listings, featured first, then verified, then by name."""
    try:
        query = client.table(LISTINGS_TABLE).select(LIST_COLUMNS).eq("active", True)
        if region:
            query = query.eq("state_province", region)
        if city:
            query = query.eq("city_name", city)
        result = (
            query.order("featured", desc=True)
            .order("verified", desc=True)
            .order("name")
            .limit(limit)
            .execute()
        )
    except Exception as e:
        raise StorageError(f"Listing query failed: {e}", _error_code(e)) from e
    return result.data or []


def fetch_location_counts(client: Any, region: Optional[str] = None) -> list[dict[str, Any]]:
    """Known locations with the number of active listings whose city matches."""
    try:
        query = client.table(LOCATIONS_TABLE).select("name,region,country,slug,tier")
        if region:
            query = query.eq("region", region)
        locations = query.order("tier").order("name").execute().data or []
        cities = _fetch_all(client, "city_name")
    except Exception as e:
        raise StorageError(f"Location query failed: {e}", _error_code(e)) from e
    counts = Counter((row.get("city_name") or "").strip().lower() for row in cities)
    return [
        {**loc, "listing_count": counts[(loc.get("name") or "").strip().lower()]}
        for loc in locations
    ]


def search_listings(client: Any, query: str, limit: int = 20) -> list[dict[str, Any]]:
    """Full-text search through the search_listings RPC (ranked by ts_rank)."""
    try:
        result = client.rpc(SEARCH_RPC, {"p_query": query, "p_limit": limit}).execute()
    except Exception as e:
        raise StorageError(f"Search failed: {e}", _error_code(e)) from e
    return result.data or []


def _fetch_all(client: Any, columns: str, active_only: bool = True) -> list[dict[str, Any]]:
    rows: list[dict[str, Any]] = []
    start = 0
    while True:
        query = client.table(LISTINGS_TABLE).select(columns)
        if active_only:
            query = query.eq("active", True)
        page = query.order("external_id").range(start, start + PAGE_SIZE - 1).execute().data or []
        rows.extend(page)
        if len(page) < PAGE_SIZE:
            return rows
        start += PAGE_SIZE


def fetch_all_listings(client: Any, active_only: bool = True) -> list[dict[str, Any]]:
    """Every listing (paged past PostgREST's row cap) for build-time artifacts."""
    try:
        return _fetch_all(client, "*", active_only=active_only)
    except Exception as e:
        raise StorageError(f"Listing export failed: {e}", _error_code(e)) from e


def fetch_locations(client: Any) -> list[dict[str, Any]]:
    try:
        result = client.table(LOCATIONS_TABLE).select("*").order("tier").order("name").execute()
    except Exception as e:
        raise StorageError(f"Location export failed: {e}", _error_code(e)) from e
    return result.data or []
