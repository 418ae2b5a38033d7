"""Match listings to known locations by great-circle distance."""
from __future__ import annotations

import math
from typing import Any, Optional

from farmdir.normalize import split_delimited_list, to_slug

EARTH_RADIUS_KM = 6371.0
DEFAULT_RADIUS_KM = 75.0


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _is_active(value: Any) -> bool:
    return value is True or value == 1


def location_coordinates(location: dict[str, Any]) -> Optional[tuple[float, float]]:
    """coordinates.latitude/longitude, else top-level latitude/longitude."""
    coords = location.get("coordinates") or {}
    lat = coords.get("latitude", location.get("latitude"))
    lon = coords.get("longitude", location.get("longitude"))
    if _is_number(lat) and _is_number(lon):
        return float(lat), float(lon)
    return None


def location_slug(location: dict[str, Any]) -> str:
    if location.get("location_slug"):
        return location["location_slug"]
    region = location.get("region") or location.get("province")
    parts = [location.get("name"), region, location.get("country")]
    return to_slug(" ".join(str(p) for p in parts if p))


def nearby_listing(listing: dict[str, Any], distance_km: float) -> dict[str, Any]:
    return {
        "id": listing.get("external_id") or listing.get("id"),
        "name": listing.get("name"),
        "slug": listing.get("slug"),
        "url": f"/farms/{listing.get('slug')}",
        "latitude": listing.get("latitude"),
        "longitude": listing.get("longitude"),
        "city": listing.get("city_name"),
        "province": listing.get("state_province"),
        "country": listing.get("country"),
        "categories": split_delimited_list(listing.get("categories")),
        "featured": _is_active(listing.get("featured")),
        "distance_km": round(distance_km, 1),
    }


def join_locations(
    locations: list[dict[str, Any]],
    listings: list[dict[str, Any]],
    radius_km: float = DEFAULT_RADIUS_KM,
) -> list[dict[str, Any]]:
    """
    Attach active listings within radius_km (inclusive) to each location,
    nearest first. Locations with no listings in range are dropped; the rest
    are ordered by farmCount desc, then name.
    """
    candidates = [
        listing
        for listing in listings
        if _is_active(listing.get("active"))
        and _is_number(listing.get("latitude"))
        and _is_number(listing.get("longitude"))
    ]
    out = []
    for location in locations:
        coords = location_coordinates(location)
        if coords is None:
            continue
        distances = [
            (haversine_km(coords[0], coords[1], row["latitude"], row["longitude"]), row)
            for row in candidates
        ]
        nearby = sorted(
            ((d, row) for d, row in distances if d <= radius_km),
            key=lambda pair: pair[0],
        )
        if not nearby:
            continue
        farms = [nearby_listing(row, d) for d, row in nearby]
        out.append({
            **location,
            "location_slug": location_slug(location),
            "farms": farms,
            "farmCount": len(farms),
        })
    out.sort(key=lambda loc: (-loc["farmCount"], loc.get("name") or ""))
    return out
