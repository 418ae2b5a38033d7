"""Build-time artifacts for the static site: farms, nearby-location pages, categories, search data."""
from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from loguru import logger

from farmdir.categories import build_categories, unique_categories
from farmdir.config import get_config
from farmdir.geo import DEFAULT_RADIUS_KM, join_locations
from farmdir.logging_config import setup_logging
from farmdir.schema import listing_for_response
from farmdir.supabase_client import fetch_all_listings, fetch_locations, get_client

DEFAULT_OUTPUT_DIR = "data"


def _write_json(path: Path, data: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False, default=str)
    logger.info("Wrote {}", path)


def load_curated_categories(path: Optional[str]) -> dict[str, dict[str, Any]]:
    """Curated category content keyed by category key. Missing file -> no category pages."""
    if not path:
        logger.warning("build.category_content not set; no category pages will be generated")
        return {}
    p = Path(path)
    if not p.exists():
        logger.warning("Category content {} not found; no category pages will be generated", p)
        return {}
    with open(p, encoding="utf-8") as f:
        return json.load(f) or {}


def search_data(listings: list[dict[str, Any]], locations_with_farms: list[dict[str, Any]]) -> dict[str, Any]:
    places = sorted({
        f"{loc.get('name')}, {loc.get('region') or loc.get('province')}"
        for loc in locations_with_farms
        if loc.get("name")
    })
    return {
        "categories": unique_categories(listings),
        "locations": places,
        "generatedAt": datetime.now(timezone.utc).isoformat(),
    }


def build_artifacts(
    listings: list[dict[str, Any]],
    locations: list[dict[str, Any]],
    curated_content: dict[str, dict[str, Any]],
    radius_km: float = DEFAULT_RADIUS_KM,
) -> dict[str, Any]:
    """Pure part of the build: file name -> JSON-serializable content."""
    active = [row for row in listings if row.get("active") in (True, 1)]
    nearby = join_locations(locations, active, radius_km=radius_km)
    categories = build_categories(curated_content, active)
    return {
        "farms.json": [listing_for_response(row) for row in active],
        "farm-params.json": [{"id": row.get("slug")} for row in active],
        "locations-with-farms.json": nearby,
        "location-params-filtered.json": [{"location": loc["location_slug"]} for loc in nearby],
        "categories.json": categories,
        "category-params.json": [{"slug": c["slug"]} for c in categories if c["totalFarms"] > 0],
        "search-data.json": search_data(active, nearby),
    }


def run_build(
    config: Optional[dict] = None,
    client: Any = None,
    output_dir: Optional[str] = None,
) -> dict[str, int]:
    """Fetch listings and locations from Supabase and write every artifact. Returns counts."""
    cfg = config or get_config()
    build_cfg = cfg.get("build", {}) or {}
    radius_km = float((cfg.get("geo", {}) or {}).get("radius_km", DEFAULT_RADIUS_KM))
    out = Path(output_dir or build_cfg.get("output_dir") or DEFAULT_OUTPUT_DIR)
    client = client or get_client(cfg)

    listings = fetch_all_listings(client)
    locations = fetch_locations(client)
    logger.info("Loaded {} active listings and {} locations", len(listings), len(locations))
    curated = load_curated_categories(build_cfg.get("category_content"))

    artifacts = build_artifacts(listings, locations, curated, radius_km=radius_km)
    for name, content in artifacts.items():
        _write_json(out / name, content)

    summary = {
        "listings": len(artifacts["farms.json"]),
        "locations": len(locations),
        "locations_with_farms": len(artifacts["locations-with-farms.json"]),
        "categories_with_farms": len(artifacts["category-params.json"]),
    }
    logger.info(
        "Build finished: {} locations with farms within {}km (of {}), {} category pages",
        summary["locations_with_farms"],
        radius_km,
        summary["locations"],
        summary["categories_with_farms"],
    )
    return summary


def run_build_job(config: Optional[dict] = None) -> None:
    """Scheduler entry: log and swallow failures so the next run still fires."""
    cfg = config or get_config()
    setup_logging(cfg)
    try:
        run_build(cfg)
    except Exception as e:
        logger.exception("Scheduled build failed: {}", e)
