"""Group listings under the curated category pages."""
from __future__ import annotations

from typing import Any, Optional

from farmdir.normalize import split_delimited_list, to_slug

FEATURED_PER_CATEGORY = 3
BLURB_LENGTH = 120
BLURB_PLACEHOLDER = "Farm description coming soon..."


def _significant_words(text: str) -> list[str]:
    return [w for w in text.split(" ") if len(w) > 2]


def category_matches(curated: dict[str, Any], farm_category: str) -> bool:
    """
    Loose match between a curated category and a listing's own category text:
    equal or contained names, equal slugs, or same leading word plus at least
    two shared significant words.
    """
    curated_name = (curated.get("name") or "").lower()
    farm_cat = farm_category.lower()
    if not curated_name or not farm_cat:
        return False
    if curated_name == farm_cat or curated_name in farm_cat or farm_cat in curated_name:
        return True
    if curated.get("slug") and curated["slug"] == to_slug(farm_category):
        return True
    curated_words = _significant_words(curated_name)
    farm_words = _significant_words(farm_cat)
    if not curated_words or not farm_words or curated_words[0] != farm_words[0]:
        return False
    common = [w for w in curated_words if w in farm_words]
    return len(common) >= 2


def find_category_key(curated_content: dict[str, dict[str, Any]], farm_category: str) -> Optional[str]:
    for key, curated in curated_content.items():
        if category_matches(curated, farm_category):
            return key
    return None


def _blurb(description: Optional[str]) -> str:
    if not description:
        return BLURB_PLACEHOLDER
    return description[:BLURB_LENGTH] + "..."


def build_categories(
    curated_content: dict[str, dict[str, Any]],
    listings: list[dict[str, Any]],
) -> list[dict[str, Any]]:
    """One entry per curated category, most farms first (empty categories kept)."""
    by_key: dict[str, dict[Any, dict[str, Any]]] = {key: {} for key in curated_content}
    for listing in listings:
        for farm_category in split_delimited_list(listing.get("categories")):
            key = find_category_key(curated_content, farm_category)
            if key is None:
                continue
            farm_id = listing.get("external_id") or listing.get("id")
            by_key[key].setdefault(farm_id, {
                "id": farm_id,
                "name": listing.get("name") or "",
                "slug": listing.get("slug"),
                "url": f"/farms/{listing.get('slug')}",
                "blurb": _blurb(listing.get("description")),
                "city": listing.get("city_name"),
                "province": listing.get("state_province"),
                "featured": bool(listing.get("featured")),
            })

    out = []
    for key, curated in curated_content.items():
        farms = sorted(by_key[key].values(), key=lambda f: (not f["featured"], f["name"]))
        out.append({
            "slug": curated.get("slug") or to_slug(curated.get("name")),
            "name": curated.get("name"),
            "totalFarms": len(farms),
            "description": curated.get("description"),
            "intro": curated.get("intro"),
            "faqs": curated.get("faqs") or [],
            "topCities": [],
            "featuredFarms": farms[:FEATURED_PER_CATEGORY],
        })
    out.sort(key=lambda c: -c["totalFarms"])
    return out


def unique_categories(listings: list[dict[str, Any]]) -> list[str]:
    seen = set()
    for listing in listings:
        seen.update(split_delimited_list(listing.get("categories")))
    return sorted(seen)
