"""Map a Zoho Account record onto the listings table."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from farmdir.normalize import (
    empty_to_none,
    parse_price_range,
    parse_tri_state,
    split_delimited_list,
    to_delimited_list,
    to_int_or_null,
    to_number_or_null,
)

# Namespace prefix marking an external_id as Zoho-sourced.
ZOHO_ID_PREFIX = "zcrm_"

# column -> Zoho field, copied as text (empty string stored as NULL)
TEXT_FIELDS = {
    "street": "Billing_Street",
    "city_name": "Billing_City",
    "state_province": "Billing_State",
    "postal_code": "Billing_Code",
    "country": "Billing_Country",
    "phone": "Phone",
    "email": "Email",
    "website": "Website",
    "facebook_url": "Facebook",
    "instagram_url": "Instagram",
    "price_range": "Price_Range",
    "season_open": "Season_Open",
    "season_close": "Season_Close",
    "hours_monday": "Hours_Monday",
    "hours_tuesday": "Hours_Tuesday",
    "hours_wednesday": "Hours_Wednesday",
    "hours_thursday": "Hours_Thursday",
    "hours_friday": "Hours_Friday",
    "hours_saturday": "Hours_Saturday",
    "hours_sunday": "Hours_Sunday",
    "description": "Description",
    "place_id": "Place_ID",
}

LIST_FIELDS = {
    "categories": "Categories",
    "service_types": "Service_Types",
    "amenities": "Amenities",
    "varieties": "Varieties",
    "payment_methods": "Payment_Methods",
}


def storage_id(raw_id: Any) -> str:
    """'123' or 'zcrm_123' -> 'zcrm_123'."""
    return ZOHO_ID_PREFIX + api_id(raw_id)


def api_id(raw_id: Any) -> str:
    """'zcrm_123' or '123' -> '123' (the form Zoho's API expects)."""
    text = str(raw_id).strip()
    if text.startswith(ZOHO_ID_PREFIX):
        text = text[len(ZOHO_ID_PREFIX):]
    return text


def listing_row(record: dict[str, Any], slug: str, synced_at: datetime) -> dict[str, Any]:
    """
    Build the upsert row for one Zoho record. external_id is taken as-is
    (callers force it to the zcrm_ form). Moderation flags are never set here.
    """
    price_min, price_max = parse_price_range(record.get("Price_Range"))
    row: dict[str, Any] = {
        "external_id": record["id"],
        "name": record.get("Account_Name") or "",
        "slug": slug,
        "latitude": to_number_or_null(record.get("Latitude")),
        "longitude": to_number_or_null(record.get("Longitude")),
        "pet_friendly": parse_tri_state(record.get("Pet_Friendly")),
        "price_min": price_min,
        "price_max": price_max,
        "established_year": to_int_or_null(record.get("Established_Year")),
        "last_synced_at": synced_at.isoformat(),
        "updated_at": synced_at.isoformat(),
    }
    for column, field in TEXT_FIELDS.items():
        row[column] = empty_to_none(record.get(field))
    for column, field in LIST_FIELDS.items():
        row[column] = to_delimited_list(record.get(field))
    return row


def listing_for_response(row: dict[str, Any]) -> dict[str, Any]:
    """Re-split delimited list columns for API responses and build artifacts."""
    out = dict(row)
    for column in LIST_FIELDS:
        if column in out:
            out[column] = split_delimited_list(out[column])
    return out


def desired_slug_source(record: dict[str, Any]) -> Optional[str]:
    """Explicit Slug override if set, else the account name."""
    override = record.get("Slug")
    if isinstance(override, str) and override.strip():
        return override
    return record.get("Account_Name") or None
