"""Sync one Zoho record into the listings table: normalize, allocate slug, upsert."""
from __future__ import annotations

from datetime import datetime, timezone
from functools import partial
from typing import Any, Optional

import httpx
from loguru import logger

from farmdir.errors import StorageError
from farmdir.normalize import to_slug
from farmdir.schema import api_id, desired_slug_source, listing_row, storage_id
from farmdir.slugs import allocate_slug
from farmdir.supabase_client import is_slug_conflict, slug_taken, upsert_listing
from farmdir.zoho_client import fetch_record, get_access_token

DEFAULT_SLUG = "farm"
# Upsert attempts when another writer grabs the slug between check and write.
SLUG_WRITE_ATTEMPTS = 3


def upsert_record(
    client: Any,
    record: dict[str, Any],
    now: Optional[datetime] = None,
) -> dict[str, Any]:
    """Normalize record and insert-or-update it by external_id. Returns the written row."""
    external_id = record["id"]
    log = logger.bind(external_id=external_id)
    desired = (
        to_slug(desired_slug_source(record))
        or to_slug(record.get("Account_Name"))
        or DEFAULT_SLUG
    )
    is_taken = partial(slug_taken, client)
    attempt = 1
    while True:
        slug = allocate_slug(desired, external_id, is_taken)
        row = listing_row(record, slug, now or datetime.now(timezone.utc))
        try:
            return upsert_listing(client, row)
        except StorageError as e:
            # The competing row is committed now, so the next allocation skips it.
            if not is_slug_conflict(e) or attempt >= SLUG_WRITE_ATTEMPTS:
                raise
            log.warning("Slug {} taken concurrently (attempt {}); reallocating", slug, attempt)
            attempt += 1


def sync_zoho_record(
    config: dict,
    client: Any,
    raw_id: Any,
    http: Optional[httpx.Client] = None,
) -> dict[str, Any]:
    """Token exchange, fetch, upsert. raw_id may be bare or zcrm_-prefixed."""
    bare = api_id(raw_id)
    token = get_access_token(config, http)
    record = fetch_record(config, token, bare, http)
    record = {**record, "id": storage_id(bare)}
    return upsert_record(client, record)
