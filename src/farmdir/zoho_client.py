"""
Zoho CRM: exchange the refresh token for an access token, fetch one Account.
No token caching: every webhook delivery does its own exchange.
"""
from __future__ import annotations

from typing import Any, Optional

import httpx
from loguru import logger

from farmdir.config import config_value
from farmdir.errors import AuthConfigError, AuthExchangeError, NotFoundError, UpstreamError
from farmdir.http_utils import get_httpx_client, response_json, timeout_from_config

ACCOUNTS_URL = "https://accounts.zoho.{dc}/oauth/v2/token"
RECORD_URL = "https://www.zohoapis.{dc}/crm/v2/{module}/{record_id}"
DEFAULT_DC = "com"
DEFAULT_MODULE = "Accounts"

# Field projection requested from Zoho; anything else on the record is ignored.
ZOHO_FIELDS = (
    "id",
    "Account_Name",
    "Slug",
    "Billing_Street",
    "Billing_City",
    "Billing_State",
    "Billing_Code",
    "Billing_Country",
    "Latitude",
    "Longitude",
    "Phone",
    "Email",
    "Website",
    "Facebook",
    "Instagram",
    "Categories",
    "Service_Types",
    "Amenities",
    "Varieties",
    "Payment_Methods",
    "Pet_Friendly",
    "Price_Range",
    "Established_Year",
    "Season_Open",
    "Season_Close",
    "Hours_Monday",
    "Hours_Tuesday",
    "Hours_Wednesday",
    "Hours_Thursday",
    "Hours_Friday",
    "Hours_Saturday",
    "Hours_Sunday",
    "Description",
    "Place_ID",
)


def _dc(config: dict) -> str:
    return (config_value(config, "zoho", "dc") or DEFAULT_DC).lstrip(".")


def _open(config: dict, http: Optional[httpx.Client]) -> tuple[httpx.Client, bool]:
    if http is not None:
        return http, False
    return get_httpx_client(timeout=timeout_from_config(config)), True


def get_access_token(config: dict, http: Optional[httpx.Client] = None) -> str:
    refresh_token = config_value(config, "zoho", "refresh_token")
    client_id = config_value(config, "zoho", "client_id")
    client_secret = config_value(config, "zoho", "client_secret")
    missing = [
        name
        for name, value in (
            ("refresh_token", refresh_token),
            ("client_id", client_id),
            ("client_secret", client_secret),
        )
        if not value
    ]
    if missing:
        raise AuthConfigError(f"Missing Zoho credentials: {', '.join(missing)}")

    client, owned = _open(config, http)
    try:
        resp = client.post(
            ACCOUNTS_URL.format(dc=_dc(config)),
            params={
                "refresh_token": refresh_token,
                "client_id": client_id,
                "client_secret": client_secret,
                "grant_type": "refresh_token",
            },
        )
    except httpx.HTTPError as e:
        raise AuthExchangeError(f"Zoho token exchange failed: {e}") from e
    finally:
        if owned:
            client.close()

    body = response_json(resp)
    if not resp.is_success:
        raise AuthExchangeError(
            f"Zoho token exchange failed with HTTP {resp.status_code}",
            status=resp.status_code,
            body=resp.text,
        )
    if not isinstance(body, dict) or body.get("error") or not body.get("access_token"):
        error = body.get("error") if isinstance(body, dict) else None
        raise AuthExchangeError(
            f"Zoho token exchange returned no access token ({error or 'unexpected body'})",
            status=resp.status_code,
            body=resp.text,
        )
    logger.debug("Zoho access token obtained (expires_in={})", body.get("expires_in"))
    return body["access_token"]


def fetch_record(
    config: dict,
    token: str,
    record_id: str,
    http: Optional[httpx.Client] = None,
    module: str = DEFAULT_MODULE,
) -> dict[str, Any]:
    """GET one record with the fixed field projection. record_id is the bare Zoho id."""
    client, owned = _open(config, http)
    try:
        resp = client.get(
            RECORD_URL.format(dc=_dc(config), module=module, record_id=record_id),
            params={"fields": ",".join(ZOHO_FIELDS)},
            headers={"Authorization": f"Zoho-oauthtoken {token}"},
        )
    except httpx.HTTPError as e:
        raise UpstreamError(f"Zoho fetch failed: {e}") from e
    finally:
        if owned:
            client.close()

    body = response_json(resp)
    code = body.get("code") if isinstance(body, dict) else None
    if resp.status_code == 204 or (resp.is_success and body is None):
        raise NotFoundError(f"Zoho record {record_id} not found")
    if not resp.is_success or code == "INVALID_TOKEN":
        raise UpstreamError(
            f"Zoho fetch failed with HTTP {resp.status_code}" + (f" ({code})" if code else ""),
            status=resp.status_code,
            body=resp.text,
            code=code,
        )
    data = body.get("data") if isinstance(body, dict) else None
    if not data:
        raise NotFoundError(f"Zoho record {record_id} not found")
    logger.bind(zoho_id=record_id).info("Fetched Zoho {} record", module)
    return data[0]
