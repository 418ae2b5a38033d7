"""Shared HTTP client, headers and timeout for Zoho and notification calls."""
from __future__ import annotations

from typing import Any, Optional

import httpx
from loguru import logger

DEFAULT_UA = "farmdir-sync/1.0"
DEFAULT_HEADERS = {
    "User-Agent": DEFAULT_UA,
    "Accept": "application/json",
}

DEFAULT_TIMEOUT = 20.0


def get_httpx_client(
    timeout: float = DEFAULT_TIMEOUT,
    follow_redirects: bool = True,
    transport: Optional[httpx.BaseTransport] = None,
) -> httpx.Client:
    return httpx.Client(
        headers=DEFAULT_HEADERS,
        timeout=timeout,
        follow_redirects=follow_redirects,
        transport=transport,
    )


def timeout_from_config(config: Optional[dict]) -> float:
    return float(((config or {}).get("http") or {}).get("timeout", DEFAULT_TIMEOUT))


def response_json(resp: httpx.Response) -> Any:
    """Parsed JSON body, or None when the body is empty or not JSON."""
    if not resp.content:
        return None
    try:
        return resp.json()
    except ValueError:
        return None


def post_best_effort(client: httpx.Client, url: str, **kwargs: Any) -> dict[str, Any]:
    """
    POST and report the outcome instead of raising.
    Returns {"ok": bool, "status": int | None, "error": str | None}.
    """
    try:
        resp = client.post(url, **kwargs)
    except httpx.HTTPError as e:
        logger.warning("POST {} failed: {}", url, e)
        return {"ok": False, "status": None, "error": str(e)}
    except Exception as e:
        # httpx.InvalidURL and friends are not HTTPError subclasses.
        logger.exception("POST {} failed: {}", url, e)
        return {"ok": False, "status": None, "error": str(e)}
    if resp.is_success:
        return {"ok": True, "status": resp.status_code, "error": None}
    logger.warning("POST {} returned {}: {}", url, resp.status_code, resp.text[:200])
    return {"ok": False, "status": resp.status_code, "error": resp.text[:500] or resp.reason_phrase}
