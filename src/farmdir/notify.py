"""Downstream notifications after a successful sync: site rebuild hook, GitHub dispatch."""
from __future__ import annotations

from typing import Any, Optional

import httpx
from loguru import logger

from farmdir.config import config_value
from farmdir.http_utils import get_httpx_client, post_best_effort, timeout_from_config

GITHUB_DISPATCH_URL = "https://api.github.com/repos/{owner}/{repo}/dispatches"
DEFAULT_EVENT_TYPE = "zoho-sync"


def _post(config: dict, http: Optional[httpx.Client], url: str, **kwargs: Any) -> dict[str, Any]:
    if http is not None:
        return post_best_effort(http, url, **kwargs)
    with get_httpx_client(timeout=timeout_from_config(config)) as client:
        return post_best_effort(client, url, **kwargs)


def trigger_rebuild(config: dict, http: Optional[httpx.Client] = None) -> Optional[dict[str, Any]]:
    """POST the deploy hook if configured. None when no hook is set."""
    url = config_value(config, "rebuild", "hook_url")
    if not url:
        return None
    result = _post(config, http, url)
    if result["ok"]:
        logger.info("Rebuild hook triggered (HTTP {})", result["status"])
    return result


def dispatch_ci(
    config: dict,
    http: Optional[httpx.Client] = None,
    payload: Optional[dict[str, Any]] = None,
) -> Optional[dict[str, Any]]:
    """Send a repository_dispatch event if GitHub token/owner/repo are configured."""
    token = config_value(config, "github", "token")
    owner = config_value(config, "github", "owner")
    repo = config_value(config, "github", "repo")
    if not (token and owner and repo):
        return None
    event_type = config_value(config, "github", "event_type") or DEFAULT_EVENT_TYPE
    result = _post(
        config,
        http,
        GITHUB_DISPATCH_URL.format(owner=owner, repo=repo),
        json={"event_type": event_type, "client_payload": payload or {}},
        headers={
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github+json",
        },
    )
    if not result["ok"]:
        logger.error("GitHub dispatch {} to {}/{} failed: {}", event_type, owner, repo, result["error"])
    return result
