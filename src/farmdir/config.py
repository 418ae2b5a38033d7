"""Load config from config.yaml and env."""
from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml

# (env var, section, key)
ENV_OVERRIDES = (
    ("SUPABASE_URL", "supabase", "url"),
    ("SUPABASE_SERVICE_ROLE_KEY", "supabase", "service_role_key"),
    ("ZOHO_REFRESH_TOKEN", "zoho", "refresh_token"),
    ("ZOHO_CLIENT_ID", "zoho", "client_id"),
    ("ZOHO_CLIENT_SECRET", "zoho", "client_secret"),
    ("ZOHO_DC", "zoho", "dc"),
    ("WEBHOOK_SECRET", "webhook", "secret"),
    ("REBUILD_HOOK_URL", "rebuild", "hook_url"),
    ("GITHUB_TOKEN", "github", "token"),
    ("GITHUB_OWNER", "github", "owner"),
    ("GITHUB_REPO", "github", "repo"),
    ("GITHUB_EVENT", "github", "event_type"),
)

REQUIRED_KEYS = (
    ("supabase", "url"),
    ("supabase", "service_role_key"),
    ("zoho", "refresh_token"),
    ("zoho", "client_id"),
    ("zoho", "client_secret"),
    ("webhook", "secret"),
)

# Keys whose values must never be echoed back, not even partially.
SECRET_KEYS = {
    ("supabase", "service_role_key"),
    ("zoho", "refresh_token"),
    ("zoho", "client_secret"),
    ("webhook", "secret"),
    ("github", "token"),
}


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def get_config() -> dict[str, Any]:
    root = Path(__file__).resolve().parents[2]
    cfg = _load_yaml(root / "config.yaml") or _load_yaml(root / "config.example.yaml")
    # Env overrides
    for env_name, section, key in ENV_OVERRIDES:
        if value := os.getenv(env_name):
            cfg.setdefault(section, {})[key] = value.strip()
    return cfg


def config_value(cfg: dict[str, Any], section: str, key: str) -> str | None:
    """Return a stripped string value or None when absent/blank."""
    value = (cfg.get(section) or {}).get(key)
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def validate_config(cfg: dict[str, Any]) -> list[str]:
    """Return dotted names of required keys that are missing."""
    return [
        f"{section}.{key}"
        for section, key in REQUIRED_KEYS
        if not config_value(cfg, section, key)
    ]
