"""
Flask app for the farm directory API.

POST /api/webhook is called by a Zoho CRM workflow when an Account changes:
checks the shared secret (x-webhook-token header or ?token=), resolves the
record id, pulls the record from Zoho and upserts it into Supabase, then pokes
the rebuild hook. GET /api/listings, /api/locations and /api/search are the
read endpoints used by the site.
"""
from __future__ import annotations

import hmac
import json
import os
from typing import Any, Callable, Iterable, Optional
from urllib.parse import parse_qsl

import httpx
from flask import Blueprint, Flask, current_app, jsonify, request
from loguru import logger
from werkzeug.exceptions import HTTPException

from farmdir.config import ENV_OVERRIDES, SECRET_KEYS, config_value, get_config, validate_config
from farmdir.errors import BadRequest, FarmDirError, Unauthorized
from farmdir.logging_config import setup_logging
from farmdir.notify import dispatch_ci, trigger_rebuild
from farmdir.schema import api_id, listing_for_response, storage_id
from farmdir.supabase_client import (
    fetch_listings,
    fetch_location_counts,
    get_client,
    search_listings,
)
from farmdir.sync import sync_zoho_record
from farmdir.zoho_client import get_access_token

EXTENSION = "farmdir"
WEBHOOK_ROUTE = "/api/webhook"

DEFAULT_LIST_LIMIT = 50
MAX_LIST_LIMIT = 200
DEFAULT_SEARCH_LIMIT = 20
MAX_SEARCH_LIMIT = 50
MIN_QUERY_LENGTH = 2

api = Blueprint("api", __name__)


def _state() -> dict[str, Any]:
    return current_app.extensions[EXTENSION]


def _config() -> dict[str, Any]:
    return _state()["config"]


def _storage():
    """Injected Supabase client, or a fresh one from config."""
    return _state()["storage_factory"]()


def _http() -> Optional[httpx.Client]:
    return _state()["http"]


def _bounded_int(value: Optional[str], default: int, maximum: int) -> int:
    try:
        number = int(value) if value is not None else default
    except ValueError:
        return default
    return max(1, min(number, maximum))


# ---------------------------------------------------------------------------
# Webhook
# ---------------------------------------------------------------------------


def _require_secret(config: dict) -> None:
    secret = config_value(config, "webhook", "secret")
    provided = request.headers.get("x-webhook-token") or request.args.get("token") or ""
    if not secret:
        logger.warning("Webhook: webhook.secret not configured; rejecting")
        raise Unauthorized("Unauthorized")
    if not hmac.compare_digest(provided.encode(), secret.encode()):
        logger.warning("Webhook: invalid or missing token")
        raise Unauthorized("Unauthorized")


def _parse_json_body() -> Optional[dict]:
    if not request.is_json:
        return None
    body = request.get_json(silent=True)
    return body if isinstance(body, dict) else None


def _parse_form_body() -> Optional[dict]:
    if request.mimetype != "application/x-www-form-urlencoded":
        return None
    return dict(parse_qsl(request.get_data(as_text=True)))


def _parse_raw_body() -> Optional[dict]:
    text = request.get_data(as_text=True)
    if not text.strip():
        return None
    try:
        body = json.loads(text)
    except ValueError:
        return None
    return body if isinstance(body, dict) else None


PAYLOAD_PARSERS: tuple[Callable[[], Optional[dict]], ...] = (
    _parse_json_body,
    _parse_form_body,
    _parse_raw_body,
)


def parse_payload(parsers: Iterable[Callable[[], Optional[dict]]] = PAYLOAD_PARSERS) -> dict:
    """First parser returning a dict wins; nothing parses -> {}."""
    for parser in parsers:
        try:
            payload = parser()
        except Exception as e:
            logger.debug("Webhook: {} failed: {}", parser.__name__, e)
            continue
        if payload is not None:
            return payload
    return {}


def extract_record_id(payload: dict, args: Any) -> str:
    """data[0].id, then id, then ?id=. Raises BadRequest when none is set."""
    candidates = []
    data = payload.get("data")
    if isinstance(data, list) and data and isinstance(data[0], dict):
        candidates.append(data[0].get("id"))
    candidates.append(payload.get("id"))
    candidates.append(args.get("id"))
    for candidate in candidates:
        if candidate is not None and str(candidate).strip():
            return str(candidate).strip()
    raise BadRequest("Missing Zoho record id")


@api.route(WEBHOOK_ROUTE, methods=["GET", "POST"])
def webhook():
    if request.method == "GET":
        return jsonify({"ok": True, "route": WEBHOOK_ROUTE, "mode": "sync"}), 200

    config = _config()
    try:
        _require_secret(config)
        raw_id = extract_record_id(parse_payload(), request.args)
    except BadRequest as e:
        return jsonify({"error": str(e), "hint": "send { id } in body or ?id=..."}), e.status
    except Unauthorized as e:
        return jsonify({"error": str(e)}), e.status

    zoho_id = storage_id(raw_id)
    bare_id = api_id(raw_id)
    log = logger.bind(zoho_id=bare_id)
    log.info("Webhook received for {}", zoho_id)
    http = _http()
    try:
        sync_zoho_record(config, _storage(), bare_id, http)
    except Exception as e:
        log.exception("Webhook sync failed: {}", e)
        return jsonify({
            "ok": False,
            "error": "Zoho sync failed",
            "message": str(e),
            "id": zoho_id,
            "apiId": bare_id,
        }), 500

    body: dict[str, Any] = {"ok": True, "id": zoho_id, "syncStatus": "synced"}
    rebuild = trigger_rebuild(config, http)
    if rebuild is not None:
        body["rebuild"] = rebuild
    dispatch = dispatch_ci(config, http, payload={"id": zoho_id})
    if dispatch is not None:
        body["dispatch"] = dispatch
    return jsonify(body), 200


# ---------------------------------------------------------------------------
# Read API
# ---------------------------------------------------------------------------


@api.route("/api/listings", methods=["GET"])
def listings():
    region = request.args.get("region") or None
    city = request.args.get("city") or None
    # Accepted and echoed back; filtering by category happens at build time.
    category = request.args.get("category") or None
    limit = _bounded_int(request.args.get("limit"), DEFAULT_LIST_LIMIT, MAX_LIST_LIMIT)
    filters = {"region": region, "city": city, "category": category, "limit": limit}
    try:
        rows = fetch_listings(_storage(), region=region, city=city, limit=limit)
    except Exception as e:
        logger.exception("GET /api/listings failed: {}", e)
        return jsonify({"results": [], "count": 0, "filters": filters,
                        "error": "Failed to fetch listings", "message": str(e)}), 500
    results = [listing_for_response(r) for r in rows]
    return jsonify({"results": results, "count": len(results), "filters": filters}), 200


@api.route("/api/locations", methods=["GET"])
def locations():
    region = request.args.get("region") or None
    try:
        rows = fetch_location_counts(_storage(), region=region)
    except Exception as e:
        logger.exception("GET /api/locations failed: {}", e)
        return jsonify({"results": [], "count": 0,
                        "error": "Failed to fetch locations", "message": str(e)}), 500
    return jsonify({"results": rows, "count": len(rows)}), 200


@api.route("/api/search", methods=["GET"])
def search():
    query = (request.args.get("q") or "").strip()
    limit = _bounded_int(request.args.get("limit"), DEFAULT_SEARCH_LIMIT, MAX_SEARCH_LIMIT)
    if len(query) < MIN_QUERY_LENGTH:
        return jsonify({"results": [], "count": 0, "query": query}), 200
    try:
        rows = search_listings(_storage(), query, limit=limit)
    except Exception as e:
        logger.exception("GET /api/search failed: {}", e)
        return jsonify({"results": [], "count": 0, "query": query,
                        "error": "Search failed", "message": str(e)}), 500
    results = [listing_for_response(r) for r in rows]
    return jsonify({"results": results, "count": len(results), "query": query}), 200


# ---------------------------------------------------------------------------
# Diagnostics
# ---------------------------------------------------------------------------


def _known_keys(section: str) -> set[str]:
    return {key for _, s, key in ENV_OVERRIDES if s == section}


def _preview(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    return value[:6] + "..." if len(value) > 6 else value


@api.route("/api/debug-connection", methods=["GET"])
def debug_connection():
    config = _config()
    present: dict[str, bool] = {}
    previews: dict[str, Optional[str]] = {}
    sections = ("supabase", "zoho", "webhook", "rebuild", "github")
    for section in sections:
        for key in sorted((config.get(section) or {}).keys() | _known_keys(section)):
            name = f"{section}.{key}"
            value = config_value(config, section, key)
            present[name] = value is not None
            if (section, key) not in SECRET_KEYS:
                previews[name] = _preview(value)
    try:
        token = get_access_token(config, _http())
        zoho = {"ok": True, "token_preview": _preview(token)}
    except FarmDirError as e:
        zoho = {"ok": False, "error": type(e).__name__, "message": str(e)}
    return jsonify({
        "present": present,
        "preview": previews,
        "missing_required": validate_config(config),
        "zoho": zoho,
    }), 200


@api.route("/health", methods=["GET"])
def health():
    return jsonify({"status": "ok"}), 200


def _json_http_error(e: HTTPException):
    return jsonify({"error": e.name, "message": e.description}), e.code


def create_app(
    config: Optional[dict] = None,
    storage: Any = None,
    http: Optional[httpx.Client] = None,
) -> Flask:
    """
    Build the app. storage is a Supabase client (or compatible fake); when
    omitted each request creates one from config. http is an optional shared
    httpx client for Zoho/notification calls.
    """
    cfg = config if config is not None else get_config()
    missing = validate_config(cfg)
    if missing:
        logger.warning("Missing configuration: {} (affected endpoints will return errors)", ", ".join(missing))
    app = Flask(__name__)
    app.extensions[EXTENSION] = {
        "config": cfg,
        "storage_factory": (lambda: storage) if storage is not None else (lambda: get_client(cfg)),
        "http": http,
    }
    app.register_blueprint(api)
    app.register_error_handler(HTTPException, _json_http_error)
    return app


def main() -> None:
    """Run the server (or point gunicorn at farmdir.webhook_server:create_app())."""
    cfg = get_config()
    setup_logging(cfg)
    port = int(os.getenv("PORT", "5000"))
    host = os.getenv("HOST", "0.0.0.0")
    logger.info("Starting farmdir API on {}:{}", host, port)
    create_app(cfg).run(host=host, port=port)


if __name__ == "__main__":
    main()
