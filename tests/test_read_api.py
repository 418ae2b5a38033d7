"""Tests for GET /api/listings, /api/locations and /api/search."""
from __future__ import annotations

import pytest

from conftest import FakeAPIError
from farmdir.webhook_server import create_app

CONFIG = {"webhook": {"secret": "x"}}


@pytest.fixture
def client(fake_db):
    return create_app(CONFIG, storage=fake_db).test_client()


@pytest.fixture
def seeded(fake_db):
    fake_db.add("listings", external_id="zcrm_3", name="Apple Hill", slug="apple-hill",
                city_name="Guelph", state_province="Ontario", categories="Apple Orchard")
    fake_db.add("listings", external_id="zcrm_2", name="Berry Patch", slug="berry-patch",
                city_name="Guelph", state_province="Ontario", verified=True)
    fake_db.add("listings", external_id="zcrm_1", name="Cider Farm", slug="cider-farm",
                city_name="Ottawa", state_province="Ontario", verified=True, featured=True)
    fake_db.add("listings", external_id="zcrm_4", name="Closed Farm", slug="closed-farm",
                city_name="Guelph", state_province="Ontario", active=False)
    fake_db.add("listings", external_id="zcrm_5", name="Dairy Dell", slug="dairy-dell",
                city_name="Burlington", state_province="Vermont")
    return fake_db


def test_listings_order_featured_then_verified_then_name(client, fake_db):
    fake_db.add("listings", external_id="a", name="Neither", slug="neither")
    fake_db.add("listings", external_id="b", name="Verified Only", slug="verified-only", verified=True)
    fake_db.add("listings", external_id="c", name="Featured Verified", slug="featured-verified",
                verified=True, featured=True)
    body = client.get("/api/listings").get_json()
    assert [r["name"] for r in body["results"]] == ["Featured Verified", "Verified Only", "Neither"]
    assert body["count"] == 3


def test_listings_excludes_inactive_and_filters(client, seeded):
    body = client.get("/api/listings?region=Ontario&city=Guelph&category=Apple+Orchard").get_json()
    assert [r["slug"] for r in body["results"]] == ["berry-patch", "apple-hill"]
    assert body["filters"] == {"region": "Ontario", "city": "Guelph", "category": "Apple Orchard", "limit": 50}


def test_listings_splits_list_columns(client, seeded):
    body = client.get("/api/listings?city=Guelph").get_json()
    apple = next(r for r in body["results"] if r["slug"] == "apple-hill")
    assert apple["categories"] == ["Apple Orchard"]


def test_listings_limit_is_bounded(client, seeded):
    assert client.get("/api/listings?limit=1").get_json()["count"] == 1
    assert client.get("/api/listings?limit=abc").get_json()["filters"]["limit"] == 50
    assert client.get("/api/listings?limit=100000").get_json()["filters"]["limit"] == 200


def test_listings_storage_error_degrades(client, fake_db):
    fake_db.fail_with = FakeAPIError("boom")
    resp = client.get("/api/listings")
    assert resp.status_code == 500
    body = resp.get_json()
    assert body["results"] == []
    assert body["count"] == 0
    assert body["error"] == "Failed to fetch listings"
    assert "boom" in body["message"]


def test_locations_counts_active_listings_by_city(client, seeded):
    seeded.add("locations", name="Ottawa", region="Ontario", country="Canada", slug="ottawa", tier=1)
    seeded.add("locations", name="Guelph", region="Ontario", country="Canada", slug="guelph", tier=2)
    seeded.add("locations", name="Barrie", region="Ontario", country="Canada", slug="barrie", tier=1)
    seeded.add("locations", name="Burlington", region="Vermont", country="USA", slug="burlington", tier=2)
    body = client.get("/api/locations?region=Ontario").get_json()
    assert [(r["name"], r["listing_count"]) for r in body["results"]] == [
        ("Barrie", 0), ("Ottawa", 1), ("Guelph", 2),
    ]
    assert body["count"] == 3


def test_locations_storage_error(client, fake_db):
    fake_db.fail_with = FakeAPIError("boom")
    resp = client.get("/api/locations")
    assert resp.status_code == 500
    assert resp.get_json()["results"] == []


def test_search_short_query_skips_storage(client, fake_db):
    resp = client.get("/api/search?q=a")
    assert resp.status_code == 200
    assert resp.get_json() == {"results": [], "count": 0, "query": "a"}
    assert fake_db.rpc_calls == []


def test_search_delegates_to_rpc(client, fake_db):
    fake_db.rpc_handlers["search_listings"] = lambda params: [
        {"name": "Apple Hill", "slug": "apple-hill", "categories": "Apple Orchard, Cider", "rank": 0.6},
    ]
    body = client.get("/api/search?q=apple&limit=5").get_json()
    assert fake_db.rpc_calls == [("search_listings", {"p_query": "apple", "p_limit": 5})]
    assert body["count"] == 1
    assert body["query"] == "apple"
    assert body["results"][0]["rank"] == 0.6
    assert body["results"][0]["categories"] == ["Apple Orchard", "Cider"]


def test_search_storage_error(client, fake_db):
    fake_db.rpc_handlers["search_listings"] = lambda params: []
    fake_db.fail_with = FakeAPIError("fts down")
    resp = client.get("/api/search?q=apple")
    assert resp.status_code == 500
    assert resp.get_json()["count"] == 0


@pytest.mark.parametrize("path", ["/api/listings", "/api/locations", "/api/search"])
def test_read_endpoints_reject_post(client, path):
    resp = client.post(path)
    assert resp.status_code == 405
    assert "error" in resp.get_json()
