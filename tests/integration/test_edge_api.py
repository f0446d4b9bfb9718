from __future__ import annotations

import pytest


@pytest.fixture
def trips(services, clean_db):
    services.trips.create_trip(slug="tokyo-spring", title="Tokyo", is_public=True)
    services.trips.create_trip(
        slug="paris-2024",
        title="Paris 2024",
        is_public=False,
        access_token_hash=services.hasher.hash("croissant-2024"),
    )


def test_missing_slug(client, trips):
    resp = client.get("/functions/v1/get-trip")
    assert resp.status_code == 400
    assert resp.get_json() == {"error": "Missing slug parameter"}


def test_public_trip(client, trips):
    resp = client.get("/functions/v1/get-trip?slug=tokyo-spring")
    assert resp.status_code == 200
    assert resp.get_json()["slug"] == "tokyo-spring"
    assert resp.headers["Access-Control-Allow-Origin"] == "*"


def test_private_trip_with_token(client, trips):
    resp = client.get("/functions/v1/get-trip?slug=paris-2024&token=croissant-2024")
    assert resp.status_code == 200


@pytest.mark.parametrize(
    "query",
    [
        "slug=paris-2024",
        "slug=paris-2024&token=baguette",
        "slug=nowhere&token=croissant-2024",
        "slug=Bad_Slug",
    ],
)
def test_denials_match_api_shape(client, trips, query):
    resp = client.get(f"/functions/v1/get-trip?{query}")
    assert resp.status_code == 401
    assert resp.get_json() == {"error": "Unauthorized"}
    assert resp.headers["Cache-Control"] == "no-store"


def test_admin_session_bypasses_token(client, trips, admin_headers):
    resp = client.get("/functions/v1/get-trip?slug=paris-2024", headers=admin_headers)
    assert resp.status_code == 200


def test_preflight(client):
    resp = client.options("/functions/v1/get-trip")
    assert resp.status_code == 200
    assert resp.get_data(as_text=True) == "ok"
    assert "authorization" in resp.headers["Access-Control-Allow-Headers"]


def test_protection_rejects_get(client):
    resp = client.get("/functions/v1/update-trip-protection")
    assert resp.status_code == 405
    assert "error" in resp.get_json()
