from __future__ import annotations

import pytest

from tripshare.services.trips import TripConflictError, TripRecord, TripRepository, build_trip_payload

DAY = 86400


@pytest.fixture
def repo(clean_db):
    return TripRepository(clean_db)


def test_find_by_slug_unknown_returns_none(repo):
    assert repo.find_by_slug("does-not-exist") is None


@pytest.mark.parametrize("slug", [None, "", "UPPER", "has space", "../etc", "trailing-", "x" * 101])
def test_find_by_slug_malformed_returns_none(repo, slug):
    assert repo.find_by_slug(slug) is None


def test_create_and_find(repo):
    created = repo.create_trip(slug="tokyo-spring", title="Tokyo", is_public=True)
    found = repo.find_by_slug("tokyo-spring")

    assert isinstance(found, TripRecord)
    assert found == created
    assert found.is_public is True
    assert found.access_token_hash is None
    assert repo.find_by_id(created.id) == created
    assert repo.find_by_id(created.id.upper()) == created


def test_public_trip_never_stores_hash(repo):
    trip = repo.create_trip(slug="open-trip", title="Open", is_public=True, access_token_hash="$2b$10$x")
    assert trip.access_token_hash is None
    assert repo.find_by_slug("open-trip").access_token_hash is None


def test_duplicate_slug_conflict(repo):
    repo.create_trip(slug="paris-2024", title="Paris")
    with pytest.raises(TripConflictError):
        repo.create_trip(slug="paris-2024", title="Paris again")


def test_find_by_id_rejects_non_uuid(repo):
    assert repo.find_by_id("paris-2024") is None
    assert repo.find_by_id(None) is None


def test_update_protection_sets_and_clears_hash(repo):
    trip = repo.create_trip(slug="paris-2024", title="Paris", is_public=True)

    assert repo.update_protection(trip.id, is_public=False, token_hash="$2b$10$abc") is True
    private = repo.find_by_slug("paris-2024")
    assert private.is_public is False
    assert private.access_token_hash == "$2b$10$abc"

    assert repo.update_protection(trip.id, is_public=True, token_hash="$2b$10$ignored") is True
    public = repo.find_by_slug("paris-2024")
    assert public.is_public is True
    assert public.access_token_hash is None


def test_update_protection_unknown_trip(repo):
    assert repo.update_protection("00000000-0000-4000-8000-000000000000", is_public=True, token_hash=None) is False
    assert repo.update_protection("not-a-uuid", is_public=True, token_hash=None) is False


def test_make_private_keeps_stored_hash(repo):
    trip = repo.create_trip(slug="paris-2024", title="Paris", is_public=False, access_token_hash="$2b$10$kept")

    updated = repo.make_private(trip.id, fallback_hash="$2b$10$fresh")
    assert updated.is_public is False
    assert updated.access_token_hash == "$2b$10$kept"
    assert repo.find_by_id(trip.id).access_token_hash == "$2b$10$kept"


def test_make_private_fills_empty_hash(repo):
    trip = repo.create_trip(slug="tokyo-spring", title="Tokyo", is_public=True)

    updated = repo.make_private(trip.id.upper(), fallback_hash="$2b$10$fresh")
    assert updated.is_public is False
    assert updated.access_token_hash == "$2b$10$fresh"


def test_make_private_unknown_trip(repo):
    assert repo.make_private("00000000-0000-4000-8000-000000000000", fallback_hash=None) is None
    assert repo.make_private("not-a-uuid", fallback_hash=None) is None


def test_list_photos_ordered_by_taken_at(repo):
    trip = repo.create_trip(slug="tokyo-spring", title="Tokyo")
    for key, taken_at in (("late", 3 * DAY), ("early", 1 * DAY), ("middle", 2 * DAY)):
        repo.add_photo(
            trip.id,
            storage_key=key,
            url=f"https://img/{key}.jpg",
            thumbnail_url=f"https://img/t/{key}.jpg",
            taken_at=1_700_000_000 + taken_at,
        )

    assert [p["storage_key"] for p in repo.list_photos(trip.id)] == ["early", "middle", "late"]


def test_list_trips_includes_photo_stats(repo):
    with_photos = repo.create_trip(slug="tokyo-spring", title="Tokyo")
    repo.create_trip(slug="empty-trip", title="Empty", is_public=False, access_token_hash="$2b$10$h")
    repo.add_photo(with_photos.id, storage_key="a", url="u", thumbnail_url="t", taken_at=1_700_000_000)
    repo.add_photo(with_photos.id, storage_key="b", url="u", thumbnail_url="t", taken_at=1_700_086_400)

    trips = {t["slug"]: t for t in repo.list_trips()}

    assert trips["tokyo-spring"]["photoCount"] == 2
    assert trips["tokyo-spring"]["dateRange"] == {
        "start": "2023-11-14T22:13:20Z",
        "end": "2023-11-15T22:13:20Z",
    }
    assert trips["empty-trip"]["photoCount"] == 0
    assert trips["empty-trip"]["isPublic"] is False
    assert all("accessTokenHash" not in t and "access_token_hash" not in t for t in trips.values())


def test_build_trip_payload_shape():
    trip = TripRecord(
        id="5f0c8d3e-2b1a-4c7e-9f00-0a1b2c3d4e5f",
        slug="paris-2024",
        title="Paris",
        description="Weekend",
        cover_photo_url=None,
        is_public=False,
        access_token_hash="$2b$10$secret",
        created_at=1_700_000_000,
        updated_at=1_700_000_000,
    )
    photos = [
        {
            "id": "p1",
            "storage_key": "k1",
            "url": "https://img/1.jpg",
            "thumbnail_url": "https://img/t/1.jpg",
            "latitude": 48.85,
            "longitude": 2.29,
            "taken_at": 1_700_000_000,
            "caption": "Eiffel",
            "album": None,
            "rotation": 90,
            "created_at": 1_700_000_000,
        }
    ]

    payload = build_trip_payload(trip, photos)

    assert payload["slug"] == "paris-2024"
    assert payload["isPublic"] is False
    assert payload["photoCount"] == 1
    assert payload["photos"][0]["storageKey"] == "k1"
    assert payload["photos"][0]["rotation"] == 90
    assert "$2b$10$secret" not in repr(payload)


def test_build_trip_payload_date_range_falls_back_to_created_at():
    trip = TripRecord(
        id="5f0c8d3e-2b1a-4c7e-9f00-0a1b2c3d4e5f",
        slug="empty",
        title="Empty",
        description=None,
        cover_photo_url=None,
        is_public=True,
        access_token_hash=None,
        created_at=1_700_000_000,
        updated_at=1_700_000_000,
    )
    payload = build_trip_payload(trip, [])
    assert payload["dateRange"] == {"start": payload["createdAt"], "end": payload["createdAt"]}
    assert payload["photos"] == []


def test_update_trip_metadata(repo):
    trip = repo.create_trip(slug="paris-2024", title="Paris", description="old")

    updated = repo.update_trip(trip.id, title="  Paris in June ", description="  ", slug="paris-june")

    assert updated.title == "Paris in June"
    assert updated.description is None
    assert updated.slug == "paris-june"
    assert repo.find_by_slug("paris-2024") is None
    assert repo.find_by_slug("paris-june") == updated


def test_update_trip_keeps_protection(repo):
    trip = repo.create_trip(slug="paris-2024", title="Paris", is_public=False, access_token_hash="$2b$10$kept")
    updated = repo.update_trip(trip.id, cover_photo_url="")

    assert updated.cover_photo_url is None
    assert updated.is_public is False
    assert updated.access_token_hash == "$2b$10$kept"
    with pytest.raises(ValueError):
        repo.update_trip(trip.id, is_public=True)


def test_update_trip_slug_conflict_and_unknown(repo):
    repo.create_trip(slug="tokyo-spring", title="Tokyo")
    paris = repo.create_trip(slug="paris-2024", title="Paris")

    with pytest.raises(TripConflictError):
        repo.update_trip(paris.id, slug="tokyo-spring")
    assert repo.update_trip("00000000-0000-4000-8000-000000000000", title="x") is None
    assert repo.update_trip("paris-2024", title="x") is None
