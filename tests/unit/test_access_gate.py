from __future__ import annotations

import logging
from dataclasses import replace
from unittest.mock import MagicMock

import pytest

from tripshare.config import HasherConfig
from tripshare.services.access import AccessGate, AccessVerdict, decide
from tripshare.services.token_hasher import TokenHasher
from tripshare.services.trips import TripRecord

TRIP_ID = "5f0c8d3e-2b1a-4c7e-9f00-0a1b2c3d4e5f"


def make_trip(**overrides) -> TripRecord:
    base = TripRecord(
        id=TRIP_ID,
        slug="paris-2024",
        title="Paris 2024",
        description=None,
        cover_photo_url=None,
        is_public=False,
        access_token_hash="$2b$10$storedhashstoredhashstoredhashstoredhashstoredhash1",
        created_at=1_700_000_000,
        updated_at=1_700_000_000,
    )
    return replace(base, **overrides)


@pytest.fixture
def hasher():
    mock = MagicMock(spec=TokenHasher)
    mock.verify.return_value = False
    return mock


@pytest.mark.parametrize("is_public", [True, False])
@pytest.mark.parametrize("token", [None, "", "anything"])
def test_admin_always_granted_without_hashing(hasher, is_public, token):
    trip = make_trip(is_public=is_public, access_token_hash=None)
    assert decide(trip, token, True, hasher) is AccessVerdict.GRANTED
    hasher.verify.assert_not_called()


@pytest.mark.parametrize("token", [None, "", "garbage"])
def test_public_trip_granted_without_hashing(hasher, token):
    trip = make_trip(is_public=True)
    assert decide(trip, token, False, hasher) is AccessVerdict.GRANTED
    hasher.verify.assert_not_called()


@pytest.mark.parametrize("token", [None, ""])
def test_private_trip_without_token(hasher, token):
    assert decide(make_trip(), token, False, hasher) is AccessVerdict.DENIED_NO_TOKEN
    hasher.verify.assert_not_called()


def test_private_trip_without_hash_is_misconfigured(hasher, caplog):
    trip = make_trip(access_token_hash=None)
    with caplog.at_level(logging.ERROR, logger="tripshare.access"):
        verdict = decide(trip, "some-token", False, hasher)
    assert verdict is AccessVerdict.DENIED_MISCONFIGURED
    assert any(getattr(record, "trip_slug", None) == "paris-2024" for record in caplog.records)
    hasher.verify.assert_not_called()


def test_missing_token_checked_before_missing_hash(hasher):
    trip = make_trip(access_token_hash=None)
    assert decide(trip, None, False, hasher) is AccessVerdict.DENIED_NO_TOKEN


def test_valid_token_granted(hasher):
    hasher.verify.return_value = True
    trip = make_trip()
    assert decide(trip, "right", False, hasher) is AccessVerdict.GRANTED
    hasher.verify.assert_called_once_with("right", trip.access_token_hash)


def test_invalid_token_denied(hasher):
    assert decide(make_trip(), "wrong", False, hasher) is AccessVerdict.DENIED_INVALID_TOKEN


def test_decide_with_real_hasher():
    real = TokenHasher(HasherConfig(cost=10))
    trip = make_trip(access_token_hash=real.hash("bonjour-paris"))
    assert decide(trip, "bonjour-paris", False, real) is AccessVerdict.GRANTED
    assert decide(trip, "bonjour-lyon", False, real) is AccessVerdict.DENIED_INVALID_TOKEN


def test_granted_property():
    assert AccessVerdict.GRANTED.granted
    assert not any(v.granted for v in AccessVerdict if v is not AccessVerdict.GRANTED)


def test_gate_unknown_slug_not_found(hasher):
    repo = MagicMock()
    repo.find_by_slug.return_value = None
    recorder = MagicMock()
    gate = AccessGate(repo, hasher, record_event=recorder)

    verdict, trip = gate.check("nowhere", "token")

    assert verdict is AccessVerdict.NOT_FOUND
    assert trip is None
    recorder.assert_called_once_with("nowhere", "not_found", "api")
    hasher.verify.assert_not_called()


def test_gate_records_denials_only(hasher):
    repo = MagicMock()
    repo.find_by_slug.return_value = make_trip(is_public=True)
    recorder = MagicMock()
    gate = AccessGate(repo, hasher, record_event=recorder)

    verdict, trip = gate.check("tokyo-spring", None, transport="edge")

    assert verdict is AccessVerdict.GRANTED
    assert trip.is_public
    recorder.assert_not_called()


def test_gate_passes_transport_to_recorder(hasher):
    repo = MagicMock()
    repo.find_by_slug.return_value = make_trip()
    recorder = MagicMock()
    gate = AccessGate(repo, hasher, record_event=recorder)

    verdict, _trip = gate.check("paris-2024", "wrong", transport="edge")

    assert verdict is AccessVerdict.DENIED_INVALID_TOKEN
    recorder.assert_called_once_with("paris-2024", "denied_invalid_token", "edge")


def test_gate_survives_recorder_failure(hasher, caplog):
    repo = MagicMock()
    repo.find_by_slug.return_value = make_trip()
    gate = AccessGate(repo, hasher, record_event=MagicMock(side_effect=RuntimeError("db gone")))

    with caplog.at_level(logging.WARNING, logger="tripshare.access"):
        verdict, _trip = gate.check("paris-2024", None)

    assert verdict is AccessVerdict.DENIED_NO_TOKEN
    assert "db gone" in caplog.text


def test_gate_admin_caller_granted(hasher):
    repo = MagicMock()
    repo.find_by_slug.return_value = make_trip(access_token_hash=None)
    grants = MagicMock()
    gate = AccessGate(repo, hasher, grants=grants)

    verdict, _trip = gate.check("paris-2024", None, {"id": "admin-1", "isAdmin": True})

    assert verdict is AccessVerdict.GRANTED
    grants.role_for.assert_not_called()


@pytest.mark.parametrize("role", ["viewer", "editor"])
def test_gate_grant_holder_granted_without_token(hasher, role):
    repo = MagicMock()
    repo.find_by_slug.return_value = make_trip()
    grants = MagicMock()
    grants.role_for.return_value = role
    gate = AccessGate(repo, hasher, grants=grants)

    verdict, _trip = gate.check("paris-2024", None, {"id": "user-1", "isAdmin": False})

    assert verdict is AccessVerdict.GRANTED
    grants.role_for.assert_called_once_with("user-1", TRIP_ID)
    hasher.verify.assert_not_called()


def test_gate_user_without_grant_needs_token(hasher):
    repo = MagicMock()
    repo.find_by_slug.return_value = make_trip()
    grants = MagicMock()
    grants.role_for.return_value = None
    gate = AccessGate(repo, hasher, grants=grants)

    assert gate.check("paris-2024", None, {"id": "user-1"})[0] is AccessVerdict.DENIED_NO_TOKEN
    assert gate.check("paris-2024", "wrong", {"id": "user-1"})[0] is AccessVerdict.DENIED_INVALID_TOKEN


def test_gate_skips_grant_lookup_for_public_trip(hasher):
    repo = MagicMock()
    repo.find_by_slug.return_value = make_trip(is_public=True)
    grants = MagicMock()
    gate = AccessGate(repo, hasher, grants=grants)

    assert gate.check("tokyo-spring", None, {"id": "user-1"})[0] is AccessVerdict.GRANTED
    grants.role_for.assert_not_called()
