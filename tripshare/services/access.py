from __future__ import annotations

import enum
import logging

from ..metrics import ACCESS_VERDICTS
from .token_hasher import TokenHasher
from .trips import TripRecord, TripRepository

logger = logging.getLogger("tripshare.access")


class AccessVerdict(str, enum.Enum):
    GRANTED = "granted"
    NOT_FOUND = "not_found"
    DENIED_NO_TOKEN = "denied_no_token"
    DENIED_INVALID_TOKEN = "denied_invalid_token"
    DENIED_MISCONFIGURED = "denied_misconfigured"

    @property
    def granted(self) -> bool:
        return self is AccessVerdict.GRANTED


def decide(
    trip: TripRecord,
    presented_token: str | None,
    caller_authorized: bool,
    hasher: TokenHasher,
) -> AccessVerdict:
    """
    Decides whether a caller may see `trip`. Checks run in order and the
    first match wins; authorized callers (admins, or users holding a grant on
    this trip) and public trips return before any token material is looked
    at, so those paths never touch bcrypt.
    """
    if caller_authorized:
        return AccessVerdict.GRANTED
    if trip.is_public:
        return AccessVerdict.GRANTED
    if not presented_token:
        return AccessVerdict.DENIED_NO_TOKEN
    if not trip.access_token_hash:
        logger.error(
            "Private trip %s has no access_token_hash",
            trip.slug,
            extra={"trip_slug": trip.slug, "trip_id": trip.id, "verdict": "denied_misconfigured"},
        )
        return AccessVerdict.DENIED_MISCONFIGURED
    if hasher.verify(presented_token, trip.access_token_hash):
        return AccessVerdict.GRANTED
    return AccessVerdict.DENIED_INVALID_TOKEN


class AccessGate:
    def __init__(self, repository: TripRepository, hasher: TokenHasher, record_event=None, grants=None) -> None:
        self.repository = repository
        self.hasher = hasher
        self.grants = grants
        self._record_event = record_event

    def check(
        self,
        slug: str | None,
        presented_token: str | None,
        caller: dict | None = None,
        *,
        transport: str = "api",
    ) -> tuple[AccessVerdict, TripRecord | None]:
        trip = self.repository.find_by_slug(slug)
        if trip is None:
            verdict = AccessVerdict.NOT_FOUND
        else:
            verdict = decide(trip, presented_token, self._caller_authorized(caller, trip), self.hasher)

        self._observe(slug, verdict, transport)
        return verdict, trip

    def _caller_authorized(self, caller: dict | None, trip: TripRecord) -> bool:
        if not caller:
            return False
        if caller.get("isAdmin"):
            return True
        # Public trips are granted anyway; skip the grant lookup
        if trip.is_public or self.grants is None:
            return False
        return self.grants.role_for(caller.get("id"), trip.id) is not None

    def _observe(self, slug: str | None, verdict: AccessVerdict, transport: str) -> None:
        if ACCESS_VERDICTS is not None:
            ACCESS_VERDICTS.labels(verdict.value, transport).inc()
        if verdict.granted:
            return

        logger.info(
            "Trip access denied for %s: %s",
            slug,
            verdict.value,
            extra={"trip_slug": slug, "verdict": verdict.value},
        )
        if self._record_event is not None:
            try:
                self._record_event(slug, verdict.value, transport)
            except Exception as exc:
                logger.warning("Access event logging failed: %s", exc)
