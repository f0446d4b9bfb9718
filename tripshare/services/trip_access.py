from __future__ import annotations

import logging
import time
import uuid

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError

from ..models import get_engine
from ..models.trips import TripAccess, UserProfile
from ..utils.validation import is_valid_role, looks_like_uuid
from .trips import _iso

logger = logging.getLogger("tripshare.trip_access")

_GRANTS = TripAccess.__table__
_USERS = UserProfile.__table__


class GrantConflictError(ValueError):
    pass


def _grant_payload(row) -> dict:
    return {
        "id": row["id"],
        "userId": row["user_id"],
        "tripId": row["trip_id"],
        "role": row["role"],
        "grantedAt": _iso(row["granted_at"]),
        "grantedByUserId": row["granted_by_user_id"],
    }


class TripAccessRepository:
    """Per-user trip grants. Ids are lowercased UUIDs; malformed ids match nothing."""

    def __init__(self, engine=None) -> None:
        self._engine = engine

    @property
    def engine(self):
        if self._engine is None:
            self._engine = get_engine()
        return self._engine

    def role_for(self, user_id: str | None, trip_id: str | None) -> str | None:
        if not user_id or not trip_id:
            return None
        query = select(_GRANTS.c.role).where(_GRANTS.c.user_id == user_id, _GRANTS.c.trip_id == trip_id)
        with self.engine.connect() as conn:
            return conn.execute(query).scalar()

    def grant(self, *, user_id: str, trip_id: str, role: str, granted_by: str | None = None) -> dict:
        if not is_valid_role(role):
            raise ValueError(f"Unknown role: {role}")
        values = {
            "id": str(uuid.uuid4()),
            "user_id": user_id.lower(),
            "trip_id": trip_id.lower(),
            "role": role,
            "granted_at": int(time.time()),
            "granted_by_user_id": granted_by,
        }
        try:
            with self.engine.begin() as conn:
                conn.execute(_GRANTS.insert(), values)
        except IntegrityError as exc:
            raise GrantConflictError("User already has access to this trip") from exc
        logger.info(
            "Granted %s on trip %s",
            role,
            values["trip_id"],
            extra={"trip_id": values["trip_id"], "user_id": values["user_id"]},
        )
        return _grant_payload(values)

    def update_role(self, grant_id: str, role: str) -> dict | None:
        if not looks_like_uuid(grant_id) or not is_valid_role(role):
            return None
        grant_id = grant_id.lower()
        with self.engine.begin() as conn:
            result = conn.execute(update(_GRANTS).where(_GRANTS.c.id == grant_id).values(role=role))
            if result.rowcount == 0:
                return None
            row = conn.execute(select(_GRANTS).where(_GRANTS.c.id == grant_id)).mappings().first()
        return _grant_payload(row) if row else None

    def revoke(self, grant_id: str) -> bool:
        if not looks_like_uuid(grant_id):
            return False
        with self.engine.begin() as conn:
            result = conn.execute(delete(_GRANTS).where(_GRANTS.c.id == grant_id.lower()))
        if result.rowcount:
            logger.info("Revoked trip access %s", grant_id.lower())
        return result.rowcount > 0

    def list_for_trip(self, trip_id: str) -> list[dict]:
        query = (
            select(_GRANTS, _USERS.c.email, _USERS.c.display_name)
            .select_from(_GRANTS.join(_USERS, _USERS.c.id == _GRANTS.c.user_id))
            .where(_GRANTS.c.trip_id == trip_id)
            .order_by(_GRANTS.c.granted_at.desc(), _USERS.c.email.asc())
        )
        with self.engine.connect() as conn:
            rows = conn.execute(query).mappings().all()

        users = []
        for row in rows:
            entry = _grant_payload(row)
            entry.pop("tripId")
            entry["email"] = row["email"]
            entry["displayName"] = row["display_name"]
            users.append(entry)
        return users
