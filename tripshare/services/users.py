from __future__ import annotations

import logging
import os
import time
import uuid

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from ..models import get_engine
from ..models.trips import UserProfile
from ..utils.validation import _sanitize_display_name, is_valid_email
from .token_hasher import TokenHasher

logger = logging.getLogger("tripshare.users")

_USERS = UserProfile.__table__

try:
    USER_PASSWORD_MIN_LEN = int(os.environ.get("TRIPSHARE_PASSWORD_MIN_LEN", "8"))
except (TypeError, ValueError):
    USER_PASSWORD_MIN_LEN = 8
USER_PASSWORD_MIN_LEN = max(8, USER_PASSWORD_MIN_LEN)


class UserExistsError(ValueError):
    pass


def _password_rules_error(password: str | None) -> str | None:
    if password is None or password == "":
        return "Missing password"
    value = str(password)
    if len(value) < USER_PASSWORD_MIN_LEN:
        return f"Password must be at least {USER_PASSWORD_MIN_LEN} characters"
    if len(value.encode("utf-8")) > 72:
        return "Password must be at most 72 bytes"
    return None


def _public_user(row) -> dict:
    return {
        "id": row["id"],
        "email": row["email"],
        "displayName": row["display_name"],
        "isAdmin": bool(row["is_admin"]),
    }


class UserService:
    def __init__(self, hasher: TokenHasher, engine=None) -> None:
        self.hasher = hasher
        self._engine = engine
        self._dummy_hash: str | None = None

    @property
    def engine(self):
        if self._engine is None:
            self._engine = get_engine()
        return self._engine

    def get_user(self, user_id: str) -> dict | None:
        with self.engine.connect() as conn:
            row = conn.execute(select(_USERS).where(_USERS.c.id == user_id)).mappings().first()
        return _public_user(row) if row else None

    def list_users(self) -> list[dict]:
        with self.engine.connect() as conn:
            rows = conn.execute(select(_USERS).order_by(_USERS.c.email.asc())).mappings().all()
        return [_public_user(row) for row in rows]

    def find_by_email(self, email: str) -> dict | None:
        with self.engine.connect() as conn:
            row = (
                conn.execute(select(_USERS).where(_USERS.c.email == email.strip().lower()))
                .mappings()
                .first()
            )
        return dict(row) if row else None

    def create_user(
        self, *, email: str, password: str, display_name: str | None = None, is_admin: bool = False
    ) -> dict:
        email = (email or "").strip().lower()
        if not is_valid_email(email):
            raise ValueError("Invalid email format")
        error = _password_rules_error(password)
        if error:
            raise ValueError(error)

        now = int(time.time())
        values = {
            "id": str(uuid.uuid4()),
            "email": email,
            "password_hash": self.hasher.hash(password),
            "display_name": _sanitize_display_name(display_name),
            "is_admin": bool(is_admin),
            "created_at": now,
            "updated_at": now,
        }
        try:
            with self.engine.begin() as conn:
                conn.execute(_USERS.insert(), values)
        except IntegrityError as exc:
            raise UserExistsError(f"User already exists: {email}") from exc
        logger.info("Created user %s (admin=%s)", email, bool(is_admin), extra={"user_id": values["id"]})
        return _public_user(values)

    def set_password(self, email: str, password: str) -> bool:
        error = _password_rules_error(password)
        if error:
            raise ValueError(error)
        with self.engine.begin() as conn:
            result = conn.execute(
                update(_USERS)
                .where(_USERS.c.email == email.strip().lower())
                .values(password_hash=self.hasher.hash(password), updated_at=int(time.time()))
            )
        return result.rowcount > 0

    def authenticate(self, email: str | None, password: str | None) -> dict | None:
        if not email or not password:
            return None
        row = self.find_by_email(email)
        if not row or not row.get("password_hash"):
            # Burn a comparison so unknown emails take as long as wrong passwords
            self.hasher.verify(password, self._get_dummy_hash())
            return None
        if not self.hasher.verify(password, row["password_hash"]):
            return None
        return _public_user(row)

    def _get_dummy_hash(self) -> str:
        if self._dummy_hash is None:
            self._dummy_hash = self.hasher.hash(self.hasher.generate_token())
        return self._dummy_hash
