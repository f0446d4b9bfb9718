from __future__ import annotations

import logging
import os
import secrets

from flask import g

from .services.container import get_services
from .utils.jwt import decode_access_token, issue_access_token
from .utils.request import _get_bearer_token
from .utils.responses import error_response

logger = logging.getLogger("tripshare.auth")

AUTH_ISSUER = os.environ.get("TRIPSHARE_AUTH_ISSUER", "tripshare")
AUTH_SECRET = os.environ.get("TRIPSHARE_AUTH_SECRET", "").strip()
if not AUTH_SECRET:
    AUTH_SECRET = secrets.token_urlsafe(48)
    logger.warning("TRIPSHARE_AUTH_SECRET not set; generated ephemeral secret (sessions reset on restart).")

try:
    AUTH_ACCESS_TTL_SECONDS = int(os.environ.get("TRIPSHARE_AUTH_ACCESS_TTL_SECONDS", "3600"))
except (TypeError, ValueError):
    AUTH_ACCESS_TTL_SECONDS = 3600
AUTH_ACCESS_TTL_SECONDS = max(60, AUTH_ACCESS_TTL_SECONDS)

_MISSING = object()


def issue_session_token(user: dict) -> dict:
    return issue_access_token(
        user_id=user["id"],
        email=user["email"],
        is_admin=bool(user.get("isAdmin")),
        secret=AUTH_SECRET,
        issuer=AUTH_ISSUER,
        ttl_seconds=AUTH_ACCESS_TTL_SECONDS,
    )


def get_current_user() -> dict | None:
    """
    Resolves the bearer token on the current request to a user. The result is
    cached on `g`; a missing, forged or expired token, or a token for a user
    that no longer exists, all resolve to None.
    """
    cached = getattr(g, "_current_user", _MISSING)
    if cached is not _MISSING:
        return cached

    user = None
    claims = decode_access_token(_get_bearer_token(), AUTH_SECRET, AUTH_ISSUER)
    if claims:
        user = get_services().users.get_user(str(claims["sub"]))
    g._current_user = user
    return user


def require_admin_access():
    user = get_current_user()
    if user is None:
        return error_response("Unauthorized", 401), None
    if not user.get("isAdmin"):
        logger.info("Admin access refused for %s", user.get("email"), extra={"user_id": user.get("id")})
        return error_response("Forbidden", 403), None
    return None, user
