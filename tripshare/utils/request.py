from __future__ import annotations

import os

from flask import request

from ..config import parse_bool
from .validation import _normalize_ip

# Forwarding headers are only honored behind a reverse proxy we control
TRUSTED_PROXY = parse_bool(os.environ.get("TRIPSHARE_TRUSTED_PROXY", "false"))


def _get_request_ip() -> str | None:
    candidates = []
    if TRUSTED_PROXY:
        candidates.extend(
            [
                request.headers.get("CF-Connecting-IP"),
                request.headers.get("X-Forwarded-For"),
                request.headers.get("X-Real-IP"),
            ]
        )
    candidates.append(request.remote_addr)

    for candidate in candidates:
        ip = _normalize_ip(candidate)
        if ip:
            return ip
    return None


def _get_rate_limit_key() -> str:
    try:
        ip = _get_request_ip()
    except RuntimeError:
        ip = None
    return ip or "unknown"


def _get_bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.lower().startswith("bearer "):
        return None
    return auth_header[7:].strip() or None


def _get_presented_token(payload: dict | None = None) -> str | None:
    """Reads a trip access token from the JSON body, falling back to the query string."""
    token = None
    if payload:
        raw = payload.get("token")
        token = raw if isinstance(raw, str) else None
    if token is None:
        token = request.args.get("token")
    return token or None
