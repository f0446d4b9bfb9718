from __future__ import annotations

import base64
import hashlib
import hmac
import json
import secrets
import time

ACCESS_TOKEN_TYPE = "tripshare_access"


def _b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _b64url_decode(data: str) -> bytes:
    padded = data + ("=" * (-len(data) % 4))
    return base64.urlsafe_b64decode(padded.encode("ascii"))


def _sign(signing_input: bytes, secret: str) -> bytes:
    return hmac.new(secret.encode("utf-8"), signing_input, hashlib.sha256).digest()


def encode_jwt(payload: dict, secret: str) -> str:
    header = {"alg": "HS256", "typ": "JWT"}
    header_b64 = _b64url_encode(json.dumps(header, separators=(",", ":")).encode("utf-8"))
    payload_b64 = _b64url_encode(json.dumps(payload, separators=(",", ":")).encode("utf-8"))
    signing_input = f"{header_b64}.{payload_b64}".encode("ascii")
    return f"{header_b64}.{payload_b64}.{_b64url_encode(_sign(signing_input, secret))}"


def decode_jwt(token: str | None, secret: str, verify_exp: bool = True) -> dict | None:
    if not token:
        return None
    parts = token.split(".")
    if len(parts) != 3:
        return None
    try:
        header = json.loads(_b64url_decode(parts[0]).decode("utf-8"))
        signature = _b64url_decode(parts[2])
    except (ValueError, UnicodeDecodeError):
        return None
    # Only the algorithm we sign with is accepted
    if not isinstance(header, dict) or header.get("alg") != "HS256":
        return None
    signing_input = f"{parts[0]}.{parts[1]}".encode("ascii")
    if not hmac.compare_digest(signature, _sign(signing_input, secret)):
        return None
    try:
        payload = json.loads(_b64url_decode(parts[1]).decode("utf-8"))
    except (ValueError, UnicodeDecodeError):
        return None
    if not isinstance(payload, dict):
        return None
    if verify_exp:
        exp = payload.get("exp")
        if exp is not None:
            try:
                if int(exp) < int(time.time()):
                    return None
            except (TypeError, ValueError):
                return None
    return payload


def issue_access_token(
    *, user_id: str, email: str, is_admin: bool, secret: str, issuer: str, ttl_seconds: int
) -> dict:
    now = int(time.time())
    payload = {
        "iss": issuer,
        "sub": user_id,
        "email": email,
        "isAdmin": bool(is_admin),
        "iat": now,
        "exp": now + ttl_seconds,
        "jti": secrets.token_urlsafe(16),
        "typ": ACCESS_TOKEN_TYPE,
    }
    return {
        "access_token": encode_jwt(payload, secret),
        "token_type": "Bearer",
        "expires_in": ttl_seconds,
        "expires_at": payload["exp"],
    }


def decode_access_token(token: str | None, secret: str, issuer: str) -> dict | None:
    claims = decode_jwt(token, secret, verify_exp=True)
    if not claims:
        return None
    if claims.get("typ") != ACCESS_TOKEN_TYPE or claims.get("iss") != issuer:
        return None
    if not claims.get("sub"):
        return None
    return claims
