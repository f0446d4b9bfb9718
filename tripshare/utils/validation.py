from __future__ import annotations

import ipaddress
import re

SLUG_RE = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
UUID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE
)
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
URL_RE = re.compile(r"^https?://[^\s/]+\S*$", re.IGNORECASE)

MAX_SLUG_LENGTH = 100
MAX_TITLE_LENGTH = 200
MAX_DESCRIPTION_LENGTH = 2000
MAX_DISPLAY_NAME_LENGTH = 100
MAX_URL_LENGTH = 2048
TRIP_ROLES = ("editor", "viewer")


def is_valid_slug(slug: str | None) -> bool:
    if not slug or len(slug) > MAX_SLUG_LENGTH:
        return False
    return bool(SLUG_RE.fullmatch(slug))


def looks_like_uuid(value: str | None) -> bool:
    if not value:
        return False
    return bool(UUID_RE.fullmatch(value))


def is_valid_email(value: str | None) -> bool:
    if not value:
        return False
    return bool(EMAIL_RE.fullmatch(value))


def is_valid_title(title) -> bool:
    if not isinstance(title, str):
        return False
    return bool(title.strip()) and len(title) <= MAX_TITLE_LENGTH


def is_valid_description(description) -> bool:
    if description is None or description == "":
        return True
    return isinstance(description, str) and len(description) <= MAX_DESCRIPTION_LENGTH


def is_valid_role(role) -> bool:
    return isinstance(role, str) and role in TRIP_ROLES


def is_valid_url(url) -> bool:
    if url is None or url == "":
        return True
    if not isinstance(url, str) or len(url) > MAX_URL_LENGTH:
        return False
    # Relative paths are allowed for self-hosted photos
    if url.startswith("/"):
        return not url.startswith("//")
    return bool(URL_RE.match(url))


def _sanitize_display_name(value: str | None) -> str | None:
    if not value:
        return None
    trimmed = str(value).strip()[:MAX_DISPLAY_NAME_LENGTH]
    return trimmed or None


def _normalize_ip(value: str | None) -> str | None:
    if not value:
        return None

    value = (value.split(",")[0] if "," in value else value).strip()

    if value.startswith("[") and "]" in value:
        value = value[1 : value.index("]")]
    elif re.fullmatch(r"\d+\.\d+\.\d+\.\d+:\d+", value):
        value = value.split(":")[0]

    try:
        return str(ipaddress.ip_address(value))
    except ValueError:
        return None
