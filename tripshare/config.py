from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any


class ConfigurationError(RuntimeError):
    pass


def parse_bool(value) -> bool:
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "t", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, str(default)))
    except (TypeError, ValueError):
        return default


BCRYPT_MIN_ROUNDS = 10
BCRYPT_MAX_ROUNDS = 20


@dataclass(frozen=True)
class HasherConfig:
    """Settings for access-token hashing, read once at startup."""

    cost: int = 12
    min_cost: int = BCRYPT_MIN_ROUNDS
    max_cost: int = BCRYPT_MAX_ROUNDS
    max_concurrency: int = 4
    min_token_length: int = 8
    max_token_length: int = 72

    @classmethod
    def from_env(cls) -> "HasherConfig":
        raw_cost = os.environ.get("TRIPSHARE_BCRYPT_ROUNDS", "12")
        try:
            cost = int(raw_cost)
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"TRIPSHARE_BCRYPT_ROUNDS must be an integer, got {raw_cost!r}") from exc

        # bcrypt ignores input past 72 bytes
        max_len = min(72, max(1, _env_int("TRIPSHARE_TOKEN_MAX_LENGTH", 72)))
        min_len = min(max_len, max(1, _env_int("TRIPSHARE_TOKEN_MIN_LENGTH", 8)))
        return cls(
            cost=cost,
            max_concurrency=max(1, _env_int("TRIPSHARE_TOKEN_VERIFY_CONCURRENCY", 4)),
            min_token_length=min_len,
            max_token_length=max_len,
        )

    def validate(self) -> None:
        if not (self.min_cost <= self.cost <= self.max_cost):
            raise ConfigurationError(
                f"TRIPSHARE_BCRYPT_ROUNDS must be between {self.min_cost} and {self.max_cost}"
            )


def load_flask_config() -> dict[str, Any]:
    return {
        "RATELIMIT_STORAGE_URI": os.environ.get("TRIPSHARE_RATE_LIMIT_STORAGE_URI", "memory://"),
        "JSON_SORT_KEYS": False,
    }
