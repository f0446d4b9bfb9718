from __future__ import annotations

import logging
import secrets
import threading
import time

import bcrypt

from ..config import HasherConfig
from ..metrics import TOKEN_VERIFY_LATENCY

logger = logging.getLogger("tripshare.tokens")


class TokenHasher:
    """
    Salted one-way hashing of trip access tokens.

    The bcrypt cost is validated when the hasher is built, so a bad
    TRIPSHARE_BCRYPT_ROUNDS value stops the app at startup rather than
    failing individual requests. Verification never raises: any malformed
    input is reported as a plain mismatch.
    """

    def __init__(self, config: HasherConfig | None = None) -> None:
        self.config = config or HasherConfig()
        self.config.validate()
        self._verify_sema = threading.BoundedSemaphore(self.config.max_concurrency)

    def check_token(self, secret: str | None) -> str | None:
        """Returns an error message if `secret` is not acceptable as a new token."""
        if not secret:
            return "Token is required"
        length = len(secret.encode("utf-8"))
        if length < self.config.min_token_length:
            return f"Token must be at least {self.config.min_token_length} characters"
        if length > self.config.max_token_length:
            return f"Token must be at most {self.config.max_token_length} bytes"
        return None

    def hash(self, secret: str) -> str:
        if not secret:
            raise ValueError("Cannot hash an empty token")
        if len(secret.encode("utf-8")) > self.config.max_token_length:
            raise ValueError(f"Token must be at most {self.config.max_token_length} bytes")
        salt = bcrypt.gensalt(rounds=self.config.cost)
        return bcrypt.hashpw(secret.encode("utf-8"), salt).decode("ascii")

    def verify(self, secret: str | None, stored_hash: str | None) -> bool:
        if not secret or not stored_hash:
            return False
        try:
            secret_bytes = secret.encode("utf-8")
            hash_bytes = stored_hash.encode("ascii")
        except (AttributeError, UnicodeError):
            return False

        started = time.perf_counter()
        with self._verify_sema:
            try:
                return bcrypt.checkpw(secret_bytes, hash_bytes)
            except (ValueError, TypeError) as exc:
                logger.warning("Stored token hash is malformed: %s", exc)
                return False
            finally:
                if TOKEN_VERIFY_LATENCY is not None:
                    TOKEN_VERIFY_LATENCY.observe(time.perf_counter() - started)

    def generate_token(self) -> str:
        # 16 random bytes -> 22 url-safe characters, well inside bcrypt's 72 byte limit
        return secrets.token_urlsafe(16)
