from __future__ import annotations

import logging
import os

from ..config import HasherConfig

logger = logging.getLogger("tripshare.config")

REQUIRED_VARS = [
    "TRIPSHARE_AUTH_SECRET",
]


def validate_config() -> HasherConfig:
    """
    Checks the environment once at startup. Missing variables are logged;
    an out-of-range bcrypt cost raises ConfigurationError.
    """
    missing = [var for var in REQUIRED_VARS if not os.environ.get(var)]
    if missing:
        logger.error("Missing required environment variables: %s", ", ".join(missing))

    auth_secret = os.environ.get("TRIPSHARE_AUTH_SECRET")
    if auth_secret and len(auth_secret) < 32:
        logger.warning("TRIPSHARE_AUTH_SECRET is too short. Use at least 32 characters for security.")

    hasher_config = HasherConfig.from_env()
    hasher_config.validate()
    return hasher_config
