from __future__ import annotations

import os

from flask_limiter import Limiter

from ..utils.request import _get_rate_limit_key

RATE_LIMIT_TRIP_ACCESS = os.environ.get("TRIPSHARE_RATE_LIMIT_TRIP_ACCESS", "60 per minute")
RATE_LIMIT_LOGIN = os.environ.get("TRIPSHARE_RATE_LIMIT_LOGIN", "10 per minute")
RATE_LIMIT_ADMIN = os.environ.get("TRIPSHARE_RATE_LIMIT_ADMIN", "120 per minute")

limiter = Limiter(key_func=_get_rate_limit_key, default_limits=[])


def init_rate_limiter(app) -> None:
    limiter.init_app(app)
