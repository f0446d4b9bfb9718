from __future__ import annotations

import hmac
import os

from flask import Blueprint, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from ..metrics import METRICS_ENABLED, _get_metrics_registry
from ..middleware.rate_limit import limiter
from ..utils.request import _get_bearer_token
from ..utils.responses import error_response, no_store

# Optional shared secret for the scraper; unset leaves /metrics open
METRICS_TOKEN = (os.environ.get("TRIPSHARE_METRICS_TOKEN") or "").strip()

metrics_bp = Blueprint("metrics", __name__)


def _scrape_allowed() -> bool:
    if not METRICS_TOKEN:
        return True
    presented = _get_bearer_token() or ""
    return hmac.compare_digest(presented.encode("utf-8"), METRICS_TOKEN.encode("utf-8"))


@metrics_bp.route("/metrics")
@limiter.exempt
def metrics():
    if not METRICS_ENABLED:
        return error_response("Metrics disabled", 404)
    if not _scrape_allowed():
        return error_response("Unauthorized", 401)
    registry = _get_metrics_registry()
    return no_store(Response(generate_latest(registry), mimetype=CONTENT_TYPE_LATEST))
