#!/usr/bin/env python3
"""
Trip sharing API server

Provides:
- Trip access (public, admin session, per-user grant, or shared access token):
  - GET /api/trips/<slug>?token=...: trip with photos
  - POST /api/trips/<slug>/unlock: same, token in the JSON body
  - GET /functions/v1/get-trip?slug=&token=: edge transport for older clients
- Admin (requires bearer session from /api/auth/login):
  - GET /api/trips: all trips with photo counts
  - GET /api/trips/id/<id>: one trip by id, any visibility
  - POST /api/trips: create a trip
  - PATCH /api/trips/<id>: edit slug, title, description, cover photo
  - POST /api/trips/protection: make a trip public or private
  - POST /functions/v1/update-trip-protection: edge transport for the above
  - GET /api/users, GET /api/trips/<id>/access: users and their grants
  - POST /api/trip-access, PATCH|DELETE /api/trip-access/<id>: manage grants
- Auth:
  - POST /api/auth/login
  - GET /api/auth/me
- Ops: /health, /health/ready, /version, /metrics
"""

from __future__ import annotations

import logging
import os
import time

import sentry_sdk
from flask import Flask, g, has_request_context, jsonify, request
from sentry_sdk.integrations.flask import FlaskIntegration
from werkzeug.exceptions import HTTPException

from .auth import get_current_user, issue_session_token, require_admin_access
from .config import load_flask_config
from .logging_config import REQUEST_ID_HEADER, configure_logging, generate_request_id
from .metrics import (
    METRICS_ENABLED,
    REQUEST_COUNT,
    REQUEST_ERRORS,
    REQUEST_IN_FLIGHT,
    REQUEST_LATENCY,
)
from .middleware.rate_limit import init_rate_limiter
from .models import get_engine, init_db
from .routes.auth import create_auth_blueprint
from .routes.edge import create_edge_blueprint
from .routes.health import health_bp
from .routes.metrics import metrics_bp
from .routes.protection import create_protection_blueprint
from .routes.trip_access import create_trip_access_blueprint
from .routes.trips import create_trips_blueprint
from .services.audit import _log_audit_event
from .services.container import get_services, init_services
from .tracing import configure_tracing
from .utils.config_validation import validate_config

logger = logging.getLogger("tripshare.server")

hasher_config = validate_config()

app = Flask(__name__)
for key, value in load_flask_config().items():
    app.config.setdefault(key, value)

configure_logging(app)
configure_tracing(app, get_engine())
init_db()
init_services(app, hasher_config=hasher_config)


SENTRY_DSN = (os.environ.get("TRIPSHARE_SENTRY_DSN") or "").strip()
SENTRY_ENV = (
    os.environ.get("TRIPSHARE_SENTRY_ENV") or os.environ.get("SENTRY_ENVIRONMENT") or "production"
).strip()
SENTRY_RELEASE = (os.environ.get("TRIPSHARE_RELEASE") or "").strip() or None
try:
    SENTRY_TRACES_SAMPLE_RATE = float(os.environ.get("TRIPSHARE_SENTRY_TRACES_SAMPLE_RATE", "0"))
except (TypeError, ValueError):
    SENTRY_TRACES_SAMPLE_RATE = 0.0

if SENTRY_DSN:

    def _sentry_before_send(event, _hint):
        if has_request_context():
            request_id = getattr(g, "request_id", None)
            if request_id:
                event.setdefault("tags", {})["request_id"] = request_id
        return event

    sentry_sdk.init(
        dsn=SENTRY_DSN,
        environment=SENTRY_ENV,
        release=SENTRY_RELEASE,
        integrations=[FlaskIntegration()],
        traces_sample_rate=max(0.0, SENTRY_TRACES_SAMPLE_RATE),
        send_default_pii=False,
        before_send=_sentry_before_send,
    )


init_rate_limiter(app)


def _record_request_metrics(response) -> None:
    if not METRICS_ENABLED or REQUEST_COUNT is None:
        return
    if getattr(g, "_metrics_done", False):
        return
    g._metrics_done = True
    if getattr(g, "_metrics_inflight", False):
        if REQUEST_IN_FLIGHT is not None:
            REQUEST_IN_FLIGHT.dec()
        g._metrics_inflight = False

    endpoint = request.endpoint or "unknown"
    method = request.method
    status = str(response.status_code)
    REQUEST_COUNT.labels(method, endpoint, status).inc()
    if REQUEST_LATENCY is not None and hasattr(g, "_request_started_at"):
        REQUEST_LATENCY.labels(method, endpoint).observe(time.perf_counter() - g._request_started_at)
    if REQUEST_ERRORS is not None and response.status_code >= 400:
        REQUEST_ERRORS.labels(method, endpoint, status).inc()


@app.before_request
def _init_request_context():
    g.request_id = generate_request_id(request.headers.get(REQUEST_ID_HEADER))
    g._request_started_at = time.perf_counter()
    if METRICS_ENABLED and REQUEST_IN_FLIGHT is not None:
        REQUEST_IN_FLIGHT.inc()
        g._metrics_inflight = True


@app.after_request
def _finalize_request(response):
    if hasattr(g, "request_id"):
        response.headers[REQUEST_ID_HEADER] = g.request_id
    _record_request_metrics(response)
    return response


@app.teardown_request
def _teardown_request(_exc):
    if METRICS_ENABLED and getattr(g, "_metrics_inflight", False) and REQUEST_IN_FLIGHT is not None:
        REQUEST_IN_FLIGHT.dec()
        g._metrics_inflight = False


@app.errorhandler(HTTPException)
def _handle_http_exception(exc: HTTPException):
    resp = jsonify({"error": exc.description or exc.name})
    resp.status_code = exc.code or 500
    return resp


@app.errorhandler(Exception)
def _handle_unexpected_exception(exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.path)
    resp = jsonify({"error": "Internal server error"})
    resp.status_code = 500
    return resp


def _authenticate(email: str, password: str) -> dict | None:
    return get_services().users.authenticate(email, password)


app.register_blueprint(health_bp)
app.register_blueprint(metrics_bp)
app.register_blueprint(
    create_auth_blueprint(
        {
            "authenticate": _authenticate,
            "issue_session_token": issue_session_token,
            "get_current_user": get_current_user,
            "log_audit_event": _log_audit_event,
        }
    )
)
app.register_blueprint(create_protection_blueprint(require_admin_access))
app.register_blueprint(create_trips_blueprint(get_current_user, require_admin_access))
app.register_blueprint(create_trip_access_blueprint(require_admin_access))
app.register_blueprint(create_edge_blueprint(get_current_user, require_admin_access))


if __name__ == "__main__":
    app.run(host="0.0.0.0", port=int(os.environ.get("TRIPSHARE_PORT", "3000")), debug=True)
