import os

from flask import Blueprint, jsonify
from sqlalchemy import text

from ..middleware.rate_limit import limiter
from ..models import get_engine

health_bp = Blueprint("health", __name__)

VERSION = os.environ.get("TRIPSHARE_VERSION", "0.1.0-dev")


def _ping_database() -> str:
    try:
        with get_engine().connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception as exc:
        return f"error: {exc.__class__.__name__}"
    return "ok"


@health_bp.route("/health")
@limiter.exempt
def health_check():
    return jsonify({"status": "healthy"})


@health_bp.route("/health/ready")
@limiter.exempt
def readiness_check():
    database = _ping_database()
    status = {"status": "ready", "services": {"database": database}}
    if database != "ok":
        status["status"] = "unavailable"
        return jsonify(status), 503
    return jsonify(status)


@health_bp.route("/version")
def version():
    return jsonify(
        {
            "version": VERSION,
            "release": os.environ.get("TRIPSHARE_RELEASE", "none"),
            "environment": os.environ.get("TRIPSHARE_ENV", "production"),
        }
    )
