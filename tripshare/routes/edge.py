from __future__ import annotations

from flask import Blueprint, jsonify, make_response, request

from ..middleware.rate_limit import RATE_LIMIT_ADMIN, RATE_LIMIT_TRIP_ACCESS, limiter
from ..services.container import get_services
from ..services.trips import build_trip_payload
from ..utils.responses import denial_response, error_response, no_store
from .protection import handle_protection_update

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
}


def create_edge_blueprint(get_current_user, require_admin_access):
    """Serverless-style endpoints kept for older clients; both sit on the same gate as /api."""
    bp = Blueprint("edge", __name__, url_prefix="/functions/v1")

    @bp.after_request
    def _add_cors_headers(response):
        for key, value in CORS_HEADERS.items():
            response.headers[key] = value
        return response

    @bp.route("/get-trip", methods=["GET", "OPTIONS"])
    @limiter.limit(RATE_LIMIT_TRIP_ACCESS)
    def get_trip():
        if request.method == "OPTIONS":
            return make_response("ok")

        slug = request.args.get("slug")
        if not slug:
            return error_response("Missing slug parameter", 400)

        services = get_services()
        verdict, trip = services.gate.check(
            slug,
            request.args.get("token"),
            get_current_user(),
            transport="edge",
        )
        if not verdict.granted:
            return denial_response()

        photos = services.trips.list_photos(trip.id)
        return no_store(jsonify(build_trip_payload(trip, photos)))

    @bp.route("/update-trip-protection", methods=["POST", "OPTIONS"])
    @limiter.limit(RATE_LIMIT_ADMIN)
    def update_trip_protection():
        if request.method == "OPTIONS":
            return make_response("ok")
        return handle_protection_update(require_admin_access)

    return bp
