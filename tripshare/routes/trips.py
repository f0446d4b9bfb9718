from __future__ import annotations

from flask import Blueprint, jsonify, request

from ..middleware.rate_limit import RATE_LIMIT_ADMIN, RATE_LIMIT_TRIP_ACCESS, limiter
from ..services.audit import _log_audit_event
from ..services.container import get_services
from ..services.trips import TripConflictError, build_trip_payload
from ..utils.request import _get_presented_token
from ..utils.responses import denial_response, error_response, no_store
from ..utils.validation import (
    is_valid_description,
    is_valid_slug,
    is_valid_title,
    is_valid_url,
    looks_like_uuid,
)

SLUG_FORMAT_ERROR = "Slug must be lowercase letters, numbers and hyphens"
SLUG_UUID_ERROR = "Slug cannot look like a UUID"

# JSON key -> column for PATCH /api/trips/<id>
PATCHABLE_FIELDS = {
    "slug": "slug",
    "title": "title",
    "description": "description",
    "coverPhotoUrl": "cover_photo_url",
}


def _metadata_error(payload: dict) -> str | None:
    """Validates whichever metadata keys are present in `payload`."""
    if "slug" in payload:
        slug = payload["slug"]
        if not isinstance(slug, str) or not is_valid_slug(slug):
            return SLUG_FORMAT_ERROR
        if looks_like_uuid(slug):
            return SLUG_UUID_ERROR
    if "title" in payload and not is_valid_title(payload["title"]):
        return "Invalid title"
    if "description" in payload and not is_valid_description(payload["description"]):
        return "Invalid description"
    if "coverPhotoUrl" in payload and not is_valid_url(payload["coverPhotoUrl"]):
        return "Invalid cover photo URL"
    return None


def create_trips_blueprint(get_current_user, require_admin_access):
    bp = Blueprint("trips", __name__)

    def _serve_trip(slug: str, token: str | None):
        services = get_services()
        verdict, trip = services.gate.check(slug, token, get_current_user(), transport="api")
        if not verdict.granted:
            return denial_response()

        photos = services.trips.list_photos(trip.id)
        return no_store(jsonify(build_trip_payload(trip, photos)))

    @bp.route("/api/trips/<slug>", methods=["GET"])
    @limiter.limit(RATE_LIMIT_TRIP_ACCESS)
    def get_trip(slug: str):
        if not is_valid_slug(slug):
            return error_response("Invalid slug", 400)
        return _serve_trip(slug, _get_presented_token())

    @bp.route("/api/trips/<slug>/unlock", methods=["POST"])
    @limiter.limit(RATE_LIMIT_TRIP_ACCESS)
    def unlock_trip(slug: str):
        if not is_valid_slug(slug):
            return error_response("Invalid slug", 400)
        payload = request.get_json(silent=True) or {}
        return _serve_trip(slug, _get_presented_token(payload))

    @bp.route("/api/trips/id/<trip_id>", methods=["GET"])
    @limiter.limit(RATE_LIMIT_ADMIN)
    def get_trip_by_id(trip_id: str):
        error_resp, _user = require_admin_access()
        if error_resp:
            return error_resp
        if not looks_like_uuid(trip_id):
            return error_response("Invalid trip ID format", 400)

        services = get_services()
        trip = services.trips.find_by_id(trip_id)
        if trip is None:
            return error_response("Trip not found", 404)
        return no_store(jsonify(build_trip_payload(trip, services.trips.list_photos(trip.id))))

    @bp.route("/api/trips", methods=["GET"])
    @limiter.limit(RATE_LIMIT_ADMIN)
    def list_trips():
        error_resp, _user = require_admin_access()
        if error_resp:
            return error_resp
        return no_store(jsonify({"trips": get_services().trips.list_trips()}))

    @bp.route("/api/trips", methods=["POST"])
    @limiter.limit(RATE_LIMIT_ADMIN)
    def create_trip():
        error_resp, user = require_admin_access()
        if error_resp:
            return error_resp

        payload = request.get_json(silent=True) or {}
        slug = payload.get("slug")
        title = payload.get("title")
        description = payload.get("description")
        is_public = payload.get("isPublic", True)
        token = payload.get("token")

        if not slug or not title:
            return error_response("slug and title are required", 400)
        metadata_error = _metadata_error(payload)
        if metadata_error:
            return error_response(metadata_error, 400)
        if not isinstance(is_public, bool):
            return error_response("isPublic must be a boolean", 400)

        services = get_services()
        token_hash = None
        minted = None
        if not is_public:
            if token is None:
                minted = services.hasher.generate_token()
                token = minted
            if not isinstance(token, str):
                return error_response("token must be a string", 400)
            token_error = services.hasher.check_token(token)
            if token_error:
                return error_response(token_error, 400)
            token_hash = services.hasher.hash(token)

        try:
            trip = services.trips.create_trip(
                slug=slug,
                title=title,
                description=description,
                cover_photo_url=payload.get("coverPhotoUrl"),
                is_public=is_public,
                access_token_hash=token_hash,
            )
        except TripConflictError:
            return error_response("A trip with this slug already exists", 409)

        _log_audit_event("create_trip", actor_id=user.get("id"), target=trip.id, detail={"slug": slug})
        body = {"trip": build_trip_payload(trip, [])}
        if minted:
            body["token"] = minted
        return no_store(jsonify(body)), 201

    @bp.route("/api/trips/<trip_id>", methods=["PATCH"])
    @limiter.limit(RATE_LIMIT_ADMIN)
    def update_trip(trip_id: str):
        error_resp, user = require_admin_access()
        if error_resp:
            return error_resp
        if not looks_like_uuid(trip_id):
            return error_response("Invalid trip ID format", 400)

        payload = request.get_json(silent=True) or {}
        if "isPublic" in payload or "token" in payload:
            return error_response("Use /api/trips/protection to change visibility", 400)
        metadata_error = _metadata_error(payload)
        if metadata_error:
            return error_response(metadata_error, 400)

        fields = {column: payload[key] for key, column in PATCHABLE_FIELDS.items() if key in payload}
        if not fields:
            return error_response("No fields to update", 400)

        services = get_services()
        try:
            trip = services.trips.update_trip(trip_id, **fields)
        except TripConflictError:
            return error_response("A trip with this slug already exists", 409)
        if trip is None:
            return error_response("Trip not found", 404)

        _log_audit_event("update_trip", actor_id=user.get("id"), target=trip.id, detail={"fields": sorted(fields)})
        return no_store(jsonify({"trip": build_trip_payload(trip, services.trips.list_photos(trip.id))}))

    return bp
