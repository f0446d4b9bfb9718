from __future__ import annotations

from flask import Blueprint, jsonify, request

from ..middleware.rate_limit import RATE_LIMIT_ADMIN, limiter
from ..services.audit import _log_audit_event
from ..services.container import get_services
from ..services.trip_access import GrantConflictError
from ..utils.responses import error_response, no_store
from ..utils.validation import is_valid_role, looks_like_uuid

ROLE_ERROR = "Role must be either 'editor' or 'viewer'"


def create_trip_access_blueprint(require_admin_access):
    """Admin management of per-user trip grants. Admins never need a grant."""
    bp = Blueprint("trip_access", __name__)

    @bp.route("/api/trip-access", methods=["POST"])
    @limiter.limit(RATE_LIMIT_ADMIN)
    def grant_access():
        error_resp, admin = require_admin_access()
        if error_resp:
            return error_resp

        payload = request.get_json(silent=True) or {}
        user_id = payload.get("userId")
        trip_id = payload.get("tripId")
        role = payload.get("role")

        if not user_id or not trip_id or not role:
            return error_response("userId, tripId, and role are required", 400)
        if not isinstance(user_id, str) or not looks_like_uuid(user_id):
            return error_response("Invalid user ID format", 400)
        if not isinstance(trip_id, str) or not looks_like_uuid(trip_id):
            return error_response("Invalid trip ID format", 400)
        if not is_valid_role(role):
            return error_response(ROLE_ERROR, 400)

        services = get_services()
        user = services.users.get_user(user_id.lower())
        if user is None:
            return error_response("User not found", 404)
        if user["isAdmin"]:
            return error_response("Cannot grant trip access to admin users; they can already see every trip", 400)
        if services.trips.find_by_id(trip_id) is None:
            return error_response("Trip not found", 404)

        try:
            grant = services.access.grant(user_id=user_id, trip_id=trip_id, role=role, granted_by=admin.get("id"))
        except GrantConflictError:
            return error_response("User already has access to this trip. Use PATCH to update their role.", 409)

        _log_audit_event(
            "grant_trip_access",
            actor_id=admin.get("id"),
            target=grant["tripId"],
            detail={"userId": grant["userId"], "role": role},
        )
        return jsonify({"tripAccess": grant}), 201

    @bp.route("/api/trips/<trip_id>/access", methods=["GET"])
    @limiter.limit(RATE_LIMIT_ADMIN)
    def list_trip_access(trip_id: str):
        error_resp, _admin = require_admin_access()
        if error_resp:
            return error_resp
        if not looks_like_uuid(trip_id):
            return error_response("Invalid trip ID format", 400)

        services = get_services()
        trip = services.trips.find_by_id(trip_id)
        if trip is None:
            return error_response("Trip not found", 404)
        return no_store(jsonify({"users": services.access.list_for_trip(trip.id)}))

    @bp.route("/api/trip-access/<grant_id>", methods=["PATCH"])
    @limiter.limit(RATE_LIMIT_ADMIN)
    def update_access(grant_id: str):
        error_resp, admin = require_admin_access()
        if error_resp:
            return error_resp

        payload = request.get_json(silent=True) or {}
        role = payload.get("role")
        if not role:
            return error_response("role is required", 400)
        if not looks_like_uuid(grant_id):
            return error_response("Invalid trip access ID format", 400)
        if not is_valid_role(role):
            return error_response(ROLE_ERROR, 400)

        grant = get_services().access.update_role(grant_id, role)
        if grant is None:
            return error_response("Trip access record not found", 404)

        _log_audit_event("update_trip_access", actor_id=admin.get("id"), target=grant["id"], detail={"role": role})
        return jsonify({"tripAccess": grant})

    @bp.route("/api/trip-access/<grant_id>", methods=["DELETE"])
    @limiter.limit(RATE_LIMIT_ADMIN)
    def revoke_access(grant_id: str):
        error_resp, admin = require_admin_access()
        if error_resp:
            return error_resp
        if not looks_like_uuid(grant_id):
            return error_response("Invalid trip access ID format", 400)

        if not get_services().access.revoke(grant_id):
            return error_response("Trip access record not found", 404)

        _log_audit_event("revoke_trip_access", actor_id=admin.get("id"), target=grant_id.lower())
        return jsonify({"success": True, "message": "Trip access revoked"})

    @bp.route("/api/users", methods=["GET"])
    @limiter.limit(RATE_LIMIT_ADMIN)
    def list_users():
        error_resp, _admin = require_admin_access()
        if error_resp:
            return error_resp
        return no_store(jsonify({"users": get_services().users.list_users()}))

    return bp
