from __future__ import annotations

import logging

from flask import Blueprint, jsonify, request

from ..metrics import PROTECTION_UPDATES
from ..middleware.rate_limit import RATE_LIMIT_ADMIN, limiter
from ..services.audit import _log_audit_event
from ..services.container import get_services
from ..utils.responses import error_response, no_store
from ..utils.validation import looks_like_uuid

logger = logging.getLogger("tripshare.protection")


def handle_protection_update(require_admin_access):
    """
    Switches a trip between public and private. Shared by the API route and
    the edge transport so both apply identical checks.

    Going private without a token keeps the hash already stored, so links
    shared earlier keep working. Only a trip with no hash yet gets a minted
    token, returned exactly once.
    """
    error_resp, user = require_admin_access()
    if error_resp:
        return error_resp

    payload = request.get_json(silent=True) or {}
    trip_id = payload.get("tripId")
    is_public = payload.get("isPublic")
    token = payload.get("token")

    if not isinstance(trip_id, str) or not looks_like_uuid(trip_id):
        return error_response("Invalid tripId", 400)
    if not isinstance(is_public, bool):
        return error_response("isPublic must be a boolean", 400)
    if token is not None and not isinstance(token, str):
        return error_response("token must be a string", 400)

    services = get_services()
    minted = None
    if is_public or token:
        token_hash = None
        if not is_public:
            token_error = services.hasher.check_token(token)
            if token_error:
                return error_response(token_error, 400)
            token_hash = services.hasher.hash(token)
        updated = services.trips.update_protection(trip_id, is_public=is_public, token_hash=token_hash)
    else:
        current = services.trips.find_by_id(trip_id)
        if current is None:
            return error_response("Trip not found", 404)
        fallback_hash = None
        if not current.access_token_hash:
            minted = services.hasher.generate_token()
            fallback_hash = services.hasher.hash(minted)
        trip = services.trips.make_private(trip_id, fallback_hash=fallback_hash)
        updated = trip is not None
        if minted and (trip is None or trip.access_token_hash != fallback_hash):
            # another writer stored a hash first
            minted = None

    if not updated:
        return error_response("Trip not found", 404)

    visibility = "public" if is_public else "private"
    if PROTECTION_UPDATES is not None:
        PROTECTION_UPDATES.labels(visibility).inc()
    logger.info(
        "Trip %s set %s",
        trip_id,
        visibility,
        extra={"trip_id": trip_id, "user_id": user.get("id")},
    )
    _log_audit_event(
        "update_trip_protection",
        actor_id=user.get("id"),
        target=trip_id.lower(),
        detail={"isPublic": is_public, "tokenMinted": minted is not None},
    )

    body = {"success": True}
    if minted:
        body["token"] = minted
    return no_store(jsonify(body))


def create_protection_blueprint(require_admin_access):
    bp = Blueprint("protection", __name__)

    @bp.route("/api/trips/protection", methods=["POST"])
    @limiter.limit(RATE_LIMIT_ADMIN)
    def update_trip_protection():
        return handle_protection_update(require_admin_access)

    return bp
