from __future__ import annotations

from flask import Blueprint, jsonify, request

from ..middleware.rate_limit import RATE_LIMIT_LOGIN, limiter
from ..utils.responses import error_response, no_store


def create_auth_blueprint(deps: dict):
    authenticate = deps["authenticate"]
    issue_session_token = deps["issue_session_token"]
    get_current_user = deps["get_current_user"]
    log_audit_event = deps["log_audit_event"]

    bp = Blueprint("auth", __name__)

    @bp.route("/api/auth/login", methods=["POST"])
    @limiter.limit(RATE_LIMIT_LOGIN)
    def login():
        payload = request.get_json(silent=True) or {}
        email = payload.get("email")
        password = payload.get("password")
        if not isinstance(email, str) or not isinstance(password, str):
            return error_response("Unauthorized", 401)

        user = authenticate(email, password)
        if not user:
            # Same answer for unknown email and wrong password
            log_audit_event("login_failed", target=email.strip().lower()[:200])
            return error_response("Unauthorized", 401)

        log_audit_event("login", actor_id=user["id"])
        body = issue_session_token(user)
        body["user"] = user
        return no_store(jsonify(body))

    @bp.route("/api/auth/me", methods=["GET"])
    def me():
        user = get_current_user()
        if not user:
            return error_response("Unauthorized", 401)
        return no_store(jsonify({"user": user}))

    return bp
