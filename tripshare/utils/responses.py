from __future__ import annotations

from flask import jsonify

UNAUTHORIZED = {"error": "Unauthorized"}


def no_store(resp):
    resp.headers["Cache-Control"] = "no-store"
    return resp


def denial_response():
    """
    The one external shape for every read-path denial. Which verdict caused
    it stays in server-side logs so callers cannot tell a missing trip from a
    wrong or missing token.
    """
    resp = jsonify(UNAUTHORIZED)
    resp.status_code = 401
    return no_store(resp)


def error_response(message: str, status: int):
    resp = jsonify({"error": message})
    resp.status_code = status
    return resp
