"""
Shared helpers for route handlers.
"""

from flask import current_app, jsonify, request

from pipeline import AnalysisService

USER_HEADER = "X-User-Id"


def get_service() -> AnalysisService:
    """The service the app was built with."""
    return current_app.extensions["analysis_service"]


def current_user_id():
    """Caller identity, set by the auth layer in front of this app."""
    user_id = (request.headers.get(USER_HEADER) or "").strip()
    return user_id or None


def unauthorized():
    return jsonify({"error": "Unauthorized"}), 401


def json_body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}
