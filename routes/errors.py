"""
Map pipeline errors to HTTP responses.
"""

from flask import jsonify

from errors import (
    AdmissionError,
    AnalysisError,
    AnalysisNotFoundError,
    NoInitialResultsError,
    RateLimitExceededError,
    RepositoryError,
    RetryInProgressError,
)
from . import analysis_bp


@analysis_bp.errorhandler(RateLimitExceededError)
def rate_limited(e):
    return jsonify({"error": str(e), "rateLimit": e.budget.to_dict()}), 429


@analysis_bp.errorhandler(AdmissionError)
def admission_failed(e):
    return jsonify({"error": str(e)}), 400


@analysis_bp.errorhandler(NoInitialResultsError)
def nothing_to_synthesize(e):
    return jsonify({"error": str(e)}), 400


@analysis_bp.errorhandler(AnalysisNotFoundError)
def not_found(e):
    return jsonify({"error": "Analysis not found"}), 404


@analysis_bp.errorhandler(RetryInProgressError)
def retry_conflict(e):
    return jsonify({"error": str(e)}), 409


@analysis_bp.errorhandler(RepositoryError)
def store_unavailable(e):
    print(f"[API] Record store error: {e}")
    return jsonify({"error": "Storage unavailable"}), 503


@analysis_bp.errorhandler(AnalysisError)
def analysis_failed(e):
    print(f"[API] Unhandled pipeline error: {e}")
    return jsonify({"error": "Internal server error"}), 500
