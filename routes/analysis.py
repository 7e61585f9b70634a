"""
Analysis API routes.

Submit runs the whole pipeline before returning; clients poll the status
route for progress while it runs.
"""

from flask import jsonify, request
from pydantic import ValidationError

from models import AnalysisSubmission, RetryPlan
from . import analysis_bp
from .helpers import current_user_id, get_service, json_body, unauthorized


def _invalid(e: ValidationError):
    details = [
        {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
        for err in e.errors()
    ]
    return jsonify({"error": "Invalid request", "details": details}), 400


@analysis_bp.route("/api/analyze", methods=["POST"])
def analyze():
    """Submit an analysis and run it to a terminal state."""
    user_id = current_user_id()
    if not user_id:
        return unauthorized()

    try:
        submission = AnalysisSubmission.model_validate(json_body())
    except ValidationError as e:
        return _invalid(e)

    service = get_service()
    analysis = service.submit(user_id, submission)
    progress = service.status(analysis.id, user_id)

    return jsonify({
        "success": analysis.status.value != "failed",
        "analysisId": analysis.id,
        "excludedProviders": analysis.excluded_providers,
        "errors": [d.model_dump(mode="json") for d in analysis.error_details],
        **progress.to_dict(),
    })


@analysis_bp.route("/api/analysis-status/<analysis_id>")
def analysis_status(analysis_id):
    """Read-only progress for polling."""
    user_id = current_user_id()
    if not user_id:
        return unauthorized()

    progress = get_service().status(analysis_id, user_id)
    return jsonify(progress.to_dict())


@analysis_bp.route("/api/analysis/<analysis_id>")
def analysis_results(analysis_id):
    """Full record with every response row."""
    user_id = current_user_id()
    if not user_id:
        return unauthorized()

    return jsonify(get_service().results(analysis_id, user_id))


@analysis_bp.route("/api/retry", methods=["POST"])
def retry():
    """Retry failed providers (optionally substituted) or just the synthesis."""
    user_id = current_user_id()
    if not user_id:
        return unauthorized()

    data = json_body()
    try:
        plan = RetryPlan.model_validate(data)
    except ValidationError as e:
        return _invalid(e)

    api_keys = data.get("apiKeys") if isinstance(data.get("apiKeys"), dict) else None
    outcome = get_service().retry(user_id, plan, api_keys)

    return jsonify({
        "success": True,
        "analysisId": outcome.analysis_id,
        "retriedProviders": outcome.retried_providers,
        "failedProviders": outcome.failed_providers,
        "synthesisRetried": outcome.synthesis_retried,
        "synthesisProvider": outcome.synthesis_provider,
        "status": outcome.status.value,
        "finalScore": outcome.final_score,
        "message": outcome.message,
    })


@analysis_bp.route("/api/rate-limit")
def rate_limit():
    """Current daily token budget, optionally for a planned run (?providers=a,b)."""
    user_id = current_user_id()
    if not user_id:
        return unauthorized()

    providers = [p.strip() for p in request.args.get("providers", "").split(",") if p.strip()]
    return jsonify(get_service().budget(user_id, providers=providers or None).to_dict())
