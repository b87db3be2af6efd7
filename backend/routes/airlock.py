"""
Airlock API Routes

Webhook, cron and review endpoints for the data airlock:
- POST /api/airlock/evaluate - Evaluate one finished scrape batch (scraper webhook)
- POST /api/airlock/sweep - Evaluate every batch the webhook missed (cron)
- GET /api/airlock/queue - List queue entries
- GET /api/airlock/queue/{id} - Queue entry with its full verdict
- POST /api/airlock/queue/{id}/approve - Promote a quarantined batch
- POST /api/airlock/queue/{id}/reject - Reject a quarantined batch
- GET /api/airlock/digest - Weekly data ops digest
- GET /api/airlock/schedule - Current crawl schedule

Authentication is applied by the host application.
"""
from flask import Blueprint, jsonify, request

from api.contracts.pydantic_models import (
    DigestParams,
    EvaluateBatchParams,
    QueueListParams,
    ResolveParams,
    ScheduleParams,
    SweepParams,
)
from api.middleware.error_envelope import make_error_response
from models.database import db
from scrapers.airlock.types import AirlockVerdict
from scrapers.crawl_scheduler import DataCategory
from services.airlock_service import AirlockService
from services.crawl_planning import plan_crawls
from services.weekly_digest import build_weekly_digest

airlock_bp = Blueprint("airlock", __name__)


def _service() -> AirlockService:
    return AirlockService(db.session)


# =============================================================================
# TRIGGER ENDPOINTS
# =============================================================================

@airlock_bp.route("/evaluate", methods=["POST"])
def evaluate_batch():
    """
    Evaluate a finished scrape batch.

    Body params:
        state_id: str - Two-letter state code
        batch_id: str - scrape_batch_id of the staging rows

    Returns:
        {queue_id, state_id, scrape_batch_id, status, promoted, already_evaluated, verdict}
        201 on first evaluation, 200 if the batch was already evaluated
    """
    params = EvaluateBatchParams.model_validate(request.get_json(silent=True) or {})
    result = _service().evaluate_batch(params.state_id, params.scrape_batch_id)
    return jsonify(result.to_dict()), 200 if result.already_evaluated else 201


@airlock_bp.route("/sweep", methods=["POST"])
def run_sweep():
    """
    Reconciliation sweep: evaluate staging batches with no queue entry.

    Body params:
        limit: Optional[int] - Max batches to evaluate
    """
    params = SweepParams.model_validate(request.get_json(silent=True) or {})
    result = _service().run_reconciliation_sweep(params.limit)
    return jsonify(result.to_dict())


# =============================================================================
# REVIEW QUEUE
# =============================================================================

@airlock_bp.route("/queue", methods=["GET"])
def list_queue():
    """
    List queue entries, newest first.

    Query params:
        status: 'auto_approved', 'quarantined', 'approved', 'rejected'
        state_id: Filter by state
        limit: Max results (default: 50)
    """
    params = QueueListParams.model_validate(request.args.to_dict())
    entries = _service().list_queue(params.status, params.state_id, params.limit)
    return jsonify({
        "count": len(entries),
        "entries": [entry.to_summary_dict() for entry in entries],
    })


@airlock_bp.route("/queue/<queue_id>", methods=["GET"])
def get_queue_entry(queue_id: str):
    """Queue entry with its full verdict and a markdown rendering for reviewers."""
    entry = _service().get_entry(queue_id)
    payload = entry.to_dict()
    payload["verdict_markdown"] = AirlockVerdict.from_dict(entry.verdict_json).to_markdown()
    payload["audit_log"] = [log.to_dict() for log in entry.audit_log]
    return jsonify(payload)


@airlock_bp.route("/queue/<queue_id>/approve", methods=["POST"])
def approve_queue_entry(queue_id: str):
    """
    Approve a quarantined batch and promote it to production.

    Body params:
        resolved_by: str - Reviewer
        notes: Optional[str]
    """
    params = ResolveParams.model_validate(request.get_json(silent=True) or {})
    entry = _service().promote_batch(queue_id, params.resolved_by, params.notes)
    return jsonify(entry.to_dict())


@airlock_bp.route("/queue/<queue_id>/reject", methods=["POST"])
def reject_queue_entry(queue_id: str):
    """
    Reject a quarantined batch. Its rows stay out of production.

    Body params:
        resolved_by: str - Reviewer
        notes: Optional[str]
    """
    params = ResolveParams.model_validate(request.get_json(silent=True) or {})
    entry = _service().reject_batch(queue_id, params.resolved_by, params.notes)
    return jsonify(entry.to_dict())


# =============================================================================
# REPORTING
# =============================================================================

@airlock_bp.route("/digest", methods=["GET"])
def weekly_digest():
    """
    Weekly data ops digest.

    Query params:
        window_days: Digest window (default: 7)
    """
    params = DigestParams.model_validate(request.args.to_dict())
    digest = build_weekly_digest(db.session, window_days=params.window_days)
    return jsonify(digest.to_dict())


@airlock_bp.route("/schedule", methods=["GET"])
def crawl_schedule():
    """
    Current crawl schedule for every reference state.

    Query params:
        categories: Comma-separated data categories
    """
    params = ScheduleParams.model_validate(request.args.to_dict())
    try:
        categories = [DataCategory(c) for c in params.categories] if params.categories else None
    except ValueError as e:
        return make_error_response("INVALID_PARAMS", str(e), 400, field="categories")
    schedule = plan_crawls(db.session, categories=categories)
    return jsonify(schedule.to_dict())
