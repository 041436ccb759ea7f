from flask import Blueprint, request, jsonify, g

from models.report import Report, REPORT_ENTITY_TYPES, REPORT_REASONS
from security.rate_limit import rate_limited
from services import community as community_service
from utils.auth_context import current_context, login_required

reports_bp = Blueprint("reports", __name__, url_prefix="/reports")

MAX_DESCRIPTION = 2000


def report_to_dict(r: Report) -> dict:
    return {
        "id": r.id,
        "reporter_id": r.reporter_id,
        "entity_type": r.entity_type,
        "reported_user_id": r.reported_user_id,
        "session_id": r.session_id,
        "reason": r.reason,
        "description": r.description,
        "status": r.status,
        "reviewed_by": r.reviewed_by,
        "reviewed_at": r.reviewed_at.isoformat() if r.reviewed_at else None,
        "created_at": r.created_at.isoformat(),
    }


@reports_bp.post("")
@rate_limited("report")
@login_required
def create_report():
    data = request.get_json(silent=True) or {}
    entity_type = data.get("entity_type")
    reason = data.get("reason")
    description = data.get("description")
    reported_user_id = data.get("reported_user_id")
    session_id = data.get("session_id")

    if entity_type not in REPORT_ENTITY_TYPES:
        return jsonify(error="Invalid entity type. Must be USER or SESSION"), 400
    if reason not in REPORT_REASONS:
        return jsonify(error="Invalid report reason"), 400
    if description is not None and (not isinstance(description, str) or len(description) > MAX_DESCRIPTION):
        return jsonify(error="Description too long"), 400

    if entity_type == "USER" and not (isinstance(reported_user_id, str) and reported_user_id.strip()):
        return jsonify(error="You must provide reported_user_id for USER reports"), 400
    if entity_type == "SESSION" and (isinstance(session_id, bool) or not isinstance(session_id, int)):
        return jsonify(error="You must provide session_id for SESSION reports"), 400

    report = community_service.create_report(
        current_context(),
        entity_type,
        reason,
        reported_user_id=reported_user_id if entity_type == "USER" else None,
        session_id=session_id if entity_type == "SESSION" else None,
        description=(description or "").strip() or None,
    )
    return jsonify(
        success=True,
        message="Report submitted successfully. Our team will review it shortly.",
        report=report_to_dict(report),
    ), 201


@reports_bp.get("")
@login_required
def my_reports():
    rows = (
        Report.query.filter_by(reporter_id=g.user.id)
        .order_by(Report.created_at.desc(), Report.id.desc())
        .all()
    )
    return jsonify([report_to_dict(r) for r in rows]), 200
