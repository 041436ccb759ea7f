import json
from datetime import date, datetime

from flask import Blueprint, jsonify, g, request
from sqlalchemy import case

from models import db
from models.audit_log import AuditLog
from models.booking import Booking
from models.report import Report, REPORT_ENTITY_TYPES, REPORT_STATUSES
from models.user import User, Role
from routes.reports import report_to_dict
from security.rbac import require_roles
from services import bookings as booking_service
from services import community as community_service
from utils.audit import log_event
from utils.auth_context import current_context
from utils.roles import filter_role_names

admin_bp = Blueprint("admin", __name__, url_prefix="/admin")


def _parse_date_arg(name):
    raw = request.args.get(name)
    if not raw:
        return None
    return date.fromisoformat(raw)


# ---------- commissions ----------
@admin_bp.get("/commissions")
@require_roles("ADMIN")
def commissions():
    try:
        start = _parse_date_arg("start")
        end = _parse_date_arg("end")
    except ValueError:
        return jsonify(error="Invalid date. Use YYYY-MM-DD"), 400
    if start and end and end < start:
        return jsonify(error="end must not be before start"), 400
    return jsonify(booking_service.commission_summary(start, end)), 200


@admin_bp.post("/commissions/<int:commission_id>/payout")
@require_roles("ADMIN")
def mark_payout(commission_id: int):
    commission = booking_service.mark_payout_paid(current_context(), commission_id)
    return jsonify(
        id=commission.id,
        booking_id=commission.booking_id,
        venue_amount=commission.venue_amount,
        payout_status=commission.payout_status,
        paid_out_at=commission.paid_out_at.isoformat(),
    ), 200


# ---------- venue-side booking transitions ----------
@admin_bp.post("/bookings/<int:booking_id>/confirm")
@require_roles("ADMIN", "VENUE_MANAGER")
def confirm_booking(booking_id: int):
    return jsonify(booking_service.confirm_booking(current_context(), booking_id)), 200


@admin_bp.post("/bookings/<int:booking_id>/complete")
@require_roles("ADMIN", "VENUE_MANAGER")
def complete_booking(booking_id: int):
    return jsonify(booking_service.complete_booking(current_context(), booking_id)), 200


@admin_bp.post("/bookings/<int:booking_id>/cancel")
@require_roles("ADMIN")
def cancel_booking(booking_id: int):
    data = request.get_json(silent=True) or {}
    reason = (data.get("reason") or "").strip() or "Cancelled by venue"
    return jsonify(booking_service.cancel_booking(current_context(), booking_id, reason)), 200


@admin_bp.get("/bookings")
@require_roles("ADMIN")
def list_bookings():
    status = (request.args.get("status") or "").strip().upper()
    q = Booking.query
    if status:
        q = q.filter(Booking.status == status)
    rows = q.order_by(Booking.created_at.desc()).limit(200).all()
    return jsonify([booking_service.booking_to_dict(b) for b in rows]), 200


# ---------- users ----------
@admin_bp.get("/users")
@require_roles("ADMIN")
def list_users():
    role_filter = (request.args.get("role") or "").strip().upper()
    q = User.query
    if role_filter:
        q = q.join(User.roles).filter(Role.name == role_filter)

    users = q.order_by(User.created_at.desc()).limit(200).all()
    return jsonify([
        {
            "id": u.id,
            "email": u.email,
            "display_name": u.display_name,
            "roles": filter_role_names(u.roles),
            "reliability_score": u.reliability_score,
            "no_show_count": u.no_show_count,
            "is_banned": u.is_banned,
            "created_at": u.created_at.isoformat(),
        }
        for u in users
    ]), 200


@admin_bp.post("/users/<user_id>/ban")
@require_roles("ADMIN")
def ban_user(user_id: str):
    data = request.get_json(silent=True) or {}
    reason = (data.get("reason") or "").strip() or None

    user = db.session.get(User, user_id)
    if not user:
        return jsonify(error="User not found"), 404
    if user.id == g.user.id:
        return jsonify(error="Cannot ban yourself"), 403

    user.is_banned = True
    user.banned_at = datetime.utcnow()
    user.banned_reason = reason
    db.session.commit()

    log_event("ADMIN_BAN_USER", user_id=g.user.id, entity="user", entity_id=user.id,
              metadata={"reason": reason}, correlation_id=g.correlation_id)
    return jsonify(message="User banned", id=user.id), 200


@admin_bp.post("/users/<user_id>/unban")
@require_roles("ADMIN")
def unban_user(user_id: str):
    user = db.session.get(User, user_id)
    if not user:
        return jsonify(error="User not found"), 404

    user.is_banned = False
    user.banned_at = None
    user.banned_reason = None
    db.session.commit()

    log_event("ADMIN_UNBAN_USER", user_id=g.user.id, entity="user", entity_id=user.id,
              correlation_id=g.correlation_id)
    return jsonify(message="User unbanned", id=user.id), 200


# ---------- reports ----------
@admin_bp.get("/reports")
@require_roles("ADMIN")
def list_reports():
    status = request.args.get("status")
    entity_type = request.args.get("entity_type")

    q = Report.query
    if status in REPORT_STATUSES:
        q = q.filter(Report.status == status)
    if entity_type in REPORT_ENTITY_TYPES:
        q = q.filter(Report.entity_type == entity_type)

    # PENDING first, newest first within a status
    pending_first = case((Report.status == "PENDING", 0), else_=1)
    rows = q.order_by(pending_first, Report.created_at.desc(), Report.id.desc()).limit(200).all()
    return jsonify(
        pending_count=community_service.pending_report_count(),
        reports=[report_to_dict(r) for r in rows],
    ), 200


@admin_bp.patch("/reports/<int:report_id>")
@require_roles("ADMIN")
def update_report(report_id: int):
    data = request.get_json(silent=True) or {}
    status = data.get("status")
    if status not in REPORT_STATUSES:
        return jsonify(error=f"status must be one of {', '.join(REPORT_STATUSES)}"), 400

    report = community_service.set_report_status(current_context(), report_id, status)
    return jsonify(report_to_dict(report)), 200


# ---------- audit trail ----------
@admin_bp.get("/audit-logs")
@require_roles("ADMIN")
def list_audit_logs():
    limit = request.args.get("limit", type=int) or 200
    limit = max(1, min(limit, 500))

    action = request.args.get("action")
    user_id = request.args.get("user_id")
    correlation_id = request.args.get("correlation_id")

    q = AuditLog.query
    if action:
        q = q.filter(AuditLog.action == action)
    if user_id:
        q = q.filter(AuditLog.user_id == user_id)
    if correlation_id:
        q = q.filter(AuditLog.correlation_id == correlation_id)

    rows = q.order_by(AuditLog.timestamp.desc(), AuditLog.id.desc()).limit(limit).all()
    return jsonify([
        {
            "id": r.id,
            "created_at": r.timestamp.isoformat(),
            "user_id": r.user_id,
            "action": r.action,
            "entity": r.entity,
            "entity_id": r.entity_id,
            "correlation_id": r.correlation_id,
            "ip": r.ip,
            "user_agent": r.user_agent,
            "metadata": json.loads(r.metadata_json) if r.metadata_json else None,
        }
        for r in rows
    ]), 200
