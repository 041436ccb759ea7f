from datetime import datetime, timezone

from flask import Blueprint, request, jsonify, g

from models import db
from models.review import MIN_RATING, MAX_RATING
from models.session import SportSession, VIBES
from models.venue import Venue
from security.rate_limit import rate_limited
from services import community as community_service
from services import sessions as session_service
from utils.auth_context import current_context, login_required

sessions_bp = Blueprint("sessions", __name__, url_prefix="/sessions")


def _parse_iso(dt_str: str) -> datetime:
    # Expect ISO format like "2026-01-20T18:00:00"; aware values are stored as naive UTC
    dt = datetime.fromisoformat(dt_str)
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def _as_int(value):
    if isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _session_to_dict(s: SportSession) -> dict:
    return {
        "id": s.id,
        "venue_id": s.venue_id,
        "created_by": s.created_by,
        "sport_type": s.sport_type,
        "skill_level": s.skill_level,
        "start_time": s.start_time.isoformat(),
        "duration_minutes": s.duration_minutes,
        "max_participants": s.max_participants,
        "vibe": s.vibe,
        "description": s.description,
        "attendance_marked": s.attendance_marked,
        "current_participants": session_service.attendee_count(s.id),
        "waitlist_count": session_service.waitlist_count(s.id),
        "created_at": s.created_at.isoformat(),
    }


# ---------- sessions ----------
def _parse_session_fields(data: dict, partial: bool):
    """
    Returns (fields, error). With partial=True only the keys present in data
    are validated and returned.
    """
    fields = {}

    for name in ("sport_type", "skill_level"):
        if name in data or not partial:
            value = data.get(name)
            value = value.strip() if isinstance(value, str) else ""
            if not value:
                return None, f"{name} must be a non-empty string"
            fields[name] = value

    if "start_time" in data or not partial:
        try:
            st = _parse_iso(data.get("start_time"))
        except (TypeError, ValueError):
            return None, "Invalid datetime format. Use ISO e.g. 2026-01-20T18:00:00"
        if st <= datetime.utcnow():
            return None, "start_time must be in the future"
        fields["start_time"] = st

    if "duration_minutes" in data or not partial:
        duration = _as_int(data.get("duration_minutes"))
        if duration is None or duration <= 0:
            return None, "duration_minutes must be positive"
        fields["duration_minutes"] = duration

    if "max_participants" in data:
        max_participants = None
        if data.get("max_participants") is not None:
            max_participants = _as_int(data.get("max_participants"))
            if max_participants is None or max_participants < 1:
                return None, "max_participants must be a positive integer"
        fields["max_participants"] = max_participants

    if "vibe" in data or not partial:
        vibe = (data.get("vibe") or "CASUAL")
        vibe = vibe.strip().upper() if isinstance(vibe, str) else ""
        if vibe not in VIBES:
            return None, f"vibe must be one of {', '.join(VIBES)}"
        fields["vibe"] = vibe

    if "description" in data or not partial:
        description = data.get("description")
        description = description.strip() if isinstance(description, str) else None
        fields["description"] = description or None

    if "venue_id" in data:
        venue_id = None
        if data.get("venue_id") is not None:
            venue_id = _as_int(data.get("venue_id"))
            if venue_id is None or not db.session.get(Venue, venue_id):
                return None, "Venue not found"
        fields["venue_id"] = venue_id

    return fields, None


@sessions_bp.get("")
def list_sessions():
    sport_type = request.args.get("sport_type")
    skill_level = request.args.get("skill_level")
    sessions = session_service.list_sessions(
        sport_type=None if sport_type in (None, "", "all") else sport_type,
        skill_level=None if skill_level in (None, "", "all") else skill_level,
        search=(request.args.get("search") or "").strip() or None,
    )
    return jsonify([_session_to_dict(s) for s in sessions]), 200


@sessions_bp.post("")
@login_required
def create_session():
    data = request.get_json(silent=True) or {}
    for name in ("sport_type", "skill_level", "start_time", "duration_minutes"):
        if data.get(name) in (None, ""):
            return jsonify(error="sport_type, skill_level, start_time, duration_minutes are required"), 400

    fields, error = _parse_session_fields(data, partial=False)
    if error:
        status = 404 if error == "Venue not found" else 400
        return jsonify(error=error), status

    session = session_service.create_session(current_context(), fields)
    return jsonify(_session_to_dict(session)), 201


@sessions_bp.patch("/<int:session_id>")
@login_required
def update_session(session_id: int):
    data = request.get_json(silent=True) or {}
    fields, error = _parse_session_fields(data, partial=True)
    if error:
        status = 404 if error == "Venue not found" else 400
        return jsonify(error=error), status
    if not fields:
        return jsonify(error="No editable fields provided"), 400

    session = session_service.update_session(current_context(), session_id, fields)
    return jsonify(_session_to_dict(session)), 200


@sessions_bp.get("/<int:session_id>")
def get_session(session_id: int):
    session = db.session.get(SportSession, session_id)
    if not session:
        return jsonify(error="Session not found"), 404
    return jsonify(_session_to_dict(session)), 200


@sessions_bp.delete("/<int:session_id>")
@login_required
def delete_session(session_id: int):
    session_service.delete_session(current_context(), session_id)
    return jsonify(message="Session deleted"), 200


# ---------- PLAYERS: join / leave (CAPACITY SAFE) ----------
@sessions_bp.post("/<int:session_id>/participants")
@rate_limited("join")
@login_required
def join_session(session_id: int):
    attendance = session_service.join_session(current_context(), session_id)
    return jsonify(message="Joined session", attendance=attendance), 201


@sessions_bp.delete("/<int:session_id>/participants")
@login_required
def cancel_attendance(session_id: int):
    session_service.cancel_attendance(current_context(), session_id)
    return jsonify(message="Attendance cancelled"), 200


# ---------- HOST: post-session attendance ----------
@sessions_bp.get("/<int:session_id>/attendance")
@login_required
def attendance_roster(session_id: int):
    session = db.session.get(SportSession, session_id)
    if not session:
        return jsonify(error="Session not found"), 404
    if session.created_by != g.user.id:
        return jsonify(error="Only the session host can view attendance details"), 403

    return jsonify(
        session_id=session.id,
        attendance_marked=session.attendance_marked,
        session_date=session.start_time.isoformat(),
        is_past=session.start_time < datetime.utcnow(),
        participants=[
            {
                "user_id": a.user_id,
                "display_name": a.user.display_name if a.user else None,
                "reliability_score": a.user.reliability_score if a.user else None,
                "status": a.status,
                "joined_at": a.created_at.isoformat(),
                "marked_at": a.marked_at.isoformat() if a.marked_at else None,
                "attended_at": a.attended_at.isoformat() if a.attended_at else None,
            }
            for a in session.attendees
        ],
    ), 200


@sessions_bp.post("/<int:session_id>/attendance")
@rate_limited("attendance")
@login_required
def mark_attendance(session_id: int):
    data = request.get_json(silent=True) or {}
    attendees = data.get("attendees")
    if not isinstance(attendees, list) or not attendees:
        return jsonify(error="At least one attendee must be provided"), 400

    outcomes = []
    seen = set()
    for item in attendees:
        if not isinstance(item, dict):
            return jsonify(error="Each attendee must be an object"), 400
        user_id = item.get("user_id")
        attended = item.get("attended")
        if not isinstance(user_id, str) or not user_id.strip():
            return jsonify(error="Invalid user ID"), 400
        if not isinstance(attended, bool):
            return jsonify(error="attended must be true or false"), 400
        if user_id in seen:
            return jsonify(error=f"Duplicate attendee: {user_id}"), 400
        seen.add(user_id)
        outcomes.append((user_id, attended))

    updates = session_service.mark_attendance(current_context(), session_id, outcomes)
    return jsonify(message="Attendance marked successfully", updates=updates), 200


# ---------- waitlist ----------
@sessions_bp.post("/<int:session_id>/waitlist")
@rate_limited("waitlist")
@login_required
def join_waitlist(session_id: int):
    entry = session_service.join_waitlist(current_context(), session_id)
    return jsonify(
        message=f"You're #{entry['position']} on the waitlist",
        position=entry["position"],
        waitlist=entry,
    ), 201


@sessions_bp.get("/<int:session_id>/waitlist")
def get_waitlist(session_id: int):
    session = db.session.get(SportSession, session_id)
    if not session:
        return jsonify(error="Session not found"), 404

    user = getattr(g, "user", None)
    user_position = None
    rows = []
    for w in session.waitlist:
        if user is not None and w.user_id == user.id:
            user_position = w.position
        rows.append({
            "position": w.position,
            "user": {"id": w.user_id, "display_name": w.user.display_name if w.user else None},
            "joined_at": w.created_at.isoformat(),
        })
    return jsonify(count=len(rows), userPosition=user_position, waitlist=rows), 200


@sessions_bp.delete("/<int:session_id>/waitlist")
@login_required
def leave_waitlist(session_id: int):
    session_service.leave_waitlist(current_context(), session_id)
    return jsonify(message="Removed from waitlist"), 200


# ---------- favorites ----------
@sessions_bp.post("/<int:session_id>/favorite")
@rate_limited("favorite")
@login_required
def add_favorite(session_id: int):
    favorite = community_service.add_favorite(current_context(), session_id)
    return jsonify(
        id=favorite.id,
        session_id=favorite.session_id,
        created_at=favorite.created_at.isoformat(),
    ), 201


@sessions_bp.delete("/<int:session_id>/favorite")
@login_required
def remove_favorite(session_id: int):
    community_service.remove_favorite(current_context(), session_id)
    return jsonify(message="Removed from favorites"), 200


@sessions_bp.get("/<int:session_id>/favorite")
def favorite_status(session_id: int):
    user = getattr(g, "user", None)
    if user is None:
        return jsonify(isFavorited=False), 200
    return jsonify(isFavorited=community_service.is_favorite(user.id, session_id)), 200


# ---------- reviews ----------
def _review_to_dict(r) -> dict:
    return {
        "id": r.id,
        "session_id": r.session_id,
        "rating": r.rating,
        "comment": r.comment,
        "user": {"id": r.user_id, "display_name": r.user.display_name if r.user else None},
        "created_at": r.created_at.isoformat(),
    }


@sessions_bp.get("/<int:session_id>/reviews")
def list_reviews(session_id: int):
    summary = community_service.review_summary(session_id)
    return jsonify(
        reviews=[_review_to_dict(r) for r in summary["reviews"]],
        averageRating=summary["average_rating"],
        totalReviews=summary["total_reviews"],
    ), 200


@sessions_bp.post("/<int:session_id>/reviews")
@login_required
def create_review(session_id: int):
    data = request.get_json(silent=True) or {}
    rating = data.get("rating")
    if isinstance(rating, bool) or not isinstance(rating, int) or not MIN_RATING <= rating <= MAX_RATING:
        return jsonify(error=f"Rating must be between {MIN_RATING} and {MAX_RATING}"), 400

    comment = data.get("comment")
    if comment is not None and not isinstance(comment, str):
        return jsonify(error="comment must be a string"), 400

    review = community_service.create_review(
        current_context(), session_id, rating, (comment or "").strip() or None
    )
    return jsonify(_review_to_dict(review)), 201
