from flask import Blueprint, jsonify, g, request

from models import db
from models.notification import Notification
from services import community as community_service
from utils.auth_context import login_required
from utils.roles import filter_role_names

users_bp = Blueprint("users", __name__, url_prefix="/users")


@users_bp.get("/me")
@login_required
def me():
    u = g.user
    return jsonify(
        id=u.id,
        email=u.email,
        display_name=u.display_name,
        roles=filter_role_names(u.roles),
        reliability_score=u.reliability_score,
        no_show_count=u.no_show_count,
        created_at=u.created_at.isoformat(),
    ), 200


@users_bp.get("/me/notifications")
@login_required
def my_notifications():
    unread_only = request.args.get("unread") in ("1", "true")
    q = Notification.query.filter_by(user_id=g.user.id)
    if unread_only:
        q = q.filter_by(is_read=False)

    rows = q.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(100).all()
    unread = Notification.query.filter_by(user_id=g.user.id, is_read=False).count()
    return jsonify(
        unread_count=unread,
        notifications=[
            {
                "id": n.id,
                "type": n.type,
                "title": n.title,
                "message": n.message,
                "link": n.link,
                "is_read": n.is_read,
                "created_at": n.created_at.isoformat(),
            }
            for n in rows
        ],
    ), 200


@users_bp.post("/me/notifications/read")
@login_required
def mark_notifications_read():
    data = request.get_json(silent=True) or {}
    ids = data.get("ids")

    q = Notification.query.filter_by(user_id=g.user.id, is_read=False)
    if ids is not None:
        if not isinstance(ids, list) or not all(isinstance(i, int) and not isinstance(i, bool) for i in ids):
            return jsonify(error="ids must be a list of integers"), 400
        q = q.filter(Notification.id.in_(ids))

    updated = q.update({Notification.is_read: True}, synchronize_session=False)
    db.session.commit()
    return jsonify(updated=updated), 200


@users_bp.get("/me/favorites")
@login_required
def my_favorites():
    sessions = community_service.favorite_sessions(g.user.id)
    return jsonify([
        {
            "id": s.id,
            "sport_type": s.sport_type,
            "skill_level": s.skill_level,
            "start_time": s.start_time.isoformat(),
            "venue_id": s.venue_id,
        }
        for s in sessions
    ]), 200
