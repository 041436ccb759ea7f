"""
Favorites, reviews and abuse reports. None of these touch capacity, so they
commit directly; the unique constraints catch duplicate submissions.
"""
from datetime import datetime

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from models import db
from models.attendance import Attendance, NO_SHOW
from models.favorite import Favorite
from models.report import Report
from models.review import Review
from models.session import SportSession
from models.user import User
from utils.audit import log_event
from utils.errors import ConflictError, NotFoundError, ValidationError


def _get_session(session_id: int) -> SportSession:
    session = db.session.get(SportSession, session_id)
    if not session:
        raise NotFoundError("Session not found")
    return session


def _commit_or_conflict(message: str):
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise ConflictError(message, status_code=409) from exc


# ---------- favorites ----------

def is_favorite(user_id: str, session_id: int) -> bool:
    return Favorite.query.filter_by(user_id=user_id, session_id=session_id).first() is not None


def add_favorite(ctx, session_id: int) -> Favorite:
    _get_session(session_id)
    if is_favorite(ctx.user_id, session_id):
        raise ConflictError("Already favorited")

    favorite = Favorite(user_id=ctx.user_id, session_id=session_id)
    db.session.add(favorite)
    _commit_or_conflict("Already favorited")
    return favorite


def remove_favorite(ctx, session_id: int):
    favorite = Favorite.query.filter_by(user_id=ctx.user_id, session_id=session_id).first()
    if not favorite:
        raise NotFoundError("Session is not in your favorites")
    db.session.delete(favorite)
    db.session.commit()


def favorite_sessions(user_id: str) -> list:
    return (
        SportSession.query
        .join(Favorite, Favorite.session_id == SportSession.id)
        .filter(Favorite.user_id == user_id)
        .order_by(Favorite.created_at.desc())
        .all()
    )


# ---------- reviews ----------

def review_summary(session_id: int) -> dict:
    session = _get_session(session_id)
    reviews = session.reviews
    average = 0.0
    if reviews:
        average = round(sum(r.rating for r in reviews) / len(reviews), 1)
    return {"reviews": reviews, "average_rating": average, "total_reviews": len(reviews)}


def create_review(ctx, session_id: int, rating: int, comment=None) -> Review:
    session = _get_session(session_id)

    if session.created_by == ctx.user_id:
        raise ValidationError("You cannot review your own session")
    if session.start_time > datetime.utcnow():
        raise ValidationError("Cannot review a session that has not happened yet")

    attendance = Attendance.query.filter_by(session_id=session_id, user_id=ctx.user_id).first()
    if not attendance or attendance.status == NO_SHOW:
        raise ValidationError("You can only review sessions you attended")

    if Review.query.filter_by(session_id=session_id, user_id=ctx.user_id).first():
        raise ValidationError("You have already reviewed this session")

    review = Review(user_id=ctx.user_id, session_id=session_id, rating=rating, comment=comment)
    db.session.add(review)
    _commit_or_conflict("You have already reviewed this session")

    log_event("REVIEW_CREATE", user_id=ctx.user_id, entity="session", entity_id=session_id,
              metadata={"rating": rating}, correlation_id=ctx.correlation_id)
    return review


# ---------- reports ----------

def create_report(ctx, entity_type: str, reason: str, reported_user_id=None,
                  session_id=None, description=None) -> Report:
    if entity_type == "USER":
        if reported_user_id == ctx.user_id:
            raise ValidationError("You cannot report yourself")
        if not db.session.get(User, reported_user_id):
            raise NotFoundError("User not found")
        target = {"reported_user_id": reported_user_id}
    else:
        _get_session(session_id)
        target = {"session_id": session_id}

    pending = Report.query.filter_by(
        reporter_id=ctx.user_id, entity_type=entity_type, status="PENDING", **target
    ).first()
    if pending:
        raise ConflictError(
            "You have already submitted a report for this. Our team is reviewing it.",
            status_code=409,
        )

    report = Report(
        reporter_id=ctx.user_id,
        entity_type=entity_type,
        reason=reason,
        description=description,
        **target,
    )
    db.session.add(report)
    db.session.commit()

    log_event("REPORT_CREATE", user_id=ctx.user_id, entity="report", entity_id=report.id,
              metadata={"entity_type": entity_type, "reason": reason},
              correlation_id=ctx.correlation_id)
    return report


def set_report_status(ctx, report_id: int, status: str) -> Report:
    report = db.session.get(Report, report_id)
    if not report:
        raise NotFoundError("Report not found")

    report.status = status
    report.reviewed_by = ctx.user_id
    report.reviewed_at = datetime.utcnow()
    db.session.commit()

    log_event("REPORT_STATUS", user_id=ctx.user_id, entity="report", entity_id=report_id,
              metadata={"status": status}, correlation_id=ctx.correlation_id)
    return report


def pending_report_count() -> int:
    return db.session.scalar(
        db.select(func.count(Report.id)).where(Report.status == "PENDING")
    )
