from datetime import date, datetime

from flask import Blueprint, request, jsonify

from models.venue import Venue
from services.availability import venue_availability

venues_bp = Blueprint("venues", __name__, url_prefix="/venues")


@venues_bp.get("")
def list_venues():
    venues = Venue.query.filter_by(is_bookable=True).order_by(Venue.name.asc()).all()
    return jsonify([
        {
            "id": v.id,
            "name": v.name,
            "address": v.address,
            "phone": v.phone,
            "latitude": v.latitude,
            "longitude": v.longitude,
            "courts": [
                {
                    "id": c.id,
                    "name": c.name,
                    "sport_type": c.sport_type,
                    "price_per_hour": c.price_per_hour,
                    "price_per_30min": c.price_per_30min,
                    "indoor": c.indoor,
                }
                for c in v.courts if c.is_active
            ],
        }
        for v in venues
    ]), 200


@venues_bp.get("/<int:venue_id>/availability")
def availability(venue_id: int):
    date_str = request.args.get("date")
    if not date_str:
        return jsonify(error="date is required (YYYY-MM-DD)"), 400
    try:
        day = date.fromisoformat(date_str)
    except ValueError:
        return jsonify(error="Invalid date. Use YYYY-MM-DD"), 400
    if day < datetime.utcnow().date():
        return jsonify(error="Cannot check availability for past dates"), 400

    sport_type = (request.args.get("sport_type") or "").strip() or None
    return jsonify(venue_availability(venue_id, day, sport_type)), 200
