"""
Booking money: subtotal, platform commission, venue payout and refunds.

All amounts are whole currency units. Commission is deducted from the venue's
payout; the customer pays the subtotal and nothing on top of it.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP

from rules.capacity import is_slot_available
from rules.clock import minutes_to_time, time_to_minutes

DEFAULT_COMMISSION_RATE = 0.10

# (minimum hours before start, refund percentage), checked top down
DEFAULT_REFUND_TIERS = ((24, 100), (12, 50))

COMMISSION_MODE = "deducted"


@dataclass(frozen=True)
class BookingPrice:
    subtotal: int
    commission: int
    total_amount: int
    venue_payout: int
    duration_minutes: int


@dataclass(frozen=True)
class Refund:
    refund_amount: int
    refund_percentage: int


@dataclass(frozen=True)
class TimeSlot:
    id: str
    court_id: int
    start_time: str
    end_time: str
    is_available: bool
    price: int


def round_half_up(value) -> int:
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def calculate_duration(start_time: str, end_time: str) -> int:
    duration = time_to_minutes(end_time) - time_to_minutes(start_time)
    if duration <= 0:
        raise ValueError("end_time must be after start_time")
    return duration


def calculate_booking_price(
    price_per_hour: int,
    price_per_30min,
    duration_minutes: int,
    commission_rate: float = DEFAULT_COMMISSION_RATE,
) -> BookingPrice:
    if price_per_30min and duration_minutes % 30 == 0:
        subtotal = price_per_30min * (duration_minutes // 30)
    else:
        subtotal = round_half_up(Decimal(price_per_hour) * duration_minutes / 60)

    commission = round_half_up(Decimal(subtotal) * Decimal(str(commission_rate)))
    return BookingPrice(
        subtotal=subtotal,
        commission=commission,
        total_amount=subtotal,
        venue_payout=subtotal - commission,
        duration_minutes=duration_minutes,
    )


def booking_start(booking_date, start_time: str) -> datetime:
    return datetime(booking_date.year, booking_date.month, booking_date.day) + timedelta(
        minutes=time_to_minutes(start_time)
    )


def refund_percentage_for(hours_before_start: float, tiers=DEFAULT_REFUND_TIERS) -> int:
    for min_hours, percentage in sorted(tiers, key=lambda t: t[0], reverse=True):
        if hours_before_start >= min_hours:
            return int(percentage)
    return 0


def calculate_refund(total_amount: int, booking_date, start_time: str, tiers=DEFAULT_REFUND_TIERS, now=None) -> Refund:
    now = now or datetime.utcnow()
    hours_before = (booking_start(booking_date, start_time) - now).total_seconds() / 3600

    percentage = refund_percentage_for(hours_before, tiers)
    if percentage >= 100:
        amount = total_amount
    else:
        amount = round_half_up(Decimal(total_amount) * percentage / 100)
    return Refund(refund_amount=amount, refund_percentage=percentage)


def generate_time_slots(
    court_id,
    price_per_hour: int,
    open_time: str,
    close_time: str,
    existing_bookings,
    slot_minutes: int = 60,
):
    """
    Fixed-width slots covering [open_time, close_time). A trailing remainder
    shorter than slot_minutes is not offered.
    """
    if slot_minutes <= 0:
        raise ValueError("slot_minutes must be positive")

    existing = list(existing_bookings)
    opens = time_to_minutes(open_time)
    closes = time_to_minutes(close_time)
    price = round_half_up(Decimal(price_per_hour) * slot_minutes / 60)

    slots = []
    current = opens
    while current + slot_minutes <= closes:
        start = minutes_to_time(current)
        end = minutes_to_time(current + slot_minutes)
        slots.append(TimeSlot(
            id=f"{court_id}-{len(slots) + 1}",
            court_id=court_id,
            start_time=start,
            end_time=end,
            is_available=is_slot_available(start, end, existing),
            price=price,
        ))
        current += slot_minutes
    return slots
