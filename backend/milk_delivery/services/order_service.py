# Overview: Order scheduling: placing, editing and cancelling milk deliveries.

"""
Order Scheduler Service

WHY: A subscriber books a delivery for a (date, morning|evening) slot. The
delivery copies quantity and price from the catalog entry at that moment.

DESIGN PRINCIPLES:
- Slot invariant: at most one delivery per (user, delivery_date, delivery_time).
  uq_milk_deliveries_user_slot enforces it; the pre-check only gives a clean
  error in the common case. Two racing requests both pass the pre-check, and
  the loser's commit fails with IntegrityError, reported as SlotAlreadyBookedError.
- Price snapshot: quantity/total_price never follow later catalog edits.
  Only an explicit milk_id change on update re-snapshots.
- Ownership: a delivery that belongs to someone else is reported as not found.
"""
from __future__ import annotations

from datetime import date

from sqlalchemy import case, func
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Delivery, DeliveryTime, MilkRate
from ..money import to_decimal
from ..time_utils import month_window, parse_iso_date
from ..validation import MAX_INTEGER, ConflictError, NotFoundError, ValidationError
from .concurrency import run_with_retry


class InvalidOptionError(ValidationError):
    """Referenced catalog entry does not exist."""


class SlotAlreadyBookedError(ConflictError):
    """The user already has a delivery for this date and time."""


SLOT_TAKEN_MESSAGE = "Delivery already scheduled for this date and time"


def _coerce_delivery_time(value) -> DeliveryTime:
    if isinstance(value, DeliveryTime):
        return value
    try:
        return DeliveryTime(value)
    except ValueError:
        raise ValidationError("Delivery time must be morning or evening")


def _coerce_delivery_date(value) -> date:
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            parsed = parse_iso_date(value)
        except ValueError:
            parsed = None
        if parsed is not None:
            return parsed
    raise ValidationError("Valid delivery date required")


def _resolve_rate(milk_id) -> MilkRate:
    if milk_id is None or isinstance(milk_id, bool) or not isinstance(milk_id, int):
        raise InvalidOptionError("Invalid milk option")
    if not 0 < milk_id <= MAX_INTEGER:
        raise InvalidOptionError("Invalid milk option")
    rate = db.session.get(MilkRate, milk_id)
    if not rate:
        raise InvalidOptionError("Invalid milk option")
    return rate


# Morning before evening within a day
_SLOT_ORDER = case((Delivery.delivery_time == DeliveryTime.MORNING, 0), else_=1)


def _find_slot(user_id: int, delivery_date: date, delivery_time: DeliveryTime, *, exclude_id: int | None = None):
    query = db.session.query(Delivery).filter(
        Delivery.user_id == user_id,
        Delivery.delivery_date == delivery_date,
        Delivery.delivery_time == delivery_time,
    )
    if exclude_id is not None:
        query = query.filter(Delivery.id != exclude_id)
    return query.first()


def _commit_slot() -> None:
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise SlotAlreadyBookedError(SLOT_TAKEN_MESSAGE)


def get_user_delivery(user_id: int, delivery_id: int) -> Delivery:
    delivery = db.session.query(Delivery).filter_by(id=delivery_id, user_id=user_id).first()
    if not delivery:
        raise NotFoundError("Delivery not found")
    return delivery


def place_order(*, user_id: int, milk_id: int, delivery_time, delivery_date) -> Delivery:
    """
    Book a delivery slot for a subscriber.

    Args:
        user_id: Subscriber placing the order
        milk_id: Catalog entry id
        delivery_time: DeliveryTime or "morning"/"evening"
        delivery_date: date or ISO-8601 date string

    Returns:
        The created Delivery (milk_rate relationship available for rendering)

    Raises:
        ValidationError: malformed time/date
        InvalidOptionError: milk_id does not exist
        SlotAlreadyBookedError: slot already held by this user
    """
    slot_time = _coerce_delivery_time(delivery_time)
    slot_date = _coerce_delivery_date(delivery_date)

    def _op():
        rate = _resolve_rate(milk_id)

        if _find_slot(user_id, slot_date, slot_time):
            raise SlotAlreadyBookedError(SLOT_TAKEN_MESSAGE)

        delivery = Delivery(
            user_id=user_id,
            milk_id=rate.id,
            quantity=rate.quantity,
            total_price=rate.price,
            delivery_time=slot_time,
            delivery_date=slot_date,
        )
        db.session.add(delivery)
        _commit_slot()
        return delivery

    return run_with_retry(_op)


def update_order(
    *,
    user_id: int,
    delivery_id: int,
    milk_id: int | None = None,
    delivery_time=None,
    delivery_date=None,
) -> Delivery:
    """
    Edit one of the user's deliveries.

    A new milk_id re-snapshots quantity and price. Moving the delivery to
    another slot re-checks the slot invariant against the user's other
    deliveries.
    """
    slot_time = _coerce_delivery_time(delivery_time) if delivery_time is not None else None
    slot_date = _coerce_delivery_date(delivery_date) if delivery_date is not None else None

    def _op():
        delivery = get_user_delivery(user_id, delivery_id)

        if milk_id is not None:
            rate = _resolve_rate(milk_id)
            delivery.milk_id = rate.id
            delivery.quantity = rate.quantity
            delivery.total_price = rate.price

        new_time = slot_time or delivery.delivery_time
        new_date = slot_date or delivery.delivery_date
        if (new_time, new_date) != (delivery.delivery_time, delivery.delivery_date):
            if _find_slot(user_id, new_date, new_time, exclude_id=delivery.id):
                db.session.rollback()
                raise SlotAlreadyBookedError(SLOT_TAKEN_MESSAGE)
            delivery.delivery_time = new_time
            delivery.delivery_date = new_date

        _commit_slot()
        return delivery

    return run_with_retry(_op)


def cancel_order(*, user_id: int, delivery_id: int) -> None:
    """Delete one of the user's deliveries. No cutoff window, no refund."""
    def _op():
        delivery = get_user_delivery(user_id, delivery_id)
        db.session.delete(delivery)
        db.session.commit()

    run_with_retry(_op)


def list_user_deliveries(user_id: int, month: int | None = None, year: int | None = None) -> list[Delivery]:
    """User's deliveries, newest date first; restricted to a month when both month and year are given."""
    query = db.session.query(Delivery).filter(Delivery.user_id == user_id)
    if month is not None and year is not None:
        first_day, last_day = month_window(month, year)
        query = query.filter(Delivery.delivery_date.between(first_day, last_day))
    return query.order_by(Delivery.delivery_date.desc(), _SLOT_ORDER, Delivery.id.asc()).all()


def user_monthly_stats(user_id: int, month: int, year: int) -> dict:
    first_day, last_day = month_window(month, year)
    row = db.session.query(
        func.count(Delivery.id).label("delivery_count"),
        func.coalesce(func.sum(Delivery.quantity), 0).label("total_milk"),
        func.coalesce(func.sum(Delivery.total_price), 0).label("total_amount"),
    ).filter(
        Delivery.user_id == user_id,
        Delivery.delivery_date.between(first_day, last_day),
    ).one()

    return {
        "month": month,
        "year": year,
        "totalMilk": int(row.total_milk or 0),
        "totalAmount": to_decimal(row.total_amount),
        "deliveryCount": int(row.delivery_count or 0),
    }
