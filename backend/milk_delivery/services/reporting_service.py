# Overview: Read-only admin reporting over users, deliveries and payments.

from __future__ import annotations

from datetime import date

from sqlalchemy import func
from sqlalchemy.orm import joinedload

from ..extensions import db
from ..models import Delivery, Payment, PaymentStatus, User, UserRole
from ..money import to_money
from ..time_utils import month_datetime_window, month_window
from ..validation import ValidationError


def _count_payments(status: PaymentStatus, month: int, year: int) -> int:
    start, end = month_datetime_window(month, year)
    return db.session.query(func.count(Payment.id)).filter(
        Payment.status == status,
        Payment.payment_date >= start,
        Payment.payment_date < end,
    ).scalar() or 0


def daily_deliveries(month: int, year: int) -> list[dict]:
    first_day, last_day = month_window(month, year)
    rows = db.session.query(
        Delivery.delivery_date.label("delivery_date"),
        func.count(Delivery.id).label("count"),
        func.coalesce(func.sum(Delivery.total_price), 0).label("total_amount"),
    ).filter(
        Delivery.delivery_date.between(first_day, last_day),
    ).group_by(Delivery.delivery_date).order_by(Delivery.delivery_date.asc()).all()

    return [
        {
            "delivery_date": row.delivery_date.isoformat(),
            "count": int(row.count or 0),
            "total_amount": to_money(row.total_amount),
        }
        for row in rows
    ]


def dashboard(*, month: int, year: int) -> dict:
    """
    Monthly admin dashboard.

    totalUsers counts all subscribers (not only those active in the month).
    Payment counts use payment_date; deliveries use delivery_date.
    """
    if not 1 <= month <= 12:
        raise ValidationError("month must be between 1 and 12")

    first_day, last_day = month_window(month, year)

    total_users = db.session.query(func.count(User.id)).filter(
        User.role == UserRole.SUBSCRIBER,
    ).scalar() or 0

    totals = db.session.query(
        func.count(Delivery.id).label("delivery_count"),
        func.coalesce(func.sum(Delivery.total_price), 0).label("revenue"),
    ).filter(
        Delivery.delivery_date.between(first_day, last_day),
    ).one()

    return {
        "month": month,
        "year": year,
        "totalUsers": int(total_users),
        "totalDeliveries": int(totals.delivery_count or 0),
        "totalRevenue": to_money(totals.revenue),
        "paidPayments": int(_count_payments(PaymentStatus.PAID, month, year)),
        "pendingPayments": int(_count_payments(PaymentStatus.PENDING, month, year)),
        "dailyDeliveries": daily_deliveries(month, year),
    }


def list_subscribers() -> list[User]:
    return db.session.query(User).filter(
        User.role == UserRole.SUBSCRIBER,
    ).order_by(User.created_at.desc(), User.id.desc()).all()


def list_deliveries(*, delivery_date: date | None = None, user_id: int | None = None) -> list[Delivery]:
    query = db.session.query(Delivery).options(
        joinedload(Delivery.user),
        joinedload(Delivery.milk_rate),
    )
    if delivery_date is not None:
        query = query.filter(Delivery.delivery_date == delivery_date)
    if user_id is not None:
        query = query.filter(Delivery.user_id == user_id)
    return query.order_by(Delivery.delivery_date.desc(), Delivery.id.desc()).all()


def list_payments() -> list[Payment]:
    return db.session.query(Payment).options(
        joinedload(Payment.user),
    ).order_by(Payment.created_at.desc(), Payment.id.desc()).all()
