# Overview: Billing ledger: monthly outstanding balance and payment recording.

"""
Billing Ledger Service

WHY: Subscribers pay for a month's deliveries. Payments are not allocated
to individual deliveries; each month is settled by comparing totals.

RULES:
- totalDeliveries: sum of Delivery.total_price with delivery_date in the month
- totalPayments: sum of PAID Payment.amount with payment_date in the month
- outstandingAmount: max(0, totalDeliveries - totalPayments)
  Overpayment is clamped to zero and not carried into the next month.
- record_payment never checks the balance: any positive amount is accepted.
- A client-supplied idempotency key makes record_payment safe to retry.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Delivery, Payment, PaymentStatus
from ..money import ZERO, to_decimal
from ..time_utils import month_datetime_window, month_window, utcnow
from ..validation import ValidationError
from .concurrency import run_with_retry


@dataclass(frozen=True)
class OutstandingBalance:
    month: int
    year: int
    total_deliveries: Decimal
    total_payments: Decimal
    outstanding_amount: Decimal

    def to_dict(self) -> dict:
        return {
            "month": self.month,
            "year": self.year,
            "totalDeliveries": float(self.total_deliveries),
            "totalPayments": float(self.total_payments),
            "outstandingAmount": float(self.outstanding_amount),
        }


def _check_month(month: int, year: int) -> None:
    if not 1 <= month <= 12:
        raise ValidationError("month must be between 1 and 12")
    if not 1 <= year <= 9999:
        raise ValidationError("year must be between 1 and 9999")


def total_deliveries_for_month(user_id: int, month: int, year: int) -> Decimal:
    first_day, last_day = month_window(month, year)
    total = db.session.query(
        func.coalesce(func.sum(Delivery.total_price), 0)
    ).filter(
        Delivery.user_id == user_id,
        Delivery.delivery_date.between(first_day, last_day),
    ).scalar()
    return to_decimal(total)


def total_paid_for_month(user_id: int, month: int, year: int) -> Decimal:
    start, end = month_datetime_window(month, year)
    total = db.session.query(
        func.coalesce(func.sum(Payment.amount), 0)
    ).filter(
        Payment.user_id == user_id,
        Payment.status == PaymentStatus.PAID,
        Payment.payment_date >= start,
        Payment.payment_date < end,
    ).scalar()
    return to_decimal(total)


def outstanding_balance(user_id: int, month: int, year: int) -> OutstandingBalance:
    """
    Unpaid part of a month's delivery charges, floored at zero.

    Raises:
        ValidationError: month/year out of range
    """
    _check_month(month, year)

    deliveries = total_deliveries_for_month(user_id, month, year)
    payments = total_paid_for_month(user_id, month, year)

    return OutstandingBalance(
        month=month,
        year=year,
        total_deliveries=deliveries,
        total_payments=payments,
        outstanding_amount=max(ZERO, deliveries - payments),
    )


def find_payment_by_key(user_id: int, idempotency_key: str) -> Payment | None:
    return db.session.query(Payment).filter_by(
        user_id=user_id,
        idempotency_key=idempotency_key,
    ).first()


def record_payment(
    *,
    user_id: int,
    amount: Decimal,
    payment_method: str | None = None,
    notes: str | None = None,
    idempotency_key: str | None = None,
) -> tuple[Payment, bool]:
    """
    Record a settled payment (status=paid, payment_date=now).

    Returns:
        (payment, created). created is False when idempotency_key matched an
        earlier payment by the same user; that payment is returned unchanged.

    Raises:
        ValidationError: amount not positive
    """
    if amount is None or amount <= 0:
        raise ValidationError("amount must be greater than 0")

    def _op():
        if idempotency_key:
            existing = find_payment_by_key(user_id, idempotency_key)
            if existing:
                return existing, False

        payment = Payment(
            user_id=user_id,
            amount=amount,
            payment_method=payment_method,
            notes=notes,
            status=PaymentStatus.PAID,
            payment_date=utcnow(),
            idempotency_key=idempotency_key,
        )
        db.session.add(payment)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            # A concurrent retry with the same key won the insert
            if idempotency_key:
                existing = find_payment_by_key(user_id, idempotency_key)
                if existing:
                    return existing, False
            raise
        return payment, True

    return run_with_retry(_op)


def list_user_payments(user_id: int) -> list[Payment]:
    return db.session.query(Payment).filter_by(user_id=user_id).order_by(
        Payment.created_at.desc(), Payment.id.desc()
    ).all()
