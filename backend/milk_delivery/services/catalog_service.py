# Overview: Pricing catalog (milk rates): listing, creation and repricing.

"""
Pricing Catalog Service

Catalog entries are read-mostly reference data. quantity is the natural key,
guarded by uq_milk_rates_quantity; the pre-check below only exists to return
a clean error before hitting the constraint.

Repricing never touches milk_deliveries: deliveries carry their own
quantity/total_price snapshot.
"""
from __future__ import annotations

from decimal import Decimal

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import MilkRate
from ..validation import MAX_INTEGER, ConflictError, NotFoundError, ValidationError
from .concurrency import run_with_retry


class DuplicateQuantityError(ConflictError):
    """A catalog entry for this quantity already exists."""


def list_rates() -> list[MilkRate]:
    return db.session.query(MilkRate).order_by(MilkRate.quantity.asc()).all()


def create_rate(*, quantity: int, price: Decimal, notes: str | None = None) -> MilkRate:
    """
    Add a catalog entry.

    Raises:
        ValidationError: quantity not positive or price negative
        DuplicateQuantityError: an entry for this quantity exists
    """
    if quantity is None or not 0 < quantity <= MAX_INTEGER:
        raise ValidationError("quantity must be a positive integer (ml)")
    if price is None or price < 0:
        raise ValidationError("price must be >= 0")

    def _op():
        existing = db.session.query(MilkRate).filter_by(quantity=quantity).first()
        if existing:
            raise DuplicateQuantityError("Milk rate for this quantity already exists")

        rate = MilkRate(quantity=quantity, price=price, notes=notes)
        db.session.add(rate)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise DuplicateQuantityError("Milk rate for this quantity already exists")
        return rate

    return run_with_retry(_op)


def update_rate(rate_id: int, *, price: Decimal, notes: str | None = None, notes_provided: bool = False) -> MilkRate:
    """
    Overwrite price (and notes when provided) in place.

    notes_provided distinguishes "leave notes alone" from "clear notes".
    """
    if price is None or price < 0:
        raise ValidationError("price must be >= 0")

    def _op():
        rate = db.session.get(MilkRate, rate_id)
        if not rate:
            raise NotFoundError("Milk rate not found")

        rate.price = price
        if notes_provided:
            rate.notes = notes
        db.session.commit()
        return rate

    return run_with_retry(_op)


# Seed catalog installed by `flask system init`: (quantity ml, price, notes)
DEFAULT_RATES = [
    (250, Decimal("12.50"), "250ml milk"),
    (500, Decimal("25.00"), "500ml milk"),
    (750, Decimal("37.50"), "750ml milk"),
    (1000, Decimal("50.00"), "1L milk"),
    (1500, Decimal("75.00"), "1.5L milk"),
    (2000, Decimal("100.00"), "2L milk"),
]


def ensure_default_rates() -> list[MilkRate]:
    """Insert any missing default rates. Existing quantities are left untouched."""
    created = []
    for quantity, price, notes in DEFAULT_RATES:
        if db.session.query(MilkRate).filter_by(quantity=quantity).first():
            continue
        rate = MilkRate(quantity=quantity, price=price, notes=notes)
        db.session.add(rate)
        created.append(rate)
    db.session.commit()
    return created
