from __future__ import annotations

import enum

from ..extensions import db
from ..money import to_money
from ..time_utils import to_utc_z


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    CANCELLED = "cancelled"


class Payment(db.Model):
    """
    Money received from a subscriber.

    Payments are not allocated to deliveries; the monthly balance compares
    the sum of PAID payments dated in a month against that month's deliveries.

    idempotency_key lets a client retry POST /api/payments safely: the same
    key for the same user resolves to the original row.
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.UniqueConstraint("user_id", "idempotency_key", name="uq_payments_user_idempotency_key"),
        db.Index("ix_payments_status_date", "status", "payment_date"),
        db.CheckConstraint("amount >= 0", name="ck_payments_amount_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    amount = db.Column(db.Numeric(10, 2), nullable=False)

    status = db.Column(
        db.Enum(
            PaymentStatus,
            name="payment_status",
            native_enum=False,
            length=16,
            values_callable=lambda e: [m.value for m in e],
            validate_strings=True,
        ),
        nullable=False,
        default=PaymentStatus.PENDING,
    )

    payment_date = db.Column(db.DateTime(timezone=True), nullable=True)
    payment_method = db.Column(db.String(50), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    idempotency_key = db.Column(db.String(128), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    user = db.relationship("User", backref=db.backref("payments", lazy=True))

    def __repr__(self) -> str:
        return f"<Payment id={self.id} user_id={self.user_id} amount={self.amount} status={self.status}>"

    def to_dict(self, include_user: bool = False) -> dict:
        data = {
            "id": self.id,
            "user_id": self.user_id,
            "amount": to_money(self.amount),
            "status": self.status.value,
            "payment_date": to_utc_z(self.payment_date),
            "payment_method": self.payment_method,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }
        if include_user:
            data["user"] = {"name": self.user.name, "email": self.user.email} if self.user else None
        return data
