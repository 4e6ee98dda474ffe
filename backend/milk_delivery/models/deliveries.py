from __future__ import annotations

import enum

from ..extensions import db
from ..money import to_money
from ..time_utils import to_utc_z


class DeliveryTime(str, enum.Enum):
    MORNING = "morning"
    EVENING = "evening"


class Delivery(db.Model):
    """
    A single scheduled milk delivery.

    quantity/total_price are a snapshot of the rate at order time.

    Slot invariant: one delivery per (user_id, delivery_date, delivery_time).
    The unique constraint is what holds it under concurrent requests; the
    service-level pre-check only produces a friendlier error.
    """
    __tablename__ = "milk_deliveries"
    __table_args__ = (
        db.UniqueConstraint(
            "user_id", "delivery_date", "delivery_time",
            name="uq_milk_deliveries_user_slot",
        ),
        db.Index("ix_milk_deliveries_date", "delivery_date"),
        db.CheckConstraint("total_price >= 0", name="ck_milk_deliveries_total_price_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    milk_id = db.Column(db.Integer, db.ForeignKey("milk_rates.id"), nullable=False, index=True)

    # Snapshot (ml / currency) copied from the rate at order time
    quantity = db.Column(db.Integer, nullable=False)
    total_price = db.Column(db.Numeric(10, 2), nullable=False)

    delivery_time = db.Column(
        db.Enum(
            DeliveryTime,
            name="delivery_time",
            native_enum=False,
            length=16,
            values_callable=lambda e: [m.value for m in e],
            validate_strings=True,
        ),
        nullable=False,
    )
    delivery_date = db.Column(db.Date, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    user = db.relationship("User", backref=db.backref("deliveries", lazy=True))
    milk_rate = db.relationship("MilkRate", backref=db.backref("deliveries", lazy=True))

    def __repr__(self) -> str:
        return (
            f"<Delivery id={self.id} user_id={self.user_id} "
            f"date={self.delivery_date} time={self.delivery_time.value if self.delivery_time else None}>"
        )

    def to_dict(self, include_user: bool = False) -> dict:
        data = {
            "id": self.id,
            "user_id": self.user_id,
            "milk_id": self.milk_id,
            "quantity": self.quantity,
            "total_price": to_money(self.total_price),
            "delivery_time": self.delivery_time.value,
            "delivery_date": self.delivery_date.isoformat(),
            "milk_rate": self.milk_rate.to_summary_dict() if self.milk_rate else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_user:
            data["user"] = {"name": self.user.name, "email": self.user.email} if self.user else None
        return data
