from __future__ import annotations

from ..extensions import db
from ..money import to_money
from ..time_utils import to_utc_z


class MilkRate(db.Model):
    """
    Pricing catalog entry: a purchasable quantity (ml) and its price.

    Quantity is the natural key. Deliveries copy quantity and price at order
    time, so editing a rate never reprices existing deliveries.
    """
    __tablename__ = "milk_rates"
    __table_args__ = (
        db.UniqueConstraint("quantity", name="uq_milk_rates_quantity"),
        db.CheckConstraint("quantity > 0", name="ck_milk_rates_quantity_positive"),
        db.CheckConstraint("price >= 0", name="ck_milk_rates_price_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Quantity in ml
    quantity = db.Column(db.Integer, nullable=False)
    price = db.Column(db.Numeric(10, 2), nullable=False)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<MilkRate id={self.id} quantity={self.quantity} price={self.price}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "quantity": self.quantity,
            "price": to_money(self.price),
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }

    def to_summary_dict(self) -> dict:
        return {"quantity": self.quantity, "price": to_money(self.price)}
