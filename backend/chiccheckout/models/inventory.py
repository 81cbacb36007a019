from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class InventoryMovement(db.Model):
    """
    Append-only stock ledger entry.

    INVARIANTS:
    - IN:         new_stock = previous_stock + quantity
    - OUT:        new_stock = max(0, previous_stock - quantity)
    - ADJUSTMENT: new_stock = requested absolute value,
                  quantity  = abs(new_stock - previous_stock)
    - Rows are never updated or deleted.
    """
    __tablename__ = "inventory_movements"
    __table_args__ = (
        db.Index("ix_movements_product_created", "product_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    movement_type = db.Column(db.String(16), nullable=False, index=True)  # in, out, adjustment
    quantity = db.Column(db.Integer, nullable=False)
    previous_stock = db.Column(db.Integer, nullable=False)
    new_stock = db.Column(db.Integer, nullable=False)

    reason = db.Column(db.String(255), nullable=False)
    reference_number = db.Column(db.String(64), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    product = db.relationship("Product", backref=db.backref("movements", lazy="dynamic"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "user_id": self.user_id,
            "movement_type": self.movement_type,
            "quantity": self.quantity,
            "previous_stock": self.previous_stock,
            "new_stock": self.new_stock,
            "reason": self.reason,
            "reference_number": self.reference_number,
            "created_at": to_utc_z(self.created_at),
        }
