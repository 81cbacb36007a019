from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class CustomerFeedback(db.Model):
    """Post-sale rating. At most one row per transaction."""
    __tablename__ = "customer_feedback"
    __table_args__ = (
        db.CheckConstraint("rating >= 1 AND rating <= 5", name="ck_feedback_rating_range"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey("transactions.id"), nullable=False, unique=True)

    rating = db.Column(db.Integer, nullable=False)
    comments = db.Column(db.String(1000), nullable=True)
    customer_email = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    transaction = db.relationship("Transaction", backref=db.backref("feedback", uselist=False))

    def to_dict(self, include_transaction: bool = False) -> dict:
        data = {
            "id": self.id,
            "transaction_id": self.transaction_id,
            "rating": self.rating,
            "comments": self.comments,
            "customer_email": self.customer_email,
            "created_at": to_utc_z(self.created_at),
        }
        if include_transaction and self.transaction is not None:
            data["transaction"] = self.transaction.to_dict(include_items=False)
        return data


class FarewellMessage(db.Model):
    """Closing message shown to the cashier/customer after a sale."""
    __tablename__ = "farewell_messages"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    message = db.Column(db.String(500), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    display_order = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "message": self.message,
            "is_active": self.is_active,
            "display_order": self.display_order,
            "created_at": to_utc_z(self.created_at),
        }
