from __future__ import annotations

from sqlalchemy import func

from ..errors import PosError
from ..extensions import db
from ..models import FarewellMessage


class FarewellMessageNotFound(PosError):
    status_code = 404


def random_active_message() -> str | None:
    """One randomly chosen active message, or None when none are active."""
    row = (
        db.session.query(FarewellMessage)
        .filter_by(is_active=True)
        .order_by(func.random())
        .first()
    )
    return row.message if row else None


def list_messages() -> list[FarewellMessage]:
    return (
        db.session.query(FarewellMessage)
        .order_by(FarewellMessage.display_order.asc(), FarewellMessage.id.asc())
        .all()
    )


def _get(message_id: int) -> FarewellMessage:
    row = db.session.query(FarewellMessage).filter_by(id=message_id).first()
    if row is None:
        raise FarewellMessageNotFound(
            f"Farewell message {message_id} not found",
            details={"message_id": message_id},
        )
    return row


def create_message(
    message: str,
    display_order: int | None = None,
    is_active: bool = True,
) -> FarewellMessage:
    if display_order is None:
        current_max = db.session.query(func.max(FarewellMessage.display_order)).scalar()
        display_order = (current_max or 0) + 1
    row = FarewellMessage(message=message, display_order=display_order, is_active=is_active)
    db.session.add(row)
    db.session.commit()
    return row


def update_message(message_id: int, data: dict) -> FarewellMessage:
    row = _get(message_id)
    for key in ("message", "is_active", "display_order"):
        if key in data:
            setattr(row, key, data[key])
    db.session.commit()
    return row


def delete_message(message_id: int) -> None:
    row = _get(message_id)
    db.session.delete(row)
    db.session.commit()
