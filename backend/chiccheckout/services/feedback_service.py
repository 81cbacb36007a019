from __future__ import annotations

from datetime import date

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import DuplicateFeedback, PosError, TransactionNotFound
from ..models import CustomerFeedback, Transaction
from ..time_utils import day_bounds, utcnow
from ..validation import FeedbackRequest
from . import notification_service


class FeedbackNotFound(PosError):
    status_code = 404


def submit_feedback(request: FeedbackRequest) -> CustomerFeedback:
    """
    Record the single feedback entry for a transaction, then notify.

    The existence check gives a clean DuplicateFeedback; the unique
    constraint on transaction_id catches the concurrent-insert case.
    """
    txn = db.session.query(Transaction).filter_by(id=request.transaction_id).first()
    if txn is None:
        raise TransactionNotFound(
            f"Transaction {request.transaction_id} not found",
            details={"transaction_id": request.transaction_id},
        )

    existing = db.session.query(CustomerFeedback.id).filter_by(transaction_id=txn.id).first()
    if existing is not None:
        raise DuplicateFeedback(
            "Feedback already exists for this transaction",
            details={"transaction_id": txn.id},
        )

    feedback = CustomerFeedback(
        transaction_id=txn.id,
        rating=request.rating,
        comments=request.comments,
        customer_email=request.customer_email,
        created_at=utcnow(),
    )
    db.session.add(feedback)
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise DuplicateFeedback(
            "Feedback already exists for this transaction",
            details={"transaction_id": request.transaction_id},
        ) from exc

    current_app.logger.info("Feedback %s recorded for transaction %s", feedback.id, feedback.transaction_id)
    notification_service.send_feedback_notification(feedback)
    return feedback


def get_feedback(feedback_id: int) -> CustomerFeedback:
    feedback = db.session.query(CustomerFeedback).filter_by(id=feedback_id).first()
    if feedback is None:
        raise FeedbackNotFound(f"Feedback {feedback_id} not found", details={"feedback_id": feedback_id})
    return feedback


def list_feedback(
    *,
    rating: int | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    page: int = 1,
    per_page: int = 15,
) -> dict:
    q = db.session.query(CustomerFeedback)
    if rating is not None:
        q = q.filter(CustomerFeedback.rating == rating)
    if date_from is not None:
        q = q.filter(CustomerFeedback.created_at >= day_bounds(date_from)[0])
    if date_to is not None:
        q = q.filter(CustomerFeedback.created_at < day_bounds(date_to)[1])

    per_page = max(1, min(per_page, 100))
    page = max(1, page)
    total = q.count()
    rows = (
        q.order_by(CustomerFeedback.created_at.desc(), CustomerFeedback.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
        .all()
    )
    return {
        "items": [row.to_dict(include_transaction=True) for row in rows],
        "page": page,
        "per_page": per_page,
        "total": total,
        "pages": (total + per_page - 1) // per_page,
    }
