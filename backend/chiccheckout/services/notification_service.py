"""
Outbound notifications for completed sales and captured feedback.

Delivery is a single HTTP POST of {"event": <kind>, "data": {...}} to
NOTIFICATION_WEBHOOK_URL. The downstream automation turns email_receipt
events into customer emails.

Contract:
- No webhook configured: silent no-op.
- Failures (transport errors, non-2xx) are logged and never raised.
- Called only after the triggering DB transaction has committed.
- Bounded by NOTIFICATION_TIMEOUT_SECONDS; no retry.
"""
from __future__ import annotations

import logging
import threading

import httpx
from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..models import CustomerFeedback, Transaction
from ..time_utils import to_utc_z

logger = logging.getLogger(__name__)

EMAIL_RECEIPT = "email_receipt"
CUSTOMER_FEEDBACK = "customer_feedback"


def _deliver(url: str, body: dict, timeout: float) -> bool:
    try:
        response = httpx.post(url, json=body, timeout=timeout)
        response.raise_for_status()
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        logger.error("Failed to deliver %s notification: %s", body.get("event"), exc)
        return False
    logger.info("Delivered %s notification (status %s)", body.get("event"), response.status_code)
    return True


def notify(event_kind: str, payload: dict) -> None:
    """
    Fire-and-forget webhook delivery.

    With NOTIFICATION_ASYNC (default) the POST runs on a daemon thread so
    webhook latency never reaches the caller. Payloads must be plain JSON
    data built before this call; the thread has no DB session.
    """
    cfg = current_app.config
    url = cfg.get("NOTIFICATION_WEBHOOK_URL")
    if not url:
        return

    body = {"event": event_kind, "data": payload}
    timeout = float(cfg.get("NOTIFICATION_TIMEOUT_SECONDS", 5))

    if cfg.get("NOTIFICATION_ASYNC", True):
        worker = threading.Thread(
            target=_deliver,
            args=(url, body, timeout),
            name=f"notify-{event_kind}",
            daemon=True,
        )
        worker.start()
    else:
        _deliver(url, body, timeout)


def receipt_payload(txn: Transaction) -> dict:
    return {
        "transaction_id": txn.id,
        "transaction_number": txn.transaction_number,
        "customer_name": txn.customer_name,
        "customer_email": txn.customer_email,
        "subtotal_cents": txn.subtotal_cents,
        "discount_cents": txn.discount_cents,
        "tax_cents": txn.tax_cents,
        "total_cents": txn.total_cents,
        "amount_paid_cents": txn.amount_paid_cents,
        "change_cents": txn.change_cents,
        "payment_method": txn.payment_method,
        "items": [
            {
                "product_name": item.product.name if item.product else None,
                "quantity": item.quantity,
                "unit_price_cents": item.unit_price_cents,
                "line_total_cents": item.line_total_cents,
            }
            for item in txn.items
        ],
        "created_at": to_utc_z(txn.created_at),
    }


def feedback_payload(feedback: CustomerFeedback) -> dict:
    return {
        "feedback_id": feedback.id,
        "transaction_id": feedback.transaction_id,
        "rating": feedback.rating,
        "comments": feedback.comments,
        "customer_email": feedback.customer_email,
        "created_at": to_utc_z(feedback.created_at),
    }


def _send(event_kind: str, build_payload, subject) -> None:
    # Called after commit: payload errors are logged, never raised.
    try:
        payload = build_payload(subject)
    except SQLAlchemyError:
        logger.exception("Could not build %s notification", event_kind)
        return
    notify(event_kind, payload)


def send_email_receipt(txn: Transaction) -> None:
    if not txn.customer_email:
        return
    _send(EMAIL_RECEIPT, receipt_payload, txn)


def send_feedback_notification(feedback: CustomerFeedback) -> None:
    _send(CUSTOMER_FEEDBACK, feedback_payload, feedback)
