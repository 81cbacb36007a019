"""
Sale Transaction Coordinator

Turns a validated cart into a committed, immutable Transaction. Everything
from the stock check to the last ledger entry happens in one DB transaction;
notifications and the farewell message come after the commit.
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..errors import InsufficientPayment, InsufficientStock, PosError, PersistenceFailure, TransactionNotFound
from ..models import Transaction, TransactionItem
from ..time_utils import day_bounds, utcnow
from ..validation import SaleRequest
from . import discount_service, farewell_service, inventory_service, notification_service
from .concurrency import begin_write_transaction, run_with_retry
from .sequence_service import next_transaction_number


SALE_REASON = "Sale transaction"
STATUS_COMPLETED = "completed"


@dataclass(frozen=True)
class SaleTotals:
    subtotal_cents: int
    discount_cents: int
    tax_cents: int
    total_cents: int


@dataclass(frozen=True)
class SaleResult:
    transaction: Transaction
    farewell_message: str | None


def compute_totals(subtotal_cents: int, discount_cents: int, tax_rate_bps: int) -> SaleTotals:
    """
    tax   = (subtotal - discount) * rate, rounded half-up to the cent
    total = subtotal - discount + tax
    """
    taxable = subtotal_cents - discount_cents
    if taxable > 0:
        tax = (taxable * tax_rate_bps + 5_000) // 10_000
    else:
        tax = 0
    return SaleTotals(
        subtotal_cents=subtotal_cents,
        discount_cents=discount_cents,
        tax_cents=tax,
        total_cents=taxable + tax,
    )


def _record_sale_locked(request: SaleRequest, user_id: int | None) -> Transaction:
    # 1. lock every product and check stock against its current price
    priced_lines = []
    insufficient = []
    for line in request.lines:
        product = inventory_service.load_product_for_update(line.product_id, require_active=True)
        if line.quantity > product.stock_quantity:
            insufficient.append({
                "product_id": product.id,
                "name": product.name,
                "requested_quantity": line.quantity,
                "on_hand": product.stock_quantity,
            })
        priced_lines.append((product, line.quantity, product.price_cents))

    if insufficient:
        names = ", ".join(item["name"] for item in insufficient)
        raise InsufficientStock(
            f"Insufficient stock for product: {names}",
            details={"items": insufficient},
        )

    subtotal = sum(price * qty for _, qty, price in priced_lines)

    # 2. discount
    discount_cents = 0
    if request.discount_id is not None:
        discount = discount_service.get_discount(request.discount_id)
        discount_cents = discount_service.evaluate_with_config(discount, subtotal)

    # 3-5. tax, total, payment, change
    totals = compute_totals(subtotal, discount_cents, current_app.config["TAX_RATE_BPS"])
    if request.amount_paid_cents < totals.total_cents:
        raise InsufficientPayment(
            "Insufficient payment amount",
            details={
                "total_cents": totals.total_cents,
                "amount_paid_cents": request.amount_paid_cents,
            },
        )

    # 6. number, header, items, ledger
    now = utcnow()
    txn = Transaction(
        transaction_number=next_transaction_number(now.date()),
        user_id=user_id,
        customer_name=request.customer_name,
        customer_email=request.customer_email,
        subtotal_cents=totals.subtotal_cents,
        discount_cents=totals.discount_cents,
        tax_cents=totals.tax_cents,
        total_cents=totals.total_cents,
        amount_paid_cents=request.amount_paid_cents,
        change_cents=request.amount_paid_cents - totals.total_cents,
        payment_method=request.payment_method,
        discount_id=request.discount_id,
        status=STATUS_COMPLETED,
        created_at=now,
    )
    db.session.add(txn)
    db.session.flush()

    for product, qty, price in priced_lines:
        db.session.add(TransactionItem(
            transaction_id=txn.id,
            product_id=product.id,
            quantity=qty,
            unit_price_cents=price,
            line_total_cents=price * qty,
        ))
        inventory_service.apply_movement(
            product,
            movement_type=inventory_service.OUT,
            quantity=qty,
            reason=SALE_REASON,
            user_id=user_id,
            reference_number=txn.transaction_number,
            policy=inventory_service.POLICY_REJECT,
        )

    return txn


def create_sale(request: SaleRequest, user_id: int | None) -> SaleResult:
    """
    Process a checkout atomically.

    Raises ProductNotFound, InsufficientStock, DiscountNotFound,
    InsufficientPayment (nothing written) or PersistenceFailure (commit
    failed, rolled back). Lock conflicts are retried internally with a
    fresh read of stock; business failures are never retried.
    """
    def _op():
        begin_write_transaction()
        try:
            txn = _record_sale_locked(request, user_id)
        except PosError:
            db.session.rollback()
            raise
        db.session.commit()
        return txn

    try:
        txn = run_with_retry(_op)
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Sale commit failed")
        raise PersistenceFailure("Sale could not be saved") from exc

    current_app.logger.info(
        "Sale %s committed: total_cents=%s items=%s",
        txn.transaction_number,
        txn.total_cents,
        len(request.lines),
    )

    # 7. best-effort, outside the atomic unit
    if txn.customer_email:
        notification_service.send_email_receipt(txn)

    return SaleResult(transaction=txn, farewell_message=farewell_service.random_active_message())


def get_transaction(transaction_id: int) -> Transaction:
    txn = db.session.query(Transaction).filter_by(id=transaction_id).first()
    if txn is None:
        raise TransactionNotFound(
            f"Transaction {transaction_id} not found",
            details={"transaction_id": transaction_id},
        )
    return txn


def list_transactions(
    *,
    date_from=None,
    date_to=None,
    user_id: int | None = None,
    status: str | None = None,
    page: int = 1,
    per_page: int = 15,
) -> dict:
    """Newest first. date_from/date_to are inclusive calendar dates."""
    q = db.session.query(Transaction)
    if date_from is not None:
        q = q.filter(Transaction.created_at >= day_bounds(date_from)[0])
    if date_to is not None:
        q = q.filter(Transaction.created_at < day_bounds(date_to)[1])
    if user_id is not None:
        q = q.filter(Transaction.user_id == user_id)
    if status:
        q = q.filter(Transaction.status == status)

    per_page = max(1, min(per_page, 100))
    page = max(1, page)
    total = q.count()
    rows = (
        q.order_by(Transaction.created_at.desc(), Transaction.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
        .all()
    )
    return {
        "items": [row.to_dict() for row in rows],
        "page": page,
        "per_page": per_page,
        "total": total,
        "pages": (total + per_page - 1) // per_page,
    }
