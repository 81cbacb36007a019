# Overview: Stock ledger. Sole writer of Product.stock_quantity.

# backend/chiccheckout/services/inventory_service.py

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..extensions import db
from ..errors import InsufficientStock, InvalidQuantity, PosError, ProductNotFound
from ..models import InventoryMovement, Product
from ..time_utils import utcnow
from .concurrency import begin_write_transaction, lock_for_update, run_with_retry
"""
Inventory Ledger Invariants (authoritative)

Stock model:
- Product.stock_quantity is the current on-hand figure.
- It is written only through this module; catalog edits never touch it.
- Every write appends exactly one InventoryMovement in the same DB transaction.

Movement semantics:
- IN:         new = previous + quantity
- OUT:        new = previous - quantity; when quantity > previous the
              STOCK_OUT_POLICY decides: "clamp" -> new = 0,
              "reject" -> InsufficientStock
- ADJUSTMENT: quantity is the desired absolute stock; the recorded
              movement quantity is abs(new - previous)
- quantity must be a positive integer for every type.

Audit:
- Movements are append-only (no updates/deletes).
"""


IN = "in"
OUT = "out"
ADJUSTMENT = "adjustment"
MOVEMENT_TYPES = (IN, OUT, ADJUSTMENT)

POLICY_CLAMP = "clamp"
POLICY_REJECT = "reject"


@dataclass(frozen=True)
class StockChange:
    product_id: int
    previous_stock: int
    new_stock: int
    movement: InventoryMovement


def _normalize_type(movement_type: str) -> str:
    normalized = (movement_type or "").lower()
    if normalized not in MOVEMENT_TYPES:
        raise ValueError(f"movement_type must be one of {', '.join(MOVEMENT_TYPES)}")
    return normalized


def _stock_out_policy() -> str:
    policy = current_app.config.get("STOCK_OUT_POLICY", POLICY_CLAMP)
    if policy not in (POLICY_CLAMP, POLICY_REJECT):
        raise ValueError(f"Unknown STOCK_OUT_POLICY {policy!r}")
    return policy


def compute_new_stock(movement_type: str, previous: int, quantity: int, *, policy: str = POLICY_CLAMP) -> tuple[int, int]:
    """
    Pure stock arithmetic. Returns (new_stock, recorded_quantity).

    Raises InvalidQuantity for non-positive quantities and InsufficientStock
    for over-draws under the reject policy.
    """
    movement_type = _normalize_type(movement_type)
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise InvalidQuantity(
            "quantity must be a positive integer",
            details={"quantity": quantity},
        )

    if movement_type == IN:
        return previous + quantity, quantity

    if movement_type == OUT:
        if quantity > previous:
            if policy == POLICY_REJECT:
                raise InsufficientStock(
                    "Insufficient stock for stock-out",
                    details={"requested_quantity": quantity, "on_hand": previous},
                )
            return 0, quantity
        return previous - quantity, quantity

    return quantity, abs(quantity - previous)


def load_product_for_update(product_id: int, *, require_active: bool = False) -> Product:
    product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
    if product is None:
        raise ProductNotFound(f"Product {product_id} not found", details={"product_id": product_id})
    if require_active and not product.is_active:
        raise ProductNotFound(f"Product {product_id} is not available", details={"product_id": product_id})
    return product


def apply_movement(
    product: Product,
    *,
    movement_type: str,
    quantity: int,
    reason: str,
    user_id: int | None,
    reference_number: str | None = None,
    policy: str | None = None,
) -> StockChange:
    """
    Core ledger write without locking, retry, or commit.

    The caller must hold the product row (load_product_for_update) and owns
    the surrounding transaction. Used by adjust_stock() and by the sale
    coordinator so a sale's decrements commit with the sale itself.
    """
    movement_type = _normalize_type(movement_type)
    previous = product.stock_quantity
    new_stock, recorded_qty = compute_new_stock(
        movement_type,
        previous,
        quantity,
        policy=policy or _stock_out_policy(),
    )

    product.stock_quantity = new_stock

    movement = InventoryMovement(
        product_id=product.id,
        user_id=user_id,
        movement_type=movement_type,
        quantity=recorded_qty,
        previous_stock=previous,
        new_stock=new_stock,
        reason=reason,
        reference_number=reference_number,
        created_at=utcnow(),
    )
    db.session.add(movement)
    db.session.flush()

    return StockChange(
        product_id=product.id,
        previous_stock=previous,
        new_stock=new_stock,
        movement=movement,
    )


def adjust_stock(
    *,
    product_id: int,
    movement_type: str,
    quantity: int,
    reason: str,
    user_id: int | None,
    reference_number: str | None = None,
) -> StockChange:
    """
    Manual stock-in, stock-out, or absolute adjustment.

    Locks the product row, applies the movement, and commits the stock
    update together with its ledger entry. Returns previous/new stock.
    """
    def _op():
        begin_write_transaction()
        try:
            product = load_product_for_update(product_id)
            change = apply_movement(
                product,
                movement_type=movement_type,
                quantity=quantity,
                reason=reason,
                user_id=user_id,
                reference_number=reference_number,
            )
        except (PosError, ValueError):
            db.session.rollback()
            raise
        db.session.commit()
        return change

    return run_with_retry(_op)


def list_movements(product_id: int, limit: int = 50) -> list[InventoryMovement]:
    return (
        db.session.query(InventoryMovement)
        .filter_by(product_id=product_id)
        .order_by(InventoryMovement.created_at.desc(), InventoryMovement.id.desc())
        .limit(limit)
        .all()
    )


def get_low_stock_products(limit: int | None = None) -> list[Product]:
    q = (
        db.session.query(Product)
        .filter(
            Product.is_active.is_(True),
            Product.stock_quantity <= Product.min_stock_level,
        )
        .order_by(Product.stock_quantity.asc(), Product.name.asc())
    )
    if limit:
        q = q.limit(limit)
    return q.all()
