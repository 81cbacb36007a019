from __future__ import annotations

from datetime import date

from flask import current_app

from ..extensions import db
from ..errors import DiscountNotFound
from ..models import Discount
from ..time_utils import today as business_today


PERCENTAGE = "percentage"
FIXED = "fixed"


def _round_half_up(numerator: int, denominator: int) -> int:
    # nearest-cent rounding (half-up) for non-negative amounts
    return (numerator + (denominator // 2)) // denominator


def is_valid(discount: Discount, on: date | None = None) -> bool:
    """Active flag plus inclusive [start_date, end_date] window."""
    on = on or business_today()
    if not discount.is_active:
        return False
    if discount.start_date is None or discount.end_date is None:
        return False
    return discount.start_date <= on <= discount.end_date


def evaluate(
    discount: Discount,
    subtotal_cents: int,
    *,
    on: date | None = None,
    clamp_fixed: bool = True,
) -> int:
    """
    Discount amount in cents for a subtotal. Pure: no reads, no writes.

    Returns 0 when the discount is not valid on `on` or the subtotal is
    below min_amount_cents. Percentage values are basis points.
    """
    if subtotal_cents <= 0 or not is_valid(discount, on):
        return 0

    if discount.min_amount_cents and subtotal_cents < discount.min_amount_cents:
        return 0

    if discount.discount_type == PERCENTAGE:
        return min(_round_half_up(subtotal_cents * discount.value, 10_000), subtotal_cents)

    amount = max(discount.value or 0, 0)
    if clamp_fixed:
        amount = min(amount, subtotal_cents)
    return amount


def evaluate_with_config(discount: Discount, subtotal_cents: int) -> int:
    return evaluate(
        discount,
        subtotal_cents,
        clamp_fixed=current_app.config.get("CLAMP_FIXED_DISCOUNTS", True),
    )


def get_discount(discount_id: int) -> Discount:
    discount = db.session.query(Discount).filter_by(id=discount_id).first()
    if discount is None:
        raise DiscountNotFound(f"Discount {discount_id} not found", details={"discount_id": discount_id})
    return discount


def list_discounts(valid_only: bool = False, on: date | None = None) -> list[Discount]:
    q = db.session.query(Discount)
    if valid_only:
        on = on or business_today()
        q = q.filter(
            Discount.is_active.is_(True),
            Discount.start_date <= on,
            Discount.end_date >= on,
        )
    return q.order_by(Discount.start_date.desc(), Discount.id.desc()).all()


def create_discount(data: dict) -> Discount:
    discount = Discount(
        name=data['name'],
        description=data.get('description'),
        discount_type=data['discount_type'],
        value=data['value'],
        min_amount_cents=data.get('min_amount_cents'),
        start_date=data['start_date'],
        end_date=data['end_date'],
        is_active=data.get('is_active', True),
    )
    db.session.add(discount)
    db.session.commit()
    return discount


def update_discount(discount_id: int, data: dict) -> Discount:
    discount = get_discount(discount_id)
    for key in ('name', 'description', 'discount_type', 'value', 'min_amount_cents',
                'start_date', 'end_date', 'is_active'):
        if key in data:
            setattr(discount, key, data[key])
    db.session.commit()
    return discount


def deactivate_discount(discount_id: int) -> Discount:
    discount = get_discount(discount_id)
    discount.is_active = False
    db.session.commit()
    return discount
