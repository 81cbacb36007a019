# Overview: Flask API routes for discounts; parses input and returns JSON responses.

# backend/chiccheckout/routes/discounts.py
"""
Discount routes.

discount_type is "percentage" (value in basis points, 1000 = 10%) or "fixed" (value in cents).
Validity windows are inclusive calendar dates.
"""
from flask import Blueprint, request

from ..errors import PosError
from ..models import Discount
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_discount,
    ValidationError,
)
from ..decorators import require_actor
from ..services import discount_service

DISCOUNT_POLICY = ModelValidationPolicy(
    writable_fields={
        "name",
        "description",
        "discount_type",
        "value",
        "min_amount_cents",
        "start_date",
        "end_date",
        "is_active",
    },
    required_on_create={"name", "discount_type", "value", "start_date", "end_date"},
)

discounts_bp = Blueprint("discounts", __name__, url_prefix="/api/discounts")


@discounts_bp.get("")
def list_discounts():
    valid_only = request.args.get("valid_only", "").lower() == "true"
    discounts = discount_service.list_discounts(valid_only=valid_only)
    return {"items": [d.to_dict() for d in discounts], "count": len(discounts)}


@discounts_bp.get("/active")
def list_active_discounts():
    """Discounts usable on a sale today."""
    discounts = discount_service.list_discounts(valid_only=True)
    return {"items": [d.to_dict() for d in discounts], "count": len(discounts)}


@discounts_bp.get("/<int:discount_id>")
def get_discount(discount_id: int):
    try:
        discount = discount_service.get_discount(discount_id)
    except PosError as e:
        return e.to_dict(), e.status_code
    return {"discount": discount.to_dict(), "is_valid": discount_service.is_valid(discount)}


@discounts_bp.post("")
@require_actor
def create_discount():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Discount, payload=payload, policy=DISCOUNT_POLICY, partial=False)
        enforce_rules_discount(patch)
    except ValidationError as e:
        return e.to_dict(), 422

    discount = discount_service.create_discount(patch)
    return {"discount": discount.to_dict()}, 201


@discounts_bp.put("/<int:discount_id>")
@require_actor
def update_discount(discount_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        existing = discount_service.get_discount(discount_id)
        patch = validate_payload(model=Discount, payload=payload, policy=DISCOUNT_POLICY, partial=True)
        enforce_rules_discount(patch, existing=existing)
        discount = discount_service.update_discount(discount_id, patch)
    except ValidationError as e:
        return e.to_dict(), 422
    except PosError as e:
        return e.to_dict(), e.status_code
    return {"discount": discount.to_dict()}


@discounts_bp.delete("/<int:discount_id>")
@require_actor
def deactivate_discount(discount_id: int):
    try:
        discount = discount_service.deactivate_discount(discount_id)
    except PosError as e:
        return e.to_dict(), e.status_code
    return {"discount": discount.to_dict()}
