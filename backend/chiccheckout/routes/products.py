# Overview: Flask API routes for products; parses input and returns JSON responses.

# backend/chiccheckout/routes/products.py
"""
Product catalog routes.

Writes require an acting user (X-Actor-Id). Stock is only changed through
POST /<id>/adjust-stock, which goes through the inventory ledger.
"""
from flask import Blueprint, current_app, g, request

from ..errors import PosError
from ..models import Product
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
    parse_stock_adjustment,
    ValidationError,
    ConflictError,
)
from ..decorators import require_actor
from ..services import inventory_service, products_service

PRODUCT_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={
        "sku",
        "barcode",
        "name",
        "description",
        "category_id",
        "price_cents",
        "cost_cents",
        "stock_quantity",
        "min_stock_level",
        "image_url",
        "is_active",
    },
    required_on_create={"sku", "name", "price_cents"},
)

PRODUCT_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields=PRODUCT_CREATE_POLICY.writable_fields - {"stock_quantity"},
    required_on_create=set(),
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
def list_products():
    """
    Query params:
    - category_id: int
    - active_only: "true" to hide deactivated products
    - low_stock: "true" for stock_quantity <= min_stock_level
    - search: substring of name, sku or barcode
    - page / per_page: optional pagination (per_page max 100)
    """
    return products_service.list_products(
        category_id=request.args.get("category_id", type=int),
        active_only=request.args.get("active_only", "").lower() == "true",
        low_stock=request.args.get("low_stock", "").lower() == "true",
        search=request.args.get("search"),
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
    )


@products_bp.get("/low-stock")
def low_stock_report():
    limit = request.args.get("limit", type=int) or current_app.config["LOW_STOCK_REPORT_LIMIT"]
    products = inventory_service.get_low_stock_products(limit=limit)
    return {"items": [p.to_dict() for p in products], "count": len(products)}


@products_bp.get("/<int:product_id>")
def get_product(product_id: int):
    try:
        return {"product": products_service.get_product_detail(product_id)}
    except PosError as e:
        return e.to_dict(), e.status_code


@products_bp.post("")
@require_actor
def create_product_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_CREATE_POLICY, partial=False)
        enforce_rules_product(patch)
        created = products_service.create_product(patch=patch, user_id=g.current_user.id)
    except ValidationError as e:
        return e.to_dict(), 422
    except ConflictError as e:
        return {"error": str(e)}, 409
    except Exception:
        current_app.logger.exception("Product create failed")
        return {"error": "Internal server error"}, 500

    return {"product": created.to_dict()}, 201


@products_bp.put("/<int:product_id>")
@require_actor
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_UPDATE_POLICY, partial=True)
        enforce_rules_product(patch)
        updated = products_service.update_product(product_id=product_id, patch=patch)
    except ValidationError as e:
        return e.to_dict(), 422
    except ConflictError as e:
        return {"error": str(e)}, 409
    except PosError as e:
        return e.to_dict(), e.status_code

    return {"product": updated.to_dict()}


@products_bp.delete("/<int:product_id>")
@require_actor
def deactivate_product_route(product_id: int):
    """Soft delete; the product stays referenced by past sales."""
    try:
        product = products_service.deactivate_product(product_id=product_id)
    except PosError as e:
        return e.to_dict(), e.status_code
    return {"product": product.to_dict()}


@products_bp.post("/<int:product_id>/adjust-stock")
@require_actor
def adjust_stock_route(product_id: int):
    """
    Manual stock movement.

    Body: {"type": "in"|"out"|"adjustment", "quantity": int >= 1,
           "reason": str, "reference_number": str?}

    "adjustment" sets stock to `quantity`; "out" beyond on-hand follows
    STOCK_OUT_POLICY.
    """
    payload = request.get_json(silent=True)

    try:
        adjustment = parse_stock_adjustment(payload)
        change = inventory_service.adjust_stock(
            product_id=product_id,
            movement_type=adjustment.movement_type,
            quantity=adjustment.quantity,
            reason=adjustment.reason,
            user_id=g.current_user.id,
            reference_number=adjustment.reference_number,
        )
    except ValidationError as e:
        return e.to_dict(), 422
    except PosError as e:
        return e.to_dict(), e.status_code
    except Exception:
        current_app.logger.exception("Stock adjustment failed for product %s", product_id)
        return {"error": "Internal server error"}, 500

    product = products_service.get_product(product_id)
    return {
        "product": product.to_dict(),
        "previous_stock": change.previous_stock,
        "new_stock": change.new_stock,
        "movement": change.movement.to_dict(),
    }
