# backend/chiccheckout/services/products_service.py
"""
Catalog service: products and categories.

Stock is never written here. A product's opening stock is posted as an
"in" movement through inventory_service.apply_movement in the same DB
transaction that inserts the product.
"""
from __future__ import annotations

from flask import current_app
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import ProductNotFound
from ..models import Category, Product
from ..validation import ConflictError, ValidationError
from . import inventory_service
from .concurrency import begin_write_transaction

PRODUCT_MUTABLE_FIELDS = {
    "sku",
    "barcode",
    "name",
    "description",
    "category_id",
    "price_cents",
    "cost_cents",
    "min_stock_level",
    "image_url",
    "is_active",
}

INITIAL_STOCK_REASON = "Initial stock"


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def _check_unique(patch: dict, exclude_id: int | None = None) -> None:
    for field in ("sku", "barcode"):
        value = patch.get(field)
        if value is None:
            continue
        q = db.session.query(Product.id).filter(getattr(Product, field) == value)
        if exclude_id is not None:
            q = q.filter(Product.id != exclude_id)
        if q.first() is not None:
            label = "SKU" if field == "sku" else "Barcode"
            raise ConflictError(f"{label} already exists.")


def _check_category(patch: dict) -> None:
    category_id = patch.get("category_id")
    if category_id is None:
        return
    if db.session.query(Category.id).filter_by(id=category_id).first() is None:
        raise ValidationError("Invalid request", {"category_id": "Category not found"})


def get_product(product_id: int) -> Product:
    product = db.session.query(Product).filter_by(id=product_id).first()
    if product is None:
        raise ProductNotFound(f"Product {product_id} not found", details={"product_id": product_id})
    return product


def list_products(
    *,
    category_id: int | None = None,
    active_only: bool = False,
    low_stock: bool = False,
    search: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """
    Product listing with optional filters and pagination.

    search matches name, sku and barcode (case-insensitive substring).
    Without `page` every matching product is returned.
    """
    base_query = db.session.query(Product)
    if category_id is not None:
        base_query = base_query.filter(Product.category_id == category_id)
    if active_only:
        base_query = base_query.filter(Product.is_active.is_(True))
    if low_stock:
        base_query = base_query.filter(Product.stock_quantity <= Product.min_stock_level)
    if search:
        like = f"%{search.strip()}%"
        base_query = base_query.filter(or_(
            Product.name.ilike(like),
            Product.sku.ilike(like),
            Product.barcode.ilike(like),
        ))
    base_query = base_query.order_by(Product.name.asc(), Product.id.asc())

    if page is None:
        products = base_query.all()
        return {
            "items": [p.to_dict() for p in products],
            "count": len(products),
        }

    per_page = min(per_page or 20, 100)
    page = max(page, 1)

    total = base_query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1

    products = base_query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": [p.to_dict() for p in products],
        "count": len(products),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


def get_product_detail(product_id: int, movement_limit: int = 20) -> dict:
    product = get_product(product_id)
    data = product.to_dict()
    data["category"] = product.category.to_dict() if product.category else None
    data["recent_movements"] = [
        m.to_dict() for m in inventory_service.list_movements(product.id, limit=movement_limit)
    ]
    return data


def create_product(*, patch: dict, user_id: int | None) -> Product:
    """
    Insert a product. A positive stock_quantity in the patch becomes the
    opening "in" movement (reference INIT-<sku>); the product row itself
    starts at zero.

    Raises:
        ConflictError: duplicate sku or barcode
        ValidationError: unknown category
    """
    if patch.get("sku") is None:
        raise ValidationError("Invalid request", {"sku": "This field is required"})

    _check_unique(patch)
    _check_category(patch)

    initial_stock = patch.get("stock_quantity") or 0

    begin_write_transaction()
    try:
        p = Product(stock_quantity=0)
        apply_product_patch(p, patch)
        db.session.add(p)
        db.session.flush()

        if initial_stock > 0:
            inventory_service.apply_movement(
                p,
                movement_type=inventory_service.IN,
                quantity=initial_stock,
                reason=INITIAL_STOCK_REASON,
                user_id=user_id,
                reference_number=f"INIT-{p.sku}",
            )
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise ConflictError("SKU or barcode already exists.") from exc

    current_app.logger.info("Product %s created (sku=%s, stock=%s)", p.id, p.sku, p.stock_quantity)
    return p


def update_product(*, product_id: int, patch: dict) -> Product:
    """Metadata update. stock_quantity is not accepted here; use adjust-stock."""
    if "stock_quantity" in patch:
        raise ValidationError(
            "Invalid request",
            {"stock_quantity": "Stock can only be changed through a stock adjustment"},
        )

    product = get_product(product_id)
    _check_unique(patch, exclude_id=product.id)
    _check_category(patch)

    apply_product_patch(product, patch)
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise ConflictError("SKU or barcode already exists.") from exc
    return product


def deactivate_product(*, product_id: int) -> Product:
    """Soft delete: historical items and movements keep their product."""
    product = get_product(product_id)
    product.is_active = False
    db.session.commit()
    return product


def list_categories(active_only: bool = False) -> list[Category]:
    q = db.session.query(Category)
    if active_only:
        q = q.filter(Category.is_active.is_(True))
    return q.order_by(Category.name.asc()).all()


def create_category(*, name: str, description: str | None = None) -> Category:
    name = name.strip() if isinstance(name, str) else ""
    if not name:
        raise ValidationError("Invalid request", {"name": "This field is required"})
    if db.session.query(Category.id).filter(Category.name == name).first() is not None:
        raise ConflictError("Category already exists.")

    category = Category(name=name, description=description)
    db.session.add(category)
    db.session.commit()
    return category
