# backend/chiccheckout/routes/categories.py
from flask import Blueprint, request

from ..validation import ValidationError, ConflictError
from ..decorators import require_actor
from ..services import products_service

categories_bp = Blueprint("categories", __name__, url_prefix="/api/categories")


@categories_bp.get("")
def list_categories():
    active_only = request.args.get("active_only", "").lower() == "true"
    categories = products_service.list_categories(active_only=active_only)
    return {"items": [c.to_dict() for c in categories], "count": len(categories)}


@categories_bp.post("")
@require_actor
def create_category():
    payload = request.get_json(silent=True) or {}
    try:
        category = products_service.create_category(
            name=payload.get("name"),
            description=payload.get("description"),
        )
    except ValidationError as e:
        return e.to_dict(), 422
    except ConflictError as e:
        return {"error": str(e)}, 409
    return {"category": category.to_dict()}, 201
