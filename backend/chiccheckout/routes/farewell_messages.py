# backend/chiccheckout/routes/farewell_messages.py
from flask import Blueprint, request

from ..errors import PosError
from ..models import FarewellMessage
from ..validation import ModelValidationPolicy, validate_payload, ValidationError
from ..decorators import require_actor
from ..services import farewell_service

FAREWELL_POLICY = ModelValidationPolicy(
    writable_fields={"message", "is_active", "display_order"},
    required_on_create={"message"},
)

farewell_bp = Blueprint("farewell_messages", __name__, url_prefix="/api/farewell-messages")


@farewell_bp.get("")
def list_messages():
    rows = farewell_service.list_messages()
    return {"items": [r.to_dict() for r in rows], "count": len(rows)}


@farewell_bp.get("/random")
def random_message():
    return {"message": farewell_service.random_active_message()}


@farewell_bp.post("")
@require_actor
def create_message():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=FarewellMessage, payload=payload, policy=FAREWELL_POLICY, partial=False)
    except ValidationError as e:
        return e.to_dict(), 422

    row = farewell_service.create_message(
        patch["message"],
        display_order=patch.get("display_order"),
        is_active=patch.get("is_active", True),
    )
    return {"farewell_message": row.to_dict()}, 201


@farewell_bp.put("/<int:message_id>")
@require_actor
def update_message(message_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=FarewellMessage, payload=payload, policy=FAREWELL_POLICY, partial=True)
        row = farewell_service.update_message(message_id, patch)
    except ValidationError as e:
        return e.to_dict(), 422
    except PosError as e:
        return e.to_dict(), e.status_code
    return {"farewell_message": row.to_dict()}


@farewell_bp.delete("/<int:message_id>")
@require_actor
def delete_message(message_id: int):
    try:
        farewell_service.delete_message(message_id)
    except PosError as e:
        return e.to_dict(), e.status_code
    return {"ok": True}
