from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from sqlalchemy import Boolean, Date, Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .time_utils import parse_iso_date


# Maximum price: $9,999,999.99 (999,999,999 cents)
MAX_PRICE_CENTS = 999_999_999

# Percentages are basis points; 10000 = 100%
MAX_PERCENTAGE_BPS = 10_000

PAYMENT_METHODS = ("cash", "card", "digital_wallet")
MOVEMENT_TYPES = ("in", "out", "adjustment")
DISCOUNT_TYPES = ("percentage", "fixed")

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class ValidationError(ValueError):
    """422-level input problem. `errors` maps field name -> message."""

    def __init__(self, message: str, errors: dict[str, str] | None = None):
        super().__init__(message)
        self.errors = errors or {}

    def to_dict(self) -> dict:
        body = {"error": str(self)}
        if self.errors:
            body["errors"] = self.errors
        return body


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate SKU)."""


class _ErrorCollector:
    """Accumulates field errors so one response reports every bad field."""

    def __init__(self):
        self.errors: dict[str, str] = {}

    def add(self, field: str, message: str) -> None:
        self.errors.setdefault(field, message)

    def raise_if_any(self, message: str = "Invalid request") -> None:
        if self.errors:
            raise ValidationError(message, errors=dict(self.errors))


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_int(key: str, value: Any) -> int:
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    # String input - must be plain digits (with optional leading minus)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{key} must be an integer")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if 'e' in stripped.lower():
            raise ValidationError(f"{key} must be a plain integer (scientific notation not allowed)")
        # Reject decimal points (e.g., "12.5")
        if '.' in stripped:
            raise ValidationError(f"{key} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{key} must be an integer")
    # Reject floats explicitly
    if isinstance(value, float):
        raise ValidationError(f"{key} must be an integer, not a decimal")
    raise ValidationError(f"{key} must be an integer")


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return _coerce_int(col.key, value)

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise ValidationError(f"{col.key} must be a boolean")

    # Dates (accept YYYY-MM-DD strings)
    if isinstance(coltype, Date):
        if isinstance(value, date) and not isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                parsed = parse_iso_date(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be a YYYY-MM-DD date")
            if parsed is None:
                raise ValidationError(f"{col.key} must be a YYYY-MM-DD date")
            return parsed
        raise ValidationError(f"{col.key} must be a date")

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    Every problem is collected into ValidationError.errors before raising.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    collector = _ErrorCollector()

    required = policy.required_on_create or set()
    if not partial:
        for f in sorted(required):
            if f not in payload:
                collector.add(f, "This field is required")

    cols = _columns_by_key(model)

    patch: dict = {}

    for k, raw in payload.items():
        # Reject unknown / non-writable fields
        if k not in policy.writable_fields or k not in cols:
            collector.add(k, "Field not allowed")
            continue

        col = cols[k]

        if raw is None:
            if not col.nullable:
                collector.add(k, "Cannot be null")
                continue
            patch[k] = None
            continue

        try:
            val = _coerce_value(col, raw)
        except ValidationError as e:
            collector.add(k, str(e))
            continue

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                collector.add(k, "Cannot be blank")
                continue

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                collector.add(k, f"Exceeds max length {col.type.length}")
                continue

        patch[k] = val

    collector.raise_if_any()
    return patch


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    collector = _ErrorCollector()
    for key in ("price_cents", "cost_cents"):
        if patch.get(key) is None:
            continue
        if patch[key] < 0:
            collector.add(key, "Must be >= 0")
        elif patch[key] > MAX_PRICE_CENTS:
            collector.add(key, f"Cannot exceed {MAX_PRICE_CENTS} (${MAX_PRICE_CENTS / 100:,.2f})")
    for key in ("stock_quantity", "min_stock_level"):
        if patch.get(key) is not None and patch[key] < 0:
            collector.add(key, "Must be >= 0")
    collector.raise_if_any()


def enforce_rules_discount(patch: dict, *, existing=None) -> None:
    """
    Cross-field discount rules. `existing` supplies unchanged values on update.
    """
    collector = _ErrorCollector()

    def current(key):
        if key in patch:
            return patch[key]
        return getattr(existing, key, None) if existing is not None else None

    discount_type = current("discount_type")
    if "discount_type" in patch:
        normalized = str(patch["discount_type"]).lower()
        if normalized not in DISCOUNT_TYPES:
            collector.add("discount_type", f"Must be one of {', '.join(DISCOUNT_TYPES)}")
        else:
            patch["discount_type"] = normalized
            discount_type = normalized

    value = current("value")
    if value is not None:
        if value < 0:
            collector.add("value", "Must be >= 0")
        elif discount_type == "percentage" and value > MAX_PERCENTAGE_BPS:
            collector.add("value", f"Percentage cannot exceed {MAX_PERCENTAGE_BPS} basis points")

    if patch.get("min_amount_cents") is not None and patch["min_amount_cents"] < 0:
        collector.add("min_amount_cents", "Must be >= 0")

    start, end = current("start_date"), current("end_date")
    if start is not None and end is not None and end <= start:
        collector.add("end_date", "Must be after start_date")

    collector.raise_if_any()


# =============================================================================
# Operation request structures
# =============================================================================

@dataclass(frozen=True)
class CartLine:
    product_id: int
    quantity: int


@dataclass(frozen=True)
class SaleRequest:
    lines: tuple[CartLine, ...]
    payment_method: str
    amount_paid_cents: int
    customer_name: str | None = None
    customer_email: str | None = None
    discount_id: int | None = None


@dataclass(frozen=True)
class StockAdjustmentRequest:
    movement_type: str
    quantity: int
    reason: str
    reference_number: str | None = None


@dataclass(frozen=True)
class FeedbackRequest:
    transaction_id: int
    rating: int
    comments: str | None = None
    customer_email: str | None = None


def _reject_unknown(payload: dict, allowed: set[str], collector: _ErrorCollector) -> None:
    for key in payload:
        if key not in allowed:
            collector.add(key, "Field not allowed")


def _optional_str(payload: dict, key: str, max_len: int, collector: _ErrorCollector) -> str | None:
    raw = payload.get(key)
    if raw is None:
        return None
    if not isinstance(raw, str):
        collector.add(key, "Must be a string")
        return None
    value = raw.strip()
    if len(value) > max_len:
        collector.add(key, f"Exceeds max length {max_len}")
        return None
    return value or None


def _optional_email(payload: dict, key: str, collector: _ErrorCollector) -> str | None:
    value = _optional_str(payload, key, 255, collector)
    if value is not None and not _EMAIL_RE.match(value):
        collector.add(key, "Must be a valid email address")
        return None
    return value


def _required_int(payload: dict, key: str, collector: _ErrorCollector, *, minimum: int | None = None) -> int | None:
    if payload.get(key) is None:
        collector.add(key, "This field is required")
        return None
    try:
        value = _coerce_int(key, payload[key])
    except ValidationError as e:
        collector.add(key, str(e))
        return None
    if minimum is not None and value < minimum:
        collector.add(key, f"Must be >= {minimum}")
        return None
    return value


def parse_sale_request(payload: Any) -> SaleRequest:
    """
    Validate a checkout payload.

    Lines for the same product are merged (quantities summed, first-seen
    order kept) so each distinct product yields one item and one movement.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    collector = _ErrorCollector()
    _reject_unknown(
        payload,
        {"items", "payment_method", "amount_paid_cents", "customer_name", "customer_email", "discount_id"},
        collector,
    )

    merged: dict[int, int] = {}
    items = payload.get("items")
    if not isinstance(items, list) or not items:
        collector.add("items", "At least one item is required")
    else:
        for i, item in enumerate(items):
            prefix = f"items.{i}"
            if not isinstance(item, dict):
                collector.add(prefix, "Must be an object")
                continue
            _reject_unknown(item, {"product_id", "quantity"}, _PrefixedCollector(collector, prefix))
            product_id = _required_int(item, "product_id", _PrefixedCollector(collector, prefix), minimum=1)
            quantity = _required_int(item, "quantity", _PrefixedCollector(collector, prefix), minimum=1)
            if product_id is not None and quantity is not None:
                merged[product_id] = merged.get(product_id, 0) + quantity

    payment_method = payload.get("payment_method")
    if payment_method not in PAYMENT_METHODS:
        collector.add("payment_method", f"Must be one of {', '.join(PAYMENT_METHODS)}")

    amount_paid = _required_int(payload, "amount_paid_cents", collector, minimum=0)

    discount_id = None
    if payload.get("discount_id") is not None:
        discount_id = _required_int(payload, "discount_id", collector, minimum=1)

    customer_name = _optional_str(payload, "customer_name", 255, collector)
    customer_email = _optional_email(payload, "customer_email", collector)

    collector.raise_if_any("Invalid sale request")

    return SaleRequest(
        lines=tuple(CartLine(product_id=pid, quantity=qty) for pid, qty in merged.items()),
        payment_method=payment_method,
        amount_paid_cents=amount_paid,
        customer_name=customer_name,
        customer_email=customer_email,
        discount_id=discount_id,
    )


def parse_stock_adjustment(payload: Any) -> StockAdjustmentRequest:
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    collector = _ErrorCollector()
    _reject_unknown(payload, {"type", "quantity", "reason", "reference_number"}, collector)

    movement_type = payload.get("type")
    if movement_type not in MOVEMENT_TYPES:
        collector.add("type", f"Must be one of {', '.join(MOVEMENT_TYPES)}")

    quantity = _required_int(payload, "quantity", collector, minimum=1)

    reason = _optional_str(payload, "reason", 255, collector)
    if reason is None and "reason" not in collector.errors:
        collector.add("reason", "This field is required")

    reference_number = _optional_str(payload, "reference_number", 64, collector)

    collector.raise_if_any("Invalid stock adjustment")

    return StockAdjustmentRequest(
        movement_type=movement_type,
        quantity=quantity,
        reason=reason,
        reference_number=reference_number,
    )


def parse_feedback_request(payload: Any) -> FeedbackRequest:
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    collector = _ErrorCollector()
    _reject_unknown(payload, {"transaction_id", "rating", "comments", "customer_email"}, collector)

    transaction_id = _required_int(payload, "transaction_id", collector, minimum=1)
    rating = _required_int(payload, "rating", collector, minimum=1)
    if rating is not None and rating > 5:
        collector.add("rating", "Must be between 1 and 5")

    comments = _optional_str(payload, "comments", 1000, collector)
    customer_email = _optional_email(payload, "customer_email", collector)

    collector.raise_if_any("Invalid feedback")

    return FeedbackRequest(
        transaction_id=transaction_id,
        rating=rating,
        comments=comments,
        customer_email=customer_email,
    )


class _PrefixedCollector(_ErrorCollector):
    """Writes into a parent collector under `prefix.field` keys."""

    def __init__(self, parent: _ErrorCollector, prefix: str):
        self.parent = parent
        self.prefix = prefix

    @property
    def errors(self) -> dict[str, str]:
        return self.parent.errors

    def add(self, field: str, message: str) -> None:
        self.parent.add(f"{self.prefix}.{field}", message)
