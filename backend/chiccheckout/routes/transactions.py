# Overview: Flask API routes for sales transactions and sales reports.

# backend/chiccheckout/routes/transactions.py
"""
Sale transaction routes.

POST /api/transactions runs the whole checkout (stock check, discount, tax,
payment, ledger) as one atomic unit. Recorded transactions are read-only.
"""
from flask import Blueprint, current_app, g, request

from ..errors import PosError
from ..time_utils import parse_iso_date
from ..validation import parse_sale_request, ValidationError
from ..decorators import require_actor
from ..services import reporting_service, sales_service
from ..services.reporting_service import ReportError

transactions_bp = Blueprint("transactions", __name__, url_prefix="/api/transactions")


def _date_arg(name: str):
    try:
        return parse_iso_date(request.args.get(name))
    except ValueError:
        raise ValidationError("Invalid request", {name: "Must be a YYYY-MM-DD date"})


@transactions_bp.post("")
@require_actor
def create_transaction_route():
    """
    Body:
    {
      "items": [{"product_id": 1, "quantity": 2}, ...],
      "payment_method": "cash" | "card" | "digital_wallet",
      "amount_paid_cents": 10000,
      "discount_id": 3,            (optional)
      "customer_name": "...",      (optional)
      "customer_email": "..."      (optional, triggers an email receipt)
    }
    """
    payload = request.get_json(silent=True)

    try:
        sale_request = parse_sale_request(payload)
        result = sales_service.create_sale(sale_request, user_id=g.current_user.id)
    except ValidationError as e:
        return e.to_dict(), 422
    except PosError as e:
        return e.to_dict(), e.status_code
    except Exception:
        current_app.logger.exception("Unexpected error while creating transaction")
        return {"error": "Internal server error"}, 500

    return {
        "transaction": result.transaction.to_dict(),
        "farewell_message": result.farewell_message,
    }, 201


@transactions_bp.get("")
def list_transactions_route():
    """
    Query params:
    - date_from / date_to: YYYY-MM-DD, inclusive
    - cashier_id: int
    - status: str
    - page / per_page
    """
    try:
        date_from = _date_arg("date_from")
        date_to = _date_arg("date_to")
    except ValidationError as e:
        return e.to_dict(), 422

    return sales_service.list_transactions(
        date_from=date_from,
        date_to=date_to,
        user_id=request.args.get("cashier_id", type=int),
        status=request.args.get("status"),
        page=request.args.get("page", 1, type=int),
        per_page=request.args.get("per_page", 15, type=int),
    )


@transactions_bp.get("/<int:transaction_id>")
def get_transaction_route(transaction_id: int):
    try:
        txn = sales_service.get_transaction(transaction_id)
    except PosError as e:
        return e.to_dict(), e.status_code

    data = txn.to_dict(include_items=True)
    data["feedback"] = txn.feedback.to_dict() if txn.feedback else None
    return {"transaction": data}


@transactions_bp.get("/reports/daily")
def daily_sales_route():
    """Summary and top 5 products for ?date=YYYY-MM-DD (default today)."""
    try:
        day = _date_arg("date")
    except ValidationError as e:
        return e.to_dict(), 422
    return reporting_service.daily_sales(day)


@transactions_bp.get("/reports/monthly")
def monthly_report_route():
    month = request.args.get("month", type=int)
    year = request.args.get("year", type=int)
    try:
        return reporting_service.monthly_report(month=month, year=year)
    except ReportError as e:
        return {"error": str(e)}, 400
