# backend/chiccheckout/routes/feedback.py
"""
Customer feedback routes. One feedback entry per transaction.
"""
from flask import Blueprint, current_app, request

from ..errors import PosError
from ..time_utils import parse_iso_date
from ..validation import parse_feedback_request, ValidationError
from ..services import feedback_service, reporting_service
from ..services.reporting_service import ReportError

feedback_bp = Blueprint("feedback", __name__, url_prefix="/api/feedback")


def _date_arg(name: str):
    try:
        return parse_iso_date(request.args.get(name))
    except ValueError:
        raise ValidationError("Invalid request", {name: "Must be a YYYY-MM-DD date"})


@feedback_bp.post("")
def submit_feedback_route():
    # Customers leave feedback from the receipt link, so no acting user
    payload = request.get_json(silent=True)
    try:
        feedback_request = parse_feedback_request(payload)
        feedback = feedback_service.submit_feedback(feedback_request)
    except ValidationError as e:
        return e.to_dict(), 422
    except PosError as e:
        return e.to_dict(), e.status_code
    except Exception:
        current_app.logger.exception("Unexpected error while recording feedback")
        return {"error": "Internal server error"}, 500

    return {"feedback": feedback.to_dict(include_transaction=True)}, 201


@feedback_bp.get("")
def list_feedback_route():
    try:
        date_from = _date_arg("date_from")
        date_to = _date_arg("date_to")
    except ValidationError as e:
        return e.to_dict(), 422

    return feedback_service.list_feedback(
        rating=request.args.get("rating", type=int),
        date_from=date_from,
        date_to=date_to,
        page=request.args.get("page", 1, type=int),
        per_page=request.args.get("per_page", 15, type=int),
    )


@feedback_bp.get("/analytics")
def feedback_analytics_route():
    """?date_from=&date_to= (inclusive, default last 30 days)."""
    try:
        date_from = _date_arg("date_from")
        date_to = _date_arg("date_to")
        return reporting_service.feedback_analytics(date_from, date_to)
    except ValidationError as e:
        return e.to_dict(), 422
    except ReportError as e:
        return {"error": str(e)}, 400


@feedback_bp.get("/<int:feedback_id>")
def get_feedback_route(feedback_id: int):
    try:
        feedback = feedback_service.get_feedback(feedback_id)
    except PosError as e:
        return e.to_dict(), e.status_code
    return {"feedback": feedback.to_dict(include_transaction=True)}
