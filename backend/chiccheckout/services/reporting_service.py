# Overview: Read-only rollups over committed sales and customer feedback.

from __future__ import annotations

from datetime import date, timedelta

from sqlalchemy import case, func

from ..extensions import db
from ..models import CustomerFeedback, Product, Transaction, TransactionItem
from ..time_utils import day_bounds, month_bounds, today


class ReportError(Exception):
    """Raised when report parameters are unusable."""
    pass


STATUS_COMPLETED = "completed"
TOP_PRODUCTS_LIMIT = 5
RECENT_COMMENTS_LIMIT = 10
ANALYTICS_DEFAULT_DAYS = 30


def _average_cents(total: int, count: int) -> int:
    if not count:
        return 0
    return (total + count // 2) // count


def _sales_summary(start, end) -> dict:
    row = db.session.query(
        func.count(Transaction.id),
        func.coalesce(func.sum(Transaction.total_cents), 0),
        func.coalesce(func.sum(Transaction.discount_cents), 0),
    ).filter(
        Transaction.status == STATUS_COMPLETED,
        Transaction.created_at >= start,
        Transaction.created_at < end,
    ).one()

    count, total_sales, total_discounts = int(row[0]), int(row[1]), int(row[2])
    return {
        "total_transactions": count,
        "total_sales_cents": total_sales,
        "total_discounts_cents": total_discounts,
        "average_sale_cents": _average_cents(total_sales, count),
    }


def top_products(day: date, limit: int = TOP_PRODUCTS_LIMIT) -> list[dict]:
    start, end = day_bounds(day)
    total_quantity = func.sum(TransactionItem.quantity).label("total_quantity")
    rows = (
        db.session.query(
            Product.id,
            Product.name,
            total_quantity,
            func.sum(TransactionItem.line_total_cents).label("total_revenue_cents"),
        )
        .join(TransactionItem, TransactionItem.product_id == Product.id)
        .join(Transaction, Transaction.id == TransactionItem.transaction_id)
        .filter(
            Transaction.status == STATUS_COMPLETED,
            Transaction.created_at >= start,
            Transaction.created_at < end,
        )
        .group_by(Product.id, Product.name)
        .order_by(total_quantity.desc(), Product.name.asc())
        .limit(limit)
        .all()
    )
    return [
        {
            "product_id": r.id,
            "name": r.name,
            "total_quantity": int(r.total_quantity or 0),
            "total_revenue_cents": int(r.total_revenue_cents or 0),
        }
        for r in rows
    ]


def daily_sales(day: date | None = None) -> dict:
    day = day or today()
    start, end = day_bounds(day)
    return {
        "date": day.isoformat(),
        "sales_summary": _sales_summary(start, end),
        "top_products": top_products(day),
    }


def monthly_report(month: int | None = None, year: int | None = None) -> dict:
    current = today()
    if month is None:
        month = current.month
    if year is None:
        year = current.year
    if not 1 <= month <= 12:
        raise ReportError("month must be between 1 and 12")
    if year < 1:
        raise ReportError("year must be positive")

    start, end = month_bounds(year, month)
    sale_day = func.date(Transaction.created_at)
    rows = (
        db.session.query(
            sale_day.label("day"),
            func.count(Transaction.id).label("transactions"),
            func.coalesce(func.sum(Transaction.total_cents), 0).label("sales_cents"),
        )
        .filter(
            Transaction.status == STATUS_COMPLETED,
            Transaction.created_at >= start,
            Transaction.created_at < end,
        )
        .group_by(sale_day)
        .order_by(sale_day)
        .all()
    )

    return {
        "month": month,
        "year": year,
        # sqlite hands back DATE() as text, other backends as date
        "daily_sales": [
            {
                "date": str(r.day),
                "transactions": int(r.transactions),
                "sales_cents": int(r.sales_cents),
            }
            for r in rows
        ],
        "monthly_summary": _sales_summary(start, end),
    }


def improvement_suggestions(
    *,
    total_feedback: int,
    average_rating: float,
    negative_feedback: int,
    satisfaction_score: float,
) -> list[dict]:
    suggestions = []

    if satisfaction_score < 70:
        suggestions.append({
            "priority": "high",
            "category": "Customer Satisfaction",
            "suggestion": "Customer satisfaction is below 70%. Consider reviewing service quality and product offerings.",
            "action": "Conduct staff training and review customer complaints",
        })

    if average_rating < 3.5:
        suggestions.append({
            "priority": "high",
            "category": "Service Quality",
            "suggestion": "Average rating is below 3.5. Focus on improving customer service and product quality.",
            "action": "Implement quality control measures and customer service training",
        })

    if negative_feedback > total_feedback * 0.2:
        suggestions.append({
            "priority": "medium",
            "category": "Negative Feedback",
            "suggestion": "High percentage of negative feedback. Investigate common issues and address them.",
            "action": "Analyze negative feedback patterns and implement corrective measures",
        })

    if total_feedback < 10:
        suggestions.append({
            "priority": "low",
            "category": "Feedback Collection",
            "suggestion": "Low feedback volume. Encourage more customers to provide feedback.",
            "action": "Implement feedback incentives and make the process more accessible",
        })

    if not suggestions:
        suggestions.append({
            "priority": "low",
            "category": "Maintenance",
            "suggestion": "Great job! Customer satisfaction is good. Continue maintaining quality service.",
            "action": "Keep monitoring feedback and maintain current service standards",
        })

    return suggestions


def feedback_analytics(date_from: date | None = None, date_to: date | None = None) -> dict:
    """
    Rating rollup for an inclusive date range (default: last 30 days).

    satisfaction_score is the share of ratings >= 4, as a percentage.
    """
    date_to = date_to or today()
    date_from = date_from or (date_to - timedelta(days=ANALYTICS_DEFAULT_DAYS))
    if date_from > date_to:
        raise ReportError("date_from must not be after date_to")

    start = day_bounds(date_from)[0]
    end = day_bounds(date_to)[1]
    in_range = (CustomerFeedback.created_at >= start, CustomerFeedback.created_at < end)

    row = db.session.query(
        func.count(CustomerFeedback.id),
        func.avg(CustomerFeedback.rating),
        func.coalesce(func.sum(case((CustomerFeedback.rating >= 4, 1), else_=0)), 0),
        func.coalesce(func.sum(case((CustomerFeedback.rating <= 2, 1), else_=0)), 0),
    ).filter(*in_range).one()

    total = int(row[0])
    average = float(row[1]) if row[1] is not None else 0.0
    positive = int(row[2])
    negative = int(row[3])

    distribution = (
        db.session.query(CustomerFeedback.rating, func.count(CustomerFeedback.id))
        .filter(*in_range)
        .group_by(CustomerFeedback.rating)
        .order_by(CustomerFeedback.rating)
        .all()
    )

    recent = (
        db.session.query(CustomerFeedback)
        .filter(
            *in_range,
            CustomerFeedback.comments.isnot(None),
            CustomerFeedback.comments != "",
        )
        .order_by(CustomerFeedback.created_at.desc(), CustomerFeedback.id.desc())
        .limit(RECENT_COMMENTS_LIMIT)
        .all()
    )

    satisfaction = (positive / total * 100) if total else 0.0

    return {
        "period": {"from": date_from.isoformat(), "to": date_to.isoformat()},
        "analytics": {
            "total_feedback": total,
            "average_rating": round(average, 2),
            "positive_feedback": positive,
            "negative_feedback": negative,
        },
        "satisfaction_score": round(satisfaction, 2),
        "rating_distribution": [{"rating": rating, "count": int(count)} for rating, count in distribution],
        "recent_comments": [fb.to_dict(include_transaction=True) for fb in recent],
        "improvement_suggestions": improvement_suggestions(
            total_feedback=total,
            average_rating=average,
            negative_feedback=negative,
            satisfaction_score=satisfaction,
        ),
    }
