import pytest

from chiccheckout.errors import DuplicateFeedback, TransactionNotFound
from chiccheckout.models import CustomerFeedback
from chiccheckout.services import feedback_service, sales_service
from chiccheckout.validation import CartLine, FeedbackRequest, SaleRequest, ValidationError, parse_feedback_request


@pytest.fixture
def sold(db_session, make_product, cashier):
    product = make_product(stock=10)

    def _sell():
        return sales_service.create_sale(
            SaleRequest(
                lines=(CartLine(product_id=product.id, quantity=1),),
                payment_method="cash",
                amount_paid_cents=10_000,
            ),
            user_id=cashier.id,
        ).transaction

    return _sell


def test_submit_feedback_notifies(db_session, sold, monkeypatch):
    sent = []
    monkeypatch.setattr(
        "chiccheckout.services.notification_service.send_feedback_notification",
        lambda fb: sent.append(fb.id),
    )
    txn = sold()

    feedback = feedback_service.submit_feedback(
        FeedbackRequest(transaction_id=txn.id, rating=5, comments="Lovely staff")
    )

    assert feedback.transaction_id == txn.id
    assert sent == [feedback.id]


def test_second_feedback_for_transaction_is_rejected(db_session, sold):
    txn = sold()
    feedback_service.submit_feedback(FeedbackRequest(transaction_id=txn.id, rating=4))

    with pytest.raises(DuplicateFeedback):
        feedback_service.submit_feedback(FeedbackRequest(transaction_id=txn.id, rating=1))

    assert db_session.query(CustomerFeedback).filter_by(transaction_id=txn.id).count() == 1


def test_feedback_requires_existing_transaction(db_session):
    with pytest.raises(TransactionNotFound):
        feedback_service.submit_feedback(FeedbackRequest(transaction_id=5555, rating=3))


@pytest.mark.parametrize("rating", [0, 6, "five", None])
def test_rating_must_be_between_one_and_five(rating):
    with pytest.raises(ValidationError) as exc:
        parse_feedback_request({"transaction_id": 1, "rating": rating})
    assert "rating" in exc.value.errors


def test_list_feedback_filters_by_rating(db_session, sold):
    happy = feedback_service.submit_feedback(FeedbackRequest(transaction_id=sold().id, rating=5))
    feedback_service.submit_feedback(FeedbackRequest(transaction_id=sold().id, rating=2))

    page = feedback_service.list_feedback(rating=5)

    assert page["total"] == 1
    assert page["items"][0]["id"] == happy.id
    assert page["items"][0]["transaction"]["transaction_number"].startswith("TXN-")
