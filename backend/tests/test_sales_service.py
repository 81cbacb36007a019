"""
Checkout pipeline: totals, atomicity, stock conservation and numbering.
"""
import re

import pytest
from sqlalchemy.exc import SQLAlchemyError

from chiccheckout.errors import (
    DiscountNotFound,
    InsufficientPayment,
    InsufficientStock,
    PersistenceFailure,
    ProductNotFound,
)
from chiccheckout.extensions import db
from chiccheckout.models import InventoryMovement, Product, Transaction, TransactionItem
from chiccheckout.services import inventory_service, sales_service
from chiccheckout.services.sales_service import compute_totals
from chiccheckout.validation import CartLine, SaleRequest, parse_sale_request


def _sale(lines, *, paid=100_000, discount_id=None, email=None, method="cash"):
    return SaleRequest(
        lines=tuple(CartLine(product_id=pid, quantity=qty) for pid, qty in lines),
        payment_method=method,
        amount_paid_cents=paid,
        customer_email=email,
        discount_id=discount_id,
    )


def _counts():
    return (
        db.session.query(Transaction).count(),
        db.session.query(TransactionItem).count(),
        db.session.query(InventoryMovement).count(),
    )


class TestComputeTotals:
    def test_discount_then_tax(self):
        totals = compute_totals(10_000, 1_000, 800)
        assert (totals.tax_cents, totals.total_cents) == (720, 9_720)

    def test_tax_rounds_half_up(self):
        # 8% of 0.06 = 0.0048 -> 0.00; 8% of 0.07 = 0.0056 -> 0.01
        assert compute_totals(6, 0, 800).tax_cents == 0
        assert compute_totals(7, 0, 800).tax_cents == 1

    def test_fully_discounted_sale_has_no_tax(self):
        totals = compute_totals(500, 500, 800)
        assert (totals.tax_cents, totals.total_cents) == (0, 0)


def test_sale_decrements_stock_and_records_movement(db_session, make_product, cashier, farewell):
    product = make_product(price_cents=1_000, stock=10)

    result = sales_service.create_sale(_sale([(product.id, 3)]), user_id=cashier.id)

    txn = result.transaction
    db_session.refresh(product)
    assert product.stock_quantity == 7

    movement = (
        db_session.query(InventoryMovement)
        .filter_by(product_id=product.id, movement_type="out")
        .one()
    )
    assert (movement.quantity, movement.previous_stock, movement.new_stock) == (3, 10, 7)
    assert movement.reason == "Sale transaction"
    assert movement.reference_number == txn.transaction_number
    assert movement.user_id == cashier.id

    assert [(i.product_id, i.quantity, i.unit_price_cents, i.line_total_cents) for i in txn.items] == [
        (product.id, 3, 1_000, 3_000)
    ]
    assert result.farewell_message == "Thank you for shopping with us!"


def test_percentage_discount_and_tax(db_session, make_product, make_discount, cashier):
    product = make_product(price_cents=5_000, stock=5)
    discount = make_discount(discount_type="percentage", value=1_000)

    txn = sales_service.create_sale(
        _sale([(product.id, 2)], paid=10_000, discount_id=discount.id),
        user_id=cashier.id,
    ).transaction

    assert txn.subtotal_cents == 10_000
    assert txn.discount_cents == 1_000
    assert txn.tax_cents == 720
    assert txn.total_cents == 9_720
    assert txn.change_cents == 280
    assert txn.discount_id == discount.id


def test_exact_payment_gives_zero_change(db_session, make_product, cashier):
    product = make_product(price_cents=4_630, stock=5)  # 46.30 + 8% = 50.00

    txn = sales_service.create_sale(_sale([(product.id, 1)], paid=5_000), user_id=cashier.id).transaction

    assert txn.total_cents == 5_000
    assert txn.change_cents == 0


def test_underpayment_writes_nothing(db_session, make_product, cashier):
    product = make_product(price_cents=4_630, stock=5)
    before = _counts()

    with pytest.raises(InsufficientPayment) as exc:
        sales_service.create_sale(_sale([(product.id, 1)], paid=4_000), user_id=cashier.id)

    assert exc.value.details == {"total_cents": 5_000, "amount_paid_cents": 4_000}
    assert _counts() == before
    db_session.refresh(product)
    assert product.stock_quantity == 5


def test_insufficient_stock_is_atomic_across_lines(db_session, make_product, cashier):
    plenty = make_product(stock=10)
    scarce = make_product(stock=1, name="Scarce")
    before = _counts()

    with pytest.raises(InsufficientStock) as exc:
        sales_service.create_sale(_sale([(plenty.id, 2), (scarce.id, 3)]), user_id=cashier.id)

    assert "Scarce" in str(exc.value)
    assert exc.value.details["items"][0]["product_id"] == scarce.id
    assert _counts() == before
    db_session.refresh(plenty)
    db_session.refresh(scarce)
    assert (plenty.stock_quantity, scarce.stock_quantity) == (10, 1)


def test_unknown_product_is_atomic(db_session, make_product, cashier):
    product = make_product(stock=10)
    before = _counts()

    with pytest.raises(ProductNotFound):
        sales_service.create_sale(_sale([(product.id, 1), (987654, 1)]), user_id=cashier.id)

    assert _counts() == before


def test_inactive_product_cannot_be_sold(db_session, make_product, cashier):
    product = make_product(stock=10, is_active=False)

    with pytest.raises(ProductNotFound):
        sales_service.create_sale(_sale([(product.id, 1)]), user_id=cashier.id)


def test_unknown_discount_is_atomic(db_session, make_product, cashier):
    product = make_product(stock=10)
    before = _counts()

    with pytest.raises(DiscountNotFound):
        sales_service.create_sale(_sale([(product.id, 1)], discount_id=31337), user_id=cashier.id)

    assert _counts() == before


def test_storage_failure_mid_sale_rolls_back_everything(db_session, make_product, cashier, monkeypatch):
    first = make_product(stock=10)
    second = make_product(stock=10)
    before = _counts()

    real_apply = inventory_service.apply_movement
    calls = {"n": 0}

    def failing_apply(product, **kwargs):
        calls["n"] += 1
        if calls["n"] == 2:
            raise SQLAlchemyError("disk I/O error")
        return real_apply(product, **kwargs)

    monkeypatch.setattr(inventory_service, "apply_movement", failing_apply)

    with pytest.raises(PersistenceFailure):
        sales_service.create_sale(_sale([(first.id, 3), (second.id, 4)]), user_id=cashier.id)

    assert calls["n"] == 2
    assert _counts() == before
    db_session.refresh(first)
    db_session.refresh(second)
    assert (first.stock_quantity, second.stock_quantity) == (10, 10)


def test_expired_discount_applies_nothing(db_session, make_product, make_discount, cashier):
    product = make_product(price_cents=1_000, stock=10)
    expired = make_discount(days_back=10, days_ahead=-1)

    txn = sales_service.create_sale(
        _sale([(product.id, 1)], discount_id=expired.id),
        user_id=cashier.id,
    ).transaction

    assert txn.discount_cents == 0
    assert txn.total_cents == 1_080


def test_stock_conservation_one_movement_per_product(db_session, make_product, cashier):
    a = make_product(stock=10)
    b = make_product(stock=8)
    request = parse_sale_request({
        "items": [
            {"product_id": a.id, "quantity": 2},
            {"product_id": b.id, "quantity": 1},
            {"product_id": a.id, "quantity": 3},
        ],
        "payment_method": "card",
        "amount_paid_cents": 100_000,
    })

    txn = sales_service.create_sale(request, user_id=cashier.id).transaction

    assert sorted((i.product_id, i.quantity) for i in txn.items) == sorted([(a.id, 5), (b.id, 1)])
    for product, sold, start in ((a, 5, 10), (b, 1, 8)):
        db_session.refresh(product)
        assert product.stock_quantity == start - sold
        outs = (
            db_session.query(InventoryMovement)
            .filter_by(product_id=product.id, reference_number=txn.transaction_number)
            .all()
        )
        assert len(outs) == 1
        assert outs[0].quantity == sold


def test_transaction_numbers_are_sequential_per_day(db_session, make_product, cashier):
    product = make_product(stock=10)

    numbers = [
        sales_service.create_sale(_sale([(product.id, 1)]), user_id=cashier.id).transaction.transaction_number
        for _ in range(3)
    ]

    assert all(re.fullmatch(r"TXN-\d{8}-\d{4}", n) for n in numbers)
    assert [n[-4:] for n in numbers] == ["0001", "0002", "0003"]
    assert len({n[:12] for n in numbers}) == 1


def test_failed_sale_does_not_consume_a_number(db_session, make_product, cashier):
    product = make_product(price_cents=1_000, stock=10)

    first = sales_service.create_sale(_sale([(product.id, 1)]), user_id=cashier.id).transaction
    with pytest.raises(InsufficientPayment):
        sales_service.create_sale(_sale([(product.id, 1)], paid=1), user_id=cashier.id)
    second = sales_service.create_sale(_sale([(product.id, 1)]), user_id=cashier.id).transaction

    assert int(second.transaction_number[-4:]) == int(first.transaction_number[-4:]) + 1


def test_price_is_captured_at_sale_time(db_session, make_product, cashier):
    product = make_product(price_cents=1_000, stock=10)
    txn = sales_service.create_sale(_sale([(product.id, 1)]), user_id=cashier.id).transaction

    product = db_session.get(Product, product.id)
    product.price_cents = 2_500
    db_session.commit()

    reloaded = sales_service.get_transaction(txn.id)
    assert reloaded.items[0].unit_price_cents == 1_000
    assert reloaded.subtotal_cents == 1_000


def test_receipt_sent_only_with_customer_email(db_session, make_product, cashier, monkeypatch):
    sent = []
    monkeypatch.setattr(
        "chiccheckout.services.notification_service.send_email_receipt",
        lambda txn: sent.append(txn.transaction_number),
    )
    product = make_product(stock=10)

    sales_service.create_sale(_sale([(product.id, 1)]), user_id=cashier.id)
    txn = sales_service.create_sale(
        _sale([(product.id, 1)], email="shopper@example.com"),
        user_id=cashier.id,
    ).transaction

    assert sent == [txn.transaction_number]


def test_list_transactions_newest_first(db_session, make_product, cashier):
    product = make_product(stock=10)
    first = sales_service.create_sale(_sale([(product.id, 1)]), user_id=cashier.id).transaction
    second = sales_service.create_sale(_sale([(product.id, 1)]), user_id=cashier.id).transaction

    page = sales_service.list_transactions(user_id=cashier.id)

    assert page["total"] == 2
    assert [t["id"] for t in page["items"]] == [second.id, first.id]


def test_receipt_build_error_does_not_fail_committed_sale(db_session, make_product, cashier, monkeypatch, caplog):
    def broken_payload(txn):
        raise SQLAlchemyError("lazy load failed")

    monkeypatch.setattr("chiccheckout.services.notification_service.receipt_payload", broken_payload)
    product = make_product(stock=10)

    result = sales_service.create_sale(_sale([(product.id, 2)], email="shopper@example.com"), user_id=cashier.id)

    assert db_session.get(Transaction, result.transaction.id) is not None
    db_session.refresh(product)
    assert product.stock_quantity == 8
    assert "Could not build email_receipt notification" in caplog.text
