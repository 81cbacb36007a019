import pytest

from chiccheckout.errors import InsufficientStock, InvalidQuantity, ProductNotFound
from chiccheckout.models import InventoryMovement
from chiccheckout.services import inventory_service
from chiccheckout.services.inventory_service import POLICY_CLAMP, POLICY_REJECT, compute_new_stock


class TestComputeNewStock:
    def test_in_adds_quantity(self):
        assert compute_new_stock("in", 10, 5) == (15, 5)

    def test_out_subtracts_quantity(self):
        assert compute_new_stock("out", 10, 3) == (7, 3)

    def test_out_beyond_on_hand_clamps_to_zero(self):
        assert compute_new_stock("out", 4, 6, policy=POLICY_CLAMP) == (0, 6)

    def test_out_beyond_on_hand_rejects_under_reject_policy(self):
        with pytest.raises(InsufficientStock):
            compute_new_stock("out", 4, 6, policy=POLICY_REJECT)

    def test_adjustment_sets_absolute_value(self):
        assert compute_new_stock("adjustment", 10, 4) == (4, 6)
        assert compute_new_stock("adjustment", 4, 10) == (10, 6)

    @pytest.mark.parametrize("quantity", [0, -1, 2.5, True])
    def test_rejects_non_positive_or_non_integer_quantity(self, quantity):
        with pytest.raises(InvalidQuantity):
            compute_new_stock("in", 10, quantity)

    def test_rejects_unknown_movement_type(self):
        with pytest.raises(ValueError):
            compute_new_stock("transfer", 10, 1)


def test_adjust_stock_writes_one_movement(db_session, make_product, cashier):
    product = make_product(stock=10)
    before = db_session.query(InventoryMovement).filter_by(product_id=product.id).count()

    change = inventory_service.adjust_stock(
        product_id=product.id,
        movement_type="out",
        quantity=3,
        reason="Damaged",
        user_id=cashier.id,
    )

    assert (change.previous_stock, change.new_stock) == (10, 7)
    db_session.refresh(product)
    assert product.stock_quantity == 7

    movements = (
        db_session.query(InventoryMovement)
        .filter_by(product_id=product.id)
        .order_by(InventoryMovement.id.asc())
        .all()
    )
    assert len(movements) == before + 1
    last = movements[-1]
    assert last.movement_type == "out"
    assert (last.quantity, last.previous_stock, last.new_stock) == (3, 10, 7)
    assert last.reason == "Damaged"
    assert last.user_id == cashier.id


def test_adjust_stock_clamps_out_by_default(db_session, make_product, cashier):
    product = make_product(stock=2)

    change = inventory_service.adjust_stock(
        product_id=product.id,
        movement_type="out",
        quantity=5,
        reason="Shrinkage",
        user_id=cashier.id,
    )

    assert change.new_stock == 0
    assert change.movement.quantity == 5


def test_adjust_stock_reject_policy_leaves_stock_untouched(app, db_session, make_product, cashier):
    product = make_product(stock=2)
    movement_count = db_session.query(InventoryMovement).count()

    app.config["STOCK_OUT_POLICY"] = "reject"
    try:
        with pytest.raises(InsufficientStock):
            inventory_service.adjust_stock(
                product_id=product.id,
                movement_type="out",
                quantity=5,
                reason="Shrinkage",
                user_id=cashier.id,
            )
    finally:
        app.config["STOCK_OUT_POLICY"] = "clamp"

    db_session.refresh(product)
    assert product.stock_quantity == 2
    assert db_session.query(InventoryMovement).count() == movement_count


def test_adjustment_records_absolute_difference(db_session, make_product, cashier):
    product = make_product(stock=10)

    change = inventory_service.adjust_stock(
        product_id=product.id,
        movement_type="adjustment",
        quantity=4,
        reason="Cycle count",
        user_id=cashier.id,
        reference_number="COUNT-1",
    )

    assert (change.previous_stock, change.new_stock) == (10, 4)
    assert change.movement.quantity == 6
    assert change.movement.reference_number == "COUNT-1"


def test_adjust_stock_unknown_product(db_session, cashier):
    with pytest.raises(ProductNotFound):
        inventory_service.adjust_stock(
            product_id=9999,
            movement_type="in",
            quantity=1,
            reason="Receive",
            user_id=cashier.id,
        )


def test_low_stock_lists_active_products_at_or_below_threshold(db_session, make_product):
    low = make_product(stock=2, min_stock_level=2, name="Low")
    make_product(stock=20, min_stock_level=2, name="Plenty")
    make_product(stock=0, min_stock_level=2, name="Retired", is_active=False)

    ids = [p.id for p in inventory_service.get_low_stock_products()]

    assert ids == [low.id]
