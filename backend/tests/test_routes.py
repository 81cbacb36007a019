"""
HTTP surface: status codes, error bodies and the acting-user hand-off.
"""

from chiccheckout.models import InventoryMovement, Transaction


def _sale_body(product_id, quantity=1, **extra):
    body = {
        "items": [{"product_id": product_id, "quantity": quantity}],
        "payment_method": "cash",
        "amount_paid_cents": 100_000,
    }
    body.update(extra)
    return body


def test_health(client, db_session):
    response = client.get('/api/health')
    assert response.status_code == 200
    assert response.json["status"] == "healthy"


def test_sale_requires_actor(client, db_session, make_product):
    product = make_product(stock=5)
    response = client.post('/api/transactions', json=_sale_body(product.id))
    assert response.status_code == 401

    response = client.post('/api/transactions', json=_sale_body(product.id), headers={'X-Actor-Id': '999'})
    assert response.status_code == 401


def test_create_sale(client, db_session, make_product, actor_headers, farewell, cashier):
    product = make_product(price_cents=1_000, stock=10)

    response = client.post('/api/transactions', json=_sale_body(product.id, 3), headers=actor_headers)

    assert response.status_code == 201
    txn = response.json["transaction"]
    assert txn["subtotal_cents"] == 3_000
    assert txn["tax_cents"] == 240
    assert txn["total_cents"] == 3_240
    assert txn["user_id"] == cashier.id
    assert txn["items"][0]["product_name"] == product.name
    assert response.json["farewell_message"] == "Thank you for shopping with us!"


def test_sale_validation_reports_every_field(client, db_session, actor_headers):
    before = db_session.query(Transaction).count()

    response = client.post(
        '/api/transactions',
        json={"items": [{"product_id": 1, "quantity": 0}], "payment_method": "cheque"},
        headers=actor_headers,
    )

    assert response.status_code == 422
    errors = response.json["errors"]
    assert set(errors) == {"items.0.quantity", "payment_method", "amount_paid_cents"}
    assert db_session.query(Transaction).count() == before


def test_sale_business_errors(client, db_session, make_product, actor_headers):
    product = make_product(price_cents=1_000, stock=2)

    response = client.post('/api/transactions', json=_sale_body(product.id, 5), headers=actor_headers)
    assert response.status_code == 409
    assert "Insufficient stock" in response.json["error"]

    response = client.post(
        '/api/transactions',
        json=_sale_body(product.id, 1, amount_paid_cents=100),
        headers=actor_headers,
    )
    assert response.status_code == 422
    assert response.json["error"] == "Insufficient payment amount"

    response = client.post('/api/transactions', json=_sale_body(4242), headers=actor_headers)
    assert response.status_code == 404


def test_get_transaction_with_feedback(client, db_session, make_product, actor_headers):
    product = make_product(stock=5)
    txn_id = client.post('/api/transactions', json=_sale_body(product.id), headers=actor_headers).json["transaction"]["id"]

    assert client.get(f'/api/transactions/{txn_id}').json["transaction"]["feedback"] is None

    response = client.post('/api/feedback', json={"transaction_id": txn_id, "rating": 5, "comments": "Quick!"})
    assert response.status_code == 201

    detail = client.get(f'/api/transactions/{txn_id}').json["transaction"]
    assert detail["feedback"]["rating"] == 5

    duplicate = client.post('/api/feedback', json={"transaction_id": txn_id, "rating": 2})
    assert duplicate.status_code == 409

    assert client.get('/api/transactions/99999').status_code == 404


def test_adjust_stock_route(client, db_session, make_product, actor_headers):
    product = make_product(stock=10)

    response = client.post(
        f'/api/products/{product.id}/adjust-stock',
        json={"type": "in", "quantity": 5, "reason": "Delivery", "reference_number": "PO-17"},
        headers=actor_headers,
    )

    assert response.status_code == 200
    assert (response.json["previous_stock"], response.json["new_stock"]) == (10, 15)
    assert response.json["product"]["stock_quantity"] == 15
    assert response.json["movement"]["reference_number"] == "PO-17"

    bad = client.post(
        f'/api/products/{product.id}/adjust-stock',
        json={"type": "in", "quantity": 0},
        headers=actor_headers,
    )
    assert bad.status_code == 422
    assert set(bad.json["errors"]) == {"quantity", "reason"}


def test_create_product_posts_opening_stock(client, db_session, actor_headers, category):
    response = client.post(
        '/api/products',
        json={
            "sku": "DRS-001",
            "name": "Linen Dress",
            "price_cents": 8_900,
            "stock_quantity": 12,
            "category_id": category.id,
        },
        headers=actor_headers,
    )

    assert response.status_code == 201
    product = response.json["product"]
    assert product["stock_quantity"] == 12

    movement = db_session.query(InventoryMovement).filter_by(product_id=product["id"]).one()
    assert (movement.movement_type, movement.quantity, movement.previous_stock, movement.new_stock) == ("in", 12, 0, 12)
    assert movement.reason == "Initial stock"
    assert movement.reference_number == "INIT-DRS-001"

    duplicate = client.post(
        '/api/products',
        json={"sku": "DRS-001", "name": "Other", "price_cents": 100},
        headers=actor_headers,
    )
    assert duplicate.status_code == 409


def test_update_product_cannot_touch_stock(client, db_session, make_product, actor_headers):
    product = make_product(stock=10)

    response = client.put(f'/api/products/{product.id}', json={"stock_quantity": 99}, headers=actor_headers)
    assert response.status_code == 422
    assert "stock_quantity" in response.json["errors"]

    response = client.put(f'/api/products/{product.id}', json={"name": "Renamed"}, headers=actor_headers)
    assert response.status_code == 200
    assert response.json["product"]["name"] == "Renamed"
    assert response.json["product"]["stock_quantity"] == 10


def test_product_list_filters(client, db_session, make_product):
    make_product(stock=1, min_stock_level=2, name="Cotton Tee")
    make_product(stock=20, min_stock_level=2, name="Wool Coat")

    low = client.get('/api/products?low_stock=true').json
    assert [p["name"] for p in low["items"]] == ["Cotton Tee"]

    found = client.get('/api/products?search=coat&page=1&per_page=10').json
    assert [p["name"] for p in found["items"]] == ["Wool Coat"]
    assert found["pagination"]["total"] == 1


def test_discount_crud(client, db_session, actor_headers):
    response = client.post(
        '/api/discounts',
        json={
            "name": "Autumn",
            "discount_type": "percentage",
            "value": 1500,
            "start_date": "2026-10-01",
            "end_date": "2026-09-01",
        },
        headers=actor_headers,
    )
    assert response.status_code == 422
    assert "end_date" in response.json["errors"]

    response = client.post(
        '/api/discounts',
        json={
            "name": "Autumn",
            "discount_type": "percentage",
            "value": 1500,
            "start_date": "2020-01-01",
            "end_date": "2099-12-31",
        },
        headers=actor_headers,
    )
    assert response.status_code == 201
    discount = response.json["discount"]
    assert discount["discount_type"] == "percentage"

    active = client.get('/api/discounts/active').json
    assert [d["id"] for d in active["items"]] == [discount["id"]]

    assert client.delete(f'/api/discounts/{discount["id"]}', headers=actor_headers).status_code == 200
    assert client.get('/api/discounts/active').json["items"] == []


def test_daily_report_route(client, db_session, make_product, actor_headers):
    product = make_product(price_cents=1_000, stock=10)
    client.post('/api/transactions', json=_sale_body(product.id, 2), headers=actor_headers)

    report = client.get('/api/transactions/reports/daily').json
    assert report["sales_summary"]["total_transactions"] == 1
    assert report["top_products"][0]["total_quantity"] == 2

    assert client.get('/api/transactions/reports/daily?date=yesterday').status_code == 422
    assert client.get('/api/transactions/reports/monthly?month=13').status_code == 400


def test_feedback_analytics_route(client, db_session):
    response = client.get('/api/feedback/analytics')
    assert response.status_code == 200
    assert response.json["analytics"]["total_feedback"] == 0
    assert response.json["satisfaction_score"] == 0


def test_farewell_messages(client, db_session, actor_headers, farewell):
    response = client.post('/api/farewell-messages', json={"message": "Come back soon!"}, headers=actor_headers)
    assert response.status_code == 201
    assert response.json["farewell_message"]["display_order"] == farewell.display_order + 1

    messages = client.get('/api/farewell-messages').json["items"]
    assert [m["message"] for m in messages] == ["Thank you for shopping with us!", "Come back soon!"]

    assert client.get('/api/farewell-messages/random').json["message"] in {m["message"] for m in messages}
    assert client.delete('/api/farewell-messages/424242', headers=actor_headers).status_code == 404


def test_farewell_message_created_inactive(client, db_session, actor_headers, farewell):
    response = client.post(
        '/api/farewell-messages',
        json={"message": "See you next season", "is_active": False},
        headers=actor_headers,
    )
    assert response.status_code == 201
    assert response.json["farewell_message"]["is_active"] is False

    for _ in range(5):
        assert client.get('/api/farewell-messages/random').json["message"] == farewell.message


def test_farewell_message_not_found_body(client, db_session, actor_headers):
    response = client.put('/api/farewell-messages/424242', json={"message": "Bye"}, headers=actor_headers)
    assert response.status_code == 404
    assert response.json == {"error": "Farewell message 424242 not found", "details": {"message_id": 424242}}
