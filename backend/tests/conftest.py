"""
Pytest fixtures for the back-office tests.

Provides an in-memory database, a per-test table wipe, the Flask test
client, and small factories for users, products and discounts.
"""

from datetime import timedelta

import pytest
from chiccheckout import create_app
from chiccheckout.extensions import db
from chiccheckout.models import Category, Discount, FarewellMessage, Product, Role, User
from chiccheckout.services import inventory_service
from chiccheckout.time_utils import today


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'TAX_RATE_BPS': 800,
        'STOCK_OUT_POLICY': 'clamp',
        'CLAMP_FIXED_DISCOUNTS': True,
        'NOTIFICATION_WEBHOOK_URL': None,
        'NOTIFICATION_ASYNC': False,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def cashier(db_session):
    """Active cashier used as the acting user."""
    role = Role(name="cashier", display_name="Cashier")
    db_session.add(role)
    db_session.flush()

    user = User(first_name="Casey", last_name="Register", email="casey@chiccheckout.local", role_id=role.id)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def actor_headers(cashier):
    return {'X-Actor-Id': str(cashier.id)}


@pytest.fixture(scope='function')
def category(db_session):
    category = Category(name="Tops", description="Shirts and blouses")
    db_session.add(category)
    db_session.commit()
    return category


@pytest.fixture(scope='function')
def make_product(db_session, cashier):
    """
    Factory: product with opening stock posted through the ledger, the same
    way the catalog does it.
    """
    counter = {"n": 0}

    def _make(*, price_cents=1000, stock=10, min_stock_level=2, is_active=True, name=None):
        counter["n"] += 1
        product = Product(
            sku=f"SKU-{counter['n']:03d}",
            name=name or f"Product {counter['n']}",
            price_cents=price_cents,
            cost_cents=price_cents // 2,
            stock_quantity=0,
            min_stock_level=min_stock_level,
            is_active=is_active,
        )
        db_session.add(product)
        db_session.commit()
        if stock:
            inventory_service.adjust_stock(
                product_id=product.id,
                movement_type="in",
                quantity=stock,
                reason="Initial stock",
                user_id=cashier.id,
                reference_number=f"INIT-{product.sku}",
            )
        db_session.refresh(product)
        return product

    return _make


@pytest.fixture(scope='function')
def make_discount(db_session):
    def _make(*, discount_type="percentage", value=1000, min_amount_cents=None,
              days_back=1, days_ahead=1, is_active=True):
        day = today()
        discount = Discount(
            name=f"{discount_type.title()} {value}",
            discount_type=discount_type,
            value=value,
            min_amount_cents=min_amount_cents,
            start_date=day - timedelta(days=days_back),
            end_date=day + timedelta(days=days_ahead),
            is_active=is_active,
        )
        db_session.add(discount)
        db_session.commit()
        return discount

    return _make


@pytest.fixture(scope='function')
def farewell(db_session):
    message = FarewellMessage(message="Thank you for shopping with us!", display_order=1, is_active=True)
    db_session.add(message)
    db_session.commit()
    return message
