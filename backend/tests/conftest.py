"""
Pytest fixtures for shopcore backend tests.

Provides test database setup, shop/catalog/staff fixtures, and test client.
"""

from datetime import date
from decimal import Decimal

import pytest
from shopcore import create_app
from shopcore.extensions import db
from shopcore.models import AttendanceRecord, Employee, Product, ProductVariant, Shop
from shopcore.time_utils import iter_days


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'PAYROLL_WEEKEND_DAYS': (4,),
        'PAYROLL_DEFAULT_DAILY_HOURS': 8,
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
def shop_a(db_session):
    """Head shop A with a 10% staff commission."""
    shop = Shop(name="Shop A - Main Street", commission_percentage=Decimal("10"), is_active=True)
    db_session.add(shop)
    db_session.commit()
    return shop


@pytest.fixture(scope='function')
def branch_a(db_session, shop_a):
    """Branch of shop A (same access group)."""
    shop = Shop(name="Shop A - Airport Branch", parent_shop_id=shop_a.id, is_active=True)
    db_session.add(shop)
    db_session.commit()
    return shop


@pytest.fixture(scope='function')
def shop_b(db_session):
    """Unrelated shop B (another tenant)."""
    shop = Shop(name="Shop B - Harbor", commission_percentage=Decimal("5"), is_active=True)
    db_session.add(shop)
    db_session.commit()
    return shop


@pytest.fixture(scope='function')
def product_a(db_session, shop_a):
    """Product in shop A: price 100, VAT 5%, 10 in stock, cost 60."""
    product = Product(
        shop_id=shop_a.id,
        sku="PROD-A-001",
        name="Product A",
        price=Decimal("100"),
        purchase_price=Decimal("60"),
        vat=Decimal("5"),
        stock=10,
        low_stock_threshold=2,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def product_no_vat(db_session, shop_a):
    """Product in shop A without VAT: price 50, 3 in stock."""
    product = Product(
        shop_id=shop_a.id,
        sku="PROD-A-002",
        name="Product A2",
        price=Decimal("50"),
        purchase_price=Decimal("20"),
        vat=Decimal("0"),
        stock=3,
        low_stock_threshold=1,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def variant_a(db_session, shop_a):
    """Sized product in shop A with one variant holding 4 units."""
    product = Product(
        shop_id=shop_a.id,
        sku="SHIRT-001",
        name="Shirt",
        price=Decimal("40"),
        purchase_price=Decimal("15"),
        vat=Decimal("0"),
        stock=0,
    )
    db_session.add(product)
    db_session.flush()
    variant = ProductVariant(product_id=product.id, sku="SHIRT-001-M", quantity=4, low_stock_threshold=5)
    db_session.add(variant)
    db_session.commit()
    return variant


@pytest.fixture(scope='function')
def product_b(db_session, shop_b):
    """Product in shop B."""
    product = Product(
        shop_id=shop_b.id,
        sku="PROD-B-001",
        name="Product B",
        price=Decimal("20"),
        vat=Decimal("0"),
        stock=10,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def employee_a(db_session, shop_a):
    """Staff of shop A on a 30000 monthly salary."""
    employee = Employee(shop_id=shop_a.id, full_name="Alice Staff", base_salary=Decimal("30000"))
    db_session.add(employee)
    db_session.commit()
    return employee


@pytest.fixture(scope='function')
def employee_b(db_session, shop_b):
    """Staff of shop B."""
    employee = Employee(shop_id=shop_b.id, full_name="Bob Staff", base_salary=Decimal("20000"))
    db_session.add(employee)
    db_session.commit()
    return employee


# June 2025: Fridays are the 6th, 13th, 20th and 27th, leaving 26 working days.
JUNE_2025 = (date(2025, 6, 1), date(2025, 6, 30))


def working_days(start, end, weekend=(4,)):
    return [d for d in iter_days(start, end) if d.weekday() not in weekend]


def mark_days(session, employee, days, **fields):
    """Insert attendance rows directly (present unless fields say otherwise)."""
    for d in days:
        session.add(AttendanceRecord(employee_id=employee.id, date=d, **fields))
    session.commit()


def shop_headers(shop, user_id: int = 1) -> dict:
    """Gateway headers identifying the caller and their shop."""
    return {'X-User-Id': str(user_id), 'X-Shop-Id': str(shop.id)}
