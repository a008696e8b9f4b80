"""
Pytest fixtures for backoffice backend tests.

Provides test database setup, catalog/purchasing fixtures, and test client.
"""

import pytest

from backoffice import create_app
from backoffice.extensions import db
from backoffice.models import (
    Color,
    Input,
    InputVariant,
    Product,
    ProductVariant,
    Size,
    Supplier,
)
from backoffice.services.factory import build_services


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'RETRY_BACKOFF_SECONDS': 0,
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
def services(app, db_session):
    """Service graph bound to the test session."""
    return build_services(db_session, app.config)


@pytest.fixture(scope='function')
def product(db_session):
    product = Product(sku="TEE-001", name="Basic Tee")
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def colors(db_session):
    black = Color(name="Black", hex_code="#000000")
    white = Color(name="White", hex_code="#FFFFFF")
    db_session.add_all([black, white])
    db_session.commit()
    return black, white


@pytest.fixture(scope='function')
def sizes(db_session):
    small = Size(name="Small", abbreviation="S")
    medium = Size(name="Medium", abbreviation="M")
    db_session.add_all([small, medium])
    db_session.commit()
    return small, medium


def make_variant(db_session, product, *, sku, stock=0, min_stock=0, color=None, size=None):
    variant = ProductVariant(
        product_id=product.id,
        sku=sku,
        stock=stock,
        min_stock=min_stock,
        color_id=color.id if color else None,
        size_id=size.id if size else None,
    )
    db_session.add(variant)
    db_session.commit()
    return variant


@pytest.fixture(scope='function')
def variant(db_session, product, colors, sizes):
    """Variant with 10 units on hand."""
    return make_variant(db_session, product, sku="TEE-001-BLK-S", stock=10, min_stock=2,
                        color=colors[0], size=sizes[0])


@pytest.fixture(scope='function')
def second_variant(db_session, product, colors, sizes):
    """Variant with 5 units on hand."""
    return make_variant(db_session, product, sku="TEE-001-WHT-M", stock=5, min_stock=2,
                        color=colors[1], size=sizes[1])


@pytest.fixture(scope='function')
def supplier(db_session):
    supplier = Supplier(code="SUP-1", name="Textiles del Norte")
    db_session.add(supplier)
    db_session.commit()
    return supplier


@pytest.fixture(scope='function')
def raw_input(db_session):
    """Batch-tracked raw material with no stock."""
    item = Input(code="INK-BLK", name="Black ink", unit_of_measure="ML")
    db_session.add(item)
    db_session.commit()
    return item


@pytest.fixture(scope='function')
def blank_with_variants(db_session, colors, sizes):
    """Raw material sold by color/size: two active sub-variants (3 and 4 units) and one inactive."""
    blank = Input(code="BLANK-TEE", name="Blank tee", current_stock=7)
    db_session.add(blank)
    db_session.flush()

    small = InputVariant(input_id=blank.id, sku="BLANK-TEE-S", color_id=colors[0].id,
                         size_id=sizes[0].id, current_stock=3)
    medium = InputVariant(input_id=blank.id, sku="BLANK-TEE-M", color_id=colors[0].id,
                          size_id=sizes[1].id, current_stock=4)
    retired = InputVariant(input_id=blank.id, sku="BLANK-TEE-OLD", current_stock=50, is_active=False)
    db_session.add_all([small, medium, retired])
    db_session.commit()
    return blank, small, medium
