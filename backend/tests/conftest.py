"""
Pytest fixtures for the stock ledger backend tests.

Provides test database setup, branch / user / variant fixtures, and test client.
"""

import pytest
from app import create_app
from app.extensions import db
from app.models import Branch, User, Product, ProductVariant


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LOG_LEVEL': 'WARNING',
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
def branch(db_session):
    """Create Branch 1."""
    branch = Branch(name="Main Branch", is_active=True)
    db_session.add(branch)
    db_session.commit()
    return branch


@pytest.fixture(scope='function')
def branch_two(db_session):
    """Create Branch 2 (independent ref sequences and stock)."""
    branch = Branch(name="Riverside Branch", is_active=True)
    db_session.add(branch)
    db_session.commit()
    return branch


@pytest.fixture(scope='function')
def user(db_session, branch):
    """Acting user for every workflow call."""
    user = User(branch_id=branch.id, username="clerk", first_name="Sok", last_name="Dara")
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def variant(db_session):
    product = Product(name="Cola")
    db_session.add(product)
    db_session.flush()
    variant = ProductVariant(product_id=product.id, name="Cola 330ml", sku="COLA-330", barcode="885000000001")
    db_session.add(variant)
    db_session.commit()
    return variant


@pytest.fixture(scope='function')
def variant_two(db_session):
    product = Product(name="Water")
    db_session.add(product)
    db_session.flush()
    variant = ProductVariant(product_id=product.id, name="Water 1.5L", sku="WATER-15", barcode="885000000002")
    db_session.add(variant)
    db_session.commit()
    return variant


@pytest.fixture(scope='function')
def actor_headers(user):
    return {"X-User-Id": str(user.id)}
