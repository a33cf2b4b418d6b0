"""
Pytest fixtures for brandledger backend tests.

Provides an in-memory database, two brands, users with different brand
scopes, products and an authenticated test client.
"""

import pytest

from brandledger import create_app
from brandledger.extensions import db
from brandledger.models import BrandProfile, Product
from brandledger.services.auth_service import (
    ROLE_OWNER,
    ROLE_STAFF,
    assign_role,
    create_default_roles,
    create_user,
    grant_brand,
)
from brandledger.services.tenant_service import TenantContext

PASSWORD = "Password123"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'BCRYPT_ROUNDS': 4,
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
def setup_roles(db_session):
    create_default_roles()


@pytest.fixture(scope='function')
def brand_a(db_session):
    brand = BrandProfile(name="Brand A", slug="brand-a", is_active=True)
    db_session.add(brand)
    db_session.commit()
    return brand


@pytest.fixture(scope='function')
def brand_b(db_session):
    brand = BrandProfile(name="Brand B", slug="brand-b", is_active=True)
    db_session.add(brand)
    db_session.commit()
    return brand


@pytest.fixture(scope='function')
def owner(db_session, setup_roles, brand_a, brand_b):
    """Owner: may work in every brand, defaults to Brand A."""
    user = create_user("owner", PASSWORD, default_brand_profile_id=brand_a.id)
    assign_role(user.id, ROLE_OWNER)
    return user


@pytest.fixture(scope='function')
def staff(db_session, setup_roles, brand_a, brand_b):
    """Staff: scoped to Brand A only."""
    user = create_user("staff", PASSWORD)
    assign_role(user.id, ROLE_STAFF)
    grant_brand(user.id, brand_a.id)
    return user


@pytest.fixture(scope='function')
def tenant(owner, brand_a):
    return TenantContext(brand_id=brand_a.id, user_id=owner.id, roles=(ROLE_OWNER,))


@pytest.fixture(scope='function')
def tenant_b(owner, brand_b):
    return TenantContext(brand_id=brand_b.id, user_id=owner.id, roles=(ROLE_OWNER,))


def _product(db_session, brand, sku, name, qty, track_stock=True):
    product = Product(
        brand_profile_id=brand.id,
        sku=sku,
        name=name,
        unit="pcs",
        qty=qty,
        track_stock=track_stock,
        price=50000,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def product(db_session, brand_a):
    """Tracked product in Brand A with 10 on hand."""
    return _product(db_session, brand_a, "KAOS-001", "Kaos Polos", 10)


@pytest.fixture(scope='function')
def product_2(db_session, brand_a):
    """Second tracked product in Brand A with 20 on hand."""
    return _product(db_session, brand_a, "TOPI-001", "Topi", 20)


@pytest.fixture(scope='function')
def untracked_product(db_session, brand_a):
    return _product(db_session, brand_a, "JASA-001", "Jasa Sablon", 0, track_stock=False)


@pytest.fixture(scope='function')
def product_b(db_session, brand_b):
    """Tracked product in Brand B."""
    return _product(db_session, brand_b, "KAOS-B-001", "Kaos Brand B", 7)


def get_auth_token(client, username: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'username': username,
        'password': password
    })
    if response.status_code == 200:
        return response.json['data']['token']
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def owner_headers(client, owner):
    return auth_headers(get_auth_token(client, "owner"))


@pytest.fixture(scope='function')
def staff_headers(client, staff):
    return auth_headers(get_auth_token(client, "staff"))
