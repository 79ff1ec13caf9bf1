"""
Pytest fixtures for Vestra backend tests.

Provides test database setup, two tenants with stores/users/products,
stock helpers and a test client.

Every fixture commits what it creates: services open their own write
transaction (BEGIN IMMEDIATE on SQLite) and must not find one pending.
"""

import pytest
from vestra import create_app
from vestra.extensions import db
from vestra.models import Organization, Store, User, InventoryItem, Client, InvoiceSettings
from vestra.services.auth_service import hash_password
from vestra.services.session_service import context_for_user
from vestra.services.products_service import create_product


PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'FISCAL_API_TOKEN': '',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='session')
def password_hash():
    """bcrypt is slow on purpose; hash the shared test password once."""
    return hash_password(PASSWORD)


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


# =============================================================================
# TENANTS
# =============================================================================

@pytest.fixture(scope='function')
def org_a(db_session):
    """Organization A (first tenant)."""
    org = Organization(name="Acme Moda", slug="acme", document="12.345.678/0001-90", is_active=True)
    db_session.add(org)
    db_session.commit()
    return org


@pytest.fixture(scope='function')
def org_b(db_session):
    """Organization B (second tenant)."""
    org = Organization(name="Beta Roupas", slug="beta", is_active=True)
    db_session.add(org)
    db_session.commit()
    return org


@pytest.fixture(scope='function')
def store_a(db_session, org_a):
    """Headquarters of Organization A (first store created)."""
    store = Store(org_id=org_a.id, name="Matriz", timezone="America/Sao_Paulo")
    db_session.add(store)
    db_session.commit()
    return store


@pytest.fixture(scope='function')
def store_a2(db_session, org_a, store_a):
    """Second store of Organization A."""
    store = Store(org_id=org_a.id, name="Filial Centro", timezone="America/Sao_Paulo")
    db_session.add(store)
    db_session.commit()
    return store


@pytest.fixture(scope='function')
def store_b(db_session, org_b):
    """Store in Organization B."""
    store = Store(org_id=org_b.id, name="Beta Matriz", timezone="America/Sao_Paulo")
    db_session.add(store)
    db_session.commit()
    return store


# =============================================================================
# USERS AND CONTEXTS
# =============================================================================

def _make_user(db_session, org, store, email, role, password_hash):
    user = User(
        org_id=org.id,
        store_id=store.id,
        name=email.split("@")[0].title(),
        email=email,
        password_hash=password_hash,
        role=role,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def owner_a(db_session, org_a, store_a, password_hash):
    return _make_user(db_session, org_a, store_a, "owner@acme.com", "owner", password_hash)


@pytest.fixture(scope='function')
def seller_a(db_session, org_a, store_a, password_hash):
    return _make_user(db_session, org_a, store_a, "seller@acme.com", "seller", password_hash)


@pytest.fixture(scope='function')
def owner_b(db_session, org_b, store_b, password_hash):
    return _make_user(db_session, org_b, store_b, "owner@beta.com", "owner", password_hash)


@pytest.fixture(scope='function')
def owner_ctx(owner_a, store_a):
    return context_for_user(owner_a, store_a.id)


@pytest.fixture(scope='function')
def seller_ctx(seller_a, store_a):
    return context_for_user(seller_a, store_a.id)


@pytest.fixture(scope='function')
def owner_b_ctx(owner_b, store_b):
    return context_for_user(owner_b, store_b.id)


# =============================================================================
# CATALOG AND STOCK
# =============================================================================

@pytest.fixture(scope='function')
def simple_product(db_session, org_a):
    """Product without variants in Organization A."""
    return create_product(org_a.id, "Camiseta Básica", 5000, sku="CAM-001")


@pytest.fixture(scope='function')
def variant_product(db_session, org_a):
    """Product with two variants (Azul / 38, Preto / 40) in Organization A."""
    return create_product(
        org_a.id, "Calça Jeans", 12000, sku="CAL-001",
        variants=[("Azul", "38"), ("Preto", "40")],
    )


@pytest.fixture(scope='function')
def product_b(db_session, org_b):
    """Product without variants in Organization B."""
    return create_product(org_b.id, "Produto Beta", 3000, sku="BETA-001")


@pytest.fixture(scope='function')
def client_a(db_session, org_a):
    """Customer of Organization A."""
    customer = Client(org_id=org_a.id, name="Maria Silva", document="123.456.789-00", email="maria@example.com")
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def set_stock(db_session):
    """Write a ledger row directly and return it."""
    def _set(store, product, quantity, variant=None):
        row = InventoryItem(
            store_id=store.id,
            product_id=product.id,
            variant_id=variant.id if variant is not None else None,
            quantity=quantity,
        )
        db_session.add(row)
        db_session.commit()
        return row
    return _set


@pytest.fixture(scope='function')
def quantity_of(db_session):
    """Current quantity of a ledger row, or None when the row does not exist."""
    def _get(store, product, variant=None):
        db_session.expire_all()
        query = db_session.query(InventoryItem).filter_by(store_id=store.id, product_id=product.id)
        if variant is None:
            query = query.filter(InventoryItem.variant_id.is_(None))
        else:
            query = query.filter_by(variant_id=variant.id)
        row = query.first()
        return row.quantity if row else None
    return _get


@pytest.fixture(scope='function')
def invoicing_on(db_session, org_a):
    """Enable NFC-e emission for Organization A."""
    settings = InvoiceSettings(org_id=org_a.id, is_active=True, csc_id="1", csc_token="TOKEN")
    db_session.add(settings)
    db_session.commit()
    return settings


# =============================================================================
# HTTP HELPERS
# =============================================================================

def get_auth_token(client, email: str, password: str = PASSWORD, org_slug: str | None = None) -> str:
    """Helper to get auth token for a user."""
    payload = {'email': email, 'password': password}
    if org_slug:
        payload['org_slug'] = org_slug
    response = client.post('/api/auth/login', json=payload)
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}
