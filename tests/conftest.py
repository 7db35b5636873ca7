"""
Pytest fixtures for PetHub tests.

Provides test database setup, two isolated tenants (businesses A and B)
with owners, customers, pets, services and products, and bearer tokens
for the HTTP tests.
"""

import pytest

from pethub import create_app
from pethub.config import TestConfig
from pethub.extensions import db
from pethub.models import AccountRole, Customer, Pet, Product, Service
from pethub.services import account_service, session_service
from pethub.services.tenant_service import TenantContext


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TestConfig)

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


@pytest.fixture(autouse=True)
def plan_limits_off(app):
    """Tests that need the monthly cap switch it on themselves."""
    app.config["ENFORCE_PLAN_LIMITS"] = False
    yield
    app.config["ENFORCE_PLAN_LIMITS"] = False


# ---------------------------------------------------------------------------
# Tenants and accounts
# ---------------------------------------------------------------------------

@pytest.fixture(scope='function')
def business_a(db_session):
    """Business A (first tenant)."""
    return account_service.create_business(
        name="Happy Paws", email="hello@happypaws.test", phone="555-0100", plan="basic",
    )


@pytest.fixture(scope='function')
def business_b(db_session):
    """Business B (second tenant)."""
    return account_service.create_business(
        name="Clean Tails", email="hi@cleantails.test", phone="555-0200", plan="free",
    )


@pytest.fixture(scope='function')
def owner_a(business_a):
    return account_service.create_owner_account(
        business_id=business_a.id, email="owner@happypaws.test", name="Ana",
    )


@pytest.fixture(scope='function')
def owner_b(business_b):
    return account_service.create_owner_account(
        business_id=business_b.id, email="owner@cleantails.test", name="Bruno",
    )


@pytest.fixture(scope='function')
def ctx_a(business_a, owner_a):
    return TenantContext(business_id=business_a.id, account_id=owner_a.id, role=AccountRole.OWNER)


@pytest.fixture(scope='function')
def ctx_b(business_b, owner_b):
    return TenantContext(business_id=business_b.id, account_id=owner_b.id, role=AccountRole.OWNER)


@pytest.fixture(scope='function')
def owner_token_a(owner_a):
    _, token = session_service.issue_token(owner_a.id)
    return token


@pytest.fixture(scope='function')
def owner_token_b(owner_b):
    _, token = session_service.issue_token(owner_b.id)
    return token


# ---------------------------------------------------------------------------
# Customers and pets
# ---------------------------------------------------------------------------

@pytest.fixture(scope='function')
def customer_a(db_session, business_a):
    customer = Customer(
        business_id=business_a.id,
        name="Carla Souza",
        phone="555-1111",
        email="carla@mail.test",
    )
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def other_customer_a(db_session, business_a):
    """Second customer of business A, for portal isolation tests."""
    customer = Customer(business_id=business_a.id, name="Diego Lima", phone="555-2222")
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def customer_b(db_session, business_b):
    customer = Customer(business_id=business_b.id, name="Elisa Rocha", phone="555-3333")
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def large_pet(db_session, customer_a):
    pet = Pet(customer_id=customer_a.id, name="Thor", breed="Golden Retriever", age=4, size="large")
    db_session.add(pet)
    db_session.commit()
    return pet


@pytest.fixture(scope='function')
def small_pet(db_session, customer_a):
    pet = Pet(customer_id=customer_a.id, name="Mel", breed="Shih Tzu", age=2, size="small")
    db_session.add(pet)
    db_session.commit()
    return pet


@pytest.fixture(scope='function')
def other_pet_a(db_session, other_customer_a):
    pet = Pet(customer_id=other_customer_a.id, name="Luna", breed="Poodle", age=6, size="medium")
    db_session.add(pet)
    db_session.commit()
    return pet


@pytest.fixture(scope='function')
def pet_b(db_session, customer_b):
    pet = Pet(customer_id=customer_b.id, name="Rex", breed="Beagle", age=3, size="medium")
    db_session.add(pet)
    db_session.commit()
    return pet


@pytest.fixture(scope='function')
def customer_account_a(customer_a):
    return account_service.create_customer_account(customer_id=customer_a.id)


@pytest.fixture(scope='function')
def customer_token_a(customer_account_a):
    _, token = session_service.issue_token(customer_account_a.id)
    return token


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------

@pytest.fixture(scope='function')
def bath_service(db_session, business_a):
    """Bath: 60 minutes, small 25.00 / medium 35.00 / large 50.00."""
    service = Service(
        business_id=business_a.id,
        name="Bath",
        duration_minutes=60,
        price_small_cents=2500,
        price_medium_cents=3500,
        price_large_cents=5000,
    )
    db_session.add(service)
    db_session.commit()
    return service


@pytest.fixture(scope='function')
def grooming_service(db_session, business_a):
    service = Service(
        business_id=business_a.id,
        name="Full Grooming",
        duration_minutes=90,
        price_small_cents=4000,
        price_medium_cents=5500,
        price_large_cents=7000,
    )
    db_session.add(service)
    db_session.commit()
    return service


@pytest.fixture(scope='function')
def service_b(db_session, business_b):
    service = Service(
        business_id=business_b.id,
        name="Bath B",
        duration_minutes=30,
        price_small_cents=2000,
        price_medium_cents=3000,
        price_large_cents=4000,
    )
    db_session.add(service)
    db_session.commit()
    return service


@pytest.fixture(scope='function')
def shampoo(db_session, business_a):
    """Product in business A with 5 units in stock."""
    product = Product(
        business_id=business_a.id,
        name="Oatmeal Shampoo",
        brand="PetCare",
        category="hygiene",
        barcode="7890000000011",
        price_cents=1990,
        cost_cents=900,
        stock_quantity=5,
        min_stock=2,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def treats(db_session, business_a):
    product = Product(
        business_id=business_a.id,
        name="Chicken Treats",
        category="food",
        price_cents=850,
        cost_cents=400,
        stock_quantity=20,
        min_stock=5,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def product_b(db_session, business_b):
    product = Product(
        business_id=business_b.id,
        name="Flea Collar",
        price_cents=4500,
        stock_quantity=10,
    )
    db_session.add(product)
    db_session.commit()
    return product


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def owner_headers_a(owner_token_a):
    return auth_headers(owner_token_a)


@pytest.fixture(scope='function')
def owner_headers_b(owner_token_b):
    return auth_headers(owner_token_b)


@pytest.fixture(scope='function')
def customer_headers_a(customer_token_a):
    return auth_headers(customer_token_a)
