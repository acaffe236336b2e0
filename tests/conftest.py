"""
Shared fixtures: an in-memory database per test, seeded users and products
"""
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from storefront.database import Base, get_db
from storefront.models import Product, User
from storefront.main import app

MANAGER_TOKEN = "manager_token_123"
USER_TOKEN = "user_token_456"


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def users(db):
    """Manager is user 1 and the API's regular user is 2; user 7 is another customer"""
    manager = User(user_id=1, name="Manager", email="manager@example.com", phone="0100", role="admin")
    customer = User(user_id=2, name="Api Customer", email="api@example.com", phone="0200")
    other = User(user_id=7, name="Satsuki", email="satsuki@example.com", phone="0700")
    db.add_all([manager, customer, other])
    db.commit()
    return {"manager": manager, "customer": customer, "other": other}


@pytest.fixture
def products(db):
    """Product A: 3.50 with 10 in stock; product B: 5.00 with 1 in stock"""
    a = Product(product_id=1, name="Soot Sprite Rice", price=Decimal("3.50"), stock_quantity=10, low_stock_threshold=2)
    b = Product(product_id=2, name="Totoro Acorns", price=Decimal("5.00"), stock_quantity=1, low_stock_threshold=0)
    c = Product(product_id=3, name="Retired Ramen", price=Decimal("2.25"), stock_quantity=50, is_active=False)
    db.add_all([a, b, c])
    db.commit()
    return {"a": a, "b": b, "inactive": c}


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()
    
    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def auth(token):
    return {"Authorization": f"Bearer {token}"}
