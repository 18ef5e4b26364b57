"""
Pytest fixtures for the back-office tests.

In-memory SQLite shared through a StaticPool, one fresh schema per test,
and a TestClient with the database and current user dependencies overridden.
"""

import os
from decimal import Decimal

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from backoffice.api.auth import get_current_user
from backoffice.database import Base, get_db, init_db
from backoffice.main import app
from backoffice.models.agent import Agent, AgentType, PricingTier
from backoffice.models.product import Product
from backoffice.models.stock import StockLevel, Warehouse
from backoffice.models.user import User
from backoffice.schemas.order import AgentOrderCreate, OrderCreate
from backoffice.services import order_service
from backoffice.services.auth_service import hash_password


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    """Session bound to the per-test database."""
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    yield session
    session.close()


@pytest.fixture
def user(db):
    u = User(username="staff", display_name="Staff", password_hash=hash_password("secret"), role="admin")
    db.add(u)
    db.commit()
    db.refresh(u)
    return u


@pytest.fixture
def client(db, user):
    """Test client acting as ``user``."""

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = lambda: user
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def warehouse(db):
    w = Warehouse(code="WH-KL", name="Kuala Lumpur")
    db.add(w)
    db.commit()
    db.refresh(w)
    return w


@pytest.fixture
def product(db):
    p = Product(sku="BK-001", name="Buku Latihan", base_price=Decimal("10.00"), cost_price=Decimal("6.00"))
    db.add(p)
    db.commit()
    db.refresh(p)
    return p


@pytest.fixture
def product_b(db):
    p = Product(sku="BK-002", name="Buku Cerita", base_price=Decimal("5.50"), cost_price=Decimal("3.00"))
    db.add(p)
    db.commit()
    db.refresh(p)
    return p


@pytest.fixture
def stock(db, product, warehouse):
    """10 units of ``product`` in ``warehouse``."""
    level = StockLevel(
        product_id=product.id,
        warehouse_id=warehouse.id,
        quantity=10,
        reserved_quantity=0,
        available_quantity=10,
        average_cost=Decimal("6.00"),
    )
    db.add(level)
    db.commit()
    db.refresh(level)
    return level


@pytest.fixture
def agent(db):
    a = Agent(
        agent_code="AG-000001",
        name="Kedai Ilmu",
        type=AgentType.AGENT,
        pricing_tier=PricingTier.STANDARD,
        email="ilmu@example.com",
        phone="0123456789",
    )
    db.add(a)
    db.commit()
    db.refresh(a)
    return a


@pytest.fixture
def make_order(db, user, product, warehouse):
    """Factory: guest order for ``product`` (qty 3 by default) shipped from ``warehouse``."""

    def _make(quantity=3, status="pending", warehouse_id="default", **kwargs):
        data = OrderCreate(
            guest_email="guest@example.com",
            customer_name="Guest Buyer",
            items=[{
                "product_id": product.id,
                "warehouse_id": warehouse.id if warehouse_id == "default" else warehouse_id,
                "quantity": quantity,
            }],
            status=status,
            **kwargs,
        )
        return order_service.create_order(db, data, actor_id=user.id)

    return _make


@pytest.fixture
def make_agent_order(db, user, agent, product, warehouse):
    def _make(quantity=2, status="pending", **kwargs):
        data = AgentOrderCreate(
            agent_id=agent.id,
            items=[{"product_id": product.id, "warehouse_id": warehouse.id, "quantity": quantity}],
            status=status,
            **kwargs,
        )
        return order_service.create_agent_order(db, data, actor_id=user.id)

    return _make
