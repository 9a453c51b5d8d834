"""
Test configuration and fixtures for CJ Fulfillment
"""
import os

# Console logging only while testing
os.environ.setdefault("LOG_DIR", "")

import uuid
from datetime import datetime, timezone
from typing import Generator
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from cj_fulfillment.core.models import OperationResult
from cj_fulfillment.database.models import Base, Order, OrderItem, SupplierOrder
from cj_fulfillment.database.operations import OrderRepository
from cj_fulfillment.utils.config import CJDropshippingConfig, PricingConfig


FROZEN_NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


# =============================================================================
# Test Database Setup
# =============================================================================

@pytest.fixture(scope="function")
def engine():
    """Create an in-memory SQLite engine with all order tables"""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(engine) -> Generator[Session, None, None]:
    """Create a new database session for each test"""
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def repository(db_session) -> OrderRepository:
    """Order repository bound to the test session"""
    return OrderRepository(db_session)


# =============================================================================
# Order Fixtures
# =============================================================================

@pytest.fixture
def make_order(db_session):
    """Factory creating a paid South African order with one line item"""

    def _make(items=None, **overrides) -> Order:
        fields = {
            "order_number": f"ORD-{uuid.uuid4().hex[:8].upper()}",
            "status": "pending",
            "payment_status": "paid",
            "billing_email": "jane@example.com",
            "billing_name": "Jane Doe",
            "shipping_name": "Jane Doe",
            "shipping_address_line1": "12 Long Street",
            "shipping_city": "Cape Town",
            "shipping_province": "Western Cape",
            "shipping_postal_code": "8001",
            "shipping_country": "South Africa",
            "shipping_phone": "+27 82 123 4567",
        }
        fields.update(overrides)

        order = Order(**fields)
        if items is None:
            items = [{"product_id": "P100", "variant_id": "V100", "quantity": 2}]
        order.items = [OrderItem(**item) for item in items]

        db_session.add(order)
        db_session.commit()
        return order

    return _make


@pytest.fixture
def link_supplier_order(db_session):
    """Factory attaching a supplier order link to a local order"""

    def _link(order: Order, **overrides) -> SupplierOrder:
        fields = {
            "order_id": order.id,
            "supplier_order_id": f"CJ{uuid.uuid4().hex[:10].upper()}",
            "supplier_status": "Created",
            "placed_at": FROZEN_NOW,
        }
        fields.update(overrides)

        link = SupplierOrder(**fields)
        db_session.add(link)
        db_session.commit()
        return link

    return _link


# =============================================================================
# Supplier Fixtures
# =============================================================================

@pytest.fixture
def cj_config() -> CJDropshippingConfig:
    """CJ configuration with login credentials but no signing material"""
    return CJDropshippingConfig(
        email="ops@example.com",
        password="s3cret",
        api_url="https://developers.cjdropshipping.com/api2.0",
    )


@pytest.fixture
def pricing() -> PricingConfig:
    return PricingConfig(price_multiplier=2.5, compare_at_multiplier=3.0)


@pytest.fixture
def token_payload():
    """Factory for a successful CJ token response body"""

    def _payload(access="access-1", refresh="refresh-1",
                 access_expiry="2026-01-30T12:00:00+00:00",
                 refresh_expiry="2026-07-15T12:00:00+00:00"):
        return {
            "code": 200,
            "result": True,
            "message": "Success",
            "data": {
                "accessToken": access,
                "accessTokenExpiryDate": access_expiry,
                "refreshToken": refresh,
                "refreshTokenExpiryDate": refresh_expiry,
            },
        }

    return _payload


class SupplierStub:
    """
    Canned CJ API for ``httpx.MockTransport``.

    Routes are keyed by the path after ``/api2.0``. Each route holds a queue
    of responses: dicts become 200 JSON bodies, ``httpx.Response`` objects
    are returned as-is and exceptions are raised. The last response repeats.
    """

    def __init__(self):
        self.routes = {}
        self.requests = []

    def on(self, path, *responses):
        self.routes[path] = list(responses)
        return self

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.split("/api2.0", 1)[-1]

        queue = self.routes.get(path)
        if not queue:
            return httpx.Response(404, json={"message": f"No route for {path}"})

        response = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(response, Exception):
            raise response
        if isinstance(response, httpx.Response):
            return response
        return httpx.Response(200, json=response)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def calls(self, path):
        return [r for r in self.requests if r.url.path.endswith(path)]


@pytest.fixture
def supplier_stub() -> SupplierStub:
    return SupplierStub()


@pytest.fixture
def static_tokens():
    """Token manager stand-in that always hands out the same access token"""
    tokens = MagicMock()
    tokens.get_access_token = AsyncMock(return_value="test-access-token")
    tokens.aclose = AsyncMock()
    return tokens


@pytest.fixture
def mock_gateway():
    """Supplier gateway with every operation mocked"""
    gateway = MagicMock()
    gateway.create_order = AsyncMock()
    gateway.get_order_detail = AsyncMock(return_value=OperationResult.fail("Order not found"))
    gateway.get_order_status = AsyncMock(return_value=OperationResult.fail("Order not found"))
    gateway.get_tracking = AsyncMock(return_value=OperationResult.ok([]))
    return gateway
