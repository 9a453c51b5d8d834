"""
Unit tests for customer status emails
"""
import asyncio
import json

import httpx
import pytest

from cj_fulfillment.core.models import OrderStatus
from cj_fulfillment.database.models import Order
from cj_fulfillment.services.notifications import SECRET_HEADER, send_order_status_email
from cj_fulfillment.utils.config import StorefrontConfig


@pytest.fixture
def order():
    return Order(
        id="order-1",
        order_number="ORD-1001",
        billing_email="jane@example.com",
        billing_name="Jane Doe",
    )


@pytest.fixture
def store():
    return StorefrontConfig(url="https://shop.example.com/", status_email_secret="hook-secret")


class RecordingTransport:
    def __init__(self, response=None, error=None):
        self.requests = []
        self.response = response or httpx.Response(200, json={"ok": True})
        self.error = error

    def __call__(self, request):
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self.response

    @property
    def transport(self):
        return httpx.MockTransport(self)


def _send(order, store, recorder, status=OrderStatus.SHIPPED):
    return asyncio.run(send_order_status_email(order, status, store, transport=recorder.transport))


def test_status_email_request(order, store):
    recorder = RecordingTransport()

    assert _send(order, store, recorder) is True

    request = recorder.requests[0]
    assert str(request.url) == "https://shop.example.com/api/internal/order-status-email"
    assert request.headers[SECRET_HEADER] == "hook-secret"
    assert json.loads(request.content) == {
        "orderId": "order-1",
        "orderNumber": "ORD-1001",
        "newStatus": "shipped",
        "customerEmail": "jane@example.com",
        "customerName": "Jane Doe",
    }


def test_customer_name_defaults(order, store):
    order.billing_name = None
    recorder = RecordingTransport()

    _send(order, store, recorder, OrderStatus.DELIVERED)

    body = json.loads(recorder.requests[0].content)
    assert body["customerName"] == "Customer"
    assert body["newStatus"] == "delivered"


def test_disabled_without_secret(order):
    recorder = RecordingTransport()

    assert _send(order, StorefrontConfig(url="https://shop.example.com"), recorder) is False
    assert recorder.requests == []


def test_skipped_without_customer_email(order, store):
    order.billing_email = "  "
    recorder = RecordingTransport()

    assert _send(order, store, recorder) is False
    assert recorder.requests == []


def test_rejected_request(order, store):
    recorder = RecordingTransport(response=httpx.Response(401, text="bad secret"))

    assert _send(order, store, recorder) is False


def test_transport_error_is_not_raised(order, store):
    recorder = RecordingTransport(error=httpx.ConnectError("refused"))

    assert _send(order, store, recorder) is False
