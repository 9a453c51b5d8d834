"""
Unit tests for carrier status classification and status transitions
"""
import pytest

from cj_fulfillment.core.models import OrderStatus, TrackingStage
from cj_fulfillment.core.tracking import (
    is_forward_transition, normalize_carrier_status, stage_to_local_status,
)


@pytest.mark.parametrize("raw,stage", [
    ("Delivered", TrackingStage.DELIVERED),
    ("Parcel DELIVERED to recipient", TrackingStage.DELIVERED),
    ("Unsuccessful delivery attempt", TrackingStage.UNSUCCESSFUL_DELIVERY),
    ("Delivery failed, recipient absent", TrackingStage.UNSUCCESSFUL_DELIVERY),
    ("Available for pickup", TrackingStage.AVAILABLE_FOR_PICKUP),
    ("Ready to pick up at branch", TrackingStage.AVAILABLE_FOR_PICKUP),
    ("Out for delivery", TrackingStage.OUT_FOR_DELIVERY),
    ("Arrived at sorting facility", TrackingStage.ARRIVED_COURIER_FACILITY),
    ("In transit", TrackingStage.EN_ROUTE),
    ("En route to destination", TrackingStage.EN_ROUTE),
    ("Dispatched from warehouse", TrackingStage.DISPATCHED),
    ("Shipped", TrackingStage.DISPATCHED),
    ("Order created", TrackingStage.PROCESSING),
    ("Pending", TrackingStage.PROCESSING),
])
def test_normalize_carrier_status(raw, stage):
    assert normalize_carrier_status(raw) == stage


@pytest.mark.parametrize("raw", ["", "   ", None, "Label printed"])
def test_unrecognized_carrier_status(raw):
    assert normalize_carrier_status(raw) is None


@pytest.mark.parametrize("stage,status", [
    (TrackingStage.PROCESSING, OrderStatus.PROCESSING),
    (TrackingStage.DISPATCHED, OrderStatus.SHIPPED),
    (TrackingStage.EN_ROUTE, OrderStatus.SHIPPED),
    (TrackingStage.ARRIVED_COURIER_FACILITY, OrderStatus.SHIPPED),
    (TrackingStage.OUT_FOR_DELIVERY, OrderStatus.SHIPPED),
    (TrackingStage.AVAILABLE_FOR_PICKUP, OrderStatus.SHIPPED),
    (TrackingStage.UNSUCCESSFUL_DELIVERY, OrderStatus.SHIPPED),
    (TrackingStage.DELIVERED, OrderStatus.DELIVERED),
    (None, None),
])
def test_stage_to_local_status(stage, status):
    assert stage_to_local_status(stage) == status


class TestForwardTransition:
    """Status only ever moves forward"""

    @pytest.mark.parametrize("current,proposed", [
        (OrderStatus.PENDING, OrderStatus.PROCESSING),
        (OrderStatus.PENDING, OrderStatus.DELIVERED),
        (OrderStatus.PROCESSING, OrderStatus.SHIPPED),
        ("shipped", "delivered"),
        ("SHIPPED", OrderStatus.DELIVERED),
    ])
    def test_forward_moves_allowed(self, current, proposed):
        assert is_forward_transition(current, proposed) is True

    @pytest.mark.parametrize("current,proposed", [
        (OrderStatus.SHIPPED, OrderStatus.PROCESSING),
        (OrderStatus.DELIVERED, OrderStatus.SHIPPED),
        (OrderStatus.SHIPPED, OrderStatus.SHIPPED),
    ])
    def test_backward_and_equal_moves_rejected(self, current, proposed):
        assert is_forward_transition(current, proposed) is False

    @pytest.mark.parametrize("current", [OrderStatus.CANCELLED, OrderStatus.REFUNDED])
    def test_terminal_orders_never_move(self, current):
        assert is_forward_transition(current, OrderStatus.DELIVERED) is False

    def test_unknown_statuses_rejected(self):
        assert is_forward_transition("on_hold", OrderStatus.SHIPPED) is False
        assert is_forward_transition(None, OrderStatus.SHIPPED) is False
        assert is_forward_transition(OrderStatus.SHIPPED, OrderStatus.CANCELLED) is False
