"""
Tracking status rules.

Maps free-text carrier status strings onto ``TrackingStage`` values, maps
stages onto local order statuses, and decides whether a status change moves
an order forward. Status may only move forward; cancelled and refunded
orders are never changed by tracking updates.
"""

from typing import Optional, Union

from cj_fulfillment.core.models import OrderStatus, TrackingStage


# Ordinal position of each forward-moving local status
STATUS_ORDER = {
    OrderStatus.PENDING: 0,
    OrderStatus.PROCESSING: 1,
    OrderStatus.SHIPPED: 2,
    OrderStatus.DELIVERED: 3,
}

# Checked in order, first match wins. "delivered" must precede the
# "unsuccessful delivery" keywords and "pick up" must precede "in transit".
_STAGE_KEYWORDS = (
    (TrackingStage.DELIVERED, ("delivered",)),
    (TrackingStage.UNSUCCESSFUL_DELIVERY, ("unsuccessful", "failed", "failure")),
    (TrackingStage.AVAILABLE_FOR_PICKUP, ("pickup", "pick up", "available")),
    (TrackingStage.OUT_FOR_DELIVERY, ("out for delivery",)),
    (TrackingStage.ARRIVED_COURIER_FACILITY, ("arrived", "courier", "facility")),
    (TrackingStage.EN_ROUTE, ("en route", "in transit", "transit")),
    (TrackingStage.DISPATCHED, ("dispatched", "shipped")),
    (TrackingStage.PROCESSING, ("processing", "created", "pending")),
)

_IN_MOTION_STAGES = (
    TrackingStage.DISPATCHED,
    TrackingStage.EN_ROUTE,
    TrackingStage.ARRIVED_COURIER_FACILITY,
    TrackingStage.OUT_FOR_DELIVERY,
    TrackingStage.AVAILABLE_FOR_PICKUP,
    TrackingStage.UNSUCCESSFUL_DELIVERY,
)


def normalize_carrier_status(raw: Optional[str]) -> Optional[TrackingStage]:
    """Classify a carrier status string; None when nothing matches."""
    text = (raw or "").strip().lower()
    if not text:
        return None

    for stage, keywords in _STAGE_KEYWORDS:
        if any(keyword in text for keyword in keywords):
            return stage

    return None


def stage_to_local_status(stage: Optional[TrackingStage]) -> Optional[OrderStatus]:
    """Local order status implied by a tracking stage."""
    if stage is None:
        return None
    if stage == TrackingStage.DELIVERED:
        return OrderStatus.DELIVERED
    if stage in _IN_MOTION_STAGES:
        return OrderStatus.SHIPPED
    if stage == TrackingStage.PROCESSING:
        return OrderStatus.PROCESSING
    return None


def _coerce(status: Union[OrderStatus, str, None]) -> Optional[OrderStatus]:
    if isinstance(status, OrderStatus):
        return status
    try:
        return OrderStatus(str(status or "").strip().lower())
    except ValueError:
        return None


def is_forward_transition(current: Union[OrderStatus, str, None],
                          proposed: Union[OrderStatus, str, None]) -> bool:
    """
    Whether moving from ``current`` to ``proposed`` is a forward step.

    False when the statuses are equal, when ``current`` is terminal, or when
    either side has no place on the forward scale.
    """
    current_status = _coerce(current)
    next_status = _coerce(proposed)

    if current_status is None or next_status is None:
        return False
    if current_status == next_status or current_status.is_terminal:
        return False
    if current_status not in STATUS_ORDER or next_status not in STATUS_ORDER:
        return False

    return STATUS_ORDER[next_status] > STATUS_ORDER[current_status]
