"""
Order repository.

Reads and writes the order fields the fulfillment core owns: tracking
assignment, tracking snapshots, supplier order links and order status.
Every mutation commits; SQLAlchemy failures are rolled back and re-raised
as ``DatabaseError``.
"""

from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from cj_fulfillment.core.models import OrderStatus, SupplierOrderResponse, TrackingInfo, TrackingStage
from cj_fulfillment.database.models import Order, OrderTracking, SupplierOrder
from cj_fulfillment.utils.exceptions import DatabaseError
from cj_fulfillment.utils.logger import get_logger


logger = get_logger(__name__)

FAILED_STATUS = "failed"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OrderRepository:
    """Order persistence on top of a SQLAlchemy session."""

    def __init__(self, session: Session):
        self.session = session

    def _commit(self, operation: str, record_id: Optional[str] = None) -> None:
        try:
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Database {operation} failed for {record_id}: {e}")
            raise DatabaseError(f"Database {operation} failed: {e}", operation=operation, record_id=record_id)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_order(self, order_id: str) -> Optional[Order]:
        try:
            return self.session.get(Order, order_id)
        except SQLAlchemyError as e:
            raise DatabaseError(f"Failed to load order: {e}", operation="get_order", record_id=order_id)

    def get_supplier_order(self, order_id: str) -> Optional[SupplierOrder]:
        """First supplier order link for a local order, if any."""
        try:
            return self.session.execute(
                select(SupplierOrder)
                .where(SupplierOrder.order_id == order_id)
                .order_by(SupplierOrder.created_at)
                .limit(1)
            ).scalar_one_or_none()
        except SQLAlchemyError as e:
            raise DatabaseError(
                f"Failed to load supplier order: {e}", operation="get_supplier_order", record_id=order_id
            )

    def list_open_orders(self) -> List[Order]:
        """
        Orders still moving through fulfillment.

        Not delivered, cancelled or refunded, and linked to a supplier order
        that did not fail.
        """
        closed = [OrderStatus.DELIVERED.value, OrderStatus.CANCELLED.value, OrderStatus.REFUNDED.value]
        try:
            return list(self.session.execute(
                select(Order)
                .join(SupplierOrder, SupplierOrder.order_id == Order.id)
                .where(Order.status.notin_(closed))
                .where(SupplierOrder.supplier_status != FAILED_STATUS)
                .order_by(Order.created_at)
                .distinct()
            ).scalars())
        except SQLAlchemyError as e:
            raise DatabaseError(f"Failed to list open orders: {e}", operation="list_open_orders")

    # ------------------------------------------------------------------
    # Tracking
    # ------------------------------------------------------------------

    def save_tracking_assignment(self, order: Order, link: Optional[SupplierOrder],
                                 tracking_number: str, tracking_url: Optional[str]) -> None:
        """Store a newly discovered tracking number on the order and its supplier link."""
        order.tracking_number = tracking_number
        order.tracking_url = tracking_url or None
        if link is not None:
            link.tracking_number = tracking_number
        self._commit("save_tracking_assignment", order.id)
        logger.info(f"Saved tracking number {tracking_number} for order {order.order_number}")

    def upsert_tracking_snapshot(self, order_id: str, info: TrackingInfo, fallback_number: str,
                                 stage: Optional[TrackingStage]) -> OrderTracking:
        """Insert or replace the order's tracking snapshot (one row per order)."""
        snapshot = self.session.execute(
            select(OrderTracking).where(OrderTracking.order_id == order_id)
        ).scalar_one_or_none()

        if snapshot is None:
            snapshot = OrderTracking(order_id=order_id)
            self.session.add(snapshot)

        snapshot.tracking_number = info.tracking_number or fallback_number
        snapshot.logistic_name = info.logistic_name or None
        snapshot.tracking_from = info.tracking_from or None
        snapshot.tracking_to = info.tracking_to or None
        snapshot.delivery_day = info.delivery_day or None
        snapshot.delivery_time = info.delivery_time or None
        snapshot.tracking_status = info.tracking_status or None
        snapshot.tracking_stage = stage.value if stage else None
        snapshot.last_mile_carrier = info.last_mile_carrier or None
        snapshot.last_track_number = info.last_track_number or None
        snapshot.updated_at = _utcnow()

        self._commit("upsert_tracking_snapshot", order_id)
        return snapshot

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def update_order_status(self, order: Order, status: OrderStatus) -> None:
        """Set the order status, stamping ``shipped_at``/``delivered_at`` the first time."""
        now = _utcnow()
        previous = order.status
        order.status = status.value
        order.updated_at = now

        if status == OrderStatus.SHIPPED and order.shipped_at is None:
            order.shipped_at = now
        if status == OrderStatus.DELIVERED and order.delivered_at is None:
            order.delivered_at = now

        self._commit("update_order_status", order.id)
        logger.info(f"Order {order.order_number} status {previous} -> {status.value}")

    # ------------------------------------------------------------------
    # Supplier order links
    # ------------------------------------------------------------------

    def record_supplier_failure(self, order: Order, link: Optional[SupplierOrder],
                                error_message: str) -> SupplierOrder:
        """Record a failed placement, updating the existing failed link on retry."""
        now = _utcnow()
        if link is None:
            link = SupplierOrder(order_id=order.id, created_at=now)
            self.session.add(link)

        link.supplier_status = FAILED_STATUS
        link.error_message = error_message
        link.last_synced_at = now

        self._commit("record_supplier_failure", order.id)
        return link

    def record_supplier_success(self, order: Order, link: Optional[SupplierOrder],
                                response: SupplierOrderResponse) -> SupplierOrder:
        """Record a successful placement, replacing a previous failed attempt if present."""
        now = _utcnow()
        if link is None:
            link = SupplierOrder(order_id=order.id, created_at=now)
            self.session.add(link)

        link.supplier_order_id = response.order_id
        link.supplier_order_number = response.order_number
        link.supplier_status = response.order_status or "Created"
        link.tracking_number = response.tracking_number
        link.logistic_name = response.logistic_name
        link.error_message = None
        link.placed_at = now
        link.last_synced_at = now

        self._commit("record_supplier_success", order.id)
        return link

    def touch_supplier_order(self, link: SupplierOrder, supplier_status: Optional[str] = None) -> None:
        """Mark a supplier link as synced, optionally updating its supplier status."""
        if supplier_status:
            link.supplier_status = supplier_status
        link.last_synced_at = _utcnow()
        self._commit("touch_supplier_order", link.order_id)
