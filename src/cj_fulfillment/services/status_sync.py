"""
Tracking-driven order status reconciliation.

For each open order: refresh tracking, map the carrier stage to a local
status and apply it only when it moves the order forward. Customers are
notified through the storefront when the status changes.
"""

from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional

from cj_fulfillment.core.models import OperationResult, OrderStatus
from cj_fulfillment.core.tracking import is_forward_transition, stage_to_local_status
from cj_fulfillment.database.connection import get_db_context
from cj_fulfillment.database.models import Order, SupplierOrder
from cj_fulfillment.database.operations import OrderRepository
from cj_fulfillment.services.notifications import send_order_status_email
from cj_fulfillment.services.tracking_service import NO_TRACKING_NUMBER, TrackingService
from cj_fulfillment.suppliers.base import SupplierClient
from cj_fulfillment.utils.config import StorefrontConfig, get_config
from cj_fulfillment.utils.exceptions import FulfillmentError
from cj_fulfillment.utils.logger import get_logger


logger = get_logger(__name__)

StatusNotifier = Callable[[Order, OrderStatus], Awaitable[bool]]


class StatusSyncService:
    """
    Reconciles local order status with supplier tracking.

    Args:
        repository: Order repository bound to a session
        gateway: Supplier gateway
        store: Storefront configuration (tracking URL base, status emails)
        notifier: Coroutine called after a status change; defaults to the
            storefront status email hook
    """

    def __init__(self, repository: OrderRepository, gateway: SupplierClient,
                 store: Optional[StorefrontConfig] = None,
                 notifier: Optional[StatusNotifier] = None):
        self.repository = repository
        self.gateway = gateway
        self.store = store or get_config().store
        self.tracking = TrackingService(repository, gateway, self.store.tracking_url_base)
        self.notifier = notifier or self._email_customer

    async def _email_customer(self, order: Order, status: OrderStatus) -> bool:
        return await send_order_status_email(order, status, self.store)

    async def _supplier_status(self, link: SupplierOrder) -> Optional[str]:
        """Current supplier-side order status, or None when it cannot be read."""
        if not link.supplier_order_id:
            return None

        result = await self.gateway.get_order_status(link.supplier_order_id)
        if not result.success:
            logger.warning(f"Could not read CJ status for {link.supplier_order_id}: {result.error}")
            return None
        return result.data.order_status or None

    async def sync_order_status(self, order_id: str) -> OperationResult:
        """
        Refresh tracking for one order and advance its status if warranted.

        Returns:
            Result whose ``data`` holds ``order_id``, ``previous_status``,
            ``new_status``, ``updated``, ``tracking_stage`` and ``email_sent``
        """
        try:
            refresh = await self.tracking.refresh_tracking(order_id)
            if not refresh.success:
                return OperationResult.fail(refresh.error or "Tracking refresh failed")

            order = self.repository.get_order(order_id)
            previous = order.status
            proposed = stage_to_local_status(refresh.tracking_stage)

            summary: Dict[str, Any] = {
                "order_id": order_id,
                "previous_status": previous,
                "new_status": previous,
                "updated": False,
                "tracking_stage": refresh.tracking_stage.value if refresh.tracking_stage else None,
                "email_sent": False,
            }

            link = self.repository.get_supplier_order(order_id)
            if link is not None:
                self.repository.touch_supplier_order(link, await self._supplier_status(link))

            if proposed is None or not is_forward_transition(previous, proposed):
                logger.debug(f"Order {order.order_number} stays {previous} (proposed {proposed})")
                return OperationResult.ok(summary)

            self.repository.update_order_status(order, proposed)
            summary["new_status"] = proposed.value
            summary["updated"] = True

            try:
                summary["email_sent"] = bool(await self.notifier(order, proposed))
            except Exception as e:
                logger.error(f"Status notification failed for order {order.order_number}: {e}")

            return OperationResult.ok(summary)

        except FulfillmentError as e:
            logger.error(f"Status sync failed for order {order_id}: {e}")
            return OperationResult.fail(e.message)
        except Exception as e:
            logger.exception(f"Unexpected error syncing status for order {order_id}")
            return OperationResult.fail(str(e) or "Internal error")

    async def sync_open_orders(self) -> Dict[str, Any]:
        """
        Reconcile every open order linked to a supplier order.

        Returns:
            dict with sync statistics:
                - orders_checked: Orders examined
                - orders_updated: Orders whose status advanced
                - awaiting_tracking: Orders with no tracking number yet
                - errors: List of error messages
        """
        start_time = datetime.now(timezone.utc)
        stats: Dict[str, Any] = {
            "orders_checked": 0,
            "orders_updated": 0,
            "awaiting_tracking": 0,
            "errors": [],
        }

        try:
            orders = self.repository.list_open_orders()
        except FulfillmentError as e:
            logger.error(f"Status sync could not list orders: {e}")
            stats["errors"].append(e.message)
            return stats

        # Keep ids only; the session may expire loaded objects on commit
        order_refs = [(order.id, order.order_number) for order in orders]
        logger.info(f"Starting status sync for {len(order_refs)} open orders")

        for order_id, order_number in order_refs:
            stats["orders_checked"] += 1
            result = await self.sync_order_status(order_id)

            if not result.success:
                if result.error == NO_TRACKING_NUMBER:
                    stats["awaiting_tracking"] += 1
                else:
                    error_msg = f"Order {order_number}: {result.error}"
                    logger.error(error_msg)
                    stats["errors"].append(error_msg)
                continue

            if result.data["updated"]:
                stats["orders_updated"] += 1

        duration = (datetime.now(timezone.utc) - start_time).total_seconds()
        logger.info(
            f"Status sync completed: {stats['orders_checked']} checked, "
            f"{stats['orders_updated']} updated, {len(stats['errors'])} errors in {duration:.2f}s"
        )
        return stats


async def run_status_sync(gateway: SupplierClient,
                          notifier: Optional[StatusNotifier] = None) -> Dict[str, Any]:
    """Reconcile all open orders in a fresh database session."""
    with get_db_context() as db:
        service = StatusSyncService(OrderRepository(db), gateway, notifier=notifier)
        return await service.sync_open_orders()
