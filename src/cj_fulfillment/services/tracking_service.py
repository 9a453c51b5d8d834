"""
Tracking refresh for local orders.

Resolves an order's tracking number (discovering it from the supplier order
detail when the shop has none yet), fetches carrier tracking from CJ and
stores the latest snapshot. Order status is not changed here; see
``status_sync`` for that.
"""

from typing import Optional, Tuple
from urllib.parse import quote

from cj_fulfillment.core.models import SupplierOrderDetail, TrackingRefreshResult
from cj_fulfillment.core.tracking import normalize_carrier_status
from cj_fulfillment.database.operations import OrderRepository
from cj_fulfillment.suppliers.base import SupplierClient
from cj_fulfillment.utils.config import DEFAULT_TRACKING_URL_BASE
from cj_fulfillment.utils.exceptions import FulfillmentError
from cj_fulfillment.utils.logger import get_logger


logger = get_logger(__name__)

NO_TRACKING_NUMBER = (
    "No tracking number yet. CJ has not assigned a tracking number for this order. "
    "Try again later once the order is shipped."
)


def build_tracking_url(track_number: str, base: str = DEFAULT_TRACKING_URL_BASE) -> str:
    """Public tracking page for a tracking number."""
    return f"{base}{quote(track_number, safe='')}"


class TrackingService:
    """
    Refreshes supplier tracking for local orders.

    Args:
        repository: Order repository bound to a session
        gateway: Supplier gateway
        tracking_url_base: Prefix for generated public tracking URLs
    """

    def __init__(self, repository: OrderRepository, gateway: SupplierClient,
                 tracking_url_base: str = DEFAULT_TRACKING_URL_BASE):
        self.repository = repository
        self.gateway = gateway
        self.tracking_url_base = tracking_url_base

    async def refresh_tracking(self, order_id: str) -> TrackingRefreshResult:
        """
        Refresh tracking for one order.

        Never raises: every failure is returned as an unsuccessful result.
        """
        try:
            return await self._refresh(order_id)
        except FulfillmentError as e:
            logger.error(f"Tracking refresh failed for order {order_id}: {e}")
            return TrackingRefreshResult(success=False, error=e.message)
        except Exception as e:
            logger.exception(f"Unexpected error refreshing tracking for order {order_id}")
            return TrackingRefreshResult(success=False, error=str(e) or "Internal error")

    async def _refresh(self, order_id: str) -> TrackingRefreshResult:
        order = self.repository.get_order(order_id)
        if order is None:
            return TrackingRefreshResult(success=False, error="Order not found")

        link = self.repository.get_supplier_order(order_id)

        track_number = ((link.tracking_number if link else None) or order.tracking_number or "").strip()
        tracking_url = (order.tracking_url or "").strip()
        saved = False

        if not track_number and link is not None and link.supplier_order_id:
            discovered = await self._discover_tracking(link.supplier_order_id)
            if discovered is not None:
                track_number = discovered[0]
                tracking_url = discovered[1] or build_tracking_url(track_number, self.tracking_url_base)
                self.repository.save_tracking_assignment(order, link, track_number, tracking_url)
                saved = True
        elif track_number and not tracking_url:
            tracking_url = build_tracking_url(track_number, self.tracking_url_base)

        if not track_number:
            logger.info(f"Order {order.order_number} has no tracking number yet")
            return TrackingRefreshResult(success=False, error=NO_TRACKING_NUMBER)

        result = await self.gateway.get_tracking(track_number)
        if not result.success:
            return TrackingRefreshResult(
                success=False,
                error=result.error or "Failed to fetch tracking from CJ",
            )

        rows = result.data or []
        stage = None
        if rows:
            first = rows[0]
            stage = normalize_carrier_status(first.tracking_status)
            self.repository.upsert_tracking_snapshot(order.id, first, track_number, stage)
            logger.info(
                f"Tracking for order {order.order_number}: '{first.tracking_status}' "
                f"-> {stage.value if stage else 'unrecognized'}"
            )

        return TrackingRefreshResult(
            success=True,
            data=rows,
            track_number=track_number,
            tracking_url=tracking_url or None,
            saved=saved,
            tracking_stage=stage,
        )

    async def _discover_tracking(self, supplier_order_id: str) -> Optional[Tuple[str, str]]:
        """Tracking number and URL from the supplier order detail, if assigned."""
        detail_result = await self.gateway.get_order_detail(supplier_order_id)
        if not detail_result.success or detail_result.data is None:
            logger.debug(f"No order detail for CJ order {supplier_order_id}: {detail_result.error}")
            return None

        detail: SupplierOrderDetail = detail_result.data
        track_number = (detail.tracking_number or "").strip()
        if not track_number:
            return None

        logger.info(f"CJ assigned tracking number {track_number} to order {supplier_order_id}")
        return track_number, (detail.tracking_url or "").strip()


async def refresh_tracking(order_id: str, repository: OrderRepository, gateway: SupplierClient,
                           tracking_url_base: str = DEFAULT_TRACKING_URL_BASE) -> TrackingRefreshResult:
    """Refresh tracking for one order (see ``TrackingService.refresh_tracking``)."""
    return await TrackingService(repository, gateway, tracking_url_base).refresh_tracking(order_id)
