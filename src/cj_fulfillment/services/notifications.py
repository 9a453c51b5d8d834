"""
Customer notifications for order status changes.

The storefront sends the actual email; this module calls its internal hook
with a shared secret. Delivery is best-effort: failures are logged and
reported as ``False``, never raised.
"""

from typing import Optional

import httpx

from cj_fulfillment.core.models import OrderStatus
from cj_fulfillment.database.models import Order
from cj_fulfillment.utils.config import StorefrontConfig, get_config
from cj_fulfillment.utils.logger import get_logger


logger = get_logger(__name__)

STATUS_EMAIL_PATH = "/api/internal/order-status-email"
SECRET_HEADER = "x-order-status-secret"


async def send_order_status_email(order: Order, new_status: OrderStatus,
                                  store: Optional[StorefrontConfig] = None,
                                  transport: Optional[httpx.AsyncBaseTransport] = None) -> bool:
    """
    Ask the storefront to email the customer about a status change.

    Args:
        order: Order whose status changed
        new_status: Status the order moved to
        store: Storefront configuration (defaults to the global configuration)
        transport: Optional httpx transport

    Returns:
        bool: True if the storefront accepted the request
    """
    store = store or get_config().store

    if not store.status_emails_enabled:
        logger.debug("Status emails disabled (no storefront URL or secret)")
        return False

    customer_email = (order.billing_email or "").strip()
    if not customer_email:
        logger.debug(f"No customer email for order {order.order_number}, skipping status email")
        return False

    payload = {
        "orderId": order.id,
        "orderNumber": order.order_number,
        "newStatus": new_status.value,
        "customerEmail": customer_email,
        "customerName": (order.billing_name or "").strip() or "Customer",
    }
    url = f"{store.url.rstrip('/')}{STATUS_EMAIL_PATH}"

    try:
        async with httpx.AsyncClient(timeout=store.timeout, transport=transport) as client:
            response = await client.post(url, json=payload, headers={SECRET_HEADER: store.status_email_secret})
    except httpx.TimeoutException:
        logger.warning(f"Status email request timed out: {url}")
        return False
    except httpx.HTTPError as e:
        logger.error(f"Status email request failed: {url} - {e}")
        return False

    if response.is_success:
        logger.info(f"Status email requested for order {order.order_number} ({new_status.value})")
        return True

    logger.warning(
        f"Status email request rejected: {url} "
        f"(status: {response.status_code}, body: {response.text[:200]})"
    )
    return False
