"""
Placement of paid local orders with CJ Dropshipping.

Builds the supplier order from the local order and its items, creates it at
CJ and records the outcome on the order's supplier link. A failed attempt
is recorded and may be retried; a successful one moves the local order to
``processing``.
"""

from typing import Optional

from cj_fulfillment.core.address import COUNTRY_CODE_MAP, resolve_country_code
from cj_fulfillment.core.models import (
    OperationResult, OrderLineItem, OrderStatus, ShippingAddress, SupplierOrderRequest,
)
from cj_fulfillment.core.tracking import is_forward_transition
from cj_fulfillment.database.models import Order
from cj_fulfillment.database.operations import OrderRepository
from cj_fulfillment.suppliers.base import SupplierClient
from cj_fulfillment.utils.exceptions import FulfillmentError, ValidationError
from cj_fulfillment.utils.logger import get_logger


logger = get_logger(__name__)

DEFAULT_ZIP = "0000"
DEFAULT_PHONE = "0000000000"


def build_shipping_address(order: Order, default_country_code: str = "ZA") -> ShippingAddress:
    """
    Supplier shipping address for a local order.

    Raises:
        ValidationError: If the shipping name, city or address is missing
    """
    name = (order.shipping_name or "").strip()
    city = (order.shipping_city or "").strip()
    line1 = (order.shipping_address_line1 or "").strip()
    line2 = (order.shipping_address_line2 or "").strip()

    if not name:
        raise ValidationError("Shipping name is required", field="shipping_name")
    if not city:
        raise ValidationError("Shipping city is required", field="shipping_city")
    if not f"{line1} {line2}".strip():
        raise ValidationError("Shipping address is required", field="shipping_address_line1")

    raw_country = (order.shipping_country or order.billing_country or "").strip()
    country_code = resolve_country_code(raw_country, default_country_code)
    if raw_country.lower() not in COUNTRY_CODE_MAP and not (len(raw_country) == 2 and raw_country.isalpha()):
        logger.warning(f"Unknown or missing country '{raw_country}', defaulting to {country_code}")

    return ShippingAddress(
        country_code=country_code,
        country=raw_country or country_code,
        province=(order.shipping_province or "").strip() or city,
        city=city,
        address=line1,
        address2=line2 or None,
        zip=(order.shipping_postal_code or "").strip() or DEFAULT_ZIP,
        phone=(order.shipping_phone or "").strip() or DEFAULT_PHONE,
        full_name=name,
    )


def build_order_request(order: Order, logistic_name: Optional[str] = None,
                        default_country_code: str = "ZA") -> SupplierOrderRequest:
    """Supplier order request for a local order; items without a variant use the product id."""
    return SupplierOrderRequest(
        order_number=order.order_number,
        shipping_address=build_shipping_address(order, default_country_code),
        line_items=[
            OrderLineItem(variant_id=item.variant_id or item.product_id, quantity=item.quantity)
            for item in order.items
        ],
        remark=order.customer_notes or "",
        logistic_name=logistic_name,
    )


class OrderPlacementService:
    """
    Places local orders with the supplier.

    Args:
        repository: Order repository bound to a session
        gateway: Supplier gateway
        default_country_code: Destination used when the order's country is unknown
    """

    def __init__(self, repository: OrderRepository, gateway: SupplierClient,
                 default_country_code: str = "ZA"):
        self.repository = repository
        self.gateway = gateway
        self.default_country_code = default_country_code

    async def place_order(self, order_id: str, logistic_name: Optional[str] = None) -> OperationResult:
        """
        Create the supplier order for a paid local order.

        Returns:
            Result whose ``data`` holds ``supplier_order_id`` and
            ``supplier_status``
        """
        try:
            return await self._place(order_id, (logistic_name or "").strip() or None)
        except FulfillmentError as e:
            logger.error(f"Order placement failed for {order_id}: {e}")
            return OperationResult.fail(e.message)
        except Exception as e:
            logger.exception(f"Unexpected error placing order {order_id}")
            return OperationResult.fail(str(e) or "Unknown error")

    async def _place(self, order_id: str, logistic_name: Optional[str]) -> OperationResult:
        order = self.repository.get_order(order_id)
        if order is None:
            return OperationResult.fail("Order not found")

        link = self.repository.get_supplier_order(order_id)
        if link is not None and not link.is_failed:
            return OperationResult.fail("Order already placed to CJ")

        if order.payment_status != "paid":
            return OperationResult.fail("Order not paid")

        request = build_order_request(order, logistic_name, self.default_country_code)
        if not request.line_items:
            raise ValidationError("Order has no items", field="items")

        is_retry = link is not None
        logger.info(f"Placing order {order.order_number} with CJ{' (retry)' if is_retry else ''}")

        result = await self.gateway.create_order(request)

        if not result.success:
            logger.error(f"CJ order placement failed for {order.order_number}: {result.error}")
            self.repository.record_supplier_failure(order, link, result.error)
            return OperationResult.fail(result.error)

        response = result.data
        self.repository.record_supplier_success(order, link, response)

        if is_forward_transition(order.status, OrderStatus.PROCESSING):
            self.repository.update_order_status(order, OrderStatus.PROCESSING)

        logger.info(f"Order {order.order_number} placed with CJ as {response.order_id}")
        return OperationResult.ok({
            "supplier_order_id": response.order_id,
            "supplier_status": response.order_status,
        })
