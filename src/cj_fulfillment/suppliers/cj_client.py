"""
CJ Dropshipping gateway.

Typed operations over the CJ API v2.0: product and category lookups, freight
quotes, order creation and order/tracking lookups. Supplier JSON is converted
to the models in ``cj_fulfillment.core.models`` here and nowhere else.

Every public operation returns an ``OperationResult``. Supplier business
errors (``result: false``) become ``fail(message)``; transport and HTTP
errors raised by the HTTP client are caught by ``supplier_operation`` and
converted the same way.
"""

import functools
from typing import Any, Dict, List, Optional

import httpx

from cj_fulfillment.api.client import SignedHTTPClient, SupplierEnvelope
from cj_fulfillment.auth.token_manager import TokenManager, get_token_manager
from cj_fulfillment.core.address import derive_consignee_id, normalize_country_code
from cj_fulfillment.core.models import (
    OperationResult, OrderLineItem, SupplierOrderDetail, SupplierOrderRequest,
    SupplierOrderResponse, TrackingInfo,
)
from cj_fulfillment.core.normalizer import (
    VariantRecord, flatten_categories, normalize_product, normalize_variant,
    parse_catalog_row, parse_my_product_row, parse_shipping_rates, to_number,
)
from cj_fulfillment.suppliers.base import SupplierClient
from cj_fulfillment.utils.config import CJDropshippingConfig, PricingConfig, get_config
from cj_fulfillment.utils.exceptions import FulfillmentError
from cj_fulfillment.utils.logger import get_logger


logger = get_logger(__name__)

GENERIC_ERROR = "API request failed"

# createOrderV2 constants
PAY_TYPE_NO_BALANCE = 3
SHOP_LOGISTICS_SELLER = 2


def supplier_operation(func):
    """Convert any exception raised by a gateway operation into a failed result."""

    @functools.wraps(func)
    async def wrapper(self, *args, **kwargs) -> OperationResult:
        try:
            return await func(self, *args, **kwargs)
        except FulfillmentError as e:
            logger.error(f"CJ {func.__name__} failed: {e}")
            return OperationResult.fail(e.message or GENERIC_ERROR)
        except Exception as e:
            logger.exception(f"Unexpected error in CJ {func.__name__}")
            return OperationResult.fail(str(e) or GENERIC_ERROR)

    return wrapper


def _fail(envelope: SupplierEnvelope, default: str) -> OperationResult:
    return OperationResult.fail(envelope.message or default)


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


class CJDropshippingClient(SupplierClient):
    """
    CJ Dropshipping API v2.0 gateway.

    Args:
        config: CJ configuration (defaults to the global configuration)
        token_manager: Shared token manager (defaults to the process-wide one)
        pricing: Retail pricing rules for normalized products
        transport: Optional httpx transport for the business client
    """

    def __init__(self, config: Optional[CJDropshippingConfig] = None,
                 token_manager: Optional[TokenManager] = None,
                 pricing: Optional[PricingConfig] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        if config is None or pricing is None:
            settings = get_config()
            config = config or settings.cj
            pricing = pricing or settings.pricing

        self.config = config
        self.pricing = pricing
        self.tokens = token_manager or get_token_manager()
        self.http = SignedHTTPClient(
            config,
            token_provider=self.tokens.get_access_token,
            transport=transport,
        )

        logger.info(f"Initialized CJ Dropshipping client ({self.http.base_url})")

    @property
    def supplier_name(self) -> str:
        return "CJ Dropshipping"

    async def aclose(self) -> None:
        await self.http.aclose()

    # ------------------------------------------------------------------
    # Products
    # ------------------------------------------------------------------

    @supplier_operation
    async def search_products(self, keywords: Optional[str] = None,
                              category_id: Optional[str] = None,
                              page: int = 1, page_size: int = 20) -> OperationResult:
        envelope = await self.http.get("/v1/product/list", params={
            "pageNum": page or 1,
            "pageSize": page_size or 20,
            "categoryId": category_id or None,
            "productName": keywords or None,
        })
        if not envelope.ok:
            return _fail(envelope, "Failed to fetch products")

        data = envelope.data
        rows = data.get("list") if isinstance(data, dict) else data
        rows = rows if isinstance(rows, list) else []
        total = (data.get("total") if isinstance(data, dict) else None) or len(rows)

        products = [
            normalize_product(parse_catalog_row(row), self.pricing)
            for row in rows if isinstance(row, dict)
        ]
        logger.info(f"CJ catalog search returned {len(products)} of {total} products")
        return OperationResult.ok(products, total=int(total))

    @supplier_operation
    async def search_my_products(self, keywords: Optional[str] = None,
                                 category_id: Optional[str] = None,
                                 page: int = 1, page_size: int = 20) -> OperationResult:
        envelope = await self.http.get("/v1/product/myProduct/query", params={
            "pageNum": page or 1,
            "pageSize": page_size or 20,
            "keyword": keywords or None,
            "categoryId": category_id or None,
        })
        if not envelope.ok:
            return _fail(envelope, "Failed to fetch user products")

        data = envelope.data if isinstance(envelope.data, dict) else {}
        rows = data.get("content") or []
        total = data.get("totalRecords") or len(rows)

        products = [
            normalize_product(parse_my_product_row(row), self.pricing)
            for row in rows if isinstance(row, dict)
        ]
        logger.info(f"CJ my-products search returned {len(products)} of {total} products")
        return OperationResult.ok(products, total=int(total))

    @supplier_operation
    async def get_product(self, product_id: str) -> OperationResult:
        envelope = await self.http.get("/v1/product/query", params={"pid": product_id})
        if not envelope.ok or not isinstance(envelope.data, dict):
            return _fail(envelope, "Product not found")

        return OperationResult.ok(normalize_product(parse_catalog_row(envelope.data), self.pricing))

    @supplier_operation
    async def get_product_variants(self, product_id: str) -> OperationResult:
        envelope = await self.http.get("/v1/product/variant/query", params={"pid": product_id})
        if not envelope.ok:
            return _fail(envelope, "Failed to fetch variants")

        rows = envelope.data if isinstance(envelope.data, list) else []
        variants = [
            normalize_variant(product_id, index, VariantRecord.from_api(row), self.pricing)
            for index, row in enumerate(rows) if isinstance(row, dict)
        ]
        return OperationResult.ok(variants)

    @supplier_operation
    async def get_categories(self) -> OperationResult:
        envelope = await self.http.get("/v1/product/getCategory")
        if not envelope.ok:
            return _fail(envelope, "Failed to fetch categories")

        return OperationResult.ok(flatten_categories(envelope.data or []))

    # ------------------------------------------------------------------
    # Freight
    # ------------------------------------------------------------------

    async def _freight(self, payload: Dict[str, Any]) -> SupplierEnvelope:
        return await self.http.post("/v1/logistic/freightCalculate", json=payload)

    async def _weight_based_rates(self, country_code: str, weight_kg: float) -> OperationResult:
        logger.warning(f"Falling back to weight-based CJ freight quote ({weight_kg} kg to {country_code})")
        envelope = await self._freight({
            "startCountryCode": self.config.origin_country_code,
            "endCountryCode": country_code,
            "weight": weight_kg,
        })
        if not envelope.ok:
            return _fail(envelope, "Failed to get shipping methods")
        return OperationResult.ok(parse_shipping_rates(envelope.data))

    @supplier_operation
    async def get_shipping_rates(self, product_id: str, country_code: str,
                                 variant_id: Optional[str] = None, quantity: int = 1,
                                 weight_kg: float = 0.0) -> OperationResult:
        if product_id:
            envelope = await self._freight({
                "startCountryCode": self.config.origin_country_code,
                "endCountryCode": country_code,
                "products": [{
                    "quantity": quantity or 1,
                    "vid": variant_id or product_id,
                }],
            })
            rates = parse_shipping_rates(envelope.data) if envelope.ok else []
            if rates:
                return OperationResult.ok(rates)

        return await self._weight_based_rates(country_code, weight_kg)

    @supplier_operation
    async def get_order_shipping_rates(self, country_code: str, line_items: List[OrderLineItem],
                                       total_weight_kg: Optional[float] = None) -> OperationResult:
        if not line_items:
            return OperationResult.ok([])

        envelope = await self._freight({
            "startCountryCode": self.config.origin_country_code,
            "endCountryCode": country_code,
            "products": [{"vid": item.variant_id, "quantity": item.quantity} for item in line_items],
        })
        rates = parse_shipping_rates(envelope.data) if envelope.ok else []
        if rates:
            return OperationResult.ok(rates)

        if total_weight_kg:
            return await self._weight_based_rates(country_code, total_weight_kg)

        if not envelope.ok:
            return _fail(envelope, "Failed to get shipping methods")
        return OperationResult.ok([])

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------

    def build_order_payload(self, request: SupplierOrderRequest) -> Dict[str, Any]:
        """Build the createOrderV2 request body."""
        address = request.shipping_address
        country_code = normalize_country_code(address.country_code, self.config.default_country_code)
        country = (address.country or "").strip() or country_code

        body: Dict[str, Any] = {
            "orderNumber": request.order_number,
            "shippingCountryCode": country_code,
            "shippingCountry": country,
            "shippingProvince": address.province or "",
            "shippingCity": address.city or "",
            "shippingAddress": address.address or "",
            "shippingZip": address.zip or "",
            "shippingPhone": address.phone or "",
            "shippingCustomerName": address.full_name or "",
            "fromCountryCode": self.config.origin_country_code,
            "remark": request.remark or "",
            "payType": PAY_TYPE_NO_BALANCE,
            "shopLogisticsType": SHOP_LOGISTICS_SELLER,
            "consigneeID": derive_consignee_id(address.phone),
            "products": [
                {
                    "vid": item.variant_id,
                    "quantity": item.quantity,
                    "storeLineItemId": f"line-{request.order_number}-{index}",
                }
                for index, item in enumerate(request.line_items)
            ],
        }

        if address.address2:
            body["shippingAddress2"] = address.address2
        body["logisticName"] = request.logistic_name or ""

        return body

    @supplier_operation
    async def create_order(self, request: SupplierOrderRequest) -> OperationResult:
        logger.info(f"Creating CJ order for {request.order_number} ({len(request.line_items)} lines)")
        envelope = await self.http.post(
            "/v1/shopping/order/createOrderV2", json=self.build_order_payload(request)
        )
        if not envelope.ok:
            return _fail(envelope, "Failed to create order")

        data = envelope.data if isinstance(envelope.data, dict) else {}
        response = SupplierOrderResponse(
            order_id=_text(data.get("orderId")),
            order_number=_text(data.get("orderNum")) or request.order_number,
            order_status=_text(data.get("orderStatus")) or "Created",
            tracking_number=_text(data.get("trackNumber")),
            logistic_name=_text(data.get("logisticName")),
        )
        logger.info(f"CJ order {response.order_id} created for {request.order_number}")
        return OperationResult.ok(response)

    async def _order_detail(self, order_id: str) -> SupplierEnvelope:
        return await self.http.get("/v1/shopping/order/getOrderDetail", params={"orderId": order_id})

    @supplier_operation
    async def get_order_status(self, order_id: str) -> OperationResult:
        envelope = await self._order_detail(order_id)
        if not envelope.ok:
            return _fail(envelope, "Failed to get order status")

        data = envelope.data if isinstance(envelope.data, dict) else {}
        return OperationResult.ok(SupplierOrderResponse(
            order_id=_text(data.get("orderId")),
            order_number=_text(data.get("orderNum")),
            order_status=_text(data.get("orderStatus")),
            tracking_number=_text(data.get("trackNumber")),
            logistic_name=_text(data.get("logisticName")),
        ))

    @supplier_operation
    async def get_order_detail(self, order_id: str) -> OperationResult:
        envelope = await self._order_detail(order_id)
        if not envelope.ok:
            return _fail(envelope, "Failed to get order detail")

        data = envelope.data if isinstance(envelope.data, dict) else {}
        amount = data.get("orderAmount")
        return OperationResult.ok(SupplierOrderDetail(
            order_id=_text(data.get("orderId")),
            order_number=_text(data.get("orderNum")),
            order_status=_text(data.get("orderStatus")),
            tracking_number=_text(data.get("trackNumber")),
            logistic_name=_text(data.get("logisticName")),
            tracking_url=_text(data.get("trackingUrl")),
            order_amount=to_number(amount) if amount is not None else None,
            created_at=_text(data.get("createDate")),
        ))

    @supplier_operation
    async def get_tracking(self, track_number: str) -> OperationResult:
        envelope = await self.http.get("/v1/logistic/getTrackInfo", params={"trackNumber": track_number})
        if not envelope.ok:
            return _fail(envelope, "Failed to get tracking info")

        rows = envelope.data if isinstance(envelope.data, list) else []
        return OperationResult.ok([TrackingInfo.from_api(row) for row in rows if isinstance(row, dict)])

    @supplier_operation
    async def confirm_order(self, order_id: str) -> OperationResult:
        envelope = await self.http.post("/v1/shopping/order/confirmOrder", json={"orderId": order_id})
        if not envelope.ok:
            return _fail(envelope, "Failed to confirm order")

        logger.info(f"CJ order {order_id} confirmed")
        return OperationResult.ok()
