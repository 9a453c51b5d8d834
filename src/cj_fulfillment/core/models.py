"""
Data models for CJ Fulfillment.

Defines the typed structures that sit between the supplier's loosely shaped
JSON and the rest of the application: credential tokens, canonical products,
order requests/responses, shipping rates, categories, tracking rows and the
local order status scale.

Supplier payloads are converted into these models at the gateway edge; raw
supplier dictionaries never travel further into the system.
"""

from dataclasses import dataclass, field, asdict, is_dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class OrderStatus(Enum):
    """Local order status as stored by the shop."""
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"

    @property
    def is_terminal(self) -> bool:
        return self in (OrderStatus.CANCELLED, OrderStatus.REFUNDED)


class TrackingStage(Enum):
    """Normalized tracking stage derived from free-text carrier status."""
    PROCESSING = "processing"
    DISPATCHED = "dispatched"
    EN_ROUTE = "en_route"
    ARRIVED_COURIER_FACILITY = "arrived_courier_facility"
    OUT_FOR_DELIVERY = "out_for_delivery"
    AVAILABLE_FOR_PICKUP = "available_for_pickup"
    UNSUCCESSFUL_DELIVERY = "unsuccessful_delivery"
    DELIVERED = "delivered"


def to_plain(value: Any) -> Any:
    """Convert dataclasses, enums and datetimes into JSON-friendly values."""
    if is_dataclass(value) and not isinstance(value, type):
        return {k: to_plain(v) for k, v in asdict(value).items()}
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: to_plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_plain(v) for v in value]
    return value


@dataclass
class OperationResult:
    """
    Outcome of a public gateway or service operation.

    This is the only shape callers see: ``success`` plus either ``data``
    (and ``total`` for paginated searches) or an ``error`` message.
    """

    success: bool
    data: Any = None
    error: Optional[str] = None
    total: Optional[int] = None

    @classmethod
    def ok(cls, data: Any = None, total: Optional[int] = None) -> "OperationResult":
        return cls(success=True, data=data, total=total)

    @classmethod
    def fail(cls, error: str) -> "OperationResult":
        return cls(success=False, error=error)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the caller-facing dictionary shape."""
        result: Dict[str, Any] = {"success": self.success}
        if self.data is not None:
            result["data"] = to_plain(self.data)
        if self.error is not None:
            result["error"] = self.error
        if self.total is not None:
            result["total"] = self.total
        return result


@dataclass
class CredentialTokens:
    """Access/refresh token pair issued by the supplier."""

    access_token: str
    access_token_expiry: Optional[datetime]
    refresh_token: str
    refresh_token_expiry: Optional[datetime]

    @staticmethod
    def parse_expiry(value: Any) -> Optional[datetime]:
        """
        Parse a supplier expiry timestamp.

        The supplier sends ISO-8601 strings (with offset, or ``Z``).
        Naive values are treated as UTC. Unparseable values yield None,
        which the token manager treats as already expired.
        """
        if not value or not isinstance(value, str):
            return None
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "CredentialTokens":
        return cls(
            access_token=data.get("accessToken") or "",
            access_token_expiry=cls.parse_expiry(data.get("accessTokenExpiryDate")),
            refresh_token=data.get("refreshToken") or "",
            refresh_token_expiry=cls.parse_expiry(data.get("refreshTokenExpiryDate")),
        )


@dataclass
class ProductImage:
    """Canonical product image."""
    id: str
    src: str
    alt: str


@dataclass
class ProductVariant:
    """Canonical product variant."""
    id: str
    name: str = ""
    value: str = ""
    sku: str = ""
    cost_price: float = 0.0  # Supplier price (USD)
    price: float = 0.0  # Retail price
    stock: int = 0
    image: Optional[str] = None


@dataclass
class SupplierProduct:
    """Canonical supplier product, recomputed on every normalization pass."""

    id: str
    name: str
    slug: str
    description: str
    short_description: str
    base_price_usd: float
    sell_price: float
    compare_at_price: Optional[float]
    category_id: Optional[str]
    images: List[ProductImage] = field(default_factory=list)
    variants: List[ProductVariant] = field(default_factory=list)
    weight_kg: float = 0.0
    source_country: str = "China"
    sku: Optional[str] = None
    specifications: Dict[str, str] = field(default_factory=dict)
    features: List[str] = field(default_factory=list)
    package_contents: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return to_plain(self)


@dataclass
class Category:
    """Leaf category from the supplier's three-level tree."""
    category_id: str
    category_name: str
    parent_id: Optional[str]
    level: int = 3


@dataclass
class ShippingRate:
    """Freight option quoted by the supplier (price in supplier currency)."""

    logistic_name: str
    logistic_price: float
    logistic_time: str
    logistic_aging: Optional[str] = None

    @property
    def delivery_days(self) -> Tuple[int, int]:
        from cj_fulfillment.core.normalizer import parse_delivery_days
        return parse_delivery_days(self.logistic_time)


@dataclass
class ShippingAddress:
    """Destination address for a supplier order."""
    country_code: str
    province: str
    city: str
    address: str
    zip: str
    phone: str
    full_name: str
    country: Optional[str] = None
    address2: Optional[str] = None


@dataclass
class OrderLineItem:
    """One purchasable variant and its quantity."""
    variant_id: str
    quantity: int


@dataclass
class SupplierOrderRequest:
    """Order to create at the supplier."""
    order_number: str
    shipping_address: ShippingAddress
    line_items: List[OrderLineItem]
    remark: Optional[str] = None
    logistic_name: Optional[str] = None


@dataclass
class SupplierOrderResponse:
    """Supplier's view of an order after creation or status lookup."""
    order_id: Optional[str]
    order_number: Optional[str]
    order_status: Optional[str]
    tracking_number: Optional[str] = None
    logistic_name: Optional[str] = None


@dataclass
class SupplierOrderDetail(SupplierOrderResponse):
    """Order detail including the public tracking URL when assigned."""
    tracking_url: Optional[str] = None
    order_amount: Optional[float] = None
    created_at: Optional[str] = None


@dataclass
class TrackingInfo:
    """One tracking row returned by the supplier's tracking endpoint."""
    tracking_number: str = ""
    logistic_name: str = ""
    tracking_from: str = ""
    tracking_to: str = ""
    delivery_day: str = ""
    delivery_time: str = ""
    tracking_status: str = ""
    last_mile_carrier: str = ""
    last_track_number: str = ""

    @classmethod
    def from_api(cls, row: Dict[str, Any]) -> "TrackingInfo":
        def text(key: str) -> str:
            value = row.get(key)
            return "" if value is None else str(value)

        return cls(
            tracking_number=text("trackingNumber"),
            logistic_name=text("logisticName"),
            tracking_from=text("trackingFrom"),
            tracking_to=text("trackingTo"),
            delivery_day=text("deliveryDay"),
            delivery_time=text("deliveryTime"),
            tracking_status=text("trackingStatus"),
            last_mile_carrier=text("lastMileCarrier"),
            last_track_number=text("lastTrackNumber"),
        )


@dataclass
class TrackingRefreshResult:
    """Outcome of refreshing tracking for one local order."""

    success: bool
    error: Optional[str] = None
    data: List[TrackingInfo] = field(default_factory=list)
    track_number: Optional[str] = None
    tracking_url: Optional[str] = None
    saved: bool = False
    tracking_stage: Optional[TrackingStage] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"success": self.success}
        if self.error is not None:
            result["error"] = self.error
        if self.success:
            result.update({
                "data": to_plain(self.data),
                "trackNumber": self.track_number,
                "trackingUrl": self.tracking_url,
                "saved": self.saved,
                "trackingStage": self.tracking_stage.value if self.tracking_stage else None,
            })
        return result
