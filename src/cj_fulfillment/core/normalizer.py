"""
Product data normalization for CJ Dropshipping payloads.

CJ returns product data in several shapes depending on the endpoint: image
lists arrive as real arrays, JSON-encoded strings, comma-separated strings or
a single URL; the "my products" endpoint uses a different field naming
convention from the catalog endpoints; descriptions are free-form HTML.

Two source-specific parsers (``parse_catalog_row`` and ``parse_my_product_row``)
turn raw rows into a ``ProductRecord``; ``normalize_product`` turns any
``ProductRecord`` into the canonical ``SupplierProduct``. All functions here
are pure: the same input always yields the same output, in the same order.
"""

import json
import math
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple
from urllib.parse import urlsplit

from cj_fulfillment.core.models import (
    Category, ProductImage, ProductVariant, ShippingRate, SupplierProduct,
)
from cj_fulfillment.utils.config import PricingConfig


MAX_FEATURES = 20
DEFAULT_VARIANT_STOCK = 100

_LEADING_NUMBER = re.compile(r"^\s*[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?")
_SPEC_PAIR = re.compile(r"([A-Za-z][A-Za-z\s]{2,30})\s*[：:]\s*([^\n<]{1,100})")
_SELL_POINT_SPLIT = re.compile(r"[\n•·\-\d+.]+")
_HTML_TAG = re.compile(r"<[^>]+>")
_FEATURE_PATTERNS = (
    re.compile(r"(?:Features?|Specifications?|Highlights?)[：:]\s*([^<]+)", re.IGNORECASE),
    re.compile(r"<li>([^<]+)</li>", re.IGNORECASE),
)
_PACKAGE_PATTERNS = (
    re.compile(
        r"(?:Package\s*(?:Includes?|Contents?)|What'?s?\s*in\s*(?:the\s*)?(?:Box|Package)|Includes?)"
        r"[：:]\s*([^<]+?)(?=<br|</|Features?|Specifications?|Note|$)",
        re.IGNORECASE,
    ),
    re.compile(r"(?:<p>|<li>)?\s*(\d+\s*[xX×]\s*[^<\n]+)"),
)
_DAY_RANGE = re.compile(r"(\d+)\s*[-~]\s*(\d+)")
_SINGLE_NUMBER = re.compile(r"(\d+)")


# =============================================================================
# Scalar helpers
# =============================================================================

def to_number(value: Any) -> float:
    """
    Read a supplier numeric field.

    Numbers pass through; strings yield their leading number (CJ sends
    ranges such as ``"1.20 -- 3.40"``); anything else yields 0.0.
    """
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else 0.0
    if value is None:
        return 0.0
    match = _LEADING_NUMBER.match(str(value))
    if not match:
        return 0.0
    number = float(match.group(0))
    return number if math.isfinite(number) else 0.0


def retail_price(supplier_price: float, multiplier: float) -> float:
    """Apply a markup and round up to whole cents."""
    return math.ceil(supplier_price * multiplier * 100) / 100


def slugify(name: str, product_id: str) -> str:
    """URL slug made of the lower-cased name and the supplier product id."""
    base = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")
    return f"{base}-{product_id}"


def parse_delivery_days(text: Optional[str]) -> Tuple[int, int]:
    """
    Parse a delivery estimate such as ``"7-15 Days"`` into ``(7, 15)``.

    A single number gives ``(n, n)``; no digits give ``(0, 0)``.
    """
    text = text or ""
    match = _DAY_RANGE.search(text)
    if match:
        return int(match.group(1)), int(match.group(2))
    match = _SINGLE_NUMBER.search(text)
    if match:
        days = int(match.group(1))
        return days, days
    return 0, 0


# =============================================================================
# Images
# =============================================================================

def parse_images(raw: Any) -> List[str]:
    """
    Flatten any supplier image field into a list of URL strings.

    Handles, recursively:
    - lists (each element parsed in turn)
    - JSON-array strings, keeping only ``http``-prefixed strings
    - comma-separated strings containing ``http``
    - a single ``http``-prefixed URL string

    Anything else (None, dicts, numbers, malformed text) yields ``[]``.
    """
    if not raw:
        return []

    if isinstance(raw, (list, tuple)):
        urls: List[str] = []
        for item in raw:
            urls.extend(parse_images(item))
        return urls

    if not isinstance(raw, str):
        return []

    text = raw.strip()

    if text.startswith("[") and text.endswith("]"):
        try:
            parsed = json.loads(text)
        except ValueError:
            parsed = None
        if isinstance(parsed, list):
            return [url for url in parsed if isinstance(url, str) and url.startswith("http")]

    if "," in text and "http" in text:
        parts = (part.strip() for part in text.split(","))
        return [part for part in parts if part.startswith("http")]

    if text.startswith("http"):
        return [text]

    return []


def is_valid_url(url: str) -> bool:
    """True for an absolute URL with a scheme and a host free of whitespace."""
    try:
        parts = urlsplit(url)
        host = parts.hostname
        return bool(parts.scheme and parts.netloc and host) and not any(c.isspace() for c in host)
    except ValueError:
        return False


def unique_valid_urls(urls: Iterable[str]) -> List[str]:
    """De-duplicate (first occurrence wins) and drop malformed URLs."""
    seen = dict.fromkeys(urls)
    return [url for url in seen if is_valid_url(url)]


def build_images(product_id: str, product_name: str, urls: Iterable[str]) -> List[ProductImage]:
    """Canonical images with deterministic ``{productId}-{index}`` ids."""
    return [
        ProductImage(id=f"{product_id}-{index}", src=src, alt=f"{product_name} - Image {index + 1}")
        for index, src in enumerate(unique_valid_urls(urls))
    ]


# =============================================================================
# Description text
# =============================================================================

def _strip_tags(text: str) -> str:
    return _HTML_TAG.sub("", text).strip()


def extract_specifications(description: Optional[str]) -> Dict[str, str]:
    """Collect ``Key: Value`` pairs from a product description."""
    specs: Dict[str, str] = {}
    if not description:
        return specs

    for match in _SPEC_PAIR.finditer(description):
        key = match.group(1).strip()
        value = match.group(2).strip()
        if key and value and "http" not in key and "http" not in value:
            specs[key] = value

    return specs


def extract_features(description: Optional[str], sell_point: Optional[str]) -> List[str]:
    """
    Build a short feature list.

    Sell-point bullets come first, then ``Features:``-style runs and list
    items from the description. Entries must be 11-199 characters long;
    at most 20 are returned.
    """
    features: List[str] = []

    if sell_point:
        for point in _SELL_POINT_SPLIT.split(sell_point):
            point = _strip_tags(point)
            if 10 < len(point) < 200:
                features.append(point)

    if description:
        for pattern in _FEATURE_PATTERNS:
            for match in pattern.finditer(description):
                feature = _strip_tags(match.group(1))
                if 10 < len(feature) < 200 and feature not in features:
                    features.append(feature)

    return features[:MAX_FEATURES]


def extract_package_contents(description: Optional[str]) -> Optional[str]:
    """Find a "Package includes" section, or ``N x item`` lines, in a description."""
    if not description:
        return None

    for pattern in _PACKAGE_PATTERNS:
        items = []
        for match in pattern.finditer(description):
            item = _strip_tags(match.group(1))
            if len(item) > 3:
                items.append(item)
        if items:
            return "\n".join(items)

    return None


# =============================================================================
# Source-specific parsing
# =============================================================================

@dataclass
class VariantRecord:
    """Variant fields as read from any supplier endpoint."""
    vid: str
    name: str = ""
    value: str = ""
    sku: str = ""
    sell_price: float = 0.0
    quantity: Optional[int] = None
    image: Any = None

    @classmethod
    def from_api(cls, row: Dict[str, Any]) -> "VariantRecord":
        quantity = row.get("quantity")
        if quantity is None:
            quantity = row.get("inventoryNum")
        return cls(
            vid=str(row.get("vid") or ""),
            name=row.get("variantNameEn") or row.get("variantName") or "",
            value=row.get("variantValueEn") or row.get("variantValue") or row.get("variantKey") or "",
            sku=row.get("variantSku") or "",
            sell_price=to_number(row.get("variantSellPrice", row.get("sellPrice"))),
            quantity=int(to_number(quantity)) if quantity is not None else None,
            image=row.get("variantImage"),
        )


@dataclass
class ProductRecord:
    """Product fields as read from a supplier endpoint, before canonicalization."""
    pid: str
    name_en: str = ""
    name: str = ""
    image_fields: List[Any] = field(default_factory=list)
    description: str = ""
    sell_point: str = ""
    sell_price: float = 0.0
    source_price: float = 0.0
    weight: float = 0.0
    category_id: Optional[str] = None
    source_from: str = ""
    sku: Optional[str] = None
    entry_time: Optional[str] = None
    update_time: Optional[str] = None
    variants: List[VariantRecord] = field(default_factory=list)


def parse_catalog_row(row: Dict[str, Any]) -> ProductRecord:
    """Parse a row from the catalog list or single-product endpoints."""
    variants = row.get("variants") or []
    return ProductRecord(
        pid=str(row.get("pid") or ""),
        name_en=row.get("productNameEn") or "",
        name=row.get("productName") or "",
        image_fields=[row.get("productImages"), row.get("productImageSet"), row.get("productImage")],
        description=row.get("description") or "",
        sell_point=row.get("sellPoint") or "",
        sell_price=to_number(row.get("sellPrice")),
        source_price=to_number(row.get("sourcePrice")),
        weight=to_number(row.get("productWeight")),
        category_id=row.get("categoryId"),
        source_from=row.get("sourceFrom") or "",
        sku=row.get("productSku"),
        entry_time=row.get("entryTime") or row.get("createrTime"),
        update_time=row.get("updateTime"),
        variants=[VariantRecord.from_api(v) for v in variants if isinstance(v, dict)],
    )


def parse_my_product_row(row: Dict[str, Any]) -> ProductRecord:
    """
    Parse a row from the "my products" endpoint.

    These rows name fields differently (``productId``, ``nameEn``,
    ``bigImage``) and carry at most one variant id (``vid``), which is
    turned into a one-element variant list.
    """
    sell_price = to_number(row.get("sellPrice")) or to_number(row.get("totalPrice"))
    vid = row.get("vid")
    variants = []
    if vid:
        variants.append(VariantRecord(
            vid=str(vid),
            sku=row.get("sku") or "",
            sell_price=to_number(row.get("sellPrice")),
        ))

    return ProductRecord(
        pid=str(row.get("productId") or ""),
        name_en=row.get("nameEn") or "",
        name=row.get("productName") or "",
        image_fields=[row.get("bigImage")],
        sell_price=sell_price,
        weight=to_number(row.get("weight")),
        category_id=row.get("categoryId"),
        sku=row.get("sku"),
        variants=variants,
    )


# =============================================================================
# Canonical product
# =============================================================================

def normalize_variant(product_id: str, index: int, record: VariantRecord,
                      pricing: PricingConfig) -> ProductVariant:
    """
    Canonical variant; variants without a supplier id get ``{productId}-{index}``.

    Rows that report no quantity are treated as stocked (``DEFAULT_VARIANT_STOCK``).
    """
    images = unique_valid_urls(parse_images(record.image))
    return ProductVariant(
        id=record.vid or f"{product_id}-{index}",
        name=record.name,
        value=record.value,
        sku=record.sku,
        cost_price=record.sell_price,
        price=retail_price(record.sell_price, pricing.price_multiplier),
        stock=record.quantity if record.quantity is not None else DEFAULT_VARIANT_STOCK,
        image=images[0] if images else None,
    )


def normalize_product(record: ProductRecord, pricing: Optional[PricingConfig] = None) -> SupplierProduct:
    """
    Build the canonical product from a parsed supplier record.

    Images are collected from the product image fields, then each variant's
    image, de-duplicated and validated. Prices are marked up with the
    configured multipliers.
    """
    pricing = pricing or PricingConfig()
    name = record.name_en or record.name or "Unnamed Product"

    urls = parse_images(record.image_fields)
    for variant in record.variants:
        urls.extend(parse_images(variant.image))

    base_price = record.sell_price
    compare_at = None
    if record.source_price > base_price:
        compare_at = retail_price(record.source_price, pricing.compare_at_multiplier)

    description = record.description or record.sell_point or name
    short_description = record.sell_point or record.description[:150] or name

    return SupplierProduct(
        id=record.pid,
        name=name,
        slug=slugify(name, record.pid),
        description=description,
        short_description=short_description,
        base_price_usd=base_price,
        sell_price=retail_price(base_price, pricing.price_multiplier),
        compare_at_price=compare_at,
        category_id=record.category_id,
        images=build_images(record.pid, name, urls),
        variants=[
            normalize_variant(record.pid, index, variant, pricing)
            for index, variant in enumerate(record.variants)
        ],
        weight_kg=record.weight,
        source_country=record.source_from or "China",
        sku=record.sku,
        specifications=extract_specifications(record.description),
        features=extract_features(record.description, record.sell_point),
        package_contents=extract_package_contents(record.description),
        created_at=record.entry_time,
        updated_at=record.update_time,
    )


# =============================================================================
# Categories and freight
# =============================================================================

def flatten_categories(tree: Any) -> List[Category]:
    """
    Flatten CJ's three-level category tree into its leaves.

    Each leaf's parent is the second-level name, or the first-level name
    when the second level has none.
    """
    categories: List[Category] = []
    if not isinstance(tree, list):
        return categories

    for first in tree:
        if not isinstance(first, dict):
            continue
        first_name = first.get("categoryFirstName")
        for second in first.get("categoryFirstList") or []:
            second_name = second.get("categorySecondName")
            for leaf in second.get("categorySecondList") or []:
                categories.append(Category(
                    category_id=str(leaf.get("categoryId") or ""),
                    category_name=leaf.get("categoryName") or "",
                    parent_id=second_name or first_name,
                    level=3,
                ))

    return categories


def parse_shipping_rates(rows: Any) -> List[ShippingRate]:
    """Map freight options in the order the supplier returned them."""
    if not isinstance(rows, list):
        return []
    return [
        ShippingRate(
            logistic_name=row.get("logisticName") or row.get("logisticNameEn") or "Shipping",
            logistic_price=to_number(row.get("logisticPrice") or row.get("logisticPriceEn") or 0),
            logistic_time=str(row.get("logisticAging") or row.get("logisticTime") or ""),
            logistic_aging=row.get("logisticAging"),
        )
        for row in rows
        if isinstance(row, dict)
    ]
