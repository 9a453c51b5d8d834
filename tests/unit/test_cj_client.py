"""
Unit tests for the CJ Dropshipping gateway
"""
import asyncio
import json

import httpx
import pytest

from cj_fulfillment.core.models import (
    Category, OrderLineItem, ShippingAddress, ShippingRate, SupplierOrderDetail,
    SupplierOrderRequest, SupplierOrderResponse, TrackingInfo,
)
from cj_fulfillment.suppliers.cj_client import CJDropshippingClient
from cj_fulfillment.utils.exceptions import AuthenticationError


FREIGHT_PATH = "/v1/logistic/freightCalculate"
CREATE_ORDER_PATH = "/v1/shopping/order/createOrderV2"


@pytest.fixture
def gateway(cj_config, static_tokens, pricing, supplier_stub):
    return CJDropshippingClient(
        cj_config, token_manager=static_tokens, pricing=pricing, transport=supplier_stub.transport
    )


def _call(gateway, coro_factory):
    async def scenario():
        try:
            return await coro_factory(gateway)
        finally:
            await gateway.aclose()

    return asyncio.run(scenario())


def _body(request: httpx.Request):
    return json.loads(request.content)


@pytest.fixture
def order_request():
    return SupplierOrderRequest(
        order_number="ORD-1001",
        shipping_address=ShippingAddress(
            country_code="za",
            country="South Africa",
            province="Western Cape",
            city="Cape Town",
            address="12 Long Street",
            address2="Unit 4",
            zip="8001",
            phone="+27 82 123 4567",
            full_name="Jane Doe",
        ),
        line_items=[OrderLineItem("V100", 2), OrderLineItem("V200", 1)],
        remark="Leave at reception",
    )


class TestProducts:
    """Catalog, my-products, variants and categories"""

    def test_search_products(self, gateway, supplier_stub):
        supplier_stub.on("/v1/product/list", {
            "result": True,
            "data": {
                "total": 42,
                "list": [{
                    "pid": "P100",
                    "productNameEn": "Wireless Earbuds",
                    "sellPrice": "4.00 -- 6.00",
                    "productImage": "https://img.cj/e1.jpg",
                }],
            },
        })

        result = _call(gateway, lambda g: g.search_products(keywords="earbuds", page=2, page_size=10))

        assert result.success is True
        assert result.total == 42
        assert result.data[0].id == "P100"
        assert result.data[0].sell_price == 10.0

        params = supplier_stub.requests[0].url.params
        assert params["productName"] == "earbuds"
        assert params["pageNum"] == "2"
        assert params["pageSize"] == "10"
        assert "categoryId" not in params

    def test_search_products_total_defaults_to_page_length(self, gateway, supplier_stub):
        supplier_stub.on("/v1/product/list", {"result": True, "data": {"list": [{"pid": "P1"}, {"pid": "P2"}]}})

        result = _call(gateway, lambda g: g.search_products())

        assert result.total == 2

    def test_search_products_business_error(self, gateway, supplier_stub):
        supplier_stub.on("/v1/product/list", {"result": False, "message": ""})

        result = _call(gateway, lambda g: g.search_products())

        assert result.success is False
        assert result.error == "Failed to fetch products"

    def test_search_my_products(self, gateway, supplier_stub):
        supplier_stub.on("/v1/product/myProduct/query", {
            "result": True,
            "data": {
                "totalRecords": 7,
                "content": [{
                    "productId": "P9", "nameEn": "Desk Lamp", "bigImage": "https://img.cj/lamp.jpg",
                    "totalPrice": "8.5", "vid": "V9",
                }],
            },
        })

        result = _call(gateway, lambda g: g.search_my_products(keywords="lamp"))

        assert result.success is True
        assert result.total == 7
        assert result.data[0].name == "Desk Lamp"
        assert result.data[0].variants[0].id == "V9"
        assert supplier_stub.requests[0].url.params["keyword"] == "lamp"

    def test_get_product_not_found(self, gateway, supplier_stub):
        supplier_stub.on("/v1/product/query", {"result": True, "data": None})

        result = _call(gateway, lambda g: g.get_product("P404"))

        assert result.success is False
        assert result.error == "Product not found"

    def test_get_product_variants(self, gateway, supplier_stub):
        supplier_stub.on("/v1/product/variant/query", {
            "result": True,
            "data": [{"vid": "V1", "variantNameEn": "Red", "variantSellPrice": 2, "inventoryNum": 3}, {}],
        })

        result = _call(gateway, lambda g: g.get_product_variants("P1"))

        assert [v.id for v in result.data] == ["V1", "P1-1"]
        assert result.data[0].price == 5.0
        assert result.data[0].stock == 3
        assert supplier_stub.requests[0].url.params["pid"] == "P1"

    def test_get_categories(self, gateway, supplier_stub):
        supplier_stub.on("/v1/product/getCategory", {
            "result": True,
            "data": [{
                "categoryFirstName": "Home",
                "categoryFirstList": [{
                    "categorySecondName": "Lighting",
                    "categorySecondList": [{"categoryId": "C9", "categoryName": "Desk Lamps"}],
                }],
            }],
        })

        result = _call(gateway, lambda g: g.get_categories())

        assert result.data == [Category("C9", "Desk Lamps", "Lighting", 3)]


class TestFreight:
    """Freight quotes with weight-based fallback"""

    def test_product_based_quote(self, gateway, supplier_stub):
        supplier_stub.on(FREIGHT_PATH, {
            "result": True,
            "data": [{"logisticName": "CJPacket", "logisticPrice": 3.2, "logisticAging": "7-12"}],
        })

        result = _call(gateway, lambda g: g.get_shipping_rates("P1", "ZA", variant_id="V1", quantity=3))

        assert result.data == [ShippingRate("CJPacket", 3.2, "7-12", "7-12")]
        body = _body(supplier_stub.requests[0])
        assert body == {
            "startCountryCode": "CN",
            "endCountryCode": "ZA",
            "products": [{"quantity": 3, "vid": "V1"}],
        }

    def test_empty_product_quote_falls_back_to_weight(self, gateway, supplier_stub):
        supplier_stub.on(
            FREIGHT_PATH,
            {"result": True, "data": []},
            {"result": True, "data": [{"logisticName": "Post", "logisticPrice": 9, "logisticAging": "20-30"}]},
        )

        result = _call(gateway, lambda g: g.get_shipping_rates("P1", "ZA", weight_kg=0.4))

        assert [r.logistic_name for r in result.data] == ["Post"]
        assert len(supplier_stub.requests) == 2
        assert _body(supplier_stub.requests[1]) == {
            "startCountryCode": "CN", "endCountryCode": "ZA", "weight": 0.4,
        }

    def test_failed_product_quote_falls_back_to_weight(self, gateway, supplier_stub):
        supplier_stub.on(
            FREIGHT_PATH,
            {"result": False, "message": "vid invalid"},
            {"result": False, "message": "No logistics available"},
        )

        result = _call(gateway, lambda g: g.get_shipping_rates("P1", "ZA", weight_kg=0.4))

        assert result.success is False
        assert result.error == "No logistics available"

    def test_order_quote_without_items(self, gateway, supplier_stub):
        result = _call(gateway, lambda g: g.get_order_shipping_rates("ZA", []))

        assert result.success is True
        assert result.data == []
        assert supplier_stub.requests == []

    def test_order_quote_uses_all_lines(self, gateway, supplier_stub):
        supplier_stub.on(FREIGHT_PATH, {"result": True, "data": [{"logisticName": "CJPacket", "logisticPrice": 5}]})

        items = [OrderLineItem("V1", 2), OrderLineItem("V2", 1)]
        result = _call(gateway, lambda g: g.get_order_shipping_rates("GB", items))

        assert result.data[0].logistic_name == "CJPacket"
        assert _body(supplier_stub.requests[0])["products"] == [
            {"vid": "V1", "quantity": 2}, {"vid": "V2", "quantity": 1},
        ]

    def test_order_quote_without_weight_does_not_fall_back(self, gateway, supplier_stub):
        supplier_stub.on(FREIGHT_PATH, {"result": False, "message": ""})

        result = _call(gateway, lambda g: g.get_order_shipping_rates("ZA", [OrderLineItem("V1", 1)]))

        assert result.success is False
        assert result.error == "Failed to get shipping methods"
        assert len(supplier_stub.requests) == 1

    def test_empty_order_quote_falls_back_to_total_weight(self, gateway, supplier_stub):
        supplier_stub.on(
            FREIGHT_PATH,
            {"result": True, "data": []},
            {"result": True, "data": [{"logisticName": "Post", "logisticPrice": 11, "logisticAging": "15-25"}]},
        )

        items = [OrderLineItem("V1", 2), OrderLineItem("V2", 1)]
        result = _call(gateway, lambda g: g.get_order_shipping_rates("ZA", items, total_weight_kg=1.2))

        assert result.success is True
        assert [r.logistic_name for r in result.data] == ["Post"]
        assert len(supplier_stub.requests) == 2
        assert _body(supplier_stub.requests[1]) == {
            "startCountryCode": "CN", "endCountryCode": "ZA", "weight": 1.2,
        }

    def test_failed_order_quote_falls_back_to_total_weight(self, gateway, supplier_stub):
        supplier_stub.on(
            FREIGHT_PATH,
            {"result": False, "message": "vid invalid"},
            {"result": True, "data": [{"logisticName": "Post", "logisticPrice": 11}]},
        )

        result = _call(
            gateway, lambda g: g.get_order_shipping_rates("ZA", [OrderLineItem("V1", 1)], total_weight_kg=1.2)
        )

        assert result.data[0].logistic_name == "Post"
        assert _body(supplier_stub.requests[1])["weight"] == 1.2


class TestOrders:
    """Order creation and lookups"""

    def test_build_order_payload(self, gateway, order_request):
        body = gateway.build_order_payload(order_request)

        assert body["orderNumber"] == "ORD-1001"
        assert body["shippingCountryCode"] == "ZA"
        assert body["shippingCountry"] == "South Africa"
        assert body["shippingAddress2"] == "Unit 4"
        assert body["consigneeID"] == "0027821234567"
        assert body["payType"] == 3
        assert body["shopLogisticsType"] == 2
        assert body["fromCountryCode"] == "CN"
        assert body["logisticName"] == ""
        assert body["remark"] == "Leave at reception"
        assert body["products"] == [
            {"vid": "V100", "quantity": 2, "storeLineItemId": "line-ORD-1001-0"},
            {"vid": "V200", "quantity": 1, "storeLineItemId": "line-ORD-1001-1"},
        ]

    def test_payload_country_falls_back_to_default(self, gateway, order_request):
        order_request.shipping_address.country_code = "South Africa"
        order_request.shipping_address.country = None
        order_request.shipping_address.address2 = None

        body = gateway.build_order_payload(order_request)

        assert body["shippingCountryCode"] == "ZA"
        assert body["shippingCountry"] == "ZA"
        assert "shippingAddress2" not in body

    def test_create_order(self, gateway, supplier_stub, order_request):
        supplier_stub.on(CREATE_ORDER_PATH, {"result": True, "data": {"orderId": "CJ123"}})

        result = _call(gateway, lambda g: g.create_order(order_request))

        assert result.success is True
        assert result.data == SupplierOrderResponse("CJ123", "ORD-1001", "Created")
        assert supplier_stub.requests[0].method == "POST"

    def test_create_order_business_error(self, gateway, supplier_stub, order_request):
        supplier_stub.on(CREATE_ORDER_PATH, {"result": False, "message": "Insufficient balance"})

        result = _call(gateway, lambda g: g.create_order(order_request))

        assert result.success is False
        assert result.error == "Insufficient balance"

    def test_create_order_http_error(self, gateway, supplier_stub, order_request):
        supplier_stub.on(CREATE_ORDER_PATH, httpx.Response(500, json={"message": "Server busy"}))

        result = _call(gateway, lambda g: g.create_order(order_request))

        assert result.to_dict() == {"success": False, "error": "Server busy"}

    def test_create_order_connection_error(self, gateway, supplier_stub, order_request):
        supplier_stub.on(CREATE_ORDER_PATH, httpx.ConnectError("refused"))

        result = _call(gateway, lambda g: g.create_order(order_request))

        assert result.success is False
        assert result.error.startswith("Connection failed")

    def test_get_order_detail(self, gateway, supplier_stub):
        supplier_stub.on("/v1/shopping/order/getOrderDetail", {
            "result": True,
            "data": {
                "orderId": "CJ123", "orderNum": "ORD-1001", "orderStatus": "SHIPPED",
                "trackNumber": "YT123", "logisticName": "YunExpress",
                "trackingUrl": "https://t.example/YT123", "orderAmount": "12.40",
                "createDate": "2026-01-10 08:00:00",
            },
        })

        result = _call(gateway, lambda g: g.get_order_detail("CJ123"))

        assert result.data == SupplierOrderDetail(
            order_id="CJ123", order_number="ORD-1001", order_status="SHIPPED",
            tracking_number="YT123", logistic_name="YunExpress",
            tracking_url="https://t.example/YT123", order_amount=12.4,
            created_at="2026-01-10 08:00:00",
        )
        assert supplier_stub.requests[0].url.params["orderId"] == "CJ123"

    def test_get_order_status_blank_tracking(self, gateway, supplier_stub):
        supplier_stub.on("/v1/shopping/order/getOrderDetail", {
            "result": True, "data": {"orderId": "CJ5", "orderStatus": "UNSHIPPED", "trackNumber": "  "},
        })

        result = _call(gateway, lambda g: g.get_order_status("CJ5"))

        assert result.data.order_status == "UNSHIPPED"
        assert result.data.tracking_number is None

    def test_get_tracking(self, gateway, supplier_stub):
        supplier_stub.on("/v1/logistic/getTrackInfo", {
            "result": True,
            "data": [{
                "trackingNumber": "YT123", "logisticName": "YunExpress", "trackingFrom": "CN",
                "trackingTo": "ZA", "deliveryDay": "12", "deliveryTime": None,
                "trackingStatus": "In transit", "lastMileCarrier": "PostNet", "lastTrackNumber": "PN1",
            }],
        })

        result = _call(gateway, lambda g: g.get_tracking("YT123"))

        assert result.data == [TrackingInfo(
            tracking_number="YT123", logistic_name="YunExpress", tracking_from="CN", tracking_to="ZA",
            delivery_day="12", delivery_time="", tracking_status="In transit",
            last_mile_carrier="PostNet", last_track_number="PN1",
        )]

    def test_confirm_order(self, gateway, supplier_stub):
        supplier_stub.on("/v1/shopping/order/confirmOrder", {"result": True, "data": None})

        result = _call(gateway, lambda g: g.confirm_order("CJ123"))

        assert result.success is True
        assert _body(supplier_stub.requests[0]) == {"orderId": "CJ123"}


def test_token_failure_becomes_failed_result(cj_config, pricing, supplier_stub, static_tokens):
    static_tokens.get_access_token.side_effect = AuthenticationError("CJ login failed: Invalid password")
    gateway = CJDropshippingClient(
        cj_config, token_manager=static_tokens, pricing=pricing, transport=supplier_stub.transport
    )

    result = _call(gateway, lambda g: g.get_categories())

    assert result.success is False
    assert result.error == "CJ login failed: Invalid password"
    assert supplier_stub.requests == []
