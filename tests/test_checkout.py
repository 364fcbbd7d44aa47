from decimal import Decimal

import httpx
import pytest

from conftest import ADDRESS, login_as, make_product, make_vendor
from dokan import models
from dokan.checkout import (
    CheckoutValidationError, build_vendor_orders, group_by_vendor, place_orders, validate_checkout_form,
)
from dokan.client import ApiError

FORM = {"deliveryAddress": ADDRESS, "paymentMethod": "cod"}


def cart_line(product_id, vendor_id, price, quantity, discount=None, store="Shop"):
    return {
        "id": f"line-{product_id}",
        "productId": product_id,
        "quantity": quantity,
        "product": {"id": product_id, "vendorId": vendor_id, "price": price, "discountPrice": discount,
                    "vendor": {"storeName": store}},
    }


class RecordingClient:
    """Stands in for DokanClient; fails orders for the listed vendors."""

    def __init__(self, failing=(), network_down=()):
        self.failing = failing
        self.network_down = network_down
        self.sent = []

    def create_order(self, payload):
        self.sent.append(payload)
        if payload["vendorId"] in self.failing:
            raise ApiError(400, "Product is not available: Tea")
        if payload["vendorId"] in self.network_down:
            raise httpx.ConnectError("connection refused")
        return {"id": f"order-{payload['vendorId']}", "total": payload["total"]}


def test_group_by_vendor_keeps_first_seen_order():
    items = [cart_line("a", "v2", "1", 1), cart_line("b", "v1", "1", 1), cart_line("c", "v2", "1", 1)]
    groups = group_by_vendor(items)
    assert list(groups) == ["v2", "v1"]
    assert [i["productId"] for i in groups["v2"]] == ["a", "c"]


def test_build_vendor_orders_totals_use_discount_price():
    items = [
        cart_line("a", "v1", "10.00", 2, discount="7.50"),
        cart_line("b", "v1", "3.10", 3),
        cart_line("c", "v2", "100", 1),
    ]
    orders = build_vendor_orders(items, FORM)
    assert [o["vendorId"] for o in orders] == ["v1", "v2"]
    assert orders[0]["total"] == "24.30"
    assert orders[1]["total"] == "100.00"
    assert orders[0]["items"] == [{"productId": "a", "quantity": 2}, {"productId": "b", "quantity": 3}]
    assert orders[0]["deliveryAddress"]["zipCode"] == "44600"
    assert orders[0]["discount"] == "0"


def test_checkout_form_rules():
    with pytest.raises(CheckoutValidationError) as exc:
        validate_checkout_form({"deliveryAddress": {**ADDRESS, "zipCode": "12", "street": "x"}})
    assert len(exc.value.errors) == 2
    assert validate_checkout_form(FORM).delivery_address.country == "Nepal"


def test_empty_cart_is_rejected():
    with pytest.raises(CheckoutValidationError, match="Your cart is empty"):
        place_orders(RecordingClient(), [], FORM)


def test_one_order_per_vendor():
    client = RecordingClient()
    items = [cart_line("a", "v1", "5", 1), cart_line("b", "v2", "6", 2)]
    result = place_orders(client, items, FORM)
    assert result.all_succeeded
    assert result.message == "Order placed successfully!"
    assert [p["vendorId"] for p in client.sent] == ["v1", "v2"]
    assert [r.order["total"] for r in result.placed] == ["5.00", "12.00"]


def test_partial_failure_keeps_successful_orders():
    client = RecordingClient(failing=("v2",))
    items = [cart_line("a", "v1", "5", 1), cart_line("b", "v2", "6", 1, store="Tea House"),
             cart_line("c", "v3", "7", 1)]
    result = place_orders(client, items, FORM)
    assert len(client.sent) == 3
    assert result.partially_succeeded
    assert [r.vendor_id for r in result.placed] == ["v1", "v3"]
    assert result.message == (
        "Order placed for some vendors, failed for others: Tea House: Product is not available: Tea"
    )


def test_total_failure():
    client = RecordingClient(network_down=("v1",))
    result = place_orders(client, [cart_line("a", "v1", "5", 1)], FORM)
    assert not result.placed
    assert result.message.startswith("Failed to place order: Shop: ")


def test_checkout_against_the_api(client, db, buyer, api):
    first = make_vendor(db, store_name="First")
    second = make_vendor(db, store_name="Second")
    tea = make_product(db, first, price="4.00", discount_price="3.50")
    pot = make_product(db, second, name="Pot", price="20.00")
    db.add_all([models.CartItem(user_id=buyer.id, product_id=tea.id, quantity=2),
                models.CartItem(user_id=buyer.id, product_id=pot.id, quantity=1)])
    db.commit()
    login_as(client, buyer)

    result = place_orders(api, api.cart(), FORM)
    assert result.all_succeeded
    totals = {r.vendor_name: Decimal(r.order["total"]) for r in result.placed}
    assert totals == {"First": Decimal("7.00"), "Second": Decimal("20.00")}
    assert api.cart() == []
    assert len(api.orders()) == 2


def test_checkout_against_the_api_reports_unavailable_vendor(client, db, buyer, api):
    first = make_vendor(db, store_name="First")
    second = make_vendor(db, store_name="Second")
    tea = make_product(db, first)
    pot = make_product(db, second, name="Pot")
    db.add_all([models.CartItem(user_id=buyer.id, product_id=tea.id, quantity=1),
                models.CartItem(user_id=buyer.id, product_id=pot.id, quantity=1)])
    db.commit()
    login_as(client, buyer)
    items = api.cart()

    pot.is_active = False
    db.commit()

    result = place_orders(api, items, FORM)
    assert result.partially_succeeded
    assert result.failed[0].vendor_name == "Second"
    assert result.failed[0].error == "Product is not available: Pot"
    remaining = api.cart()
    assert [i["productId"] for i in remaining] == [pot.id]
