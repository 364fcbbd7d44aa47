from decimal import Decimal

import httpx
import pytest

from conftest import PASSWORD, make_product
from dokan import cart
from dokan.client import ApiError, DokanClient, error_message


def line(price, quantity, discount=None):
    return {"quantity": quantity, "product": {"price": price, "discountPrice": discount}}


def test_cart_math():
    assert cart.unit_price({"price": "10.00", "discountPrice": None}) == Decimal("10.00")
    assert cart.unit_price({"price": "10.00", "discountPrice": "7.25"}) == Decimal("7.25")
    assert cart.line_total(line("0.335", 3)) == Decimal("1.01")
    assert cart.cart_total([line("2.50", 2), line("9.99", 1, discount="4.99"), {"quantity": 1}]) == Decimal("9.99")


def test_quantity_never_drops_below_one():
    assert not cart.can_decrement(1)
    assert cart.can_decrement(2)
    assert cart.decremented(1) == 1
    assert cart.decremented(3) == 2
    assert cart.incremented(1) == 2


def test_error_message_prefers_message_then_error():
    assert error_message(httpx.Response(400, json={"message": "Nope"})) == "Nope"
    assert error_message(httpx.Response(429, json={"error": "Slow down"})) == "Slow down"
    assert error_message(httpx.Response(500, text="boom")) == "boom"


def test_client_session_round_trip(client, db, buyer, vendor, api):
    tea = make_product(db, vendor)
    assert api.login(buyer.email, PASSWORD)["username"] == "buyer"
    assert api.me()["id"] == buyer.id

    item = api.add_to_cart(tea.id)
    assert api.update_cart_item(item["id"], 3)["quantity"] == 3
    assert [p["name"] for p in api.products(search="tea")] == ["Tea"]

    with pytest.raises(ApiError) as exc:
        api.update_cart_item(item["id"], 0)
    assert exc.value.status_code == 400
    assert exc.value.message == "Valid quantity is required"

    api.logout()
    with pytest.raises(ApiError) as exc:
        api.me()
    assert exc.value.status_code == 401


def test_client_register_sends_csrf_token(api):
    user = api.register(username="newbie", email="newbie@example.com", password="Strong@123",
                        confirmPassword="Strong@123", firstName="New", lastName="Bie", role="vendor")
    assert user["role"] == "vendor"
    assert api.my_vendor()["storeName"] == "New Bie's Store"


def test_client_refreshes_stale_csrf_token(client, buyer, api):
    api.login(buyer.email, PASSWORD)
    api.refresh_csrf_token()
    # The httponly half expired while the readable one is still around
    client.cookies.delete("csrf-token")
    assert api.clear_cart() == {"message": "Cart cleared"}
    assert client.cookies.get("csrf-token") == client.cookies.get("csrf-token-client")


def test_client_wraps_an_existing_http_client():
    http = httpx.Client(base_url="http://example.invalid")
    with DokanClient(http=http) as api:
        assert api.http is http
    assert http.is_closed
