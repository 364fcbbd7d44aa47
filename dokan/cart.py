"""Price and quantity rules shared by the cart view and checkout."""
from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")
MIN_QUANTITY = 1


def to_decimal(value):
    return Decimal(str(value)) if value is not None else Decimal("0")


def unit_price(product):
    """Discount price when the product has one, list price otherwise."""
    discount = product.get("discountPrice")
    if discount not in (None, ""):
        return to_decimal(discount)
    return to_decimal(product.get("price"))


def line_total(item):
    return (unit_price(item["product"]) * int(item["quantity"])).quantize(CENT, rounding=ROUND_HALF_UP)


def cart_total(items):
    return sum((line_total(item) for item in items if item.get("product")), Decimal("0")).quantize(CENT)


def can_decrement(quantity):
    return quantity > MIN_QUANTITY


def decremented(quantity):
    return max(quantity - 1, MIN_QUANTITY)


def incremented(quantity):
    return quantity + 1
