"""Multi-vendor checkout: one order per vendor, submitted one after another."""
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional

import httpx
from pydantic import Field, ValidationError

from dokan.cart import CENT, line_total
from dokan.client import ApiError
from dokan.schemas import CamelModel, DeliveryAddress

logger = logging.getLogger(__name__)


class CheckoutValidationError(ValueError):
    def __init__(self, errors):
        super().__init__("; ".join(errors))
        self.errors = errors


class CheckoutForm(CamelModel):
    delivery_address: DeliveryAddress
    payment_method: str = Field(default="cod", min_length=1)
    coupon_code: Optional[str] = None


def validate_checkout_form(data):
    if isinstance(data, CheckoutForm):
        return data
    try:
        return CheckoutForm.model_validate(data)
    except ValidationError as exc:
        errors = [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()]
        raise CheckoutValidationError(errors) from exc


@dataclass
class VendorOrderResult:
    vendor_id: str
    vendor_name: str
    order: Optional[dict] = None
    error: Optional[str] = None

    @property
    def ok(self):
        return self.order is not None


@dataclass
class CheckoutResult:
    results: List[VendorOrderResult] = field(default_factory=list)

    @property
    def placed(self):
        return [r for r in self.results if r.ok]

    @property
    def failed(self):
        return [r for r in self.results if not r.ok]

    @property
    def all_succeeded(self):
        return bool(self.results) and not self.failed

    @property
    def partially_succeeded(self):
        return bool(self.placed) and bool(self.failed)

    @property
    def message(self):
        if self.all_succeeded:
            return "Order placed successfully!"
        details = ", ".join(f"{r.vendor_name}: {r.error}" for r in self.failed)
        if self.partially_succeeded:
            return f"Order placed for some vendors, failed for others: {details}"
        return f"Failed to place order: {details}"


def group_by_vendor(items):
    """Cart items keyed by vendor id, vendors in order of first appearance."""
    groups = {}
    for item in items:
        vendor_id = (item.get("product") or {}).get("vendorId")
        if not vendor_id:
            continue
        groups.setdefault(vendor_id, []).append(item)
    return groups


def vendor_total(items):
    return sum((line_total(item) for item in items), Decimal("0")).quantize(CENT)


def vendor_name(vendor_id, items):
    vendor = items[0]["product"].get("vendor") or {}
    return vendor.get("storeName") or vendor_id


def build_vendor_orders(items, form):
    form = validate_checkout_form(form)
    orders = []
    for vendor_id, vendor_items in group_by_vendor(items).items():
        orders.append({
            "vendorId": vendor_id,
            "items": [{"productId": i["productId"], "quantity": int(i["quantity"])} for i in vendor_items],
            "total": str(vendor_total(vendor_items)),
            "deliveryAddress": form.delivery_address.model_dump(by_alias=True),
            "paymentMethod": form.payment_method,
            "couponCode": form.coupon_code or None,
            "discount": "0",
        })
    return orders


def place_orders(client, items, form):
    """Submit one order per vendor; a failure for one vendor never stops the others."""
    form = validate_checkout_form(form)
    if not items:
        raise CheckoutValidationError(["Your cart is empty"])
    groups = group_by_vendor(items)
    if not groups:
        raise CheckoutValidationError(["No purchasable items in cart"])

    result = CheckoutResult()
    for payload in build_vendor_orders(items, form):
        vendor_id = payload["vendorId"]
        name = vendor_name(vendor_id, groups[vendor_id])
        try:
            order = client.create_order(payload)
        except ApiError as exc:
            logger.warning("Order for vendor %s failed: %s", vendor_id, exc.message)
            result.results.append(VendorOrderResult(vendor_id, name, error=exc.message))
            continue
        except httpx.HTTPError as exc:
            logger.warning("Order for vendor %s failed: %s", vendor_id, exc)
            result.results.append(VendorOrderResult(vendor_id, name, error=str(exc) or "Network error"))
            continue
        result.results.append(VendorOrderResult(vendor_id, name, order=order))
    return result
