import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session, joinedload

from dokan import models, schemas
from dokan.auth import audit, get_current_user, require_role
from dokan.database import get_db
from dokan.services.vendor_service import own_vendor, vendor_for_user

logger = logging.getLogger(__name__)

router = APIRouter(tags=["orders"])

CENT = Decimal("0.01")

# Allowed next states for each order status
STATUS_TRANSITIONS = {
    "pending": {"confirmed", "cancelled"},
    "confirmed": {"shipped", "cancelled"},
    "shipped": {"delivered"},
    "delivered": set(),
    "cancelled": set(),
}


def money(value):
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def selling_price(product):
    return product.discount_price if product.discount_price is not None else product.price


def can_transition(current, new):
    return new in STATUS_TRANSITIONS.get(current, set())


def get_order_or_404(db, order_id):
    order = db.query(models.Order).filter(models.Order.id == order_id).first()
    if not order:
        raise HTTPException(404, "Order not found")
    return order


def check_order_access(db, order, user):
    if user.role == "admin":
        return
    if user.role == "vendor":
        vendor = vendor_for_user(db, user.id)
        if vendor and order.vendor_id == vendor.id:
            return
    if order.user_id == user.id:
        return
    raise HTTPException(403, "Access denied")


# ==========================================
# API ORDER
# ==========================================
@router.get("/api/orders", response_model=List[schemas.OrderOut])
def list_orders(user: models.User = Depends(get_current_user), db: Session = Depends(get_db)):
    query = db.query(models.Order)
    if user.role == "vendor":
        query = query.filter(models.Order.vendor_id == own_vendor(db, user).id)
    elif user.role != "admin":
        query = query.filter(models.Order.user_id == user.id)
    return query.order_by(models.Order.created_at.desc()).all()


@router.post("/api/orders", response_model=schemas.OrderOut, status_code=201)
def create_order(payload: schemas.OrderCreate, user: models.User = Depends(get_current_user),
                 db: Session = Depends(get_db)):
    """Place an order with one vendor; prices come from the catalog, not the client."""
    vendor = db.query(models.Vendor).filter(models.Vendor.id == payload.vendor_id).first()
    if not vendor:
        raise HTTPException(404, "Vendor not found")

    quantities = {}
    for line in payload.items:
        quantities[line.product_id] = quantities.get(line.product_id, 0) + line.quantity

    products = db.query(models.Product).filter(models.Product.id.in_(list(quantities))).all()
    by_id = {p.id: p for p in products}
    for product_id in quantities:
        product = by_id.get(product_id)
        if not product:
            raise HTTPException(400, f"Product not found: {product_id}")
        if product.vendor_id != vendor.id:
            raise HTTPException(400, "All items must belong to the selected vendor")
        if not product.is_active:
            raise HTTPException(400, f"Product is not available: {product.name}")

    # 1. Snapshot prices
    lines = []
    total = Decimal("0")
    for product_id, quantity in quantities.items():
        price = money(selling_price(by_id[product_id]))
        line_total = money(price * quantity)
        lines.append((product_id, quantity, price, line_total))
        total += line_total

    # 2. Order + items in one transaction
    order = models.Order(
        user_id=user.id,
        vendor_id=vendor.id,
        total=money(total),
        status="pending",
        payment_method=payload.payment_method,
        delivery_address=payload.delivery_address.model_dump(by_alias=True),
        coupon_code=payload.coupon_code or None,
        discount=Decimal("0"),
    )
    db.add(order)
    db.flush()
    for product_id, quantity, price, line_total in lines:
        db.add(models.OrderItem(order_id=order.id, product_id=product_id, quantity=quantity, price=price,
                                total=line_total))

    # 3. Only the ordered products leave the cart
    db.query(models.CartItem).filter(
        models.CartItem.user_id == user.id, models.CartItem.product_id.in_(list(quantities))
    ).delete(synchronize_session=False)
    db.commit()
    db.refresh(order)
    logger.info("Order %s placed by %s with vendor %s for %s", order.id, user.id, vendor.id, order.total)
    return order


@router.get("/api/orders/unreviewed", response_model=List[schemas.UnreviewedOrder])
def list_unreviewed(user: models.User = Depends(get_current_user), db: Session = Depends(get_db)):
    reviewed = {
        r.product_id for r in db.query(models.Review.product_id).filter(models.Review.user_id == user.id).all()
    }
    orders = db.query(models.Order).options(
        joinedload(models.Order.items).joinedload(models.OrderItem.product).joinedload(models.Product.vendor)
    ).filter(models.Order.user_id == user.id, models.Order.status == "delivered").order_by(
        models.Order.created_at.desc()
    ).all()

    result = []
    for order in orders:
        products = []
        seen = set()
        for item in order.items:
            if item.product_id in reviewed or item.product_id in seen or item.product is None:
                continue
            seen.add(item.product_id)
            products.append(item.product)
        if products:
            result.append({"order": order, "products": products})
    return result


@router.get("/api/orders/{order_id}", response_model=schemas.OrderOut)
def get_order(order_id: str, user: models.User = Depends(get_current_user), db: Session = Depends(get_db)):
    order = get_order_or_404(db, order_id)
    check_order_access(db, order, user)
    return order


@router.get("/api/orders/{order_id}/items", response_model=List[schemas.OrderItemOut])
def get_order_items(order_id: str, user: models.User = Depends(get_current_user), db: Session = Depends(get_db)):
    order = get_order_or_404(db, order_id)
    check_order_access(db, order, user)
    return db.query(models.OrderItem).options(joinedload(models.OrderItem.product)).filter(
        models.OrderItem.order_id == order.id
    ).all()


@router.put("/api/orders/{order_id}/status", response_model=schemas.OrderOut)
def update_order_status(order_id: str, payload: schemas.OrderStatusUpdate,
                        user: models.User = Depends(require_role("vendor", "admin")),
                        db: Session = Depends(get_db)):
    order = get_order_or_404(db, order_id)
    if user.role == "vendor" and order.vendor_id != own_vendor(db, user).id:
        raise HTTPException(403, "Access denied")
    if not can_transition(order.status, payload.status):
        raise HTTPException(400, f"Cannot change order status from {order.status} to {payload.status}")

    previous = order.status
    order.status = payload.status
    if payload.status == "delivered":
        vendor = db.query(models.Vendor).filter(models.Vendor.id == order.vendor_id).first()
        vendor.total_sales = money((vendor.total_sales or 0) + order.total)
    db.commit()
    db.refresh(order)

    if user.role == "admin":
        audit("admin_action", user_id=user.id, action="order_status", orderId=order.id, status=order.status)
    logger.info("Order %s: %s -> %s", order.id, previous, order.status)
    return order
