from dokan.services import (
    admin_service, cart_service, catalog_service, coupon_service, order_service, review_service, user_service,
    vendor_service, wishlist_service,
)

routers = [
    user_service.router,
    vendor_service.router,
    catalog_service.router,
    cart_service.router,
    wishlist_service.router,
    order_service.router,
    review_service.router,
    coupon_service.router,
    admin_service.router,
]
