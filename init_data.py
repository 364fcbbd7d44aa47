"""Seed a running Dokan server with demo stores, products and a shopper.

Each account gets its own client so no logout/login round trips are needed. Accounts that
already exist are left alone, so a re-run costs one admin login and the script stays inside
the auth rate limit (5 attempts per 15 minutes per address).
"""
import base64
import logging

import httpx

from dokan.client import ApiError, DokanClient
from dokan.config import ADMIN_PASSWORD, ADMIN_USERNAME, API_URL

logger = logging.getLogger("dokan.seed")

STRONG_PASS = "Demo@1234"
# 1x1 transparent GIF
DEMO_IMAGE = base64.b64decode("R0lGODlhAQABAIAAAAAAAP///yH5BAEAAAAALAAAAAABAAEAAAIBRAA7")

VENDORS = [
    {"username": "techhub", "email": "owner@techhub.com", "firstName": "Rajan", "lastName": "Shrestha",
     "store": {"storeName": "TechHub Kathmandu", "storeDescription": "Phones and gadgets"},
     "delivery": {"deliveryAreas": ["Kathmandu", "44600"], "deliveryFee": "60", "freeDeliveryThreshold": "5000"},
     "products": [
         {"name": "Wireless Earbuds", "price": "2500", "discountPrice": "1999", "stock": 40, "sku": "TH-EB-01"},
         {"name": "USB-C Charger 65W", "price": "1800", "stock": 25, "sku": "TH-CH-65"},
     ],
     "coupon": {"code": "TECH10", "discountType": "percentage", "discountValue": "10", "usageLimit": 100}},
    {"username": "homestyle", "email": "owner@homestyle.com", "firstName": "Sita", "lastName": "Gurung",
     "store": {"storeName": "Home Style", "storeDescription": "Decor for every room"},
     "delivery": {"deliveryAreas": ["Kathmandu", "Pokhara"], "deliveryFee": "80", "freeDeliveryThreshold": "3000"},
     "products": [
         {"name": "Ceramic Table Lamp", "price": "3200", "stock": 12, "sku": "HS-LMP-02"},
         {"name": "Cotton Cushion Cover", "price": "450", "discountPrice": "399", "stock": 80, "sku": "HS-CSH-11"},
     ],
     "coupon": {"code": "HOME50", "discountType": "fixed", "discountValue": "50"}},
]

BUYER = {"username": "shopper1", "email": "shopper1@example.com", "firstName": "Asha", "lastName": "Rai",
         "phone": "9800000001"}


def sign_up(client, role, **fields):
    return client.register(password=STRONG_PASS, confirmPassword=STRONG_PASS, role=role, **fields)


def seed_vendor(seller, categories):
    with DokanClient(API_URL) as client:
        user = sign_up(client, "vendor", username=seller["username"], email=seller["email"],
                       firstName=seller["firstName"], lastName=seller["lastName"])
        print(f"   👔 Vendor: {user['email']}")
        client.update_vendor_settings(**seller["store"])
        client.update_vendor_delivery(**seller["delivery"])

        existing = {p["sku"] for p in client.vendor_products()}
        for i, product in enumerate(seller["products"]):
            if product["sku"] in existing:
                continue
            image = client.upload_product_image(f"{product['sku']}.gif", DEMO_IMAGE, "image/gif")
            created = client.create_product(
                description=f"{product['name']} from {seller['store']['storeName']}",
                categoryId=categories[i % len(categories)]["id"] if categories else None,
                images=[image["imagePath"]],
                availableInAreas=seller["delivery"]["deliveryAreas"],
                **product,
            )
            print(f"   ✅ Product: {created['name']}")

        try:
            client.create_coupon(**seller["coupon"])
            print(f"   🏷️ Coupon: {seller['coupon']['code']}")
        except ApiError as e:
            logger.info("Coupon %s skipped: %s", seller["coupon"]["code"], e.message)


def seed_data():
    print("🚀 Seeding demo data...")

    print("\n🛡️ [1] Admin")
    with DokanClient(API_URL) as admin:
        admin_user = admin.admin_login(ADMIN_USERNAME, ADMIN_PASSWORD)
        print(f"   ✅ {admin_user['username']}")
        categories = admin.categories()
        seeded = {u["email"] for u in admin.admin_users()}

    print("\n🏪 [2] Vendors, products and coupons")
    for seller in VENDORS:
        if seller["email"] in seeded:
            print(f"   ⏭️ {seller['email']} already seeded")
            continue
        seed_vendor(seller, categories)

    print("\n👤 [3] Shopper")
    if BUYER["email"] in seeded:
        print(f"   ⏭️ {BUYER['email']} already seeded")
    else:
        with DokanClient(API_URL) as client:
            buyer = sign_up(client, "user", **BUYER)
            print(f"   👤 {buyer['email']}")

    print("\n-------------------------------------")
    print("🎉 Done!")
    print(f"👉 Shopper: {BUYER['email']} / {STRONG_PASS}")
    print(f"👉 Vendor:  {VENDORS[0]['email']} / {STRONG_PASS}")
    print("-------------------------------------")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    try:
        seed_data()
    except (ApiError, httpx.HTTPError) as e:
        raise SystemExit(f"Seeding failed: {e}")
