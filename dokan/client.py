import logging

import httpx

from dokan.config import API_URL

logger = logging.getLogger(__name__)

SAFE_METHODS = ("GET", "HEAD", "OPTIONS")
CSRF_CLIENT_COOKIE = "csrf-token-client"


class ApiError(Exception):
    """Non-2xx answer from the Dokan API."""

    def __init__(self, status_code, message):
        super().__init__(f"{status_code}: {message}")
        self.status_code = status_code
        self.message = message


def error_message(response):
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict):
        for key in ("message", "error", "detail"):
            if body.get(key):
                return str(body[key])
    return response.reason_phrase


class DokanClient:
    """Session-cookie client for the marketplace API.

    Any httpx.Client can be passed in (FastAPI's TestClient included); otherwise one is
    created for ``base_url``. State-changing calls carry the CSRF double-submit header.
    """

    def __init__(self, base_url=API_URL, http=None, timeout=10.0):
        self.http = http if http is not None else httpx.Client(base_url=base_url, timeout=timeout)
        self._csrf_token = None

    def close(self):
        self.http.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    # --- transport ---
    def refresh_csrf_token(self):
        response = self.http.get("/api/csrf-token")
        if response.status_code >= 400:
            raise ApiError(response.status_code, error_message(response))
        self._csrf_token = response.json()["csrfToken"]
        return self._csrf_token

    def csrf_token(self):
        cookie = self.http.cookies.get(CSRF_CLIENT_COOKIE)
        if cookie:
            self._csrf_token = cookie
        return self._csrf_token or self.refresh_csrf_token()

    def request(self, method, path, json=None, params=None, files=None):
        method = method.upper()
        retried = False
        while True:
            headers = {}
            if method not in SAFE_METHODS:
                headers["x-csrf-token"] = self.csrf_token()
            response = self.http.request(method, path, json=json, params=params, files=files, headers=headers)

            # Token cookie expired between calls: fetch a new one once
            if response.status_code == 403 and not retried and "CSRF" in error_message(response):
                retried = True
                self._csrf_token = None
                self.http.cookies.delete(CSRF_CLIENT_COOKIE)
                self.refresh_csrf_token()
                continue
            break

        if response.status_code >= 400:
            message = error_message(response)
            logger.debug("%s %s failed: %s %s", method, path, response.status_code, message)
            raise ApiError(response.status_code, message)
        if not response.content:
            return None
        return response.json()

    def get(self, path, **params):
        return self.request("GET", path, params={k: v for k, v in params.items() if v is not None} or None)

    def post(self, path, json=None, files=None):
        return self.request("POST", path, json=json, files=files)

    def put(self, path, json=None):
        return self.request("PUT", path, json=json)

    def delete(self, path, json=None):
        return self.request("DELETE", path, json=json)

    # --- auth ---
    def register(self, **fields):
        return self.post("/api/auth/register", json=fields)["user"]

    def login(self, email, password):
        return self.post("/api/auth/login", json={"email": email, "password": password})["user"]

    def admin_login(self, username, password):
        return self.post("/api/auth/admin-login", json={"username": username, "password": password})["user"]

    def logout(self):
        return self.post("/api/auth/logout")

    def me(self):
        return self.get("/api/auth/me")["user"]

    def update_profile(self, **fields):
        return self.put("/api/profile", json=fields)["user"]

    def change_password(self, current_password, new_password):
        return self.put("/api/auth/change-password", json={
            "currentPassword": current_password, "newPassword": new_password, "confirmPassword": new_password,
        })

    # --- catalog ---
    def products(self, search=None, category=None, city=None, state=None, zip_code=None):
        return self.get("/api/products", search=search, category=category, city=city, state=state,
                        zipCode=zip_code)

    def product(self, product_id):
        return self.get(f"/api/products/{product_id}")

    def product_reviews(self, product_id):
        return self.get(f"/api/products/{product_id}/reviews")

    def categories(self):
        return self.get("/api/categories")

    def create_category(self, name, description=None):
        return self.post("/api/categories", json={"name": name, "description": description})

    def stats(self):
        return self.get("/api/stats")

    # --- vendor ---
    def my_vendor(self):
        return self.get("/api/vendors/me")

    def vendor_products(self):
        return self.get("/api/products/vendor")

    def create_product(self, **fields):
        return self.post("/api/products", json=fields)

    def update_product(self, product_id, **fields):
        return self.put(f"/api/products/{product_id}", json=fields)

    def delete_product(self, product_id):
        return self.delete(f"/api/products/{product_id}")

    def update_vendor_settings(self, **fields):
        return self.put("/api/vendor/settings", json=fields)

    def update_vendor_delivery(self, **fields):
        return self.put("/api/vendor/delivery", json=fields)

    def update_vendor_location(self, **fields):
        return self.put("/api/vendor/location", json=fields)

    def create_coupon(self, **fields):
        return self.post("/api/coupons", json=fields)

    def coupons(self):
        return self.get("/api/coupons")

    def check_coupon(self, code):
        return self.get(f"/api/coupons/check/{code}")

    # --- cart / wishlist ---
    def cart(self):
        return self.get("/api/cart")

    def add_to_cart(self, product_id, quantity=1):
        return self.post("/api/cart", json={"productId": product_id, "quantity": quantity})

    def update_cart_item(self, item_id, quantity):
        return self.put(f"/api/cart/{item_id}", json={"quantity": quantity})

    def remove_cart_item(self, item_id):
        return self.delete(f"/api/cart/{item_id}")

    def clear_cart(self):
        return self.delete("/api/cart")

    def wishlist(self):
        return self.get("/api/wishlist")

    def add_to_wishlist(self, product_id):
        return self.post("/api/wishlist", json={"productId": product_id})

    def remove_from_wishlist(self, item_id):
        return self.delete(f"/api/wishlist/{item_id}")

    # --- orders ---
    def orders(self):
        return self.get("/api/orders")

    def create_order(self, payload):
        return self.post("/api/orders", json=payload)

    def order_items(self, order_id):
        return self.get(f"/api/orders/{order_id}/items")

    def update_order_status(self, order_id, status):
        return self.put(f"/api/orders/{order_id}/status", json={"status": status})

    def unreviewed_orders(self):
        return self.get("/api/orders/unreviewed")

    # --- reviews ---
    def create_review(self, payload):
        return self.post("/api/reviews", json=payload)

    def recent_reviews(self):
        return self.get("/api/reviews/recent")

    def upload_review_image(self, filename, content, content_type):
        return self.post("/api/upload/review-image", files={"image": (filename, content, content_type)})

    def delete_review_image(self, image_path):
        return self.delete("/api/upload/review-image", json={"imagePath": image_path})

    def upload_product_image(self, filename, content, content_type):
        return self.post("/api/upload/product-image", files={"image": (filename, content, content_type)})

    # --- admin ---
    def admin_stats(self):
        return self.get("/api/admin/stats")

    def admin_users(self):
        return self.get("/api/admin/users")

    def admin_vendors(self):
        return self.get("/api/admin/vendors")

    def set_user_status(self, user_id, is_active):
        return self.put(f"/api/admin/users/{user_id}/status", json={"isActive": is_active})

    def set_user_role(self, user_id, role):
        return self.put(f"/api/admin/users/{user_id}/role", json={"role": role})

    def approve_vendor(self, vendor_id):
        return self.put(f"/api/admin/vendors/{vendor_id}/approve")
