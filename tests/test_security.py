from fastapi.testclient import TestClient

from conftest import csrf_headers, login_as
from dokan.main import create_app
from dokan.security import FixedWindowCounter, SlowDown, csrf_required, sanitize_html, sanitize_payload


def test_post_without_csrf_token_is_rejected(client):
    res = client.post("/api/cart", json={"productId": "x"})
    assert res.status_code == 403
    assert res.json()["error"] == "CSRF token missing"


def test_post_with_mismatched_csrf_token_is_rejected(client):
    client.get("/api/csrf-token")
    res = client.post("/api/cart", json={"productId": "x"}, headers={"x-csrf-token": "not-the-cookie"})
    assert res.status_code == 403
    assert res.json()["error"] == "CSRF token mismatch"


def test_get_bypasses_csrf(client):
    res = client.get("/api/cart")
    assert res.status_code == 401
    assert res.json() == {"message": "Authentication required"}


def test_matching_csrf_token_passes(client, buyer):
    login_as(client, buyer)
    res = client.delete("/api/cart", headers=csrf_headers(client))
    assert res.status_code == 200
    assert res.json() == {"message": "Cart cleared"}


def test_csrf_token_endpoint_sets_both_cookies(client):
    res = client.get("/api/csrf-token")
    token = res.json()["csrfToken"]
    assert len(token) == 64
    assert client.cookies.get("csrf-token") == token
    assert client.cookies.get("csrf-token-client") == token


def test_csrf_exemptions():
    assert not csrf_required("POST", "/api/auth/login")
    assert not csrf_required("POST", "/api/auth/logout")
    assert not csrf_required("GET", "/api/orders")
    assert not csrf_required("POST", "/uploads/x")
    assert csrf_required("POST", "/api/auth/register")
    assert csrf_required("DELETE", "/api/cart")


def test_sixth_auth_attempt_is_rate_limited(client):
    for _ in range(5):
        res = client.post("/api/auth/login", json={"email": "nobody@example.com", "password": "wrong-pass"})
        assert res.status_code == 401
    res = client.post("/api/auth/login", json={"email": "nobody@example.com", "password": "wrong-pass"})
    assert res.status_code == 429
    body = res.json()
    assert body["error"].startswith("Too many authentication attempts")
    assert body["retryAfter"] == "15 minutes"
    assert res.headers["RateLimit-Limit"] == "5"
    assert res.headers["RateLimit-Remaining"] == "0"


def test_most_specific_limiter_sets_the_headers(client):
    res = client.get("/api/categories")
    assert res.headers["RateLimit-Limit"] == "100"
    assert res.headers["RateLimit-Remaining"] == "99"
    res = client.get("/api/csrf-token")
    assert res.headers["RateLimit-Limit"] == "100"


def test_auth_limit_does_not_touch_other_routes(client):
    for _ in range(6):
        client.post("/api/auth/login", json={"email": "nobody@example.com", "password": "wrong-pass"})
    assert client.get("/api/categories").status_code == 200


def test_51st_request_is_delayed_not_rejected(app):
    delays = []

    async def fake_sleep(seconds):
        delays.append(seconds)

    with TestClient(create_app(sleep=fake_sleep)) as c:
        for _ in range(50):
            assert c.get("/api/categories").status_code == 200
        assert delays == []
        res = c.get("/api/categories")
    assert res.status_code == 200
    assert delays == [0.1]


def test_slow_down_delay_grows_and_caps():
    slow = SlowDown(delay_after=50, step_ms=100, max_delay_ms=5000, window_seconds=900)
    delays = [slow.delay_for("1.2.3.4", now=0) for _ in range(52)]
    assert delays[49] == 0
    assert delays[50] == 0.1
    assert delays[51] == 0.2
    for _ in range(100):
        last = slow.delay_for("1.2.3.4", now=1)
    assert last == 5.0
    # A new window starts from zero
    assert slow.delay_for("1.2.3.4", now=901) == 0


def test_fixed_window_evicts_expired_keys():
    counter = FixedWindowCounter(window_seconds=10)
    counter.hit("a", now=0)
    counter.hit("b", now=5)
    counter.hit("c", now=20)
    assert "a" not in counter.windows
    assert "b" not in counter.windows
    assert counter.windows["c"][0] == 1


def test_security_headers_present(client):
    res = client.get("/api/categories")
    assert res.headers["X-Frame-Options"] == "DENY"
    assert res.headers["X-Content-Type-Options"] == "nosniff"
    assert "frame-src 'none'" in res.headers["Content-Security-Policy"]
    assert res.headers["Strict-Transport-Security"].startswith("max-age=31536000")
    assert "RateLimit-Remaining" in res.headers


def test_cors_allows_replit_subdomains(client):
    headers = {"Origin": "https://shop-1.alice.replit.app", "Access-Control-Request-Method": "POST"}
    res = client.options("/api/products", headers=headers)
    assert res.headers["access-control-allow-origin"] == "https://shop-1.alice.replit.app"
    assert res.headers["access-control-allow-credentials"] == "true"

    res = client.options("/api/products", headers={**headers, "Origin": "https://evil.example.com"})
    assert "access-control-allow-origin" not in res.headers


def test_sanitize_html_escapes_markup():
    assert sanitize_html(' <script>alert("x")</script> ') == "&lt;script&gt;alert(&quot;x&quot;)&lt;/script&gt;"
    assert sanitize_payload({"description": "<b>", "name": "<b>"}) == {"description": "&lt;b&gt;", "name": "<b>"}


def test_product_description_is_sanitized(client, vendor_user):
    login_as(client, vendor_user)
    res = client.post("/api/products", headers=csrf_headers(client), json={
        "name": "Lamp", "description": "<img src=x onerror=alert(1)>", "price": "20", "sku": "LAMP-1",
    })
    assert res.status_code == 201
    assert res.json()["description"] == "&lt;img src=x onerror=alert(1)&gt;"
    assert res.json()["name"] == "Lamp"
