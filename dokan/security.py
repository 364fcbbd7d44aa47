import asyncio
import hmac
import json
import logging
import math
import secrets
import time

from fastapi import APIRouter, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from dokan.config import (
    API_RATE_LIMIT, AUTH_RATE_LIMIT, CORS_ORIGINS, CSRF_MAX_AGE_SECONDS, GLOBAL_RATE_LIMIT, IS_PRODUCTION,
    RATE_LIMIT_WINDOW_SECONDS, SLOW_DOWN_AFTER, SLOW_DOWN_MAX_MS, SLOW_DOWN_STEP_MS,
)

logger = logging.getLogger(__name__)

CSRF_COOKIE = "csrf-token"
CSRF_CLIENT_COOKIE = "csrf-token-client"
CSRF_HEADER = "x-csrf-token"
CSRF_EXEMPT_PREFIXES = ("/api/auth/login", "/api/auth/logout", "/api/csrf-token")
SAFE_METHODS = ("GET", "HEAD", "OPTIONS")

SANITIZED_FIELDS = ("description", "bio", "content", "storeDescription")

CORS_ORIGIN_REGEX = r"https://([a-zA-Z0-9-]+\.)+replit\.(app|dev)"

SECURITY_HEADERS = {
    "Content-Security-Policy": "; ".join([
        "default-src 'self'",
        "style-src 'self' 'unsafe-inline' fonts.googleapis.com",
        "font-src 'self' fonts.gstatic.com",
        "img-src 'self' data: https:",
        "script-src 'self'",
        "connect-src 'self' https: wss:" + ("" if IS_PRODUCTION else " ws:"),
        "frame-src 'none'",
        "object-src 'none'",
        "base-uri 'self'",
        "form-action 'self'",
        "frame-ancestors 'self'",
        "script-src-attr 'none'",
        "upgrade-insecure-requests",
    ]),
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains; preload",
    "X-Frame-Options": "DENY",
    "X-Content-Type-Options": "nosniff",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Cross-Origin-Opener-Policy": "same-origin",
    "Cross-Origin-Resource-Policy": "same-origin",
    "Origin-Agent-Cluster": "?1",
    "X-DNS-Prefetch-Control": "off",
    "X-Download-Options": "noopen",
    "X-Permitted-Cross-Domain-Policies": "none",
    "X-XSS-Protection": "0",
}


def client_ip(request):
    return request.client.host if request.client else "unknown"


# ==========================================
# SECURITY HEADERS
# ==========================================
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        if "x-powered-by" in response.headers:
            del response.headers["x-powered-by"]
        return response


# ==========================================
# RATE LIMITING (fixed window, per client IP)
# ==========================================
class FixedWindowCounter:
    """Counts hits per key inside fixed windows; expired windows are evicted lazily."""

    def __init__(self, window_seconds):
        self.window = window_seconds
        self.windows = {}  # key -> [count, reset_at]
        self.next_sweep = 0.0

    def hit(self, key, now=None):
        now = time.monotonic() if now is None else now
        if now >= self.next_sweep:
            self.evict(now)
        entry = self.windows.get(key)
        if entry is None or entry[1] <= now:
            entry = [0, now + self.window]
            self.windows[key] = entry
        entry[0] += 1
        return entry[0], entry[1]

    def evict(self, now):
        expired = [key for key, (_, reset_at) in self.windows.items() if reset_at <= now]
        for key in expired:
            del self.windows[key]
        self.next_sweep = now + self.window


class RateLimiter(FixedWindowCounter):
    def __init__(self, limit, message, window_seconds=RATE_LIMIT_WINDOW_SECONDS, prefix=None, skip=None):
        super().__init__(window_seconds)
        self.limit = limit
        self.message = message
        self.prefix = prefix
        self.skip = skip

    def applies_to(self, path):
        if self.prefix and not path.startswith(self.prefix):
            return False
        if self.skip and self.skip(path):
            return False
        return True

    def check(self, key, now=None):
        """Returns (allowed, headers) for one more request from key."""
        now = time.monotonic() if now is None else now
        count, reset_at = self.hit(key, now)
        headers = {
            "RateLimit-Limit": str(self.limit),
            "RateLimit-Remaining": str(max(self.limit - count, 0)),
            "RateLimit-Reset": str(max(math.ceil(reset_at - now), 0)),
        }
        return count <= self.limit, headers


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, limiter):
        super().__init__(app)
        self.limiter = limiter

    async def dispatch(self, request, call_next):
        if not self.limiter.applies_to(request.url.path):
            return await call_next(request)

        allowed, headers = self.limiter.check(client_ip(request))
        if not allowed:
            logger.warning("Rate limit exceeded for %s on %s", client_ip(request), request.url.path)
            return JSONResponse(
                {"error": self.limiter.message, "retryAfter": "15 minutes"}, status_code=429, headers=headers
            )
        response = await call_next(request)
        # Innermost limiter already stamped its own numbers
        for name, value in headers.items():
            response.headers.setdefault(name, value)
        return response


def is_static_asset(path):
    return path.startswith("/assets/") or path.startswith("/images/") or path.endswith(".css") or path.endswith(".js")


def global_limiter():
    return RateLimiter(
        GLOBAL_RATE_LIMIT, "Too many requests from this IP, please try again later.", skip=is_static_asset
    )


def auth_limiter():
    return RateLimiter(
        AUTH_RATE_LIMIT, "Too many authentication attempts from this IP, please try again later.", prefix="/api/auth/"
    )


def api_limiter():
    return RateLimiter(API_RATE_LIMIT, "API rate limit exceeded, please try again later.", prefix="/api/")


# ==========================================
# SLOW DOWN (delays, never rejects)
# ==========================================
class SlowDown(FixedWindowCounter):
    def __init__(self, delay_after=SLOW_DOWN_AFTER, step_ms=SLOW_DOWN_STEP_MS, max_delay_ms=SLOW_DOWN_MAX_MS,
                 window_seconds=RATE_LIMIT_WINDOW_SECONDS):
        super().__init__(window_seconds)
        self.delay_after = delay_after
        self.step_ms = step_ms
        self.max_delay_ms = max_delay_ms

    def delay_for(self, key, now=None):
        """Seconds to hold this request back."""
        count, _ = self.hit(key, now)
        if count <= self.delay_after:
            return 0.0
        return min((count - self.delay_after) * self.step_ms, self.max_delay_ms) / 1000.0


class SlowDownMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, slow_down=None, sleep=asyncio.sleep):
        super().__init__(app)
        self.slow_down = slow_down or SlowDown()
        self.sleep = sleep

    async def dispatch(self, request, call_next):
        delay = self.slow_down.delay_for(client_ip(request))
        if delay:
            await self.sleep(delay)
        return await call_next(request)


# ==========================================
# INPUT SANITIZATION
# ==========================================
def sanitize_html(value):
    return (
        value.replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
        .replace("'", "&#x27;")
        .strip()
    )


def sanitize_payload(payload):
    if isinstance(payload, dict):
        for field in SANITIZED_FIELDS:
            if isinstance(payload.get(field), str):
                payload[field] = sanitize_html(payload[field])
    return payload


class SanitizeMiddleware:
    """Escapes free-text HTML fields of JSON request bodies before they reach a handler."""

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http" or scope["method"] not in ("POST", "PUT", "PATCH"):
            await self.app(scope, receive, send)
            return

        headers = dict(scope.get("headers") or [])
        if b"application/json" not in headers.get(b"content-type", b""):
            await self.app(scope, receive, send)
            return

        body = b""
        more_body = True
        while more_body:
            message = await receive()
            if message["type"] == "http.disconnect":
                await self.app(scope, receive, send)
                return
            body += message.get("body", b"")
            more_body = message.get("more_body", False)

        try:
            payload = json.loads(body) if body else None
        except ValueError:
            payload = None
        if isinstance(payload, dict):
            body = json.dumps(sanitize_payload(payload)).encode("utf-8")
            scope = dict(scope)
            scope["headers"] = [(k, v) for k, v in scope["headers"] if k != b"content-length"]
            scope["headers"].append((b"content-length", str(len(body)).encode("latin-1")))

        sent = False

        async def replay():
            nonlocal sent
            if sent:
                return await receive()
            sent = True
            return {"type": "http.request", "body": body, "more_body": False}

        await self.app(scope, replay, send)


# ==========================================
# CSRF (double-submit cookie)
# ==========================================
router = APIRouter()


@router.get("/api/csrf-token")
def get_csrf_token(response: Response):
    token = secrets.token_hex(32)
    for name, http_only in ((CSRF_COOKIE, True), (CSRF_CLIENT_COOKIE, False)):
        response.set_cookie(
            name, token, max_age=CSRF_MAX_AGE_SECONDS, httponly=http_only, secure=IS_PRODUCTION, samesite="strict"
        )
    return {"csrfToken": token}


def csrf_required(method, path):
    if method in SAFE_METHODS or not path.startswith("/api/"):
        return False
    return not path.startswith(CSRF_EXEMPT_PREFIXES)


class CSRFMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        if not csrf_required(request.method, request.url.path):
            return await call_next(request)

        cookie_token = request.cookies.get(CSRF_COOKIE)
        header_token = request.headers.get(CSRF_HEADER)
        if not cookie_token or not header_token:
            return JSONResponse(
                {"error": "CSRF token missing", "message": "CSRF protection requires valid token"}, status_code=403
            )
        if not hmac.compare_digest(cookie_token.encode(), header_token.encode()):
            logger.warning("CSRF token mismatch from %s on %s", client_ip(request), request.url.path)
            return JSONResponse(
                {"error": "CSRF token mismatch", "message": "Invalid CSRF token provided"}, status_code=403
            )
        return await call_next(request)


# ==========================================
# WIRING
# ==========================================
def configure_security(app, sleep=asyncio.sleep):
    """Install the middleware chain; the last one added runs first."""
    app.add_middleware(CSRFMiddleware)
    app.add_middleware(SanitizeMiddleware)
    app.add_middleware(SlowDownMiddleware, sleep=sleep)
    app.add_middleware(RateLimitMiddleware, limiter=api_limiter())
    app.add_middleware(RateLimitMiddleware, limiter=auth_limiter())
    app.add_middleware(RateLimitMiddleware, limiter=global_limiter())
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_origin_regex=CORS_ORIGIN_REGEX,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )
    app.add_middleware(SecurityHeadersMiddleware)
    app.include_router(router)
    logger.info("Security middleware configured")
