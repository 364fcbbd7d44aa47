import os

# Settings are read from the environment once, at import time
APP_ENV = os.getenv("NODE_ENV", os.getenv("APP_ENV", "development"))
IS_PRODUCTION = APP_ENV == "production"

DATABASE_URL = os.getenv("DATABASE_URL", "postgresql+psycopg2://postgres:postgres@db/dokan")

SESSION_SECRET = os.getenv("SESSION_SECRET", "dokan-secret-key")
SESSION_COOKIE_NAME = "session"
SESSION_MAX_AGE_DAYS = int(os.getenv("SESSION_MAX_AGE_DAYS", 7))
ALGORITHM = os.getenv("ALGORITHM", "HS256")
BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", 12))

ADMIN_USERNAME = os.getenv("ADMIN_USERNAME", "admin")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "admin123")
ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "admin@dokan.com")

UPLOAD_DIR = os.getenv("UPLOAD_DIR", "uploads")
MAX_UPLOAD_BYTES = 5 * 1024 * 1024

CORS_ORIGINS = ["http://localhost:3000", "http://localhost:5000"] + [
    o.strip() for o in os.getenv("CORS_ORIGINS", "").split(",") if o.strip()
]
CORS_ORIGIN_SUFFIXES = (".replit.app", ".replit.dev")

# --- RATE LIMITS (15 minute windows) ---
RATE_LIMIT_WINDOW_SECONDS = 15 * 60
GLOBAL_RATE_LIMIT = int(os.getenv("GLOBAL_RATE_LIMIT", 1000))
AUTH_RATE_LIMIT = int(os.getenv("AUTH_RATE_LIMIT", 5))
API_RATE_LIMIT = int(os.getenv("API_RATE_LIMIT", 100))
SLOW_DOWN_AFTER = int(os.getenv("SLOW_DOWN_AFTER", 50))
SLOW_DOWN_STEP_MS = 100
SLOW_DOWN_MAX_MS = 5000

CSRF_MAX_AGE_SECONDS = 60 * 60

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

API_URL = os.getenv("DOKAN_API_URL", "http://localhost:5000")


def missing_production_secrets():
    """Secrets that must be set explicitly before serving in production."""
    missing = []
    if not os.getenv("SESSION_SECRET"):
        missing.append("SESSION_SECRET")
    if not os.getenv("ADMIN_PASSWORD"):
        missing.append("ADMIN_PASSWORD")
    return missing
