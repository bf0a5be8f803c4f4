import os

SERVICE_NAME = "booking-service"

DATABASE_URL = os.getenv("DATABASE_URL") or "sqlite+aiosqlite:///./marketplace.db"
DB_ECHO = (os.getenv("DB_ECHO") or "false").lower() == "true"
AUTO_CREATE_TABLES = (os.getenv("AUTO_CREATE_TABLES") or "false").lower() == "true"

JWT_SECRET = os.getenv("JWT_SECRET")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM") or "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES") or "10080")

if not JWT_SECRET:
    raise RuntimeError("JWT_SECRET environment variable is not set")

# JSON list of staff accounts: [{"id", "email", "password_hash", "roles", ...}]
CREDENTIALS_FILE = os.getenv("CREDENTIALS_FILE")

REDIS_URL = os.getenv("REDIS_URL")  # optional: rate limiting + consumer idempotency
RATE_LIMIT_PER_MINUTE = int(os.getenv("RATE_LIMIT_PER_MINUTE") or "120")

RABBIT_URL = os.getenv("RABBIT_URL")  # optional: domain events in/out
EXCHANGE_NAME = "domain_events"

NOTIFICATION_SERVICE_URL = os.getenv("NOTIFICATION_SERVICE_URL")
HTTP_TIMEOUT = float(os.getenv("HTTP_TIMEOUT") or "2.0")

LOG_LEVEL = (os.getenv("LOG_LEVEL") or "INFO").upper()
