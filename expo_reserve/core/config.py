import os

# Database configuration
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./expo_reserve.db")

# Redis configuration
REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")

# Identity assertions
JWT_SECRET = os.getenv("JWT_SECRET", "dev-only-change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))

# Per-resource locking (seconds)
LOCK_TIMEOUT = float(os.getenv("LOCK_TIMEOUT", "10"))
REQUEST_TIMEOUT = float(os.getenv("REQUEST_TIMEOUT", "5"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


def get_database_url():
    return DATABASE_URL


def get_redis_url():
    return REDIS_URL


def get_jwt_settings() -> tuple[str, str]:
    return JWT_SECRET, JWT_ALGORITHM


def get_lock_timeouts() -> tuple[float, float]:
    """Return (lock expiry, max wait to acquire) in seconds."""
    return LOCK_TIMEOUT, REQUEST_TIMEOUT
