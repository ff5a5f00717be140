import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./marketplace.db")
# Hosted Postgres hands out postgres:// URLs; the driver is psycopg 3
for _scheme in ("postgres://", "postgresql://"):
    if DATABASE_URL.startswith(_scheme):
        DATABASE_URL = "postgresql+psycopg://" + DATABASE_URL[len(_scheme):]

# Supabase Auth - tokens are HS256 JWTs signed with the project's JWT secret
SUPABASE_JWT_SECRET = os.getenv("SUPABASE_JWT_SECRET")
if not SUPABASE_JWT_SECRET:
    import warnings

    warnings.warn(
        "SUPABASE_JWT_SECRET not set! Using insecure default - DO NOT USE IN PRODUCTION",
        RuntimeWarning,
        stacklevel=2,
    )
    SUPABASE_JWT_SECRET = "INSECURE-DEV-KEY-CHANGE-IN-PRODUCTION"  # noqa: S105 - Dev fallback only
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_AUDIENCE = os.getenv("JWT_AUDIENCE", "authenticated")

# Frontend base URL (dashboard)
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", FRONTEND_URL).split(",") if o.strip()]

# Redis (cache, rate limits, arq queue). REDIS_URL wins over the parts.
REDIS_URL = os.getenv("REDIS_URL")
REDIS_HOST = os.getenv("REDIS_HOST", "localhost")
REDIS_PORT = int(os.getenv("REDIS_PORT", "6379"))
REDIS_PASSWORD = os.getenv("REDIS_PASSWORD")
REDIS_DB = int(os.getenv("REDIS_DB", "0"))
REDIS_SSL = os.getenv("REDIS_SSL", "false").lower() == "true"

# Redis-backed features can be switched off (tests, single-node dev)
CACHE_ENABLED = os.getenv("CACHE_ENABLED", "true").lower() == "true"
RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"
BOOKING_CREATE_LIMIT = int(os.getenv("BOOKING_CREATE_LIMIT", "20"))  # per user per hour
MESSAGE_SEND_LIMIT = int(os.getenv("MESSAGE_SEND_LIMIT", "60"))  # per user per hour
SUMMARY_CACHE_TTL = int(os.getenv("SUMMARY_CACHE_TTL", "60"))

# Dashboard summary guards
SUMMARY_DAYS_BACK = int(os.getenv("SUMMARY_DAYS_BACK", "180"))
SUMMARY_MAX_ROWS = int(os.getenv("SUMMARY_MAX_ROWS", "2000"))

# Booking defaults
DEFAULT_CURRENCY = os.getenv("DEFAULT_CURRENCY", "OMR")
DEFAULT_BOOKING_DURATION_HOURS = int(os.getenv("DEFAULT_BOOKING_DURATION_HOURS", "2"))
