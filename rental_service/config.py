import os

DATABASE_URL = os.getenv("RENTAL_DB")
if not DATABASE_URL:
    raise RuntimeError("RENTAL_DB environment variable is not set")

DB_ECHO = (os.getenv("DB_ECHO") or "false").lower() == "true"

JWT_SECRET = os.getenv("JWT_SECRET")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM") or "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES") or "60")

if not JWT_SECRET:
    raise RuntimeError("JWT_SECRET environment variable is not set")

# optional: without these the catalog cache, rate limiting and events are off
REDIS_URL = os.getenv("REDIS_URL")
RABBIT_URL = os.getenv("RABBIT_URL")

CATALOG_CACHE_TTL_SECONDS = int(os.getenv("CATALOG_CACHE_TTL_SECONDS") or "5")
RATE_LIMIT_PER_MINUTE = int(os.getenv("RATE_LIMIT_PER_MINUTE") or "120")

ADMIN_EMAILS = {
    e.strip().lower()
    for e in (os.getenv("ADMIN_EMAILS") or "").split(",")
    if e.strip()
}
