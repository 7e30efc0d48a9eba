import os

SERVICE_NAME = "booking-service"

BOOKING_DB = os.getenv("BOOKING_DB")
if not BOOKING_DB:
    raise RuntimeError("BOOKING_DB environment variable is not set")

REDIS_URL = os.getenv("REDIS_URL")
RABBIT_URL = os.getenv("RABBIT_URL")  # optional; events disabled when unset

DIRECTORY_SERVICE_URL = os.getenv("DIRECTORY_SERVICE_URL")

MAX_RESCHEDULES = int(os.getenv("MAX_RESCHEDULES") or "2")
IDEMPOTENCY_TTL_SECONDS = int(os.getenv("IDEMPOTENCY_TTL_SECONDS") or "3600")

LOG_LEVEL = os.getenv("LOG_LEVEL") or "INFO"
