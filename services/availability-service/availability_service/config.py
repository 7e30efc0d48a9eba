import os

SERVICE_NAME = "availability-service"

REDIS_URL = os.getenv("REDIS_URL")
RABBIT_URL = os.getenv("RABBIT_URL")  # optional; events disabled when unset

DIRECTORY_SERVICE_URL = os.getenv("DIRECTORY_SERVICE_URL")

# default working day offered when an instructor opens an empty date
DEFAULT_DAY_START_HOUR = int(os.getenv("DEFAULT_DAY_START_HOUR") or "8")
DEFAULT_DAY_END_HOUR = int(os.getenv("DEFAULT_DAY_END_HOUR") or "18")
DEFAULT_SLOT_MINUTES = int(os.getenv("DEFAULT_SLOT_MINUTES") or "60")

LOG_LEVEL = os.getenv("LOG_LEVEL") or "INFO"
