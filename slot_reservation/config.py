import os

SERVICE_NAME = "reservation-service"

DATABASE_URL = os.getenv("DATABASE_URL")
REDIS_URL = os.getenv("REDIS_URL")
RABBIT_URL = os.getenv("RABBIT_URL")  # optional, events are skipped without it

HOLD_TTL_SECONDS = int(os.getenv("HOLD_TTL_SECONDS") or "300")
REAPER_INTERVAL_SECONDS = float(os.getenv("REAPER_INTERVAL_SECONDS") or "60")
REAPER_BATCH_SIZE = int(os.getenv("REAPER_BATCH_SIZE") or "50")

# Pending = provider must accept, Confirmed = instant booking
CONFIRM_STATUS = os.getenv("CONFIRM_STATUS") or "Pending"
if CONFIRM_STATUS not in ("Pending", "Confirmed"):
    raise RuntimeError("CONFIRM_STATUS must be 'Pending' or 'Confirmed'")

LOG_LEVEL = (os.getenv("LOG_LEVEL") or "INFO").upper()
DB_ECHO = (os.getenv("DB_ECHO") or "").lower() in ("1", "true", "yes")
