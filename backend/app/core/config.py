# backend/app/core/config.py
"""
Runtime settings read from the environment.
"""
import os
from decimal import Decimal

# importing db loads .env first
from .db import BASE_DIR

ORDER_NUMBER_PREFIX = os.getenv("ORDER_NUMBER_PREFIX", "BDC")

# bootstraps the stored override secret when AppSetting has none yet
ORDER_DELETE_SECRET = os.getenv("ORDER_DELETE_SECRET", "")

DEFAULT_HOURS_PER_DAY = Decimal(os.getenv("DEFAULT_HOURS_PER_DAY", "7"))
DEFAULT_WORK_WEEK_DAYS = int(os.getenv("DEFAULT_WORK_WEEK_DAYS", "5"))

# 0 disables the periodic sweep (startup sweep still runs)
OVERHEAD_SWEEP_INTERVAL_SECONDS = int(os.getenv("OVERHEAD_SWEEP_INTERVAL_SECONDS", "21600"))

UPLOAD_DIR = os.getenv("UPLOAD_DIR", os.path.join(BASE_DIR, "uploads"))

CORS_ALLOW_ORIGINS = os.getenv("CORS_ALLOW_ORIGINS", "*")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
