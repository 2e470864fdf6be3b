"""
Application settings

Values come from the environment (a local .env file is loaded first) with
defaults suitable for running against a local SQLite database.
"""

import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def _as_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


STORAGE_BACKEND = os.getenv("STORAGE_BACKEND", "sql").lower()

# Relational backend
SQL_DATABASE_URL = os.getenv("SQL_DATABASE_URL", "sqlite:///./foodieexpress.db")

# Document backend
DATABASE_URL = os.getenv("DATABASE_URL", "mongodb://localhost:27017")
DATABASE_NAME = os.getenv("DATABASE_NAME", "foodieexpress")

ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "admin@foodieexpress.com")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "admin123")
BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))

TAX_RATE = float(os.getenv("TAX_RATE", "0.10"))

ORDER_TRACKING_INTERVAL = min(int(os.getenv("ORDER_TRACKING_INTERVAL", "30")), 60)
ORDER_TRACKING_ENABLED = _as_bool(os.getenv("ORDER_TRACKING_ENABLED", "true"))

NOTIFICATION_SERVICE_URL = os.getenv("NOTIFICATION_SERVICE_URL")
EMAIL_FROM = os.getenv("EMAIL_FROM", "FoodieExpress <noreply@foodieexpress.com>")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
PORT = int(os.getenv("PORT", 8000))
