from __future__ import annotations
import os

DATA_DIR = os.getenv("DATA_DIR", os.path.join(os.getcwd(), "data"))
REPORTS_FILE = os.getenv("REPORTS_FILE", os.path.join(DATA_DIR, "db.json"))
UPLOAD_DIR = os.getenv("UPLOAD_DIR", os.path.join(DATA_DIR, "uploads"))

MAX_IMAGE_MB = int(os.getenv("MAX_IMAGE_MB", "5"))
MAX_IMAGE_BYTES = MAX_IMAGE_MB * 1024 * 1024

# Prefix under which stored photos are served back to clients.
UPLOAD_URL_PREFIX = "/uploads"

CORS_ORIGINS = os.getenv("CORS_ORIGINS").split(",") if os.getenv("CORS_ORIGINS") else ["*"]

APP_ENV = os.getenv("APP_ENV", "production")
DEBUG = APP_ENV == "development"

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
