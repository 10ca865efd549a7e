"""
Runtime configuration read from the environment.

Values are resolved once at import time into module constants. Invalid numeric
values are logged and replaced by their defaults instead of aborting startup.
"""
from __future__ import annotations

import logging
import os

logger = logging.getLogger(__name__)

# Fixed policy, not configurable
MIN_DURATION_MINUTES = 5
MAX_DURATION_MINUTES = 180
TEST_VALIDITY_SECONDS = 24 * 60 * 60

ALLOWED_DOCUMENT_TYPES = ("application/pdf",)
ALLOWED_ANSWER_TYPES = ("image/jpeg", "image/png", "image/jpg", "application/pdf")


def _int_env(name: str, default: int, *, minimum: int = 1, maximum: int | None = None) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        value = int(raw)
    except (ValueError, TypeError) as e:
        logger.warning(f"Invalid {name} value: {raw}. Error: {e}. Using default: {default}")
        return default
    if value < minimum:
        logger.warning(
            f"Invalid {name} value: {raw}. Must be at least {minimum}. Using default: {default}"
        )
        return default
    if maximum is not None and value > maximum:
        logger.warning(
            f"{name} value {value} exceeds maximum ({maximum}). Using default: {default}"
        )
        return default
    return value


def _flag_env(name: str) -> bool:
    return os.getenv(name, "").lower() == "true"


STORAGE_BACKEND = os.getenv("STORAGE_BACKEND", "local").lower()
if STORAGE_BACKEND not in {"local", "remote"}:
    logger.warning(f"Unknown STORAGE_BACKEND '{STORAGE_BACKEND}'. Using default: local")
    STORAGE_BACKEND = "local"

# ":memory:" keeps the local store in process memory only
LOCAL_STORE_PATH = os.getenv("LOCAL_STORE_PATH", "~/.timed_exam/local_storage.json")
PUBLIC_ORIGIN = os.getenv("PUBLIC_ORIGIN", "http://localhost:8000").rstrip("/")

# AWS
AWS_REGION = os.getenv("AWS_REGION", os.getenv("AWS_DEFAULT_REGION", "us-east-1"))
AWS_ENDPOINT_URL = os.getenv("AWS_ENDPOINT_URL")  # e.g., http://localhost:4566 for LocalStack
EXAM_BUCKET = os.getenv("EXAM_BUCKET", "timed-exam-files")
TESTS_TABLE = os.getenv("DDB_TABLE_TESTS", "test_files")
SUBMISSIONS_TABLE = os.getenv("DDB_TABLE_SUBMISSIONS", "test_submissions")
ANSWERS_TABLE = os.getenv("DDB_TABLE_ANSWERS", "answer_files")

# Upload ceilings
MAX_DOCUMENT_BYTES = _int_env("MAX_DOCUMENT_MB", 50, maximum=500) * 1024 * 1024
MAX_ANSWER_FILE_BYTES = _int_env("MAX_ANSWER_FILE_MB", 10, maximum=100) * 1024 * 1024

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FILE = os.getenv("LOG_FILE")
CLOUDWATCH_LOG_GROUP = os.getenv("CLOUDWATCH_LOG_GROUP")

# Rate limiting
DISABLE_RATE_LIMIT = _flag_env("DISABLE_RATE_LIMIT")
RATE_LIMIT_REQUESTS = _int_env("RATE_LIMIT_REQUESTS", 120, maximum=10000)
RATE_LIMIT_WINDOW_SECONDS = _int_env("RATE_LIMIT_WINDOW_SECONDS", 60, maximum=3600)
RATE_LIMIT_WRITE_REQUESTS = _int_env("RATE_LIMIT_WRITE_REQUESTS", 30, maximum=10000)
