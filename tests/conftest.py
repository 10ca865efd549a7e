"""
Pytest configuration and fixtures
"""
import os
import sys
from pathlib import Path

import pytest

# Register pytest-asyncio plugin explicitly
pytest_plugins = ["pytest_asyncio"]

# Add project root to Python path
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

# Configuration is read at import time, so these must be set before any
# timed_exam module is imported
os.environ.setdefault("LOCAL_STORE_PATH", ":memory:")
os.environ.setdefault("STORAGE_BACKEND", "local")
os.environ.setdefault("PUBLIC_ORIGIN", "https://exams.example.com")
os.environ.setdefault("DISABLE_RATE_LIMIT", "true")
os.environ.pop("CLOUDWATCH_LOG_GROUP", None)
os.environ.pop("LOG_FILE", None)

from timed_exam.clock import ManualClock  # noqa: E402
from timed_exam.services.link_store import LinkStore  # noqa: E402

from tests.helpers import FlakyRecordStore, pdf_document  # noqa: E402


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def record_store():
    return FlakyRecordStore()


@pytest.fixture
def link_store(record_store, clock):
    return LinkStore(record_store, clock, origin="https://exams.example.com")


@pytest.fixture
def pdf_upload():
    return pdf_document()
