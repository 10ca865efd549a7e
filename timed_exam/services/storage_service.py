"""
Storage abstraction layer for test records and uploaded files.

Two interchangeable backends implement ``RecordStore``: a single-device local
store (key/value entries, files kept inline as data URLs) and a remote store on
DynamoDB + S3. The link store talks to whichever one ``get_record_store``
returns and never assumes which is active.
"""
from __future__ import annotations

import logging
from enum import Enum
from typing import List, Optional, Protocol

from .. import config
from ..models import AnswerFileRecord, SubmissionRecord, TestRecord

logger = logging.getLogger(__name__)


class BlobArea(str, Enum):
    TEST_DOCUMENTS = "test-documents"
    ANSWER_DOCUMENTS = "answer-documents"


class RecordStore(Protocol):
    """Protocol every storage backend implements.

    All methods are blocking; callers run them off the event loop. Failures
    of the underlying medium are raised as ``TransientIOError``.
    """

    name: str

    def put_blob(self, area: BlobArea, file_name: str, data: bytes, content_type: str) -> str:
        """Store file content and return a reference (URL) to it."""
        ...

    def put_test(self, record: TestRecord) -> None:
        ...

    def fetch_test(self, test_id: str) -> Optional[TestRecord]:
        """Return the stored record, expired or not, or None if never stored."""
        ...

    def delete_test(self, test_id: str) -> None:
        ...

    def put_submission(self, record: SubmissionRecord) -> None:
        ...

    def put_answer_files(self, records: List[AnswerFileRecord]) -> None:
        """Persist a whole batch of answer rows in one call."""
        ...


# Global storage backend instance (lazy initialization)
_record_store: RecordStore | None = None


def get_record_store() -> RecordStore:
    """Get the configured storage backend instance.

    Returns:
        RecordStore instance based on the STORAGE_BACKEND environment variable
    """
    global _record_store

    if _record_store is None:
        if config.STORAGE_BACKEND == "remote":
            from .remote_store import RemoteRecordStore

            logger.info("Initializing remote (DynamoDB + S3) storage backend")
            _record_store = RemoteRecordStore()
        else:
            from .local_store import LocalRecordStore

            logger.info("Initializing local storage backend (default)")
            path = None if config.LOCAL_STORE_PATH == ":memory:" else config.LOCAL_STORE_PATH
            _record_store = LocalRecordStore(path=path)

    return _record_store


def set_record_store(store: RecordStore | None) -> None:
    """Replace the process-wide backend (tests, alternate wiring)."""
    global _record_store
    _record_store = store
