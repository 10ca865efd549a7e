"""
Link store: creation, lookup and submission of timed tests.

The store and the clock are injected, so the same code runs against the local
or the remote backend and under a simulated clock in tests. Backend calls are
blocking and are pushed to the thread pool.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import timedelta
from typing import Iterable, List, Optional

from starlette.concurrency import run_in_threadpool

from ..clock import Clock, SystemClock
from ..config import MAX_DURATION_MINUTES, MIN_DURATION_MINUTES, TEST_VALIDITY_SECONDS
from ..errors import TransientIOError, ValidationError
from ..models import (
    AnswerFileRecord,
    FileUpload,
    SubmissionReceipt,
    SubmissionRecord,
    TestRecord,
)
from ..utils.files import generate_file_name, generate_id, validate_answer_file, validate_document
from ..utils.links import generate_test_link
from .storage_service import BlobArea, RecordStore, get_record_store

logger = logging.getLogger(__name__)

TEST_VALIDITY = timedelta(seconds=TEST_VALIDITY_SECONDS)


def validate_duration(duration_minutes) -> int:
    if isinstance(duration_minutes, bool) or not isinstance(duration_minutes, int):
        raise ValidationError("Test duration must be a whole number of minutes.")
    if not MIN_DURATION_MINUTES <= duration_minutes <= MAX_DURATION_MINUTES:
        raise ValidationError(
            f"Test duration must be between {MIN_DURATION_MINUTES} and "
            f"{MAX_DURATION_MINUTES} minutes, got {duration_minutes}."
        )
    return duration_minutes


class LinkStore:
    def __init__(self, store: RecordStore, clock: Clock | None = None, origin: str | None = None):
        self.store = store
        self.clock = clock or SystemClock()
        self.origin = origin

    def link_for(self, test_id: str) -> str:
        return generate_test_link(test_id, self.origin)

    def _blob_name(self, original_name: str) -> str:
        return generate_file_name(original_name, int(self.clock.now().timestamp() * 1000))

    async def create_test(
        self,
        document: FileUpload | None,
        duration_minutes: int,
        created_by: str | None = None,
    ) -> TestRecord:
        """Persist a new test valid for exactly 24 hours from now.

        Raises:
            ValidationError: duration outside 5-180 minutes or bad document
            TransientIOError: the backend could not store the document or record
        """
        validate_duration(duration_minutes)
        validate_document(document)

        file_url = await run_in_threadpool(
            self.store.put_blob,
            BlobArea.TEST_DOCUMENTS,
            self._blob_name(document.file_name),
            document.data,
            document.content_type,
        )

        created_at = self.clock.now()
        record = TestRecord(
            id=generate_id(),
            file_name=document.file_name,
            file_url=file_url,
            duration_minutes=duration_minutes,
            created_at=created_at,
            expires_at=created_at + TEST_VALIDITY,
            created_by=created_by,
        )
        await run_in_threadpool(self.store.put_test, record)
        logger.info(
            f"Created test {record.id} ({record.file_name}, {duration_minutes} min) "
            f"on {self.store.name} store, expires {record.expires_at.isoformat()}"
        )
        return record

    async def get_test(self, test_id: str | None) -> Optional[TestRecord]:
        """Return the live record, or None when it never existed or has expired."""
        if not test_id or not test_id.strip():
            return None

        record = await run_in_threadpool(self.store.fetch_test, test_id)
        if record is None:
            return None

        if record.is_expired(self.clock.now()):
            logger.info(f"Test {test_id} expired at {record.expires_at.isoformat()}, removing")
            try:
                await run_in_threadpool(self.store.delete_test, test_id)
            except TransientIOError as e:
                logger.warning(f"Could not remove expired test {test_id}: {e}")
            return None

        return record

    async def record_submission(
        self,
        test_id: str,
        files: Iterable[FileUpload],
        submitted_by: str | None = None,
    ) -> SubmissionReceipt:
        """Upload answer files and record one submission for them.

        All uploads are started together and awaited together. If any of them
        fails the submission is reported as failed; uploads that did complete
        are left in the backend.

        Raises:
            ValidationError: no files, or a file of the wrong type or size
            TransientIOError: an upload or a record write failed
        """
        uploads: List[FileUpload] = list(files or [])
        if not uploads:
            raise ValidationError("Please upload at least one answer file before submitting.")
        for upload in uploads:
            validate_answer_file(upload)

        results = await asyncio.gather(
            *(
                run_in_threadpool(
                    self.store.put_blob,
                    BlobArea.ANSWER_DOCUMENTS,
                    self._blob_name(upload.file_name),
                    upload.data,
                    upload.content_type,
                )
                for upload in uploads
            ),
            return_exceptions=True,
        )
        failures = [(u, r) for u, r in zip(uploads, results) if isinstance(r, BaseException)]
        if failures:
            for upload, error in failures:
                logger.error(f"Answer upload failed for test {test_id} ({upload.file_name}): {error}")
            upload, error = failures[0]
            if isinstance(error, TransientIOError):
                raise error
            if isinstance(error, Exception):
                raise TransientIOError(f"Failed to upload {upload.file_name}: {error}") from error
            raise error

        submission = SubmissionRecord(
            id=generate_id(),
            test_id=test_id,
            submitted_at=self.clock.now(),
            submitted_by=submitted_by,
        )
        answers = [
            AnswerFileRecord(
                id=generate_id(),
                submission_id=submission.id,
                file_name=upload.file_name,
                file_url=file_url,
            )
            for upload, file_url in zip(uploads, results)
        ]

        await run_in_threadpool(self.store.put_submission, submission)
        await run_in_threadpool(self.store.put_answer_files, answers)
        logger.info(
            f"Recorded submission {submission.id} for test {test_id} with {len(answers)} file(s)"
        )
        return SubmissionReceipt(submission=submission, answers=answers)


def get_link_store() -> LinkStore:
    """LinkStore over the configured backend and the wall clock."""
    return LinkStore(get_record_store(), SystemClock())
