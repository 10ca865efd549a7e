"""
Shared test data and doubles
"""
import threading

from timed_exam.errors import TransientIOError
from timed_exam.models import FileUpload
from timed_exam.services.local_store import LocalRecordStore

PDF_BYTES = b"%PDF-1.4\n1 0 obj\n<< /Type /Catalog >>\nendobj\n%%EOF\n"
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


class FlakyRecordStore(LocalRecordStore):
    """
    Local store that fails uploads whose content matches ``fail_blob_data`` and
    can be told to fail record writes. Keeps every call for assertions.
    """

    def __init__(self, fail_blob_data=None, fail_submission=False, fail_answers=False, fail_fetch=False):
        super().__init__()
        self.fail_blob_data = fail_blob_data
        self.fail_submission = fail_submission
        self.fail_answers = fail_answers
        self.fail_fetch = fail_fetch
        self._lock = threading.Lock()
        self.blob_calls = []
        self.submissions = []
        self.answer_batches = []

    def put_blob(self, area, file_name, data, content_type):
        with self._lock:
            self.blob_calls.append((area, file_name))
        if self.fail_blob_data is not None and data == self.fail_blob_data:
            raise TransientIOError(f"Failed to upload file: simulated outage for {file_name}")
        return super().put_blob(area, file_name, data, content_type)

    def fetch_test(self, test_id):
        if self.fail_fetch:
            raise TransientIOError("Failed to fetch test file: simulated outage")
        return super().fetch_test(test_id)

    def put_submission(self, record):
        if self.fail_submission:
            raise TransientIOError("Failed to create submission: simulated outage")
        self.submissions.append(record)
        super().put_submission(record)

    def put_answer_files(self, records):
        if self.fail_answers:
            raise TransientIOError("Failed to create answer files: simulated outage")
        self.answer_batches.append(list(records))
        super().put_answer_files(records)


def answer_upload(name="page1.png", data=PNG_BYTES, content_type="image/png"):
    return FileUpload(file_name=name, content_type=content_type, data=data)


def pdf_document(name="midterm.pdf", data=PDF_BYTES):
    return FileUpload(file_name=name, content_type="application/pdf", data=data)
