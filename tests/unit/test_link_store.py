"""
Tests for services/link_store.py
"""
from datetime import timedelta

import pytest

from tests.helpers import PDF_BYTES, PNG_BYTES, answer_upload
from timed_exam.errors import TransientIOError, ValidationError
from timed_exam.models import FileUpload
from timed_exam.services.link_store import LinkStore, get_link_store, validate_duration
from timed_exam.services.storage_service import BlobArea, set_record_store

pytestmark = pytest.mark.asyncio


class TestValidateDuration:
    """Test duration bounds"""

    @pytest.mark.parametrize("minutes", [5, 60, 180])
    async def test_accepts_bounds(self, minutes):
        assert validate_duration(minutes) == minutes

    @pytest.mark.parametrize("minutes", [4, 181, 0, -5])
    async def test_rejects_out_of_range(self, minutes):
        with pytest.raises(ValidationError) as exc:
            validate_duration(minutes)
        assert "between 5 and 180" in exc.value.message

    @pytest.mark.parametrize("minutes", [True, "60", 60.0, None])
    async def test_rejects_non_integers(self, minutes):
        with pytest.raises(ValidationError):
            validate_duration(minutes)


class TestCreateTest:
    """Test creating tests"""

    async def test_create_sets_24_hour_expiry(self, link_store, pdf_upload, clock):
        record = await link_store.create_test(pdf_upload, 60, created_by="instructor@example.com")

        assert record.created_at == clock.now()
        assert record.expires_at - record.created_at == timedelta(seconds=86400)
        assert record.duration_minutes == 60
        assert record.file_name == "midterm.pdf"
        assert record.created_by == "instructor@example.com"
        assert record.file_url.startswith("data:application/pdf;base64,")

    async def test_create_uploads_to_test_documents(self, link_store, record_store, pdf_upload):
        await link_store.create_test(pdf_upload, 30)

        assert len(record_store.blob_calls) == 1
        area, blob_name = record_store.blob_calls[0]
        assert area is BlobArea.TEST_DOCUMENTS
        assert blob_name.endswith(".pdf")
        assert blob_name.split("_")[0] == str(int(link_store.clock.now().timestamp() * 1000))

    async def test_create_persists_record(self, link_store, record_store, pdf_upload):
        record = await link_store.create_test(pdf_upload, 5)
        assert record_store.fetch_test(record.id) == record

    async def test_ids_are_unique(self, link_store, pdf_upload):
        first = await link_store.create_test(pdf_upload, 5)
        second = await link_store.create_test(pdf_upload, 5)
        assert first.id != second.id

    @pytest.mark.parametrize("minutes", [4, 181])
    async def test_create_rejects_duration(self, link_store, record_store, pdf_upload, minutes):
        with pytest.raises(ValidationError):
            await link_store.create_test(pdf_upload, minutes)
        assert record_store.blob_calls == []

    async def test_create_requires_document(self, link_store):
        with pytest.raises(ValidationError) as exc:
            await link_store.create_test(None, 60)
        assert exc.value.message == "Please select a PDF file to upload."

    async def test_create_rejects_non_pdf(self, link_store):
        document = FileUpload(file_name="notes.txt", content_type="text/plain", data=b"hello")
        with pytest.raises(ValidationError) as exc:
            await link_store.create_test(document, 60)
        assert exc.value.message == "Please upload a PDF file only."

    async def test_create_accepts_pdf_extension_with_generic_type(self, link_store):
        document = FileUpload(
            file_name="exam.PDF", content_type="application/octet-stream", data=PDF_BYTES
        )
        record = await link_store.create_test(document, 60)
        assert record.file_name == "exam.PDF"

    async def test_create_rejects_empty_document(self, link_store):
        document = FileUpload(file_name="exam.pdf", content_type="application/pdf", data=b"")
        with pytest.raises(ValidationError):
            await link_store.create_test(document, 60)

    async def test_create_upload_failure(self, link_store, record_store, pdf_upload):
        record_store.fail_blob_data = PDF_BYTES
        with pytest.raises(TransientIOError):
            await link_store.create_test(pdf_upload, 60)
        assert len(record_store.storage) == 0

    async def test_link_for(self, link_store):
        assert link_store.link_for("abc123") == "https://exams.example.com/test/abc123"


class TestGetTest:
    """Test looking tests up"""

    async def test_get_returns_live_record(self, link_store, pdf_upload):
        record = await link_store.create_test(pdf_upload, 60)
        assert await link_store.get_test(record.id) == record

    async def test_get_unknown_id(self, link_store):
        assert await link_store.get_test("does-not-exist") is None

    @pytest.mark.parametrize("test_id", [None, "", "   "])
    async def test_get_blank_id(self, link_store, test_id):
        assert await link_store.get_test(test_id) is None

    async def test_get_at_exact_expiry_still_valid(self, link_store, pdf_upload, clock):
        record = await link_store.create_test(pdf_upload, 60)
        clock.advance(86400)
        assert await link_store.get_test(record.id) == record

    async def test_get_after_expiry_removes_entry(self, link_store, record_store, pdf_upload, clock):
        record = await link_store.create_test(pdf_upload, 60)
        clock.advance(86400 + 1)

        assert await link_store.get_test(record.id) is None
        assert record_store.fetch_test(record.id) is None

    async def test_expired_removal_failure_still_absent(self, link_store, record_store, pdf_upload, clock):
        record = await link_store.create_test(pdf_upload, 60)
        clock.advance(86400 + 1)

        def broken_delete(test_id):
            raise TransientIOError("Failed to delete test file: offline")

        record_store.delete_test = broken_delete
        assert await link_store.get_test(record.id) is None

    async def test_get_propagates_fetch_failure(self, link_store, record_store):
        record_store.fail_fetch = True
        with pytest.raises(TransientIOError):
            await link_store.get_test("abc")


class TestRecordSubmission:
    """Test answer submissions"""

    async def test_three_files_one_submission(self, link_store, record_store):
        files = [answer_upload("p1.png"), answer_upload("p2.png"), answer_upload("p3.png")]

        receipt = await link_store.record_submission("test-1", files, submitted_by="student")

        assert len(record_store.submissions) == 1
        assert len(record_store.answer_batches) == 1
        assert len(record_store.answer_batches[0]) == 3
        assert receipt.submission.test_id == "test-1"
        assert receipt.submission.submitted_by == "student"
        assert [a.file_name for a in receipt.answers] == ["p1.png", "p2.png", "p3.png"]
        assert {a.submission_id for a in receipt.answers} == {receipt.submission.id}
        assert all(area is BlobArea.ANSWER_DOCUMENTS for area, _ in record_store.blob_calls)

    async def test_answers_stored_under_submission(self, link_store, record_store):
        receipt = await link_store.record_submission("test-1", [answer_upload()])

        stored = record_store.fetch_answer_files(receipt.submission.id)
        assert [a.id for a in stored] == [a.id for a in receipt.answers]
        assert record_store.fetch_submission(receipt.submission.id) == receipt.submission

    async def test_failed_upload_fails_whole_submission(self, link_store, record_store):
        record_store.fail_blob_data = b"bad"
        files = [
            answer_upload("p1.png"),
            answer_upload("p2.png", data=b"bad"),
            answer_upload("p3.png"),
        ]

        with pytest.raises(TransientIOError):
            await link_store.record_submission("test-1", files)

        assert len(record_store.blob_calls) == 3
        assert record_store.submissions == []
        assert record_store.answer_batches == []

    async def test_unexpected_upload_error_is_wrapped(self, link_store, record_store):
        def explode(area, file_name, data, content_type):
            raise RuntimeError("socket closed")

        record_store.put_blob = explode
        with pytest.raises(TransientIOError) as exc:
            await link_store.record_submission("test-1", [answer_upload()])
        assert "socket closed" in exc.value.message

    async def test_empty_submission_rejected(self, link_store, record_store):
        with pytest.raises(ValidationError) as exc:
            await link_store.record_submission("test-1", [])
        assert exc.value.message == "Please upload at least one answer file before submitting."
        assert record_store.blob_calls == []

    async def test_wrong_type_rejected_before_upload(self, link_store, record_store):
        files = [answer_upload(), answer_upload("notes.txt", b"text", "text/plain")]
        with pytest.raises(ValidationError):
            await link_store.record_submission("test-1", files)
        assert record_store.blob_calls == []

    async def test_submission_record_failure(self, link_store, record_store):
        record_store.fail_submission = True
        with pytest.raises(TransientIOError):
            await link_store.record_submission("test-1", [answer_upload()])
        assert record_store.answer_batches == []

    async def test_pdf_answers_accepted(self, link_store):
        pdf = FileUpload(file_name="answers.pdf", content_type="application/pdf", data=PDF_BYTES)
        jpg = FileUpload(file_name="photo.jpg", content_type="image/jpeg", data=PNG_BYTES)
        receipt = await link_store.record_submission("test-1", [pdf, jpg])
        assert len(receipt.answers) == 2


async def test_get_link_store_uses_configured_backend(record_store):
    set_record_store(record_store)
    try:
        store = get_link_store()
        assert isinstance(store, LinkStore)
        assert store.store is record_store
    finally:
        set_record_store(None)
