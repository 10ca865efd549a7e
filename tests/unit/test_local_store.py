"""
Tests for services/local_store.py
"""
import base64
import json
from datetime import datetime, timedelta, timezone

import pytest

from timed_exam.errors import TransientIOError
from timed_exam.models import AnswerFileRecord, SubmissionRecord, TestRecord
from timed_exam.services.local_store import (
    LocalRecordStore,
    LocalStorage,
    key_for_answers,
    key_for_test,
    to_data_url,
)
from timed_exam.services.storage_service import BlobArea

NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)


def make_record(test_id="abc"):
    return TestRecord(
        id=test_id,
        file_name="exam.pdf",
        file_url="data:application/pdf;base64,JVBERg==",
        duration_minutes=45,
        created_at=NOW,
        expires_at=NOW + timedelta(days=1),
    )


class TestLocalStorage:
    """Test the key/value layer"""

    def test_memory_only(self):
        storage = LocalStorage()
        storage.set_item("a", "1")
        assert storage.get_item("a") == "1"
        assert storage.keys() == ["a"]
        assert len(storage) == 1

    def test_remove_item(self):
        storage = LocalStorage()
        storage.set_item("a", "1")
        storage.remove_item("a")
        storage.remove_item("missing")
        assert storage.get_item("a") is None

    def test_persists_to_file(self, tmp_path):
        path = tmp_path / "nested" / "store.json"
        LocalStorage(path).set_items({"a": "1", "b": "2"})

        assert json.loads(path.read_text()) == {"a": "1", "b": "2"}
        assert LocalStorage(path).get_item("b") == "2"

    def test_corrupt_file_starts_empty(self, tmp_path):
        path = tmp_path / "store.json"
        path.write_text("{not json")
        assert len(LocalStorage(path)) == 0

    def test_non_object_file_starts_empty(self, tmp_path):
        path = tmp_path / "store.json"
        path.write_text("[1, 2, 3]")
        assert len(LocalStorage(path)) == 0

    def test_write_failure_is_transient(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("a file, not a directory")
        storage = LocalStorage(blocker / "store.json")

        with pytest.raises(TransientIOError):
            storage.set_item("a", "1")


class TestLocalRecordStore:
    """Test record persistence on the local backend"""

    def test_put_blob_returns_data_url(self):
        store = LocalRecordStore()
        url = store.put_blob(BlobArea.ANSWER_DOCUMENTS, "x.png", b"\x89PNG", "image/png")
        assert url == to_data_url(b"\x89PNG", "image/png")
        assert base64.b64decode(url.split(",", 1)[1]) == b"\x89PNG"

    def test_put_and_fetch_test(self):
        store = LocalRecordStore()
        record = make_record()
        store.put_test(record)

        assert store.storage.get_item(key_for_test("abc")) is not None
        assert store.fetch_test("abc") == record

    def test_fetch_missing(self):
        assert LocalRecordStore().fetch_test("nope") is None

    def test_delete_test(self):
        store = LocalRecordStore()
        store.put_test(make_record())
        store.delete_test("abc")
        assert store.fetch_test("abc") is None

    def test_unreadable_entry_is_discarded(self):
        store = LocalRecordStore()
        store.storage.set_item(key_for_test("abc"), '{"id": "abc"}')

        assert store.fetch_test("abc") is None
        assert store.storage.get_item(key_for_test("abc")) is None

    def test_answer_files_grouped_by_submission(self):
        store = LocalRecordStore()
        store.put_submission(SubmissionRecord(id="s1", test_id="abc", submitted_at=NOW))
        rows = [
            AnswerFileRecord(id="a1", submission_id="s1", file_name="1.png", file_url="data:,"),
            AnswerFileRecord(id="a2", submission_id="s1", file_name="2.png", file_url="data:,"),
            AnswerFileRecord(id="b1", submission_id="s2", file_name="3.png", file_url="data:,"),
        ]
        store.put_answer_files(rows)

        assert [a.id for a in store.fetch_answer_files("s1")] == ["a1", "a2"]
        assert [a.id for a in store.fetch_answer_files("s2")] == ["b1"]
        assert store.fetch_answer_files("s3") == []
        assert len(json.loads(store.storage.get_item(key_for_answers("s1")))) == 2
        assert store.fetch_submission("s1").test_id == "abc"

    def test_survives_restart(self, tmp_path):
        path = tmp_path / "store.json"
        LocalRecordStore(path=path).put_test(make_record())
        assert LocalRecordStore(path=path).fetch_test("abc") == make_record()
