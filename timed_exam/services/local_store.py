"""
Single-device storage backend.

Entries mirror browser local storage: string keys mapping to JSON strings.
Tests live under ``test_<id>``, submissions under ``submission_<id>`` and the
answer batch of a submission under ``answers_<submission_id>``. File content
is kept inline as ``data:`` URLs, so nothing is shared beyond this device and
the whole store may be wiped at any time.
"""
from __future__ import annotations

import base64
import json
import logging
import threading
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import ValidationError as ModelValidationError

from ..errors import TransientIOError
from ..models import AnswerFileRecord, SubmissionRecord, TestRecord
from .storage_service import BlobArea

logger = logging.getLogger(__name__)


def key_for_test(test_id: str) -> str:
    return f"test_{test_id}"


def key_for_submission(submission_id: str) -> str:
    return f"submission_{submission_id}"


def key_for_answers(submission_id: str) -> str:
    return f"answers_{submission_id}"


def to_data_url(data: bytes, content_type: str) -> str:
    encoded = base64.b64encode(data).decode("ascii")
    return f"data:{content_type};base64,{encoded}"


class LocalStorage:
    """
    Thread-safe string key/value storage, optionally mirrored to a JSON file.

    The file is rewritten on every change; a missing or corrupt file starts an
    empty store.
    """

    def __init__(self, path: str | Path | None = None) -> None:
        self._lock = threading.Lock()
        self._path = Path(path).expanduser() if path else None
        self._items: Dict[str, str] = self._load()

    def _load(self) -> Dict[str, str]:
        if self._path is None or not self._path.exists():
            return {}
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable local store {self._path}: {e}")
            return {}
        if not isinstance(raw, dict):
            logger.warning(f"Ignoring malformed local store {self._path}")
            return {}
        return {str(k): str(v) for k, v in raw.items()}

    def _flush(self) -> None:
        if self._path is None:
            return
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self._path.with_suffix(self._path.suffix + ".tmp")
            tmp.write_text(json.dumps(self._items), encoding="utf-8")
            tmp.replace(self._path)
        except OSError as e:
            logger.error(f"Failed to write local store {self._path}: {e}")
            raise TransientIOError(f"Failed to write local storage: {e}") from e

    def get_item(self, key: str) -> Optional[str]:
        with self._lock:
            return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        with self._lock:
            self._items[key] = value
            self._flush()

    def set_items(self, items: Dict[str, str]) -> None:
        with self._lock:
            self._items.update(items)
            self._flush()

    def remove_item(self, key: str) -> None:
        with self._lock:
            if self._items.pop(key, None) is not None:
                self._flush()

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._items)

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


class LocalRecordStore:
    """RecordStore over a LocalStorage instance."""

    name = "local"

    def __init__(self, storage: LocalStorage | None = None, path: str | Path | None = None) -> None:
        self.storage = storage or LocalStorage(path)

    def put_blob(self, area: BlobArea, file_name: str, data: bytes, content_type: str) -> str:
        # Inline content: the blob area and generated name only matter remotely
        return to_data_url(data, content_type)

    def put_test(self, record: TestRecord) -> None:
        self.storage.set_item(key_for_test(record.id), record.model_dump_json())

    def fetch_test(self, test_id: str) -> Optional[TestRecord]:
        raw = self.storage.get_item(key_for_test(test_id))
        if raw is None:
            return None
        try:
            return TestRecord.model_validate_json(raw)
        except ModelValidationError as e:
            logger.warning(f"Discarding unreadable entry {key_for_test(test_id)}: {e}")
            self.storage.remove_item(key_for_test(test_id))
            return None

    def delete_test(self, test_id: str) -> None:
        self.storage.remove_item(key_for_test(test_id))

    def put_submission(self, record: SubmissionRecord) -> None:
        self.storage.set_item(key_for_submission(record.id), record.model_dump_json())

    def put_answer_files(self, records: List[AnswerFileRecord]) -> None:
        grouped: Dict[str, List[dict]] = {}
        for record in records:
            grouped.setdefault(record.submission_id, []).append(record.model_dump(mode="json"))
        self.storage.set_items({key_for_answers(sid): json.dumps(rows) for sid, rows in grouped.items()})

    def fetch_submission(self, submission_id: str) -> Optional[SubmissionRecord]:
        raw = self.storage.get_item(key_for_submission(submission_id))
        return SubmissionRecord.model_validate_json(raw) if raw else None

    def fetch_answer_files(self, submission_id: str) -> List[AnswerFileRecord]:
        raw = self.storage.get_item(key_for_answers(submission_id))
        if not raw:
            return []
        return [AnswerFileRecord.model_validate(row) for row in json.loads(raw)]
