from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class FileUpload(BaseModel):
    """A file handed to the link store, either a test PDF or an answer file."""

    file_name: str
    content_type: str = "application/octet-stream"
    data: bytes = b""

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def extension(self) -> str:
        if "." not in self.file_name:
            return ""
        return self.file_name.rsplit(".", 1)[-1].lower()


class TestRecord(BaseModel):
    __test__ = False  # not a pytest test class

    id: str
    file_name: str
    file_url: str
    duration_minutes: int = Field(..., ge=1)
    created_at: datetime
    expires_at: datetime
    created_by: Optional[str] = None

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at


class SubmissionRecord(BaseModel):
    id: str
    test_id: str
    submitted_at: datetime
    submitted_by: Optional[str] = None


class AnswerFileRecord(BaseModel):
    id: str
    submission_id: str
    file_name: str
    file_url: str


class SubmissionReceipt(BaseModel):
    submission: SubmissionRecord
    answers: List[AnswerFileRecord] = Field(default_factory=list)


class TestCreatedResponse(BaseModel):
    __test__ = False

    test: TestRecord
    link: str


class MessageResponse(BaseModel):
    message: str
