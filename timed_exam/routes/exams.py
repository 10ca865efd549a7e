from __future__ import annotations

import logging
from typing import List, Optional, Union

from fastapi import APIRouter, Depends, File, Form, HTTPException, Path, Request, UploadFile, status
from starlette.datastructures import UploadFile as StarletteUploadFile

from ..errors import NotFoundOrExpired, TimedExamError, TransientIOError, ValidationError
from ..models import FileUpload, SubmissionReceipt, TestCreatedResponse, TestRecord
from ..services.link_store import LinkStore, get_link_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/tests", tags=["Tests"])


def http_error(error: TimedExamError) -> HTTPException:
    detail = error.message
    if isinstance(error, TransientIOError):
        detail = f"{error.message}. Please try again."
    return HTTPException(status_code=error.status_code, detail=detail)


def parse_duration(raw: str) -> int:
    try:
        return int(str(raw).strip())
    except (TypeError, ValueError):
        raise ValidationError(f"Test duration must be a whole number of minutes, got '{raw}'.")


def selected_files(parts: List[Union[StarletteUploadFile, str]]) -> List[StarletteUploadFile]:
    return [p for p in parts if isinstance(p, StarletteUploadFile) and p.filename]


async def read_upload(upload: UploadFile) -> FileUpload:
    data = await upload.read()
    return FileUpload(
        file_name=upload.filename or "",
        content_type=upload.content_type or "application/octet-stream",
        data=data,
    )


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    response_model=TestCreatedResponse,
    summary="Create a timed test from a PDF",
)
async def create_test(
    file: UploadFile = File(...),
    duration_minutes: str = Form(...),
    created_by: Optional[str] = Form(None),
    link_store: LinkStore = Depends(get_link_store),
) -> TestCreatedResponse:
    try:
        document = await read_upload(file)
        record = await link_store.create_test(
            document, parse_duration(duration_minutes), created_by=created_by or None
        )
        return TestCreatedResponse(test=record, link=link_store.link_for(record.id))
    except TimedExamError as e:
        raise http_error(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Unexpected error creating test: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to create test: {str(e)}")


@router.get("/{test_id}", response_model=TestRecord, summary="Look up a test by id")
async def get_test(
    test_id: str = Path(..., description="Identifier from the share link."),
    link_store: LinkStore = Depends(get_link_store),
) -> TestRecord:
    try:
        record = await link_store.get_test(test_id)
        if record is None:
            raise NotFoundOrExpired()
        return record
    except TimedExamError as e:
        raise http_error(e)


@router.post(
    "/{test_id}/submissions",
    status_code=status.HTTP_201_CREATED,
    response_model=SubmissionReceipt,
    summary="Submit answer files for a test",
)
async def submit_answers(
    request: Request,
    test_id: str = Path(..., description="Identifier from the share link."),
    submitted_by: Optional[str] = Form(None),
    link_store: LinkStore = Depends(get_link_store),
) -> SubmissionReceipt:
    """
    Accepts any number of ``files`` parts. Browsers send an empty part for an
    empty file input, so parts without a file name are ignored.
    """
    form = await request.form()
    try:
        uploads = [await read_upload(f) for f in selected_files(form.getlist("files"))]
        return await link_store.record_submission(test_id, uploads, submitted_by=submitted_by or None)
    except TimedExamError as e:
        raise http_error(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Unexpected error submitting answers for {test_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to submit answers: {str(e)}")
