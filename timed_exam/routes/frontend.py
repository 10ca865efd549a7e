from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, File, Form, Request, UploadFile
from fastapi.templating import Jinja2Templates

from ..config import MAX_DURATION_MINUTES, MIN_DURATION_MINUTES
from ..errors import TimedExamError
from ..services.link_store import LinkStore, get_link_store
from ..session.page import NOT_FOUND_MESSAGE
from ..session.timer import LONG_TEST_MINUTES, format_time_remaining
from .exams import parse_duration, read_upload

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"

templates: Optional[Jinja2Templates] = None

router = APIRouter(include_in_schema=False)


def set_templates(value: Optional[Jinja2Templates]) -> None:
    global templates
    templates = value


def get_templates() -> Jinja2Templates:
    global templates
    if templates is None:
        templates = Jinja2Templates(directory=str(TEMPLATES_DIR))
    return templates


def _form_context(**extra):
    context = {
        "min_duration": MIN_DURATION_MINUTES,
        "max_duration": MAX_DURATION_MINUTES,
        "duration": 60,
        "error": None,
        "link": None,
        "test": None,
    }
    context.update(extra)
    return context


@router.get("/")
async def home(request: Request):
    return get_templates().TemplateResponse(request, "index.html", _form_context())


@router.post("/")
async def create_from_form(
    request: Request,
    file: UploadFile = File(...),
    duration_minutes: str = Form("60"),
    link_store: LinkStore = Depends(get_link_store),
):
    try:
        document = await read_upload(file)
        record = await link_store.create_test(document, parse_duration(duration_minutes))
    except TimedExamError as e:
        logger.info(f"Test creation rejected: {e.message}")
        return get_templates().TemplateResponse(
            request,
            "index.html",
            _form_context(error=e.message, duration=duration_minutes),
            status_code=e.status_code,
        )
    return get_templates().TemplateResponse(
        request,
        "index.html",
        _form_context(test=record, link=link_store.link_for(record.id)),
        status_code=201,
    )


@router.get("/test/{test_id}")
async def test_page(
    request: Request,
    test_id: str,
    link_store: LinkStore = Depends(get_link_store),
):
    try:
        record = await link_store.get_test(test_id)
    except TimedExamError as e:
        return get_templates().TemplateResponse(
            request, "error.html", {"error": e.message}, status_code=e.status_code
        )
    if record is None:
        return get_templates().TemplateResponse(
            request, "error.html", {"error": NOT_FOUND_MESSAGE}, status_code=404
        )

    total_seconds = record.duration_minutes * 60
    return get_templates().TemplateResponse(
        request,
        "test.html",
        {
            "test": record,
            "total_seconds": total_seconds,
            "initial_display": format_time_remaining(total_seconds),
            "long_test": record.duration_minutes > LONG_TEST_MINUTES,
            "submit_url": f"/api/tests/{record.id}/submissions",
        },
    )


def register_routes(app: FastAPI) -> None:
    app.include_router(router)
