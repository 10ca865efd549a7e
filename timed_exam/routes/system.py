from __future__ import annotations

from fastapi import APIRouter

from .. import __version__, config

router = APIRouter()


@router.get("/health")
def health():
    return {"status": "ok", "storage_backend": config.STORAGE_BACKEND, "version": __version__}
