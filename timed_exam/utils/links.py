from __future__ import annotations

from urllib.parse import unquote, urlparse

from ..config import PUBLIC_ORIGIN

TEST_PATH_PREFIX = "/test/"


def generate_test_link(test_id: str, origin: str | None = None) -> str:
    base = (origin or PUBLIC_ORIGIN).rstrip("/")
    return f"{base}{TEST_PATH_PREFIX}{test_id}"


def extract_test_id(link_or_id: str | None) -> str | None:
    """
    Return the test id carried by a shareable link, or the value itself when
    it is already a bare id. Paths that are not ``/test/<id>`` yield None.
    """
    if not link_or_id:
        return None
    raw = link_or_id.strip()
    if not raw:
        return None

    if "/" not in raw:
        return raw

    path = urlparse(raw).path if "://" in raw else raw
    path = unquote(path).rstrip("/")
    if not path.startswith(TEST_PATH_PREFIX):
        return None
    test_id = path[len(TEST_PATH_PREFIX):]
    if not test_id or "/" in test_id:
        return None
    return test_id
