"""
Document rendering strategies.

A test session only needs ``render(reference, display_name) -> bool``. The
strategies below are tried in a fixed order by ``FallbackRenderer``: open the
reference in a browser, decode an inline ``data:`` URL to a temporary file and
open that, and finally print the reference so the user can open it by hand.
"""
from __future__ import annotations

import base64
import binascii
import logging
import re
import sys
import tempfile
import webbrowser
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Protocol, TextIO

logger = logging.getLogger(__name__)

_DATA_URL = re.compile(r"^data:(?P<type>[\w.+-]+/[\w.+-]+)?(?P<b64>;base64)?,(?P<body>.*)$", re.S)


class DocumentRenderer(Protocol):
    def render(self, reference: str, display_name: str) -> bool:
        ...


class BrowserRenderer:
    """Hands http(s) and file references to the system browser."""

    schemes = ("http://", "https://", "file://")

    def __init__(self, opener: Callable[[str], bool] = webbrowser.open) -> None:
        self.opener = opener

    def render(self, reference: str, display_name: str) -> bool:
        if not reference.startswith(self.schemes):
            return False
        return bool(self.opener(reference))


class DataUrlRenderer:
    """Writes an inline data URL to a temporary file and opens it."""

    def __init__(
        self,
        opener: Callable[[str], bool] = webbrowser.open,
        directory: Optional[str] = None,
    ) -> None:
        self.opener = opener
        self.directory = directory
        self.last_path: Optional[Path] = None

    def render(self, reference: str, display_name: str) -> bool:
        match = _DATA_URL.match(reference)
        if not match:
            return False
        if not match.group("b64"):
            return False
        try:
            content = base64.b64decode(match.group("body"), validate=True)
        except (binascii.Error, ValueError) as e:
            logger.warning(f"Could not decode inline document {display_name}: {e}")
            return False

        self.cleanup()
        suffix = Path(display_name).suffix or ".pdf"
        with tempfile.NamedTemporaryFile(suffix=suffix, dir=self.directory, delete=False) as fh:
            fh.write(content)
            path = Path(fh.name)
        self.last_path = path
        return bool(self.opener(path.as_uri()))

    def cleanup(self) -> None:
        """Remove the file written by the last render, if any."""
        if self.last_path is None:
            return
        self.last_path.unlink(missing_ok=True)
        self.last_path = None


class ConsoleRenderer:
    """Prints where the document can be found. Never fails."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self.stream = stream

    def render(self, reference: str, display_name: str) -> bool:
        stream = self.stream or sys.stdout
        if reference.startswith("data:"):
            print(f"{display_name}: embedded document ({len(reference)} bytes inline)", file=stream)
        else:
            print(f"{display_name}: {reference}", file=stream)
        return True


class FallbackRenderer:
    """Tries each strategy in order and stops at the first success."""

    def __init__(self, strategies: Iterable[DocumentRenderer]) -> None:
        self.strategies: List[DocumentRenderer] = list(strategies)

    def render(self, reference: str, display_name: str) -> bool:
        for strategy in self.strategies:
            try:
                if strategy.render(reference, display_name):
                    logger.debug(f"Rendered {display_name} with {type(strategy).__name__}")
                    return True
            except Exception as e:
                logger.warning(f"{type(strategy).__name__} failed for {display_name}: {e}")
        return False

    def cleanup(self) -> None:
        for strategy in self.strategies:
            release = getattr(strategy, "cleanup", None)
            if release is not None:
                release()


def default_renderer() -> FallbackRenderer:
    return FallbackRenderer([BrowserRenderer(), DataUrlRenderer(), ConsoleRenderer()])
