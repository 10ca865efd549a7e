"""
Test session orchestration.

A session moves through ``loading -> error | ready``, ``ready -> ended`` and
``ended -> submitted``. The page is the only place these transitions happen:
the countdown timer and the user's "end test" action both reach ``ended``
through the timer's one-shot terminal transition, and a finished submission
reaches ``submitted`` through the answer uploader's completion callback.
"""
from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Dict, FrozenSet, Iterable, Optional

from ..clock import Clock, SystemClock
from ..errors import SessionStateError, TransientIOError, ValidationError
from ..models import FileUpload, SubmissionReceipt, TestRecord
from ..services.link_store import LinkStore
from .answers import AnswerUploader
from .rendering import DocumentRenderer
from .timer import CountdownTimer

logger = logging.getLogger(__name__)

INVALID_ID_MESSAGE = "Invalid test ID"
NOT_FOUND_MESSAGE = "Test not found or has expired"


class SessionState(str, Enum):
    LOADING = "loading"
    ERROR = "error"
    READY = "ready"
    ENDED = "ended"
    SUBMITTED = "submitted"


TRANSITIONS: Dict[SessionState, FrozenSet[SessionState]] = {
    SessionState.LOADING: frozenset({SessionState.ERROR, SessionState.READY}),
    SessionState.READY: frozenset({SessionState.ENDED}),
    SessionState.ENDED: frozenset({SessionState.SUBMITTED}),
    SessionState.ERROR: frozenset(),
    SessionState.SUBMITTED: frozenset(),
}

StateListener = Callable[[SessionState, SessionState], None]


class TestSessionPage:
    __test__ = False  # not a pytest test class

    def __init__(
        self,
        test_id: Optional[str],
        link_store: LinkStore,
        clock: Clock | None = None,
        renderer: DocumentRenderer | None = None,
        on_state_change: Optional[StateListener] = None,
    ) -> None:
        self.test_id = test_id
        self.link_store = link_store
        self.clock = clock or link_store.clock or SystemClock()
        self.renderer = renderer
        self.on_state_change = on_state_change

        self.state = SessionState.LOADING
        self.test: Optional[TestRecord] = None
        self.timer: Optional[CountdownTimer] = None
        self.uploader: Optional[AnswerUploader] = None
        self.error: Optional[str] = None
        self.last_error: Optional[Exception] = None
        self.receipt: Optional[SubmissionReceipt] = None
        self.document_rendered: Optional[bool] = None

    def _transition(self, new_state: SessionState) -> None:
        old_state = self.state
        if new_state not in TRANSITIONS[old_state]:
            raise SessionStateError(
                f"Cannot move test session from {old_state.value} to {new_state.value}"
            )
        self.state = new_state
        logger.info(f"Test session {self.test_id}: {old_state.value} -> {new_state.value}")
        if self.on_state_change is not None:
            self.on_state_change(old_state, new_state)

    def _fail(self, reason: str) -> SessionState:
        self.error = reason
        self._transition(SessionState.ERROR)
        return self.state

    async def load(self) -> SessionState:
        if self.state is not SessionState.LOADING:
            raise SessionStateError("Test session has already been loaded")

        if not self.test_id or not self.test_id.strip():
            return self._fail(INVALID_ID_MESSAGE)

        try:
            test = await self.link_store.get_test(self.test_id)
        except TransientIOError as e:
            logger.error(f"Lookup of test {self.test_id} failed: {e}")
            self.last_error = e
            return self._fail(e.message)

        if test is None:
            return self._fail(NOT_FOUND_MESSAGE)

        self.test = test
        self.timer = CountdownTimer(test.duration_minutes, on_end=self._on_time_end, clock=self.clock)
        self._transition(SessionState.READY)
        return self.state

    async def run(self, on_tick: Optional[Callable[[CountdownTimer], None]] = None) -> SessionState:
        """Show the document and count down until the test ends."""
        if self.state is not SessionState.READY:
            raise SessionStateError(f"Cannot run a test session in state {self.state.value}")

        if self.renderer is not None:
            try:
                self.document_rendered = self.renderer.render(self.test.file_url, self.test.file_name)
            except Exception as e:
                logger.warning(f"Rendering {self.test.file_name} failed: {e}")
                self.document_rendered = False

        await self.timer.run(on_tick=on_tick)
        return self.state

    def _on_time_end(self) -> None:
        self._transition(SessionState.ENDED)
        self.uploader = AnswerUploader(self.test.id, self.link_store, on_complete=self._on_submitted)

    def end_test(self) -> bool:
        """The user confirmed "end test". Returns False if the test had already ended."""
        if self.state is SessionState.READY:
            return self.timer.end_now()
        if self.state in (SessionState.ENDED, SessionState.SUBMITTED):
            return False
        raise SessionStateError(f"Cannot end a test session in state {self.state.value}")

    def _on_submitted(self, receipt: SubmissionReceipt) -> None:
        self.receipt = receipt
        self._transition(SessionState.SUBMITTED)

    async def submit(
        self,
        files: Optional[Iterable[FileUpload]] = None,
        submitted_by: str | None = None,
    ) -> SubmissionReceipt:
        """Submit answers. On failure the session stays ended so the user can retry.

        ``files`` replaces the uploader's current selection when given; if any of
        them is rejected the selection is left as it was.
        """
        if self.state is not SessionState.ENDED:
            raise SessionStateError(f"Cannot submit answers in state {self.state.value}")

        self.last_error = None
        try:
            if files is not None:
                self.uploader.replace_files(files)
            return await self.uploader.submit(submitted_by=submitted_by)
        except (ValidationError, TransientIOError) as e:
            logger.warning(f"Submission for test {self.test_id} failed: {e.message}")
            self.last_error = e
            raise
