from __future__ import annotations

import logging
from typing import Callable, Optional

from ..clock import Clock, SystemClock

logger = logging.getLogger(__name__)

LONG_TEST_MINUTES = 30
FINAL_MINUTES_SECONDS = 5 * 60
WARNING_FRACTION = 0.10


def format_time_remaining(seconds: int) -> str:
    """``HH:MM:SS`` when an hour or more is left, ``MM:SS`` otherwise."""
    seconds = max(0, int(seconds))
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    if hours > 0:
        return f"{hours:02d}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"


class CountdownTimer:
    """
    Exam clock counting down whole seconds.

    ``tick`` is called once per second by ``run`` (or directly by tests). The
    timer has a single terminal state, entered either when the count reaches
    zero or through ``end_now``; ``on_end`` fires on entry and never again.
    """

    def __init__(
        self,
        duration_minutes: int,
        on_end: Optional[Callable[[], None]] = None,
        clock: Clock | None = None,
    ) -> None:
        if duration_minutes <= 0:
            raise ValueError("duration_minutes must be positive")
        self.duration_minutes = duration_minutes
        self.total_seconds = duration_minutes * 60
        self.remaining = self.total_seconds
        self.on_end = on_end
        self.clock = clock or SystemClock()
        self._finished = False
        self.ended_early = False

    @property
    def finished(self) -> bool:
        return self._finished

    @property
    def percent_remaining(self) -> float:
        return self.remaining / self.total_seconds * 100

    @property
    def is_warning(self) -> bool:
        if self.duration_minutes > LONG_TEST_MINUTES:
            return self.remaining <= FINAL_MINUTES_SECONDS
        return self.remaining <= self.total_seconds * WARNING_FRACTION

    def display(self) -> str:
        return format_time_remaining(self.remaining)

    def _finish(self) -> bool:
        # the only way into the terminal state
        if self._finished:
            return False
        self._finished = True
        if self.on_end is not None:
            self.on_end()
        return True

    def tick(self) -> None:
        if self._finished:
            return
        self.remaining = max(0, self.remaining - 1)
        if self.remaining == 0:
            logger.info("Countdown reached zero")
            self._finish()

    def end_now(self) -> bool:
        """Terminate early. Returns False if the timer had already ended."""
        if self._finished:
            return False
        self.ended_early = True
        logger.info(f"Countdown ended manually with {self.remaining}s remaining")
        return self._finish()

    async def run(self, on_tick: Optional[Callable[["CountdownTimer"], None]] = None) -> None:
        """Tick once per clock second until the timer reaches its terminal state."""
        while not self._finished:
            await self.clock.sleep(1)
            if self._finished:
                break
            self.tick()
            if on_tick is not None:
                on_tick(self)
