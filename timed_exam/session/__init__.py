"""
Test session package.

Holds the countdown timer, the session state machine that drives a student's
attempt, the answer uploader and the document rendering strategies. Nothing in
here talks to a backend directly; all storage goes through the link store.
"""

from .page import SessionState, TestSessionPage  # noqa: F401
from .timer import CountdownTimer, format_time_remaining  # noqa: F401
