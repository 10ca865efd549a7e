"""
Error taxonomy for the timed exam service.

ValidationError and TransientIOError are raised by the link store and its
backends; NotFoundOrExpired is raised at the HTTP edge, where an absent lookup
result must become a response. None of them is fatal to the process.
"""
from __future__ import annotations


class TimedExamError(Exception):
    """Base class for every error raised by this package."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(TimedExamError):
    """Bad input: file type, file size, duration range, empty submission."""

    status_code = 400


class NotFoundOrExpired(TimedExamError):
    """Lookup miss. Unknown and expired tests are reported identically."""

    status_code = 404

    def __init__(self, message: str = "Test not found or has expired"):
        super().__init__(message)


class TransientIOError(TimedExamError):
    """Storage or network failure. The user may retry the action."""

    status_code = 503


class SessionStateError(TimedExamError):
    """A test session was asked to make a transition its state does not allow."""
