from __future__ import annotations

from typing import Any


class EngineError(RuntimeError):
    """Base class for every error the booking engine surfaces to callers."""

    user_message = "Something went wrong. Please try again."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.user_message)


class ValidationError(EngineError):
    """Raised for malformed input such as a duplicate or inverted time slot."""

    user_message = "The submitted details are not valid."


class ConflictError(EngineError):
    """Raised when the requested slot or subject state is no longer available.

    Raised both by the local pre-check and when the remote store rejects a
    request that passed the pre-check. Callers must ask the user to pick again.
    """

    user_message = "This time slot is no longer available. Please pick another slot."

    def __init__(self, message: str | None = None, alternatives: list[Any] | None = None) -> None:
        super().__init__(message)
        self.alternatives = list(alternatives or [])


class StaleStateError(EngineError):
    """Raised when a transition is attempted from a state that no longer applies."""

    user_message = "This item was changed by someone else. Refresh and try again."


class NotFoundError(EngineError):
    """Raised when a subject, engagement or notification no longer exists."""

    user_message = "This item no longer exists."


class CodecError(EngineError):
    """Raised internally by the notification codec. Never escapes decode()."""

    pass


class NetworkError(EngineError):
    """Raised on transient remote failures (timeouts, connection errors, 5xx)."""

    user_message = "We could not reach the server. Please try again."
