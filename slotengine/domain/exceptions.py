"""
Domain-specific exception hierarchy for the slot engine.
"""

from enum import Enum


class SlotEngineError(Exception):
    """Base class for all application-level errors."""


class ValidationError(SlotEngineError, ValueError):
    """Raised for malformed dates/times or requests targeting a closed weekday."""


class NotFoundError(SlotEngineError):
    """Raised when a professional or booking id is unknown."""


class InvalidStateError(SlotEngineError):
    """Raised when a transition is attempted on a terminal booking."""


class ConflictCode(str, Enum):
    """Reasons a commit can be rejected."""
    SLOT_ALREADY_TAKEN = "SLOT_ALREADY_TAKEN"
    SLOT_NO_LONGER_AVAILABLE = "SLOT_NO_LONGER_AVAILABLE"


class ConflictError(SlotEngineError):
    """
    Raised when a slot cannot be committed.

    The caller is expected to re-query availability and let the user
    choose again; nothing in the engine retries.
    """

    def __init__(self, code: ConflictCode, message: str = ""):
        self.code = code
        super().__init__(message or code.value)

    def __str__(self) -> str:
        text = super().__str__()
        if text == self.code.value:
            return text
        return f"{self.code.value}: {text}"
