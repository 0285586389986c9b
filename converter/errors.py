"""
Conversion Errors Module

Classified failures raised by the conversion tiers.

Every kind except PlaceholderWriteFailed is recoverable: the orchestrator
catches it, logs the reason and moves on to the next tier. Callers only ever
see ConversionFailed.
"""

from typing import Optional


GENERIC_FAILURE_MESSAGE = (
    "Failed to convert document to PDF. Please try again or contact support."
)


class ConversionError(Exception):
    """Base class for classified conversion failures."""

    fatal = False

    def __init__(self, message: str, detail: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail

    def __str__(self) -> str:
        if self.detail:
            return f"{self.message} ({self.detail})"
        return self.message


class EngineUnavailable(ConversionError):
    """The tier has nothing to run for this request (no engine, no routine)."""


class EngineTimeout(ConversionError):
    """The external engine exceeded its time budget and was killed."""


class EngineInvocationFailed(ConversionError):
    """Non-zero exit, library exception or an unusable produced file."""


class MalformedContainer(ConversionError):
    """The input is not a readable archive or has no structural parts."""


class OutputMissing(ConversionError):
    """The engine reported success but no output file appeared."""


class PlaceholderWriteFailed(ConversionError):
    """The terminal tier could not write its PDF."""

    fatal = True


class InvalidRequest(ValueError):
    """The request cannot be attempted at all (e.g. the input file is missing)."""


class ConversionFailed(Exception):
    """
    The single unrecoverable outcome surfaced to callers.

    The message is always the generic user-facing one; the internal cause is
    chained and logged, never exposed.
    """

    def __init__(self, message: str = GENERIC_FAILURE_MESSAGE):
        super().__init__(message)
        self.message = message
