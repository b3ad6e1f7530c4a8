"""Custom exceptions for the submission pipeline."""

from __future__ import annotations

from typing import Literal

SubmissionErrorKind = Literal["validation", "generation", "persistence", "in_progress"]


class SubmissionError(Exception):
    """Base class for every error that ends a submission attempt."""

    kind: SubmissionErrorKind = "validation"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class RecordValidationError(SubmissionError):
    """Raised when mandatory record fields are empty before submission."""

    kind: SubmissionErrorKind = "validation"

    def __init__(self, message: str, *, missing_fields: list[str]) -> None:
        super().__init__(message)
        self.missing_fields = missing_fields


class GenerationError(SubmissionError):
    """Raised when the report generator fails at transport or application level."""

    kind: SubmissionErrorKind = "generation"

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        upstream_message: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.upstream_message = upstream_message


class PersistenceError(SubmissionError):
    """Raised when the store rejects or cannot accept a payload."""

    kind: SubmissionErrorKind = "persistence"

    def __init__(
        self,
        message: str,
        *,
        details: str | None = None,
        hint: str | None = None,
        code: str | None = None,
    ) -> None:
        super().__init__(_with_details(message, details or hint))
        self.store_message = message
        self.details = details
        self.hint = hint
        self.code = code


class SubmissionInProgressError(SubmissionError):
    """Raised when a second submission starts while one is still pending."""

    kind: SubmissionErrorKind = "in_progress"


def _with_details(message: str, details: str | None) -> str:
    if details:
        return f"{message} ({details})"
    return message
