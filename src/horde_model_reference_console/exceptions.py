"""Exceptions raised by the model reference console."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from horde_model_reference_console.validation import ValidationIssue


class ModelReferenceAPIError(Exception):
    """A request to the model reference service failed.

    `message` is the user facing text derived from the status code and the `detail` field of the
    service's error body (see `ModelReferenceAPIClient.describe_error`).
    """

    def __init__(self, message: str, *, status_code: int | None = None, detail: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.detail = detail


class BackendNotWritableError(ModelReferenceAPIError):
    """The service is a replica (or its mode is unknown) and does not accept write operations."""

    def __init__(self) -> None:
        super().__init__("Backend does not support write operations (REPLICA mode or wrong format)")


class RecordValidationError(ValueError):
    """A record failed validation and was not submitted."""

    def __init__(self, issues: list[ValidationIssue]) -> None:
        self.issues = issues
        errors = [issue for issue in issues if issue.severity == "error"]
        summary = "; ".join(f"{issue.field}: {issue.message}" for issue in errors)
        super().__init__(f"Record has {len(errors)} validation error(s): {summary}")
