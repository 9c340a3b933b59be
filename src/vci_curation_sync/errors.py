from __future__ import annotations

from typing import Optional


class PageDriverError(RuntimeError):
    """
    Raised by a PageDriver when the underlying browser call fails (timeout, detached element, crash).
    """


class SessionError(RuntimeError):
    """
    Login, navigation or catalog failure before any record is processed. Fatal for the whole run.
    """


class ReconciliationMismatchError(RuntimeError):
    """
    Only raised in strict mode, when the external record list and the portal catalog disagree.
    """

    def __init__(self, *, external_only: list[str], catalog_only: list[str]) -> None:
        self.external_only = list(external_only)
        self.catalog_only = list(catalog_only)
        super().__init__(
            f"Record lists differ (external_only={len(self.external_only)} catalog_only={len(self.catalog_only)})"
        )


class WorkflowError(RuntimeError):
    """
    Base class for per-record failures. The batch runner catches these and moves on to the next record.
    """

    def __init__(self, message: str, *, identifier: Optional[str] = None) -> None:
        self.identifier = identifier
        super().__init__(message)


class ControlNotFoundError(WorkflowError):
    def __init__(self, label: str, *, identifier: Optional[str] = None, attempts: int = 0) -> None:
        self.label = label
        self.attempts = attempts
        # repr() keeps trailing spaces visible ("Submit Provisional " really has one).
        super().__init__(f"Could not find control {label!r} after {attempts} attempts", identifier=identifier)


class StepFailedError(WorkflowError):
    def __init__(self, step_name: str, cause: BaseException, *, identifier: Optional[str] = None) -> None:
        self.step_name = step_name
        super().__init__(f"Step {step_name!r} failed: {cause}", identifier=identifier)


class ExtractionFailure(WorkflowError):
    """
    The data-generation step did not yield a populated results table.
    """
