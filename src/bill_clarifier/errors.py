"""Exception hierarchy for the bill clarifier pipeline."""

from __future__ import annotations


class BillClarifierError(Exception):
    """Base class for all pipeline errors."""


class AnalysisInputError(BillClarifierError):
    """Submission rejected before any stage ran (missing image or generation)."""


class UnsupportedFileError(BillClarifierError):
    """Uploaded bytes are neither a PDF nor a supported image format."""


class InvalidTransitionError(BillClarifierError):
    """Pipeline state machine was asked for a transition it does not allow."""

    def __init__(self, current: str, target: str):
        super().__init__(f"Cannot transition from {current} to {target}")
        self.current = current
        self.target = target


class LLMTransportError(BillClarifierError):
    """Model endpoint unreachable, returned non-2xx, or rejected the request quota."""

    def __init__(self, message: str, *, status_code: int | None = None, provider: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.provider = provider

    @property
    def is_rate_limited(self) -> bool:
        return self.status_code == 429

    @property
    def is_quota_exhausted(self) -> bool:
        return self.status_code == 402
