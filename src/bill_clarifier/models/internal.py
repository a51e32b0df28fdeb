"""Internal pipeline models: state machine, requests, outcomes.

These models pass data between the orchestrator and its stages and are the
shape returned to the API layer.
"""

from __future__ import annotations

from enum import StrEnum

import structlog
from pydantic import BaseModel, Field

from ..errors import InvalidTransitionError
from .bill import RawBillRecord
from .metrics import ClarifierResult
from .narrative import NarrativeResult

logger = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# State machine
# ---------------------------------------------------------------------------


class PipelineState(StrEnum):
    IDLE = "idle"
    UPLOADING = "uploading"
    EXTRACTING = "extracting"
    CALCULATING = "calculating"
    ANALYZING = "analyzing"
    COMPLETED = "completed"
    ERROR = "error"


class AnalysisMode(StrEnum):
    QUICK = "quick"
    FULL = "full"


ALLOWED_TRANSITIONS: dict[PipelineState, frozenset[PipelineState]] = {
    PipelineState.IDLE: frozenset({PipelineState.UPLOADING}),
    PipelineState.UPLOADING: frozenset({PipelineState.EXTRACTING, PipelineState.ERROR}),
    PipelineState.EXTRACTING: frozenset({
        PipelineState.CALCULATING, PipelineState.ANALYZING, PipelineState.ERROR,
    }),
    PipelineState.CALCULATING: frozenset({PipelineState.COMPLETED, PipelineState.ERROR}),
    PipelineState.ANALYZING: frozenset({PipelineState.COMPLETED, PipelineState.ERROR}),
    PipelineState.COMPLETED: frozenset(),
    PipelineState.ERROR: frozenset(),
}

TERMINAL_STATES = frozenset({PipelineState.COMPLETED, PipelineState.ERROR})


class PipelineStateMachine:
    """Linear pipeline state with an explicit transition table.

    ``reset()`` is the only way out of a terminal state and always returns
    to ``idle``, discarding the error message and history.
    """

    def __init__(self, analysis_id: str | None = None):
        self.analysis_id = analysis_id
        self.state = PipelineState.IDLE
        self.error_message: str | None = None
        self.history: list[PipelineState] = [PipelineState.IDLE]

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def can_transition(self, target: PipelineState) -> bool:
        return target in ALLOWED_TRANSITIONS[self.state]

    def transition(self, target: PipelineState) -> None:
        if not self.can_transition(target):
            raise InvalidTransitionError(self.state.value, target.value)
        logger.info(
            "state_transition",
            analysis_id=self.analysis_id,
            from_state=self.state.value,
            to_state=target.value,
        )
        self.state = target
        self.history.append(target)

    def fail(self, message: str) -> None:
        """Move to ``error`` from any non-terminal state."""
        self.transition(PipelineState.ERROR)
        self.error_message = message

    def reset(self) -> None:
        logger.info("state_reset", analysis_id=self.analysis_id, from_state=self.state.value)
        self.state = PipelineState.IDLE
        self.error_message = None
        self.history = [PipelineState.IDLE]


# ---------------------------------------------------------------------------
# Requests & outcomes
# ---------------------------------------------------------------------------


class AnalysisRequest(BaseModel):
    """One bill submission."""

    image_bytes: bytes
    monitored_generation_kwh: float | None
    expected_generation_kwh: float | None = None
    mode: AnalysisMode = AnalysisMode.QUICK
    analysis_id: str | None = None
    # Uploader-declared content type; used only when magic bytes are unknown
    mime_type: str | None = None


class IngestedImage(BaseModel):
    """Normalized image ready for the extraction call."""

    file_type: str
    mime_type: str
    image_base64: str
    page_count: int = 1


class ValidationIssue(BaseModel):
    """A consistency problem found in an extracted record."""

    field: str
    severity: str  # "warning", "info"
    message: str
    expected: str | None = None
    actual: str | None = None


class AnalysisOutcome(BaseModel):
    """Result of one pipeline run.

    ``success`` with ``pending`` set means extraction outlived the soft
    timeout and the run continues in the background; poll the persisted
    record by ``analysis_id``.
    """

    success: bool
    pending: bool = False
    analysis_id: str | None = None
    state: PipelineState = PipelineState.IDLE
    mode: AnalysisMode = AnalysisMode.QUICK
    record: RawBillRecord | None = None
    metrics: ClarifierResult | None = None
    narrative: NarrativeResult | None = None
    alerts: list[str] = Field(default_factory=list)
    validation_issues: list[ValidationIssue] = Field(default_factory=list)
    flags: list[str] = Field(default_factory=list)
    error: str | None = None
    processing_time_ms: int | None = None
