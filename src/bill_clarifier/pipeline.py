"""Pipeline orchestrator: ingestion → extraction → metrics (→ narrative) → persistence."""
from __future__ import annotations
import asyncio
import math
import time
import structlog

from .config import Settings
from .errors import AnalysisInputError, LLMTransportError
from .llm.base import LLMClient
from .llm.factory import create_llm_client
from .llm.soft_timeout import call_with_soft_timeout
from .models.bill import RawBillRecord
from .models.internal import (
    AnalysisMode, AnalysisOutcome, AnalysisRequest, PipelineState, PipelineStateMachine,
)
from .passes.derived_metrics import derive_metrics
from .passes.extraction import TEMPLATE_NAME as EXTRACTION_TEMPLATE, run_extraction
from .passes.ingestion import run_ingestion
from .passes.narrative import run_narrative
from .passes.persistence import build_alerts, build_completion_update
from .passes.validation import run_validation
from .prompts.registry import PromptRegistry
from .storage.store import AnalysisStore

logger = structlog.get_logger(__name__)

FAILURE_PREFIX = "Não foi possível processar a conta"


def validate_request(request: AnalysisRequest) -> None:
    """Reject a submission before any stage runs."""
    if not request.image_bytes:
        raise AnalysisInputError("A bill image or PDF is required")
    monitored = request.monitored_generation_kwh
    if monitored is None:
        raise AnalysisInputError("Monitored generation (kWh) is required")
    if not math.isfinite(monitored) or monitored < 0:
        raise AnalysisInputError("Monitored generation must be a non-negative number")
    expected = request.expected_generation_kwh
    if expected is not None and (not math.isfinite(expected) or expected < 0):
        raise AnalysisInputError("Expected generation must be a non-negative number")


class BillAnalysisPipeline:
    """Orchestrates one strict linear run per submitted bill.

    Each ``analyze`` call owns its own state machine; the only state kept
    on the instance is configuration, clients and the set of runs that were
    handed off to the background after the extraction soft timeout.
    """

    def __init__(
        self,
        settings: Settings,
        store: AnalysisStore | None = None,
        *,
        extraction_client: LLMClient | None = None,
        narrative_client: LLMClient | None = None,
        prompt_registry: PromptRegistry | None = None,
    ):
        self.settings = settings
        self.store = store
        self.prompt_registry = prompt_registry or PromptRegistry()
        self.sizing = settings.expansion_sizing()
        self._background: set[asyncio.Task] = set()

        self._extraction_client = extraction_client
        self._narrative_client = narrative_client
        self._init_llm_clients()

    def _init_llm_clients(self):
        """Build any client not injected by the caller from settings."""
        if self._extraction_client is None:
            self._extraction_client = create_llm_client(self.settings, self.settings.extraction_model)
        if self._narrative_client is None:
            self._narrative_client = create_llm_client(self.settings, self.settings.narrative_model)

    @property
    def background_tasks(self) -> frozenset[asyncio.Task]:
        return frozenset(self._background)

    async def wait_for_background(self) -> None:
        """Wait for every handed-off run to reach a terminal state."""
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

    async def analyze(self, request: AnalysisRequest) -> AnalysisOutcome:
        """Run the pipeline for one bill.

        Raises ``AnalysisInputError`` before any state change when the
        submission is incomplete. Every other failure is reported in the
        returned outcome with ``success=False``.
        """
        validate_request(request)

        start_time = time.monotonic()
        machine = PipelineStateMachine(request.analysis_id)
        logger.info(
            "pipeline_start",
            analysis_id=request.analysis_id,
            mode=request.mode.value,
            size_bytes=len(request.image_bytes),
        )

        # --- Uploading: format normalization ---
        machine.transition(PipelineState.UPLOADING)
        try:
            image = run_ingestion(
                request.image_bytes,
                dpi=self.settings.pdf_dpi,
                max_pages=self.settings.pdf_max_pages,
                declared_mime_type=request.mime_type,
            )
        except Exception as e:
            logger.error("ingestion_failed", analysis_id=request.analysis_id, error=str(e))
            return await self._fail(machine, request, e, start_time)

        # --- Extracting: vision call under the soft timeout ---
        machine.transition(PipelineState.EXTRACTING)
        result = await call_with_soft_timeout(
            run_extraction(
                image,
                self._extraction_client,
                self.prompt_registry,
                temperature=self.settings.extraction_temperature,
            ),
            self.settings.extraction_timeout,
            label="extraction",
        )

        if result.failed:
            logger.error("extraction_failed", analysis_id=request.analysis_id, error=str(result.error))
            return await self._fail(machine, request, result.error, start_time)

        if result.handed_off:
            task = asyncio.create_task(
                self._finish_in_background(machine, request, result.task, start_time)
            )
            self._background.add(task)
            task.add_done_callback(self._background.discard)
            logger.info("pipeline_handed_off", analysis_id=request.analysis_id)
            return AnalysisOutcome(
                success=True,
                pending=True,
                analysis_id=request.analysis_id,
                state=machine.state,
                mode=request.mode,
            )

        return await self._complete(machine, request, result.value, start_time)

    async def _finish_in_background(
        self,
        machine: PipelineStateMachine,
        request: AnalysisRequest,
        extraction_task: asyncio.Task,
        start_time: float,
    ) -> AnalysisOutcome:
        try:
            record = await extraction_task
        except Exception as e:
            logger.error("extraction_failed", analysis_id=request.analysis_id, error=str(e), background=True)
            return await self._fail(machine, request, e, start_time)
        return await self._complete(machine, request, record, start_time)

    async def _complete(
        self,
        machine: PipelineStateMachine,
        request: AnalysisRequest,
        record: RawBillRecord,
        start_time: float,
    ) -> AnalysisOutcome:
        flags: list[str] = []
        if record.is_empty():
            flags.append("extraction_unreadable")

        try:
            issues = run_validation(record)
            monitored = request.monitored_generation_kwh
            expected_input = request.expected_generation_kwh

            narrative = None
            if request.mode == AnalysisMode.FULL:
                machine.transition(PipelineState.ANALYZING)
                metrics = derive_metrics(record, monitored, expected_input, sizing=self.sizing)
                narrative = await run_narrative(
                    record,
                    metrics,
                    monitored,
                    metrics.expected_generation,
                    self._narrative_client,
                    self.prompt_registry,
                    temperature=self.settings.narrative_temperature,
                    savings_rate_per_kwh=self.settings.savings_rate_per_kwh,
                )
                if narrative.is_fallback:
                    flags.append("narrative_fallback")
            else:
                machine.transition(PipelineState.CALCULATING)
                metrics = derive_metrics(record, monitored, expected_input, sizing=self.sizing)

            alerts = build_alerts(
                record,
                metrics,
                expected_input,
                narrative,
                issues,
                low_efficiency_threshold=self.settings.low_efficiency_threshold,
            )

            if self.store is not None and request.analysis_id:
                values = build_completion_update(
                    record,
                    metrics,
                    monitored,
                    expected_input,
                    alerts,
                    narrative=narrative,
                    savings_rate_per_kwh=self.settings.savings_rate_per_kwh,
                )
                await self.store.complete_analysis(
                    request.analysis_id,
                    values,
                    record,
                    extraction_model=self._extraction_client.get_model_name(),
                    extraction_version=self.prompt_registry.get_version(EXTRACTION_TEMPLATE),
                )
        except Exception as e:
            logger.error(
                "pipeline_stage_failed",
                analysis_id=request.analysis_id,
                state=machine.state.value,
                error=str(e),
            )
            return await self._fail(machine, request, e, start_time, flags)

        machine.transition(PipelineState.COMPLETED)
        elapsed_ms = int((time.monotonic() - start_time) * 1000)
        logger.info(
            "pipeline_complete",
            analysis_id=request.analysis_id,
            mode=request.mode.value,
            system_status=metrics.system_status.value,
            confidence=record.extraction_confidence,
            flags=flags,
            processing_time_ms=elapsed_ms,
        )
        return AnalysisOutcome(
            success=True,
            analysis_id=request.analysis_id,
            state=machine.state,
            mode=request.mode,
            record=record,
            metrics=metrics,
            narrative=narrative,
            alerts=alerts,
            validation_issues=issues,
            flags=flags,
            processing_time_ms=elapsed_ms,
        )

    async def _fail(
        self,
        machine: PipelineStateMachine,
        request: AnalysisRequest,
        error: BaseException | None,
        start_time: float,
        flags: list[str] | None = None,
    ) -> AnalysisOutcome:
        message = _failure_message(error)
        machine.fail(message)

        if self.store is not None and request.analysis_id:
            try:
                await self.store.fail_analysis(request.analysis_id, message)
            except Exception as persist_error:
                logger.error(
                    "failure_persist_failed",
                    analysis_id=request.analysis_id,
                    error=str(persist_error),
                )

        return AnalysisOutcome(
            success=False,
            analysis_id=request.analysis_id,
            state=machine.state,
            mode=request.mode,
            flags=flags or [],
            error=message,
            processing_time_ms=int((time.monotonic() - start_time) * 1000),
        )


def _failure_message(error: BaseException | None) -> str:
    if isinstance(error, LLMTransportError) and error.is_rate_limited:
        return f"{FAILURE_PREFIX}: limite de requisições excedido, tente novamente em instantes"
    if error is None:
        return FAILURE_PREFIX
    return f"{FAILURE_PREFIX}: {error}"
