"""Bill analysis routes: submit, poll, delete and chat."""
from __future__ import annotations
from uuid import UUID
import structlog
from fastapi import APIRouter, Depends, File, Form, HTTPException, Response, UploadFile
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from ...config import Settings
from ...errors import AnalysisInputError, LLMTransportError
from ...llm.base import ChatMessage, LLMClient
from ...models.internal import AnalysisMode, AnalysisRequest
from ...passes.chat import answer_question
from ...passes.persistence import STATUS_COMPLETED
from ...pipeline import BillAnalysisPipeline, validate_request
from ...prompts.registry import PromptRegistry
from ...storage.store import AnalysisStore
from ...utils.hashing import compute_file_hash
from ..dependencies import get_chat_client, get_pipeline, get_prompt_registry, get_settings, get_store

router = APIRouter()
logger = structlog.get_logger(__name__)

RATE_LIMIT_DETAIL = "Limite de requisições excedido. Aguarde alguns instantes e tente novamente."
QUOTA_DETAIL = "Créditos de IA esgotados. Entre em contato com o suporte."


class ChatRequest(BaseModel):
    question: str = Field(min_length=1)
    history: list[ChatMessage] = Field(default_factory=list)


async def _require_analysis(store: AnalysisStore, analysis_id: UUID) -> dict:
    analysis = await store.get_analysis(str(analysis_id))
    if not analysis:
        raise HTTPException(status_code=404, detail="Analysis not found")
    return analysis


@router.post("")
async def submit_analysis(
    file: UploadFile = File(...),
    property_id: UUID = Form(...),
    reference_month: int = Form(..., ge=1, le=12),
    reference_year: int = Form(..., ge=2000, le=2100),
    monitored_generation_kwh: float | None = Form(None),
    expected_generation_kwh: float | None = Form(None),
    mode: AnalysisMode = Form(AnalysisMode.QUICK),
    settings: Settings = Depends(get_settings),
    store: AnalysisStore = Depends(get_store),
    pipeline: BillAnalysisPipeline = Depends(get_pipeline),
):
    """Analyze one bill for a property and reference period.

    Re-submitting the same period overwrites the previous analysis. Returns
    202 when extraction is still running; poll ``GET /analyses/{id}``.
    """
    file_bytes = await file.read()
    if len(file_bytes) > settings.max_upload_bytes:
        raise HTTPException(
            status_code=400,
            detail=f"File too large (max {settings.max_upload_bytes // (1024 * 1024)}MB)",
        )

    prop = await store.get_property(str(property_id))
    if not prop:
        raise HTTPException(status_code=404, detail="Property not found")

    if expected_generation_kwh is None:
        expected_generation_kwh = prop.get("expected_monthly_generation_kwh")

    request = AnalysisRequest(
        image_bytes=file_bytes,
        monitored_generation_kwh=monitored_generation_kwh,
        expected_generation_kwh=expected_generation_kwh,
        mode=mode,
        mime_type=file.content_type,
    )
    try:
        validate_request(request)
    except AnalysisInputError as e:
        raise HTTPException(status_code=400, detail=str(e))

    analysis_id = await store.begin_analysis(
        str(property_id),
        reference_month,
        reference_year,
        mode.value,
        file_hash=compute_file_hash(file_bytes),
    )
    logger.info(
        "analysis_submitted",
        analysis_id=analysis_id,
        filename=file.filename,
        mode=mode.value,
    )

    outcome = await pipeline.analyze(request.model_copy(update={"analysis_id": analysis_id}))
    body = outcome.model_dump(mode="json")
    if outcome.pending:
        return JSONResponse(status_code=202, content=body)
    if not outcome.success:
        raise HTTPException(status_code=502, detail=outcome.error)
    return body


@router.get("/{analysis_id}")
async def get_analysis(analysis_id: UUID, store: AnalysisStore = Depends(get_store)):
    """Persisted analysis row; the poll target for pending runs."""
    return await _require_analysis(store, analysis_id)


@router.delete("/{analysis_id}", status_code=204)
async def delete_analysis(analysis_id: UUID, store: AnalysisStore = Depends(get_store)):
    deleted = await store.delete_analysis(str(analysis_id))
    if not deleted:
        raise HTTPException(status_code=404, detail="Analysis not found")
    return Response(status_code=204)


@router.post("/{analysis_id}/chat")
async def chat_about_analysis(
    analysis_id: UUID,
    body: ChatRequest,
    settings: Settings = Depends(get_settings),
    store: AnalysisStore = Depends(get_store),
    registry: PromptRegistry = Depends(get_prompt_registry),
    chat_client: LLMClient = Depends(get_chat_client),
):
    """Answer a question about a completed analysis."""
    analysis = await _require_analysis(store, analysis_id)
    if analysis.get("status") != STATUS_COMPLETED:
        raise HTTPException(status_code=409, detail="Analysis is not completed")

    raw = await store.get_raw_data(str(analysis_id))
    try:
        answer = await answer_question(
            body.question,
            body.history,
            analysis,
            raw["raw_json"] if raw else None,
            chat_client,
            registry,
            temperature=settings.chat_temperature,
            sizing=settings.expansion_sizing(),
        )
    except AnalysisInputError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except LLMTransportError as e:
        logger.error("chat_failed", analysis_id=str(analysis_id), status_code=e.status_code, error=str(e))
        if e.is_rate_limited:
            detail = RATE_LIMIT_DETAIL
        elif e.is_quota_exhausted:
            detail = QUOTA_DETAIL
        else:
            detail = "Não foi possível obter uma resposta agora."
        raise HTTPException(status_code=502, detail=detail)

    return {"analysis_id": str(analysis_id), "answer": answer}
