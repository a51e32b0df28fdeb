"""Analysis record store used by the pipeline and the API.

The pipeline only needs to write the terminal update for an analysis; the
API additionally creates, reads and deletes rows. ``SqlAnalysisStore`` is
the SQLAlchemy-backed implementation.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from uuid import UUID

import structlog

from ..models.bill import RawBillRecord
from ..passes.persistence import STATUS_PROCESSING, build_failure_update
from .database import AsyncSessionLocal
from .models import BillAnalysis, BillRawData, Property
from .repositories import BillAnalysisRepo, BillRawDataRepo, PropertyRepo

logger = structlog.get_logger(__name__)

# Columns that identify a row and survive a same-period re-submission
_KEY_COLUMNS = frozenset({
    "analysis_id", "property_id", "reference_month", "reference_year", "created_at",
})


def _serialize(value):
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def row_to_dict(row) -> dict:
    """Plain JSON-friendly dict of an ORM row's columns."""
    return {c.key: _serialize(getattr(row, c.key)) for c in row.__table__.columns}


def _reset_values(mode: str, file_hash: str | None) -> dict:
    values = {
        c.key: None
        for c in BillAnalysis.__table__.columns
        if c.key not in _KEY_COLUMNS and c.nullable
    }
    values.update(status=STATUS_PROCESSING, mode=mode, file_hash=file_hash)
    return values


class AnalysisStore(ABC):
    """Opaque record store for bill analyses."""

    @abstractmethod
    async def create_property(
        self, owner_id: str, name: str, expected_monthly_generation_kwh: float | None = None,
    ) -> str:
        ...

    @abstractmethod
    async def get_property(self, property_id: str) -> dict | None:
        ...

    @abstractmethod
    async def list_properties(self, owner_id: str) -> list[dict]:
        ...

    @abstractmethod
    async def begin_analysis(
        self,
        property_id: str,
        reference_month: int,
        reference_year: int,
        mode: str,
        file_hash: str | None = None,
    ) -> str:
        """Create the ``processing`` row for a period, or reset the existing one."""
        ...

    @abstractmethod
    async def complete_analysis(
        self,
        analysis_id: str,
        values: dict,
        record: RawBillRecord,
        extraction_model: str,
        extraction_version: str,
    ) -> None:
        ...

    @abstractmethod
    async def fail_analysis(self, analysis_id: str, message: str) -> None:
        ...

    @abstractmethod
    async def get_analysis(self, analysis_id: str) -> dict | None:
        ...

    @abstractmethod
    async def list_analyses(self, property_id: str, offset: int = 0, limit: int = 24) -> list[dict]:
        """Analyses for a property, newest reference period first."""
        ...

    @abstractmethod
    async def get_raw_data(self, analysis_id: str) -> dict | None:
        ...

    @abstractmethod
    async def delete_analysis(self, analysis_id: str) -> bool:
        ...


class SqlAnalysisStore(AnalysisStore):
    """AnalysisStore over the async SQLAlchemy session factory."""

    async def create_property(
        self, owner_id: str, name: str, expected_monthly_generation_kwh: float | None = None,
    ) -> str:
        async with AsyncSessionLocal() as session:
            prop = await PropertyRepo(session).create(Property(
                owner_id=owner_id,
                name=name,
                expected_monthly_generation_kwh=expected_monthly_generation_kwh,
            ))
            await session.commit()
            return str(prop.property_id)

    async def get_property(self, property_id: str) -> dict | None:
        async with AsyncSessionLocal() as session:
            prop = await PropertyRepo(session).get_by_id(UUID(property_id))
            return row_to_dict(prop) if prop else None

    async def list_properties(self, owner_id: str) -> list[dict]:
        async with AsyncSessionLocal() as session:
            props = await PropertyRepo(session).list_by_owner(owner_id)
            return [row_to_dict(p) for p in props]

    async def begin_analysis(
        self,
        property_id: str,
        reference_month: int,
        reference_year: int,
        mode: str,
        file_hash: str | None = None,
    ) -> str:
        async with AsyncSessionLocal() as session:
            repo = BillAnalysisRepo(session)
            existing = await repo.get_for_period(UUID(property_id), reference_month, reference_year)
            if existing is not None:
                await repo.update_fields(existing.analysis_id, _reset_values(mode, file_hash))
                await session.commit()
                logger.info(
                    "analysis_resubmitted",
                    analysis_id=str(existing.analysis_id),
                    reference_month=reference_month,
                    reference_year=reference_year,
                )
                return str(existing.analysis_id)

            analysis = await repo.create(BillAnalysis(
                property_id=UUID(property_id),
                reference_month=reference_month,
                reference_year=reference_year,
                mode=mode,
                status=STATUS_PROCESSING,
                file_hash=file_hash,
            ))
            await session.commit()
            logger.info("analysis_created", analysis_id=str(analysis.analysis_id))
            return str(analysis.analysis_id)

    async def complete_analysis(
        self,
        analysis_id: str,
        values: dict,
        record: RawBillRecord,
        extraction_model: str,
        extraction_version: str,
    ) -> None:
        key = UUID(analysis_id)
        async with AsyncSessionLocal() as session:
            await BillAnalysisRepo(session).update_fields(key, values)
            await BillRawDataRepo(session).replace(BillRawData(
                analysis_id=key,
                raw_json=record.model_dump(mode="json"),
                ocr_confidence=record.extraction_confidence,
                extraction_model=extraction_model,
                extraction_version=extraction_version,
            ))
            await session.commit()

    async def fail_analysis(self, analysis_id: str, message: str) -> None:
        async with AsyncSessionLocal() as session:
            await BillAnalysisRepo(session).update_fields(UUID(analysis_id), build_failure_update(message))
            await session.commit()

    async def get_analysis(self, analysis_id: str) -> dict | None:
        async with AsyncSessionLocal() as session:
            analysis = await BillAnalysisRepo(session).get_by_id(UUID(analysis_id))
            return row_to_dict(analysis) if analysis else None

    async def list_analyses(self, property_id: str, offset: int = 0, limit: int = 24) -> list[dict]:
        async with AsyncSessionLocal() as session:
            rows = await BillAnalysisRepo(session).list_by_property(
                UUID(property_id), offset=offset, limit=limit,
            )
            return [row_to_dict(r) for r in rows]

    async def get_raw_data(self, analysis_id: str) -> dict | None:
        async with AsyncSessionLocal() as session:
            raw = await BillRawDataRepo(session).get_latest(UUID(analysis_id))
            return row_to_dict(raw) if raw else None

    async def delete_analysis(self, analysis_id: str) -> bool:
        async with AsyncSessionLocal() as session:
            deleted = await BillAnalysisRepo(session).delete(UUID(analysis_id))
            await session.commit()
            return deleted
