"""Async CRUD repositories for all storage models."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from bill_clarifier.storage.models import BillAnalysis, BillRawData, Property


# ── Property ─────────────────────────────────────────────────────────────────


class PropertyRepo:
    """CRUD operations for the ``properties`` table."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def create(self, prop: Property) -> Property:
        self._session.add(prop)
        await self._session.flush()
        await self._session.refresh(prop)
        return prop

    async def get_by_id(self, property_id: UUID) -> Property | None:
        stmt = select(Property).where(Property.property_id == property_id)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_by_owner(self, owner_id: str) -> list[Property]:
        stmt = (
            select(Property)
            .where(Property.owner_id == owner_id)
            .order_by(Property.created_at.desc())
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())


# ── BillAnalysis ─────────────────────────────────────────────────────────────


class BillAnalysisRepo:
    """CRUD operations for the ``bill_analyses`` table."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def create(self, analysis: BillAnalysis) -> BillAnalysis:
        self._session.add(analysis)
        await self._session.flush()
        await self._session.refresh(analysis)
        return analysis

    async def get_by_id(self, analysis_id: UUID) -> BillAnalysis | None:
        stmt = select(BillAnalysis).where(BillAnalysis.analysis_id == analysis_id)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_for_period(
        self, property_id: UUID, reference_month: int, reference_year: int,
    ) -> BillAnalysis | None:
        stmt = select(BillAnalysis).where(
            BillAnalysis.property_id == property_id,
            BillAnalysis.reference_month == reference_month,
            BillAnalysis.reference_year == reference_year,
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_by_property(
        self, property_id: UUID, *, offset: int = 0, limit: int = 24,
    ) -> list[BillAnalysis]:
        stmt = (
            select(BillAnalysis)
            .where(BillAnalysis.property_id == property_id)
            .order_by(BillAnalysis.reference_year.desc(), BillAnalysis.reference_month.desc())
            .offset(offset)
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def update_fields(self, analysis_id: UUID, values: dict) -> None:
        stmt = (
            update(BillAnalysis)
            .where(BillAnalysis.analysis_id == analysis_id)
            .values(**values)
        )
        await self._session.execute(stmt)
        await self._session.flush()

    async def delete(self, analysis_id: UUID) -> bool:
        await self._session.execute(
            delete(BillRawData).where(BillRawData.analysis_id == analysis_id)
        )
        result = await self._session.execute(
            delete(BillAnalysis).where(BillAnalysis.analysis_id == analysis_id)
        )
        await self._session.flush()
        return result.rowcount > 0


# ── BillRawData ──────────────────────────────────────────────────────────────


class BillRawDataRepo:
    """CRUD operations for the ``bill_raw_data`` table."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def replace(self, raw: BillRawData) -> BillRawData:
        """Store *raw* as the only raw-data row for its analysis."""
        await self._session.execute(
            delete(BillRawData).where(BillRawData.analysis_id == raw.analysis_id)
        )
        self._session.add(raw)
        await self._session.flush()
        return raw

    async def get_latest(self, analysis_id: UUID) -> BillRawData | None:
        stmt = (
            select(BillRawData)
            .where(BillRawData.analysis_id == analysis_id)
            .order_by(BillRawData.created_at.desc())
            .limit(1)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()
