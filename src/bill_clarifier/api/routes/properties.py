"""Property routes: the solar installations analyses belong to."""
from __future__ import annotations
from uuid import UUID
from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from ...storage.store import AnalysisStore
from ..dependencies import get_store

router = APIRouter()


class PropertyCreate(BaseModel):
    owner_id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    expected_monthly_generation_kwh: float | None = Field(default=None, ge=0)


@router.post("", status_code=201)
async def create_property(body: PropertyCreate, store: AnalysisStore = Depends(get_store)):
    """Register a property; its baseline generation is the default expectation."""
    property_id = await store.create_property(
        body.owner_id, body.name, body.expected_monthly_generation_kwh,
    )
    return {"property_id": property_id}


@router.get("/{property_id}")
async def get_property(property_id: UUID, store: AnalysisStore = Depends(get_store)):
    prop = await store.get_property(str(property_id))
    if not prop:
        raise HTTPException(status_code=404, detail="Property not found")
    return prop


@router.get("")
async def list_properties(owner_id: str = Query(..., min_length=1), store: AnalysisStore = Depends(get_store)):
    return await store.list_properties(owner_id)


@router.get("/{property_id}/analyses")
async def list_property_analyses(
    property_id: UUID,
    offset: int = Query(0, ge=0),
    limit: int = Query(24, ge=1, le=120),
    store: AnalysisStore = Depends(get_store),
):
    """Bill history for a property, newest reference period first."""
    if not await store.get_property(str(property_id)):
        raise HTTPException(status_code=404, detail="Property not found")
    return await store.list_analyses(str(property_id), offset=offset, limit=limit)
