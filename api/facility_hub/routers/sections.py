# facility_hub/routers/sections.py
from __future__ import annotations
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from facility_hub.database import get_session
from facility_hub.deps import get_facility_id, http_error
from facility_hub.errors import FacilityHubError
from facility_hub.models import SectionIn, SectionOut
from facility_hub.services import SectionService

router = APIRouter(prefix="/sections", tags=["Sections"])


@router.post("", response_model=SectionOut, status_code=201)
async def create_section(
    body: SectionIn,
    facility_id: str = Depends(get_facility_id),
    db: AsyncSession = Depends(get_session),
):
    try:
        section = await SectionService(db).create_section(
            facility_id, body.name, body.allowed_categories, body.capacity,
        )
    except FacilityHubError as e:
        raise http_error(e)
    return SectionOut.model_validate(section)


@router.get("", response_model=List[SectionOut])
async def list_sections(
    facility_id: str = Depends(get_facility_id),
    db: AsyncSession = Depends(get_session),
):
    sections = await SectionService(db).list_sections(facility_id)
    return [SectionOut.model_validate(s) for s in sections]
