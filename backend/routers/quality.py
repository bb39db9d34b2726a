# routers/quality.py - Quality indicators
"""
Quality indicators per project.

The conformance status is derived from target and current value once, when
the indicator is recorded, and stored. The trend returned with each record is
recomputed on every read and only drives presentation.
"""

import logging
from datetime import date, datetime
from typing import Optional, List

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from auth import SessionContext, require_access, require_editor
from database import get_db_session, persist
from models import Project, QualityIndicator, IndicatorType, QualityStatus, Trend
from routers.projects import ProjectRef, get_project_or_404
from rules import classify_indicator, indicator_trend

logger = logging.getLogger("trl-metrology.quality")

router = APIRouter(prefix="/api/v1/quality", tags=["Quality"])


class IndicatorCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    project_id: str = Field(..., min_length=1)
    indicator_name: str = Field(..., min_length=1, max_length=200)
    indicator_type: IndicatorType
    target_value: float = Field(..., allow_inf_nan=False)
    current_value: float = Field(..., allow_inf_nan=False)
    unit: Optional[str] = None
    measurement_date: date = Field(default_factory=date.today)
    notes: Optional[str] = None


class IndicatorOut(BaseModel):
    id: str
    project_id: str
    project: Optional[ProjectRef] = None
    indicator_name: str
    indicator_type: IndicatorType
    target_value: float
    current_value: float
    unit: Optional[str] = None
    measurement_date: date
    status: QualityStatus
    trend: Trend
    notes: Optional[str] = None
    created_at: Optional[datetime] = None


def _indicator_to_out(q: QualityIndicator, project_name: Optional[str]) -> IndicatorOut:
    return IndicatorOut(
        id=q.id,
        project_id=q.project_id,
        project=ProjectRef(id=q.project_id, name=project_name) if project_name is not None else None,
        indicator_name=q.indicator_name,
        indicator_type=q.indicator_type,
        target_value=q.target_value,
        current_value=q.current_value,
        unit=q.unit,
        measurement_date=q.measurement_date,
        status=q.status,
        trend=indicator_trend(q.target_value, q.current_value),
        notes=q.notes,
        created_at=q.created_at,
    )


@router.get("/indicators", response_model=List[IndicatorOut])
async def list_indicators(
    context: SessionContext = Depends(require_access()),
    db: AsyncSession = Depends(get_db_session),
):
    stmt = (
        select(QualityIndicator, Project.name)
        .outerjoin(Project, QualityIndicator.project_id == Project.id)
        .order_by(QualityIndicator.measurement_date.desc(), QualityIndicator.created_at.desc())
    )
    result = await db.execute(stmt)
    return [_indicator_to_out(q, name) for q, name in result.all()]


@router.post("/indicators", response_model=IndicatorOut, status_code=201)
async def create_indicator(
    body: IndicatorCreate,
    context: SessionContext = Depends(require_editor),
    db: AsyncSession = Depends(get_db_session),
):
    project = await get_project_or_404(db, body.project_id)
    indicator = QualityIndicator(
        **body.model_dump(),
        status=classify_indicator(body.target_value, body.current_value),
        measured_by=context.user.id,
    )
    await persist(db, indicator, "Failed to record quality indicator")
    logger.info(f"Indicator {indicator.id} recorded as {indicator.status.value}")
    return _indicator_to_out(indicator, project.name)
