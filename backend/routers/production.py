# routers/production.py - Production batches and non-conformities
import logging
from datetime import date, datetime
from typing import Optional, List

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field, field_validator
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from auth import SessionContext, require_access, require_editor
from database import get_db_session, persist
from models import (
    Project, ProductionBatch, NonConformity,
    ProductionStage, BatchStatus, Severity, NonConformityStatus,
)
from routers.projects import ProjectRef, get_project_or_404

logger = logging.getLogger("trl-metrology.production")

router = APIRouter(prefix="/api/v1/production", tags=["Production"])


# ── Schemas ──────────────────────────────────────────────────

class BatchRef(BaseModel):
    id: str
    batch_number: str


class BatchCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    project_id: str = Field(..., min_length=1)
    batch_number: str = Field(..., min_length=1, max_length=100)
    production_stage: ProductionStage
    production_date: date
    quantity: float = Field(..., gt=0, allow_inf_nan=False)
    unit: str = Field(..., min_length=1, max_length=50)
    status: BatchStatus = BatchStatus.IN_PRODUCTION
    notes: Optional[str] = None


class BatchOut(BaseModel):
    id: str
    project_id: str
    project: Optional[ProjectRef] = None
    batch_number: str
    production_stage: ProductionStage
    production_date: date
    quantity: float
    unit: str
    status: BatchStatus
    notes: Optional[str] = None
    created_at: Optional[datetime] = None


class NonConformityCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1)
    severity: Severity
    detected_date: date
    project_id: Optional[str] = None
    batch_id: Optional[str] = None

    @field_validator("project_id", "batch_id", mode="before")
    @classmethod
    def blank_link_is_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


class NonConformityOut(BaseModel):
    id: str
    title: str
    description: str
    severity: Severity
    detected_date: date
    status: NonConformityStatus
    project_id: Optional[str] = None
    project: Optional[ProjectRef] = None
    batch_id: Optional[str] = None
    batch: Optional[BatchRef] = None
    root_cause: Optional[str] = None
    corrective_action: Optional[str] = None
    resolution_date: Optional[date] = None
    created_at: Optional[datetime] = None


# ── Helpers ──────────────────────────────────────────────────

def _batch_to_out(b: ProductionBatch, project_name: Optional[str]) -> BatchOut:
    return BatchOut(
        id=b.id,
        project_id=b.project_id,
        project=ProjectRef(id=b.project_id, name=project_name) if project_name is not None else None,
        batch_number=b.batch_number,
        production_stage=b.production_stage,
        production_date=b.production_date,
        quantity=b.quantity,
        unit=b.unit,
        status=b.status,
        notes=b.notes,
        created_at=b.created_at,
    )


def _nc_to_out(nc: NonConformity, project_name: Optional[str], batch_number: Optional[str]) -> NonConformityOut:
    return NonConformityOut(
        id=nc.id,
        title=nc.title,
        description=nc.description,
        severity=nc.severity,
        detected_date=nc.detected_date,
        status=nc.status,
        project_id=nc.project_id,
        project=ProjectRef(id=nc.project_id, name=project_name) if nc.project_id and project_name is not None else None,
        batch_id=nc.batch_id,
        batch=BatchRef(id=nc.batch_id, batch_number=batch_number) if nc.batch_id and batch_number is not None else None,
        root_cause=nc.root_cause,
        corrective_action=nc.corrective_action,
        resolution_date=nc.resolution_date,
        created_at=nc.created_at,
    )


# ── Batches ──────────────────────────────────────────────────

@router.get("/batches", response_model=List[BatchOut])
async def list_batches(
    context: SessionContext = Depends(require_access()),
    db: AsyncSession = Depends(get_db_session),
):
    """Production batches with their project name, latest production first"""
    stmt = (
        select(ProductionBatch, Project.name)
        .outerjoin(Project, ProductionBatch.project_id == Project.id)
        .order_by(ProductionBatch.production_date.desc(), ProductionBatch.created_at.desc())
    )
    result = await db.execute(stmt)
    return [_batch_to_out(batch, name) for batch, name in result.all()]


@router.post("/batches", response_model=BatchOut, status_code=201)
async def create_batch(
    body: BatchCreate,
    context: SessionContext = Depends(require_editor),
    db: AsyncSession = Depends(get_db_session),
):
    project = await get_project_or_404(db, body.project_id)
    batch = ProductionBatch(**body.model_dump(), created_by=context.user.id)
    await persist(db, batch, "Failed to create batch")
    logger.info(f"Batch {batch.batch_number} created for project {project.id}")
    return _batch_to_out(batch, project.name)


# ── Non-conformities ─────────────────────────────────────────

@router.get("/non-conformities", response_model=List[NonConformityOut])
async def list_non_conformities(
    context: SessionContext = Depends(require_access()),
    db: AsyncSession = Depends(get_db_session),
):
    """Non-conformities with project name and batch number, latest detection first"""
    stmt = (
        select(NonConformity, Project.name, ProductionBatch.batch_number)
        .outerjoin(Project, NonConformity.project_id == Project.id)
        .outerjoin(ProductionBatch, NonConformity.batch_id == ProductionBatch.id)
        .order_by(NonConformity.detected_date.desc(), NonConformity.created_at.desc())
    )
    result = await db.execute(stmt)
    return [_nc_to_out(nc, name, number) for nc, name, number in result.all()]


@router.post("/non-conformities", response_model=NonConformityOut, status_code=201)
async def create_non_conformity(
    body: NonConformityCreate,
    context: SessionContext = Depends(require_editor),
    db: AsyncSession = Depends(get_db_session),
):
    project_name = None
    batch_number = None
    if body.project_id:
        project_name = (await get_project_or_404(db, body.project_id)).name
    if body.batch_id:
        batch = await db.get(ProductionBatch, body.batch_id)
        if not batch:
            raise HTTPException(status_code=404, detail="Batch not found")
        batch_number = batch.batch_number

    nc = NonConformity(
        **body.model_dump(),
        status=NonConformityStatus.OPEN,
        reported_by=context.user.id,
    )
    await persist(db, nc, "Failed to register non-conformity")
    logger.info(f"Non-conformity {nc.id} ({nc.severity.value}) registered by {context.user.id}")
    return _nc_to_out(nc, project_name, batch_number)
