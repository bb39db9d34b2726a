# routers/projects.py - TRL projects and their (read-only) TRL history
import logging
from datetime import date, datetime
from typing import Optional, List

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from auth import SessionContext, require_access, require_editor
from database import get_db_session, persist
from models import Project, Profile, TRLHistory, TRLLevel, ProjectStatus

logger = logging.getLogger("trl-metrology.projects")

router = APIRouter(prefix="/api/v1/projects", tags=["Projects"])


# --- Schemas ---

class ProjectCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=3, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    current_trl: TRLLevel
    target_trl: TRLLevel
    status: ProjectStatus = ProjectStatus.PLANNING
    start_date: date
    expected_end_date: Optional[date] = None
    responsible_user_id: Optional[str] = None


class ProjectOut(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    current_trl: TRLLevel
    target_trl: TRLLevel
    status: ProjectStatus
    start_date: date
    expected_end_date: Optional[date] = None
    responsible_user_id: Optional[str] = None
    created_by: str
    created_at: Optional[datetime] = None


class ProjectRef(BaseModel):
    id: str
    name: str


class TRLHistoryOut(BaseModel):
    id: str
    project_id: str
    from_trl: TRLLevel
    to_trl: TRLLevel
    validation_date: date
    validated_by: Optional[str] = None
    evidence: str
    notes: Optional[str] = None


# --- Helpers ---

def _project_to_out(p: Project) -> ProjectOut:
    return ProjectOut(
        id=p.id,
        name=p.name,
        description=p.description,
        current_trl=p.current_trl,
        target_trl=p.target_trl,
        status=p.status,
        start_date=p.start_date,
        expected_end_date=p.expected_end_date,
        responsible_user_id=p.responsible_user_id,
        created_by=p.created_by,
        created_at=p.created_at,
    )


async def get_project_or_404(db: AsyncSession, project_id: str) -> Project:
    project = await db.get(Project, project_id)
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")
    return project


# --- Endpoints ---

@router.get("", response_model=List[ProjectOut])
async def list_projects(
    context: SessionContext = Depends(require_access()),
    db: AsyncSession = Depends(get_db_session),
):
    """All projects, newest first"""
    result = await db.execute(select(Project).order_by(Project.created_at.desc()))
    return [_project_to_out(p) for p in result.scalars().all()]


@router.post("", response_model=ProjectOut, status_code=201)
async def create_project(
    body: ProjectCreate,
    context: SessionContext = Depends(require_editor),
    db: AsyncSession = Depends(get_db_session),
):
    if body.responsible_user_id and not await db.get(Profile, body.responsible_user_id):
        raise HTTPException(status_code=404, detail="Responsible user not found")

    project = Project(**body.model_dump(), created_by=context.user.id)
    await persist(db, project, "Failed to create project")
    logger.info(f"Project {project.id} created by {context.user.id}")
    return _project_to_out(project)


@router.get("/{project_id}", response_model=ProjectOut)
async def get_project(
    project_id: str,
    context: SessionContext = Depends(require_access()),
    db: AsyncSession = Depends(get_db_session),
):
    return _project_to_out(await get_project_or_404(db, project_id))


@router.get("/{project_id}/trl-history", response_model=List[TRLHistoryOut])
async def list_trl_history(
    project_id: str,
    context: SessionContext = Depends(require_access()),
    db: AsyncSession = Depends(get_db_session),
):
    """TRL transitions of a project, most recent validation first"""
    await get_project_or_404(db, project_id)
    stmt = (
        select(TRLHistory)
        .where(TRLHistory.project_id == project_id)
        .order_by(TRLHistory.validation_date.desc())
    )
    result = await db.execute(stmt)
    return [
        TRLHistoryOut(
            id=h.id,
            project_id=h.project_id,
            from_trl=h.from_trl,
            to_trl=h.to_trl,
            validation_date=h.validation_date,
            validated_by=h.validated_by,
            evidence=h.evidence,
            notes=h.notes,
        )
        for h in result.scalars().all()
    ]
