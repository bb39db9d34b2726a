# routers/tdp.py - Technical Data Package documents
import logging
from datetime import date, datetime
from typing import Optional, List

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from auth import SessionContext, require_access, require_editor
from database import get_db_session, persist
from models import Profile, Project, TDPDocument, DocumentType, DocumentStatus
from routers.projects import ProjectRef, get_project_or_404

logger = logging.getLogger("trl-metrology.tdp")

router = APIRouter(prefix="/api/v1/tdp", tags=["TDP"])


class DocumentCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    project_id: str = Field(..., min_length=1)
    document_type: DocumentType
    title: str = Field(..., min_length=1, max_length=300)
    description: Optional[str] = None
    version: str = Field(default="1.0", min_length=1, max_length=20)
    file_url: Optional[str] = None
    status: DocumentStatus = DocumentStatus.DRAFT
    approved_by: Optional[str] = None
    approval_date: Optional[date] = None


class DocumentOut(BaseModel):
    id: str
    project_id: str
    project: Optional[ProjectRef] = None
    document_type: DocumentType
    title: str
    description: Optional[str] = None
    version: str
    file_url: Optional[str] = None
    status: DocumentStatus
    author_id: Optional[str] = None
    approved_by: Optional[str] = None
    approval_date: Optional[date] = None
    created_at: Optional[datetime] = None


def _document_to_out(d: TDPDocument, project_name: Optional[str]) -> DocumentOut:
    return DocumentOut(
        id=d.id,
        project_id=d.project_id,
        project=ProjectRef(id=d.project_id, name=project_name) if project_name is not None else None,
        document_type=d.document_type,
        title=d.title,
        description=d.description,
        version=d.version,
        file_url=d.file_url,
        status=d.status,
        author_id=d.author_id,
        approved_by=d.approved_by,
        approval_date=d.approval_date,
        created_at=d.created_at,
    )


@router.get("/documents", response_model=List[DocumentOut])
async def list_documents(
    context: SessionContext = Depends(require_access()),
    db: AsyncSession = Depends(get_db_session),
):
    stmt = (
        select(TDPDocument, Project.name)
        .outerjoin(Project, TDPDocument.project_id == Project.id)
        .order_by(TDPDocument.created_at.desc())
    )
    result = await db.execute(stmt)
    return [_document_to_out(d, name) for d, name in result.all()]


@router.post("/documents", response_model=DocumentOut, status_code=201)
async def create_document(
    body: DocumentCreate,
    context: SessionContext = Depends(require_editor),
    db: AsyncSession = Depends(get_db_session),
):
    project = await get_project_or_404(db, body.project_id)
    if body.approved_by and not await db.get(Profile, body.approved_by):
        raise HTTPException(status_code=404, detail="Approver not found")

    document = TDPDocument(**body.model_dump(), author_id=context.user.id)
    await persist(db, document, "Failed to create TDP document")
    logger.info(f"TDP document {document.id} ({document.document_type.value}) added to project {project.id}")
    return _document_to_out(document, project.name)
