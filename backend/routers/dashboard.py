# routers/dashboard.py - Home page summary
from datetime import date

from fastapi import APIRouter, Depends
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from auth import SessionContext, require_access
from database import get_db_session
from models import (
    Project, Instrument, NonConformity, QualityIndicator,
    ProjectStatus, NonConformityStatus, QualityStatus,
)
from rules import is_calibration_expired

router = APIRouter(prefix="/api/v1/dashboard", tags=["Dashboard"])

ACTIVE_PROJECT_STATUSES = (ProjectStatus.PLANNING, ProjectStatus.IN_PROGRESS)


@router.get("")
async def get_dashboard(
    context: SessionContext = Depends(require_access()),
    db: AsyncSession = Depends(get_db_session),
):
    """Counts shown on the home page"""
    active_projects = (await db.execute(
        select(func.count(Project.id)).where(Project.status.in_(ACTIVE_PROJECT_STATUSES))
    )).scalar() or 0

    trls = (await db.execute(select(Project.current_trl))).scalars().all()
    average_trl = round(sum(t.level for t in trls) / len(trls), 1) if trls else None

    # Expiry depends on today's date, so it is evaluated here rather than in SQL
    calibration_rows = (await db.execute(
        select(Instrument.last_calibration_date, Instrument.calibration_frequency_months)
    )).all()
    today = date.today()
    expired_instruments = sum(
        1 for last, months in calibration_rows if is_calibration_expired(last, months, today)
    )

    open_non_conformities = (await db.execute(
        select(func.count(NonConformity.id)).where(NonConformity.status == NonConformityStatus.OPEN)
    )).scalar() or 0

    by_status = {s.value: 0 for s in QualityStatus}
    status_rows = await db.execute(
        select(QualityIndicator.status, func.count(QualityIndicator.id)).group_by(QualityIndicator.status)
    )
    for status, count in status_rows.all():
        by_status[QualityStatus(status).value] = count

    return {
        "active_projects": active_projects,
        "average_trl": average_trl,
        "total_instruments": len(calibration_rows),
        "expired_instruments": expired_instruments,
        "open_non_conformities": open_non_conformities,
        "indicators_by_status": by_status,
    }
