# routers/instruments.py - Instruments and their calibration history
"""
Instruments are listed with a calibration-expiry flag computed on every read
from the last calibration date and the calibration frequency. Recording a
calibration appends to the instrument's history and moves its last/next
calibration dates forward.
"""

import logging
from datetime import date, datetime
from typing import Optional, List

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from auth import SessionContext, require_access, require_editor
from database import get_db_session, persist
from models import (
    AppRole, Instrument, Calibration, MetrologyArea, InstrumentStatus, CalibrationResult,
)
from rules import is_calibration_expired, next_calibration_date

logger = logging.getLogger("trl-metrology.instruments")

router = APIRouter(prefix="/api/v1/instruments", tags=["Instruments"])


# ── Schemas ──────────────────────────────────────────────────

class InstrumentCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=200)
    manufacturer: Optional[str] = None
    model: Optional[str] = None
    serial_number: Optional[str] = None
    category: str = Field(..., min_length=1, max_length=100)
    metrology_area: Optional[MetrologyArea] = None
    location: Optional[str] = None
    calibration_frequency_months: int = Field(default=12, ge=1)
    last_calibration_date: Optional[date] = None
    status: InstrumentStatus = InstrumentStatus.ACTIVE
    notes: Optional[str] = None


class InstrumentOut(BaseModel):
    id: str
    name: str
    manufacturer: Optional[str] = None
    model: Optional[str] = None
    serial_number: Optional[str] = None
    category: str
    metrology_area: Optional[MetrologyArea] = None
    location: Optional[str] = None
    calibration_frequency_months: int
    last_calibration_date: Optional[date] = None
    next_calibration_date: Optional[date] = None
    calibration_expired: bool
    status: InstrumentStatus
    notes: Optional[str] = None
    created_at: Optional[datetime] = None


class CalibrationCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    calibration_date: date
    result: CalibrationResult
    next_calibration_date: Optional[date] = None
    calibration_lab: Optional[str] = None
    certificate_number: Optional[str] = None
    performed_by: Optional[str] = None
    uncertainty_value: Optional[float] = Field(default=None, ge=0)
    uncertainty_unit: Optional[str] = None
    notes: Optional[str] = None


class CalibrationOut(BaseModel):
    id: str
    instrument_id: str
    calibration_date: date
    next_calibration_date: date
    result: CalibrationResult
    calibration_lab: Optional[str] = None
    certificate_number: Optional[str] = None
    performed_by: Optional[str] = None
    uncertainty_value: Optional[float] = None
    uncertainty_unit: Optional[str] = None
    notes: Optional[str] = None


# ── Helpers ──────────────────────────────────────────────────

def _instrument_to_out(i: Instrument, today: Optional[date] = None) -> InstrumentOut:
    return InstrumentOut(
        id=i.id,
        name=i.name,
        manufacturer=i.manufacturer,
        model=i.model,
        serial_number=i.serial_number,
        category=i.category,
        metrology_area=i.metrology_area,
        location=i.location,
        calibration_frequency_months=i.calibration_frequency_months,
        last_calibration_date=i.last_calibration_date,
        next_calibration_date=i.next_calibration_date,
        calibration_expired=is_calibration_expired(
            i.last_calibration_date, i.calibration_frequency_months, today,
        ),
        status=i.status,
        notes=i.notes,
        created_at=i.created_at,
    )


def _calibration_to_out(c: Calibration) -> CalibrationOut:
    return CalibrationOut(
        id=c.id,
        instrument_id=c.instrument_id,
        calibration_date=c.calibration_date,
        next_calibration_date=c.next_calibration_date,
        result=c.result,
        calibration_lab=c.calibration_lab,
        certificate_number=c.certificate_number,
        performed_by=c.performed_by,
        uncertainty_value=c.uncertainty_value,
        uncertainty_unit=c.uncertainty_unit,
        notes=c.notes,
    )


async def _get_instrument_or_404(db: AsyncSession, instrument_id: str) -> Instrument:
    instrument = await db.get(Instrument, instrument_id)
    if not instrument:
        raise HTTPException(status_code=404, detail="Instrument not found")
    return instrument


# ── Instruments ──────────────────────────────────────────────

@router.get("", response_model=List[InstrumentOut])
async def list_instruments(
    context: SessionContext = Depends(require_access()),
    db: AsyncSession = Depends(get_db_session),
):
    result = await db.execute(select(Instrument).order_by(Instrument.name))
    today = date.today()
    return [_instrument_to_out(i, today) for i in result.scalars().all()]


@router.post("", response_model=InstrumentOut, status_code=201)
async def create_instrument(
    body: InstrumentCreate,
    context: SessionContext = Depends(require_editor),
    db: AsyncSession = Depends(get_db_session),
):
    instrument = Instrument(
        **body.model_dump(),
        next_calibration_date=next_calibration_date(
            body.last_calibration_date, body.calibration_frequency_months,
        ),
    )
    await persist(db, instrument, "Failed to register instrument")
    logger.info(f"Instrument {instrument.id} registered by {context.user.id}")
    return _instrument_to_out(instrument)


# ── Calibrations ─────────────────────────────────────────────

@router.get("/{instrument_id}/calibrations", response_model=List[CalibrationOut])
async def list_calibrations(
    instrument_id: str,
    context: SessionContext = Depends(require_access(AppRole.TECHNICIAN)),
    db: AsyncSession = Depends(get_db_session),
):
    """Calibration history, latest first; the calibrations page is for technicians and admins"""
    await _get_instrument_or_404(db, instrument_id)
    stmt = (
        select(Calibration)
        .where(Calibration.instrument_id == instrument_id)
        .order_by(Calibration.calibration_date.desc())
    )
    result = await db.execute(stmt)
    return [_calibration_to_out(c) for c in result.scalars().all()]


@router.post("/{instrument_id}/calibrations", response_model=CalibrationOut, status_code=201)
async def record_calibration(
    instrument_id: str,
    body: CalibrationCreate,
    context: SessionContext = Depends(require_editor),
    db: AsyncSession = Depends(get_db_session),
):
    """Record a calibration certificate.

    An explicit ``next_calibration_date`` (a certificate with its own due date) is
    stored as given. ``calibration_expired`` on the instrument list is always
    derived from the last calibration date plus the calibration frequency, so the
    two can disagree; the stored date is informational.
    """
    instrument = await _get_instrument_or_404(db, instrument_id)
    due = body.next_calibration_date or next_calibration_date(
        body.calibration_date, instrument.calibration_frequency_months,
    )
    calibration = Calibration(
        instrument_id=instrument.id,
        **body.model_dump(exclude={"next_calibration_date"}),
        next_calibration_date=due,
    )
    # An older certificate entered late does not roll the instrument back
    if instrument.last_calibration_date is None or body.calibration_date >= instrument.last_calibration_date:
        instrument.last_calibration_date = body.calibration_date
        instrument.next_calibration_date = due
        db.add(instrument)
    await persist(db, calibration, "Failed to record calibration")
    logger.info(f"Calibration {calibration.id} recorded for instrument {instrument.id}")
    return _calibration_to_out(calibration)
