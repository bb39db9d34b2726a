# models.py - Database models for the Digital Metrology System
# - UUID string primary keys everywhere
# - 3-tier role system (admin, technician, regular_user) held in user_roles
# - Projects with TRL tracking and append-only TRL history
# - Instruments with append-only calibration history
# - Production batches, non-conformities, quality indicators, TDP documents

import uuid
from datetime import datetime, timezone
from enum import Enum as PyEnum
from sqlalchemy import (
    Column, String, DateTime, Date, Boolean, Integer, Float,
    Enum as SQLEnum, ForeignKey, Text, Index, UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def utcnow():
    return datetime.now(timezone.utc)


def new_uuid():
    return str(uuid.uuid4())


def _enum(enum_cls):
    """Column type storing the enum's value (the vocabulary string), not its name."""
    return SQLEnum(
        enum_cls,
        name=enum_cls.__name__.lower(),
        values_callable=lambda members: [m.value for m in members],
        validate_strings=True,
    )


# ============================================================
# ENUMS
# ============================================================

class AppRole(str, PyEnum):
    ADMIN = "admin"
    TECHNICIAN = "technician"
    REGULAR_USER = "regular_user"


class TRLLevel(str, PyEnum):
    TRL1 = "TRL1"
    TRL2 = "TRL2"
    TRL3 = "TRL3"
    TRL4 = "TRL4"
    TRL5 = "TRL5"
    TRL6 = "TRL6"
    TRL7 = "TRL7"
    TRL8 = "TRL8"
    TRL9 = "TRL9"

    @property
    def level(self) -> int:
        return int(self.value[3:])


class ProjectStatus(str, PyEnum):
    PLANNING = "planning"
    IN_PROGRESS = "in_progress"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class MetrologyArea(str, PyEnum):
    PHYSICAL = "physical"
    CHEMICAL = "chemical"
    BIOLOGICAL = "biological"


class InstrumentStatus(str, PyEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    UNDER_MAINTENANCE = "under_maintenance"


class CalibrationResult(str, PyEnum):
    APPROVED = "approved"
    APPROVED_WITH_RESTRICTIONS = "approved_with_restrictions"
    REJECTED = "rejected"


class ProductionStage(str, PyEnum):
    DEVELOPMENT = "development"
    PILOT = "pilot"
    INDUSTRIAL_SCALE = "industrial_scale"


class BatchStatus(str, PyEnum):
    IN_PRODUCTION = "in_production"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Severity(str, PyEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class NonConformityStatus(str, PyEnum):
    OPEN = "open"
    UNDER_ANALYSIS = "under_analysis"
    CLOSED = "closed"


class IndicatorType(str, PyEnum):
    DIMENSIONAL = "dimensional"
    PURITY = "purity"
    CONCENTRATION = "concentration"
    YIELD = "yield"
    MOISTURE = "moisture"
    VISCOSITY = "viscosity"
    PH = "ph"
    OTHER = "other"


class QualityStatus(str, PyEnum):
    CONFORMING = "conforming"
    ATTENTION = "attention"
    NON_CONFORMING = "non_conforming"


class Trend(str, PyEnum):
    UP = "up"
    DOWN = "down"
    FLAT = "flat"


class DocumentType(str, PyEnum):
    DRAWING = "drawing"
    SPECIFICATION = "specification"
    BILL_OF_MATERIALS = "bill_of_materials"
    PROCEDURE = "procedure"
    TEST_REPORT = "test_report"
    MANUAL = "manual"
    CERTIFICATE = "certificate"
    OTHER = "other"


class DocumentStatus(str, PyEnum):
    DRAFT = "draft"
    IN_REVIEW = "in_review"
    APPROVED = "approved"
    OBSOLETE = "obsolete"


# ============================================================
# IDENTITY
# ============================================================

class Profile(Base):
    __tablename__ = "profiles"

    id = Column(String, primary_key=True, default=new_uuid)
    email = Column(String, unique=True, nullable=False, index=True)
    full_name = Column(String, nullable=True)
    password_hash = Column(String, nullable=False)
    is_active = Column(Boolean, default=True, index=True)
    last_login_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    roles = relationship("UserRoleAssignment", back_populates="user")


class UserRoleAssignment(Base):
    """Role grant; assigned out-of-band, absence means regular_user."""
    __tablename__ = "user_roles"

    id = Column(String, primary_key=True, default=new_uuid)
    user_id = Column(String, ForeignKey("profiles.id"), nullable=False, index=True)
    role = Column(_enum(AppRole), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    user = relationship("Profile", back_populates="roles")

    __table_args__ = (
        UniqueConstraint("user_id", "role", name="uq_user_role"),
    )


class RevokedToken(Base):
    __tablename__ = "revoked_tokens"

    id = Column(String, primary_key=True, default=new_uuid)
    jti = Column(String, unique=True, nullable=False, index=True)  # JWT ID
    user_id = Column(String, ForeignKey("profiles.id"), nullable=False)
    revoked_at = Column(DateTime(timezone=True), default=utcnow)
    expires_at = Column(DateTime(timezone=True), nullable=False)  # When the token would have expired


# ============================================================
# PROJECTS & TRL
# ============================================================

class Project(Base):
    __tablename__ = "projects"

    id = Column(String, primary_key=True, default=new_uuid)
    name = Column(String(100), nullable=False, index=True)
    description = Column(Text, nullable=True)
    current_trl = Column(_enum(TRLLevel), nullable=False, default=TRLLevel.TRL1)
    target_trl = Column(_enum(TRLLevel), nullable=False, default=TRLLevel.TRL9)
    status = Column(_enum(ProjectStatus), nullable=False, default=ProjectStatus.PLANNING, index=True)
    start_date = Column(Date, nullable=False)
    expected_end_date = Column(Date, nullable=True)
    responsible_user_id = Column(String, ForeignKey("profiles.id"), nullable=True)
    created_by = Column(String, ForeignKey("profiles.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    trl_history = relationship("TRLHistory", back_populates="project")


class TRLHistory(Base):
    """Append-only audit trail of TRL transitions."""
    __tablename__ = "trl_history"

    id = Column(String, primary_key=True, default=new_uuid)
    project_id = Column(String, ForeignKey("projects.id"), nullable=False, index=True)
    from_trl = Column(_enum(TRLLevel), nullable=False)
    to_trl = Column(_enum(TRLLevel), nullable=False)
    validation_date = Column(Date, nullable=False)
    validated_by = Column(String, ForeignKey("profiles.id"), nullable=True)
    evidence = Column(Text, nullable=False)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    project = relationship("Project", back_populates="trl_history")


# ============================================================
# INSTRUMENTS & CALIBRATION
# ============================================================

class Instrument(Base):
    __tablename__ = "instruments"

    id = Column(String, primary_key=True, default=new_uuid)
    name = Column(String, nullable=False, index=True)
    manufacturer = Column(String, nullable=True)
    model = Column(String, nullable=True)
    serial_number = Column(String, nullable=True)
    category = Column(String, nullable=False)
    metrology_area = Column(_enum(MetrologyArea), nullable=True)
    location = Column(String, nullable=True)
    calibration_frequency_months = Column(Integer, nullable=False, default=12)
    last_calibration_date = Column(Date, nullable=True)
    next_calibration_date = Column(Date, nullable=True)
    status = Column(_enum(InstrumentStatus), nullable=False, default=InstrumentStatus.ACTIVE)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    calibrations = relationship("Calibration", back_populates="instrument")


class Calibration(Base):
    """Append-only calibration history of an instrument."""
    __tablename__ = "calibrations"

    id = Column(String, primary_key=True, default=new_uuid)
    instrument_id = Column(String, ForeignKey("instruments.id"), nullable=False, index=True)
    calibration_date = Column(Date, nullable=False)
    next_calibration_date = Column(Date, nullable=False)
    result = Column(_enum(CalibrationResult), nullable=False)
    calibration_lab = Column(String, nullable=True)
    certificate_number = Column(String, nullable=True)
    performed_by = Column(String, nullable=True)
    uncertainty_value = Column(Float, nullable=True)
    uncertainty_unit = Column(String, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    instrument = relationship("Instrument", back_populates="calibrations")


# ============================================================
# PRODUCTION
# ============================================================

class ProductionBatch(Base):
    __tablename__ = "production_batches"

    id = Column(String, primary_key=True, default=new_uuid)
    project_id = Column(String, ForeignKey("projects.id"), nullable=False, index=True)
    batch_number = Column(String, nullable=False, unique=True)
    production_stage = Column(_enum(ProductionStage), nullable=False)
    production_date = Column(Date, nullable=False, index=True)
    quantity = Column(Float, nullable=False)
    unit = Column(String, nullable=False)
    status = Column(_enum(BatchStatus), nullable=False, default=BatchStatus.IN_PRODUCTION)
    notes = Column(Text, nullable=True)
    created_by = Column(String, ForeignKey("profiles.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)


class NonConformity(Base):
    __tablename__ = "non_conformities"

    id = Column(String, primary_key=True, default=new_uuid)
    project_id = Column(String, ForeignKey("projects.id"), nullable=True, index=True)
    batch_id = Column(String, ForeignKey("production_batches.id"), nullable=True, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=False)
    severity = Column(_enum(Severity), nullable=False, index=True)
    detected_date = Column(Date, nullable=False, index=True)
    status = Column(_enum(NonConformityStatus), nullable=False, default=NonConformityStatus.OPEN, index=True)
    root_cause = Column(Text, nullable=True)
    corrective_action = Column(Text, nullable=True)
    resolution_date = Column(Date, nullable=True)
    reported_by = Column(String, ForeignKey("profiles.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)


# ============================================================
# QUALITY & TDP
# ============================================================

class QualityIndicator(Base):
    __tablename__ = "quality_indicators"

    id = Column(String, primary_key=True, default=new_uuid)
    project_id = Column(String, ForeignKey("projects.id"), nullable=False, index=True)
    indicator_name = Column(String, nullable=False)
    indicator_type = Column(_enum(IndicatorType), nullable=False)
    target_value = Column(Float, nullable=False)
    current_value = Column(Float, nullable=False)
    unit = Column(String, nullable=True)
    measurement_date = Column(Date, nullable=False, index=True)
    status = Column(_enum(QualityStatus), nullable=False)  # derived once at write time
    measured_by = Column(String, ForeignKey("profiles.id"), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)


class TDPDocument(Base):
    __tablename__ = "tdp_documents"

    id = Column(String, primary_key=True, default=new_uuid)
    project_id = Column(String, ForeignKey("projects.id"), nullable=False, index=True)
    document_type = Column(_enum(DocumentType), nullable=False)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    version = Column(String, nullable=False, default="1.0")
    file_url = Column(String, nullable=True)
    status = Column(_enum(DocumentStatus), nullable=False, default=DocumentStatus.DRAFT)
    author_id = Column(String, ForeignKey("profiles.id"), nullable=True)
    approved_by = Column(String, ForeignKey("profiles.id"), nullable=True)
    approval_date = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("idx_tdp_project_type", "project_id", "document_type"),
    )
