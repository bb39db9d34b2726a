"""Initial metrology schema (profiles, roles, projects, instruments, production, quality, TDP)

Revision ID: a1f4c2d8e6b0
Revises:
Create Date: 2026-03-02T09:15:41.518204
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision: str = 'a1f4c2d8e6b0'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

TRL_LEVELS = tuple(f'TRL{n}' for n in range(1, 10))

# Shared by four columns; created once up front
trl_level = postgresql.ENUM(*TRL_LEVELS, name='trllevel', create_type=False)


def upgrade() -> None:
    trl_level.create(op.get_bind(), checkfirst=True)

    # --- profiles ---
    op.create_table(
        'profiles',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('full_name', sa.String(), nullable=True),
        sa.Column('password_hash', sa.String(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=True, server_default='true'),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_profiles_email', 'profiles', ['email'], unique=True)
    op.create_index('ix_profiles_is_active', 'profiles', ['is_active'])

    # --- user_roles ---
    op.create_table(
        'user_roles',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('user_id', sa.String(), sa.ForeignKey('profiles.id'), nullable=False),
        sa.Column('role', sa.Enum('admin', 'technician', 'regular_user', name='approle'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'role', name='uq_user_role'),
    )
    op.create_index('ix_user_roles_user_id', 'user_roles', ['user_id'])

    # --- revoked_tokens ---
    op.create_table(
        'revoked_tokens',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('jti', sa.String(), nullable=False),
        sa.Column('user_id', sa.String(), sa.ForeignKey('profiles.id'), nullable=False),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_revoked_tokens_jti', 'revoked_tokens', ['jti'], unique=True)

    # --- projects ---
    op.create_table(
        'projects',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('current_trl', trl_level, nullable=False),
        sa.Column('target_trl', trl_level, nullable=False),
        sa.Column('status', sa.Enum('planning', 'in_progress', 'paused', 'completed', 'cancelled', name='projectstatus'), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('expected_end_date', sa.Date(), nullable=True),
        sa.Column('responsible_user_id', sa.String(), sa.ForeignKey('profiles.id'), nullable=True),
        sa.Column('created_by', sa.String(), sa.ForeignKey('profiles.id'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_projects_name', 'projects', ['name'])
    op.create_index('ix_projects_status', 'projects', ['status'])
    op.create_index('ix_projects_created_at', 'projects', ['created_at'])

    # --- trl_history ---
    op.create_table(
        'trl_history',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('project_id', sa.String(), sa.ForeignKey('projects.id'), nullable=False),
        sa.Column('from_trl', trl_level, nullable=False),
        sa.Column('to_trl', trl_level, nullable=False),
        sa.Column('validation_date', sa.Date(), nullable=False),
        sa.Column('validated_by', sa.String(), sa.ForeignKey('profiles.id'), nullable=True),
        sa.Column('evidence', sa.Text(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_trl_history_project_id', 'trl_history', ['project_id'])

    # --- instruments ---
    op.create_table(
        'instruments',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('manufacturer', sa.String(), nullable=True),
        sa.Column('model', sa.String(), nullable=True),
        sa.Column('serial_number', sa.String(), nullable=True),
        sa.Column('category', sa.String(), nullable=False),
        sa.Column('metrology_area', sa.Enum('physical', 'chemical', 'biological', name='metrologyarea'), nullable=True),
        sa.Column('location', sa.String(), nullable=True),
        sa.Column('calibration_frequency_months', sa.Integer(), nullable=False, server_default='12'),
        sa.Column('last_calibration_date', sa.Date(), nullable=True),
        sa.Column('next_calibration_date', sa.Date(), nullable=True),
        sa.Column('status', sa.Enum('active', 'inactive', 'under_maintenance', name='instrumentstatus'), nullable=False, server_default='active'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_instruments_name', 'instruments', ['name'])

    # --- calibrations ---
    op.create_table(
        'calibrations',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('instrument_id', sa.String(), sa.ForeignKey('instruments.id'), nullable=False),
        sa.Column('calibration_date', sa.Date(), nullable=False),
        sa.Column('next_calibration_date', sa.Date(), nullable=False),
        sa.Column('result', sa.Enum('approved', 'approved_with_restrictions', 'rejected', name='calibrationresult'), nullable=False),
        sa.Column('calibration_lab', sa.String(), nullable=True),
        sa.Column('certificate_number', sa.String(), nullable=True),
        sa.Column('performed_by', sa.String(), nullable=True),
        sa.Column('uncertainty_value', sa.Float(), nullable=True),
        sa.Column('uncertainty_unit', sa.String(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_calibrations_instrument_id', 'calibrations', ['instrument_id'])

    # --- production_batches ---
    op.create_table(
        'production_batches',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('project_id', sa.String(), sa.ForeignKey('projects.id'), nullable=False),
        sa.Column('batch_number', sa.String(), nullable=False),
        sa.Column('production_stage', sa.Enum('development', 'pilot', 'industrial_scale', name='productionstage'), nullable=False),
        sa.Column('production_date', sa.Date(), nullable=False),
        sa.Column('quantity', sa.Float(), nullable=False),
        sa.Column('unit', sa.String(), nullable=False),
        sa.Column('status', sa.Enum('in_production', 'completed', 'cancelled', name='batchstatus'), nullable=False, server_default='in_production'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_by', sa.String(), sa.ForeignKey('profiles.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('batch_number'),
    )
    op.create_index('ix_production_batches_project_id', 'production_batches', ['project_id'])
    op.create_index('ix_production_batches_production_date', 'production_batches', ['production_date'])

    # --- non_conformities ---
    op.create_table(
        'non_conformities',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('project_id', sa.String(), sa.ForeignKey('projects.id'), nullable=True),
        sa.Column('batch_id', sa.String(), sa.ForeignKey('production_batches.id'), nullable=True),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('severity', sa.Enum('low', 'medium', 'high', 'critical', name='severity'), nullable=False),
        sa.Column('detected_date', sa.Date(), nullable=False),
        sa.Column('status', sa.Enum('open', 'under_analysis', 'closed', name='nonconformitystatus'), nullable=False, server_default='open'),
        sa.Column('root_cause', sa.Text(), nullable=True),
        sa.Column('corrective_action', sa.Text(), nullable=True),
        sa.Column('resolution_date', sa.Date(), nullable=True),
        sa.Column('reported_by', sa.String(), sa.ForeignKey('profiles.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_non_conformities_project_id', 'non_conformities', ['project_id'])
    op.create_index('ix_non_conformities_batch_id', 'non_conformities', ['batch_id'])
    op.create_index('ix_non_conformities_severity', 'non_conformities', ['severity'])
    op.create_index('ix_non_conformities_detected_date', 'non_conformities', ['detected_date'])
    op.create_index('ix_non_conformities_status', 'non_conformities', ['status'])

    # --- quality_indicators ---
    op.create_table(
        'quality_indicators',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('project_id', sa.String(), sa.ForeignKey('projects.id'), nullable=False),
        sa.Column('indicator_name', sa.String(), nullable=False),
        sa.Column('indicator_type', sa.Enum(
            'dimensional', 'purity', 'concentration', 'yield', 'moisture', 'viscosity', 'ph', 'other',
            name='indicatortype'), nullable=False),
        sa.Column('target_value', sa.Float(), nullable=False),
        sa.Column('current_value', sa.Float(), nullable=False),
        sa.Column('unit', sa.String(), nullable=True),
        sa.Column('measurement_date', sa.Date(), nullable=False),
        sa.Column('status', sa.Enum('conforming', 'attention', 'non_conforming', name='qualitystatus'), nullable=False),
        sa.Column('measured_by', sa.String(), sa.ForeignKey('profiles.id'), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_quality_indicators_project_id', 'quality_indicators', ['project_id'])
    op.create_index('ix_quality_indicators_measurement_date', 'quality_indicators', ['measurement_date'])

    # --- tdp_documents ---
    op.create_table(
        'tdp_documents',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('project_id', sa.String(), sa.ForeignKey('projects.id'), nullable=False),
        sa.Column('document_type', sa.Enum(
            'drawing', 'specification', 'bill_of_materials', 'procedure', 'test_report',
            'manual', 'certificate', 'other', name='documenttype'), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('version', sa.String(), nullable=False, server_default="1.0"),
        sa.Column('file_url', sa.String(), nullable=True),
        sa.Column('status', sa.Enum('draft', 'in_review', 'approved', 'obsolete', name='documentstatus'), nullable=False, server_default='draft'),
        sa.Column('author_id', sa.String(), sa.ForeignKey('profiles.id'), nullable=True),
        sa.Column('approved_by', sa.String(), sa.ForeignKey('profiles.id'), nullable=True),
        sa.Column('approval_date', sa.Date(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_tdp_documents_project_id', 'tdp_documents', ['project_id'])
    op.create_index('ix_tdp_documents_created_at', 'tdp_documents', ['created_at'])
    op.create_index('idx_tdp_project_type', 'tdp_documents', ['project_id', 'document_type'])


def downgrade() -> None:
    for table in (
        'tdp_documents', 'quality_indicators', 'non_conformities', 'production_batches',
        'calibrations', 'instruments', 'trl_history', 'projects',
        'revoked_tokens', 'user_roles', 'profiles',
    ):
        op.drop_table(table)
    for enum_name in (
        'documentstatus', 'documenttype', 'qualitystatus', 'indicatortype', 'nonconformitystatus',
        'severity', 'batchstatus', 'productionstage', 'calibrationresult', 'instrumentstatus',
        'metrologyarea', 'projectstatus', 'trllevel', 'approle',
    ):
        sa.Enum(name=enum_name).drop(op.get_bind(), checkfirst=True)
