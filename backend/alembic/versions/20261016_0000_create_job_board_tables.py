"""create_job_listings_and_applications_tables

Revision ID: 20261016_0000
Revises:
Create Date: 2026-10-16 00:00:00.000000+00:00

"""
from alembic import op
import sqlalchemy as sa

from jobboard.database_types import GUID, JSON


revision = '20261016_0000'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'job_listings',
        sa.Column('id', GUID(), nullable=False),
        sa.Column('slug', sa.String(length=255), nullable=True),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('role', sa.String(), nullable=False),
        sa.Column('experience_min', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('experience_max', sa.Integer(), nullable=True),
        sa.Column('experience_unit', sa.String(), nullable=False, server_default='years'),
        sa.Column('qualifications', JSON(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('company_name', sa.String(), nullable=True),
        sa.Column('company_logo', sa.String(), nullable=True),
        sa.Column('company_website', sa.String(), nullable=True),
        sa.Column('location_city', sa.String(), nullable=True),
        sa.Column('location_state', sa.String(), nullable=True),
        sa.Column('location_country', sa.String(), nullable=True),
        sa.Column('is_remote', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('salary', JSON(), nullable=True),
        sa.Column('employment_type', sa.String(), nullable=False, server_default='full_time'),
        sa.Column('custom_sections', JSON(), nullable=False),
        sa.Column('media', JSON(), nullable=False),
        sa.Column('status', sa.String(), nullable=False, server_default='draft'),
        sa.Column('is_published', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('published_at', sa.DateTime(), nullable=True),
        sa.Column('expires_at', sa.DateTime(), nullable=True),
        sa.Column('views', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('applications', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('tags', JSON(), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_job_listings_slug'), 'job_listings', ['slug'], unique=True)
    op.create_index(op.f('ix_job_listings_location_city'), 'job_listings', ['location_city'], unique=False)
    op.create_index(op.f('ix_job_listings_location_country'), 'job_listings', ['location_country'], unique=False)
    op.create_index(op.f('ix_job_listings_employment_type'), 'job_listings', ['employment_type'], unique=False)
    op.create_index('idx_job_listings_published', 'job_listings', ['is_published', 'status'], unique=False)
    op.create_index('idx_job_listings_created_at', 'job_listings', ['created_at'], unique=False)

    op.create_table(
        'applications',
        sa.Column('id', GUID(), nullable=False),
        sa.Column('job_listing_id', GUID(), nullable=False),
        sa.Column('candidate_name', sa.String(length=255), nullable=False),
        sa.Column('candidate_email', sa.String(length=320), nullable=False),
        sa.Column('candidate_phone', sa.String(length=50), nullable=True),
        sa.Column('responses', JSON(), nullable=False),
        sa.Column('form_snapshot', JSON(), nullable=False),
        sa.Column('status', sa.String(), nullable=False, server_default='submitted'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('rating', sa.Integer(), nullable=True),
        sa.Column('submitted_at', sa.DateTime(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('candidate_email', 'job_listing_id', name='uq_candidate_job'),
    )
    op.create_index(op.f('ix_applications_job_listing_id'), 'applications', ['job_listing_id'], unique=False)
    op.create_index(op.f('ix_applications_candidate_email'), 'applications', ['candidate_email'], unique=False)
    op.create_index('idx_applications_job_status', 'applications', ['job_listing_id', 'status'], unique=False)


def downgrade() -> None:
    op.drop_index('idx_applications_job_status', table_name='applications')
    op.drop_index(op.f('ix_applications_candidate_email'), table_name='applications')
    op.drop_index(op.f('ix_applications_job_listing_id'), table_name='applications')
    op.drop_table('applications')

    op.drop_index('idx_job_listings_created_at', table_name='job_listings')
    op.drop_index('idx_job_listings_published', table_name='job_listings')
    op.drop_index(op.f('ix_job_listings_employment_type'), table_name='job_listings')
    op.drop_index(op.f('ix_job_listings_location_country'), table_name='job_listings')
    op.drop_index(op.f('ix_job_listings_location_city'), table_name='job_listings')
    op.drop_index(op.f('ix_job_listings_slug'), table_name='job_listings')
    op.drop_table('job_listings')
