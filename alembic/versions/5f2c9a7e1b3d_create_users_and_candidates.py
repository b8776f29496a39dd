"""create_users_and_candidates

Initial schema for referral tracking.

This migration creates:
1. users - referrer identities mirrored from the authentication service
2. candidates - referred candidates with a unique email and resume handle columns

Revision ID: 5f2c9a7e1b3d
Revises:
Create Date: 2026-10-19 09:12:40.118203

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '5f2c9a7e1b3d'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

CANDIDATE_STATUSES = ('Pending', 'Reviewed', 'Hired', 'Rejected')


def upgrade() -> None:
    """Create users and candidates tables."""

    op.create_table(
        'users',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_users_id', 'users', ['id'])
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'candidates',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('phone', sa.String(32), nullable=False),
        sa.Column('job_title', sa.String(100), nullable=False),
        sa.Column('status', sa.Enum(*CANDIDATE_STATUSES, name='candidate_status'), nullable=False, server_default='Pending'),
        sa.Column('notes', sa.Text(), nullable=False, server_default=''),
        sa.Column('referred_by_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('attachment_locator', sa.String(512), nullable=True),
        sa.Column('attachment_filename', sa.String(255), nullable=True),
        sa.Column('attachment_mime_type', sa.String(100), nullable=True),
        sa.Column('attachment_size', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        # Deleting a referrer keeps their referrals
        sa.ForeignKeyConstraint(
            ['referred_by_id'], ['users.id'],
            name='fk_candidates_referred_by_id_users', ondelete='SET NULL'
        ),
    )
    op.create_index('ix_candidates_id', 'candidates', ['id'])
    # Unique index is what stops concurrent duplicate referrals
    op.create_index('ix_candidates_email', 'candidates', ['email'], unique=True)
    op.create_index('ix_candidates_job_title', 'candidates', ['job_title'])
    op.create_index('ix_candidates_status', 'candidates', ['status'])
    op.create_index('ix_candidates_referred_by_id', 'candidates', ['referred_by_id'])
    op.create_index('ix_candidates_created_at', 'candidates', ['created_at'])


def downgrade() -> None:
    """Drop candidates and users tables."""
    op.drop_table('candidates')
    op.drop_table('users')
    postgresql.ENUM(name='candidate_status').drop(op.get_bind(), checkfirst=True)
