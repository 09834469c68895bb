"""initial_tracking_schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'tracked_keywords',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('keyword', sa.String(length=500), nullable=False),
        sa.Column('project_id', sa.String(length=100), nullable=False),
        sa.Column('device', sa.String(length=20), nullable=False),
        sa.Column('location_code', sa.Integer(), nullable=False),
        sa.Column('project_name', sa.String(length=255), nullable=True),
        sa.Column('location_name', sa.String(length=100), nullable=True),
        sa.Column('domain', sa.String(length=255), nullable=True),
        sa.Column('priority', sa.String(length=20), nullable=False),
        sa.Column('tracking_frequency', sa.String(length=20), nullable=False),
        sa.Column('target_position', sa.Integer(), nullable=True),
        sa.Column('search_volume', sa.Integer(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint(
            'keyword', 'project_id', 'device', 'location_code',
            name='uq_tracked_keyword_identity'
        )
    )
    op.create_index('ix_tracked_keywords_keyword', 'tracked_keywords', ['keyword'], unique=False)
    op.create_index('ix_tracked_keywords_project_id', 'tracked_keywords', ['project_id'], unique=False)
    op.create_index('ix_tracked_keywords_priority', 'tracked_keywords', ['priority'], unique=False)
    op.create_index('ix_tracked_keywords_is_active', 'tracked_keywords', ['is_active'], unique=False)
    op.create_index(
        'idx_tracked_keyword_due', 'tracked_keywords',
        ['is_active', 'priority', 'project_id'], unique=False
    )

    op.create_table(
        'position_history',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('keyword_id', sa.BigInteger(), nullable=False),
        sa.Column('observed_on', sa.Date(), nullable=False),
        sa.Column('device', sa.String(length=20), nullable=False),
        sa.Column('location', sa.String(length=50), nullable=False),
        sa.Column('source', sa.String(length=20), nullable=False),
        sa.Column('position', sa.Integer(), nullable=True),
        sa.Column('url', sa.Text(), nullable=True),
        sa.Column('features', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('raw_payload', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['keyword_id'], ['tracked_keywords.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint(
            'keyword_id', 'observed_on', 'device', 'location', 'source',
            name='uq_position_observation'
        )
    )
    op.create_index('ix_position_history_keyword_id', 'position_history', ['keyword_id'], unique=False)
    op.create_index('ix_position_history_observed_on', 'position_history', ['observed_on'], unique=False)
    op.create_index(
        'idx_position_keyword_date', 'position_history',
        ['keyword_id', 'observed_on'], unique=False
    )

    op.create_table(
        'tracking_alerts',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('keyword_id', sa.BigInteger(), nullable=False),
        sa.Column('project_id', sa.String(length=100), nullable=False),
        sa.Column('kind', sa.String(length=20), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('old_position', sa.Integer(), nullable=True),
        sa.Column('new_position', sa.Integer(), nullable=True),
        sa.Column('position_change', sa.Integer(), nullable=True),
        sa.Column('is_read', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['keyword_id'], ['tracked_keywords.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_tracking_alerts_keyword_id', 'tracking_alerts', ['keyword_id'], unique=False)
    op.create_index('ix_tracking_alerts_project_id', 'tracking_alerts', ['project_id'], unique=False)
    op.create_index('ix_tracking_alerts_kind', 'tracking_alerts', ['kind'], unique=False)
    op.create_index('ix_tracking_alerts_created_at', 'tracking_alerts', ['created_at'], unique=False)
    op.create_index('idx_alert_unread', 'tracking_alerts', ['is_read', 'created_at'], unique=False)

    op.create_table(
        'sync_log',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('kind', sa.String(length=20), nullable=False),
        sa.Column('project_id', sa.String(length=100), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('keywords_processed', sa.Integer(), nullable=False),
        sa.Column('keywords_succeeded', sa.Integer(), nullable=False),
        sa.Column('keywords_failed', sa.Integer(), nullable=False),
        sa.Column('errors', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('started_at', sa.DateTime(), nullable=False),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('duration_seconds', sa.Float(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_sync_log_kind', 'sync_log', ['kind'], unique=False)
    op.create_index('ix_sync_log_project_id', 'sync_log', ['project_id'], unique=False)
    op.create_index('ix_sync_log_status', 'sync_log', ['status'], unique=False)
    op.create_index('ix_sync_log_started_at', 'sync_log', ['started_at'], unique=False)
    op.create_index('idx_sync_log_kind_started', 'sync_log', ['kind', 'started_at'], unique=False)


def downgrade() -> None:
    op.drop_table('sync_log')
    op.drop_table('tracking_alerts')
    op.drop_table('position_history')
    op.drop_table('tracked_keywords')
