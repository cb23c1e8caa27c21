"""Create partner program tables

Revision ID: 20260101_000001
Revises: 
Create Date: 2026-01-01

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '20260101_000001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


JSON_TYPE = sa.JSON().with_variant(postgresql.JSONB(), 'postgresql')


def upgrade() -> None:
    # Create partner_profiles table
    op.create_table(
        'partner_profiles',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('partner_code', sa.String(20), nullable=False),
        sa.Column('uid', sa.String(64), nullable=False),
        sa.Column('username', sa.String(255), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='active'),
        sa.Column('team_name', sa.String(100), nullable=True),
        sa.Column('remark', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('team_name', name='uq_partner_profiles_team_name'),
    )
    op.create_index('ix_partner_profiles_partner_code', 'partner_profiles', ['partner_code'], unique=True)
    op.create_index('ix_partner_profiles_uid', 'partner_profiles', ['uid'], unique=True)

    # Create partner_hierarchy table
    op.create_table(
        'partner_hierarchy',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('parent_partner_id', sa.Integer(), nullable=False),
        sa.Column('child_partner_id', sa.Integer(), nullable=False),
        sa.Column('level', sa.Integer(), nullable=False),
        sa.Column('source_channel_id', sa.String(64), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('bind_time', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('deactivated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['parent_partner_id'], ['partner_profiles.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['child_partner_id'], ['partner_profiles.id'], ondelete='CASCADE'),
        sa.CheckConstraint('level IN (1, 2)', name='check_partner_hierarchy_level'),
        sa.CheckConstraint('parent_partner_id <> child_partner_id', name='check_partner_hierarchy_no_self_edge'),
        sa.PrimaryKeyConstraint('id')
    )
    # At most one active edge per child and level
    op.create_index(
        'uq_partner_hierarchy_active_child_level',
        'partner_hierarchy',
        ['child_partner_id', 'level'],
        unique=True,
        postgresql_where=sa.text('is_active IS TRUE'),
    )
    op.create_index(
        'idx_partner_hierarchy_parent_level_active',
        'partner_hierarchy',
        ['parent_partner_id', 'level', 'is_active'],
    )

    # Create task_completion_logs table
    op.create_table(
        'task_completion_logs',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('task_code', sa.String(64), nullable=False),
        sa.Column('task_type', sa.String(32), nullable=False),
        sa.Column('partner_id', sa.Integer(), nullable=False),
        sa.Column('uid', sa.String(64), nullable=False),
        sa.Column('related_partner_id', sa.Integer(), nullable=True),
        sa.Column('related_uid', sa.String(64), nullable=True),
        sa.Column('event_type', sa.String(64), nullable=False),
        sa.Column('event_id', sa.String(255), nullable=False),
        sa.Column('business_params', JSON_TYPE, nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='completed'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['partner_id'], ['partner_profiles.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('task_code', 'partner_id', 'event_id', name='uq_task_completion_logs_task_partner_event'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_task_completion_logs_partner_status', 'task_completion_logs', ['partner_id', 'status'])
    op.create_index(
        'idx_task_completion_logs_task_partner_related',
        'task_completion_logs',
        ['task_code', 'partner_id', 'related_partner_id'],
    )
    op.create_index('ix_task_completion_logs_created_at', 'task_completion_logs', ['created_at'])

    # Create admin_operation_logs table
    op.create_table(
        'admin_operation_logs',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('partner_id', sa.Integer(), nullable=True),
        sa.Column('operation_type', sa.String(50), nullable=False),
        sa.Column('admin_id', sa.String(64), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('before_data', JSON_TYPE, nullable=True),
        sa.Column('after_data', JSON_TYPE, nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(
        'idx_admin_operation_logs_partner_created',
        'admin_operation_logs',
        ['partner_id', 'created_at'],
    )


def downgrade() -> None:
    op.drop_index('idx_admin_operation_logs_partner_created', 'admin_operation_logs')
    op.drop_table('admin_operation_logs')

    op.drop_index('ix_task_completion_logs_created_at', 'task_completion_logs')
    op.drop_index('idx_task_completion_logs_task_partner_related', 'task_completion_logs')
    op.drop_index('idx_task_completion_logs_partner_status', 'task_completion_logs')
    op.drop_table('task_completion_logs')

    op.drop_index('idx_partner_hierarchy_parent_level_active', 'partner_hierarchy')
    op.drop_index('uq_partner_hierarchy_active_child_level', 'partner_hierarchy')
    op.drop_table('partner_hierarchy')

    op.drop_index('ix_partner_profiles_uid', 'partner_profiles')
    op.drop_index('ix_partner_profiles_partner_code', 'partner_profiles')
    op.drop_table('partner_profiles')
