"""Create Users, Projects, ProjectMembers, Tasks and TaskComments tables.

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-18 09:00:00.000000

Initial schema. Projects carry the denormalized total_tasks /
completed_tasks counters, guarded by check constraints so the completed
count can never exceed the total.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '0001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create all tables."""
    op.create_table(
        'Users',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=20), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('avatar_url', sa.String(length=500), nullable=True),
        sa.Column('last_login_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_Users_email', 'Users', ['email'], unique=True)
    op.create_index('ix_Users_role', 'Users', ['role'], unique=False)

    op.create_table(
        'Projects',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('created_by', sa.Uuid(), nullable=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('priority', sa.String(length=20), nullable=False),
        sa.Column('start_date', sa.DateTime(), nullable=True),
        sa.Column('end_date', sa.DateTime(), nullable=True),
        sa.Column('total_tasks', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('completed_tasks', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_archived', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('archived_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('completed_tasks >= 0', name='ck_projects_completed_non_negative'),
        sa.CheckConstraint('completed_tasks <= total_tasks', name='ck_projects_completed_le_total'),
        sa.ForeignKeyConstraint(['created_by'], ['Users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_Projects_created_by', 'Projects', ['created_by'], unique=False)
    op.create_index('ix_Projects_status', 'Projects', ['status'], unique=False)

    op.create_table(
        'ProjectMembers',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('project_id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('role', sa.String(length=20), nullable=False),
        sa.Column('added_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['project_id'], ['Projects.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['Users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('project_id', 'user_id', name='uq_project_members_project_user'),
    )
    op.create_index('ix_ProjectMembers_project_id', 'ProjectMembers', ['project_id'], unique=False)
    op.create_index('ix_ProjectMembers_user_id', 'ProjectMembers', ['user_id'], unique=False)

    op.create_table(
        'Tasks',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('project_id', sa.Uuid(), nullable=False),
        sa.Column('assigned_to', sa.Uuid(), nullable=True),
        sa.Column('created_by', sa.Uuid(), nullable=True),
        sa.Column('title', sa.String(length=500), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('priority', sa.String(length=20), nullable=False),
        sa.Column('due_date', sa.DateTime(), nullable=True),
        sa.Column('start_date', sa.DateTime(), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('estimated_hours', sa.Float(), nullable=True),
        sa.Column('actual_hours', sa.Float(), nullable=True),
        sa.Column('tags', sa.JSON(), nullable=False),
        sa.Column('dependencies', sa.JSON(), nullable=False),
        sa.Column('is_archived', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['project_id'], ['Projects.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['assigned_to'], ['Users.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['created_by'], ['Users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_Tasks_project_id', 'Tasks', ['project_id'], unique=False)
    op.create_index('ix_Tasks_assigned_to', 'Tasks', ['assigned_to'], unique=False)
    op.create_index('ix_Tasks_created_by', 'Tasks', ['created_by'], unique=False)
    op.create_index('ix_Tasks_status', 'Tasks', ['status'], unique=False)

    op.create_table(
        'TaskComments',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('task_id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=True),
        sa.Column('content', sa.String(length=500), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['task_id'], ['Tasks.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['Users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_TaskComments_task_id', 'TaskComments', ['task_id'], unique=False)


def downgrade() -> None:
    """Drop all tables."""
    op.drop_index('ix_TaskComments_task_id', table_name='TaskComments')
    op.drop_table('TaskComments')
    op.drop_index('ix_Tasks_status', table_name='Tasks')
    op.drop_index('ix_Tasks_created_by', table_name='Tasks')
    op.drop_index('ix_Tasks_assigned_to', table_name='Tasks')
    op.drop_index('ix_Tasks_project_id', table_name='Tasks')
    op.drop_table('Tasks')
    op.drop_index('ix_ProjectMembers_user_id', table_name='ProjectMembers')
    op.drop_index('ix_ProjectMembers_project_id', table_name='ProjectMembers')
    op.drop_table('ProjectMembers')
    op.drop_index('ix_Projects_status', table_name='Projects')
    op.drop_index('ix_Projects_created_by', table_name='Projects')
    op.drop_table('Projects')
    op.drop_index('ix_Users_role', table_name='Users')
    op.drop_index('ix_Users_email', table_name='Users')
    op.drop_table('Users')
