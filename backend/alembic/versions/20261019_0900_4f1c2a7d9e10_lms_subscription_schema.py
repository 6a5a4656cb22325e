"""LMS schema: plans, users, groups, memberships, learning paths, resources, activities

Revision ID: 4f1c2a7d9e10
Revises: 
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '4f1c2a7d9e10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


# Enum columns store member names
plan_name = sa.Enum('FREE', 'BASIC', 'PREMIUM', name='planname')
plan_duration = sa.Enum('MONTHLY', 'QUARTERLY', 'ANNUAL', 'INDEFINITE', name='planduration')
user_role = sa.Enum('STUDENT', 'TEACHER', 'ADMINISTRATOR', name='userrole')
membership_status = sa.Enum('PENDING', 'APPROVED', 'REJECTED', name='membershipstatus')
resource_type = sa.Enum('CONTENT', 'LINK', 'VIDEO', name='resourcetype')
activity_type = sa.Enum('QUIZ', 'QUESTIONNAIRE', 'ASSIGNMENT', name='activitytype')


def _base_columns() -> list[sa.Column]:
    return [
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
    ]


def upgrade() -> None:
    """Create all tables for the LMS subscription service."""
    # 1. Plans (no dependencies)
    op.create_table(
        'plans',
        *_base_columns(),
        sa.Column('name', plan_name, nullable=False),
        sa.Column('duration', plan_duration, nullable=False, server_default='INDEFINITE'),
        sa.Column('price', sa.Integer(), nullable=True),
        sa.Column('max_groups', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('max_students_per_group', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('max_routes', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('max_resources', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('max_activities', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_default_free', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name'),
    )
    op.create_index(op.f('ix_plans_is_active'), 'plans', ['is_active'])
    op.create_index(op.f('ix_plans_created_at'), 'plans', ['created_at'])
    op.create_index(
        'uq_plans_single_default_free',
        'plans',
        ['is_default_free'],
        unique=True,
        postgresql_where=sa.text('is_default_free'),
    )

    # 2. Users (depends on plans)
    op.create_table(
        'users',
        *_base_columns(),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('role', user_role, nullable=False, server_default='STUDENT'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('plan_id', sa.Uuid(), nullable=True),
        sa.Column('subscription_end_date', sa.DateTime(), nullable=True),
        sa.Column('groups_created', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('resources_generated', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('activities_generated', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('routes_created', sa.Integer(), nullable=False, server_default='0'),
        sa.ForeignKeyConstraint(['plan_id'], ['plans.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)
    op.create_index(op.f('ix_users_role'), 'users', ['role'])
    op.create_index(op.f('ix_users_plan_id'), 'users', ['plan_id'])
    op.create_index(op.f('ix_users_subscription_end_date'), 'users', ['subscription_end_date'])

    # 3. Groups (depends on users)
    op.create_table(
        'groups',
        *_base_columns(),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('access_code', sa.String(length=6), nullable=False),
        sa.Column('teacher_id', sa.Uuid(), nullable=False),
        sa.Column('is_archived', sa.Boolean(), nullable=False, server_default='false'),
        sa.ForeignKeyConstraint(['teacher_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_groups_access_code'), 'groups', ['access_code'], unique=True)
    op.create_index(op.f('ix_groups_teacher_id'), 'groups', ['teacher_id'])

    # 4. Group memberships (depends on groups, users)
    op.create_table(
        'group_memberships',
        *_base_columns(),
        sa.Column('group_id', sa.Uuid(), nullable=False),
        sa.Column('student_id', sa.Uuid(), nullable=False),
        sa.Column('status', membership_status, nullable=False, server_default='PENDING'),
        sa.ForeignKeyConstraint(['group_id'], ['groups.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['student_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('group_id', 'student_id', name='uq_membership_group_student'),
    )
    op.create_index(op.f('ix_group_memberships_group_id'), 'group_memberships', ['group_id'])
    op.create_index(op.f('ix_group_memberships_student_id'), 'group_memberships', ['student_id'])

    # 5. Learning paths (depends on groups)
    op.create_table(
        'learning_paths',
        *_base_columns(),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('group_id', sa.Uuid(), nullable=False),
        sa.ForeignKeyConstraint(['group_id'], ['groups.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_learning_paths_group_id'), 'learning_paths', ['group_id'])

    # 6. Content bank (depends on users)
    op.create_table(
        'resources',
        *_base_columns(),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('type', resource_type, nullable=False),
        sa.Column('body', sa.Text(), nullable=True),
        sa.Column('teacher_id', sa.Uuid(), nullable=False),
        sa.ForeignKeyConstraint(['teacher_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_resources_teacher_id'), 'resources', ['teacher_id'])

    op.create_table(
        'activities',
        *_base_columns(),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('type', activity_type, nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('teacher_id', sa.Uuid(), nullable=False),
        sa.ForeignKeyConstraint(['teacher_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_activities_teacher_id'), 'activities', ['teacher_id'])


def downgrade() -> None:
    """Drop all tables and enum types."""
    # Drop tables in reverse dependency order
    op.drop_table('activities')
    op.drop_table('resources')
    op.drop_table('learning_paths')
    op.drop_table('group_memberships')
    op.drop_table('groups')
    op.drop_table('users')
    op.drop_table('plans')

    bind = op.get_bind()
    for enum_type in (activity_type, resource_type, membership_status, user_role, plan_duration, plan_name):
        enum_type.drop(bind, checkfirst=True)
