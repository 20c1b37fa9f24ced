"""Initial schema: identity, tenancy, planning, delivery, discovery and audit.

Revision ID: 001
Revises:
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


ENUM_TYPES = {
    'role': ('STAKEHOLDER', 'CONTRIBUTOR', 'PRODUCT_MANAGER', 'ADMIN'),
    'invitationstatus': ('PENDING', 'ACCEPTED', 'EXPIRED', 'REVOKED'),
    'lifecyclestage': ('IDEATION', 'DISCOVERY', 'DEFINITION', 'DELIVERY', 'LAUNCH', 'GROWTH', 'MATURITY', 'SUNSET'),
    'ideapriority': ('HIGH', 'MEDIUM', 'LOW'),
    'ideastatus': ('SUBMITTED', 'REVIEWING', 'APPROVED', 'REJECTED', 'CONVERTED'),
    'sprintstatus': ('PLANNED', 'ACTIVE', 'COMPLETED', 'CANCELLED'),
    'tasktype': ('STORY', 'BUG', 'TASK', 'EPIC', 'SPIKE'),
    'taskpriority': ('LOW', 'MEDIUM', 'HIGH', 'CRITICAL'),
    'taskstatus': ('NEW', 'IN_PROGRESS', 'IN_REVIEW', 'DONE', 'CANCELLED'),
    'okrstatus': ('ACTIVE', 'COMPLETED', 'CANCELLED', 'ARCHIVED'),
    'keyresulttype': ('INCREASE', 'DECREASE', 'MAINTAIN', 'BINARY'),
    'keyresultstatus': ('ACTIVE', 'COMPLETED', 'AT_RISK', 'CANCELLED'),
    'releasetype': ('MAJOR', 'MINOR', 'PATCH', 'HOTFIX'),
    'releasestatus': ('PLANNED', 'IN_PROGRESS', 'RELEASED', 'CANCELLED'),
    'changelogtype': ('FEATURE', 'IMPROVEMENT', 'BUG_FIX', 'BREAKING_CHANGE', 'SECURITY', 'DEPRECATED'),
    'changelogvisibility': ('PUBLIC', 'PRIVATE', 'INTERNAL'),
    'checklistcategory': ('PREPARATION', 'TESTING', 'DEPLOYMENT', 'MONITORING', 'COMMUNICATION', 'ROLLBACK'),
    'interviewstatus': ('SCHEDULED', 'COMPLETED', 'CANCELLED', 'NO_SHOW'),
    'insightsource': ('INTERVIEW', 'SURVEY', 'ANALYTICS', 'EXPERIMENT', 'FEEDBACK', 'OBSERVATION'),
    'insightimpact': ('LOW', 'MEDIUM', 'HIGH', 'CRITICAL'),
}


def _enum(name: str) -> postgresql.ENUM:
    # Types are created up front; several tables share them
    return postgresql.ENUM(*ENUM_TYPES[name], name=name, create_type=False)


def _id() -> sa.Column:
    return sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True)


def _fk(name: str, target: str, ondelete: str = 'CASCADE', nullable: bool = False) -> sa.Column:
    return sa.Column(name, postgresql.UUID(as_uuid=True), sa.ForeignKey(target, ondelete=ondelete), nullable=nullable)


def _timestamps() -> list:
    return [
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.text('NOW()')),
        sa.Column('updated_at', sa.DateTime, nullable=False, server_default=sa.text('NOW()')),
    ]


def _soft_delete() -> sa.Column:
    return sa.Column('deleted_at', sa.DateTime, nullable=True)


def _live_indexes(table: str) -> None:
    op.create_index(f'ix_{table}_created_at', table, ['created_at'])
    op.create_index(f'ix_{table}_deleted_at', table, ['deleted_at'])


def upgrade() -> None:
    for name, values in ENUM_TYPES.items():
        labels = ", ".join(f"'{value}'" for value in values)
        op.execute(f"CREATE TYPE {name} AS ENUM ({labels})")

    # Identity
    op.create_table(
        'users',
        _id(),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('name', sa.String(255)),
        sa.Column('password_hash', sa.String(255)),
        *_timestamps(),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_created_at', 'users', ['created_at'])

    op.create_table(
        'user_profiles',
        _id(),
        _fk('user_id', 'users.id'),
        sa.Column('title', sa.String(255)),
        sa.Column('bio', sa.Text),
        sa.Column('timezone', sa.String(64), server_default='UTC'),
        *_timestamps(),
        sa.UniqueConstraint('user_id', name='user_profiles_user_id_key'),
    )

    op.create_table(
        'session_tokens',
        _id(),
        _fk('user_id', 'users.id'),
        sa.Column('token_hash', sa.String(64), nullable=False),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.text('NOW()')),
        sa.Column('last_used_at', sa.DateTime),
        sa.Column('expires_at', sa.DateTime, nullable=False),
        sa.Column('revoked_at', sa.DateTime),
    )
    op.create_index('ix_session_tokens_user_id', 'session_tokens', ['user_id'])
    op.create_index('ix_session_tokens_token_hash', 'session_tokens', ['token_hash'], unique=True)

    # Tenancy
    op.create_table(
        'organizations',
        _id(),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('slug', sa.String(100), nullable=False),
        sa.Column('description', sa.Text),
        sa.Column('website', sa.String(500)),
        sa.Column('logo', sa.String(500)),
        sa.Column('settings', postgresql.JSONB, server_default='{}'),
        *_timestamps(),
        _soft_delete(),
    )
    op.create_index('ix_organizations_slug', 'organizations', ['slug'], unique=True)
    _live_indexes('organizations')

    op.create_table(
        'teams',
        _id(),
        _fk('organization_id', 'organizations.id'),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('slug', sa.String(100), nullable=False),
        sa.Column('description', sa.Text),
        *_timestamps(),
        _soft_delete(),
    )
    op.create_index('ix_teams_organization_id', 'teams', ['organization_id'])
    op.create_index(
        'uq_teams_org_slug_live', 'teams', ['organization_id', 'slug'],
        unique=True, postgresql_where=sa.text('deleted_at IS NULL'),
    )
    _live_indexes('teams')

    op.create_table(
        'memberships',
        _id(),
        _fk('user_id', 'users.id'),
        _fk('organization_id', 'organizations.id'),
        _fk('team_id', 'teams.id', nullable=True),
        sa.Column('role', _enum('role'), nullable=False, server_default='CONTRIBUTOR'),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.text('NOW()')),
        sa.UniqueConstraint('user_id', 'organization_id', 'team_id', name='uq_membership_user_org_team'),
    )
    op.create_index('ix_memberships_user_id', 'memberships', ['user_id'])
    op.create_index('ix_memberships_organization_id', 'memberships', ['organization_id'])
    op.create_index('ix_memberships_team_id', 'memberships', ['team_id'])
    op.create_index('ix_memberships_role', 'memberships', ['role'])
    op.create_index(
        'uq_membership_org_level', 'memberships', ['user_id', 'organization_id'],
        unique=True, postgresql_where=sa.text('team_id IS NULL'),
    )

    op.create_table(
        'invitations',
        _id(),
        _fk('organization_id', 'organizations.id'),
        _fk('team_id', 'teams.id', ondelete='SET NULL', nullable=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('role', _enum('role'), nullable=False),
        sa.Column('token', sa.String(64), nullable=False, unique=True),
        sa.Column('status', _enum('invitationstatus'), nullable=False, server_default='PENDING'),
        _fk('invited_by_id', 'users.id', ondelete='SET NULL', nullable=True),
        sa.Column('expires_at', sa.DateTime, nullable=False),
        sa.Column('accepted_at', sa.DateTime),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.text('NOW()')),
    )
    op.create_index('ix_invitations_organization_id', 'invitations', ['organization_id'])
    op.create_index('ix_invitations_email', 'invitations', ['email'])

    # Products and planning
    op.create_table(
        'products',
        _id(),
        _fk('organization_id', 'organizations.id'),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('key', sa.String(32), nullable=False),
        sa.Column('description', sa.Text),
        sa.Column('vision', sa.Text),
        sa.Column('lifecycle', _enum('lifecyclestage'), nullable=False, server_default='IDEATION'),
        sa.Column('settings', postgresql.JSONB, server_default='{}'),
        sa.Column('metrics', postgresql.JSONB, server_default='{}'),
        *_timestamps(),
        _soft_delete(),
    )
    op.create_index('ix_products_organization_id', 'products', ['organization_id'])
    op.create_index('ix_products_key', 'products', ['key'], unique=True)
    _live_indexes('products')

    op.create_table(
        'product_teams',
        sa.Column('product_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('products.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('team_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('teams.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.text('NOW()')),
    )

    op.create_table(
        'ideas',
        _id(),
        _fk('product_id', 'products.id'),
        _fk('creator_id', 'users.id', ondelete='SET NULL', nullable=True),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('description', sa.Text, nullable=False),
        sa.Column('problem', sa.Text),
        sa.Column('hypothesis', sa.Text),
        sa.Column('source', sa.String(255)),
        sa.Column('tags', postgresql.JSONB, server_default='[]'),
        sa.Column('priority', _enum('ideapriority'), nullable=False, server_default='MEDIUM'),
        sa.Column('status', _enum('ideastatus'), nullable=False, server_default='SUBMITTED'),
        sa.Column('reach_score', sa.Integer),
        sa.Column('impact_score', sa.Integer),
        sa.Column('confidence_score', sa.Integer),
        sa.Column('effort_score', sa.Integer),
        sa.Column('votes', sa.Integer, nullable=False, server_default='0'),
        *_timestamps(),
        _soft_delete(),
        sa.CheckConstraint('votes >= 0', name='chk_idea_votes_non_negative'),
    )
    op.create_index('ix_ideas_product_id', 'ideas', ['product_id'])
    op.create_index('ix_ideas_creator_id', 'ideas', ['creator_id'])
    op.create_index('ix_ideas_status', 'ideas', ['status'])
    _live_indexes('ideas')

    # Delivery (releases before features: features point at releases)
    op.create_table(
        'releases',
        _id(),
        _fk('product_id', 'products.id'),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('version', sa.String(50), nullable=False),
        sa.Column('description', sa.Text),
        sa.Column('notes', sa.Text),
        sa.Column('type', _enum('releasetype'), nullable=False, server_default='MINOR'),
        sa.Column('status', _enum('releasestatus'), nullable=False, server_default='PLANNED'),
        sa.Column('release_date', sa.DateTime),
        sa.Column('artifacts', postgresql.JSONB, server_default='[]'),
        *_timestamps(),
        _soft_delete(),
    )
    op.create_index('ix_releases_product_id', 'releases', ['product_id'])
    op.create_index('ix_releases_status', 'releases', ['status'])
    _live_indexes('releases')

    op.create_table(
        'features',
        _id(),
        _fk('product_id', 'products.id'),
        _fk('release_id', 'releases.id', ondelete='SET NULL', nullable=True),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('description', sa.Text),
        *_timestamps(),
        _soft_delete(),
    )
    op.create_index('ix_features_product_id', 'features', ['product_id'])
    op.create_index('ix_features_release_id', 'features', ['release_id'])
    _live_indexes('features')

    op.create_table(
        'sprints',
        _id(),
        _fk('product_id', 'products.id'),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('goal', sa.Text),
        sa.Column('start_date', sa.DateTime, nullable=False),
        sa.Column('end_date', sa.DateTime, nullable=False),
        sa.Column('capacity', sa.Integer),
        sa.Column('velocity', sa.Integer),
        sa.Column('status', _enum('sprintstatus'), nullable=False, server_default='PLANNED'),
        *_timestamps(),
        _soft_delete(),
    )
    op.create_index('ix_sprints_product_id', 'sprints', ['product_id'])
    op.create_index('ix_sprints_status', 'sprints', ['status'])
    _live_indexes('sprints')

    op.create_table(
        'tasks',
        _id(),
        _fk('product_id', 'products.id'),
        _fk('sprint_id', 'sprints.id', ondelete='SET NULL', nullable=True),
        _fk('feature_id', 'features.id', ondelete='SET NULL', nullable=True),
        _fk('assignee_id', 'users.id', ondelete='SET NULL', nullable=True),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('description', sa.Text),
        sa.Column('type', _enum('tasktype'), nullable=False, server_default='STORY'),
        sa.Column('priority', _enum('taskpriority'), nullable=False, server_default='MEDIUM'),
        sa.Column('status', _enum('taskstatus'), nullable=False, server_default='NEW'),
        sa.Column('effort', sa.Integer),
        sa.Column('time_estimate', sa.Integer),
        sa.Column('time_spent', sa.Integer),
        sa.Column('acceptance_criteria', sa.Text),
        *_timestamps(),
        _soft_delete(),
    )
    op.create_index('ix_tasks_product_id', 'tasks', ['product_id'])
    op.create_index('ix_tasks_sprint_id', 'tasks', ['sprint_id'])
    op.create_index('ix_tasks_assignee_id', 'tasks', ['assignee_id'])
    op.create_index('ix_tasks_status', 'tasks', ['status'])
    _live_indexes('tasks')

    op.create_table(
        'okrs',
        _id(),
        _fk('product_id', 'products.id'),
        _fk('owner_id', 'users.id', ondelete='SET NULL', nullable=True),
        sa.Column('objective', sa.String(500), nullable=False),
        sa.Column('description', sa.Text),
        sa.Column('quarter', sa.String(10), nullable=False),
        sa.Column('year', sa.Integer, nullable=False),
        sa.Column('status', _enum('okrstatus'), nullable=False, server_default='ACTIVE'),
        sa.Column('progress', sa.Float, nullable=False, server_default='0'),
        *_timestamps(),
        _soft_delete(),
    )
    op.create_index('ix_okrs_product_id', 'okrs', ['product_id'])
    op.create_index('ix_okrs_status', 'okrs', ['status'])
    _live_indexes('okrs')

    op.create_table(
        'key_results',
        _id(),
        _fk('okr_id', 'okrs.id'),
        sa.Column('description', sa.Text, nullable=False),
        sa.Column('target', sa.Float, nullable=False),
        sa.Column('current', sa.Float, nullable=False, server_default='0'),
        sa.Column('unit', sa.String(50)),
        sa.Column('type', _enum('keyresulttype'), nullable=False, server_default='INCREASE'),
        sa.Column('status', _enum('keyresultstatus'), nullable=False, server_default='ACTIVE'),
        *_timestamps(),
        _soft_delete(),
    )
    op.create_index('ix_key_results_okr_id', 'key_results', ['okr_id'])
    _live_indexes('key_results')

    op.create_table(
        'changelogs',
        _id(),
        _fk('product_id', 'products.id'),
        _fk('release_id', 'releases.id', ondelete='SET NULL', nullable=True),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('description', sa.Text, nullable=False),
        sa.Column('type', _enum('changelogtype'), nullable=False, server_default='FEATURE'),
        sa.Column('visibility', _enum('changelogvisibility'), nullable=False, server_default='PUBLIC'),
        *_timestamps(),
        _soft_delete(),
    )
    op.create_index('ix_changelogs_product_id', 'changelogs', ['product_id'])
    op.create_index('ix_changelogs_release_id', 'changelogs', ['release_id'])
    _live_indexes('changelogs')

    op.create_table(
        'launch_checklist_items',
        _id(),
        _fk('release_id', 'releases.id'),
        sa.Column('title', sa.String(300), nullable=False),
        sa.Column('description', sa.Text),
        sa.Column('category', _enum('checklistcategory'), nullable=False, server_default='PREPARATION'),
        sa.Column('is_required', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('is_completed', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('completed_at', sa.DateTime),
        _fk('assignee_id', 'users.id', ondelete='SET NULL', nullable=True),
        sa.Column('due_date', sa.DateTime),
        *_timestamps(),
        _soft_delete(),
    )
    op.create_index('ix_launch_checklist_items_release_id', 'launch_checklist_items', ['release_id'])
    _live_indexes('launch_checklist_items')

    op.create_table(
        'feature_flags',
        _id(),
        _fk('product_id', 'products.id'),
        _fk('feature_id', 'features.id', ondelete='SET NULL', nullable=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('key', sa.String(100), nullable=False),
        sa.Column('description', sa.Text),
        sa.Column('enabled', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('rollout', sa.Float, nullable=False, server_default='0'),
        sa.Column('targeting', postgresql.JSONB, server_default='{}'),
        sa.Column('variants', postgresql.JSONB, server_default='{}'),
        *_timestamps(),
        _soft_delete(),
        sa.CheckConstraint('rollout >= 0 AND rollout <= 1', name='chk_flag_rollout_range'),
    )
    op.create_index('ix_feature_flags_product_id', 'feature_flags', ['product_id'])
    op.create_index(
        'uq_feature_flags_key_live', 'feature_flags', ['key'],
        unique=True, postgresql_where=sa.text('deleted_at IS NULL'),
    )
    _live_indexes('feature_flags')

    # Discovery
    op.create_table(
        'customers',
        _id(),
        _fk('product_id', 'products.id'),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('email', sa.String(255)),
        sa.Column('company', sa.String(255)),
        sa.Column('segment', sa.String(100)),
        sa.Column('attributes', postgresql.JSONB, server_default='{}'),
        *_timestamps(),
        _soft_delete(),
    )
    op.create_index('ix_customers_product_id', 'customers', ['product_id'])
    _live_indexes('customers')

    op.create_table(
        'interviews',
        _id(),
        _fk('product_id', 'products.id'),
        _fk('customer_id', 'customers.id', ondelete='SET NULL', nullable=True),
        _fk('conductor_id', 'users.id', ondelete='SET NULL', nullable=True),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('description', sa.Text),
        sa.Column('scheduled_at', sa.DateTime, nullable=False),
        sa.Column('duration', sa.Integer, nullable=False, server_default='60'),
        sa.Column('location', sa.String(255)),
        sa.Column('status', _enum('interviewstatus'), nullable=False, server_default='SCHEDULED'),
        sa.Column('objectives', postgresql.JSONB, server_default='[]'),
        sa.Column('questions', postgresql.JSONB, server_default='[]'),
        sa.Column('notes', sa.Text),
        *_timestamps(),
        _soft_delete(),
    )
    op.create_index('ix_interviews_product_id', 'interviews', ['product_id'])
    op.create_index('ix_interviews_customer_id', 'interviews', ['customer_id'])
    _live_indexes('interviews')

    op.create_table(
        'insights',
        _id(),
        _fk('product_id', 'products.id'),
        _fk('interview_id', 'interviews.id', ondelete='SET NULL', nullable=True),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('description', sa.Text, nullable=False),
        sa.Column('source', _enum('insightsource'), nullable=False, server_default='INTERVIEW'),
        sa.Column('impact', _enum('insightimpact'), nullable=False, server_default='MEDIUM'),
        sa.Column('confidence', sa.Integer, nullable=False, server_default='3'),
        sa.Column('tags', postgresql.JSONB, server_default='[]'),
        *_timestamps(),
        _soft_delete(),
    )
    op.create_index('ix_insights_product_id', 'insights', ['product_id'])
    op.create_index('ix_insights_interview_id', 'insights', ['interview_id'])
    _live_indexes('insights')

    # Audit trail
    op.create_table(
        'audit_logs',
        _id(),
        _fk('organization_id', 'organizations.id'),
        _fk('user_id', 'users.id', ondelete='SET NULL', nullable=True),
        sa.Column('action', sa.String(100), nullable=False),
        sa.Column('entity', sa.String(100), nullable=False),
        sa.Column('entity_id', sa.String(255), nullable=False),
        sa.Column('changes', postgresql.JSONB),
        sa.Column('metadata', postgresql.JSONB),
        sa.Column('ip_address', sa.String(64)),
        sa.Column('user_agent', sa.String(500)),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.text('NOW()')),
    )
    op.create_index('ix_audit_logs_organization_id', 'audit_logs', ['organization_id'])
    op.create_index('ix_audit_logs_user_id', 'audit_logs', ['user_id'])
    op.create_index('ix_audit_logs_action', 'audit_logs', ['action'])
    op.create_index('ix_audit_logs_created_at', 'audit_logs', ['created_at'], postgresql_ops={'created_at': 'DESC'})
    op.create_index('idx_audit_entity', 'audit_logs', ['entity', 'entity_id'])


def downgrade() -> None:
    # Drop tables (reverse dependency order)
    for table in (
        'audit_logs',
        'insights',
        'interviews',
        'customers',
        'feature_flags',
        'launch_checklist_items',
        'changelogs',
        'key_results',
        'okrs',
        'tasks',
        'sprints',
        'features',
        'releases',
        'ideas',
        'product_teams',
        'products',
        'invitations',
        'memberships',
        'teams',
        'organizations',
        'session_tokens',
        'user_profiles',
        'users',
    ):
        op.drop_table(table)

    # Drop enums
    for name in reversed(list(ENUM_TYPES)):
        op.execute(f'DROP TYPE IF EXISTS {name}')
