"""Add epics, roadmap items, experiments, documents and personas.

Revision ID: 002
Revises: 001
Create Date: 2026-10-18

This migration adds:
- epics, with an optional epic link on features
- roadmap_items planned into NOW / NEXT / LATER / PARKED lanes
- experiments, documents and personas under products
- audit_logs.entity_id widened to TEXT for bulk entries listing many ids
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '002'
down_revision: Union[str, None] = '001'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


ENUM_TYPES = {
    'epicstatus': ('PLANNED', 'IN_PROGRESS', 'COMPLETED', 'CANCELLED'),
    'roadmapitemtype': ('EPIC', 'FEATURE', 'INITIATIVE', 'MILESTONE'),
    'roadmapitemstatus': ('PLANNED', 'IN_PROGRESS', 'COMPLETED', 'CANCELLED', 'ON_HOLD'),
    'roadmaplane': ('NOW', 'NEXT', 'LATER', 'PARKED'),
    'experimenttype': ('AB_TEST', 'MULTIVARIATE', 'FEATURE_FLAG', 'QUALITATIVE'),
    'experimentstatus': ('DRAFT', 'RUNNING', 'PAUSED', 'COMPLETED', 'CANCELLED'),
    'documenttype': ('PRD', 'RFC', 'SPEC', 'DESIGN', 'ANALYSIS', 'PROPOSAL', 'GUIDE', 'OTHER'),
    'documentstatus': ('DRAFT', 'REVIEW', 'APPROVED', 'REJECTED', 'ARCHIVED'),
}


def _enum(name: str) -> postgresql.ENUM:
    return postgresql.ENUM(*ENUM_TYPES[name], name=name, create_type=False)


def _id() -> sa.Column:
    return sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True)


def _fk(name: str, target: str, ondelete: str = 'CASCADE', nullable: bool = False) -> sa.Column:
    return sa.Column(name, postgresql.UUID(as_uuid=True), sa.ForeignKey(target, ondelete=ondelete), nullable=nullable)


def _timestamps() -> list:
    return [
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.text('NOW()')),
        sa.Column('updated_at', sa.DateTime, nullable=False, server_default=sa.text('NOW()')),
        sa.Column('deleted_at', sa.DateTime, nullable=True),
    ]


def _product_indexes(table: str) -> None:
    op.create_index(f'ix_{table}_product_id', table, ['product_id'])
    op.create_index(f'ix_{table}_created_at', table, ['created_at'])
    op.create_index(f'ix_{table}_deleted_at', table, ['deleted_at'])


def upgrade() -> None:
    for name, values in ENUM_TYPES.items():
        labels = ", ".join(f"'{value}'" for value in values)
        op.execute(f"CREATE TYPE {name} AS ENUM ({labels})")

    # ==========================================================================
    # Epics and roadmap
    # ==========================================================================
    op.create_table(
        'epics',
        _id(),
        _fk('product_id', 'products.id'),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('description', sa.Text),
        sa.Column('status', _enum('epicstatus'), nullable=False, server_default='PLANNED'),
        *_timestamps(),
    )
    _product_indexes('epics')

    op.add_column('features', _fk('epic_id', 'epics.id', ondelete='SET NULL', nullable=True))
    op.create_index('ix_features_epic_id', 'features', ['epic_id'])

    op.create_table(
        'roadmap_items',
        _id(),
        _fk('product_id', 'products.id'),
        _fk('epic_id', 'epics.id', ondelete='SET NULL', nullable=True),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('description', sa.Text),
        sa.Column('type', _enum('roadmapitemtype'), nullable=False, server_default='FEATURE'),
        sa.Column('status', _enum('roadmapitemstatus'), nullable=False, server_default='PLANNED'),
        sa.Column('lane', _enum('roadmaplane'), nullable=False, server_default='LATER'),
        sa.Column('quarter', sa.String(20)),
        sa.Column('start_date', sa.DateTime),
        sa.Column('end_date', sa.DateTime),
        sa.Column('effort', sa.Integer),
        sa.Column('confidence', sa.Integer),
        *_timestamps(),
        sa.CheckConstraint('effort IS NULL OR (effort >= 0 AND effort <= 100)', name='chk_roadmap_effort_range'),
        sa.CheckConstraint('confidence IS NULL OR (confidence >= 1 AND confidence <= 5)',
                           name='chk_roadmap_confidence_range'),
    )
    _product_indexes('roadmap_items')
    op.create_index('ix_roadmap_items_epic_id', 'roadmap_items', ['epic_id'])
    op.create_index('ix_roadmap_items_status', 'roadmap_items', ['status'])
    op.create_index('ix_roadmap_items_lane', 'roadmap_items', ['lane'])

    # ==========================================================================
    # Experiments, documents and personas
    # ==========================================================================
    op.create_table(
        'experiments',
        _id(),
        _fk('product_id', 'products.id'),
        _fk('owner_id', 'users.id', ondelete='SET NULL', nullable=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('description', sa.Text),
        sa.Column('hypothesis', sa.Text, nullable=False),
        sa.Column('type', _enum('experimenttype'), nullable=False, server_default='AB_TEST'),
        sa.Column('status', _enum('experimentstatus'), nullable=False, server_default='DRAFT'),
        sa.Column('audience', sa.String(255)),
        sa.Column('start_date', sa.DateTime),
        sa.Column('end_date', sa.DateTime),
        sa.Column('metrics', postgresql.JSONB, server_default='[]'),
        sa.Column('variants', postgresql.JSONB, server_default='[]'),
        sa.Column('results', sa.Text),
        sa.Column('conclusion', sa.Text),
        *_timestamps(),
    )
    _product_indexes('experiments')
    op.create_index('ix_experiments_owner_id', 'experiments', ['owner_id'])
    op.create_index('ix_experiments_status', 'experiments', ['status'])

    op.create_table(
        'documents',
        _id(),
        _fk('product_id', 'products.id'),
        _fk('author_id', 'users.id', ondelete='SET NULL', nullable=True),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('content', sa.Text, nullable=False),
        sa.Column('type', _enum('documenttype'), nullable=False, server_default='OTHER'),
        sa.Column('status', _enum('documentstatus'), nullable=False, server_default='DRAFT'),
        sa.Column('version', sa.Integer, nullable=False, server_default='1'),
        sa.Column('template', sa.String(100)),
        *_timestamps(),
        sa.CheckConstraint('version >= 1', name='chk_document_version_positive'),
    )
    _product_indexes('documents')
    op.create_index('ix_documents_author_id', 'documents', ['author_id'])
    op.create_index('ix_documents_status', 'documents', ['status'])

    op.create_table(
        'personas',
        _id(),
        _fk('product_id', 'products.id'),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('description', sa.Text, nullable=False),
        sa.Column('demographics', postgresql.JSONB, server_default='{}'),
        sa.Column('goals', postgresql.JSONB, server_default='[]'),
        sa.Column('pains', postgresql.JSONB, server_default='[]'),
        sa.Column('gains', postgresql.JSONB, server_default='[]'),
        sa.Column('behaviors', postgresql.JSONB, server_default='[]'),
        sa.Column('motivations', postgresql.JSONB, server_default='[]'),
        sa.Column('channels', postgresql.JSONB, server_default='[]'),
        *_timestamps(),
    )
    _product_indexes('personas')

    # ==========================================================================
    # Bulk audit entries list every affected id
    # ==========================================================================
    op.alter_column('audit_logs', 'entity_id', type_=sa.Text, existing_type=sa.String(255), existing_nullable=False)


def downgrade() -> None:
    op.alter_column('audit_logs', 'entity_id', type_=sa.String(255), existing_type=sa.Text, existing_nullable=False)

    for table in ('personas', 'documents', 'experiments', 'roadmap_items'):
        op.drop_table(table)
    op.drop_index('ix_features_epic_id', table_name='features')
    op.drop_column('features', 'epic_id')
    op.drop_table('epics')

    for name in reversed(list(ENUM_TYPES)):
        op.execute(f"DROP TYPE {name}")
