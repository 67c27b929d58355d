"""create_document_records

Revision ID: 4b1e7c2d9a10
Revises: 
Create Date: 2026-09-02 10:14:51.204318

Production-safe migration: only creates the table if it doesn't exist.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = '4b1e7c2d9a10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def table_exists(table_name: str) -> bool:
    """Check if a table exists in the database."""
    bind = op.get_bind()
    inspector = inspect(bind)
    return table_name in inspector.get_table_names()


def upgrade() -> None:
    """Create document_records as first deployed (no updated_at / download_count yet)."""
    if not table_exists('document_records'):
        op.create_table('document_records',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.String(), nullable=False),
            sa.Column('course_title', sa.String(), nullable=False),
            sa.Column('student_name', sa.String(), nullable=False),
            sa.Column('register_number', sa.String(), nullable=False),
            sa.Column('experiments', sa.JSON(), nullable=False),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.Column('expires_at', sa.DateTime(), nullable=False),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_document_records_id'), 'document_records', ['id'], unique=False)
        op.create_index(op.f('ix_document_records_user_id'), 'document_records', ['user_id'], unique=False)
        op.create_index(op.f('ix_document_records_expires_at'), 'document_records', ['expires_at'], unique=False)
        op.create_index('idx_user_course', 'document_records', ['user_id', 'course_title'], unique=False)


def downgrade() -> None:
    op.drop_index('idx_user_course', table_name='document_records')
    op.drop_index(op.f('ix_document_records_expires_at'), table_name='document_records')
    op.drop_index(op.f('ix_document_records_user_id'), table_name='document_records')
    op.drop_index(op.f('ix_document_records_id'), table_name='document_records')
    op.drop_table('document_records')
