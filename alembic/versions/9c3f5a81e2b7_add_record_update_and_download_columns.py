"""add_record_update_and_download_columns

Revision ID: 9c3f5a81e2b7
Revises: 4b1e7c2d9a10
Create Date: 2026-09-20 18:02:07.918442

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '9c3f5a81e2b7'
down_revision: Union[str, None] = '4b1e7c2d9a10'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """
    Add updated_at and download_count to document_records.

    Both stay nullable: existing rows keep NULL and readers fall back to
    created_at / 0.
    """
    from sqlalchemy import inspect
    
    # Check if columns already exist (idempotent migration)
    bind = op.get_bind()
    inspector = inspect(bind)
    columns = [col['name'] for col in inspector.get_columns('document_records')]
    
    if 'updated_at' not in columns:
        op.add_column('document_records', sa.Column('updated_at', sa.DateTime(), nullable=True))
    
    if 'download_count' not in columns:
        op.add_column('document_records', sa.Column('download_count', sa.Integer(), nullable=True))


def downgrade() -> None:
    op.drop_column('document_records', 'download_count')
    op.drop_column('document_records', 'updated_at')
