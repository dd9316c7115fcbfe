"""Add app_settings

Revision ID: c4e8a2d6f0b3
Revises: a1c3e5f7b9d2
Create Date: 2026-10-17 16:40:09.512734

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = 'c4e8a2d6f0b3'
down_revision: Union[str, None] = 'a1c3e5f7b9d2'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'app_settings',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('category', sa.String(), nullable=False),
        sa.Column('key', sa.String(), nullable=False),
        sa.Column('value', sa.Text(), nullable=False, server_default=''),
        sa.Column('description', sa.String()),
        sa.Column('sensitive', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint('category', 'key', name='uq_app_settings_category_key'),
    )
    op.create_index('ix_app_settings_id', 'app_settings', ['id'])
    op.create_index('ix_app_settings_category', 'app_settings', ['category'])


def downgrade() -> None:
    op.drop_index('ix_app_settings_category', table_name='app_settings')
    op.drop_index('ix_app_settings_id', table_name='app_settings')
    op.drop_table('app_settings')
