"""Create inspection tables

Revision ID: a1c3e5f7b9d2
Revises:
Create Date: 2026-10-17 10:12:44.118203

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = 'a1c3e5f7b9d2'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

user_role = sa.Enum('ADMIN', 'INSPECTOR', name='user_role')
property_type = sa.Enum('HOUSE', 'APARTMENT', 'COMMERCIAL', 'LAND', 'RURAL', name='property_type')
inspection_type = sa.Enum('MOVE_IN', 'MOVE_OUT', 'PERIODIC', name='inspection_type')
inspection_status = sa.Enum('IN_PROGRESS', 'FINALIZED', name='inspection_status')
item_condition = sa.Enum('GOOD', 'FAIR', 'POOR', 'NOT_APPLICABLE', 'UNVERIFIED', name='item_condition')


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(), nullable=False, server_default=''),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('encrypted_password', sa.String(), nullable=False),
        sa.Column('role', user_role, nullable=False, server_default='INSPECTOR'),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index('ix_users_id', 'users', ['id'])
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'properties',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('type', property_type, nullable=False),
        sa.Column('street', sa.String(), nullable=False),
        sa.Column('number', sa.String()),
        sa.Column('complement', sa.String()),
        sa.Column('district', sa.String(), nullable=False),
        sa.Column('city', sa.String(), nullable=False),
        sa.Column('state', sa.String(length=2), nullable=False),
        sa.Column('postal_code', sa.String()),
        sa.Column('owner_name', sa.String()),
        sa.Column('phone', sa.String()),
        sa.Column('notes', sa.Text()),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index('ix_properties_id', 'properties', ['id'])

    op.create_table(
        'rooms',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('property_id', sa.Integer(), sa.ForeignKey('properties.id'), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('exists', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index('ix_rooms_id', 'rooms', ['id'])
    op.create_index('ix_rooms_property_id', 'rooms', ['property_id'])

    op.create_table(
        'inspections',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('property_id', sa.Integer(), sa.ForeignKey('properties.id'), nullable=False),
        sa.Column('inspector_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('type', inspection_type, nullable=False),
        sa.Column('status', inspection_status, nullable=False, server_default='IN_PROGRESS'),
        sa.Column('inspection_date', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('finalized_at', sa.DateTime()),
        sa.Column('notes', sa.Text()),
        sa.Column('inspector_signature', sa.Text()),
        sa.Column('client_signature', sa.Text()),
        sa.Column('client_name', sa.String()),
        *_timestamps(),
    )
    op.create_index('ix_inspections_id', 'inspections', ['id'])
    op.create_index('ix_inspections_property_id', 'inspections', ['property_id'])
    op.create_index('ix_inspections_inspector_id', 'inspections', ['inspector_id'])

    op.create_table(
        'checklist_items',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('inspection_id', sa.Integer(), sa.ForeignKey('inspections.id'), nullable=False),
        sa.Column('room_id', sa.Integer(), sa.ForeignKey('rooms.id'), nullable=False),
        sa.Column('label', sa.String(), nullable=False),
        sa.Column('condition', item_condition, nullable=False, server_default='UNVERIFIED'),
        sa.Column('note', sa.Text()),
        *_timestamps(),
    )
    op.create_index('ix_checklist_items_id', 'checklist_items', ['id'])
    op.create_index('ix_checklist_items_inspection_id', 'checklist_items', ['inspection_id'])
    op.create_index('ix_checklist_items_room_id', 'checklist_items', ['room_id'])

    op.create_table(
        'photos',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('item_id', sa.Integer(), sa.ForeignKey('checklist_items.id'), nullable=False),
        sa.Column('url', sa.String(), nullable=False),
        sa.Column('caption', sa.String()),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_photos_id', 'photos', ['id'])
    op.create_index('ix_photos_item_id', 'photos', ['item_id'])

    op.create_table(
        'activity_logs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('action', sa.String(), nullable=False),
        sa.Column('entity', sa.String(), nullable=False),
        sa.Column('entity_id', sa.String()),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id')),
        sa.Column('data', sa.JSON()),
        sa.Column('ip', sa.String()),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_activity_logs_id', 'activity_logs', ['id'])


def downgrade() -> None:
    op.drop_table('activity_logs')
    op.drop_table('photos')
    op.drop_table('checklist_items')
    op.drop_table('inspections')
    op.drop_table('rooms')
    op.drop_table('properties')
    op.drop_table('users')

    bind = op.get_bind()
    for enum_type in (item_condition, inspection_status, inspection_type, property_type, user_role):
        enum_type.drop(bind, checkfirst=True)
