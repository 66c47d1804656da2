"""Initial schema - stock ledger, inbound webhook events, sync log

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001_initial_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'product_inventory',
        sa.Column('product_id', sa.String(length=64), nullable=False),
        sa.Column('stock', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('external_product_ref', sa.String(length=64), nullable=True),
        sa.Column('external_variant_ref', sa.String(length=64), nullable=True),
        sa.Column('external_item_ref', sa.String(length=64), nullable=True),
        sa.Column('external_location_ref', sa.String(length=64), nullable=True),
        sa.Column('sync_enabled', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('last_synced_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('sync_error', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('product_id'),
        sa.CheckConstraint('stock >= 0', name='ck_product_inventory_stock_nonneg'),
    )
    op.create_index(
        'ix_product_inventory_external_item',
        'product_inventory',
        ['external_item_ref', 'external_location_ref'],
    )

    op.create_table(
        'webhook_events',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('event_id', sa.String(length=128), nullable=False),
        sa.Column('event_type', sa.String(length=64), nullable=False),
        sa.Column('raw_payload', sa.Text(), nullable=True),
        sa.Column('processed', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('success', sa.Boolean(), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('outcome', sa.JSON(), nullable=True),
        sa.Column('received_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('processed_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    # Unique: the deduplicator's claim relies on this constraint
    op.create_index('ix_webhook_events_event_id', 'webhook_events', ['event_id'], unique=True)
    op.create_index('ix_webhook_events_event_type', 'webhook_events', ['event_type'])
    op.create_index('ix_webhook_events_processed', 'webhook_events', ['processed'])

    op.create_table(
        'inventory_sync_log',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.String(length=64), nullable=False),
        sa.Column('action', sa.String(length=32), nullable=False),
        sa.Column('source', sa.String(length=32), nullable=False),
        sa.Column('change', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('stock_after', sa.Integer(), nullable=False),
        sa.Column('external_confirmed', sa.Boolean(), nullable=True),
        sa.Column('error', sa.Text(), nullable=True),
        sa.Column('reference_id', sa.String(length=128), nullable=True),
        sa.Column('reference_type', sa.String(length=32), nullable=True),
        sa.Column('created_by', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['product_id'], ['product_inventory.product_id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_inventory_sync_log_product_id', 'inventory_sync_log', ['product_id'])
    op.create_index('ix_inventory_sync_log_action', 'inventory_sync_log', ['action'])
    op.create_index('ix_inventory_sync_log_reference_id', 'inventory_sync_log', ['reference_id'])
    op.create_index('ix_inventory_sync_log_created_at', 'inventory_sync_log', ['created_at'])


def downgrade() -> None:
    op.drop_index('ix_inventory_sync_log_created_at', table_name='inventory_sync_log')
    op.drop_index('ix_inventory_sync_log_reference_id', table_name='inventory_sync_log')
    op.drop_index('ix_inventory_sync_log_action', table_name='inventory_sync_log')
    op.drop_index('ix_inventory_sync_log_product_id', table_name='inventory_sync_log')
    op.drop_table('inventory_sync_log')

    op.drop_index('ix_webhook_events_processed', table_name='webhook_events')
    op.drop_index('ix_webhook_events_event_type', table_name='webhook_events')
    op.drop_index('ix_webhook_events_event_id', table_name='webhook_events')
    op.drop_table('webhook_events')

    op.drop_index('ix_product_inventory_external_item', table_name='product_inventory')
    op.drop_table('product_inventory')
