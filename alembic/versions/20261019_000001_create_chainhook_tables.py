"""Create subscriptions, captured_events and delivery_attempts tables.

Revision ID: 20261019_000001
Revises:
Create Date: 2026-10-19

Initial chainhook schema.
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261019_000001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create chainhook tables."""
    op.create_table(
        'subscriptions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('owner_id', sa.String(length=64), nullable=False),
        sa.Column('chain_id', sa.Integer(), nullable=False),
        sa.Column('contract_address', sa.String(length=42), nullable=False),
        sa.Column('abi', sa.JSON(), nullable=False),
        sa.Column('webhook_url', sa.String(length=2048), nullable=False),
        sa.Column('event_filters', sa.JSON(), nullable=False),
        sa.Column(
            'last_processed_block',
            sa.BigInteger(),
            nullable=False,
            server_default='0',
            comment='Last fully processed block (0 = start from head)'
        ),
        sa.Column(
            'status',
            sa.String(length=20),
            nullable=False,
            server_default='active'
        ),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(
        'ix_subscriptions_owner_id', 'subscriptions', ['owner_id']
    )
    op.create_index(
        'ix_subscriptions_contract_address',
        'subscriptions',
        ['contract_address'],
    )

    op.create_table(
        'captured_events',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('subscription_id', sa.Integer(), nullable=False),
        sa.Column('block_number', sa.BigInteger(), nullable=False),
        sa.Column('block_hash', sa.String(length=66), nullable=True),
        sa.Column('transaction_hash', sa.String(length=66), nullable=False),
        sa.Column('log_index', sa.Integer(), nullable=False),
        sa.Column('event_name', sa.String(length=255), nullable=False),
        sa.Column('payload', sa.JSON(), nullable=False),
        sa.Column('decode_error', sa.Text(), nullable=True),
        sa.Column(
            'status',
            sa.String(length=20),
            nullable=False,
            server_default='PENDING'
        ),
        sa.Column('next_retry_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            'retry_count', sa.Integer(), nullable=False, server_default='0'
        ),
        sa.Column('delivered_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint(
            'subscription_id',
            'transaction_hash',
            'log_index',
            name='uq_captured_events_log'
        ),
    )
    op.create_index(
        'ix_captured_events_subscription_id',
        'captured_events',
        ['subscription_id'],
    )
    op.create_index(
        'ix_captured_events_status_next_retry',
        'captured_events',
        ['status', 'next_retry_at'],
    )

    op.create_table(
        'delivery_attempts',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('event_id', sa.Integer(), nullable=False),
        sa.Column('response_status', sa.Integer(), nullable=True),
        sa.Column('response_body', sa.Text(), nullable=True),
        sa.Column('success', sa.Boolean(), nullable=False),
        sa.Column('error', sa.Text(), nullable=True),
        sa.Column('duration_ms', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['event_id'], ['captured_events.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(
        'ix_delivery_attempts_event_id', 'delivery_attempts', ['event_id']
    )


def downgrade() -> None:
    """Drop chainhook tables."""
    op.drop_index('ix_delivery_attempts_event_id', table_name='delivery_attempts')
    op.drop_table('delivery_attempts')
    op.drop_index(
        'ix_captured_events_status_next_retry', table_name='captured_events'
    )
    op.drop_index(
        'ix_captured_events_subscription_id', table_name='captured_events'
    )
    op.drop_table('captured_events')
    op.drop_index(
        'ix_subscriptions_contract_address', table_name='subscriptions'
    )
    op.drop_index('ix_subscriptions_owner_id', table_name='subscriptions')
    op.drop_table('subscriptions')
