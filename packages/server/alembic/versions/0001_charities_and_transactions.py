"""Charities and transactions tables

Revision ID: 0001
Revises: 
Create Date: 2026-10-19 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Charities: one row per wallet, created only after the wallet-watch subscription exists
    op.create_table('charities',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('description', sa.String(), nullable=False, server_default=''),
        sa.Column('wallet_address', sa.String(), nullable=False),
        sa.Column('subscription_id', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_charities_id'), 'charities', ['id'], unique=False)
    op.create_index(op.f('ix_charities_wallet_address'), 'charities', ['wallet_address'], unique=True)
    op.create_index(op.f('ix_charities_subscription_id'), 'charities', ['subscription_id'], unique=True)

    # Transactions: immutable, deduplicated per charity on the on-chain transaction id
    op.create_table('transactions',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('charity_id', sa.Uuid(), nullable=False),
        sa.Column('source_notification_id', sa.String(), nullable=False),
        sa.Column('amount', sa.Numeric(precision=78, scale=18), nullable=False),
        sa.Column('raw_payload', sa.JSON().with_variant(postgresql.JSONB(), 'postgresql'), nullable=False),
        sa.Column('received_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.ForeignKeyConstraint(['charity_id'], ['charities.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('charity_id', 'source_notification_id', name='uq_transactions_charity_source')
    )
    op.create_index(op.f('ix_transactions_id'), 'transactions', ['id'], unique=False)
    op.create_index(op.f('ix_transactions_charity_id'), 'transactions', ['charity_id'], unique=False)
    op.create_index(op.f('ix_transactions_source_notification_id'), 'transactions', ['source_notification_id'], unique=False)


def downgrade() -> None:
    op.drop_index(op.f('ix_transactions_source_notification_id'), table_name='transactions')
    op.drop_index(op.f('ix_transactions_charity_id'), table_name='transactions')
    op.drop_index(op.f('ix_transactions_id'), table_name='transactions')
    op.drop_table('transactions')
    op.drop_index(op.f('ix_charities_subscription_id'), table_name='charities')
    op.drop_index(op.f('ix_charities_wallet_address'), table_name='charities')
    op.drop_index(op.f('ix_charities_id'), table_name='charities')
    op.drop_table('charities')
