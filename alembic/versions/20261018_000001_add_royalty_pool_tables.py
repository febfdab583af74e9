"""Add royalty pool tables

Revision ID: 20261018_000001
Revises:
Create Date: 2026-10-18

This migration adds the following tables for royalty pool accounting:
- songs: Songs listed for investment and their royalty pools
- investments: One row per (song, investor), cumulative amount and share
- payouts: Per-investor revenue distributions, one per period
- settled_payments: Confirmed payments applied to the ledger (dedup)
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '20261018_000001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Create enums
    payoutstatus_enum = postgresql.ENUM('pending', 'paid', 'failed', name='payoutstatus', create_type=False)
    payoutstatus_enum.create(op.get_bind(), checkfirst=True)

    # Create songs table
    op.create_table(
        'songs',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('title', sa.String(100), nullable=False),
        sa.Column('artist_name', sa.String(100), nullable=False, index=True),
        sa.Column('artist_user_id', sa.String(255), nullable=False, index=True),
        sa.Column('album_art_url', sa.String(500), nullable=True),
        sa.Column('total_royalty_pool', sa.Numeric(precision=15, scale=2), nullable=False, server_default='0'),
        sa.Column('monthly_revenue', sa.Numeric(precision=15, scale=2), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true', index=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now(), onupdate=sa.func.now()),
        sa.CheckConstraint('total_royalty_pool >= 0', name='check_pool_non_negative'),
    )

    # Create investments table
    op.create_table(
        'investments',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('song_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('songs.id', ondelete='RESTRICT'), nullable=False, index=True),
        sa.Column('user_id', sa.String(255), nullable=False, index=True),
        sa.Column('amount_invested', sa.Numeric(precision=15, scale=2), nullable=False, server_default='0'),
        sa.Column('royalty_percentage', sa.Numeric(precision=12, scale=8), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now(), onupdate=sa.func.now()),
        sa.UniqueConstraint('song_id', 'user_id', name='uq_investment_song_user'),
        sa.CheckConstraint('amount_invested >= 0', name='check_amount_invested_non_negative'),
    )

    # Create payouts table
    op.create_table(
        'payouts',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('investment_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('investments.id', ondelete='RESTRICT'), nullable=False, index=True),
        sa.Column('song_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('songs.id', ondelete='RESTRICT'), nullable=False, index=True),
        sa.Column('period', sa.String(7), nullable=False, index=True),
        sa.Column('amount', sa.Numeric(precision=15, scale=2), nullable=False),
        sa.Column('status', sa.Enum('pending', 'paid', 'failed', name='payoutstatus'), nullable=False, index=True, server_default='pending'),
        sa.Column('attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('failure_reason', sa.Text(), nullable=True),
        sa.Column('transfer_reference', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('paid_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('investment_id', 'period', name='uq_payout_investment_period'),
    )

    # Create settled_payments table
    op.create_table(
        'settled_payments',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('payment_reference', sa.String(255), nullable=False, unique=True),
        sa.Column('event_id', sa.String(255), nullable=True),
        sa.Column('song_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('songs.id', ondelete='RESTRICT'), nullable=False, index=True),
        sa.Column('user_id', sa.String(255), nullable=False),
        sa.Column('investment_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('investments.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('amount', sa.Numeric(precision=15, scale=2), nullable=False),
        sa.Column('settled_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )


def downgrade() -> None:
    op.drop_table('settled_payments')
    op.drop_table('payouts')
    op.drop_table('investments')
    op.drop_table('songs')

    # Drop enums
    op.execute('DROP TYPE IF EXISTS payoutstatus')
