"""Add payouts.attempted_at for stale transfer detection

Revision ID: 20261018_000002
Revises: 20261018_000001
Create Date: 2026-10-18

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '20261018_000002'
down_revision = '20261018_000001'
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Set whenever a payout is claimed for a transfer attempt
    op.add_column(
        'payouts',
        sa.Column('attempted_at', sa.DateTime(), nullable=True)
    )


def downgrade() -> None:
    op.drop_column('payouts', 'attempted_at')
