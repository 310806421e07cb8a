"""add dispatch lease and failure columns to obligations

Revision ID: d4f5b6c7e8a9
Revises: c3e4a5b6d7f8
Create Date: 2026-03-11 14:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'd4f5b6c7e8a9'
down_revision: str = 'c3e4a5b6d7f8'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

TABLES = ('reminders', 'email_subscriptions', 'print_subscriptions')


def upgrade() -> None:
    for table in TABLES:
        op.add_column(table, sa.Column('dispatch_status', sa.String(16), nullable=False, server_default='idle'))
        op.add_column(table, sa.Column('lease_token', sa.String(36), nullable=True))
        op.add_column(table, sa.Column('leased_at', sa.TIMESTAMP(timezone=True), nullable=True))
        op.add_column(table, sa.Column('failure_count', sa.Integer(), nullable=False, server_default='0'))
        op.add_column(table, sa.Column('last_error', sa.Text(), nullable=True))
        op.add_column(table, sa.Column('needs_attention', sa.Boolean(), nullable=False, server_default=sa.text('false')))


def downgrade() -> None:
    for table in TABLES:
        op.drop_column(table, 'needs_attention')
        op.drop_column(table, 'last_error')
        op.drop_column(table, 'failure_count')
        op.drop_column(table, 'leased_at')
        op.drop_column(table, 'lease_token')
        op.drop_column(table, 'dispatch_status')
