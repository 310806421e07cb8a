"""create print_orders and processing_log tables

Revision ID: c3e4a5b6d7f8
Revises: b2d3f4a5c6e7
Create Date: 2026-03-04 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = 'c3e4a5b6d7f8'
down_revision: str = 'b2d3f4a5c6e7'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'print_orders',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.Integer(), nullable=False, index=True),
        sa.Column('subscription_id', sa.Integer(), nullable=True, index=True),
        sa.Column('status', sa.String(32), nullable=False, server_default='pending', index=True),
        sa.Column('frequency', sa.String(16), nullable=False),
        sa.Column('period_start', sa.Date(), nullable=False),
        sa.Column('period_end', sa.Date(), nullable=False),
        sa.Column('entry_count', sa.Integer(), nullable=True),
        sa.Column('page_count', sa.Integer(), nullable=True),
        sa.Column('cost_cents', sa.Integer(), nullable=True),
        sa.Column('retail_cents', sa.Integer(), nullable=True),
        sa.Column('vendor_job_id', sa.String(64), nullable=True, index=True),
        sa.Column('payment_id', sa.String(64), nullable=True),
        sa.Column('tracking_url', sa.Text(), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint(
            "status IN ('pending', 'generating', 'uploaded', 'in_production', 'shipped', "
            "'delivered', 'failed', 'payment_failed')",
            name='ck_print_orders_status',
        ),
    )

    op.create_table(
        'processing_log',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('action', sa.String(64), nullable=False),
        sa.Column('status', sa.String(16), nullable=False),
        sa.Column('details_json', postgresql.JSONB(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_processing_log_status', 'processing_log', ['status', 'created_at'])


def downgrade() -> None:
    op.drop_index('ix_processing_log_status', table_name='processing_log')
    op.drop_table('processing_log')
    op.drop_table('print_orders')
