"""create reminders, email_subscriptions, print_subscriptions tables

Revision ID: b2d3f4a5c6e7
Revises: a1c2e3f4b5d6
Create Date: 2026-03-02 10:30:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'b2d3f4a5c6e7'
down_revision: str = 'a1c2e3f4b5d6'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'reminders',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.Integer(), nullable=False, index=True),
        sa.Column('reminder_type', sa.String(16), nullable=False),
        sa.Column('time_of_day', sa.Time(), nullable=True),
        sa.Column('day_of_week', sa.SmallInteger(), nullable=True),
        sa.Column('day_of_month', sa.SmallInteger(), nullable=True),
        sa.Column('smart_threshold', sa.Integer(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('last_sent_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint("reminder_type IN ('daily', 'weekly', 'monthly', 'smart')", name='ck_reminders_type'),
        sa.CheckConstraint('day_of_week BETWEEN 0 AND 6', name='ck_reminders_day_of_week'),
        sa.CheckConstraint('day_of_month BETWEEN 1 AND 28', name='ck_reminders_day_of_month'),
    )

    op.create_table(
        'email_subscriptions',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.Integer(), nullable=False, index=True),
        sa.Column('frequency', sa.String(16), nullable=False),
        sa.Column('entry_types', sa.String(16), nullable=False, server_default='both'),
        sa.Column('include_images', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('next_email_date', sa.Date(), nullable=True, index=True),
        sa.Column('last_emailed_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        'print_subscriptions',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.Integer(), nullable=False, index=True),
        sa.Column('frequency', sa.String(16), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('shipping_name', sa.String(255), nullable=False),
        sa.Column('shipping_line1', sa.String(255), nullable=False),
        sa.Column('shipping_line2', sa.String(255), nullable=True),
        sa.Column('shipping_city', sa.String(128), nullable=False),
        sa.Column('shipping_state', sa.String(64), nullable=False),
        sa.Column('shipping_zip', sa.String(32), nullable=False),
        sa.Column('shipping_country', sa.String(2), nullable=False, server_default='US'),
        sa.Column('shipping_phone', sa.String(32), nullable=True),
        sa.Column('color_option', sa.String(8), nullable=False, server_default='bw'),
        sa.Column('include_images', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('next_print_date', sa.Date(), nullable=True, index=True),
        sa.Column('last_printed_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
    )


def downgrade() -> None:
    op.drop_table('print_subscriptions')
    op.drop_table('email_subscriptions')
    op.drop_table('reminders')
