"""create users and entries tables

Revision ID: a1c2e3f4b5d6
Revises:
Create Date: 2026-03-02 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'a1c2e3f4b5d6'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('email', sa.String(255), nullable=True, unique=True),
        sa.Column('display_name', sa.String(255), nullable=True),
        sa.Column('timezone', sa.String(64), nullable=True),
        sa.Column('telegram_chat_id', sa.String(64), nullable=True),
        sa.Column('stripe_customer_id', sa.String(64), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        'entries',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.Integer(), nullable=False, index=True),
        sa.Column('entry_type', sa.String(16), nullable=False, server_default='text'),
        sa.Column('source', sa.String(16), nullable=False, server_default='web'),
        sa.Column('entry_date', sa.Date(), nullable=False),
        sa.Column('content', sa.Text(), nullable=True),
        sa.Column('polished_content', sa.Text(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_entries_user_date', 'entries', ['user_id', 'entry_date'])


def downgrade() -> None:
    op.drop_index('ix_entries_user_date', table_name='entries')
    op.drop_table('entries')
    op.drop_table('users')
