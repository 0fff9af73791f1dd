"""create ussd_sessions table

Revision ID: 20261019_120000
Revises:
Create Date: 2026-10-19 12:00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '20261019_120000'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'ussd_sessions',
        sa.Column('session_id', sa.String(length=128), primary_key=True),
        sa.Column('phone_number', sa.String(length=32), nullable=False),
        sa.Column('service_code', sa.String(length=32), nullable=True),
        sa.Column('network_code', sa.String(length=16), nullable=True),
        sa.Column('user_id', sa.String(length=64), nullable=True),
        sa.Column('user_name', sa.String(length=120), nullable=True),
        sa.Column('current_menu', sa.String(length=32), nullable=False, server_default='main_menu'),
        sa.Column('step', sa.String(length=32), nullable=True),
        sa.Column('data', sa.JSON(), nullable=False),
        sa.Column('history', sa.JSON(), nullable=False),
        sa.Column('turn', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_text', sa.Text(), nullable=True),
        sa.Column('last_response', sa.Text(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('last_activity', sa.DateTime(timezone=True), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_ussd_sessions_expires_at', 'ussd_sessions', ['expires_at'])
    op.create_index('ix_ussd_sessions_phone_number', 'ussd_sessions', ['phone_number'])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('ix_ussd_sessions_phone_number', table_name='ussd_sessions')
    op.drop_index('ix_ussd_sessions_expires_at', table_name='ussd_sessions')
    op.drop_table('ussd_sessions')
