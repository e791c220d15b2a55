"""Initial schema - users and security audit log.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-18

For databases created with create_tables(), use `alembic stamp head`
instead of running this.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001_initial'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create users and security_audit_log."""

    # users - blog identities; the admin holds the registered public key
    op.create_table(
        'users',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('email', sa.String(320), nullable=False, unique=True),
        sa.Column('username', sa.String(100), nullable=True),
        sa.Column('name', sa.String(200), nullable=True),
        sa.Column('role', sa.String(20), nullable=False, server_default='user'),
        sa.Column('public_key', sa.Text(), nullable=True),
        sa.Column('permissions', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_users_role', 'users', ['role'])

    # security_audit_log - append-only authentication/key-management events
    op.create_table(
        'security_audit_log',
        sa.Column('id', sa.String(40), primary_key=True),
        sa.Column('timestamp', sa.DateTime(), nullable=False),
        sa.Column('event_kind', sa.String(50), nullable=False),
        sa.Column('category', sa.String(30), nullable=False),
        sa.Column('severity', sa.String(10), nullable=False),
        sa.Column('user_id', sa.String(64), nullable=True),
        sa.Column('user_email', sa.String(320), nullable=True),
        sa.Column('ip_address', sa.String(50), nullable=True),
        sa.Column('user_agent', sa.Text(), nullable=True),
        sa.Column('details', sa.JSON(), nullable=True),
    )
    op.create_index('ix_security_audit_log_timestamp', 'security_audit_log', ['timestamp'])
    op.create_index('ix_security_audit_log_event_kind', 'security_audit_log', ['event_kind'])
    op.create_index('ix_security_audit_log_category', 'security_audit_log', ['category'])
    op.create_index('ix_security_audit_log_user_id', 'security_audit_log', ['user_id'])
    op.create_index('ix_security_audit_log_ip_address', 'security_audit_log', ['ip_address'])


def downgrade() -> None:
    """Drop both tables."""
    op.drop_index('ix_security_audit_log_ip_address', table_name='security_audit_log')
    op.drop_index('ix_security_audit_log_user_id', table_name='security_audit_log')
    op.drop_index('ix_security_audit_log_category', table_name='security_audit_log')
    op.drop_index('ix_security_audit_log_event_kind', table_name='security_audit_log')
    op.drop_index('ix_security_audit_log_timestamp', table_name='security_audit_log')
    op.drop_table('security_audit_log')

    op.drop_index('ix_users_role', table_name='users')
    op.drop_table('users')
