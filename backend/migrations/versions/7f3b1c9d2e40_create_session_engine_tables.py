"""create principals, devices and session_nodes

Revision ID: 7f3b1c9d2e40
Revises:
Create Date: 2026-10-18 00:00:00.000000
"""
import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = '7f3b1c9d2e40'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
    ]


def upgrade():
    op.create_table(
        'principals',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(length=254), nullable=False),
        sa.Column('password_hash', sa.String(length=254), nullable=False),
        sa.Column('display_name', sa.String(length=100), nullable=False),
        sa.Column('age', sa.Integer(), nullable=False),
        sa.Column('totp_secret', sa.String(length=64), nullable=True),
        sa.Column('two_factor_enabled', sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_principals')),
        sa.UniqueConstraint('email', name='uq_principals_email'),
    )
    op.create_index('ix_principals_email', 'principals', ['email'])

    op.create_table(
        'devices',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('principal_id', sa.Integer(), nullable=False),
        sa.Column('device_id', sa.String(length=128), nullable=False),
        sa.Column('platform', sa.String(length=32), nullable=False),
        sa.Column('user_agent', sa.String(length=512), nullable=False),
        sa.Column('last_seen_at', sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ['principal_id'], ['principals.id'],
            name=op.f('fk_devices_principal_id_principals'), ondelete='CASCADE',
        ),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_devices')),
        sa.UniqueConstraint('principal_id', 'device_id', name='uq_devices_principal_device'),
    )
    op.create_index('ix_devices_principal_id', 'devices', ['principal_id'])

    op.create_table(
        'session_nodes',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('jti', sa.String(length=64), nullable=False),
        sa.Column('principal_id', sa.Integer(), nullable=False),
        sa.Column('device_id', sa.String(length=128), nullable=False),
        sa.Column('revoked', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('successor_jti', sa.String(length=64), nullable=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ['principal_id'], ['principals.id'],
            name=op.f('fk_session_nodes_principal_id_principals'), ondelete='CASCADE',
        ),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_session_nodes')),
        sa.UniqueConstraint('jti', name='uq_session_nodes_jti'),
    )
    op.create_index('ix_session_nodes_principal_id', 'session_nodes', ['principal_id'])
    op.create_index('ix_session_nodes_expires_at', 'session_nodes', ['expires_at'])


def downgrade():
    op.drop_index('ix_session_nodes_expires_at', table_name='session_nodes')
    op.drop_index('ix_session_nodes_principal_id', table_name='session_nodes')
    op.drop_table('session_nodes')
    op.drop_index('ix_devices_principal_id', table_name='devices')
    op.drop_table('devices')
    op.drop_index('ix_principals_email', table_name='principals')
    op.drop_table('principals')
