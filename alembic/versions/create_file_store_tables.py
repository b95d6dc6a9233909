"""create_file_store_tables

Revision ID: create_file_store
Revises: 
Create Date: 2026-10-19 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = 'create_file_store'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create ledger, role directory and access log tables."""
    # ==================== File ledger ====================
    op.create_table(
        'file_ledger',
        sa.Column('file_id', sa.String(255), primary_key=True),
        sa.Column('owner_address', sa.String(255), nullable=False),
        sa.Column('receiver_address', sa.String(255), nullable=True),
        sa.Column('access_type', sa.String(20), nullable=False),
        sa.Column('is_public', sa.Boolean(), nullable=False),
        sa.Column('attention', sa.String(20), nullable=False),
        sa.Column('confidence', sa.String(20), nullable=False),
        sa.Column('content_hash', sa.String(64), nullable=False),
        sa.Column('image_hash', sa.String(255), nullable=True),
        sa.Column('blockchain_tx_hash', sa.String(255), nullable=True),
        sa.Column('blob_location', sa.String(1000), nullable=False),
        sa.Column('original_filename', sa.String(500), nullable=False),
        sa.Column('file_size', sa.BigInteger(), nullable=False),
        sa.Column('mime_type', sa.String(255), nullable=False),
        sa.Column('label', sa.String(255), nullable=False),
        sa.Column('document_type', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('uploaded_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.CheckConstraint(
            "access_type IN ('public', 'private', 'role-based')",
            name='check_file_access_type',
        ),
    )
    for column in ('owner_address', 'receiver_address', 'access_type', 'is_public',
                   'content_hash', 'document_type', 'uploaded_at'):
        op.create_index(f'ix_file_ledger_{column}', 'file_ledger', [column])

    op.create_table(
        'file_allowed_roles',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('file_id', sa.String(255),
                  sa.ForeignKey('file_ledger.file_id', ondelete='CASCADE'), nullable=False),
        sa.Column('role_name', sa.String(255), nullable=False),
        sa.UniqueConstraint('file_id', 'role_name', name='uq_file_allowed_role'),
    )
    op.create_index('ix_file_allowed_roles_file_id', 'file_allowed_roles', ['file_id'])
    op.create_index('ix_file_allowed_roles_role_name', 'file_allowed_roles', ['role_name'])

    # ==================== Role directory ====================
    op.create_table(
        'authorities',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('wallet_address', sa.String(255), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('authority_type', sa.String(100), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('can_create_roles', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_authorities_wallet_address', 'authorities', ['wallet_address'], unique=True)

    op.create_table(
        'roles',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('role_name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('created_by', sa.String(255), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_roles_role_name', 'roles', ['role_name'], unique=True)

    op.create_table(
        'user_roles',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('wallet_address', sa.String(255), nullable=False),
        sa.Column('role_name', sa.String(255), nullable=False),
        sa.Column('assigned_by', sa.String(255), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('assigned_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.UniqueConstraint('wallet_address', 'role_name', name='uq_user_role'),
    )
    op.create_index('ix_user_roles_wallet_address', 'user_roles', ['wallet_address'])
    op.create_index('ix_user_roles_role_name', 'user_roles', ['role_name'])

    # ==================== Access log ====================
    op.create_table(
        'access_logs',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('file_id', sa.String(255), nullable=False),
        sa.Column('accessed_by', sa.String(255), nullable=False),
        sa.Column('access_kind', sa.String(20), nullable=False),
        sa.Column('content_hash', sa.String(64), nullable=False),
        sa.Column('success', sa.Boolean(), nullable=False),
        sa.Column('ip_address', sa.String(255), nullable=False),
        sa.Column('user_agent', sa.String(1000), nullable=False),
        sa.Column('accessed_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.CheckConstraint("access_kind IN ('view', 'download', 'verify')", name='check_access_kind'),
    )
    op.create_index('ix_access_logs_file_id', 'access_logs', ['file_id'])
    op.create_index('ix_access_logs_accessed_by', 'access_logs', ['accessed_by'])
    op.create_index('ix_access_logs_accessed_at', 'access_logs', ['accessed_at'])


def downgrade() -> None:
    op.drop_table('access_logs')
    op.drop_table('user_roles')
    op.drop_table('roles')
    op.drop_table('authorities')
    op.drop_table('file_allowed_roles')
    op.drop_table('file_ledger')
