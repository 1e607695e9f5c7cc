"""initial_platform_schema

Revision ID: b07p1a7f0rm1
Revises:
Create Date: 2026-10-19 12:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'b07p1a7f0rm1'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table('users',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False, comment='Login email'),
        sa.Column('password_hash', sa.String(length=255), nullable=False, comment='scrypt hash: salt$hash (hex)'),
        sa.Column('full_name', sa.String(length=255), nullable=True, comment='Display name'),
        sa.Column('country', sa.String(length=100), nullable=True, comment='Country of residence'),
        sa.Column('language', sa.String(length=10), nullable=False, comment='UI language'),
        sa.Column('is_admin', sa.Boolean(), nullable=False, comment='Has access to admin endpoints'),
        sa.Column('is_blocked', sa.Boolean(), nullable=False, comment='Blocked by an admin'),
        sa.Column('kyc_level', sa.Integer(), nullable=False, comment='Verified KYC level 0-3'),
        sa.Column('referral_code', sa.String(length=20), nullable=False, comment='Own referral code'),
        sa.Column('referrer_id', sa.Integer(), nullable=True, comment='User who referred this user (set once at registration)'),
        sa.Column('referral_level', sa.String(length=20), nullable=False, comment='Last computed referral tier (display only)'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint('kyc_level >= 0 AND kyc_level <= 3', name='ck_users_kyc_level'),
        sa.ForeignKeyConstraint(['referrer_id'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)
    op.create_index(op.f('ix_users_referral_code'), 'users', ['referral_code'], unique=True)
    op.create_index(op.f('ix_users_referrer_id'), 'users', ['referrer_id'], unique=False)

    op.create_table('wallets',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('currency', sa.String(length=64), nullable=False, comment="Opaque currency label, e.g. 'USDT (TRC20)'"),
        sa.Column('address', sa.String(length=128), nullable=True, comment='Deposit address'),
        sa.Column('balance', sa.Float(), nullable=False, comment='Current balance'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint('balance >= 0', name='ck_wallets_balance_non_negative'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'currency', name='uq_wallets_user_currency')
    )
    op.create_index(op.f('ix_wallets_user_id'), 'wallets', ['user_id'], unique=False)

    op.create_table('transactions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(length=32), nullable=False, comment='TransactionType value'),
        sa.Column('currency', sa.String(length=64), nullable=False),
        sa.Column('amount', sa.Float(), nullable=False),
        sa.Column('fee', sa.Float(), nullable=True, comment='Fee share of amount (withdrawals)'),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('tx_hash', sa.String(length=128), nullable=True, comment='External or synthetic reference'),
        sa.Column('address', sa.String(length=128), nullable=True, comment='Destination address (withdrawals)'),
        sa.Column('source_user_id', sa.Integer(), nullable=True, comment='Referred user whose bot profit produced this commission'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['source_user_id'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_transactions_user_id'), 'transactions', ['user_id'], unique=False)
    op.create_index(op.f('ix_transactions_type'), 'transactions', ['type'], unique=False)
    op.create_index(op.f('ix_transactions_status'), 'transactions', ['status'], unique=False)
    op.create_index(op.f('ix_transactions_tx_hash'), 'transactions', ['tx_hash'], unique=False)
    op.create_index(op.f('ix_transactions_source_user_id'), 'transactions', ['source_user_id'], unique=False)
    op.create_index('ix_transactions_user_type', 'transactions', ['user_id', 'type'], unique=False)
    op.create_index('uq_transactions_type_tx_hash', 'transactions', ['type', 'tx_hash'], unique=True)

    op.create_table('bots',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('profit_range', sa.String(length=50), nullable=False, comment="'<min>-<max>' percent, e.g. '8-15% monthly'"),
        sa.Column('risk_level', sa.String(length=50), nullable=False),
        sa.Column('icon', sa.String(length=100), nullable=True),
        sa.Column('enabled', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table('user_bots',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('bot_id', sa.Integer(), nullable=False),
        sa.Column('investment', sa.Float(), nullable=False),
        sa.Column('profit', sa.Float(), nullable=False),
        sa.Column('currency', sa.String(length=64), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('strategy', sa.String(length=50), nullable=True),
        sa.Column('stop_loss_percentage', sa.Float(), nullable=True),
        sa.Column('take_profit_percentage', sa.Float(), nullable=True),
        sa.Column('max_duration_days', sa.Integer(), nullable=True, comment='Auto-stop after this many days'),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['bot_id'], ['bots.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_user_bots_user_id'), 'user_bots', ['user_id'], unique=False)
    op.create_index(op.f('ix_user_bots_bot_id'), 'user_bots', ['bot_id'], unique=False)
    op.create_index(op.f('ix_user_bots_status'), 'user_bots', ['status'], unique=False)
    op.create_index('ix_user_bots_user_status', 'user_bots', ['user_id', 'status'], unique=False)

    op.create_table('settings',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('withdrawal_fee', sa.Float(), nullable=False),
        sa.Column('bronze_fee', sa.Float(), nullable=False),
        sa.Column('silver_fee', sa.Float(), nullable=False),
        sa.Column('gold_fee', sa.Float(), nullable=False),
        sa.Column('maintenance_mode', sa.Boolean(), nullable=False),
        sa.Column('bots_enabled', sa.Boolean(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table('kyc_documents',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('document_type', sa.String(length=50), nullable=False, comment='passport, id_card, proof_of_address, video, ...'),
        sa.Column('document_reference', sa.String(length=512), nullable=True, comment='Storage key or URL of the uploaded file'),
        sa.Column('level', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_kyc_documents_user_id'), 'kyc_documents', ['user_id'], unique=False)
    op.create_index(op.f('ix_kyc_documents_status'), 'kyc_documents', ['status'], unique=False)

    op.create_table('notifications',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('type', sa.String(length=20), nullable=False),
        sa.Column('active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_notifications_user_id'), 'notifications', ['user_id'], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index(op.f('ix_notifications_user_id'), table_name='notifications')
    op.drop_table('notifications')

    op.drop_index(op.f('ix_kyc_documents_status'), table_name='kyc_documents')
    op.drop_index(op.f('ix_kyc_documents_user_id'), table_name='kyc_documents')
    op.drop_table('kyc_documents')

    op.drop_table('settings')

    op.drop_index('ix_user_bots_user_status', table_name='user_bots')
    op.drop_index(op.f('ix_user_bots_status'), table_name='user_bots')
    op.drop_index(op.f('ix_user_bots_bot_id'), table_name='user_bots')
    op.drop_index(op.f('ix_user_bots_user_id'), table_name='user_bots')
    op.drop_table('user_bots')

    op.drop_table('bots')

    op.drop_index('uq_transactions_type_tx_hash', table_name='transactions')
    op.drop_index('ix_transactions_user_type', table_name='transactions')
    op.drop_index(op.f('ix_transactions_source_user_id'), table_name='transactions')
    op.drop_index(op.f('ix_transactions_tx_hash'), table_name='transactions')
    op.drop_index(op.f('ix_transactions_status'), table_name='transactions')
    op.drop_index(op.f('ix_transactions_type'), table_name='transactions')
    op.drop_index(op.f('ix_transactions_user_id'), table_name='transactions')
    op.drop_table('transactions')

    op.drop_index(op.f('ix_wallets_user_id'), table_name='wallets')
    op.drop_table('wallets')

    op.drop_index(op.f('ix_users_referrer_id'), table_name='users')
    op.drop_index(op.f('ix_users_referral_code'), table_name='users')
    op.drop_index(op.f('ix_users_email'), table_name='users')
    op.drop_table('users')
