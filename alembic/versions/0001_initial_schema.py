"""initial_schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19 09:00:00.000000

Users, credit balances and ledger, code generations, payment methods and
transactions, admin logs, API keys and referrals. Seeds the default payment
methods.
"""
from typing import Sequence, Union
import uuid

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '0001_initial_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

user_role = sa.Enum('user', 'premium', 'admin', name='user_role')
transaction_type = sa.Enum('purchase', 'usage', 'bonus', 'refund', 'admin_adjustment', name='transaction_type')
payment_status = sa.Enum('pending', 'processing', 'completed', 'approved', 'rejected', name='payment_status')


def _timestamps(updated: bool = True):
    columns = [sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False)]
    if updated:
        columns.append(
            sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False)
        )
    return columns


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('hashed_password', sa.String(255), nullable=False),
        sa.Column('full_name', sa.String(255), nullable=True),
        sa.Column('avatar_url', sa.String(500), nullable=True),
        sa.Column('role', user_role, nullable=False, server_default='user'),
        sa.Column('is_banned', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('referral_code', sa.String(16), nullable=False),
        sa.Column('referred_by', sa.String(36), sa.ForeignKey('users.id'), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_users_id', 'users', ['id'])
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_referral_code', 'users', ['referral_code'], unique=True)

    op.create_table(
        'credits',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('amount', sa.Integer(), nullable=False, server_default='0'),
        *_timestamps(),
    )
    op.create_index('ix_credits_user_id', 'credits', ['user_id'], unique=True)

    op.create_table(
        'credit_transactions',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('transaction_type', transaction_type, nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('reference_id', sa.String(36), nullable=True),
        *_timestamps(updated=False),
    )
    op.create_index('ix_credit_transactions_id', 'credit_transactions', ['id'])
    op.create_index('ix_credit_transactions_user_id', 'credit_transactions', ['user_id'])
    op.create_index('ix_credit_transactions_transaction_type', 'credit_transactions', ['transaction_type'])
    op.create_index('ix_credit_transactions_reference_id', 'credit_transactions', ['reference_id'])
    op.create_index('ix_credit_transactions_created_at', 'credit_transactions', ['created_at'])

    op.create_table(
        'code_generations',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('prompt', sa.Text(), nullable=False),
        sa.Column('language', sa.String(50), nullable=False),
        sa.Column('complexity', sa.String(20), nullable=False, server_default='intermediate'),
        sa.Column('framework', sa.String(100), nullable=True),
        sa.Column('generated_code', sa.Text(), nullable=False),
        sa.Column('credits_used', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('model_used', sa.String(50), nullable=False, server_default='gemini-pro'),
        sa.Column('is_public', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('like_count', sa.Integer(), nullable=False, server_default='0'),
        *_timestamps(updated=False),
    )
    op.create_index('ix_code_generations_id', 'code_generations', ['id'])
    op.create_index('ix_code_generations_user_id', 'code_generations', ['user_id'])
    op.create_index('ix_code_generations_language', 'code_generations', ['language'])
    op.create_index('ix_code_generations_is_public', 'code_generations', ['is_public'])
    op.create_index('ix_code_generations_created_at', 'code_generations', ['created_at'])

    payment_methods = op.create_table(
        'payment_methods',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('name', sa.String(50), nullable=False, unique=True),
        sa.Column('display_name', sa.String(100), nullable=False),
        sa.Column('is_enabled', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('config', sa.JSON(), nullable=False),
        *_timestamps(),
    )

    op.create_table(
        'payment_transactions',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('payment_method_id', sa.String(36), sa.ForeignKey('payment_methods.id'), nullable=False),
        sa.Column('amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('currency', sa.String(10), nullable=False, server_default='BDT'),
        sa.Column('status', payment_status, nullable=False, server_default='pending'),
        sa.Column('external_transaction_id', sa.String(100), nullable=True),
        sa.Column('proof_url', sa.String(500), nullable=True),
        sa.Column('sender_number', sa.String(30), nullable=True),
        sa.Column('admin_notes', sa.Text(), nullable=True),
        sa.Column('reviewed_by', sa.String(36), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('credits_awarded', sa.Integer(), nullable=False, server_default='0'),
        *_timestamps(),
    )
    op.create_index('ix_payment_transactions_id', 'payment_transactions', ['id'])
    op.create_index('ix_payment_transactions_user_id', 'payment_transactions', ['user_id'])
    op.create_index('ix_payment_transactions_status', 'payment_transactions', ['status'])
    op.create_index('ix_payment_transactions_created_at', 'payment_transactions', ['created_at'])

    op.create_table(
        'admin_logs',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('admin_id', sa.String(36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('action', sa.String(100), nullable=False),
        sa.Column('target_user_id', sa.String(36), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('details', sa.JSON(), nullable=True),
        *_timestamps(updated=False),
    )
    op.create_index('ix_admin_logs_admin_id', 'admin_logs', ['admin_id'])
    op.create_index('ix_admin_logs_created_at', 'admin_logs', ['created_at'])

    op.create_table(
        'api_keys',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('key_name', sa.String(100), nullable=False, unique=True),
        sa.Column('key_value', sa.Text(), nullable=False),
        *_timestamps(),
    )

    op.create_table(
        'referrals',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('referrer_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('referred_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('credits_awarded', sa.Integer(), nullable=False, server_default='50'),
        *_timestamps(updated=False),
        sa.UniqueConstraint('referrer_id', 'referred_id', name='uq_referrals_pair'),
    )
    op.create_index('ix_referrals_referrer_id', 'referrals', ['referrer_id'])

    op.bulk_insert(payment_methods, [
        {
            'id': str(uuid.uuid4()),
            'name': 'bkash',
            'display_name': 'bKash',
            'is_enabled': False,
            'config': {'merchant_number': '', 'api_key': '', 'api_secret': ''},
        },
        {
            'id': str(uuid.uuid4()),
            'name': 'nagad',
            'display_name': 'Nagad',
            'is_enabled': False,
            'config': {'merchant_id': '', 'merchant_key': ''},
        },
        {
            'id': str(uuid.uuid4()),
            'name': 'manual',
            'display_name': 'Manual Payment',
            'is_enabled': True,
            'config': {'instructions': 'Send payment to our account and upload proof.'},
        },
        {
            'id': str(uuid.uuid4()),
            'name': 'stripe',
            'display_name': 'Credit/Debit Card',
            'is_enabled': False,
            'config': {},
        },
    ])


def downgrade() -> None:
    op.drop_table('referrals')
    op.drop_table('api_keys')
    op.drop_table('admin_logs')
    op.drop_table('payment_transactions')
    op.drop_table('payment_methods')
    op.drop_table('code_generations')
    op.drop_table('credit_transactions')
    op.drop_table('credits')
    op.drop_table('users')

    bind = op.get_bind()
    for enum_type in (payment_status, transaction_type, user_role):
        enum_type.drop(bind, checkfirst=True)
