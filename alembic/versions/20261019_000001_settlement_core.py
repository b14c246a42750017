"""Create settlement core tables.

Revision ID: 20261019_000001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '20261019_000001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create users, contracts, payouts and reward pool tables."""

    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('external_uid', sa.String(128), nullable=False),
        sa.Column('display_name', sa.String(255), nullable=True),
        sa.Column('balance', sa.DECIMAL(18, 8), nullable=False, server_default='0'),
        sa.Column('total_rewards', sa.DECIMAL(18, 8), nullable=False, server_default='0', comment='Lifetime MANA rewards credited to balance'),
        sa.Column('kyc_status', sa.String(32), nullable=False, server_default='NOT_SUBMITTED'),
        sa.Column('pin_hash', sa.String(255), nullable=True),
        sa.Column('pin_set_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('pin_failed_attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('pin_locked_until', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint('balance >= 0', name='check_user_balance_non_negative'),
        sa.CheckConstraint('total_rewards >= 0', name='check_user_total_rewards_non_negative'),
        sa.CheckConstraint('pin_failed_attempts >= 0', name='check_user_pin_attempts_non_negative'),
        sa.PrimaryKeyConstraint('id', name='pk_users'),
    )
    op.create_index('ix_users_external_uid', 'users', ['external_uid'], unique=True)

    op.create_table(
        'donation_contracts',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('owner_id', sa.Integer(), nullable=False),
        sa.Column('principal', sa.DECIMAL(18, 8), nullable=False),
        sa.Column('payment_method', sa.String(50), nullable=True),
        sa.Column('receipt_reference', sa.String(512), nullable=True, comment='Opaque pointer to the uploaded receipt'),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('start_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('end_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_withdrawal_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('withdrawal_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_withdrawn', sa.DECIMAL(18, 8), nullable=False, server_default='0'),
        sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('approved_by', sa.String(128), nullable=True),
        sa.Column('rejected_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('rejected_by', sa.String(128), nullable=True),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('expired_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint('principal > 0', name='check_contract_principal_positive'),
        sa.CheckConstraint('total_withdrawn >= 0', name='check_contract_total_withdrawn_non_negative'),
        sa.CheckConstraint('total_withdrawn <= principal', name='check_contract_total_withdrawn_not_exceeds_principal'),
        sa.CheckConstraint('withdrawal_count >= 0 AND withdrawal_count <= 12', name='check_contract_withdrawal_count_range'),
        sa.CheckConstraint(
            "status <> 'completed' OR withdrawal_count = 12 OR total_withdrawn = principal",
            name='check_contract_completed_when_exhausted',
        ),
        sa.CheckConstraint(
            "status = 'completed' OR (withdrawal_count < 12 AND total_withdrawn < principal)",
            name='check_contract_open_until_exhausted',
        ),
        sa.CheckConstraint(
            "status IN ('pending', 'active', 'completed', 'expired', 'rejected')",
            name='check_contract_status_valid',
        ),
        sa.ForeignKeyConstraint(
            ['owner_id'], ['users.id'],
            name='fk_donation_contracts_owner_id_users', ondelete='CASCADE',
        ),
        sa.PrimaryKeyConstraint('id', name='pk_donation_contracts'),
    )
    op.create_index('ix_donation_contracts_owner_id', 'donation_contracts', ['owner_id'])
    op.create_index('ix_donation_contracts_status', 'donation_contracts', ['status'])
    op.create_index('idx_contract_owner_status', 'donation_contracts', ['owner_id', 'status'])

    op.create_table(
        'payout_requests',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('owner_id', sa.Integer(), nullable=False),
        sa.Column('total_amount', sa.DECIMAL(18, 8), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('idempotency_key', sa.String(128), nullable=True),
        sa.Column('requested_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('processed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('processed_by', sa.String(128), nullable=True),
        sa.Column('failure_reason', sa.Text(), nullable=True),
        sa.Column('refunded_amount', sa.DECIMAL(18, 8), nullable=True),
        sa.Column('refunded_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.CheckConstraint('total_amount > 0', name='check_payout_total_positive'),
        sa.CheckConstraint(
            "status IN ('pending', 'processing', 'completed', 'failed')",
            name='check_payout_status_valid',
        ),
        sa.ForeignKeyConstraint(
            ['owner_id'], ['users.id'],
            name='fk_payout_requests_owner_id_users', ondelete='CASCADE',
        ),
        sa.PrimaryKeyConstraint('id', name='pk_payout_requests'),
        sa.UniqueConstraint('owner_id', 'idempotency_key', name='uq_payout_owner_idempotency_key'),
    )
    op.create_index('ix_payout_requests_owner_id', 'payout_requests', ['owner_id'])
    op.create_index('ix_payout_requests_status', 'payout_requests', ['status'])
    op.create_index('idx_payout_status_requested', 'payout_requests', ['status', 'requested_at'])

    op.create_table(
        'payout_request_sources',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('payout_request_id', sa.Integer(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('source_kind', sa.String(20), nullable=False),
        sa.Column('source_id', sa.Integer(), nullable=False, comment='Contract id for contract lines, owner id for balance lines'),
        sa.Column('amount', sa.DECIMAL(18, 8), nullable=False),
        sa.CheckConstraint('amount > 0', name='check_payout_source_amount_positive'),
        sa.CheckConstraint("source_kind IN ('contract', 'balance')", name='check_payout_source_kind_valid'),
        sa.ForeignKeyConstraint(
            ['payout_request_id'], ['payout_requests.id'],
            name='fk_payout_request_sources_payout_request_id_payout_requests', ondelete='CASCADE',
        ),
        sa.PrimaryKeyConstraint('id', name='pk_payout_request_sources'),
        sa.UniqueConstraint('payout_request_id', 'position', name='uq_payout_source_position'),
    )
    op.create_index('ix_payout_request_sources_payout_request_id', 'payout_request_sources', ['payout_request_id'])

    op.create_table(
        'reward_pools',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('generation', sa.Integer(), nullable=False),
        sa.Column('active_code', sa.String(64), nullable=False),
        sa.Column('total_pool', sa.DECIMAL(18, 8), nullable=False),
        sa.Column('remaining_pool', sa.DECIMAL(18, 8), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('rotated_by', sa.String(128), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('deactivated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.CheckConstraint('total_pool > 0', name='check_pool_total_positive'),
        sa.CheckConstraint('remaining_pool >= 0', name='check_pool_remaining_non_negative'),
        sa.CheckConstraint('remaining_pool <= total_pool', name='check_pool_remaining_not_exceeds_total'),
        sa.PrimaryKeyConstraint('id', name='pk_reward_pools'),
        sa.UniqueConstraint('generation', name='uq_reward_pools_generation'),
    )
    op.create_index('ix_reward_pools_is_active', 'reward_pools', ['is_active'])

    op.create_table(
        'reward_claims',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('pool_id', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(64), nullable=False),
        sa.Column('amount', sa.DECIMAL(18, 8), nullable=False),
        sa.Column('user_display_name', sa.String(255), nullable=True),
        sa.Column('pool_before', sa.DECIMAL(18, 8), nullable=False),
        sa.Column('pool_after', sa.DECIMAL(18, 8), nullable=False),
        sa.Column('idempotency_key', sa.String(128), nullable=True),
        sa.Column('claimed_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint('amount > 0', name='check_reward_claim_amount_positive'),
        sa.ForeignKeyConstraint(
            ['user_id'], ['users.id'],
            name='fk_reward_claims_user_id_users', ondelete='CASCADE',
        ),
        sa.ForeignKeyConstraint(
            ['pool_id'], ['reward_pools.id'],
            name='fk_reward_claims_pool_id_reward_pools', ondelete='RESTRICT',
        ),
        sa.PrimaryKeyConstraint('id', name='pk_reward_claims'),
        sa.UniqueConstraint('user_id', 'pool_id', name='uq_reward_claim_user_pool'),
        sa.UniqueConstraint('user_id', 'idempotency_key', name='uq_reward_claim_user_idempotency_key'),
    )
    op.create_index('ix_reward_claims_user_id', 'reward_claims', ['user_id'])
    op.create_index('ix_reward_claims_pool_id', 'reward_claims', ['pool_id'])


def downgrade() -> None:
    """Drop settlement core tables."""

    op.drop_index('ix_reward_claims_pool_id', 'reward_claims')
    op.drop_index('ix_reward_claims_user_id', 'reward_claims')
    op.drop_table('reward_claims')

    op.drop_index('ix_reward_pools_is_active', 'reward_pools')
    op.drop_table('reward_pools')

    op.drop_index('ix_payout_request_sources_payout_request_id', 'payout_request_sources')
    op.drop_table('payout_request_sources')

    op.drop_index('idx_payout_status_requested', 'payout_requests')
    op.drop_index('ix_payout_requests_status', 'payout_requests')
    op.drop_index('ix_payout_requests_owner_id', 'payout_requests')
    op.drop_table('payout_requests')

    op.drop_index('idx_contract_owner_status', 'donation_contracts')
    op.drop_index('ix_donation_contracts_status', 'donation_contracts')
    op.drop_index('ix_donation_contracts_owner_id', 'donation_contracts')
    op.drop_table('donation_contracts')

    op.drop_index('ix_users_external_uid', 'users')
    op.drop_table('users')
