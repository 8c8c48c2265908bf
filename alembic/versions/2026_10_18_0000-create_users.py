"""create users

Revision ID: 2026_10_18_0000
Revises:
Create Date: 2026-10-18 08:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID


# revision identifiers, used by Alembic.
revision: str = '2026_10_18_0000'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create users table."""

    op.create_table(
        'users',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('full_name', sa.String(255), nullable=False),
        sa.Column('password_hash', sa.String(255), nullable=False),

        # Email verification
        sa.Column('email_verified', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('otp_code', sa.String(6), nullable=True),
        sa.Column('otp_expires_at', sa.DateTime(timezone=True), nullable=True),

        # Subscription entitlement
        sa.Column('is_subscribed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('subscription_plan', sa.String(100), nullable=True),
        sa.Column('subscription_ref', sa.String(255), nullable=True),
        sa.Column('subscription_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('subscription_expires_at', sa.DateTime(timezone=True), nullable=True),

        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),

        # Constraints
        sa.CheckConstraint(
            'otp_code IS NULL OR (otp_expires_at IS NOT NULL AND NOT email_verified)',
            name='ck_users_otp_pending_only',
        ),
        sa.CheckConstraint(
            'NOT is_subscribed OR subscription_expires_at IS NOT NULL',
            name='ck_users_subscription_has_expiry',
        ),
    )

    # One account per email regardless of case
    op.create_index('uq_users_email_lower', 'users', [sa.text('lower(email)')], unique=True)
    op.create_index(
        'idx_users_subscription_ref',
        'users',
        ['subscription_ref'],
        postgresql_where=sa.text('subscription_ref IS NOT NULL'),
    )


def downgrade() -> None:
    """Drop users table."""
    op.drop_index('idx_users_subscription_ref', table_name='users')
    op.drop_index('uq_users_email_lower', table_name='users')
    op.drop_table('users')
