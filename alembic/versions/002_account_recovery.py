"""add email verification and one-time code columns

Revision ID: 002_account_recovery
Revises: 001_initial
Create Date: 2026-10-18 14:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '002_account_recovery'
down_revision = '001_initial'
branch_labels = None
depends_on = None

otp_purpose = sa.Enum('verify', 'reset', name='otppurpose')


def upgrade() -> None:
    otp_purpose.create(op.get_bind(), checkfirst=True)

    op.add_column('users', sa.Column('is_email_verified', sa.Boolean(), nullable=False, server_default=sa.false()))
    op.add_column('users', sa.Column('otp_hash', sa.String(length=64), nullable=True))
    op.add_column('users', sa.Column('otp_purpose', otp_purpose, nullable=True))
    op.add_column('users', sa.Column('otp_expires_at', sa.DateTime(timezone=True), nullable=True))
    op.add_column('users', sa.Column('otp_attempts', sa.Integer(), nullable=False, server_default='0'))

    # Accounts that predate verification keep working as verified
    op.execute("UPDATE users SET is_email_verified = true")


def downgrade() -> None:
    op.drop_column('users', 'otp_attempts')
    op.drop_column('users', 'otp_expires_at')
    op.drop_column('users', 'otp_purpose')
    op.drop_column('users', 'otp_hash')
    op.drop_column('users', 'is_email_verified')

    otp_purpose.drop(op.get_bind(), checkfirst=True)
