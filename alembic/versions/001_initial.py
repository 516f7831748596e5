"""create users, events and bookings

Revision ID: 001_initial
Revises:
Create Date: 2026-10-18 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001_initial'
down_revision = None
branch_labels = None
depends_on = None

user_role = sa.Enum('user', 'organizer', 'admin', name='userrole')
payment_status = sa.Enum('pending', 'completed', 'failed', 'cancelled', name='paymentstatus')
booking_status = sa.Enum('active', 'cancelled', 'refunded', name='bookingstatus')


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('hashed_password', sa.String(), nullable=False),
        sa.Column('phone_number', sa.String(length=32), nullable=True),
        sa.Column('role', user_role, nullable=False, server_default='user'),
        sa.Column('is_active', sa.Boolean(), nullable=True, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
    )
    op.create_index('ix_users_id', 'users', ['id'])
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_role', 'users', ['role'])
    op.create_index('idx_user_role_active', 'users', ['role', 'is_active'])

    op.create_table(
        'events',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('time', sa.Time(), nullable=False),
        sa.Column('venue', sa.String(length=200), nullable=False),
        sa.Column('category', sa.String(length=100), nullable=False),
        sa.Column('image_url', sa.String(length=500), nullable=True),
        sa.Column('total_seats', sa.Integer(), nullable=False),
        sa.Column('ticket_price', sa.Numeric(10, 2), nullable=False),
        sa.Column('dynamic_pricing_enabled', sa.Boolean(), nullable=True),
        sa.Column('pricing_rules', sa.JSON(), nullable=True),
        sa.Column('sold_tickets', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('revenue', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('created_by', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
        sa.CheckConstraint('total_seats >= 0', name='ck_event_total_seats'),
        sa.CheckConstraint('ticket_price >= 0', name='ck_event_ticket_price'),
        sa.CheckConstraint(
            'sold_tickets >= 0 AND sold_tickets <= total_seats',
            name='ck_event_sold_within_capacity',
        ),
    )
    op.create_index('ix_events_id', 'events', ['id'])
    op.create_index('ix_events_name', 'events', ['name'])
    op.create_index('ix_events_date', 'events', ['date'])
    op.create_index('ix_events_category', 'events', ['category'])
    op.create_index('ix_events_created_by', 'events', ['created_by'])
    op.create_index('idx_event_date_time', 'events', ['date', 'time'])
    op.create_index('idx_event_organizer_date', 'events', ['created_by', 'date'])

    op.create_table(
        'bookings',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('event_id', sa.Integer(), sa.ForeignKey('events.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('seat_number', sa.String(length=8), nullable=False),
        sa.Column('ticket_price', sa.Numeric(10, 2), nullable=False),
        sa.Column('payment_status', payment_status, nullable=False, server_default='pending'),
        sa.Column('status', booking_status, nullable=False, server_default='active'),
        sa.Column('qr_code', sa.String(length=512), nullable=False, unique=True),
        sa.Column('booking_date', sa.DateTime(timezone=True), server_default=sa.text('now()')),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
    )
    op.create_index('ix_bookings_id', 'bookings', ['id'])
    op.create_index('ix_bookings_event_id', 'bookings', ['event_id'])
    op.create_index('ix_bookings_user_id', 'bookings', ['user_id'])
    op.create_index('ix_bookings_status', 'bookings', ['status'])
    op.create_index('ix_bookings_booking_date', 'bookings', ['booking_date'])
    op.create_index('idx_booking_event_status', 'bookings', ['event_id', 'status'])
    op.create_index('idx_booking_user_date', 'bookings', ['user_id', 'created_at'])
    # One active booking per seat
    op.create_index(
        'uq_booking_active_seat',
        'bookings',
        ['event_id', 'seat_number'],
        unique=True,
        postgresql_where=sa.text("status = 'active'"),
        sqlite_where=sa.text("status = 'active'"),
    )


def downgrade() -> None:
    op.drop_table('bookings')
    op.drop_table('events')
    op.drop_table('users')

    bind = op.get_bind()
    booking_status.drop(bind, checkfirst=True)
    payment_status.drop(bind, checkfirst=True)
    user_role.drop(bind, checkfirst=True)
