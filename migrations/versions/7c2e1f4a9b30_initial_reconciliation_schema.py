"""Initial reconciliation schema

Revision ID: 7c2e1f4a9b30
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '7c2e1f4a9b30'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table('users',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('full_name', sa.String(length=255), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email')
    )
    op.create_table('providers',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=True),
        sa.Column('display_name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id')
    )
    op.create_table('guardians',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=True),
        sa.Column('first_name', sa.String(length=100), nullable=True),
        sa.Column('last_name', sa.String(length=100), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=50), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id')
    )
    op.create_index(op.f('ix_guardians_email'), 'guardians', ['email'], unique=False)
    op.create_table('participants',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('guardian_id', sa.String(length=36), nullable=False),
        sa.Column('first_name', sa.String(length=100), nullable=False),
        sa.Column('last_name', sa.String(length=100), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
        sa.ForeignKeyConstraint(['guardian_id'], ['guardians.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_participants_guardian_id'), 'participants', ['guardian_id'], unique=False)
    op.create_table('package_credits',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('guardian_id', sa.String(length=36), nullable=False),
        sa.Column('provider_id', sa.String(length=36), nullable=False),
        sa.Column('package_type', sa.String(length=20), nullable=False),
        sa.Column('total_credits', sa.Integer(), nullable=False),
        sa.Column('remaining', sa.Integer(), nullable=False),
        sa.Column('price_per_credit', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('total_paid', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('payment_transaction_id', sa.String(length=255), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['guardian_id'], ['guardians.id'], ),
        sa.ForeignKeyConstraint(['provider_id'], ['providers.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_package_credits_guardian_id'), 'package_credits', ['guardian_id'], unique=False)
    op.create_index(op.f('ix_package_credits_provider_id'), 'package_credits', ['provider_id'], unique=False)
    op.create_index(op.f('ix_package_credits_payment_transaction_id'), 'package_credits', ['payment_transaction_id'], unique=False)
    op.create_table('bookings',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('booking_number', sa.String(length=32), nullable=False),
        sa.Column('provider_id', sa.String(length=36), nullable=False),
        sa.Column('guardian_id', sa.String(length=36), nullable=False),
        sa.Column('participant_id', sa.String(length=36), nullable=True),
        sa.Column('session_date', sa.Date(), nullable=True),
        sa.Column('start_time', sa.String(length=8), nullable=True),
        sa.Column('location', sa.String(length=255), nullable=True),
        sa.Column('package_type', sa.String(length=20), nullable=False),
        sa.Column('total_sessions', sa.Integer(), nullable=False),
        sa.Column('sessions_remaining', sa.Integer(), nullable=False),
        sa.Column('total_amount', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('amount_paid', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('platform_fee', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('provider_payout', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('payment_transaction_id', sa.String(length=255), nullable=True),
        sa.Column('payment_status', sa.String(length=20), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('package_credit_id', sa.String(length=36), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['guardian_id'], ['guardians.id'], ),
        sa.ForeignKeyConstraint(['package_credit_id'], ['package_credits.id'], ),
        sa.ForeignKeyConstraint(['participant_id'], ['participants.id'], ),
        sa.ForeignKeyConstraint(['provider_id'], ['providers.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('booking_number'),
        sa.UniqueConstraint('payment_transaction_id')
    )
    op.create_index(op.f('ix_bookings_provider_id'), 'bookings', ['provider_id'], unique=False)
    op.create_index(op.f('ix_bookings_guardian_id'), 'bookings', ['guardian_id'], unique=False)
    op.create_index(op.f('ix_bookings_created_at'), 'bookings', ['created_at'], unique=False)
    op.create_table('escrow_holds',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('booking_id', sa.Integer(), nullable=False),
        sa.Column('payment_transaction_id', sa.String(length=255), nullable=True),
        sa.Column('amount', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('platform_fee', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('provider_amount', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('release_eligible_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['booking_id'], ['bookings.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('booking_id')
    )
    op.create_table('orders',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('booking_id', sa.Integer(), nullable=True),
        sa.Column('user_id', sa.String(length=36), nullable=True),
        sa.Column('payment_transaction_id', sa.String(length=255), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['booking_id'], ['bookings.id'], ),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_orders_booking_id'), 'orders', ['booking_id'], unique=False)
    op.create_index(op.f('ix_orders_payment_transaction_id'), 'orders', ['payment_transaction_id'], unique=False)
    op.create_table('checkout_snapshots',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('token', sa.String(length=64), nullable=False),
        sa.Column('provider_id', sa.String(length=36), nullable=True),
        sa.Column('user_id', sa.String(length=36), nullable=True),
        sa.Column('package_type', sa.String(length=20), nullable=False),
        sa.Column('training_total', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('cart_total', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('final_total', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('cart_items', sa.JSON(), nullable=True),
        sa.Column('session_date', sa.String(length=10), nullable=True),
        sa.Column('session_time', sa.String(length=8), nullable=True),
        sa.Column('session_location', sa.String(length=255), nullable=True),
        sa.Column('contact', sa.JSON(), nullable=True),
        sa.Column('participant', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('token')
    )
    op.create_index(op.f('ix_checkout_snapshots_provider_id'), 'checkout_snapshots', ['provider_id'], unique=False)
    op.create_index(op.f('ix_checkout_snapshots_expires_at'), 'checkout_snapshots', ['expires_at'], unique=False)
    op.create_table('notification_markers',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('key', sa.String(length=255), nullable=False),
        sa.Column('booking_id', sa.Integer(), nullable=True),
        sa.Column('role', sa.String(length=20), nullable=True),
        sa.Column('recipient', sa.String(length=255), nullable=True),
        sa.Column('method', sa.String(length=20), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('key')
    )
    op.create_index(op.f('ix_notification_markers_booking_id'), 'notification_markers', ['booking_id'], unique=False)
    op.create_table('stripe_events',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('stripe_event_id', sa.String(length=255), nullable=False),
        sa.Column('event_type', sa.String(length=255), nullable=False),
        sa.Column('payment_transaction_id', sa.String(length=255), nullable=True),
        sa.Column('processed_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('stripe_event_id')
    )
    op.create_table('audit_events',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('booking_id', sa.Integer(), nullable=True),
        sa.Column('action', sa.String(length=255), nullable=False),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
        sa.ForeignKeyConstraint(['booking_id'], ['bookings.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_audit_events_booking_id'), 'audit_events', ['booking_id'], unique=False)


def downgrade():
    op.drop_index(op.f('ix_audit_events_booking_id'), table_name='audit_events')
    op.drop_table('audit_events')
    op.drop_table('stripe_events')
    op.drop_index(op.f('ix_notification_markers_booking_id'), table_name='notification_markers')
    op.drop_table('notification_markers')
    op.drop_index(op.f('ix_checkout_snapshots_expires_at'), table_name='checkout_snapshots')
    op.drop_index(op.f('ix_checkout_snapshots_provider_id'), table_name='checkout_snapshots')
    op.drop_table('checkout_snapshots')
    op.drop_index(op.f('ix_orders_payment_transaction_id'), table_name='orders')
    op.drop_index(op.f('ix_orders_booking_id'), table_name='orders')
    op.drop_table('orders')
    op.drop_table('escrow_holds')
    op.drop_index(op.f('ix_bookings_created_at'), table_name='bookings')
    op.drop_index(op.f('ix_bookings_guardian_id'), table_name='bookings')
    op.drop_index(op.f('ix_bookings_provider_id'), table_name='bookings')
    op.drop_table('bookings')
    op.drop_index(op.f('ix_package_credits_payment_transaction_id'), table_name='package_credits')
    op.drop_index(op.f('ix_package_credits_provider_id'), table_name='package_credits')
    op.drop_index(op.f('ix_package_credits_guardian_id'), table_name='package_credits')
    op.drop_table('package_credits')
    op.drop_index(op.f('ix_participants_guardian_id'), table_name='participants')
    op.drop_table('participants')
    op.drop_index(op.f('ix_guardians_email'), table_name='guardians')
    op.drop_table('guardians')
    op.drop_table('providers')
    op.drop_table('users')
