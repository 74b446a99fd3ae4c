"""initial schema: activities, capacity, reservations, messaging, logs

Revision ID: 0001_initial
Revises:
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0001_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'activities',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('slug', sa.String(length=120), nullable=False, unique=True),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('name_aliases', sa.JSON(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('price', sa.Numeric(10, 2), nullable=False),
        sa.Column('original_price', sa.Numeric(10, 2), nullable=True),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('duration_minutes', sa.Integer(), nullable=False),
        sa.Column('default_times', sa.JSON(), nullable=False,
                  comment='Start times as HH:MM; empty means one all-day slot'),
        sa.Column('default_capacity', sa.Integer(), nullable=False,
                  comment='Seats per virtual slot; 0 disables synthesis'),
        sa.Column('default_weekdays', sa.JSON(), nullable=False,
                  comment='Weekdays 0=Mon..6=Sun; empty means every day'),
        sa.Column('featured', sa.Boolean(), nullable=False),
        sa.Column('active', sa.Boolean(), nullable=False),
        sa.Column('rating', sa.Float(), nullable=True),
        sa.Column('review_count', sa.Integer(), nullable=False),
        sa.Column('image_urls', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
    )

    op.create_table(
        'capacity',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('activity_id', sa.Integer(), sa.ForeignKey('activities.id', ondelete='CASCADE'), nullable=False),
        sa.Column('date', sa.String(length=10), nullable=False),
        sa.Column('time', sa.String(length=5), nullable=False),
        sa.Column('total_slots', sa.Integer(), nullable=False),
        sa.Column('booked_slots', sa.Integer(), nullable=False),
        sa.UniqueConstraint('activity_id', 'date', 'time', name='uq_capacity_slot'),
        sa.CheckConstraint('booked_slots >= 0', name='ck_capacity_booked_nonneg'),
        sa.CheckConstraint('booked_slots <= total_slots', name='ck_capacity_no_overbooking'),
        sa.CheckConstraint('total_slots >= 0', name='ck_capacity_total_nonneg'),
    )
    op.create_index('ix_capacity_date', 'capacity', ['date'])

    op.create_table(
        'reservations',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('activity_id', sa.Integer(), sa.ForeignKey('activities.id'), nullable=False),
        sa.Column('capacity_id', sa.Integer(), sa.ForeignKey('capacity.id'), nullable=False),
        sa.Column('date', sa.String(length=10), nullable=False),
        sa.Column('time', sa.String(length=5), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('customer_name', sa.String(length=120), nullable=False),
        sa.Column('customer_phone', sa.String(length=32), nullable=False),
        sa.Column('customer_email', sa.String(length=254), nullable=True),
        sa.Column('total_price', sa.Numeric(12, 2), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('source', sa.String(length=16), nullable=False),
        sa.Column('external_id', sa.String(length=64), nullable=True),
        sa.Column('external_item_id', sa.String(length=64), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
        sa.Column('cancelled_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('source', 'external_id', 'external_item_id', name='uq_reservation_external'),
        sa.CheckConstraint('quantity > 0', name='ck_reservation_quantity_positive'),
    )
    op.create_index('ix_reservations_phone', 'reservations', ['customer_phone'])
    op.create_index('ix_reservations_external', 'reservations', ['source', 'external_id'])

    op.create_table(
        'messages',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('phone', sa.String(length=32), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('role', sa.String(length=16), nullable=False),
        sa.Column('external_id', sa.String(length=64), nullable=True, unique=True),
        sa.Column('reservation_id', sa.Integer(), sa.ForeignKey('reservations.id'), nullable=True),
        sa.Column('requires_human_intervention', sa.Boolean(), nullable=False),
        sa.Column('timestamp', sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index('ix_messages_phone', 'messages', ['phone'])

    op.create_table(
        'support_requests',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('phone', sa.String(length=32), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('reservation_id', sa.Integer(), sa.ForeignKey('reservations.id'), nullable=True),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
        sa.Column('resolved_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_support_requests_phone', 'support_requests', ['phone'])

    op.create_table(
        'system_logs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('level', sa.String(length=8), nullable=False),
        sa.Column('source', sa.String(length=64), nullable=False),
        sa.Column('message', sa.String(length=1000), nullable=False),
        sa.Column('details', sa.JSON(), nullable=True),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index('ix_system_logs_created_at', 'system_logs', ['created_at'])

    op.create_table(
        'settings',
        sa.Column('key', sa.String(length=64), primary_key=True),
        sa.Column('value', sa.JSON(), nullable=False),
    )


def downgrade() -> None:
    op.drop_table('settings')
    op.drop_index('ix_system_logs_created_at', table_name='system_logs')
    op.drop_table('system_logs')
    op.drop_index('ix_support_requests_phone', table_name='support_requests')
    op.drop_table('support_requests')
    op.drop_index('ix_messages_phone', table_name='messages')
    op.drop_table('messages')
    op.drop_index('ix_reservations_external', table_name='reservations')
    op.drop_index('ix_reservations_phone', table_name='reservations')
    op.drop_table('reservations')
    op.drop_index('ix_capacity_date', table_name='capacity')
    op.drop_table('capacity')
    op.drop_table('activities')
