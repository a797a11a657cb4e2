"""Initial schema - users, listings, inventory, unavailable dates, bookings

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-18

Inventory and booking invariants are mirrored as CHECK constraints so the
database rejects counters that drift out of range.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001_initial_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('full_name', sa.String(200), nullable=True),
        sa.Column('role', sa.String(20), nullable=False, server_default='customer'),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'listings',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('price', sa.Numeric(10, 2), server_default='0'),
        sa.Column('provider_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_listings_provider_id', 'listings', ['provider_id'])

    op.create_table(
        'property_inventory',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('listing_id', sa.String(36), sa.ForeignKey('listings.id', ondelete='CASCADE'),
                  nullable=False, unique=True),
        sa.Column('total_units', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('available_units', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('min_booking_days', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('max_booking_days', sa.Integer(), nullable=False, server_default='30'),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.CheckConstraint('total_units >= 1 AND total_units <= 100', name='ck_inventory_total_units'),
        sa.CheckConstraint(
            'available_units >= 0 AND available_units <= total_units',
            name='ck_inventory_available_units'
        ),
        sa.CheckConstraint(
            'min_booking_days >= 1 AND min_booking_days <= max_booking_days AND max_booking_days <= 365',
            name='ck_inventory_booking_days'
        ),
    )

    op.create_table(
        'listing_unavailable_dates',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('listing_id', sa.String(36), sa.ForeignKey('listings.id', ondelete='CASCADE'), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('reason', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('listing_id', 'date', name='uq_unavailable_listing_date'),
    )
    op.create_index('ix_unavailable_listing_date', 'listing_unavailable_dates', ['listing_id', 'date'])

    op.create_table(
        'bookings',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('listing_id', sa.String(36), sa.ForeignKey('listings.id', ondelete='CASCADE'), nullable=False),
        sa.Column('date', sa.DateTime(), nullable=False),
        sa.Column('end_date', sa.DateTime(), nullable=True),
        sa.Column('units', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('inventory_reserved', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.CheckConstraint('units >= 1 AND units <= 100', name='ck_booking_units'),
        sa.CheckConstraint(
            "status IN ('pending', 'confirmed', 'cancelled', 'completed')",
            name='ck_booking_status'
        ),
    )
    op.create_index('ix_booking_listing_status_date', 'bookings', ['listing_id', 'status', 'date'])
    op.create_index('ix_booking_user', 'bookings', ['user_id'])


def downgrade() -> None:
    op.drop_index('ix_booking_user', table_name='bookings')
    op.drop_index('ix_booking_listing_status_date', table_name='bookings')
    op.drop_table('bookings')
    op.drop_index('ix_unavailable_listing_date', table_name='listing_unavailable_dates')
    op.drop_table('listing_unavailable_dates')
    op.drop_table('property_inventory')
    op.drop_index('ix_listings_provider_id', table_name='listings')
    op.drop_table('listings')
    op.drop_index('ix_users_email', table_name='users')
    op.drop_table('users')
