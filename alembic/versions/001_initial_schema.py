"""initial schema: events, customers, addresses, coupons, orders, kits

Revision ID: 001
Revises: 
Create Date: 2026-10-19 12:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'events',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('time', sa.String(length=5), nullable=False),
        sa.Column('location', sa.String(length=200), nullable=False),
        sa.Column('city', sa.String(length=100), nullable=False),
        sa.Column('state', sa.String(length=2), nullable=False),
        sa.Column('participants', sa.Integer(), nullable=False),
        sa.Column('available', sa.Boolean(), nullable=False),
        sa.Column('fixed_price', sa.Numeric(10, 2), nullable=True),
        sa.Column('extra_kit_price', sa.Numeric(10, 2), nullable=False),
        sa.Column('donation_required', sa.Boolean(), nullable=False),
        sa.Column('donation_description', sa.String(length=255), nullable=True),
        sa.Column('donation_amount', sa.Numeric(10, 2), nullable=True),
        sa.Column('coupon_code', sa.String(length=50), nullable=True),
        sa.Column('coupon_discount', sa.Numeric(5, 2), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table(
        'customers',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('cpf', sa.String(length=11), nullable=False),
        sa.Column('birth_date', sa.Date(), nullable=False),
        sa.Column('email', sa.String(length=200), nullable=True),
        sa.Column('phone', sa.String(length=50), nullable=True),
        sa.Column('address', sa.String(length=255), nullable=True),
        sa.Column('neighborhood', sa.String(length=100), nullable=True),
        sa.Column('city', sa.String(length=100), nullable=True),
        sa.Column('state', sa.String(length=2), nullable=True),
        sa.Column('zip_code', sa.String(length=8), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    # CPF sempre só dígitos; único por cliente
    op.create_index('ix_customers_cpf', 'customers', ['cpf'], unique=True)

    op.create_table(
        'addresses',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('street', sa.String(length=200), nullable=False),
        sa.Column('number', sa.String(length=20), nullable=False),
        sa.Column('complement', sa.String(length=100), nullable=True),
        sa.Column('neighborhood', sa.String(length=100), nullable=False),
        sa.Column('city', sa.String(length=100), nullable=False),
        sa.Column('state', sa.String(length=2), nullable=False),
        sa.Column('zip_code', sa.String(length=8), nullable=False),
        sa.Column('label', sa.String(length=50), nullable=False),
        sa.Column('is_default', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_addresses_customer_id', 'addresses', ['customer_id'], unique=False)

    op.create_table(
        'coupons',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('code', sa.String(length=50), nullable=False),
        sa.Column('discount_percentage', sa.Numeric(5, 2), nullable=False),
        sa.Column('active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('code')
    )

    op.create_table(
        'orders',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('order_number', sa.String(length=32), nullable=False),
        sa.Column('event_id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('address_id', sa.Integer(), nullable=False),
        sa.Column('kit_quantity', sa.Integer(), nullable=False),
        sa.Column('base_cost', sa.Numeric(10, 2), nullable=False),
        sa.Column('delivery_cost', sa.Numeric(10, 2), nullable=False),
        sa.Column('donation_cost', sa.Numeric(10, 2), nullable=False),
        sa.Column('extra_kits_cost', sa.Numeric(10, 2), nullable=False),
        sa.Column('discount_amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('coupon_code', sa.String(length=50), nullable=True),
        sa.Column('total_cost', sa.Numeric(10, 2), nullable=False),
        sa.Column('payment_method', sa.String(length=10), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('idempotency_key', sa.String(length=100), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['event_id'], ['events.id']),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id']),
        sa.ForeignKeyConstraint(['address_id'], ['addresses.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('idempotency_key')
    )
    op.create_index('ix_orders_order_number', 'orders', ['order_number'], unique=True)
    op.create_index('ix_orders_customer_id', 'orders', ['customer_id'], unique=False)

    op.create_table(
        'kits',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('cpf', sa.String(length=11), nullable=False),
        sa.Column('shirt_size', sa.String(length=3), nullable=False),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_kits_order_id', 'kits', ['order_id'], unique=False)


def downgrade() -> None:
    # Ordem inversa das dependências de FK
    op.drop_index('ix_kits_order_id', table_name='kits')
    op.drop_table('kits')
    op.drop_index('ix_orders_customer_id', table_name='orders')
    op.drop_index('ix_orders_order_number', table_name='orders')
    op.drop_table('orders')
    op.drop_table('coupons')
    op.drop_index('ix_addresses_customer_id', table_name='addresses')
    op.drop_table('addresses')
    op.drop_index('ix_customers_cpf', table_name='customers')
    op.drop_table('customers')
    op.drop_table('events')
