"""initial schema

Revision ID: 20261019_initial_schema
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates the rosterdesk schema from scratch:
- orders / products: mirror of the WooCommerce feed (upsert keys order_id, product_id)
- program_registrations: roster rows (order, manual and transfer sources)
- program_settings / program_colors: operator program metadata
- order_installments / customer_credits: payment tracking
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261019_initial_schema'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps(updated=True):
    cols = [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
    ]
    if updated:
        cols.append(
            sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                      server_default=sa.text('CURRENT_TIMESTAMP'))
        )
    return cols


def upgrade():
    # ============================================================================
    # orders: vendor columns overwritten by sync, payment columns operator-owned
    # ============================================================================
    op.create_table(
        'orders',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('order_number', sa.String(length=32), nullable=False),
        sa.Column('date_created', sa.DateTime(), nullable=True),
        sa.Column('status', sa.String(length=32), nullable=False),
        sa.Column('customer_first_name', sa.String(length=128), nullable=True),
        sa.Column('customer_last_name', sa.String(length=128), nullable=True),
        sa.Column('customer_email', sa.String(length=255), nullable=True),
        sa.Column('customer_phone', sa.String(length=64), nullable=True),
        sa.Column('total', sa.Numeric(precision=10, scale=2), nullable=True),
        sa.Column('payment_method', sa.String(length=64), nullable=True),
        sa.Column('payment_method_title', sa.String(length=255), nullable=True),
        sa.Column('products', sa.JSON(), nullable=True),
        sa.Column('payment_status', sa.String(length=32), nullable=False,
                  server_default='paid'),
        sa.Column('has_installments', sa.Boolean(), nullable=False,
                  server_default=sa.false()),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('order_id', name='uq_orders_order_id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_orders_date_created', 'orders', ['date_created'])
    op.create_index('ix_orders_status', 'orders', ['status'])

    # ============================================================================
    # products: only consulted for "is this program published?"
    # ============================================================================
    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('product_id', name='uq_products_product_id'),
        sqlite_autoincrement=True
    )

    # ============================================================================
    # program_registrations: no unique (order_id, program_name); a player
    # moved away and back holds two rows for the pair
    # ============================================================================
    op.create_table(
        'program_registrations',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('program_name', sa.String(length=255), nullable=False),
        sa.Column('player_name', sa.String(length=255), nullable=False),
        sa.Column('player_email', sa.String(length=255), nullable=True),
        sa.Column('player_phone', sa.String(length=64), nullable=True),
        sa.Column('order_id', sa.Integer(), nullable=True),
        sa.Column('source', sa.String(length=32), nullable=False),
        sa.Column('payment_method', sa.String(length=64), nullable=True),
        sa.Column('amount', sa.Numeric(precision=10, scale=2), nullable=True),
        sa.Column('payment_status', sa.String(length=32), nullable=False,
                  server_default='paid'),
        sa.Column('status', sa.String(length=32), nullable=False,
                  server_default='active'),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_program_registrations_order_id', 'program_registrations', ['order_id'])
    op.create_index('ix_registrations_program_status', 'program_registrations', ['program_name', 'status'])
    op.create_index('ix_registrations_order_program', 'program_registrations', ['order_id', 'program_name'])

    # ============================================================================
    # program_settings / program_colors
    # ============================================================================
    op.create_table(
        'program_settings',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('program_name', sa.String(length=255), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False,
                  server_default='open_registration'),
        sa.Column('display_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('start_date', sa.Date(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('email_template', sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('program_name', name='uq_program_settings_name'),
        sqlite_autoincrement=True
    )

    op.create_table(
        'program_colors',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('program_name', sa.String(length=255), nullable=False),
        sa.Column('color', sa.String(length=7), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('program_name', name='uq_program_colors_name'),
        sqlite_autoincrement=True
    )

    # ============================================================================
    # order_installments: drives orders.has_installments
    # ============================================================================
    op.create_table(
        'order_installments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('installment_number', sa.Integer(), nullable=False),
        sa.Column('amount_due', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('amount_paid', sa.Numeric(precision=10, scale=2), nullable=False,
                  server_default='0'),
        sa.Column('due_date', sa.Date(), nullable=True),
        sa.Column('paid_date', sa.Date(), nullable=True),
        sa.Column('status', sa.String(length=32), nullable=False,
                  server_default='pending'),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(['order_id'], ['orders.order_id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_order_installments_order_id', 'order_installments', ['order_id'])
    op.create_index('ix_installments_order_number', 'order_installments', ['order_id', 'installment_number'])

    # ============================================================================
    # customer_credits: active -> used, one way
    # ============================================================================
    op.create_table(
        'customer_credits',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('player_name', sa.String(length=255), nullable=False),
        sa.Column('player_email', sa.String(length=255), nullable=True),
        sa.Column('amount', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('reason', sa.Text(), nullable=False),
        sa.Column('created_by', sa.String(length=128), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False,
                  server_default='active'),
        sa.Column('used_by', sa.String(length=128), nullable=True),
        sa.Column('used_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('used_on_program', sa.String(length=255), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(updated=False),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_credits_status_created', 'customer_credits', ['status', 'created_at'])


def downgrade():
    op.drop_index('ix_credits_status_created', table_name='customer_credits')
    op.drop_table('customer_credits')
    op.drop_index('ix_installments_order_number', table_name='order_installments')
    op.drop_index('ix_order_installments_order_id', table_name='order_installments')
    op.drop_table('order_installments')
    op.drop_table('program_colors')
    op.drop_table('program_settings')
    op.drop_index('ix_registrations_order_program', table_name='program_registrations')
    op.drop_index('ix_registrations_program_status', table_name='program_registrations')
    op.drop_index('ix_program_registrations_order_id', table_name='program_registrations')
    op.drop_table('program_registrations')
    op.drop_table('products')
    op.drop_index('ix_orders_status', table_name='orders')
    op.drop_index('ix_orders_date_created', table_name='orders')
    op.drop_table('orders')
