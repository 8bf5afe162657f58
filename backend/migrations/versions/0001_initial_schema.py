"""initial schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates the complete POS schema:
- users / session_tokens: cashier identity and bearer sessions
- products: catalog with live stock balance (never negative)
- stock_movements: append-only IN/OUT log
- transactions / transaction_items: sales with snapshotted line prices
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ============================================================================
    # users: cashiers and administrators
    # ============================================================================
    op.create_table(
        'users',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=16), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_users')),
        sa.UniqueConstraint('email', name=op.f('uq_users_email')),
    )

    op.create_table(
        'session_tokens',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('token_hash', sa.String(length=64), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'],
                                name=op.f('fk_session_tokens_user_id_users')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_session_tokens')),
        sa.UniqueConstraint('token_hash', name=op.f('uq_session_tokens_token_hash')),
    )
    op.create_index(op.f('ix_session_tokens_user_id'), 'session_tokens', ['user_id'])

    # ============================================================================
    # products: catalog; stock changes only through the stock ledger
    # ============================================================================
    op.create_table(
        'products',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('sku', sa.String(length=64), nullable=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('price', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('stock', sa.Integer(), nullable=False),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.CheckConstraint('stock >= 0', name=op.f('ck_products_stock_non_negative')),
        sa.CheckConstraint('price >= 0', name=op.f('ck_products_price_non_negative')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_products')),
        sa.UniqueConstraint('sku', name=op.f('uq_products_sku')),
    )
    op.create_index('ix_products_name', 'products', ['name'])
    op.create_index(op.f('ix_products_deleted_at'), 'products', ['deleted_at'])

    # ============================================================================
    # stock_movements: append-only IN/OUT log
    # ============================================================================
    op.create_table(
        'stock_movements',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('product_id', sa.String(length=36), nullable=False),
        sa.Column('type', sa.String(length=8), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('reason', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.CheckConstraint('quantity > 0', name=op.f('ck_stock_movements_quantity_positive')),
        sa.CheckConstraint("type IN ('IN', 'OUT')", name=op.f('ck_stock_movements_type_valid')),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'],
                                name=op.f('fk_stock_movements_product_id_products')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_stock_movements')),
    )
    op.create_index(op.f('ix_stock_movements_product_id'), 'stock_movements', ['product_id'])
    op.create_index(op.f('ix_stock_movements_type'), 'stock_movements', ['type'])
    op.create_index(op.f('ix_stock_movements_created_at'), 'stock_movements', ['created_at'])
    op.create_index('ix_stock_movements_product_created', 'stock_movements', ['product_id', 'created_at'])

    # ============================================================================
    # transactions: one row per checkout
    # ============================================================================
    op.create_table(
        'transactions',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('code', sa.String(length=32), nullable=False),
        sa.Column('cashier_id', sa.String(length=36), nullable=False),
        sa.Column('subtotal', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('tax', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('discount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('total_amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('payment_method', sa.String(length=32), nullable=False),
        sa.Column('payment_status', sa.String(length=16), nullable=False),
        sa.Column('paid_amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('change_amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('qr_code_url', sa.Text(), nullable=True),
        sa.Column('qr_expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['cashier_id'], ['users.id'],
                                name=op.f('fk_transactions_cashier_id_users')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_transactions')),
        sa.UniqueConstraint('code', name=op.f('uq_transactions_code')),
    )
    op.create_index(op.f('ix_transactions_cashier_id'), 'transactions', ['cashier_id'])
    op.create_index(op.f('ix_transactions_payment_status'), 'transactions', ['payment_status'])
    op.create_index('ix_transactions_created', 'transactions', ['created_at'])
    op.create_index('ix_transactions_status_created', 'transactions', ['payment_status', 'created_at'])

    op.create_table(
        'transaction_items',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('transaction_id', sa.String(length=36), nullable=False),
        sa.Column('product_id', sa.String(length=36), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('product_name', sa.String(length=255), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('price', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('discount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['transaction_id'], ['transactions.id'], ondelete='CASCADE',
                                name=op.f('fk_transaction_items_transaction_id_transactions')),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'],
                                name=op.f('fk_transaction_items_product_id_products')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_transaction_items')),
    )
    op.create_index(op.f('ix_transaction_items_transaction_id'), 'transaction_items', ['transaction_id'])
    op.create_index(op.f('ix_transaction_items_product_id'), 'transaction_items', ['product_id'])


def downgrade():
    op.drop_table('transaction_items')
    op.drop_table('transactions')
    op.drop_table('stock_movements')
    op.drop_table('products')
    op.drop_table('session_tokens')
    op.drop_table('users')
