"""stock ledger schema

Revision ID: sl0001
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates the complete stock ledger schema from scratch:
- branches, users: scoping and audit actors
- products, product_variants: the stocked units (barcode unique)
- stocks: running balance per (variant, branch)
- stock_movements: append-only movement log with FIFO lot tracking
- document_sequences: per-branch ref counters
- adjustment / request / stock return / transfer / purchase documents
- orders (invoices), payments, quotations, sale returns
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'sl0001'
down_revision = None
branch_labels = None
depends_on = None


def _quantity():
    return sa.Numeric(precision=18, scale=4)


def _money():
    return sa.Numeric(precision=18, scale=4)


def _audit_columns():
    """created / updated / approved / deleted quadruple of a document header."""
    return [
        sa.Column('created_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('updated_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('approved_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('deleted_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('del_reason', sa.Text(), nullable=True),
    ]


def _stock_lines(table, parent_table, parent_column):
    op.create_table(
        table,
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column(parent_column, sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('product_variant_id', sa.Integer(), nullable=False),
        sa.Column('quantity', _quantity(), nullable=False),
        sa.ForeignKeyConstraint([parent_column], [f'{parent_table}.id'], ),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.ForeignKeyConstraint(['product_variant_id'], ['product_variants.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index(f'ix_{table}_{parent_column}', table, [parent_column])


def _priced_lines(table, parent_table, parent_column, *extra):
    op.create_table(
        table,
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column(parent_column, sa.Integer(), nullable=False),
        *extra,
        sa.Column('item_type', sa.String(length=16), nullable=False, server_default='PRODUCT'),
        sa.Column('product_id', sa.Integer(), nullable=True),
        sa.Column('product_variant_id', sa.Integer(), nullable=True),
        sa.Column('service_id', sa.Integer(), nullable=True),
        sa.Column('quantity', _quantity(), nullable=False),
        sa.Column('price', _money(), nullable=False),
        sa.Column('discount', _money(), nullable=False, server_default='0'),
        sa.Column('discount_method', sa.String(length=16), nullable=False, server_default='FIXED'),
        sa.Column('tax_net', _money(), nullable=False, server_default='0'),
        sa.Column('tax_method', sa.String(length=16), nullable=True),
        sa.Column('total', _money(), nullable=False, server_default='0'),
        sa.ForeignKeyConstraint([parent_column], [f'{parent_table}.id'], ),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.ForeignKeyConstraint(['product_variant_id'], ['product_variants.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index(f'ix_{table}_{parent_column}', table, [parent_column])


def _sales_amounts():
    return [
        sa.Column('customer_id', sa.Integer(), nullable=True),
        sa.Column('sale_type', sa.String(length=16), nullable=True),
        sa.Column('tax_rate', _money(), nullable=False, server_default='0'),
        sa.Column('tax_net', _money(), nullable=False, server_default='0'),
        sa.Column('discount', _money(), nullable=False, server_default='0'),
        sa.Column('shipping', _money(), nullable=False, server_default='0'),
    ]


def _document_header(table, *columns):
    op.create_table(
        table,
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('branch_id', sa.Integer(), nullable=False),
        sa.Column('ref', sa.String(length=32), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='PENDING'),
        *columns,
        sa.Column('note', sa.Text(), nullable=True),
        *_audit_columns(),
        sa.ForeignKeyConstraint(['branch_id'], ['branches.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('branch_id', 'ref', name=f'uq_{table}_branch_ref'),
        sqlite_autoincrement=True
    )
    op.create_index(f'ix_{table}_branch_id', table, ['branch_id'])
    op.create_index(f'ix_{table}_status', table, ['status'])


def upgrade():
    """Create all tables from scratch."""

    # ============================================================================
    # branches / users
    # ============================================================================
    op.create_table(
        'branches',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('address', sa.String(length=255), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name'),
        sqlite_autoincrement=True
    )

    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('branch_id', sa.Integer(), nullable=True),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('first_name', sa.String(length=64), nullable=True),
        sa.Column('last_name', sa.String(length=64), nullable=True),
        sa.Column('role_type', sa.String(length=16), nullable=False, server_default='USER'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['branch_id'], ['branches.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('username'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_users_branch_id', 'users', ['branch_id'])

    # ============================================================================
    # products / product_variants
    # ============================================================================
    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )

    op.create_table(
        'product_variants',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('sku', sa.String(length=64), nullable=True),
        sa.Column('barcode', sa.String(length=64), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('barcode', name='uq_product_variants_barcode'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_product_variants_product_id', 'product_variants', ['product_id'])

    # ============================================================================
    # stocks: running balance per (variant, branch)
    # ============================================================================
    op.create_table(
        'stocks',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_variant_id', sa.Integer(), nullable=False),
        sa.Column('branch_id', sa.Integer(), nullable=False),
        sa.Column('quantity', _quantity(), nullable=False, server_default='0'),
        sa.Column('created_by', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_by', sa.Integer(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['product_variant_id'], ['product_variants.id'], ),
        sa.ForeignKeyConstraint(['branch_id'], ['branches.id'], ),
        sa.ForeignKeyConstraint(['created_by'], ['users.id'], ),
        sa.ForeignKeyConstraint(['updated_by'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('product_variant_id', 'branch_id', name='uq_stocks_variant_branch'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_stocks_product_variant_id', 'stocks', ['product_variant_id'])
    op.create_index('ix_stocks_branch_id', 'stocks', ['branch_id'])

    # ============================================================================
    # document_sequences: one counter per (branch, document type)
    # ============================================================================
    op.create_table(
        'document_sequences',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('branch_id', sa.Integer(), nullable=False),
        sa.Column('document_type', sa.String(length=32), nullable=False),
        sa.Column('next_number', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['branch_id'], ['branches.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('branch_id', 'document_type', name='uq_doc_sequences_branch_type'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_document_sequences_branch_id', 'document_sequences', ['branch_id'])
    op.create_index('ix_document_sequences_document_type', 'document_sequences', ['document_type'])

    # ============================================================================
    # Stock documents
    # ============================================================================
    _document_header(
        'stock_adjustments',
        sa.Column('adjustment_type', sa.String(length=16), nullable=False, server_default='POSITIVE'),
        sa.Column('adjust_date', sa.Date(), nullable=False),
    )
    _stock_lines('stock_adjustment_details', 'stock_adjustments', 'adjustment_id')

    _document_header(
        'stock_requests',
        sa.Column('request_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('request_date', sa.Date(), nullable=False),
    )
    _stock_lines('stock_request_details', 'stock_requests', 'request_id')

    _document_header(
        'stock_returns',
        sa.Column('return_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('return_date', sa.Date(), nullable=False),
    )
    _stock_lines('stock_return_details', 'stock_returns', 'return_id')

    _document_header(
        'stock_transfers',
        sa.Column('to_branch_id', sa.Integer(), sa.ForeignKey('branches.id'), nullable=False),
        sa.Column('transfer_date', sa.Date(), nullable=False),
    )
    op.create_index('ix_stock_transfers_to_branch_id', 'stock_transfers', ['to_branch_id'])
    _stock_lines('stock_transfer_details', 'stock_transfers', 'transfer_id')

    # ============================================================================
    # Purchases
    # ============================================================================
    _document_header(
        'purchases',
        sa.Column('supplier_id', sa.Integer(), nullable=True),
        sa.Column('purchase_date', sa.Date(), nullable=False),
        sa.Column('tax_rate', _money(), nullable=False, server_default='0'),
        sa.Column('tax_net', _money(), nullable=False, server_default='0'),
        sa.Column('discount', _money(), nullable=False, server_default='0'),
        sa.Column('shipping', _money(), nullable=False, server_default='0'),
        sa.Column('grand_total', _money(), nullable=False, server_default='0'),
        sa.Column('paid_amount', _money(), nullable=False, server_default='0'),
        sa.Column('received_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('received_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_table(
        'purchase_details',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('purchase_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=True),
        sa.Column('product_variant_id', sa.Integer(), nullable=False),
        sa.Column('quantity', _quantity(), nullable=False),
        sa.Column('cost', _money(), nullable=False),
        sa.Column('discount', _money(), nullable=False, server_default='0'),
        sa.Column('discount_method', sa.String(length=16), nullable=False, server_default='FIXED'),
        sa.Column('tax_net', _money(), nullable=False, server_default='0'),
        sa.Column('tax_method', sa.String(length=16), nullable=True),
        sa.Column('total', _money(), nullable=False, server_default='0'),
        sa.ForeignKeyConstraint(['purchase_id'], ['purchases.id'], ),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.ForeignKeyConstraint(['product_variant_id'], ['product_variants.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_purchase_details_purchase_id', 'purchase_details', ['purchase_id'])

    # ============================================================================
    # Orders (invoices) and quotations
    # ============================================================================
    _document_header(
        'orders',
        *_sales_amounts(),
        sa.Column('order_date', sa.Date(), nullable=False),
        sa.Column('total_amount', _money(), nullable=False, server_default='0'),
        sa.Column('paid_amount', _money(), nullable=False, server_default='0'),
        sa.Column('return_status', sa.Integer(), nullable=False, server_default='0'),
    )
    _priced_lines('order_items', 'orders', 'order_id')

    _document_header(
        'quotations',
        *_sales_amounts(),
        sa.Column('quotation_date', sa.Date(), nullable=False),
        sa.Column('grand_total', _money(), nullable=False, server_default='0'),
        sa.Column('order_id', sa.Integer(), sa.ForeignKey('orders.id'), nullable=True),
        sa.Column('invoiced_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('invoiced_at', sa.DateTime(timezone=True), nullable=True),
    )
    _priced_lines('quotation_details', 'quotations', 'quotation_id')

    # ============================================================================
    # Sale returns (booked approved, never edited)
    # ============================================================================
    op.create_table(
        'sale_returns',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('branch_id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=True),
        sa.Column('ref', sa.String(length=32), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='APPROVED'),
        sa.Column('discount', _money(), nullable=False, server_default='0'),
        sa.Column('tax_rate', _money(), nullable=False, server_default='0'),
        sa.Column('tax_net', _money(), nullable=False, server_default='0'),
        sa.Column('shipping', _money(), nullable=False, server_default='0'),
        sa.Column('total_amount', _money(), nullable=False, server_default='0'),
        sa.Column('note', sa.Text(), nullable=True),
        sa.Column('created_by', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ),
        sa.ForeignKeyConstraint(['branch_id'], ['branches.id'], ),
        sa.ForeignKeyConstraint(['created_by'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('branch_id', 'ref', name='uq_sale_returns_branch_ref'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_sale_returns_order_id', 'sale_returns', ['order_id'])
    op.create_index('ix_sale_returns_branch_id', 'sale_returns', ['branch_id'])

    _priced_lines(
        'sale_return_items', 'sale_returns', 'sale_return_id',
        sa.Column('order_item_id', sa.Integer(), sa.ForeignKey('order_items.id'), nullable=False),
    )
    op.create_index('ix_sale_return_items_order_item_id', 'sale_return_items', ['order_item_id'])

    # ============================================================================
    # order_payments: PAID rows and their REFUND counter-entries
    # ============================================================================
    op.create_table(
        'order_payments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('branch_id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('payment_method_id', sa.Integer(), nullable=True),
        sa.Column('payment_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('total_paid', _money(), nullable=False),
        sa.Column('receive_usd', _money(), nullable=True),
        sa.Column('receive_khr', _money(), nullable=True),
        sa.Column('exchange_rate', _money(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='PAID'),
        sa.Column('reversed_payment_id', sa.Integer(), nullable=True),
        sa.Column('sale_return_id', sa.Integer(), nullable=True),
        sa.Column('created_by', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['branch_id'], ['branches.id'], ),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ),
        sa.ForeignKeyConstraint(['reversed_payment_id'], ['order_payments.id'], ),
        sa.ForeignKeyConstraint(['sale_return_id'], ['sale_returns.id'], ),
        sa.ForeignKeyConstraint(['created_by'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_order_payments_branch_id', 'order_payments', ['branch_id'])
    op.create_index('ix_order_payments_order_id', 'order_payments', ['order_id'])
    op.create_index('ix_order_payments_reversed_payment_id', 'order_payments', ['reversed_payment_id'])

    # ============================================================================
    # stock_movements: append-only log, one row per quantity change
    # ============================================================================
    op.create_table(
        'stock_movements',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_variant_id', sa.Integer(), nullable=False),
        sa.Column('branch_id', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(length=32), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='APPROVED'),
        sa.Column('quantity', _quantity(), nullable=False),
        sa.Column('unit_cost', _money(), nullable=True),
        sa.Column('source_movement_id', sa.Integer(), nullable=True),
        sa.Column('remaining_qty', _quantity(), nullable=True),
        sa.Column('order_item_id', sa.Integer(), nullable=True),
        sa.Column('sale_return_item_id', sa.Integer(), nullable=True),
        sa.Column('note', sa.Text(), nullable=True),
        sa.Column('created_by', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('approved_by', sa.Integer(), nullable=True),
        sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['product_variant_id'], ['product_variants.id'], ),
        sa.ForeignKeyConstraint(['branch_id'], ['branches.id'], ),
        sa.ForeignKeyConstraint(['source_movement_id'], ['stock_movements.id'], ),
        sa.ForeignKeyConstraint(['order_item_id'], ['order_items.id'], ),
        sa.ForeignKeyConstraint(['sale_return_item_id'], ['sale_return_items.id'], ),
        sa.ForeignKeyConstraint(['created_by'], ['users.id'], ),
        sa.ForeignKeyConstraint(['approved_by'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_stock_movements_variant_branch', 'stock_movements', ['product_variant_id', 'branch_id'])
    op.create_index('ix_stock_movements_order_item', 'stock_movements', ['order_item_id'])
    op.create_index('ix_stock_movements_branch_id', 'stock_movements', ['branch_id'])
    op.create_index('ix_stock_movements_type', 'stock_movements', ['type'])
    op.create_index('ix_stock_movements_source_movement_id', 'stock_movements', ['source_movement_id'])
    op.create_index('ix_stock_movements_sale_return_item_id', 'stock_movements', ['sale_return_item_id'])


def downgrade():
    """Drop all tables (destructive operation)."""
    for table in (
        'stock_movements',
        'order_payments',
        'sale_return_items',
        'sale_returns',
        'quotation_details',
        'quotations',
        'order_items',
        'orders',
        'purchase_details',
        'purchases',
        'stock_transfer_details',
        'stock_transfers',
        'stock_return_details',
        'stock_returns',
        'stock_request_details',
        'stock_requests',
        'stock_adjustment_details',
        'stock_adjustments',
        'document_sequences',
        'stocks',
        'product_variants',
        'products',
        'users',
        'branches',
    ):
        op.drop_table(table)
