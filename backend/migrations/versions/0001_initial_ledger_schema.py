"""initial ledger schema

Revision ID: 0001_initial_ledger
Revises:
Create Date: 2026-10-18 00:00:00.000000

Creates the inventory ledger schema:
- products: Product master (no stock or average-cost columns)
- customers / suppliers: Document counterparties
- inventory_transactions: Signed stock movements, removed only by reference
- sales_invoices / sales_invoice_items: Sales documents (OUT movements)
- purchase_receipts / purchase_receipt_items: Purchase documents (IN movements)
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001_initial_ledger'
down_revision = None
branch_labels = None
depends_on = None


MONEY = sa.Numeric(precision=15, scale=2)


def upgrade():
    """
    Create all tables from scratch.

    WHY: Document codes carry UNIQUE constraints so that two concurrent
    postings can never both commit the same code; the posting engine
    regenerates the code and retries once on a collision.
    """

    # ============================================================================
    # products: Product master
    # ============================================================================
    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(length=64), nullable=False),
        sa.Column('barcode', sa.String(length=128), nullable=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('unit', sa.String(length=32), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('cost_price', MONEY, nullable=False),
        sa.Column('sale_price_default', MONEY, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('code', name='uq_products_code'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_products_barcode', 'products', ['barcode'])
    op.create_index('ix_products_status', 'products', ['status'])
    op.create_index('ix_products_status_name', 'products', ['status', 'name'])

    # ============================================================================
    # customers / suppliers: Counterparties
    # ============================================================================
    for table in ('customers', 'suppliers'):
        op.create_table(
            table,
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('code', sa.String(length=64), nullable=False),
            sa.Column('name', sa.String(length=255), nullable=False),
            sa.Column('phone', sa.String(length=64), nullable=True),
            sa.Column('status', sa.String(length=16), nullable=False),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('code', name=f'uq_{table}_code'),
            sqlite_autoincrement=True
        )

    # ============================================================================
    # inventory_transactions: Stock ledger
    # ============================================================================
    op.create_table(
        'inventory_transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('transaction_type', sa.String(length=8), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_cost', MONEY, nullable=True),
        sa.Column('reference_type', sa.String(length=16), nullable=False),
        sa.Column('reference_id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['product_id'], ['products.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_inventory_transactions_product_id',
                    'inventory_transactions', ['product_id'])
    op.create_index('ix_invtx_product_created',
                    'inventory_transactions', ['product_id', 'created_at'])
    op.create_index('ix_invtx_reference',
                    'inventory_transactions', ['reference_type', 'reference_id'])

    # ============================================================================
    # sales_invoices: Sales documents
    # ============================================================================
    op.create_table(
        'sales_invoices',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(length=32), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=True),
        sa.Column('total_amount', MONEY, nullable=False),
        sa.Column('discount_type', sa.String(length=16), nullable=False),
        sa.Column('discount_value', MONEY, nullable=False),
        sa.Column('payment_method', sa.String(length=32), nullable=False),
        sa.Column('paid_amount', MONEY, nullable=False),
        sa.Column('note', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('code', name='uq_sales_invoices_code'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_sales_invoices_customer_id', 'sales_invoices', ['customer_id'])
    op.create_index('ix_sales_invoices_created', 'sales_invoices', ['created_at'])

    op.create_table(
        'sales_invoice_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sales_invoice_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', MONEY, nullable=False),
        sa.Column('discount', MONEY, nullable=False),
        sa.Column('total_amount', MONEY, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['sales_invoice_id'], ['sales_invoices.id']),
        sa.ForeignKeyConstraint(['product_id'], ['products.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_sales_invoice_items_sales_invoice_id',
                    'sales_invoice_items', ['sales_invoice_id'])
    op.create_index('ix_sales_invoice_items_product_id',
                    'sales_invoice_items', ['product_id'])

    # ============================================================================
    # purchase_receipts: Purchase documents
    # ============================================================================
    op.create_table(
        'purchase_receipts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(length=32), nullable=False),
        sa.Column('supplier_id', sa.Integer(), nullable=True),
        sa.Column('total_amount', MONEY, nullable=False),
        sa.Column('discount_type', sa.String(length=16), nullable=False),
        sa.Column('discount_value', MONEY, nullable=False),
        sa.Column('other_fee', MONEY, nullable=False),
        sa.Column('note', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['supplier_id'], ['suppliers.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('code', name='uq_purchase_receipts_code'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_purchase_receipts_supplier_id', 'purchase_receipts', ['supplier_id'])
    op.create_index('ix_purchase_receipts_created', 'purchase_receipts', ['created_at'])

    op.create_table(
        'purchase_receipt_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('purchase_receipt_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', MONEY, nullable=False),
        sa.Column('discount', MONEY, nullable=False),
        sa.Column('total_amount', MONEY, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['purchase_receipt_id'], ['purchase_receipts.id']),
        sa.ForeignKeyConstraint(['product_id'], ['products.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_purchase_receipt_items_purchase_receipt_id',
                    'purchase_receipt_items', ['purchase_receipt_id'])
    op.create_index('ix_purchase_receipt_items_product_id',
                    'purchase_receipt_items', ['product_id'])


def downgrade():
    """Drop all tables (destructive operation)."""
    op.drop_table('purchase_receipt_items')
    op.drop_table('purchase_receipts')
    op.drop_table('sales_invoice_items')
    op.drop_table('sales_invoices')
    op.drop_table('inventory_transactions')
    op.drop_table('suppliers')
    op.drop_table('customers')
    op.drop_table('products')
