"""Initial ledger schema

Revision ID: 001_initial_ledger
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision = '001_initial_ledger'
down_revision = None
branch_labels = None
depends_on = None


MONEY = sa.Numeric(14, 2)
ZERO = sa.text("0")


def _id():
    return sa.Column('id', sa.Uuid, primary_key=True)


def _team_id():
    return sa.Column('team_id', sa.Uuid, sa.ForeignKey('teams.id', ondelete='CASCADE'), nullable=False, index=True)


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    ]


def _document_columns(status_default='DRAFT'):
    """Header columns shared by invoices, bills, notes and quotations."""
    return [
        _id(),
        _team_id(),
        sa.Column('currency', sa.String(3), server_default='BTN', nullable=False),
        sa.Column('status', sa.String(50), server_default=status_default, nullable=False, index=True),
        sa.Column('subtotal', MONEY, server_default=ZERO, nullable=False),
        sa.Column('total_discount', MONEY, server_default=ZERO, nullable=False),
        sa.Column('total_tax', MONEY, server_default=ZERO, nullable=False),
        sa.Column('total_amount', MONEY, server_default=ZERO, nullable=False),
        sa.Column('notes', sa.Text, nullable=True),
        sa.Column('created_by', sa.Uuid, nullable=True),
        *_timestamps(),
    ]


def _payable_columns():
    return [
        sa.Column('amount_paid', MONEY, server_default=ZERO, nullable=False),
        sa.Column('amount_due', MONEY, server_default=ZERO, nullable=False),
        sa.Column('payment_status', sa.String(20), server_default='UNPAID', nullable=False),
        sa.Column('is_locked', sa.Boolean, server_default=sa.false(), nullable=False),
        sa.Column('locked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('locked_by', sa.Uuid, nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancelled_reason', sa.String(500), nullable=True),
        sa.Column('cancelled_by', sa.Uuid, nullable=True),
    ]


def _note_columns():
    return [
        sa.Column('applied_amount', MONEY, server_default=ZERO, nullable=False),
        sa.Column('unapplied_amount', MONEY, server_default=ZERO, nullable=False),
        sa.Column('refunded_amount', MONEY, server_default=ZERO, nullable=False),
        sa.Column('reason', sa.String(500), nullable=False),
        sa.Column('issued_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('refunded_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancelled_reason', sa.String(500), nullable=True),
    ]


def _line_item_table(name, parent_fk, parent_table):
    op.create_table(
        name,
        _id(),
        sa.Column(parent_fk, sa.Uuid, sa.ForeignKey(f'{parent_table}.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('product_id', sa.Uuid, nullable=True),
        sa.Column('description', sa.String(500), nullable=False),
        sa.Column('unit', sa.String(20), nullable=True),
        sa.Column('quantity', sa.Numeric(12, 3), nullable=False),
        sa.Column('unit_price', sa.Numeric(14, 4), nullable=False),
        sa.Column('discount_percent', sa.Numeric(5, 2), server_default=ZERO, nullable=False),
        sa.Column('tax_rate', sa.Numeric(5, 2), server_default=ZERO, nullable=False),
        sa.Column('is_tax_exempt', sa.Boolean, server_default=sa.false(), nullable=False),
        sa.Column('gst_classification', sa.String(20), server_default='STANDARD', nullable=False),
        sa.Column('line_total', MONEY, nullable=False),
        sa.Column('discount_amount', MONEY, server_default=ZERO, nullable=False),
        sa.Column('tax_amount', MONEY, server_default=ZERO, nullable=False),
        sa.Column('item_total', MONEY, nullable=False),
        sa.Column('sort_order', sa.Integer, server_default=ZERO, nullable=False),
    )


def _counterparty_table(name):
    op.create_table(
        name,
        _id(),
        _team_id(),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('gstin', sa.String(20), nullable=True),
        sa.Column('is_active', sa.Boolean, server_default=sa.true(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )


def _payment_columns():
    return [
        _id(),
        _team_id(),
        sa.Column('payment_date', sa.Date, nullable=False),
        sa.Column('payment_method', sa.String(50), server_default='BANK_TRANSFER', nullable=False),
        sa.Column('currency', sa.String(3), server_default='BTN', nullable=False),
        sa.Column('amount', MONEY, nullable=False),
        sa.Column('allocated_amount', MONEY, server_default=ZERO, nullable=False),
        sa.Column('unallocated_amount', MONEY, server_default=ZERO, nullable=False),
        sa.Column('reference', sa.String(100), nullable=True),
        sa.Column('notes', sa.String(500), nullable=True),
        sa.Column('reversed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('reversed_reason', sa.String(500), nullable=True),
        sa.Column('created_by', sa.Uuid, nullable=True),
        *_timestamps(),
    ]


def upgrade():
    """Create tenant, document, ledger and GST tables"""

    # ====================
    # TENANTS & COUNTERPARTIES
    # ====================
    op.create_table(
        'teams',
        _id(),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('gstin', sa.String(20), nullable=True),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('invoice_prefix', sa.String(10), server_default='INV', nullable=False),
        sa.Column('default_currency', sa.String(3), server_default='BTN', nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_table(
        'team_members',
        _id(),
        _team_id(),
        sa.Column('user_id', sa.Uuid, nullable=False, index=True),
        sa.Column('role', sa.String(20), server_default='MEMBER', nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('team_id', 'user_id', name='uq_team_member'),
    )
    _counterparty_table('customers')
    _counterparty_table('suppliers')

    # ====================
    # DOCUMENT SEQUENCES
    # ====================
    op.create_table(
        'document_sequences',
        _id(),
        _team_id(),
        sa.Column('document_type', sa.String(30), nullable=False),
        sa.Column('year', sa.Integer, nullable=False),
        sa.Column('last_number', sa.Integer, server_default=ZERO, nullable=False),
        *_timestamps(),
        sa.UniqueConstraint('team_id', 'document_type', 'year', name='uq_document_sequence_team_type_year'),
    )

    # ====================
    # INVOICES
    # ====================
    op.create_table(
        'invoices',
        *_document_columns(),
        *_payable_columns(),
        sa.Column('invoice_number', sa.String(50), nullable=False, index=True),
        sa.Column('customer_id', sa.Uuid, sa.ForeignKey('customers.id', ondelete='RESTRICT'), nullable=False, index=True),
        sa.Column('invoice_date', sa.Date, nullable=False),
        sa.Column('due_date', sa.Date, nullable=True),
        sa.Column('payment_terms', sa.String(100), nullable=True),
        sa.Column('customer_notes', sa.Text, nullable=True),
        sa.Column('terms', sa.Text, nullable=True),
        sa.Column('quotation_id', sa.Uuid, nullable=True),
        sa.UniqueConstraint('team_id', 'invoice_number', name='uq_invoice_team_number'),
    )
    op.create_index('ix_invoices_team_date', 'invoices', ['team_id', 'invoice_date'])
    _line_item_table('invoice_items', 'invoice_id', 'invoices')

    # ====================
    # SUPPLIER BILLS
    # ====================
    op.create_table(
        'supplier_bills',
        *_document_columns(),
        *_payable_columns(),
        sa.Column('bill_number', sa.String(50), nullable=False, index=True),
        sa.Column('supplier_reference', sa.String(100), nullable=True),
        sa.Column('supplier_id', sa.Uuid, sa.ForeignKey('suppliers.id', ondelete='RESTRICT'), nullable=False, index=True),
        sa.Column('bill_date', sa.Date, nullable=False),
        sa.Column('due_date', sa.Date, nullable=True),
        sa.UniqueConstraint('team_id', 'bill_number', name='uq_supplier_bill_team_number'),
    )
    op.create_index('ix_supplier_bills_team_date', 'supplier_bills', ['team_id', 'bill_date'])
    _line_item_table('supplier_bill_items', 'bill_id', 'supplier_bills')

    # ====================
    # QUOTATIONS
    # ====================
    op.create_table(
        'quotations',
        *_document_columns(),
        sa.Column('quotation_number', sa.String(50), nullable=False, index=True),
        sa.Column('customer_id', sa.Uuid, sa.ForeignKey('customers.id', ondelete='RESTRICT'), nullable=False, index=True),
        sa.Column('quotation_date', sa.Date, nullable=False),
        sa.Column('valid_until', sa.Date, nullable=True),
        sa.Column('customer_notes', sa.Text, nullable=True),
        sa.Column('terms', sa.Text, nullable=True),
        sa.Column('converted_invoice_id', sa.Uuid, sa.ForeignKey('invoices.id', ondelete='SET NULL'), nullable=True),
        sa.Column('converted_at', sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint('team_id', 'quotation_number', name='uq_quotation_team_number'),
    )
    _line_item_table('quotation_items', 'quotation_id', 'quotations')

    # ====================
    # CREDIT NOTES
    # ====================
    op.create_table(
        'credit_notes',
        *_document_columns(),
        *_note_columns(),
        sa.Column('credit_note_number', sa.String(50), nullable=False, index=True),
        sa.Column('customer_id', sa.Uuid, sa.ForeignKey('customers.id', ondelete='RESTRICT'), nullable=False, index=True),
        sa.Column('invoice_id', sa.Uuid, sa.ForeignKey('invoices.id', ondelete='SET NULL'), nullable=True),
        sa.Column('credit_note_date', sa.Date, nullable=False),
        sa.UniqueConstraint('team_id', 'credit_note_number', name='uq_credit_note_team_number'),
    )
    op.create_index('ix_credit_notes_team_date', 'credit_notes', ['team_id', 'credit_note_date'])
    _line_item_table('credit_note_items', 'credit_note_id', 'credit_notes')
    op.create_table(
        'credit_note_applications',
        _id(),
        _team_id(),
        sa.Column('credit_note_id', sa.Uuid, sa.ForeignKey('credit_notes.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('invoice_id', sa.Uuid, sa.ForeignKey('invoices.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('applied_amount', MONEY, nullable=False),
        sa.Column('application_date', sa.Date, nullable=False),
        sa.Column('created_by', sa.Uuid, nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )

    # ====================
    # DEBIT NOTES
    # ====================
    op.create_table(
        'debit_notes',
        *_document_columns(),
        *_note_columns(),
        sa.Column('debit_note_number', sa.String(50), nullable=False, index=True),
        sa.Column('supplier_id', sa.Uuid, sa.ForeignKey('suppliers.id', ondelete='RESTRICT'), nullable=False, index=True),
        sa.Column('bill_id', sa.Uuid, sa.ForeignKey('supplier_bills.id', ondelete='SET NULL'), nullable=True),
        sa.Column('debit_note_date', sa.Date, nullable=False),
        sa.UniqueConstraint('team_id', 'debit_note_number', name='uq_debit_note_team_number'),
    )
    op.create_index('ix_debit_notes_team_date', 'debit_notes', ['team_id', 'debit_note_date'])
    _line_item_table('debit_note_items', 'debit_note_id', 'debit_notes')
    op.create_table(
        'debit_note_applications',
        _id(),
        _team_id(),
        sa.Column('debit_note_id', sa.Uuid, sa.ForeignKey('debit_notes.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('bill_id', sa.Uuid, sa.ForeignKey('supplier_bills.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('applied_amount', MONEY, nullable=False),
        sa.Column('application_date', sa.Date, nullable=False),
        sa.Column('created_by', sa.Uuid, nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )

    # ====================
    # PAYMENTS
    # ====================
    op.create_table(
        'customer_payments',
        *_payment_columns(),
        sa.Column('receipt_number', sa.String(50), nullable=False, index=True),
        sa.Column('customer_id', sa.Uuid, sa.ForeignKey('customers.id', ondelete='RESTRICT'), nullable=False, index=True),
        sa.UniqueConstraint('team_id', 'receipt_number', name='uq_customer_payment_team_receipt'),
    )
    op.create_table(
        'payment_allocations',
        _id(),
        sa.Column('payment_id', sa.Uuid, sa.ForeignKey('customer_payments.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('invoice_id', sa.Uuid, sa.ForeignKey('invoices.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('allocated_amount', MONEY, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_table(
        'supplier_payments',
        *_payment_columns(),
        sa.Column('payment_number', sa.String(50), nullable=False, index=True),
        sa.Column('supplier_id', sa.Uuid, sa.ForeignKey('suppliers.id', ondelete='RESTRICT'), nullable=False, index=True),
        sa.UniqueConstraint('team_id', 'payment_number', name='uq_supplier_payment_team_number'),
    )
    op.create_table(
        'supplier_payment_allocations',
        _id(),
        sa.Column('payment_id', sa.Uuid, sa.ForeignKey('supplier_payments.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('bill_id', sa.Uuid, sa.ForeignKey('supplier_bills.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('allocated_amount', MONEY, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )

    # ====================
    # GST RETURNS & PERIOD LOCKS
    # ====================
    op.create_table(
        'gst_returns',
        _id(),
        _team_id(),
        sa.Column('return_number', sa.String(30), nullable=False),
        sa.Column('period_start', sa.Date, nullable=False),
        sa.Column('period_end', sa.Date, nullable=False),
        sa.Column('return_type', sa.String(20), nullable=False),
        sa.Column('status', sa.String(20), server_default='DRAFT', nullable=False, index=True),
        sa.Column('output_gst', MONEY, server_default=ZERO, nullable=False),
        sa.Column('input_gst', MONEY, server_default=ZERO, nullable=False),
        sa.Column('net_gst_payable', MONEY, server_default=ZERO, nullable=False),
        sa.Column('adjustments', MONEY, server_default=ZERO, nullable=False),
        sa.Column('previous_period_balance', MONEY, server_default=ZERO, nullable=False),
        sa.Column('penalties', MONEY, server_default=ZERO, nullable=False),
        sa.Column('interest', MONEY, server_default=ZERO, nullable=False),
        sa.Column('total_payable', MONEY, server_default=ZERO, nullable=False),
        sa.Column('due_date', sa.Date, nullable=False),
        sa.Column('filing_date', sa.Date, nullable=True),
        sa.Column('filed_by', sa.Uuid, nullable=True),
        sa.Column('sales_breakdown', sa.JSON, nullable=True),
        sa.Column('purchases_breakdown', sa.JSON, nullable=True),
        sa.Column('amendments', sa.JSON, nullable=True),
        sa.Column('notes', sa.Text, nullable=True),
        sa.Column('created_by', sa.Uuid, nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('team_id', 'return_number', name='uq_gst_return_team_number'),
    )
    op.create_table(
        'gst_period_locks',
        _id(),
        _team_id(),
        sa.Column('period_start', sa.Date, nullable=False),
        sa.Column('period_end', sa.Date, nullable=False),
        sa.Column('period_type', sa.String(20), nullable=False),
        sa.Column('locked_by', sa.Uuid, nullable=True),
        sa.Column('locked_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('reason', sa.String(500), nullable=True),
        sa.Column('gst_return_id', sa.Uuid, sa.ForeignKey('gst_returns.id', ondelete='SET NULL'), nullable=True),
    )
    op.create_index('ix_gst_period_locks_team_period', 'gst_period_locks', ['team_id', 'period_start', 'period_end'])

    # ====================
    # ACTIVITY LOG
    # ====================
    op.create_table(
        'activity_logs',
        _id(),
        _team_id(),
        sa.Column('user_id', sa.Uuid, nullable=True),
        sa.Column('action', sa.String(50), nullable=False, index=True),
        sa.Column('entity_type', sa.String(50), nullable=True),
        sa.Column('entity_id', sa.Uuid, nullable=True),
        sa.Column('details', sa.JSON, nullable=True),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('ip_address', sa.String(50), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, index=True),
    )


def downgrade():
    for table in (
        'activity_logs',
        'gst_period_locks',
        'gst_returns',
        'supplier_payment_allocations',
        'supplier_payments',
        'payment_allocations',
        'customer_payments',
        'debit_note_applications',
        'debit_note_items',
        'debit_notes',
        'credit_note_applications',
        'credit_note_items',
        'credit_notes',
        'quotation_items',
        'quotations',
        'supplier_bill_items',
        'supplier_bills',
        'invoice_items',
        'invoices',
        'document_sequences',
        'suppliers',
        'customers',
        'team_members',
        'teams',
    ):
        op.drop_table(table)
