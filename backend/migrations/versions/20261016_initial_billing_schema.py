"""Initial billing schema: accounts, customers, documents, ledger, identifiers

Revision ID: 20261016_initial
Revises:
Create Date: 2026-10-16

This migration adds:
1. Accounts and business profiles (supplier state, turnover, series prefixes)
2. Customers with the cached ledger balance (optimistic version_id)
3. Documents (invoice / credit note / debit note) and their lines
4. Document sequences: one atomic counter per (account, document kind)
5. Append-only customer ledger entries
6. Identifier counters and registered professionals
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261016_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ==========================================================================
    # 1. ACCOUNTS + BUSINESS PROFILES
    # ==========================================================================
    op.create_table('accounts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('accounts', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_accounts_is_active'), ['is_active'], unique=False)

    op.create_table('business_profiles',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('account_id', sa.Integer(), nullable=False),
        sa.Column('legal_name', sa.String(length=255), nullable=False),
        sa.Column('gstin', sa.String(length=15), nullable=True),
        sa.Column('state', sa.String(length=64), nullable=False),
        sa.Column('annual_turnover', sa.String(length=16), nullable=False, server_default='below5cr'),
        sa.Column('invoice_prefix', sa.String(length=32), nullable=False, server_default='INV/'),
        sa.Column('credit_note_prefix', sa.String(length=32), nullable=False, server_default='CN/'),
        sa.Column('debit_note_prefix', sa.String(length=32), nullable=False, server_default='DN/'),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['account_id'], ['accounts.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('account_id', name='uq_business_profiles_account'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('business_profiles', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_business_profiles_account_id'), ['account_id'], unique=False)

    # ==========================================================================
    # 2. CUSTOMERS
    # ==========================================================================
    op.create_table('customers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('account_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('gstin', sa.String(length=15), nullable=True),
        sa.Column('state', sa.String(length=64), nullable=False, server_default=''),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('balance_paise', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['account_id'], ['accounts.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('customers', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_customers_account_id'), ['account_id'], unique=False)
        batch_op.create_index('ix_customers_account_name', ['account_id', 'name'], unique=False)

    # ==========================================================================
    # 3. DOCUMENTS + LINES
    # ==========================================================================
    op.create_table('documents',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('account_id', sa.Integer(), nullable=False),
        sa.Column('kind', sa.String(length=16), nullable=False),
        sa.Column('sequence_number', sa.Integer(), nullable=False),
        sa.Column('document_number', sa.String(length=64), nullable=False),
        sa.Column('document_date', sa.Date(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('customer_name', sa.String(length=255), nullable=False),
        sa.Column('gst_type', sa.String(length=16), nullable=False),
        sa.Column('subtotal_paise', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('tax_paise', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('cgst_paise', sa.Numeric(precision=16, scale=1), nullable=False, server_default='0'),
        sa.Column('sgst_paise', sa.Numeric(precision=16, scale=1), nullable=False, server_default='0'),
        sa.Column('igst_paise', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('grand_total_paise', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('posted_total_paise', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('status', sa.String(length=16), nullable=True),
        sa.Column('supply_type', sa.String(length=8), nullable=True),
        sa.Column('supply_type_overridden', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('reverse_charge', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('port_code', sa.String(length=16), nullable=True),
        sa.Column('shipping_bill_no', sa.String(length=32), nullable=True),
        sa.Column('shipping_bill_date', sa.Date(), nullable=True),
        sa.Column('export_country', sa.String(length=64), nullable=True),
        sa.Column('reason', sa.String(length=255), nullable=True),
        sa.Column('original_invoice_id', sa.Integer(), nullable=True),
        sa.Column('original_invoice_number', sa.String(length=64), nullable=True),
        sa.Column('is_deleted', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['account_id'], ['accounts.id'], ),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], ),
        sa.ForeignKeyConstraint(['original_invoice_id'], ['documents.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('account_id', 'kind', 'sequence_number', name='uq_documents_series_seq'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('documents', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_documents_account_id'), ['account_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_documents_kind'), ['kind'], unique=False)
        batch_op.create_index(batch_op.f('ix_documents_customer_id'), ['customer_id'], unique=False)
        batch_op.create_index('ix_documents_account_kind_deleted', ['account_id', 'kind', 'is_deleted'], unique=False)
        batch_op.create_index('ix_documents_account_date', ['account_id', 'document_date'], unique=False)

    op.create_table('document_lines',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('document_id', sa.Integer(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('description', sa.String(length=255), nullable=False, server_default=''),
        sa.Column('hsn_code', sa.String(length=16), nullable=False, server_default=''),
        sa.Column('quantity', sa.Numeric(precision=14, scale=3), nullable=False),
        sa.Column('rate_paise', sa.Integer(), nullable=False),
        sa.Column('gst_rate_bps', sa.Integer(), nullable=False),
        sa.Column('taxable_paise', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['document_id'], ['documents.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('document_lines', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_document_lines_document_id'), ['document_id'], unique=False)

    # ==========================================================================
    # 4. DOCUMENT SEQUENCES
    # ==========================================================================
    op.create_table('document_sequences',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('account_id', sa.Integer(), nullable=False),
        sa.Column('kind', sa.String(length=16), nullable=False),
        sa.Column('issued_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['account_id'], ['accounts.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('account_id', 'kind', name='uq_doc_sequences_account_kind'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('document_sequences', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_document_sequences_account_id'), ['account_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_document_sequences_kind'), ['kind'], unique=False)

    # ==========================================================================
    # 5. LEDGER ENTRIES
    # ==========================================================================
    op.create_table('ledger_entries',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('account_id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('entry_date', sa.Date(), nullable=False),
        sa.Column('entry_type', sa.String(length=8), nullable=False),
        sa.Column('amount_paise', sa.Integer(), nullable=False),
        sa.Column('description', sa.String(length=255), nullable=False, server_default=''),
        sa.Column('source', sa.String(length=16), nullable=False),
        sa.Column('document_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.CheckConstraint('amount_paise > 0', name='ck_ledger_entries_amount_positive'),
        sa.ForeignKeyConstraint(['account_id'], ['accounts.id'], ),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], ),
        sa.ForeignKeyConstraint(['document_id'], ['documents.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('ledger_entries', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_ledger_entries_account_id'), ['account_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_ledger_entries_customer_id'), ['customer_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_ledger_entries_source'), ['source'], unique=False)
        batch_op.create_index(batch_op.f('ix_ledger_entries_document_id'), ['document_id'], unique=False)
        batch_op.create_index('ix_ledger_entries_customer_date', ['customer_id', 'entry_date', 'id'], unique=False)

    # ==========================================================================
    # 6. IDENTIFIER COUNTERS + PROFESSIONALS
    # ==========================================================================
    op.create_table('identifier_counters',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=64), nullable=False),
        sa.Column('count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name', name='uq_identifier_counters_name'),
        sqlite_autoincrement=True
    )

    op.create_table('professionals',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('professional_id', sa.String(length=16), nullable=False),
        sa.Column('id_is_authoritative', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('first_name', sa.String(length=128), nullable=False),
        sa.Column('last_name', sa.String(length=128), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('designation', sa.String(length=64), nullable=False),
        sa.Column('firm_name', sa.String(length=255), nullable=True),
        sa.Column('referred_by', sa.String(length=16), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('professional_id', name='uq_professionals_professional_id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('professionals', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_professionals_professional_id'), ['professional_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_professionals_referred_by'), ['referred_by'], unique=False)


def downgrade():
    with op.batch_alter_table('professionals', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_professionals_referred_by'))
        batch_op.drop_index(batch_op.f('ix_professionals_professional_id'))
    op.drop_table('professionals')
    op.drop_table('identifier_counters')

    with op.batch_alter_table('ledger_entries', schema=None) as batch_op:
        batch_op.drop_index('ix_ledger_entries_customer_date')
        batch_op.drop_index(batch_op.f('ix_ledger_entries_document_id'))
        batch_op.drop_index(batch_op.f('ix_ledger_entries_source'))
        batch_op.drop_index(batch_op.f('ix_ledger_entries_customer_id'))
        batch_op.drop_index(batch_op.f('ix_ledger_entries_account_id'))
    op.drop_table('ledger_entries')

    with op.batch_alter_table('document_sequences', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_document_sequences_kind'))
        batch_op.drop_index(batch_op.f('ix_document_sequences_account_id'))
    op.drop_table('document_sequences')

    with op.batch_alter_table('document_lines', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_document_lines_document_id'))
    op.drop_table('document_lines')

    with op.batch_alter_table('documents', schema=None) as batch_op:
        batch_op.drop_index('ix_documents_account_date')
        batch_op.drop_index('ix_documents_account_kind_deleted')
        batch_op.drop_index(batch_op.f('ix_documents_customer_id'))
        batch_op.drop_index(batch_op.f('ix_documents_kind'))
        batch_op.drop_index(batch_op.f('ix_documents_account_id'))
    op.drop_table('documents')

    with op.batch_alter_table('customers', schema=None) as batch_op:
        batch_op.drop_index('ix_customers_account_name')
        batch_op.drop_index(batch_op.f('ix_customers_account_id'))
    op.drop_table('customers')

    with op.batch_alter_table('business_profiles', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_business_profiles_account_id'))
    op.drop_table('business_profiles')

    with op.batch_alter_table('accounts', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_accounts_is_active'))
    op.drop_table('accounts')
