"""Esquema inicial del taller"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '5c2e8a1f4b7d'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=True),
    ]


def upgrade() -> None:
    """Create every table of the application."""
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('full_name', sa.String(), nullable=True),
        sa.Column('hashed_password', sa.String(), nullable=False),
        sa.Column('role', sa.String(), nullable=False, server_default='viewer'),
        sa.Column('is_active', sa.Boolean(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=True),
    )
    op.create_index('ix_users_id', 'users', ['id'])
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'clients',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('last_name', sa.String(), nullable=True),
        sa.Column('email', sa.String(), nullable=True),
        sa.Column('phone', sa.String(), nullable=True),
        sa.Column('address', sa.String(), nullable=True),
        sa.Column('identification', sa.String(), nullable=True),
        sa.Column('notes', sa.String(), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_clients_id', 'clients', ['id'])
    op.create_index('ix_clients_name', 'clients', ['name'])
    op.create_index('ix_clients_identification', 'clients', ['identification'])

    op.create_table(
        'providers',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('type', sa.String(), nullable=False, server_default='persona'),
        sa.Column('tax_id', sa.String(), nullable=True),
        sa.Column('business_name', sa.String(), nullable=True),
        sa.Column('contact_name', sa.String(), nullable=True),
        sa.Column('phone', sa.String(), nullable=True),
        sa.Column('email', sa.String(), nullable=True),
        sa.Column('address', sa.String(), nullable=True),
        sa.Column('notes', sa.String(), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_providers_id', 'providers', ['id'])
    op.create_index('ix_providers_name', 'providers', ['name'])
    op.create_index('ix_providers_tax_id', 'providers', ['tax_id'])

    op.create_table(
        'repair_orders',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('order_number', sa.Integer(), nullable=True),
        sa.Column('client_id', sa.Integer(), sa.ForeignKey('clients.id'), nullable=False),
        sa.Column('equipment_type', sa.String(), nullable=True),
        sa.Column('equipment_brand', sa.String(), nullable=True),
        sa.Column('equipment_model', sa.String(), nullable=True),
        sa.Column('serial_number', sa.String(), nullable=True),
        sa.Column('reported_issue', sa.String(), nullable=True),
        sa.Column('technical_diagnosis', sa.String(), nullable=True),
        sa.Column('status', sa.String(), nullable=False),
        sa.Column('entry_date', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('estimated_delivery_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completion_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('budget', sa.Float(), nullable=True),
        sa.Column('labor_cost', sa.Float(), nullable=True),
        sa.Column('parts_cost', sa.Float(), nullable=True),
        sa.Column('total_cost', sa.Float(), nullable=True),
        sa.Column('assigned_technician', sa.String(), nullable=True),
        sa.Column('assigned_technician_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_repair_orders_id', 'repair_orders', ['id'])
    op.create_index('ix_repair_orders_order_number', 'repair_orders', ['order_number'], unique=True)

    op.create_table(
        'inventory',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('description', sa.String(), nullable=True),
        sa.Column('category', sa.String(), nullable=True),
        sa.Column('sku', sa.String(), nullable=True),
        sa.Column('barcode', sa.String(), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('cost_price', sa.Float(), nullable=False, server_default='0'),
        sa.Column('selling_price', sa.Float(), nullable=False, server_default='0'),
        sa.Column('minimum_stock', sa.Integer(), nullable=True),
        sa.Column('supplier_id', sa.Integer(), sa.ForeignKey('providers.id'), nullable=True),
        sa.Column('location', sa.String(), nullable=True),
        sa.Column('status', sa.String(), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_inventory_id', 'inventory', ['id'])
    op.create_index('ix_inventory_name', 'inventory', ['name'])
    op.create_index('ix_inventory_category', 'inventory', ['category'])
    op.create_index('ix_inventory_sku', 'inventory', ['sku'], unique=True)

    op.create_table(
        'invoices',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('invoice_number', sa.String(), nullable=False),
        sa.Column('doc_type', sa.String(), nullable=False, server_default='factura_b'),
        sa.Column('client_id', sa.Integer(), sa.ForeignKey('clients.id'), nullable=False),
        sa.Column('repair_order_id', sa.Integer(), sa.ForeignKey('repair_orders.id'), nullable=True),
        sa.Column('source_document_id', sa.Integer(), sa.ForeignKey('invoices.id'), nullable=True),
        sa.Column('issue_date', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('due_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('items', sa.JSON(), nullable=True),
        sa.Column('subtotal', sa.Float(), nullable=False, server_default='0'),
        sa.Column('tax', sa.Float(), nullable=False, server_default='0'),
        sa.Column('total', sa.Float(), nullable=False, server_default='0'),
        sa.Column('status', sa.String(), nullable=False, server_default='Pendiente'),
        sa.Column('notes', sa.String(), nullable=True),
        sa.Column('afip_status', sa.String(), nullable=True),
        sa.Column('afip_cae', sa.String(), nullable=True),
        sa.Column('afip_expiration', sa.DateTime(timezone=True), nullable=True),
        sa.Column('afip_doc_type', sa.String(), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_invoices_id', 'invoices', ['id'])
    op.create_index('ix_invoices_invoice_number', 'invoices', ['invoice_number'], unique=True)

    op.create_table(
        'receipts',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('receipt_number', sa.String(), nullable=False),
        sa.Column('client_id', sa.Integer(), sa.ForeignKey('clients.id'), nullable=False),
        sa.Column('repair_order_id', sa.Integer(), sa.ForeignKey('repair_orders.id'), nullable=True),
        sa.Column('issue_date', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('amount', sa.Float(), nullable=False),
        sa.Column('status', sa.String(), nullable=False, server_default='Emitido'),
        sa.Column('notes', sa.String(), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_receipts_id', 'receipts', ['id'])
    op.create_index('ix_receipts_receipt_number', 'receipts', ['receipt_number'], unique=True)

    op.create_table(
        'payments',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('client_id', sa.Integer(), sa.ForeignKey('clients.id'), nullable=False),
        sa.Column('invoice_id', sa.Integer(), sa.ForeignKey('invoices.id'), nullable=True),
        sa.Column('receipt_id', sa.Integer(), sa.ForeignKey('receipts.id'), nullable=True),
        sa.Column('amount', sa.Float(), nullable=False),
        sa.Column('payment_method', sa.String(), nullable=False),
        sa.Column('payment_date', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('notes', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=True),
    )
    op.create_index('ix_payments_id', 'payments', ['id'])

    op.create_table(
        'tickets',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('description', sa.String(), nullable=True),
        sa.Column('status', sa.String(), nullable=False, server_default='Open'),
        sa.Column('priority', sa.String(), nullable=False, server_default='Medium'),
        sa.Column('client_id', sa.Integer(), sa.ForeignKey('clients.id'), nullable=True),
        sa.Column('assigned_to', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        *_timestamps(),
        sa.Column('resolved_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_tickets_id', 'tickets', ['id'])

    op.create_table(
        'system_configuration',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('key', sa.String(), nullable=False),
        sa.Column('value', sa.String(), nullable=False),
        sa.Column('description', sa.String(), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_system_configuration_id', 'system_configuration', ['id'])
    op.create_index('ix_system_configuration_key', 'system_configuration', ['key'], unique=True)

    op.create_table(
        'action_history',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=True),
        sa.Column('action_type', sa.String(), nullable=False),
        sa.Column('entity_type', sa.String(), nullable=False),
        sa.Column('entity_id', sa.String(), nullable=False),
        sa.Column('description', sa.String(), nullable=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
    )
    op.create_index('ix_action_history_id', 'action_history', ['id'])


def downgrade() -> None:
    """Drop every table."""
    op.drop_table('action_history')
    op.drop_table('system_configuration')
    op.drop_table('tickets')
    op.drop_table('payments')
    op.drop_table('receipts')
    op.drop_table('invoices')
    op.drop_table('inventory')
    op.drop_table('repair_orders')
    op.drop_table('providers')
    op.drop_table('clients')
    op.drop_table('users')
