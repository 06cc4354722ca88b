"""create equipment, booking, subrental, repair and provider tables

Revision ID: 001
Revises:
Create Date: 2025-05-12 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'equipment',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('stock', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('stock_calculation_method', sa.String(20), nullable=False, server_default='manual'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), onupdate=sa.func.now(), nullable=False),
        sa.CheckConstraint('stock >= 0', name='non_negative_stock'),
        sa.CheckConstraint(
            "stock_calculation_method IN ('manual', 'serial_numbers')",
            name='stock_calculation_method_valid'
        ),
    )

    op.create_table(
        'equipment_serial_numbers',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('equipment_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('serial_number', sa.Text(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='available'),
        sa.ForeignKeyConstraint(['equipment_id'], ['equipment.id'], ondelete='CASCADE'),
    )
    op.create_index('idx_serial_equipment_status', 'equipment_serial_numbers', ['equipment_id', 'status'])

    op.create_table(
        'projects',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('owner_id', postgresql.UUID(as_uuid=True)),
    )

    op.create_table(
        'project_events',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('project_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('location', sa.Text()),
        sa.Column('status', sa.String(20), nullable=False, server_default='confirmed'),
        sa.ForeignKeyConstraint(['project_id'], ['projects.id'], ondelete='CASCADE'),
    )
    op.create_index('idx_project_events_date', 'project_events', ['date'])

    op.create_table(
        'project_event_equipment',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('event_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('equipment_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['event_id'], ['project_events.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['equipment_id'], ['equipment.id'], ondelete='CASCADE'),
    )
    op.create_index('idx_event_equipment_equipment', 'project_event_equipment', ['equipment_id'])

    op.create_table(
        'external_providers',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('company_name', sa.Text(), nullable=False),
        sa.Column('geographic_coverage', sa.JSON()),
        sa.Column('reliability_rating', sa.Float()),
        sa.Column('preferred_status', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('contact_info', sa.JSON()),
    )

    op.create_table(
        'subrental_orders',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('provider_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('total_cost', sa.Numeric(12, 2)),
        sa.Column('status', sa.String(20), nullable=False, server_default='confirmed'),
        sa.Column('notes', sa.Text()),
        sa.ForeignKeyConstraint(['provider_id'], ['external_providers.id']),
        sa.CheckConstraint(
            "status IN ('confirmed', 'delivered', 'returned', 'cancelled')",
            name='subrental_status_valid'
        ),
    )
    op.create_index('idx_subrental_orders_dates', 'subrental_orders', ['start_date', 'end_date'])

    op.create_table(
        'subrental_order_items',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('subrental_order_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('equipment_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('unit_cost', sa.Numeric(12, 2)),
        sa.Column('temporary_serial', sa.Text()),
        sa.ForeignKeyConstraint(['subrental_order_id'], ['subrental_orders.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['equipment_id'], ['equipment.id']),
    )
    op.create_index('idx_subrental_items_equipment', 'subrental_order_items', ['equipment_id'])

    op.create_table(
        'repair_orders',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('facility_name', sa.Text()),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('estimated_end_date', sa.Date()),
        sa.Column('actual_end_date', sa.Date()),
        sa.Column('total_cost', sa.Numeric(12, 2)),
        sa.Column('status', sa.String(20), nullable=False, server_default='in_repair'),
        sa.CheckConstraint(
            "status IN ('in_repair', 'completed', 'cancelled')",
            name='repair_status_valid'
        ),
    )

    op.create_table(
        'repair_order_items',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('repair_order_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('equipment_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('issue_description', sa.Text()),
        sa.ForeignKeyConstraint(['repair_order_id'], ['repair_orders.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['equipment_id'], ['equipment.id']),
    )
    op.create_index('idx_repair_items_equipment', 'repair_order_items', ['equipment_id'])


def downgrade() -> None:
    op.drop_index('idx_repair_items_equipment', table_name='repair_order_items')
    op.drop_table('repair_order_items')
    op.drop_table('repair_orders')
    op.drop_index('idx_subrental_items_equipment', table_name='subrental_order_items')
    op.drop_table('subrental_order_items')
    op.drop_index('idx_subrental_orders_dates', table_name='subrental_orders')
    op.drop_table('subrental_orders')
    op.drop_table('external_providers')
    op.drop_index('idx_event_equipment_equipment', table_name='project_event_equipment')
    op.drop_table('project_event_equipment')
    op.drop_index('idx_project_events_date', table_name='project_events')
    op.drop_table('project_events')
    op.drop_table('projects')
    op.drop_index('idx_serial_equipment_status', table_name='equipment_serial_numbers')
    op.drop_table('equipment_serial_numbers')
    op.drop_table('equipment')
