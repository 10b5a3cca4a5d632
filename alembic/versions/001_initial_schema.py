"""Initial schema: teams, employees, departments, equipment, stages, requests and audit log.

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ROLE = sa.Enum('admin', 'manager', 'technician', 'employee', name='role')
REQUEST_TYPE = sa.Enum('corrective', 'preventive', name='requesttype')
STAGE_NAME = sa.Enum('New', 'In Progress', 'Repaired', 'Scrap', name='stagename')
LOG_ACTION = sa.Enum(
    'equipment_created', 'equipment_owner_changed', 'equipment_team_changed',
    'request_created', 'technician_assigned', 'request_repaired', 'request_scrapped',
    'request_rescheduled', 'team_membership_changed', 'employee_updated', 'default_technician_cleared',
    name='logaction',
)


def upgrade() -> None:
    op.create_table(
        'maintenance_teams',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(100), nullable=False, unique=True),
        sa.Column('manager_id', sa.Integer, nullable=True),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_maintenance_teams_name', 'maintenance_teams', ['name'])

    op.create_table(
        'employees',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('email', sa.String(255), nullable=False, unique=True),
        sa.Column('role', ROLE, nullable=False, server_default='employee'),
        sa.Column('team_id', sa.Integer, sa.ForeignKey('maintenance_teams.id', ondelete='SET NULL')),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_employees_email', 'employees', ['email'])
    op.create_index('ix_employees_role', 'employees', ['role'])
    op.create_index('ix_employees_team_id', 'employees', ['team_id'])

    # Teams and employees reference each other
    with op.batch_alter_table('maintenance_teams') as batch_op:
        batch_op.create_foreign_key(
            'fk_team_manager', 'employees', ['manager_id'], ['id'], ondelete='SET NULL'
        )

    op.create_table(
        'equipment_categories',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(100), nullable=False, unique=True),
    )

    op.create_table(
        'departments',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(100), nullable=False, unique=True),
    )

    op.create_table(
        'equipment',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('serial_number', sa.String(100), nullable=False, unique=True),
        sa.Column('location', sa.String(255), nullable=False),
        sa.Column('purchase_date', sa.Date),
        sa.Column('warranty_info', sa.Text),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('category_id', sa.Integer, sa.ForeignKey('equipment_categories.id'), nullable=False),
        sa.Column('maintenance_team_id', sa.Integer, sa.ForeignKey('maintenance_teams.id'), nullable=False),
        sa.Column('default_technician_id', sa.Integer, sa.ForeignKey('employees.id', ondelete='SET NULL')),
        sa.Column('employee_id', sa.Integer, sa.ForeignKey('employees.id', ondelete='SET NULL')),
        sa.Column('department_id', sa.Integer, sa.ForeignKey('departments.id', ondelete='SET NULL')),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_equipment_serial_number', 'equipment', ['serial_number'])
    op.create_index('ix_equipment_is_active', 'equipment', ['is_active'])
    op.create_index('ix_equipment_category_id', 'equipment', ['category_id'])
    op.create_index('ix_equipment_maintenance_team_id', 'equipment', ['maintenance_team_id'])
    op.create_index('ix_equipment_employee_id', 'equipment', ['employee_id'])
    op.create_index('ix_equipment_department_id', 'equipment', ['department_id'])
    op.create_index('ix_equipment_created_at', 'equipment', ['created_at'])

    stages = op.create_table(
        'maintenance_stages',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('name', STAGE_NAME, nullable=False, unique=True),
        sa.Column('sequence', sa.Integer, nullable=False, unique=True),
        sa.Column('is_closing', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('is_scrap_state', sa.Boolean, nullable=False, server_default=sa.false()),
    )

    op.create_table(
        'maintenance_requests',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('subject', sa.String(255), nullable=False),
        sa.Column('request_type', REQUEST_TYPE, nullable=False),
        sa.Column('scheduled_date', sa.Date),
        sa.Column('duration_hours', sa.Float),
        sa.Column('stage_id', sa.Integer, sa.ForeignKey('maintenance_stages.id'), nullable=False),
        sa.Column('equipment_id', sa.Integer, sa.ForeignKey('equipment.id'), nullable=False),
        sa.Column('team_id', sa.Integer, sa.ForeignKey('maintenance_teams.id'), nullable=False),
        sa.Column('technician_id', sa.Integer, sa.ForeignKey('employees.id', ondelete='SET NULL')),
        sa.Column('created_by_id', sa.Integer, sa.ForeignKey('employees.id'), nullable=False),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column('closed_at', sa.DateTime),
        sa.CheckConstraint('duration_hours IS NULL OR duration_hours > 0', name='positive_duration'),
    )
    for column in ('request_type', 'scheduled_date', 'stage_id', 'equipment_id', 'team_id',
                   'technician_id', 'created_by_id', 'created_at'):
        op.create_index(f'ix_maintenance_requests_{column}', 'maintenance_requests', [column])

    op.create_table(
        'maintenance_logs',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('action', LOG_ACTION, nullable=False),
        sa.Column('message', sa.Text, nullable=False),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column('request_id', sa.Integer, sa.ForeignKey('maintenance_requests.id')),
        sa.Column('equipment_id', sa.Integer, sa.ForeignKey('equipment.id')),
        sa.Column('created_by_id', sa.Integer, sa.ForeignKey('employees.id', ondelete='SET NULL')),
    )
    op.create_index('ix_maintenance_logs_action', 'maintenance_logs', ['action'])
    op.create_index('ix_maintenance_logs_created_at', 'maintenance_logs', ['created_at'])
    op.create_index('ix_maintenance_logs_request_id', 'maintenance_logs', ['request_id'])
    op.create_index('ix_maintenance_logs_equipment_id', 'maintenance_logs', ['equipment_id'])

    # Fixed stage catalog
    op.bulk_insert(stages, [
        {'name': 'New', 'sequence': 1, 'is_closing': False, 'is_scrap_state': False},
        {'name': 'In Progress', 'sequence': 2, 'is_closing': False, 'is_scrap_state': False},
        {'name': 'Repaired', 'sequence': 3, 'is_closing': True, 'is_scrap_state': False},
        {'name': 'Scrap', 'sequence': 4, 'is_closing': True, 'is_scrap_state': True},
    ])


def downgrade() -> None:
    op.drop_table('maintenance_logs')
    op.drop_table('maintenance_requests')
    op.drop_table('maintenance_stages')
    op.drop_table('equipment')
    op.drop_table('departments')
    op.drop_table('equipment_categories')
    with op.batch_alter_table('maintenance_teams') as batch_op:
        batch_op.drop_constraint('fk_team_manager', type_='foreignkey')
    op.drop_table('employees')
    op.drop_table('maintenance_teams')

    # Drop enums
    if op.get_bind().dialect.name == 'postgresql':
        op.execute('DROP TYPE IF EXISTS logaction')
        op.execute('DROP TYPE IF EXISTS stagename')
        op.execute('DROP TYPE IF EXISTS requesttype')
        op.execute('DROP TYPE IF EXISTS role')
