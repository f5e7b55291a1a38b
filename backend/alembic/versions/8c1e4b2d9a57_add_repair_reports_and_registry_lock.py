"""add repair reports and registry lock

Revision ID: 8c1e4b2d9a57
Revises: 3f2a9c1d7e40
Create Date: 2026-10-18 16:20:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '8c1e4b2d9a57'
down_revision = '3f2a9c1d7e40'
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'repair_reports',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('light_id', sa.String(length=5), nullable=False),
        sa.Column('reported_at', sa.DateTime(), nullable=False),
        sa.Column('fault', sa.Text(), nullable=False, server_default=''),
        sa.Column('status', sa.String(length=10), nullable=False, server_default='未查修'),
        sa.Column('repaired_on', sa.Date(), nullable=True),
        sa.Column('repair_note', sa.Text(), nullable=True),
        sa.Column('photos', sa.JSON(), nullable=False, server_default='[]'),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_repair_reports_light_id', 'repair_reports', ['light_id'])
    op.create_index('ix_repair_reports_status', 'repair_reports', ['status'])

    registry_locks = op.create_table(
        'registry_locks',
        sa.Column('name', sa.String(length=50), nullable=False),
        sa.Column('acquired_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('name')
    )
    op.bulk_insert(registry_locks, [{'name': 'registry'}])


def downgrade() -> None:
    op.drop_table('registry_locks')
    op.drop_index('ix_repair_reports_status', table_name='repair_reports')
    op.drop_index('ix_repair_reports_light_id', table_name='repair_reports')
    op.drop_table('repair_reports')
