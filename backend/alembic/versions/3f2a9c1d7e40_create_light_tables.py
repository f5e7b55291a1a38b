"""create street light and history tables

Revision ID: 3f2a9c1d7e40
Revises:
Create Date: 2026-10-18 10:30:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '3f2a9c1d7e40'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'street_lights',
        sa.Column('id', sa.String(length=5), nullable=False),
        sa.Column('lat', sa.Float(), nullable=False),
        sa.Column('lng', sa.Float(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_table(
        'light_history',
        sa.Column('seq', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('time', sa.String(length=32), nullable=False),
        sa.Column('light_id', sa.String(length=5), nullable=False),
        sa.Column('before_lat', sa.String(length=32), nullable=False, server_default=''),
        sa.Column('before_lng', sa.String(length=32), nullable=False, server_default=''),
        sa.Column('after_lat', sa.String(length=32), nullable=False, server_default=''),
        sa.Column('after_lng', sa.String(length=32), nullable=False, server_default=''),
        sa.Column('action', sa.String(length=20), nullable=False),
        sa.Column('note', sa.Text(), nullable=True),
        sa.Column('attachment_url', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('seq')
    )
    op.create_index('ix_light_history_light_id', 'light_history', ['light_id'])


def downgrade() -> None:
    op.drop_index('ix_light_history_light_id', table_name='light_history')
    op.drop_table('light_history')
    op.drop_table('street_lights')
