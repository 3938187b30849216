"""create deploys table

Revision ID: a1c3e5d70001
Revises:
Create Date: 2026-10-16 10:00:00.000000
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = 'a1c3e5d70001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

def upgrade() -> None:
    op.create_table(
        'deploys',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('deploy_id', sa.String(64), nullable=False),
        sa.Column('environment', sa.String(64), nullable=False),
        sa.Column('image_name', sa.String(255), nullable=False),
        sa.Column('image_tag', sa.String(128), nullable=False),
        sa.Column('status', sa.Integer(), nullable=False),
        sa.Column('message', sa.String(255), nullable=False),
        sa.Column('log', sa.Text(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('(CURRENT_TIMESTAMP)')),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('(CURRENT_TIMESTAMP)')),
    )
    op.create_index('ix_deploys_id', 'deploys', ['id'])
    op.create_index('ix_deploys_deploy_id', 'deploys', ['deploy_id'], unique=True)
    op.create_index('ix_deploys_environment', 'deploys', ['environment'])

def downgrade() -> None:
    op.drop_index('ix_deploys_environment', table_name='deploys')
    op.drop_index('ix_deploys_deploy_id', table_name='deploys')
    op.drop_index('ix_deploys_id', table_name='deploys')
    op.drop_table('deploys')
