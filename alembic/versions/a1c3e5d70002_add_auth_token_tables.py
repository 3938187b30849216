"""add auth token and environment tables

Revision ID: a1c3e5d70002
Revises: a1c3e5d70001
Create Date: 2026-10-16 10:30:00.000000
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = 'a1c3e5d70002'
down_revision: Union[str, None] = 'a1c3e5d70001'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

def upgrade() -> None:
    # auth_tokens 테이블 생성
    op.create_table(
        'auth_tokens',
        sa.Column('id', sa.Integer(), primary_key=True, index=True),
        sa.Column('token', sa.String(length=128), unique=True, nullable=False, index=True),
        sa.Column('description', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('(CURRENT_TIMESTAMP)')),
    )
    # environments 테이블 생성
    op.create_table(
        'environments',
        sa.Column('id', sa.Integer(), primary_key=True, index=True),
        sa.Column('name', sa.String(length=64), unique=True, nullable=False, index=True),
    )
    # 토큰-환경 권한 테이블 생성
    op.create_table(
        'auth_tokens_environments',
        sa.Column('auth_token_id', sa.Integer(), sa.ForeignKey('auth_tokens.id'), primary_key=True),
        sa.Column('environment_id', sa.Integer(), sa.ForeignKey('environments.id'), primary_key=True)
    )

def downgrade() -> None:
    op.drop_table('auth_tokens_environments')
    op.drop_table('environments')
    op.drop_table('auth_tokens')
