"""create mining tables

Revision ID: 4f1c2a9d7e31
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '4f1c2a9d7e31'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'mining_accounts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('points', sa.Numeric(precision=36, scale=18), nullable=False),
        sa.Column('mining_rate', sa.Numeric(precision=36, scale=18), nullable=False),
        sa.Column('claims_today', sa.Integer(), nullable=False),
        sa.Column('last_claim', sa.DateTime(), nullable=False),
        sa.Column('next_claim_possible', sa.DateTime(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    with op.batch_alter_table('mining_accounts', schema=None) as batch_op:
        # user_id 唯一：并发开户由数据库兜底
        batch_op.create_index(batch_op.f('ix_mining_accounts_user_id'), ['user_id'], unique=True)

    op.create_table(
        'user_balances',
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('points', sa.Numeric(precision=36, scale=18), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('user_id'),
    )

    op.create_table(
        'points_history',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('change_type', sa.String(length=60), nullable=False),
        sa.Column('change_amount', sa.Numeric(precision=36, scale=18), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('description', sa.String(length=255), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    with op.batch_alter_table('points_history', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_points_history_user_id'), ['user_id'], unique=False)


def downgrade():
    with op.batch_alter_table('points_history', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_points_history_user_id'))
    op.drop_table('points_history')

    op.drop_table('user_balances')

    with op.batch_alter_table('mining_accounts', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_mining_accounts_user_id'))
    op.drop_table('mining_accounts')
