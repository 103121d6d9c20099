"""create_orders_table

Revision ID: 5a1e0c3d9b42
Revises:
Create Date: 2026-10-18 10:02:11.418309

"""
from alembic import op
import sqlalchemy as sa


revision = '5a1e0c3d9b42'
down_revision = None
branch_labels = None
depends_on = None


order_status = sa.Enum('pending', 'completed', name='orderstatus')


def upgrade() -> None:
    op.create_table(
        'orders',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('restaurant_id', sa.String(length=64), nullable=False),
        sa.Column('customer_name', sa.String(length=255), nullable=True),
        sa.Column('table_number', sa.String(length=32), nullable=True),
        sa.Column('items', sa.JSON(), nullable=False),
        sa.Column('total_price', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('status', order_status, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_orders_id'), 'orders', ['id'], unique=False)
    op.create_index(op.f('ix_orders_restaurant_id'), 'orders', ['restaurant_id'], unique=False)
    op.create_index(op.f('ix_orders_created_at'), 'orders', ['created_at'], unique=False)


def downgrade() -> None:
    op.drop_index(op.f('ix_orders_created_at'), table_name='orders')
    op.drop_index(op.f('ix_orders_restaurant_id'), table_name='orders')
    op.drop_index(op.f('ix_orders_id'), table_name='orders')
    op.drop_table('orders')
    order_status.drop(op.get_bind(), checkfirst=True)
