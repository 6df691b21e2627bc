"""Create order mirror, points ledger and rewards tables.

Revision ID: a1b2c3d4e5f6
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'a1b2c3d4e5f6'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    """Create orders, user_points, points_history, rewards and user_claimed_rewards."""
    op.create_table(
        'orders',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column('firebase_order_id', sa.String(128), nullable=False),
        sa.Column('subtotal', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('gst', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('qst', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('delivery_fee', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('final_total', sa.Numeric(10, 2), nullable=False),
        sa.Column('items', sa.JSON(), nullable=False),
        sa.Column('customer_name', sa.String(200), nullable=True),
        sa.Column('customer_email', sa.String(255), nullable=True),
        sa.Column('customer_phone', sa.String(50), nullable=True),
        sa.Column('status', sa.String(30), server_default='completed'),
        sa.Column('delivery_type', sa.String(20), server_default='delivery'),
        sa.Column('delivery_address', sa.String(500), nullable=True),
        sa.Column('ordered_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'firebase_order_id', name='uq_orders_user_source_order'),
    )
    op.create_index('ix_orders_user_id', 'orders', ['user_id'])
    op.create_index('ix_orders_user_created', 'orders', ['user_id', 'created_at'])

    op.create_table(
        'user_points',
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column('points', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('earned_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('user_id'),
        sa.CheckConstraint('points >= 0', name='ck_user_points_non_negative'),
    )

    op.create_table(
        'points_history',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column('order_id', sa.String(128), nullable=True),
        sa.Column('points', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(30), nullable=False),
        sa.Column('transaction_type', sa.String(20), nullable=False),
        sa.Column('description', sa.String(500), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint(
            "transaction_type IN ('earn', 'redeem', 'adjustment')",
            name='ck_points_history_transaction_type'
        ),
    )
    op.create_index('ix_points_history_user_created', 'points_history', ['user_id', 'created_at'])
    # One order accrual per customer and order
    op.create_index(
        'uq_points_history_order_accrual',
        'points_history',
        ['user_id', 'order_id'],
        unique=True,
        postgresql_where=sa.text("type = 'order'"),
        sqlite_where=sa.text("type = 'order'"),
    )

    op.create_table(
        'rewards',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('description', sa.String(1000), nullable=True),
        sa.Column('points_required', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('type', sa.String(20), nullable=False),
        sa.Column('discount_percentage', sa.Numeric(5, 2), nullable=True),
        sa.Column('free_item_name', sa.String(200), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('valid_until', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('points_required >= 0', name='ck_rewards_points_required'),
    )
    op.create_index('ix_rewards_active_valid', 'rewards', ['is_active', 'valid_until'])

    op.create_table(
        'user_claimed_rewards',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column('reward_id', sa.String(36), nullable=False),
        sa.Column('redemption_code', sa.String(80), nullable=False),
        sa.Column('claimed_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('is_used', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('used_at', sa.DateTime(), nullable=True),
        sa.Column('redeemed_by', sa.String(100), nullable=True),
        sa.Column('redemption_method', sa.String(30), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['reward_id'], ['rewards.id']),
        sa.UniqueConstraint('redemption_code'),
    )
    # At most one unused claim per customer and reward
    op.create_index(
        'uq_user_claimed_rewards_unused',
        'user_claimed_rewards',
        ['user_id', 'reward_id'],
        unique=True,
        postgresql_where=sa.text('is_used = false'),
        sqlite_where=sa.text('is_used = 0'),
    )
    op.create_index(
        'ix_user_claimed_rewards_user_claimed',
        'user_claimed_rewards',
        ['user_id', 'claimed_at'],
    )


def downgrade():
    """Drop the ledger tables."""
    op.drop_index('ix_user_claimed_rewards_user_claimed', table_name='user_claimed_rewards')
    op.drop_index('uq_user_claimed_rewards_unused', table_name='user_claimed_rewards')
    op.drop_table('user_claimed_rewards')
    op.drop_index('ix_rewards_active_valid', table_name='rewards')
    op.drop_table('rewards')
    op.drop_index('uq_points_history_order_accrual', table_name='points_history')
    op.drop_index('ix_points_history_user_created', table_name='points_history')
    op.drop_table('points_history')
    op.drop_table('user_points')
    op.drop_index('ix_orders_user_created', table_name='orders')
    op.drop_index('ix_orders_user_id', table_name='orders')
    op.drop_table('orders')
