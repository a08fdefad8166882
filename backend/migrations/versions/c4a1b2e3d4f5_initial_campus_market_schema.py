"""initial campus market schema

Revision ID: c4a1b2e3d4f5
Revises:
Create Date: 2026-10-19 09:12:40.118204

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'c4a1b2e3d4f5'
down_revision = None
branch_labels = None
depends_on = None


def _soft_delete_columns(with_batch=True):
    cols = [
        sa.Column('is_deleted', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('deleted_at', sa.DateTime(), nullable=True),
        sa.Column('deleted_by', sa.Integer(), nullable=True),
    ]
    if with_batch:
        cols.append(sa.Column('deletion_batch', sa.String(length=32), nullable=True))
    return cols


def upgrade():
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=32), nullable=False, server_default='user'),
        sa.Column('campus', sa.String(length=120), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('is_banned', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('banned_at', sa.DateTime(), nullable=True),
        sa.Column('banned_by', sa.Integer(), nullable=True),
        sa.Column('ban_reason', sa.String(length=240), nullable=True),
        *_soft_delete_columns(),
    )
    op.create_index('ix_users_email', 'users', ['email'])
    op.create_index('ix_users_is_deleted', 'users', ['is_deleted'])
    op.create_index('ix_users_deleted_by', 'users', ['deleted_by'])
    op.create_index('ix_users_deletion_batch', 'users', ['deletion_batch'])

    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('seller_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('name', sa.String(length=160), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('price', sa.Numeric(12, 2), nullable=False),
        sa.Column('image', sa.String(length=1024), nullable=True),
        sa.Column('campus', sa.String(length=120), nullable=True),
        sa.Column('condition', sa.String(length=24), nullable=True),
        sa.Column('total_quantity', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='available'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        *_soft_delete_columns(),
        sa.Column('lock_version', sa.Integer(), nullable=False, server_default='0'),
    )
    op.create_index('ix_products_seller_id', 'products', ['seller_id'])
    op.create_index('ix_products_status', 'products', ['status'])
    op.create_index('ix_products_is_deleted', 'products', ['is_deleted'])
    op.create_index('ix_products_deleted_by', 'products', ['deleted_by'])
    op.create_index('ix_products_deletion_batch', 'products', ['deletion_batch'])

    op.create_table(
        'carts',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('total_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('lock_version', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_carts_user_id', 'carts', ['user_id'], unique=True)

    op.create_table(
        'cart_items',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('cart_id', sa.Integer(), sa.ForeignKey('carts.id'), nullable=False),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id'), nullable=False),
        sa.Column('name', sa.String(length=160), nullable=False),
        sa.Column('price', sa.Numeric(12, 2), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('image', sa.String(length=1024), nullable=True),
        sa.UniqueConstraint('cart_id', 'product_id', name='uq_cart_items_cart_product'),
    )
    op.create_index('ix_cart_items_cart_id', 'cart_items', ['cart_id'])
    op.create_index('ix_cart_items_product_id', 'cart_items', ['product_id'])

    op.create_table(
        'orders',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('order_number', sa.String(length=40), nullable=False),
        sa.Column('buyer_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('seller_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('total_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('currency', sa.String(length=8), nullable=False, server_default='USD'),
        sa.Column('status', sa.String(length=24), nullable=False, server_default='waiting_to_meet'),
        sa.Column('buyer_confirmed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('seller_confirmed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('dispute_id', sa.Integer(), nullable=True),
        sa.Column('shipping_address_json', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        *_soft_delete_columns(),
        sa.Column('lock_version', sa.Integer(), nullable=False, server_default='0'),
    )
    op.create_index('ix_orders_order_number', 'orders', ['order_number'], unique=True)
    op.create_index('ix_orders_buyer_id', 'orders', ['buyer_id'])
    op.create_index('ix_orders_seller_id', 'orders', ['seller_id'])
    op.create_index('ix_orders_status', 'orders', ['status'])
    op.create_index('ix_orders_dispute_id', 'orders', ['dispute_id'])
    op.create_index('ix_orders_created_at', 'orders', ['created_at'])
    op.create_index('ix_orders_is_deleted', 'orders', ['is_deleted'])
    op.create_index('ix_orders_deleted_by', 'orders', ['deleted_by'])
    op.create_index('ix_orders_deletion_batch', 'orders', ['deletion_batch'])

    op.create_table(
        'order_items',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('order_id', sa.Integer(), sa.ForeignKey('orders.id'), nullable=False),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id'), nullable=False),
        sa.Column('seller_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=160), nullable=False),
        sa.Column('unit_price', sa.Numeric(12, 2), nullable=False),
        sa.Column('image', sa.String(length=1024), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False),
    )
    op.create_index('ix_order_items_order_id', 'order_items', ['order_id'])
    op.create_index('ix_order_items_product_id', 'order_items', ['product_id'])
    op.create_index('ix_order_items_seller_id', 'order_items', ['seller_id'])

    op.create_table(
        'payments',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('order_id', sa.Integer(), sa.ForeignKey('orders.id'), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('currency', sa.String(length=8), nullable=False, server_default='USD'),
        sa.Column('payment_method', sa.String(length=24), nullable=False),
        sa.Column('provider', sa.String(length=32), nullable=False, server_default='mock'),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='completed'),
        sa.Column('transaction_id', sa.String(length=64), nullable=True, unique=True),
        sa.Column('card_last4', sa.String(length=4), nullable=True),
        sa.Column('card_holder_name', sa.String(length=120), nullable=True),
        sa.Column('card_expiry', sa.String(length=8), nullable=True),
        sa.Column('billing_address_json', sa.Text(), nullable=True),
        sa.Column('paid_at', sa.DateTime(), nullable=True),
        sa.Column('refunded_at', sa.DateTime(), nullable=True),
        sa.Column('refund_amount', sa.Numeric(12, 2), nullable=True),
        sa.Column('refund_reason', sa.String(length=240), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        *_soft_delete_columns(with_batch=False),
    )
    op.create_index('ix_payments_order_id', 'payments', ['order_id'])
    op.create_index('ix_payments_user_id', 'payments', ['user_id'])
    op.create_index('ix_payments_status', 'payments', ['status'])
    op.create_index('ix_payments_created_at', 'payments', ['created_at'])
    op.create_index('ix_payments_is_deleted', 'payments', ['is_deleted'])

    op.create_table(
        'disputes',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('order_id', sa.Integer(), sa.ForeignKey('orders.id'), nullable=False),
        sa.Column('buyer_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('seller_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('product_ids_json', sa.Text(), nullable=True),
        sa.Column('reason', sa.Text(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='open'),
        sa.Column('resolution', sa.Text(), nullable=True),
        sa.Column('resolved_by', sa.Integer(), nullable=True),
        sa.Column('resolved_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        *_soft_delete_columns(with_batch=False),
    )
    op.create_index('ix_disputes_order_id', 'disputes', ['order_id'])
    op.create_index('ix_disputes_buyer_id', 'disputes', ['buyer_id'])
    op.create_index('ix_disputes_seller_id', 'disputes', ['seller_id'])
    op.create_index('ix_disputes_status', 'disputes', ['status'])
    op.create_index('ix_disputes_created_at', 'disputes', ['created_at'])
    op.create_index('ix_disputes_is_deleted', 'disputes', ['is_deleted'])

    op.create_table(
        'dispute_messages',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('dispute_id', sa.Integer(), sa.ForeignKey('disputes.id'), nullable=False),
        sa.Column('sender_id', sa.Integer(), nullable=False),
        sa.Column('sender_role', sa.String(length=16), nullable=False),
        sa.Column('body', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_dispute_messages_dispute_id', 'dispute_messages', ['dispute_id'])

    op.create_table(
        'order_transitions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('event', sa.String(length=40), nullable=False),
        sa.Column('from_status', sa.String(length=24), nullable=False),
        sa.Column('to_status', sa.String(length=24), nullable=False),
        sa.Column('actor_type', sa.String(length=16), nullable=False),
        sa.Column('actor_id', sa.Integer(), nullable=True),
        sa.Column('reason', sa.String(length=240), nullable=True),
        sa.Column('metadata_json', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_order_transitions_order_id', 'order_transitions', ['order_id'])

    op.create_table(
        'platform_events',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('event_type', sa.String(length=80), nullable=False),
        sa.Column('actor_user_id', sa.Integer(), nullable=True),
        sa.Column('subject_type', sa.String(length=80), nullable=True),
        sa.Column('subject_id', sa.String(length=120), nullable=True),
        sa.Column('request_id', sa.String(length=80), nullable=True),
        sa.Column('severity', sa.String(length=16), nullable=False, server_default='INFO'),
        sa.Column('metadata_json', sa.Text(), nullable=True),
    )
    op.create_index('ix_platform_events_created_at', 'platform_events', ['created_at'])
    op.create_index('ix_platform_events_event_type', 'platform_events', ['event_type'])
    op.create_index('ix_platform_events_actor_user_id', 'platform_events', ['actor_user_id'])
    op.create_index('ix_platform_events_subject_type', 'platform_events', ['subject_type'])
    op.create_index('ix_platform_events_subject_id', 'platform_events', ['subject_id'])
    op.create_index('ix_platform_events_request_id', 'platform_events', ['request_id'])
    op.create_index('ix_platform_events_severity', 'platform_events', ['severity'])


def downgrade():
    op.drop_table('platform_events')
    op.drop_table('order_transitions')
    op.drop_table('dispute_messages')
    op.drop_table('disputes')
    op.drop_table('payments')
    op.drop_table('order_items')
    op.drop_table('orders')
    op.drop_table('cart_items')
    op.drop_table('carts')
    op.drop_table('products')
    op.drop_table('users')
