"""initial schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2024-06-01 00:00:00.000000

Creates the milk delivery schema:
- users: subscribers and admins
- session_tokens: bearer sessions (keyed token digest only)
- milk_rates: pricing catalog, unique per quantity
- milk_deliveries: scheduled deliveries with price snapshot,
  unique per (user_id, delivery_date, delivery_time)
- payments: subscriber payments, optional per-user idempotency key

Enum columns are stored as VARCHAR(16); allowed values are enforced by the
application models.
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=16), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email', name='uq_users_email'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_users_role', 'users', ['role'])

    op.create_table(
        'session_tokens',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('token_hash', sa.String(length=64), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('last_used_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_revoked', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('revoked_reason', sa.String(length=255), nullable=True),
        sa.Column('user_agent', sa.String(length=255), nullable=True),
        sa.Column('ip_address', sa.String(length=64), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], name='fk_session_tokens_user_id_users'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('token_hash', name='uq_session_tokens_token_hash'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_session_tokens_user_id', 'session_tokens', ['user_id'])

    op.create_table(
        'milk_rates',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('price', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.CheckConstraint('quantity > 0', name='ck_milk_rates_quantity_positive'),
        sa.CheckConstraint('price >= 0', name='ck_milk_rates_price_non_negative'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('quantity', name='uq_milk_rates_quantity'),
        sqlite_autoincrement=True
    )

    # ============================================================================
    # milk_deliveries: the slot invariant lives in uq_milk_deliveries_user_slot
    # ============================================================================
    op.create_table(
        'milk_deliveries',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('milk_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('total_price', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('delivery_time', sa.String(length=16), nullable=False),
        sa.Column('delivery_date', sa.Date(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.CheckConstraint('total_price >= 0', name='ck_milk_deliveries_total_price_non_negative'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], name='fk_milk_deliveries_user_id_users'),
        sa.ForeignKeyConstraint(['milk_id'], ['milk_rates.id'], name='fk_milk_deliveries_milk_id_milk_rates'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'delivery_date', 'delivery_time', name='uq_milk_deliveries_user_slot'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_milk_deliveries_user_id', 'milk_deliveries', ['user_id'])
    op.create_index('ix_milk_deliveries_milk_id', 'milk_deliveries', ['milk_id'])
    op.create_index('ix_milk_deliveries_date', 'milk_deliveries', ['delivery_date'])

    op.create_table(
        'payments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('amount', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('payment_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('payment_method', sa.String(length=50), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('idempotency_key', sa.String(length=128), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.CheckConstraint('amount >= 0', name='ck_payments_amount_non_negative'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], name='fk_payments_user_id_users'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'idempotency_key', name='uq_payments_user_idempotency_key'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_payments_user_id', 'payments', ['user_id'])
    op.create_index('ix_payments_status_date', 'payments', ['status', 'payment_date'])


def downgrade():
    op.drop_index('ix_payments_status_date', table_name='payments')
    op.drop_index('ix_payments_user_id', table_name='payments')
    op.drop_table('payments')

    op.drop_index('ix_milk_deliveries_date', table_name='milk_deliveries')
    op.drop_index('ix_milk_deliveries_milk_id', table_name='milk_deliveries')
    op.drop_index('ix_milk_deliveries_user_id', table_name='milk_deliveries')
    op.drop_table('milk_deliveries')

    op.drop_table('milk_rates')

    op.drop_index('ix_session_tokens_user_id', table_name='session_tokens')
    op.drop_table('session_tokens')

    op.drop_index('ix_users_role', table_name='users')
    op.drop_table('users')
