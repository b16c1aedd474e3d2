"""initial supply chain schema

Revision ID: a1b2c3d4e5f6
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates the complete schema from scratch:
- users: business accounts, usage ledger, rewards settings
- products: tracked items and batch members
- production_scans: append-only checkpoints
- points_claims: at-most-once reward claims (unique claim_key)
- customer_points: per (email, business) balances
- promo_codes: QR limit bonuses
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'a1b2c3d4e5f6'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ============================================================================
    # users: business accounts
    # ============================================================================
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=True),
        sa.Column('name', sa.String(length=255), nullable=True),
        sa.Column('company_name', sa.String(length=255), nullable=True),
        sa.Column('subscription_tier', sa.String(length=32), nullable=False, server_default='free'),
        sa.Column('qr_codes_used', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('qr_codes_limit', sa.Integer(), nullable=True),
        sa.Column('billing_cycle_start', sa.DateTime(timezone=True), nullable=True),
        sa.Column('promo_codes_used', sa.JSON(), nullable=False),
        sa.Column('rewards_enabled', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('points_per_claim', sa.Integer(), nullable=True),
        sa.Column('rewards_program_name', sa.String(length=100), nullable=True),
        sa.Column('business_name', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email', name='uq_users_email'),
        sqlite_autoincrement=True
    )

    # ============================================================================
    # products: tracked items; batch members share batch_group_id
    # ============================================================================
    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.String(length=64), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('product_name', sa.String(length=255), nullable=False),
        sa.Column('sku', sa.String(length=128), nullable=True),
        sa.Column('batch_number', sa.String(length=128), nullable=True),
        sa.Column('mode', sa.String(length=16), nullable=False, server_default='production'),
        sa.Column('is_finalized', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('finalized_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('photo_hashes', sa.JSON(), nullable=True),
        sa.Column('location_data', sa.JSON(), nullable=True),
        sa.Column('qr_code_ipfs_hash', sa.String(length=128), nullable=True),
        sa.Column('ipfs_hash', sa.String(length=128), nullable=True),
        sa.Column('xrpl_tx_hash', sa.String(length=128), nullable=True),
        sa.Column('is_batch_group', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('batch_group_id', sa.String(length=64), nullable=True),
        sa.Column('batch_quantity', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('product_id', name='uq_products_product_id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_products_batch_group', 'products', ['batch_group_id', 'is_batch_group'])
    op.create_index('ix_products_user_id', 'products', ['user_id'])

    # ============================================================================
    # production_scans: append-only checkpoints
    # ============================================================================
    op.create_table(
        'production_scans',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('scanned_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('latitude', sa.Float(), nullable=True),
        sa.Column('longitude', sa.Float(), nullable=True),
        sa.Column('location_name', sa.String(length=255), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('photos', sa.JSON(), nullable=True),
        sa.Column('scanned_by_name', sa.String(length=255), nullable=False),
        sa.Column('scanned_by_role', sa.String(length=128), nullable=False),
        sa.Column('ip_address', sa.String(length=64), nullable=True),
        sa.ForeignKeyConstraint(['product_id'], ['products.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_production_scans_product_id', 'production_scans', ['product_id'])
    op.create_index('ix_production_scans_product_scanned', 'production_scans', ['product_id', 'scanned_at'])

    # ============================================================================
    # points_claims: one row per claim_key, ever
    # ============================================================================
    op.create_table(
        'points_claims',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('claim_key', sa.String(length=128), nullable=False),
        sa.Column('claim_type', sa.String(length=16), nullable=False),
        sa.Column('product_id', sa.String(length=64), nullable=False),
        sa.Column('batch_group_id', sa.String(length=64), nullable=True),
        sa.Column('customer_email', sa.String(length=255), nullable=False),
        sa.Column('points_awarded', sa.Integer(), nullable=False),
        sa.Column('business_id', sa.Integer(), nullable=False),
        sa.Column('claimed_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['business_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('claim_key', name='uq_points_claims_claim_key'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_points_claims_customer_email', 'points_claims', ['customer_email'])
    op.create_index('ix_points_claims_business_claimed', 'points_claims', ['business_id', 'claimed_at'])

    # ============================================================================
    # customer_points: running balance per (email, business)
    # ============================================================================
    op.create_table(
        'customer_points',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('business_id', sa.Integer(), nullable=False),
        sa.Column('total_points', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['business_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email', 'business_id', name='uq_customer_points_email_business'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_customer_points_business_id', 'customer_points', ['business_id'])

    # ============================================================================
    # promo_codes
    # ============================================================================
    op.create_table(
        'promo_codes',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(length=64), nullable=False),
        sa.Column('qr_bonus', sa.Integer(), nullable=False),
        sa.Column('max_uses', sa.Integer(), nullable=True),
        sa.Column('times_used', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('code', name='uq_promo_codes_code'),
        sqlite_autoincrement=True
    )


def downgrade():
    op.drop_table('promo_codes')
    op.drop_index('ix_customer_points_business_id', table_name='customer_points')
    op.drop_table('customer_points')
    op.drop_index('ix_points_claims_business_claimed', table_name='points_claims')
    op.drop_index('ix_points_claims_customer_email', table_name='points_claims')
    op.drop_table('points_claims')
    op.drop_index('ix_production_scans_product_scanned', table_name='production_scans')
    op.drop_index('ix_production_scans_product_id', table_name='production_scans')
    op.drop_table('production_scans')
    op.drop_index('ix_products_user_id', table_name='products')
    op.drop_index('ix_products_batch_group', table_name='products')
    op.drop_table('products')
    op.drop_table('users')
