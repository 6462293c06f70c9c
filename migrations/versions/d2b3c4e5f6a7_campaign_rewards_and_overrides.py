"""Campaign scoring overrides, prizes and reward entitlements; per-post point tracking.

Revision ID: d2b3c4e5f6a7
Revises: c1a2b3d4e5f6
Create Date: 2026-10-17
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'd2b3c4e5f6a7'
down_revision = 'c1a2b3d4e5f6'
branch_labels = None
depends_on = None


def upgrade():
    """Add campaign overrides, prizes, entitlements and snapshot counters."""
    with op.batch_alter_table('post_metric_snapshots') as batch_op:
        batch_op.add_column(sa.Column('like_delta_sum', sa.Integer(), nullable=False, server_default='0'))
        batch_op.add_column(sa.Column('points_awarded', sa.Integer(), nullable=False, server_default='0'))

    op.create_table(
        'campaign_scoring_rules',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('campaign_id', sa.Integer(), nullable=False),
        sa.Column('points_per_deliverable', sa.Integer(), nullable=True),
        sa.Column('points_on_time_bonus', sa.Integer(), nullable=True),
        sa.Column('points_per_1k_views', sa.Numeric(10, 4), nullable=True),
        sa.Column('points_per_like', sa.Numeric(10, 4), nullable=True),
        sa.Column('points_per_comment', sa.Numeric(10, 4), nullable=True),
        sa.Column('points_per_sale', sa.Integer(), nullable=True),
        sa.Column('quality_multiplier', sa.Numeric(6, 3), nullable=True),
        sa.Column('max_points_per_post', sa.Integer(), nullable=True),
        sa.Column('max_points_per_day', sa.Integer(), nullable=True),
        sa.Column('max_points_total_campaign', sa.Integer(), nullable=True),
        sa.Column('updated_by', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['campaign_id'], ['campaigns.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('campaign_id'),
    )

    op.create_table(
        'campaign_prizes',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('campaign_id', sa.Integer(), nullable=False),
        sa.Column('prize_type', sa.String(20), nullable=False),
        sa.Column('milestone_points', sa.Integer(), nullable=True),
        sa.Column('rank_position', sa.Integer(), nullable=True),
        sa.Column('required_tier_id', sa.Integer(), nullable=True),
        sa.Column('reward_kind', sa.String(20), nullable=False),
        sa.Column('cash_amount', sa.Integer(), nullable=True),
        sa.Column('product_sku', sa.String(100), nullable=True),
        sa.Column('product_description', sa.String(255), nullable=True),
        sa.Column('notes', sa.String(500), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['campaign_id'], ['campaigns.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['required_tier_id'], ['brand_tiers.id'], ondelete='SET NULL'),
    )
    op.create_index('ix_campaign_prizes_campaign_id', 'campaign_prizes', ['campaign_id'])

    op.create_table(
        'reward_entitlements',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('brand_id', sa.Integer(), nullable=False),
        sa.Column('campaign_id', sa.Integer(), nullable=False),
        sa.Column('creator_id', sa.Integer(), nullable=False),
        sa.Column('prize_id', sa.Integer(), nullable=False),
        sa.Column('source_type', sa.String(20), nullable=False),
        sa.Column('points_at_time', sa.Integer(), nullable=True),
        sa.Column('rank_at_time', sa.Integer(), nullable=True),
        sa.Column('reward_kind', sa.String(20), nullable=False),
        sa.Column('cash_amount', sa.Integer(), nullable=True),
        sa.Column('product_sku', sa.String(100), nullable=True),
        sa.Column('product_description', sa.String(255), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('reviewed_by', sa.String(255), nullable=True),
        sa.Column('reviewed_at', sa.DateTime(), nullable=True),
        sa.Column('rejection_reason', sa.String(500), nullable=True),
        sa.Column('fulfilled_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['brand_id'], ['brands.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['campaign_id'], ['campaigns.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['creator_id'], ['creators.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['prize_id'], ['campaign_prizes.id']),
        sa.UniqueConstraint('creator_id', 'prize_id', name='uq_entitlement_creator_prize'),
    )
    op.create_index('ix_reward_entitlements_brand_id', 'reward_entitlements', ['brand_id'])
    op.create_index('ix_reward_entitlements_campaign_id', 'reward_entitlements', ['campaign_id'])
    op.create_index('ix_reward_entitlements_creator_id', 'reward_entitlements', ['creator_id'])
    op.create_index('ix_entitlements_brand_status', 'reward_entitlements', ['brand_id', 'status'])


def downgrade():
    """Drop rewards and overrides, and the snapshot counters."""
    op.drop_table('reward_entitlements')
    op.drop_table('campaign_prizes')
    op.drop_table('campaign_scoring_rules')
    with op.batch_alter_table('post_metric_snapshots') as batch_op:
        batch_op.drop_column('points_awarded')
        batch_op.drop_column('like_delta_sum')
