"""Initial scoring schema (brands, creators, campaigns, tiers, rules, ledger).

Revision ID: c1a2b3d4e5f6
Revises:
Create Date: 2026-10-16
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'c1a2b3d4e5f6'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    """Create the scoring engine tables."""
    op.create_table(
        'brands',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('slug', sa.String(100), nullable=False),
        sa.Column('auto_join_community', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('coupon_prefix', sa.String(20), nullable=True),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('slug'),
    )

    op.create_table(
        'creators',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('handle', sa.String(100), nullable=False),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('handle'),
    )

    op.create_table(
        'brand_tiers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('brand_id', sa.Integer(), nullable=False),
        sa.Column('tier_name', sa.String(50), nullable=False),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('min_points', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('color', sa.String(20), nullable=True),
        sa.Column('icon', sa.String(50), nullable=True),
        sa.Column('benefits', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['brand_id'], ['brands.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('brand_id', 'sort_order', name='uq_brand_tier_sort_order'),
    )
    op.create_index('ix_brand_tiers_brand_id', 'brand_tiers', ['brand_id'])

    op.create_table(
        'brand_scoring_rules',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('brand_id', sa.Integer(), nullable=False),
        sa.Column('points_per_deliverable', sa.Integer(), nullable=False),
        sa.Column('points_on_time_bonus', sa.Integer(), nullable=False),
        sa.Column('points_per_1k_views', sa.Numeric(10, 4), nullable=False),
        sa.Column('points_per_like', sa.Numeric(10, 4), nullable=False),
        sa.Column('points_per_comment', sa.Numeric(10, 4), nullable=False),
        sa.Column('points_per_sale', sa.Integer(), nullable=False),
        sa.Column('quality_multiplier', sa.Numeric(6, 3), nullable=False, server_default='1'),
        sa.Column('updated_by', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['brand_id'], ['brands.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('brand_id'),
        sa.CheckConstraint(
            'points_per_deliverable >= 0 AND points_on_time_bonus >= 0 AND points_per_1k_views >= 0 '
            'AND points_per_like >= 0 AND points_per_comment >= 0 AND points_per_sale >= 0 '
            'AND quality_multiplier > 0',
            name='ck_scoring_rules_non_negative',
        ),
    )

    op.create_table(
        'brand_scoring_caps',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('brand_id', sa.Integer(), nullable=False),
        sa.Column('max_points_per_post', sa.Integer(), nullable=True),
        sa.Column('max_points_per_day', sa.Integer(), nullable=True),
        sa.Column('max_points_total_campaign', sa.Integer(), nullable=True),
        sa.Column('updated_by', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['brand_id'], ['brands.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('brand_id'),
    )

    op.create_table(
        'campaigns',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('brand_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('status', sa.String(20), server_default='open'),
        sa.Column('gamification_enabled', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('starts_at', sa.DateTime(), nullable=True),
        sa.Column('ends_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['brand_id'], ['brands.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_campaigns_brand_id', 'campaigns', ['brand_id'])

    op.create_table(
        'campaign_participants',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('campaign_id', sa.Integer(), nullable=False),
        sa.Column('creator_id', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(20), server_default='accepted'),
        sa.Column('accepted_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('deliverables_completed', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('deliverables_on_time', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_views', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_likes', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_comments', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_sales', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('quality_score', sa.Numeric(4, 2), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['campaign_id'], ['campaigns.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['creator_id'], ['creators.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('campaign_id', 'creator_id', name='uq_campaign_participant'),
    )
    op.create_index('ix_campaign_participants_campaign_id', 'campaign_participants', ['campaign_id'])
    op.create_index('ix_campaign_participants_creator_id', 'campaign_participants', ['creator_id'])

    op.create_table(
        'memberships',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('brand_id', sa.Integer(), nullable=False),
        sa.Column('creator_id', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='active'),
        sa.Column('source', sa.String(20), nullable=False, server_default='invite'),
        sa.Column('tier_id', sa.Integer(), nullable=True),
        sa.Column('points_cache', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('coupon_code', sa.String(50), nullable=True),
        sa.Column('joined_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('last_activity_at', sa.DateTime(), nullable=True),
        sa.Column('suspended_at', sa.DateTime(), nullable=True),
        sa.Column('archived_at', sa.DateTime(), nullable=True),
        sa.Column('archived_by', sa.String(20), nullable=True),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['brand_id'], ['brands.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['creator_id'], ['creators.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['tier_id'], ['brand_tiers.id'], ondelete='SET NULL'),
        sa.UniqueConstraint('brand_id', 'creator_id', name='uq_brand_creator_membership'),
    )
    op.create_index('ix_memberships_brand_id', 'memberships', ['brand_id'])
    op.create_index('ix_memberships_creator_id', 'memberships', ['creator_id'])

    op.create_table(
        'points_ledger',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('brand_id', sa.Integer(), nullable=False),
        sa.Column('creator_id', sa.Integer(), nullable=False),
        sa.Column('campaign_id', sa.Integer(), nullable=True),
        sa.Column('membership_id', sa.Integer(), nullable=False),
        sa.Column('event_type', sa.String(30), nullable=False),
        sa.Column('raw_points', sa.Integer(), nullable=False),
        sa.Column('capped_points', sa.Integer(), nullable=False),
        sa.Column('event_key', sa.String(255), nullable=True),
        sa.Column('ref_type', sa.String(50), nullable=True),
        sa.Column('ref_id', sa.String(100), nullable=True),
        sa.Column('details', sa.JSON(), nullable=True),
        sa.Column('notes', sa.String(500), nullable=True),
        sa.Column('created_by', sa.String(255), server_default='system'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['brand_id'], ['brands.id']),
        sa.ForeignKeyConstraint(['creator_id'], ['creators.id']),
        sa.ForeignKeyConstraint(['campaign_id'], ['campaigns.id']),
        sa.ForeignKeyConstraint(['membership_id'], ['memberships.id']),
        sa.UniqueConstraint('brand_id', 'event_key', name='uq_ledger_brand_event_key'),
        sa.CheckConstraint('capped_points <= raw_points', name='ck_ledger_capped_le_raw'),
    )
    op.create_index('ix_points_ledger_brand_id', 'points_ledger', ['brand_id'])
    op.create_index('ix_points_ledger_creator_id', 'points_ledger', ['creator_id'])
    op.create_index('ix_points_ledger_campaign_id', 'points_ledger', ['campaign_id'])
    op.create_index('ix_points_ledger_membership_id', 'points_ledger', ['membership_id'])
    op.create_index('ix_points_ledger_created_at', 'points_ledger', ['created_at'])
    op.create_index(
        'ix_ledger_creator_brand_created', 'points_ledger', ['creator_id', 'brand_id', 'created_at']
    )

    op.create_table(
        'pending_scoring_events',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('brand_id', sa.Integer(), nullable=False),
        sa.Column('creator_id', sa.Integer(), nullable=False),
        sa.Column('campaign_id', sa.Integer(), nullable=True),
        sa.Column('event_type', sa.String(30), nullable=False),
        sa.Column('facts', sa.JSON(), nullable=True),
        sa.Column('event_key', sa.String(255), nullable=False),
        sa.Column('ref_type', sa.String(50), nullable=True),
        sa.Column('ref_id', sa.String(100), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_error', sa.String(500), nullable=True),
        sa.Column('ledger_entry_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['brand_id'], ['brands.id']),
        sa.ForeignKeyConstraint(['creator_id'], ['creators.id']),
        sa.ForeignKeyConstraint(['campaign_id'], ['campaigns.id']),
        sa.ForeignKeyConstraint(['ledger_entry_id'], ['points_ledger.id']),
        sa.UniqueConstraint('brand_id', 'event_key', name='uq_pending_brand_event_key'),
    )
    op.create_index('ix_pending_scoring_events_brand_id', 'pending_scoring_events', ['brand_id'])

    op.create_table(
        'post_metric_snapshots',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('brand_id', sa.Integer(), nullable=False),
        sa.Column('campaign_id', sa.Integer(), nullable=False),
        sa.Column('creator_id', sa.Integer(), nullable=False),
        sa.Column('platform', sa.String(20), nullable=False),
        sa.Column('post_id', sa.String(100), nullable=False),
        sa.Column('last_views', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_likes', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_comments', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('awarded_views', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('awarded_likes', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('awarded_comments', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('update_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('view_delta_sum', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('flagged_for_review', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('flag_reason', sa.String(255), nullable=True),
        sa.Column('last_synced_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['brand_id'], ['brands.id']),
        sa.ForeignKeyConstraint(['campaign_id'], ['campaigns.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['creator_id'], ['creators.id']),
        sa.UniqueConstraint('campaign_id', 'platform', 'post_id', name='uq_snapshot_campaign_post'),
    )
    op.create_index('ix_post_metric_snapshots_brand_id', 'post_metric_snapshots', ['brand_id'])
    op.create_index('ix_post_metric_snapshots_campaign_id', 'post_metric_snapshots', ['campaign_id'])
    op.create_index('ix_post_metric_snapshots_creator_id', 'post_metric_snapshots', ['creator_id'])


def downgrade():
    """Drop the scoring engine tables."""
    op.drop_table('post_metric_snapshots')
    op.drop_table('pending_scoring_events')
    op.drop_table('points_ledger')
    op.drop_table('memberships')
    op.drop_table('campaign_participants')
    op.drop_table('campaigns')
    op.drop_table('brand_scoring_caps')
    op.drop_table('brand_scoring_rules')
    op.drop_table('brand_tiers')
    op.drop_table('creators')
    op.drop_table('brands')
