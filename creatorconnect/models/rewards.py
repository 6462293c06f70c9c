"""
Campaign prizes and the reward entitlements creators earn from them.
"""
from datetime import datetime
from ..extensions import db

PRIZE_TYPES = ('milestone', 'ranking_place')
REWARD_KINDS = ('cash', 'product', 'both', 'none')
ENTITLEMENT_STATUSES = ('pending', 'approved', 'rejected', 'fulfilled', 'cancelled')


class CampaignPrize(db.Model):
    """
    A prize offered in a campaign.

    Two kinds:
    - milestone: earned by every creator whose campaign points reach
      milestone_points
    - ranking_place: earned by the creator at rank_position when the brand
      closes out the campaign

    A prize may be gated to a brand tier; creators below that tier's
    threshold do not qualify.
    """
    __tablename__ = 'campaign_prizes'

    id = db.Column(db.Integer, primary_key=True)
    campaign_id = db.Column(db.Integer, db.ForeignKey('campaigns.id'), nullable=False, index=True)

    prize_type = db.Column(db.String(20), nullable=False)  # milestone, ranking_place
    milestone_points = db.Column(db.Integer)
    rank_position = db.Column(db.Integer)
    required_tier_id = db.Column(db.Integer, db.ForeignKey('brand_tiers.id'))

    reward_kind = db.Column(db.String(20), nullable=False)  # cash, product, both, none
    cash_amount = db.Column(db.Integer)  # minor currency units
    product_sku = db.Column(db.String(100))
    product_description = db.Column(db.String(255))
    notes = db.Column(db.String(500))

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    required_tier = db.relationship('BrandTier')

    def __repr__(self):
        return f'<CampaignPrize {self.id}: {self.prize_type} campaign={self.campaign_id}>'

    def to_dict(self):
        return {
            'id': self.id,
            'campaign_id': self.campaign_id,
            'prize_type': self.prize_type,
            'milestone_points': self.milestone_points,
            'rank_position': self.rank_position,
            'required_tier_id': self.required_tier_id,
            'reward_kind': self.reward_kind,
            'cash_amount': self.cash_amount,
            'product_sku': self.product_sku,
            'product_description': self.product_description,
            'notes': self.notes,
        }


class RewardEntitlement(db.Model):
    """
    A creator's claim to a prize.

    At most one per (creator, prize). Reward details are copied from the
    prize when the entitlement is created so later prize edits do not change
    what was promised.
    """
    __tablename__ = 'reward_entitlements'

    id = db.Column(db.Integer, primary_key=True)
    brand_id = db.Column(db.Integer, db.ForeignKey('brands.id'), nullable=False, index=True)
    campaign_id = db.Column(db.Integer, db.ForeignKey('campaigns.id'), nullable=False, index=True)
    creator_id = db.Column(db.Integer, db.ForeignKey('creators.id'), nullable=False, index=True)
    prize_id = db.Column(db.Integer, db.ForeignKey('campaign_prizes.id'), nullable=False)

    source_type = db.Column(db.String(20), nullable=False)  # milestone, ranking_place
    points_at_time = db.Column(db.Integer)
    rank_at_time = db.Column(db.Integer)

    reward_kind = db.Column(db.String(20), nullable=False)
    cash_amount = db.Column(db.Integer)
    product_sku = db.Column(db.String(100))
    product_description = db.Column(db.String(255))

    status = db.Column(db.String(20), default='pending', nullable=False)
    reviewed_by = db.Column(db.String(255))
    reviewed_at = db.Column(db.DateTime)
    rejection_reason = db.Column(db.String(500))
    fulfilled_at = db.Column(db.DateTime)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    prize = db.relationship('CampaignPrize')

    __table_args__ = (
        db.UniqueConstraint('creator_id', 'prize_id', name='uq_entitlement_creator_prize'),
        db.Index('ix_entitlements_brand_status', 'brand_id', 'status'),
    )

    def __repr__(self):
        return f'<RewardEntitlement {self.id}: prize={self.prize_id} creator={self.creator_id} {self.status}>'

    def to_dict(self):
        return {
            'id': self.id,
            'brand_id': self.brand_id,
            'campaign_id': self.campaign_id,
            'creator_id': self.creator_id,
            'prize_id': self.prize_id,
            'source_type': self.source_type,
            'points_at_time': self.points_at_time,
            'rank_at_time': self.rank_at_time,
            'reward_kind': self.reward_kind,
            'cash_amount': self.cash_amount,
            'product_sku': self.product_sku,
            'product_description': self.product_description,
            'status': self.status,
            'reviewed_by': self.reviewed_by,
            'reviewed_at': self.reviewed_at.isoformat() if self.reviewed_at else None,
            'rejection_reason': self.rejection_reason,
            'fulfilled_at': self.fulfilled_at.isoformat() if self.fulfilled_at else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
