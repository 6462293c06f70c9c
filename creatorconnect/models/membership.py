"""
Membership model: a creator's place in a brand's community.
"""
from datetime import datetime
from ..extensions import db

MEMBERSHIP_STATUSES = ('active', 'suspended', 'archived')
MEMBERSHIP_SOURCES = ('invite', 'campaign', 'manual')


class Membership(db.Model):
    """
    Creator x brand membership.

    points_cache mirrors the sum of the creator's ledger entries for the brand
    and tier_id is always the tier resolved from it. Both are only written by
    PointsService inside the same transaction as the ledger entry.
    """
    __tablename__ = 'memberships'

    id = db.Column(db.Integer, primary_key=True)
    brand_id = db.Column(db.Integer, db.ForeignKey('brands.id'), nullable=False, index=True)
    creator_id = db.Column(db.Integer, db.ForeignKey('creators.id'), nullable=False, index=True)

    status = db.Column(db.String(20), default='active', nullable=False)  # active, suspended, archived
    source = db.Column(db.String(20), default='invite', nullable=False)  # invite, campaign, manual

    tier_id = db.Column(db.Integer, db.ForeignKey('brand_tiers.id', ondelete='SET NULL'))
    points_cache = db.Column(db.Integer, default=0, nullable=False)

    coupon_code = db.Column(db.String(50))

    joined_at = db.Column(db.DateTime, default=datetime.utcnow)
    last_activity_at = db.Column(db.DateTime)
    suspended_at = db.Column(db.DateTime)
    archived_at = db.Column(db.DateTime)
    archived_by = db.Column(db.String(20))  # creator, brand
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    brand = db.relationship('Brand', backref=db.backref('memberships', lazy='dynamic'))
    creator = db.relationship('Creator', backref=db.backref('memberships', lazy='dynamic'))
    tier = db.relationship('BrandTier')

    __table_args__ = (
        db.UniqueConstraint('brand_id', 'creator_id', name='uq_brand_creator_membership'),
    )

    def __repr__(self):
        return f'<Membership brand={self.brand_id} creator={self.creator_id} {self.status}>'

    @property
    def is_archived(self) -> bool:
        return self.status == 'archived'

    @property
    def is_public(self) -> bool:
        """Whether the creator shows on public leaderboards."""
        return self.status == 'active'

    def to_dict(self, progress=None):
        data = {
            'id': self.id,
            'brand_id': self.brand_id,
            'brand_name': self.brand.name if self.brand else None,
            'creator_id': self.creator_id,
            'status': self.status,
            'source': self.source,
            'tier': self.tier.to_dict() if self.tier else None,
            'points_cache': self.points_cache,
            'coupon_code': self.coupon_code,
            'joined_at': self.joined_at.isoformat() if self.joined_at else None,
            'last_activity_at': self.last_activity_at.isoformat() if self.last_activity_at else None,
        }
        if progress is not None:
            data['tier_progress'] = progress
        return data
