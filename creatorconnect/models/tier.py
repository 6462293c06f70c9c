"""
BrandTier model.
"""
from datetime import datetime
from ..extensions import db
from ..scoring.tiers import TierThreshold


class BrandTier(db.Model):
    """
    One step on a brand's tier ladder (Bronze, Silver, Gold, Diamond...).
    Ascending sort_order = higher tier; min_points strictly increases with it.
    """
    __tablename__ = 'brand_tiers'

    id = db.Column(db.Integer, primary_key=True)
    brand_id = db.Column(db.Integer, db.ForeignKey('brands.id'), nullable=False, index=True)

    tier_name = db.Column(db.String(50), nullable=False)
    sort_order = db.Column(db.Integer, nullable=False, default=0)
    min_points = db.Column(db.Integer, nullable=False, default=0)

    color = db.Column(db.String(20))  # hex color for display
    icon = db.Column(db.String(50))   # emoji or icon name
    benefits = db.Column(db.JSON, default=dict)
    # Example: {"priority_campaigns": true, "faster_payout": true}

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint('brand_id', 'sort_order', name='uq_brand_tier_sort_order'),
    )

    def __repr__(self):
        return f'<BrandTier {self.tier_name} ({self.min_points}+)>'

    def to_threshold(self) -> TierThreshold:
        return TierThreshold(
            tier_id=self.id,
            tier_name=self.tier_name,
            sort_order=self.sort_order,
            min_points=self.min_points,
        )

    def to_dict(self):
        return {
            'id': self.id,
            'brand_id': self.brand_id,
            'tier_name': self.tier_name,
            'sort_order': self.sort_order,
            'min_points': self.min_points,
            'color': self.color,
            'icon': self.icon,
            'benefits': self.benefits or {},
        }
