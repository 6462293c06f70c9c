"""
Brand and Creator models.

Minimal rows the scoring engine hangs off: brands own rules, caps, tiers and
communities; creators earn points.
"""
from datetime import datetime
from ..extensions import db


class Brand(db.Model):
    """
    A brand running a creator program.
    Each brand configures its own scoring rules, caps and tier ladder.
    """
    __tablename__ = 'brands'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    slug = db.Column(db.String(100), nullable=False, unique=True)

    # Community program settings
    auto_join_community = db.Column(db.Boolean, default=True, nullable=False)
    coupon_prefix = db.Column(db.String(20))

    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    tiers = db.relationship(
        'BrandTier', backref='brand', lazy='dynamic',
        order_by='BrandTier.sort_order', cascade='all, delete-orphan'
    )
    scoring_rules = db.relationship(
        'BrandScoringRules', backref='brand', uselist=False, cascade='all, delete-orphan'
    )
    scoring_caps = db.relationship(
        'BrandScoringCaps', backref='brand', uselist=False, cascade='all, delete-orphan'
    )

    def __repr__(self):
        return f'<Brand {self.slug}>'

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'slug': self.slug,
            'auto_join_community': self.auto_join_community,
            'coupon_prefix': self.coupon_prefix,
            'is_active': self.is_active,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


class Creator(db.Model):
    """A content creator."""
    __tablename__ = 'creators'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    handle = db.Column(db.String(100), nullable=False, unique=True)  # @instagram / @tiktok handle
    email = db.Column(db.String(255))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f'<Creator @{self.handle}>'

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'handle': self.handle,
            'email': self.email,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
