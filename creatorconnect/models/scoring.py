"""
Per-brand scoring configuration.

Rows are written whole from a validated ScoringRuleSet / ScoringCaps
(PUT, full replace) and converted back to those value objects at event time.
"""
from datetime import datetime
from ..extensions import db
from ..scoring.rules import ScoringRuleSet, ScoringCaps, RULE_FIELDS, CAP_FIELDS


class BrandScoringRules(db.Model):
    """Point weights for a brand. Absent row = platform defaults."""
    __tablename__ = 'brand_scoring_rules'

    id = db.Column(db.Integer, primary_key=True)
    brand_id = db.Column(db.Integer, db.ForeignKey('brands.id'), nullable=False, unique=True)

    points_per_deliverable = db.Column(db.Integer, nullable=False)
    points_on_time_bonus = db.Column(db.Integer, nullable=False)
    points_per_1k_views = db.Column(db.Numeric(10, 4), nullable=False)
    points_per_like = db.Column(db.Numeric(10, 4), nullable=False)
    points_per_comment = db.Column(db.Numeric(10, 4), nullable=False)
    points_per_sale = db.Column(db.Integer, nullable=False)
    quality_multiplier = db.Column(db.Numeric(6, 3), nullable=False, default=1)

    updated_by = db.Column(db.String(255))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f'<BrandScoringRules brand={self.brand_id}>'

    def apply(self, rule_set: ScoringRuleSet) -> None:
        """Overwrite every weight from a validated rule set."""
        for name in RULE_FIELDS:
            setattr(self, name, getattr(rule_set, name))

    def to_rule_set(self) -> ScoringRuleSet:
        return ScoringRuleSet(
            points_per_deliverable=self.points_per_deliverable,
            points_on_time_bonus=self.points_on_time_bonus,
            points_per_1k_views=self.points_per_1k_views,
            points_per_like=self.points_per_like,
            points_per_comment=self.points_per_comment,
            points_per_sale=self.points_per_sale,
            quality_multiplier=self.quality_multiplier,
        )


class BrandScoringCaps(db.Model):
    """Point ceilings for a brand. NULL columns are unlimited."""
    __tablename__ = 'brand_scoring_caps'

    id = db.Column(db.Integer, primary_key=True)
    brand_id = db.Column(db.Integer, db.ForeignKey('brands.id'), nullable=False, unique=True)

    max_points_per_post = db.Column(db.Integer)
    max_points_per_day = db.Column(db.Integer)
    max_points_total_campaign = db.Column(db.Integer)

    updated_by = db.Column(db.String(255))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f'<BrandScoringCaps brand={self.brand_id}>'

    def apply(self, caps: ScoringCaps) -> None:
        for name in CAP_FIELDS:
            setattr(self, name, getattr(caps, name))

    def to_caps(self) -> ScoringCaps:
        return ScoringCaps(
            max_points_per_post=self.max_points_per_post,
            max_points_per_day=self.max_points_per_day,
            max_points_total_campaign=self.max_points_total_campaign,
        )


class CampaignScoringRules(db.Model):
    """
    Campaign-level overrides of the brand's rules and caps.

    Every column is nullable; NULL inherits the brand's value. Scoring events
    that carry a campaign use the merged result.
    """
    __tablename__ = 'campaign_scoring_rules'

    id = db.Column(db.Integer, primary_key=True)
    campaign_id = db.Column(db.Integer, db.ForeignKey('campaigns.id'), nullable=False, unique=True)

    points_per_deliverable = db.Column(db.Integer)
    points_on_time_bonus = db.Column(db.Integer)
    points_per_1k_views = db.Column(db.Numeric(10, 4))
    points_per_like = db.Column(db.Numeric(10, 4))
    points_per_comment = db.Column(db.Numeric(10, 4))
    points_per_sale = db.Column(db.Integer)
    quality_multiplier = db.Column(db.Numeric(6, 3))

    max_points_per_post = db.Column(db.Integer)
    max_points_per_day = db.Column(db.Integer)
    max_points_total_campaign = db.Column(db.Integer)

    updated_by = db.Column(db.String(255))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f'<CampaignScoringRules campaign={self.campaign_id}>'

    def apply(self, overrides: dict) -> None:
        """Set the given fields; a None value clears that override."""
        for name, value in overrides.items():
            setattr(self, name, value)

    def overrides(self) -> dict:
        """Fields this campaign overrides, with their values."""
        values = {}
        for name in list(RULE_FIELDS) + list(CAP_FIELDS):
            value = getattr(self, name)
            if value is not None:
                values[name] = value
        return values
