"""
Campaign and CampaignParticipant models.
"""
from datetime import datetime
from ..extensions import db


class Campaign(db.Model):
    """A brand's UGC campaign."""
    __tablename__ = 'campaigns'

    id = db.Column(db.Integer, primary_key=True)
    brand_id = db.Column(db.Integer, db.ForeignKey('brands.id'), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    status = db.Column(db.String(20), default='open')  # draft, open, closed
    gamification_enabled = db.Column(db.Boolean, default=True, nullable=False)

    starts_at = db.Column(db.DateTime)
    ends_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    # Relationships
    brand = db.relationship('Brand', backref=db.backref('campaigns', lazy='dynamic'))
    participants = db.relationship(
        'CampaignParticipant', backref='campaign', lazy='dynamic', cascade='all, delete-orphan'
    )

    def __repr__(self):
        return f'<Campaign {self.id}: {self.name}>'

    def to_dict(self):
        return {
            'id': self.id,
            'brand_id': self.brand_id,
            'name': self.name,
            'status': self.status,
            'gamification_enabled': self.gamification_enabled,
            'starts_at': self.starts_at.isoformat() if self.starts_at else None,
            'ends_at': self.ends_at.isoformat() if self.ends_at else None,
        }


class CampaignParticipant(db.Model):
    """
    A creator accepted into a campaign.

    Carries the acceptance time (leaderboard tie-break) and running activity
    counters shown next to points on the leaderboard.
    """
    __tablename__ = 'campaign_participants'

    id = db.Column(db.Integer, primary_key=True)
    campaign_id = db.Column(db.Integer, db.ForeignKey('campaigns.id'), nullable=False, index=True)
    creator_id = db.Column(db.Integer, db.ForeignKey('creators.id'), nullable=False, index=True)

    status = db.Column(db.String(20), default='accepted')  # accepted, removed
    accepted_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    # Activity counters
    deliverables_completed = db.Column(db.Integer, default=0, nullable=False)
    deliverables_on_time = db.Column(db.Integer, default=0, nullable=False)
    total_views = db.Column(db.Integer, default=0, nullable=False)
    total_likes = db.Column(db.Integer, default=0, nullable=False)
    total_comments = db.Column(db.Integer, default=0, nullable=False)
    total_sales = db.Column(db.Integer, default=0, nullable=False)
    quality_score = db.Column(db.Numeric(4, 2))  # brand review average, optional

    creator = db.relationship('Creator')

    __table_args__ = (
        db.UniqueConstraint('campaign_id', 'creator_id', name='uq_campaign_participant'),
    )

    def __repr__(self):
        return f'<CampaignParticipant campaign={self.campaign_id} creator={self.creator_id}>'

    @property
    def total_engagement(self) -> int:
        return (self.total_likes or 0) + (self.total_comments or 0)

    def to_dict(self):
        return {
            'id': self.id,
            'campaign_id': self.campaign_id,
            'creator_id': self.creator_id,
            'status': self.status,
            'accepted_at': self.accepted_at.isoformat() if self.accepted_at else None,
            'deliverables_completed': self.deliverables_completed,
            'deliverables_on_time': self.deliverables_on_time,
            'total_views': self.total_views,
            'total_engagement': self.total_engagement,
            'total_sales': self.total_sales,
            'quality_score': float(self.quality_score) if self.quality_score is not None else None,
        }
