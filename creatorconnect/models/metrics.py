"""
Post metric snapshots.

One row per (campaign, platform, post). Tracks what the last sync reported
and what has already been turned into points, so each sync only awards the
delta since the previous award.
"""
from datetime import datetime
from ..extensions import db


class PostMetricSnapshot(db.Model):
    """Running metric state for one creator post in a campaign."""
    __tablename__ = 'post_metric_snapshots'

    id = db.Column(db.Integer, primary_key=True)
    brand_id = db.Column(db.Integer, db.ForeignKey('brands.id'), nullable=False, index=True)
    campaign_id = db.Column(db.Integer, db.ForeignKey('campaigns.id'), nullable=False, index=True)
    creator_id = db.Column(db.Integer, db.ForeignKey('creators.id'), nullable=False, index=True)

    platform = db.Column(db.String(20), nullable=False)  # instagram, tiktok, youtube
    post_id = db.Column(db.String(100), nullable=False)  # platform's media id

    # Last values reported by a sync
    last_views = db.Column(db.Integer, default=0, nullable=False)
    last_likes = db.Column(db.Integer, default=0, nullable=False)
    last_comments = db.Column(db.Integer, default=0, nullable=False)

    # Values already converted into points
    awarded_views = db.Column(db.Integer, default=0, nullable=False)
    awarded_likes = db.Column(db.Integer, default=0, nullable=False)
    awarded_comments = db.Column(db.Integer, default=0, nullable=False)

    # Rolling baseline for spike detection
    update_count = db.Column(db.Integer, default=0, nullable=False)
    view_delta_sum = db.Column(db.Integer, default=0, nullable=False)
    like_delta_sum = db.Column(db.Integer, default=0, nullable=False)

    # Capped points this post has earned, held against max_points_per_post
    points_awarded = db.Column(db.Integer, default=0, nullable=False)

    flagged_for_review = db.Column(db.Boolean, default=False, nullable=False)
    flag_reason = db.Column(db.String(255))

    last_synced_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint('campaign_id', 'platform', 'post_id', name='uq_snapshot_campaign_post'),
    )

    def __repr__(self):
        return f'<PostMetricSnapshot {self.platform}:{self.post_id} views={self.last_views}>'

    @property
    def has_unawarded(self) -> bool:
        return (
            self.last_views > self.awarded_views
            or self.last_likes > self.awarded_likes
            or self.last_comments > self.awarded_comments
        )

    def to_dict(self):
        return {
            'id': self.id,
            'campaign_id': self.campaign_id,
            'creator_id': self.creator_id,
            'platform': self.platform,
            'post_id': self.post_id,
            'views': self.last_views,
            'likes': self.last_likes,
            'comments': self.last_comments,
            'awarded_views': self.awarded_views,
            'awarded_likes': self.awarded_likes,
            'awarded_comments': self.awarded_comments,
            'points_awarded': self.points_awarded,
            'update_count': self.update_count,
            'flagged_for_review': self.flagged_for_review,
            'flag_reason': self.flag_reason,
            'last_synced_at': self.last_synced_at.isoformat() if self.last_synced_at else None,
        }
