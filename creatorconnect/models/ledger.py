"""
Points ledger and retry queue models.
"""
from datetime import datetime
from sqlalchemy import event
from sqlalchemy.orm import object_session
from ..extensions import db


class PointsLedgerEntry(db.Model):
    """
    Append-only record of one scoring event.

    The source of truth for points: Membership.points_cache is derived from
    the sum of capped_points. Rows are never updated or deleted; corrections
    are new 'adjustment' entries.
    """
    __tablename__ = 'points_ledger'

    id = db.Column(db.Integer, primary_key=True)
    brand_id = db.Column(db.Integer, db.ForeignKey('brands.id'), nullable=False, index=True)
    creator_id = db.Column(db.Integer, db.ForeignKey('creators.id'), nullable=False, index=True)
    campaign_id = db.Column(db.Integer, db.ForeignKey('campaigns.id'), index=True)
    membership_id = db.Column(db.Integer, db.ForeignKey('memberships.id'), nullable=False, index=True)

    event_type = db.Column(db.String(30), nullable=False)
    # Types: deliverable, view_milestone, like, comment, sale, bonus, adjustment

    raw_points = db.Column(db.Integer, nullable=False)     # after multiplier, before caps
    capped_points = db.Column(db.Integer, nullable=False)  # what actually counts

    # Idempotency key supplied by the source system, e.g. "instagram:17890012345:views:4000"
    event_key = db.Column(db.String(255))

    # What the event refers to
    ref_type = db.Column(db.String(50))  # deliverable, post, sale, admin
    ref_id = db.Column(db.String(100))

    details = db.Column(db.JSON, default=dict)  # normalized facts + applied caps
    notes = db.Column(db.String(500))
    created_by = db.Column(db.String(255), default='system')
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

    # Relationships
    membership = db.relationship('Membership', backref=db.backref('ledger_entries', lazy='dynamic'))
    campaign = db.relationship('Campaign')

    __table_args__ = (
        db.UniqueConstraint('brand_id', 'event_key', name='uq_ledger_brand_event_key'),
        db.CheckConstraint('capped_points <= raw_points', name='ck_ledger_capped_le_raw'),
        db.Index('ix_ledger_creator_brand_created', 'creator_id', 'brand_id', 'created_at'),
    )

    def __repr__(self):
        return f'<PointsLedgerEntry {self.id}: {self.event_type} {self.capped_points} pts creator={self.creator_id}>'

    def to_dict(self):
        return {
            'id': self.id,
            'brand_id': self.brand_id,
            'creator_id': self.creator_id,
            'campaign_id': self.campaign_id,
            'membership_id': self.membership_id,
            'event_type': self.event_type,
            'raw_points': self.raw_points,
            'capped_points': self.capped_points,
            'event_key': self.event_key,
            'ref_type': self.ref_type,
            'ref_id': self.ref_id,
            'details': self.details or {},
            'notes': self.notes,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


@event.listens_for(PointsLedgerEntry, 'before_update')
def _reject_ledger_update(mapper, connection, target):
    session = object_session(target)
    if session is not None and session.is_modified(target, include_collections=False):
        raise ValueError(f'Ledger entry {target.id} is immutable')


@event.listens_for(PointsLedgerEntry, 'before_delete')
def _reject_ledger_delete(mapper, connection, target):
    raise ValueError(f'Ledger entry {target.id} is immutable')


class PendingScoringEvent(db.Model):
    """
    Scoring event that failed for an internal reason and awaits retry.

    Lets the triggering business action (deliverable approval, sale) succeed
    while its points show as pending.
    """
    __tablename__ = 'pending_scoring_events'

    id = db.Column(db.Integer, primary_key=True)
    brand_id = db.Column(db.Integer, db.ForeignKey('brands.id'), nullable=False, index=True)
    creator_id = db.Column(db.Integer, db.ForeignKey('creators.id'), nullable=False)
    campaign_id = db.Column(db.Integer, db.ForeignKey('campaigns.id'))

    event_type = db.Column(db.String(30), nullable=False)
    facts = db.Column(db.JSON, default=dict)
    event_key = db.Column(db.String(255), nullable=False)
    ref_type = db.Column(db.String(50))
    ref_id = db.Column(db.String(100))

    status = db.Column(db.String(20), default='pending', nullable=False)  # pending, applied, failed
    attempts = db.Column(db.Integer, default=0, nullable=False)
    last_error = db.Column(db.String(500))
    ledger_entry_id = db.Column(db.Integer, db.ForeignKey('points_ledger.id'))

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint('brand_id', 'event_key', name='uq_pending_brand_event_key'),
    )

    def __repr__(self):
        return f'<PendingScoringEvent {self.id}: {self.event_type} {self.status}>'

    def to_dict(self):
        return {
            'id': self.id,
            'brand_id': self.brand_id,
            'creator_id': self.creator_id,
            'campaign_id': self.campaign_id,
            'event_type': self.event_type,
            'event_key': self.event_key,
            'status': self.status,
            'attempts': self.attempts,
            'last_error': self.last_error,
            'ledger_entry_id': self.ledger_entry_id,
        }
