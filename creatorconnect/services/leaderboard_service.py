"""
Leaderboard service.

Read-time projections over the points ledger and campaign activity counters.
Nothing here writes to the database.

Only active memberships appear on public leaderboards; suspended and archived
creators keep their points but are hidden unless a brand operator asks for
them with include_hidden.
"""
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional
from sqlalchemy import func

from ..extensions import db
from ..models import Campaign, CampaignParticipant, Membership, PointsLedgerEntry
from ..scoring.leaderboard import ParticipantStanding, LeaderboardEntry, rank_standings
from ..utils.exceptions import CampaignNotFoundError, ValidationError

# range name -> lookback window (None = all time)
LEADERBOARD_RANGES = {
    'week': timedelta(days=7),
    'month': timedelta(days=30),
    'all': None,
}

HIDDEN_STATUSES = ('suspended', 'archived')


class LeaderboardService:
    """Campaign and brand leaderboards for one brand."""

    def __init__(self, brand_id: int):
        self.brand_id = brand_id

    def _membership_statuses(self) -> Dict[int, str]:
        rows = db.session.query(Membership.creator_id, Membership.status).filter(
            Membership.brand_id == self.brand_id
        ).all()
        return {creator_id: status for creator_id, status in rows}

    # ==================== Campaign ====================

    def campaign_leaderboard(self, campaign_id: int, include_hidden: bool = False) -> Dict[str, Any]:
        """
        Rank a campaign's accepted participants by campaign points.

        Ties: more on-time deliveries, then earlier acceptance, then creator id.
        """
        campaign = Campaign.query.filter_by(id=campaign_id, brand_id=self.brand_id).first()
        if not campaign:
            raise CampaignNotFoundError(campaign_id)

        participants = CampaignParticipant.query.filter_by(
            campaign_id=campaign_id, status='accepted'
        ).all()

        points = dict(
            db.session.query(
                PointsLedgerEntry.creator_id,
                func.coalesce(func.sum(PointsLedgerEntry.capped_points), 0),
            )
            .filter(
                PointsLedgerEntry.brand_id == self.brand_id,
                PointsLedgerEntry.campaign_id == campaign_id,
            )
            .group_by(PointsLedgerEntry.creator_id)
            .all()
        )
        statuses = self._membership_statuses()

        standings = []
        for participant in participants:
            if not include_hidden and statuses.get(participant.creator_id) in HIDDEN_STATUSES:
                continue
            standings.append(ParticipantStanding(
                creator_id=participant.creator_id,
                points=int(points.get(participant.creator_id, 0)),
                deliverables_completed=participant.deliverables_completed or 0,
                deliverables_on_time=participant.deliverables_on_time or 0,
                total_views=participant.total_views or 0,
                total_engagement=participant.total_engagement,
                total_sales=participant.total_sales or 0,
                quality_score=float(participant.quality_score) if participant.quality_score is not None else None,
                accepted_at=participant.accepted_at,
            ))

        entries = rank_standings(standings)
        return {
            'campaign_id': campaign_id,
            'campaign_name': campaign.name,
            'include_hidden': include_hidden,
            'entries': [e.to_dict() for e in entries],
            'generated_at': datetime.utcnow().isoformat(),
        }

    # ==================== Brand ====================

    def _brand_activity(self) -> Dict[int, Dict[str, Any]]:
        """Activity counters summed over all of the brand's campaigns, per creator."""
        rows = (
            db.session.query(
                CampaignParticipant.creator_id,
                func.coalesce(func.sum(CampaignParticipant.deliverables_completed), 0),
                func.coalesce(func.sum(CampaignParticipant.deliverables_on_time), 0),
                func.coalesce(func.sum(CampaignParticipant.total_views), 0),
                func.coalesce(func.sum(CampaignParticipant.total_likes), 0),
                func.coalesce(func.sum(CampaignParticipant.total_comments), 0),
                func.coalesce(func.sum(CampaignParticipant.total_sales), 0),
            )
            .join(Campaign, Campaign.id == CampaignParticipant.campaign_id)
            .filter(Campaign.brand_id == self.brand_id)
            .group_by(CampaignParticipant.creator_id)
            .all()
        )
        return {
            row[0]: {
                'deliverables_completed': int(row[1]),
                'deliverables_on_time': int(row[2]),
                'total_views': int(row[3]),
                'total_engagement': int(row[4]) + int(row[5]),
                'total_sales': int(row[6]),
            }
            for row in rows
        }

    def _brand_entries(self, range_name: str = 'all') -> List[LeaderboardEntry]:
        if range_name not in LEADERBOARD_RANGES:
            raise ValidationError(
                f"range must be one of: {', '.join(LEADERBOARD_RANGES)}", field='range'
            )

        memberships = Membership.query.filter_by(brand_id=self.brand_id, status='active').all()

        window = LEADERBOARD_RANGES[range_name]
        if window is None:
            points = {m.creator_id: m.points_cache or 0 for m in memberships}
        else:
            since = datetime.utcnow() - window
            points = dict(
                db.session.query(
                    PointsLedgerEntry.creator_id,
                    func.coalesce(func.sum(PointsLedgerEntry.capped_points), 0),
                )
                .filter(
                    PointsLedgerEntry.brand_id == self.brand_id,
                    PointsLedgerEntry.created_at >= since,
                )
                .group_by(PointsLedgerEntry.creator_id)
                .all()
            )

        activity = self._brand_activity()
        standings = []
        for membership in memberships:
            stats = activity.get(membership.creator_id, {})
            standings.append(ParticipantStanding(
                creator_id=membership.creator_id,
                points=int(points.get(membership.creator_id, 0)),
                accepted_at=membership.joined_at,
                **stats
            ))
        return rank_standings(standings)

    def brand_leaderboard(self, range_name: str = 'all', limit: Optional[int] = 10) -> Dict[str, Any]:
        """Top creators across the brand's community for a time range."""
        entries = self._brand_entries(range_name)
        if limit is not None:
            entries = entries[:limit]
        return {
            'brand_id': self.brand_id,
            'range': range_name,
            'entries': [e.to_dict() for e in entries],
            'generated_at': datetime.utcnow().isoformat(),
        }

    def brand_rank(self, creator_id: int, range_name: str = 'all') -> Optional[int]:
        for entry in self._brand_entries(range_name):
            if entry.creator_id == creator_id:
                return entry.rank
        return None
