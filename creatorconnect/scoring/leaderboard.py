"""
Leaderboard ranking.

Order: points (desc), then on-time deliveries (desc), then acceptance time
(earliest first), then creator id. Ranks are 1..n with no gaps and no shared
ranks, so repeated queries over the same data return the same order.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

_LATEST = datetime.max


@dataclass(frozen=True)
class ParticipantStanding:
    """Ranking inputs for one creator."""

    creator_id: int
    points: int = 0
    deliverables_completed: int = 0
    deliverables_on_time: int = 0
    total_views: int = 0
    total_engagement: int = 0
    total_sales: int = 0
    quality_score: Optional[float] = None
    accepted_at: Optional[datetime] = None


@dataclass(frozen=True)
class LeaderboardEntry:
    rank: int
    creator_id: int
    points: int
    deliverables_completed: int
    deliverables_on_time: int
    total_views: int
    total_engagement: int
    total_sales: int
    quality_score: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'rank': self.rank,
            'creator_id': self.creator_id,
            'points': self.points,
            'deliverables_completed': self.deliverables_completed,
            'deliverables_on_time': self.deliverables_on_time,
            'total_views': self.total_views,
            'total_engagement': self.total_engagement,
            'total_sales': self.total_sales,
            'quality_score': self.quality_score,
        }


def ranking_key(standing: ParticipantStanding):
    return (
        -standing.points,
        -standing.deliverables_on_time,
        standing.accepted_at or _LATEST,
        standing.creator_id,
    )


def rank_standings(standings: Iterable[ParticipantStanding]) -> List[LeaderboardEntry]:
    """Sort standings and assign sequential 1-based ranks."""
    ordered = sorted(standings, key=ranking_key)
    return [
        LeaderboardEntry(
            rank=position,
            creator_id=s.creator_id,
            points=s.points,
            deliverables_completed=s.deliverables_completed,
            deliverables_on_time=s.deliverables_on_time,
            total_views=s.total_views,
            total_engagement=s.total_engagement,
            total_sales=s.total_sales,
            quality_score=s.quality_score,
        )
        for position, s in enumerate(ordered, start=1)
    ]
