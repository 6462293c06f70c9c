"""
Business logic services for the CreatorConnect scoring engine.
"""
from .scoring_config_service import ScoringConfigService
from .tier_service import TierService
from .membership_service import MembershipService, list_creator_memberships
from .points_service import (
    PointsService,
    enqueue_pending_event,
    process_pending_events,
    rebuild_all_caches,
)
from .leaderboard_service import LeaderboardService
from .activity_service import ActivityService
from .metrics_service import MetricsService, process_all_outstanding
from .reward_service import RewardService, list_creator_rewards

__all__ = [
    'ScoringConfigService',
    'TierService',
    'MembershipService',
    'list_creator_memberships',
    'PointsService',
    'enqueue_pending_event',
    'process_pending_events',
    'rebuild_all_caches',
    'LeaderboardService',
    'ActivityService',
    'MetricsService',
    'process_all_outstanding',
    'RewardService',
    'list_creator_rewards',
]
