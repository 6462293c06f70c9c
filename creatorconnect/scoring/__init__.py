"""
Scoring engine: rule sets, point calculation, tier resolution and ranking.

Pure functions and value objects with no database or Flask dependencies.
"""
from .rules import ScoringRuleSet, ScoringCaps, default_rules, default_caps
from .calculator import (
    EVENT_TYPES,
    POST_SCOPED_EVENTS,
    ScoreResult,
    calculate_points,
    validate_facts,
    round_points,
)
from .tiers import TierThreshold, resolve_tier, validate_ladder, tier_progress
from .leaderboard import ParticipantStanding, LeaderboardEntry, rank_standings

__all__ = [
    'ScoringRuleSet',
    'ScoringCaps',
    'default_rules',
    'default_caps',
    'EVENT_TYPES',
    'POST_SCOPED_EVENTS',
    'ScoreResult',
    'calculate_points',
    'validate_facts',
    'round_points',
    'TierThreshold',
    'resolve_tier',
    'validate_ladder',
    'tier_progress',
    'ParticipantStanding',
    'LeaderboardEntry',
    'rank_standings',
]
