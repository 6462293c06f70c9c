"""
Database models for the CreatorConnect scoring service.
"""
from .brand import Brand, Creator
from .campaign import Campaign, CampaignParticipant
from .tier import BrandTier
from .scoring import BrandScoringRules, BrandScoringCaps, CampaignScoringRules
from .membership import Membership, MEMBERSHIP_STATUSES, MEMBERSHIP_SOURCES
from .ledger import PointsLedgerEntry, PendingScoringEvent
from .metrics import PostMetricSnapshot
from .rewards import CampaignPrize, RewardEntitlement, PRIZE_TYPES, REWARD_KINDS, ENTITLEMENT_STATUSES

__all__ = [
    'Brand',
    'Creator',
    'Campaign',
    'CampaignParticipant',
    'BrandTier',
    'BrandScoringRules',
    'BrandScoringCaps',
    'CampaignScoringRules',
    'Membership',
    'MEMBERSHIP_STATUSES',
    'MEMBERSHIP_SOURCES',
    'PointsLedgerEntry',
    'PendingScoringEvent',
    'PostMetricSnapshot',
    'CampaignPrize',
    'RewardEntitlement',
    'PRIZE_TYPES',
    'REWARD_KINDS',
    'ENTITLEMENT_STATUSES',
]
