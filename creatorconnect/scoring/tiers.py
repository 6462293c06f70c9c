"""
Tier resolution.

A brand's tiers form a ladder ordered by ``sort_order`` with strictly
increasing ``min_points``. A point total resolves to the highest tier whose
threshold it reaches; below every threshold it resolves to the implicit base
tier, represented as ``None``.
"""
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from ..utils.exceptions import ValidationError


@dataclass(frozen=True)
class TierThreshold:
    """The parts of a tier the resolver needs."""

    tier_id: Optional[int]
    tier_name: str
    sort_order: int
    min_points: int


def order_ladder(tiers: Iterable[TierThreshold]) -> List[TierThreshold]:
    return sorted(tiers, key=lambda t: t.sort_order)


def validate_ladder(tiers: Iterable[TierThreshold]) -> List[TierThreshold]:
    """
    Check the ladder invariants and return it in ascending order.

    Raises:
        ValidationError: duplicate sort orders, negative thresholds, or
            thresholds that do not strictly increase with sort order
    """
    ladder = order_ladder(tiers)
    errors = {}
    seen_names = set()

    for index, tier in enumerate(ladder):
        if not tier.tier_name or not tier.tier_name.strip():
            errors['tier_name'] = 'Tier name is required'
        elif tier.tier_name.strip().lower() in seen_names:
            errors['tier_name'] = f"Duplicate tier name '{tier.tier_name}'"
        else:
            seen_names.add(tier.tier_name.strip().lower())

        if tier.min_points < 0:
            errors['min_points'] = 'Minimum points must be 0 or greater'

        if index == 0:
            continue
        previous = ladder[index - 1]
        if tier.sort_order == previous.sort_order:
            errors['sort_order'] = (
                f"Tiers '{previous.tier_name}' and '{tier.tier_name}' share sort order {tier.sort_order}"
            )
        elif tier.min_points <= previous.min_points:
            errors['min_points'] = (
                f"'{tier.tier_name}' must require more points than '{previous.tier_name}' "
                f"({previous.min_points})"
            )

    if errors:
        raise ValidationError('Invalid tier ladder', fields=errors)
    return ladder


def resolve_tier(tiers: Iterable[TierThreshold], total_points: int) -> Optional[TierThreshold]:
    """
    Return the tier with the greatest min_points <= total_points.

    None means the implicit base tier.
    """
    resolved = None
    for tier in order_ladder(tiers):
        if total_points >= tier.min_points:
            resolved = tier
        else:
            break
    return resolved


def tier_progress(tiers: Iterable[TierThreshold], total_points: int) -> Dict[str, Any]:
    """Current tier, next tier, and the gap to unlock it."""
    ladder = order_ladder(tiers)
    current = resolve_tier(ladder, total_points)

    next_tier = None
    for tier in ladder:
        if tier.min_points > total_points:
            next_tier = tier
            break

    return {
        'current_tier_id': current.tier_id if current else None,
        'current_tier': current.tier_name if current else None,
        'current_threshold': current.min_points if current else 0,
        'next_tier_id': next_tier.tier_id if next_tier else None,
        'next_tier': next_tier.tier_name if next_tier else None,
        'next_threshold': next_tier.min_points if next_tier else None,
        'points_to_next': max(0, next_tier.min_points - total_points) if next_tier else None,
    }
