"""
Point accrual calculator.

Turns one scoring event (type + facts) into raw and capped points:

1. base points by event type, from the brand's rule set
2. x quality multiplier, rounded half-up to a whole point
3. clip the increment so the post's running total (post-scoped events only),
   then the creator's daily and campaign totals never exceed their caps

No database access here; running totals are passed in by the caller.
"""
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Optional, Tuple

from .rules import ScoringRuleSet, ScoringCaps
from ..utils.exceptions import InvalidEventFactsError

DELIVERABLE = 'deliverable'
VIEW_MILESTONE = 'view_milestone'
LIKE = 'like'
COMMENT = 'comment'
SALE = 'sale'
BONUS = 'bonus'
ADJUSTMENT = 'adjustment'

EVENT_TYPES = (DELIVERABLE, VIEW_MILESTONE, LIKE, COMMENT, SALE, BONUS, ADJUSTMENT)

# Events tied to a single piece of content
POST_SCOPED_EVENTS = frozenset({DELIVERABLE, VIEW_MILESTONE, LIKE, COMMENT})

# Count fact required for each counted event type
COUNT_FACTS = {
    VIEW_MILESTONE: 'view_count',
    LIKE: 'like_count',
    COMMENT: 'comment_count',
    SALE: 'sale_count',
}


@dataclass(frozen=True)
class ScoreResult:
    """Outcome of scoring a single event."""

    event_type: str
    base_points: Decimal
    raw_points: int
    capped_points: int
    facts: Dict[str, Any] = field(default_factory=dict)
    applied_caps: Tuple[str, ...] = ()

    @property
    def was_capped(self) -> bool:
        return self.capped_points < self.raw_points

    def to_dict(self) -> Dict[str, Any]:
        return {
            'event_type': self.event_type,
            'base_points': float(self.base_points),
            'raw_points': self.raw_points,
            'capped_points': self.capped_points,
            'applied_caps': list(self.applied_caps),
        }


def _require_count(facts: Dict[str, Any], name: str) -> int:
    if name not in facts or facts[name] is None:
        raise InvalidEventFactsError(f'{name} is required', field=name)
    value = facts[name]
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidEventFactsError(f'{name} must be a whole number', field=name)
    if value < 0:
        raise InvalidEventFactsError(f'{name} cannot be negative', field=name)
    return value


def validate_facts(event_type: str, facts: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Check and normalize the facts for an event.

    Returns:
        Dict containing only the facts the event type uses

    Raises:
        InvalidEventFactsError: unknown event type or missing/invalid facts
    """
    if event_type not in EVENT_TYPES:
        raise InvalidEventFactsError(f'Unknown event type: {event_type}', field='event_type')

    facts = facts or {}
    if not isinstance(facts, dict):
        raise InvalidEventFactsError('Event facts must be an object', field='facts')

    if event_type == DELIVERABLE:
        on_time = facts.get('on_time')
        if not isinstance(on_time, bool):
            raise InvalidEventFactsError('on_time must be true or false', field='on_time')
        return {'on_time': on_time}

    if event_type in COUNT_FACTS:
        name = COUNT_FACTS[event_type]
        return {name: _require_count(facts, name)}

    if event_type == BONUS:
        return {'points': _require_count(facts, 'points')}

    # adjustment: signed, non-zero
    points = facts.get('points')
    if isinstance(points, bool) or not isinstance(points, int):
        raise InvalidEventFactsError('points must be a whole number', field='points')
    if points == 0:
        raise InvalidEventFactsError('Adjustment points must be non-zero', field='points')
    return {'points': points}


def base_points(event_type: str, facts: Dict[str, Any], rules: ScoringRuleSet) -> Decimal:
    """Points before the quality multiplier (may be fractional)."""
    if event_type == DELIVERABLE:
        bonus = rules.points_on_time_bonus if facts['on_time'] else 0
        return Decimal(rules.points_per_deliverable + bonus)
    if event_type == VIEW_MILESTONE:
        return Decimal(facts['view_count'] // 1000) * rules.points_per_1k_views
    if event_type == LIKE:
        return Decimal(facts['like_count']) * rules.points_per_like
    if event_type == COMMENT:
        return Decimal(facts['comment_count']) * rules.points_per_comment
    if event_type == SALE:
        return Decimal(facts['sale_count'] * rules.points_per_sale)
    return Decimal(facts['points'])


def round_points(value: Decimal) -> int:
    """Round half-up to a whole point (0.5 -> 1, 2.5 -> 3)."""
    return int(value.quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def apply_caps(
    raw_points: int,
    caps: ScoringCaps,
    post_scoped: bool,
    day_total: int = 0,
    campaign_total: Optional[int] = None,
    post_total: int = 0
) -> Tuple[int, Tuple[str, ...]]:
    """
    Clip raw points to the brand's caps.

    Args:
        raw_points: Points after multiplier
        caps: Brand caps
        post_scoped: Whether the per-post cap applies
        day_total: Creator's capped points already awarded today
        campaign_total: Creator's capped points in the campaign, None if not campaign-scoped
        post_total: Capped points the same post has already earned

    Returns:
        (capped_points, names of the caps that clipped)
    """
    points = raw_points
    applied = []

    if post_scoped and caps.max_points_per_post is not None:
        remaining = max(0, caps.max_points_per_post - post_total)
        if points > remaining:
            points = remaining
            applied.append('max_points_per_post')

    if caps.max_points_per_day is not None:
        remaining = max(0, caps.max_points_per_day - day_total)
        if points > remaining:
            points = remaining
            applied.append('max_points_per_day')

    if campaign_total is not None and caps.max_points_total_campaign is not None:
        remaining = max(0, caps.max_points_total_campaign - campaign_total)
        if points > remaining:
            points = remaining
            applied.append('max_points_total_campaign')

    return points, tuple(applied)


def calculate_points(
    event_type: str,
    facts: Optional[Dict[str, Any]],
    rules: ScoringRuleSet,
    caps: ScoringCaps,
    day_total: int = 0,
    campaign_total: Optional[int] = None,
    post_total: int = 0
) -> ScoreResult:
    """
    Score one event.

    Adjustments are corrections: they skip the multiplier and the caps and may
    be negative.

    Raises:
        InvalidEventFactsError: before anything is computed
    """
    clean = validate_facts(event_type, facts)
    base = base_points(event_type, clean, rules)

    if event_type == ADJUSTMENT:
        points = int(base)
        return ScoreResult(event_type, base, points, points, clean)

    raw = round_points(base * rules.quality_multiplier)
    capped, applied = apply_caps(
        raw,
        caps,
        post_scoped=event_type in POST_SCOPED_EVENTS,
        day_total=day_total,
        campaign_total=campaign_total,
        post_total=post_total,
    )
    return ScoreResult(event_type, base, raw, capped, clean, applied)
