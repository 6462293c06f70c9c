"""
Scoring rule set and caps.

Per-brand configuration read by the point calculator. Both are immutable value
objects built from (and validated against) plain dicts, so the same code path
serves the settings form (PUT, full replace), the ORM rows and the platform
defaults in config.

A campaign may override any subset of the brand's values; see
ScoringRuleSet.merged() and ScoringCaps.merged().
"""
import math
from dataclasses import dataclass, asdict, replace
from decimal import Decimal
from typing import Any, Dict, Optional

from ..utils.exceptions import ValidationError

# Field name -> kind. 'int' fields must be whole numbers, 'number' fields may be fractional.
RULE_FIELDS = {
    'points_per_deliverable': 'int',
    'points_on_time_bonus': 'int',
    'points_per_1k_views': 'number',
    'points_per_like': 'number',
    'points_per_comment': 'number',
    'points_per_sale': 'int',
    'quality_multiplier': 'positive',
}

# Kind -> (largest allowed value, decimal places). Matches the storage columns.
RULE_LIMITS = {
    'int': (1000000, 0),
    'number': (100000, 4),
    'positive': (100, 3),
}

CAP_FIELDS = (
    'max_points_per_post',
    'max_points_per_day',
    'max_points_total_campaign',
)

MAX_CAP = 1000000000


def _is_number(value: Any) -> bool:
    # bool is an int subclass; True is not a weight
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    if isinstance(value, float):
        return math.isfinite(value)
    return False


def _check_rule_value(kind: str, value: Any) -> Optional[str]:
    """Return an error message for an invalid value, or None."""
    if not _is_number(value):
        return 'Must be a number'
    if kind == 'int' and not isinstance(value, int):
        return 'Must be a whole number'
    if kind == 'positive':
        if value <= 0:
            return 'Must be greater than 0'
    elif value < 0:
        return 'Must be 0 or greater'

    max_value, places = RULE_LIMITS[kind]
    if value > max_value:
        return f'Must be at most {max_value}'
    if places and -Decimal(str(value)).as_tuple().exponent > places:
        return f'At most {places} decimal places allowed'
    return None


def _check_cap_value(value: Any) -> Optional[str]:
    if isinstance(value, bool) or not isinstance(value, int):
        return 'Must be a whole number or null'
    if value < 0:
        return 'Must be 0 or greater'
    if value > MAX_CAP:
        return f'Must be at most {MAX_CAP}'
    return None


def validate_overrides(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Check a partial set of rule and cap values (campaign overrides).

    Unknown keys are rejected. A null value clears that override.

    Raises:
        ValidationError: with one message per offending field
    """
    if not isinstance(data, dict):
        raise ValidationError('Scoring overrides must be an object')

    errors = {}
    values = {}
    for name, value in data.items():
        if name not in RULE_FIELDS and name not in CAP_FIELDS:
            errors[name] = 'Unknown scoring field'
            continue
        if value is None:
            values[name] = None
            continue
        if name in RULE_FIELDS:
            message = _check_rule_value(RULE_FIELDS[name], value)
        else:
            message = _check_cap_value(value)
        if message:
            errors[name] = message
        else:
            values[name] = value

    if errors:
        raise ValidationError('Invalid scoring overrides', fields=errors)
    return values


@dataclass(frozen=True)
class ScoringRuleSet:
    """Point weights for one brand."""

    points_per_deliverable: int
    points_on_time_bonus: int
    points_per_1k_views: Decimal
    points_per_like: Decimal
    points_per_comment: Decimal
    points_per_sale: int
    quality_multiplier: Decimal

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ScoringRuleSet':
        """
        Build a rule set from a full payload.

        Every field is required (full replace, never partially applied).

        Raises:
            ValidationError: with one message per offending field
        """
        if not isinstance(data, dict):
            raise ValidationError('Scoring rules must be an object')

        errors = {}
        for name, kind in RULE_FIELDS.items():
            if name not in data or data[name] is None:
                errors[name] = 'This field is required'
                continue
            message = _check_rule_value(kind, data[name])
            if message:
                errors[name] = message

        if errors:
            raise ValidationError('Invalid scoring rules', fields=errors)

        return cls(
            points_per_deliverable=int(data['points_per_deliverable']),
            points_on_time_bonus=int(data['points_on_time_bonus']),
            points_per_1k_views=Decimal(str(data['points_per_1k_views'])),
            points_per_like=Decimal(str(data['points_per_like'])),
            points_per_comment=Decimal(str(data['points_per_comment'])),
            points_per_sale=int(data['points_per_sale']),
            quality_multiplier=Decimal(str(data['quality_multiplier'])),
        )

    def merged(self, overrides: Dict[str, Any]) -> 'ScoringRuleSet':
        """Copy with campaign overrides applied. None values keep the brand's value."""
        changes = {}
        for name, kind in RULE_FIELDS.items():
            value = overrides.get(name)
            if value is None:
                continue
            changes[name] = int(value) if kind == 'int' else Decimal(str(value))
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        for name, kind in RULE_FIELDS.items():
            if kind != 'int':
                value = data[name]
                data[name] = int(value) if value == value.to_integral_value() else float(value)
        return data


@dataclass(frozen=True)
class ScoringCaps:
    """Optional per-brand ceilings. None means unlimited."""

    max_points_per_post: Optional[int] = None
    max_points_per_day: Optional[int] = None
    max_points_total_campaign: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ScoringCaps':
        """
        Build caps from a full payload. Missing keys are unlimited.

        Raises:
            ValidationError: with one message per offending field
        """
        if not isinstance(data, dict):
            raise ValidationError('Scoring caps must be an object')

        errors = {}
        values = {}
        for name in CAP_FIELDS:
            value = data.get(name)
            if value is None:
                values[name] = None
                continue
            message = _check_cap_value(value)
            if message:
                errors[name] = message
            else:
                values[name] = value

        if errors:
            raise ValidationError('Invalid scoring caps', fields=errors)

        return cls(**values)

    def merged(self, overrides: Dict[str, Any]) -> 'ScoringCaps':
        """Copy with campaign overrides applied. None values keep the brand's cap."""
        changes = {name: overrides[name] for name in CAP_FIELDS if overrides.get(name) is not None}
        return replace(self, **changes)

    @property
    def unlimited(self) -> bool:
        return all(getattr(self, name) is None for name in CAP_FIELDS)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def default_rules(config: Dict[str, Any]) -> ScoringRuleSet:
    """Platform default rule set from app config."""
    return ScoringRuleSet.from_dict(config['DEFAULT_SCORING_RULES'])


def default_caps(config: Dict[str, Any]) -> ScoringCaps:
    """Platform default caps from app config."""
    return ScoringCaps.from_dict(config.get('DEFAULT_SCORING_CAPS') or {})
