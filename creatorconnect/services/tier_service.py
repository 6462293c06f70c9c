"""
Tier Service for brand tier ladders.

Handles:
- Tier CRUD with ladder validation on every write
- Resolving a point total to a tier
- Re-resolving every membership's tier after the ladder changes

Tiers are never assigned by hand: a membership's tier is always the one
resolved from its points_cache.
"""
from typing import Any, Dict, List, Optional
from flask import current_app

from ..extensions import db
from ..models import Brand, BrandTier, CampaignPrize, Membership
from ..scoring.tiers import TierThreshold, resolve_tier, validate_ladder, tier_progress
from ..utils.exceptions import BrandNotFoundError, TierNotFoundError, ValidationError

TIER_FIELDS = ('tier_name', 'sort_order', 'min_points', 'color', 'icon', 'benefits')


class TierService:
    """
    Tier ladder operations for one brand.

    Usage:
        service = TierService(brand_id)
        tier = service.resolve(1250)
        service.create_tier({'tier_name': 'Gold', 'sort_order': 3, 'min_points': 2000})
    """

    def __init__(self, brand_id: int):
        self.brand_id = brand_id

    # ==================== Lookup ====================

    def list_tiers(self) -> List[BrandTier]:
        return BrandTier.query.filter_by(brand_id=self.brand_id).order_by(BrandTier.sort_order).all()

    def get_tier(self, tier_id: int) -> BrandTier:
        tier = BrandTier.query.filter_by(id=tier_id, brand_id=self.brand_id).first()
        if not tier:
            raise TierNotFoundError(tier_id)
        return tier

    def get_thresholds(self) -> List[TierThreshold]:
        return [tier.to_threshold() for tier in self.list_tiers()]

    def resolve(self, total_points: int, thresholds: List[TierThreshold] = None) -> Optional[BrandTier]:
        """
        Tier for a point total, or None for the implicit base tier.

        Pass ``thresholds`` to resolve many totals against one ladder read.
        """
        if thresholds is None:
            thresholds = self.get_thresholds()
        match = resolve_tier(thresholds, total_points)
        if match is None:
            return None
        return BrandTier.query.get(match.tier_id)

    def resolve_tier_id(self, total_points: int, thresholds: List[TierThreshold] = None) -> Optional[int]:
        if thresholds is None:
            thresholds = self.get_thresholds()
        match = resolve_tier(thresholds, total_points)
        return match.tier_id if match else None

    def get_progress(self, total_points: int, thresholds: List[TierThreshold] = None) -> Dict[str, Any]:
        if thresholds is None:
            thresholds = self.get_thresholds()
        return tier_progress(thresholds, total_points)

    # ==================== CRUD ====================

    def _parse(self, data: Dict[str, Any], current: BrandTier = None) -> Dict[str, Any]:
        """Merge a payload over the current values and type-check it."""
        if not isinstance(data, dict):
            raise ValidationError('Tier must be an object')

        values = {name: getattr(current, name) if current else None for name in TIER_FIELDS}
        for name in TIER_FIELDS:
            if name in data:
                values[name] = data[name]

        errors = {}
        if not isinstance(values['tier_name'], str) or not values['tier_name'].strip():
            errors['tier_name'] = 'Tier name is required'
        for name in ('sort_order', 'min_points'):
            value = values[name]
            if isinstance(value, bool) or not isinstance(value, int):
                errors[name] = 'Must be a whole number'
        if values['benefits'] is not None and not isinstance(values['benefits'], dict):
            errors['benefits'] = 'Benefits must be an object'
        if errors:
            raise ValidationError('Invalid tier', fields=errors)

        values['tier_name'] = values['tier_name'].strip()
        values['benefits'] = values['benefits'] or {}
        return values

    def _check_ladder(self, candidate: TierThreshold, replacing_id: int = None) -> None:
        ladder = [t for t in self.get_thresholds() if t.tier_id != replacing_id]
        validate_ladder(ladder + [candidate])

    def create_tier(self, data: Dict[str, Any]) -> BrandTier:
        """
        Add a tier to the ladder.

        Raises:
            ValidationError: bad fields or the ladder would break ordering
        """
        if not Brand.query.get(self.brand_id):
            raise BrandNotFoundError(self.brand_id)

        values = self._parse(data)
        self._check_ladder(TierThreshold(None, values['tier_name'], values['sort_order'], values['min_points']))

        tier = BrandTier(brand_id=self.brand_id, **values)
        db.session.add(tier)
        db.session.flush()

        updated = self.reassign_tiers()
        db.session.commit()

        current_app.logger.info(
            f'[TierService] Brand {self.brand_id} added tier {tier.tier_name} '
            f'({tier.min_points}+), {updated} memberships re-tiered'
        )
        return tier

    def update_tier(self, tier_id: int, data: Dict[str, Any]) -> BrandTier:
        tier = self.get_tier(tier_id)
        values = self._parse(data, current=tier)
        self._check_ladder(
            TierThreshold(tier.id, values['tier_name'], values['sort_order'], values['min_points']),
            replacing_id=tier.id,
        )

        for name, value in values.items():
            setattr(tier, name, value)
        db.session.flush()

        updated = self.reassign_tiers()
        db.session.commit()

        current_app.logger.info(
            f'[TierService] Brand {self.brand_id} updated tier {tier.id}, {updated} memberships re-tiered'
        )
        return tier

    def delete_tier(self, tier_id: int) -> None:
        tier = self.get_tier(tier_id)

        remaining = [t for t in self.get_thresholds() if t.tier_id != tier.id]
        updated = self.reassign_tiers(remaining)
        # Prizes gated on this tier become open to everyone
        CampaignPrize.query.filter_by(required_tier_id=tier.id).update(
            {CampaignPrize.required_tier_id: None}, synchronize_session=False
        )
        db.session.flush()
        db.session.delete(tier)
        db.session.commit()

        current_app.logger.info(
            f'[TierService] Brand {self.brand_id} deleted tier {tier_id}, {updated} memberships re-tiered'
        )

    # ==================== Re-resolution ====================

    def reassign_tiers(self, thresholds: List[TierThreshold] = None) -> int:
        """
        Re-resolve every membership's tier from its points_cache.

        Called inside the transaction that changed the ladder. Does not commit.

        Returns:
            Number of memberships whose tier changed
        """
        if thresholds is None:
            thresholds = self.get_thresholds()
        changed = 0
        memberships = Membership.query.filter_by(brand_id=self.brand_id).with_for_update().all()
        for membership in memberships:
            tier_id = self.resolve_tier_id(membership.points_cache or 0, thresholds)
            if membership.tier_id != tier_id:
                membership.tier_id = tier_id
                changed += 1
        return changed
