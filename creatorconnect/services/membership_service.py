"""
Membership service: a creator's lifecycle in a brand's community.

States:
    active -> suspended -> active   (brand)
    active | suspended -> archived  (creator leaving, or brand)

Archived is terminal. Suspended members keep earning points but drop off the
public leaderboards.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional
from flask import current_app

from ..extensions import db
from ..models import Brand, Creator, Membership, MEMBERSHIP_SOURCES
from ..utils.exceptions import (
    BrandNotFoundError,
    CreatorNotFoundError,
    MembershipNotFoundError,
    MembershipArchivedError,
    DuplicateError,
    InvalidStatusTransitionError,
    ValidationError,
)
from .tier_service import TierService

# from_status -> allowed target statuses
ALLOWED_TRANSITIONS = {
    'active': ('suspended', 'archived'),
    'suspended': ('active', 'archived'),
    'archived': (),
}


class MembershipService:
    """Service for membership operations within one brand."""

    def __init__(self, brand_id: int):
        self.brand_id = brand_id

    def _get_brand(self) -> Brand:
        brand = Brand.query.get(self.brand_id)
        if not brand:
            raise BrandNotFoundError(self.brand_id)
        return brand

    # ==================== Lookup ====================

    def get_membership(self, membership_id: int) -> Membership:
        membership = Membership.query.filter_by(id=membership_id, brand_id=self.brand_id).first()
        if not membership:
            raise MembershipNotFoundError(membership_id)
        return membership

    def find_for_creator(self, creator_id: int) -> Optional[Membership]:
        return Membership.query.filter_by(brand_id=self.brand_id, creator_id=creator_id).first()

    def list_memberships(self, status: str = None, page: int = 1, per_page: int = 50) -> Dict[str, Any]:
        query = Membership.query.filter_by(brand_id=self.brand_id)
        if status:
            query = query.filter_by(status=status)
        query = query.order_by(Membership.points_cache.desc(), Membership.joined_at.asc())

        total = query.count()
        memberships = query.offset((page - 1) * per_page).limit(per_page).all()

        tier_service = TierService(self.brand_id)
        thresholds = tier_service.get_thresholds()
        return {
            'memberships': [
                m.to_dict(progress=tier_service.get_progress(m.points_cache, thresholds))
                for m in memberships
            ],
            'total': total,
            'page': page,
            'per_page': per_page,
        }

    # ==================== Joining ====================

    def build_membership(self, creator_id: int, source: str = 'invite', coupon_code: str = None) -> Membership:
        """
        New active membership with zero points and the base tier.

        Adds it to the session without committing so callers can create it
        inside a larger transaction (auto-join on first scoring event).
        """
        if source not in MEMBERSHIP_SOURCES:
            raise ValidationError(f'Unknown membership source: {source}', field='source')

        brand = self._get_brand()
        if not Creator.query.get(creator_id):
            raise CreatorNotFoundError(creator_id)

        if not coupon_code and brand.coupon_prefix:
            coupon_code = f'{brand.coupon_prefix}{creator_id}'.upper()

        membership = Membership(
            brand_id=self.brand_id,
            creator_id=creator_id,
            status='active',
            source=source,
            points_cache=0,
            tier_id=TierService(self.brand_id).resolve_tier_id(0),
            coupon_code=coupon_code,
            joined_at=datetime.utcnow(),
        )
        db.session.add(membership)
        return membership

    def join(self, creator_id: int, source: str = 'invite', coupon_code: str = None) -> Membership:
        """
        Accept an invite into the brand's community.

        Raises:
            DuplicateError: creator already has an active or suspended membership
            MembershipArchivedError: creator left or was removed; archived is terminal
        """
        existing = self.find_for_creator(creator_id)
        if existing:
            if existing.is_archived:
                raise MembershipArchivedError(existing.id)
            raise DuplicateError('Membership', f'creator {creator_id}')

        membership = self.build_membership(creator_id, source=source, coupon_code=coupon_code)
        db.session.commit()

        current_app.logger.info(
            f'[MembershipService] Creator {creator_id} joined brand {self.brand_id} ({source})'
        )
        return membership

    # ==================== Transitions ====================

    def _transition(self, membership: Membership, to_status: str, actor: str = None) -> Membership:
        allowed = ALLOWED_TRANSITIONS.get(membership.status, ())
        if to_status not in allowed:
            if membership.is_archived:
                raise MembershipArchivedError(membership.id)
            raise InvalidStatusTransitionError('membership', membership.status, to_status)

        from_status = membership.status
        now = datetime.utcnow()
        membership.status = to_status
        if to_status == 'suspended':
            membership.suspended_at = now
        elif to_status == 'active':
            membership.suspended_at = None
        elif to_status == 'archived':
            membership.archived_at = now
            membership.archived_by = actor

        db.session.commit()
        current_app.logger.info(
            f'[MembershipService] Membership {membership.id} {from_status} -> {to_status}'
            + (f' by {actor}' if actor else '')
        )
        return membership

    def suspend(self, membership_id: int) -> Membership:
        return self._transition(self.get_membership(membership_id), 'suspended', actor='brand')

    def reactivate(self, membership_id: int) -> Membership:
        return self._transition(self.get_membership(membership_id), 'active', actor='brand')

    def archive(self, membership_id: int) -> Membership:
        return self._transition(self.get_membership(membership_id), 'archived', actor='brand')

    def leave(self, membership_id: int, creator_id: int) -> Membership:
        """Creator ends their own membership."""
        membership = self.get_membership(membership_id)
        if membership.creator_id != creator_id:
            raise MembershipNotFoundError(membership_id)
        return self._transition(membership, 'archived', actor='creator')


def list_creator_memberships(creator_id: int, include_archived: bool = False) -> List[Dict[str, Any]]:
    """All of a creator's memberships across brands, with cached tier and points."""
    query = Membership.query.filter_by(creator_id=creator_id)
    if not include_archived:
        query = query.filter(Membership.status != 'archived')

    results = []
    for membership in query.order_by(Membership.joined_at.asc()).all():
        progress = TierService(membership.brand_id).get_progress(membership.points_cache)
        results.append(membership.to_dict(progress=progress))
    return results
