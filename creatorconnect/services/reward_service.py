"""
Reward service: campaign prizes and the entitlements creators earn from them.

Milestone prizes are checked every time a scoring event adds campaign points,
inside the scoring transaction. Ranking prizes are handed out when the brand
closes out a campaign. Either way a creator holds at most one entitlement per
prize, so re-running a check never issues a second reward.

Entitlement states:
    pending -> approved -> fulfilled
    pending -> rejected
    pending | approved -> cancelled
"""
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import (
    BrandTier,
    Campaign,
    CampaignPrize,
    Membership,
    PointsLedgerEntry,
    RewardEntitlement,
    PRIZE_TYPES,
    REWARD_KINDS,
)
from ..utils.exceptions import (
    CampaignNotFoundError,
    InvalidStatusTransitionError,
    NotFoundError,
    ValidationError,
)
from .leaderboard_service import LeaderboardService

ALLOWED_TRANSITIONS = {
    'pending': ('approved', 'rejected', 'cancelled'),
    'approved': ('fulfilled', 'cancelled'),
    'rejected': (),
    'fulfilled': (),
    'cancelled': (),
}

CASH_KINDS = ('cash', 'both')
PRODUCT_KINDS = ('product', 'both')


def _positive_int(value) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        return None
    return value


class RewardService:
    """Prizes and reward entitlements for one brand."""

    def __init__(self, brand_id: int):
        self.brand_id = brand_id

    def _get_campaign(self, campaign_id: int) -> Campaign:
        campaign = Campaign.query.filter_by(id=campaign_id, brand_id=self.brand_id).first()
        if not campaign:
            raise CampaignNotFoundError(campaign_id)
        return campaign

    # ==================== Prizes ====================

    def list_prizes(self, campaign_id: int) -> List[CampaignPrize]:
        self._get_campaign(campaign_id)
        return (
            CampaignPrize.query.filter_by(campaign_id=campaign_id)
            .order_by(CampaignPrize.prize_type, CampaignPrize.milestone_points,
                      CampaignPrize.rank_position, CampaignPrize.id)
            .all()
        )

    def _parse_prize(self, index: int, data: Dict[str, Any], errors: Dict[str, str]) -> Dict[str, Any]:
        prefix = f'prizes.{index}'
        if not isinstance(data, dict):
            errors[prefix] = 'Must be an object'
            return {}

        prize_type = data.get('prize_type')
        if prize_type not in PRIZE_TYPES:
            errors[f'{prefix}.prize_type'] = f"Must be one of: {', '.join(PRIZE_TYPES)}"

        milestone_points = rank_position = None
        if prize_type == 'milestone':
            milestone_points = _positive_int(data.get('milestone_points'))
            if milestone_points is None:
                errors[f'{prefix}.milestone_points'] = 'Must be a positive whole number'
        elif prize_type == 'ranking_place':
            rank_position = _positive_int(data.get('rank_position'))
            if rank_position is None:
                errors[f'{prefix}.rank_position'] = 'Must be a positive whole number'

        reward_kind = data.get('reward_kind', 'none')
        if reward_kind not in REWARD_KINDS:
            errors[f'{prefix}.reward_kind'] = f"Must be one of: {', '.join(REWARD_KINDS)}"

        cash_amount = data.get('cash_amount')
        if reward_kind in CASH_KINDS:
            cash_amount = _positive_int(cash_amount)
            if cash_amount is None:
                errors[f'{prefix}.cash_amount'] = 'Must be a positive whole number'
        else:
            cash_amount = None

        product_sku = data.get('product_sku') or None
        product_description = data.get('product_description') or None
        if reward_kind in PRODUCT_KINDS and not (product_sku or product_description):
            errors[f'{prefix}.product_description'] = 'A product reward needs a SKU or description'

        required_tier_id = data.get('required_tier_id')
        if required_tier_id is not None:
            tier = BrandTier.query.filter_by(id=required_tier_id, brand_id=self.brand_id).first()
            if not tier:
                errors[f'{prefix}.required_tier_id'] = 'Unknown tier'

        return {
            'prize_type': prize_type,
            'milestone_points': milestone_points,
            'rank_position': rank_position,
            'required_tier_id': required_tier_id,
            'reward_kind': reward_kind,
            'cash_amount': cash_amount,
            'product_sku': product_sku,
            'product_description': product_description,
            'notes': data.get('notes'),
        }

    def replace_prizes(self, campaign_id: int, prizes: List[Dict[str, Any]]) -> List[CampaignPrize]:
        """
        Replace a campaign's prize table.

        Rejected once any reward has been issued for the campaign, since
        entitlements point at the existing prizes.

        Raises:
            ValidationError: bad payload, duplicate milestones or places, or rewards already issued
        """
        self._get_campaign(campaign_id)
        if not isinstance(prizes, list):
            raise ValidationError('prizes must be a list', field='prizes')

        errors = {}
        parsed = [self._parse_prize(i, p, errors) for i, p in enumerate(prizes)]

        milestones = [p['milestone_points'] for p in parsed if p.get('milestone_points')]
        places = [p['rank_position'] for p in parsed if p.get('rank_position')]
        if len(set(milestones)) != len(milestones):
            errors['prizes'] = 'Milestone point values must be unique'
        if len(set(places)) != len(places):
            errors['prizes'] = 'Ranking places must be unique'
        if errors:
            raise ValidationError('Invalid prizes', fields=errors)

        if RewardEntitlement.query.filter_by(campaign_id=campaign_id).first():
            raise ValidationError('Prizes cannot be replaced after rewards were issued', field='prizes')

        CampaignPrize.query.filter_by(campaign_id=campaign_id).delete(synchronize_session=False)
        for values in parsed:
            db.session.add(CampaignPrize(campaign_id=campaign_id, **values))
        db.session.commit()

        current_app.logger.info(
            f'[RewardService] Campaign {campaign_id} prizes replaced ({len(parsed)} prizes)'
        )
        return self.list_prizes(campaign_id)

    # ==================== Entitlements ====================

    def _campaign_points(self, campaign_id: int, creator_id: int) -> int:
        total = db.session.query(func.coalesce(func.sum(PointsLedgerEntry.capped_points), 0)).filter(
            PointsLedgerEntry.brand_id == self.brand_id,
            PointsLedgerEntry.campaign_id == campaign_id,
            PointsLedgerEntry.creator_id == creator_id,
        ).scalar()
        return int(total or 0)

    @staticmethod
    def _qualifies(prize: CampaignPrize, membership: Optional[Membership]) -> bool:
        if prize.required_tier is None:
            return True
        if membership is None:
            return False
        return (membership.points_cache or 0) >= prize.required_tier.min_points

    def _grant(self, prize: CampaignPrize, creator_id: int, source_type: str,
               points: int = None, rank: int = None) -> Optional[RewardEntitlement]:
        if RewardEntitlement.query.filter_by(creator_id=creator_id, prize_id=prize.id).first():
            return None
        entitlement = RewardEntitlement(
            brand_id=self.brand_id,
            campaign_id=prize.campaign_id,
            creator_id=creator_id,
            prize_id=prize.id,
            source_type=source_type,
            points_at_time=points,
            rank_at_time=rank,
            reward_kind=prize.reward_kind,
            cash_amount=prize.cash_amount,
            product_sku=prize.product_sku,
            product_description=prize.product_description,
            status='pending',
        )
        db.session.add(entitlement)
        return entitlement

    def check_milestone_rewards(self, campaign_id: int, creator_id: int,
                                membership: Membership = None) -> List[RewardEntitlement]:
        """
        Issue every milestone prize the creator's campaign points have reached.

        Runs inside the caller's transaction. Does not commit.

        Returns:
            Entitlements created by this call
        """
        prizes = CampaignPrize.query.filter_by(campaign_id=campaign_id, prize_type='milestone').all()
        if not prizes:
            return []

        if membership is None:
            membership = Membership.query.filter_by(brand_id=self.brand_id, creator_id=creator_id).first()
        points = self._campaign_points(campaign_id, creator_id)

        created = []
        for prize in prizes:
            if points < prize.milestone_points or not self._qualifies(prize, membership):
                continue
            entitlement = self._grant(prize, creator_id, 'milestone', points=points)
            if entitlement:
                created.append(entitlement)

        if created:
            db.session.flush()
            current_app.logger.info(
                f'[RewardService] Creator {creator_id} reached {len(created)} milestone(s) '
                f'in campaign {campaign_id} at {points} points'
            )
        return created

    def award_ranking_prizes(self, campaign_id: int) -> Dict[str, Any]:
        """
        Close out a campaign: issue each ranking prize to the creator at that
        place on the public campaign leaderboard.

        Safe to run again; places already awarded are skipped.
        """
        self._get_campaign(campaign_id)
        prizes = CampaignPrize.query.filter_by(campaign_id=campaign_id, prize_type='ranking_place').all()
        board = LeaderboardService(self.brand_id).campaign_leaderboard(campaign_id)
        by_rank = {e['rank']: e for e in board['entries']}

        memberships = {
            m.creator_id: m
            for m in Membership.query.filter_by(brand_id=self.brand_id).all()
        }

        created, skipped = [], []
        for prize in sorted(prizes, key=lambda p: p.rank_position):
            entry = by_rank.get(prize.rank_position)
            if not entry:
                skipped.append({'prize_id': prize.id, 'reason': 'no creator at this place'})
                continue
            if not self._qualifies(prize, memberships.get(entry['creator_id'])):
                skipped.append({'prize_id': prize.id, 'reason': 'creator below required tier'})
                continue
            entitlement = self._grant(
                prize, entry['creator_id'], 'ranking_place',
                points=entry['points'], rank=entry['rank'],
            )
            if entitlement:
                created.append(entitlement)

        db.session.commit()
        current_app.logger.info(
            f'[RewardService] Campaign {campaign_id} ranking prizes: {len(created)} issued'
        )
        return {
            'campaign_id': campaign_id,
            'issued': [e.to_dict() for e in created],
            'skipped': skipped,
        }

    # ==================== Review ====================

    def get_entitlement(self, entitlement_id: int) -> RewardEntitlement:
        entitlement = RewardEntitlement.query.filter_by(id=entitlement_id, brand_id=self.brand_id).first()
        if not entitlement:
            raise NotFoundError('Reward', entitlement_id)
        return entitlement

    def list_entitlements(self, campaign_id: int = None, creator_id: int = None,
                          status: str = None) -> List[RewardEntitlement]:
        query = RewardEntitlement.query.filter_by(brand_id=self.brand_id)
        if campaign_id:
            query = query.filter_by(campaign_id=campaign_id)
        if creator_id:
            query = query.filter_by(creator_id=creator_id)
        if status:
            query = query.filter_by(status=status)
        return query.order_by(RewardEntitlement.created_at.desc(), RewardEntitlement.id.desc()).all()

    def _transition(self, entitlement_id: int, to_status: str,
                    actor: str = None) -> Tuple[RewardEntitlement, str]:
        entitlement = self.get_entitlement(entitlement_id)
        if to_status not in ALLOWED_TRANSITIONS.get(entitlement.status, ()):
            raise InvalidStatusTransitionError('reward', entitlement.status, to_status)

        from_status = entitlement.status
        now = datetime.utcnow()
        entitlement.status = to_status
        if to_status in ('approved', 'rejected'):
            entitlement.reviewed_by = actor
            entitlement.reviewed_at = now
        elif to_status == 'fulfilled':
            entitlement.fulfilled_at = now
        return entitlement, from_status

    def approve(self, entitlement_id: int, actor: str = None) -> RewardEntitlement:
        return self._finish(*self._transition(entitlement_id, 'approved', actor), actor)

    def reject(self, entitlement_id: int, reason: str, actor: str = None) -> RewardEntitlement:
        if not reason or not str(reason).strip():
            raise ValidationError('A rejection reason is required', field='reason')
        entitlement, from_status = self._transition(entitlement_id, 'rejected', actor)
        entitlement.rejection_reason = str(reason).strip()[:500]
        return self._finish(entitlement, from_status, actor)

    def fulfill(self, entitlement_id: int, actor: str = None) -> RewardEntitlement:
        return self._finish(*self._transition(entitlement_id, 'fulfilled', actor), actor)

    def cancel(self, entitlement_id: int, actor: str = None) -> RewardEntitlement:
        return self._finish(*self._transition(entitlement_id, 'cancelled', actor), actor)

    def _finish(self, entitlement: RewardEntitlement, from_status: str, actor: str = None) -> RewardEntitlement:
        db.session.commit()
        current_app.logger.info(
            f'[RewardService] Reward {entitlement.id} {from_status} -> {entitlement.status}'
            + (f' by {actor}' if actor else '')
        )
        return entitlement


def list_creator_rewards(creator_id: int, status: str = None) -> List[Dict[str, Any]]:
    """A creator's entitlements across every brand."""
    query = RewardEntitlement.query.filter_by(creator_id=creator_id)
    if status:
        query = query.filter_by(status=status)
    return [
        e.to_dict()
        for e in query.order_by(RewardEntitlement.created_at.desc(), RewardEntitlement.id.desc()).all()
    ]
