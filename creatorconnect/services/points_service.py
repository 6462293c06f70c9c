"""
Points Service for the CreatorConnect scoring engine.

Records scoring events in the append-only points ledger and keeps each
membership's cached total and tier in step with it.

ARCHITECTURE:
- PointsLedgerEntry is the source of truth; rows are never edited
- Membership.points_cache is a denormalized mirror of sum(capped_points)
- Every ledger write, cache increment and tier re-resolution happens in one
  transaction, with the membership row locked for the duration
- The cache is incremented in SQL (points_cache = points_cache + delta),
  never written back from a stale read
- rebuild_points_cache() recomputes caches from the ledger to repair drift

Scoring one event:
    facts validated -> membership locked (auto-joined if allowed)
    -> rules + caps read (campaign overrides applied)
    -> running post/daily/campaign totals read
    -> calculate_points() -> ledger insert -> atomic increment -> tier
    -> campaign milestone prizes checked
"""
import uuid
from datetime import datetime, timedelta
from typing import Any, Dict, List
from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..extensions import db
from ..models import Brand, Campaign, Membership, PointsLedgerEntry, PendingScoringEvent
from ..scoring.calculator import ADJUSTMENT, POST_SCOPED_EVENTS, calculate_points, validate_facts
from ..utils.exceptions import (
    CreatorConnectError,
    BrandNotFoundError,
    CampaignNotFoundError,
    MembershipNotFoundError,
    MembershipArchivedError,
    ConcurrencyConflictError,
    DuplicateEventError,
    InvalidEventFactsError,
)
from .scoring_config_service import ScoringConfigService
from .membership_service import MembershipService
from .tier_service import TierService
from .reward_service import RewardService


def utc_day_start(now: datetime = None) -> datetime:
    now = now or datetime.utcnow()
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


class PointsService:
    """
    Central service for all points-related operations of one brand.

    Usage:
        service = PointsService(brand_id)

        # Score an event
        result = service.record_event(creator_id, 'deliverable', {'on_time': True},
                                      campaign_id=12, event_key='deliverable:881')

        # Correct a mistake
        service.adjust_points(creator_id, -50, reason='Duplicate approval')

        # Repair cache drift
        service.rebuild_points_cache()
    """

    def __init__(self, brand_id: int):
        self.brand_id = brand_id
        self.config_service = ScoringConfigService(brand_id)
        self.tier_service = TierService(brand_id)
        self.reward_service = RewardService(brand_id)

    # ==================== Scoring ====================

    def record_event(
        self,
        creator_id: int,
        event_type: str,
        facts: Dict[str, Any] = None,
        campaign_id: int = None,
        event_key: str = None,
        ref_type: str = None,
        ref_id: str = None,
        notes: str = None,
        created_by: str = 'system',
        commit: bool = True
    ) -> Dict[str, Any]:
        """
        Score one event and append it to the ledger.

        Args:
            creator_id: Creator earning the points
            event_type: deliverable, view_milestone, like, comment, sale, bonus, adjustment
            facts: Quantitative facts for the event type (on_time, view_count, ...)
            campaign_id: Campaign the event belongs to, if any
            event_key: Idempotency key from the source system
            ref_type: What the event refers to (deliverable, post, sale, admin)
            ref_id: ID of that reference
            notes: Human-readable note stored on the entry
            created_by: Who/what initiated this action
            commit: Commit the transaction; pass False to join a caller's transaction

        Returns:
            Dict with the ledger entry, the membership's new total and tier,
            and any milestone rewards the event unlocked

        Raises:
            InvalidEventFactsError: facts missing or invalid; nothing is written
            MembershipArchivedError: membership is archived; nothing is written
            MembershipNotFoundError: no membership and the brand does not auto-join
            DuplicateEventError: event_key already recorded for this brand
            ConcurrencyConflictError: the atomic cache update or an auto-join lost a race
            SQLAlchemyError: any other database failure, after rollback
            ConfigurationMissingError: brand has no rules and defaults are disabled
        """
        clean_facts = validate_facts(event_type, facts)

        brand = Brand.query.get(self.brand_id)
        if not brand:
            raise BrandNotFoundError(self.brand_id)

        if campaign_id is not None:
            campaign = Campaign.query.filter_by(id=campaign_id, brand_id=self.brand_id).first()
            if not campaign:
                raise CampaignNotFoundError(campaign_id)

        if event_key:
            existing = PointsLedgerEntry.query.filter_by(brand_id=self.brand_id, event_key=event_key).first()
            if existing:
                raise DuplicateEventError(event_key, existing.id)

        try:
            membership, auto_joined = self._lock_membership(brand, creator_id, campaign_id)
            if membership.is_archived:
                raise MembershipArchivedError(membership.id)

            if event_type == ADJUSTMENT and membership.points_cache + clean_facts['points'] < 0:
                raise InvalidEventFactsError(
                    f"Adjustment of {clean_facts['points']} would take the balance below zero",
                    field='points'
                )

            rules, rules_default = self.config_service.get_rules(campaign_id)
            caps, _ = self.config_service.get_caps(campaign_id)

            day_total = self._running_total(creator_id, since=utc_day_start())
            campaign_total = None
            if campaign_id is not None:
                campaign_total = self._running_total(creator_id, campaign_id=campaign_id)
            post_total = 0
            if event_type in POST_SCOPED_EVENTS and ref_id is not None:
                post_total = self._running_total(creator_id, ref_type=ref_type, ref_id=ref_id)

            result = calculate_points(
                event_type,
                clean_facts,
                rules,
                caps,
                day_total=day_total,
                campaign_total=campaign_total,
                post_total=post_total,
            )

            entry = PointsLedgerEntry(
                brand_id=self.brand_id,
                creator_id=creator_id,
                campaign_id=campaign_id,
                membership_id=membership.id,
                event_type=event_type,
                raw_points=result.raw_points,
                capped_points=result.capped_points,
                event_key=event_key,
                ref_type=ref_type,
                ref_id=str(ref_id) if ref_id is not None else None,
                details={
                    'facts': result.facts,
                    'base_points': str(result.base_points),
                    'quality_multiplier': str(rules.quality_multiplier),
                    'rules_default': rules_default,
                    'campaign_override': bool(
                        campaign_id is not None and self.config_service.get_campaign_overrides(campaign_id)
                    ),
                    'applied_caps': list(result.applied_caps),
                },
                notes=notes,
                created_by=created_by,
                created_at=datetime.utcnow(),
            )
            db.session.add(entry)
            db.session.flush()

            previous_tier_id = membership.tier_id
            self._apply_delta(membership, result.capped_points)

            unlocked = []
            if campaign_id is not None and result.capped_points > 0:
                unlocked = self.reward_service.check_milestone_rewards(campaign_id, creator_id, membership)

            if commit:
                db.session.commit()

        except IntegrityError as e:
            db.session.rollback()
            if event_key:
                # Auto-join membership races fail here too
                existing = PointsLedgerEntry.query.filter_by(
                    brand_id=self.brand_id, event_key=event_key
                ).first()
                if existing:
                    raise DuplicateEventError(event_key, existing.id) from e
            raise ConcurrencyConflictError() from e
        except CreatorConnectError:
            db.session.rollback()
            raise
        except SQLAlchemyError:
            db.session.rollback()
            raise

        current_app.logger.info(
            f'[PointsService] Brand {self.brand_id} creator {creator_id} {event_type}: '
            f'raw={result.raw_points} capped={result.capped_points} '
            f'total={membership.points_cache}'
            + (f' caps={",".join(result.applied_caps)}' if result.applied_caps else '')
        )

        return {
            'success': True,
            'entry': entry.to_dict(),
            'membership_id': membership.id,
            'membership_status': membership.status,
            'auto_joined': auto_joined,
            'points_cache': membership.points_cache,
            'tier_id': membership.tier_id,
            'tier_name': membership.tier.tier_name if membership.tier else None,
            'tier_changed': membership.tier_id != previous_tier_id,
            'rewards_unlocked': [r.to_dict() for r in unlocked],
        }

    def award_bonus(self, creator_id: int, points: int, reason: str, campaign_id: int = None,
                    event_key: str = None, created_by: str = 'system') -> Dict[str, Any]:
        """Discretionary bonus. Goes through the multiplier and caps like any other event."""
        return self.record_event(
            creator_id,
            'bonus',
            {'points': points},
            campaign_id=campaign_id,
            event_key=event_key,
            ref_type='admin',
            notes=reason,
            created_by=created_by,
        )

    def adjust_points(self, creator_id: int, points: int, reason: str,
                      event_key: str = None, created_by: str = 'system') -> Dict[str, Any]:
        """
        Correct a balance with a signed entry.

        Adjustments bypass the multiplier and caps. The ledger is never edited.
        """
        return self.record_event(
            creator_id,
            ADJUSTMENT,
            {'points': points},
            event_key=event_key,
            ref_type='admin',
            notes=reason,
            created_by=created_by,
        )

    # ==================== Internals ====================

    def _lock_membership(self, brand: Brand, creator_id: int, campaign_id: int = None):
        """
        Lock the creator's membership row for this transaction.

        Creates an active membership when the brand auto-joins creators on
        their first scoring event.
        """
        membership = (
            Membership.query
            .filter_by(brand_id=self.brand_id, creator_id=creator_id)
            .with_for_update()
            .first()
        )
        if membership:
            return membership, False

        if not brand.auto_join_community:
            raise MembershipNotFoundError()

        membership = MembershipService(self.brand_id).build_membership(
            creator_id, source='campaign' if campaign_id else 'manual'
        )
        db.session.flush()
        current_app.logger.info(
            f'[PointsService] Creator {creator_id} auto-joined brand {self.brand_id} community'
        )
        return membership, True

    def _running_total(self, creator_id: int, since: datetime = None, campaign_id: int = None,
                       ref_type: str = None, ref_id: str = None) -> int:
        """Capped points counted against caps. Adjustments are corrections and do not count."""
        query = db.session.query(func.coalesce(func.sum(PointsLedgerEntry.capped_points), 0)).filter(
            PointsLedgerEntry.brand_id == self.brand_id,
            PointsLedgerEntry.creator_id == creator_id,
            PointsLedgerEntry.event_type != ADJUSTMENT,
        )
        if since is not None:
            query = query.filter(PointsLedgerEntry.created_at >= since)
        if campaign_id is not None:
            query = query.filter(PointsLedgerEntry.campaign_id == campaign_id)
        if ref_id is not None:
            query = query.filter(
                PointsLedgerEntry.ref_type == ref_type,
                PointsLedgerEntry.ref_id == str(ref_id),
            )
        return int(query.scalar() or 0)

    def _apply_delta(self, membership: Membership, delta: int) -> int:
        """
        Increment points_cache in SQL, re-read it, and re-resolve the tier.

        Runs inside the caller's transaction.

        Raises:
            ConcurrencyConflictError: the row was archived or removed underneath us
        """
        updated = Membership.query.filter(
            Membership.id == membership.id,
            Membership.status != 'archived',
        ).update(
            {
                Membership.points_cache: Membership.points_cache + delta,
                Membership.last_activity_at: datetime.utcnow(),
            },
            synchronize_session=False,
        )
        if updated != 1:
            raise ConcurrencyConflictError(
                f'Membership {membership.id} changed while scoring, retry the operation'
            )

        db.session.refresh(membership)
        membership.tier_id = self.tier_service.resolve_tier_id(membership.points_cache)
        db.session.flush()
        return membership.points_cache

    # ==================== Reconciliation ====================

    def rebuild_points_cache(self, membership_id: int = None) -> Dict[str, Any]:
        """
        Recompute points_cache and tier from the ledger.

        Idempotent: a second run over unchanged data repairs nothing.

        Returns:
            Dict with checked/repaired counts and per-membership drift details
        """
        query = Membership.query.filter_by(brand_id=self.brand_id)
        if membership_id is not None:
            query = query.filter_by(id=membership_id)
        memberships = query.with_for_update().all()
        if membership_id is not None and not memberships:
            raise MembershipNotFoundError(membership_id)

        totals = dict(
            db.session.query(
                PointsLedgerEntry.membership_id,
                func.coalesce(func.sum(PointsLedgerEntry.capped_points), 0),
            )
            .filter(PointsLedgerEntry.brand_id == self.brand_id)
            .group_by(PointsLedgerEntry.membership_id)
            .all()
        )
        thresholds = self.tier_service.get_thresholds()

        repaired = []
        for membership in memberships:
            expected = int(totals.get(membership.id, 0))
            tier_id = self.tier_service.resolve_tier_id(expected, thresholds)
            if membership.points_cache == expected and membership.tier_id == tier_id:
                continue

            current_app.logger.warning(
                f'[PointsService] Cache drift on membership {membership.id}: '
                f'cache={membership.points_cache} ledger={expected}'
            )
            repaired.append({
                'membership_id': membership.id,
                'creator_id': membership.creator_id,
                'cached_points': membership.points_cache,
                'ledger_points': expected,
                'old_tier_id': membership.tier_id,
                'new_tier_id': tier_id,
            })
            membership.points_cache = expected
            membership.tier_id = tier_id

        db.session.commit()
        return {
            'brand_id': self.brand_id,
            'checked': len(memberships),
            'repaired': len(repaired),
            'details': repaired,
        }

    # ==================== Queries ====================

    def get_ledger(
        self,
        creator_id: int = None,
        campaign_id: int = None,
        event_type: str = None,
        page: int = 1,
        per_page: int = 50
    ) -> Dict[str, Any]:
        query = PointsLedgerEntry.query.filter_by(brand_id=self.brand_id)
        if creator_id:
            query = query.filter_by(creator_id=creator_id)
        if campaign_id:
            query = query.filter_by(campaign_id=campaign_id)
        if event_type:
            query = query.filter_by(event_type=event_type)

        total = query.count()
        entries = (
            query.order_by(PointsLedgerEntry.created_at.desc(), PointsLedgerEntry.id.desc())
            .offset((page - 1) * per_page)
            .limit(per_page)
            .all()
        )
        return {
            'entries': [e.to_dict() for e in entries],
            'total': total,
            'page': page,
            'per_page': per_page,
        }

    def get_points_summary(self, creator_id: int) -> Dict[str, Any]:
        """Total, points by event type, tier progress and rank within the brand."""
        from .leaderboard_service import LeaderboardService

        membership = Membership.query.filter_by(brand_id=self.brand_id, creator_id=creator_id).first()
        if not membership:
            raise MembershipNotFoundError()

        by_type = dict(
            db.session.query(PointsLedgerEntry.event_type, func.sum(PointsLedgerEntry.capped_points))
            .filter_by(brand_id=self.brand_id, creator_id=creator_id)
            .group_by(PointsLedgerEntry.event_type)
            .all()
        )

        last_30 = self._running_total(creator_id, since=datetime.utcnow() - timedelta(days=30))

        rank = None
        if membership.is_public:
            rank = LeaderboardService(self.brand_id).brand_rank(creator_id)

        return {
            'creator_id': creator_id,
            'brand_id': self.brand_id,
            'membership_id': membership.id,
            'status': membership.status,
            'total_points': membership.points_cache,
            'points_last_30_days': last_30,
            'points_by_type': {k: int(v or 0) for k, v in by_type.items()},
            'tier': membership.tier.to_dict() if membership.tier else None,
            'tier_progress': self.tier_service.get_progress(membership.points_cache),
            'rank': rank,
        }


# ==================== Retry queue ====================

def enqueue_pending_event(
    brand_id: int,
    creator_id: int,
    event_type: str,
    facts: Dict[str, Any],
    campaign_id: int = None,
    event_key: str = None,
    ref_type: str = None,
    ref_id: str = None,
    error: str = None
) -> PendingScoringEvent:
    """
    Queue a scoring event that failed for an internal reason.

    The queued row always carries an event key so a retry can never double
    count. Does not commit.
    """
    event_key = event_key or f'pending:{uuid.uuid4().hex}'
    pending = PendingScoringEvent.query.filter_by(brand_id=brand_id, event_key=event_key).first()
    if pending:
        pending.last_error = (error or '')[:500] or pending.last_error
        return pending

    pending = PendingScoringEvent(
        brand_id=brand_id,
        creator_id=creator_id,
        campaign_id=campaign_id,
        event_type=event_type,
        facts=facts or {},
        event_key=event_key,
        ref_type=ref_type,
        ref_id=str(ref_id) if ref_id is not None else None,
        status='pending',
        attempts=0,
        last_error=(error or '')[:500] or None,
    )
    db.session.add(pending)
    return pending


def process_pending_events(brand_id: int = None, max_attempts: int = None) -> Dict[str, Any]:
    """
    Retry queued scoring events.

    Each retry reuses the queued event key, so an event that was in fact
    applied before the failure is marked applied instead of scored twice.
    """
    if max_attempts is None:
        max_attempts = current_app.config.get('PENDING_EVENT_MAX_ATTEMPTS', 5)

    query = PendingScoringEvent.query.filter_by(status='pending')
    if brand_id:
        query = query.filter_by(brand_id=brand_id)
    pending_ids = [p.id for p in query.order_by(PendingScoringEvent.created_at.asc()).all()]

    results = {'processed': 0, 'applied': 0, 'failed': 0, 'retrying': 0, 'errors': []}

    for pending_id in pending_ids:
        pending = PendingScoringEvent.query.get(pending_id)
        results['processed'] += 1
        service = PointsService(pending.brand_id)

        try:
            outcome = service.record_event(
                pending.creator_id,
                pending.event_type,
                pending.facts,
                campaign_id=pending.campaign_id,
                event_key=pending.event_key,
                ref_type=pending.ref_type,
                ref_id=pending.ref_id,
                created_by='system:retry',
            )
            pending = PendingScoringEvent.query.get(pending_id)
            pending.status = 'applied'
            pending.ledger_entry_id = outcome['entry']['id']
            pending.attempts += 1
            results['applied'] += 1

        except DuplicateEventError as e:
            pending = PendingScoringEvent.query.get(pending_id)
            pending.status = 'applied'
            pending.ledger_entry_id = e.entry_id
            results['applied'] += 1

        except (InvalidEventFactsError, MembershipArchivedError, MembershipNotFoundError,
                BrandNotFoundError, CampaignNotFoundError) as e:
            # Permanent: retrying cannot succeed
            pending = PendingScoringEvent.query.get(pending_id)
            pending.status = 'failed'
            pending.attempts += 1
            pending.last_error = e.message[:500]
            results['failed'] += 1
            results['errors'].append({'pending_id': pending_id, 'error': e.message})

        except CreatorConnectError as e:
            pending = PendingScoringEvent.query.get(pending_id)
            pending.attempts += 1
            pending.last_error = e.message[:500]
            if pending.attempts >= max_attempts:
                pending.status = 'failed'
                results['failed'] += 1
            else:
                results['retrying'] += 1
            results['errors'].append({'pending_id': pending_id, 'error': e.message})

        except SQLAlchemyError as e:
            # Database trouble is transient; record_event has already rolled back
            db.session.rollback()
            pending = PendingScoringEvent.query.get(pending_id)
            pending.attempts += 1
            pending.last_error = str(e)[:500]
            if pending.attempts >= max_attempts:
                pending.status = 'failed'
                results['failed'] += 1
            else:
                results['retrying'] += 1
            results['errors'].append({'pending_id': pending_id, 'error': str(e)})
            current_app.logger.warning(f'[PointsService] Pending event {pending_id} database error: {e}')

        db.session.commit()

    if results['processed']:
        current_app.logger.info(
            f"[PointsService] Pending events: {results['applied']} applied, "
            f"{results['failed']} failed, {results['retrying']} retrying"
        )
    return results


def rebuild_all_caches(brand_id: int = None) -> List[Dict[str, Any]]:
    """Run rebuild_points_cache for one brand or every active brand."""
    if brand_id:
        brand_ids = [brand_id]
    else:
        brand_ids = [b.id for b in Brand.query.filter_by(is_active=True).all()]
    return [PointsService(bid).rebuild_points_cache() for bid in brand_ids]
