"""
Activity intake from the campaign and sales systems.

Entry points the rest of the platform calls when something scoreable happens:
- accept_participant(): creator accepted into a campaign
- deliverable_approved(): brand approved a deliverable (on time or late)
- sale_attributed(): sales attributed to a creator's link or coupon

The business action and its points are one transaction. When scoring fails
for an internal reason (lost race, missing configuration, database error)
the business action is still saved, the event is queued as a
PendingScoringEvent, and the caller gets points_status='pending'. Bad input
and archived memberships fail the whole operation.
"""
from datetime import datetime
from typing import Any, Dict, Optional, Tuple
from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Brand, Campaign, CampaignParticipant, Creator
from ..scoring.calculator import validate_facts
from ..utils.exceptions import (
    BrandNotFoundError,
    CampaignNotFoundError,
    CreatorNotFoundError,
    NotFoundError,
    DuplicateError,
    MembershipArchivedError,
    ConcurrencyConflictError,
    ConfigurationMissingError,
)
from .membership_service import MembershipService
from .points_service import PointsService, enqueue_pending_event


class ActivityService:
    """Turns campaign activity into scoring events for one brand."""

    def __init__(self, brand_id: int):
        self.brand_id = brand_id
        self.points_service = PointsService(brand_id)

    def _get_campaign(self, campaign_id: int) -> Campaign:
        campaign = Campaign.query.filter_by(id=campaign_id, brand_id=self.brand_id).first()
        if not campaign:
            raise CampaignNotFoundError(campaign_id)
        return campaign

    def _get_participant(self, campaign_id: int, creator_id: int) -> CampaignParticipant:
        participant = CampaignParticipant.query.filter_by(
            campaign_id=campaign_id, creator_id=creator_id, status='accepted'
        ).first()
        if not participant:
            raise NotFoundError('Campaign participant', creator_id)
        return participant

    # ==================== Participants ====================

    def accept_participant(self, campaign_id: int, creator_id: int,
                           accepted_at: datetime = None) -> CampaignParticipant:
        """
        Accept a creator into a campaign.

        Joins the creator to the brand's community when the brand auto-joins
        and they are not a member yet.
        """
        brand = Brand.query.get(self.brand_id)
        if not brand:
            raise BrandNotFoundError(self.brand_id)
        self._get_campaign(campaign_id)
        if not Creator.query.get(creator_id):
            raise CreatorNotFoundError(creator_id)

        if CampaignParticipant.query.filter_by(campaign_id=campaign_id, creator_id=creator_id).first():
            raise DuplicateError('Campaign participant', f'creator {creator_id}')

        membership_service = MembershipService(self.brand_id)
        membership = membership_service.find_for_creator(creator_id)
        if membership and membership.is_archived:
            raise MembershipArchivedError(membership.id)
        if not membership and brand.auto_join_community:
            membership_service.build_membership(creator_id, source='campaign')

        participant = CampaignParticipant(
            campaign_id=campaign_id,
            creator_id=creator_id,
            status='accepted',
            accepted_at=accepted_at or datetime.utcnow(),
        )
        db.session.add(participant)
        db.session.commit()

        current_app.logger.info(f'[Activity] Creator {creator_id} accepted into campaign {campaign_id}')
        return participant

    # ==================== Scoring hand-off ====================

    def _score(
        self,
        creator_id: int,
        event_type: str,
        facts: Dict[str, Any],
        campaign_id: int,
        event_key: Optional[str],
        ref_type: str,
        ref_id: Optional[str],
        created_by: str
    ) -> Tuple[str, Optional[Dict[str, Any]], Optional[Any]]:
        """
        Score inside the caller's transaction.

        Returns:
            (points_status, scoring outcome or None, queued PendingScoringEvent or None)
        """
        try:
            outcome = self.points_service.record_event(
                creator_id,
                event_type,
                facts,
                campaign_id=campaign_id,
                event_key=event_key,
                ref_type=ref_type,
                ref_id=ref_id,
                created_by=created_by,
                commit=False,
            )
            return 'awarded', outcome, None
        except (ConcurrencyConflictError, ConfigurationMissingError) as e:
            error = e.message
        except SQLAlchemyError as e:
            error = str(e)

        db.session.rollback()
        current_app.logger.error(
            f'[Activity] Scoring {event_type} for creator {creator_id} in campaign {campaign_id} '
            f'failed, queued for retry: {error}'
        )
        pending = enqueue_pending_event(
            self.brand_id,
            creator_id,
            event_type,
            facts,
            campaign_id=campaign_id,
            event_key=event_key,
            ref_type=ref_type,
            ref_id=ref_id,
            error=error,
        )
        return 'pending', None, pending

    @staticmethod
    def _result(campaign_id: int, creator_id: int, status: str, outcome, pending) -> Dict[str, Any]:
        return {
            'success': True,
            'campaign_id': campaign_id,
            'creator_id': creator_id,
            'points_status': status,
            'points': outcome,
            'pending_event_id': pending.id if pending is not None else None,
        }

    # ==================== Collaborator contracts ====================

    def deliverable_approved(
        self,
        campaign_id: int,
        creator_id: int,
        on_time: bool,
        deliverable_id: str = None,
        event_key: str = None,
        approved_by: str = 'system'
    ) -> Dict[str, Any]:
        """
        Record an approved deliverable and score it.

        Raises:
            InvalidEventFactsError: on_time is not a boolean
            MembershipArchivedError: creator's membership is archived
            DuplicateEventError: this deliverable was already approved
        """
        facts = validate_facts('deliverable', {'on_time': on_time})
        self._get_campaign(campaign_id)
        self._get_participant(campaign_id, creator_id)

        if not event_key and deliverable_id is not None:
            event_key = f'deliverable:{deliverable_id}'

        status, outcome, pending = self._score(
            creator_id, 'deliverable', facts, campaign_id, event_key,
            ref_type='deliverable', ref_id=deliverable_id, created_by=approved_by,
        )

        participant = self._get_participant(campaign_id, creator_id)
        participant.deliverables_completed = (participant.deliverables_completed or 0) + 1
        if on_time:
            participant.deliverables_on_time = (participant.deliverables_on_time or 0) + 1
        db.session.commit()

        current_app.logger.info(
            f'[Activity] Deliverable approved: creator {creator_id} campaign {campaign_id} '
            f'on_time={on_time} points={status}'
        )
        return self._result(campaign_id, creator_id, status, outcome, pending)

    def sale_attributed(
        self,
        campaign_id: int,
        creator_id: int,
        sale_count: int,
        sale_id: str = None,
        event_key: str = None
    ) -> Dict[str, Any]:
        """Record attributed sales and score them."""
        facts = validate_facts('sale', {'sale_count': sale_count})
        self._get_campaign(campaign_id)
        self._get_participant(campaign_id, creator_id)

        if not event_key and sale_id is not None:
            event_key = f'sale:{sale_id}'

        status, outcome, pending = self._score(
            creator_id, 'sale', facts, campaign_id, event_key,
            ref_type='sale', ref_id=sale_id, created_by='system:sales',
        )

        participant = self._get_participant(campaign_id, creator_id)
        participant.total_sales = (participant.total_sales or 0) + facts['sale_count']
        db.session.commit()

        current_app.logger.info(
            f'[Activity] Sale attributed: creator {creator_id} campaign {campaign_id} '
            f'count={sale_count} points={status}'
        )
        return self._result(campaign_id, creator_id, status, outcome, pending)
