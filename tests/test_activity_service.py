"""
Tests for campaign activity intake (participants, deliverables, sales).

Tests cover:
- Acceptance auto-joins the brand community
- Approved deliverables and attributed sales score and update counters
- Internal scoring failures queue the event and still save the business action
- Rejections (archived members, bad facts, duplicates) fail the whole operation
"""
import json
import pytest
from unittest.mock import patch

from creatorconnect.extensions import db
from creatorconnect.models import CampaignParticipant, Membership, PendingScoringEvent, PointsLedgerEntry
from creatorconnect.services.activity_service import ActivityService
from creatorconnect.services.points_service import PointsService, process_pending_events
from creatorconnect.utils.exceptions import (
    ConcurrencyConflictError,
    DuplicateError,
    DuplicateEventError,
    InvalidEventFactsError,
    MembershipArchivedError,
    NotFoundError,
)


def participant_for(campaign, creator):
    return CampaignParticipant.query.filter_by(campaign_id=campaign.id, creator_id=creator.id).first()


class TestAcceptParticipant:

    def test_accept_auto_joins(self, sample_brand, sample_campaign, sample_creator):
        participant = ActivityService(sample_brand.id).accept_participant(sample_campaign.id, sample_creator.id)

        membership = Membership.query.filter_by(brand_id=sample_brand.id, creator_id=sample_creator.id).first()
        assert participant.status == 'accepted'
        assert membership.status == 'active'
        assert membership.source == 'campaign'

    def test_accept_without_auto_join(self, sample_brand, sample_campaign, sample_creator):
        sample_brand.auto_join_community = False
        db.session.commit()

        ActivityService(sample_brand.id).accept_participant(sample_campaign.id, sample_creator.id)
        assert Membership.query.count() == 0

    def test_accept_twice(self, sample_brand, sample_campaign, sample_creator, sample_participant):
        with pytest.raises(DuplicateError):
            ActivityService(sample_brand.id).accept_participant(sample_campaign.id, sample_creator.id)

    def test_archived_member_cannot_be_accepted(self, sample_brand, sample_campaign, sample_creator,
                                                sample_membership):
        sample_membership.status = 'archived'
        db.session.commit()

        with pytest.raises(MembershipArchivedError):
            ActivityService(sample_brand.id).accept_participant(sample_campaign.id, sample_creator.id)
        assert CampaignParticipant.query.count() == 0


class TestDeliverableApproved:

    def test_scores_and_counts(self, sample_brand, sample_campaign, sample_creator, sample_participant):
        result = ActivityService(sample_brand.id).deliverable_approved(
            sample_campaign.id, sample_creator.id, on_time=True, deliverable_id='d-1'
        )

        assert result['points_status'] == 'awarded'
        assert result['points']['entry']['capped_points'] == 125
        assert result['points']['entry']['event_key'] == 'deliverable:d-1'

        participant = participant_for(sample_campaign, sample_creator)
        assert participant.deliverables_completed == 1
        assert participant.deliverables_on_time == 1

    def test_late_deliverable(self, sample_brand, sample_campaign, sample_creator, sample_participant):
        ActivityService(sample_brand.id).deliverable_approved(
            sample_campaign.id, sample_creator.id, on_time=False, deliverable_id='d-2'
        )
        participant = participant_for(sample_campaign, sample_creator)
        assert participant.deliverables_completed == 1
        assert participant.deliverables_on_time == 0

    def test_approving_twice_rejected(self, sample_brand, sample_campaign, sample_creator, sample_participant):
        service = ActivityService(sample_brand.id)
        service.deliverable_approved(sample_campaign.id, sample_creator.id, on_time=True, deliverable_id='d-3')

        with pytest.raises(DuplicateEventError):
            service.deliverable_approved(sample_campaign.id, sample_creator.id, on_time=True, deliverable_id='d-3')

        assert participant_for(sample_campaign, sample_creator).deliverables_completed == 1

    def test_archived_member_rejected(self, sample_brand, sample_campaign, sample_creator, sample_participant,
                                      sample_membership):
        sample_membership.status = 'archived'
        db.session.commit()

        with pytest.raises(MembershipArchivedError):
            ActivityService(sample_brand.id).deliverable_approved(
                sample_campaign.id, sample_creator.id, on_time=True, deliverable_id='d-4'
            )

        assert PointsLedgerEntry.query.count() == 0
        assert participant_for(sample_campaign, sample_creator).deliverables_completed == 0

    def test_on_time_must_be_boolean(self, sample_brand, sample_campaign, sample_creator, sample_participant):
        with pytest.raises(InvalidEventFactsError):
            ActivityService(sample_brand.id).deliverable_approved(
                sample_campaign.id, sample_creator.id, on_time='sure'
            )

    def test_not_a_participant(self, sample_brand, sample_campaign, make_creator):
        stranger = make_creator()
        with pytest.raises(NotFoundError):
            ActivityService(sample_brand.id).deliverable_approved(sample_campaign.id, stranger.id, on_time=True)

    def test_internal_failure_queues_event(self, sample_brand, sample_campaign, sample_creator,
                                           sample_participant, sample_membership):
        with patch.object(PointsService, 'record_event', side_effect=ConcurrencyConflictError()):
            result = ActivityService(sample_brand.id).deliverable_approved(
                sample_campaign.id, sample_creator.id, on_time=True, deliverable_id='d-5'
            )

        assert result['success'] is True
        assert result['points_status'] == 'pending'
        assert result['points'] is None

        pending = PendingScoringEvent.query.get(result['pending_event_id'])
        assert pending.event_key == 'deliverable:d-5'
        assert pending.facts == {'on_time': True}
        assert participant_for(sample_campaign, sample_creator).deliverables_completed == 1
        assert PointsLedgerEntry.query.count() == 0

        # The retry job applies it later
        assert process_pending_events()['applied'] == 1
        assert Membership.query.get(sample_membership.id).points_cache == 125


class TestSaleAttributed:

    def test_scores_and_counts(self, sample_brand, sample_campaign, sample_creator, sample_participant):
        result = ActivityService(sample_brand.id).sale_attributed(
            sample_campaign.id, sample_creator.id, 3, sale_id='order-5521'
        )

        assert result['points']['entry']['capped_points'] == 30
        assert result['points']['entry']['event_key'] == 'sale:order-5521'
        assert participant_for(sample_campaign, sample_creator).total_sales == 3

    def test_negative_sale_count(self, sample_brand, sample_campaign, sample_creator, sample_participant):
        with pytest.raises(InvalidEventFactsError):
            ActivityService(sample_brand.id).sale_attributed(sample_campaign.id, sample_creator.id, -1)


class TestCampaignActivityAPI:

    def test_accept_participant(self, client, sample_campaign, sample_creator, brand_headers):
        response = client.post(
            f'/api/campaigns/{sample_campaign.id}/participants',
            data=json.dumps({'creator_id': sample_creator.id, 'accepted_at': '2026-03-01T10:00:00'}),
            headers=brand_headers,
        )
        assert response.status_code == 201
        assert response.get_json()['accepted_at'] == '2026-03-01T10:00:00'

    def test_bad_accepted_at(self, client, sample_campaign, sample_creator, brand_headers):
        response = client.post(
            f'/api/campaigns/{sample_campaign.id}/participants',
            data=json.dumps({'creator_id': sample_creator.id, 'accepted_at': 'last tuesday'}),
            headers=brand_headers,
        )
        assert response.status_code == 400
        assert 'accepted_at' in response.get_json()['error']['fields']

    def test_deliverable_endpoint(self, client, sample_campaign, sample_creator, sample_participant, brand_headers):
        response = client.post(
            f'/api/campaigns/{sample_campaign.id}/deliverables/approved',
            data=json.dumps({'creator_id': sample_creator.id, 'on_time': True, 'deliverable_id': 'd-9'}),
            headers=brand_headers,
        )
        assert response.status_code == 201
        data = response.get_json()
        assert data['points_status'] == 'awarded'
        assert data['points']['entry']['event_key'] == 'deliverable:d-9'

    def test_sale_endpoint(self, client, sample_campaign, sample_creator, sample_participant, brand_headers):
        response = client.post(
            f'/api/campaigns/{sample_campaign.id}/sales',
            data=json.dumps({'creator_id': sample_creator.id, 'sale_count': 2, 'sale_id': 'o-1'}),
            headers=brand_headers,
        )
        assert response.status_code == 201
        assert response.get_json()['points']['points_cache'] == 20

    def test_other_brands_campaign_not_found(self, client, sample_campaign, sample_creator, other_brand):
        response = client.post(
            f'/api/campaigns/{sample_campaign.id}/sales',
            data=json.dumps({'creator_id': sample_creator.id, 'sale_count': 2}),
            headers={'X-Brand-ID': str(other_brand.id), 'Content-Type': 'application/json'},
        )
        assert response.status_code == 404

    def test_list_participants(self, client, sample_campaign, sample_participant, brand_headers):
        response = client.get(f'/api/campaigns/{sample_campaign.id}/participants', headers=brand_headers)
        assert response.status_code == 200
        assert len(response.get_json()['participants']) == 1
