"""
Tests for leaderboard ranking and the leaderboard endpoints.

Tests cover:
- Tie-break order (points, on-time deliveries, acceptance time, creator id)
- Contiguous 1..n ranks
- Hidden (suspended/archived) members
- Campaign leaderboard visibility
- Brand leaderboard ranges
"""
import json
import pytest
from datetime import datetime, timedelta

from creatorconnect.extensions import db
from creatorconnect.models import CampaignParticipant, Membership
from creatorconnect.scoring.leaderboard import ParticipantStanding, rank_standings
from creatorconnect.services.leaderboard_service import LeaderboardService
from creatorconnect.services.points_service import PointsService
from creatorconnect.utils.exceptions import ValidationError


class TestRankStandings:
    """Pure ranking rules."""

    def test_on_time_deliveries_break_point_ties(self):
        a = ParticipantStanding(creator_id=1, points=300, deliverables_on_time=2)
        b = ParticipantStanding(creator_id=2, points=300, deliverables_on_time=1)

        entries = rank_standings([b, a])

        assert [e.creator_id for e in entries] == [1, 2]
        assert [e.rank for e in entries] == [1, 2]

    def test_earlier_acceptance_breaks_remaining_ties(self):
        early = datetime(2024, 5, 1, 9, 0)
        late = datetime(2024, 5, 3, 9, 0)
        a = ParticipantStanding(creator_id=9, points=100, deliverables_on_time=1, accepted_at=early)
        b = ParticipantStanding(creator_id=4, points=100, deliverables_on_time=1, accepted_at=late)

        entries = rank_standings([b, a])
        assert [e.creator_id for e in entries] == [9, 4]

    def test_creator_id_is_last_resort(self):
        same = datetime(2024, 5, 1)
        standings = [
            ParticipantStanding(creator_id=7, points=50, accepted_at=same),
            ParticipantStanding(creator_id=3, points=50, accepted_at=same),
        ]
        assert [e.creator_id for e in rank_standings(standings)] == [3, 7]

    def test_points_dominate(self):
        standings = [
            ParticipantStanding(creator_id=1, points=10, deliverables_on_time=9),
            ParticipantStanding(creator_id=2, points=11, deliverables_on_time=0),
        ]
        assert rank_standings(standings)[0].creator_id == 2

    def test_ranks_are_contiguous(self):
        standings = [
            ParticipantStanding(creator_id=i, points=(i % 4) * 100, deliverables_on_time=i % 2)
            for i in range(1, 26)
        ]
        entries = rank_standings(standings)
        assert [e.rank for e in entries] == list(range(1, 26))
        points = [e.points for e in entries]
        assert points == sorted(points, reverse=True)

    def test_deterministic(self):
        standings = [
            ParticipantStanding(creator_id=i, points=100) for i in (5, 2, 8, 1)
        ]
        first = [e.creator_id for e in rank_standings(standings)]
        second = [e.creator_id for e in rank_standings(list(reversed(standings)))]
        assert first == second == [1, 2, 5, 8]

    def test_empty(self):
        assert rank_standings([]) == []


@pytest.fixture
def two_creators(sample_brand, sample_campaign, sample_participant, sample_creator, make_creator):
    """Second accepted participant with their own membership."""
    rival = make_creator('rivalreels')
    db.session.add(Membership(
        brand_id=sample_brand.id, creator_id=rival.id, status='active', source='invite', points_cache=0,
    ))
    db.session.add(CampaignParticipant(
        campaign_id=sample_campaign.id,
        creator_id=rival.id,
        status='accepted',
        accepted_at=datetime.utcnow() - timedelta(days=1),
    ))
    db.session.commit()
    return sample_creator, rival


class TestCampaignLeaderboard:

    def test_ranks_by_campaign_points(self, sample_brand, sample_campaign, two_creators):
        maya, rival = two_creators
        service = PointsService(sample_brand.id)
        service.record_event(maya.id, 'sale', {'sale_count': 2}, campaign_id=sample_campaign.id)
        service.record_event(rival.id, 'sale', {'sale_count': 5}, campaign_id=sample_campaign.id)

        board = LeaderboardService(sample_brand.id).campaign_leaderboard(sample_campaign.id)

        assert [e['creator_id'] for e in board['entries']] == [rival.id, maya.id]
        assert [e['points'] for e in board['entries']] == [50, 20]
        assert [e['rank'] for e in board['entries']] == [1, 2]

    def test_tie_broken_by_on_time_deliveries(self, sample_brand, sample_campaign, two_creators):
        maya, rival = two_creators
        service = PointsService(sample_brand.id)
        service.award_bonus(maya.id, 300, 'Kickoff', campaign_id=sample_campaign.id)
        service.award_bonus(rival.id, 300, 'Kickoff', campaign_id=sample_campaign.id)

        participants = {
            p.creator_id: p for p in CampaignParticipant.query.filter_by(campaign_id=sample_campaign.id)
        }
        participants[maya.id].deliverables_on_time = 1
        participants[rival.id].deliverables_on_time = 2
        db.session.commit()

        board = LeaderboardService(sample_brand.id).campaign_leaderboard(sample_campaign.id)
        assert [e['creator_id'] for e in board['entries']] == [rival.id, maya.id]

    def test_suspended_hidden_unless_requested(self, sample_brand, sample_campaign, two_creators):
        maya, rival = two_creators
        membership = Membership.query.filter_by(brand_id=sample_brand.id, creator_id=rival.id).first()
        membership.status = 'suspended'
        db.session.commit()

        service = LeaderboardService(sample_brand.id)
        public = service.campaign_leaderboard(sample_campaign.id)
        full = service.campaign_leaderboard(sample_campaign.id, include_hidden=True)

        assert [e['creator_id'] for e in public['entries']] == [maya.id]
        assert {e['creator_id'] for e in full['entries']} == {maya.id, rival.id}


class TestBrandLeaderboard:

    def test_only_active_members(self, sample_brand, two_creators):
        maya, rival = two_creators
        service = PointsService(sample_brand.id)
        service.award_bonus(maya.id, 100, 'Welcome')
        service.award_bonus(rival.id, 200, 'Welcome')
        membership = Membership.query.filter_by(brand_id=sample_brand.id, creator_id=rival.id).first()
        membership.status = 'archived'
        db.session.commit()

        board = LeaderboardService(sample_brand.id).brand_leaderboard('all')
        assert [e['creator_id'] for e in board['entries']] == [maya.id]

    def test_week_range_counts_recent_points_only(self, sample_brand, two_creators):
        maya, rival = two_creators
        service = PointsService(sample_brand.id)
        service.award_bonus(maya.id, 500, 'Old campaign')
        service.award_bonus(rival.id, 50, 'This week')

        # Nudge maya's entry out of the window; the ledger listener only blocks ORM updates
        db.session.execute(
            db.text('UPDATE points_ledger SET created_at = :ts WHERE creator_id = :cid'),
            {'ts': datetime.utcnow() - timedelta(days=10), 'cid': maya.id},
        )
        db.session.commit()

        week = LeaderboardService(sample_brand.id).brand_leaderboard('week')
        all_time = LeaderboardService(sample_brand.id).brand_leaderboard('all')

        assert week['entries'][0]['creator_id'] == rival.id
        assert all_time['entries'][0]['creator_id'] == maya.id

    def test_limit(self, sample_brand, two_creators):
        board = LeaderboardService(sample_brand.id).brand_leaderboard('all', limit=1)
        assert len(board['entries']) == 1

    def test_unknown_range(self, sample_brand):
        with pytest.raises(ValidationError) as exc:
            LeaderboardService(sample_brand.id).brand_leaderboard('decade')
        assert exc.value.field == 'range'

    def test_brand_rank(self, sample_brand, two_creators):
        maya, rival = two_creators
        PointsService(sample_brand.id).award_bonus(rival.id, 10, 'Welcome')
        service = LeaderboardService(sample_brand.id)
        assert service.brand_rank(rival.id) == 1
        assert service.brand_rank(maya.id) == 2


class TestLeaderboardAPI:

    def test_brand_sees_campaign_leaderboard(self, client, sample_campaign, two_creators, brand_headers):
        response = client.get(f'/api/campaigns/{sample_campaign.id}/leaderboard', headers=brand_headers)
        assert response.status_code == 200
        assert len(response.get_json()['entries']) == 2

    def test_participant_sees_campaign_leaderboard(self, client, sample_campaign, two_creators, creator_headers):
        response = client.get(f'/api/campaigns/{sample_campaign.id}/leaderboard', headers=creator_headers)
        assert response.status_code == 200

    def test_outsider_forbidden(self, client, sample_campaign, two_creators, make_creator):
        outsider = make_creator('lurker')
        response = client.get(
            f'/api/campaigns/{sample_campaign.id}/leaderboard',
            headers={'X-Creator-ID': str(outsider.id)},
        )
        assert response.status_code == 403

    def test_other_brand_forbidden(self, client, sample_campaign, two_creators, other_brand):
        response = client.get(
            f'/api/campaigns/{sample_campaign.id}/leaderboard',
            headers={'X-Brand-ID': str(other_brand.id)},
        )
        assert response.status_code == 403

    def test_include_hidden_ignored_for_creators(self, client, sample_brand, sample_campaign,
                                                 two_creators, creator_headers):
        maya, rival = two_creators
        membership = Membership.query.filter_by(brand_id=sample_brand.id, creator_id=rival.id).first()
        membership.status = 'suspended'
        db.session.commit()

        response = client.get(
            f'/api/campaigns/{sample_campaign.id}/leaderboard?include_hidden=true',
            headers=creator_headers,
        )
        data = response.get_json()
        assert data['include_hidden'] is False
        assert [e['creator_id'] for e in data['entries']] == [maya.id]

    def test_include_hidden_for_brand(self, client, sample_brand, sample_campaign, two_creators, brand_headers):
        maya, rival = two_creators
        membership = Membership.query.filter_by(brand_id=sample_brand.id, creator_id=rival.id).first()
        membership.status = 'suspended'
        db.session.commit()

        response = client.get(
            f'/api/campaigns/{sample_campaign.id}/leaderboard?include_hidden=true',
            headers=brand_headers,
        )
        assert len(response.get_json()['entries']) == 2

    def test_brand_leaderboard_endpoint(self, client, sample_brand, two_creators, brand_headers):
        response = client.get(
            f'/api/brands/{sample_brand.id}/leaderboard?range=month&limit=5', headers=brand_headers
        )
        assert response.status_code == 200
        data = response.get_json()
        assert data['range'] == 'month'

    def test_brand_leaderboard_bad_range(self, client, sample_brand, brand_headers):
        response = client.get(
            f'/api/brands/{sample_brand.id}/leaderboard?range=decade', headers=brand_headers
        )
        assert response.status_code == 400
        assert response.get_json()['error']['fields']['range']

    def test_brand_leaderboard_for_member(self, client, sample_brand, sample_membership, creator_headers):
        response = client.get(f'/api/brands/{sample_brand.id}/leaderboard', headers=creator_headers)
        assert response.status_code == 200
