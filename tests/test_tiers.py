"""
Tests for tier resolution and the tier ladder service.
"""
import json
import pytest

from creatorconnect.extensions import db
from creatorconnect.models import BrandTier, Membership
from creatorconnect.scoring.tiers import TierThreshold, resolve_tier, validate_ladder, tier_progress
from creatorconnect.services.tier_service import TierService
from creatorconnect.utils.exceptions import ValidationError, TierNotFoundError


LADDER = [
    TierThreshold(1, 'Bronze', 1, 0),
    TierThreshold(2, 'Silver', 2, 500),
    TierThreshold(3, 'Gold', 3, 2000),
]


class TestResolveTier:
    """Highest tier whose threshold the total reaches."""

    def test_boundaries(self):
        assert resolve_tier(LADDER, 499).tier_name == 'Bronze'
        assert resolve_tier(LADDER, 500).tier_name == 'Silver'
        assert resolve_tier(LADDER, 1999).tier_name == 'Silver'
        assert resolve_tier(LADDER, 2000).tier_name == 'Gold'
        assert resolve_tier(LADDER, 10 ** 9).tier_name == 'Gold'

    def test_below_every_threshold_is_base_tier(self):
        ladder = [TierThreshold(2, 'Silver', 1, 500)]
        assert resolve_tier(ladder, 100) is None

    def test_empty_ladder(self):
        assert resolve_tier([], 5000) is None

    def test_order_of_input_does_not_matter(self):
        assert resolve_tier(list(reversed(LADDER)), 750).tier_name == 'Silver'

    def test_monotonic_in_points(self):
        previous = -1
        for points in range(0, 3000, 50):
            tier = resolve_tier(LADDER, points)
            order = tier.sort_order if tier else 0
            assert order >= previous
            previous = order


class TestValidateLadder:

    def test_valid_ladder_sorted(self):
        ladder = validate_ladder(reversed(LADDER))
        assert [t.tier_name for t in ladder] == ['Bronze', 'Silver', 'Gold']

    def test_non_increasing_thresholds_rejected(self):
        with pytest.raises(ValidationError) as exc:
            validate_ladder([TierThreshold(1, 'Bronze', 1, 0), TierThreshold(2, 'Silver', 2, 0)])
        assert 'min_points' in exc.value.fields

    def test_duplicate_sort_order_rejected(self):
        with pytest.raises(ValidationError) as exc:
            validate_ladder([TierThreshold(1, 'Bronze', 1, 0), TierThreshold(2, 'Silver', 1, 500)])
        assert 'sort_order' in exc.value.fields

    def test_duplicate_name_rejected(self):
        with pytest.raises(ValidationError) as exc:
            validate_ladder([TierThreshold(1, 'Gold', 1, 0), TierThreshold(2, 'gold', 2, 500)])
        assert 'tier_name' in exc.value.fields

    def test_negative_threshold_rejected(self):
        with pytest.raises(ValidationError):
            validate_ladder([TierThreshold(1, 'Bronze', 1, -10)])


class TestTierProgress:

    def test_progress_to_next(self):
        progress = tier_progress(LADDER, 620)
        assert progress['current_tier'] == 'Silver'
        assert progress['next_tier'] == 'Gold'
        assert progress['points_to_next'] == 1380

    def test_top_tier_has_no_next(self):
        progress = tier_progress(LADDER, 2500)
        assert progress['current_tier'] == 'Gold'
        assert progress['next_tier'] is None
        assert progress['points_to_next'] is None


class TestTierService:
    """Ladder edits keep every membership's tier consistent."""

    def test_resolve_uses_brand_ladder(self, sample_tiers, sample_brand):
        service = TierService(sample_brand.id)
        assert service.resolve_tier_id(499) == sample_tiers['Bronze'].id
        assert service.resolve_tier_id(500) == sample_tiers['Silver'].id

    def test_create_tier_rejects_broken_ladder(self, sample_tiers, sample_brand):
        service = TierService(sample_brand.id)
        with pytest.raises(ValidationError):
            service.create_tier({'tier_name': 'Platinum', 'sort_order': 4, 'min_points': 1500})
        assert BrandTier.query.filter_by(brand_id=sample_brand.id).count() == 3

    def test_create_tier_reassigns_members(self, sample_tiers, sample_brand, sample_membership):
        sample_membership.points_cache = 6000
        sample_membership.tier_id = sample_tiers['Gold'].id
        db.session.commit()

        tier = TierService(sample_brand.id).create_tier(
            {'tier_name': 'Platinum', 'sort_order': 4, 'min_points': 5000}
        )

        membership = Membership.query.get(sample_membership.id)
        assert membership.tier_id == tier.id

    def test_raising_threshold_demotes_members(self, sample_tiers, sample_brand, sample_membership):
        sample_membership.points_cache = 600
        sample_membership.tier_id = sample_tiers['Silver'].id
        db.session.commit()

        TierService(sample_brand.id).update_tier(sample_tiers['Silver'].id, {'min_points': 800})

        membership = Membership.query.get(sample_membership.id)
        assert membership.tier_id == sample_tiers['Bronze'].id

    def test_delete_tier_reassigns_members(self, sample_tiers, sample_brand, sample_membership):
        sample_membership.points_cache = 2500
        sample_membership.tier_id = sample_tiers['Gold'].id
        db.session.commit()

        TierService(sample_brand.id).delete_tier(sample_tiers['Gold'].id)

        membership = Membership.query.get(sample_membership.id)
        assert membership.tier_id == sample_tiers['Silver'].id
        assert BrandTier.query.filter_by(brand_id=sample_brand.id).count() == 2

    def test_reassign_is_idempotent(self, sample_tiers, sample_brand, sample_membership):
        sample_membership.points_cache = 700
        sample_membership.tier_id = None
        db.session.commit()

        service = TierService(sample_brand.id)
        assert service.reassign_tiers() == 1
        db.session.commit()
        assert service.reassign_tiers() == 0

    def test_other_brand_tier_not_found(self, sample_tiers, other_brand):
        with pytest.raises(TierNotFoundError):
            TierService(other_brand.id).get_tier(sample_tiers['Gold'].id)


class TestTiersAPI:
    """Tier ladder endpoints."""

    def test_list_tiers(self, client, sample_tiers, sample_brand, brand_headers):
        response = client.get(f'/api/brands/{sample_brand.id}/tiers', headers=brand_headers)
        assert response.status_code == 200
        data = response.get_json()
        assert [t['tier_name'] for t in data['tiers']] == ['Bronze', 'Silver', 'Gold']

    def test_create_tier(self, client, sample_tiers, sample_brand, brand_headers):
        response = client.post(
            f'/api/brands/{sample_brand.id}/tiers',
            data=json.dumps({'tier_name': 'Platinum', 'sort_order': 4, 'min_points': 5000}),
            headers=brand_headers,
        )
        assert response.status_code == 201
        assert response.get_json()['tier_name'] == 'Platinum'

    def test_create_invalid_tier_returns_field_errors(self, client, sample_tiers, sample_brand, brand_headers):
        response = client.post(
            f'/api/brands/{sample_brand.id}/tiers',
            data=json.dumps({'tier_name': 'Copper', 'sort_order': 4, 'min_points': 100}),
            headers=brand_headers,
        )
        assert response.status_code == 400
        error = response.get_json()['error']
        assert 'min_points' in error['fields']

    def test_resolve_endpoint(self, client, sample_tiers, sample_brand, brand_headers):
        response = client.get(
            f'/api/brands/{sample_brand.id}/tiers/resolve?points=500', headers=brand_headers
        )
        assert response.status_code == 200
        assert response.get_json()['current_tier'] == 'Silver'

    def test_requires_brand_header(self, client, sample_tiers, sample_brand):
        response = client.get(f'/api/brands/{sample_brand.id}/tiers')
        assert response.status_code == 401

    def test_other_brand_forbidden(self, client, sample_tiers, sample_brand, other_brand):
        response = client.get(
            f'/api/brands/{sample_brand.id}/tiers',
            headers={'X-Brand-ID': str(other_brand.id)},
        )
        assert response.status_code == 403
