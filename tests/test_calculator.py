"""
Tests for the point accrual calculator and scoring configuration objects.

Tests cover:
- Base points per event type
- Quality multiplier and round-half-up
- Per-post, daily and campaign caps
- Fact validation
- Rule set and caps validation (field-level messages)
"""
import pytest
from decimal import Decimal

from creatorconnect.scoring.rules import ScoringRuleSet, ScoringCaps, validate_overrides
from creatorconnect.scoring.calculator import (
    calculate_points,
    validate_facts,
    round_points,
    apply_caps,
    EVENT_TYPES,
)
from creatorconnect.utils.exceptions import InvalidEventFactsError, ValidationError


def make_rules(**overrides):
    data = {
        'points_per_deliverable': 100,
        'points_on_time_bonus': 25,
        'points_per_1k_views': 1,
        'points_per_like': 0.1,
        'points_per_comment': 1,
        'points_per_sale': 10,
        'quality_multiplier': 1,
    }
    data.update(overrides)
    return ScoringRuleSet.from_dict(data)


NO_CAPS = ScoringCaps()


class TestBasePoints:
    """Raw points per event type."""

    def test_on_time_deliverable(self):
        result = calculate_points('deliverable', {'on_time': True}, make_rules(), NO_CAPS)
        assert result.raw_points == 125
        assert result.capped_points == 125

    def test_late_deliverable_has_no_bonus(self):
        result = calculate_points('deliverable', {'on_time': False}, make_rules(), NO_CAPS)
        assert result.raw_points == 100

    def test_view_milestone_floors_to_whole_thousands(self):
        result = calculate_points('view_milestone', {'view_count': 4500}, make_rules(), NO_CAPS)
        assert result.raw_points == 4

    def test_view_milestone_under_a_thousand_is_zero(self):
        result = calculate_points('view_milestone', {'view_count': 999}, make_rules(), NO_CAPS)
        assert result.raw_points == 0
        assert result.capped_points == 0

    def test_likes_use_fractional_weight(self):
        result = calculate_points('like', {'like_count': 37}, make_rules(), NO_CAPS)
        # 3.7 rounds to 4
        assert result.raw_points == 4

    def test_comments(self):
        result = calculate_points('comment', {'comment_count': 12}, make_rules(points_per_comment=2), NO_CAPS)
        assert result.raw_points == 24

    def test_sales(self):
        result = calculate_points('sale', {'sale_count': 3}, make_rules(), NO_CAPS)
        assert result.raw_points == 30

    def test_bonus_passes_points_through(self):
        result = calculate_points('bonus', {'points': 40}, make_rules(), NO_CAPS)
        assert result.raw_points == 40


class TestMultiplierAndRounding:
    """quality_multiplier scaling and the round-half-up policy."""

    def test_multiplier_scales_final_score(self):
        result = calculate_points('deliverable', {'on_time': True}, make_rules(quality_multiplier=1.5), NO_CAPS)
        # 125 * 1.5 = 187.5 -> 188
        assert result.raw_points == 188

    def test_half_rounds_up(self):
        result = calculate_points('like', {'like_count': 5}, make_rules(), NO_CAPS)
        assert result.raw_points == 1

    def test_below_half_rounds_down(self):
        result = calculate_points('like', {'like_count': 4}, make_rules(), NO_CAPS)
        assert result.raw_points == 0

    def test_round_points_is_half_up_not_bankers(self):
        assert round_points(Decimal('0.5')) == 1
        assert round_points(Decimal('1.5')) == 2
        assert round_points(Decimal('2.5')) == 3
        assert round_points(Decimal('2.49')) == 2

    def test_adjustment_skips_multiplier(self):
        result = calculate_points('adjustment', {'points': -30}, make_rules(quality_multiplier=2), NO_CAPS)
        assert result.raw_points == -30
        assert result.capped_points == -30


class TestCaps:
    """Caps clip, never scale."""

    def test_per_post_cap(self):
        caps = ScoringCaps(max_points_per_post=100)
        result = calculate_points('deliverable', {'on_time': True}, make_rules(), caps)
        assert result.raw_points == 125
        assert result.capped_points == 100
        assert result.applied_caps == ('max_points_per_post',)
        assert result.was_capped

    def test_per_post_cap_counts_points_already_awarded(self):
        caps = ScoringCaps(max_points_per_post=10)
        result = calculate_points('comment', {'comment_count': 6}, make_rules(), caps, post_total=8)
        assert result.raw_points == 6
        assert result.capped_points == 2
        assert result.applied_caps == ('max_points_per_post',)

    def test_per_post_cap_already_reached(self):
        caps = ScoringCaps(max_points_per_post=10)
        result = calculate_points('like', {'like_count': 50}, make_rules(), caps, post_total=10)
        assert result.capped_points == 0

    def test_per_post_cap_does_not_apply_to_sales(self):
        caps = ScoringCaps(max_points_per_post=5)
        result = calculate_points('sale', {'sale_count': 3}, make_rules(), caps)
        assert result.capped_points == 30

    def test_daily_cap_clips_increment(self):
        caps = ScoringCaps(max_points_per_day=200)
        result = calculate_points('deliverable', {'on_time': True}, make_rules(), caps, day_total=150)
        assert result.capped_points == 50
        assert 'max_points_per_day' in result.applied_caps

    def test_daily_cap_already_reached(self):
        caps = ScoringCaps(max_points_per_day=200)
        result = calculate_points('deliverable', {'on_time': True}, make_rules(), caps, day_total=260)
        assert result.capped_points == 0

    def test_campaign_cap_only_for_campaign_events(self):
        caps = ScoringCaps(max_points_total_campaign=300)
        outside = calculate_points('sale', {'sale_count': 10}, make_rules(), caps)
        inside = calculate_points('sale', {'sale_count': 10}, make_rules(), caps, campaign_total=250)
        assert outside.capped_points == 100
        assert inside.capped_points == 50

    def test_caps_apply_in_order(self):
        caps = ScoringCaps(max_points_per_post=100, max_points_per_day=500, max_points_total_campaign=1000)
        points, applied = apply_caps(125, caps, post_scoped=True, day_total=450, campaign_total=980)
        # 125 -> 100 (post) -> 50 (day) -> 20 (campaign)
        assert points == 20
        assert applied == ('max_points_per_post', 'max_points_per_day', 'max_points_total_campaign')

    def test_zero_cap(self):
        caps = ScoringCaps(max_points_per_post=0)
        result = calculate_points('comment', {'comment_count': 3}, make_rules(), caps)
        assert result.capped_points == 0

    def test_adjustments_bypass_caps(self):
        caps = ScoringCaps(max_points_per_post=10, max_points_per_day=10)
        result = calculate_points('adjustment', {'points': 500}, make_rules(), caps, day_total=10)
        assert result.capped_points == 500

    def test_capped_never_exceeds_raw_or_goes_negative(self):
        caps_options = [
            ScoringCaps(),
            ScoringCaps(max_points_per_post=50),
            ScoringCaps(max_points_per_day=80),
            ScoringCaps(max_points_per_post=10, max_points_per_day=30, max_points_total_campaign=40),
        ]
        events = [
            ('deliverable', {'on_time': True}),
            ('deliverable', {'on_time': False}),
            ('view_milestone', {'view_count': 25000}),
            ('like', {'like_count': 333}),
            ('comment', {'comment_count': 17}),
            ('sale', {'sale_count': 4}),
            ('bonus', {'points': 75}),
        ]
        for caps in caps_options:
            for day_total in (0, 25, 100):
                for event_type, facts in events:
                    result = calculate_points(event_type, facts, make_rules(), caps,
                                              day_total=day_total, campaign_total=day_total)
                    assert 0 <= result.capped_points <= result.raw_points


class TestFactValidation:
    """Bad facts are rejected, never coerced."""

    def test_negative_view_count_rejected(self):
        with pytest.raises(InvalidEventFactsError) as exc:
            calculate_points('view_milestone', {'view_count': -100}, make_rules(), NO_CAPS)
        assert exc.value.field == 'view_count'
        assert exc.value.code == 'INVALID_EVENT_FACTS'

    def test_missing_count_rejected(self):
        with pytest.raises(InvalidEventFactsError):
            validate_facts('like', {})

    def test_float_count_rejected(self):
        with pytest.raises(InvalidEventFactsError):
            validate_facts('sale', {'sale_count': 1.5})

    def test_bool_count_rejected(self):
        with pytest.raises(InvalidEventFactsError):
            validate_facts('comment', {'comment_count': True})

    def test_on_time_must_be_boolean(self):
        with pytest.raises(InvalidEventFactsError) as exc:
            validate_facts('deliverable', {'on_time': 'yes'})
        assert exc.value.field == 'on_time'

    def test_unknown_event_type(self):
        with pytest.raises(InvalidEventFactsError) as exc:
            validate_facts('share', {})
        assert exc.value.field == 'event_type'

    def test_negative_bonus_rejected(self):
        with pytest.raises(InvalidEventFactsError):
            validate_facts('bonus', {'points': -5})

    def test_zero_adjustment_rejected(self):
        with pytest.raises(InvalidEventFactsError):
            validate_facts('adjustment', {'points': 0})

    def test_extra_facts_dropped(self):
        assert validate_facts('like', {'like_count': 3, 'note': 'x'}) == {'like_count': 3}

    def test_all_event_types_known(self):
        assert set(EVENT_TYPES) == {
            'deliverable', 'view_milestone', 'like', 'comment', 'sale', 'bonus', 'adjustment'
        }


class TestRuleSetValidation:
    """ScoringRuleSet / ScoringCaps built from settings payloads."""

    def test_missing_fields_reported_per_field(self):
        with pytest.raises(ValidationError) as exc:
            ScoringRuleSet.from_dict({'points_per_deliverable': 100})
        assert 'points_on_time_bonus' in exc.value.fields
        assert 'quality_multiplier' in exc.value.fields
        assert 'points_per_deliverable' not in exc.value.fields

    def test_negative_weight_rejected(self):
        with pytest.raises(ValidationError) as exc:
            make_rules(points_per_like=-0.5)
        assert exc.value.fields == {'points_per_like': 'Must be 0 or greater'}

    def test_zero_multiplier_rejected(self):
        with pytest.raises(ValidationError) as exc:
            make_rules(quality_multiplier=0)
        assert 'quality_multiplier' in exc.value.fields

    def test_fractional_integer_weight_rejected(self):
        with pytest.raises(ValidationError) as exc:
            make_rules(points_per_sale=2.5)
        assert exc.value.fields['points_per_sale'] == 'Must be a whole number'

    def test_string_weight_rejected(self):
        with pytest.raises(ValidationError):
            make_rules(points_per_comment='1')

    def test_to_dict_renders_plain_numbers(self):
        data = make_rules().to_dict()
        assert data['points_per_like'] == 0.1
        assert data['points_per_1k_views'] == 1
        assert data['quality_multiplier'] == 1

    def test_caps_default_unlimited(self):
        caps = ScoringCaps.from_dict({})
        assert caps.unlimited
        assert caps.to_dict() == {
            'max_points_per_post': None,
            'max_points_per_day': None,
            'max_points_total_campaign': None,
        }

    def test_caps_reject_negative(self):
        with pytest.raises(ValidationError) as exc:
            ScoringCaps.from_dict({'max_points_per_day': -1})
        assert 'max_points_per_day' in exc.value.fields

    def test_weight_above_storage_range_rejected(self):
        with pytest.raises(ValidationError) as exc:
            make_rules(points_per_like=250000)
        assert exc.value.fields == {'points_per_like': 'Must be at most 100000'}

    def test_too_many_decimal_places_rejected(self):
        with pytest.raises(ValidationError) as exc:
            make_rules(quality_multiplier=1.23456, points_per_comment=0.12345)
        assert exc.value.fields == {
            'quality_multiplier': 'At most 3 decimal places allowed',
            'points_per_comment': 'At most 4 decimal places allowed',
        }

    def test_multiplier_upper_bound(self):
        with pytest.raises(ValidationError) as exc:
            make_rules(quality_multiplier=1000)
        assert exc.value.fields['quality_multiplier'] == 'Must be at most 100'

    def test_caps_upper_bound(self):
        with pytest.raises(ValidationError) as exc:
            ScoringCaps.from_dict({'max_points_per_post': 10 ** 12})
        assert 'max_points_per_post' in exc.value.fields


class TestCampaignOverrides:
    """Partial rule and cap overrides merged over a brand's settings."""

    def test_merge_replaces_only_given_fields(self):
        rules = make_rules().merged({'points_per_1k_views': Decimal('2.5'), 'points_per_sale': 20})
        assert rules.points_per_1k_views == Decimal('2.5')
        assert rules.points_per_sale == 20
        assert rules.points_per_deliverable == 100

    def test_merge_caps(self):
        caps = ScoringCaps(max_points_per_day=500).merged({'max_points_per_post': 40})
        assert caps.max_points_per_post == 40
        assert caps.max_points_per_day == 500

    def test_validate_accepts_partial_payload(self):
        assert validate_overrides({'points_per_like': 0.5, 'max_points_per_post': None}) == {
            'points_per_like': 0.5,
            'max_points_per_post': None,
        }

    def test_validate_rejects_unknown_and_invalid(self):
        with pytest.raises(ValidationError) as exc:
            validate_overrides({'points_per_share': 5, 'quality_multiplier': 0})
        assert exc.value.fields == {
            'points_per_share': 'Unknown scoring field',
            'quality_multiplier': 'Must be greater than 0',
        }
