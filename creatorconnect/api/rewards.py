"""
Rewards API.

Brand side: campaign prize tables, per-campaign scoring overrides, ranking
close-out, and the review queue for reward entitlements.
Creator side: a creator's own rewards.
"""
from flask import Blueprint, request, jsonify, g

from ..middleware import require_brand_auth, require_creator_auth, get_current_user
from ..models import ENTITLEMENT_STATUSES
from ..services import RewardService, ScoringConfigService, list_creator_rewards
from ..utils.exceptions import ValidationError
from . import get_json_body
from .campaigns import _brand_campaign


campaign_rewards_bp = Blueprint('campaign_rewards', __name__)
rewards_bp = Blueprint('rewards', __name__)
creator_rewards_bp = Blueprint('creator_rewards', __name__)


def _status_arg():
    status = request.args.get('status')
    if status and status not in ENTITLEMENT_STATUSES:
        raise ValidationError(
            f"status must be one of: {', '.join(ENTITLEMENT_STATUSES)}", field='status'
        )
    return status


# ==================== Campaign prizes ====================

@campaign_rewards_bp.route('/<int:campaign_id>/prizes', methods=['GET'])
@require_brand_auth
def list_prizes(campaign_id):
    campaign = _brand_campaign(campaign_id)
    prizes = RewardService(campaign.brand_id).list_prizes(campaign_id)
    return jsonify({'prizes': [p.to_dict() for p in prizes]})


@campaign_rewards_bp.route('/<int:campaign_id>/prizes', methods=['PUT'])
@require_brand_auth
def replace_prizes(campaign_id):
    """
    Replace the campaign's prize table.

    Request body:
    {
        "prizes": [
            {"prize_type": "milestone", "milestone_points": 500,
             "reward_kind": "product", "product_description": "Serum kit"},
            {"prize_type": "ranking_place", "rank_position": 1,
             "reward_kind": "cash", "cash_amount": 20000, "required_tier_id": 3}
        ]
    }
    """
    campaign = _brand_campaign(campaign_id)
    prizes = RewardService(campaign.brand_id).replace_prizes(
        campaign_id, get_json_body().get('prizes')
    )
    return jsonify({'prizes': [p.to_dict() for p in prizes]})


@campaign_rewards_bp.route('/<int:campaign_id>/prizes/award-ranking', methods=['POST'])
@require_brand_auth
def award_ranking_prizes(campaign_id):
    """Close out the campaign: issue ranking prizes from the current leaderboard."""
    campaign = _brand_campaign(campaign_id)
    return jsonify(RewardService(campaign.brand_id).award_ranking_prizes(campaign_id))


# ==================== Campaign scoring overrides ====================

@campaign_rewards_bp.route('/<int:campaign_id>/scoring', methods=['GET'])
@require_brand_auth
def get_campaign_scoring(campaign_id):
    """Overrides plus the effective rules and caps for the campaign."""
    campaign = _brand_campaign(campaign_id)
    return jsonify(ScoringConfigService(campaign.brand_id).campaign_to_dict(campaign_id))


@campaign_rewards_bp.route('/<int:campaign_id>/scoring', methods=['PUT'])
@require_brand_auth
def save_campaign_scoring(campaign_id):
    """
    Override some of the brand's rules or caps for this campaign.

    Request body (any subset, null clears an override):
    {
        "points_per_1k_views": 2,
        "max_points_per_post": 50
    }
    """
    campaign = _brand_campaign(campaign_id)
    service = ScoringConfigService(campaign.brand_id)
    service.save_campaign_overrides(campaign_id, get_json_body(), updated_by=get_current_user())
    return jsonify(service.campaign_to_dict(campaign_id))


@campaign_rewards_bp.route('/<int:campaign_id>/scoring', methods=['DELETE'])
@require_brand_auth
def clear_campaign_scoring(campaign_id):
    campaign = _brand_campaign(campaign_id)
    service = ScoringConfigService(campaign.brand_id)
    service.clear_campaign_overrides(campaign_id)
    return jsonify(service.campaign_to_dict(campaign_id))


# ==================== Entitlement review ====================

@rewards_bp.route('/<int:brand_id>/rewards', methods=['GET'])
@require_brand_auth
def list_rewards(brand_id):
    entitlements = RewardService(brand_id).list_entitlements(
        campaign_id=request.args.get('campaign_id', type=int),
        creator_id=request.args.get('creator_id', type=int),
        status=_status_arg(),
    )
    return jsonify({'rewards': [e.to_dict() for e in entitlements]})


@rewards_bp.route('/<int:brand_id>/rewards/<int:entitlement_id>/approve', methods=['POST'])
@require_brand_auth
def approve_reward(brand_id, entitlement_id):
    entitlement = RewardService(brand_id).approve(entitlement_id, actor=get_current_user())
    return jsonify(entitlement.to_dict())


@rewards_bp.route('/<int:brand_id>/rewards/<int:entitlement_id>/reject', methods=['POST'])
@require_brand_auth
def reject_reward(brand_id, entitlement_id):
    """{"reason": "Post removed before the campaign ended"}"""
    entitlement = RewardService(brand_id).reject(
        entitlement_id, get_json_body().get('reason'), actor=get_current_user()
    )
    return jsonify(entitlement.to_dict())


@rewards_bp.route('/<int:brand_id>/rewards/<int:entitlement_id>/fulfill', methods=['POST'])
@require_brand_auth
def fulfill_reward(brand_id, entitlement_id):
    entitlement = RewardService(brand_id).fulfill(entitlement_id, actor=get_current_user())
    return jsonify(entitlement.to_dict())


@rewards_bp.route('/<int:brand_id>/rewards/<int:entitlement_id>/cancel', methods=['POST'])
@require_brand_auth
def cancel_reward(brand_id, entitlement_id):
    entitlement = RewardService(brand_id).cancel(entitlement_id, actor=get_current_user())
    return jsonify(entitlement.to_dict())


# ==================== Creator side ====================

@creator_rewards_bp.route('/me/rewards', methods=['GET'])
@require_creator_auth
def my_rewards():
    return jsonify({'rewards': list_creator_rewards(g.creator_id, status=_status_arg())})
