"""
Tier Management API.

CRUD for a brand's tier ladder. Every write re-validates the ladder and
re-resolves all memberships, so tiers always match cached points.
"""
from flask import Blueprint, request, jsonify

from ..middleware import require_brand_auth
from ..services import TierService
from . import get_json_body


tiers_bp = Blueprint('tiers', __name__)


@tiers_bp.route('/<int:brand_id>/tiers', methods=['GET'])
@require_brand_auth
def list_tiers(brand_id):
    tiers = TierService(brand_id).list_tiers()
    return jsonify({'tiers': [t.to_dict() for t in tiers]})


@tiers_bp.route('/<int:brand_id>/tiers', methods=['POST'])
@require_brand_auth
def create_tier(brand_id):
    """
    Add a tier.

    Request body:
    {
        "tier_name": "Gold",
        "sort_order": 3,
        "min_points": 2000,
        "color": "#d4af37",
        "icon": "trophy",
        "benefits": {"priority_campaigns": true}
    }
    """
    tier = TierService(brand_id).create_tier(get_json_body())
    return jsonify(tier.to_dict()), 201


@tiers_bp.route('/<int:brand_id>/tiers/<int:tier_id>', methods=['GET'])
@require_brand_auth
def get_tier(brand_id, tier_id):
    return jsonify(TierService(brand_id).get_tier(tier_id).to_dict())


@tiers_bp.route('/<int:brand_id>/tiers/<int:tier_id>', methods=['PUT'])
@require_brand_auth
def update_tier(brand_id, tier_id):
    tier = TierService(brand_id).update_tier(tier_id, get_json_body())
    return jsonify(tier.to_dict())


@tiers_bp.route('/<int:brand_id>/tiers/<int:tier_id>', methods=['DELETE'])
@require_brand_auth
def delete_tier(brand_id, tier_id):
    TierService(brand_id).delete_tier(tier_id)
    return jsonify({'success': True, 'deleted_id': tier_id})


@tiers_bp.route('/<int:brand_id>/tiers/resolve', methods=['GET'])
@require_brand_auth
def resolve_tier(brand_id):
    """Preview which tier a point total lands in: ?points=1250"""
    points = request.args.get('points', 0, type=int)
    return jsonify(TierService(brand_id).get_progress(points))
