"""
Brand leaderboard API.
"""
from flask import Blueprint, request, jsonify

from ..models import Membership
from ..middleware import get_brand_from_request, get_creator_from_request
from ..services import LeaderboardService
from ..utils.errors import forbidden


leaderboards_bp = Blueprint('leaderboards', __name__)


@leaderboards_bp.route('/<int:brand_id>/leaderboard', methods=['GET'])
def brand_leaderboard(brand_id):
    """
    Top creators in a brand's community.

    Query params:
        range: week, month or all (default all)
        limit: max entries (default 10, max 100)

    Open to the brand's operators and its active members.
    """
    brand = get_brand_from_request()
    creator = get_creator_from_request()
    allowed = brand is not None and brand.id == brand_id
    if not allowed and creator is not None:
        allowed = Membership.query.filter_by(
            brand_id=brand_id, creator_id=creator.id, status='active'
        ).first() is not None
    if not allowed:
        return forbidden('Only community members can view this leaderboard')

    limit = request.args.get('limit', 10, type=int) or 10
    result = LeaderboardService(brand_id).brand_leaderboard(
        range_name=request.args.get('range', 'all'),
        limit=max(1, min(limit, 100)),
    )
    return jsonify(result)
