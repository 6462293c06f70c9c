"""
Scoring API.

Brand-facing endpoints for:
- Scoring rules and caps (settings form, PUT = full replace)
- Recording scoring events, bonuses and adjustments
- Browsing the points ledger and the retry queue
- A creator's points summary within a brand
"""
from flask import Blueprint, request, jsonify, g

from ..models import PendingScoringEvent
from ..middleware import (
    require_brand_auth,
    get_brand_from_request,
    get_creator_from_request,
    get_current_user,
)
from ..services import ScoringConfigService, PointsService
from ..utils.errors import forbidden
from . import get_json_body, require_int, get_pagination


scoring_bp = Blueprint('scoring', __name__)


# ==================== Rules & Caps ====================

@scoring_bp.route('/<int:brand_id>/scoring', methods=['GET'])
@require_brand_auth
def get_scoring_config(brand_id):
    """Rules and caps in effect, flagged when they are platform defaults."""
    return jsonify(ScoringConfigService(brand_id).to_dict())


@scoring_bp.route('/<int:brand_id>/scoring/rules', methods=['GET'])
@require_brand_auth
def get_rules(brand_id):
    rules, is_default = ScoringConfigService(brand_id).get_rules()
    return jsonify({'rules': rules.to_dict(), 'is_default': is_default})


@scoring_bp.route('/<int:brand_id>/scoring/rules', methods=['PUT'])
@require_brand_auth
def replace_rules(brand_id):
    """
    Replace the brand's scoring rules.

    Request body (every field required):
    {
        "points_per_deliverable": 100,
        "points_on_time_bonus": 25,
        "points_per_1k_views": 1,
        "points_per_like": 0.1,
        "points_per_comment": 1,
        "points_per_sale": 10,
        "quality_multiplier": 1.0
    }
    """
    rules = ScoringConfigService(brand_id).save_rules(get_json_body(), updated_by=get_current_user())
    return jsonify({'rules': rules.to_dict(), 'is_default': False})


@scoring_bp.route('/<int:brand_id>/scoring/caps', methods=['GET'])
@require_brand_auth
def get_caps(brand_id):
    caps, is_default = ScoringConfigService(brand_id).get_caps()
    return jsonify({'caps': caps.to_dict(), 'is_default': is_default})


@scoring_bp.route('/<int:brand_id>/scoring/caps', methods=['PUT'])
@require_brand_auth
def replace_caps(brand_id):
    """
    Replace the brand's caps. null or omitted = unlimited.

    Request body:
    {
        "max_points_per_post": 100,
        "max_points_per_day": null,
        "max_points_total_campaign": 5000
    }
    """
    caps = ScoringConfigService(brand_id).save_caps(get_json_body(), updated_by=get_current_user())
    return jsonify({'caps': caps.to_dict(), 'is_default': False})


# ==================== Events ====================

@scoring_bp.route('/<int:brand_id>/scoring/events', methods=['POST'])
@require_brand_auth
def record_event(brand_id):
    """
    Record a scoring event directly.

    Request body:
    {
        "creator_id": 42,
        "event_type": "view_milestone",
        "facts": {"view_count": 4500},
        "campaign_id": 7,            # optional
        "event_key": "ig:1789:4000", # optional idempotency key
        "notes": "..."               # optional
    }
    """
    data = get_json_body()
    result = PointsService(brand_id).record_event(
        require_int(data, 'creator_id'),
        data.get('event_type'),
        data.get('facts'),
        campaign_id=require_int(data, 'campaign_id', required=False),
        event_key=data.get('event_key'),
        ref_type=data.get('ref_type'),
        ref_id=data.get('ref_id'),
        notes=data.get('notes'),
        created_by=get_current_user(),
    )
    return jsonify(result), 201


@scoring_bp.route('/<int:brand_id>/scoring/bonuses', methods=['POST'])
@require_brand_auth
def award_bonus(brand_id):
    """Discretionary bonus: {"creator_id": 42, "points": 50, "reason": "Great hook"}"""
    data = get_json_body()
    result = PointsService(brand_id).award_bonus(
        require_int(data, 'creator_id'),
        data.get('points'),
        reason=data.get('reason'),
        campaign_id=require_int(data, 'campaign_id', required=False),
        event_key=data.get('event_key'),
        created_by=get_current_user(),
    )
    return jsonify(result), 201


@scoring_bp.route('/<int:brand_id>/scoring/adjustments', methods=['POST'])
@require_brand_auth
def adjust_points(brand_id):
    """Signed correction: {"creator_id": 42, "points": -100, "reason": "Approved twice"}"""
    data = get_json_body()
    result = PointsService(brand_id).adjust_points(
        require_int(data, 'creator_id'),
        data.get('points'),
        reason=data.get('reason'),
        event_key=data.get('event_key'),
        created_by=get_current_user(),
    )
    return jsonify(result), 201


# ==================== Ledger ====================

@scoring_bp.route('/<int:brand_id>/scoring/ledger', methods=['GET'])
@require_brand_auth
def get_ledger(brand_id):
    page, per_page = get_pagination()
    result = PointsService(brand_id).get_ledger(
        creator_id=request.args.get('creator_id', type=int),
        campaign_id=request.args.get('campaign_id', type=int),
        event_type=request.args.get('event_type'),
        page=page,
        per_page=per_page,
    )
    return jsonify(result)


@scoring_bp.route('/<int:brand_id>/scoring/pending', methods=['GET'])
@require_brand_auth
def list_pending(brand_id):
    """Scoring events waiting for retry ("points update pending")."""
    status = request.args.get('status', 'pending')
    events = (
        PendingScoringEvent.query.filter_by(brand_id=brand_id, status=status)
        .order_by(PendingScoringEvent.created_at.asc())
        .all()
    )
    return jsonify({'events': [e.to_dict() for e in events], 'total': len(events)})


# ==================== Creator summary ====================

@scoring_bp.route('/<int:brand_id>/creators/<int:creator_id>/points', methods=['GET'])
def get_points_summary(brand_id, creator_id):
    """Visible to the brand's operators and to the creator themselves."""
    brand = get_brand_from_request()
    creator = get_creator_from_request()
    if not ((brand and brand.id == brand_id) or (creator and creator.id == creator_id)):
        return forbidden('Not authorized to view these points')

    g.brand_id = brand_id
    return jsonify(PointsService(brand_id).get_points_summary(creator_id))
