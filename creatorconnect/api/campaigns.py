"""
Campaign activity API.

Called by the campaign, sales and social-sync systems when something
scoreable happens, plus the read-only campaign leaderboard.

Scoring responses carry "points_status": "awarded" when points were written
with the business action, or "pending" when they were queued for retry.
"""
from datetime import datetime
from flask import Blueprint, request, jsonify, g

from ..models import Campaign, CampaignParticipant
from ..middleware import require_brand_auth, is_campaign_viewer
from ..services import ActivityService, MetricsService, LeaderboardService
from ..utils.errors import forbidden
from ..utils.exceptions import CampaignNotFoundError, ValidationError
from . import get_json_body, require_int, arg_flag


campaigns_bp = Blueprint('campaigns', __name__)


def _brand_campaign(campaign_id: int) -> Campaign:
    """Campaign owned by the authenticated brand; others look missing."""
    campaign = Campaign.query.get(campaign_id)
    if not campaign or campaign.brand_id != g.brand_id:
        raise CampaignNotFoundError(campaign_id)
    return campaign


def _parse_datetime(value, field: str):
    if value is None:
        return None
    try:
        return datetime.fromisoformat(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{field} must be an ISO 8601 datetime', field=field)


# ==================== Participants ====================

@campaigns_bp.route('/<int:campaign_id>/participants', methods=['POST'])
@require_brand_auth
def accept_participant(campaign_id):
    """{"creator_id": 42, "accepted_at": "2026-03-01T10:00:00"}  (accepted_at optional)"""
    campaign = _brand_campaign(campaign_id)
    data = get_json_body()
    participant = ActivityService(campaign.brand_id).accept_participant(
        campaign_id,
        require_int(data, 'creator_id'),
        accepted_at=_parse_datetime(data.get('accepted_at'), 'accepted_at'),
    )
    return jsonify(participant.to_dict()), 201


@campaigns_bp.route('/<int:campaign_id>/participants', methods=['GET'])
@require_brand_auth
def list_participants(campaign_id):
    campaign = _brand_campaign(campaign_id)
    participants = campaign.participants.order_by(CampaignParticipant.accepted_at.asc()).all()
    return jsonify({'participants': [p.to_dict() for p in participants]})


# ==================== Activity ====================

@campaigns_bp.route('/<int:campaign_id>/deliverables/approved', methods=['POST'])
@require_brand_auth
def deliverable_approved(campaign_id):
    """
    A deliverable was approved.

    Request body:
    {
        "creator_id": 42,
        "on_time": true,
        "deliverable_id": "d-881"   # optional, used as the idempotency key
    }
    """
    campaign = _brand_campaign(campaign_id)
    data = get_json_body()
    result = ActivityService(campaign.brand_id).deliverable_approved(
        campaign_id,
        require_int(data, 'creator_id'),
        data.get('on_time'),
        deliverable_id=data.get('deliverable_id'),
        event_key=data.get('event_key'),
        approved_by=request.headers.get('X-Operator-Email', f'brand:{g.brand_id}'),
    )
    return jsonify(result), 201


@campaigns_bp.route('/<int:campaign_id>/sales', methods=['POST'])
@require_brand_auth
def sale_attributed(campaign_id):
    """{"creator_id": 42, "sale_count": 3, "sale_id": "order-5521"}"""
    campaign = _brand_campaign(campaign_id)
    data = get_json_body()
    result = ActivityService(campaign.brand_id).sale_attributed(
        campaign_id,
        require_int(data, 'creator_id'),
        data.get('sale_count'),
        sale_id=data.get('sale_id'),
        event_key=data.get('event_key'),
    )
    return jsonify(result), 201


@campaigns_bp.route('/<int:campaign_id>/metrics', methods=['POST'])
@require_brand_auth
def sync_metrics(campaign_id):
    """
    Post metrics from a social sync.

    Request body:
    {
        "creator_id": 42,
        "platform": "instagram",
        "post_id": "17890012345",
        "views": 12000,
        "likes": 830,
        "comments": 41
    }
    """
    campaign = _brand_campaign(campaign_id)
    data = get_json_body()
    result = MetricsService(campaign.brand_id).sync_post_metrics(
        campaign_id,
        require_int(data, 'creator_id'),
        data.get('platform'),
        data.get('post_id'),
        data.get('views'),
        data.get('likes'),
        data.get('comments'),
    )
    return jsonify(result)


@campaigns_bp.route('/<int:campaign_id>/metrics', methods=['GET'])
@require_brand_auth
def list_metrics(campaign_id):
    """Post snapshots; ?flagged=true for posts flagged for review."""
    campaign = _brand_campaign(campaign_id)
    snapshots = MetricsService(campaign.brand_id).list_snapshots(
        campaign_id, flagged_only=arg_flag('flagged')
    )
    return jsonify({'snapshots': snapshots})


# ==================== Leaderboard ====================

@campaigns_bp.route('/<int:campaign_id>/leaderboard', methods=['GET'])
def campaign_leaderboard(campaign_id):
    """
    Ranked participants. Open to the owning brand and accepted participants.

    Brand operators may add ?include_hidden=true to see suspended and
    archived members.
    """
    campaign = Campaign.query.get(campaign_id)
    if not campaign:
        raise CampaignNotFoundError(campaign_id)
    if not is_campaign_viewer(campaign):
        return forbidden('Only campaign participants can view this leaderboard')

    include_hidden = arg_flag('include_hidden') and getattr(g, 'brand_id', None) == campaign.brand_id
    result = LeaderboardService(campaign.brand_id).campaign_leaderboard(
        campaign_id, include_hidden=include_hidden
    )
    return jsonify(result)
