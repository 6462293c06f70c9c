"""
Membership API.

Brand side: list members, invite-accept (join), suspend, reactivate,
archive, and rebuild cached points from the ledger.
Creator side: list own memberships and leave a community.
"""
from flask import Blueprint, request, jsonify, g

from ..models import Membership
from ..middleware import require_brand_auth, require_creator_auth
from ..services import MembershipService, PointsService, TierService, list_creator_memberships
from ..utils.exceptions import MembershipNotFoundError
from . import get_json_body, require_int, get_pagination, arg_flag


memberships_bp = Blueprint('memberships', __name__)
creator_memberships_bp = Blueprint('creator_memberships', __name__)


def _membership_payload(membership):
    progress = TierService(membership.brand_id).get_progress(membership.points_cache)
    return membership.to_dict(progress=progress)


# ==================== Brand side ====================

@memberships_bp.route('/<int:brand_id>/memberships', methods=['GET'])
@require_brand_auth
def list_memberships(brand_id):
    page, per_page = get_pagination()
    result = MembershipService(brand_id).list_memberships(
        status=request.args.get('status'),
        page=page,
        per_page=per_page,
    )
    return jsonify(result)


@memberships_bp.route('/<int:brand_id>/memberships', methods=['POST'])
@require_brand_auth
def join_membership(brand_id):
    """
    Record an accepted invite.

    Request body:
    {
        "creator_id": 42,
        "source": "invite",        # invite, campaign, manual
        "coupon_code": "GLOW42"    # optional
    }
    """
    data = get_json_body()
    membership = MembershipService(brand_id).join(
        require_int(data, 'creator_id'),
        source=data.get('source') or 'invite',
        coupon_code=data.get('coupon_code'),
    )
    return jsonify(_membership_payload(membership)), 201


@memberships_bp.route('/<int:brand_id>/memberships/<int:membership_id>', methods=['GET'])
@require_brand_auth
def get_membership(brand_id, membership_id):
    membership = MembershipService(brand_id).get_membership(membership_id)
    return jsonify(_membership_payload(membership))


@memberships_bp.route('/<int:brand_id>/memberships/<int:membership_id>/suspend', methods=['POST'])
@require_brand_auth
def suspend_membership(brand_id, membership_id):
    membership = MembershipService(brand_id).suspend(membership_id)
    return jsonify(_membership_payload(membership))


@memberships_bp.route('/<int:brand_id>/memberships/<int:membership_id>/reactivate', methods=['POST'])
@require_brand_auth
def reactivate_membership(brand_id, membership_id):
    membership = MembershipService(brand_id).reactivate(membership_id)
    return jsonify(_membership_payload(membership))


@memberships_bp.route('/<int:brand_id>/memberships/<int:membership_id>/archive', methods=['POST'])
@require_brand_auth
def archive_membership(brand_id, membership_id):
    membership = MembershipService(brand_id).archive(membership_id)
    return jsonify(_membership_payload(membership))


@memberships_bp.route('/<int:brand_id>/memberships/rebuild', methods=['POST'])
@require_brand_auth
def rebuild_memberships(brand_id):
    """Recompute cached points and tiers from the ledger. Optional {"membership_id": 5}."""
    data = get_json_body()
    result = PointsService(brand_id).rebuild_points_cache(
        membership_id=require_int(data, 'membership_id', required=False)
    )
    return jsonify(result)


# ==================== Creator side ====================

@creator_memberships_bp.route('/me/memberships', methods=['GET'])
@require_creator_auth
def my_memberships():
    memberships = list_creator_memberships(g.creator_id, include_archived=arg_flag('include_archived'))
    return jsonify({'memberships': memberships})


@creator_memberships_bp.route('/me/memberships/<int:membership_id>/leave', methods=['POST'])
@require_creator_auth
def leave_membership(membership_id):
    membership = Membership.query.filter_by(id=membership_id, creator_id=g.creator_id).first()
    if not membership:
        raise MembershipNotFoundError(membership_id)

    membership = MembershipService(membership.brand_id).leave(membership_id, g.creator_id)
    return jsonify(_membership_payload(membership))
