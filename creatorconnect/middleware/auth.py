"""
Request identity middleware.

Sessions are handled upstream by the main platform, which forwards the
authenticated identity as a header:
- X-Brand-ID: a brand operator acting for that brand
- X-Creator-ID: a creator acting for themselves

These decorators resolve the header into g.brand / g.creator and reject
requests that act outside their own brand.
"""
from functools import wraps
from flask import request, g

from ..models import Brand, Creator, CampaignParticipant
from ..utils.errors import error_response, unauthorized, forbidden, not_found, ErrorCode


def _header_id(name: str):
    value = request.headers.get(name)
    if not value:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def get_brand_from_request():
    """Brand operator identity, or None."""
    brand_id = _header_id('X-Brand-ID')
    if brand_id is None:
        return None
    return Brand.query.get(brand_id)


def get_creator_from_request():
    """Creator identity, or None."""
    creator_id = _header_id('X-Creator-ID')
    if creator_id is None:
        return None
    return Creator.query.get(creator_id)


def get_current_user() -> str:
    """Who to record in audit columns."""
    email = request.headers.get('X-Operator-Email')
    if email:
        return email
    if getattr(g, 'brand_id', None):
        return f'brand:{g.brand_id}'
    if getattr(g, 'creator_id', None):
        return f'creator:{g.creator_id}'
    return 'api:unknown'


def require_brand_auth(f):
    """
    Require a brand operator.

    When the route has a ``brand_id`` argument it must match the caller's
    brand. Sets g.brand and g.brand_id.

    Usage:
        @bp.route('/brands/<int:brand_id>/scoring/rules')
        @require_brand_auth
        def get_rules(brand_id):
            ...
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not request.headers.get('X-Brand-ID'):
            return unauthorized('Brand authentication required')

        brand = get_brand_from_request()
        if not brand:
            return not_found('Brand not found')

        if not brand.is_active:
            return error_response(
                'This brand\'s access has been disabled', ErrorCode.PERMISSION_DENIED, 403, log_error=False
            )

        route_brand_id = kwargs.get('brand_id')
        if route_brand_id is not None and route_brand_id != brand.id:
            return forbidden('Not authorized for this brand')

        g.brand = brand
        g.brand_id = brand.id
        return f(*args, **kwargs)

    return decorated_function


def require_creator_auth(f):
    """Require a creator. Sets g.creator and g.creator_id."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not request.headers.get('X-Creator-ID'):
            return unauthorized('Creator authentication required')

        creator = get_creator_from_request()
        if not creator:
            return not_found('Creator not found')

        g.creator = creator
        g.creator_id = creator.id
        return f(*args, **kwargs)

    return decorated_function


def is_campaign_viewer(campaign) -> bool:
    """
    Whether the caller may see a campaign's leaderboard.

    The owning brand's operators and the campaign's accepted participants.
    """
    brand = get_brand_from_request()
    if brand and brand.id == campaign.brand_id:
        g.brand = brand
        g.brand_id = brand.id
        return True

    creator = get_creator_from_request()
    if creator:
        participant = CampaignParticipant.query.filter_by(
            campaign_id=campaign.id, creator_id=creator.id, status='accepted'
        ).first()
        if participant:
            g.creator = creator
            g.creator_id = creator.id
            return True

    return False
