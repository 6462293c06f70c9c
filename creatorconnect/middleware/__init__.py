"""
Middleware package for CreatorConnect.
"""
from .auth import (
    require_brand_auth,
    require_creator_auth,
    get_brand_from_request,
    get_creator_from_request,
    get_current_user,
    is_campaign_viewer,
)
