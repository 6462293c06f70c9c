"""
Utility modules for CreatorConnect.
"""
from .logging_config import setup_logging
from .errors import (
    ErrorCode,
    error_response,
    exception_response,
    bad_request,
    unauthorized,
    forbidden,
    not_found,
    internal_error
)
from .exceptions import (
    CreatorConnectError,
    NotFoundError,
    BrandNotFoundError,
    CampaignNotFoundError,
    CreatorNotFoundError,
    MembershipNotFoundError,
    TierNotFoundError,
    ValidationError,
    InvalidEventFactsError,
    MembershipArchivedError,
    ConfigurationMissingError,
    ConcurrencyConflictError,
    DuplicateEventError,
    DuplicateError,
    InvalidStatusTransitionError,
    AuthorizationError,
)
