"""
Custom exceptions for CreatorConnect scoring logic.

These exceptions provide more specific error handling than generic Exception,
allowing for better error messages and appropriate HTTP status codes.
"""


class CreatorConnectError(Exception):
    """Base exception for all CreatorConnect business logic errors."""

    status_code = 400

    def __init__(self, message: str, code: str = "CREATORCONNECT_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class NotFoundError(CreatorConnectError):
    """Resource not found."""

    status_code = 404

    def __init__(self, resource: str, identifier=None):
        message = f"{resource} not found"
        if identifier:
            message = f"{resource} with ID {identifier} not found"
        super().__init__(message, f"{resource.upper().replace(' ', '_')}_NOT_FOUND")


class BrandNotFoundError(NotFoundError):
    """Brand not found."""

    def __init__(self, identifier=None):
        super().__init__("Brand", identifier)


class CampaignNotFoundError(NotFoundError):
    """Campaign not found."""

    def __init__(self, identifier=None):
        super().__init__("Campaign", identifier)


class CreatorNotFoundError(NotFoundError):
    """Creator not found."""

    def __init__(self, identifier=None):
        super().__init__("Creator", identifier)


class MembershipNotFoundError(NotFoundError):
    """Membership not found."""

    def __init__(self, identifier=None):
        super().__init__("Membership", identifier)


class TierNotFoundError(NotFoundError):
    """Tier not found."""

    def __init__(self, identifier=None):
        super().__init__("Tier", identifier)


class ValidationError(CreatorConnectError):
    """
    Invalid input data.

    ``fields`` maps field names to messages so forms can show them inline.
    """

    def __init__(self, message: str, field: str = None, fields: dict = None):
        self.field = field
        self.fields = dict(fields or {})
        if field and field not in self.fields:
            self.fields[field] = message
        code = f"INVALID_{field.upper()}" if field else "VALIDATION_ERROR"
        super().__init__(message, code)


class InvalidEventFactsError(ValidationError):
    """Scoring event facts are missing or invalid (e.g. negative counts)."""

    def __init__(self, message: str, field: str = None):
        super().__init__(message, field=field)
        self.code = "INVALID_EVENT_FACTS"


class MembershipArchivedError(CreatorConnectError):
    """A scoring event or transition targeted a terminated membership."""

    status_code = 409

    def __init__(self, membership_id=None):
        self.membership_id = membership_id
        message = "Membership is archived"
        if membership_id:
            message = f"Membership {membership_id} is archived"
        super().__init__(message, "MEMBERSHIP_ARCHIVED")


class ConfigurationMissingError(CreatorConnectError):
    """Brand has no scoring rules and platform defaults are disabled."""

    status_code = 500

    def __init__(self, brand_id=None):
        self.brand_id = brand_id
        super().__init__(
            f"No scoring configuration available for brand {brand_id}",
            "CONFIGURATION_MISSING",
        )


class ConcurrencyConflictError(CreatorConnectError):
    """An atomic update lost a race; the caller should retry."""

    status_code = 409

    def __init__(self, message: str = "Concurrent update detected, retry the operation"):
        super().__init__(message, "CONCURRENCY_CONFLICT")


class DuplicateEventError(CreatorConnectError):
    """A scoring event with the same event key was already recorded."""

    status_code = 409

    def __init__(self, event_key: str, entry_id: int = None):
        self.event_key = event_key
        self.entry_id = entry_id
        super().__init__(f"Event {event_key} was already recorded", "DUPLICATE_EVENT")


class DuplicateError(CreatorConnectError):
    """Resource already exists."""

    status_code = 409

    def __init__(self, resource: str, identifier=None):
        message = f"{resource} already exists"
        if identifier:
            message = f"{resource} with {identifier} already exists"
        super().__init__(message, "DUPLICATE_ENTRY")


class InvalidStatusTransitionError(CreatorConnectError):
    """Invalid status transition for a resource."""

    status_code = 409

    def __init__(self, resource: str, from_status: str, to_status: str):
        self.from_status = from_status
        self.to_status = to_status
        message = f"Cannot change {resource} status from '{from_status}' to '{to_status}'"
        super().__init__(message, "INVALID_STATUS_TRANSITION")


class AuthorizationError(CreatorConnectError):
    """Caller not authorized for this operation."""

    status_code = 403

    def __init__(self, message: str = "Not authorized for this operation"):
        super().__init__(message, "AUTHORIZATION_ERROR")
