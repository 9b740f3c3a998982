"""
Error taxonomy for the meeting control plane.
"""
import enum


class DenialReason(str, enum.Enum):
    """Closed set of reasons a link or join can be refused"""
    EXPIRED = "expired"
    EXHAUSTED = "exhausted"
    CANCELLED = "cancelled"
    ENDED = "ended"
    NOT_A_MEMBER = "not-a-member"
    NOT_FOUND = "not-found"


DENIAL_MESSAGES = {
    DenialReason.EXPIRED: "This meeting link has expired. Ask the host for a new link.",
    DenialReason.EXHAUSTED: "This meeting link has reached its usage limit. Ask the host for a new link.",
    DenialReason.CANCELLED: "This meeting has been cancelled. Contact the host for details.",
    DenialReason.ENDED: "This meeting has ended.",
    DenialReason.NOT_A_MEMBER: "You do not have access to this building. Join the building first.",
    DenialReason.NOT_FOUND: "Invalid meeting link.",
}


class AGMError(Exception):
    """Base exception for meeting service errors."""
    pass


class ValidationError(AGMError):
    """Malformed or missing input. Surfaced verbatim, never retried."""
    pass


class InvalidTransition(ValidationError):
    """Requested status change is not an edge of the meeting state machine."""

    def __init__(self, message: str, current_status: str = None):
        self.current_status = current_status
        super().__init__(message)


class DependencyError(AGMError):
    """Record store or membership lookup failed. Safe for the caller to retry."""

    public_message = "A backing service is unavailable, please try again."

    def __init__(self, message: str, operation: str = None):
        self.operation = operation
        super().__init__(message)


class AccessDenied(AGMError):
    """Caller may not perform the action; carries a closed-set reason."""

    def __init__(self, reason: DenialReason, message: str = None):
        self.reason = reason
        super().__init__(message or DENIAL_MESSAGES[reason])


class NotFound(AGMError):
    """Meeting, link or participant does not exist."""

    def __init__(self, entity: str, identifier=None):
        self.entity = entity
        self.identifier = identifier
        super().__init__(f"{entity} not found")


class NotAuthorized(AGMError):
    """Caller is not the host or a director; kept apart from link/join denials."""

    default_message = "Only the meeting host or a building director can do this."

    def __init__(self, message: str = None):
        super().__init__(message or self.default_message)
