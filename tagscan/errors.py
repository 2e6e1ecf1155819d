"""
Error taxonomy for the scan notification pipeline.

Every failure that can leave the orchestrator is a TagScanError carrying the
HTTP status and the short text shown to the caller. Internal details stay in
the exception message and the logs, never in ``public_message``.
"""

from typing import Optional


class TagScanError(Exception):
    """Base class for all pipeline errors."""
    status_code: int = 500
    public_message: str = "Server error"

    def __init__(self, message: str = "", public_message: Optional[str] = None):
        super().__init__(message or self.public_message)
        if public_message is not None:
            self.public_message = public_message


# =============================================================================
# Caller errors (not recorded as scan events)
# =============================================================================

class ScanValidationError(TagScanError):
    """Bad or missing input in the scan request."""
    status_code = 400
    public_message = "petId required"


class MissingOwnerLinkError(TagScanError):
    """The pet record has no owner identifier."""
    status_code = 400
    public_message = "Pet has no ownerID"


class MissingEmailError(TagScanError):
    """The owner record has no contact email address."""
    status_code = 400
    public_message = "Owner email missing"


class NotFoundError(TagScanError):
    status_code = 404
    public_message = "Not found"


class PetNotFoundError(NotFoundError):
    public_message = "Pet not found"


class OwnerNotFoundError(NotFoundError):
    public_message = "Owner not found"


# =============================================================================
# Server errors
# =============================================================================

class ConfigurationError(TagScanError):
    """Missing credentials or an unknown transport selection."""
    public_message = "Server misconfigured"


class TransportError(TagScanError):
    """
    Delivery failure reported by a transport.

    Subclasses distinguish the failures an operator acts on differently.
    """
    public_message = "Email delivery failed"

    def __init__(self, message: str = "", provider: Optional[str] = None, status: Optional[int] = None):
        super().__init__(message)
        self.provider = provider
        self.status = status


class TransportAuthError(TransportError):
    """Credentials were rejected (expired refresh token, revoked API key)."""


class TransportRateLimitError(TransportError):
    """Provider quota or rate limit reached."""


class TransportRecipientError(TransportError):
    """Recipient address is malformed or was refused by the provider."""


class StoreError(TagScanError):
    """Document store read or write failed."""


class AuditTrailError(StoreError):
    """
    The email went out but its scan event could not be recorded.

    The audit trail no longer matches what happened, so this is reported
    separately from failures that occur before anything was sent.
    """
