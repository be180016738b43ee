"""
Typed domain errors.

Every error carries a stable machine-readable code and the HTTP status the
API layer maps it to. All subclass ValueError so code that only knows the
ValueError convention ("not found" message → 404) keeps working.
"""

from typing import Any


class DomainError(ValueError):
    """Base class for errors surfaced to API callers."""

    code = "INVALID_REQUEST"
    status_code = 400

    def __init__(self, message: str, code: str | None = None, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.details = details or {}


class NotFoundError(DomainError):
    """
    Entity does not exist or belongs to another workspace.

    The two cases are indistinguishable to the caller.
    """

    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, entity: str, identifier: Any):
        super().__init__(f"{entity} {identifier} not found")
        self.entity = entity
        self.identifier = identifier


class EntityValidationError(DomainError):
    """Input is well-formed but breaks a business rule."""

    code = "VALIDATION_ERROR"
    status_code = 400


class ConflictError(DomainError):
    """Operation conflicts with existing state (duplicates, references)."""

    code = "ALREADY_EXISTS"
    status_code = 409


class InvalidTransitionError(DomainError):
    """Invoice lifecycle transition not allowed from the current status."""

    code = "INVALID_STATUS_TRANSITION"
    status_code = 409


class BusinessRequiredError(DomainError):
    """Workspace has no business yet; caller must finish setup."""

    code = "BUSINESS_REQUIRED"
    status_code = 403

    def __init__(self, message: str = "Create a business before continuing"):
        super().__init__(message, details={"redirect_to": "/setup"})


class SubscriptionRequiredError(DomainError):
    """Write attempted without an active subscription."""

    code = "SUBSCRIPTION_REQUIRED"
    status_code = 402

    def __init__(self, message: str = "An active subscription is required", status: str | None = None):
        super().__init__(message, details={"redirect_to": "/subscribe", "subscription_status": status})


class ExternalServiceError(DomainError):
    """
    A downstream provider (PDF renderer, email gateway, billing) failed.

    The message shown to callers is generic; provider details go to the log.
    """

    code = "EXTERNAL_SERVICE_ERROR"
    status_code = 502

    def __init__(self, service: str, message: str | None = None):
        super().__init__(message or f"{service} is unavailable")
        self.service = service
