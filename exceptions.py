"""
Custom Exceptions for the GiveHope API
======================================

Raised by the store, the session/access-control layer and the handlers,
and mapped to HTTP responses by the exception handlers in main.py.

Usage:
    from exceptions import CampaignNotFoundError

    campaign = db.get_campaign(campaign_id)
    if not campaign:
        raise CampaignNotFoundError(campaign_id)
"""

from typing import Optional, Any, Dict


class GiveHopeError(Exception):
    """Base exception for all GiveHope errors"""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "code": self.code,
            "details": self.details
        }


# ============================================
# Authentication & Authorization Errors
# ============================================

class AuthenticationError(GiveHopeError):
    """No authenticated principal, or credentials rejected"""

    status_code = 401

    def __init__(self, message: str = "You must be logged in"):
        super().__init__(message, code="AUTH_FAILED")


class InvalidCredentialsError(AuthenticationError):
    """Username/password pair rejected"""

    def __init__(self, message: str = "Incorrect username or password"):
        super().__init__(message)
        self.code = "INVALID_CREDENTIALS"


class AuthorizationError(GiveHopeError):
    """Authenticated, but role or ownership is insufficient"""

    status_code = 403

    def __init__(self, message: str = "Not authorized"):
        super().__init__(message, code="NOT_AUTHORIZED")


# ============================================
# Resource Errors (404-type)
# ============================================

class ResourceNotFoundError(GiveHopeError):
    """Base class for not found errors"""

    status_code = 404

    def __init__(self, resource_type: str, resource_id: Any):
        super().__init__(
            f"{resource_type} not found",
            code=f"{resource_type.upper()}_NOT_FOUND",
            details={"resource_type": resource_type, "resource_id": resource_id}
        )


class UserNotFoundError(ResourceNotFoundError):
    def __init__(self, user_id: Any):
        super().__init__("User", user_id)


class OrganizationNotFoundError(ResourceNotFoundError):
    def __init__(self, organization_id: Any):
        super().__init__("Organization", organization_id)


class CampaignNotFoundError(ResourceNotFoundError):
    def __init__(self, campaign_id: Any):
        super().__init__("Campaign", campaign_id)


# ============================================
# Validation Errors (400-type)
# ============================================

class ValidationError(GiveHopeError):
    """Input validation failed"""

    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(message, code="VALIDATION_ERROR", details=details)


class ConflictError(GiveHopeError):
    """Unique constraint violated (username, email, category name)"""

    # duplicates answer 400, same as other bad registration input
    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(message, code="CONFLICT", details=details)
