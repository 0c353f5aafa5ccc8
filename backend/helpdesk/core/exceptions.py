"""Custom exceptions for application-specific error handling."""

from __future__ import annotations

from typing import Optional, Dict, Any


class HelpdeskException(Exception):
    """Base exception for all application errors."""

    def __init__(
        self,
        message: str,
        *,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        status_code: int = 400,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.status_code = status_code
        self.headers = headers
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "details": self.details,
        }


class NotFoundError(HelpdeskException):
    """Raised when a requested resource is not found."""

    def __init__(self, message: str = "not_found", *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code="NOT_FOUND", details=details, status_code=404)


class ConflictError(HelpdeskException):
    """Raised when a request conflicts with current state."""

    def __init__(self, message: str = "conflict", *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code="CONFLICT", details=details, status_code=409)


class BadRequestError(HelpdeskException):
    """Raised when request is invalid."""

    def __init__(self, message: str = "bad_request", *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code="BAD_REQUEST", details=details, status_code=400)


# ===== SLA EXCEPTIONS =====


class SLAException(HelpdeskException):
    """Base exception for SLA computation errors."""


class CalendarGapError(SLAException):
    """Raised when business-hours arithmetic has no working time to consume."""

    def __init__(self, message: str = "business_calendar_has_no_working_time"):
        super().__init__(message, error_code="CALENDAR_GAP", status_code=500)


class PolicyInUseError(SLAException):
    """Raised when deleting a policy that tracking rows still reference."""

    def __init__(self, policy_id: str, references: int):
        super().__init__(
            "Cannot delete policy that is in use by tickets. Deactivate it instead.",
            error_code="POLICY_IN_USE",
            details={"policy_id": policy_id, "references": references},
            status_code=409,
        )


# ===== LIFECYCLE EXCEPTIONS =====


class LifecycleRejectedError(HelpdeskException):
    """Raised at the HTTP boundary for a rejected lifecycle mutation."""

    def __init__(self, message: str, *, error_code: str, status_code: int):
        super().__init__(message, error_code=error_code, status_code=status_code)


# ===== AUTHENTICATION/AUTHORIZATION EXCEPTIONS =====


class AuthenticationException(HelpdeskException):
    """Base exception for authentication errors."""


class InsufficientPermissionsError(AuthenticationException):
    """Raised when user lacks required permissions."""

    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(message, error_code="INSUFFICIENT_PERMISSIONS", status_code=403)
