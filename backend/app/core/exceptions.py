"""
Custom Exceptions for Reqquli
=============================

Raise these from services and endpoints instead of HTTPException so every
failure leaves the API in the same envelope:

    {"error": {"code": "NOT_FOUND", "message": "Requirement not found"}}

Usage:
    from app.core.exceptions import ResourceNotFoundError, ConflictError

    if not requirement:
        raise ResourceNotFoundError("Requirement not found")
"""

from typing import Optional, Any, Dict


class ReqquliError(Exception):
    """Base exception for all Reqquli errors"""

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
        error: Dict[str, Any] = {
            "code": self.code,
            "message": self.message,
        }
        if self.details:
            error["details"] = self.details
        return error


# ============================================
# Request Errors (400-type)
# ============================================

class BadRequestError(ReqquliError):
    """Request is well formed but cannot be applied in the current state"""

    status_code = 400

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="BAD_REQUEST", details=details)


class ValidationError(ReqquliError):
    """Input validation failed"""

    status_code = 422

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(message, code="UNPROCESSABLE_ENTITY", details=details)


class ConflictError(ReqquliError):
    """Resource already exists"""

    status_code = 409

    def __init__(self, message: str):
        super().__init__(message, code="CONFLICT")


class PayloadTooLargeError(ReqquliError):
    status_code = 413

    def __init__(self, message: str = "Request body too large"):
        super().__init__(message, code="PAYLOAD_TOO_LARGE")


# ============================================
# Authentication & Authorization Errors
# ============================================

class AuthenticationError(ReqquliError):
    """User authentication failed"""

    status_code = 401

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message, code="UNAUTHORIZED")


class InvalidPasswordError(AuthenticationError):
    """Password re-confirmation failed"""

    def __init__(self):
        super().__init__("Invalid password")


class AuthorizationError(ReqquliError):
    """User not authorized for this action"""

    status_code = 403

    def __init__(self, message: str = "Not authorized"):
        super().__init__(message, code="FORBIDDEN")


# ============================================
# Resource Errors (404-type)
# ============================================

class ResourceNotFoundError(ReqquliError):
    """Requested resource does not exist or has been deleted"""

    status_code = 404

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="NOT_FOUND", details=details)


# ============================================
# Infrastructure Errors
# ============================================

class ServiceUnavailableError(ReqquliError):
    """A backing service (database, mail) is unavailable"""

    status_code = 503

    def __init__(self, message: str = "Service temporarily unavailable"):
        super().__init__(message, code="SERVICE_UNAVAILABLE")


# Status code -> envelope code, for errors raised as HTTPException
HTTP_ERROR_CODES: Dict[int, str] = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    413: "PAYLOAD_TOO_LARGE",
    422: "UNPROCESSABLE_ENTITY",
    500: "INTERNAL_ERROR",
    503: "SERVICE_UNAVAILABLE",
}


def error_body(code: str, message: str, details: Any = None) -> Dict[str, Any]:
    """Build the JSON body returned for every failed request"""
    error: Dict[str, Any] = {"code": code, "message": message}
    if details:
        error["details"] = details
    return {"error": error}
