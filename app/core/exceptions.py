from typing import Any, Dict, Optional


class AppException(Exception):
    def __init__(
        self,
        message: str,
        status_code: int = 400,
        error_code: str = "BUSINESS_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details
        super().__init__(self.message)


class ValidationFailedError(AppException):
    """A request was well-formed but breaks a business rule; details map field -> reason."""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=422,
            error_code="VALIDATION_FAILED",
            details=details
        )


class InvalidTransitionError(AppException):
    def __init__(self, message: str = "Action is not allowed in the current state"):
        super().__init__(
            message=message,
            status_code=409,
            error_code="INVALID_TRANSITION"
        )


class StaleStateError(AppException):
    def __init__(self, message: str = "Appraisal was modified by another request; reload and retry"):
        super().__init__(
            message=message,
            status_code=409,
            error_code="STALE_STATE"
        )


class NotFoundError(AppException):
    def __init__(self, message: str = "Resource not found"):
        super().__init__(
            message=message,
            status_code=404,
            error_code="NOT_FOUND"
        )


class AuthenticationError(AppException):
    def __init__(self, message: str = "Could not validate credentials"):
        super().__init__(
            message=message,
            status_code=401,
            error_code="AUTH_FAILED"
        )


class AccessDeniedError(AppException):
    """Custom permission error. Named AccessDeniedError to avoid shadowing Python's built-in PermissionError."""
    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(
            message=message,
            status_code=403,
            error_code="PERMISSION_DENIED"
        )


class DirectoryLookupError(AppException):
    """
    The employee directory could not answer.
    Callers deciding authorization treat this as a denial.
    """
    def __init__(self, message: str = "Employee directory unavailable"):
        super().__init__(
            message=message,
            status_code=503,
            error_code="DIRECTORY_UNAVAILABLE"
        )
