# campus/core/exceptions.py
"""Custom exceptions for the Campus application."""
from typing import Any, Dict, Optional


class CampusException(Exception):
    """Base exception carrying the HTTP status it maps to."""
    def __init__(self, message: str, status_code: int = 400, extra: Optional[Dict[str, Any]] = None):
        self.message = message
        self.status_code = status_code
        self.extra = extra or {}
        super().__init__(self.message)


class ValidationException(CampusException):
    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message, 400, {"field": field} if field else None)


class NotFoundError(CampusException):
    """Resource not found exception"""
    def __init__(self, resource: str):
        super().__init__(f"{resource} not found", 404)


class DuplicateError(CampusException):
    """Raised when a unique field is already taken."""
    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message, 409, {"field": field} if field else None)


class AuthenticationError(CampusException):
    def __init__(self, message: str = "Invalid credentials"):
        super().__init__(message, 401)


class PermissionDenied(CampusException):
    def __init__(self, message: str = "Insufficient permissions", **extra: Any):
        super().__init__(message, 403, extra)


class SchoolNotFound(NotFoundError):
    def __init__(self):
        super().__init__("School")
