"""Exceptions raised by the storefront services and mapped to HTTP responses."""

from typing import Any, Dict, List, Optional


class StorefrontError(Exception):
    """Base exception for all storefront errors."""

    status_code = 500

    def __init__(self, message: str = "Server error", details: Optional[List[Dict[str, Any]]] = None):
        self.message = message
        self.details = details
        super().__init__(message)


class InvalidInput(StorefrontError):
    """Raised when a request body or query fails validation."""

    status_code = 400


class Unauthenticated(StorefrontError):
    """Raised when the bearer credential is missing or invalid."""

    status_code = 401

    def __init__(self, message: str = "Not authenticated"):
        super().__init__(message)


class Forbidden(StorefrontError):
    """Raised when the caller is neither the owner nor elevated."""

    status_code = 403

    def __init__(self, message: str = "Forbidden"):
        super().__init__(message)


class NotFound(StorefrontError):
    """Raised when a referenced entity is absent or inactive."""

    status_code = 404

    def __init__(self, message: str = "Not found"):
        super().__init__(message)


class InvalidState(StorefrontError):
    """Raised when an operation is not permitted in the entity's current state."""

    status_code = 400


class Conflict(StorefrontError):
    """Raised on a duplicate unique key."""

    status_code = 409


class Internal(StorefrontError):
    """Raised on an unexpected store or runtime failure."""

    status_code = 500
