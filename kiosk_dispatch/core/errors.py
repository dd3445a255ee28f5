# kiosk_dispatch/core/errors.py
"""
Typed errors for call dispatch.

Each error maps to a specific HTTP status code.  The transport layer
catches ``DispatchError`` subtypes and converts them to JSON responses
without embedding business logic in the route handlers.
"""
from __future__ import annotations


class DispatchError(Exception):
    """Base class for all dispatch errors."""

    status_code: int = 500

    def __init__(self, message: str = "Internal error", *, error: str | None = None):
        self.message = message
        self.error = error
        super().__init__(message)

    def to_body(self) -> dict:
        body = {"message": self.message}
        if self.error:
            body["error"] = self.error
        return body


class ValidationError(DispatchError):
    """Missing or malformed request fields (400)."""

    status_code = 400


class ConflictError(DispatchError):
    """Call already resolved by another staff member (409)."""

    status_code = 409


class ExternalServiceError(DispatchError):
    """Voice provider rejected or could not be reached (500)."""

    status_code = 500


class VoiceProviderError(Exception):
    """Raised by voice providers when a call cannot be placed."""


class StorageError(Exception):
    """Raised by stores when the backing medium cannot be read or written."""
