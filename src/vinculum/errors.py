# src/vinculum/errors.py

"""
Error taxonomy for tracking lookups.

Every error knows the HTTP status it maps to and how to render itself as the
JSON envelope returned to the storefront. The request handler is the only
place these are converted into responses.
"""

from typing import Any, Dict, List, Optional


class TrackingError(Exception):
    status_code = 500

    def __init__(self, message: str, *, hint: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.hint = hint

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.message}
        if self.hint:
            body["hint"] = self.hint
        return body


class ValidationError(TrackingError):
    """Inbound request is missing a usable identifier."""

    status_code = 400


class ConfigurationError(TrackingError):
    """A required credential is absent from the environment."""

    status_code = 500

    def __init__(self, message: str, *, missing: Optional[List[str]] = None):
        super().__init__(message)
        self.missing = missing or []


class GatewayNetworkError(TrackingError):
    """The upstream could not be reached (connection error, timeout)."""

    status_code = 502

    def __init__(self, message: str, *, url: str):
        super().__init__(message)
        self.url = url


class NegotiationExhausted(TrackingError):
    """No candidate shape produced a successful upstream response."""

    status_code = 400

    def __init__(
        self,
        message: str,
        *,
        identifier: str,
        tried: List[Dict[str, Any]],
        status_code: Optional[int] = None,
        details: Any = None,
        hint: Optional[str] = None,
    ):
        super().__init__(message, hint=hint)
        self.identifier = identifier
        self.tried = tried
        self.details = details
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        body["identifier"] = self.identifier
        if self.details is not None:
            body["details"] = self.details
        body["tried"] = self.tried
        return body
