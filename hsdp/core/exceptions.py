"""HSDP client exceptions for error handling."""
from __future__ import annotations

from typing import List, Optional


class HSDPError(Exception):
    """Base exception for all HSDP client operations."""
    pass


class ValidationError(HSDPError):
    """Resource failed field validation before any request was sent.

    Attributes:
        violations: Every violated constraint (list of Violation)
    """

    def __init__(self, violations: List):
        self.violations = list(violations)
        details = "; ".join(v.message for v in self.violations)
        super().__init__(f"validation failed: {details}")


class AuthError(HSDPError):
    """Login or token refresh failed; caller must re-authenticate.

    Attributes:
        status_code: HTTP status of the token endpoint (None when not reached)
        message: Error detail from the identity provider
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        self.message = message
        if status_code is None:
            super().__init__(message)
        else:
            super().__init__(f"[{status_code}] {message}")


class TransportError(HSDPError):
    """Network failure or timeout while talking to an endpoint."""

    def __init__(self, method: str, url: str, reason: str):
        self.method = method
        self.url = url
        self.reason = reason
        super().__init__(f"{method} {url}: {reason}")


class APIStatusError(HSDPError):
    """Non-success HTTP status from an HSDP API.

    Attributes:
        status_code: HTTP status code
        method: Request method
        url: Request target
        body: Full response body as text
    """

    def __init__(self, status_code: int, method: str, url: str, body: str):
        self.status_code = status_code
        self.method = method
        self.url = url
        self.body = body
        super().__init__(f"{method} {url}: StatusCode {status_code}, Body: {body}")


class DecodeError(HSDPError):
    """Response body did not match the expected envelope or resource."""
    pass


class EmptyResultError(HSDPError):
    """Well-formed lookup that matched no resources."""
    pass


NotFoundError = EmptyResultError


class PostCreateInvariantError(HSDPError):
    """Create succeeded but the new resource could not be located or read back."""
    pass


class BuildError(HSDPError):
    """Request could not be built (bad service, path or body)."""
    pass


class OperationFailedError(HSDPError):
    """Endpoint answered with a success status other than the one the operation requires."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)
