"""
Error types for the sign-in flow.

Every error carries the HTTP status the exchange endpoint answers with and a
caller-safe message. Upstream detail (response bodies, backend error payloads)
goes into `details` for logging only and is never sent to the caller.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class SignInError(Exception):
    """Base exception for all sign-in errors."""

    status_code: int = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} (details: {self.details})"
        return self.message


# ---- Caller errors (400) ----


class InvalidRequestError(SignInError):
    """Missing or malformed request input."""

    status_code = 400


class TokenExchangeError(SignInError):
    """The provider's token endpoint rejected the authorization code."""

    status_code = 400


class UserInfoError(SignInError):
    """The provider's user-info endpoint rejected the access token."""

    status_code = 400


# ---- System errors (500) ----


class ConfigurationError(SignInError):
    """Required server configuration is missing."""

    status_code = 500


class IdentityBackendError(SignInError):
    """The identity backend failed to look up, create or update a user, or to issue a session."""

    status_code = 500

    def __init__(
        self,
        message: str,
        *,
        upstream_status: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        merged = dict(details or {})
        if upstream_status is not None:
            merged.setdefault("status", upstream_status)
        super().__init__(message, merged)
        self.upstream_status = upstream_status
