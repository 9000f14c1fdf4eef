# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_oauth_client

"""
Custom exceptions for the coreason-oauth-client package.

Every failure surfaced to a caller is one of three kinds:

* ``ClientError``: the caller can fix it (bad authority, empty scopes, cancellation).
* ``ServiceError``: the identity provider rejected the request.
* ``NetworkError``: transport failure, or a provider response too malformed to classify.
"""

from enum import StrEnum


class ErrorCode(StrEnum):
    INVALID_AUTHORITY = "invalid_authority"
    INVALID_AUTHORITY_TYPE = "invalid_authority_type"
    INVALID_SCOPE = "invalid_scope"
    INVALID_REQUEST = "invalid_request"
    AUTHENTICATION_CANCELED = "authentication_canceled"
    AUTHENTICATION_UI_FAILED = "authentication_ui_failed"
    STATE_MISMATCH = "state_mismatch"
    TENANT_DISCOVERY_FAILED = "tenant_discovery_failed"
    INSTANCE_DISCOVERY_FAILED = "instance_discovery_failed"
    UNKNOWN_ERROR = "unknown_error"
    REQUEST_FAILED = "request_failed"
    INVALID_RESPONSE = "invalid_response"
    RESPONSE_TOO_LARGE = "response_too_large"
    BLOCKED_ADDRESS = "blocked_address"


class CoreasonOAuthError(Exception):
    """Base exception for all coreason-oauth-client errors."""

    def __init__(self, message: str, error_code: str = ErrorCode.UNKNOWN_ERROR) -> None:
        super().__init__(message)
        self.error_code = str(error_code)


class ClientError(CoreasonOAuthError):
    """Raised for caller-correctable misuse, detected before any network activity."""


class UserCanceledError(ClientError):
    """Raised when the user closes or cancels the interactive sign-in."""

    def __init__(self, message: str = "User canceled authentication.") -> None:
        super().__init__(message, ErrorCode.AUTHENTICATION_CANCELED)


class ServiceError(CoreasonOAuthError):
    """
    Raised when the identity provider rejects a request.

    Attributes:
        status_code (int): HTTP status of the provider response (0 when not from HTTP).
        claims (str | None): Claims challenge the caller must satisfy before retrying.
        correlation_id (str | None): Correlation id of the failed request.
    """

    def __init__(
        self,
        error_code: str,
        message: str,
        status_code: int = 0,
        claims: str | None = None,
        correlation_id: str | None = None,
    ) -> None:
        super().__init__(message, error_code)
        self.status_code = status_code
        self.claims = claims
        self.correlation_id = correlation_id

    def __str__(self) -> str:
        base = super().__str__()
        return f"{base}\n\tStatusCode: {self.status_code}\n\tClaims: {self.claims}"


class NetworkError(CoreasonOAuthError):
    """Raised when the transport fails or the provider response cannot be classified."""

    def __init__(self, message: str, error_code: str = ErrorCode.REQUEST_FAILED, status_code: int = 0) -> None:
        super().__init__(message, error_code)
        self.status_code = status_code


class OversizedResponseError(NetworkError):
    """Raised when an HTTP response is too large."""

    def __init__(self, message: str = "Response too large") -> None:
        super().__init__(message, ErrorCode.RESPONSE_TOO_LARGE)


class SecurityError(NetworkError):
    """Raised when the pinned transport refuses to connect to a blocked address."""

    def __init__(self, message: str) -> None:
        super().__init__(message, ErrorCode.BLOCKED_ADDRESS)
