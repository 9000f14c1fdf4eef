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
Internal data models for the coreason-oauth-client package.
These are not exposed in the public API.
"""

import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TenantDiscoveryResponse(BaseModel):
    """
    OIDC configuration from .well-known/openid-configuration.

    Required fields are optional here so that the caller can name exactly which one is missing.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    authorization_endpoint: str | None = Field(default=None, description="The authorize endpoint URL.")
    token_endpoint: str | None = Field(default=None, description="The token endpoint URL.")
    issuer: str | None = Field(default=None, description="The OIDC issuer URL.")
    end_session_endpoint: str | None = Field(default=None, description="The end session endpoint URL.")


class InstanceDiscoveryResponse(BaseModel):
    """Response of the AAD instance discovery endpoint."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    tenant_discovery_endpoint: str | None = None
    error: str | None = None
    error_description: str | None = None


class ErrorResponse(BaseModel):
    """Structured OAuth2 error body."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    error: str
    error_description: str | None = None
    claims: str | None = None
    correlation_id: str | None = None

    @field_validator("claims", mode="before")
    @classmethod
    def serialize_claims(cls, v: Any) -> str | None:
        """Claims challenges are sometimes sent as a JSON object rather than a string."""
        if v is None or isinstance(v, str):
            return v
        return json.dumps(v, separators=(",", ":"))


class ClientInfo(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    uid: str | None = None
    utid: str | None = None


class IdTokenClaims(BaseModel):
    """Subset of id token claims used to describe the user. Signature is not checked."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    iss: str | None = None
    sub: str | None = None
    oid: str | None = None
    tid: str | None = None
    name: str | None = None
    preferred_username: str | None = None
    upn: str | None = None
    email: str | None = None
