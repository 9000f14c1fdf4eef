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
Configuration for the coreason-oauth-client package.
"""

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from coreason_oauth_client.authority import DEFAULT_AUTHORITY, canonicalize_authority, validate_authority_uri
from coreason_oauth_client.exceptions import ClientError


class CoreasonOAuthConfig(BaseSettings):
    """
    Configuration settings for coreason-oauth-client applications.

    Attributes:
        client_id (str): The application (client) id registered with the identity provider.
        authority (str): Default authority URL, canonicalized on load.
        redirect_uri (str | None): Redirect URI registered for the application.
        client_secret (SecretStr | None): Shared secret for confidential clients.
        validate_authority (bool): Run instance discovery for unknown AAD hosts.
        http_timeout (float): Timeout in seconds for all IdP network operations.
        max_response_bytes (int): Upper bound on any IdP response body.
        enforce_public_network (bool): Use the DNS pinning transport for internally created clients.
    """

    model_config = SettingsConfigDict(
        env_prefix="COREASON_OAUTH_",
        case_sensitive=False,
    )

    client_id: str = Field(..., min_length=1)
    authority: str = DEFAULT_AUTHORITY
    redirect_uri: str | None = None
    client_secret: SecretStr | None = None
    validate_authority: bool = True
    http_timeout: float = Field(default=10.0, gt=0, description="Timeout in seconds for all IdP network operations.")
    max_response_bytes: int = Field(default=1_000_000, gt=0)
    enforce_public_network: bool = True

    @field_validator("authority")
    @classmethod
    def normalize_authority(cls, v: str) -> str:
        """
        Ensures the authority is an absolute HTTPS URL with a tenant segment, in canonical form.

        Raises:
            ValueError: If the URL is rejected by the authority resolver.
        """
        canonical = canonicalize_authority(v.strip())
        try:
            validate_authority_uri(canonical)
        except ClientError as e:
            raise ValueError(str(e)) from e
        return canonical
