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
Data models for the coreason-oauth-client package.
"""

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, SecretStr, model_validator

JWT_BEARER_ASSERTION_TYPE = "urn:ietf:params:oauth:grant-type:jwt-bearer"
CLIENT_ASSERTION_TYPE = "urn:ietf:params:oauth:client-assertion-type:jwt-bearer"


class UIBehavior(StrEnum):
    """Sign-in prompt behaviour, sent as the ``prompt`` query parameter."""

    SELECT_ACCOUNT = "select_account"
    FORCE_LOGIN = "login"
    CONSENT = "consent"
    NEVER = "none"


class AuthorizationStatus(StrEnum):
    SUCCESS = "success"
    USER_CANCEL = "user_cancel"
    ERROR = "error"


class User(BaseModel):
    """
    Identity of the signed-in user, built from the id token and client info.

    Attributes:
        identifier (str): Stable ``<uid>.<utid>`` identifier, or the subject when client info is absent.
        displayable_id (str | None): Usually the UPN or email.
        name (str | None): Display name.
        identity_provider (str | None): Issuer of the id token.
        tenant_id (str | None): Tenant that issued the token.
    """

    model_config = ConfigDict(frozen=True)

    identifier: str
    displayable_id: str | None = None
    name: str | None = None
    identity_provider: str | None = None
    tenant_id: str | None = None


class UserAssertion(BaseModel):
    """
    Inbound token a middle-tier service exchanges in the on-behalf-of flow.
    """

    model_config = ConfigDict(frozen=True)

    assertion: SecretStr
    assertion_type: str = JWT_BEARER_ASSERTION_TYPE


class ClientCertificate(BaseModel):
    """
    Certificate credential.

    Attributes:
        private_key_pem (SecretStr): PEM encoded RSA private key.
        thumbprint (str): Hex SHA-1 thumbprint of the certificate, sent as ``x5t``.
    """

    model_config = ConfigDict(frozen=True)

    private_key_pem: SecretStr
    thumbprint: str = Field(..., pattern=r"^[0-9a-fA-F]{40}$")


class ClientCredential(BaseModel):
    """
    Client authentication material of a confidential client. Exactly one form must be set.
    """

    model_config = ConfigDict(frozen=True)

    secret: SecretStr | None = None
    certificate: ClientCertificate | None = None
    assertion: SecretStr | None = None

    @model_validator(mode="after")
    def exactly_one(self) -> "ClientCredential":
        provided = [v for v in (self.secret, self.certificate, self.assertion) if v is not None]
        if len(provided) != 1:
            raise ValueError("Exactly one of secret, certificate or assertion must be provided.")
        return self


class TokenResponse(BaseModel):
    """
    Successful response of the token endpoint.

    Attributes:
        access_token (str): The access token issued by the authorization server.
        token_type (str): The type of the token (e.g. "Bearer").
        expires_in (int): The lifetime in seconds of the access token.
        refresh_token (str | None): The refresh token, if issued.
        id_token (str | None): The ID token, if issued.
        scope (str | None): Space separated granted scopes.
        client_info (str | None): Base64url encoded ``{"uid", "utid"}`` document.
    """

    model_config = ConfigDict(extra="ignore")

    access_token: str
    token_type: str = "Bearer"
    expires_in: int
    ext_expires_in: int | None = None
    refresh_token: str | None = None
    id_token: str | None = None
    scope: str | None = None
    client_info: str | None = None


class AuthenticationResult(BaseModel):
    """
    Outcome of a successful token acquisition.

    This model is frozen; the access token is kept out of ``repr``.
    """

    model_config = ConfigDict(frozen=True)

    access_token: str
    token_type: str = "Bearer"
    expires_on: datetime
    tenant_id: str | None = None
    user: User | None = None
    id_token: str | None = None
    scopes: list[str] = Field(default_factory=list)
    correlation_id: str | None = None

    def __repr__(self) -> str:
        return (
            f"AuthenticationResult(access_token='<REDACTED>', "
            f"token_type={self.token_type!r}, "
            f"expires_on={self.expires_on!r}, "
            f"tenant_id={self.tenant_id!r}, "
            f"scopes={self.scopes!r})"
        )

    def __str__(self) -> str:
        return self.__repr__()


class AuthorizationResult(BaseModel):
    """
    What the web UI collaborator hands back after the user interaction.
    """

    model_config = ConfigDict(frozen=True)

    status: AuthorizationStatus
    code: str | None = None
    state: str | None = None
    error: str | None = None
    error_description: str | None = None
