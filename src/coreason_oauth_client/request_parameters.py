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
Common parameter set shared by every grant flow.
"""

import uuid
from collections.abc import Iterable

from pydantic import BaseModel, ConfigDict, Field, SecretStr

from coreason_oauth_client.authority import Authority
from coreason_oauth_client.cache import TokenCacheProtocol
from coreason_oauth_client.client_key import ClientKey
from coreason_oauth_client.exceptions import ClientError, ErrorCode
from coreason_oauth_client.models import User, UserAssertion

# Always requested by flows that sign a user in.
RESERVED_SCOPES = ("openid", "profile", "offline_access")


class RequestContext(BaseModel):
    """Per-call tracing context; one correlation id spans discovery and the token round-trip."""

    model_config = ConfigDict(frozen=True)

    correlation_id: str = Field(default_factory=lambda: str(uuid.uuid4()))


def normalize_scopes(scopes: Iterable[str] | str | None) -> tuple[str, ...]:
    """
    Splits, trims and de-duplicates scopes (case-insensitively), keeping first-seen order.
    """
    if scopes is None:
        return ()
    if isinstance(scopes, str):
        scopes = scopes.split()

    seen: set[str] = set()
    result: list[str] = []
    for scope in scopes:
        cleaned = scope.strip() if isinstance(scope, str) else ""
        if cleaned and cleaned.lower() not in seen:
            seen.add(cleaned.lower())
            result.append(cleaned)
    return tuple(result)


class AuthenticationRequestParameters(BaseModel):
    """
    Everything an executor needs for one token acquisition. Frozen once built; grant specific
    fields are attached with `with_grant`.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    authority: Authority
    scopes: tuple[str, ...]
    client_key: ClientKey
    request_context: RequestContext = Field(default_factory=RequestContext)
    user: User | None = None
    token_cache: TokenCacheProtocol | None = None

    authorization_code: SecretStr | None = None
    code_verifier: SecretStr | None = None
    redirect_uri: str | None = None
    user_assertion: UserAssertion | None = None
    extra_query_parameters: str | None = None
    login_hint: str | None = None

    @property
    def client_id(self) -> str:
        return self.client_key.client_id

    @property
    def correlation_id(self) -> str:
        return self.request_context.correlation_id

    def with_grant(self, **fields: object) -> "AuthenticationRequestParameters":
        """Returns a validated copy carrying grant specific fields; the authority instance is shared."""
        return type(self)(**{**dict(self), **fields})


def build_request_parameters(
    authority: Authority,
    scopes: Iterable[str] | str | None,
    client_key: ClientKey,
    user: User | None = None,
    token_cache: TokenCacheProtocol | None = None,
    require_scopes: bool = True,
) -> AuthenticationRequestParameters:
    """
    Assembles the common parameters with a fresh correlation id.

    Raises:
        ClientError: If `require_scopes` and no usable scope was given.
    """
    normalized = normalize_scopes(scopes)
    if require_scopes and not normalized:
        raise ClientError("At least one scope must be requested.", ErrorCode.INVALID_SCOPE)

    return AuthenticationRequestParameters(
        authority=authority,
        scopes=normalized,
        client_key=client_key,
        request_context=RequestContext(),
        user=user,
        token_cache=token_cache,
    )
