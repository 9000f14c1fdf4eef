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
Grant-flow executors.

Every executor follows Build -> Send -> Parse -> Cache -> Return through `run_token_request`,
supplying only its grant specific form fields.
"""

from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from enum import StrEnum
from typing import Protocol

import httpx
from pydantic import ValidationError

from coreason_oauth_client.async_context import reset_correlation_id, set_correlation_id
from coreason_oauth_client.cache import TokenCacheKey
from coreason_oauth_client.discovery import AuthorityCache, resolve_endpoints
from coreason_oauth_client.exceptions import ClientError, CoreasonOAuthError, ErrorCode, NetworkError
from coreason_oauth_client.id_token import build_user, decode_client_info, decode_id_token
from coreason_oauth_client.models import AuthenticationResult, TokenResponse
from coreason_oauth_client.request_parameters import RESERVED_SCOPES, AuthenticationRequestParameters
from coreason_oauth_client.transport import DEFAULT_MAX_RESPONSE_BYTES, execute_request
from coreason_oauth_client.utils.logger import logger

CLIENT_CREDENTIALS_GRANT = "client_credentials"
AUTHORIZATION_CODE_GRANT = "authorization_code"
ON_BEHALF_OF_GRANT = "urn:ietf:params:oauth:grant-type:jwt-bearer"


class ExecutorState(StrEnum):
    CREATED = "created"
    BUILDING = "building"
    AWAITING_NETWORK = "awaiting_network"
    PARSING_RESPONSE = "parsing_response"
    COMPLETED = "completed"
    FAILED = "failed"


class ExecutorRuntime:
    """
    Shared collaborators of all executors of one application.

    Attributes:
        client (httpx.AsyncClient): HTTP client for discovery and token requests.
        authority_cache (AuthorityCache): Validated-authority cache.
        max_response_bytes (int): Upper bound on IdP response bodies.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        authority_cache: AuthorityCache,
        max_response_bytes: int = DEFAULT_MAX_RESPONSE_BYTES,
    ) -> None:
        self.client = client
        self.authority_cache = authority_cache
        self.max_response_bytes = max_response_bytes


class TokenGrantExecutor(Protocol):
    """One OAuth2 grant type."""

    state: ExecutorState

    async def run(self) -> AuthenticationResult: ...


def request_scopes(params: AuthenticationRequestParameters, include_reserved: bool) -> str:
    scopes = list(params.scopes)
    if include_reserved:
        known = {scope.lower() for scope in scopes}
        scopes.extend(scope for scope in RESERVED_SCOPES if scope not in known)
    return " ".join(scopes)


def _build_result(params: AuthenticationRequestParameters, response: TokenResponse) -> AuthenticationResult:
    claims = decode_id_token(response.id_token) if response.id_token else None
    client_info = decode_client_info(response.client_info) if response.client_info else None
    user = build_user(claims, client_info) or params.user
    tenant_id = (claims.tid if claims else None) or (client_info.utid if client_info else None)

    if params.authority.update_tenant_id(tenant_id):
        logger.debug(f"Generic tenant replaced by {tenant_id}")

    return AuthenticationResult(
        access_token=response.access_token,
        token_type=response.token_type,
        expires_on=datetime.now(timezone.utc) + timedelta(seconds=response.expires_in),
        tenant_id=tenant_id,
        user=user,
        id_token=response.id_token,
        scopes=response.scope.split() if response.scope else list(params.scopes),
        correlation_id=params.correlation_id,
    )


async def run_token_request(
    executor: TokenGrantExecutor,
    params: AuthenticationRequestParameters,
    build_body: Callable[[], dict[str, str]],
    runtime: ExecutorRuntime,
) -> AuthenticationResult:
    """
    Resolves the authority, posts to the token endpoint, parses the response and writes the cache.

    Updates `executor.state` as it goes. The cache is written only after a complete success.

    Raises:
        ServiceError: If the provider rejects discovery or the grant.
        NetworkError: On transport failure or an unreadable response.
        ClientError: If the grant inputs are invalid.
    """
    token = set_correlation_id(params.correlation_id)
    try:
        executor.state = ExecutorState.BUILDING
        await resolve_endpoints(
            params.authority,
            params.login_hint,
            params.request_context,
            client=runtime.client,
            cache=runtime.authority_cache,
            max_bytes=runtime.max_response_bytes,
        )
        token_endpoint = params.authority.token_endpoint
        if not token_endpoint:
            raise ClientError("Authority has no token endpoint after discovery.", ErrorCode.INVALID_AUTHORITY)

        body = build_body()
        body.update(
            params.client_key.authentication_fields(
                audience=params.authority.self_signed_jwt_audience or token_endpoint
            )
        )
        body["client_info"] = "1"

        executor.state = ExecutorState.AWAITING_NETWORK
        logger.debug(f"Requesting token ({body.get('grant_type')}) from {token_endpoint}")
        payload = await execute_request(
            runtime.client,
            token_endpoint,
            method="POST",
            data=body,
            correlation_id=params.correlation_id,
            max_bytes=runtime.max_response_bytes,
        )

        executor.state = ExecutorState.PARSING_RESPONSE
        try:
            response = TokenResponse(**payload)
        except ValidationError as e:
            raise NetworkError(f"Invalid token response: {e}", ErrorCode.INVALID_RESPONSE) from e
        result = _build_result(params, response)

        if params.token_cache is not None:
            key = TokenCacheKey.build(
                params.authority.canonical_authority,
                params.client_id,
                params.scopes,
                result.user.identifier if result.user else None,
            )
            params.token_cache.write(key, result)

        executor.state = ExecutorState.COMPLETED
        logger.info("Token acquired successfully.")
        return result
    except CoreasonOAuthError as e:
        executor.state = ExecutorState.FAILED
        logger.warning(f"Token request failed: {type(e).__name__} ({e.error_code})")
        raise
    finally:
        reset_correlation_id(token)


class ClientCredentialExecutor:
    """Service-to-service grant using only the client's own credential."""

    def __init__(self, params: AuthenticationRequestParameters, runtime: ExecutorRuntime) -> None:
        if not params.client_key.has_credential:
            raise ClientError("Client credentials grant requires a client credential.", ErrorCode.INVALID_REQUEST)
        if not params.scopes:
            raise ClientError("At least one scope must be requested.", ErrorCode.INVALID_SCOPE)
        self.params = params
        self.runtime = runtime
        self.state = ExecutorState.CREATED

    def _body(self) -> dict[str, str]:
        return {
            "grant_type": CLIENT_CREDENTIALS_GRANT,
            "scope": request_scopes(self.params, include_reserved=False),
        }

    async def run(self) -> AuthenticationResult:
        return await run_token_request(self, self.params, self._body, self.runtime)


class OnBehalfOfExecutor:
    """Exchanges an inbound user assertion for a token to a downstream resource."""

    def __init__(self, params: AuthenticationRequestParameters, runtime: ExecutorRuntime) -> None:
        assertion = params.user_assertion
        if assertion is None or not assertion.assertion.get_secret_value().strip():
            raise ClientError("On-behalf-of grant requires a user assertion.", ErrorCode.INVALID_REQUEST)
        if not params.scopes:
            raise ClientError("At least one scope must be requested.", ErrorCode.INVALID_SCOPE)
        self.params = params
        self._assertion = assertion.assertion
        self.runtime = runtime
        self.state = ExecutorState.CREATED

    def _body(self) -> dict[str, str]:
        return {
            "grant_type": ON_BEHALF_OF_GRANT,
            "assertion": self._assertion.get_secret_value(),
            "requested_token_use": "on_behalf_of",
            "scope": request_scopes(self.params, include_reserved=True),
        }

    async def run(self) -> AuthenticationResult:
        return await run_token_request(self, self.params, self._body, self.runtime)


class AuthorizationCodeExecutor:
    """Redeems a one-time authorization code; the redirect URI must match the authorize request."""

    def __init__(self, params: AuthenticationRequestParameters, runtime: ExecutorRuntime) -> None:
        code = params.authorization_code
        if code is None or not code.get_secret_value().strip():
            raise ClientError("Authorization code must not be empty.", ErrorCode.INVALID_REQUEST)
        if not params.redirect_uri:
            raise ClientError("Authorization code grant requires the redirect URI.", ErrorCode.INVALID_REQUEST)
        self.params = params
        self._code = code
        self._redirect_uri: str = params.redirect_uri
        self.runtime = runtime
        self.state = ExecutorState.CREATED

    def _body(self) -> dict[str, str]:
        body = {
            "grant_type": AUTHORIZATION_CODE_GRANT,
            "code": self._code.get_secret_value(),
            "redirect_uri": self._redirect_uri,
            "scope": request_scopes(self.params, include_reserved=True),
        }
        if self.params.code_verifier is not None:
            body["code_verifier"] = self.params.code_verifier.get_secret_value()
        return body

    async def run(self) -> AuthenticationResult:
        return await run_token_request(self, self.params, self._body, self.runtime)
