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
Interactive authorization: build the authorize URL, let the user sign in, redeem the code.

The two phases are exposed separately so the caller can own the suspension point:
`InteractiveExecutor.build_authorization_uri` is pure, and `InteractiveExecutor.complete` resumes
with whatever the browser returned. `InteractiveExecutor.run` chains both through a `WebUI`.
"""

import secrets
from collections.abc import Iterable
from typing import Protocol
from urllib.parse import parse_qsl, urlencode

from authlib.common.security import generate_token
from authlib.oauth2.rfc7636 import create_s256_code_challenge
from pydantic import SecretStr

from coreason_oauth_client.discovery import resolve_endpoints
from coreason_oauth_client.exceptions import ClientError, CoreasonOAuthError, ErrorCode, ServiceError, UserCanceledError
from coreason_oauth_client.executors import AuthorizationCodeExecutor, ExecutorRuntime, ExecutorState, request_scopes
from coreason_oauth_client.models import AuthenticationResult, AuthorizationResult, AuthorizationStatus, UIBehavior
from coreason_oauth_client.request_parameters import AuthenticationRequestParameters, RequestContext, normalize_scopes
from coreason_oauth_client.utils.logger import logger

# Query parameters owned by the library; callers may not override them.
_RESERVED_QUERY_PARAMETERS = frozenset(
    {
        "client_id",
        "response_type",
        "redirect_uri",
        "scope",
        "state",
        "login_hint",
        "prompt",
        "code_challenge",
        "code_challenge_method",
        "client_info",
    }
)


class WebUI(Protocol):
    """Platform specific user interaction (system browser, embedded webview, ...)."""

    async def acquire_authorization(
        self, authorize_uri: str, redirect_uri: str, context: RequestContext
    ) -> AuthorizationResult:
        """Shows `authorize_uri` and returns once the browser reaches `redirect_uri` or the user gives up."""
        ...


def _parse_extra_query_parameters(extra: str | None) -> list[tuple[str, str]]:
    if not extra:
        return []
    pairs = parse_qsl(extra.lstrip("?&"), keep_blank_values=True)
    duplicated = sorted({key for key, _ in pairs if key.lower() in _RESERVED_QUERY_PARAMETERS})
    if duplicated:
        raise ClientError(
            f"Extra query parameters may not override {', '.join(duplicated)}.", ErrorCode.INVALID_REQUEST
        )
    return pairs


class InteractiveExecutor:
    """
    Interactive authorization code flow with PKCE.

    Attributes:
        params (AuthenticationRequestParameters): Common parameters; `redirect_uri` is required.
        state (ExecutorState): Lifecycle state.
    """

    def __init__(
        self,
        params: AuthenticationRequestParameters,
        runtime: ExecutorRuntime,
        web_ui: WebUI | None = None,
        additional_scopes: Iterable[str] | None = None,
        ui_behavior: UIBehavior = UIBehavior.SELECT_ACCOUNT,
        use_pkce: bool = True,
    ) -> None:
        if not params.redirect_uri:
            raise ClientError("Interactive authorization requires a redirect URI.", ErrorCode.INVALID_REQUEST)
        if not params.scopes:
            raise ClientError("At least one scope must be requested.", ErrorCode.INVALID_SCOPE)
        self._extra_query = _parse_extra_query_parameters(params.extra_query_parameters)

        self.params = params
        self.runtime = runtime
        self.web_ui = web_ui
        self.additional_scopes = normalize_scopes(additional_scopes)
        self.ui_behavior = ui_behavior
        self.state = ExecutorState.CREATED
        self.oauth_state = secrets.token_urlsafe(24)
        self._code_verifier = generate_token(64) if use_pkce else None

    def build_authorization_uri(self) -> str:
        """
        Builds the authorize endpoint URL. Performs no I/O.

        Uses the discovered authorize endpoint when the authority is already resolved, otherwise
        the variant's conventional endpoint.
        """
        authority = self.params.authority
        endpoint = authority.authorization_endpoint or authority.default_authorization_endpoint()

        scope = request_scopes(self.params, include_reserved=True)
        extra_scopes = [s for s in self.additional_scopes if s.lower() not in {x.lower() for x in scope.split()}]
        if extra_scopes:
            scope = " ".join([scope, *extra_scopes])

        query: list[tuple[str, str]] = [
            ("response_type", "code"),
            ("client_id", self.params.client_id),
            ("redirect_uri", self.params.redirect_uri or ""),
            ("scope", scope),
            ("state", self.oauth_state),
            ("client_info", "1"),
            ("prompt", str(self.ui_behavior)),
        ]
        if self.params.login_hint:
            query.append(("login_hint", self.params.login_hint))
        if self._code_verifier:
            query.append(("code_challenge", create_s256_code_challenge(self._code_verifier)))
            query.append(("code_challenge_method", "S256"))
        query.extend(self._extra_query)

        separator = "&" if "?" in endpoint else "?"
        return f"{endpoint}{separator}{urlencode(query)}"

    async def complete(self, authorization: AuthorizationResult) -> AuthenticationResult:
        """
        Resumes after the user interaction and redeems the authorization code.

        Raises:
            UserCanceledError: If the user canceled.
            ServiceError: If the provider returned an authorization error.
            ClientError: If the response does not belong to this request or carries no code.
        """
        try:
            code = self._check_authorization(authorization)
        except CoreasonOAuthError:
            self.state = ExecutorState.FAILED
            raise

        code_params = self.params.with_grant(
            authorization_code=SecretStr(code),
            code_verifier=SecretStr(self._code_verifier) if self._code_verifier else None,
        )
        exchange = AuthorizationCodeExecutor(code_params, self.runtime)
        try:
            return await exchange.run()
        finally:
            self.state = exchange.state

    def _check_authorization(self, authorization: AuthorizationResult) -> str:
        if authorization.status is AuthorizationStatus.USER_CANCEL:
            logger.info("Interactive authorization canceled by the user.")
            raise UserCanceledError()

        if authorization.status is AuthorizationStatus.ERROR:
            raise ServiceError(
                authorization.error or ErrorCode.AUTHENTICATION_UI_FAILED,
                authorization.error_description or "Authorization failed.",
                correlation_id=self.params.correlation_id,
            )

        if authorization.state != self.oauth_state:
            raise ClientError("Returned state does not match the request.", ErrorCode.STATE_MISMATCH)

        if not authorization.code:
            raise ClientError("Authorization response did not contain a code.", ErrorCode.AUTHENTICATION_UI_FAILED)
        return authorization.code

    async def run(self) -> AuthenticationResult:
        """Resolves endpoints, drives the web UI, then redeems the code."""
        if self.web_ui is None:
            raise ClientError("Interactive authorization requires a web UI.", ErrorCode.INVALID_REQUEST)

        self.state = ExecutorState.BUILDING
        try:
            await resolve_endpoints(
                self.params.authority,
                self.params.login_hint,
                self.params.request_context,
                client=self.runtime.client,
                cache=self.runtime.authority_cache,
                max_bytes=self.runtime.max_response_bytes,
            )
            authorize_uri = self.build_authorization_uri()
            self.state = ExecutorState.AWAITING_NETWORK
            authorization = await self.web_ui.acquire_authorization(
                authorize_uri, self.params.redirect_uri or "", self.params.request_context
            )
        except CoreasonOAuthError:
            self.state = ExecutorState.FAILED
            raise

        return await self.complete(authorization)
