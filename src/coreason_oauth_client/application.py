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
Public and confidential client applications (async core and sync facades).
"""

from collections.abc import Iterable
from typing import Any

import anyio.from_thread
import httpx
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from pydantic import SecretStr

from coreason_oauth_client.authority import Authority, resolve_authority
from coreason_oauth_client.cache import MemoryTokenCache, TokenCacheProtocol
from coreason_oauth_client.client_key import ClientKey
from coreason_oauth_client.config import CoreasonOAuthConfig
from coreason_oauth_client.discovery import AuthorityCache
from coreason_oauth_client.exceptions import ClientError, ErrorCode
from coreason_oauth_client.executors import (
    AuthorizationCodeExecutor,
    ClientCredentialExecutor,
    ExecutorRuntime,
    OnBehalfOfExecutor,
)
from coreason_oauth_client.interactive import InteractiveExecutor, WebUI
from coreason_oauth_client.models import (
    AuthenticationResult,
    ClientCredential,
    UIBehavior,
    User,
    UserAssertion,
)
from coreason_oauth_client.request_parameters import AuthenticationRequestParameters, build_request_parameters
from coreason_oauth_client.transport import PinnedHTTPTransport
from coreason_oauth_client.utils.logger import logger

DEFAULT_REDIRECT_URI = "urn:ietf:wg:oauth:2.0:oob"


class ClientApplicationBase:
    """
    Shared plumbing: HTTP client lifecycle, authority resolution and request parameter assembly.
    Handles resources via async context manager.
    """

    def __init__(
        self,
        config: CoreasonOAuthConfig,
        client: httpx.AsyncClient | None = None,
        authority_cache: AuthorityCache | None = None,
        user_token_cache: TokenCacheProtocol | None = None,
    ) -> None:
        """
        Initialize the application.

        Args:
            config: The configuration object.
            client: External async client (optional). If not provided, one is created from the config.
            authority_cache: Validated-authority cache, shareable between applications.
            user_token_cache: Cache for user tokens. Defaults to a `MemoryTokenCache`.
        """
        self.config = config
        self._internal_client = client is None

        if client:
            self._client = client
        else:
            transport = PinnedHTTPTransport() if config.enforce_public_network else None
            self._client = httpx.AsyncClient(transport=transport, timeout=config.http_timeout)

        # Instrument the client for distributed tracing
        HTTPXClientInstrumentor().instrument_client(self._client)

        self.authority_cache = authority_cache if authority_cache is not None else AuthorityCache()
        self.user_token_cache = user_token_cache if user_token_cache is not None else MemoryTokenCache()
        self.runtime = ExecutorRuntime(self._client, self.authority_cache, config.max_response_bytes)

    @property
    def client_id(self) -> str:
        return self.config.client_id

    async def __aenter__(self) -> Any:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if self._internal_client:
            await self._client.aclose()

    def create_authority(self, authority: str | None = None) -> Authority:
        """Resolves the per-call authority override, or the configured default."""
        return resolve_authority(authority or self.config.authority, self.config.validate_authority)

    def _prime_from_cache(self, authority: Authority) -> None:
        cached = self.authority_cache.get(authority.canonical_authority)
        if cached is not None:
            authority.copy_resolved_from(cached)

    def create_request_parameters(
        self,
        authority: Authority,
        scopes: Iterable[str] | str | None,
        user: User | None,
        token_cache: TokenCacheProtocol | None,
    ) -> AuthenticationRequestParameters:
        """Builds the common parameters; subclasses attach their client authentication material."""
        return build_request_parameters(
            authority,
            scopes,
            ClientKey(client_id=self.client_id),
            user=user,
            token_cache=token_cache,
        )

    def _authorization_request_url(
        self,
        params: AuthenticationRequestParameters,
        additional_scopes: Iterable[str] | None,
        ui_behavior: UIBehavior,
    ) -> str:
        self._prime_from_cache(params.authority)
        executor = InteractiveExecutor(
            params, self.runtime, additional_scopes=additional_scopes, ui_behavior=ui_behavior, use_pkce=False
        )
        return executor.build_authorization_uri()


class PublicClientApplicationAsync(ClientApplicationBase):
    """
    Application that cannot keep a secret (desktop, mobile, CLI). Signs users in interactively.
    """

    @property
    def redirect_uri(self) -> str:
        return self.config.redirect_uri or DEFAULT_REDIRECT_URI

    def begin_interactive(
        self,
        scopes: Iterable[str] | str,
        login_hint: str | None = None,
        ui_behavior: UIBehavior = UIBehavior.SELECT_ACCOUNT,
        extra_query_parameters: str | None = None,
        additional_scopes: Iterable[str] | None = None,
        authority: str | None = None,
        web_ui: WebUI | None = None,
        user: User | None = None,
    ) -> InteractiveExecutor:
        """
        Prepares an interactive request without running it.

        The caller may show `build_authorization_uri()` itself and resume with `complete()`, or
        call `run()` when a `web_ui` was given. A known `user` pre-fills the login hint and stands
        in for the result user when the provider returns no id token.
        """
        if not login_hint and user is not None:
            login_hint = user.displayable_id
        authority_instance = self.create_authority(authority)
        params = self.create_request_parameters(
            authority_instance, scopes, user, self.user_token_cache
        ).with_grant(
            redirect_uri=self.redirect_uri,
            extra_query_parameters=extra_query_parameters,
            login_hint=login_hint,
        )
        return InteractiveExecutor(
            params, self.runtime, web_ui=web_ui, additional_scopes=additional_scopes, ui_behavior=ui_behavior
        )

    async def acquire_token_interactive(
        self,
        scopes: Iterable[str] | str,
        web_ui: WebUI,
        login_hint: str | None = None,
        ui_behavior: UIBehavior = UIBehavior.SELECT_ACCOUNT,
        extra_query_parameters: str | None = None,
        additional_scopes: Iterable[str] | None = None,
        authority: str | None = None,
        user: User | None = None,
    ) -> AuthenticationResult:
        """
        Signs the user in through `web_ui` and returns the acquired token.

        Raises:
            UserCanceledError: If the user closed the browser.
            ServiceError: If the provider rejected the authorization or the code exchange.
            NetworkError: On transport failure.
            ClientError: On invalid input.
        """
        executor = self.begin_interactive(
            scopes,
            login_hint=login_hint,
            ui_behavior=ui_behavior,
            extra_query_parameters=extra_query_parameters,
            additional_scopes=additional_scopes,
            authority=authority,
            web_ui=web_ui,
            user=user,
        )
        return await executor.run()

    def get_authorization_request_url(
        self,
        scopes: Iterable[str] | str,
        login_hint: str | None = None,
        extra_query_parameters: str | None = None,
        additional_scopes: Iterable[str] | None = None,
        authority: str | None = None,
        ui_behavior: UIBehavior = UIBehavior.SELECT_ACCOUNT,
    ) -> str:
        """Returns the authorize URL to show the user. Performs no network call."""
        authority_instance = self.create_authority(authority)
        params = self.create_request_parameters(
            authority_instance, scopes, None, self.user_token_cache
        ).with_grant(
            redirect_uri=self.redirect_uri,
            extra_query_parameters=extra_query_parameters,
            login_hint=login_hint,
        )
        return self._authorization_request_url(params, additional_scopes, ui_behavior)


class ConfidentialClientApplicationAsync(ClientApplicationBase):
    """
    Application able to authenticate itself (web apps, daemons, middle-tier APIs).
    """

    def __init__(
        self,
        config: CoreasonOAuthConfig,
        client_credential: ClientCredential | None = None,
        client: httpx.AsyncClient | None = None,
        authority_cache: AuthorityCache | None = None,
        user_token_cache: TokenCacheProtocol | None = None,
        app_token_cache: TokenCacheProtocol | None = None,
    ) -> None:
        """
        Initialize the confidential application.

        Args:
            config: The configuration object.
            client_credential: Credential of the client. Defaults to `config.client_secret`.
            client: External async client (optional).
            authority_cache: Validated-authority cache, shareable between applications.
            user_token_cache: Cache for tokens acquired on behalf of users.
            app_token_cache: Cache for tokens acquired for the application itself.

        Raises:
            ClientError: If no credential is available.
        """
        if client_credential is None and config.client_secret is not None:
            client_credential = ClientCredential(secret=config.client_secret)
        if client_credential is None:
            raise ClientError("A confidential client requires a client credential.", ErrorCode.INVALID_REQUEST)

        super().__init__(config, client=client, authority_cache=authority_cache, user_token_cache=user_token_cache)
        self.client_credential = client_credential
        self.app_token_cache = app_token_cache if app_token_cache is not None else MemoryTokenCache()

    def create_request_parameters(
        self,
        authority: Authority,
        scopes: Iterable[str] | str | None,
        user: User | None,
        token_cache: TokenCacheProtocol | None,
    ) -> AuthenticationRequestParameters:
        return build_request_parameters(
            authority,
            scopes,
            ClientKey(client_id=self.client_id, credential=self.client_credential),
            user=user,
            token_cache=token_cache,
        )

    async def acquire_token_for_client(
        self, scopes: Iterable[str] | str, authority: str | None = None
    ) -> AuthenticationResult:
        """
        Acquires an application token (client credentials grant), e.g. for ``https://graph.microsoft.com/.default``.
        """
        params = self.create_request_parameters(self.create_authority(authority), scopes, None, self.app_token_cache)
        return await ClientCredentialExecutor(params, self.runtime).run()

    async def acquire_token_on_behalf_of(
        self,
        scopes: Iterable[str] | str,
        user_assertion: UserAssertion | str,
        authority: str | None = None,
    ) -> AuthenticationResult:
        """
        Exchanges the caller's inbound token for a token to a downstream API.

        Args:
            scopes: Scopes of the downstream API.
            user_assertion: The inbound bearer token, raw or wrapped.
            authority: Per-call authority override.
        """
        if isinstance(user_assertion, str):
            user_assertion = UserAssertion(assertion=SecretStr(user_assertion))
        params = self.create_request_parameters(
            self.create_authority(authority), scopes, None, self.user_token_cache
        ).with_grant(user_assertion=user_assertion)
        return await OnBehalfOfExecutor(params, self.runtime).run()

    async def acquire_token_by_authorization_code(
        self,
        authorization_code: str,
        scopes: Iterable[str] | str,
        redirect_uri: str | None = None,
        authority: str | None = None,
        code_verifier: str | None = None,
    ) -> AuthenticationResult:
        """
        Redeems an authorization code obtained through `get_authorization_request_url`.

        Args:
            authorization_code: The code returned to the redirect URI.
            scopes: Scopes requested in the authorize step.
            redirect_uri: Must equal the redirect URI of the authorize step. Defaults to the configured one.
            authority: Per-call authority override.
            code_verifier: PKCE verifier, when the authorize step used a challenge.
        """
        redirect = redirect_uri or self.config.redirect_uri
        params = self.create_request_parameters(
            self.create_authority(authority), scopes, None, self.user_token_cache
        ).with_grant(
            authorization_code=SecretStr(authorization_code),
            redirect_uri=redirect,
            code_verifier=SecretStr(code_verifier) if code_verifier else None,
        )
        return await AuthorizationCodeExecutor(params, self.runtime).run()

    def get_authorization_request_url(
        self,
        scopes: Iterable[str] | str,
        redirect_uri: str | None = None,
        login_hint: str | None = None,
        extra_query_parameters: str | None = None,
        additional_scopes: Iterable[str] | None = None,
        authority: str | None = None,
        ui_behavior: UIBehavior = UIBehavior.SELECT_ACCOUNT,
    ) -> str:
        """Returns the authorize URL for a web app sign-in. Performs no network call."""
        # The authorize request only identifies the client; the credential is used at redemption.
        params = build_request_parameters(
            self.create_authority(authority),
            scopes,
            ClientKey(client_id=self.client_id),
            token_cache=self.user_token_cache,
        ).with_grant(
            redirect_uri=redirect_uri or self.config.redirect_uri,
            extra_query_parameters=extra_query_parameters,
            login_hint=login_hint,
        )
        return self._authorization_request_url(params, additional_scopes, ui_behavior)


class _SyncFacade:
    """Runs an async application on a private event loop thread."""

    _async: Any

    def _start(self) -> None:
        self._portal_cm = anyio.from_thread.start_blocking_portal()
        self._portal = self._portal_cm.__enter__()

    def close(self) -> None:
        """Releases the HTTP client and stops the event loop thread."""
        if self._portal_cm is None:
            return
        try:
            self._portal.call(self._async.__aexit__, None, None, None)
        finally:
            self._portal_cm.__exit__(None, None, None)
            self._portal_cm = None
            logger.debug(f"{type(self).__name__} closed")

    def __enter__(self) -> Any:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()


class PublicClientApplication(_SyncFacade):
    """
    Sync facade for PublicClientApplicationAsync.
    """

    def __init__(self, config: CoreasonOAuthConfig, **kwargs: Any) -> None:
        self._async = PublicClientApplicationAsync(config, **kwargs)
        self._start()

    def acquire_token_interactive(
        self, scopes: Iterable[str] | str, web_ui: WebUI, **kwargs: Any
    ) -> AuthenticationResult:
        return self._portal.call(  # type: ignore[no-any-return]
            lambda: self._async.acquire_token_interactive(scopes, web_ui, **kwargs)
        )

    def get_authorization_request_url(self, scopes: Iterable[str] | str, **kwargs: Any) -> str:
        return self._async.get_authorization_request_url(scopes, **kwargs)  # type: ignore[no-any-return]


class ConfidentialClientApplication(_SyncFacade):
    """
    Sync facade for ConfidentialClientApplicationAsync.
    """

    def __init__(self, config: CoreasonOAuthConfig, **kwargs: Any) -> None:
        self._async = ConfidentialClientApplicationAsync(config, **kwargs)
        self._start()

    def acquire_token_for_client(
        self, scopes: Iterable[str] | str, authority: str | None = None
    ) -> AuthenticationResult:
        return self._portal.call(self._async.acquire_token_for_client, scopes, authority)  # type: ignore[no-any-return]

    def acquire_token_on_behalf_of(
        self, scopes: Iterable[str] | str, user_assertion: UserAssertion | str, authority: str | None = None
    ) -> AuthenticationResult:
        return self._portal.call(  # type: ignore[no-any-return]
            self._async.acquire_token_on_behalf_of, scopes, user_assertion, authority
        )

    def acquire_token_by_authorization_code(
        self, authorization_code: str, scopes: Iterable[str] | str, **kwargs: Any
    ) -> AuthenticationResult:
        return self._portal.call(  # type: ignore[no-any-return]
            lambda: self._async.acquire_token_by_authorization_code(authorization_code, scopes, **kwargs)
        )

    def get_authorization_request_url(self, scopes: Iterable[str] | str, **kwargs: Any) -> str:
        return self._async.get_authorization_request_url(scopes, **kwargs)  # type: ignore[no-any-return]
