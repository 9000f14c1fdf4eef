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
Endpoint discovery and the validated-authority cache.
"""

import threading
from urllib.parse import urlencode

import httpx
from pydantic import ValidationError

from coreason_oauth_client.authority import Authority, AuthorityType
from coreason_oauth_client.exceptions import ClientError, ErrorCode, NetworkError, ServiceError
from coreason_oauth_client.models_internal import InstanceDiscoveryResponse, TenantDiscoveryResponse
from coreason_oauth_client.request_parameters import RequestContext
from coreason_oauth_client.transport import DEFAULT_MAX_RESPONSE_BYTES, execute_request
from coreason_oauth_client.utils.logger import logger

INSTANCE_DISCOVERY_ENDPOINT = "https://login.microsoftonline.com/common/discovery/instance"
INSTANCE_DISCOVERY_API_VERSION = "1.1"

_REQUIRED_DISCOVERY_FIELDS = (
    ("authorization_endpoint", "authorization endpoint"),
    ("token_endpoint", "token endpoint"),
    ("issuer", "issuer"),
)


class AuthorityCache:
    """
    Resolved authorities keyed by canonical authority string.

    Owned by the application (or shared explicitly between applications). Entries are stored as
    private copies, inserted only when fully resolved, and never replaced or evicted. Lookups and
    inserts hand out copies, so callers may mutate what they get back.
    """

    def __init__(self) -> None:
        self._entries: dict[str, Authority] = {}
        self._lock = threading.Lock()

    def get(self, canonical_authority: str) -> Authority | None:
        with self._lock:
            entry = self._entries.get(canonical_authority)
        return entry.model_copy(deep=True) if entry is not None else None

    def add(self, authority: Authority) -> Authority:
        """
        Inserts a resolved authority unless the key is already present.

        Returns:
            A copy of the entry held by the cache after the call (the first writer wins).

        Raises:
            ValueError: If the authority is not resolved.
        """
        if not authority.is_resolved:
            raise ValueError("Only resolved authorities can be cached.")
        snapshot = authority.model_copy(deep=True)
        with self._lock:
            entry = self._entries.setdefault(authority.canonical_authority, snapshot)
        return entry.model_copy(deep=True)

    def __contains__(self, canonical_authority: object) -> bool:
        with self._lock:
            return canonical_authority in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


async def _openid_configuration_endpoint(
    authority: Authority,
    context: RequestContext,
    client: httpx.AsyncClient,
    max_bytes: int,
) -> str:
    if authority.authority_type is AuthorityType.B2C:
        if authority.validate_authority:
            raise ClientError(
                "Authority validation is not supported for B2C authorities; set validate_authority=False.",
                ErrorCode.INVALID_AUTHORITY_TYPE,
            )
        return authority.openid_configuration_endpoint()

    if not authority.validate_authority or authority.is_trusted_host:
        return authority.openid_configuration_endpoint()

    query = urlencode(
        {
            "api-version": INSTANCE_DISCOVERY_API_VERSION,
            "authorization_endpoint": authority.default_authorization_endpoint(),
        }
    )
    url = f"{INSTANCE_DISCOVERY_ENDPOINT}?{query}"
    logger.debug(f"Validating authority host {authority.host} via instance discovery")
    payload = await execute_request(client, url, correlation_id=context.correlation_id, max_bytes=max_bytes)
    try:
        response = InstanceDiscoveryResponse(**payload)
    except ValidationError as e:
        raise NetworkError(f"Invalid instance discovery response from {url}: {e}", ErrorCode.INVALID_RESPONSE) from e

    if not response.tenant_discovery_endpoint:
        raise ServiceError(
            ErrorCode.INSTANCE_DISCOVERY_FAILED,
            f"Instance discovery did not return a tenant discovery endpoint for {authority.canonical_authority}",
            correlation_id=context.correlation_id,
        )
    return response.tenant_discovery_endpoint


async def resolve_endpoints(
    authority: Authority,
    user_principal_name: str | None,
    context: RequestContext,
    *,
    client: httpx.AsyncClient,
    cache: AuthorityCache,
    max_bytes: int = DEFAULT_MAX_RESPONSE_BYTES,
) -> None:
    """
    Populates the endpoints of `authority` in place, discovering them at most once per canonical
    authority for the lifetime of `cache`.

    Args:
        authority: Authority to resolve; untouched if already resolved.
        user_principal_name: Identity hint of the signing-in user, if known.
        context: Request context carrying the correlation id.
        client: HTTP client used for discovery.
        cache: Validated-authority cache.
        max_bytes: Maximum accepted response size.

    Raises:
        ServiceError: If the discovery document lacks a required field or the provider rejects the request.
        NetworkError: If the discovery request fails or returns something that is not a JSON object.
        ClientError: If the authority variant cannot be validated.
    """
    if authority.is_resolved:
        return

    cached = cache.get(authority.canonical_authority)
    if cached is not None:
        authority.copy_resolved_from(cached)
        logger.debug(f"Authority {authority.canonical_authority} resolved from cache")
        return

    if user_principal_name:
        logger.debug("Resolving endpoints with a user identity hint")

    endpoint = await _openid_configuration_endpoint(authority, context, client, max_bytes)
    logger.info(f"Discovering endpoints for {authority.canonical_authority} from {endpoint}")

    payload = await execute_request(client, endpoint, correlation_id=context.correlation_id, max_bytes=max_bytes)
    try:
        discovery = TenantDiscoveryResponse(**payload)
    except ValidationError as e:
        raise NetworkError(
            f"Invalid JSON response from OIDC discovery at {endpoint}: {e}", ErrorCode.INVALID_RESPONSE
        ) from e

    for field, label in _REQUIRED_DISCOVERY_FIELDS:
        if not getattr(discovery, field):
            logger.error(f"Tenant discovery failed: {label} missing at {endpoint}")
            raise ServiceError(
                ErrorCode.TENANT_DISCOVERY_FAILED,
                f"Tenant discovery failed: {label} was not found at {endpoint}",
                correlation_id=context.correlation_id,
            )

    # Work on a copy so a reader of `authority` never sees half of the fields applied.
    resolved = authority.model_copy(deep=True)
    resolved.apply_discovery(
        authorization_endpoint=discovery.authorization_endpoint,  # type: ignore[arg-type]
        token_endpoint=discovery.token_endpoint,  # type: ignore[arg-type]
        issuer=discovery.issuer,  # type: ignore[arg-type]
        end_session_endpoint=discovery.end_session_endpoint,
    )
    winner = cache.add(resolved)
    authority.copy_resolved_from(winner)
