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
Authority model and resolver.

An authority is the identity provider tenant endpoint an application trusts to issue tokens,
e.g. ``https://login.microsoftonline.com/contoso.onmicrosoft.com/``. Resolution from a raw URL is
purely local; endpoint discovery lives in `coreason_oauth_client.discovery`.
"""

import re
from enum import StrEnum
from urllib.parse import urlsplit

from pydantic import BaseModel, PrivateAttr

from coreason_oauth_client.exceptions import ClientError, ErrorCode

DEFAULT_AUTHORITY = "https://login.microsoftonline.com/common/"

# Placeholder tenants accepting any organizational account / any account.
TENANTLESS_TENANT_NAMES = ("common", "organizations")

B2C_MARKER = "tfp"
ADFS_MARKER = "adfs"

# Well-known cloud hosts that never need instance discovery.
TRUSTED_HOSTS = frozenset(
    {
        "login.windows.net",
        "login.chinacloudapi.cn",
        "login.cloudgovapi.us",
        "login.microsoftonline.com",
        "login.microsoftonline.de",
        "login.microsoftonline.us",
    }
)


class AuthorityType(StrEnum):
    AAD = "aad"
    B2C = "b2c"


# Per-variant endpoint templates, formatted with the canonical authority.
_VARIANT_TEMPLATES: dict[AuthorityType, dict[str, str]] = {
    AuthorityType.AAD: {
        "openid_configuration": "{canonical}v2.0/.well-known/openid-configuration",
        "authorize": "{canonical}oauth2/v2.0/authorize",
    },
    AuthorityType.B2C: {
        "openid_configuration": "{canonical}v2.0/.well-known/openid-configuration",
        "authorize": "{canonical}oauth2/v2.0/authorize",
    },
}


def _path_segments(path: str) -> list[str]:
    return [segment for segment in path.split("/") if segment]


def canonicalize_authority(uri: str) -> str:
    """
    Returns the canonical form of an authority URL: lower-cased, one trailing slash, and the path
    truncated to the tenant segment (``tfp/<tenant>/<policy>`` for B2C).

    The function is idempotent. Input that is not an absolute URL is only lower-cased and
    slash-terminated so that `validate_authority_uri` can report the defect.
    """
    if not uri or not uri.strip():
        return uri

    lowered = uri.strip().lower()
    parts = urlsplit(lowered)
    if not parts.scheme or not parts.netloc:
        return lowered if lowered.endswith("/") else f"{lowered}/"

    segments = _path_segments(parts.path)
    if not segments:
        return f"{parts.scheme}://{parts.netloc}/"

    keep = 3 if segments[0] == B2C_MARKER and len(segments) >= 3 else 1
    return f"{parts.scheme}://{parts.netloc}/{'/'.join(segments[:keep])}/"


def validate_authority_uri(authority: str) -> None:
    """
    Checks that `authority` is an absolute HTTPS URL with a non-empty first path segment.

    Raises:
        ClientError: Naming the specific defect.
    """
    if not authority or not authority.strip():
        raise ClientError("Authority must not be empty.", ErrorCode.INVALID_AUTHORITY)

    if any(ch.isspace() for ch in authority.strip()):
        raise ClientError(f"Authority '{authority}' is not a well-formed URL.", ErrorCode.INVALID_AUTHORITY)

    parts = urlsplit(authority.strip())
    if not parts.scheme or not parts.netloc:
        raise ClientError(
            f"Authority '{authority}' is not an absolute URL: missing scheme.", ErrorCode.INVALID_AUTHORITY
        )

    try:
        port = parts.port
    except ValueError as e:
        raise ClientError(f"Authority '{authority}' has an invalid port: {e}", ErrorCode.INVALID_AUTHORITY) from e
    if port == 0:
        raise ClientError(f"Authority '{authority}' has an invalid port: 0", ErrorCode.INVALID_AUTHORITY)

    if parts.scheme.lower() != "https":
        raise ClientError(
            f"Authority '{authority}' uses a non-HTTPS scheme '{parts.scheme}'.", ErrorCode.INVALID_AUTHORITY
        )

    if not _path_segments(parts.path):
        raise ClientError(
            f"Authority '{authority}' has an empty path; a tenant segment is required.", ErrorCode.INVALID_AUTHORITY
        )


class Authority(BaseModel):
    """
    An identity provider tenant endpoint.

    Endpoint fields stay ``None`` until `resolve_endpoints` succeeds and are not changed afterwards.
    The canonical string is only rewritten by `update_tenant_id`.

    Attributes:
        host (str): Host name of the authority.
        canonical_authority (str): Canonical URL, used as the discovery cache key.
        authority_type (AuthorityType): Provider variant.
        is_tenantless (bool): The tenant segment is a generic placeholder (``common``/``organizations``).
        validate_authority (bool): Run instance discovery before trusting an unknown host.
        authorization_endpoint (str | None): Resolved authorize endpoint.
        token_endpoint (str | None): Resolved token endpoint.
        end_session_endpoint (str | None): Resolved end session endpoint.
        self_signed_jwt_audience (str | None): Issuer, used as the audience of client assertions.
    """

    host: str
    canonical_authority: str
    authority_type: AuthorityType = AuthorityType.AAD
    is_tenantless: bool = False
    validate_authority: bool = True
    authorization_endpoint: str | None = None
    token_endpoint: str | None = None
    end_session_endpoint: str | None = None
    self_signed_jwt_audience: str | None = None

    _resolved: bool = PrivateAttr(default=False)

    @property
    def is_resolved(self) -> bool:
        return self._resolved

    @property
    def tenant(self) -> str:
        """The tenant segment (the one after ``tfp`` for B2C)."""
        segments = _path_segments(urlsplit(self.canonical_authority).path)
        if self.authority_type is AuthorityType.B2C and len(segments) > 1:
            return segments[1]
        return segments[0]

    @property
    def is_trusted_host(self) -> bool:
        return self.host in TRUSTED_HOSTS

    def openid_configuration_endpoint(self) -> str:
        """Default well-known configuration URL for this variant."""
        return _VARIANT_TEMPLATES[self.authority_type]["openid_configuration"].format(
            canonical=self.canonical_authority
        )

    def default_authorization_endpoint(self) -> str:
        """Authorize endpoint derived by convention, used before discovery has run."""
        return _VARIANT_TEMPLATES[self.authority_type]["authorize"].format(canonical=self.canonical_authority)

    def apply_discovery(
        self,
        authorization_endpoint: str,
        token_endpoint: str,
        issuer: str,
        end_session_endpoint: str | None = None,
    ) -> None:
        """
        Stores discovered endpoints, substituting the ``{tenant}`` placeholder.

        Has no effect on an already resolved authority.
        """
        if self._resolved:
            return
        tenant = self.tenant
        self.authorization_endpoint = authorization_endpoint.replace("{tenant}", tenant)
        self.token_endpoint = token_endpoint.replace("{tenant}", tenant)
        self.self_signed_jwt_audience = issuer.replace("{tenant}", tenant)
        if end_session_endpoint:
            self.end_session_endpoint = end_session_endpoint.replace("{tenant}", tenant)
        self._resolved = True

    def copy_resolved_from(self, other: "Authority") -> None:
        """Adopts every resolved field of a cached authority."""
        self.authority_type = other.authority_type
        self.canonical_authority = other.canonical_authority
        self.validate_authority = other.validate_authority
        self.is_tenantless = other.is_tenantless
        self.authorization_endpoint = other.authorization_endpoint
        self.token_endpoint = other.token_endpoint
        self.end_session_endpoint = other.end_session_endpoint
        self.self_signed_jwt_audience = other.self_signed_jwt_audience
        self._resolved = other.is_resolved

    def update_tenant_id(self, tenant_id: str | None) -> bool:
        """
        Replaces the generic tenant placeholder with the tenant that actually issued a token.

        Only the first case-insensitive match of each placeholder name is replaced, and only once
        per authority.

        Returns:
            True if the canonical authority was rewritten.
        """
        if not self.is_tenantless or not tenant_id or not tenant_id.strip():
            return False

        replacement = tenant_id.strip().lower()
        for name in TENANTLESS_TENANT_NAMES:
            self.canonical_authority = re.sub(
                re.escape(name),
                lambda _: replacement,
                self.canonical_authority,
                count=1,
                flags=re.IGNORECASE,
            )
        self.is_tenantless = False
        return True


def _build_authority(authority_type: AuthorityType, canonical: str, validate_authority: bool) -> Authority:
    parts = urlsplit(canonical)
    authority = Authority(
        host=parts.hostname or parts.netloc,
        canonical_authority=canonical,
        authority_type=authority_type,
        validate_authority=validate_authority,
    )
    authority.is_tenantless = authority.tenant in TENANTLESS_TENANT_NAMES
    return authority


def resolve_authority(raw_url: str, validate_authority: bool = True) -> Authority:
    """
    Canonicalizes and validates a raw authority URL and builds the matching variant.

    Never touches the network.

    Args:
        raw_url: The authority URL supplied by the caller.
        validate_authority: Whether discovery should validate an unknown host first.

    Returns:
        Authority: An unresolved authority.

    Raises:
        ClientError: If the URL is malformed or names an unsupported provider type.
    """
    validate_authority_uri(raw_url)
    lowered = raw_url.strip().lower()
    segments = _path_segments(urlsplit(lowered).path)
    first = segments[0]

    if first == ADFS_MARKER:
        raise ClientError("ADFS is not a supported authority", ErrorCode.INVALID_AUTHORITY_TYPE)

    if first == B2C_MARKER:
        if len(segments) < 3:
            raise ClientError(
                f"B2C authority '{raw_url}' must be of the form https://<host>/tfp/<tenant>/<policy>/",
                ErrorCode.INVALID_AUTHORITY,
            )
        return _build_authority(AuthorityType.B2C, canonicalize_authority(lowered), validate_authority)

    return _build_authority(AuthorityType.AAD, canonicalize_authority(lowered), validate_authority)
