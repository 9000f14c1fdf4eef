# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_oauth_client

import pytest

from coreason_oauth_client.authority import (
    AuthorityType,
    canonicalize_authority,
    resolve_authority,
    validate_authority_uri,
)
from coreason_oauth_client.exceptions import ClientError, ErrorCode


class TestCanonicalize:
    def test_case_insensitive_and_trailing_slash(self) -> None:
        assert canonicalize_authority("HTTPS://Login.Example.com/Common") == canonicalize_authority(
            "https://login.example.com/common/"
        )
        assert canonicalize_authority("HTTPS://Login.Example.com/Common") == "https://login.example.com/common/"

    @pytest.mark.parametrize(
        "raw",
        [
            "https://login.example.com/common",
            "https://login.example.com/Contoso.onmicrosoft.com/oauth2/v2.0/authorize?x=1",
            "https://login.example.com:8443/tenant//",
            "https://login.example.com/tfp/Tenant/B2C_1_SignIn/extra",
            "not a url",
        ],
    )
    def test_idempotent(self, raw: str) -> None:
        once = canonicalize_authority(raw)
        assert canonicalize_authority(once) == once

    def test_truncates_to_first_segment(self) -> None:
        assert (
            canonicalize_authority("https://login.example.com/contoso/oauth2/v2.0/token")
            == "https://login.example.com/contoso/"
        )

    def test_keeps_port(self) -> None:
        assert canonicalize_authority("https://host:8443/tenant") == "https://host:8443/tenant/"

    def test_b2c_keeps_tenant_and_policy(self) -> None:
        assert (
            canonicalize_authority("https://login.example.com/tfp/Contoso/B2C_1_SignIn/v2.0")
            == "https://login.example.com/tfp/contoso/b2c_1_signin/"
        )

    def test_blank_passthrough(self) -> None:
        assert canonicalize_authority("") == ""


class TestValidateAuthorityUri:
    @pytest.mark.parametrize(
        ("raw", "fragment"),
        [
            ("", "must not be empty"),
            ("login.example.com/common", "missing scheme"),
            ("http://login.example.com/common", "non-HTTPS"),
            ("https://login.example.com/", "empty path"),
            ("https://login.example.com", "empty path"),
            ("https://login example.com/common", "not a well-formed URL"),
            ("https://login.example.com:abc/common", "invalid port"),
            ("https://login.example.com:99999/common", "invalid port"),
            ("https://login.example.com:0/common", "invalid port"),
        ],
    )
    def test_rejects(self, raw: str, fragment: str) -> None:
        with pytest.raises(ClientError, match=fragment) as exc_info:
            validate_authority_uri(raw)
        assert exc_info.value.error_code == ErrorCode.INVALID_AUTHORITY

    def test_accepts(self) -> None:
        validate_authority_uri("https://login.example.com/common")


class TestResolveAuthority:
    def test_standard_authority(self) -> None:
        authority = resolve_authority("https://Login.MicrosoftOnline.com/Contoso.onmicrosoft.com/", True)
        assert authority.authority_type is AuthorityType.AAD
        assert authority.canonical_authority == "https://login.microsoftonline.com/contoso.onmicrosoft.com/"
        assert authority.host == "login.microsoftonline.com"
        assert authority.validate_authority is True
        assert authority.is_tenantless is False
        assert authority.is_resolved is False
        assert authority.token_endpoint is None
        assert authority.authorization_endpoint is None

    @pytest.mark.parametrize("tenant", ["common", "Organizations", "COMMON"])
    def test_generic_tenant(self, tenant: str) -> None:
        authority = resolve_authority(f"https://login.example.com/{tenant}", False)
        assert authority.is_tenantless is True

    def test_b2c_authority(self) -> None:
        authority = resolve_authority("https://login.example.com/tfp/contoso.onmicrosoft.com/B2C_1_signin/", False)
        assert authority.authority_type is AuthorityType.B2C
        assert authority.tenant == "contoso.onmicrosoft.com"
        assert authority.canonical_authority == "https://login.example.com/tfp/contoso.onmicrosoft.com/b2c_1_signin/"
        assert authority.openid_configuration_endpoint() == (
            "https://login.example.com/tfp/contoso.onmicrosoft.com/b2c_1_signin/v2.0/.well-known/openid-configuration"
        )

    def test_b2c_requires_policy(self) -> None:
        with pytest.raises(ClientError, match="tfp/<tenant>/<policy>"):
            resolve_authority("https://login.example.com/tfp/contoso/", False)

    def test_adfs_is_rejected(self) -> None:
        with pytest.raises(ClientError, match="ADFS") as exc_info:
            resolve_authority("https://fs.contoso.com/adfs/", False)
        assert exc_info.value.error_code == ErrorCode.INVALID_AUTHORITY_TYPE

    def test_invalid_url_is_client_error(self) -> None:
        with pytest.raises(ClientError):
            resolve_authority("http://login.example.com/common", True)

    @pytest.mark.parametrize("port", ["abc", "99999"])
    def test_malformed_port_is_client_error(self, port: str) -> None:
        with pytest.raises(ClientError) as exc_info:
            resolve_authority(f"https://login.example.com:{port}/common", False)
        assert exc_info.value.error_code == ErrorCode.INVALID_AUTHORITY

    def test_explicit_port_is_kept(self) -> None:
        authority = resolve_authority("https://login.example.com:8443/common", False)
        assert authority.canonical_authority == "https://login.example.com:8443/common/"

    def test_default_endpoints(self) -> None:
        authority = resolve_authority("https://login.example.com/common", False)
        assert authority.openid_configuration_endpoint() == (
            "https://login.example.com/common/v2.0/.well-known/openid-configuration"
        )
        assert authority.default_authorization_endpoint() == "https://login.example.com/common/oauth2/v2.0/authorize"


class TestApplyDiscovery:
    def test_substitutes_tenant(self) -> None:
        authority = resolve_authority("https://login.example.com/contoso", False)
        authority.apply_discovery(
            authorization_endpoint="https://login.example.com/{tenant}/authorize",
            token_endpoint="https://login.example.com/{tenant}/token",
            issuer="https://sts.example.com/{tenant}/",
        )
        assert authority.is_resolved
        assert authority.authorization_endpoint == "https://login.example.com/contoso/authorize"
        assert authority.token_endpoint == "https://login.example.com/contoso/token"
        assert authority.self_signed_jwt_audience == "https://sts.example.com/contoso/"

    def test_resolved_fields_are_immutable(self) -> None:
        authority = resolve_authority("https://login.example.com/contoso", False)
        authority.apply_discovery("https://a/authorize", "https://a/token", "https://a/")
        authority.apply_discovery("https://b/authorize", "https://b/token", "https://b/")
        assert authority.token_endpoint == "https://a/token"


class TestUpdateTenantId:
    def test_replaces_generic_tenant_once(self) -> None:
        authority = resolve_authority("https://login.example.com/common", False)
        assert authority.update_tenant_id("Contoso-Tenant-Id") is True
        assert authority.canonical_authority == "https://login.example.com/contoso-tenant-id/"
        assert authority.is_tenantless is False

        assert authority.update_tenant_id("other") is False
        assert authority.canonical_authority == "https://login.example.com/contoso-tenant-id/"

    def test_organizations_placeholder(self) -> None:
        authority = resolve_authority("https://login.example.com/organizations/", False)
        authority.update_tenant_id("tid")
        assert authority.canonical_authority == "https://login.example.com/tid/"

    def test_no_change_for_concrete_tenant(self) -> None:
        authority = resolve_authority("https://login.example.com/contoso", False)
        assert authority.update_tenant_id("tid") is False
        assert authority.canonical_authority == "https://login.example.com/contoso/"

    @pytest.mark.parametrize("tenant_id", [None, "", "   "])
    def test_blank_tenant_id_is_ignored(self, tenant_id: str | None) -> None:
        authority = resolve_authority("https://login.example.com/common", False)
        assert authority.update_tenant_id(tenant_id) is False
        assert authority.is_tenantless is True

    def test_first_match_only(self) -> None:
        # The placeholder also appears in the host; only its first occurrence is replaced.
        authority = resolve_authority("https://common.example.com/common", False)
        authority.update_tenant_id("tid")
        assert authority.canonical_authority == "https://tid.example.com/common/"
