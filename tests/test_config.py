# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_oauth_client

import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from coreason_oauth_client.authority import DEFAULT_AUTHORITY
from coreason_oauth_client.config import CoreasonOAuthConfig


def test_config_loading() -> None:
    """Test loading configuration from environment variables."""
    with patch.dict(
        os.environ,
        {
            "COREASON_OAUTH_CLIENT_ID": "env-client",
            "COREASON_OAUTH_AUTHORITY": "https://login.example.com/contoso",
            "COREASON_OAUTH_CLIENT_SECRET": "env-secret",
            "COREASON_OAUTH_HTTP_TIMEOUT": "2.5",
        },
    ):
        config = CoreasonOAuthConfig()
        assert config.client_id == "env-client"
        assert config.authority == "https://login.example.com/contoso/"
        assert config.client_secret is not None
        assert config.client_secret.get_secret_value() == "env-secret"
        assert config.http_timeout == 2.5


def test_config_case_insensitive() -> None:
    """Test that environment variables are case-insensitive."""
    with patch.dict(os.environ, {"coreason_oauth_client_id": "lower"}):
        assert CoreasonOAuthConfig().client_id == "lower"


def test_defaults() -> None:
    config = CoreasonOAuthConfig(client_id="cid")
    assert config.authority == DEFAULT_AUTHORITY
    assert config.validate_authority is True
    assert config.enforce_public_network is True
    assert config.redirect_uri is None
    assert config.client_secret is None


def test_authority_normalization() -> None:
    """Test that the authority is stored in canonical form."""
    c1 = CoreasonOAuthConfig(client_id="cid", authority="  HTTPS://Login.Example.com/Contoso  ")
    assert c1.authority == "https://login.example.com/contoso/"

    c2 = CoreasonOAuthConfig(client_id="cid", authority="https://login.example.com/contoso/oauth2/v2.0/token")
    assert c2.authority == "https://login.example.com/contoso/"


@pytest.mark.parametrize(
    "authority",
    [
        "http://login.example.com/common",
        "https://login.example.com/",
        "login.example.com/common",
        "https://login.example.com:abc/common",
    ],
)
def test_invalid_authority(authority: str) -> None:
    with pytest.raises(ValidationError) as exc:
        CoreasonOAuthConfig(client_id="cid", authority=authority)
    assert "authority" in str(exc.value)


def test_client_id_required() -> None:
    with patch.dict(os.environ, {}, clear=True):
        with pytest.raises(ValidationError) as exc:
            CoreasonOAuthConfig()
    assert "client_id" in str(exc.value)


def test_secret_is_masked() -> None:
    config = CoreasonOAuthConfig(client_id="cid", client_secret="hunter2")  # type: ignore[arg-type]
    assert "hunter2" not in repr(config)


@pytest.mark.parametrize("field", ["http_timeout", "max_response_bytes"])
def test_limits_must_be_positive(field: str) -> None:
    with pytest.raises(ValidationError):
        CoreasonOAuthConfig(client_id="cid", **{field: 0})
