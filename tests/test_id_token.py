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
from conftest import b64url, make_id_token

from coreason_oauth_client.exceptions import ErrorCode, NetworkError
from coreason_oauth_client.id_token import build_user, decode_client_info, decode_id_token
from coreason_oauth_client.models_internal import ClientInfo, IdTokenClaims


def test_decode_id_token() -> None:
    claims = decode_id_token(make_id_token(iss="https://issuer/", sub="s", tid="t", name="Alice", extra=1))
    assert claims.iss == "https://issuer/"
    assert claims.sub == "s"
    assert claims.tid == "t"
    assert claims.name == "Alice"


@pytest.mark.parametrize("token", ["only.two", "a.!!!.c", "a.eyJ4Ijog.c"])
def test_decode_id_token_malformed(token: str) -> None:
    with pytest.raises(NetworkError) as exc_info:
        decode_id_token(token)
    assert exc_info.value.error_code == ErrorCode.INVALID_RESPONSE


def test_decode_id_token_payload_not_object() -> None:
    with pytest.raises(NetworkError, match="not a JSON object"):
        decode_id_token("h.WzEsMl0.s")  # [1,2]


def test_decode_client_info() -> None:
    info = decode_client_info(b64url({"uid": "u", "utid": "t"}))
    assert info.uid == "u"
    assert info.utid == "t"


def test_decode_client_info_malformed() -> None:
    with pytest.raises(NetworkError):
        decode_client_info("%%%")


class TestBuildUser:
    def test_prefers_client_info_identifier(self) -> None:
        user = build_user(
            IdTokenClaims(oid="oid", preferred_username="a@b.com", tid="tid", name="A"),
            ClientInfo(uid="u", utid="t"),
        )
        assert user is not None
        assert user.identifier == "u.t"
        assert user.displayable_id == "a@b.com"
        assert user.tenant_id == "tid"
        assert user.name == "A"

    def test_falls_back_to_oid_then_sub(self) -> None:
        assert build_user(IdTokenClaims(oid="oid", sub="sub"), None).identifier == "oid"  # type: ignore[union-attr]
        assert build_user(IdTokenClaims(sub="sub", upn="u@x"), None).displayable_id == "u@x"  # type: ignore[union-attr]

    def test_client_info_only(self) -> None:
        user = build_user(None, ClientInfo(uid="u", utid="t"))
        assert user is not None
        assert user.tenant_id == "t"
        assert user.displayable_id is None

    def test_nobody(self) -> None:
        assert build_user(None, None) is None
        assert build_user(IdTokenClaims(name="anon"), None) is None
