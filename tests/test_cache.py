# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_oauth_client

from datetime import datetime, timedelta, timezone

from coreason_oauth_client.cache import MemoryTokenCache, TokenCacheKey, TokenCacheProtocol
from coreason_oauth_client.models import AuthenticationResult


def result(expires_in: int = 3600) -> AuthenticationResult:
    return AuthenticationResult(
        access_token="at", expires_on=datetime.now(timezone.utc) + timedelta(seconds=expires_in)
    )


def test_key_is_order_and_case_insensitive() -> None:
    k1 = TokenCacheKey.build("https://Login.Example.com/Common/", "cid", ["User.Read", "Mail.Read"])
    k2 = TokenCacheKey.build("https://login.example.com/common/", "cid", ["mail.read", "user.read"])
    assert k1 == k2
    assert hash(k1) == hash(k2)


def test_key_distinguishes_users() -> None:
    k1 = TokenCacheKey.build("https://a/common/", "cid", ["x"], "u1.t1")
    k2 = TokenCacheKey.build("https://a/common/", "cid", ["x"], "u2.t1")
    assert k1 != k2


def test_memory_cache_round_trip() -> None:
    cache = MemoryTokenCache()
    key = TokenCacheKey.build("https://a/common/", "cid", ["x"])
    assert cache.read(key) is None

    stored = result()
    cache.write(key, stored)
    assert cache.read(key) is stored
    assert len(cache) == 1


def test_memory_cache_drops_expired() -> None:
    cache = MemoryTokenCache()
    key = TokenCacheKey.build("https://a/common/", "cid", ["x"])
    cache.write(key, result(expires_in=-1))

    assert cache.read(key) is None
    assert len(cache) == 0


def test_memory_cache_satisfies_protocol() -> None:
    assert isinstance(MemoryTokenCache(), TokenCacheProtocol)


def test_memory_cache_write_sweeps_expired() -> None:
    cache = MemoryTokenCache()
    stale = TokenCacheKey.build("https://a/common/", "cid", ["x"])
    fresh = TokenCacheKey.build("https://a/common/", "cid", ["y"])
    cache.write(stale, result(expires_in=-1))
    assert len(cache) == 1

    cache.write(fresh, result())

    assert len(cache) == 1
    assert cache.read(stale) is None
    assert cache.read(fresh) is not None
