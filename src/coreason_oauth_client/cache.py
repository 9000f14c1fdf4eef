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
Token cache collaborator contract and an in-memory default.
"""

import threading
from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict

from coreason_oauth_client.models import AuthenticationResult


class TokenCacheKey(BaseModel):
    """
    Cache key derived from authority, client id, scope set and user.
    """

    model_config = ConfigDict(frozen=True)

    authority: str
    client_id: str
    scopes: frozenset[str]
    user_identifier: str | None = None

    @classmethod
    def build(
        cls, authority: str, client_id: str, scopes: Iterable[str], user_identifier: str | None = None
    ) -> "TokenCacheKey":
        return cls(
            authority=authority.lower(),
            client_id=client_id,
            scopes=frozenset(scope.lower() for scope in scopes),
            user_identifier=user_identifier,
        )


@runtime_checkable
class TokenCacheProtocol(Protocol):
    """Storage backend for acquired tokens."""

    def read(self, key: TokenCacheKey) -> AuthenticationResult | None:
        """Returns the stored result for `key`, if any and not expired."""
        ...

    def write(self, key: TokenCacheKey, result: AuthenticationResult) -> None:
        """Stores `result` under `key`, replacing any previous entry."""
        ...


class MemoryTokenCache:
    """
    In-memory implementation of TokenCacheProtocol.
    Process local; expired entries are dropped on read and swept on every write.
    """

    def __init__(self) -> None:
        self._entries: dict[TokenCacheKey, AuthenticationResult] = {}
        self._lock = threading.Lock()

    def read(self, key: TokenCacheKey) -> AuthenticationResult | None:
        with self._lock:
            result = self._entries.get(key)
            if result is None:
                return None
            if result.expires_on <= datetime.now(timezone.utc):
                del self._entries[key]
                return None
            return result

    def write(self, key: TokenCacheKey, result: AuthenticationResult) -> None:
        now = datetime.now(timezone.utc)
        with self._lock:
            for stale in [k for k, v in self._entries.items() if v.expires_on <= now]:
                del self._entries[stale]
            self._entries[key] = result

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
