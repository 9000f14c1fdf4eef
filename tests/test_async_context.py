# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_oauth_client

import anyio
import pytest

from coreason_oauth_client.async_context import get_correlation_id, reset_correlation_id, set_correlation_id


def test_default_is_none() -> None:
    assert get_correlation_id() is None


def test_set_and_reset() -> None:
    token = set_correlation_id("outer")
    assert get_correlation_id() == "outer"

    inner = set_correlation_id("inner")
    assert get_correlation_id() == "inner"
    reset_correlation_id(inner)
    assert get_correlation_id() == "outer"

    reset_correlation_id(token)
    assert get_correlation_id() is None


@pytest.mark.asyncio
async def test_isolated_between_tasks() -> None:
    """Concurrent token requests must not see each other's correlation id."""
    seen: dict[str, str | None] = {}

    async def worker(name: str) -> None:
        token = set_correlation_id(name)
        try:
            await anyio.sleep(0.01)
            seen[name] = get_correlation_id()
        finally:
            reset_correlation_id(token)

    async with anyio.create_task_group() as tg:
        tg.start_soon(worker, "a")
        tg.start_soon(worker, "b")

    assert seen == {"a": "a", "b": "b"}
    assert get_correlation_id() is None
