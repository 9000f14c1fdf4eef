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
Async Context Management for the request-scoped correlation id.
"""

from contextvars import ContextVar, Token

# Correlation id of the token request running in the current task.
_correlation_id: ContextVar[str | None] = ContextVar("correlation_id", default=None)


def get_correlation_id() -> str | None:
    """
    Retrieve the correlation id of the token request in the current async context.

    Returns:
        str | None: The correlation id, or None outside of a token request.
    """
    return _correlation_id.get()


def set_correlation_id(correlation_id: str) -> Token[str | None]:
    """
    Bind a correlation id to the current async task.

    Args:
        correlation_id: The id to bind.

    Returns:
        A token usable with `reset_correlation_id`.
    """
    return _correlation_id.set(correlation_id)


def reset_correlation_id(token: Token[str | None]) -> None:
    """Restore the correlation id that was active before `set_correlation_id`."""
    _correlation_id.reset(token)
