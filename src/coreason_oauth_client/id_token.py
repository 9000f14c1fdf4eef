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
Decoding of id tokens and client info returned by the token endpoint.

The id token arrives over TLS directly from the token endpoint, so its claims are read without
signature verification.
"""

import binascii
from typing import Any

from authlib.common.encoding import json_loads, to_bytes, urlsafe_b64decode
from pydantic import ValidationError

from coreason_oauth_client.exceptions import ErrorCode, NetworkError
from coreason_oauth_client.models import User
from coreason_oauth_client.models_internal import ClientInfo, IdTokenClaims


def _decode_segment(segment: str, what: str) -> dict[str, Any]:
    try:
        data = json_loads(urlsafe_b64decode(to_bytes(segment)))
    except (binascii.Error, ValueError) as e:
        raise NetworkError(f"Malformed {what} in token response: {e}", ErrorCode.INVALID_RESPONSE) from e
    if not isinstance(data, dict):
        raise NetworkError(f"Malformed {what} in token response: not a JSON object", ErrorCode.INVALID_RESPONSE)
    return data


def decode_id_token(id_token: str) -> IdTokenClaims:
    """
    Returns the payload claims of a compact JWT.

    Raises:
        NetworkError: If the token is not a three part JWT with a JSON payload.
    """
    parts = id_token.split(".")
    if len(parts) != 3:
        raise NetworkError("Malformed id_token in token response: expected three segments", ErrorCode.INVALID_RESPONSE)
    try:
        return IdTokenClaims(**_decode_segment(parts[1], "id_token"))
    except ValidationError as e:
        raise NetworkError(f"Malformed id_token claims: {e}", ErrorCode.INVALID_RESPONSE) from e


def decode_client_info(client_info: str) -> ClientInfo:
    try:
        return ClientInfo(**_decode_segment(client_info, "client_info"))
    except ValidationError as e:
        raise NetworkError(f"Malformed client_info: {e}", ErrorCode.INVALID_RESPONSE) from e


def build_user(claims: IdTokenClaims | None, client_info: ClientInfo | None) -> User | None:
    """Combines id token claims and client info into a `User`; None if neither identifies anyone."""
    if client_info and client_info.uid and client_info.utid:
        identifier = f"{client_info.uid}.{client_info.utid}"
    elif claims and (claims.oid or claims.sub):
        identifier = claims.oid or claims.sub  # type: ignore[assignment]
    else:
        return None

    return User(
        identifier=identifier,
        displayable_id=(claims.preferred_username or claims.upn or claims.email) if claims else None,
        name=claims.name if claims else None,
        identity_provider=claims.iss if claims else None,
        tenant_id=(claims.tid if claims else None) or (client_info.utid if client_info else None),
    )
