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
HTTP layer shared by discovery and the token endpoint.

`execute_request` is the only place where provider responses are classified into
`ServiceError` and `NetworkError`.
"""

import ipaddress
import json
import socket
from typing import Any

import anyio
import httpx
from pydantic import ValidationError

from coreason_oauth_client.exceptions import (
    ErrorCode,
    NetworkError,
    OversizedResponseError,
    SecurityError,
    ServiceError,
)
from coreason_oauth_client.models_internal import ErrorResponse
from coreason_oauth_client.utils.logger import logger

DEFAULT_MAX_RESPONSE_BYTES = 1_000_000


def _is_blocked(ip_obj: ipaddress.IPv4Address | ipaddress.IPv6Address) -> bool:
    return bool(
        ip_obj.is_private
        or ip_obj.is_loopback
        or ip_obj.is_link_local
        or ip_obj.is_reserved
        or ip_obj.is_multicast
    )


class PinnedHTTPTransport(httpx.AsyncHTTPTransport):
    """
    Transport that resolves the host once, refuses private/loopback/reserved addresses and
    connects to the vetted IP while keeping the Host header and SNI of the original name.
    """

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        hostname = request.url.host

        try:
            literal = ipaddress.ip_address(hostname)
        except ValueError:
            literal = None

        if literal is not None:
            if _is_blocked(literal):
                logger.warning(f"Security violation: Blocked access to {hostname}")
                raise SecurityError(f"Access to {hostname} is blocked")
            return await super().handle_async_request(request)

        try:
            addr_infos = await anyio.to_thread.run_sync(socket.getaddrinfo, hostname, None, 0, socket.SOCK_STREAM)
        except socket.gaierror as e:
            logger.error(f"DNS resolution failed for {hostname}: {e}")
            raise NetworkError(f"DNS resolution failed for {hostname}") from e

        target_ip: str | None = None
        for _, _, _, _, sockaddr in addr_infos:
            try:
                candidate = ipaddress.ip_address(sockaddr[0])
            except ValueError:
                continue
            if not _is_blocked(candidate):
                target_ip = str(candidate)
                break

        if target_ip is None:
            logger.warning(f"Security violation: No public address found for {hostname}")
            raise SecurityError(f"No public address found for {hostname}")

        request.extensions["sni_hostname"] = hostname
        if "Host" not in request.headers:
            request.headers["Host"] = request.url.netloc.decode("ascii")
        request.url = request.url.copy_with(host=target_ip)

        logger.debug(f"DNS pinned: {hostname} -> {target_ip}")
        return await super().handle_async_request(request)


async def _read_capped(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    data: dict[str, str] | None,
    headers: dict[str, str],
    max_bytes: int,
) -> tuple[int, bytes]:
    try:
        async with client.stream(method, url, data=data, headers=headers) as response:
            content_length = response.headers.get("Content-Length")
            if content_length and content_length.isdigit() and int(content_length) > max_bytes:
                raise OversizedResponseError(f"Response from {url} exceeds {max_bytes} bytes")

            content = bytearray()
            async for chunk in response.aiter_bytes():
                content.extend(chunk)
                if len(content) > max_bytes:
                    raise OversizedResponseError(f"Response from {url} exceeds {max_bytes} bytes")
            return response.status_code, bytes(content)
    except httpx.InvalidURL as e:
        logger.warning(f"{method} {url} rejected before sending: {e}")
        raise NetworkError(f"{method} {url} is not a valid URL: {e}") from e
    except httpx.HTTPError as e:
        logger.warning(f"{method} {url} failed at transport level: {e}")
        raise NetworkError(f"{method} {url} failed: {e}") from e


def _parse_object(content: bytes) -> dict[str, Any] | None:
    try:
        payload = json.loads(content)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None
    return payload if isinstance(payload, dict) else None


def _service_error(status_code: int, payload: dict[str, Any], correlation_id: str | None) -> ServiceError | None:
    try:
        body = ErrorResponse(**payload)
    except ValidationError:
        return None
    return ServiceError(
        error_code=body.error,
        message=body.error_description or body.error,
        status_code=status_code,
        claims=body.claims,
        correlation_id=body.correlation_id or correlation_id,
    )


async def execute_request(
    client: httpx.AsyncClient,
    url: str,
    method: str = "GET",
    data: dict[str, str] | None = None,
    correlation_id: str | None = None,
    max_bytes: int = DEFAULT_MAX_RESPONSE_BYTES,
) -> dict[str, Any]:
    """
    Sends one request and returns the JSON object body of a successful response.

    No retries are attempted.

    Args:
        client: The async HTTP client.
        url: Target URL.
        method: HTTP method.
        data: Form fields for POST requests.
        correlation_id: Sent as ``client-request-id``.
        max_bytes: Maximum accepted body size.

    Returns:
        dict[str, Any]: The decoded JSON object.

    Raises:
        ServiceError: The provider answered with a structured OAuth2 error body.
        NetworkError: Transport failure, oversized body, or a response that is not a JSON object.
    """
    headers = {"Accept": "application/json"}
    if correlation_id:
        headers["client-request-id"] = correlation_id
        headers["return-client-request-id"] = "true"

    status_code, content = await _read_capped(client, method, url, data, headers, max_bytes)
    payload = _parse_object(content)

    if payload is not None and "error" in payload:
        error = _service_error(status_code, payload, correlation_id)
        if error is not None:
            logger.warning(f"{method} {url} rejected by provider: {error.error_code} (status {status_code})")
            raise error

    if 200 <= status_code < 300:
        if payload is None:
            raise NetworkError(f"Invalid JSON response from {url}", ErrorCode.INVALID_RESPONSE, status_code)
        return payload

    logger.error(f"{method} {url} returned HTTP {status_code} without a parseable error body")
    raise NetworkError(
        f"{method} {url} returned HTTP {status_code} without a parseable error body",
        ErrorCode.REQUEST_FAILED,
        status_code,
    )
