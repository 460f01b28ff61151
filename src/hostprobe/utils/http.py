"""Bounded HTTP JSON fetching.

Upstream services (explorer, release lookup) are outside our control, so
every body is read with a hard size cap before it is parsed.

Note:
    This module depends only on ``aiohttp`` and the core exception types,
    so both state clients can share it.
"""

from __future__ import annotations

import json
from typing import Any

import aiohttp

from hostprobe.core.exceptions import UpstreamError


DEFAULT_MAX_RESPONSE_SIZE = 1024 * 1024


async def _read_bounded(response: aiohttp.ClientResponse, max_size: int) -> bytes:
    """Read the whole body, chunk by chunk, refusing more than *max_size* bytes.

    Raises:
        ValueError: If the body exceeds *max_size*.
    """
    chunks: list[bytes] = []
    total = 0
    while chunk := await response.content.read(max_size + 1 - total):
        total += len(chunk)
        if total > max_size:
            raise ValueError(f"Response body too large: >{max_size} bytes")
        chunks.append(chunk)
    return b"".join(chunks)


async def read_bounded_json(response: aiohttp.ClientResponse, max_size: int) -> Any:
    """Read and parse a JSON body no larger than *max_size* bytes.

    Raises:
        ValueError: If the body is too large.
        json.JSONDecodeError: If the body is not valid JSON.
    """
    return json.loads(await _read_bounded(response, max_size))


async def fetch_json(
    session: aiohttp.ClientSession,
    url: str,
    *,
    timeout: float,  # noqa: ASYNC109
    max_size: int = DEFAULT_MAX_RESPONSE_SIZE,
    auth: aiohttp.BasicAuth | None = None,
) -> Any:
    """GET *url* and return its parsed JSON body.

    Raises:
        UpstreamError: On any network, status, size, or decoding failure.
    """
    client_timeout = aiohttp.ClientTimeout(total=timeout)
    try:
        async with session.get(url, timeout=client_timeout, auth=auth) as resp:
            resp.raise_for_status()
            return await read_bounded_json(resp, max_size)
    except (aiohttp.ClientError, TimeoutError, ValueError) as e:
        raise UpstreamError(f"GET {url}: {e or type(e).__name__}") from e
