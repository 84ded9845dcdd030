"""HTTP utilities: bounded text and JSON fetches.

Remote payloads (the relay directory CSV, geolocation JSON) are read with a
hard size cap so an oversized or hostile response cannot exhaust memory.

Note:
    This module sits in the ``utils`` layer and depends only on stdlib and
    ``aiohttp``. It raises builtin/aiohttp exceptions; services translate
    them into [georelay.core.exceptions][] types.
"""

from __future__ import annotations

import json
from typing import Any

import aiohttp


DEFAULT_MAX_SIZE = 5 * 1024 * 1024


async def _read_bounded(response: aiohttp.ClientResponse, max_size: int) -> bytes:
    """Read a whole response body, failing once it exceeds ``max_size``.

    Reads in a loop because a single ``content.read(n)`` may return fewer
    bytes than available under chunked transfer-encoding.

    Raises:
        ValueError: If the body exceeds *max_size*.
    """
    chunks: list[bytes] = []
    total = 0
    while True:
        chunk = await response.content.read(max_size + 1 - total)
        if not chunk:
            break
        total += len(chunk)
        if total > max_size:
            raise ValueError(f"Response body too large: >{max_size} bytes")
        chunks.append(chunk)
    return b"".join(chunks)


async def _get_bytes(
    url: str,
    *,
    timeout: float,  # noqa: ASYNC109
    max_size: int,
    session: aiohttp.ClientSession | None,
    headers: dict[str, str] | None,
) -> bytes:
    client_timeout = aiohttp.ClientTimeout(total=timeout)
    if session is None:
        async with (
            aiohttp.ClientSession(timeout=client_timeout) as own_session,
            own_session.get(url, headers=headers) as response,
        ):
            response.raise_for_status()
            return await _read_bounded(response, max_size)

    async with session.get(url, headers=headers, timeout=client_timeout) as response:
        response.raise_for_status()
        return await _read_bounded(response, max_size)


async def fetch_text(
    url: str,
    *,
    timeout: float = 15.0,  # noqa: ASYNC109
    max_size: int = DEFAULT_MAX_SIZE,
    session: aiohttp.ClientSession | None = None,
) -> str:
    """GET ``url`` and return the body decoded as UTF-8.

    Args:
        url: Resource URL.
        timeout: Total request timeout in seconds.
        max_size: Maximum body size in bytes.
        session: Reuse an existing session; a temporary one is created
            otherwise.

    Raises:
        aiohttp.ClientError: On connection failure or non-2xx status.
        TimeoutError: If the request exceeds *timeout*.
        ValueError: If the body exceeds *max_size*.
    """
    body = await _get_bytes(
        url,
        timeout=timeout,
        max_size=max_size,
        session=session,
        headers={"Cache-Control": "no-cache"},
    )
    return body.decode("utf-8", errors="replace")


async def fetch_json(
    url: str,
    *,
    timeout: float = 10.0,  # noqa: ASYNC109
    max_size: int = 64 * 1024,
    session: aiohttp.ClientSession | None = None,
) -> Any:
    """GET ``url`` and parse the body as JSON.

    Raises:
        aiohttp.ClientError: On connection failure or non-2xx status.
        TimeoutError: If the request exceeds *timeout*.
        ValueError: If the body exceeds *max_size* or is not valid JSON.
    """
    body = await _get_bytes(
        url,
        timeout=timeout,
        max_size=max_size,
        session=session,
        headers={"Accept": "application/json"},
    )
    return json.loads(body)
