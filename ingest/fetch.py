from __future__ import annotations

import time

import httpx


class FetchError(Exception):
    """Transport failure or non-success response from an upstream feed."""

    def __init__(self, reason: str, *, status_code: int | None = None) -> None:
        super().__init__(reason)
        self.reason = reason
        self.status_code = status_code


async def fetch(
    client: httpx.AsyncClient,
    *,
    url: str,
    user_agent: str,
    params: dict[str, str] | None = None,
    extra_headers: dict[str, str] | None = None,
) -> tuple[int, bytes | None, int]:
    headers = {
        "User-Agent": user_agent,
        "Accept": "application/geo+json, application/json, */*",
    }
    if extra_headers:
        headers.update(extra_headers)

    timeout = httpx.Timeout(connect=5.0, read=20.0, write=5.0, pool=5.0)
    started = time.perf_counter()
    response = await client.get(url, params=params, headers=headers, timeout=timeout)
    fetch_ms = int((time.perf_counter() - started) * 1000)
    return (
        response.status_code,
        (response.content if response.status_code == 200 else None),
        fetch_ms,
    )


async def fetch_content(
    client: httpx.AsyncClient,
    *,
    url: str,
    user_agent: str,
    params: dict[str, str] | None = None,
    extra_headers: dict[str, str] | None = None,
) -> tuple[bytes, int]:
    """Body of a 200 response and the request duration in milliseconds."""
    try:
        status_code, content, fetch_ms = await fetch(
            client,
            url=url,
            user_agent=user_agent,
            params=params,
            extra_headers=extra_headers,
        )
    except httpx.TimeoutException as e:
        raise FetchError("timeout") from e
    except httpx.RequestError as e:
        raise FetchError(f"request_error:{e.__class__.__name__}") from e

    if status_code != 200 or content is None:
        raise FetchError(f"http_{status_code}", status_code=status_code)
    return content, fetch_ms
