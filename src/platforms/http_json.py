"""HTTP JSON requests with platform error classification.

Adapters call request_json so that every platform maps transport errors
and status codes onto the same transient/permanent taxonomy.
"""

from __future__ import annotations

from typing import Any, Mapping

import httpx

from core.constants import USER_AGENT
from core.errors import PermanentFetchError, TransientFetchError

PERMANENT_STATUS_CODES = frozenset({400, 401, 404, 410, 422})
TRANSIENT_STATUS_CODES = frozenset({403, 408, 425, 429})


async def request_json(
    http: httpx.AsyncClient,
    platform: str,
    method: str,
    url: str,
    timeout_seconds: float,
    *,
    params: Mapping[str, Any] | None = None,
    json_body: Mapping[str, Any] | None = None,
    headers: Mapping[str, str] | None = None,
) -> Any:
    """Send one request and decode its JSON body.

    Args:
        http: Shared async HTTP client.
        platform: Platform name recorded on raised errors.
        method: HTTP method.
        url: Absolute request URL.
        timeout_seconds: Per-request timeout.
        params: Optional query parameters.
        json_body: Optional JSON request body.
        headers: Extra request headers.

    Returns:
        Decoded JSON payload.

    Raises:
        TransientFetchError: For timeouts, network errors, throttling, and 5xx.
        PermanentFetchError: For unknown users, bad requests, redirects, and
            malformed responses.
    """
    request_headers = {"User-Agent": USER_AGENT, **dict(headers or {})}
    try:
        response = await http.request(
            method,
            url,
            params=params,
            json=json_body,
            headers=request_headers,
            timeout=timeout_seconds,
        )
    except httpx.TimeoutException as error:
        raise TransientFetchError(
            platform, f"{platform} request timed out after {timeout_seconds:.1f}s."
        ) from error
    except httpx.TransportError as error:
        raise TransientFetchError(platform, f"{platform} network error: {error}.") from error
    except httpx.HTTPError as error:
        raise PermanentFetchError(
            platform, f"{platform} request failed: {type(error).__name__}: {error}."
        ) from error
    _raise_for_status(platform, response)
    try:
        return response.json()
    except ValueError as error:
        raise PermanentFetchError(
            platform, f"{platform} returned a malformed JSON response."
        ) from error


def _raise_for_status(platform: str, response: httpx.Response) -> None:
    status_code = response.status_code
    if status_code < 300:
        return
    if status_code in PERMANENT_STATUS_CODES:
        raise PermanentFetchError(
            platform, f"{platform} rejected the request with HTTP {status_code}."
        )
    if status_code in TRANSIENT_STATUS_CODES or status_code >= 500:
        raise TransientFetchError(
            platform, f"{platform} is throttling or unavailable (HTTP {status_code})."
        )
    raise PermanentFetchError(platform, f"{platform} returned unexpected HTTP {status_code}.")
