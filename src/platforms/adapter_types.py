"""Adapter contract and payload helpers shared by platform adapters."""

from __future__ import annotations

from typing import Any, Mapping, Protocol

import httpx

from core.errors import PermanentFetchError
from core.types import PlatformStats


class PlatformAdapter(Protocol):
    """Converts one platform's wire format into uniform statistics."""

    name: str

    async def fetch_stats(
        self,
        http: httpx.AsyncClient,
        username: str,
        timeout_seconds: float,
    ) -> PlatformStats: ...


def expect_mapping(platform: str, payload: object, context: str) -> Mapping[str, Any]:
    """Return payload as a mapping or raise a malformed-response error."""
    if not isinstance(payload, Mapping):
        raise PermanentFetchError(
            platform, f"{platform} returned a malformed {context}: expected object."
        )
    return payload


def expect_list(platform: str, payload: object, context: str) -> list[Any]:
    """Return payload as a list or raise a malformed-response error."""
    if not isinstance(payload, list):
        raise PermanentFetchError(
            platform, f"{platform} returned a malformed {context}: expected list."
        )
    return payload


def int_field(payload: Mapping[str, Any], key: str) -> int:
    """Read an optional numeric field as a non-negative int, zero when absent."""
    raw_value = payload.get(key)
    if isinstance(raw_value, bool) or not isinstance(raw_value, (int, float)):
        return 0
    return max(int(round(raw_value)), 0)
