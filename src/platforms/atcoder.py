"""AtCoder contest history adapter."""

from __future__ import annotations

import httpx

from core.types import PlatformStats
from platforms.adapter_types import expect_list, expect_mapping, int_field
from platforms.http_json import request_json

ATCODER_BASE_URL = "https://atcoder.jp"


class AtCoderAdapter:
    """Derives rating and contest count from the public history JSON.

    AtCoder exposes no solved-problem count, so problems_solved stays zero.
    """

    name = "atcoder"

    def __init__(self, base_url: str = ATCODER_BASE_URL) -> None:
        self._base_url = base_url.rstrip("/")

    async def fetch_stats(
        self,
        http: httpx.AsyncClient,
        username: str,
        timeout_seconds: float,
    ) -> PlatformStats:
        history = expect_list(
            self.name,
            await request_json(
                http,
                self.name,
                "GET",
                f"{self._base_url}/users/{username}/history/json",
                timeout_seconds,
            ),
            "contest history",
        )
        rated = [
            expect_mapping(self.name, entry, "contest history entry")
            for entry in history
            if isinstance(entry, dict) and entry.get("IsRated")
        ]
        rating = int_field(rated[-1], "NewRating") if rated else 0
        last_place = int_field(rated[-1], "Place") if rated else 0
        return PlatformStats(
            rating=rating,
            max_rating=max((int_field(entry, "NewRating") for entry in rated), default=0),
            contests_participated=len(rated),
            rank=last_place,
            extra={
                "username": username,
                "last_contest": rated[-1].get("ContestName") if rated else None,
            },
        )
