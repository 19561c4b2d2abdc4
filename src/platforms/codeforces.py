"""Codeforces official JSON API adapter."""

from __future__ import annotations

from typing import Any, Mapping

import httpx

from core.errors import PermanentFetchError
from core.types import PlatformStats
from platforms.adapter_types import expect_list, expect_mapping, int_field
from platforms.http_json import request_json

CODEFORCES_API_URL = "https://codeforces.com/api"
SUBMISSION_PAGE_SIZE = 10000


class CodeforcesAdapter:
    """Reads rating, unique accepted problems, and rated contest count."""

    name = "codeforces"

    def __init__(self, base_url: str = CODEFORCES_API_URL) -> None:
        self._base_url = base_url.rstrip("/")

    async def fetch_stats(
        self,
        http: httpx.AsyncClient,
        username: str,
        timeout_seconds: float,
    ) -> PlatformStats:
        users = expect_list(
            self.name,
            await self._call(http, "user.info", {"handles": username}, timeout_seconds),
            "user.info result",
        )
        if not users:
            raise PermanentFetchError(self.name, f"Codeforces user not found: {username}.")
        user_info = expect_mapping(self.name, users[0], "user.info entry")
        submissions = expect_list(
            self.name,
            await self._call(
                http,
                "user.status",
                {"handle": username, "from": 1, "count": SUBMISSION_PAGE_SIZE},
                timeout_seconds,
            ),
            "user.status result",
        )
        rating_changes = expect_list(
            self.name,
            await self._call(http, "user.rating", {"handle": username}, timeout_seconds),
            "user.rating result",
        )
        rating = int_field(user_info, "rating")
        return PlatformStats(
            rating=rating,
            max_rating=int_field(user_info, "maxRating") or rating,
            problems_solved=_count_unique_accepted(submissions),
            contests_participated=len(rating_changes),
            extra={
                "handle": str(user_info.get("handle", username)),
                "title": user_info.get("rank"),
                "country": user_info.get("country"),
                "organization": user_info.get("organization"),
            },
        )

    async def _call(
        self,
        http: httpx.AsyncClient,
        method_name: str,
        params: Mapping[str, Any],
        timeout_seconds: float,
    ) -> object:
        payload = expect_mapping(
            self.name,
            await request_json(
                http,
                self.name,
                "GET",
                f"{self._base_url}/{method_name}",
                timeout_seconds,
                params=params,
            ),
            f"{method_name} response",
        )
        if payload.get("status") != "OK":
            raise PermanentFetchError(
                self.name, f"Codeforces {method_name} failed: {payload.get('comment', 'unknown')}."
            )
        return payload.get("result")


def _count_unique_accepted(submissions: list[Any]) -> int:
    solved: set[tuple[object, object]] = set()
    for submission in submissions:
        if not isinstance(submission, Mapping) or submission.get("verdict") != "OK":
            continue
        problem = submission.get("problem")
        if isinstance(problem, Mapping):
            solved.add((problem.get("contestId"), problem.get("index")))
    return len(solved)
