"""LeetCode GraphQL adapter."""

from __future__ import annotations

from typing import Any, Mapping

import httpx

from core.errors import PermanentFetchError
from core.types import PlatformStats
from platforms.adapter_types import expect_mapping, int_field
from platforms.http_json import request_json

LEETCODE_GRAPHQL_URL = "https://leetcode.com/graphql"

USER_PROFILE_QUERY = """
query getUserProfile($username: String!) {
  matchedUser(username: $username) {
    username
    profile { ranking reputation }
    submitStats { acSubmissionNum { difficulty count } }
  }
  userContestRanking(username: $username) {
    attendedContestsCount
    rating
    globalRanking
  }
}
"""


class LeetCodeAdapter:
    """Reads contest rating, global ranking, and accepted problem count."""

    name = "leetcode"

    def __init__(self, graphql_url: str = LEETCODE_GRAPHQL_URL) -> None:
        self._graphql_url = graphql_url

    async def fetch_stats(
        self,
        http: httpx.AsyncClient,
        username: str,
        timeout_seconds: float,
    ) -> PlatformStats:
        payload = expect_mapping(
            self.name,
            await request_json(
                http,
                self.name,
                "POST",
                self._graphql_url,
                timeout_seconds,
                json_body={"query": USER_PROFILE_QUERY, "variables": {"username": username}},
                headers={"Referer": "https://leetcode.com"},
            ),
            "GraphQL response",
        )
        data = expect_mapping(self.name, payload.get("data"), "GraphQL data")
        user = data.get("matchedUser")
        if user is None:
            raise PermanentFetchError(self.name, f"LeetCode user not found: {username}.")
        user = expect_mapping(self.name, user, "matchedUser")
        contest = data.get("userContestRanking") or {}
        contest = expect_mapping(self.name, contest, "userContestRanking")
        profile = user.get("profile") or {}
        rating = int_field(contest, "rating")
        return PlatformStats(
            rating=rating,
            max_rating=rating,
            problems_solved=_accepted_total(user),
            contests_participated=int_field(contest, "attendedContestsCount"),
            rank=int_field(contest, "globalRanking"),
            extra={
                "username": str(user.get("username", username)),
                "profile_ranking": profile.get("ranking") if isinstance(profile, Mapping) else None,
            },
        )


def _accepted_total(user: Mapping[str, Any]) -> int:
    submit_stats = user.get("submitStats") or {}
    rows = submit_stats.get("acSubmissionNum") if isinstance(submit_stats, Mapping) else None
    if not isinstance(rows, list):
        return 0
    # The "All" row already sums the difficulty rows.
    for row in rows:
        if isinstance(row, dict) and row.get("difficulty") == "All":
            return int_field(row, "count")
    return sum(int_field(row, "count") for row in rows if isinstance(row, dict))
