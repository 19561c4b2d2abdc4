"""GitHub REST adapter.

GitHub has no rating or contests; stars stand in for rating and public
repositories for solved problems.
"""

from __future__ import annotations

import httpx

from core.types import PlatformStats
from platforms.adapter_types import expect_list, expect_mapping, int_field
from platforms.http_json import request_json

GITHUB_API_URL = "https://api.github.com"
REPOS_PAGE_SIZE = 100


class GitHubAdapter:
    """Reads public repository count and owned-repository stars."""

    name = "github"

    def __init__(self, token: str | None = None, base_url: str = GITHUB_API_URL) -> None:
        self._base_url = base_url.rstrip("/")
        self._headers = {"Accept": "application/vnd.github.v3+json"}
        if token:
            self._headers["Authorization"] = f"Bearer {token}"

    async def fetch_stats(
        self,
        http: httpx.AsyncClient,
        username: str,
        timeout_seconds: float,
    ) -> PlatformStats:
        user = expect_mapping(
            self.name,
            await request_json(
                http,
                self.name,
                "GET",
                f"{self._base_url}/users/{username}",
                timeout_seconds,
                headers=self._headers,
            ),
            "user response",
        )
        repos = expect_list(
            self.name,
            await request_json(
                http,
                self.name,
                "GET",
                f"{self._base_url}/users/{username}/repos",
                timeout_seconds,
                params={"type": "owner", "sort": "updated", "per_page": REPOS_PAGE_SIZE},
                headers=self._headers,
            ),
            "repos response",
        )
        total_stars = sum(
            int_field(repo, "stargazers_count") for repo in repos if isinstance(repo, dict)
        )
        return PlatformStats(
            rating=total_stars,
            max_rating=total_stars,
            problems_solved=int_field(user, "public_repos"),
            extra={
                "login": str(user.get("login", username)),
                "followers": int_field(user, "followers"),
            },
        )
