"""Rate-limited, retrying platform clients.

PlatformClient wraps one adapter in a token bucket and a retry policy.
PlatformClientSet fans one student out to every configured platform and
turns adapter outcomes into uniform observations and error records.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Mapping

import httpx

from core.cancellation import CancellationToken
from core.config import SkorlyConfig
from core.errors import PermanentFetchError, SkorlyFetchError
from core.logging_config import get_logger
from core.settings import PlatformSettings, SkorlySettings
from core.types import ErrorKind, ErrorRecord, PlatformObservation
from platforms.adapter_types import PlatformAdapter
from platforms.atcoder import AtCoderAdapter
from platforms.codeforces import CodeforcesAdapter
from platforms.github import GitHubAdapter
from platforms.leetcode import LeetCodeAdapter
from platforms.rate_limiter import TokenBucket
from platforms.retry_policy import RetryPolicy

_LOGGER = get_logger(__name__)


class PlatformClient:
    """One platform's adapter behind its own rate limiter and retry policy."""

    def __init__(
        self,
        adapter: PlatformAdapter,
        settings: PlatformSettings,
        http: httpx.AsyncClient,
        bucket: TokenBucket | None = None,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        self.adapter = adapter
        self.settings = settings
        self._http = http
        self.bucket = bucket or TokenBucket(
            adapter.name, settings.capacity, settings.refill_per_second
        )
        self._retry_policy = retry_policy or RetryPolicy(
            max_attempts=settings.max_attempts,
            backoff_seconds=settings.backoff_seconds,
            max_backoff_seconds=settings.max_backoff_seconds,
        )

    @property
    def platform(self) -> str:
        return self.adapter.name

    async def fetch(
        self,
        username: str,
        cancel_token: CancellationToken | None = None,
    ) -> PlatformObservation:
        """Fetch one user's statistics as a successful observation.

        Args:
            username: Platform-specific username.
            cancel_token: Optional batch token that stops further retries.

        Returns:
            Observation with ``fetch_status == "success"``.

        Raises:
            SkorlyFetchError: When the fetch fails transiently after all
                attempts or permanently on the first one.
        """

        async def attempt() -> PlatformObservation:
            await self.bucket.acquire(self.settings.acquire_timeout_seconds)
            stats = await self.adapter.fetch_stats(
                self._http, username, self.settings.timeout_seconds
            )
            return PlatformObservation.from_stats(self.platform, username, stats)

        return await self._retry_policy.run(self.platform, attempt, cancel_token)


@dataclass(frozen=True)
class StudentObservations:
    """Observations of one student plus the per-platform errors they produced."""

    observations: tuple[PlatformObservation, ...]
    errors: tuple[ErrorRecord, ...]


class PlatformClientSet:
    """All platform clients, keyed by platform name."""

    def __init__(self, clients: Mapping[str, PlatformClient]) -> None:
        self._clients = dict(clients)
        self._in_flight: set[tuple[str, str]] = set()

    @property
    def platforms(self) -> tuple[str, ...]:
        return tuple(sorted(self._clients))

    async def observe_student(
        self,
        student_id: str,
        usernames: Mapping[str, str],
        cancel_token: CancellationToken | None = None,
    ) -> StudentObservations:
        """Fetch every platform of one student, one platform at a time.

        Platforms without a username are skipped. Failures become failed
        observations and error records; they never raise. Once the token
        is cancelled no further platform call starts.

        Args:
            student_id: Student registration number.
            usernames: Platform name to username mapping.
            cancel_token: Optional batch cancellation token.

        Returns:
            Observations in platform order and the errors encountered.
        """
        observations: list[PlatformObservation] = []
        errors: list[ErrorRecord] = []
        for platform in sorted(set(self._clients) | set(usernames)):
            if cancel_token is not None and cancel_token.cancelled:
                break
            username = usernames.get(platform, "").strip()
            if not username:
                observations.append(PlatformObservation.skipped(platform))
                continue
            try:
                observation = await self._fetch_once(student_id, platform, username, cancel_token)
                observations.append(observation)
            except SkorlyFetchError as error:
                _LOGGER.warning(
                    "platform_fetch_failed",
                    student_id=student_id,
                    platform=platform,
                    kind=error.kind,
                    error=str(error),
                )
                observations.append(PlatformObservation.failed(platform, username, str(error)))
                errors.append(_error_record(_error_kind(error), str(error), student_id, platform))
            except Exception as error:
                message = f"Unexpected {type(error).__name__} while fetching {platform}: {error}"
                _LOGGER.error(
                    "platform_fetch_crashed",
                    student_id=student_id,
                    platform=platform,
                    error=message,
                )
                observations.append(PlatformObservation.failed(platform, username, message))
                errors.append(_error_record("processing", message, student_id, platform))
        return StudentObservations(observations=tuple(observations), errors=tuple(errors))

    def rate_limiter_status(self) -> dict[str, dict[str, float]]:
        """Return available tokens and limits for every platform bucket."""
        return {
            platform: {
                "available_tokens": round(client.bucket.available_tokens(), 2),
                "capacity": float(client.bucket.capacity),
                "refill_per_second": client.bucket.refill_per_second,
            }
            for platform, client in sorted(self._clients.items())
        }

    async def _fetch_once(
        self,
        student_id: str,
        platform: str,
        username: str,
        cancel_token: CancellationToken | None,
    ) -> PlatformObservation:
        client = self._clients.get(platform)
        if client is None:
            raise PermanentFetchError(
                platform,
                f"Unsupported platform '{platform}'. "
                f"Supported platforms: {', '.join(self.platforms)}.",
            )
        key = (student_id, platform)
        if key in self._in_flight:
            raise PermanentFetchError(
                platform, f"A fetch for student '{student_id}' on {platform} is already running."
            )
        self._in_flight.add(key)
        try:
            return await client.fetch(username, cancel_token)
        finally:
            self._in_flight.discard(key)


def build_client_set(
    config: SkorlyConfig,
    settings: SkorlySettings,
    http: httpx.AsyncClient,
) -> PlatformClientSet:
    """Build clients for every configured platform that has an adapter.

    Args:
        config: Runtime configuration (GitHub token).
        settings: Per-platform rate-limit and retry settings.
        http: Shared async HTTP client.

    Returns:
        Client set ready for student fetches.
    """
    adapters: dict[str, PlatformAdapter] = {
        "codeforces": CodeforcesAdapter(),
        "leetcode": LeetCodeAdapter(),
        "atcoder": AtCoderAdapter(),
        "github": GitHubAdapter(token=config.github_token),
    }
    clients: dict[str, PlatformClient] = {}
    for platform, platform_settings in settings.platforms.items():
        adapter = adapters.get(platform)
        if adapter is None:
            _LOGGER.warning("platform_settings_without_adapter", platform=platform)
            continue
        clients[platform] = PlatformClient(adapter, platform_settings, http)
    return PlatformClientSet(clients)


def _error_kind(error: SkorlyFetchError) -> ErrorKind:
    if isinstance(error, PermanentFetchError):
        return "permanent-api"
    return "transient-api"


def _error_record(kind: ErrorKind, message: str, student_id: str, platform: str) -> ErrorRecord:
    return ErrorRecord(
        kind=kind,
        message=message,
        timestamp=datetime.now(timezone.utc),
        student_id=student_id,
        platform=platform,
    )
