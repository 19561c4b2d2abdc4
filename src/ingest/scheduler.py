"""Weekly roster scheduler in a configured IANA time zone."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from core.errors import SkorlyConfigError, SkorlyTriggerError, SkorlyValidationError
from core.logging_config import get_logger
from core.settings import WEEKDAYS, ScheduleSettings
from ingest.roster_trigger import RosterTrigger

_LOGGER = get_logger(__name__)


def next_run_after(now: datetime, schedule: ScheduleSettings) -> datetime:
    """Return the first scheduled run strictly after ``now``.

    Args:
        now: Timezone-aware reference time.
        schedule: Weekday, time of day, and time zone of the weekly run.

    Returns:
        Timezone-aware datetime in the schedule's time zone.

    Raises:
        SkorlyConfigError: If the time zone is unknown.
    """
    try:
        zone = ZoneInfo(schedule.timezone)
    except (ZoneInfoNotFoundError, ValueError) as error:
        raise SkorlyConfigError(
            f"Unknown schedule timezone {schedule.timezone!r}. Use an IANA name such as "
            "'Asia/Kolkata' or 'UTC'."
        ) from error
    local_now = now.astimezone(zone)
    days_ahead = (WEEKDAYS.index(schedule.weekday) - local_now.weekday()) % 7
    candidate = (local_now + timedelta(days=days_ahead)).replace(
        hour=schedule.hour, minute=schedule.minute, second=0, microsecond=0
    )
    if candidate <= local_now:
        candidate += timedelta(days=7)
    return candidate


class WeeklyScheduler:
    """Fires the roster trigger once per week until stopped."""

    def __init__(
        self,
        roster_trigger: RosterTrigger,
        schedule: ScheduleSettings,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._roster_trigger = roster_trigger
        self._schedule = schedule
        self._now = now
        self._sleep = sleep
        self._stopped = False

    def stop(self) -> None:
        self._stopped = True

    async def run(self, max_runs: int | None = None) -> int:
        """Sleep until each scheduled time and trigger a roster run.

        Args:
            max_runs: Stop after this many scheduled times; None runs forever.

        Returns:
            Number of scheduled times that were reached.
        """
        runs = 0
        while not self._stopped and (max_runs is None or runs < max_runs):
            now = self._now()
            scheduled_at = next_run_after(now, self._schedule)
            _LOGGER.info("schedule_next_run", scheduled_at=scheduled_at.isoformat())
            await self._sleep(max((scheduled_at - now).total_seconds(), 0.0))
            if self._stopped:
                break
            runs += 1
            await self._fire()
        return runs

    async def _fire(self) -> None:
        try:
            batch_id = await self._roster_trigger.trigger("scheduled")
        except (SkorlyTriggerError, SkorlyValidationError) as error:
            _LOGGER.warning("scheduled_run_skipped", reason=str(error))
            return
        _LOGGER.info("scheduled_run_started", batch_id=batch_id)
