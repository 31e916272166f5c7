"""Civil clock: "today" in one fixed timezone regardless of the host timezone."""

from __future__ import annotations

from collections.abc import Callable
from datetime import date, datetime
from zoneinfo import ZoneInfo

from bgi_panel.storage.common import utc_now

DEFAULT_TIMEZONE = "Asia/Shanghai"


class CivilClock:
    """Time source for day-boundary decisions.

    All logical days (task dates, overdue sweeps, cron triggers) are computed in
    ``timezone``. The host's local timezone is never consulted.
    """

    def __init__(
        self,
        timezone: str = DEFAULT_TIMEZONE,
        *,
        now: Callable[[], datetime] = utc_now,
    ) -> None:
        self.zone = ZoneInfo(timezone)
        self._now = now

    def now(self) -> datetime:
        """Current instant as an aware UTC timestamp."""

        current = self._now()
        if current.tzinfo is None:
            raise ValueError("Clock source must return timezone-aware datetimes.")
        return current

    def local_now(self) -> datetime:
        return self.now().astimezone(self.zone)

    def today(self) -> date:
        return self.local_now().date()

    def localize(self, value: datetime) -> datetime:
        return value.astimezone(self.zone)
