"""In-memory liveness tracking for the machine running the automation agent."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from bgi_panel.clock import CivilClock

logger = logging.getLogger(__name__)

DEFAULT_MAX_AGE_SECONDS = 120


@dataclass(frozen=True, slots=True)
class HeartbeatRecord:
    last_seen: datetime
    data: Any


@dataclass(frozen=True, slots=True)
class HeartbeatStatus:
    """Operator-facing snapshot; ``data`` is withheld once the record goes stale."""

    is_connected: bool
    last_seen: datetime | None
    data: Any


class HeartbeatMonitor:
    """Latest heartbeat only, no history, lost on restart.

    Updates replace one immutable record reference, so concurrent readers always see a
    complete (timestamp, payload) pair without locking.
    """

    def __init__(
        self,
        *,
        clock: CivilClock | None = None,
        max_age_seconds: int = DEFAULT_MAX_AGE_SECONDS,
    ) -> None:
        self._clock = clock or CivilClock()
        self._max_age = timedelta(seconds=max_age_seconds)
        self._record: HeartbeatRecord | None = None

    def update_status(self, data: Any) -> None:
        self._record = HeartbeatRecord(last_seen=self._clock.now(), data=data)
        logger.debug("Heartbeat received: %r", data)

    def get_status(self) -> HeartbeatStatus:
        record = self._record
        if record is None:
            return HeartbeatStatus(is_connected=False, last_seen=None, data=None)
        is_connected = self._clock.now() - record.last_seen < self._max_age
        return HeartbeatStatus(
            is_connected=is_connected,
            last_seen=self._clock.localize(record.last_seen),
            data=record.data if is_connected else None,
        )
