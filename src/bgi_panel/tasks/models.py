"""Domain models for the daily task queue."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any


class TaskStatus(str, Enum):
    """Durable task lifecycle states."""

    PENDING = "PENDING"
    RUNNING = "RUNNING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


REPORTABLE_STATUSES = frozenset({TaskStatus.SUCCESS, TaskStatus.FAILED})
UNFINISHED_STATUSES = (TaskStatus.PENDING, TaskStatus.RUNNING)


@dataclass(slots=True)
class DailyTaskView:
    """Readable task view for CLI and agent responses."""

    task_id: int
    game_account_id: int
    task_date: date
    status: TaskStatus
    retry_count: int
    claim_generation: int
    log_details: str
    started_at: datetime | None
    completed_at: datetime | None
    created_at: datetime


@dataclass(slots=True)
class ClaimedTask:
    """Work handed to an agent: the task plus everything needed to run it.

    ``game_password`` is decrypted for this response only; ``settings`` carries every
    remaining account column, including ones added after deployment.
    """

    task_id: int
    claim_generation: int
    task_date: date
    game_type: str
    game_username: str
    game_password: str | None
    settings: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class NoWorkAvailable:
    """Claim result telling the agent it may idle (or power down)."""

    game_type: str | None = None

    message: str = "No tasks available at the moment."


@dataclass(slots=True)
class GenerationSummary:
    """Counters for one generate-and-sweep run."""

    task_date: date
    swept: int = 0
    created: int = 0
    skipped: int = 0


@dataclass(slots=True)
class ReportOutcome:
    """Task state after a completion report was applied."""

    task_id: int
    status: TaskStatus
    retry_count: int


@dataclass(slots=True)
class DayStatus:
    """Aggregated status of all tasks on one calendar day."""

    day: date
    status: TaskStatus
