"""Controllers for task CLI commands."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Any

from bgi_panel.config import Settings
from bgi_panel.runtime import PanelRuntime, build_task_repository
from bgi_panel.tasks.models import ClaimedTask, DailyTaskView, TaskStatus
from bgi_panel.tasks.repository import TaskRepository

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class TaskGenerateCommand:
    """CLI input for one generate-and-sweep run."""

    db_path: Path | None


@dataclass(slots=True)
class TaskClaimCommand:
    """CLI input for claiming the next task."""

    db_path: Path | None
    game_type: str | None
    as_json: bool


@dataclass(slots=True)
class TaskReportCommand:
    """CLI input for an agent completion report."""

    db_path: Path | None
    task_id: int
    status: str
    log_details: str | None
    data_json: str | None
    claim_generation: int | None


@dataclass(slots=True)
class TaskAppendLogCommand:
    db_path: Path | None
    task_id: int
    line: str


@dataclass(slots=True)
class TaskGameDataCommand:
    """CLI input for pushing game data outside a completion report."""

    db_path: Path | None
    data_json: str
    game_username: str | None
    game_type: str | None
    task_id: int | None


@dataclass(slots=True)
class TaskListCommand:
    db_path: Path | None
    task_date: str | None
    status: str | None
    limit: int


@dataclass(slots=True)
class TaskShowCommand:
    db_path: Path | None
    task_id: int


@dataclass(slots=True)
class TaskCalendarCommand:
    """CLI input for the per-day status calendar."""

    db_path: Path | None
    month: str
    user_id: int | None


@dataclass(slots=True)
class TaskFieldGetCommand:
    db_path: Path | None
    task_id: int
    key: str


@dataclass(slots=True)
class TaskFieldSetCommand:
    db_path: Path | None
    task_id: int
    key: str
    value: str


@dataclass(slots=True)
class SchedulerRunCommand:
    """CLI input for the long-running daily trigger."""

    db_path: Path | None
    run_on_start: bool | None


class TaskCliController:
    """Coordinates task command execution."""

    def generate(self, command: TaskGenerateCommand) -> list[str]:
        settings = _settings(command.db_path)
        with _repository(settings) as repository:
            summary = repository.generate_daily_tasks()
        return [
            "Daily tasks generated: "
            f"date={summary.task_date.isoformat()} "
            f"created={summary.created} "
            f"skipped={summary.skipped} "
            f"overdue_failed={summary.swept}",
        ]

    def claim(self, command: TaskClaimCommand) -> list[str]:
        settings = _settings(command.db_path)
        with _repository(settings) as repository:
            result = repository.claim_next_task(game_type=command.game_type)

        if not isinstance(result, ClaimedTask):
            if command.as_json:
                return [json.dumps({"status": "NO_TASK", "message": result.message})]
            return [result.message]
        if command.as_json:
            return [json.dumps(_claim_payload(result), ensure_ascii=False, default=str)]
        return [
            "Claimed task: "
            f"task_id={result.task_id} "
            f"generation={result.claim_generation} "
            f"date={result.task_date.isoformat()} "
            f"game_type={result.game_type} "
            f"username={result.game_username} "
            f"password={'available' if result.game_password else 'missing'}",
            f"Settings: {json.dumps(result.settings, ensure_ascii=False, default=str)}",
        ]

    def report(self, command: TaskReportCommand) -> list[str]:
        settings = _settings(command.db_path)
        status = _parse_status(command.status)
        data = _parse_json_option(command.data_json, option="--data")
        with _repository(settings) as repository:
            outcome = repository.report_task(
                task_id=command.task_id,
                status=status,
                log_details=command.log_details,
                data=data,
                claim_generation=command.claim_generation,
            )
        return [
            "Task reported: "
            f"task_id={outcome.task_id} "
            f"status={outcome.status.value} "
            f"retry_count={outcome.retry_count}",
        ]

    def append_log(self, command: TaskAppendLogCommand) -> list[str]:
        settings = _settings(command.db_path)
        with _repository(settings) as repository:
            repository.append_log(task_id=command.task_id, line=command.line)
        return [f"Log appended to task {command.task_id}"]

    def push_game_data(self, command: TaskGameDataCommand) -> list[str]:
        settings = _settings(command.db_path)
        data = _parse_json_option(command.data_json, option="--data")
        with _repository(settings) as repository:
            repository.update_game_data(
                data=data,
                game_username=command.game_username,
                game_type=command.game_type,
                task_id=command.task_id,
            )
        return ["Game data stored"]

    def list_tasks(self, command: TaskListCommand) -> list[str]:
        settings = _settings(command.db_path)
        task_date = _parse_date(command.task_date)
        status = _parse_status(command.status, allow_all=True) if command.status else None
        with _repository(settings) as repository:
            tasks = repository.list_tasks(task_date=task_date, status=status, limit=command.limit)
        if not tasks:
            return ["No tasks found."]
        return [_task_line(task) for task in tasks]

    def show(self, command: TaskShowCommand) -> list[str]:
        settings = _settings(command.db_path)
        with _repository(settings) as repository:
            task = repository.get_task(task_id=command.task_id)
        if task is None:
            return [f"Task {command.task_id} not found."]
        lines = [
            _task_line(task),
            f"  started_at={_iso(task.started_at)} completed_at={_iso(task.completed_at)} "
            f"created_at={task.created_at.isoformat()}",
        ]
        if task.log_details:
            lines.append("  log:")
            lines.extend(f"    {line}" for line in task.log_details.splitlines())
        return lines

    def calendar(self, command: TaskCalendarCommand) -> list[str]:
        settings = _settings(command.db_path)
        with _repository(settings) as repository:
            days = repository.daily_status_calendar(month=command.month, user_id=command.user_id)
        if not days:
            return [f"No task history for {command.month}."]
        return [f"{entry.day.isoformat()} {entry.status.value}" for entry in days]

    def field_get(self, command: TaskFieldGetCommand) -> list[str]:
        settings = _settings(command.db_path)
        with _repository(settings) as repository:
            value = repository.get_field(task_id=command.task_id, key=command.key)
        return [json.dumps({command.key: value}, ensure_ascii=False, default=str)]

    def field_set(self, command: TaskFieldSetCommand) -> list[str]:
        settings = _settings(command.db_path)
        with _repository(settings) as repository:
            repository.set_field(
                task_id=command.task_id,
                key=command.key,
                value=_parse_field_value(command.value),
            )
        return [f"Field {command.key} updated for task {command.task_id}"]

    def run_scheduler(self, command: SchedulerRunCommand) -> list[str]:
        settings = _settings(command.db_path)
        if command.run_on_start is not None:
            settings.scheduler.run_on_start = command.run_on_start
        runtime = PanelRuntime.from_settings(settings)
        try:
            runtime.scheduler.run_forever()
        except KeyboardInterrupt:
            logger.info("Scheduler interrupted; shutting down")
        finally:
            runtime.close()
        return ["Scheduler stopped."]


def _settings(db_path: Path | None) -> Settings:
    settings = Settings.from_env(db_path=db_path)
    settings.validate()
    return settings


def _parse_status(value: str, *, allow_all: bool = False) -> TaskStatus:
    normalized = value.strip().upper()
    try:
        status = TaskStatus(normalized)
    except ValueError as error:
        raise ValueError(f"Unknown task status: {value!r}") from error
    if not allow_all and status not in (TaskStatus.SUCCESS, TaskStatus.FAILED):
        raise ValueError(f"Agents can only report SUCCESS or FAILED, got {normalized}")
    return status


def _parse_date(value: str | None) -> date | None:
    if value is None:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError as error:
        raise ValueError(f"Date must be formatted as YYYY-MM-DD, got {value!r}") from error


def _parse_json_option(value: str | None, *, option: str) -> Any:
    if value is None:
        return None
    try:
        return json.loads(value)
    except json.JSONDecodeError as error:
        raise ValueError(f"{option} must be valid JSON: {error}") from error


def _parse_field_value(value: str) -> Any:
    """JSON scalars keep their type, objects and arrays are stored as JSON text."""

    try:
        parsed = json.loads(value)
    except json.JSONDecodeError:
        return value
    if isinstance(parsed, (dict, list)):
        return json.dumps(parsed, ensure_ascii=False)
    return parsed


def _claim_payload(task: ClaimedTask) -> dict[str, Any]:
    return {
        "task_id": task.task_id,
        "claim_generation": task.claim_generation,
        "task_date": task.task_date.isoformat(),
        "game_type": task.game_type,
        "game_username": task.game_username,
        "game_password": task.game_password,
        "settings": task.settings,
    }


def _task_line(task: DailyTaskView) -> str:
    return (
        f"{task.task_id} date={task.task_date.isoformat()} "
        f"account={task.game_account_id} status={task.status.value} "
        f"retries={task.retry_count} generation={task.claim_generation}"
    )


def _iso(value: Any) -> str:
    return value.isoformat() if value is not None else "-"


@contextmanager
def _repository(settings: Settings) -> Iterator[TaskRepository]:
    repository = build_task_repository(settings)
    repository.init_schema()
    try:
        yield repository
    finally:
        repository.close()
