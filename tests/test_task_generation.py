from __future__ import annotations

from datetime import UTC, date, datetime

import allure
import pytest
from sqlmodel import Session

from bgi_panel.clock import CivilClock
from bgi_panel.storage.sqlmodel_models import DailyTask
from bgi_panel.tasks.models import TaskStatus
from bgi_panel.tasks.repository import OVERDUE_NOTE, TaskRepository

pytestmark = [
    allure.epic("Daily Tasks"),
    allure.feature("Generation & Overdue Sweep"),
]


def test_generate_creates_one_pending_task_per_enabled_account(
    repository: TaskRepository,
    add_account,
) -> None:
    first = add_account(game_username="alpha")
    second = add_account(game_username="beta")
    add_account(game_username="disabled", is_enabled=False)

    summary = repository.generate_daily_tasks()

    assert summary.task_date == date(2026, 10, 19)
    assert (summary.created, summary.skipped, summary.swept) == (2, 0, 0)
    tasks = repository.list_tasks()
    assert sorted(task.game_account_id for task in tasks) == [first, second]
    assert {task.status for task in tasks} == {TaskStatus.PENDING}
    assert {task.retry_count for task in tasks} == {0}


def test_generate_is_idempotent_within_one_day(repository: TaskRepository, add_account) -> None:
    add_account(game_username="alpha")
    add_account(game_username="beta")

    repository.generate_daily_tasks()
    again = repository.generate_daily_tasks()

    assert (again.created, again.skipped) == (0, 2)
    assert len(repository.list_tasks()) == 2


def test_generate_uses_civil_day_not_utc_day(tmp_path) -> None:
    # 17:30 UTC on the 19th is already 01:30 on the 20th in Shanghai.
    clock = CivilClock(now=lambda: datetime(2026, 10, 19, 17, 30, tzinfo=UTC))
    repository = TaskRepository(tmp_path / "civil.db", clock=clock)
    repository.init_schema()
    try:
        summary = repository.generate_daily_tasks()
    finally:
        repository.close()

    assert summary.task_date == date(2026, 10, 20)


def test_sweep_fails_unfinished_tasks_from_previous_days(
    repository: TaskRepository,
    fake_time,
    add_account,
    add_task,
) -> None:
    account = add_account()
    yesterday = date(2026, 10, 18)
    pending = add_task(account, task_date=yesterday)
    running = add_task(
        account,
        task_date=date(2026, 10, 17),
        status="RUNNING",
        started_at=fake_time.current,
        claim_generation=1,
    )
    done = add_task(account, task_date=date(2026, 10, 16), status="SUCCESS")

    summary = repository.generate_daily_tasks()

    assert summary.swept == 2
    assert summary.created == 1
    for task_id in (pending, running):
        task = repository.get_task(task_id=task_id)
        assert task is not None
        assert task.status == TaskStatus.FAILED
        assert task.completed_at == fake_time.current
        assert task.log_details.endswith(OVERDUE_NOTE)
    untouched = repository.get_task(task_id=done)
    assert untouched is not None
    assert untouched.status == TaskStatus.SUCCESS
    assert untouched.log_details == ""


def test_sweep_keeps_existing_log_and_runs_on_the_next_day(
    repository: TaskRepository,
    fake_time,
    add_account,
) -> None:
    add_account()
    repository.generate_daily_tasks()
    claimed = repository.claim_next_task()
    repository.append_log(task_id=claimed.task_id, line="entered domain")

    fake_time.advance(days=1)
    summary = repository.generate_daily_tasks()

    assert summary.task_date == date(2026, 10, 20)
    assert (summary.swept, summary.created) == (1, 1)
    swept = repository.get_task(task_id=claimed.task_id)
    assert swept is not None
    assert swept.status == TaskStatus.FAILED
    assert swept.log_details == "entered domain\n" + OVERDUE_NOTE
    assert [task.status for task in repository.list_tasks(task_date=date(2026, 10, 20))] == [
        TaskStatus.PENDING,
    ]


def test_today_tasks_are_not_swept(repository: TaskRepository, add_account, add_task) -> None:
    account = add_account()
    add_task(account, status="RUNNING")

    summary = repository.generate_daily_tasks()

    assert summary.swept == 0
    assert summary.skipped == 1


def test_generation_interrupted_midway_leaves_nothing_half_done(
    repository: TaskRepository,
    add_account,
    add_task,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    first = add_account(game_username="alpha")
    add_account(game_username="beta")
    overdue = add_task(first, task_date=date(2026, 10, 18))

    original_add = Session.add
    inserted: list[DailyTask] = []

    def _add_failing_on_second_task(self, instance, *args, **kwargs):
        if isinstance(instance, DailyTask):
            inserted.append(instance)
            if len(inserted) == 2:
                raise RuntimeError("disk unplugged")
        return original_add(self, instance, *args, **kwargs)

    monkeypatch.setattr(Session, "add", _add_failing_on_second_task)
    with pytest.raises(RuntimeError, match="disk unplugged"):
        repository.generate_daily_tasks()
    monkeypatch.undo()

    tasks = repository.list_tasks()
    assert [task.task_id for task in tasks] == [overdue]
    assert tasks[0].status == TaskStatus.PENDING
    assert tasks[0].completed_at is None
    assert tasks[0].log_details == ""
    assert repository.list_tasks(task_date=date(2026, 10, 19)) == []

    summary = repository.generate_daily_tasks()

    assert (summary.swept, summary.created) == (1, 2)
