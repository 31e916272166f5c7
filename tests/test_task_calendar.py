from __future__ import annotations

from datetime import date

import allure
import pytest

from bgi_panel.tasks.models import TaskStatus
from bgi_panel.tasks.repository import TaskRepository

pytestmark = [
    allure.epic("Daily Tasks"),
    allure.feature("History & Calendar"),
]


def test_calendar_aggregates_one_status_per_day(
    repository: TaskRepository,
    add_account,
    add_task,
) -> None:
    first = add_account(game_username="first")
    second = add_account(game_username="second")
    add_task(first, task_date=date(2026, 10, 1), status="SUCCESS")
    add_task(second, task_date=date(2026, 10, 1), status="SUCCESS")
    add_task(first, task_date=date(2026, 10, 2), status="SUCCESS")
    add_task(second, task_date=date(2026, 10, 2), status="FAILED")
    add_task(first, task_date=date(2026, 10, 19), status="SUCCESS")
    add_task(second, task_date=date(2026, 10, 19), status="RUNNING")

    days = repository.daily_status_calendar(month="2026-10")

    by_day = {entry.day: entry.status for entry in days}
    assert by_day[date(2026, 10, 1)] == TaskStatus.SUCCESS
    assert by_day[date(2026, 10, 2)] == TaskStatus.FAILED
    # Past day without any task.
    assert by_day[date(2026, 10, 3)] == TaskStatus.FAILED
    assert by_day[date(2026, 10, 19)] == TaskStatus.PENDING
    assert date(2026, 10, 20) not in by_day
    assert [entry.day for entry in days] == sorted(by_day)
    assert len(days) == 19


def test_calendar_for_future_month_is_empty(repository: TaskRepository) -> None:
    assert repository.daily_status_calendar(month="2026-12") == []


def test_calendar_filters_by_owner(repository: TaskRepository, add_account, add_task) -> None:
    mine = add_account(game_username="mine", user_id=1)
    theirs = add_account(game_username="theirs", user_id=2)
    add_task(mine, task_date=date(2026, 9, 30), status="SUCCESS")
    add_task(theirs, task_date=date(2026, 9, 30), status="FAILED")

    days = repository.daily_status_calendar(month="2026-09", user_id=1)

    assert {entry.day: entry.status for entry in days}[date(2026, 9, 30)] == TaskStatus.SUCCESS


@pytest.mark.parametrize("month", ["2026-13", "October", "2026/10", ""])
def test_calendar_rejects_malformed_month(repository: TaskRepository, month: str) -> None:
    with pytest.raises(ValueError, match="YYYY-MM"):
        repository.daily_status_calendar(month=month)


def test_list_tasks_filters_by_day_and_status(
    repository: TaskRepository,
    add_account,
    add_task,
) -> None:
    account = add_account()
    old = add_task(account, task_date=date(2026, 10, 18), status="FAILED")
    today = add_task(account, status="PENDING")

    assert [task.task_id for task in repository.list_tasks()] == [today, old]
    assert [task.task_id for task in repository.list_tasks(task_date=date(2026, 10, 18))] == [old]
    assert [task.task_id for task in repository.list_tasks(status=TaskStatus.PENDING)] == [today]
    assert len(repository.list_tasks(limit=1)) == 1
    assert repository.get_task(task_id=9999) is None
