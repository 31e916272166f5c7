from __future__ import annotations

import json

import allure
import pytest
from sqlalchemy import text

from bgi_panel.errors import (
    GameAccountNotFoundError,
    InvalidFieldKeyError,
    TaskNotFoundError,
    UnknownFieldError,
)
from bgi_panel.tasks.models import ClaimedTask
from bgi_panel.tasks.repository import TaskRepository

pytestmark = [
    allure.epic("Daily Tasks"),
    allure.feature("Account Fields & Game Data"),
]


@pytest.fixture()
def task_id(repository: TaskRepository, add_account) -> int:
    add_account(game_username="traveler", game_type="genshin")
    repository.generate_daily_tasks()
    return repository.list_tasks()[0].task_id


def test_get_and_set_known_field(repository: TaskRepository, task_id: int) -> None:
    assert repository.get_field(task_id=task_id, key="game_username") == "traveler"

    repository.set_field(task_id=task_id, key="game_username", value="lumine")

    assert repository.get_field(task_id=task_id, key="game_username") == "lumine"


def test_runtime_added_column_is_readable_writable_and_claimed(
    repository: TaskRepository,
    task_id: int,
) -> None:
    with repository.engine.begin() as connection:
        connection.execute(text("ALTER TABLE game_accounts ADD COLUMN resin_threshold INTEGER"))

    repository.set_field(task_id=task_id, key="resin_threshold", value=150)

    assert repository.get_field(task_id=task_id, key="resin_threshold") == 150
    claimed = repository.claim_next_task()
    assert isinstance(claimed, ClaimedTask)
    assert claimed.settings["resin_threshold"] == 150


@pytest.mark.parametrize(
    "key",
    ["game_username; DROP TABLE daily_tasks", "a-b", "", "name with space"],
)
def test_malformed_keys_are_rejected(repository: TaskRepository, task_id: int, key: str) -> None:
    with pytest.raises(InvalidFieldKeyError):
        repository.get_field(task_id=task_id, key=key)
    with pytest.raises(InvalidFieldKeyError):
        repository.set_field(task_id=task_id, key=key, value="x")


@pytest.mark.parametrize("key", ["not_a_column", "id", "user_id", "game_password_encrypted"])
def test_unknown_and_protected_keys_are_rejected(
    repository: TaskRepository,
    task_id: int,
    key: str,
) -> None:
    with pytest.raises(UnknownFieldError):
        repository.get_field(task_id=task_id, key=key)
    with pytest.raises(UnknownFieldError):
        repository.set_field(task_id=task_id, key=key, value="x")


def test_field_access_requires_existing_task(repository: TaskRepository) -> None:
    with pytest.raises(TaskNotFoundError):
        repository.get_field(task_id=42, key="game_username")


def test_update_game_data_matches_username_and_game_type(
    repository: TaskRepository,
    add_account,
    read_account,
) -> None:
    genshin = add_account(game_username="traveler", game_type="genshin")
    starrail = add_account(game_username="traveler", game_type="starrail")

    repository.update_game_data(
        data={"stellar_jade": 1600},
        game_username="traveler",
        game_type="starrail",
    )

    assert json.loads(read_account(starrail).game_data_json or "") == {"stellar_jade": 1600}
    assert read_account(genshin).game_data_json is None


def test_update_game_data_falls_back_to_task_account(
    repository: TaskRepository,
    task_id: int,
    read_account,
) -> None:
    repository.update_game_data(
        data={"resin": 40},
        game_username="someone-else",
        game_type="genshin",
        task_id=task_id,
    )

    account_id = repository.list_tasks()[0].game_account_id
    assert json.loads(read_account(account_id).game_data_json or "") == {"resin": 40}


def test_update_game_data_without_match_raises(repository: TaskRepository) -> None:
    with pytest.raises(GameAccountNotFoundError):
        repository.update_game_data(data={}, game_username="ghost", game_type="genshin")
    with pytest.raises(GameAccountNotFoundError):
        repository.update_game_data(data={}, task_id=404)
