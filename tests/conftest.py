"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from datetime import UTC, date, datetime, timedelta
from pathlib import Path

import pytest
from sqlalchemy import update
from sqlmodel import Session

from bgi_panel.clock import CivilClock
from bgi_panel.crypto import AesCbcCipher
from bgi_panel.storage.common import to_db_datetime
from bgi_panel.storage.sqlmodel_models import DailyTask, GameAccount
from bgi_panel.tasks.repository import TaskRepository

# 10:00 in Asia/Shanghai.
START = datetime(2026, 10, 19, 2, 0, tzinfo=UTC)
TEST_SECRET = "test-secret"


class FakeTime:
    """Manually advanced UTC time source for ``CivilClock``."""

    def __init__(self, start: datetime) -> None:
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **delta: float) -> None:
        self.current += timedelta(**delta)


@pytest.fixture()
def fake_time() -> FakeTime:
    return FakeTime(START)


@pytest.fixture()
def clock(fake_time: FakeTime) -> CivilClock:
    return CivilClock(now=fake_time)


@pytest.fixture()
def cipher() -> AesCbcCipher:
    return AesCbcCipher(TEST_SECRET)


@pytest.fixture()
def repository(
    tmp_path: Path,
    clock: CivilClock,
    cipher: AesCbcCipher,
) -> Iterator[TaskRepository]:
    repo = TaskRepository(tmp_path / "tasks.db", clock=clock, cipher=cipher)
    repo.init_schema()
    yield repo
    repo.close()


@pytest.fixture()
def add_account(repository: TaskRepository, cipher: AesCbcCipher) -> Callable[..., int]:
    def _add(  # noqa: PLR0913
        *,
        game_username: str = "traveler",
        game_type: str = "genshin",
        password: str | None = "hunter2",
        user_id: int = 1,
        is_enabled: bool = True,
    ) -> int:
        with Session(repository.engine) as session:
            account = GameAccount(
                user_id=user_id,
                game_type=game_type,
                game_username=game_username,
                game_password_encrypted=cipher.encrypt(password) if password else None,
                settings_json='{"legacy": true}',
                is_enabled=is_enabled,
            )
            session.add(account)
            session.commit()
            session.refresh(account)
            assert account.id is not None
            return account.id

    return _add


@pytest.fixture()
def add_task(repository: TaskRepository, clock: CivilClock) -> Callable[..., int]:
    def _add(  # noqa: PLR0913
        account_id: int,
        *,
        task_date: date | None = None,
        status: str = "PENDING",
        retry_count: int = 0,
        started_at: datetime | None = None,
        claim_generation: int = 0,
    ) -> int:
        with Session(repository.engine) as session:
            task = DailyTask(
                game_account_id=account_id,
                task_date=task_date or clock.today(),
                status=status,
                retry_count=retry_count,
                started_at=to_db_datetime(started_at) if started_at else None,
                claim_generation=claim_generation,
                created_at=to_db_datetime(clock.now()),
            )
            session.add(task)
            session.commit()
            session.refresh(task)
            assert task.id is not None
            return task.id

    return _add


@pytest.fixture()
def set_task(repository: TaskRepository) -> Callable[..., None]:
    """Force task columns into a state the public API cannot reach directly."""

    def _set(task_id: int, **values: object) -> None:
        with Session(repository.engine) as session:
            session.exec(update(DailyTask).where(DailyTask.id == task_id).values(**values))
            session.commit()

    return _set


@pytest.fixture()
def read_account(repository: TaskRepository) -> Callable[[int], GameAccount]:
    def _read(account_id: int) -> GameAccount:
        with Session(repository.engine) as session:
            account = session.get(GameAccount, account_id)
            assert account is not None
            session.expunge(account)
            return account

    return _read
