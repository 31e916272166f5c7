"""Persistent daily task queue backed by SQLModel + SQLite."""

from __future__ import annotations

import calendar
import json
import logging
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Any

from sqlalchemy import and_, case, func, or_
from sqlalchemy import update as sa_update
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, col, select

from bgi_panel.clock import CivilClock
from bgi_panel.crypto import SecretCipher
from bgi_panel.errors import GameAccountNotFoundError, StaleClaimError, TaskNotFoundError
from bgi_panel.storage.alembic_runner import upgrade_head
from bgi_panel.storage.common import build_sqlite_engine, from_db_datetime, to_db_datetime
from bgi_panel.storage.sqlmodel_models import DailyTask, GameAccount
from bgi_panel.tasks.account_fields import AccountFields, claim_settings
from bgi_panel.tasks.models import (
    REPORTABLE_STATUSES,
    UNFINISHED_STATUSES,
    ClaimedTask,
    DailyTaskView,
    DayStatus,
    GenerationSummary,
    NoWorkAvailable,
    ReportOutcome,
    TaskStatus,
)
from bgi_panel.tasks.retry import RetryPolicy

logger = logging.getLogger(__name__)

DEFAULT_CLAIM_GRACE_SECONDS = 300

OVERDUE_NOTE = (
    "[System] Overdue: task was not finished before the day rolled over; marked as failed.\n"
)
RETRY_NOTE = "[System] Task failed, queued for retry ({count}/{limit})...\n"
EXHAUSTED_NOTE = "[System] Maximum retries reached; task failed permanently.\n"


class TaskRepository:
    """Task lifecycle facade: generate, sweep, claim, report.

    Each public mutation is one transaction. Races between agents are settled by
    conditional UPDATEs keyed on the row state that was read (status and
    ``claim_generation``); a lost race is retried against fresh state.
    """

    def __init__(  # noqa: PLR0913
        self,
        db_path: Path,
        *,
        clock: CivilClock | None = None,
        cipher: SecretCipher | None = None,
        retry_policy: RetryPolicy | None = None,
        claim_grace_seconds: int = DEFAULT_CLAIM_GRACE_SECONDS,
        sqlite_busy_timeout_ms: int = 5_000,
    ) -> None:
        self.db_path = db_path
        self.clock = clock or CivilClock()
        self.cipher = cipher
        self.retry_policy = retry_policy or RetryPolicy()
        self.claim_grace = timedelta(seconds=claim_grace_seconds)
        self.engine = build_sqlite_engine(db_path=db_path, busy_timeout_ms=sqlite_busy_timeout_ms)

    def close(self) -> None:
        """Close underlying DB resources."""

        self.engine.dispose()

    def init_schema(self) -> None:
        """Run schema migrations."""

        upgrade_head(self.db_path)

    # -- generation ------------------------------------------------------------

    def generate_daily_tasks(self) -> GenerationSummary:
        """Fail overdue tasks, then create today's task for every enabled account.

        Both steps share one transaction: a crash midway leaves neither a partial sweep
        nor a partial generation. Running it again on the same day creates nothing.
        """

        today = self.clock.today()
        now = to_db_datetime(self.clock.now())
        summary = GenerationSummary(task_date=today)
        with Session(self.engine) as session:
            swept = session.exec(
                _update(DailyTask)
                .where(
                    col(DailyTask.task_date) < today,
                    col(DailyTask.status).in_([status.value for status in UNFINISHED_STATUSES]),
                )
                .values(
                    status=TaskStatus.FAILED.value,
                    log_details=_append_log_expression(OVERDUE_NOTE),
                    completed_at=now,
                ),
            )
            summary.swept = swept.rowcount

            account_ids = session.exec(
                select(GameAccount.id)
                .where(col(GameAccount.is_enabled).is_(True))
                .order_by(col(GameAccount.id).asc()),
            ).all()
            for account_id in account_ids:
                existing = session.exec(
                    select(DailyTask.id).where(
                        DailyTask.game_account_id == account_id,
                        DailyTask.task_date == today,
                    ),
                ).first()
                if existing is not None:
                    summary.skipped += 1
                    continue
                session.add(
                    DailyTask(
                        game_account_id=account_id,
                        task_date=today,
                        status=TaskStatus.PENDING.value,
                        created_at=now,
                    ),
                )
                summary.created += 1
            session.commit()

        if summary.swept:
            logger.info("Auto-failed %d overdue tasks from previous days", summary.swept)
        logger.info(
            "Daily generation for %s: accounts=%d created=%d skipped=%d",
            today.isoformat(),
            len(account_ids),
            summary.created,
            summary.skipped,
        )
        return summary

    # -- claim -----------------------------------------------------------------

    def claim_next_task(self, *, game_type: str | None = None) -> ClaimedTask | NoWorkAvailable:
        """Atomically claim the highest-priority available task.

        Ranking: RUNNING tasks orphaned past the grace window, then fresh PENDING tasks,
        then PENDING retries; ties go to the lowest id.
        """

        while True:
            now = self.clock.now()
            reclaim_before = to_db_datetime(now - self.claim_grace)
            priority = case(
                (col(DailyTask.status) == TaskStatus.RUNNING.value, 1),
                (col(DailyTask.retry_count) == 0, 2),
                else_=3,
            )
            with Session(self.engine) as session:
                statement = (
                    select(DailyTask)
                    .join(GameAccount, col(GameAccount.id) == col(DailyTask.game_account_id))
                    .where(
                        or_(
                            col(DailyTask.status) == TaskStatus.PENDING.value,
                            and_(
                                col(DailyTask.status) == TaskStatus.RUNNING.value,
                                col(DailyTask.started_at) < reclaim_before,
                            ),
                        ),
                    )
                )
                if game_type:
                    statement = statement.where(GameAccount.game_type == game_type)
                candidate = session.exec(
                    statement.order_by(priority.asc(), col(DailyTask.id).asc()).limit(1),
                ).first()
                if candidate is None:
                    return NoWorkAvailable(game_type=game_type)

                task_id = candidate.id or 0
                account_id = candidate.game_account_id
                task_date = candidate.task_date
                previous_status = candidate.status
                generation = candidate.claim_generation + 1
                result = session.exec(
                    _update(DailyTask)
                    .where(
                        col(DailyTask.id) == task_id,
                        col(DailyTask.status) == previous_status,
                        col(DailyTask.claim_generation) == candidate.claim_generation,
                    )
                    .values(
                        status=TaskStatus.RUNNING.value,
                        started_at=to_db_datetime(now),
                        claim_generation=generation,
                    ),
                )
                if result.rowcount != 1:
                    session.rollback()
                    continue

                account = AccountFields(session.connection()).read_row(account_id)
                if account is None:
                    session.rollback()
                    raise GameAccountNotFoundError(
                        f"Game account {account_id} for task {task_id} not found.",
                    )
                session.commit()

            if previous_status == TaskStatus.RUNNING.value:
                logger.warning(
                    "Reclaimed orphaned task %d (generation %d)",
                    task_id,
                    generation,
                )
            logger.info("Task %d claimed for account %d", task_id, account_id)
            return ClaimedTask(
                task_id=task_id,
                claim_generation=generation,
                task_date=task_date,
                game_type=account["game_type"],
                game_username=account["game_username"],
                game_password=self._decrypt_password(account.get("game_password_encrypted")),
                settings=claim_settings(account),
            )

    # -- completion ------------------------------------------------------------

    def report_task(  # noqa: PLR0913
        self,
        *,
        task_id: int,
        status: TaskStatus,
        log_details: str | None = None,
        data: Any = None,
        claim_generation: int | None = None,
    ) -> ReportOutcome:
        """Apply an agent's SUCCESS/FAILED report to a running task.

        ``claim_generation``, when given, must match the current claim; a report from a
        claim that was reclaimed after the grace window is rejected. Reports without it
        apply to whatever claim is current.
        """

        if status not in REPORTABLE_STATUSES:
            raise ValueError(f"Unsupported report status: {status}")
        user_log = _format_log_line(log_details) if log_details else ""

        while True:
            now = to_db_datetime(self.clock.now())
            with Session(self.engine) as session:
                row = session.exec(
                    select(DailyTask).where(
                        DailyTask.id == task_id,
                        DailyTask.status == TaskStatus.RUNNING.value,
                    ),
                ).one_or_none()
                if row is None:
                    raise TaskNotFoundError(task_id)
                if claim_generation is not None and row.claim_generation != claim_generation:
                    raise StaleClaimError(
                        task_id,
                        reported=claim_generation,
                        current=row.claim_generation,
                    )

                account_id = row.game_account_id
                values: dict[str, Any]
                if status == TaskStatus.SUCCESS:
                    next_status = TaskStatus.SUCCESS
                    retry_count = row.retry_count
                    values = {
                        "status": next_status.value,
                        "completed_at": now,
                        "log_details": _append_log_expression(user_log),
                    }
                else:
                    decision = self.retry_policy.register_failure(row.retry_count)
                    retry_count = decision.retry_count
                    if decision.exhausted:
                        next_status = TaskStatus.FAILED
                        values = {
                            "status": next_status.value,
                            "retry_count": retry_count,
                            "completed_at": now,
                            "log_details": _append_log_expression(user_log + EXHAUSTED_NOTE),
                        }
                    else:
                        next_status = TaskStatus.PENDING
                        note = RETRY_NOTE.format(count=retry_count, limit=decision.max_retries)
                        values = {
                            "status": next_status.value,
                            "retry_count": retry_count,
                            "log_details": _append_log_expression(user_log + note),
                        }

                result = session.exec(
                    _update(DailyTask)
                    .where(
                        col(DailyTask.id) == task_id,
                        col(DailyTask.status) == TaskStatus.RUNNING.value,
                        col(DailyTask.claim_generation) == row.claim_generation,
                    )
                    .values(**values),
                )
                if result.rowcount != 1:
                    session.rollback()
                    continue

                if data is not None:
                    self._forward_game_data(
                        session=session,
                        account_id=account_id,
                        data=data,
                        now=now,
                    )
                session.commit()

            if next_status == TaskStatus.PENDING:
                logger.info("Task %d scheduled for retry (%d)", task_id, retry_count)
            elif status == TaskStatus.FAILED:
                logger.info("Task %d failed permanently", task_id)
            logger.info("Task %d reported as %s", task_id, status.value)
            return ReportOutcome(task_id=task_id, status=next_status, retry_count=retry_count)

    def append_log(self, *, task_id: int, line: str) -> None:
        """Append one line to a running task's log."""

        with Session(self.engine) as session:
            result = session.exec(
                _update(DailyTask)
                .where(
                    col(DailyTask.id) == task_id,
                    col(DailyTask.status) == TaskStatus.RUNNING.value,
                )
                .values(log_details=_append_log_expression(_format_log_line(line))),
            )
            if result.rowcount != 1:
                session.rollback()
                raise TaskNotFoundError(task_id)
            session.commit()

    # -- account data ------------------------------------------------------------

    def update_game_data(
        self,
        *,
        data: Any,
        game_username: str | None = None,
        game_type: str | None = None,
        task_id: int | None = None,
    ) -> None:
        """Store agent-reported game data on the matching account.

        Matches by (username, game type) first and falls back to the account behind
        ``task_id``.
        """

        payload = json.dumps(data, ensure_ascii=False)
        now = to_db_datetime(self.clock.now())
        with Session(self.engine) as session:
            changed = 0
            if game_username and game_type:
                changed = session.exec(
                    _update(GameAccount)
                    .where(
                        col(GameAccount.game_username) == game_username,
                        col(GameAccount.game_type) == game_type,
                    )
                    .values(game_data_json=payload, last_game_data_sync=now),
                ).rowcount
            if changed == 0 and task_id is not None:
                account_id = session.exec(
                    select(DailyTask.game_account_id).where(DailyTask.id == task_id),
                ).first()
                if account_id is not None:
                    changed = session.exec(
                        _update(GameAccount)
                        .where(col(GameAccount.id) == account_id)
                        .values(game_data_json=payload, last_game_data_sync=now),
                    ).rowcount
            if changed == 0:
                session.rollback()
                raise GameAccountNotFoundError("No matching game account; update skipped.")
            session.commit()

    def get_field(self, *, task_id: int, key: str) -> Any:
        """Read one whitelisted field of the account behind ``task_id``."""

        with Session(self.engine) as session:
            account_id = self._account_id_for_task(session=session, task_id=task_id)
            return AccountFields(session.connection()).get_value(account_id, key)

    def set_field(self, *, task_id: int, key: str, value: Any) -> None:
        """Write one whitelisted field of the account behind ``task_id``."""

        with Session(self.engine) as session:
            account_id = self._account_id_for_task(session=session, task_id=task_id)
            AccountFields(session.connection()).set_value(account_id, key, value)
            session.commit()

    # -- read side ---------------------------------------------------------------

    def get_task(self, *, task_id: int) -> DailyTaskView | None:
        with Session(self.engine) as session:
            row = session.exec(select(DailyTask).where(DailyTask.id == task_id)).one_or_none()
            return _to_task_view(row) if row is not None else None

    def list_tasks(
        self,
        *,
        task_date: date | None = None,
        status: TaskStatus | None = None,
        limit: int = 50,
    ) -> list[DailyTaskView]:
        """List tasks, newest first, optionally filtered by day and status."""

        with Session(self.engine) as session:
            statement = select(DailyTask)
            if task_date is not None:
                statement = statement.where(DailyTask.task_date == task_date)
            if status is not None:
                statement = statement.where(DailyTask.status == status.value)
            rows = session.exec(
                statement.order_by(col(DailyTask.task_date).desc(), col(DailyTask.id).asc())
                .limit(limit),
            ).all()
        return [_to_task_view(row) for row in rows]

    def daily_status_calendar(self, *, month: str, user_id: int | None = None) -> list[DayStatus]:
        """Aggregate one status per day for ``month`` (``YYYY-MM``).

        A day is FAILED if any task failed, PENDING while anything is unfinished and
        SUCCESS only when everything succeeded. Past days with no task at all count as
        FAILED.
        """

        year, month_number = _parse_month(month)
        first_day = date(year, month_number, 1)
        last_day = date(year, month_number, calendar.monthrange(year, month_number)[1])
        with Session(self.engine) as session:
            statement = (
                select(DailyTask.task_date, DailyTask.status)
                .join(GameAccount, col(GameAccount.id) == col(DailyTask.game_account_id))
                .where(
                    col(DailyTask.task_date) >= first_day,
                    col(DailyTask.task_date) <= last_day,
                )
            )
            if user_id is not None:
                statement = statement.where(GameAccount.user_id == user_id)
            rows = session.exec(statement.order_by(col(DailyTask.task_date).asc())).all()

        per_day: dict[date, TaskStatus] = {}
        for task_date, raw_status in rows:
            per_day[task_date] = _merge_day_status(per_day.get(task_date), TaskStatus(raw_status))

        today = self.clock.today()
        day = first_day
        while day <= last_day and day < today:
            per_day.setdefault(day, TaskStatus.FAILED)
            day += timedelta(days=1)
        return [DayStatus(day=key, status=per_day[key]) for key in sorted(per_day)]

    # -- helpers -----------------------------------------------------------------

    def _account_id_for_task(self, *, session: Session, task_id: int) -> int:
        account_id = session.exec(
            select(DailyTask.game_account_id).where(DailyTask.id == task_id),
        ).first()
        if account_id is None:
            raise TaskNotFoundError(task_id, reason="not found")
        return account_id

    def _decrypt_password(self, token: str | None) -> str | None:
        if not token:
            return ""
        if self.cipher is None:
            logger.warning("No secret cipher configured; password withheld from claim")
            return None
        return self.cipher.decrypt(token)

    def _forward_game_data(
        self,
        *,
        session: Session,
        account_id: int,
        data: Any,
        now: datetime,
    ) -> None:
        try:
            payload = json.dumps(data, ensure_ascii=False)
            session.exec(
                _update(GameAccount)
                .where(col(GameAccount.id) == account_id)
                .values(game_data_json=payload, last_game_data_sync=now),
            )
        except (TypeError, ValueError, SQLAlchemyError) as error:
            logger.warning("Failed to store game data for account %d: %s", account_id, error)


def _update(model: type[DailyTask] | type[GameAccount]) -> Any:
    # Callers read rowcount and never reuse loaded rows after the update.
    return sa_update(model).execution_options(synchronize_session=False)


def _append_log_expression(text: str) -> Any:
    return func.coalesce(col(DailyTask.log_details), "").concat(text)


def _format_log_line(text: str) -> str:
    return text.rstrip("\n") + "\n"


def _merge_day_status(current: TaskStatus | None, incoming: TaskStatus) -> TaskStatus:
    if incoming in UNFINISHED_STATUSES:
        incoming = TaskStatus.PENDING
    if current is None:
        return incoming
    if TaskStatus.FAILED in (current, incoming):
        return TaskStatus.FAILED
    if TaskStatus.PENDING in (current, incoming):
        return TaskStatus.PENDING
    return TaskStatus.SUCCESS


def _parse_month(month: str) -> tuple[int, int]:
    try:
        parsed = datetime.strptime(month, "%Y-%m")
    except ValueError as error:
        raise ValueError(f"Month must be formatted as YYYY-MM, got {month!r}") from error
    return parsed.year, parsed.month


def _to_task_view(row: DailyTask) -> DailyTaskView:
    return DailyTaskView(
        task_id=row.id or 0,
        game_account_id=row.game_account_id,
        task_date=row.task_date,
        status=TaskStatus(row.status),
        retry_count=row.retry_count,
        claim_generation=row.claim_generation,
        log_details=row.log_details or "",
        started_at=from_db_datetime(row.started_at),
        completed_at=from_db_datetime(row.completed_at),
        created_at=from_db_datetime(row.created_at) or row.created_at,
    )
