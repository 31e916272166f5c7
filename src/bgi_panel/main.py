"""CLI entrypoint for bgi-panel."""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import rich_click as click
from sqlalchemy.exc import SQLAlchemyError

from bgi_panel import __version__
from bgi_panel.errors import BgiPanelError
from bgi_panel.logging_setup import setup_logging
from bgi_panel.machine.controllers import MachineCliController
from bgi_panel.tasks.controllers import (
    SchedulerRunCommand,
    TaskAppendLogCommand,
    TaskCalendarCommand,
    TaskClaimCommand,
    TaskCliController,
    TaskFieldGetCommand,
    TaskFieldSetCommand,
    TaskGameDataCommand,
    TaskGenerateCommand,
    TaskListCommand,
    TaskReportCommand,
    TaskShowCommand,
)

click.rich_click.USE_MARKDOWN = True
TASK_CONTROLLER = TaskCliController()
MACHINE_CONTROLLER = MachineCliController()

logger = logging.getLogger(__name__)

_db_path_option = click.option(
    "--db-path",
    type=click.Path(path_type=Path),
    default=None,
    help="SQLite DB path.",
)


@click.group()
@click.version_option(version=__version__, prog_name="bgi-panel")
@click.option("--verbose", "-v", is_flag=True, help="Log INFO messages to the console.")
@click.option(
    "--log-dir",
    type=click.Path(path_type=Path),
    envvar="BGI_PANEL_LOG_DIR",
    default=None,
    help="Directory for the bgi_panel.log file.",
)
def bgi_panel(verbose: bool, log_dir: Path | None) -> None:
    """Daily task engine and machine control CLI."""

    setup_logging(
        log_dir=log_dir,
        console_level=logging.INFO if verbose else logging.WARNING,
    )


@bgi_panel.group()
def tasks() -> None:
    """Daily task queue commands."""


@tasks.command("generate")
@_db_path_option
def tasks_generate(db_path: Path | None) -> None:
    """Fail overdue tasks and create today's task for every enabled account."""

    with _cli_errors():
        _emit_lines(TASK_CONTROLLER.generate(TaskGenerateCommand(db_path=db_path)))


@tasks.command("claim")
@_db_path_option
@click.option("--game-type", default=None, help="Only claim tasks of this game type.")
@click.option("--json", "as_json", is_flag=True, help="Print the claimed task as JSON.")
def tasks_claim(db_path: Path | None, game_type: str | None, as_json: bool) -> None:
    """Claim the highest-priority available task."""

    with _cli_errors():
        _emit_lines(
            TASK_CONTROLLER.claim(
                TaskClaimCommand(db_path=db_path, game_type=game_type, as_json=as_json),
            ),
        )


@tasks.command("report")
@_db_path_option
@click.argument("task_id", type=int)
@click.option(
    "--status",
    required=True,
    type=click.Choice(["SUCCESS", "FAILED"], case_sensitive=False),
    help="Outcome of the run.",
)
@click.option("--log", "log_details", default=None, help="Log text appended to the task.")
@click.option("--data", "data_json", default=None, help="Game data as JSON, stored best-effort.")
@click.option(
    "--generation",
    "claim_generation",
    type=int,
    default=None,
    help="Claim generation returned by `claim`; stale reports are rejected.",
)
def tasks_report(  # noqa: PLR0913
    db_path: Path | None,
    task_id: int,
    status: str,
    log_details: str | None,
    data_json: str | None,
    claim_generation: int | None,
) -> None:
    """Report the outcome of a running task."""

    with _cli_errors():
        _emit_lines(
            TASK_CONTROLLER.report(
                TaskReportCommand(
                    db_path=db_path,
                    task_id=task_id,
                    status=status,
                    log_details=log_details,
                    data_json=data_json,
                    claim_generation=claim_generation,
                ),
            ),
        )


@tasks.command("append-log")
@_db_path_option
@click.argument("task_id", type=int)
@click.argument("line")
def tasks_append_log(db_path: Path | None, task_id: int, line: str) -> None:
    """Append one line to a running task's log."""

    with _cli_errors():
        _emit_lines(
            TASK_CONTROLLER.append_log(
                TaskAppendLogCommand(db_path=db_path, task_id=task_id, line=line),
            ),
        )


@tasks.command("game-data")
@_db_path_option
@click.option("--data", "data_json", required=True, help="Game data as JSON.")
@click.option("--username", "game_username", default=None, help="Account game username.")
@click.option("--game-type", default=None, help="Account game type.")
@click.option("--task-id", type=int, default=None, help="Fallback lookup through a task.")
def tasks_game_data(
    db_path: Path | None,
    data_json: str,
    game_username: str | None,
    game_type: str | None,
    task_id: int | None,
) -> None:
    """Store reported game data on the matching account."""

    with _cli_errors():
        _emit_lines(
            TASK_CONTROLLER.push_game_data(
                TaskGameDataCommand(
                    db_path=db_path,
                    data_json=data_json,
                    game_username=game_username,
                    game_type=game_type,
                    task_id=task_id,
                ),
            ),
        )


@tasks.command("list")
@_db_path_option
@click.option("--date", "task_date", default=None, help="Task day, YYYY-MM-DD.")
@click.option("--status", default=None, help="PENDING, RUNNING, SUCCESS or FAILED.")
@click.option(
    "--limit",
    type=click.IntRange(min=1, max=1000),
    default=50,
    show_default=True,
    help="Max number of tasks to print.",
)
def tasks_list(
    db_path: Path | None,
    task_date: str | None,
    status: str | None,
    limit: int,
) -> None:
    """List tasks, newest day first."""

    with _cli_errors():
        _emit_lines(
            TASK_CONTROLLER.list_tasks(
                TaskListCommand(db_path=db_path, task_date=task_date, status=status, limit=limit),
            ),
        )


@tasks.command("show")
@_db_path_option
@click.argument("task_id", type=int)
def tasks_show(db_path: Path | None, task_id: int) -> None:
    """Show one task with its log."""

    with _cli_errors():
        _emit_lines(TASK_CONTROLLER.show(TaskShowCommand(db_path=db_path, task_id=task_id)))


@tasks.command("calendar")
@_db_path_option
@click.option("--month", required=True, help="Month to aggregate, YYYY-MM.")
@click.option("--user-id", type=int, default=None, help="Only this user's accounts.")
def tasks_calendar(db_path: Path | None, month: str, user_id: int | None) -> None:
    """Print one aggregated status per day."""

    with _cli_errors():
        _emit_lines(
            TASK_CONTROLLER.calendar(
                TaskCalendarCommand(db_path=db_path, month=month, user_id=user_id),
            ),
        )


@tasks.command("field-get")
@_db_path_option
@click.argument("task_id", type=int)
@click.argument("key")
def tasks_field_get(db_path: Path | None, task_id: int, key: str) -> None:
    """Read one whitelisted field of the task's account."""

    with _cli_errors():
        _emit_lines(
            TASK_CONTROLLER.field_get(
                TaskFieldGetCommand(db_path=db_path, task_id=task_id, key=key),
            ),
        )


@tasks.command("field-set")
@_db_path_option
@click.argument("task_id", type=int)
@click.argument("key")
@click.argument("value")
def tasks_field_set(db_path: Path | None, task_id: int, key: str, value: str) -> None:
    """Write one whitelisted field of the task's account."""

    with _cli_errors():
        _emit_lines(
            TASK_CONTROLLER.field_set(
                TaskFieldSetCommand(db_path=db_path, task_id=task_id, key=key, value=value),
            ),
        )


@bgi_panel.group()
def scheduler() -> None:
    """Daily trigger commands."""


@scheduler.command("run")
@_db_path_option
@click.option(
    "--run-on-start/--no-run-on-start",
    default=None,
    help="Generate once before waiting for the first cron tick (default from env).",
)
def scheduler_run(db_path: Path | None, run_on_start: bool | None) -> None:
    """Run the daily task generator until interrupted."""

    with _cli_errors():
        _emit_lines(
            TASK_CONTROLLER.run_scheduler(
                SchedulerRunCommand(db_path=db_path, run_on_start=run_on_start),
            ),
        )


@bgi_panel.group()
def machine() -> None:
    """Automation machine controls."""


@machine.command("status")
def machine_status() -> None:
    """Show heartbeat and smart plug status."""

    with _cli_errors():
        _emit_lines(MACHINE_CONTROLLER.status())


@machine.command("shutdown")
def machine_shutdown() -> None:
    """Ask the machine to shut down over SSH."""

    with _cli_errors():
        _emit_lines(MACHINE_CONTROLLER.shutdown())


@machine.command("wakeup")
def machine_wakeup() -> None:
    """Send a Wake-on-LAN packet."""

    with _cli_errors():
        _emit_lines(MACHINE_CONTROLLER.wakeup())


@machine.command("plug-toggle")
def machine_plug_toggle() -> None:
    """Flip the smart plug switch."""

    with _cli_errors():
        _emit_lines(MACHINE_CONTROLLER.plug_toggle())


@machine.command("force-restart")
def machine_force_restart() -> None:
    """Shutdown, power-cycle and wake the machine. Blocks until the sequence ends."""

    with _cli_errors():
        _emit_lines(MACHINE_CONTROLLER.force_restart())


@contextmanager
def _cli_errors() -> Iterator[None]:
    try:
        yield
    except (BgiPanelError, ValueError, OSError) as error:
        raise click.ClickException(str(error)) from error
    except SQLAlchemyError as error:
        logger.error("Storage operation failed (%s)", type(error).__name__)
        logger.debug("Storage failure details", exc_info=True)
        raise click.ClickException("Internal error: storage operation failed.") from error


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    bgi_panel()
