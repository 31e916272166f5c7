"""Error types raised by the task engine and machine control layer."""

from __future__ import annotations


class BgiPanelError(Exception):
    """Base class for expected, reportable failures."""


class TaskNotFoundError(BgiPanelError):
    """The task id does not resolve to a task in a state the operation accepts."""

    def __init__(self, task_id: int, reason: str = "not found or not running") -> None:
        super().__init__(f"Task {task_id} {reason}.")
        self.task_id = task_id


class StaleClaimError(TaskNotFoundError):
    """A report came from a claim that has since been superseded by a reclaim."""

    def __init__(self, task_id: int, *, reported: int, current: int) -> None:
        super().__init__(
            task_id,
            reason=f"was reclaimed (report generation={reported}, current={current})",
        )
        self.reported_generation = reported
        self.current_generation = current


class GameAccountNotFoundError(BgiPanelError):
    """No game account matches the lookup."""


class InvalidFieldKeyError(BgiPanelError):
    """A field key is not a plain identifier."""


class UnknownFieldError(BgiPanelError):
    """A field key is not in the current whitelist of account fields."""


class DeviceCommandError(BgiPanelError):
    """The smart plug rejected or failed a command."""
