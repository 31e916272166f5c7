"""Graceful shutdown of the remote Windows machine over SSH."""

from __future__ import annotations

import logging
import subprocess
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_SSH_TIMEOUT_SECONDS = 15.0
SHUTDOWN_COMMAND = "shutdown /s /t 60"

Runner = Callable[..., "subprocess.CompletedProcess[Any]"]


class SshShutdown:
    """Sends ``shutdown /s /t 60`` so Windows gets a minute to close cleanly."""

    def __init__(
        self,
        *,
        user: str,
        host: str,
        timeout_seconds: float = DEFAULT_SSH_TIMEOUT_SECONDS,
        runner: Runner = subprocess.run,
    ) -> None:
        self._user = user
        self._host = host
        self._timeout = timeout_seconds
        self._runner = runner

    @property
    def argv(self) -> list[str]:
        return [
            "ssh",
            "-o",
            "BatchMode=yes",
            "-o",
            f"ConnectTimeout={max(1, int(self._timeout))}",
            f"{self._user}@{self._host}",
            SHUTDOWN_COMMAND,
        ]

    def __call__(self) -> bool:
        """Return ``True`` when the command was delivered; never raises."""

        if not self._user or not self._host:
            logger.error("SSH shutdown skipped: machine SSH user/host not configured")
            return False
        logger.info("Attempting SSH shutdown of %s@%s...", self._user, self._host)
        try:
            completed = self._runner(
                self.argv,
                capture_output=True,
                text=True,
                timeout=self._timeout,
                check=False,
            )
        except subprocess.TimeoutExpired:
            logger.error("SSH shutdown timed out after %.0fs", self._timeout)
            return False
        except OSError as error:
            logger.error("SSH shutdown could not start: %s", error)
            return False
        if completed.returncode != 0:
            logger.error(
                "SSH shutdown failed (exit=%s): %s",
                completed.returncode,
                (completed.stderr or "").strip()[:500],
            )
            return False
        logger.info("SSH shutdown command sent successfully")
        return True
