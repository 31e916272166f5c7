"""Strict FIFO execution channel for one stateful external device."""

from __future__ import annotations

import logging
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class DeviceCommandQueue:
    """Serializes every call to a device through one worker thread.

    Operations run in submission order and never overlap. Each result or exception is
    delivered only through the caller's own future, so a failed command never cancels
    the commands queued behind it.
    """

    def __init__(self, name: str = "device") -> None:
        self.name = name
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"{name}-queue")

    def submit(self, label: str, operation: Callable[[], T]) -> Future[T]:
        logger.debug("[%s] Queued %r", self.name, label)
        return self._executor.submit(self._run, label, operation)

    def call(self, label: str, operation: Callable[[], T]) -> T:
        """Queue ``operation`` and block until it settles."""

        return self.submit(label, operation).result()

    def close(self) -> None:
        self._executor.shutdown(wait=True)

    def _run(self, label: str, operation: Callable[[], T]) -> T:
        logger.info("[%s] Starting %r operation from queue...", self.name, label)
        try:
            result = operation()
        except Exception as error:
            logger.error("[%s] %r failed: %s", self.name, label, error)
            raise
        logger.info("[%s] %r completed", self.name, label)
        return result
