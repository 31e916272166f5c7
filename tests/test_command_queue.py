from __future__ import annotations

import threading
import time

import allure
import pytest

from bgi_panel.machine.command_queue import DeviceCommandQueue

pytestmark = [
    allure.epic("Machine Control"),
    allure.feature("Device Command Queue"),
]


def test_operations_run_in_submission_order_one_at_a_time() -> None:
    queue = DeviceCommandQueue("test")
    order: list[int] = []
    in_flight = 0
    max_in_flight = 0
    lock = threading.Lock()

    def _operation(index: int):
        def _run() -> int:
            nonlocal in_flight, max_in_flight
            with lock:
                in_flight += 1
                max_in_flight = max(max_in_flight, in_flight)
            time.sleep(0.005)
            order.append(index)
            with lock:
                in_flight -= 1
            return index

        return _run

    try:
        futures = [queue.submit(f"op-{index}", _operation(index)) for index in range(10)]
        results = [future.result(timeout=5) for future in futures]
    finally:
        queue.close()

    assert results == list(range(10))
    assert order == list(range(10))
    assert max_in_flight == 1


def test_failure_is_delivered_only_to_its_caller() -> None:
    queue = DeviceCommandQueue("test")

    def _boom() -> None:
        raise RuntimeError("plug offline")

    try:
        first = queue.submit("first", lambda: "ok-1")
        failing = queue.submit("failing", _boom)
        last = queue.submit("last", lambda: "ok-2")

        assert first.result(timeout=5) == "ok-1"
        with pytest.raises(RuntimeError, match="plug offline"):
            failing.result(timeout=5)
        assert last.result(timeout=5) == "ok-2"
    finally:
        queue.close()


def test_call_blocks_until_operation_settles() -> None:
    queue = DeviceCommandQueue("test")
    started = threading.Event()
    release = threading.Event()

    def _slow() -> str:
        started.set()
        release.wait(timeout=5)
        return "slow"

    try:
        pending = queue.submit("slow", _slow)
        assert started.wait(timeout=5)
        queued = queue.submit("quick", lambda: "quick")
        assert not queued.done()
        release.set()
        assert queue.call("after", lambda: "after") == "after"
        assert pending.result() == "slow"
        assert queued.result() == "quick"
    finally:
        queue.close()
