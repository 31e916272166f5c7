"""Operator machine controls and the best-effort force-restart sequence."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

from bgi_panel.machine.heartbeat import HeartbeatMonitor, HeartbeatStatus
from bgi_panel.machine.smart_plug import SmartPlugService

logger = logging.getLogger(__name__)

PLUG_UNREACHABLE = "communication failure"


@dataclass(slots=True)
class RecoveryTimings:
    """Fixed waits of the force-restart sequence, in seconds."""

    shutdown_grace_seconds: float = 300.0
    power_cycle_wait_seconds: float = 60.0
    boot_wait_seconds: float = 60.0


@dataclass(slots=True)
class RecoveryReport:
    """Per-step outcome of one force-restart run."""

    shutdown_ok: bool = False
    power_off_ok: bool = False
    power_on_ok: bool = False
    wake_ok: bool = False


@dataclass(slots=True)
class PlugStatus:
    power: str
    is_on: bool


@dataclass(slots=True)
class SystemStatus:
    computer: HeartbeatStatus
    plug: PlugStatus


class MachineControlService:
    """Brings the automation machine back through SSH, smart plug and Wake-on-LAN.

    None of the channels is reliable, so the restart sequence records each step's
    outcome and always carries on to the next one.
    """

    def __init__(
        self,
        *,
        plug: SmartPlugService,
        shutdown: Callable[[], bool],
        wake: Callable[[], None],
        timings: RecoveryTimings | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._plug = plug
        self._shutdown = shutdown
        self._wake = wake
        self._timings = timings or RecoveryTimings()
        self._sleep = sleep

    # -- single operator actions -----------------------------------------------

    def shutdown_ssh(self) -> bool:
        return self._shutdown()

    def wake_on_lan(self) -> None:
        """Send the wake packet; errors propagate to the operator."""

        self._wake()

    def toggle_plug(self) -> bool:
        """Flip the switch and return the new state."""

        if self._plug.get_switch_state():
            self._plug.turn_off()
            return False
        self._plug.turn_on()
        return True

    def system_status(self, heartbeat: HeartbeatMonitor) -> SystemStatus:
        computer = heartbeat.get_status()
        try:
            power = self._plug.get_power()
            is_on = self._plug.get_switch_state()
        except Exception as error:  # noqa: BLE001
            logger.error("Failed to get plug status: %s", error)
            return SystemStatus(computer=computer, plug=PlugStatus(PLUG_UNREACHABLE, False))
        return SystemStatus(computer=computer, plug=PlugStatus(f"{power:.2f} W", is_on))

    # -- force restart ---------------------------------------------------------

    def start_force_restart(self) -> None:
        """Launch the restart sequence in the background and return immediately."""

        threading.Thread(
            target=self._run_detached,
            daemon=True,
            name="force-restart",
        ).start()

    def force_restart_sequence(self) -> RecoveryReport:
        """Shutdown, wait, power-cycle, wait, wake. Runs to the end whatever fails."""

        timings = self._timings
        report = RecoveryReport()
        logger.info("====== Initiating force restart sequence ======")

        report.shutdown_ok = self._attempt("SSH shutdown", self._shutdown_step)
        if report.shutdown_ok:
            logger.info(
                "SSH shutdown succeeded. Waiting %.0fs before power cycle...",
                timings.shutdown_grace_seconds,
            )
            self._sleep(timings.shutdown_grace_seconds)
        else:
            logger.warning("SSH shutdown failed. Proceeding directly to power cycle.")

        report.power_off_ok, report.power_on_ok = self.power_cycle()

        logger.info(
            "Waiting %.0fs for the machine to stabilize after power on...",
            timings.boot_wait_seconds,
        )
        self._sleep(timings.boot_wait_seconds)

        report.wake_ok = self._attempt("Wake-on-LAN", self._wake_step)
        logger.info(
            "====== Force restart sequence finished: shutdown=%s power_off=%s "
            "power_on=%s wake=%s ======",
            report.shutdown_ok,
            report.power_off_ok,
            report.power_on_ok,
            report.wake_ok,
        )
        return report

    def power_cycle(self) -> tuple[bool, bool]:
        """Off, settle, on. The plug is switched back on even if switching off failed."""

        logger.info("Starting power cycle. Turning plug off...")
        off_ok = self._attempt("Plug turn off", self._plug.turn_off)
        logger.info("Waiting %.0fs with power cut...", self._timings.power_cycle_wait_seconds)
        self._sleep(self._timings.power_cycle_wait_seconds)
        logger.info("Wait time finished. Turning plug on...")
        on_ok = self._attempt("Plug turn on", self._plug.turn_on)
        return off_ok, on_ok

    def _shutdown_step(self) -> bool:
        return self._shutdown()

    def _wake_step(self) -> bool:
        self._wake()
        return True

    def _attempt(self, label: str, step: Callable[[], object]) -> bool:
        try:
            outcome = step()
        except Exception as error:  # noqa: BLE001
            logger.error("%s failed: %s", label, error)
            return False
        ok = outcome is not False
        if ok:
            logger.info("%s succeeded", label)
        return ok

    def _run_detached(self) -> None:
        try:
            self.force_restart_sequence()
        except Exception:
            logger.exception("Force restart sequence crashed")
