"""Controllers for machine control CLI commands."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from bgi_panel.config import Settings
from bgi_panel.machine.command_queue import DeviceCommandQueue
from bgi_panel.machine.heartbeat import HeartbeatMonitor
from bgi_panel.machine.recovery import MachineControlService
from bgi_panel.runtime import build_clock, build_machine_control, build_smart_plug


class MachineCliController:
    """Coordinates operator actions against the automation machine."""

    def status(self) -> list[str]:
        settings = _settings()
        heartbeat = HeartbeatMonitor(
            clock=build_clock(settings),
            max_age_seconds=settings.tasks.heartbeat_max_age_seconds,
        )
        with _machine(settings) as machine:
            status = machine.system_status(heartbeat)
        last_seen = status.computer.last_seen.isoformat() if status.computer.last_seen else "-"
        return [
            "Computer: "
            f"connected={'yes' if status.computer.is_connected else 'no'} "
            f"last_seen={last_seen}",
            f"Plug: power={status.plug.power} on={'yes' if status.plug.is_on else 'no'}",
        ]

    def shutdown(self) -> list[str]:
        with _machine(_settings()) as machine:
            ok = machine.shutdown_ssh()
        if not ok:
            return ["Shutdown command failed; see log for details."]
        return ["Shutdown command sent."]

    def wakeup(self) -> list[str]:
        with _machine(_settings()) as machine:
            machine.wake_on_lan()
        return ["Wake-on-LAN packet sent."]

    def plug_toggle(self) -> list[str]:
        with _machine(_settings()) as machine:
            is_on = machine.toggle_plug()
        return [f"Plug is now {'ON' if is_on else 'OFF'}."]

    def force_restart(self) -> list[str]:
        with _machine(_settings()) as machine:
            report = machine.force_restart_sequence()
        return [
            "Force restart finished: "
            f"shutdown={'ok' if report.shutdown_ok else 'failed'} "
            f"power_off={'ok' if report.power_off_ok else 'failed'} "
            f"power_on={'ok' if report.power_on_ok else 'failed'} "
            f"wake={'ok' if report.wake_ok else 'failed'}",
        ]


def _settings() -> Settings:
    settings = Settings.from_env()
    settings.validate()
    return settings


@contextmanager
def _machine(settings: Settings) -> Iterator[MachineControlService]:
    queue = DeviceCommandQueue("smart-plug")
    plug = build_smart_plug(settings, queue=queue)
    try:
        yield build_machine_control(settings, plug=plug)
    finally:
        queue.close()
        plug.close()
