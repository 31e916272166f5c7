"""Process-scoped wiring of the task engine and machine control services."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

import httpx

from bgi_panel.clock import CivilClock
from bgi_panel.config import Settings
from bgi_panel.crypto import AesCbcCipher, SecretCipher
from bgi_panel.machine.command_queue import DeviceCommandQueue
from bgi_panel.machine.heartbeat import HeartbeatMonitor
from bgi_panel.machine.recovery import MachineControlService, RecoveryTimings
from bgi_panel.machine.remote_shell import SshShutdown
from bgi_panel.machine.smart_plug import SmartPlugService
from bgi_panel.machine.wake_on_lan import WakeOnLan
from bgi_panel.tasks.repository import TaskRepository
from bgi_panel.tasks.scheduler import DailyTaskScheduler

logger = logging.getLogger(__name__)


def build_clock(settings: Settings) -> CivilClock:
    return CivilClock(settings.scheduler.timezone)


def build_cipher(settings: Settings) -> SecretCipher | None:
    if not settings.secret_key:
        logger.warning("BGI_PANEL_SECRET_KEY is not set; claimed tasks carry no password")
        return None
    return AesCbcCipher(settings.secret_key)


def build_task_repository(
    settings: Settings,
    *,
    clock: CivilClock | None = None,
) -> TaskRepository:
    return TaskRepository(
        settings.db_path,
        clock=clock or build_clock(settings),
        cipher=build_cipher(settings),
        claim_grace_seconds=settings.tasks.claim_grace_seconds,
        sqlite_busy_timeout_ms=settings.sqlite_busy_timeout_ms,
    )


def build_smart_plug(
    settings: Settings,
    *,
    queue: DeviceCommandQueue,
    transport: httpx.BaseTransport | None = None,
) -> SmartPlugService:
    return SmartPlugService(
        base_url=settings.plug.base_url,
        username=settings.plug.username,
        password=settings.plug.password,
        power_sensor_id=settings.plug.power_sensor_id,
        switch_id=settings.plug.switch_id,
        queue=queue,
        timeout_seconds=settings.plug.timeout_seconds,
        transport=transport,
    )


def build_machine_control(
    settings: Settings,
    *,
    plug: SmartPlugService,
    sleep: Callable[[float], None] = time.sleep,
) -> MachineControlService:
    machine = settings.machine
    return MachineControlService(
        plug=plug,
        shutdown=SshShutdown(
            user=machine.ssh_user,
            host=machine.ssh_host,
            timeout_seconds=machine.ssh_timeout_seconds,
        ),
        wake=WakeOnLan(
            mac_address=machine.mac_address,
            broadcast_address=machine.broadcast_address,
        ),
        timings=RecoveryTimings(
            shutdown_grace_seconds=machine.shutdown_grace_seconds,
            power_cycle_wait_seconds=machine.power_cycle_wait_seconds,
            boot_wait_seconds=machine.boot_wait_seconds,
        ),
        sleep=sleep,
    )


@dataclass(slots=True)
class PanelRuntime:
    """Everything a hosting process shares across requests.

    Holds the single heartbeat record and the single smart plug queue; build it once
    per process and pass it around rather than reaching for module globals.
    """

    settings: Settings
    clock: CivilClock
    repository: TaskRepository
    heartbeat: HeartbeatMonitor
    plug_queue: DeviceCommandQueue
    plug: SmartPlugService
    machine: MachineControlService
    scheduler: DailyTaskScheduler

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        plug_transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> PanelRuntime:
        settings.validate()
        clock = build_clock(settings)
        repository = build_task_repository(settings, clock=clock)
        repository.init_schema()
        plug_queue = DeviceCommandQueue("smart-plug")
        plug = build_smart_plug(settings, queue=plug_queue, transport=plug_transport)
        return cls(
            settings=settings,
            clock=clock,
            repository=repository,
            heartbeat=HeartbeatMonitor(
                clock=clock,
                max_age_seconds=settings.tasks.heartbeat_max_age_seconds,
            ),
            plug_queue=plug_queue,
            plug=plug,
            machine=build_machine_control(settings, plug=plug, sleep=sleep),
            scheduler=DailyTaskScheduler(
                repository=repository,
                clock=clock,
                cron=settings.scheduler.daily_cron,
                run_on_start=settings.scheduler.run_on_start,
            ),
        )

    def close(self) -> None:
        self.scheduler.stop()
        self.plug_queue.close()
        self.plug.close()
        self.repository.close()
