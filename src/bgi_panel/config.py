"""Runtime configuration for the task engine and machine control."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import urlparse
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from croniter import croniter

from bgi_panel.clock import DEFAULT_TIMEZONE


@dataclass(slots=True)
class SchedulerSettings:
    """Daily task generation settings."""

    timezone: str = DEFAULT_TIMEZONE
    daily_cron: str = "0 4 * * *"
    run_on_start: bool = True


@dataclass(slots=True)
class TaskSettings:
    """Claim and liveness settings for polling agents."""

    claim_grace_seconds: int = 300
    heartbeat_max_age_seconds: int = 120


@dataclass(slots=True)
class SmartPlugSettings:
    """Network power switch settings."""

    base_url: str = "http://192.168.1.8"
    username: str = "admin"
    password: str = ""
    power_sensor_id: str = ""
    switch_id: str = ""
    timeout_seconds: float = 10.0


@dataclass(slots=True)
class MachineSettings:
    """Remote machine recovery settings."""

    ssh_user: str = ""
    ssh_host: str = ""
    ssh_timeout_seconds: float = 15.0
    mac_address: str = ""
    broadcast_address: str = "255.255.255.255"
    shutdown_grace_seconds: float = 300.0
    power_cycle_wait_seconds: float = 60.0
    boot_wait_seconds: float = 60.0


@dataclass(slots=True)
class Settings:
    """Application settings grouped by domain concerns."""

    db_path: Path = Path(".bgi_panel.db")
    sqlite_busy_timeout_ms: int = 5_000
    secret_key: str = ""
    scheduler: SchedulerSettings = field(default_factory=SchedulerSettings)
    tasks: TaskSettings = field(default_factory=TaskSettings)
    plug: SmartPlugSettings = field(default_factory=SmartPlugSettings)
    machine: MachineSettings = field(default_factory=MachineSettings)

    @classmethod
    def from_env(cls, db_path: Path | None = None) -> Settings:
        """Load settings from environment with sane defaults for local development."""

        return cls(
            db_path=db_path or Path(os.getenv("BGI_PANEL_DB_PATH", ".bgi_panel.db")),
            sqlite_busy_timeout_ms=_env_int("BGI_PANEL_SQLITE_BUSY_TIMEOUT_MS", 5_000),
            secret_key=os.getenv("BGI_PANEL_SECRET_KEY", ""),
            scheduler=SchedulerSettings(
                timezone=os.getenv("BGI_PANEL_TIMEZONE", DEFAULT_TIMEZONE),
                daily_cron=os.getenv("BGI_PANEL_DAILY_CRON", "0 4 * * *"),
                run_on_start=_env_bool("BGI_PANEL_RUN_ON_START", default=True),
            ),
            tasks=TaskSettings(
                claim_grace_seconds=_env_int("BGI_PANEL_CLAIM_GRACE_SECONDS", 300),
                heartbeat_max_age_seconds=_env_int("BGI_PANEL_HEARTBEAT_MAX_AGE_SECONDS", 120),
            ),
            plug=SmartPlugSettings(
                base_url=os.getenv("BGI_PANEL_PLUG_BASE_URL", "http://192.168.1.8"),
                username=os.getenv("BGI_PANEL_PLUG_USERNAME", "admin"),
                password=os.getenv("BGI_PANEL_PLUG_PASSWORD", ""),
                power_sensor_id=os.getenv("BGI_PANEL_PLUG_POWER_SENSOR_ID", ""),
                switch_id=os.getenv("BGI_PANEL_PLUG_SWITCH_ID", ""),
                timeout_seconds=_env_float("BGI_PANEL_PLUG_TIMEOUT_SECONDS", 10.0),
            ),
            machine=MachineSettings(
                ssh_user=os.getenv("BGI_PANEL_MACHINE_SSH_USER", ""),
                ssh_host=os.getenv("BGI_PANEL_MACHINE_SSH_HOST", ""),
                ssh_timeout_seconds=_env_float("BGI_PANEL_MACHINE_SSH_TIMEOUT_SECONDS", 15.0),
                mac_address=os.getenv("BGI_PANEL_MACHINE_MAC_ADDRESS", ""),
                broadcast_address=os.getenv(
                    "BGI_PANEL_MACHINE_BROADCAST_ADDRESS",
                    "255.255.255.255",
                ),
                shutdown_grace_seconds=_env_float("BGI_PANEL_SHUTDOWN_GRACE_SECONDS", 300.0),
                power_cycle_wait_seconds=_env_float("BGI_PANEL_POWER_CYCLE_WAIT_SECONDS", 60.0),
                boot_wait_seconds=_env_float("BGI_PANEL_BOOT_WAIT_SECONDS", 60.0),
            ),
        )

    def validate(self) -> None:
        """Raise configuration error for values the runtime cannot work with."""

        try:
            ZoneInfo(self.scheduler.timezone)
        except (ZoneInfoNotFoundError, ValueError) as error:
            raise ValueError(
                f"BGI_PANEL_TIMEZONE is not a known timezone: {self.scheduler.timezone!r}",
            ) from error
        if not croniter.is_valid(self.scheduler.daily_cron):
            raise ValueError(
                f"BGI_PANEL_DAILY_CRON is not a valid cron expression: "
                f"{self.scheduler.daily_cron!r}",
            )
        if self.sqlite_busy_timeout_ms <= 0:
            raise ValueError("BGI_PANEL_SQLITE_BUSY_TIMEOUT_MS must be > 0.")
        if self.tasks.claim_grace_seconds <= 0:
            raise ValueError("BGI_PANEL_CLAIM_GRACE_SECONDS must be > 0.")
        if self.tasks.heartbeat_max_age_seconds <= 0:
            raise ValueError("BGI_PANEL_HEARTBEAT_MAX_AGE_SECONDS must be > 0.")
        parsed = urlparse(self.plug.base_url)
        if parsed.scheme not in {"http", "https"} or not parsed.netloc:
            raise ValueError(
                "Invalid BGI_PANEL_PLUG_BASE_URL: "
                f"{self.plug.base_url!r}. Expected an absolute http:// or https:// URL.",
            )
        for name, value in (
            ("BGI_PANEL_MACHINE_SSH_TIMEOUT_SECONDS", self.machine.ssh_timeout_seconds),
            ("BGI_PANEL_SHUTDOWN_GRACE_SECONDS", self.machine.shutdown_grace_seconds),
            ("BGI_PANEL_POWER_CYCLE_WAIT_SECONDS", self.machine.power_cycle_wait_seconds),
            ("BGI_PANEL_BOOT_WAIT_SECONDS", self.machine.boot_wait_seconds),
        ):
            if value < 0:
                raise ValueError(f"{name} must be >= 0.")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError as error:
        raise ValueError(f"Invalid integer value for {name}: {value!r}") from error


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError as error:
        raise ValueError(f"Invalid number value for {name}: {value!r}") from error


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"Invalid boolean value for {name}: {value!r}")
