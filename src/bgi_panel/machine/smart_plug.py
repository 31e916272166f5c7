"""HTTP client for the network power switch, serialized through a command queue."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from bgi_panel.errors import DeviceCommandError
from bgi_panel.machine.command_queue import DeviceCommandQueue

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0


class SmartPlugService:
    """Power readings and switch control for one smart plug.

    The plug keeps state and misbehaves under concurrent requests, so every call goes
    through the shared :class:`DeviceCommandQueue`.
    """

    def __init__(  # noqa: PLR0913
        self,
        *,
        base_url: str,
        username: str,
        password: str,
        power_sensor_id: str,
        switch_id: str,
        queue: DeviceCommandQueue,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._power_sensor_id = power_sensor_id
        self._switch_id = switch_id
        self._queue = queue
        self._client = httpx.Client(
            base_url=base_url,
            auth=httpx.DigestAuth(username, password),
            timeout=httpx.Timeout(timeout_seconds, connect=5.0),
            transport=transport,
        )

    def get_power(self) -> float:
        """Current draw in watts."""

        return self._queue.call("get_power", self._read_power)

    def get_switch_state(self) -> bool:
        """``True`` when the switch is on."""

        return self._queue.call("get_switch_state", self._read_switch)

    def turn_on(self) -> None:
        self._queue.call("turn_on", lambda: self._request(f"/switch/{self._switch_id}/turn_on"))
        logger.info("Plug is ON")

    def turn_off(self) -> None:
        self._queue.call("turn_off", lambda: self._request(f"/switch/{self._switch_id}/turn_off"))
        logger.info("Plug is OFF")

    def close(self) -> None:
        self._client.close()

    def _read_power(self) -> float:
        value = self._request(f"/sensor/{self._power_sensor_id}").get("value")
        try:
            return float(value)
        except (TypeError, ValueError) as error:
            raise DeviceCommandError(f"Unexpected power reading: {value!r}") from error

    def _read_switch(self) -> bool:
        return bool(self._request(f"/switch/{self._switch_id}").get("value"))

    def _request(self, path: str) -> dict[str, Any]:
        try:
            response = self._client.get(path)
        except httpx.HTTPError as error:
            raise DeviceCommandError(f"Smart plug request {path} failed: {error}") from error
        if not response.is_success:
            raise DeviceCommandError(
                f"Smart plug request {path} failed: HTTP {response.status_code}",
            )
        if not response.content:
            return {}
        try:
            payload = response.json()
        except ValueError as error:
            raise DeviceCommandError(f"Smart plug returned non-JSON body for {path}") from error
        return payload if isinstance(payload, dict) else {"value": payload}
