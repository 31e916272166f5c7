"""Wake-on-LAN magic packet sender."""

from __future__ import annotations

import logging
import re
from collections.abc import Callable

from wakeonlan import create_magic_packet, send_magic_packet

logger = logging.getLogger(__name__)

WOL_PORT = 9
_MAC_SEPARATORS = re.compile(r"[:\-.]")
_MAC_DIGITS = re.compile(r"^[0-9a-fA-F]{12}$")


def normalize_mac(mac_address: str) -> str:
    """Twelve hex digits, separators stripped; ``ValueError`` for anything else."""

    digits = _MAC_SEPARATORS.sub("", mac_address.strip())
    if not _MAC_DIGITS.match(digits):
        raise ValueError(f"Invalid MAC address: {mac_address!r}")
    return digits.lower()


def build_magic_packet(mac_address: str) -> bytes:
    return create_magic_packet(normalize_mac(mac_address))


class WakeOnLan:
    def __init__(
        self,
        *,
        mac_address: str,
        broadcast_address: str = "255.255.255.255",
        port: int = WOL_PORT,
        sender: Callable[..., None] = send_magic_packet,
    ) -> None:
        self._mac_address = mac_address
        self._broadcast_address = broadcast_address
        self._port = port
        self._sender = sender

    def __call__(self) -> None:
        """Broadcast one magic packet; raises ``OSError``/``ValueError`` on failure."""

        mac = normalize_mac(self._mac_address)
        logger.info(
            "Sending Wake-on-LAN packet to %s via broadcast address %s...",
            self._mac_address,
            self._broadcast_address,
        )
        self._sender(mac, ip_address=self._broadcast_address, port=self._port)
        logger.info("Wake-on-LAN packet sent")
