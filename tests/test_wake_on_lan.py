from __future__ import annotations

import allure
import pytest

from bgi_panel.machine.wake_on_lan import WakeOnLan, build_magic_packet, normalize_mac

pytestmark = [
    allure.epic("Machine Control"),
    allure.feature("Recovery Channels"),
]


@pytest.mark.parametrize("mac", ["AA:BB:CC:DD:EE:FF", "aa-bb-cc-dd-ee-ff", "aabb.ccdd.eeff"])
def test_magic_packet_layout(mac: str) -> None:
    packet = build_magic_packet(mac)

    assert len(packet) == 102
    assert packet[:6] == b"\xff" * 6
    assert packet[6:] == bytes.fromhex("aabbccddeeff") * 16


@pytest.mark.parametrize("mac", ["", "AA:BB:CC:DD:EE", "GG:BB:CC:DD:EE:FF"])
def test_invalid_mac_is_rejected(mac: str) -> None:
    with pytest.raises(ValueError, match="Invalid MAC"):
        build_magic_packet(mac)


def test_wake_broadcasts_packet_to_configured_address() -> None:
    calls: list[tuple[tuple, dict]] = []
    wake = WakeOnLan(
        mac_address="AA-BB-CC-DD-EE-FF",
        broadcast_address="192.168.1.255",
        sender=lambda *args, **kwargs: calls.append((args, kwargs)),
    )

    wake()

    assert calls == [(("aabbccddeeff",), {"ip_address": "192.168.1.255", "port": 9})]


def test_wake_with_bad_mac_sends_nothing() -> None:
    calls: list[object] = []
    wake = WakeOnLan(mac_address="not-a-mac", sender=lambda *args, **kwargs: calls.append(args))

    with pytest.raises(ValueError, match="Invalid MAC"):
        wake()
    assert calls == []
    assert normalize_mac(" AA:bb:CC:dd:EE:ff ") == "aabbccddeeff"
