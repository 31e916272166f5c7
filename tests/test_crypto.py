from __future__ import annotations

import allure
import pytest

from bgi_panel.crypto import AesCbcCipher

pytestmark = [
    allure.epic("Daily Tasks"),
    allure.feature("Credential Handling"),
]


def test_token_format_and_fresh_iv_per_encryption() -> None:
    cipher = AesCbcCipher("s3cret")

    first = cipher.encrypt("hunter2")
    second = cipher.encrypt("hunter2")

    assert first != second
    iv_hex, _, body_hex = first.partition(":")
    assert len(bytes.fromhex(iv_hex)) == 16
    assert len(bytes.fromhex(body_hex)) % 16 == 0
    assert cipher.decrypt(first) == "hunter2"
    assert AesCbcCipher("s3cret").decrypt(second) == "hunter2"


@pytest.mark.parametrize(
    "token",
    ["not-a-token", "00:zz", "00112233445566778899aabbccddeeff:abcd"],
)
def test_undecryptable_tokens_yield_none(token: str) -> None:
    assert AesCbcCipher("s3cret").decrypt(token) is None


def test_empty_secret_is_rejected() -> None:
    with pytest.raises(ValueError, match="must not be empty"):
        AesCbcCipher("")
