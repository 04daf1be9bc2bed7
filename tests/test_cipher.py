from __future__ import annotations

import pytest

from emokit.errors import DecryptionError
from emokit.hardware import derive_key
from emokit.ingestion import FrameCipher

FIPS_KEY = bytes(range(16))
FIPS_PLAINTEXT = bytes.fromhex("00112233445566778899aabbccddeeff")
FIPS_CIPHERTEXT = bytes.fromhex("69c4e0d86a7b0430d8cdb78070b4c55a")


def test_decrypt_uses_aes_ecb_per_block() -> None:
    cipher = FrameCipher(FIPS_KEY)

    plaintext = cipher.decrypt(FIPS_CIPHERTEXT * 2)

    assert plaintext == FIPS_PLAINTEXT * 2


def test_encrypt_matches_known_answer() -> None:
    cipher = FrameCipher(FIPS_KEY)
    assert cipher.encrypt(FIPS_PLAINTEXT * 2) == FIPS_CIPHERTEXT * 2


@pytest.mark.parametrize("size", [0, 16, 31, 33, 48])
def test_decrypt_rejects_wrong_frame_size(size: int) -> None:
    cipher = FrameCipher(FIPS_KEY)
    with pytest.raises(DecryptionError):
        cipher.decrypt(bytes(size))


@pytest.mark.parametrize("key", [b"", bytes(15), bytes(24), "not-bytes-key-16"])
def test_cipher_rejects_unusable_key(key) -> None:
    with pytest.raises(DecryptionError):
        FrameCipher(key)


def test_derive_key_consumer_layout() -> None:
    key = derive_key("ABCD1234")
    assert key == b"4\x003T2\x101B4\x003H2\x001P"


def test_derive_key_research_layout() -> None:
    key = derive_key("ABCD1234", research=True)
    assert key == b"4\x003H4\x003T2\x101B2\x001P"


def test_derive_key_requires_four_characters() -> None:
    with pytest.raises(ValueError):
        derive_key("123")
