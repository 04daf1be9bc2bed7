"""AES decryption stage for raw headset frames."""
from __future__ import annotations

from Crypto.Cipher import AES

from ..constants import FRAME_SIZE, KEY_SIZE
from ..errors import DecryptionError


class FrameCipher:
    """Decrypt fixed-size frames with an AES-128 ECB cipher, no padding."""

    def __init__(self, key: bytes, frame_size: int = FRAME_SIZE) -> None:
        if not isinstance(key, (bytes, bytearray)) or len(key) != KEY_SIZE:
            raise DecryptionError(f"key must be {KEY_SIZE} bytes")
        if frame_size <= 0 or frame_size % AES.block_size:
            raise DecryptionError(f"frame size {frame_size} is not a multiple of the AES block size")
        try:
            self._cipher = AES.new(bytes(key), AES.MODE_ECB)
        except (TypeError, ValueError) as exc:
            raise DecryptionError(f"cipher initialisation failed: {exc}") from exc
        self._frame_size = frame_size

    @property
    def frame_size(self) -> int:
        return self._frame_size

    def decrypt(self, frame: bytes) -> bytes:
        self._check_size(frame)
        try:
            return self._cipher.decrypt(bytes(frame))
        except (TypeError, ValueError) as exc:
            raise DecryptionError(f"decryption failed: {exc}") from exc

    def encrypt(self, plaintext: bytes) -> bytes:
        self._check_size(plaintext)
        try:
            return self._cipher.encrypt(bytes(plaintext))
        except (TypeError, ValueError) as exc:
            raise DecryptionError(f"encryption failed: {exc}") from exc

    def _check_size(self, buffer: bytes) -> None:
        if len(buffer) != self._frame_size:
            raise DecryptionError(f"frame must be {self._frame_size} bytes, got {len(buffer)}")
