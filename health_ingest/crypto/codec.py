"""AES-128-ECB codec for device telemetry fields.

Devices zero-pad the plaintext to a multiple of the block size before
encrypting, so decryption must NOT apply PKCS#7 unpadding: the raw cipher
output is decoded as UTF-8 and trailing NUL bytes are stripped.
"""

from __future__ import annotations

import base64
import binascii
import logging

from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from ..errors import CryptoError

logger = logging.getLogger(__name__)

BLOCK_SIZE = 16
KEY_SIZE = 16


class CryptoCodec:
    """Stateless AES-128-ECB codec with a pre-shared key.

    Safe to share between threads: a fresh cipher context is created per
    call.
    """

    def __init__(self, key: bytes):
        if len(key) != KEY_SIZE:
            raise ValueError(f"AES-128 key must be {KEY_SIZE} bytes, got {len(key)}")
        self._cipher = Cipher(algorithms.AES(key), modes.ECB())

    @classmethod
    def from_hex(cls, key_hex: str) -> "CryptoCodec":
        try:
            key = bytes.fromhex(key_hex)
        except ValueError as e:
            raise ValueError(f"Invalid AES key hex: {e}") from e
        return cls(key)

    def decrypt(self, ciphertext_b64: str) -> str:
        """Base64 ciphertext -> plaintext with trailing NULs removed.

        Raises:
            CryptoError: invalid base64, length not block aligned, or the
                decrypted bytes are not UTF-8.
        """
        try:
            data = base64.b64decode(ciphertext_b64, validate=True)
        except (binascii.Error, ValueError) as e:
            raise CryptoError(f"Invalid base64 ciphertext: {e}") from e

        if not data or len(data) % BLOCK_SIZE != 0:
            raise CryptoError(
                f"Ciphertext length {len(data)} is not a multiple of {BLOCK_SIZE}"
            )

        decryptor = self._cipher.decryptor()
        raw = decryptor.update(data) + decryptor.finalize()

        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise CryptoError(f"Decrypted bytes are not UTF-8: {e}") from e

        return text.rstrip("\x00")

    def encrypt(self, plaintext: str) -> str:
        """Inverse of :meth:`decrypt`, zero-padding like the device firmware.

        Used by device simulators and test fixtures.
        """
        data = plaintext.encode("utf-8")
        remainder = len(data) % BLOCK_SIZE
        if remainder or not data:
            data += b"\x00" * (BLOCK_SIZE - remainder)

        encryptor = self._cipher.encryptor()
        raw = encryptor.update(data) + encryptor.finalize()
        return base64.b64encode(raw).decode("ascii")
