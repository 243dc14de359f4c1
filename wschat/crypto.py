"""AES-CFB encryption with the IV prepended to the output."""

from __future__ import annotations

import base64

from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

BLOCK_SIZE = 16


def encrypt_aes(data: bytes, key: bytes, iv: bytes) -> str:
    """Encrypt with AES in CFB mode and return base64(iv || ciphertext).

    The IV is zero-padded or truncated to one block. An invalid key
    length raises ValueError.
    """
    iv_block = bytes(iv[:BLOCK_SIZE]).ljust(BLOCK_SIZE, b"\0")
    encryptor = Cipher(algorithms.AES(bytes(key)), modes.CFB(iv_block)).encryptor()
    ciphertext = encryptor.update(bytes(data)) + encryptor.finalize()
    return base64.b64encode(iv_block + ciphertext).decode("ascii")