"""
AES-CBC with PKCS#7 padding.

Thin wrapper over the ``cryptography`` primitives. Each scheme in this
package builds its own ``CbcCipher`` from its own key; instances never share
key material.
"""

from typing import Optional

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

BLOCK_SIZE = 16  # bytes
KEY_SIZE = 32  # bytes (AES-256)


class CipherError(Exception):
    """Raised when encryption or decryption fails."""
    pass


def zero_pad_key(key: bytes, size: int = KEY_SIZE) -> bytes:
    """Right-pad a short key with zero bytes up to the AES key size."""
    if len(key) > size:
        raise CipherError(f"Key longer than {size} bytes")
    return key + b"\x00" * (size - len(key))


class CbcCipher:
    """AES-CBC/PKCS7 bound to one key and, optionally, a fixed IV."""

    def __init__(self, key: bytes, iv: Optional[bytes] = None):
        if len(key) not in (16, 24, 32):
            raise CipherError(f"Invalid AES key length: {len(key)} bytes")
        if iv is not None and len(iv) != BLOCK_SIZE:
            raise CipherError(f"Invalid IV length: {len(iv)} bytes")
        self._key = key
        self._iv = iv

    def _resolve_iv(self, iv: Optional[bytes]) -> bytes:
        iv = iv if iv is not None else self._iv
        if iv is None or len(iv) != BLOCK_SIZE:
            raise CipherError("Missing or invalid IV")
        return iv

    def encrypt(self, plaintext: bytes, iv: Optional[bytes] = None) -> bytes:
        iv = self._resolve_iv(iv)
        padder = padding.PKCS7(algorithms.AES.block_size).padder()
        padded = padder.update(plaintext) + padder.finalize()
        encryptor = Cipher(algorithms.AES(self._key), modes.CBC(iv)).encryptor()
        return encryptor.update(padded) + encryptor.finalize()

    def decrypt(self, ciphertext: bytes, iv: Optional[bytes] = None) -> bytes:
        """Decrypt and unpad.

        Raises:
            CipherError: On truncated ciphertext or bad padding.
        """
        iv = self._resolve_iv(iv)
        if not ciphertext or len(ciphertext) % BLOCK_SIZE:
            raise CipherError("Ciphertext is not a whole number of blocks")
        decryptor = Cipher(algorithms.AES(self._key), modes.CBC(iv)).decryptor()
        padded = decryptor.update(ciphertext) + decryptor.finalize()
        unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
        try:
            return unpadder.update(padded) + unpadder.finalize()
        except ValueError as e:
            raise CipherError(f"Bad padding: {e}") from e
