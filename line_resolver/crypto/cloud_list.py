"""Cloud host-list token scheme.

Each entry of a cloud document is ``base64(iv):base64(ciphertext)``,
AES-256-CBC/PKCS7 under a short pre-shared key zero-padded to 32 bytes.
"""

import base64
import binascii
import os

from line_resolver.config import settings
from line_resolver.crypto.cipher import BLOCK_SIZE, CbcCipher, CipherError, zero_pad_key


class CloudListCipher:
    def __init__(self, key: bytes):
        self._cipher = CbcCipher(zero_pad_key(key))

    def encrypt(self, text: str) -> str:
        iv = os.urandom(BLOCK_SIZE)
        ciphertext = self._cipher.encrypt(text.encode("utf-8"), iv=iv)
        return (
            base64.b64encode(iv).decode("ascii")
            + ":"
            + base64.b64encode(ciphertext).decode("ascii")
        )

    def decrypt(self, token: str) -> str:
        """Decrypt one token; "" when the token is malformed or undecryptable."""
        if not isinstance(token, str):
            return ""
        iv_b64, _, ct_b64 = token.partition(":")
        if not iv_b64 or not ct_b64:
            return ""
        try:
            iv = base64.b64decode(iv_b64, validate=True)
            ciphertext = base64.b64decode(ct_b64, validate=True)
            return self._cipher.decrypt(ciphertext, iv=iv).decode("utf-8")
        except (binascii.Error, CipherError, UnicodeDecodeError, ValueError):
            return ""


_cloud_list_cipher = CloudListCipher(settings.CLOUD_LIST_KEY)


def get_cloud_list_cipher() -> CloudListCipher:
    return _cloud_list_cipher
