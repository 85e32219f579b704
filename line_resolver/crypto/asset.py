"""Advert image scheme: raw binary AES-256-CBC/PKCS7 with a fixed key and IV."""

from line_resolver.config import settings
from line_resolver.crypto.cipher import CbcCipher, CipherError


class AssetCipher:
    def __init__(self, key: bytes, iv: bytes):
        self._cipher = CbcCipher(key, iv)

    def encrypt(self, data: bytes) -> bytes:
        return self._cipher.encrypt(data)

    def decrypt(self, data: bytes) -> bytes:
        """Decrypt image bytes; b"" on any failure."""
        try:
            return self._cipher.decrypt(data)
        except CipherError:
            return b""


_asset_cipher = AssetCipher(settings.ASSET_KEY, settings.ASSET_IV)


def get_asset_cipher() -> AssetCipher:
    return _asset_cipher
