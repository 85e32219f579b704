"""
Request/response envelope scheme.

Every API request body is wrapped as::

    {"client": ..., "timestamp": ..., "data": encrypt(payload), "sign": sign(timestamp, data)}

``data`` is the base64 AES-256-CBC ciphertext of the JSON-encoded payload
under a fixed key and IV. Responses that carry a string ``data`` field are
decrypted the same way, and the decrypted object replaces the response.
"""

import base64
import binascii
import hashlib
import hmac
import json
import time
from typing import Any, Dict, Optional

from line_resolver.config import env, settings
from line_resolver.crypto.cipher import CbcCipher, CipherError


def timestamp() -> int:
    """Current epoch time in seconds."""
    return int(time.time())


class EnvelopeCipher:
    """Encrypts, signs and opens API envelopes."""

    def __init__(self, key: bytes, iv: bytes, sign_key: bytes, client: str = ""):
        self._cipher = CbcCipher(key, iv)
        self._sign_key = sign_key
        self.client = client

    def encrypt(self, payload: Any) -> str:
        raw = json.dumps(payload if payload is not None else {}, separators=(",", ":"), ensure_ascii=False)
        return base64.b64encode(self._cipher.encrypt(raw.encode("utf-8"))).decode("ascii")

    def decrypt(self, data: str) -> Optional[Any]:
        """Decrypt an envelope field. Returns None when it cannot be used."""
        if not isinstance(data, str) or not data:
            return None
        try:
            plaintext = self._cipher.decrypt(base64.b64decode(data, validate=True))
            return json.loads(plaintext.decode("utf-8"))
        except (binascii.Error, CipherError, UnicodeDecodeError, ValueError):
            return None

    def sign(self, ts: int, data: str) -> str:
        message = f"{ts}{data}".encode("utf-8")
        return hmac.new(self._sign_key, message, hashlib.sha256).hexdigest()

    def verify(self, ts: int, data: str, signature: str) -> bool:
        return hmac.compare_digest(self.sign(ts, data), signature or "")

    def wrap(self, payload: Any = None) -> Dict[str, Any]:
        """Build the outbound request body for a payload."""
        ts = timestamp()
        data = self.encrypt(payload if payload is not None else {})
        return {
            "client": self.client,
            "timestamp": ts,
            "data": data,
            "sign": self.sign(ts, data),
        }

    def open_response(self, body: Dict[str, Any]) -> Optional[Any]:
        """Return the usable response object.

        A string ``data`` field is decrypted and its content returned (None if
        it does not decrypt). Responses without an encrypted field are
        returned as-is.
        """
        data = body.get("data")
        if isinstance(data, str) and data:
            return self.decrypt(data)
        return body


_envelope_cipher = EnvelopeCipher(
    settings.ENVELOPE_KEY,
    settings.ENVELOPE_IV,
    settings.ENVELOPE_SIGN_KEY,
    client=env.CLIENT_NAME,
)


def get_envelope_cipher() -> EnvelopeCipher:
    """Get the process-wide envelope cipher."""
    return _envelope_cipher
