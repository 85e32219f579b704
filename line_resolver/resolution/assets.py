"""Fetching and decrypting advert images referenced by the API config."""

import base64
from typing import Any, Dict, Optional

import requests

from line_resolver.config import env, settings
from line_resolver.core.cache import ImageDecryptCache, get_image_cache
from line_resolver.core.exceptions import AssetError
from line_resolver.core.logger import setup_logger
from line_resolver.crypto.asset import AssetCipher, get_asset_cipher
from line_resolver.crypto.envelope import EnvelopeCipher, get_envelope_cipher

logger = setup_logger(__name__)

DATA_URI_PREFIX = "data:image/jpeg;base64,"


class AssetDecryptor:
    """Downloads encrypted images and turns them into displayable data URIs.

    Decrypted payloads are cached by full image URL for the lifetime of the
    cache, so a repeated advert is only fetched and decrypted once.
    """

    def __init__(
        self,
        image_host: str = env.IMAGE_HOST,
        http: Optional[requests.Session] = None,
        cipher: Optional[AssetCipher] = None,
        cache: Optional[ImageDecryptCache] = None,
        timeout: float = env.PROBE_TIMEOUT,
    ):
        self.image_host = image_host
        self.http = http or requests.Session()
        self.cipher = cipher or get_asset_cipher()
        self.cache = cache if cache is not None else get_image_cache()
        self.timeout = timeout

    def _decrypt_to_base64(self, full_url: str) -> str:
        cached = self.cache.get(full_url)
        if cached is not None:
            logger.debug(f"Image cache hit: {full_url}")
            return cached

        try:
            response = self.http.get(full_url, proxies=settings.PROXIES, timeout=self.timeout)
        except requests.RequestException as e:
            raise AssetError(f"Image fetch failed: {e}") from e
        if not 200 <= response.status_code < 300:
            raise AssetError(f"Image fetch failed: {response.status_code}")

        decrypted = self.cipher.decrypt(response.content)
        if not decrypted:
            raise AssetError("Decryption failed (empty result)")

        payload = base64.b64encode(decrypted).decode("ascii")
        self.cache.set(full_url, payload)
        return payload

    def decrypt_image(self, image_url: str) -> str:
        """Fetch and decrypt an advert image.

        Args:
            image_url: Image path as given by the API, appended to the image host.

        Returns:
            A ``data:image/jpeg;base64,...`` URI.

        Raises:
            AssetError: If the image cannot be fetched or decrypted.
        """
        full_url = f"{self.image_host}{image_url}"
        return DATA_URI_PREFIX + self._decrypt_to_base64(full_url)

    def clear_cache(self) -> None:
        self.cache.clear()


def decrypt_response_data(response: Dict[str, Any], envelope: Optional[EnvelopeCipher] = None) -> Any:
    """Replace a response's encrypted ``data`` field with its decrypted value."""
    envelope = envelope or get_envelope_cipher()
    response["data"] = envelope.decrypt(response.get("data"))
    return response["data"]
