"""Thread-safe in-memory cache for decrypted advert images."""

import threading
from typing import Dict, Optional

from line_resolver.core.logger import setup_logger

logger = setup_logger(__name__)


class ImageDecryptCache:
    """Maps an image fetch URL to its decrypted base64 payload.

    Entries never expire; the cache lives for the process unless cleared.
    """

    def __init__(self):
        self._cache: Dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, url: str) -> Optional[str]:
        """Get cached payload.

        Args:
            url: Full image URL.

        Returns:
            Base64 payload or None if not cached.
        """
        with self._lock:
            return self._cache.get(url)

    def set(self, url: str, payload: str) -> None:
        """Cache a decrypted payload.

        Args:
            url: Full image URL.
            payload: Base64 encoded decrypted bytes.
        """
        with self._lock:
            self._cache[url] = payload

    def clear(self) -> None:
        """Clear all cache entries."""
        with self._lock:
            count = len(self._cache)
            self._cache.clear()
        logger.debug(f"Image cache cleared ({count} entries)")


# Global cache instance for the default asset decryptor
_image_cache = ImageDecryptCache()


def get_image_cache() -> ImageDecryptCache:
    """Get the global image cache instance."""
    return _image_cache
