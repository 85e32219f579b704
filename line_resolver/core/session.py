"""Resolution session state owned by a single resolver instance."""

import threading
from typing import List

from line_resolver.core.models import SessionSnapshot
from line_resolver.core.utils import clean_url, push_unique


class ResolutionSession:
    """Tracks the in-progress flag and what failed during the current attempt.

    Failed lists are reset at the start of each top-level attempt. Hosts are
    recorded and matched without trailing slashes. Probe workers record
    failures concurrently, so every mutation holds the lock.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._loading = False
        self._failed_hosts: List[str] = []
        self._failed_clouds: List[str] = []

    def try_begin(self) -> bool:
        """Claim the session. Returns False if an attempt is already running."""
        with self._lock:
            if self._loading:
                return False
            self._loading = True
            self._failed_hosts = []
            self._failed_clouds = []
            return True

    def finish(self) -> None:
        with self._lock:
            self._loading = False

    @property
    def loading(self) -> bool:
        with self._lock:
            return self._loading

    def mark_failed_host(self, host: str) -> bool:
        with self._lock:
            return push_unique(self._failed_hosts, clean_url(host))

    def mark_failed_cloud(self, source: str) -> bool:
        with self._lock:
            return push_unique(self._failed_clouds, source)

    def has_failed(self, host: str) -> bool:
        with self._lock:
            return clean_url(host) in self._failed_hosts

    def snapshot(self) -> SessionSnapshot:
        with self._lock:
            return SessionSnapshot(
                loading=self._loading,
                failed_hosts=tuple(self._failed_hosts),
                failed_clouds=tuple(self._failed_clouds),
            )
