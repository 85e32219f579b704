"""Best-effort, deduplicated reporting of domains that failed to resolve."""

import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Optional, Set

import requests

from line_resolver.config import env, settings
from line_resolver.core.logger import setup_logger
from line_resolver.core.utils import domain_from_url

logger = setup_logger(__name__)


class FailureReporter:
    """Sends each failed domain to the telemetry endpoint at most once.

    The reported set is never cleared, so deduplication spans every
    resolution attempt made through this reporter. Dispatch runs on a
    background worker and is never awaited by the resolution flow.
    """

    def __init__(
        self,
        report_api: str = env.REPORT_API_DOMAIN,
        session: Optional[requests.Session] = None,
        timeout: float = env.REPORT_TIMEOUT,
    ):
        self.report_api = report_api.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()
        self._reported: Set[str] = set()
        self._lock = threading.Lock()
        self._executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="Report")

    def reported_domains(self) -> frozenset:
        with self._lock:
            return frozenset(self._reported)

    def report_failed_domain_once(self, host_or_url: str) -> Optional[Future]:
        """Report the domain of a failed host unless it was already reported.

        Returns:
            The detached dispatch future, or None when nothing was sent.
        """
        domain = domain_from_url(host_or_url)
        with self._lock:
            if domain in self._reported:
                return None
            self._reported.add(domain)

        if not self.report_api:
            logger.debug(f"No report endpoint configured, not reporting {domain}")
            return None

        logger.info(f"Report failed domain: {domain}")
        try:
            future = self._executor.submit(self._send, domain)
        except RuntimeError as e:
            # Executor already shut down
            logger.debug(f"Could not schedule report for {domain}: {e}")
            return None
        future.add_done_callback(self._log_failure)
        return future

    def _send(self, domain: str) -> None:
        self._session.post(
            f"{self.report_api}{settings.REPORT_PATH}",
            json={"domain": domain, "access_time": int(time.time())},
            headers={"Content-Type": "application/json"},
            proxies=settings.PROXIES,
            timeout=self.timeout,
        )

    @staticmethod
    def _log_failure(future: Future) -> None:
        error = future.exception()
        if error is not None:
            logger.debug(f"Failed domain report not delivered: {error}")

    def shutdown(self, wait: bool = False) -> None:
        self._executor.shutdown(wait=wait)
