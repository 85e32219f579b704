"""Single timed network checks against candidate API and frontend hosts."""

import time
from typing import Any, Callable, Dict, Optional

import requests

from line_resolver.config import env, settings
from line_resolver.core.exceptions import ProbeError
from line_resolver.core.logger import setup_logger
from line_resolver.core.models import ProbeResult
from line_resolver.core.session import ResolutionSession
from line_resolver.core.store import HostStore
from line_resolver.core.utils import clean_url
from line_resolver.crypto.envelope import EnvelopeCipher, get_envelope_cipher
from line_resolver.resolution.reporter import FailureReporter

logger = setup_logger(__name__)


def _is_success(response: requests.Response) -> bool:
    return 200 <= response.status_code < 300


def with_timing(host: str, fn: Callable[[], Any]) -> ProbeResult:
    """Run fn and time it from dispatch to completion, whatever the outcome."""
    start = time.monotonic()
    try:
        value = fn()
    except (ProbeError, requests.RequestException) as e:
        return ProbeResult(host=host, ok=False, elapsed_ms=(time.monotonic() - start) * 1000, error=e)
    return ProbeResult(host=host, ok=True, elapsed_ms=(time.monotonic() - start) * 1000, value=value)


class ProbeRunner:
    """Issues health checks and applies the failure side effects for API hosts."""

    def __init__(
        self,
        store: HostStore,
        session: ResolutionSession,
        reporter: FailureReporter,
        http: Optional[requests.Session] = None,
        envelope: Optional[EnvelopeCipher] = None,
        timeout: float = env.PROBE_TIMEOUT,
    ):
        self.store = store
        self.session = session
        self.reporter = reporter
        self.http = http or requests.Session()
        self.envelope = envelope or get_envelope_cipher()
        self.timeout = timeout

    def post_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """POST an enveloped payload and return the opened response.

        Raises:
            ProbeError: On transport failure, non-2xx status, invalid JSON
                or an undecryptable payload.
        """
        payload = self.envelope.wrap(params or {})
        logger.debug(f"POST {url}")
        try:
            response = self.http.post(
                url,
                json=payload,
                headers=settings.REQUEST_HEADERS,
                proxies=settings.PROXIES,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise ProbeError("network", str(e)) from e

        if not _is_success(response):
            raise ProbeError("http_status", str(response.status_code))

        try:
            body = response.json()
        except ValueError as e:
            raise ProbeError("invalid_json", str(e)) from e
        if not body or not isinstance(body, dict):
            raise ProbeError("empty")

        opened = self.envelope.open_response(body)
        if opened is None:
            raise ProbeError("undecryptable")
        return opened

    def _check_api_host(self, host: str) -> Dict[str, Any]:
        raw = self.post_json(f"{clean_url(host)}{settings.API_CONF_PATH}")
        if not isinstance(raw, dict) or raw.get("errcode") != 0 or not raw.get("data"):
            raise ProbeError("bad_structure")
        return raw

    def probe_api_host(self, host: str) -> ProbeResult:
        """Check one API candidate.

        On failure the host is recorded as failed for this session, its
        domain is reported and it is dropped from the persisted candidates.
        """
        result = with_timing(host, lambda: self._check_api_host(host))
        if result.ok:
            logger.info(f"API OK: {host} ({result.elapsed_ms:.0f}ms)")
            return result

        self.record_api_failure(host, result.error)
        return result

    def record_api_failure(self, host: str, error: Optional[Exception] = None) -> None:
        """Mark an API host failed for this session, report it and drop it from the store."""
        host = clean_url(host)
        logger.warning(f"API failed: {host} ({error})")
        self.session.mark_failed_host(host)
        self.reporter.report_failed_domain_once(host)
        self.store.remove_api_host(host)

    def _check_front_host(self, url: str) -> str:
        ping_url = f"{clean_url(url)}{settings.PING_PATH}"
        logger.debug(f"GET {ping_url}")
        response = self.http.get(
            ping_url,
            headers={"Cache-Control": "no-store"},
            proxies=settings.PROXIES,
            timeout=self.timeout,
        )
        if not _is_success(response):
            raise ProbeError("ping_failed", str(response.status_code))
        return url

    def probe_front_host(self, url: str) -> ProbeResult:
        """Ping one frontend candidate. Any non-2xx status is a failure."""
        result = with_timing(url, lambda: self._check_front_host(url))
        if not result.ok:
            logger.info(f"Frontend failed: {url} ({result.error})")
        return result
