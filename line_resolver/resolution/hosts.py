"""
Host resolution: pick the fastest working API host and frontend host.

## Resolution flow

1. **Direct**: every persisted API candidate is probed concurrently. The
   phase waits for every probe to settle, up to a total deadline after which
   unsettled probes count as failed, and the successful probe with the
   lowest elapsed time wins. A host that answers fast with a bad payload
   must not beat a slower healthy one, so there is no race to first answer.
2. **Frontend**: the winning response lists frontend URLs, which are pinged
   concurrently and ranked the same way.
3. **Cloud fallback**: if no direct host works, each cloud source is tried in
   order; its decrypted host list replaces the candidates and step 1 runs
   again.

Failed hosts are recorded on the session, reported once and dropped from the
store, so they are never probed again in the same session.
"""

from concurrent.futures import ThreadPoolExecutor, wait
from typing import Any, Callable, List, Optional, Sequence

import requests

from line_resolver.config import env, settings
from line_resolver.core.exceptions import AssetError, ProbeError
from line_resolver.core.logger import dev_log, setup_logger
from line_resolver.core.models import ProbeResult, SessionSnapshot
from line_resolver.core.session import ResolutionSession
from line_resolver.core.store import HostStore
from line_resolver.core.utils import clean_url, valid_urls
from line_resolver.resolution.assets import AssetDecryptor
from line_resolver.resolution.cloud import CloudResolver
from line_resolver.resolution.probe import ProbeRunner
from line_resolver.resolution.reporter import FailureReporter

logger = setup_logger(__name__)


def run_all(
    probe: Callable[[str], ProbeResult],
    targets: Sequence[str],
    name: str,
    deadline: Optional[float] = None,
    on_expired: Optional[Callable[[str, ProbeError], None]] = None,
) -> List[ProbeResult]:
    """Dispatch one probe per target at once and wait until all have settled.

    A probe still running once ``deadline`` seconds have passed counts as a
    failure; ``on_expired`` is called for it and it is not waited for.
    Results are returned in target order.
    """
    if not targets:
        return []
    executor = ThreadPoolExecutor(max_workers=len(targets), thread_name_prefix=name)
    try:
        futures = [executor.submit(probe, target) for target in targets]
        wait(futures, timeout=deadline)
    finally:
        executor.shutdown(wait=False)

    results = []
    for target, future in zip(targets, futures):
        if future.done():
            results.append(future.result())
            continue
        error = ProbeError("deadline", f"no answer within {deadline}s")
        logger.warning(f"{name} exceeded deadline: {target}")
        if on_expired is not None:
            on_expired(target, error)
        results.append(ProbeResult(host=target, ok=False, elapsed_ms=deadline * 1000, error=error))
    return results


def fastest(results: Sequence[ProbeResult]) -> Optional[ProbeResult]:
    """Successful result with the lowest elapsed time; ties go to input order."""
    successes = [result for result in results if result.ok]
    if not successes:
        return None
    return min(successes, key=lambda result: result.elapsed_ms)


class HostResolver:
    """Owns one resolution session and drives direct and cloud resolution."""

    def __init__(
        self,
        store: HostStore,
        reporter: Optional[FailureReporter] = None,
        probe_runner: Optional[ProbeRunner] = None,
        asset_decryptor: Optional[AssetDecryptor] = None,
        cloud_resolver: Optional[CloudResolver] = None,
        http: Optional[requests.Session] = None,
        session: Optional[ResolutionSession] = None,
        deadline: float = env.PROBE_DEADLINE,
    ):
        self.store = store
        self.session = session or ResolutionSession()
        self.deadline = deadline
        http = http or requests.Session()
        self.reporter = reporter or FailureReporter(session=http)
        self.probe_runner = probe_runner or ProbeRunner(store, self.session, self.reporter, http=http)
        self.asset_decryptor = asset_decryptor or AssetDecryptor(http=http)
        self.cloud_resolver = cloud_resolver or CloudResolver(
            store, self.session, self.reporter, self.resolve_api_host, http=http
        )

    # Session state

    @property
    def loading(self) -> bool:
        return self.session.loading

    def snapshot(self) -> SessionSnapshot:
        return self.session.snapshot()

    # Direct resolution

    def _candidates(self) -> List[str]:
        """Valid, normalized, de-duplicated hosts not yet failed this session."""
        return [
            host for host in dict.fromkeys(valid_urls(self.store.get_api_hosts()))
            if not self.session.has_failed(host)
        ]

    def resolve_api_host(self) -> Optional[str]:
        """Probe every API candidate and persist the fastest healthy one.

        Returns:
            The winning host, or None if no candidate answered correctly.
        """
        logger.info("Checking API hosts (fastest wins)")
        candidates = self._candidates()
        if not candidates:
            logger.warning("No apiHosts in store")
            self.store.set_api_endpoint("")
            return None

        results = run_all(
            self.probe_runner.probe_api_host,
            candidates,
            "ApiProbe",
            deadline=self.deadline,
            on_expired=self.probe_runner.record_api_failure,
        )
        best = fastest(results)
        if best is None:
            logger.warning("All API hosts failed")
            self.store.set_api_endpoint("")
            return None

        host = clean_url(best.host)
        logger.info(f"Fastest API host: {host} ({best.elapsed_ms:.0f}ms)")
        self.store.set_api_endpoint(host)

        data = best.value.get("data") or {}
        if not isinstance(data, dict):
            data = {}
        self._update_advert(data.get("advert"))
        self._resolve_front_host(data.get("urls"))
        return host

    def _update_advert(self, advert: Any) -> None:
        if not isinstance(advert, dict) or not advert.get("image"):
            logger.info("No advert in response")
            return

        current = self.store.ads
        if advert["image"] == current.image:
            logger.info(f"Advert unchanged, skip decrypt (image={current.image})")
            return

        logger.info("New advert detected, decrypting")
        try:
            data_uri = self.asset_decryptor.decrypt_image(advert["image"])
        except AssetError as e:
            logger.warning(f"Advert decrypt failed: {e}")
            return

        if not data_uri:
            logger.warning("Advert decrypt finished but returned empty image")
            return

        self.store.set_ads(
            image=advert["image"],
            url=advert.get("url") or "",
            name=advert.get("name") or "",
            position=advert.get("position"),
            base64=data_uri,
        )
        logger.info("Advert image decrypted and stored")

    def _resolve_front_host(self, urls: Any) -> str:
        fronts = valid_urls(urls) if isinstance(urls, list) else []
        logger.info(f"Front candidates: {len(fronts)}")

        results = run_all(self.probe_runner.probe_front_host, fronts, "FrontProbe", deadline=self.deadline)
        best = fastest(results)
        if best is None:
            logger.warning("No working frontend URL")
            self.store.set_url_endpoint("")
            return ""

        logger.info(f"Fastest frontend: {best.value} ({best.elapsed_ms:.0f}ms)")
        self.store.set_url_endpoint(best.value)
        return best.value

    # Cloud fallback

    def resolve_cloud_host(self) -> Optional[str]:
        return self.cloud_resolver.resolve_cloud_host()

    # Entry point

    def init_api_hosts(self) -> Optional[str]:
        """Run a full resolution: direct hosts first, then cloud sources.

        A call made while another resolution is in progress returns None
        immediately without waiting for it.
        """
        if not self.session.try_begin():
            logger.info("initApiHosts ignored: already loading")
            return None

        dev_log.clear()
        logger.info("Host resolution started")
        try:
            direct = self.resolve_api_host()
            if direct:
                return direct

            logger.info("Switching to cloud fallback")
            return self.resolve_cloud_host()
        finally:
            self.session.finish()
            logger.info("Host resolution finished")


def create_resolver(http: Optional[requests.Session] = None) -> HostResolver:
    """Build a resolver wired to the configured store and endpoints."""
    store = HostStore(
        api_hosts=settings.DEFAULT_API_HOSTS,
        clouds=settings.DEFAULT_CLOUD_SOURCES,
        path=env.STORE_PATH,
    )
    return HostResolver(store, http=http)
