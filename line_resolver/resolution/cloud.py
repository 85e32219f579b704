"""Fallback tier: fetch encrypted host lists from independently hosted cloud sources."""

from typing import Any, Callable, List, Optional

import requests

from line_resolver.config import env, settings
from line_resolver.core.logger import setup_logger
from line_resolver.core.models import CloudSource
from line_resolver.core.session import ResolutionSession
from line_resolver.core.store import HostStore
from line_resolver.core.utils import clean_url
from line_resolver.crypto.cloud_list import CloudListCipher, get_cloud_list_cipher
from line_resolver.resolution.reporter import FailureReporter

logger = setup_logger(__name__)


class CloudResolver:
    """Tries each cloud source in order until one yields a working API host.

    Sources are walked sequentially; the first source whose hosts resolve
    ends the walk and later sources are never contacted.
    """

    def __init__(
        self,
        store: HostStore,
        session: ResolutionSession,
        reporter: FailureReporter,
        resolve_api_host: Callable[[], Optional[str]],
        http: Optional[requests.Session] = None,
        cipher: Optional[CloudListCipher] = None,
        timeout: float = env.PROBE_TIMEOUT,
    ):
        self.store = store
        self.session = session
        self.reporter = reporter
        self.resolve_api_host = resolve_api_host
        self.http = http or requests.Session()
        self.cipher = cipher or get_cloud_list_cipher()
        self.timeout = timeout

    def fetch_json(self, url: str) -> Optional[Any]:
        """GET a JSON document; None on transport, status or parse failure."""
        logger.debug(f"GET {url}")
        try:
            response = self.http.get(url, proxies=settings.PROXIES, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.HTTPError as e:
            logger.warning(f"GET {url} failed: HTTP {e.response.status_code if e.response is not None else '?'}")
            return None
        except requests.RequestException as e:
            logger.warning(f"GET {url} failed: {e}")
            return None
        except ValueError:
            logger.warning(f"GET invalid JSON {url}")
            return None
        # A parsed but empty or null document is not a fetch failure
        return data if data is not None else []

    def decrypt_hosts(self, raw: Any) -> List[str]:
        """Decrypt every token of an array document, skipping the bad ones."""
        tokens = raw if isinstance(raw, list) else []
        logger.info(f"Cloud list items: {len(tokens)}")
        hosts = []
        for token in tokens:
            host = clean_url(self.cipher.decrypt(token))
            if host:
                hosts.append(host)
        logger.info(f"Cloud decrypted hosts: {len(hosts)}")
        return hosts

    def _try_source(self, cloud: CloudSource) -> Optional[str]:
        logger.info(f"Fetching cloud: {cloud.name} ({cloud.value})")
        raw = self.fetch_json(cloud.value)
        if raw is None:
            logger.warning(f"Cloud fetch failed: {cloud.value}")
            self.session.mark_failed_cloud(cloud.value)
            self.reporter.report_failed_domain_once(cloud.value)
            return None

        hosts = self.decrypt_hosts(raw)
        if not hosts:
            logger.warning(f"Cloud has no usable hosts: {cloud.value}")
            self.session.mark_failed_cloud(cloud.value)
            return None

        self.store.set_api_hosts(hosts)
        logger.info(f"Injected cloud apiHosts: {len(hosts)} items")

        working = self.resolve_api_host()
        if working:
            return working

        self.session.mark_failed_cloud(cloud.value)
        return None

    def resolve_cloud_host(self) -> Optional[str]:
        clouds = self.store.get_clouds()
        logger.info(f"Cloud fallback started, {len(clouds)} sources")

        for cloud in clouds:
            working = self._try_source(cloud)
            if working:
                return working

        logger.warning("All cloud sources exhausted")
        return None
