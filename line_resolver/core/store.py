"""Persisted application store: candidate hosts, cloud sources and resolved endpoints.

Only key/value get/set semantics are needed. When a path is given the whole
state is written back to a JSON file after every change; otherwise the store
is in-memory only.
"""

import json
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from line_resolver.core.logger import setup_logger
from line_resolver.core.models import AdvertAsset, CloudSource
from line_resolver.core.utils import clean_url

logger = setup_logger(__name__)


def _sanitize(key: str, value: Any) -> Any:
    """Coerce a persisted value to the shape the store expects; None if unusable.

    Malformed entries inside the host and cloud lists are dropped.
    """
    if key in ("api_endpoint", "url_endpoint"):
        return value if isinstance(value, str) else None
    if key == "api_hosts":
        if not isinstance(value, list):
            return None
        return [h for h in value if isinstance(h, str)]
    if key == "clouds":
        if not isinstance(value, list):
            return None
        return [
            {"name": str(c.get("name") or ""), "value": c["value"]}
            for c in value
            if isinstance(c, dict) and isinstance(c.get("value"), str) and c["value"]
        ]
    if key == "ads":
        if not isinstance(value, dict):
            return None
        return AdvertAsset.from_dict(value).to_dict()
    return None


class HostStore:
    """Thread-safe store shared by the probe workers and the resolver."""

    def __init__(
        self,
        api_hosts: Sequence[str] = (),
        clouds: Sequence[CloudSource] = (),
        path: Optional[Path] = None,
    ):
        self._default_api_hosts = list(api_hosts)
        self._default_clouds = list(clouds)
        self._path = path
        self._lock = threading.Lock()
        self._state: Dict[str, Any] = self._initial_state()
        self._load()

    def _initial_state(self) -> Dict[str, Any]:
        return {
            "api_endpoint": "",
            "url_endpoint": "",
            "api_hosts": list(self._default_api_hosts),
            "clouds": [{"name": c.name, "value": c.value} for c in self._default_clouds],
            "ads": AdvertAsset().to_dict(),
        }

    def _load(self) -> None:
        if not self._path or not self._path.exists():
            return
        try:
            with open(self._path, "r") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(f"Ignoring unreadable store file {self._path}: {e}")
            return
        if not isinstance(data, dict):
            logger.warning(f"Ignoring store file {self._path}: not an object")
            return
        for key, value in data.items():
            if key not in self._state:
                continue
            clean = _sanitize(key, value)
            if clean is None:
                logger.warning(f"Ignoring malformed stored value for {key!r}")
                continue
            self._state[key] = clean
        logger.debug(f"Loaded store from {self._path}")

    def _save(self) -> None:
        """Write state to disk. Called with lock held."""
        if not self._path:
            return
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
            with open(tmp_path, "w") as f:
                json.dump(self._state, f)
            tmp_path.replace(self._path)
        except OSError as e:
            logger.error(f"Failed to persist store to {self._path}: {e}")

    def _set(self, **values: Any) -> None:
        with self._lock:
            self._state.update(values)
            self._save()

    # Candidate hosts

    def get_api_hosts(self) -> List[str]:
        with self._lock:
            return list(self._state["api_hosts"])

    def set_api_hosts(self, hosts: Sequence[str]) -> None:
        self._set(api_hosts=list(hosts))

    def remove_api_host(self, host: str) -> bool:
        """Drop every entry equal to host once trailing slashes are ignored.

        Returns True if anything was removed.
        """
        target = clean_url(host)
        with self._lock:
            hosts = self._state["api_hosts"]
            kept = [h for h in hosts if clean_url(h) != target]
            if len(kept) == len(hosts):
                return False
            self._state["api_hosts"] = kept
            self._save()
        logger.info(f"Removed bad API host from store: {host}")
        return True

    def get_clouds(self) -> List[CloudSource]:
        with self._lock:
            return [CloudSource(c["name"], c["value"]) for c in self._state["clouds"]]

    # Resolved endpoints

    @property
    def api_endpoint(self) -> str:
        with self._lock:
            return self._state["api_endpoint"]

    def set_api_endpoint(self, value: str) -> None:
        logger.info(f"setApiEndPoint = {value or '(empty)'}")
        self._set(api_endpoint=value)

    @property
    def url_endpoint(self) -> str:
        with self._lock:
            return self._state["url_endpoint"]

    def set_url_endpoint(self, value: str) -> None:
        logger.info(f"setUrlEndPoint = {value or '(empty)'}")
        self._set(url_endpoint=value)

    @property
    def ads(self) -> AdvertAsset:
        with self._lock:
            return AdvertAsset.from_dict(self._state["ads"])

    def set_ads(self, **fields: Any) -> None:
        """Merge fields into the stored advert."""
        with self._lock:
            merged = dict(self._state["ads"])
            merged.update(fields)
            self._state["ads"] = AdvertAsset.from_dict(merged).to_dict()
            self._save()
        logger.info(f"setAds = {fields.get('name') or '(no name)'}")

    def clear_storage(self) -> None:
        """Reset to seed values and drop the persisted copy."""
        with self._lock:
            self._state = self._initial_state()
            if self._path and self._path.exists():
                try:
                    self._path.unlink()
                except OSError as e:
                    logger.error(f"Failed to remove store file {self._path}: {e}")
        logger.debug("Store reset to defaults")
