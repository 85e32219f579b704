"""Data structures shared across the resolution flow."""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional, Tuple


@dataclass(frozen=True)
class CloudSource:
    """Independently hosted document holding an encrypted list of API hosts."""
    name: str
    value: str  # Document URL


@dataclass
class AdvertAsset:
    """Advertisement discovered in a resolved API response.

    ``image`` is the identity key: the asset is only decrypted again when it
    changes from the stored one.
    """
    image: str = ""
    url: str = ""
    name: str = ""
    position: Optional[int] = None
    base64: str = ""  # Decrypted image as a data URI

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "AdvertAsset":
        data = data or {}
        return cls(
            image=data.get("image") or "",
            url=data.get("url") or "",
            name=data.get("name") or "",
            position=data.get("position"),
            base64=data.get("base64") or "",
        )


@dataclass
class ProbeResult:
    """Outcome of one timed network check."""
    host: str
    ok: bool
    elapsed_ms: float
    value: Any = None  # Validated response payload on success
    error: Optional[Exception] = None


@dataclass(frozen=True)
class SessionSnapshot:
    """Immutable view of the resolution session state."""
    loading: bool
    failed_hosts: Tuple[str, ...] = ()
    failed_clouds: Tuple[str, ...] = ()


@dataclass
class StartupOutcome:
    """Result of the application startup resolution."""
    host: Optional[str]
    api_endpoint: str
    url_endpoint: str
    ads: AdvertAsset = field(default_factory=AdvertAsset)
    failed_hosts: Tuple[str, ...] = ()
    failed_clouds: Tuple[str, ...] = ()
    error_message: Optional[str] = None

    @property
    def all_failed(self) -> bool:
        """True when no frontend is usable and at least one host or cloud failed."""
        return not self.url_endpoint and bool(self.failed_hosts or self.failed_clouds)
