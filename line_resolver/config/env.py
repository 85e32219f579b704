"""Environment variable parsing. No local dependencies - import first."""

import os
import platform
from pathlib import Path


def string_to_bool(s: str) -> bool:
    return s.lower() in ["true", "yes", "1", "y"]


def _split_list(raw: str) -> list[str]:
    return [item.strip() for item in raw.split(",") if item.strip()]


# Endpoints consumed by the resolution core
REPORT_API_DOMAIN = os.getenv("REPORT_API_DOMAIN", "").strip().rstrip("/")
IMAGE_HOST = os.getenv("IMAGE_HOST", "").strip()
_API_HOSTS = _split_list(os.getenv("API_HOSTS", ""))

# Network settings
PROBE_TIMEOUT = float(os.getenv("PROBE_TIMEOUT", "5"))
# Upper bound for a whole probe phase; the requests timeout bounds each connect or read only
PROBE_DEADLINE = float(os.getenv("PROBE_DEADLINE", "10"))
REPORT_TIMEOUT = float(os.getenv("REPORT_TIMEOUT", "5"))
HTTP_PROXY = os.getenv("HTTP_PROXY", "").strip()
HTTPS_PROXY = os.getenv("HTTPS_PROXY", "").strip()
CLIENT_NAME = os.getenv("CLIENT_NAME", "").strip() or platform.system() or "unknown"

# Persisted store
_STORE_PATH = os.getenv("STORE_PATH", "").strip()
STORE_PATH = Path(_STORE_PATH) if _STORE_PATH else None

# Pre-shared keys. Each scheme reads its own variable.
_ENVELOPE_KEY = os.getenv("ENVELOPE_KEY", "")
_ENVELOPE_IV = os.getenv("ENVELOPE_IV", "")
_ENVELOPE_SIGN_KEY = os.getenv("ENVELOPE_SIGN_KEY", "")
_CLOUD_LIST_KEY = os.getenv("CLOUD_LIST_KEY", "")
_ASSET_KEY = os.getenv("ASSET_KEY", "")
_ASSET_IV = os.getenv("ASSET_IV", "")

# Logging
DEBUG = string_to_bool(os.getenv("DEBUG", "false"))
LOG_LEVEL = "DEBUG" if DEBUG else os.getenv("LOG_LEVEL", "INFO").upper()
ENABLE_LOGGING = string_to_bool(os.getenv("ENABLE_LOGGING", "true"))
LOG_ROOT = Path(os.getenv("LOG_ROOT", "/var/log/"))
LOG_DIR = LOG_ROOT / "line-resolver"
LOG_FILE = LOG_DIR / "line-resolver.log"
