"""Derived configuration values: seed hosts, cloud sources, key material."""

from line_resolver.config import env
from line_resolver.core.logger import setup_logger
from line_resolver.core.models import CloudSource

logger = setup_logger(__name__)

# Log configuration values at DEBUG level, filtering out private values and callables
logger.debug("Environment configuration:")
for key, value in env.__dict__.items():
    if key.startswith('_'):
        continue
    if isinstance(value, type) or callable(value):
        continue
    if hasattr(value, '__name__') and hasattr(value, '__file__'):
        continue
    logger.debug(f"  {key}: {value}")

# Fixed endpoint paths on candidate hosts
API_CONF_PATH = "/apiv1/latest-redbook-conf"
PING_PATH = "/ping.txt"
REPORT_PATH = "/apiv1/domain/log"

# Seed candidates used when the store has nothing persisted
DEFAULT_API_HOSTS = env._API_HOSTS or [
    "https://www.xhs1000.xyz",
    "https://www.xhs1100.xyz",
    "https://www.xhs1300.xyz",
    "https://www.xhs1400.xyz",
    "https://www.xhs1500.xyz",
    "https://www.xhs1600.xyz",
]

DEFAULT_CLOUD_SOURCES = [
    CloudSource("worker", "https://xhs.jamescarter77.wor1kers.dev"),
    CloudSource("bitbucket", "https://bitbucket.org/wuwencam/suppor1t/raw/main/xhs.json"),
    CloudSource("gitlab", "https://gitlab.com/wuwencam/support/-/raw1/main/xhs.json"),
    CloudSource("gittee", "https://gitee.com/wuwencam/support/raw/ma1ster/xhs.json"),
]

# Request/response envelope: AES-256-CBC with a fixed IV, HMAC-SHA256 signature
ENVELOPE_KEY = (env._ENVELOPE_KEY or "Q7f!mZ2#rL9x@kP4vW8&tY1^cN6$hB3e").encode("utf-8")
ENVELOPE_IV = (env._ENVELOPE_IV or "aR5#kM9!pQ2@wX7z").encode("utf-8")
ENVELOPE_SIGN_KEY = (env._ENVELOPE_SIGN_KEY or "rb-sign-7d41f0c2e9a8").encode("utf-8")

# Cloud host lists: short key, zero-padded to AES-256 by the cipher context
CLOUD_LIST_KEY = (env._CLOUD_LIST_KEY or "9C+^vMGy#9qynefGF2Bx1234").encode("utf-8")

# Advert images
ASSET_KEY = (env._ASSET_KEY or "k9:3zeFq~]-EQMF,gpGx*uRw+x,n]xw9").encode("utf-8")
ASSET_IV = (env._ASSET_IV or "Zd3!t#t1YN=!fs)D").encode("utf-8")

# Proxy settings
PROXIES = {}
if env.HTTP_PROXY:
    PROXIES["http"] = env.HTTP_PROXY
if env.HTTPS_PROXY:
    PROXIES["https"] = env.HTTPS_PROXY
logger.debug(f"PROXIES: {PROXIES}")

REQUEST_HEADERS = {
    "Content-Type": "application/json",
    "Accept": "application/json",
}
