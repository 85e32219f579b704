"""Application startup: reset persisted endpoints and resolve a working line."""

from line_resolver.core.logger import setup_logger
from line_resolver.core.models import StartupOutcome
from line_resolver.resolution.hosts import HostResolver

logger = setup_logger(__name__)

NO_LINES_MESSAGE = "No available lines found"
NETWORK_ERROR_MESSAGE = "Network error"


def bootstrap(resolver: HostResolver, clear_storage: bool = True) -> StartupOutcome:
    """Resolve hosts at startup and summarize the result for the presenting layer.

    Never raises: an unexpected error is logged and reported as a network
    error outcome.
    """
    store = resolver.store
    host = None
    error_message = None
    try:
        if clear_storage:
            store.clear_storage()
        host = resolver.init_api_hosts()
        if not host or not store.api_endpoint:
            error_message = NO_LINES_MESSAGE
    except Exception as e:
        logger.error_trace(f"Startup resolution error: {e}")
        error_message = NETWORK_ERROR_MESSAGE

    snapshot = resolver.snapshot()
    outcome = StartupOutcome(
        host=host,
        api_endpoint=store.api_endpoint,
        url_endpoint=store.url_endpoint,
        ads=store.ads,
        failed_hosts=snapshot.failed_hosts,
        failed_clouds=snapshot.failed_clouds,
        error_message=error_message,
    )
    if error_message:
        logger.warning(
            f"{error_message} (failed hosts: {len(outcome.failed_hosts)}, "
            f"failed clouds: {len(outcome.failed_clouds)})"
        )
    return outcome
