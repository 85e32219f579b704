"""Package entry point for `python -m line_resolver`."""

import argparse
import sys

from line_resolver.bootstrap import bootstrap
from line_resolver.core.logger import dev_log, setup_logger
from line_resolver.resolution.hosts import create_resolver

logger = setup_logger("line_resolver")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(prog="line_resolver", description="Resolve a working API and frontend host.")
    parser.add_argument("--keep-storage", action="store_true", help="Start from the persisted store instead of the seed hosts")
    parser.add_argument("--dev-log", action="store_true", help="Print the resolution log when done")
    args = parser.parse_args(argv)

    resolver = create_resolver()
    outcome = bootstrap(resolver, clear_storage=not args.keep_storage)

    if args.dev_log:
        for line in dev_log.lines():
            print(line)

    if outcome.error_message:
        logger.error(outcome.error_message)
        for host in outcome.failed_hosts:
            logger.error(f"  failed host: {host}")
        for cloud in outcome.failed_clouds:
            logger.error(f"  failed cloud: {cloud}")
        return 1

    logger.info(f"API endpoint: {outcome.api_endpoint}")
    logger.info(f"Frontend endpoint: {outcome.url_endpoint or '(none)'}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
