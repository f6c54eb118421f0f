from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

from . import __version__
from .errors import ConfigError, MetricsServerError
from .http_api import MetricsServer
from .logging_setup import setup_logging
from .monitor import UpsMonitor
from .settings import DEFAULT_CONFIG_PATH, Settings
from .store import MetricsStore

logger = logging.getLogger("power-guard")

PROG = "power-guard"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=PROG,
        description="Watch a UPS through upsd, shut the host down before the battery runs out.",
    )
    parser.add_argument(
        "config",
        nargs="?",
        default=DEFAULT_CONFIG_PATH,
        help=f"Path to the YAML config file (default: {DEFAULT_CONFIG_PATH})",
    )
    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=f"{PROG} v{__version__}",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = Settings.from_file(args.config)
    except ConfigError as exc:
        print(f"{PROG}: {exc}", file=sys.stderr)
        return 1

    setup_logging(settings.logging)
    logger.info("UPS Monitor started with config: %s", args.config)

    store: Optional[MetricsStore] = None
    if settings.metrics.enabled:
        logger.info(
            "Metrics API enabled on port %d (format: %s)",
            settings.metrics.port,
            settings.metrics.format,
        )
        if settings.metrics.bearer_token is not None:
            logger.info("Bearer token authentication enabled for metrics endpoint")

        store = MetricsStore()
        try:
            MetricsServer(store, settings.metrics).start()
        except MetricsServerError as exc:
            logger.critical("%s", exc)
            return 1

    try:
        UpsMonitor(settings, store=store).run()
    except KeyboardInterrupt:
        logger.info("Power Guard interrupted; exiting.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
