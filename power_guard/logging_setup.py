from __future__ import annotations

import logging
import sys
from pathlib import Path

from .settings import LoggingSettings

ROOT_LOGGER = "power-guard"

CONSOLE_FORMAT = "[POWER_GUARD] %(asctime)s %(levelname)s - %(name)s - %(message)s"
FILE_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# "off" sits above CRITICAL so nothing passes.
LEVELS = {
    "trace": logging.DEBUG,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "off": logging.CRITICAL + 1,
}


def parse_log_level(level: str) -> int:
    try:
        return LEVELS[level.strip().lower()]
    except KeyError:
        print(f"Unknown log level '{level}', defaulting to 'info'", file=sys.stderr)
        return logging.INFO


def ensure_log_file(path: str) -> Path:
    log_path = Path(path)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    log_path.touch(exist_ok=True)
    return log_path


def setup_logging(cfg: LoggingSettings) -> None:
    level = parse_log_level(cfg.log_level)

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt=DATE_FORMAT))

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(console)

    if cfg.log_file:
        file_handler = logging.FileHandler(ensure_log_file(cfg.log_file), encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=DATE_FORMAT))
        root.addHandler(file_handler)

    logging.getLogger(ROOT_LOGGER).setLevel(level)
