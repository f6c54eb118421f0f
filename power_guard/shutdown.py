from __future__ import annotations

import logging
import subprocess
import time
from typing import Callable, List, Protocol

from .errors import ShutdownCommandError

logger = logging.getLogger("power-guard.shutdown")


class ShutdownFlag(Protocol):
    shutdown_scheduled: bool


class ShutdownExecutor:
    """
    Runs the configured shutdown command after a blocking countdown.

    At most once per process: the flag on the passed state is raised before
    anything else, so a second call returns immediately. Failures are logged,
    never raised.
    """

    def __init__(
        self,
        command: str,
        grace_period: int,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.command = command
        self.grace_period = grace_period
        self._sleep = sleep

    def execute(self, state: ShutdownFlag) -> bool:
        if state.shutdown_scheduled:
            return False
        state.shutdown_scheduled = True

        logger.error("INITIATING SYSTEM SHUTDOWN IN %d SECONDS!", self.grace_period)
        self._countdown()

        argv = self.command.split()
        if not argv:
            logger.error("Shutdown command is empty!")
            return False

        logger.info("Executing shutdown command: %s", self.command)
        try:
            self._run(argv)
        except ShutdownCommandError as exc:
            logger.error("%s", exc)
            if exc.returncode is None:
                logger.error("Please ensure the command '%s' is valid and accessible", argv[0])
            return False

        logger.info("Shutdown command executed successfully")
        return True

    def _countdown(self) -> None:
        for remaining in range(self.grace_period, 0, -1):
            if remaining <= 10 or remaining % 10 == 0:
                logger.warning("Shutdown in %d seconds...", remaining)
            self._sleep(1)

    def _run(self, argv: List[str]) -> None:
        try:
            result = subprocess.run(argv, capture_output=True, check=False)
        except OSError as exc:
            raise ShutdownCommandError(self.command, str(exc)) from exc

        if result.returncode != 0:
            stderr = result.stderr.decode("utf-8", errors="replace").strip()
            raise ShutdownCommandError(
                self.command,
                f"exit status {result.returncode}: {stderr}",
                returncode=result.returncode,
            )
