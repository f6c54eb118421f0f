# power_guard/errors.py
from __future__ import annotations


class PowerGuardError(Exception):
    """Base for every failure the daemon knows how to report."""


class UpsConnectionError(PowerGuardError):
    """TCP connect or socket I/O to upsd failed."""

    def __init__(self, host: str, port: int, reason: object):
        super().__init__(f"Connection to {host}:{port} failed: {reason}")
        self.host = host
        self.port = port
        self.reason = reason


class AuthenticationError(PowerGuardError):
    def __init__(self, step: str, response: str):
        super().__init__(f"Authentication failed at {step}: {response.strip()}")
        self.step = step
        self.response = response


class ProtocolError(PowerGuardError):
    """Malformed line, explicit ERR reply or premature end of stream."""

    def __init__(self, message: str, response: str = ""):
        super().__init__(message)
        self.response = response


class ShutdownCommandError(PowerGuardError):
    def __init__(self, command: str, reason: str, returncode: int | None = None):
        super().__init__(f"Shutdown command '{command}' failed: {reason}")
        self.command = command
        self.reason = reason
        self.returncode = returncode


class ConfigError(PowerGuardError):
    pass


class MetricsServerError(PowerGuardError):
    pass
