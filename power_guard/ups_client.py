from __future__ import annotations

import logging
import socket
from contextlib import contextmanager
from typing import BinaryIO, Callable, Iterator, List, Optional, Tuple, TypeVar

from .errors import AuthenticationError, ProtocolError, UpsConnectionError
from .models import StatusSnapshot, UpsVariable

logger = logging.getLogger("power-guard.ups-client")

T = TypeVar("T", int, float)

# Status tokens (upsd ups.status) that mean the load is fed from the battery.
ON_BATTERY_TOKENS = ("OB", "DISCHRG")


def parse_var_line(line: str) -> Optional[Tuple[str, str]]:
    """
    Split a `VAR <device> <name> "<value>"` line into (name, value).

    The value is every token from the fourth on, joined by single spaces,
    with surrounding double quotes removed. Returns None for anything else.
    """
    parts = line.split()
    if len(parts) < 4 or parts[0] != "VAR":
        return None
    return parts[2], " ".join(parts[3:]).strip('"')


def is_on_battery(ups_status: str) -> bool:
    return any(token in ups_status for token in ON_BATTERY_TOKENS)


def _parse_runtime(raw: str) -> int:
    value = int(raw)
    if value < 0:
        raise ValueError(f"negative runtime {value}")
    return value


class UpsClient:
    """
    Talks to a NUT upsd over plain TCP.

    Every public call opens its own connection and closes it when done;
    nothing is pooled or kept alive between polls.
    """

    def __init__(
        self,
        host: str,
        port: int,
        name: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
        strict_numeric: bool = False,
    ) -> None:
        self.host = host
        self.port = port
        self.name = name
        self.username = username
        self.password = password
        self.strict_numeric = strict_numeric

    # ─────────────────────────────────────────────
    # Connection + line I/O
    # ─────────────────────────────────────────────

    @contextmanager
    def connect(self) -> Iterator[BinaryIO]:
        try:
            sock = socket.create_connection((self.host, self.port))
        except OSError as exc:
            raise UpsConnectionError(self.host, self.port, exc) from exc

        try:
            with sock.makefile("rwb") as stream:
                if self.username is not None and self.password is not None:
                    self.authenticate(stream)
                yield stream
        finally:
            sock.close()

    def authenticate(self, stream: BinaryIO) -> None:
        for step, value in (("USERNAME", self.username), ("PASSWORD", self.password)):
            self._send(stream, f"{step} {value}")
            response = self._read_line(stream)
            if response is None:
                raise AuthenticationError(step, "connection closed")
            if "OK" not in response.upper():
                raise AuthenticationError(step, response)
        logger.debug("Authenticated to %s:%s as %s", self.host, self.port, self.username)

    def _send(self, stream: BinaryIO, command: str) -> None:
        try:
            stream.write(f"{command}\n".encode("utf-8"))
            stream.flush()
        except OSError as exc:
            raise UpsConnectionError(self.host, self.port, exc) from exc

    def _read_line(self, stream: BinaryIO) -> Optional[str]:
        """Next response line without its terminator, or None at end of stream."""
        try:
            raw = stream.readline()
        except OSError as exc:
            raise UpsConnectionError(self.host, self.port, exc) from exc
        if not raw:
            return None
        return raw.decode("utf-8", errors="replace").rstrip("\r\n")

    # ─────────────────────────────────────────────
    # Commands
    # ─────────────────────────────────────────────

    def _get_var(self, stream: BinaryIO, var_name: str) -> str:
        self._send(stream, f"GET VAR {self.name} {var_name}")
        response = self._read_line(stream)
        if response is None:
            raise ProtocolError(f"Connection closed before reply to GET VAR {var_name}")

        parsed = parse_var_line(response.strip())
        if parsed is not None:
            return parsed[1]
        if "ERR" in response:
            raise ProtocolError(f"UPS error response: {response.strip()}", response)
        raise ProtocolError(f"Invalid response: {response.strip()}", response)

    def get_variable(self, var_name: str) -> str:
        with self.connect() as stream:
            return self._get_var(stream, var_name)

    def list_variables(self) -> List[UpsVariable]:
        """
        All variables of the device, in the order upsd sends them.

        Reading stops at the first line starting with `END LIST`, or when
        the server closes the stream.
        """
        variables: List[UpsVariable] = []
        with self.connect() as stream:
            self._send(stream, f"LIST VAR {self.name}")
            while True:
                line = self._read_line(stream)
                if line is None or line.startswith("END LIST"):
                    break
                if line.startswith("ERR"):
                    raise ProtocolError(f"UPS error response: {line}", line)
                if line.startswith("VAR"):
                    parsed = parse_var_line(line)
                    if parsed is not None:
                        variables.append(UpsVariable(name=parsed[0], value=parsed[1]))
        return variables

    def get_status(self) -> StatusSnapshot:
        with self.connect() as stream:
            charge_raw = self._get_var(stream, "battery.charge")
            runtime_raw = self._get_var(stream, "battery.runtime")
            ups_status = self._get_var(stream, "ups.status")
            try:
                power_raw: Optional[str] = self._get_var(stream, "output.power")
            except (ProtocolError, UpsConnectionError) as exc:
                logger.debug("output.power unavailable: %s", exc)
                power_raw = None

        battery_charge = self._numeric("battery.charge", charge_raw, float)
        battery_runtime = self._numeric("battery.runtime", runtime_raw, _parse_runtime)

        output_power: Optional[float] = None
        if power_raw is not None:
            try:
                output_power = float(power_raw)
            except ValueError:
                logger.debug("output.power %r is not a number; treating as absent", power_raw)

        return StatusSnapshot(
            battery_charge=battery_charge,
            battery_runtime=battery_runtime,
            ups_status=ups_status,
            on_battery=is_on_battery(ups_status),
            output_power=output_power,
        )

    def _numeric(self, var_name: str, raw: str, parse: Callable[[str], T]) -> T:
        # A non-numeric reading becomes 0 unless strict_numeric is set. Note that
        # a 0 charge or runtime satisfies the shutdown thresholds.
        try:
            return parse(raw)
        except ValueError:
            if self.strict_numeric:
                raise ProtocolError(f"Non-numeric {var_name}: {raw!r}", raw)
            logger.warning("Non-numeric %s value %r; using 0", var_name, raw)
            return parse("0")
