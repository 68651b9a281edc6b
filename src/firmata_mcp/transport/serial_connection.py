"""Serial port connection backed by pyserial.

Ports are opened with ``serial.serial_for_url`` so device paths
(``/dev/ttyACM0``, ``COM3``) and pyserial URLs (``loop://``,
``socket://host:port``) work alike. Reads never block: the port is opened
with ``timeout=0``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import serial

from ..config import DEFAULT_BAUDRATE, SerialConfig

logger = logging.getLogger(__name__)


@dataclass
class PortInfo:
    """Basic information about the opened port."""

    port: str = ""
    baudrate: int = DEFAULT_BAUDRATE
    description: str = ""


class SerialConnection:
    """Manages a serial link to a Firmata peer.

    Usage::

        conn = SerialConnection("/dev/ttyACM0")
        conn.open()
        conn.write(message)
        data = conn.read(64)
        conn.close()
    """

    def __init__(
        self,
        port: str,
        baudrate: int = DEFAULT_BAUDRATE,
        timeout: float = 0,
    ) -> None:
        self._port_name = port
        self._baudrate = baudrate
        self._timeout = timeout
        self._serial: serial.SerialBase | None = None
        self._info = PortInfo(port=port, baudrate=baudrate)

    @classmethod
    def from_config(cls, config: SerialConfig) -> SerialConnection:
        return cls(config.port, baudrate=config.baudrate, timeout=config.timeout)

    @property
    def connected(self) -> bool:
        return self._serial is not None and self._serial.is_open

    @property
    def info(self) -> PortInfo:
        return self._info

    def open(self) -> PortInfo:
        """Open the serial port.

        Raises:
            ConnectionError: If the port cannot be opened.
        """
        if self.connected:
            return self._info
        try:
            self._serial = serial.serial_for_url(
                self._port_name,
                baudrate=self._baudrate,
                timeout=self._timeout,
                write_timeout=None,
            )
        except (serial.SerialException, ValueError) as e:
            raise ConnectionError(
                f"Could not open serial port {self._port_name!r} "
                f"at {self._baudrate} baud: {e}"
            ) from e

        self._info = PortInfo(
            port=self._port_name,
            baudrate=self._baudrate,
            description=getattr(self._serial, "name", "") or self._port_name,
        )
        logger.info("Opened %s at %d baud", self._port_name, self._baudrate)
        return self._info

    def close(self) -> None:
        """Close the serial port."""
        if self._serial is None:
            return
        try:
            self._serial.close()
        except serial.SerialException as e:
            logger.warning("Error closing port: %s", e)
        finally:
            self._serial = None
            logger.info("Disconnected from %s", self._port_name)

    def _require(self) -> serial.SerialBase:
        if self._serial is None or not self._serial.is_open:
            raise ConnectionError("Serial port is not open")
        return self._serial

    def available(self) -> int:
        return self._require().in_waiting

    def read(self, size: int = 1) -> bytes:
        """Read up to ``size`` bytes without waiting."""
        port = self._require()
        pending = port.in_waiting
        if pending == 0:
            return b""
        return port.read(min(size, pending))

    def write(self, data: bytes) -> int:
        """Write bytes to the port.

        Raises:
            ConnectionError: If the port is not open.
        """
        written = self._require().write(data)
        return written if written is not None else len(data)

    def flush(self) -> None:
        self._require().flush()

    def __enter__(self) -> SerialConnection:
        self.open()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
