"""Runtime configuration for the engine and the serial link."""

from __future__ import annotations

import os
from dataclasses import dataclass

from .models.pins import DEFAULT_TOTAL_PINS
from .protocol.parser import DEFAULT_MAX_DATA_BYTES

INGESTION_BYTEWISE = "bytewise"
INGESTION_CHUNKED = "chunked"
INGESTION_MODES = (INGESTION_BYTEWISE, INGESTION_CHUNKED)

DEFAULT_CHUNK_SIZE = 64
LARGE_MEM_MAX_DATA_BYTES = 252
LARGE_MEM_CHUNK_SIZE = 4096
DEFAULT_BAUDRATE = 57600


@dataclass
class EngineConfig:
    """Engine sizing and ingestion strategy."""

    total_pins: int = DEFAULT_TOTAL_PINS
    max_data_bytes: int = DEFAULT_MAX_DATA_BYTES
    ingestion: str = INGESTION_BYTEWISE
    chunk_size: int = DEFAULT_CHUNK_SIZE
    echo_diagnostics: bool = True
    thread_safe: bool = False

    @classmethod
    def large_memory(cls, **overrides) -> EngineConfig:
        """Profile for hosts with plenty of RAM: bigger buffer, chunked reads."""
        values = {
            "max_data_bytes": LARGE_MEM_MAX_DATA_BYTES,
            "chunk_size": LARGE_MEM_CHUNK_SIZE,
            "ingestion": INGESTION_CHUNKED,
        }
        values.update(overrides)
        return cls(**values)

    def validate(self) -> None:
        if not 1 <= self.total_pins <= 128:
            raise ValueError(f"total_pins must be 1-128, got {self.total_pins}")
        if not 2 <= self.max_data_bytes <= 255:
            raise ValueError(
                f"max_data_bytes must be 2-255, got {self.max_data_bytes}"
            )
        if self.ingestion not in INGESTION_MODES:
            raise ValueError(
                f"Unknown ingestion '{self.ingestion}'. Valid: {list(INGESTION_MODES)}"
            )
        if self.chunk_size < 1:
            raise ValueError(f"chunk_size must be positive, got {self.chunk_size}")


@dataclass
class SerialConfig:
    """Serial link settings."""

    port: str = ""
    baudrate: int = DEFAULT_BAUDRATE
    timeout: float = 0

    def validate(self) -> None:
        if not self.port:
            raise ValueError("Serial port is required")
        if self.baudrate <= 0:
            raise ValueError(f"Baudrate must be positive, got {self.baudrate}")
        if self.timeout < 0:
            raise ValueError(f"Timeout must not be negative, got {self.timeout}")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw, 0)
    except ValueError:
        raise ValueError(f"{name} must be a valid integer, got: {raw}") from None


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def load_engine_config() -> EngineConfig:
    """Load engine configuration from environment variables.

    Environment variables:
        FIRMATA_LARGE_MEMORY: Start from the large memory profile (default: off)
        FIRMATA_TOTAL_PINS: Number of pins (default: 20)
        FIRMATA_MAX_DATA_BYTES: Sysex buffer size (default: 64, or 252)
        FIRMATA_INGESTION: ``bytewise`` or ``chunked``
        FIRMATA_CHUNK_SIZE: Bytes read per poll in chunked mode
        FIRMATA_ECHO_DIAGNOSTICS: Echo diagnostics to the host (default: on)
        FIRMATA_THREAD_SAFE: Serialise engine calls with a lock (default: off)

    Raises:
        ValueError: If a value is malformed or out of range.
    """
    if _env_bool("FIRMATA_LARGE_MEMORY", False):
        base = EngineConfig.large_memory()
    else:
        base = EngineConfig()

    config = EngineConfig(
        total_pins=_env_int("FIRMATA_TOTAL_PINS", base.total_pins),
        max_data_bytes=_env_int("FIRMATA_MAX_DATA_BYTES", base.max_data_bytes),
        ingestion=os.getenv("FIRMATA_INGESTION", base.ingestion).strip().lower(),
        chunk_size=_env_int("FIRMATA_CHUNK_SIZE", base.chunk_size),
        echo_diagnostics=_env_bool("FIRMATA_ECHO_DIAGNOSTICS", base.echo_diagnostics),
        thread_safe=_env_bool("FIRMATA_THREAD_SAFE", base.thread_safe),
    )
    config.validate()
    return config


def load_serial_config(port: str | None = None) -> SerialConfig:
    """Load serial settings from ``FIRMATA_PORT`` and ``FIRMATA_BAUDRATE``.

    An explicit ``port`` argument takes precedence over the environment.
    """
    config = SerialConfig(
        port=port or os.getenv("FIRMATA_PORT", ""),
        baudrate=_env_int("FIRMATA_BAUDRATE", DEFAULT_BAUDRATE),
    )
    config.validate()
    return config
