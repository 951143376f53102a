"""Typed configuration for a receiver session."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict

from ..core.config_loader import ConfigLoader
from .constants import (
    DEFAULT_BAUD_RATE,
    DEFAULT_FRAME_ID,
    DEFAULT_LEAP_SECONDS,
    DEFAULT_MAX_ASCII_LENGTH,
    DEFAULT_MAX_BLOCK_LENGTH,
    DEFAULT_MAX_BUFFER_BYTES,
    DEFAULT_READ_SIZE,
    DEFAULT_RECONNECT_DELAY,
)


@dataclass(slots=True)
class ReceiverConfig:
    """Typed configuration for a receiver session."""

    # Serial configuration
    serial_port: str = "/dev/ttyACM0"
    baud_rate: int = DEFAULT_BAUD_RATE
    reconnect_delay_s: float = DEFAULT_RECONNECT_DELAY
    read_size: int = DEFAULT_READ_SIZE

    # Decoding
    frame_id: str = DEFAULT_FRAME_ID
    use_gnss_time: bool = True
    leap_seconds: int = DEFAULT_LEAP_SECONDS
    max_block_length: int = DEFAULT_MAX_BLOCK_LENGTH
    max_ascii_length: int = DEFAULT_MAX_ASCII_LENGTH
    max_buffer_bytes: int = DEFAULT_MAX_BUFFER_BYTES
    publish_navsatfix: bool = True
    publish_pose: bool = False

    # Output settings
    output_dir: Path = field(default_factory=lambda: Path("mosaic_data"))
    log_level: str = "info"

    @classmethod
    def defaults(cls) -> Dict[str, Any]:
        return asdict(cls())

    @classmethod
    def from_file(cls, path: Path, args: Any = None) -> "ReceiverConfig":
        """Build config from a ``key = value`` file with optional CLI overrides.

        Unknown keys are ignored; a missing file gives the defaults.
        """
        values = ConfigLoader.load(Path(path), defaults=cls.defaults(), strict=True)
        config = cls(**values)
        if args is not None:
            config = config.apply_args(args)
        return config

    def apply_args(self, args: Any) -> "ReceiverConfig":
        """Apply CLI argument overrides to config values."""
        values = asdict(self)
        for f in fields(self):
            val = getattr(args, f.name, None)
            if val is not None:
                values[f.name] = Path(val) if f.name == "output_dir" else val
        return ReceiverConfig(**values)

    def decoder_kwargs(self) -> Dict[str, Any]:
        """Keyword arguments for ``MosaicDecoder``."""
        return {
            "frame_id": self.frame_id,
            "use_gnss_time": self.use_gnss_time,
            "leap_seconds": self.leap_seconds,
            "max_block_length": self.max_block_length,
            "max_ascii_length": self.max_ascii_length,
        }

    def to_dict(self) -> dict[str, Any]:
        """Export config values as dictionary."""
        return asdict(self)


__all__ = ["ReceiverConfig"]
