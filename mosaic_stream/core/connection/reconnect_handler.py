"""Reconnect with backoff for stream handlers.

A handler whose transport drops (or whose read loop keeps failing) asks
:meth:`ReconnectingMixin._on_circuit_breaker_triggered` to reopen it. The
mixin retries with exponentially growing, jittered delays and reports
whether the read loop should carry on.
"""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from mosaic_stream.core.logging_utils import get_module_logger

logger = get_module_logger("reconnect")


class ReconnectState(Enum):
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    FAILED = "failed"


@dataclass
class ReconnectConfig:
    """Error thresholds and backoff settings."""

    # Read errors tolerated in a row before the transport is reopened
    max_consecutive_errors: int = 10
    error_backoff: float = 0.1
    max_error_backoff: float = 2.0

    max_reconnect_attempts: int = 5
    base_reconnect_delay: float = 1.0
    max_reconnect_delay: float = 30.0
    backoff_factor: float = 2.0
    jitter_factor: float = 0.1

    def reconnect_delay(self, attempt: int) -> float:
        """Delay before reconnect ``attempt`` (1-based), jitter excluded."""
        delay = self.base_reconnect_delay * self.backoff_factor ** (attempt - 1)
        return min(delay, self.max_reconnect_delay)

    def error_delay(self, consecutive_errors: int) -> float:
        """Pause after the ``consecutive_errors``-th read error in a row."""
        delay = self.error_backoff * 2 ** (consecutive_errors - 1)
        return min(delay, self.max_error_backoff)


class ReconnectingMixin:
    """Adds reopen-with-backoff to a handler.

    Subclasses call ``_init_reconnect`` from ``__init__`` and implement
    ``_attempt_reconnect``, returning True once the transport is open again.
    """

    _reconnect_config: ReconnectConfig
    _reconnect_state: ReconnectState
    _reconnect_attempt: int
    _reconnect_device_id: str

    def _init_reconnect(self, device_id: str, config: Optional[ReconnectConfig] = None) -> None:
        self._reconnect_config = config or ReconnectConfig()
        self._reconnect_state = ReconnectState.CONNECTED
        self._reconnect_attempt = 0
        self._reconnect_device_id = device_id

    @property
    def reconnect_state(self) -> ReconnectState:
        return self._reconnect_state

    @property
    def reconnect_failed(self) -> bool:
        return self._reconnect_state is ReconnectState.FAILED

    def reset_reconnect_state(self) -> None:
        self._reconnect_state = ReconnectState.CONNECTED
        self._reconnect_attempt = 0

    async def _attempt_reconnect(self) -> bool:
        raise NotImplementedError(f"{type(self).__name__} must implement _attempt_reconnect()")

    async def _on_circuit_breaker_triggered(self) -> bool:
        """Reopen the transport; False once every attempt has failed."""
        config = self._reconnect_config
        device = self._reconnect_device_id
        self._reconnect_state = ReconnectState.RECONNECTING

        while self._reconnect_attempt < config.max_reconnect_attempts:
            self._reconnect_attempt += 1
            delay = config.reconnect_delay(self._reconnect_attempt)
            delay *= 1.0 + config.jitter_factor * random.random()
            logger.info(
                "Reconnecting %s in %.1fs (attempt %d/%d)",
                device, delay, self._reconnect_attempt, config.max_reconnect_attempts,
            )
            await asyncio.sleep(delay)

            try:
                reopened = await self._attempt_reconnect()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.warning("Reconnect attempt %d for %s raised: %s", self._reconnect_attempt, device, exc)
                reopened = False

            if reopened:
                logger.info("Reconnected %s after %d attempt(s)", device, self._reconnect_attempt)
                self.reset_reconnect_state()
                return True

        self._reconnect_state = ReconnectState.FAILED
        logger.error("Giving up on %s after %d reconnect attempts", device, self._reconnect_attempt)
        return False


__all__ = ["ReconnectConfig", "ReconnectState", "ReconnectingMixin"]
