"""Receiver Handler

Runs one receiver session: reads raw chunks from a transport, reassembles
and decodes them with a :class:`MosaicDecoder`, and hands decoded records
to the CSV logger and an async callback.

Implements a self-healing circuit breaker via ReconnectingMixin: after a
disconnect or too many consecutive errors the handler reopens its
transport with exponential backoff instead of giving up.
"""

from __future__ import annotations

import asyncio
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from ...core.connection import ReconnectConfig, ReconnectingMixin
from ...core.logging_utils import get_module_logger
from ..config import ReceiverConfig
from ..data_logger import RecordDataLogger
from ..decoder import DecodeResult, DecodeStatus, MosaicDecoder
from ..record_types import RecordKind
from ..transports import BaseReadOnlyTransport

logger = get_module_logger(__name__)

DataCallback = Callable[[str, DecodeResult], Awaitable[None]]


def _task_exception_handler(task: asyncio.Task) -> None:
    """Handle exceptions from fire-and-forget tasks."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Unhandled exception in receiver callback task: %s", exc)


@dataclass
class DecodeStats:
    """Running counts of decode outcomes for one session."""

    bytes_received: int = 0
    bytes_dropped: int = 0
    statuses: Counter = field(default_factory=Counter)
    decoded_kinds: Counter = field(default_factory=Counter)

    def record(self, result: DecodeResult) -> None:
        self.statuses[result.status] += 1
        if result.ok and result.kind is not None:
            self.decoded_kinds[result.kind] += 1

    @property
    def decoded(self) -> int:
        return self.statuses[DecodeStatus.DECODED]

    def summary(self) -> Dict[str, Any]:
        return {
            "bytes_received": self.bytes_received,
            "bytes_dropped": self.bytes_dropped,
            "statuses": {status.value: count for status, count in self.statuses.items()},
            "decoded": {kind.value: count for kind, count in self.decoded_kinds.items()},
        }


class ReceiverHandler(ReconnectingMixin):
    """Handler for one mosaic receiver stream.

    Example:
        transport = SerialTransport("/dev/ttyACM0", 115200)
        await transport.connect()

        handler = ReceiverHandler("mosaic:ttyACM0", transport, config)
        handler.data_callback = my_callback
        await handler.start()
        ...
        await handler.stop()
    """

    def __init__(
        self,
        device_id: str,
        transport: BaseReadOnlyTransport,
        config: Optional[ReceiverConfig] = None,
        output_dir: Optional[Path] = None,
        reconnect_config: Optional[ReconnectConfig] = None,
    ):
        """Initialize the handler.

        Args:
            device_id: Unique identifier for this receiver (e.g., "mosaic:ttyACM0")
            transport: Byte source to read from
            config: Session configuration (defaults if not given)
            output_dir: Directory for CSV output, overriding ``config.output_dir``
            reconnect_config: Circuit breaker and backoff settings
        """
        self.device_id = device_id
        self.transport = transport
        self.config = config or ReceiverConfig()
        self.output_dir = Path(output_dir) if output_dir is not None else self.config.output_dir

        self._decoder = MosaicDecoder(**self.config.decoder_kwargs())
        self._composites = tuple(
            kind
            for kind, enabled in (
                (RecordKind.NAVSATFIX, self.config.publish_navsatfix),
                (RecordKind.POSE_WITH_COVARIANCE, self.config.publish_pose),
            )
            if enabled
        )
        self._buffer = b""
        self.stats = DecodeStats()

        self._data_logger: Optional[RecordDataLogger] = None

        # Callback for decoded records (set by the caller)
        self.data_callback: Optional[DataCallback] = None

        self._running = False
        self._recording = False
        self._read_task: Optional[asyncio.Task] = None

        # Circuit breaker error tracking (used by ReconnectingMixin)
        self._consecutive_errors = 0
        self._init_reconnect(
            device_id,
            reconnect_config or ReconnectConfig(base_reconnect_delay=self.config.reconnect_delay_s),
        )

        self._pending_tasks: Set[asyncio.Task] = set()

    @property
    def decoder(self) -> MosaicDecoder:
        return self._decoder

    @property
    def buffered_bytes(self) -> int:
        """Bytes of a partial message held until the next read."""
        return len(self._buffer)

    @property
    def is_connected(self) -> bool:
        return self.transport.is_connected if self.transport else False

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_recording(self) -> bool:
        return self._recording

    # =========================================================================
    # Lifecycle Methods
    # =========================================================================

    async def start(self) -> None:
        """Start the read loop as a background task."""
        if self._running:
            logger.warning("Handler %s already running", self.device_id)
            return

        self._running = True
        self._read_task = asyncio.create_task(self._read_loop())
        logger.info("Receiver handler started for %s", self.device_id)

    async def wait_finished(self) -> None:
        """Wait until the read loop ends (e.g. a capture file is exhausted)."""
        if self._read_task is not None:
            await asyncio.shield(self._read_task)
        if self._pending_tasks:
            await asyncio.gather(*self._pending_tasks, return_exceptions=True)

    async def stop(self) -> None:
        """Stop the read loop and any active recording."""
        self._running = False

        if self._read_task:
            self._read_task.cancel()
            try:
                await self._read_task
            except asyncio.CancelledError:
                pass
            self._read_task = None

        for task in self._pending_tasks:
            if not task.done():
                task.cancel()
        self._pending_tasks.clear()

        if self._recording:
            self.stop_recording()

        logger.info("Receiver handler stopped for %s", self.device_id)

    # =========================================================================
    # Recording Control
    # =========================================================================

    def start_recording(self) -> bool:
        if self._recording:
            logger.debug("Recording already active for %s", self.device_id)
            return True

        self._data_logger = RecordDataLogger(self.output_dir, self.device_id)
        path = self._data_logger.start_recording()
        if path:
            self._recording = True
            return True

        logger.error("Failed to start recording for %s", self.device_id)
        self._data_logger = None
        return False

    def stop_recording(self) -> None:
        if not self._recording:
            return
        if self._data_logger:
            self._data_logger.stop_recording()
            self._data_logger = None
        self._recording = False

    # =========================================================================
    # Decoding
    # =========================================================================

    def process_bytes(self, chunk: bytes) -> List[DecodeResult]:
        """Decode ``chunk`` appended to the bytes held from earlier reads.

        Decoded records are logged and passed to ``data_callback``; every
        outcome is counted in ``stats``.
        """
        self.stats.bytes_received += len(chunk)
        results, leftover = self._decoder.decode_all(self._buffer + chunk, composites=self._composites)

        if len(leftover) > self.config.max_buffer_bytes:
            logger.warning(
                "Dropping %d buffered bytes for %s without a complete message",
                len(leftover),
                self.device_id,
            )
            self.stats.bytes_dropped += len(leftover)
            leftover = b""
        self._buffer = leftover

        for result in results:
            self.stats.record(result)
            if result.ok:
                self._dispatch(result)
        return results

    def _dispatch(self, result: DecodeResult) -> None:
        if self._recording and self._data_logger:
            self._data_logger.log_record(result.record, result.kind)

        if self.data_callback:
            self._create_background_task(self.data_callback(self.device_id, result))

    # =========================================================================
    # Read Loop
    # =========================================================================

    async def _read_loop(self) -> None:
        """Read chunks until stopped, reconnecting when the transport drops."""
        logger.debug("Read loop started for %s", self.device_id)
        self._consecutive_errors = 0

        while self._running:
            if not self.is_connected:
                if self.transport.exhausted:
                    break
                logger.warning("Receiver %s disconnected, attempting reconnect", self.device_id)
                should_continue = await self._on_circuit_breaker_triggered()
                if not should_continue:
                    logger.error("Reconnection failed for %s - exiting read loop", self.device_id)
                    break
                continue

            try:
                chunk = await self.transport.read_chunk(timeout=1.0)
                if chunk:
                    self._consecutive_errors = 0
                    self.process_bytes(chunk)
                elif self.transport.exhausted:
                    break

                await asyncio.sleep(0)

            except asyncio.CancelledError:
                break
            except Exception as e:
                self._consecutive_errors += 1
                config = self._reconnect_config
                logger.error(
                    "Error in read loop for %s (%d/%d): %s",
                    self.device_id,
                    self._consecutive_errors,
                    config.max_consecutive_errors,
                    e
                )

                if self._consecutive_errors >= config.max_consecutive_errors:
                    logger.warning(
                        "Circuit breaker triggered for %s - attempting reconnection",
                        self.device_id
                    )
                    should_continue = await self._on_circuit_breaker_triggered()
                    if not should_continue:
                        logger.error("Reconnection failed for %s - exiting read loop", self.device_id)
                        break
                    continue

                await asyncio.sleep(config.error_delay(self._consecutive_errors))

        if self._buffer:
            logger.debug("Discarding %d trailing bytes for %s", len(self._buffer), self.device_id)
            self._buffer = b""
        self._running = False
        logger.debug(
            "Read loop ended for %s (connected=%s, errors=%d, reconnect_state=%s)",
            self.device_id,
            self.is_connected,
            self._consecutive_errors,
            self._reconnect_state.value,
        )

    async def _attempt_reconnect(self) -> bool:
        """Close and reopen the transport; called by ReconnectingMixin."""
        await self.transport.disconnect()
        # Let the OS release the port
        await asyncio.sleep(0.2)
        if await self.transport.connect():
            self._consecutive_errors = 0
            # A partial message from the old connection cannot continue on the new one
            self._buffer = b""
            logger.info("Transport reconnected for %s", self.device_id)
            return True
        logger.warning("Transport reconnect failed for %s", self.device_id)
        return False

    # =========================================================================
    # Utility Methods
    # =========================================================================

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._pending_tasks.discard(task)
        _task_exception_handler(task)

    def _create_background_task(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._pending_tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task
