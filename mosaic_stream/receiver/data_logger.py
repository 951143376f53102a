"""CSV recording of decoded records.

Rows are queued by the read loop and written by a background thread in
batches, so a slow disk never holds up decoding. When the queue is full
new rows are dropped and counted.
"""

from __future__ import annotations

import csv
import json
import threading
import time
from pathlib import Path
from queue import Empty, Full, Queue
from typing import Any, List, Optional, TextIO

from ..core.logging_utils import get_module_logger
from .constants import RECORD_CSV_HEADER
from .record_types import RecordKind, record_fields

logger = get_module_logger(__name__)

_STOP = None
_IDLE_FLUSH_S = 0.5


def record_row(record: Any, kind: RecordKind, received_at: Optional[float] = None) -> List[Any]:
    """CSV row for ``record`` in RECORD_CSV_HEADER order."""
    meta = getattr(record, "meta", None)
    return [
        time.time() if received_at is None else received_at,
        kind.value,
        "" if meta is None else meta.sequence,
        "" if meta is None else meta.stamp.sec,
        "" if meta is None else meta.stamp.nsec,
        "" if meta is None else meta.frame_id,
        json.dumps(record_fields(record), separators=(",", ":")),
    ]


class RecordDataLogger:
    """Writes one CSV file per recording for a receiver.

    Example:
        data_logger = RecordDataLogger(output_dir, "mosaic:ttyACM0")
        data_logger.start_recording()
        data_logger.log_record(result.record, result.kind)
        data_logger.stop_recording()
    """

    def __init__(
        self,
        output_dir: Path,
        device_id: str,
        flush_threshold: int = 32,
        queue_size: int = 1000,
    ):
        """
        Args:
            output_dir: Directory the CSV file is created in
            device_id: Receiver identifier, used in the file name
            flush_threshold: Rows written per batch
            queue_size: Rows held in memory before new rows are dropped
        """
        self.output_dir = Path(output_dir)
        self.device_id = device_id
        self._flush_threshold = max(1, flush_threshold)
        self._queue: Queue[Optional[List[Any]]] = Queue(maxsize=queue_size)
        self._thread: Optional[threading.Thread] = None
        self._path: Optional[Path] = None
        self._queued = 0
        self._dropped = 0

    @property
    def is_recording(self) -> bool:
        return self._thread is not None

    @property
    def filepath(self) -> Optional[Path]:
        return self._path

    @property
    def queued_records(self) -> int:
        return self._queued

    @property
    def dropped_records(self) -> int:
        return self._dropped

    def _sanitize_device_id(self) -> str:
        safe = self.device_id
        for char in ":/\\":
            safe = safe.replace(char, "_")
        return safe

    def start_recording(self) -> Optional[Path]:
        """Create the CSV file and start the writer thread.

        Returns the file path, or None when the file cannot be created.
        """
        if self._thread is not None:
            return self._path

        name = f"{self._sanitize_device_id()}_{time.strftime('%Y%m%d_%H%M%S')}.csv"
        path = self.output_dir / name
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
            handle = path.open("w", encoding="utf-8", newline="")
        except OSError as exc:
            logger.error("Cannot create recording for %s: %s", self.device_id, exc)
            return None

        self._queue = Queue(maxsize=self._queue.maxsize)
        self._queued = 0
        self._dropped = 0
        self._path = path
        self._thread = threading.Thread(
            target=self._write_rows,
            args=(handle,),
            name=f"RecordWriter-{self._sanitize_device_id()}",
            daemon=True,
        )
        self._thread.start()
        logger.info("Recording %s to %s", self.device_id, path)
        return path

    def stop_recording(self) -> None:
        """Flush queued rows, stop the writer thread and close the file."""
        thread = self._thread
        if thread is None:
            return

        if thread.is_alive():
            try:
                self._queue.put(_STOP, timeout=5.0)
            except Full:
                logger.error("Record writer for %s is not draining its queue", self.device_id)
            thread.join(timeout=5.0)
            if thread.is_alive():
                logger.error("Record writer for %s did not stop within 5s", self.device_id)
        else:
            lost = self._discard_queued()
            if lost:
                logger.error("Writer for %s had stopped; %d queued records lost", self.device_id, lost)

        if self._dropped:
            logger.warning("%d records dropped while recording %s", self._dropped, self.device_id)
        logger.info("Stopped recording %s: %d records in %s", self.device_id, self._queued, self._path)
        self._thread = None
        self._path = None

    def log_record(self, record: Any, kind: RecordKind) -> bool:
        """Queue ``record`` for writing; False when not recording or dropped."""
        if self._thread is None:
            return False
        try:
            self._queue.put_nowait(record_row(record, kind))
        except Full:
            self._dropped += 1
            if self._dropped == 1 or self._dropped % 100 == 0:
                logger.warning("Record queue full for %s, %d dropped", self.device_id, self._dropped)
            return False
        self._queued += 1
        return True

    def _discard_queued(self) -> int:
        count = 0
        while True:
            try:
                self._queue.get_nowait()
            except Empty:
                return count
            count += 1

    def _write_rows(self, handle: TextIO) -> None:
        writer = csv.writer(handle)
        pending: List[List[Any]] = []
        try:
            writer.writerow(RECORD_CSV_HEADER)
            while True:
                try:
                    row = self._queue.get(timeout=_IDLE_FLUSH_S)
                except Empty:
                    row = []
                if row is _STOP:
                    break
                if row:
                    pending.append(row)
                if pending and (not row or len(pending) >= self._flush_threshold):
                    writer.writerows(pending)
                    handle.flush()
                    pending.clear()
            writer.writerows(pending)
        except OSError as exc:
            logger.error("Writing records for %s failed: %s", self.device_id, exc)
        finally:
            handle.close()


__all__ = ["RecordDataLogger", "record_row"]
