"""Command line entry point: offline and live decoding of mosaic streams."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import json
import signal
import sys
from pathlib import Path
from typing import List, Optional, TextIO

from mosaic_stream.core.logging_utils import get_module_logger
from mosaic_stream.receiver.config import ReceiverConfig
from mosaic_stream.receiver.decoder import DecodeResult
from mosaic_stream.receiver.handlers import ReceiverHandler
from mosaic_stream.receiver.record_types import RecordKind, record_fields
from mosaic_stream.receiver.transports import FileTransport, SerialTransport

from .common import (
    add_common_cli_arguments,
    add_decoder_arguments,
    load_config,
    positive_float,
    positive_int,
    setup_logging,
)

logger = get_module_logger("cli")


def record_to_json(result: DecodeResult) -> str:
    """One JSON line for a decoded record."""
    stamp = result.stamp
    payload = {
        "kind": result.kind.value if result.kind else None,
        "sequence": result.sequence,
        "stamp": stamp.to_float() if stamp else None,
        "frame_id": result.record.meta.frame_id if result.record.meta else None,
        "fields": record_fields(result.record),
    }
    return json.dumps(payload, separators=(",", ":"))


def _kind(value: str) -> RecordKind:
    try:
        return RecordKind.from_name(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mosaic_stream",
        description="Decode SBF, NMEA and command replies from a Septentrio mosaic receiver",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    decode = subparsers.add_parser("decode", help="Decode a recorded capture file")
    decode.add_argument("capture", type=Path, help="Raw receiver capture")
    decode.add_argument(
        "--kind",
        dest="kinds",
        type=_kind,
        action="append",
        default=None,
        help="Only print records of this kind (repeatable)",
    )
    decode.add_argument("--record", action="store_true", help="Also write records to CSV")
    add_common_cli_arguments(decode)
    add_decoder_arguments(decode)

    live = subparsers.add_parser("serial", help="Decode a live serial port")
    live.add_argument("serial_port", metavar="PORT", help="Serial port, e.g. /dev/ttyACM0")
    live.add_argument("--baud-rate", type=positive_int, default=None)
    live.add_argument("--record", action="store_true", help="Write records to CSV")
    live.add_argument("--quiet", action="store_true", help="Do not print records")
    live.add_argument(
        "--send",
        dest="commands",
        metavar="COMMAND",
        action="append",
        default=None,
        help="Receiver command to send after opening the port, e.g. \"grc\" (repeatable)",
    )
    live.add_argument(
        "--duration",
        type=positive_float,
        default=None,
        help="Stop after this many seconds (default: run until interrupted)",
    )
    add_common_cli_arguments(live)
    add_decoder_arguments(live)

    return parser


def _printer(out: TextIO, kinds: Optional[List[RecordKind]]):
    async def on_record(device_id: str, result: DecodeResult) -> None:
        if kinds and result.kind not in kinds:
            return
        out.write(record_to_json(result) + "\n")
    return on_record


async def run_decode(args: argparse.Namespace, config: ReceiverConfig, out: Optional[TextIO] = None) -> int:
    if not args.capture.exists():
        logger.error("Capture file not found: %s", args.capture)
        return 1

    transport = FileTransport(args.capture, read_size=config.read_size)
    handler = ReceiverHandler(f"file:{args.capture.name}", transport, config)
    handler.data_callback = _printer(out or sys.stdout, args.kinds)

    async with transport:
        if args.record and not handler.start_recording():
            return 1
        await handler.start()
        await handler.wait_finished()
        await handler.stop()

    print(json.dumps(handler.stats.summary()), file=sys.stderr)
    return 0


async def run_serial(args: argparse.Namespace, config: ReceiverConfig, out: Optional[TextIO] = None) -> int:
    transport = SerialTransport(
        config.serial_port,
        config.baud_rate,
        read_size=config.read_size,
    )
    handler = ReceiverHandler(f"mosaic:{Path(config.serial_port).name}", transport, config)
    if not args.quiet:
        handler.data_callback = _printer(out or sys.stdout, None)

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop_event.set)

    if not await transport.connect():
        logger.error("Could not open %s: %s", config.serial_port, transport.last_error)
        return 1

    try:
        if args.record and not handler.start_recording():
            return 1
        await handler.start()
        for command in args.commands or ():
            if not await transport.write(command.encode("ascii") + b"\r\n"):
                logger.error("Could not send command: %s", command)
        with contextlib.suppress(asyncio.TimeoutError):
            await asyncio.wait_for(stop_event.wait(), timeout=args.duration)
    finally:
        await handler.stop()
        await transport.disconnect()

    print(json.dumps(handler.stats.summary()), file=sys.stderr)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    config = load_config(args)
    setup_logging(config, args)

    if args.command == "decode":
        return asyncio.run(run_decode(args, config))
    return asyncio.run(run_serial(args, config))


if __name__ == "__main__":
    sys.exit(main())
