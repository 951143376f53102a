"""Argument helpers shared by the ``decode`` and ``serial`` subcommands.

Every option defaults to None so that only options actually given on the
command line override values from the config file.
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Callable, Optional, TypeVar

from mosaic_stream.core.logging_config import configure_logging
from mosaic_stream.receiver.config import ReceiverConfig

LOG_LEVELS: dict[str, int] = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}

_N = TypeVar("_N", int, float)


def _positive(convert: Callable[[str], _N], label: str) -> Callable[[str], _N]:
    def parse(text: str) -> _N:
        try:
            value = convert(text)
        except ValueError as exc:
            raise argparse.ArgumentTypeError(f"{text!r} is not {label}") from exc
        if value <= 0:
            raise argparse.ArgumentTypeError(f"{text!r} must be greater than zero")
        return value

    parse.__name__ = convert.__name__
    return parse


positive_int = _positive(int, "an integer")
positive_float = _positive(float, "a number")


def add_common_cli_arguments(parser: argparse.ArgumentParser, *, include_config: bool = True) -> None:
    group = parser.add_argument_group("output and logging")
    group.add_argument("--output-dir", type=Path, default=None, help="Directory for CSV recordings")
    group.add_argument(
        "--log-level",
        choices=list(LOG_LEVELS),
        default=None,
        help="Log verbosity (default: info)",
    )
    group.add_argument("--log-file", type=Path, default=None, help="Also log to this rotating file")
    if include_config:
        group.add_argument("--config", type=Path, default=None, help="key = value configuration file")


def add_decoder_arguments(parser: argparse.ArgumentParser) -> None:
    group = parser.add_argument_group("decoding")
    group.add_argument("--frame-id", default=None, help="Tag stamped on every record (default: gnss)")
    group.add_argument(
        "--wall-clock",
        dest="use_gnss_time",
        action="store_const",
        const=False,
        default=None,
        help="Stamp records with the host clock instead of receiver time",
    )
    group.add_argument("--leap-seconds", type=int, default=None, help="GPS-UTC offset (default: 18)")
    group.add_argument("--read-size", type=positive_int, default=None, help="Bytes per transport read")
    group.add_argument(
        "--no-navsatfix",
        dest="publish_navsatfix",
        action="store_const",
        const=False,
        default=None,
        help="Do not build a NavSatFix after each PVTGeodetic",
    )
    group.add_argument(
        "--pose",
        dest="publish_pose",
        action="store_const",
        const=True,
        default=None,
        help="Also build PoseWithCovariance (needs AttEuler and AttCovEuler)",
    )


def load_config(args: argparse.Namespace) -> ReceiverConfig:
    """Config file values, or defaults, overridden by the given arguments."""
    config_path: Optional[Path] = getattr(args, "config", None)
    if config_path is None:
        return ReceiverConfig().apply_args(args)
    return ReceiverConfig.from_file(config_path, args)


def setup_logging(config: ReceiverConfig, args: argparse.Namespace) -> None:
    configure_logging(
        LOG_LEVELS.get(config.log_level.lower(), logging.INFO),
        log_file=getattr(args, "log_file", None),
    )
