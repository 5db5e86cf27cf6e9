"""Command-line configuration."""

from __future__ import annotations

import argparse
import logging
from dataclasses import dataclass
from typing import Sequence

logger = logging.getLogger(__name__)

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 1883


@dataclass
class BridgeConfig:
    """Runtime settings for the bridge."""

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    decode: bool = True
    verbose: bool = False


def _build_parser() -> argparse.ArgumentParser:
    # -h is the broker host, so help lives on --help only
    parser = argparse.ArgumentParser(
        prog="co2mon-mqtt",
        description="Publish MT8057 CO2 monitor readings to MQTT for Home Assistant.",
        add_help=False,
    )
    parser.add_argument("--help", action="help", help="show this help message and exit")
    parser.add_argument("-h", "--host", default=DEFAULT_HOST, help="MQTT broker host")
    parser.add_argument("-p", "--port", default=None, help="MQTT broker port")
    parser.add_argument(
        "-n",
        "--no-decode",
        dest="decode",
        action="store_false",
        help="do not deobfuscate device reports (newer firmware)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    return parser


def parse_port(value: str | None) -> int:
    """Parse a port literal, falling back to the default with a warning."""
    if value is None:
        return DEFAULT_PORT
    try:
        return int(value, 0)
    except ValueError:
        logger.warning("Cannot convert -p argument to integer, ignored")
        return DEFAULT_PORT


def parse_args(argv: Sequence[str] | None = None) -> BridgeConfig:
    """Build a ``BridgeConfig`` from command-line arguments."""
    args = _build_parser().parse_args(argv)
    return BridgeConfig(
        host=args.host,
        port=parse_port(args.port),
        decode=args.decode,
        verbose=args.verbose,
    )
