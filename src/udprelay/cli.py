"""Command line front end.

Usage:
    udprelay listen --port 5000
    udprelay send-number 42 --port 5000
    udprelay send greeting '{"text": "hi"}' --port 5000

``listen`` prints every received envelope as one JSON line on stdout until
interrupted (or for ``--duration`` seconds). Errors are reported on stderr
as ``error: <description>`` with exit status 1.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import TextIO

from udprelay.codec import Codec, build_codec, to_wire
from udprelay.config import RelayConfig, load_config
from udprelay.controller import ListenerController
from udprelay.envelope import Envelope
from udprelay.errors import RelayError
from udprelay.log import configure_logging
from udprelay.sender import send_message, send_number
from udprelay.sink import CallbackSink

log = logging.getLogger("udprelay.cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="udprelay",
        description="Relay JSON envelopes over loopback UDP.",
    )
    parser.add_argument("--config", type=Path, default=None, help="Path to udprelay.toml")
    parser.add_argument("--log-level", default=None, help="Override the configured log level")
    parser.add_argument(
        "--codec", choices=["json", "msgpack"], default=None, help="Override the wire codec"
    )
    commands = parser.add_subparsers(dest="command", required=True)

    listen = commands.add_parser("listen", help="Print received envelopes")
    listen.add_argument("--port", type=int, required=True)
    listen.add_argument(
        "--duration", type=float, default=None, help="Stop after this many seconds"
    )

    number = commands.add_parser("send-number", help="Send a number envelope")
    number.add_argument("value", type=int)
    number.add_argument("--port", type=int, required=True)

    message = commands.add_parser("send", help="Send an arbitrary envelope")
    message.add_argument("kind")
    message.add_argument("data", help="Payload as a JSON document")
    message.add_argument("--port", type=int, required=True)

    return parser


def print_envelope(envelope: Envelope, stream: TextIO | None = None) -> None:
    out = stream or sys.stdout
    out.write(json.dumps(to_wire(envelope), ensure_ascii=False) + "\n")
    out.flush()


async def listen(
    port: int,
    config: RelayConfig,
    codec: Codec,
    *,
    duration: float | None = None,
    stream: TextIO | None = None,
) -> None:
    sink = CallbackSink(lambda envelope: print_envelope(envelope, stream))
    async with ListenerController(sink, config=config.listener, codec=codec) as controller:
        log.info(await controller.start(port))
        if duration is None:
            await asyncio.Event().wait()
        else:
            await asyncio.sleep(duration)


async def run(args: argparse.Namespace, config: RelayConfig) -> None:
    codec = build_codec(args.codec or config.codec.kind)
    host = config.sender.host
    match args.command:
        case "listen":
            await listen(args.port, config, codec, duration=args.duration)
        case "send-number":
            log.info(await send_number(args.value, args.port, host=host, codec=codec))
        case "send":
            try:
                payload = json.loads(args.data)
            except json.JSONDecodeError as exc:
                msg = f"Payload is not valid JSON: {exc}"
                raise ValueError(msg) from exc
            log.info(await send_message(args.kind, payload, args.port, host=host, codec=codec))


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        config = load_config(args.config)
        configure_logging(args.log_level or config.logging.level)
    except (FileNotFoundError, ValueError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    try:
        asyncio.run(run(args, config))
    except KeyboardInterrupt:
        return 0
    except (RelayError, ValueError, ImportError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    return 0
