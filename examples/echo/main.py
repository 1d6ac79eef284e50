"""
Loopback Echo
=============

Starts a listener, sends a handful of envelopes to it, prints what arrives,
then stops. Starting and stopping twice shows that both operations are
idempotent.

Usage:
    python examples/echo/main.py --port 5000
"""
from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path

from udprelay import (
    ListenerController,
    QueueSink,
    ValidationError,
    configure_logging,
    load_config,
    send_message,
    send_number,
)

log = logging.getLogger("udprelay.examples.echo")


async def run(port: int) -> None:
    config = load_config(Path(__file__).parent / "udprelay.toml")
    configure_logging(config.logging.level)

    sink = QueueSink()
    async with ListenerController(sink, config=config.listener) as controller:
        log.info(await controller.start(port))
        log.info(await controller.start(port))

        await send_number(42, port)
        await send_message("greeting", {"text": "hello"}, port)
        try:
            await send_number(1_000_001, port)
        except ValidationError as exc:
            log.warning("rejected: %s", exc)

        for _ in range(2):
            envelope = await asyncio.wait_for(sink.get(), timeout=1.0)
            log.info("got %s %r at %d", envelope.kind, envelope.payload, envelope.timestamp)

        log.info(await controller.stop())
        log.info(await controller.stop())


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--port", type=int, default=5000)
    args = parser.parse_args()
    asyncio.run(run(args.port))


if __name__ == "__main__":
    main()
