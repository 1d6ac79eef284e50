"""Test utilities for udprelay tests."""

from __future__ import annotations

import asyncio
import socket
import time
from collections.abc import Awaitable, Callable


async def retry_until(
    condition: Callable[[], bool | Awaitable[bool]],
    *,
    timeout: float = 2.0,
    interval: float = 0.02,
    message: str = "Condition not met within timeout",
) -> None:
    """Poll *condition* (sync or async) until it is truthy or *timeout* expires."""
    start = time.monotonic()
    while time.monotonic() - start < timeout:
        result = condition()

        if asyncio.iscoroutine(result):
            result = await result

        if result:
            return

        await asyncio.sleep(interval)
    raise TimeoutError(message)


def reserve_port() -> int:
    """Return a UDP port that was free a moment ago."""
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def send_raw(data: bytes, port: int) -> None:
    """Send *data* to ``127.0.0.1:port`` from a throwaway socket."""
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
        sock.sendto(data, ("127.0.0.1", port))
