"""Sinks consume envelopes decoded by a listener loop.

A sink is anything with a ``deliver(envelope)`` method. The loop calls it
once per decoded datagram and awaits the result if it is awaitable.
Exceptions raised by a sink are logged by the loop and never stop it.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Protocol, runtime_checkable

from udprelay.envelope import Envelope


@runtime_checkable
class Sink(Protocol):
    """Push-style consumer of decoded envelopes.

    Examples
    --------
    Minimal implementation:

    >>> class PrintSink:
    ...     def deliver(self, envelope: Envelope) -> None:
    ...         print(envelope.kind, envelope.payload)
    """

    def deliver(self, envelope: Envelope) -> Awaitable[None] | None:
        """Consume one decoded envelope.

        Parameters
        ----------
        envelope : Envelope
            The decoded message.
        """
        ...


class CallbackSink:
    """Adapt a plain or async callable to the ``Sink`` contract.

    Examples
    --------
    >>> received = []
    >>> sink = CallbackSink(received.append)
    """

    def __init__(self, fn: Callable[[Envelope], Awaitable[None] | None]) -> None:
        self._fn = fn

    def deliver(self, envelope: Envelope) -> Awaitable[None] | None:
        return self._fn(envelope)


class QueueSink:
    """Buffer envelopes in an ``asyncio.Queue`` for a consumer task.

    With a bounded queue a full queue raises ``asyncio.QueueFull`` from
    ``deliver``, which the loop logs and drops.

    Parameters
    ----------
    maxsize : int
        Queue capacity. ``0`` for unbounded.
    """

    def __init__(self, maxsize: int = 0) -> None:
        self._queue: asyncio.Queue[Envelope] = asyncio.Queue(maxsize=maxsize)

    @property
    def queue(self) -> asyncio.Queue[Envelope]:
        return self._queue

    def deliver(self, envelope: Envelope) -> None:
        self._queue.put_nowait(envelope)

    async def get(self) -> Envelope:
        """Wait for and return the next envelope."""
        return await self._queue.get()


class LoggingSink:
    """Log every envelope at info level."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or logging.getLogger("udprelay.sink")

    def deliver(self, envelope: Envelope) -> None:
        self._logger.info(
            "Received %r envelope (timestamp=%d): %r",
            envelope.kind,
            envelope.timestamp,
            envelope.payload,
        )
