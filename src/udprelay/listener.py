"""Background receive loop for a bound datagram endpoint.

``DatagramInbox`` is the ``asyncio.DatagramProtocol`` installed on the
endpoint; it queues datagrams and transport errors. ``ListenerLoop`` drains
the inbox with a bounded wait, decodes each datagram, and pushes decoded
envelopes to a sink until its cancellation token is set or its task is
cancelled. The endpoint is closed on every exit path.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Final

from udprelay.codec import Codec, JsonCodec
from udprelay.errors import DecodeError
from udprelay.sink import Sink

logger = logging.getLogger("udprelay.listener")

DEFAULT_POLL_INTERVAL: Final = 0.1
DEFAULT_ERROR_BACKOFF: Final = 0.1
DEFAULT_MAX_DATAGRAM_SIZE: Final = 1024


@dataclass(frozen=True)
class Datagram:
    data: bytes
    addr: tuple[str, int]


class _Wakeup:
    pass


_WAKEUP: Final = _Wakeup()

type InboxItem = Datagram | OSError | _Wakeup


class DatagramInbox(asyncio.DatagramProtocol):
    """Datagram protocol that queues everything it receives for a loop."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue[InboxItem] = asyncio.Queue()
        self.transport: asyncio.DatagramTransport | None = None

    def connection_made(self, transport: asyncio.BaseTransport) -> None:
        self.transport = transport  # type: ignore[assignment]

    def datagram_received(self, data: bytes, addr: tuple[str, int]) -> None:
        self._queue.put_nowait(Datagram(data, addr))

    def error_received(self, exc: Exception) -> None:
        if isinstance(exc, OSError):
            self._queue.put_nowait(exc)
        else:
            logger.error("Unexpected UDP error: %r", exc)

    def connection_lost(self, exc: Exception | None) -> None:
        if exc:
            logger.error("UDP endpoint lost: %s", exc)

    def wakeup(self) -> None:
        """Interrupt a pending ``get`` so the loop re-checks its token."""
        self._queue.put_nowait(_WAKEUP)

    async def get(self) -> InboxItem:
        return await self._queue.get()


@dataclass
class LoopStats:
    """Counters maintained by a running loop."""

    received: int = 0
    delivered: int = 0
    dropped: int = 0
    errors: int = 0


class ListenerLoop:
    """Receive loop owning one bound datagram endpoint.

    The loop is stopped either cooperatively through ``cancel()``, which is
    observed at the next wait boundary, or forcefully by cancelling the task
    running ``run()``. Both paths close the endpoint.

    The inbox is unbounded: while an async sink is slow, datagrams keep
    queueing behind it.

    Parameters
    ----------
    transport : asyncio.DatagramTransport
        The bound endpoint. Ownership passes to the loop.
    inbox : DatagramInbox
        Protocol instance attached to *transport*.
    sink : Sink
        Receives every successfully decoded envelope.
    codec : Codec | None
        Wire codec. Defaults to ``JsonCodec``.
    poll_interval : float
        Upper bound, in seconds, on a single wait for the next datagram.
    error_backoff : float
        Pause, in seconds, after a transport-level receive error.
    max_datagram_size : int
        Datagrams longer than this many bytes are dropped.

    Examples
    --------
    >>> loop = ListenerLoop(transport, inbox, QueueSink())
    >>> task = asyncio.create_task(loop.run())
    >>> loop.cancel()
    """

    def __init__(
        self,
        transport: asyncio.DatagramTransport,
        inbox: DatagramInbox,
        sink: Sink,
        *,
        codec: Codec | None = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        error_backoff: float = DEFAULT_ERROR_BACKOFF,
        max_datagram_size: int = DEFAULT_MAX_DATAGRAM_SIZE,
    ) -> None:
        self._transport = transport
        self._inbox = inbox
        self._sink = sink
        self._codec = codec or JsonCodec()
        self._poll_interval = poll_interval
        self._error_backoff = error_backoff
        self._max_datagram_size = max_datagram_size
        self._cancelled = asyncio.Event()
        self.stats = LoopStats()

    @property
    def local_address(self) -> tuple[str, int]:
        sockname = self._transport.get_extra_info("sockname")
        return sockname[0], sockname[1]

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def closed(self) -> bool:
        return self._transport.is_closing()

    def cancel(self) -> None:
        """Ask the loop to exit at its next wait boundary."""
        self._cancelled.set()
        self._inbox.wakeup()

    async def run(self) -> None:
        host, port = self.local_address
        logger.info("Listening for datagrams on %s:%d", host, port)
        try:
            while not self._cancelled.is_set():
                item = await self._poll()
                match item:
                    case Datagram():
                        await self._handle_datagram(item)
                    case OSError() as exc:
                        self.stats.errors += 1
                        logger.warning("UDP receive error on port %d: %s", port, exc)
                        await asyncio.sleep(self._error_backoff)
                    case _:
                        continue
        finally:
            self._transport.close()
            logger.info("Listener on %s:%d ended", host, port)

    async def _poll(self) -> InboxItem | None:
        try:
            async with asyncio.timeout(self._poll_interval):
                return await self._inbox.get()
        except TimeoutError:
            return None

    async def _handle_datagram(self, datagram: Datagram) -> None:
        self.stats.received += 1
        if len(datagram.data) > self._max_datagram_size:
            self.stats.dropped += 1
            logger.debug(
                "Dropping %d-byte datagram from %s (limit %d)",
                len(datagram.data),
                datagram.addr,
                self._max_datagram_size,
            )
            return

        try:
            envelope = self._codec.decode(datagram.data)
        except DecodeError as exc:
            self.stats.dropped += 1
            logger.debug("Dropping malformed datagram from %s: %s", datagram.addr, exc)
            return

        try:
            result = self._sink.deliver(envelope)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Sink failed to deliver %r envelope", envelope.kind)
        else:
            self.stats.delivered += 1
