"""Lifecycle manager for the receive endpoint.

``ListenerController`` starts at most one ``ListenerLoop`` at a time and
tears it down on request. ``start`` and ``stop`` are idempotent: starting
an active controller and stopping an idle one are acknowledged, not errors.
Every transition runs under the lock held by ``ListenerState``.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum, auto
from types import TracebackType

from udprelay.codec import Codec
from udprelay.config import ListenerConfig
from udprelay.errors import BindError
from udprelay.listener import DatagramInbox, ListenerLoop
from udprelay.sink import Sink

logger = logging.getLogger("udprelay.controller")

MAX_PORT = 65535


class ListenerPhase(Enum):
    """Lifecycle phase of a controller.

    ``idle -> starting -> running -> stopping -> idle``; a failed bind goes
    from ``starting`` straight back to ``idle``.
    """

    idle = auto()
    starting = auto()
    running = auto()
    stopping = auto()


@dataclass
class ListenerState:
    """Shared lifecycle state of one controller.

    ``loop`` and ``task`` are set if and only if ``running`` is true. The
    ``lock`` serializes every transition.

    Parameters
    ----------
    phase : ListenerPhase
        Current lifecycle phase.
    port : int | None
        Port the active endpoint is bound to.
    loop : ListenerLoop | None
        The active loop.
    task : asyncio.Task[None] | None
        Task running the active loop.
    activations : int
        Number of loops spawned over the state's lifetime.
    """

    phase: ListenerPhase = ListenerPhase.idle
    port: int | None = None
    loop: ListenerLoop | None = None
    task: asyncio.Task[None] | None = None
    activations: int = 0
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False, compare=False)

    @property
    def running(self) -> bool:
        return self.phase is ListenerPhase.running

    def clear(self, phase: ListenerPhase = ListenerPhase.idle) -> None:
        self.phase = phase
        self.port = None
        self.loop = None
        self.task = None


def check_port(port: object, host: str) -> int:
    if isinstance(port, bool) or not isinstance(port, int) or not 0 <= port <= MAX_PORT:
        msg = f"Failed to bind {host}:{port}: port must be an integer in 0-{MAX_PORT}"
        raise BindError(msg, host=host, port=port if isinstance(port, int) else -1)
    return port


class ListenerController:
    """Start and stop a single background listener.

    Parameters
    ----------
    sink : Sink
        Receives every envelope decoded by the active loop.
    config : ListenerConfig | None
        Listener settings. Defaults to ``ListenerConfig()``.
    codec : Codec | None
        Wire codec handed to each loop. Defaults to JSON.
    state : ListenerState | None
        Lifecycle state to drive. A fresh one is created if omitted.

    Examples
    --------
    >>> controller = ListenerController(QueueSink())
    >>> await controller.start(5000)
    'Listening on port 5000'
    >>> await controller.start(5000)
    'Already listening on port 5000'
    >>> await controller.stop()
    'Stopped'
    """

    def __init__(
        self,
        sink: Sink,
        *,
        config: ListenerConfig | None = None,
        codec: Codec | None = None,
        state: ListenerState | None = None,
    ) -> None:
        self._sink = sink
        self._config = config or ListenerConfig()
        self._codec = codec
        self._state = state or ListenerState()

    @property
    def state(self) -> ListenerState:
        return self._state

    @property
    def phase(self) -> ListenerPhase:
        return self._state.phase

    @property
    def running(self) -> bool:
        return self._state.running

    @property
    def port(self) -> int | None:
        return self._state.port

    async def __aenter__(self) -> ListenerController:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.stop()

    async def start(self, port: int) -> str:
        """Bind *port* and spawn the listener loop.

        Parameters
        ----------
        port : int
            Port to bind on the configured host. ``0`` picks a free port.

        Returns
        -------
        str
            ``"Listening on port N"``, or ``"Already listening on port N"``
            if a loop is already active.

        Raises
        ------
        BindError
            If the endpoint cannot be bound. The state stays idle.
        """
        state = self._state
        async with state.lock:
            if state.running:
                return f"Already listening on port {state.port}"

            host = self._config.host
            check_port(port, host)

            state.phase = ListenerPhase.starting
            try:
                transport, inbox = await self._bind(host, port)
            except BaseException:
                state.phase = ListenerPhase.idle
                raise

            listener = ListenerLoop(
                transport,
                inbox,
                self._sink,
                codec=self._codec,
                poll_interval=self._config.poll_interval,
                error_backoff=self._config.error_backoff,
                max_datagram_size=self._config.max_datagram_size,
            )
            bound_port = listener.local_address[1]
            task = asyncio.create_task(listener.run(), name=f"udprelay-listener-{bound_port}")
            task.add_done_callback(self._on_loop_done)

            state.phase = ListenerPhase.running
            state.port = bound_port
            state.loop = listener
            state.task = task
            state.activations += 1

        logger.info("Listener started on %s:%d", host, bound_port)
        return f"Listening on port {bound_port}"

    async def stop(self) -> str:
        """Stop the active loop, if any.

        The loop's token is set and its task cancelled, then ``stop`` waits
        up to ``stop_grace`` seconds for the loop to close its endpoint.

        Returns
        -------
        str
            ``"Stopped"``, or ``"Already stopped"`` if nothing was running.
        """
        state = self._state
        async with state.lock:
            if not state.running:
                return "Already stopped"

            listener, task, port = state.loop, state.task, state.port
            state.clear(ListenerPhase.stopping)
            try:
                if listener is not None:
                    listener.cancel()
                if task is not None:
                    task.cancel()
                    await asyncio.wait({task}, timeout=self._config.stop_grace)
            finally:
                state.phase = ListenerPhase.idle

        logger.info("Listener on port %s stopped", port)
        return "Stopped"

    async def _bind(
        self, host: str, port: int
    ) -> tuple[asyncio.DatagramTransport, DatagramInbox]:
        loop = asyncio.get_running_loop()
        try:
            return await loop.create_datagram_endpoint(
                DatagramInbox,
                local_addr=(host, port),
            )
        except (OSError, OverflowError, ValueError) as exc:
            msg = f"Failed to bind {host}:{port}: {exc}"
            raise BindError(msg, host=host, port=port) from exc

    def _on_loop_done(self, task: asyncio.Task[None]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Listener loop crashed", exc_info=exc)
        if self._state.task is task:
            # Loop ended without stop(); its endpoint is already closed.
            self._state.clear()
