"""Stateless datagram sender.

Each call opens a fresh ephemeral endpoint, transmits one encoded envelope
and closes the endpoint again, so sends may run concurrently with each
other and with an active listener.
"""

from __future__ import annotations

import asyncio
import logging

from udprelay.codec import Codec, JsonCodec
from udprelay.envelope import NUMBER_KIND, Envelope, JsonValue, NumberPayload
from udprelay.errors import BindError, TransportError, ValidationError

logger = logging.getLogger("udprelay.sender")

DEFAULT_HOST = "127.0.0.1"
MAX_PORT = 65535


class _SendProtocol(asyncio.DatagramProtocol):
    """Records errors reported by the transport while sending."""

    def __init__(self) -> None:
        self.error: Exception | None = None

    def error_received(self, exc: Exception) -> None:
        self.error = exc


async def send_message(
    kind: str,
    payload: JsonValue,
    port: int,
    *,
    host: str = DEFAULT_HOST,
    codec: Codec | None = None,
) -> str:
    """Send one envelope to ``host:port``.

    Parameters
    ----------
    kind : str
        Envelope kind. Must not be empty.
    payload : JsonValue
        Arbitrary structured payload.
    port : int
        Target port.
    host : str
        Address of both the ephemeral local endpoint and the target.
    codec : Codec | None
        Wire codec. Defaults to JSON.

    Returns
    -------
    str
        ``"Sent"``.

    Raises
    ------
    ValidationError
        If *kind* is empty.
    EncodeError
        If *payload* cannot be encoded.
    BindError
        If the ephemeral endpoint cannot be opened.
    TransportError
        If the target port is invalid or transmission fails.

    Examples
    --------
    >>> await send_message("greeting", {"text": "hi"}, 5000)
    'Sent'
    """
    if not isinstance(kind, str) or not kind:
        raise ValidationError("Message kind must be a non-empty string")
    if isinstance(port, bool) or not isinstance(port, int) or not 0 < port <= MAX_PORT:
        msg = f"Failed to send to {host}:{port}: port must be an integer in 1-{MAX_PORT}"
        raise TransportError(msg)

    data = (codec or JsonCodec()).encode(Envelope.stamped(kind, payload))

    loop = asyncio.get_running_loop()
    try:
        transport, protocol = await loop.create_datagram_endpoint(
            _SendProtocol,
            local_addr=(host, 0),
        )
    except OSError as exc:
        msg = f"Failed to create socket on {host}: {exc}"
        raise BindError(msg, host=host, port=0) from exc

    try:
        try:
            transport.sendto(data, (host, port))
        except (OSError, ValueError) as exc:
            msg = f"Failed to send to {host}:{port}: {exc}"
            raise TransportError(msg) from exc
        if protocol.error is not None:
            msg = f"Failed to send to {host}:{port}: {protocol.error}"
            raise TransportError(msg) from protocol.error
    finally:
        transport.close()

    logger.debug("Sent %r envelope (%d bytes) to %s:%d", kind, len(data), host, port)
    return "Sent"


async def send_number(
    value: int,
    port: int,
    *,
    host: str = DEFAULT_HOST,
    codec: Codec | None = None,
) -> str:
    """Send a ``"number"`` envelope carrying ``{"value": value}``.

    Raises
    ------
    ValidationError
        If *value* is not an integer in ``[0, 1_000_000]``. Nothing is sent.
    """
    number = NumberPayload(value)
    return await send_message(NUMBER_KIND, number.to_payload(), port, host=host, codec=codec)
