"""Exception hierarchy for the relay.

Every error raised to a caller derives from ``RelayError`` and carries a
message naming what failed and why; the underlying exception, if any, is
chained as ``__cause__``.
"""

from __future__ import annotations


class RelayError(Exception):
    """Base class for all relay errors."""


class ValidationError(RelayError, ValueError):
    """An argument was rejected before any network action was taken."""


class TransportError(RelayError):
    """A datagram could not be transmitted."""


class BindError(TransportError):
    """A local endpoint could not be bound.

    Raised by ``ListenerController.start`` and by the sender when its
    ephemeral endpoint cannot be opened.
    """

    def __init__(self, message: str, *, host: str, port: int) -> None:
        super().__init__(message)
        self.host = host
        self.port = port


class EncodeError(RelayError):
    """An envelope payload cannot be represented in the wire format."""


class DecodeError(RelayError):
    """Inbound bytes are not a well-formed envelope."""
