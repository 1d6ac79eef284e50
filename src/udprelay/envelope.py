"""Envelope data model.

An ``Envelope`` is the unit carried by one datagram: a ``kind`` tag, an
open JSON-like ``payload`` whose shape depends on the kind, and the
sender-side ``timestamp`` in milliseconds since the epoch.
"""

from __future__ import annotations

import time
from dataclasses import dataclass

from udprelay.errors import ValidationError

type JsonValue = (
    None | bool | int | float | str | list[JsonValue] | dict[str, JsonValue]
)

NUMBER_KIND = "number"
NUMBER_MIN = 0
NUMBER_MAX = 1_000_000


def now_millis() -> int:
    """Return the current wall-clock time in integer epoch milliseconds."""
    return time.time_ns() // 1_000_000


@dataclass(frozen=True)
class Envelope:
    """A decoded or outbound relay message.

    Parameters
    ----------
    kind : str
        Message tag, ``"type"`` on the wire.
    payload : JsonValue
        Arbitrary structured value, ``"data"`` on the wire. Not validated.
    timestamp : int
        Epoch milliseconds, stamped by the sender at encode time.

    Examples
    --------
    >>> Envelope("number", {"value": 42}, 1700000000000)
    Envelope(kind='number', payload={'value': 42}, timestamp=1700000000000)
    """

    kind: str
    payload: JsonValue
    timestamp: int

    @classmethod
    def stamped(cls, kind: str, payload: JsonValue) -> Envelope:
        """Build an envelope timestamped with the current time."""
        return cls(kind=kind, payload=payload, timestamp=now_millis())


@dataclass(frozen=True)
class NumberPayload:
    """Payload of a ``"number"`` envelope.

    Construction fails with ``ValidationError`` unless ``value`` is an
    integer in ``[NUMBER_MIN, NUMBER_MAX]``.

    Examples
    --------
    >>> NumberPayload(42).to_payload()
    {'value': 42}
    """

    value: int

    def __post_init__(self) -> None:
        if isinstance(self.value, bool) or not isinstance(self.value, int):
            msg = f"Number must be an integer, got {type(self.value).__name__}"
            raise ValidationError(msg)
        if not NUMBER_MIN <= self.value <= NUMBER_MAX:
            msg = f"Number must be between {NUMBER_MIN}-{NUMBER_MAX}, got {self.value}"
            raise ValidationError(msg)

    def to_payload(self) -> dict[str, JsonValue]:
        return {"value": self.value}
