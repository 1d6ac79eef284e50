"""Envelope wire codecs.

Provides the ``Codec`` protocol and two implementations sharing one field
layout::

    {"type": <str>, "data": <any>, "timestamp": <int epoch ms>}

``JsonCodec`` is the canonical UTF-8 JSON encoding. ``MsgpackCodec`` packs
the same mapping with MessagePack and needs the optional ``msgpack`` package.
"""

from __future__ import annotations

import importlib
import json
import logging
import math
from typing import Any, Literal, Protocol, runtime_checkable

from udprelay.envelope import Envelope
from udprelay.errors import DecodeError, EncodeError

logger = logging.getLogger("udprelay.codec")

type CodecKind = Literal["json", "msgpack"]

_REQUIRED_FIELDS = ("type", "data", "timestamp")
_TIMESTAMP_LIMIT = 2**64


@runtime_checkable
class Codec(Protocol):
    def encode(self, envelope: Envelope) -> bytes: ...
    def decode(self, data: bytes) -> Envelope: ...


def _lazy_import(module_name: str, extra: str) -> Any:
    try:
        return importlib.import_module(module_name)
    except ModuleNotFoundError:
        msg = f"'{module_name}' is required. Install with: pip install udprelay[{extra}]"
        raise ModuleNotFoundError(msg) from None


def to_wire(envelope: Envelope) -> dict[str, Any]:
    """Map an envelope onto its wire field names."""
    return {
        "type": envelope.kind,
        "data": envelope.payload,
        "timestamp": envelope.timestamp,
    }


def from_wire(obj: object) -> Envelope:
    """Build an envelope from a decoded wire mapping.

    Raises
    ------
    DecodeError
        If *obj* is not a mapping, lacks a required field, or a field has
        the wrong type. Unknown extra fields are ignored.
    """
    if not isinstance(obj, dict):
        msg = f"Envelope must be an object, got {type(obj).__name__}"
        raise DecodeError(msg)

    missing = [name for name in _REQUIRED_FIELDS if name not in obj]
    if missing:
        msg = f"Envelope is missing field(s): {', '.join(missing)}"
        raise DecodeError(msg)

    kind = obj["type"]
    if not isinstance(kind, str):
        msg = f"Envelope 'type' must be a string, got {type(kind).__name__}"
        raise DecodeError(msg)

    timestamp = obj["timestamp"]
    if isinstance(timestamp, bool) or not isinstance(timestamp, int):
        msg = f"Envelope 'timestamp' must be an integer, got {type(timestamp).__name__}"
        raise DecodeError(msg)
    if not 0 <= timestamp < _TIMESTAMP_LIMIT:
        msg = f"Envelope 'timestamp' out of range: {timestamp}"
        raise DecodeError(msg)

    return Envelope(kind=kind, payload=obj["data"], timestamp=timestamp)


def _reject_constant(name: str) -> Any:
    msg = f"{name} is not a valid JSON value"
    raise ValueError(msg)


def _parse_float(text: str) -> float:
    value = float(text)
    if not math.isfinite(value):
        msg = f"number {text} is out of range"
        raise ValueError(msg)
    return value


def _unique_keys(pairs: list[tuple[Any, Any]]) -> dict[Any, Any]:
    obj: dict[Any, Any] = {}
    for key, value in pairs:
        if key in obj:
            msg = f"duplicate key {key!r}"
            raise ValueError(msg)
        obj[key] = value
    return obj


class JsonCodec:
    """Compact UTF-8 JSON codec, the canonical wire format.

    Examples
    --------
    >>> codec = JsonCodec()
    >>> codec.encode(Envelope("number", {"value": 1}, 5))
    b'{"type":"number","data":{"value":1},"timestamp":5}'
    """

    def encode(self, envelope: Envelope) -> bytes:
        try:
            text = json.dumps(
                to_wire(envelope),
                allow_nan=False,
                ensure_ascii=False,
                separators=(",", ":"),
            )
        except (TypeError, ValueError, RecursionError) as exc:
            msg = f"Failed to serialize {envelope.kind!r} envelope: {exc}"
            raise EncodeError(msg) from exc
        return text.encode("utf-8")

    def decode(self, data: bytes) -> Envelope:
        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError as exc:
            msg = f"Datagram is not valid UTF-8: {exc}"
            raise DecodeError(msg) from exc
        try:
            obj: object = json.loads(
                text,
                parse_constant=_reject_constant,
                parse_float=_parse_float,
                object_pairs_hook=_unique_keys,
            )
        except (ValueError, RecursionError) as exc:
            msg = f"Datagram is not well-formed JSON: {exc}"
            raise DecodeError(msg) from exc
        return from_wire(obj)


class MsgpackCodec:
    """MessagePack codec using the same field layout as ``JsonCodec``.

    Requires the optional ``msgpack`` package, imported when the codec is
    created.

    Raises
    ------
    ModuleNotFoundError
        If ``msgpack`` is not installed.
    """

    def __init__(self) -> None:
        self._msgpack = _lazy_import("msgpack", "msgpack")

    def encode(self, envelope: Envelope) -> bytes:
        try:
            return self._msgpack.packb(to_wire(envelope), use_bin_type=True)  # type: ignore[no-any-return]
        except (TypeError, ValueError, OverflowError) as exc:
            msg = f"Failed to serialize {envelope.kind!r} envelope: {exc}"
            raise EncodeError(msg) from exc

    def decode(self, data: bytes) -> Envelope:
        msgpack = self._msgpack
        try:
            obj: object = msgpack.unpackb(data, raw=False, object_pairs_hook=_unique_keys)
        except (TypeError, ValueError, msgpack.UnpackException) as exc:
            msg = f"Datagram is not well-formed MessagePack: {exc}"
            raise DecodeError(msg) from exc
        return from_wire(obj)


_default_codec = JsonCodec()


def encode(envelope: Envelope) -> bytes:
    """Encode *envelope* with the canonical JSON codec."""
    return _default_codec.encode(envelope)


def decode(data: bytes) -> Envelope:
    """Decode *data* with the canonical JSON codec."""
    return _default_codec.decode(data)


def build_codec(kind: CodecKind = "json") -> Codec:
    """Return a codec instance for a configured codec name.

    Raises
    ------
    ValueError
        If *kind* is not a known codec name.
    """
    match kind:
        case "json":
            return JsonCodec()
        case "msgpack":
            return MsgpackCodec()
        case _:
            msg = f"Unknown codec: {kind!r}"
            raise ValueError(msg)
