"""udprelay: a small controllable datagram relay.

Open one receive endpoint on demand with ``ListenerController``, stream
decoded ``Envelope`` objects to a ``Sink``, and send envelopes to a peer
with ``send_message`` / ``send_number``.
"""

from udprelay.codec import Codec, JsonCodec, MsgpackCodec, build_codec, decode, encode
from udprelay.config import (
    CodecConfig,
    ListenerConfig,
    LoggingConfig,
    RelayConfig,
    SenderConfig,
    discover_config,
    load_config,
)
from udprelay.controller import ListenerController, ListenerPhase, ListenerState
from udprelay.envelope import NUMBER_MAX, NUMBER_MIN, Envelope, JsonValue, NumberPayload
from udprelay.errors import (
    BindError,
    DecodeError,
    EncodeError,
    RelayError,
    TransportError,
    ValidationError,
)
from udprelay.listener import DatagramInbox, ListenerLoop, LoopStats
from udprelay.log import configure_logging
from udprelay.sender import send_message, send_number
from udprelay.sink import CallbackSink, LoggingSink, QueueSink, Sink

__all__ = [
    # envelope
    "Envelope",
    "JsonValue",
    "NumberPayload",
    "NUMBER_MIN",
    "NUMBER_MAX",
    # codec
    "Codec",
    "JsonCodec",
    "MsgpackCodec",
    "build_codec",
    "encode",
    "decode",
    # lifecycle
    "ListenerController",
    "ListenerPhase",
    "ListenerState",
    "ListenerLoop",
    "DatagramInbox",
    "LoopStats",
    # sending
    "send_message",
    "send_number",
    # sinks
    "Sink",
    "CallbackSink",
    "QueueSink",
    "LoggingSink",
    # config
    "RelayConfig",
    "ListenerConfig",
    "SenderConfig",
    "CodecConfig",
    "LoggingConfig",
    "discover_config",
    "load_config",
    "configure_logging",
    # errors
    "RelayError",
    "ValidationError",
    "TransportError",
    "BindError",
    "EncodeError",
    "DecodeError",
]
