from __future__ import annotations

import json
import math
import sys

import msgpack
import pytest

from udprelay.codec import (
    Codec,
    JsonCodec,
    MsgpackCodec,
    build_codec,
    decode,
    encode,
    from_wire,
    to_wire,
)
from udprelay.envelope import Envelope
from udprelay.errors import DecodeError, EncodeError


# ---------------------------------------------------------------------------
# JSON wire format
# ---------------------------------------------------------------------------


class TestJsonEncode:
    def test_wire_layout(self) -> None:
        data = encode(Envelope("number", {"value": 42}, 1700000000123))
        assert data == b'{"type":"number","data":{"value":42},"timestamp":1700000000123}'

    def test_output_is_utf8(self) -> None:
        data = encode(Envelope("greeting", {"text": "olá ☃"}, 1))
        assert json.loads(data.decode("utf-8"))["data"] == {"text": "olá ☃"}

    def test_unsupported_type_raises_encode_error(self) -> None:
        with pytest.raises(EncodeError, match="'tags' envelope"):
            encode(Envelope("tags", {"tags": {"a", "b"}}, 1))  # type: ignore[arg-type]

    def test_nan_raises_encode_error(self) -> None:
        with pytest.raises(EncodeError):
            encode(Envelope("reading", {"value": math.nan}, 1))

    def test_circular_payload_raises_encode_error(self) -> None:
        payload: dict[str, object] = {}
        payload["self"] = payload
        with pytest.raises(EncodeError):
            encode(Envelope("loop", payload, 1))  # type: ignore[arg-type]

    def test_encode_error_chains_cause(self) -> None:
        with pytest.raises(EncodeError) as info:
            encode(Envelope("bytes", b"raw", 1))  # type: ignore[arg-type]
        assert isinstance(info.value.__cause__, TypeError)


class TestJsonDecode:
    def test_valid_datagram(self) -> None:
        envelope = decode(b'{"type":"number","data":{"value":7},"timestamp":99}')
        assert envelope == Envelope("number", {"value": 7}, 99)

    def test_extra_fields_are_ignored(self) -> None:
        raw = b'{"type":"x","data":1,"timestamp":2,"origin":"test"}'
        assert decode(raw) == Envelope("x", 1, 2)

    def test_null_data_is_a_valid_payload(self) -> None:
        assert decode(b'{"type":"ping","data":null,"timestamp":5}').payload is None

    @pytest.mark.parametrize("field", ["type", "data", "timestamp"])
    def test_missing_field(self, field: str) -> None:
        wire = {"type": "x", "data": {}, "timestamp": 1}
        del wire[field]
        with pytest.raises(DecodeError, match=field):
            decode(json.dumps(wire).encode())

    def test_invalid_utf8(self) -> None:
        with pytest.raises(DecodeError, match="UTF-8"):
            decode(b"\xff\xfe{}")

    def test_not_json(self) -> None:
        with pytest.raises(DecodeError, match="JSON"):
            decode(b"hello there")

    def test_empty_datagram(self) -> None:
        with pytest.raises(DecodeError):
            decode(b"")

    def test_top_level_must_be_object(self) -> None:
        with pytest.raises(DecodeError, match="object"):
            decode(b'[{"type":"x","data":1,"timestamp":1}]')

    def test_type_must_be_string(self) -> None:
        with pytest.raises(DecodeError, match="'type'"):
            decode(b'{"type":5,"data":1,"timestamp":1}')

    @pytest.mark.parametrize("timestamp", ["1.5", "true", "-1", '"1"', str(2**64)])
    def test_bad_timestamp(self, timestamp: str) -> None:
        raw = f'{{"type":"x","data":1,"timestamp":{timestamp}}}'.encode()
        with pytest.raises(DecodeError, match="'timestamp'"):
            decode(raw)

    @pytest.mark.parametrize("token", ["NaN", "Infinity", "-Infinity"])
    def test_non_json_constants_are_rejected(self, token: str) -> None:
        raw = f'{{"type":"x","data":{token},"timestamp":1}}'.encode()
        with pytest.raises(DecodeError, match="JSON"):
            decode(raw)

    @pytest.mark.parametrize("number", ["1e999", "-1e999"])
    def test_overflowing_float_is_rejected(self, number: str) -> None:
        raw = f'{{"type":"x","data":{{"value":{number}}},"timestamp":1}}'.encode()
        with pytest.raises(DecodeError, match="out of range"):
            decode(raw)

    def test_large_finite_float_is_accepted(self) -> None:
        assert decode(b'{"type":"x","data":1e308,"timestamp":1}').payload == 1e308

    def test_duplicate_field_is_rejected(self) -> None:
        with pytest.raises(DecodeError, match="duplicate key 'type'"):
            decode(b'{"type":"a","type":"b","data":1,"timestamp":1}')

    def test_duplicate_payload_key_is_rejected(self) -> None:
        with pytest.raises(DecodeError, match="duplicate"):
            decode(b'{"type":"a","data":{"v":1,"v":2},"timestamp":1}')

    def test_decoded_envelope_can_be_reencoded(self) -> None:
        envelope = decode(b'{"type":"x","data":{"v":[1.5,-2e10]},"timestamp":3}')
        assert decode(encode(envelope)) == envelope


class TestRoundTrip:
    @pytest.mark.parametrize(
        "envelope",
        [
            Envelope("number", {"value": 1_000_000}, 1700000000000),
            Envelope("chat", {"from": "ana", "text": "hi", "tags": ["a", "b"]}, 0),
            Envelope("nested", {"a": {"b": [1, 2.5, None, True]}}, 2**63),
            Envelope("scalar", "just a string", 12),
        ],
    )
    def test_decode_reproduces_envelope(self, envelope: Envelope) -> None:
        assert decode(encode(envelope)) == envelope


# ---------------------------------------------------------------------------
# Wire mapping helpers
# ---------------------------------------------------------------------------


def test_to_wire_uses_wire_names() -> None:
    assert to_wire(Envelope("k", [1], 3)) == {"type": "k", "data": [1], "timestamp": 3}


def test_from_wire_rejects_non_mapping() -> None:
    with pytest.raises(DecodeError):
        from_wire("not a mapping")


# ---------------------------------------------------------------------------
# MessagePack codec
# ---------------------------------------------------------------------------


class TestMsgpackCodec:
    def test_round_trip(self) -> None:
        codec = MsgpackCodec()
        envelope = Envelope("number", {"value": 42}, 1700000000000)
        assert codec.decode(codec.encode(envelope)) == envelope

    def test_uses_same_field_layout(self) -> None:
        data = MsgpackCodec().encode(Envelope("k", {"v": 1}, 9))
        assert msgpack.unpackb(data, raw=False) == {"type": "k", "data": {"v": 1}, "timestamp": 9}

    @pytest.mark.parametrize("raw", [b"\xc1", b"\x92\x01", b""])
    def test_garbage_raises_decode_error(self, raw: bytes) -> None:
        with pytest.raises(DecodeError):
            MsgpackCodec().decode(raw)

    def test_non_map_raises_decode_error(self) -> None:
        with pytest.raises(DecodeError, match="object"):
            MsgpackCodec().decode(msgpack.packb([1, 2, 3]))

    def test_unsupported_type_raises_encode_error(self) -> None:
        with pytest.raises(EncodeError):
            MsgpackCodec().encode(Envelope("tags", {"tags": {1, 2}}, 1))  # type: ignore[arg-type]

    def test_json_codec_rejects_msgpack_bytes(self) -> None:
        data = MsgpackCodec().encode(Envelope("k", 1, 1))
        with pytest.raises(DecodeError):
            JsonCodec().decode(data)

    def test_duplicate_key_raises_decode_error(self) -> None:
        # key "type" packed twice: fixmap of 4 entries built by hand
        raw = b"\x84" + b"".join(
            msgpack.packb(item)
            for item in ("type", "a", "type", "b", "data", 1, "timestamp", 1)
        )
        with pytest.raises(DecodeError, match="duplicate"):
            MsgpackCodec().decode(raw)

    def test_missing_msgpack_fails_at_construction(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setitem(sys.modules, "msgpack", None)
        with pytest.raises(ModuleNotFoundError, match=r"udprelay\[msgpack\]"):
            build_codec("msgpack")


# ---------------------------------------------------------------------------
# build_codec
# ---------------------------------------------------------------------------


def test_build_codec_json() -> None:
    codec = build_codec("json")
    assert isinstance(codec, JsonCodec)
    assert isinstance(codec, Codec)


def test_build_codec_msgpack() -> None:
    assert isinstance(build_codec("msgpack"), MsgpackCodec)


def test_build_codec_unknown() -> None:
    with pytest.raises(ValueError, match="Unknown codec"):
        build_codec("xml")  # type: ignore[arg-type]
