"""
Tests for envelopes and wire framing
"""
import asyncio
import struct

import pytest

from sifisd import PROTOCOL_VERSION
from sifisd.contract import schema_fingerprint
from sifisd.errors import ConnectionClosed, ErrorKind, InvalidState, ProtocolError
from sifisd.hazards import Hazard
from sifisd.rpc.envelope import CallEnvelope, ResponseEnvelope
from sifisd.rpc.framing import (
    FRAME_MAGIC,
    HEADER_FORMAT,
    HEADER_SIZE,
    MAX_BODY_SIZE,
    FrameType,
    decode_frame,
    encode_frame,
    read_frame,
)


def raw_frame(body=b"{}", magic=FRAME_MAGIC, version=PROTOCOL_VERSION,
              frame_type=FrameType.CALL, schema=None, body_len=None):
    """Build a frame with arbitrary header fields"""
    header = struct.pack(
        HEADER_FORMAT,
        magic,
        version,
        frame_type,
        schema if schema is not None else schema_fingerprint(),
        len(body) if body_len is None else body_len,
    )
    return header + body


class TestEnvelopes:
    """Tests for envelope encoding"""

    def test_call_round_trip(self):
        call = CallEnvelope("sink 1", "set_flow", [42], call_id=7)
        frame = encode_frame(FrameType.CALL, call.to_dict())
        decoded = CallEnvelope.from_dict(decode_frame(frame, FrameType.CALL))
        assert decoded == call

    def test_directory_call_round_trip(self):
        call = CallEnvelope(None, "find_devices", ["lamp"], call_id=1)
        decoded = CallEnvelope.from_dict(decode_frame(encode_frame(FrameType.CALL, call.to_dict())))
        assert decoded.device_id is None
        assert decoded == call

    def test_success_round_trip(self):
        response = ResponseEnvelope.success(
            3, True, {Hazard.FIRE_HAZARD, Hazard.LOG_ENERGY_CONSUMPTION}
        )
        frame = encode_frame(FrameType.RESPONSE, response.to_dict())
        decoded = ResponseEnvelope.from_dict(decode_frame(frame, FrameType.RESPONSE))
        assert decoded == response

    def test_failure_round_trip(self):
        response = ResponseEnvelope.failure(4, InvalidState("door is already open"))
        decoded = ResponseEnvelope.from_dict(
            decode_frame(encode_frame(FrameType.RESPONSE, response.to_dict()))
        )
        assert decoded == response
        assert decoded.error_kind is ErrorKind.INVALID_STATE

    def test_success_without_hazards_keeps_empty_set(self):
        data = ResponseEnvelope.success(1, 5, ()).to_dict()
        assert data["hazards"] == []

    def test_encoding_is_deterministic(self):
        response = ResponseEnvelope.success(
            1, 10, [Hazard.WATER_FLOODING, Hazard.WATER_CONSUMPTION]
        )
        first = encode_frame(FrameType.RESPONSE, response.to_dict())
        second = encode_frame(FrameType.RESPONSE, ResponseEnvelope.success(
            1, 10, [Hazard.WATER_CONSUMPTION, Hazard.WATER_FLOODING]
        ).to_dict())
        assert first == second

    @pytest.mark.parametrize("data", [
        [],
        {"call_id": 1, "device_id": "lamp1", "operation": "turn_on"},
        {"call_id": True, "device_id": "lamp1", "operation": "turn_on", "args": []},
        {"call_id": 1, "device_id": 5, "operation": "turn_on", "args": []},
        {"call_id": 1, "device_id": "lamp1", "operation": "turn_on", "args": {}},
        {"call_id": 1, "device_id": "lamp1", "operation": "turn_on", "args": [], "x": 1},
    ])
    def test_malformed_call(self, data):
        with pytest.raises(ProtocolError):
            CallEnvelope.from_dict(data)

    @pytest.mark.parametrize("data", [
        {"call_id": 1, "ok": True, "value": 1, "hazards": ["Lightning"]},
        {"call_id": 1, "ok": True, "value": 1},
        {"call_id": 1, "ok": False, "error": {"kind": "bogus", "detail": ""}},
        {"call_id": 1, "ok": False, "error": {"kind": "invalid_state"}},
        {"call_id": 1, "ok": "yes", "value": 1, "hazards": []},
    ])
    def test_malformed_response(self, data):
        with pytest.raises(ProtocolError):
            ResponseEnvelope.from_dict(data)


class TestFrames:
    """Tests for frame validation"""

    def test_header_size(self):
        assert HEADER_SIZE == 18

    def test_bad_magic(self):
        with pytest.raises(ProtocolError, match="magic"):
            decode_frame(raw_frame(magic=b"HTTP"))

    def test_bad_version(self):
        with pytest.raises(ProtocolError, match="version"):
            decode_frame(raw_frame(version=PROTOCOL_VERSION + 1))

    def test_schema_mismatch(self):
        with pytest.raises(ProtocolError, match="Schema mismatch"):
            decode_frame(raw_frame(schema=b"\x00" * 8))

    def test_unknown_frame_type(self):
        with pytest.raises(ProtocolError, match="frame type"):
            decode_frame(raw_frame(frame_type=0x7F))

    def test_unexpected_frame_type(self):
        with pytest.raises(ProtocolError, match="Unexpected"):
            decode_frame(raw_frame(frame_type=FrameType.RESPONSE), FrameType.CALL)

    def test_truncated(self):
        with pytest.raises(ProtocolError, match="truncated"):
            decode_frame(raw_frame(b'{"a": 1}')[:-2])

    def test_trailing_bytes(self):
        with pytest.raises(ProtocolError, match="Trailing"):
            decode_frame(raw_frame() + b"x")

    def test_invalid_json(self):
        with pytest.raises(ProtocolError, match="Malformed"):
            decode_frame(raw_frame(b"{not json"))

    def test_oversize_header(self):
        with pytest.raises(ProtocolError, match="too large"):
            decode_frame(raw_frame(body_len=MAX_BODY_SIZE + 1))

    def test_oversize_payload(self):
        with pytest.raises(ProtocolError, match="too large"):
            encode_frame(FrameType.CALL, "x" * MAX_BODY_SIZE)


class TestReadFrame:
    """Tests for reading frames from a stream"""

    @staticmethod
    def reader_with(data: bytes) -> asyncio.StreamReader:
        reader = asyncio.StreamReader()
        reader.feed_data(data)
        reader.feed_eof()
        return reader

    @pytest.mark.asyncio
    async def test_reads_consecutive_frames(self):
        data = encode_frame(FrameType.CALL, {"n": 1}) + encode_frame(FrameType.CALL, {"n": 2})
        reader = self.reader_with(data)
        assert await read_frame(reader) == {"n": 1}
        assert await read_frame(reader) == {"n": 2}
        with pytest.raises(ConnectionClosed):
            await read_frame(reader)

    @pytest.mark.asyncio
    async def test_eof_before_frame(self):
        with pytest.raises(ConnectionClosed):
            await read_frame(self.reader_with(b""))

    @pytest.mark.asyncio
    async def test_eof_in_header(self):
        with pytest.raises(ProtocolError, match="header"):
            await read_frame(self.reader_with(FRAME_MAGIC))

    @pytest.mark.asyncio
    async def test_eof_in_body(self):
        frame = encode_frame(FrameType.CALL, {"operation": "turn_on"})
        with pytest.raises(ProtocolError, match="truncated"):
            await read_frame(self.reader_with(frame[:-3]))
