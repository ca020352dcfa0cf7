"""
SIFIS-Home Wire Framing

Every envelope travels as one frame over the Unix stream socket.

Frame Structure:
    Header (18 bytes) + Body (variable)

Header Format (big-endian):
    magic       (4 bytes) - b"SIFS"
    version     (1 byte)  - Protocol version
    frame_type  (1 byte)  - CALL or RESPONSE
    schema      (8 bytes) - Contract fingerprint
    body_len    (4 bytes) - Body length

Body:
    Canonical JSON (sorted keys, no whitespace), so the same envelope
    always encodes to the same bytes.

Any deviation (bad magic, other version or schema, unexpected frame
type, oversize or truncated frame, invalid JSON) is a ProtocolError.
"""

import asyncio
import json
import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Optional

from .. import PROTOCOL_VERSION
from ..contract import schema_fingerprint
from ..errors import ConnectionClosed, ProtocolError


FRAME_MAGIC = b"SIFS"

HEADER_FORMAT = ">4sBB8sI"

# Header size in bytes
HEADER_SIZE = struct.calcsize(HEADER_FORMAT)

# Maximum body size (64KB)
MAX_BODY_SIZE = 65536


class FrameType(IntEnum):
    """Frame type identifiers."""
    CALL = 0x01
    RESPONSE = 0x02


@dataclass
class FrameHeader:
    version: int
    frame_type: FrameType
    schema: bytes
    body_len: int

    def to_bytes(self) -> bytes:
        return struct.pack(
            HEADER_FORMAT,
            FRAME_MAGIC,
            self.version,
            self.frame_type,
            self.schema,
            self.body_len,
        )


def encode_body(payload: Any) -> bytes:
    return json.dumps(payload, sort_keys=True, separators=(",", ":")).encode()


def encode_frame(frame_type: FrameType, payload: Any) -> bytes:
    """
    Serialize a payload into a complete frame.

    Raises:
        ProtocolError: If the body exceeds MAX_BODY_SIZE
    """
    body = encode_body(payload)
    if len(body) > MAX_BODY_SIZE:
        raise ProtocolError(f"Frame too large: {len(body)} > {MAX_BODY_SIZE}")
    header = FrameHeader(
        version=PROTOCOL_VERSION,
        frame_type=frame_type,
        schema=schema_fingerprint(),
        body_len=len(body),
    )
    return header.to_bytes() + body


def decode_header(data: bytes, expected_type: Optional[FrameType] = None) -> FrameHeader:
    """
    Parse and validate a frame header.

    Raises:
        ProtocolError: If the header is invalid
    """
    if len(data) < HEADER_SIZE:
        raise ProtocolError(f"Header too short: {len(data)} < {HEADER_SIZE}")

    magic, version, frame_type, schema, body_len = struct.unpack(
        HEADER_FORMAT, data[:HEADER_SIZE]
    )

    if magic != FRAME_MAGIC:
        raise ProtocolError(f"Bad frame magic: {magic!r}")
    if version != PROTOCOL_VERSION:
        raise ProtocolError(f"Unsupported protocol version: {version}")
    if schema != schema_fingerprint():
        raise ProtocolError(f"Schema mismatch: {schema.hex()} != {schema_fingerprint().hex()}")
    try:
        frame_type = FrameType(frame_type)
    except ValueError:
        raise ProtocolError(f"Unknown frame type: {frame_type:#04x}") from None
    if expected_type is not None and frame_type != expected_type:
        raise ProtocolError(f"Unexpected frame type: {frame_type.name}")
    if body_len > MAX_BODY_SIZE:
        raise ProtocolError(f"Frame too large: {body_len} > {MAX_BODY_SIZE}")

    return FrameHeader(version, frame_type, schema, body_len)


def decode_body(body: bytes) -> Any:
    try:
        return json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ProtocolError(f"Malformed frame body: {e}") from None


def decode_frame(data: bytes, expected_type: Optional[FrameType] = None) -> Any:
    """Decode one complete frame held in memory."""
    header = decode_header(data, expected_type)
    expected_size = HEADER_SIZE + header.body_len
    if len(data) < expected_size:
        raise ProtocolError(f"Frame truncated: {len(data)} < {expected_size}")
    if len(data) > expected_size:
        raise ProtocolError(f"Trailing bytes after frame: {len(data) - expected_size}")
    return decode_body(data[HEADER_SIZE:])


async def read_frame(
    reader: asyncio.StreamReader,
    expected_type: Optional[FrameType] = None,
) -> Any:
    """
    Read one frame from a stream.

    Raises:
        ConnectionClosed: If the stream ends on a frame boundary
        ProtocolError: If the frame is invalid or the stream ends mid-frame
    """
    try:
        header_bytes = await reader.readexactly(HEADER_SIZE)
    except asyncio.IncompleteReadError as e:
        if not e.partial:
            raise ConnectionClosed("peer closed the connection") from None
        raise ProtocolError(f"Truncated frame header: {len(e.partial)} bytes") from None
    except ConnectionResetError:
        raise ConnectionClosed("connection reset by peer") from None

    header = decode_header(header_bytes, expected_type)

    try:
        body = await reader.readexactly(header.body_len)
    except asyncio.IncompleteReadError as e:
        raise ProtocolError(
            f"Frame truncated: {len(e.partial)} < {header.body_len}"
        ) from None
    except ConnectionResetError:
        raise ProtocolError("connection reset mid-frame") from None

    return decode_body(body)
