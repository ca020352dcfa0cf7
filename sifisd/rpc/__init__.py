"""
SIFIS-Home RPC Module

Framing, sessions and the Unix socket server connecting applications
to the runtime.

Protocol: length-prefixed canonical JSON frames over a Unix socket.
"""

from .envelope import CallEnvelope, ResponseEnvelope
from .framing import FrameType, decode_frame, encode_frame, read_frame
from .server import RPCServer
from .session import Session, connect

__all__ = [
    'CallEnvelope',
    'ResponseEnvelope',
    'FrameType',
    'decode_frame',
    'encode_frame',
    'read_frame',
    'RPCServer',
    'Session',
    'connect',
]
