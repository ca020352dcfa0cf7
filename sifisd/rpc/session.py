"""
SIFIS-Home Client Session

One connection from a client to the runtime.

Calls may be pipelined: send() only enqueues the frame and returns a
future. A background reader resolves those futures strictly in send
order, checking that every response echoes the id of the oldest
outstanding call.

Failure handling:
- Peer hangs up     : pending calls fail with ConnectionClosed
- Corrupted stream  : pending calls fail with ProtocolError and the
                      session is closed, there is no resynchronisation
"""

import asyncio
import logging
from collections import deque
from pathlib import Path
from typing import Deque, Optional, Tuple, Union

from ..errors import ConnectionClosed, ErrorKind, ProtocolError, SifisError, TransportUnavailable
from .envelope import CallEnvelope, ResponseEnvelope
from .framing import FrameType, encode_frame, read_frame


logger = logging.getLogger("sifisd.rpc")


class Session:
    """
    Client side of one runtime connection.

    Usage:
        session = await connect("/var/run/sifis.sock")

        pending = session.send(CallEnvelope("lamp1", "turn_on"))
        response = await session.recv()

        await session.close()
    """

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        path: Optional[Path] = None,
    ):
        self._reader = reader
        self._writer = writer
        self.path = path

        self._next_call_id = 1
        # Calls written to the wire and not answered yet
        self._pending: Deque[Tuple[int, asyncio.Future]] = deque()
        # Responses not yet handed out by recv()
        self._unclaimed: Deque[asyncio.Future] = deque()
        self._error: Optional[SifisError] = None

        self._reader_task = asyncio.ensure_future(self._read_loop())

    @property
    def is_open(self) -> bool:
        return self._error is None

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def send(self, call: CallEnvelope) -> asyncio.Future:
        """
        Enqueue a call without waiting for it to be written.

        Assigns the call id.

        Returns:
            Future resolved with the ResponseEnvelope

        Raises:
            ConnectionClosed, ProtocolError: If the session already failed
        """
        if self._error is not None:
            raise type(self._error)(self._error.detail)

        call.call_id = self._next_call_id
        frame = encode_frame(FrameType.CALL, call.to_dict())
        self._next_call_id += 1

        future = asyncio.get_running_loop().create_future()
        self._pending.append((call.call_id, future))
        self._unclaimed.append(future)
        self._writer.write(frame)
        return future

    async def recv(self) -> ResponseEnvelope:
        """
        Wait for the next response, in the order calls were sent.

        Raises:
            ConnectionClosed: If the peer closed the connection
            ProtocolError: If the stream was corrupted
        """
        if not self._unclaimed:
            if self._error is not None:
                raise type(self._error)(self._error.detail)
            raise RuntimeError("recv() called with no call outstanding")
        future = self._unclaimed.popleft()
        return await future

    async def call(self, call: CallEnvelope) -> ResponseEnvelope:
        """Send a call and wait for its own response."""
        future = self.send(call)
        self._unclaimed.remove(future)
        await self._drain()
        return await future

    async def close(self) -> None:
        """Close the connection. Outstanding calls fail with ConnectionClosed."""
        if self._error is None:
            self._fail(ConnectionClosed("session closed"))
        self._reader_task.cancel()
        try:
            await self._reader_task
        except asyncio.CancelledError:
            pass
        self._writer.close()
        try:
            await self._writer.wait_closed()
        except OSError:
            pass

    async def __aenter__(self) -> 'Session':
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def _drain(self) -> None:
        try:
            await self._writer.drain()
        except (ConnectionError, OSError) as e:
            self._fail(ConnectionClosed(str(e)))
            raise ConnectionClosed(str(e)) from None

    async def _read_loop(self) -> None:
        """Resolve pending calls as responses arrive."""
        try:
            while True:
                data = await read_frame(self._reader, FrameType.RESPONSE)
                response = ResponseEnvelope.from_dict(data)

                if not response.ok and response.error_kind is ErrorKind.PROTOCOL_ERROR:
                    raise ProtocolError(f"rejected by runtime: {response.detail}")
                if not self._pending:
                    raise ProtocolError(f"unsolicited response {response.call_id}")

                call_id, future = self._pending.popleft()
                if response.call_id != call_id:
                    raise ProtocolError(
                        f"response {response.call_id} does not match call {call_id}"
                    )
                if not future.done():
                    future.set_result(response)
        except SifisError as e:
            if isinstance(e, ProtocolError):
                logger.warning(f"Session to {self.path}: {e}")
                self._writer.close()
            self._fail(e)
        except (ConnectionError, OSError) as e:
            self._fail(ConnectionClosed(str(e)))

    def _fail(self, error: SifisError) -> None:
        if self._error is None:
            self._error = error
        while self._pending:
            _, future = self._pending.popleft()
            if not future.done():
                future.set_exception(type(error)(error.detail))


async def connect(path: Union[str, Path]) -> Session:
    """
    Open a session to the runtime listening on a Unix socket.

    Raises:
        TransportUnavailable: If the socket is missing, not accessible,
            not a socket, or nobody is listening
    """
    path = Path(path)
    try:
        reader, writer = await asyncio.open_unix_connection(str(path))
    except FileNotFoundError:
        raise TransportUnavailable(f"{path}: no such socket") from None
    except PermissionError:
        raise TransportUnavailable(f"{path}: permission denied") from None
    except OSError as e:
        raise TransportUnavailable(f"{path}: {e.strerror or e}") from None

    logger.debug(f"Connected to {path}")
    return Session(reader, writer, path)
