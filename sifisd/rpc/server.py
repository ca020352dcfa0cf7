"""
SIFIS-Home RPC Server

Unix socket server exposing the runtime to client applications.

Protocol:
- Length-prefixed frames (see framing.py) over a Unix stream socket
- Many calls per connection, answered strictly in order
- Sessions are served concurrently on one asyncio event loop

Security:
- Socket only accessible to owner (0600)
- No network exposure
- Peer pid logged for every session

Robustness:
- A corrupted stream ends only its own session
- Nothing a client sends can stop the server
"""

import asyncio
import itertools
import logging
import os
import stat
from pathlib import Path
from typing import TYPE_CHECKING, Optional, Set

from .. import DEFAULT_SOCKET_PATH
from ..errors import ConnectionClosed, InternalError, ProtocolError
from .envelope import CallEnvelope, ResponseEnvelope
from .framing import FrameType, encode_frame, read_frame
from .peer import peer_pid

if TYPE_CHECKING:
    from ..runtime import RuntimeService


logger = logging.getLogger("sifisd.rpc")


class RPCServer:
    """
    Runtime server over a Unix socket.

    Usage:
        server = RPCServer(runtime, Path("/var/run/sifis.sock"))

        await server.start()
        await server.serve_forever()

        # From a signal handler or another task
        await server.stop()
    """

    def __init__(
        self,
        runtime: "RuntimeService",
        socket_path: Optional[Path] = None,
    ):
        """
        Initialize RPC server.

        Args:
            runtime: Runtime service executing the calls
            socket_path: Path for Unix socket
        """
        self._runtime = runtime
        self._socket_path = Path(socket_path or DEFAULT_SOCKET_PATH)
        self._server: Optional[asyncio.AbstractServer] = None
        self._sessions: Set[asyncio.Task] = set()
        self._session_ids = itertools.count(1)
        self._stopped: Optional[asyncio.Event] = None
        self._running = False

    @property
    def socket_path(self) -> Path:
        return self._socket_path

    @property
    def is_running(self) -> bool:
        """Check if server is running."""
        return self._running

    @property
    def session_count(self) -> int:
        """Number of connected sessions."""
        return len(self._sessions)

    async def start(self) -> None:
        """Start listening on the socket."""
        if self._running:
            return

        # Ensure directory exists
        self._socket_path.parent.mkdir(parents=True, exist_ok=True)

        # Remove stale socket
        if self._socket_path.exists() or self._socket_path.is_symlink():
            self._socket_path.unlink()

        self._server = await asyncio.start_unix_server(
            self._handle_session,
            path=str(self._socket_path),
        )

        # Set permissions (owner only)
        os.chmod(self._socket_path, stat.S_IRUSR | stat.S_IWUSR)

        self._stopped = asyncio.Event()
        self._running = True
        logger.info(f"Listening on {self._socket_path}")

    async def serve_forever(self) -> None:
        """Wait until stop() is called."""
        if not self._running:
            await self.start()
        await self._stopped.wait()

    async def stop(self) -> None:
        """Stop accepting clients, end every session and remove the socket."""
        if not self._running:
            return
        self._running = False

        self._server.close()

        for task in list(self._sessions):
            task.cancel()
        if self._sessions:
            await asyncio.gather(*self._sessions, return_exceptions=True)

        await self._server.wait_closed()
        self._server = None

        # Clean up socket file
        if self._socket_path.exists():
            try:
                self._socket_path.unlink()
            except OSError as e:
                logger.warning(f"Cannot remove {self._socket_path}: {e}")

        self._stopped.set()
        logger.info("RPC server stopped")

    async def _handle_session(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
    ) -> None:
        """Serve one client connection until it ends."""
        task = asyncio.current_task()
        self._sessions.add(task)
        session_id = next(self._session_ids)
        pid = peer_pid(writer.get_extra_info("socket"))
        logger.info(f"New client session {session_id} (pid {pid})")

        try:
            await self._serve_calls(session_id, reader, writer)
        except asyncio.CancelledError:
            logger.debug(f"Session {session_id} cancelled")
        except Exception as e:
            logger.error(f"Session {session_id} failed: {e}")
        finally:
            self._sessions.discard(task)
            writer.close()
            try:
                await writer.wait_closed()
            except (ConnectionError, OSError):
                pass
            logger.info(f"Session {session_id} closed")

    async def _serve_calls(
        self,
        session_id: int,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
    ) -> None:
        while True:
            try:
                data = await read_frame(reader, FrameType.CALL)
                call = CallEnvelope.from_dict(data)
            except ConnectionClosed:
                return
            except ProtocolError as e:
                logger.warning(f"Session {session_id}: {e}")
                await self._send(writer, ResponseEnvelope.failure(0, e))
                return

            logger.debug(
                f"Session {session_id}: call {call.call_id} "
                f"{call.operation}{tuple(call.args)} on {call.device_id}"
            )
            response = await self._runtime.execute(call)

            if not await self._send(writer, response):
                logger.debug(
                    f"Session {session_id}: peer gone, "
                    f"dropping response to call {call.call_id}"
                )
                return

    async def _send(self, writer: asyncio.StreamWriter, response: ResponseEnvelope) -> bool:
        """Write a response. Returns False if the peer is gone."""
        try:
            frame = encode_frame(FrameType.RESPONSE, response.to_dict())
        except (ProtocolError, TypeError, ValueError) as e:
            logger.error(f"Cannot encode response to call {response.call_id}: {e}")
            fallback = ResponseEnvelope.failure(response.call_id, InternalError(str(e)))
            frame = encode_frame(FrameType.RESPONSE, fallback.to_dict())

        try:
            writer.write(frame)
            await writer.drain()
        except (ConnectionError, OSError):
            return False
        return True
