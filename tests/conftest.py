"""
Pytest configuration and fixtures
"""
import asyncio
import shutil
import tempfile
import threading
from pathlib import Path

import pytest
import pytest_asyncio

from sifisd.client import SifisClient
from sifisd.rpc.server import RPCServer
from sifisd.runtime import RuntimeService, default_devices


@pytest.fixture
def socket_path():
    """Short socket path (Unix socket paths are limited to ~108 bytes)"""
    directory = tempfile.mkdtemp(prefix="sifis-")
    yield Path(directory) / "sifis.sock"
    shutil.rmtree(directory, ignore_errors=True)


@pytest.fixture
def runtime():
    """Runtime with the default mock devices"""
    return RuntimeService(default_devices())


@pytest_asyncio.fixture
async def server(runtime, socket_path):
    """Running RPC server"""
    server = RPCServer(runtime, socket_path)
    await server.start()
    yield server
    await server.stop()


@pytest_asyncio.fixture
async def client(server):
    """Client connected to the running server"""
    client = await SifisClient.connect(server.socket_path)
    yield client
    await client.close()


@pytest.fixture
def threaded_server(socket_path):
    """Server running on its own event loop thread, for synchronous callers"""
    loop = asyncio.new_event_loop()
    thread = threading.Thread(target=loop.run_forever, daemon=True)
    thread.start()

    runtime = RuntimeService(default_devices())
    server = RPCServer(runtime, socket_path)
    asyncio.run_coroutine_threadsafe(server.start(), loop).result(timeout=5)

    yield server

    asyncio.run_coroutine_threadsafe(server.stop(), loop).result(timeout=5)
    loop.call_soon_threadsafe(loop.stop)
    thread.join(timeout=5)
    loop.close()
