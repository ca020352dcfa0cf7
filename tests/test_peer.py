"""
Tests for Unix socket peer credentials
"""
import os
import socket

import pytest

from sifisd.rpc.peer import peer_pid


@pytest.mark.skipif(not hasattr(socket, "SO_PEERCRED"), reason="SO_PEERCRED not available")
def test_socketpair_peer_is_self():
    left, right = socket.socketpair(socket.AF_UNIX, socket.SOCK_STREAM)
    try:
        assert peer_pid(left) == os.getpid()
        assert peer_pid(right) == os.getpid()
    finally:
        left.close()
        right.close()


def test_no_socket():
    assert peer_pid(None) == -1


def test_closed_socket():
    left, right = socket.socketpair(socket.AF_UNIX, socket.SOCK_STREAM)
    left.close()
    right.close()
    assert peer_pid(left) == -1
