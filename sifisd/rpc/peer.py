"""
Unix socket peer credentials.
"""

import socket
import struct


_UCRED_FORMAT = "3i"  # pid, uid, gid


def peer_pid(sock) -> int:
    """
    Find the pid of the process on the other end of a Unix socket.

    Returns -1 when the platform does not expose SO_PEERCRED or the
    socket has no peer.
    """
    if sock is None or not hasattr(socket, "SO_PEERCRED"):
        return -1
    try:
        creds = sock.getsockopt(
            socket.SOL_SOCKET,
            socket.SO_PEERCRED,
            struct.calcsize(_UCRED_FORMAT),
        )
    except OSError:
        return -1
    pid, _uid, _gid = struct.unpack(_UCRED_FORMAT, creds)
    return pid
