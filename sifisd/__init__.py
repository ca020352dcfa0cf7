"""
SIFIS-Home Runtime Daemon

A trusted runtime that mediates every access from untrusted applications
to smart-home devices, and tells callers which hazards each action may
trigger.

This package contains:
- hazards.py  : Closed hazard taxonomy
- contract.py : Per device class operations and their declared hazards
- devices.py  : Simulated device state and transition functions
- runtime.py  : The runtime service holding live device state
- client.py   : Client stub used by applications
- rpc/        : Framing, sessions and the Unix socket server

Copyright (c) 2026 SIFIS-Home Project
License: MIT
"""

__version__ = "0.1.0"
__author__ = "SIFIS-Home Project"

# Core constants
PROTOCOL_VERSION = 1
DEFAULT_SOCKET_PATH = "/var/run/sifis.sock"
SOCKET_PATH_ENV = "SIFIS_SERVER"
