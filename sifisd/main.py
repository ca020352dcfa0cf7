"""
SIFIS-Home Runtime Daemon Main Entry Point

The sifisd daemon:
- Loads the simulated device set
- Serves client sessions on a Unix socket
- Stops cleanly on SIGINT/SIGTERM
"""

import asyncio
import signal
import sys
import logging
import argparse
from pathlib import Path
from typing import Optional

from . import __version__
from .config import Config, DEFAULT_CONFIG_PATH, resolve_socket_path
from .rpc.server import RPCServer
from .runtime import RuntimeService, default_devices


LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

logger = logging.getLogger("sifisd")


class SifisDaemon:
    """
    Main runtime daemon class.

    Owns the runtime service and the RPC server feeding it.
    """

    def __init__(self, config: Config, socket_path: Optional[Path] = None):
        """
        Initialize daemon with configuration.

        Args:
            config: Loaded configuration
            socket_path: Resolved socket path (default: from config)
        """
        self.config = config
        self.socket_path = socket_path or config.socket_path

        devices = config.build_devices()
        if not devices:
            logger.info("No devices configured, using the mock device set")
            devices = default_devices()

        self.runtime = RuntimeService(
            devices,
            clamp_policies=config.clamp_policies(),
            actuation_delay=config.runtime.actuation_delay,
        )
        self.server = RPCServer(self.runtime, self.socket_path)
        self._stop_task: Optional[asyncio.Task] = None

    async def run(self) -> None:
        """Serve until stop() is called or a termination signal arrives."""
        logger.info(f"Starting SIFIS runtime v{__version__}")
        await self.server.start()
        logger.info(f"Simulating {len(self.runtime.device_ids)} devices")

        loop = asyncio.get_running_loop()
        for signum in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(signum, self._handle_signal, signum)

        try:
            await self.server.serve_forever()
        finally:
            for signum in (signal.SIGINT, signal.SIGTERM):
                loop.remove_signal_handler(signum)
            logger.info(f"Runtime stopped: {self.runtime.stats()}")

    async def stop(self) -> None:
        await self.server.stop()

    def _handle_signal(self, signum: int) -> None:
        logger.info(f"Received signal {signum}")
        if self._stop_task is None or self._stop_task.done():
            self._stop_task = asyncio.get_running_loop().create_task(self.stop())


def setup_logging(config: Config, verbose: bool = False) -> None:
    """Configure root logging from the configuration."""
    handlers = [logging.StreamHandler()]
    if config.log_file:
        handlers.append(logging.FileHandler(config.log_file))

    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, config.log_level),
        format=LOG_FORMAT,
        handlers=handlers,
    )


def main(argv=None):
    """Main entry point."""
    parser = argparse.ArgumentParser(description="SIFIS-Home mock runtime daemon")
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=DEFAULT_CONFIG_PATH,
        help="Configuration file path",
    )
    parser.add_argument(
        "-s", "--socket",
        type=Path,
        default=None,
        help="Unix socket path (overrides configuration and SIFIS_SERVER)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"sifisd {__version__}",
    )

    args = parser.parse_args(argv)

    # Load configuration
    try:
        config = Config.load(args.config)
        config.validate()
    except ValueError as e:
        logging.basicConfig(format=LOG_FORMAT)
        logger.error(f"Configuration error: {e}")
        sys.exit(1)

    setup_logging(config, args.verbose)

    socket_path = args.socket or resolve_socket_path(config)
    daemon = SifisDaemon(config, socket_path)

    try:
        asyncio.run(daemon.run())
    except OSError as e:
        logger.error(f"Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
