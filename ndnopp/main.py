"""
NDN-Opp Daemon Main Entry Point

Runs a node on the loopback transport until interrupted. Real
deployments wire the node to the Wi-Fi Direct channels and the
forwarding engine instead.
"""

import sys
import time
import signal
import logging
import argparse
from pathlib import Path
from typing import Set

from . import __version__
from .config import Config, DEFAULT_CONFIG_PATH, setup_logging
from .mesh.registry import ServiceEntry
from .node import OpportunisticNode, Routing
from .transport.loopback import LoopbackRequester


logger = logging.getLogger("ndnoppd")


class LoggingRouting(Routing):
    """Routing stand-in that only reports peer changes."""

    def update(self, changes: Set[ServiceEntry]) -> None:
        for entry in changes:
            logger.info(
                f"Peer {entry.uuid} ({entry.name}) "
                f"{entry.status.name.lower()}"
                f"{' with socket' if entry.has_socket else ''}"
            )


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="NDN-Opp transport daemon")
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=DEFAULT_CONFIG_PATH,
        help="Configuration file path",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"ndnoppd {__version__}",
    )

    args = parser.parse_args()

    # Load configuration
    try:
        config = Config.load(args.config)
        if args.verbose:
            config.log_level = "DEBUG"
        config.validate()
    except (ValueError, TypeError) as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(config)

    requester = LoopbackRequester()
    node = OpportunisticNode(config, requester, LoggingRouting())
    requester.attach(node.packet_manager)

    # Signal handlers
    def handle_signal(signum, frame):
        logger.info(f"Received signal {signum}")
        node.stop()
        requester.stop()
        sys.exit(0)

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)

    try:
        requester.start()
        node.start()

        # Wait for shutdown
        while node.is_running:
            time.sleep(1)

    except Exception as e:
        logger.error(f"Fatal error: {e}")
        node.stop()
        requester.stop()
        sys.exit(1)


if __name__ == "__main__":
    main()
