"""
NDN-Opp Node

Wires the transport core together for one node:
- Peer registry (fed by service discovery)
- Link monitor (fed by Wi-Fi P2P group events)
- Transport selector and packet manager

All components are owned by the node and live from start() to stop();
collaborators receive them by reference.
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Mapping, Optional, Set

from . import __version__
from .config import Config
from .identity import NodeIdentity, generate_identity
from .mesh.link import LinkMonitor
from .mesh.registry import PeerRegistry, ServiceEntry
from .packet.manager import PacketManager, Requester
from .transport.selector import Channel, TransportSelector


logger = logging.getLogger(__name__)


class Routing(ABC):
    """Routing layer that consumes peer changes."""

    @abstractmethod
    def update(self, changes: Set[ServiceEntry]) -> None:
        """Peers that are new or changed since the last discovery round."""
        pass


class OpportunisticNode:
    """
    One NDN-Opp node.

    Usage:
        node = OpportunisticNode(config, requester, routing)
        node.start()

        # From service discovery
        node.on_services_discovered({svc.uuid: svc for svc in found})

        # From the forwarding engine
        node.transfer_interest(peer_uuid, payload, nonce)

        node.stop()
    """

    def __init__(
        self,
        config: Config,
        requester: Requester,
        routing: Routing,
        link_monitor: Optional[LinkMonitor] = None,
        identity: Optional[NodeIdentity] = None,
    ):
        """
        Initialize node with configuration.

        Args:
            config: Loaded configuration
            requester: Transport channel callbacks
            routing: Consumer of peer deltas
            link_monitor: Link event source (created if not given)
            identity: Node identity (generated if not given)
        """
        self.config = config
        self._requester = requester
        self._routing = routing

        if config.node_id:
            self._identity = None
            self._node_id = config.node_id
        else:
            self._identity = identity or generate_identity()
            self._node_id = self._identity.node_id

        self.registry = PeerRegistry()
        self.link_monitor = link_monitor or LinkMonitor()
        self.selector = TransportSelector(
            mode=config.transport.transport_mode,
            threshold=config.transport.size_threshold,
        )
        self.packet_manager = PacketManager(
            selector=self.selector,
            link_monitor=self.link_monitor,
            purge_on_disable=config.manager.purge_on_disable,
        )

        # Serializes refresh and routing push across discovery callbacks
        self._discovery_lock = threading.Lock()

        self._running = False
        self._shutdown_event = threading.Event()
        self._maintenance_thread: Optional[threading.Thread] = None

    @property
    def node_id(self) -> str:
        return self._node_id

    @property
    def identity(self) -> Optional[NodeIdentity]:
        return self._identity

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self) -> None:
        """Start the node."""
        if self._running:
            return

        logger.info(f"Starting NDN-Opp node v{__version__}")
        logger.info(f"Node ID: {self._node_id}")
        logger.info(f"Transport mode: {self.selector.mode.name.lower()}")

        self.packet_manager.enable(self.registry, self._requester)

        self._running = True
        self._shutdown_event.clear()

        if self.config.manager.pending_timeout:
            self._maintenance_thread = threading.Thread(
                target=self._maintenance_loop,
                daemon=True,
                name="maintenance",
            )
            self._maintenance_thread.start()

        logger.info("NDN-Opp node started")

    def stop(self) -> None:
        """Stop the node."""
        if not self._running:
            return

        logger.info("Stopping NDN-Opp node...")

        self._running = False
        self._shutdown_event.set()

        if self._maintenance_thread:
            self._maintenance_thread.join(timeout=5.0)
            self._maintenance_thread = None

        self.packet_manager.disable()

        logger.info("NDN-Opp node stopped")

    def _maintenance_loop(self) -> None:
        """Periodic expiry of stale pending packets."""
        while self._running:
            self._shutdown_event.wait(self.config.manager.maintenance_interval)
            if not self._running:
                break
            try:
                expired = self.packet_manager.expire_pending(
                    self.config.manager.pending_timeout
                )
                if expired:
                    logger.info(f"Expired {expired} pending packets")
            except Exception as e:
                logger.error(f"Maintenance error: {e}")

    def on_services_discovered(
        self,
        snapshot: Optional[Mapping[str, ServiceEntry]],
    ) -> Set[ServiceEntry]:
        """
        Handle a full discovery snapshot.

        Refreshes the registry and pushes the changed entries to the
        routing layer. Concurrent snapshots are handled one at a time,
        so routing receives deltas in the order the registry applied them.

        Args:
            snapshot: uuid -> entry; None means no peers

        Returns:
            The changed entries
        """
        with self._discovery_lock:
            changes = self.registry.refresh(snapshot)
            removed = self.registry.last_removed()

            if changes or removed:
                logger.info(
                    f"Discovery: {len(changes)} changed, {len(removed)} gone, "
                    f"{len(self.registry)} known"
                )

            self._routing.update(changes)
        return changes

    def on_link_established(self) -> None:
        self.link_monitor.link_established()

    def on_link_lost(self) -> None:
        self.link_monitor.link_lost()

    def transfer_interest(
        self,
        recipient: str,
        payload: bytes,
        nonce: int,
        sender: Optional[str] = None,
    ) -> Channel:
        """Transfer an Interest from this node (see PacketManager)."""
        return self.packet_manager.transfer_interest(
            sender or self._node_id, recipient, payload, nonce
        )

    def transfer_data(
        self,
        recipient: str,
        payload: bytes,
        name: str,
        sender: Optional[str] = None,
    ) -> Channel:
        """Transfer a Data from this node (see PacketManager)."""
        return self.packet_manager.transfer_data(
            sender or self._node_id, recipient, payload, name
        )

    def get_stats(self) -> dict:
        """Get node statistics."""
        return {
            "version": __version__,
            "node_id": self._node_id,
            "node_name": self.config.node_name,
            "running": self._running,
            "link_connected": self.link_monitor.is_connected,
            "registry": self.registry.get_stats(),
            "packets": self.packet_manager.get_stats(),
        }
