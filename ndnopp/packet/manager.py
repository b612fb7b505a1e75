"""
NDN-Opp Packet Manager

Manages the packet flow between the forwarding engine and the
transport channels. For every Interest or Data handed over for
transfer it:
- generates a packet id and keeps the packet pending
- correlates the packet id with the nonce or name
- selects connection-oriented or connection-less transport
- tells the requester where to send it

When a channel reports completion, or the forwarding engine cancels an
Interest, the packet is released and the requester is notified.

Design:
- One lock guards ids, pending packets and link state
- Sends are handed to the requester while the lock is held, so a
  packet is on its channel before it can be completed or cancelled
- Completion and cancellation callbacks run after the lock is released
- Completion and cancellation are identifier-driven, so a late
  completion for a cancelled packet (or the reverse) is a no-op
"""

import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import List, Optional

from .. import PACKET_KEY_PREFIX
from ..mesh.link import LinkListener, LinkMonitor
from ..transport.selector import Channel, TransportSelector
from .base import Packet, PacketKind
from .correlation import (
    Correlation,
    CorrelationKey,
    CorrelationStore,
    DuplicateKey,
    UnknownNonce,
    UnknownPacket,
)


logger = logging.getLogger(__name__)


class PacketManagerError(Exception):
    """Exception raised for packet manager misuse."""
    pass


class Requester(ABC):
    """
    Callbacks the packet manager drives.

    Implemented by whatever binds the forwarding engine to the
    transport channels.
    """

    @abstractmethod
    def on_interest_packet_transferred(self, recipient: str, nonce: int) -> None:
        """An Interest reached its recipient."""
        pass

    @abstractmethod
    def on_data_packet_transferred(self, recipient: str, name: str) -> None:
        """A Data reached its recipient."""
        pass

    @abstractmethod
    def on_cancel_packet_sent_over_connection_less(self, packet: Packet) -> None:
        """A pending packet was cancelled; withdraw it from the channel."""
        pass

    @abstractmethod
    def on_send_over_connection_oriented(self, packet: Packet) -> None:
        """Send a packet over the peer's socket."""
        pass

    @abstractmethod
    def on_send_over_connection_less(self, packet: Packet) -> None:
        """Send a packet over the broadcast channel."""
        pass

    @abstractmethod
    def on_packet_unsendable(self, packet: Packet) -> None:
        """A packet is too large for connection-less and no socket exists."""
        pass


class PacketManager(LinkListener):
    """
    Tracks packets from transfer request to completion or cancellation.

    Usage:
        manager = PacketManager(selector, link_monitor)
        manager.enable(registry, requester)

        # From the forwarding engine
        manager.transfer_interest(me, peer, payload, nonce)
        manager.cancel_interest(nonce)

        # From the transport channels
        manager.notify_transferred(packet_id)
    """

    def __init__(
        self,
        selector: Optional[TransportSelector] = None,
        link_monitor: Optional[LinkMonitor] = None,
        purge_on_disable: bool = False,
    ):
        """
        Initialize packet manager.

        Args:
            selector: Transport selection policy
            link_monitor: Source of link up/down events
            purge_on_disable: Cancel all pending packets on disable()
        """
        self._selector = selector or TransportSelector()
        self._link_monitor = link_monitor
        self._purge_on_disable = purge_on_disable

        self._correlations = CorrelationStore()

        self._oracle = None
        self._requester: Optional[Requester] = None
        self._enabled = False
        self._link_established = False

        # Packet id counter
        self._next_packet_id = 0

        self._lock = threading.RLock()

        # Statistics
        self._transferred = 0
        self._cancelled = 0
        self._unsendable = 0
        self._stale_notifications = 0

    @property
    def is_enabled(self) -> bool:
        return self._enabled

    @property
    def link_established(self) -> bool:
        return self._link_established

    @property
    def selector(self) -> TransportSelector:
        return self._selector

    def enable(self, oracle, requester: Requester) -> None:
        """
        Start the packet manager.

        Does nothing if already enabled.

        Args:
            oracle: Object with is_socket_available(peer_id)
            requester: Callbacks for sends and completions
        """
        with self._lock:
            if self._enabled:
                return

            self._oracle = oracle
            self._requester = requester
            if self._link_monitor is not None:
                self._link_monitor.register_listener(self)
                self._link_established = self._link_monitor.is_connected
            self._enabled = True

        logger.info("Packet manager enabled")

    def disable(self) -> None:
        """
        Stop the packet manager.

        Pending packets stay pending unless purge_on_disable was set, so
        a later enable() picks them up again.
        """
        with self._lock:
            if not self._enabled:
                return

            if self._link_monitor is not None:
                self._link_monitor.unregister_listener(self)
            self._link_established = False
            self._enabled = False

            purged: List[Correlation] = []
            if self._purge_on_disable:
                purged = self._correlations.clear()
                self._cancelled += len(purged)
            requester = self._requester

        logger.info("Packet manager disabled")

        for entry in purged:
            logger.info(f"Cancelling pending packet {entry.packet_id} on disable")
            requester.on_cancel_packet_sent_over_connection_less(entry.packet)

    def transfer_interest(
        self,
        sender: str,
        recipient: str,
        payload: bytes,
        nonce: int,
    ) -> Channel:
        """
        Transfer an Interest packet.

        Args:
            sender: Sender node id
            recipient: Recipient node id
            payload: Encoded Interest
            nonce: Interest nonce

        Returns:
            Channel the packet was handed to

        Raises:
            DuplicateKey: If the nonce is already pending
            PacketManagerError: If the manager is not enabled
        """
        logger.info(f"Transferring interest from {sender} to {recipient}")
        return self._transfer(PacketKind.INTEREST, sender, recipient, payload, nonce)

    def transfer_data(
        self,
        sender: str,
        recipient: str,
        payload: bytes,
        name: str,
    ) -> Channel:
        """
        Transfer a Data packet.

        Args:
            sender: Sender node id
            recipient: Recipient node id
            payload: Encoded Data
            name: Data name

        Returns:
            Channel the packet was handed to

        Raises:
            DuplicateKey: If the name is already pending
            PacketManagerError: If the manager is not enabled
        """
        logger.info(f"Transferring data {name} from {sender} to {recipient}")
        return self._transfer(PacketKind.DATA, sender, recipient, payload, name)

    def _transfer(
        self,
        kind: PacketKind,
        sender: str,
        recipient: str,
        payload: bytes,
        key: CorrelationKey,
    ) -> Channel:
        with self._lock:
            if not self._enabled:
                raise PacketManagerError("Packet manager is not enabled")

            packet = Packet(
                packet_id=self._generate_packet_id(),
                sender=sender,
                recipient=recipient,
                payload=bytes(payload),
            )
            logger.debug(f"Packet id is {packet.packet_id}")

            try:
                if kind == PacketKind.INTEREST:
                    self._correlations.register_interest(packet.packet_id, key, packet)
                else:
                    self._correlations.register_data(packet.packet_id, key, packet)
            except DuplicateKey as e:
                logger.error(f"Rejecting {packet.packet_id}: {e}")
                raise

            channel = self._selector.select(packet, self._link_established, self._oracle)

            if channel == Channel.UNSENDABLE:
                self._correlations.pop(packet.packet_id)
                self._unsendable += 1

            self._dispatch(self._requester, channel, packet)

        return channel

    def _dispatch(self, requester: Requester, channel: Channel, packet: Packet) -> None:
        """Hand a packet to its channel. Caller holds the lock."""
        if channel == Channel.CONNECTION_ORIENTED:
            requester.on_send_over_connection_oriented(packet)
        elif channel == Channel.CONNECTION_LESS:
            requester.on_send_over_connection_less(packet)
        else:
            logger.warning(
                f"Packet {packet.packet_id} ({packet.payload_size} bytes) "
                f"has no socket to {packet.recipient}, dropping"
            )
            requester.on_packet_unsendable(packet)

    def notify_transferred(self, packet_id: str) -> bool:
        """
        Handle a transfer completion from a channel.

        Args:
            packet_id: Id of the transferred packet

        Returns:
            True if the packet was pending, False if it was stale
        """
        with self._lock:
            try:
                entry = self._correlations.pop(packet_id)
            except UnknownPacket:
                # Completion raced with cancellation
                self._stale_notifications += 1
                logger.debug(f"Ignoring completion for unknown packet {packet_id}")
                return False

            self._transferred += 1
            requester = self._requester

        if entry.kind == PacketKind.DATA:
            logger.info(f"Data packet with id {packet_id} was transferred")
            requester.on_data_packet_transferred(entry.packet.recipient, entry.key)
        else:
            logger.info(f"Interest packet with id {packet_id} was transferred")
            requester.on_interest_packet_transferred(entry.packet.recipient, entry.key)
        return True

    def cancel_interest(self, nonce: int, face_id: Optional[int] = None) -> bool:
        """
        Cancel a pending Interest.

        Args:
            nonce: Interest nonce
            face_id: Face the Interest was pending on (logging only)

        Returns:
            True if an Interest was cancelled, False if none was pending
        """
        with self._lock:
            try:
                entry = self._correlations.pop_interest(nonce)
            except UnknownNonce:
                logger.debug(f"No pending interest for nonce {nonce}")
                return False

            self._cancelled += 1
            requester = self._requester

        logger.info(f"Cancelling interest packet id {entry.packet_id} (face {face_id})")
        requester.on_cancel_packet_sent_over_connection_less(entry.packet)
        return True

    def expire_pending(self, max_age: float, now: Optional[float] = None) -> int:
        """
        Cancel packets pending for longer than max_age.

        Args:
            max_age: Maximum pending time (seconds)
            now: Reference time (default: current time)

        Returns:
            Number of packets cancelled
        """
        now = time.time() if now is None else now

        with self._lock:
            expired = []
            for entry in self._correlations.entries():
                if now - entry.packet.created_at > max_age:
                    expired.append(self._correlations.pop(entry.packet_id))
            self._cancelled += len(expired)
            requester = self._requester

        for entry in expired:
            logger.info(f"Pending packet {entry.packet_id} expired")
            requester.on_cancel_packet_sent_over_connection_less(entry.packet)

        return len(expired)

    def on_link_up(self) -> None:
        logger.info("Wi-Fi or Wi-Fi P2P connection detected")
        with self._lock:
            self._link_established = True

    def on_link_down(self) -> None:
        logger.info("Wi-Fi or Wi-Fi P2P connection dropped")
        with self._lock:
            self._link_established = False

    def _generate_packet_id(self) -> str:
        """Generate a packet id. Caller holds the lock."""
        packet_id = f"{PACKET_KEY_PREFIX}{self._next_packet_id}"
        self._next_packet_id += 1
        return packet_id

    def get_packet(self, packet_id: str) -> Optional[Packet]:
        """Get a pending packet by id."""
        entry = self._correlations.get(packet_id)
        return entry.packet if entry else None

    def pending_packets(self) -> List[Packet]:
        """Get all pending packets."""
        return [entry.packet for entry in self._correlations.entries()]

    def get_stats(self) -> dict:
        """Get packet manager statistics."""
        with self._lock:
            return {
                "enabled": self._enabled,
                "link_established": self._link_established,
                "mode": self._selector.mode.name.lower(),
                "packets_generated": self._next_packet_id,
                "transferred": self._transferred,
                "cancelled": self._cancelled,
                "unsendable": self._unsendable,
                "stale_notifications": self._stale_notifications,
                **self._correlations.get_stats(),
            }

    def __len__(self) -> int:
        """Get number of pending packets."""
        return len(self._correlations)
