"""
NDN-Opp Loopback Transport

A virtual requester that stands in for both transport channels in the
same process. Packets handed to either channel are "delivered" after a
configurable latency by reporting completion back to the packet
manager.

Useful for:
- Unit and integration testing
- Running the daemon without Wi-Fi Direct hardware
- Exercising completion/cancellation races
"""

import logging
import queue
import threading
import time
from typing import List, Optional, Tuple

from ..packet.base import Packet
from ..packet.manager import PacketManager, Requester
from .selector import Channel


logger = logging.getLogger(__name__)


class LoopbackRequester(Requester):
    """
    Requester that completes every send in-process.

    Usage:
        requester = LoopbackRequester(latency_ms=10)
        manager.enable(registry, requester)
        requester.attach(manager)

        # Deliver on a background thread
        requester.start()

        # Or deliver synchronously (tests)
        requester.deliver_pending()
    """

    def __init__(self, latency_ms: int = 10):
        """
        Initialize loopback requester.

        Args:
            latency_ms: Simulated transfer latency (milliseconds)
        """
        self._latency = latency_ms / 1000.0
        self._manager: Optional[PacketManager] = None
        self._queue: "queue.Queue[Packet]" = queue.Queue()

        self._lock = threading.Lock()
        self._worker: Optional[threading.Thread] = None
        self._running = False

        # Observed events
        self.sent: List[Tuple[Channel, Packet]] = []
        self.interests_transferred: List[Tuple[str, int]] = []
        self.data_transferred: List[Tuple[str, str]] = []
        self.cancelled: List[Packet] = []
        self.unsendable: List[Packet] = []

    def attach(self, manager: PacketManager) -> None:
        """Set the manager that receives completions."""
        self._manager = manager

    def start(self) -> None:
        """Start background delivery."""
        if self._running:
            return

        self._running = True
        self._worker = threading.Thread(
            target=self._delivery_loop,
            daemon=True,
            name="loopback-delivery",
        )
        self._worker.start()

    def stop(self) -> None:
        """Stop background delivery."""
        self._running = False
        if self._worker:
            self._worker.join(timeout=5.0)
            self._worker = None

    def _delivery_loop(self) -> None:
        while self._running:
            try:
                packet = self._queue.get(timeout=0.1)
            except queue.Empty:
                continue

            if self._latency:
                time.sleep(self._latency)
            self._complete(packet)

    def deliver_pending(self) -> int:
        """
        Complete every queued send on the calling thread.

        Returns:
            Number of packets delivered
        """
        count = 0
        while True:
            try:
                packet = self._queue.get_nowait()
            except queue.Empty:
                return count
            self._complete(packet)
            count += 1

    def _complete(self, packet: Packet) -> None:
        if self._manager is None:
            logger.warning(f"No manager attached, discarding {packet.packet_id}")
            return
        try:
            self._manager.notify_transferred(packet.packet_id)
        except Exception as e:
            logger.error(f"Loopback delivery of {packet.packet_id} failed: {e}")

    @property
    def queued(self) -> int:
        return self._queue.qsize()

    # Requester callbacks

    def on_send_over_connection_oriented(self, packet: Packet) -> None:
        with self._lock:
            self.sent.append((Channel.CONNECTION_ORIENTED, packet))
        self._queue.put(packet)

    def on_send_over_connection_less(self, packet: Packet) -> None:
        with self._lock:
            self.sent.append((Channel.CONNECTION_LESS, packet))
        self._queue.put(packet)

    def on_interest_packet_transferred(self, recipient: str, nonce: int) -> None:
        logger.debug(f"Interest {nonce} reached {recipient}")
        with self._lock:
            self.interests_transferred.append((recipient, nonce))

    def on_data_packet_transferred(self, recipient: str, name: str) -> None:
        logger.debug(f"Data {name} reached {recipient}")
        with self._lock:
            self.data_transferred.append((recipient, name))

    def on_cancel_packet_sent_over_connection_less(self, packet: Packet) -> None:
        with self._lock:
            self.cancelled.append(packet)

    def on_packet_unsendable(self, packet: Packet) -> None:
        with self._lock:
            self.unsendable.append(packet)
