"""
NDN-Opp Packet Correlation Store

Maps transport-level packet ids back to the application-level
identifier of what they carry, and vice versa:
- Interest packets are correlated by nonce
- Data packets are correlated by name

Design:
- Each correlation is stored once, keyed by packet id
- Nonce and name indexes reference the same entry
- Registration and release touch all indexes under one lock,
  so no caller can observe half of a pair
"""

import threading
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple, Union

from .base import Packet, PacketKind


CorrelationKey = Union[int, str]


class CorrelationError(Exception):
    """Base exception for correlation store errors."""
    pass


class DuplicateKey(CorrelationError):
    """A packet id, nonce or name is already registered."""
    pass


class UnknownPacket(CorrelationError):
    """No correlation exists for a packet id."""
    pass


class UnknownNonce(CorrelationError):
    """No pending Interest exists for a nonce."""
    pass


class UnknownName(CorrelationError):
    """No pending Data exists for a name."""
    pass


@dataclass
class Correlation:
    """
    One pending packet and the identifier it correlates to.
    """
    packet_id: str
    kind: PacketKind
    key: CorrelationKey           # nonce (Interest) or name (Data)
    packet: Optional[Packet] = None

    @property
    def is_interest(self) -> bool:
        return self.kind == PacketKind.INTEREST

    @property
    def is_data(self) -> bool:
        return self.kind == PacketKind.DATA


class CorrelationStore:
    """
    Two-way packet id <-> (nonce | name) tables.

    Usage:
        store = CorrelationStore()

        store.register_interest("PKT:0", nonce=42)
        kind, nonce = store.resolve("PKT:0")

        # On completion
        nonce = store.release_by_packet_id("PKT:0")

        # On cancellation
        packet_id = store.release_interest_by_nonce(42)
    """

    def __init__(self):
        # Arena: packet_id -> Correlation
        self._entries: Dict[str, Correlation] = {}

        # Indexes into the arena
        self._by_nonce: Dict[int, Correlation] = {}
        self._by_name: Dict[str, Correlation] = {}

        self._lock = threading.RLock()

    def register_interest(
        self,
        packet_id: str,
        nonce: int,
        packet: Optional[Packet] = None,
    ) -> Correlation:
        """
        Correlate a packet id with an Interest nonce.

        Args:
            packet_id: Transport packet id
            nonce: Interest nonce
            packet: Pending packet to keep with the entry

        Returns:
            The new correlation entry

        Raises:
            DuplicateKey: If the packet id or nonce is already registered
        """
        with self._lock:
            if packet_id in self._entries:
                raise DuplicateKey(f"Packet id already registered: {packet_id}")
            if nonce in self._by_nonce:
                raise DuplicateKey(f"Nonce already registered: {nonce}")

            entry = Correlation(
                packet_id=packet_id,
                kind=PacketKind.INTEREST,
                key=nonce,
                packet=packet,
            )
            self._entries[packet_id] = entry
            self._by_nonce[nonce] = entry
            return entry

    def register_data(
        self,
        packet_id: str,
        name: str,
        packet: Optional[Packet] = None,
    ) -> Correlation:
        """
        Correlate a packet id with a Data name.

        Args:
            packet_id: Transport packet id
            name: Data name
            packet: Pending packet to keep with the entry

        Returns:
            The new correlation entry

        Raises:
            DuplicateKey: If the packet id or name is already registered
        """
        with self._lock:
            if packet_id in self._entries:
                raise DuplicateKey(f"Packet id already registered: {packet_id}")
            if name in self._by_name:
                raise DuplicateKey(f"Name already registered: {name}")

            entry = Correlation(
                packet_id=packet_id,
                kind=PacketKind.DATA,
                key=name,
                packet=packet,
            )
            self._entries[packet_id] = entry
            self._by_name[name] = entry
            return entry

    def get(self, packet_id: str) -> Optional[Correlation]:
        """Get a correlation entry by packet id."""
        with self._lock:
            return self._entries.get(packet_id)

    def resolve(self, packet_id: str) -> Tuple[PacketKind, CorrelationKey]:
        """
        Resolve a packet id to its kind and nonce or name.

        Raises:
            UnknownPacket: If the packet id is not registered
        """
        with self._lock:
            entry = self._entries.get(packet_id)
            if entry is None:
                raise UnknownPacket(f"Unknown packet id: {packet_id}")
            return entry.kind, entry.key

    def lookup_nonce(self, nonce: int) -> str:
        """
        Get the packet id carrying an Interest nonce.

        Raises:
            UnknownNonce: If no Interest with this nonce is pending
        """
        with self._lock:
            entry = self._by_nonce.get(nonce)
            if entry is None:
                raise UnknownNonce(f"Unknown nonce: {nonce}")
            return entry.packet_id

    def lookup_name(self, name: str) -> str:
        """
        Get the packet id carrying a Data name.

        Raises:
            UnknownName: If no Data with this name is pending
        """
        with self._lock:
            entry = self._by_name.get(name)
            if entry is None:
                raise UnknownName(f"Unknown name: {name}")
            return entry.packet_id

    def pop(self, packet_id: str) -> Correlation:
        """
        Remove and return the entry for a packet id.

        Raises:
            UnknownPacket: If the packet id is not registered
        """
        with self._lock:
            entry = self._entries.get(packet_id)
            if entry is None:
                raise UnknownPacket(f"Unknown packet id: {packet_id}")
            self._unlink(entry)
            return entry

    def pop_interest(self, nonce: int) -> Correlation:
        """
        Remove and return the pending Interest entry for a nonce.

        Raises:
            UnknownNonce: If no Interest with this nonce is pending
        """
        with self._lock:
            entry = self._by_nonce.get(nonce)
            if entry is None:
                raise UnknownNonce(f"Unknown nonce: {nonce}")
            self._unlink(entry)
            return entry

    def release_by_packet_id(self, packet_id: str) -> CorrelationKey:
        """
        Release a packet id in both directions.

        Returns:
            The nonce or name the packet id was correlated to

        Raises:
            UnknownPacket: If the packet id is not registered
        """
        return self.pop(packet_id).key

    def release_interest_by_nonce(self, nonce: int) -> str:
        """
        Release a pending Interest by its nonce.

        Returns:
            The packet id that carried the Interest

        Raises:
            UnknownNonce: If no Interest with this nonce is pending
        """
        return self.pop_interest(nonce).packet_id

    def release_data_by_name(self, name: str) -> str:
        """
        Release a pending Data by its name.

        Returns:
            The packet id that carried the Data

        Raises:
            UnknownName: If no Data with this name is pending
        """
        with self._lock:
            entry = self._by_name.get(name)
            if entry is None:
                raise UnknownName(f"Unknown name: {name}")
            self._unlink(entry)
            return entry.packet_id

    def _unlink(self, entry: Correlation) -> None:
        """Remove an entry from the arena and its index. Caller holds the lock."""
        del self._entries[entry.packet_id]
        if entry.kind == PacketKind.INTEREST:
            del self._by_nonce[entry.key]
        else:
            del self._by_name[entry.key]

    def entries(self) -> List[Correlation]:
        """Get all pending correlation entries."""
        with self._lock:
            return list(self._entries.values())

    def clear(self) -> List[Correlation]:
        """
        Remove all entries.

        Returns:
            The entries that were removed
        """
        with self._lock:
            removed = list(self._entries.values())
            self._entries.clear()
            self._by_nonce.clear()
            self._by_name.clear()
            return removed

    def get_stats(self) -> dict:
        """Get correlation store statistics."""
        with self._lock:
            return {
                "pending": len(self._entries),
                "interests": len(self._by_nonce),
                "data": len(self._by_name),
            }

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, packet_id: str) -> bool:
        with self._lock:
            return packet_id in self._entries
