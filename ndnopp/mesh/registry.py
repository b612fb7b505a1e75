"""
NDN-Opp Peer/Service Registry

Holds the last-known set of NDN-Opp services discovered in range and
reports which of them changed on each refresh, so the routing layer
only recomputes routes for peers that are new or updated.

Design:
- Entries are immutable and replaced wholesale on every refresh
- Changes are detected by full-value equality, so a metadata update
  on a known peer is reported
- The delta is computed against the previous snapshot before the new
  one becomes visible
- Peers that disappear are not part of the delta; they are kept
  aside for last_removed()
"""

import threading
from dataclasses import dataclass
from enum import IntEnum
from typing import Dict, FrozenSet, Mapping, Optional, Set, Tuple


class ServiceStatus(IntEnum):
    """Reachability of a discovered service."""
    AVAILABLE = 1      # Seen in the latest discovery round
    UNAVAILABLE = 2    # Known but not currently responding


@dataclass(frozen=True)
class ServiceEntry:
    """
    One reachable NDN-Opp node as seen by service discovery.
    """
    # Identity
    uuid: str                     # Stable node identifier
    name: str = ""                # Service / display name

    # Address inside the Wi-Fi P2P group
    host: Optional[str] = None
    port: int = 0

    # Connectivity
    status: ServiceStatus = ServiceStatus.AVAILABLE
    connection_oriented: bool = False

    @property
    def is_available(self) -> bool:
        return self.status == ServiceStatus.AVAILABLE

    @property
    def has_socket(self) -> bool:
        """Whether a connection-oriented socket can reach this node."""
        return self.is_available and self.connection_oriented


def diff(
    previous: Mapping[str, ServiceEntry],
    snapshot: Mapping[str, ServiceEntry],
) -> Tuple[Set[ServiceEntry], Set[str]]:
    """
    Compare two snapshots.

    Args:
        previous: Snapshot currently held
        snapshot: Newly discovered snapshot

    Returns:
        Tuple of (entries new or changed in snapshot,
                  identifiers present in previous only)
    """
    changed = {
        entry for uuid, entry in snapshot.items()
        if previous.get(uuid) != entry
    }
    removed = {uuid for uuid in previous if uuid not in snapshot}
    return changed, removed


class PeerRegistry:
    """
    Current snapshot of reachable services with delta computation.

    Usage:
        registry = PeerRegistry()

        # On every discovery result
        changes = registry.refresh({entry.uuid: entry for entry in found})
        routing.update(changes)

        # Socket oracle for the PacketManager
        registry.is_socket_available(peer_uuid)
    """

    def __init__(self):
        self._services: Dict[str, ServiceEntry] = {}
        self._last_removed: FrozenSet[str] = frozenset()
        self._refreshes = 0
        self._lock = threading.RLock()

    def refresh(
        self,
        snapshot: Optional[Mapping[str, ServiceEntry]],
    ) -> Set[ServiceEntry]:
        """
        Replace the snapshot and return what changed.

        Args:
            snapshot: identifier -> entry; None means no peers

        Returns:
            Entries that are new or differ from the previous snapshot
        """
        new_services = dict(snapshot or {})

        with self._lock:
            changed, removed = diff(self._services, new_services)
            self._services = new_services
            self._last_removed = frozenset(removed)
            self._refreshes += 1
            return changed

    def current_peers(self) -> FrozenSet[ServiceEntry]:
        """Get the current snapshot."""
        with self._lock:
            return frozenset(self._services.values())

    def get(self, uuid: str) -> Optional[ServiceEntry]:
        """Get a service entry by node identifier."""
        with self._lock:
            return self._services.get(uuid)

    def last_removed(self) -> FrozenSet[str]:
        """Identifiers that disappeared in the last refresh."""
        with self._lock:
            return self._last_removed

    def is_socket_available(self, uuid: str) -> bool:
        """Check if a connection-oriented socket to a peer exists."""
        with self._lock:
            entry = self._services.get(uuid)
            return entry is not None and entry.has_socket

    def get_stats(self) -> dict:
        """Get registry statistics."""
        with self._lock:
            return {
                "services": len(self._services),
                "available": sum(1 for s in self._services.values() if s.is_available),
                "with_socket": sum(1 for s in self._services.values() if s.has_socket),
                "refreshes": self._refreshes,
            }

    def __len__(self) -> int:
        with self._lock:
            return len(self._services)

    def __contains__(self, uuid: str) -> bool:
        with self._lock:
            return uuid in self._services
