"""
NDN-Opp Mesh Module

Tracks which NDN-Opp nodes are reachable and whether a Wi-Fi P2P link
is up.

Components:
- registry.py: Peer/service snapshot and change deltas
- link.py: Link-state events
"""

from .registry import (
    PeerRegistry,
    ServiceEntry,
    ServiceStatus,
)

from .link import (
    LinkListener,
    LinkMonitor,
)

__all__ = [
    # Registry
    'PeerRegistry',
    'ServiceEntry',
    'ServiceStatus',
    # Link
    'LinkListener',
    'LinkMonitor',
]
