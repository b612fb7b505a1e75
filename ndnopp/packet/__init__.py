"""
NDN-Opp Packet Module

Handles the packet model, packet id <-> nonce/name correlation and the
transfer lifecycle of pending packets.
"""

from .base import (
    Packet,
    PacketKind,
)

from .correlation import (
    Correlation,
    CorrelationStore,
    CorrelationError,
    DuplicateKey,
    UnknownPacket,
    UnknownNonce,
    UnknownName,
)

from .manager import (
    PacketManager,
    PacketManagerError,
    Requester,
)

__all__ = [
    # Base
    'Packet',
    'PacketKind',
    # Correlation
    'Correlation',
    'CorrelationStore',
    'CorrelationError',
    'DuplicateKey',
    'UnknownPacket',
    'UnknownNonce',
    'UnknownName',
    # Manager
    'PacketManager',
    'PacketManagerError',
    'Requester',
]
