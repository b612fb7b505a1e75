"""
NDN-Opp Packet Model

A Packet is one unit of transfer handed to a transport channel. It is
owned by the PacketManager from creation until it is transferred or
cancelled.
"""

import time
from dataclasses import dataclass, field
from enum import IntEnum


class PacketKind(IntEnum):
    """What a pending packet carries."""
    INTEREST = 1     # Correlated by nonce
    DATA = 2         # Correlated by name


@dataclass
class Packet:
    """
    Transport-level packet.
    
    The payload is opaque; its wire format belongs to the forwarding
    engine.
    """
    # Identity
    packet_id: str            # "PKT:<n>"
    
    # Endpoints (stable node identifiers)
    sender: str
    recipient: str
    
    # Content
    payload: bytes = b""
    
    # Timestamps
    created_at: float = field(default_factory=time.time)
    
    @property
    def payload_size(self) -> int:
        """Payload size in bytes."""
        return len(self.payload)
    
    @property
    def age(self) -> float:
        """Time since creation (seconds)."""
        return time.time() - self.created_at
    
    def __repr__(self) -> str:
        return (
            f"Packet({self.packet_id}, {self.sender} -> {self.recipient}, "
            f"{self.payload_size} bytes)"
        )
