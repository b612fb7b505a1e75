"""
NDN-Opp Transport Selection

Decides which channel an outbound packet should take:
- Connection-oriented: a direct socket to the peer, only available
  while a Wi-Fi P2P group is formed
- Connection-less: size-limited broadcast over service discovery,
  available once any peer is in radio range

Two policies are supported:
- Size threshold: large packets go connection-oriented, small ones
  connection-less
- Backup: connection-oriented whenever a group and a socket exist,
  connection-less otherwise
"""

from enum import Enum, auto
from typing import Callable, Union

from .. import MAX_PAYLOAD_SIZE_CL


SocketAvailability = Union[bool, Callable[[], bool]]


class TransportMode(Enum):
    """Channel selection policy."""
    SIZE_THRESHOLD = auto()
    BACKUP = auto()

    @classmethod
    def parse(cls, value: str) -> 'TransportMode':
        """
        Parse a configuration string.

        Raises:
            ValueError: If the value names no known mode
        """
        normalized = str(value).strip().lower().replace("-", "_")
        if normalized in ("size_threshold", "size", "packet_size"):
            return cls.SIZE_THRESHOLD
        if normalized == "backup":
            return cls.BACKUP
        raise ValueError(f"Unknown transport mode: {value}")


class Channel(Enum):
    """Outcome of channel selection."""
    CONNECTION_ORIENTED = auto()
    CONNECTION_LESS = auto()
    UNSENDABLE = auto()   # Too large for connection-less, no socket


def _available(socket_available: SocketAvailability) -> bool:
    if callable(socket_available):
        return bool(socket_available())
    return bool(socket_available)


def select_channel(
    mode: TransportMode,
    payload_size: int,
    link_established: bool,
    socket_available: SocketAvailability,
    threshold: int = MAX_PAYLOAD_SIZE_CL,
) -> Channel:
    """
    Pick a channel for a packet.

    Socket availability is only evaluated when the policy needs it, so a
    callable can be passed to defer the lookup.

    Args:
        mode: Selection policy
        payload_size: Packet payload size in bytes
        link_established: Whether a Wi-Fi P2P link is up
        socket_available: Whether a socket to the recipient exists
        threshold: Largest payload sent connection-less (size mode)

    Returns:
        Channel to use, or Channel.UNSENDABLE
    """
    if mode == TransportMode.BACKUP:
        if link_established and _available(socket_available):
            return Channel.CONNECTION_ORIENTED
        return Channel.CONNECTION_LESS

    if payload_size > threshold:
        if _available(socket_available):
            return Channel.CONNECTION_ORIENTED
        return Channel.UNSENDABLE

    return Channel.CONNECTION_LESS


class TransportSelector:
    """
    Holds the configured policy and applies it to packets.

    Usage:
        selector = TransportSelector(TransportMode.SIZE_THRESHOLD)
        channel = selector.select(packet, link_established, oracle)
    """

    def __init__(
        self,
        mode: TransportMode = TransportMode.SIZE_THRESHOLD,
        threshold: int = MAX_PAYLOAD_SIZE_CL,
    ):
        if threshold < 0:
            raise ValueError(f"Invalid size threshold: {threshold}")
        self._mode = mode
        self._threshold = threshold

    @property
    def mode(self) -> TransportMode:
        return self._mode

    @property
    def threshold(self) -> int:
        return self._threshold

    def set_mode(self, mode: TransportMode) -> None:
        """Switch policy; affects subsequent selections only."""
        self._mode = mode

    def set_threshold(self, threshold: int) -> None:
        if threshold < 0:
            raise ValueError(f"Invalid size threshold: {threshold}")
        self._threshold = threshold

    def select(self, packet, link_established: bool, oracle) -> Channel:
        """
        Pick a channel for a packet.

        Args:
            packet: Packet to send
            link_established: Whether a Wi-Fi P2P link is up
            oracle: Object with is_socket_available(peer_id)

        Returns:
            Channel to use, or Channel.UNSENDABLE
        """
        return select_channel(
            self._mode,
            packet.payload_size,
            link_established,
            lambda: oracle.is_socket_available(packet.recipient),
            self._threshold,
        )
