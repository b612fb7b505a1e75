"""
NDN-Opp Transport Module

Channel selection between connection-oriented sockets and
connection-less broadcast. The in-process loopback transport lives in
ndnopp.transport.loopback.
"""

from .selector import (
    Channel,
    TransportMode,
    TransportSelector,
    select_channel,
)

__all__ = [
    'Channel',
    'TransportMode',
    'TransportSelector',
    'select_channel',
]
