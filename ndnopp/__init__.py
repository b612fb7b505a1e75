"""
NDN-Opp - Opportunistic Transport Core

The packet-transport core of a delay-tolerant, information-centric
network node. It decides how each outbound Interest or Data packet can
reach a peer over intermittent Wi-Fi Direct links and tracks it until
the transfer completes or is cancelled.

This package contains:
- packet/    : Packet model, correlation store and transfer manager
- transport/ : Channel selection policy and loopback channels
- mesh/      : Peer/service registry and link-state monitor
- identity   : Stable node identifier
- node       : Component wiring and lifecycle

Copyright (c) 2026 NDN-Opp Project
License: LGPLv3
"""

__version__ = "0.1.0"
__author__ = "NDN-Opp Project"

# Core constants
PACKET_KEY_PREFIX = "PKT:"
MAX_PAYLOAD_SIZE_CL = 80  # bytes (connection-less frame budget)
NODE_ID_LENGTH = 16  # bytes
