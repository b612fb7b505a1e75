"""
NDN-Opp Link-State Monitor

Relays Wi-Fi P2P group connectivity changes to interested components.
The OS group-formation subsystem feeds it; the PacketManager listens to
it to know whether connection-oriented sockets can be used.

Events are delivered one at a time: a link_lost() reported while
listeners are still handling a link_established() waits for them, so
every listener sees events in the order the monitor recorded them.
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import List


logger = logging.getLogger(__name__)


class LinkListener(ABC):
    """Receives link-state changes."""

    @abstractmethod
    def on_link_up(self) -> None:
        """A Wi-Fi or Wi-Fi P2P connection was established."""
        pass

    @abstractmethod
    def on_link_down(self) -> None:
        """The Wi-Fi or Wi-Fi P2P connection dropped."""
        pass


class LinkMonitor:
    """
    Fan-out of link events to registered listeners.

    Usage:
        monitor = LinkMonitor()
        monitor.register_listener(manager)

        # From the connectivity subsystem
        monitor.link_established()
        monitor.link_lost()
    """

    def __init__(self):
        self._listeners: List[LinkListener] = []
        self._connected = False
        self._lock = threading.RLock()
        # Held across a whole event; never taken while holding _lock
        self._dispatch_lock = threading.RLock()

    @property
    def is_connected(self) -> bool:
        """Whether the last reported event was a link-up."""
        return self._connected

    def register_listener(self, listener: LinkListener) -> None:
        """Register a listener; registering twice has no effect."""
        with self._lock:
            if listener not in self._listeners:
                self._listeners.append(listener)

    def unregister_listener(self, listener: LinkListener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def link_established(self) -> None:
        """Report that a link came up."""
        self._publish(True)

    def link_lost(self) -> None:
        """Report that the link went down."""
        self._publish(False)

    def _publish(self, connected: bool) -> None:
        with self._dispatch_lock:
            with self._lock:
                self._connected = connected
                listeners = list(self._listeners)

            event = "up" if connected else "down"
            for listener in listeners:
                try:
                    if connected:
                        listener.on_link_up()
                    else:
                        listener.on_link_down()
                except Exception as e:
                    logger.error(f"Link listener {listener!r} failed on link {event}: {e}")

    def __len__(self) -> int:
        with self._lock:
            return len(self._listeners)
