import pytest

from ndnopp.mesh.link import LinkMonitor
from ndnopp.mesh.registry import PeerRegistry, ServiceEntry
from ndnopp.packet.manager import PacketManager
from ndnopp.transport.loopback import LoopbackRequester
from ndnopp.transport.selector import TransportMode, TransportSelector


class StaticOracle:
    """Socket oracle with a fixed set of reachable peers."""

    def __init__(self, *peers):
        self.peers = set(peers)
        self.calls = []

    def is_socket_available(self, peer_id):
        self.calls.append(peer_id)
        return peer_id in self.peers


@pytest.fixture
def oracle():
    return StaticOracle()


@pytest.fixture
def requester():
    return LoopbackRequester(latency_ms=0)


@pytest.fixture
def link_monitor():
    return LinkMonitor()


@pytest.fixture
def manager(oracle, requester, link_monitor):
    manager = PacketManager(TransportSelector(TransportMode.SIZE_THRESHOLD), link_monitor)
    manager.enable(oracle, requester)
    requester.attach(manager)
    return manager


@pytest.fixture
def backup_manager(oracle, requester, link_monitor):
    manager = PacketManager(TransportSelector(TransportMode.BACKUP), link_monitor)
    manager.enable(oracle, requester)
    requester.attach(manager)
    return manager


def service(uuid, connection_oriented=False, **kwargs):
    return ServiceEntry(uuid=uuid, name=f"svc-{uuid}", connection_oriented=connection_oriented, **kwargs)
