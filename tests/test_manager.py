import threading

import pytest

from ndnopp.mesh.link import LinkMonitor
from ndnopp.packet.correlation import DuplicateKey
from ndnopp.packet.manager import PacketManager, PacketManagerError
from ndnopp.transport.loopback import LoopbackRequester
from ndnopp.transport.selector import Channel, TransportMode, TransportSelector


def test_interest_scenario(manager, requester):
    channel = manager.transfer_interest("me", "peer-1", b"x" * 10, 42)

    assert channel == Channel.CONNECTION_LESS
    assert len(requester.sent) == 1
    sent_channel, packet = requester.sent[0]
    assert sent_channel == Channel.CONNECTION_LESS
    assert packet.sender == "me"
    assert packet.recipient == "peer-1"
    assert manager.get_packet(packet.packet_id) is packet

    assert manager.notify_transferred(packet.packet_id) is True

    assert requester.interests_transferred == [("peer-1", 42)]
    assert requester.data_transferred == []
    assert manager.get_packet(packet.packet_id) is None
    assert len(manager) == 0


def test_data_scenario(manager, requester):
    manager.transfer_data("me", "peer-1", b"content", "/ndn/multicast/opp/a")
    packet = requester.sent[0][1]

    manager.notify_transferred(packet.packet_id)

    assert requester.data_transferred == [("peer-1", "/ndn/multicast/opp/a")]
    assert requester.interests_transferred == []


def test_packet_ids_are_prefixed_and_unique(manager, requester):
    for nonce in range(50):
        manager.transfer_interest("me", "peer", b"i", nonce)
    for n in range(50):
        manager.transfer_data("me", "peer", b"d", f"/data/{n}")

    ids = [packet.packet_id for _, packet in requester.sent]
    assert len(set(ids)) == 100
    assert ids[0] == "PKT:0"
    assert all(packet_id.startswith("PKT:") for packet_id in ids)


def test_packet_ids_unique_under_concurrency(manager, requester):
    def worker(offset):
        for i in range(100):
            manager.transfer_interest("me", "peer", b"i", offset * 1000 + i)

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    ids = [packet.packet_id for _, packet in requester.sent]
    assert len(ids) == 800
    assert len(set(ids)) == 800
    assert len(manager) == 800


def test_large_packet_uses_socket(manager, requester, oracle):
    oracle.peers.add("peer-1")

    assert manager.transfer_interest("me", "peer-1", b"x" * 81, 1) == Channel.CONNECTION_ORIENTED
    assert requester.sent[0][0] == Channel.CONNECTION_ORIENTED


def test_unsendable_packet_is_reported_and_released(manager, requester):
    channel = manager.transfer_interest("me", "peer-1", b"x" * 81, 1)

    assert channel == Channel.UNSENDABLE
    assert requester.sent == []
    assert len(requester.unsendable) == 1
    assert len(manager) == 0
    assert manager.get_stats()["unsendable"] == 1

    # The nonce is free again
    assert manager.transfer_interest("me", "peer-1", b"small", 1) == Channel.CONNECTION_LESS


def test_backup_mode_follows_link_state(backup_manager, requester, oracle, link_monitor):
    oracle.peers.add("peer-1")

    assert backup_manager.transfer_interest("me", "peer-1", b"x", 1) == Channel.CONNECTION_LESS

    link_monitor.link_established()
    assert backup_manager.link_established
    assert backup_manager.transfer_interest("me", "peer-1", b"x", 2) == Channel.CONNECTION_ORIENTED
    assert backup_manager.transfer_interest("me", "peer-2", b"x", 3) == Channel.CONNECTION_LESS

    link_monitor.link_lost()
    assert backup_manager.transfer_interest("me", "peer-1", b"x", 4) == Channel.CONNECTION_LESS


def test_link_events_do_not_touch_pending(backup_manager, link_monitor):
    backup_manager.transfer_interest("me", "peer-1", b"x", 1)

    link_monitor.link_established()
    link_monitor.link_lost()

    assert len(backup_manager) == 1


def test_stale_completion_is_ignored(manager, requester):
    assert manager.notify_transferred("PKT:404") is False

    manager.transfer_interest("me", "peer-1", b"x", 5)
    packet = requester.sent[0][1]
    assert manager.notify_transferred(packet.packet_id) is True
    assert manager.notify_transferred(packet.packet_id) is False

    assert requester.interests_transferred == [("peer-1", 5)]
    assert manager.get_stats()["stale_notifications"] == 2


def test_cancel_interest(manager, requester):
    manager.transfer_interest("me", "peer-1", b"x", 7)
    packet = requester.sent[0][1]

    assert manager.cancel_interest(7, face_id=3) is True

    assert requester.cancelled == [packet]
    assert len(manager) == 0

    # Completion arriving after the cancel is a no-op
    assert manager.notify_transferred(packet.packet_id) is False
    assert requester.interests_transferred == []


def test_cancel_unknown_nonce_is_noop(manager, requester):
    assert manager.cancel_interest(12345) is False
    assert requester.cancelled == []


def test_cancel_after_completion_is_noop(manager, requester):
    manager.transfer_interest("me", "peer-1", b"x", 8)
    requester.deliver_pending()

    assert manager.cancel_interest(8) is False
    assert requester.cancelled == []
    assert requester.interests_transferred == [("peer-1", 8)]


def test_cancel_does_not_touch_data(manager, requester):
    manager.transfer_data("me", "peer-1", b"x", "/n")

    assert manager.cancel_interest(0) is False
    assert len(manager) == 1


def test_duplicate_nonce_rejected(manager, requester):
    manager.transfer_interest("me", "peer-1", b"x", 9)

    with pytest.raises(DuplicateKey):
        manager.transfer_interest("me", "peer-2", b"y", 9)

    assert len(requester.sent) == 1
    assert len(manager) == 1


def test_duplicate_name_rejected(manager, requester):
    manager.transfer_data("me", "peer-1", b"x", "/n")

    with pytest.raises(DuplicateKey):
        manager.transfer_data("me", "peer-1", b"x", "/n")
    assert len(requester.sent) == 1


def test_transfer_requires_enable(oracle, requester):
    manager = PacketManager()

    with pytest.raises(PacketManagerError):
        manager.transfer_interest("me", "peer", b"x", 1)

    manager.enable(oracle, requester)
    manager.disable()
    with pytest.raises(PacketManagerError):
        manager.transfer_data("me", "peer", b"x", "/n")


def test_enable_is_idempotent(oracle, requester, link_monitor):
    manager = PacketManager(link_monitor=link_monitor)
    other = LoopbackRequester()

    manager.enable(oracle, requester)
    manager.enable(oracle, other)
    assert len(link_monitor) == 1

    manager.transfer_interest("me", "peer", b"x", 1)
    assert len(requester.sent) == 1
    assert other.sent == []


def test_enable_picks_up_current_link_state(oracle, requester):
    monitor = LinkMonitor()
    monitor.link_established()

    manager = PacketManager(link_monitor=monitor)
    manager.enable(oracle, requester)

    assert manager.link_established


def test_disable_keeps_pending_packets(manager, requester, oracle, link_monitor):
    link_monitor.link_established()
    manager.transfer_interest("me", "peer-1", b"x", 1)
    packet = requester.sent[0][1]

    manager.disable()
    manager.disable()

    assert not manager.is_enabled
    assert not manager.link_established
    assert len(link_monitor) == 0
    assert len(manager) == 1
    assert requester.cancelled == []

    # Link events no longer reach a disabled manager
    link_monitor.link_established()
    assert not manager.link_established

    # A completion after re-enable still resolves the packet
    manager.enable(oracle, requester)
    assert manager.notify_transferred(packet.packet_id) is True
    assert requester.interests_transferred == [("peer-1", 1)]


def test_purge_on_disable_cancels_pending(oracle, requester):
    manager = PacketManager(purge_on_disable=True)
    manager.enable(oracle, requester)
    manager.transfer_interest("me", "peer-1", b"x", 1)
    manager.transfer_data("me", "peer-1", b"y", "/n")

    manager.disable()

    assert len(manager) == 0
    assert {p.packet_id for p in requester.cancelled} == {"PKT:0", "PKT:1"}


def test_expire_pending(manager, requester):
    manager.transfer_interest("me", "peer-1", b"x", 1)
    manager.transfer_interest("me", "peer-1", b"x", 2)
    old, new = (packet for _, packet in requester.sent)
    old.created_at -= 100

    assert manager.expire_pending(max_age=50) == 1

    assert requester.cancelled == [old]
    assert manager.get_packet(new.packet_id) is new
    assert manager.expire_pending(max_age=50) == 0


def test_requester_may_reenter_manager(oracle):
    class EagerRequester(LoopbackRequester):
        def on_send_over_connection_less(self, packet):
            super().on_send_over_connection_less(packet)
            self.deliver_pending()

    requester = EagerRequester(latency_ms=0)
    manager = PacketManager(TransportSelector(TransportMode.SIZE_THRESHOLD))
    manager.enable(oracle, requester)
    requester.attach(manager)

    manager.transfer_interest("me", "peer-1", b"x", 1)

    assert requester.interests_transferred == [("peer-1", 1)]
    assert len(manager) == 0


def test_stats(manager, requester):
    manager.transfer_interest("me", "peer-1", b"x", 1)
    manager.transfer_data("me", "peer-1", b"x", "/n")
    manager.cancel_interest(1)
    requester.deliver_pending()

    stats = manager.get_stats()
    assert stats["enabled"] is True
    assert stats["mode"] == "size_threshold"
    assert stats["packets_generated"] == 2
    assert stats["transferred"] == 1
    assert stats["cancelled"] == 1
    assert stats["stale_notifications"] == 1
    assert stats["pending"] == 0


def test_cancel_waits_for_send_in_progress(oracle):
    class SlowSendRequester(LoopbackRequester):
        def __init__(self):
            super().__init__(latency_ms=0)
            self.events = []
            self.cancel_blocked = None

        def on_send_over_connection_less(self, packet):
            canceller = threading.Thread(target=manager.cancel_interest, args=(42,))
            canceller.start()
            canceller.join(timeout=0.2)
            self.cancel_blocked = canceller.is_alive()
            self.events.append(("send", packet.packet_id))
            self.canceller = canceller

        def on_cancel_packet_sent_over_connection_less(self, packet):
            self.events.append(("cancel", packet.packet_id))

    requester = SlowSendRequester()
    manager = PacketManager(TransportSelector(TransportMode.SIZE_THRESHOLD))
    manager.enable(oracle, requester)

    assert manager.transfer_interest("me", "peer", b"x" * 10, 42) == Channel.CONNECTION_LESS
    requester.canceller.join(timeout=5.0)

    assert requester.cancel_blocked is True
    assert requester.events == [("send", "PKT:0"), ("cancel", "PKT:0")]
    assert len(manager) == 0
