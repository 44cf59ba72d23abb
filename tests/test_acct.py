import time

import pytest

from trafstat.acct import Accountant, LocalNetwork, parse_localnet
from trafstat.addr import Address
from trafstat.daylog import DayLog
from trafstat.decode import PacketSummary
from trafstat.graphs import Direction, GraphDB
from trafstat.log import FatalError

START = 1_300_000_000


class FakeClock:
    def __init__(self, now: int) -> None:
        self.now = now

    def real(self) -> int:
        return self.now

    def mono(self) -> int:
        return self.now

    def localtime(self, when: int) -> time.struct_time:
        return time.gmtime(when)


def packet(src, dst, length=100, packets=1):
    return PacketSummary(
        src=Address.parse(src), dst=Address.parse(dst),
        length=length, proto=6, packets=packets,
    )


def current(graph, direction):
    bars = graph.bars_in if direction is Direction.IN else graph.bars_out
    return bars[graph.pos]


def test_prefix_and_dotted_mask_agree():
    assert parse_localnet("10.1.2.3/8") == parse_localnet("10.1.2.3/255.0.0.0")


def test_network_is_masked():
    net = parse_localnet("192.168.1.77/24")
    assert net.net == Address.parse("192.168.1.0")
    assert net.mask == Address.parse("255.255.255.0")


def test_ipv6_prefix_membership():
    net = parse_localnet("2001:0200::/32")
    assert Address.parse("2001:0200::3eff:feb1:44d7") in net
    assert Address.parse("2001:0201::1") not in net
    assert Address.parse("192.168.1.2") not in net


def test_zero_prefix_contains_everything():
    net = parse_localnet("10.0.0.0/0")
    assert Address.parse("8.8.8.8") in net
    assert net.mask == Address.parse("0.0.0.0")


@pytest.mark.parametrize(
    "spec",
    ["10.0.0.0", "10.0.0.0/8/8", "10.0.0.0/33", "::/129",
     "10.0.0.0/ffff::", "bogus/8", "10.0.0.0/1x"],
)
def test_bad_specs_are_fatal(spec):
    with pytest.raises(FatalError):
        parse_localnet(spec)


def test_is_local_uses_local_ips_and_networks():
    acct = Accountant(None, None, [parse_localnet("192.168.0.0/16")])
    me = Address.parse("203.0.113.5")
    assert acct.is_local(Address.parse("192.168.5.5"))
    assert acct.is_local(me, [me])
    assert not acct.is_local(me)


def test_outgoing_traffic_goes_to_graphs_and_totals():
    graphs = GraphDB(FakeClock(START))
    acct = Accountant(graphs, None, [parse_localnet("192.168.0.0/16")])
    result = acct.account(packet("192.168.1.2", "203.0.113.9", length=100))
    assert result is Direction.OUT
    assert acct.total_packets == 1
    assert acct.total_bytes == 100
    for graph in graphs.graphs:
        assert current(graph, Direction.OUT) == 100
        assert current(graph, Direction.IN) == 0


def test_incoming_traffic_with_local_ips():
    graphs = GraphDB(FakeClock(START))
    acct = Accountant(graphs, None)
    me = Address.parse("203.0.113.5")
    result = acct.account(packet("198.51.100.1", "203.0.113.5", length=60), [me])
    assert result is Direction.IN
    assert current(graphs.seconds, Direction.IN) == 60


def test_internal_and_foreign_traffic_not_graphed():
    graphs = GraphDB(FakeClock(START))
    acct = Accountant(graphs, None, [parse_localnet("10.0.0.0/8")])
    assert acct.account(packet("10.0.0.1", "10.0.0.2", length=70)) is None
    assert acct.account(packet("198.51.100.1", "198.51.100.2", length=30)) is None
    assert acct.total_packets == 2
    assert acct.total_bytes == 70 + 30
    assert sum(graphs.seconds.bars_in) + sum(graphs.seconds.bars_out) == 0


def test_daylog_receives_boundary_traffic(tmp_path):
    daylog = DayLog(tmp_path / "day.log", FakeClock(START))
    acct = Accountant(None, daylog, [parse_localnet("10.0.0.0/8")])
    acct.account(packet("10.1.1.1", "198.51.100.7", length=40))
    acct.account(packet("198.51.100.7", "10.1.1.1", length=25))
    assert (daylog.bytes_out, daylog.packets_out) == (40, 1)
    assert (daylog.bytes_in, daylog.packets_in) == (25, 1)


def test_packet_count_field_is_used():
    acct = Accountant()
    acct.account(packet("198.51.100.1", "198.51.100.2", packets=5))
    assert acct.total_packets == 5


def test_reset_clears_totals_and_graphs():
    graphs = GraphDB(FakeClock(START))
    acct = Accountant(graphs, None, [parse_localnet("10.0.0.0/8")])
    acct.account(packet("10.0.0.1", "198.51.100.2", length=90))
    acct.reset()
    assert (acct.total_packets, acct.total_bytes) == (0, 0)
    assert sum(graphs.seconds.bars_out) == 0


def test_later_network_replaces_same_family():
    first = parse_localnet("10.0.0.0/8")
    second = parse_localnet("172.16.0.0/12")
    acct = Accountant(None, None, [first, second])
    assert acct.is_local(Address.parse("172.16.1.1"))
    assert not acct.is_local(Address.parse("10.0.0.1"))
    assert isinstance(acct.local_networks[first.net.family], LocalNetwork)