"""Traffic accounting: totals, and graph/daylog input for local traffic."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from trafstat import log
from trafstat.addr import Address, AddressError
from trafstat.conv import split
from trafstat.decode import PacketSummary
from trafstat.graphs import Direction
from trafstat.log import FatalError

_U64 = 1 << 64


@dataclass(frozen=True)
class LocalNetwork:
    """A network address together with its mask."""

    net: Address
    mask: Address

    def __contains__(self, address: object) -> bool:
        if not isinstance(address, Address):
            return False
        if address.family is not self.net.family:
            return False
        return address.inside(self.net, self.mask)

    def __str__(self) -> str:
        return f"{self.net}/{self.mask}"


def _parse_address(text: str) -> Address:
    try:
        return Address.parse(text)
    except AddressError as exc:
        raise FatalError(str(exc)) from exc


def parse_localnet(spec: str) -> LocalNetwork:
    """Parse "network/netmask" or "network/prefixlen" into a LocalNetwork."""
    tokens = split("/", spec)
    if len(tokens) != 2:
        raise FatalError(f'expecting network/netmask, got "{spec}"')
    net = _parse_address(tokens[0])
    mask_text = tokens[1]

    if mask_text.isascii() and mask_text.isdigit():
        bits = net.family.size * 8
        prefix = int(mask_text)
        if prefix > bits:
            raise FatalError(f'invalid network prefix length "{mask_text}"')
        full = (1 << bits) - 1
        value = full ^ ((1 << (bits - prefix)) - 1)
        mask = Address(net.family, value.to_bytes(net.family.size, "big"))
    else:
        mask = _parse_address(mask_text)
        if mask.family is not net.family:
            raise FatalError("family mismatch between net and mask")

    net = net.masked(mask)
    log.verbose(f"local network address: {net}")
    log.verbose(f"   local network mask: {mask}")
    return LocalNetwork(net, mask)


class Accountant:
    """Counts every packet and feeds traffic crossing the local boundary
    into the graphs and the daily log.

    At most one local network is kept per address family; a later one
    replaces an earlier one.
    """

    def __init__(self, graphs=None, daylog=None,
                 local_networks: Iterable[LocalNetwork] = ()) -> None:
        self.graphs = graphs
        self.daylog = daylog
        self.local_networks: dict = {}
        for network in local_networks:
            self.local_networks[network.net.family] = network
        self.total_packets = 0
        self.total_bytes = 0

    def is_local(self, address: Address, local_ips: Iterable[Address] = ()) -> bool:
        """True if address is one of local_ips or inside a local network."""
        if address in set(local_ips):
            return True
        network = self.local_networks.get(address.family)
        return network is not None and address in network

    def _record(self, amount: int, direction: Direction) -> None:
        if self.daylog is not None:
            self.daylog.account(amount, direction)
        if self.graphs is not None:
            self.graphs.account(amount, direction)

    def account(self, summary: PacketSummary,
                local_ips: Iterable[Address] = ()) -> Direction | None:
        """Account for one packet summary.

        Returns the direction recorded in the graphs, or None when the
        traffic does not cross the local boundary.
        """
        local_ips = set(local_ips)
        self.total_packets = (self.total_packets + summary.packets) % _U64
        self.total_bytes = (self.total_bytes + summary.length) % _U64

        going_out = self.is_local(summary.src, local_ips)
        coming_in = self.is_local(summary.dst, local_ips)

        # Traffic staying within the network isn't counted.
        if going_out and not coming_in:
            self._record(summary.length, Direction.OUT)
            return Direction.OUT
        if coming_in and not going_out:
            self._record(summary.length, Direction.IN)
            return Direction.IN
        return None

    def reset(self) -> None:
        """Clear the totals and the graphs."""
        if self.graphs is not None:
            self.graphs.reset()
        self.total_packets = 0
        self.total_bytes = 0