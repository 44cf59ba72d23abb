"""Packet decoding: turn a captured frame into a summary for accounting."""

from __future__ import annotations

import enum
import socket
import struct
import sys
from dataclasses import dataclass, field
from typing import Callable, Optional

from trafstat import log
from trafstat.addr import Address, Family

ETHER_ADDR_LEN = 6
IPPROTO_TCP = 6
IPPROTO_UDP = 17
IPPROTO_INVALID = 254  # means: don't do protocol or port accounting
IPPROTO_OSPF = 89

ETHER_HDR_LEN = 14
NULL_HDR_LEN = 4
PPP_HDR_LEN = 4
PPPOE_HDR_LEN = 8
SLL_HDR_LEN = 16
RAW_HDR_LEN = 0
IP_HDR_LEN = 20
IPV6_HDR_LEN = 40
TCP_HDR_LEN = 20
UDP_HDR_LEN = 8

ETHERTYPE_IP = 0x0800
ETHERTYPE_ARP = 0x0806
ETHERTYPE_IPV6 = 0x86DD
ETHERTYPE_PPPOE = 0x8864

IPV6_VERSION = 0x60
IPV6_VERSION_MASK = 0xF0

# TH_FIN | TH_SYN | TH_RST | TH_PUSH | TH_ACK | TH_URG
TCP_FLAGS_MASK = 0x01 | 0x02 | 0x04 | 0x08 | 0x10 | 0x20


class LinkType(enum.IntEnum):
    """Data link types understood by the decoder (libpcap DLT numbers)."""

    NULL = 0
    EN10MB = 1
    PPP = 9
    RAW = 12
    PPP_ETHER = 51
    LOOP = 108
    LINUX_SLL = 113


@dataclass
class PacketSummary:
    """What accounting needs to know about one packet."""

    src: Address
    dst: Address
    length: int
    proto: int
    packets: int = 1
    tcp_flags: int = 0
    src_port: int = 0
    dst_port: int = 0
    src_mac: bytes = bytes(ETHER_ADDR_LEN)
    dst_mac: bytes = bytes(ETHER_ADDR_LEN)


_Decoder = Callable[[bytes, bool], Optional[PacketSummary]]


@dataclass(frozen=True)
class LinkHeader:
    """A link type, the length of its header and the function that decodes it."""

    linktype: int
    header_length: int
    decoder: _Decoder = field(repr=False, compare=False)

    def decode(self, data: bytes, want_pppoe: bool = False) -> PacketSummary | None:
        """Decode one captured frame; None means it should not be accounted."""
        return self.decoder(bytes(data), bool(want_pppoe))


def _helper_ip_deeper(data: bytes, summary: PacketSummary) -> None:
    if summary.proto == IPPROTO_TCP:
        if len(data) < TCP_HDR_LEN:
            log.verbose(f"tcp: packet too short ({len(data)} bytes)")
            summary.proto = IPPROTO_INVALID
            return
        summary.src_port, summary.dst_port = struct.unpack_from("!HH", data)
        summary.tcp_flags = data[13] & TCP_FLAGS_MASK
    elif summary.proto == IPPROTO_UDP:
        if len(data) < UDP_HDR_LEN:
            log.verbose(f"udp: packet too short ({len(data)} bytes)")
            summary.proto = IPPROTO_INVALID
            return
        summary.src_port, summary.dst_port = struct.unpack_from("!HH", data)


def _helper_ipv6(data: bytes) -> PacketSummary | None:
    if len(data) < IPV6_HDR_LEN:
        log.verbose(f"ipv6: packet too short ({len(data)} bytes)")
        return None
    version = data[0] & IPV6_VERSION_MASK
    if version != IPV6_VERSION:
        log.verbose(
            f"ipv6: bad version ({version:02x}, expecting {IPV6_VERSION:02x})"
        )
        return None
    (payload_length,) = struct.unpack_from("!H", data, 4)
    summary = PacketSummary(
        src=Address(Family.IPv6, data[8:24]),
        dst=Address(Family.IPv6, data[24:40]),
        # IPv6 carries the payload length, which excludes the header.
        length=payload_length + IPV6_HDR_LEN,
        proto=data[6],
    )
    _helper_ip_deeper(data[IPV6_HDR_LEN:], summary)
    return summary


def _helper_ip(data: bytes) -> PacketSummary | None:
    if len(data) < IP_HDR_LEN:
        log.verbose(f"ip: packet too short ({len(data)} bytes)")
        return None
    version = data[0] >> 4
    if version == 6:
        return _helper_ipv6(data)
    if version != 4:
        log.verbose(f"ip: version {version} (expecting 4 or 6)")
        return None
    (total_length,) = struct.unpack_from("!H", data, 2)
    summary = PacketSummary(
        src=Address(Family.IPv4, data[12:16]),
        dst=Address(Family.IPv4, data[16:20]),
        length=total_length,
        proto=data[9],
    )
    _helper_ip_deeper(data[IP_HDR_LEN:], summary)
    return summary


def _helper_pppoe(data: bytes) -> PacketSummary | None:
    if len(data) < PPPOE_HDR_LEN:
        log.verbose(f"pppoe: packet too short ({len(data)} bytes)")
        return None
    if data[1] != 0x00:
        log.verbose(f"pppoe: code = 0x{data[1]:02x}, expecting 0; ignoring.")
        return None
    protocol = data[6:8]
    if protocol in (b"\xc0\x21", b"\xc0\x25"):  # LCP, LQR
        return None
    if protocol == b"\x00\x21":
        return _helper_ip(data[PPPOE_HDR_LEN:])
    log.verbose(
        f"pppoe: ignoring non-IP PPPoE packet (0x{data[6]:02x}{data[7]:02x})"
    )
    return None


def _decode_ether(data: bytes, want_pppoe: bool) -> PacketSummary | None:
    if len(data) < ETHER_HDR_LEN:
        log.verbose(f"ether: packet too short ({len(data)} bytes)")
        return None
    dst_mac = data[0:6]
    src_mac = data[6:12]
    (ethertype,) = struct.unpack_from("!H", data, 12)
    payload = data[ETHER_HDR_LEN:]
    if ethertype in (ETHERTYPE_IP, ETHERTYPE_IPV6):
        if want_pppoe:
            log.verbose("ether: discarded IP packet, expecting PPPoE instead")
            return None
        summary = _helper_ip(payload)
    elif ethertype == ETHERTYPE_PPPOE:
        if not want_pppoe:
            log.verbose("ether: got PPPoE frame: maybe you want --pppoe")
            return None
        summary = _helper_pppoe(payload)
    elif ethertype == ETHERTYPE_ARP:
        return None
    else:
        log.verbose(f"ether: unknown protocol (0x{ethertype:04x})")
        return None
    if summary is not None:
        summary.src_mac = src_mac
        summary.dst_mac = dst_mac
    return summary


def _decode_family_prefixed(name: str, data: bytes) -> PacketSummary | None:
    if len(data) < NULL_HDR_LEN:
        log.verbose(f"{name}: packet too short ({len(data)} bytes)")
        return None
    family = int.from_bytes(data[:NULL_HDR_LEN], sys.byteorder)
    if family == socket.AF_INET:
        return _helper_ip(data[NULL_HDR_LEN:])
    if family == socket.AF_INET6:
        return _helper_ipv6(data[NULL_HDR_LEN:])
    log.verbose(f"{name}: unknown family (0x{family:04x})")
    return None


def _decode_loop(data: bytes, want_pppoe: bool) -> PacketSummary | None:
    return _decode_family_prefixed("loop", data)


def _decode_null(data: bytes, want_pppoe: bool) -> PacketSummary | None:
    return _decode_family_prefixed("null", data)


def _decode_ppp(data: bytes, want_pppoe: bool) -> PacketSummary | None:
    if len(data) < PPPOE_HDR_LEN:
        log.verbose(f"ppp: packet too short ({len(data)} bytes)")
        return None
    if data[2] == 0x00 and data[3] == 0x21:
        return _helper_ip(data[PPP_HDR_LEN:])
    log.verbose("ppp: non-IP PPP packet; ignoring.")
    return None


def _decode_pppoe(data: bytes, want_pppoe: bool) -> PacketSummary | None:
    return _helper_pppoe(data)


def _decode_linux_sll(data: bytes, want_pppoe: bool) -> PacketSummary | None:
    if len(data) < SLL_HDR_LEN:
        log.verbose(f"linux_sll: packet too short ({len(data)} bytes)")
        return None
    (ethertype,) = struct.unpack_from("!H", data, 14)
    if ethertype in (ETHERTYPE_IP, ETHERTYPE_IPV6):
        return _helper_ip(data[SLL_HDR_LEN:])
    if ethertype != ETHERTYPE_ARP:
        log.verbose(f"linux_sll: unknown protocol (0x{ethertype:04x})")
    return None


def _decode_raw(data: bytes, want_pppoe: bool) -> PacketSummary | None:
    return _helper_ip(data)


_LINK_HEADERS = {
    header.linktype: header
    for header in (
        LinkHeader(LinkType.EN10MB, ETHER_HDR_LEN, _decode_ether),
        LinkHeader(LinkType.LOOP, NULL_HDR_LEN, _decode_loop),
        LinkHeader(LinkType.NULL, NULL_HDR_LEN, _decode_null),
        LinkHeader(LinkType.PPP, PPP_HDR_LEN, _decode_ppp),
        LinkHeader(LinkType.PPP_ETHER, PPPOE_HDR_LEN, _decode_pppoe),
        LinkHeader(LinkType.LINUX_SLL, SLL_HDR_LEN, _decode_linux_sll),
        LinkHeader(LinkType.RAW, RAW_HDR_LEN, _decode_raw),
    )
}


def get_link_header(linktype: int) -> LinkHeader | None:
    """Return the link header record for a link type, or None if unknown."""
    return _LINK_HEADERS.get(int(linktype))


def snaplen_for(link_header: LinkHeader) -> int:
    """Minimum capture length needed to decode up to the TCP/UDP headers."""
    return link_header.header_length + IPV6_HDR_LEN + max(TCP_HDR_LEN, UDP_HDR_LEN)