"""Reading packets from capture files and handing them to decode and acct."""

from __future__ import annotations

import os
import struct
import sys
from typing import BinaryIO, Iterator

from trafstat import log
from trafstat.decode import LinkType, get_link_header

_GLOBAL_HEADER_LEN = 24
_RECORD_HEADER_LEN = 16
_MAX_RECORD_LEN = 262144
_LINKTYPE_MASK = 0x03FFFFFF

# Magic numbers as they appear on disk, mapped to struct byte order.
_MAGICS = {
    b"\xd4\xc3\xb2\xa1": "<",  # microsecond timestamps, little-endian
    b"\xa1\xb2\xc3\xd4": ">",  # microsecond timestamps, big-endian
    b"\x4d\x3c\xb2\xa1": "<",  # nanosecond timestamps, little-endian
    b"\xa1\xb2\x3c\x4d": ">",  # nanosecond timestamps, big-endian
}

# File link types that differ from the data link type numbers in use.
_LINKTYPE_TO_DLT = {101: int(LinkType.RAW)}


class CaptureError(Exception):
    """Raised when a capture file cannot be opened, read or decoded."""


def _packets(stream: BinaryIO, order: str, snaplen: int) -> Iterator[bytes]:
    limit = max(snaplen, _MAX_RECORD_LEN)
    while True:
        header = stream.read(_RECORD_HEADER_LEN) or b""
        if not header:
            return
        if len(header) != _RECORD_HEADER_LEN:
            raise CaptureError(
                f"truncated dump file; tried to read {_RECORD_HEADER_LEN} "
                f"header bytes, only got {len(header)}"
            )
        _sec, _frac, caplen, _origlen = struct.unpack(order + "IIII", header)
        if caplen > limit:
            raise CaptureError(
                f"invalid packet capture length {caplen}, bigger than "
                f"snaplen of {limit}"
            )
        data = stream.read(caplen) or b""
        if len(data) != caplen:
            raise CaptureError(
                f"truncated dump file; tried to read {caplen} captured "
                f"bytes, only got {len(data)}"
            )
        yield bytes(data)


def read_pcap(stream: BinaryIO) -> tuple[int, Iterator[bytes]]:
    """Read a pcap file header; return its link type and an iterator of frames.

    The frames are read lazily, each as the captured bytes of one packet.
    """
    header = stream.read(_GLOBAL_HEADER_LEN) or b""
    if len(header) != _GLOBAL_HEADER_LEN:
        raise CaptureError(
            f"truncated dump file; tried to read {_GLOBAL_HEADER_LEN} file "
            f"header bytes, only got {len(header)}"
        )
    order = _MAGICS.get(header[:4])
    if order is None:
        raise CaptureError("unknown file format")
    _major, _minor, _zone, _sigfigs, snaplen, network = struct.unpack(
        order + "HHiIII", header[4:]
    )
    linktype = network & _LINKTYPE_MASK
    linktype = _LINKTYPE_TO_DLT.get(linktype, linktype)
    return linktype, _packets(stream, order, snaplen)


def hexdump(data: bytes, header_length: int) -> str:
    """Format a packet as hex, with "|" marking the end of the link header."""
    parts = [f"packet of {len(data)} bytes:\n"]
    col = 0
    for i, byte in enumerate(data):
        if col == 0:
            parts.append(" ")
        parts.append(f"{byte:02x}")
        parts.append("|" if i + 1 == header_length else " ")
        col += 3
        if col >= 72:
            parts.append("\n")
            col = 0
    if col != 0:
        parts.append("\n")
    parts.append("\n")
    return "".join(parts)


def process_capfile(path, accountant, want_pppoe: bool = False,
                    dump: bool = False) -> int:
    """Decode and account every packet in a capture file.

    Returns the number of packets that were handed to accounting.
    """
    try:
        stream = open(os.fspath(path), "rb")
    except OSError as exc:
        raise CaptureError(f"pcap_open_offline(): {path}: {exc.strerror}") from exc

    accounted = 0
    with stream:
        linktype, packets = read_pcap(stream)
        link_header = get_link_header(linktype)
        if link_header is None:
            raise CaptureError(f"unknown linktype {linktype}")
        for data in packets:
            if dump:
                sys.stdout.write(hexdump(data, link_header.header_length))
            summary = link_header.decode(data, want_pppoe)
            if summary is not None:
                accountant.account(summary, ())
                accounted += 1
    log.verbose(f"accounted for {accounted} packets from {path}")
    return accounted