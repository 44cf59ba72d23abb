"""Binary helpers for the database file: big-endian integers and addresses."""

from __future__ import annotations

from typing import BinaryIO

from trafstat.addr import Address, Family

EXPORT_FILE_HEADER = bytes([0xDA, 0x31, 0x41, 0x59])
EXPORT_TAG_HOSTS_VER1 = bytes([0xDA, ord("H"), ord("S"), 0x01])
EXPORT_TAG_GRAPH_VER1 = bytes([0xDA, ord("G"), ord("R"), 0x01])


class FormatError(ValueError):
    """Raised when a database file is short, malformed or cannot be written."""


def _tell(stream: BinaryIO) -> int | None:
    try:
        return stream.tell()
    except (OSError, AttributeError, ValueError):
        return None


def _where(position: int | None) -> str:
    return "" if position is None else f"at pos {position}: "


def read_exact(stream: BinaryIO, length: int) -> bytes:
    """Read exactly length bytes or raise FormatError."""
    position = _tell(stream)
    data = stream.read(length)
    if data is None:
        data = b""
    if len(data) != length:
        raise FormatError(
            f"{_where(position)}tried to read {length} bytes, got {len(data)}"
        )
    return bytes(data)


def read_u8(stream: BinaryIO) -> int:
    """Read one byte."""
    return read_exact(stream, 1)[0]


def expect_u8(stream: BinaryIO, expected: int) -> int:
    """Read one byte and raise FormatError unless it equals expected."""
    position = _tell(stream)
    got = read_u8(stream)
    if got != expected:
        raise FormatError(
            f"{_where(position)}expecting 0x{expected:02x}, got 0x{got:02x}"
        )
    return got


def read_u16(stream: BinaryIO) -> int:
    """Read a network-order 16-bit unsigned integer."""
    return int.from_bytes(read_exact(stream, 2), "big")


def read_u32(stream: BinaryIO) -> int:
    """Read a network-order 32-bit unsigned integer."""
    return int.from_bytes(read_exact(stream, 4), "big")


def read_u64(stream: BinaryIO) -> int:
    """Read a network-order 64-bit unsigned integer."""
    return int.from_bytes(read_exact(stream, 8), "big")


def read_addr_ipv4(stream: BinaryIO) -> Address:
    """Read a bare 4-byte IPv4 address, as stored by old host records."""
    return Address(Family.IPv4, read_exact(stream, 4))


def read_addr(stream: BinaryIO) -> Address:
    """Read an address stored as a family byte followed by its bytes."""
    position = _tell(stream)
    family = read_u8(stream)
    try:
        fam = Family(family)
    except ValueError:
        raise FormatError(
            f"{_where(position)}unknown address family {family}"
        ) from None
    return Address(fam, read_exact(stream, fam.size))


def read_file_header(stream: BinaryIO, expected: bytes) -> bytes:
    """Read a 4-byte header and raise FormatError unless it matches."""
    expected = bytes(expected)
    got = read_exact(stream, len(expected))
    if got != expected:
        raise FormatError(
            f"bad header: expecting {expected.hex()}, got {got.hex()}"
        )
    return got


def _write(stream: BinaryIO, data: bytes) -> None:
    try:
        written = stream.write(data)
    except OSError as exc:
        raise FormatError(f"couldn't write {len(data)} bytes: {exc}") from exc
    if written is not None and written != len(data):
        raise FormatError(
            f"tried to write {len(data)} bytes but wrote {written}"
        )


def write_u8(stream: BinaryIO, value: int) -> None:
    """Write one byte."""
    _write(stream, int(value).to_bytes(1, "big"))


def write_u16(stream: BinaryIO, value: int) -> None:
    """Write a 16-bit unsigned integer in network order."""
    _write(stream, int(value).to_bytes(2, "big"))


def write_u32(stream: BinaryIO, value: int) -> None:
    """Write a 32-bit unsigned integer in network order."""
    _write(stream, int(value).to_bytes(4, "big"))


def write_u64(stream: BinaryIO, value: int) -> None:
    """Write a 64-bit unsigned integer in network order."""
    _write(stream, int(value).to_bytes(8, "big"))


def write_addr(stream: BinaryIO, address: Address) -> None:
    """Write an address as its family byte followed by its bytes."""
    write_u8(stream, int(address.family))
    _write(stream, address.packed)