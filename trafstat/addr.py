"""Compound IPv4/IPv6 addresses: parsing, formatting and netmask checks."""

from __future__ import annotations

import enum
import ipaddress
import socket
from dataclasses import dataclass


class Family(enum.IntEnum):
    """Address family, numbered as it is stored in database files."""

    IPv4 = 4
    IPv6 = 6

    @property
    def size(self) -> int:
        """Number of bytes in an address of this family."""
        return 4 if self is Family.IPv4 else 16

    @property
    def socket_family(self) -> int:
        return socket.AF_INET if self is Family.IPv4 else socket.AF_INET6


class AddressError(ValueError):
    """Raised when a string cannot be parsed as a numeric address."""


@dataclass(frozen=True, slots=True)
class Address:
    """An IPv4 or IPv6 address held as raw bytes in network order."""

    family: Family
    packed: bytes

    def __post_init__(self) -> None:
        family = Family(self.family)
        object.__setattr__(self, "family", family)
        packed = bytes(self.packed)
        if len(packed) != family.size:
            raise ValueError(
                f"{family.name} address needs {family.size} bytes, "
                f"got {len(packed)}"
            )
        object.__setattr__(self, "packed", packed)

    @classmethod
    def parse(cls, text: str) -> Address:
        """Parse a numeric IPv4 or IPv6 address; no name lookups are done."""
        try:
            parsed = ipaddress.ip_address(text)
        except ValueError as exc:
            raise AddressError(
                f"couldn't parse {text!r}: Name or service not known"
            ) from exc
        family = Family.IPv4 if parsed.version == 4 else Family.IPv6
        return cls(family, parsed.packed)

    def __str__(self) -> str:
        return socket.inet_ntop(self.family.socket_family, self.packed)

    def _check_family(self, other: Address, role: str) -> None:
        if other.family is not self.family:
            raise ValueError(
                f"family mismatch between address ({self.family.name}) "
                f"and {role} ({other.family.name})"
            )

    def masked(self, mask: Address) -> Address:
        """Return this address with every bit outside the mask cleared."""
        self._check_family(mask, "mask")
        return Address(
            self.family,
            bytes(a & m for a, m in zip(self.packed, mask.packed)),
        )

    def inside(self, net: Address, mask: Address) -> bool:
        """True when this address lies in the network net/mask."""
        self._check_family(net, "network")
        self._check_family(mask, "mask")
        return self.masked(mask) == net