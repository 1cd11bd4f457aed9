"""Immutable sets of IP addresses stored as minimal lists of prefixes."""

from __future__ import annotations

import ipaddress
from collections.abc import Iterable, Iterator
from typing import Union

Network = Union[ipaddress.IPv4Network, ipaddress.IPv6Network]
Address = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]

_ALL_V4 = ipaddress.ip_network("0.0.0.0/0")
_ALL_V6 = ipaddress.ip_network("::/0")


def _as_network(item: object) -> Network:
    if isinstance(item, (ipaddress.IPv4Network, ipaddress.IPv6Network)):
        return item
    if isinstance(item, (ipaddress.IPv4Address, ipaddress.IPv6Address)):
        return ipaddress.ip_network(item)
    if isinstance(item, str):
        return ipaddress.ip_network(item, strict=False)
    raise TypeError(f"cannot interpret {item!r} as an IP network")


def _collapse(networks: Iterable[Network]) -> tuple[Network, ...]:
    return tuple(sorted(ipaddress.collapse_addresses(networks)))


class IPSet:
    """A set of IPv4 and IPv6 addresses.

    The set is normalised on construction: overlapping and adjacent prefixes
    are merged, and IPv4 prefixes are listed before IPv6 prefixes.
    """

    __slots__ = ("_v4", "_v6")

    def __init__(self, networks: Iterable[object] = ()) -> None:
        v4: list[Network] = []
        v6: list[Network] = []
        for item in networks:
            network = _as_network(item)
            (v4 if network.version == 4 else v6).append(network)
        self._v4 = _collapse(v4)
        self._v6 = _collapse(v6)

    def contains(self, address: object) -> bool:
        """Return True if the address lies within one of the set's prefixes."""
        if isinstance(address, str):
            address = ipaddress.ip_address(address)
        if not isinstance(address, (ipaddress.IPv4Address, ipaddress.IPv6Address)):
            raise TypeError(f"not an IP address: {address!r}")
        candidates = self._v4 if address.version == 4 else self._v6
        return any(address in network for network in candidates)

    def prefixes(self) -> list[Network]:
        """Return the minimal sorted list of prefixes covering the set."""
        return [*self._v4, *self._v6]

    def union(self, other: IPSet) -> IPSet:
        """Return a new set holding the addresses of both sets."""
        return IPSet([*self.prefixes(), *other.prefixes()])

    __or__ = union

    def __contains__(self, address: object) -> bool:
        return self.contains(address)

    def __iter__(self) -> Iterator[Network]:
        return iter(self.prefixes())

    def __len__(self) -> int:
        return len(self._v4) + len(self._v6)

    def __bool__(self) -> bool:
        return bool(self._v4 or self._v6)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, IPSet):
            return NotImplemented
        return self._v4 == other._v4 and self._v6 == other._v6

    def __hash__(self) -> int:
        return hash((self._v4, self._v6))

    def __repr__(self) -> str:
        inner = ", ".join(str(network) for network in self.prefixes())
        return f"IPSet([{inner}])"


def parse_ip_set(text: str) -> IPSet:
    """Parse "*", an address, a CIDR prefix or a "first-last" range.

    Raises ValueError if the text is none of these.
    """
    if text == "*":
        return IPSet([_ALL_V4, _ALL_V6])
    if "-" in text:
        first_text, _, last_text = text.partition("-")
        first = ipaddress.ip_address(first_text)
        last = ipaddress.ip_address(last_text)
        if first.version != last.version:
            raise ValueError(f"range mixes address families: {text!r}")
        if last < first:
            raise ValueError(f"range end precedes start: {text!r}")
        return IPSet(ipaddress.summarize_address_range(first, last))
    return IPSet([ipaddress.ip_network(text, strict=False)])