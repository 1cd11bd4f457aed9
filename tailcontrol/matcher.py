"""Source/destination matching derived from packet filter rules."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from tailcontrol.netset import IPSet, parse_ip_set


def _parse_or_empty(text: str) -> IPSet:
    try:
        return parse_ip_set(text)
    except ValueError:
        return IPSet()


@dataclass(frozen=True)
class Match:
    """The source and destination address sets of one filter rule."""

    srcs: IPSet
    dests: IPSet

    def srcs_contains_ips(self, ips: Iterable[object]) -> bool:
        """Return True if any of the addresses is a permitted source."""
        return any(self.srcs.contains(ip) for ip in ips)

    def dests_contains_ip(self, ips: Iterable[object]) -> bool:
        """Return True if any of the addresses is a permitted destination."""
        return any(self.dests.contains(ip) for ip in ips)


def match_from_filter_rule(rule) -> Match:
    """Build a Match from a rule with ``src_ips`` and ``dst_ports`` (each having ``ip``).

    Entries that cannot be parsed contribute no addresses.
    """
    srcs = IPSet()
    for src in rule.src_ips:
        srcs = srcs.union(_parse_or_empty(src))
    dests = IPSet()
    for dest in rule.dst_ports:
        dests = dests.union(_parse_or_empty(dest.ip))
    return Match(srcs=srcs, dests=dests)