"""Machines, their owners and host information as seen by the policy engine."""

from __future__ import annotations

import ipaddress
import re
from collections.abc import Iterable
from dataclasses import dataclass, field

from tailcontrol.matcher import match_from_filter_rule

_INVALID_USER_CHARS = re.compile(r"[^a-z0-9\-.]+")
_LABEL_MAX_LENGTH = 63


def _as_address(value: object):
    if isinstance(value, (ipaddress.IPv4Address, ipaddress.IPv6Address)):
        return value
    return ipaddress.ip_address(value)


@dataclass
class User:
    """The owner of a machine."""

    name: str = ""
    id: int = 0


@dataclass
class HostInfo:
    """Information a client reports about itself."""

    os: str = ""
    hostname: str = ""
    request_tags: list[str] = field(default_factory=list)
    routable_ips: list[str] = field(default_factory=list)


@dataclass
class Machine:
    """A registered node of the network."""

    id: int = 0
    hostname: str = ""
    given_name: str = ""
    user: User = field(default_factory=User)
    ip_addresses: list = field(default_factory=list)
    host_info: HostInfo = field(default_factory=HostInfo)
    forced_tags: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.ip_addresses = [_as_address(address) for address in self.ip_addresses]

    def can_access(self, rules: Iterable, peer: Machine) -> bool:
        """Return True if any rule lets this machine reach ``peer``."""
        for rule in rules:
            match = match_from_filter_rule(rule)
            if not match.srcs_contains_ips(self.ip_addresses):
                continue
            if match.dests_contains_ip(peer.ip_addresses):
                return True
        return False


def filter_by_ip(machines: Iterable[Machine], address: object) -> list[Machine]:
    """Return the machines that hold the given address."""
    wanted = _as_address(address)
    return [machine for machine in machines if wanted in machine.ip_addresses]


def normalize_to_fqdn_rules(name: str, strip_email_domain: bool) -> str:
    """Turn a user name or e-mail address into a DNS-safe name.

    Raises ValueError if a resulting label is longer than 63 characters.
    """
    name = name.lower().replace("'", "")
    at = name.find("@")
    if strip_email_domain and at > 0:
        name = name[:at]
    else:
        name = name.replace("@", ".")
    name = _INVALID_USER_CHARS.sub("-", name)
    for label in name.split("."):
        if len(label) > _LABEL_MAX_LENGTH:
            raise ValueError(
                f"label {label} is more than {_LABEL_MAX_LENGTH} chars: invalid user name"
            )
    return name