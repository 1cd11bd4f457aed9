"""Packet filter and SSH rule records handed to clients."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta

_PORT_MIN = 0
_PORT_MAX = 65535


@dataclass
class PortRange:
    """An inclusive range of TCP/UDP ports."""

    first: int = 0
    last: int = 0

    def __post_init__(self) -> None:
        for value in (self.first, self.last):
            if not _PORT_MIN <= value <= _PORT_MAX:
                raise ValueError(
                    f"port {value} is outside {_PORT_MIN}-{_PORT_MAX}"
                )


@dataclass
class NetPortRange:
    """A destination: an address or prefix together with a port range."""

    ip: str = ""
    ports: PortRange = field(default_factory=PortRange)


@dataclass
class FilterRule:
    """Traffic from any of ``src_ips`` to any of ``dst_ports`` is allowed.

    An empty ``ip_proto`` means the client's default protocol set.
    """

    src_ips: list[str] = field(default_factory=list)
    dst_ports: list[NetPortRange] = field(default_factory=list)
    ip_proto: list[int] = field(default_factory=list)


@dataclass
class SSHAction:
    """What happens when an SSH rule matches."""

    message: str = ""
    reject: bool = False
    accept: bool = False
    session_duration: timedelta = timedelta(0)
    allow_agent_forwarding: bool = False
    hold_and_delegate: str = ""
    allow_local_port_forwarding: bool = False


@dataclass
class SSHPrincipal:
    """Who an SSH rule applies to: a node address, a user login, or anyone."""

    node_ip: str = ""
    user_login: str = ""
    any: bool = False


@dataclass
class SSHRule:
    """An SSH access rule: principals, allowed local users and the action."""

    principals: list[SSHPrincipal] = field(default_factory=list)
    ssh_users: dict[str, str] = field(default_factory=dict)
    action: SSHAction | None = None