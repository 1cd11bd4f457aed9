"""ACL policy documents and the errors raised while evaluating them."""

from __future__ import annotations

import ipaddress
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Union

import yaml

from tailcontrol import hujson

Network = Union[ipaddress.IPv4Network, ipaddress.IPv6Network]


class PolicyError(ValueError):
    """Base class for errors in an ACL policy."""


class EmptyPolicyError(PolicyError):
    """The policy defines no groups, hosts or ACLs."""

    def __init__(self, message: str = "empty policy") -> None:
        super().__init__(message)


class InvalidActionError(PolicyError):
    """An ACL has an action other than ``accept``."""

    def __init__(self, message: str = "invalid action") -> None:
        super().__init__(message)


class InvalidGroupError(PolicyError):
    """A group is undefined, nested or holds an unusable member."""

    def __init__(self, message: str = "invalid group") -> None:
        super().__init__(message)


class InvalidTagError(PolicyError):
    """A tag has no owner."""

    def __init__(self, message: str = "invalid tag") -> None:
        super().__init__(message)


class InvalidPortFormatError(PolicyError):
    """A destination's port part cannot be parsed."""

    def __init__(self, message: str = "invalid port format") -> None:
        super().__init__(message)


class WildcardRequiredError(PolicyError):
    """The protocol only allows ``*`` as port."""

    def __init__(
        self, message: str = "wildcard as port is required for the protocol"
    ) -> None:
        super().__init__(message)


def _lookup(data: Mapping, key: str) -> Any:
    if key in data:
        return data[key]
    folded = key.casefold()
    for name, value in data.items():
        if isinstance(name, str) and name.casefold() == folded:
            return value
    return None


def _string(value: Any, what: str) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise PolicyError(f"{what} must be a string, got {value!r}")
    return value


def _string_list(value: Any, what: str) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise PolicyError(f"{what} must be a list, got {value!r}")
    return [_string(item, what) for item in value]


def _mapping(value: Any, what: str) -> Mapping:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise PolicyError(f"{what} must be a mapping, got {value!r}")
    return value


def _string_list_map(value: Any, what: str) -> dict[str, list[str]]:
    return {
        str(name): _string_list(items, f"{what}[{name}]")
        for name, items in _mapping(value, what).items()
    }


def _record_list(value: Any, what: str) -> list[Mapping]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise PolicyError(f"{what} must be a list, got {value!r}")
    return [_mapping(item, what) for item in value]


def _hosts(value: Any, assume_single_host: bool) -> dict[str, Network]:
    hosts: dict[str, Network] = {}
    for name, prefix in _mapping(value, "hosts").items():
        if isinstance(prefix, (ipaddress.IPv4Network, ipaddress.IPv6Network)):
            hosts[str(name)] = prefix
            continue
        text = _string(prefix, f"hosts[{name}]")
        if assume_single_host and "/" not in text:
            text += "/32"
        if "/" not in text:
            raise PolicyError(f"no '/' in prefix {text!r}")
        try:
            hosts[str(name)] = ipaddress.ip_network(text, strict=False)
        except ValueError as error:
            raise PolicyError(f"invalid prefix {text!r}: {error}") from error
    return hosts


def parse_hosts_json(data: str | bytes | Mapping) -> dict[str, Network]:
    """Parse a hosts section from JSON text or a decoded mapping.

    Entries without a prefix length are taken as ``/32``.
    """
    if isinstance(data, (str, bytes, bytearray)):
        data = hujson.loads(data)
    return _hosts(data, assume_single_host=True)


def parse_hosts_yaml(data: str | bytes | Mapping) -> dict[str, Network]:
    """Parse a hosts section from YAML text or a decoded mapping.

    Every entry must carry an explicit prefix length.
    """
    if isinstance(data, (str, bytes, bytearray)):
        data = yaml.safe_load(data)
    return _hosts(data, assume_single_host=False)


@dataclass
class ACL:
    """A basic rule of the policy."""

    action: str = ""
    protocol: str = ""
    sources: list[str] = field(default_factory=list)
    destinations: list[str] = field(default_factory=list)


@dataclass
class ACLTest:
    """A check of whether a rule is allowed; stored but not evaluated."""

    source: str = ""
    accept: list[str] = field(default_factory=list)
    deny: list[str] = field(default_factory=list)


@dataclass
class SSH:
    """Who may open SSH sessions to which machines."""

    action: str = ""
    sources: list[str] = field(default_factory=list)
    destinations: list[str] = field(default_factory=list)
    users: list[str] = field(default_factory=list)
    check_period: str = ""


@dataclass
class AutoApprovers:
    """Aliases whose advertised routes or exit nodes are enabled automatically."""

    routes: dict[str, list[str]] = field(default_factory=dict)
    exit_node: list[str] = field(default_factory=list)

    def get_route_approvers(self, prefix: object) -> list[str]:
        """Return the aliases allowed to approve the given route.

        Raises ValueError if a configured route is not a valid prefix.
        """
        if not isinstance(prefix, (ipaddress.IPv4Network, ipaddress.IPv6Network)):
            prefix = ipaddress.ip_network(prefix, strict=False)
        if prefix.prefixlen == 0:
            return list(self.exit_node)

        approvers: list[str] = []
        for route, aliases in self.routes.items():
            approved = ipaddress.ip_network(route, strict=False)
            if (
                approved.version == prefix.version
                and prefix.prefixlen >= approved.prefixlen
                and prefix.network_address in approved
            ):
                approvers.extend(aliases)
        return approvers


@dataclass
class ACLPolicy:
    """A complete ACL policy document."""

    groups: dict[str, list[str]] = field(default_factory=dict)
    hosts: dict[str, Network] = field(default_factory=dict)
    tag_owners: dict[str, list[str]] = field(default_factory=dict)
    acls: list[ACL] = field(default_factory=list)
    tests: list[ACLTest] = field(default_factory=list)
    auto_approvers: AutoApprovers = field(default_factory=AutoApprovers)
    sshs: list[SSH] = field(default_factory=list)

    @classmethod
    def from_mapping(cls, data: Mapping) -> ACLPolicy:
        """Build a policy from a decoded document.

        Keys match case-insensitively. Host values may be prefix strings
        (a bare address is taken as ``/32``) or network objects.
        Raises PolicyError if a section has the wrong shape.
        """
        if not isinstance(data, Mapping):
            raise PolicyError(f"policy must be a mapping, got {data!r}")

        acls = [
            ACL(
                action=_string(_lookup(item, "action"), "action"),
                protocol=_string(_lookup(item, "proto"), "proto"),
                sources=_string_list(_lookup(item, "src"), "src"),
                destinations=_string_list(_lookup(item, "dst"), "dst"),
            )
            for item in _record_list(_lookup(data, "acls"), "acls")
        ]
        tests = [
            ACLTest(
                source=_string(_lookup(item, "src"), "src"),
                accept=_string_list(_lookup(item, "accept"), "accept"),
                deny=_string_list(_lookup(item, "deny"), "deny"),
            )
            for item in _record_list(_lookup(data, "tests"), "tests")
        ]
        sshs = [
            SSH(
                action=_string(_lookup(item, "action"), "action"),
                sources=_string_list(_lookup(item, "src"), "src"),
                destinations=_string_list(_lookup(item, "dst"), "dst"),
                users=_string_list(_lookup(item, "users"), "users"),
                check_period=_string(_lookup(item, "checkPeriod"), "checkPeriod"),
            )
            for item in _record_list(_lookup(data, "ssh"), "ssh")
        ]
        approvers = _mapping(_lookup(data, "autoApprovers"), "autoApprovers")
        return cls(
            groups=_string_list_map(_lookup(data, "groups"), "groups"),
            hosts=_hosts(_lookup(data, "hosts"), assume_single_host=True),
            tag_owners=_string_list_map(_lookup(data, "tagOwners"), "tagOwners"),
            acls=acls,
            tests=tests,
            auto_approvers=AutoApprovers(
                routes=_string_list_map(_lookup(approvers, "routes"), "routes"),
                exit_node=_string_list(_lookup(approvers, "exitNode"), "exitNode"),
            ),
            sshs=sshs,
        )

    def is_zero(self) -> bool:
        """Return True if the policy defines no groups, hosts or ACLs."""
        return not self.groups and not self.hosts and not self.acls