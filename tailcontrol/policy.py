"""Loading ACL policies and expanding their aliases, groups, tags and ports."""

from __future__ import annotations

import ipaddress
import logging
import re
from collections.abc import Iterable
from pathlib import Path

import yaml

from tailcontrol import hujson
from tailcontrol.filter_types import PortRange
from tailcontrol.machines import Machine, filter_by_ip, normalize_to_fqdn_rules
from tailcontrol.netset import IPSet, parse_ip_set
from tailcontrol.policy_types import (
    ACLPolicy,
    EmptyPolicyError,
    InvalidGroupError,
    InvalidPortFormatError,
    InvalidTagError,
    PolicyError,
    WildcardRequiredError,
    parse_hosts_yaml,
)

log = logging.getLogger(__name__)

PORT_RANGE_BEGIN = 0
PORT_RANGE_END = 65535

PROTOCOL_ICMP = 1
PROTOCOL_IGMP = 2
PROTOCOL_IPV4 = 4
PROTOCOL_TCP = 6
PROTOCOL_EGP = 8
PROTOCOL_IGP = 9
PROTOCOL_UDP = 17
PROTOCOL_GRE = 47
PROTOCOL_ESP = 50
PROTOCOL_AH = 51
PROTOCOL_IPV6_ICMP = 58
PROTOCOL_SCTP = 132
PROTOCOL_FC = 133

_NAMED_PROTOCOLS: dict[str, tuple[tuple[int, ...], bool]] = {
    "igmp": ((PROTOCOL_IGMP,), True),
    "ipv4": ((PROTOCOL_IPV4,), True),
    "ip-in-ip": ((PROTOCOL_IPV4,), True),
    "tcp": ((PROTOCOL_TCP,), False),
    "egp": ((PROTOCOL_EGP,), True),
    "igp": ((PROTOCOL_IGP,), True),
    "udp": ((PROTOCOL_UDP,), False),
    "gre": ((PROTOCOL_GRE,), True),
    "esp": ((PROTOCOL_ESP,), True),
    "ah": ((PROTOCOL_AH,), True),
    "sctp": ((PROTOCOL_SCTP,), False),
    "icmp": ((PROTOCOL_ICMP, PROTOCOL_IPV6_ICMP), True),
}
_PORTED_PROTOCOLS = {PROTOCOL_TCP, PROTOCOL_UDP, PROTOCOL_SCTP}

_PORT_NUMBER = re.compile(r"[0-9]+")
_PROTOCOL_NUMBER = re.compile(r"[+-]?[0-9]+")


def _is_group(text: str) -> bool:
    return text.startswith("group:")


def _is_tag(text: str) -> bool:
    return text.startswith("tag:")


def _string_or_prefix_list_contains(items: Iterable[str], text: str) -> bool:
    return any(item == text or text.startswith(item) for item in items)


def load_acl_policy_from_path(path: str | Path) -> ACLPolicy:
    """Load a policy file; ``.yml`` and ``.yaml`` files are read as YAML, others as HuJSON.

    Raises OSError if the file cannot be read and PolicyError if it is not a policy.
    """
    path = Path(path)
    data = path.read_bytes()
    log.debug("loading ACL policy from %s", path)
    if path.suffix in (".yml", ".yaml"):
        return load_acl_policy_from_bytes(data, "yaml")
    return load_acl_policy_from_bytes(data, "hujson")


def load_acl_policy_from_bytes(data: str | bytes, fmt: str) -> ACLPolicy:
    """Parse a policy document in the given format ("yaml" or anything else for HuJSON).

    Raises PolicyError if the document cannot be parsed and EmptyPolicyError
    if it defines no groups, hosts or ACLs.
    """
    if fmt == "yaml":
        try:
            document = yaml.safe_load(data)
        except yaml.YAMLError as error:
            raise PolicyError(f"invalid YAML policy: {error}") from error
        if document is None:
            document = {}
        if isinstance(document, dict):
            document = dict(document)
            for key in list(document):
                if isinstance(key, str) and key.casefold() == "hosts":
                    document[key] = parse_hosts_yaml(document[key] or {})
    else:
        try:
            document = hujson.loads(data)
        except ValueError as error:
            raise PolicyError(f"invalid HuJSON policy: {error}") from error

    policy = ACLPolicy.from_mapping(document)
    if policy.is_zero():
        raise EmptyPolicyError()
    return policy


def filter_machines_by_user(machines: Iterable[Machine], user: str) -> list[Machine]:
    """Return the machines owned by the named user, in their original order."""
    return [machine for machine in machines if machine.user.name == user]


def get_users_in_group(
    policy: ACLPolicy, group: str, strip_email_domain: bool
) -> list[str]:
    """Return the normalised user names of a group.

    Raises InvalidGroupError if the group is undefined, holds another group,
    or holds a name that cannot be normalised.
    """
    members = policy.groups.get(group)
    if members is None:
        raise InvalidGroupError(f"group {group} isn't registered. invalid group")

    users: list[str] = []
    for member in members:
        if _is_group(member):
            raise InvalidGroupError(
                "invalid group. A group cannot be composed of groups."
            )
        try:
            users.append(normalize_to_fqdn_rules(member, strip_email_domain))
        except ValueError as error:
            raise InvalidGroupError(
                f"failed to normalize group {member!r}, invalid group"
            ) from error
    return users


def get_tag_owners(policy: ACLPolicy, tag: str, strip_email_domain: bool) -> list[str]:
    """Return the users owning a tag, expanding owner groups.

    Raises InvalidTagError if the tag has no owners entry and InvalidGroupError
    if an owner group is invalid.
    """
    owners_entry = policy.tag_owners.get(tag)
    if owners_entry is None:
        raise InvalidTagError(
            f"invalid tag. {tag} isn't owned by a TagOwner. Please add one first."
        )
    owners: list[str] = []
    for owner in owners_entry:
        if _is_group(owner):
            owners.extend(get_users_in_group(policy, owner, strip_email_domain))
        else:
            owners.append(owner)
    return owners


def exclude_correctly_tagged_nodes(
    policy: ACLPolicy,
    nodes: Iterable[Machine],
    user: str,
    strip_email_domain: bool,
) -> list[Machine]:
    """Drop the nodes that carry a known tag or forced tags.

    Such nodes belong to their tag rather than to the user. All nodes are
    assumed to belong to ``user``.
    """
    # The user is always counted among a tag's owners, so every declared tag applies.
    tags = list(policy.tag_owners)
    kept: list[Machine] = []
    for machine in nodes:
        tagged = any(
            _string_or_prefix_list_contains(tags, tag)
            for tag in machine.host_info.request_tags
        )
        if not tagged and not machine.forced_tags:
            kept.append(machine)
    return kept


def _addresses(machines: Iterable[Machine]) -> list:
    return [address for machine in machines for address in machine.ip_addresses]


def _ips_from_group(
    policy: ACLPolicy, group: str, machines: list[Machine], strip_email_domain: bool
) -> IPSet:
    addresses = []
    for user in get_users_in_group(policy, group, strip_email_domain):
        addresses.extend(_addresses(filter_machines_by_user(machines, user)))
    return IPSet(addresses)


def _ips_from_tag(
    policy: ACLPolicy, alias: str, machines: list[Machine], strip_email_domain: bool
) -> IPSet:
    addresses = _addresses(
        machine
        for machine in machines
        if _string_or_prefix_list_contains(machine.forced_tags, alias)
    )

    try:
        owners = get_tag_owners(policy, alias, strip_email_domain)
    except InvalidTagError as error:
        if not addresses:
            raise InvalidTagError(
                f"invalid tag. {alias} isn't owned by a TagOwner "
                "and no forced tags are defined"
            ) from error
        return IPSet(addresses)

    for owner in owners:
        for machine in filter_machines_by_user(machines, owner):
            if _string_or_prefix_list_contains(machine.host_info.request_tags, alias):
                addresses.extend(machine.ip_addresses)
    return IPSet(addresses)


def _ips_for_user(
    policy: ACLPolicy, user: str, machines: list[Machine], strip_email_domain: bool
) -> IPSet | None:
    owned = filter_machines_by_user(machines, user)
    owned = exclude_correctly_tagged_nodes(policy, owned, user, strip_email_domain)
    if not owned:
        return None
    return IPSet(_addresses(owned))


def _ips_from_single_ip(address, machines: list[Machine]) -> IPSet:
    return IPSet([address, *_addresses(filter_by_ip(machines, address))])


def _ips_from_prefix(prefix, machines: list[Machine]) -> IPSet:
    # Whole machines are added so that their other-family addresses come along.
    addresses: list = [prefix]
    for machine in machines:
        if any(address in prefix for address in machine.ip_addresses):
            addresses.extend(machine.ip_addresses)
    return IPSet(addresses)


def expand_alias(
    policy: ACLPolicy,
    machines: Iterable[Machine],
    alias: str,
    strip_email_domain: bool,
) -> IPSet:
    """Resolve a wildcard, group, tag, user, host, address or prefix to addresses.

    Raises InvalidGroupError or InvalidTagError for unusable groups and tags.
    An alias that matches nothing yields an empty set.
    """
    machines = list(machines)
    if alias == "*":
        return parse_ip_set("*")

    log.debug("expanding alias %s", alias)

    if _is_group(alias):
        return _ips_from_group(policy, alias, machines, strip_email_domain)

    if _is_tag(alias):
        return _ips_from_tag(policy, alias, machines, strip_email_domain)

    user_ips = _ips_for_user(policy, alias, machines, strip_email_domain)
    if user_ips is not None:
        return user_ips

    host = policy.hosts.get(alias)
    if host is not None:
        return expand_alias(policy, machines, str(host), strip_email_domain)

    try:
        address = ipaddress.ip_address(alias)
    except ValueError:
        pass
    else:
        return _ips_from_single_ip(address, machines)

    if "/" in alias:
        try:
            prefix = ipaddress.ip_network(alias, strict=False)
        except ValueError:
            pass
        else:
            return _ips_from_prefix(prefix, machines)

    log.warning("no IPs found with the alias %s", alias)
    return IPSet()


def _parse_port(text: str) -> int:
    if not _PORT_NUMBER.fullmatch(text):
        raise InvalidPortFormatError(f"invalid port {text!r}")
    port = int(text)
    if port > PORT_RANGE_END:
        raise InvalidPortFormatError(f"port {text} is out of range")
    return port


def expand_ports(ports: str, needs_wildcard: bool) -> list[PortRange]:
    """Parse "*" or a comma-separated list of ports and "first-last" ranges.

    Raises WildcardRequiredError if the protocol allows only "*" and
    InvalidPortFormatError for malformed or out-of-range ports.
    """
    if ports == "*":
        return [PortRange(first=PORT_RANGE_BEGIN, last=PORT_RANGE_END)]
    if needs_wildcard:
        raise WildcardRequiredError()

    ranges: list[PortRange] = []
    for part in ports.split(","):
        bounds = part.split("-")
        if len(bounds) == 1:
            port = _parse_port(bounds[0])
            ranges.append(PortRange(first=port, last=port))
        elif len(bounds) == 2:
            ranges.append(
                PortRange(first=_parse_port(bounds[0]), last=_parse_port(bounds[1]))
            )
        else:
            raise InvalidPortFormatError()
    return ranges


def parse_protocol(protocol: str) -> tuple[list[int], bool]:
    """Return the IANA protocol numbers for an ACL's proto field.

    The flag tells whether destinations must use "*" as port, which is the
    case for every protocol but TCP, UDP and SCTP. An empty field means the
    client default and yields no numbers. Raises PolicyError for an unknown name.
    """
    if protocol == "":
        return [], False
    named = _NAMED_PROTOCOLS.get(protocol)
    if named is not None:
        numbers, needs_wildcard = named
        return list(numbers), needs_wildcard
    if not _PROTOCOL_NUMBER.fullmatch(protocol):
        raise PolicyError(f"unknown protocol {protocol!r}")
    number = int(protocol)
    return [number], number not in _PORTED_PROTOCOLS