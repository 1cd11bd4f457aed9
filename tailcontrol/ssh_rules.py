"""Generation of SSH access rules from an ACL policy."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from datetime import timedelta
from decimal import Decimal

from tailcontrol.filter_types import SSHAction, SSHPrincipal, SSHRule
from tailcontrol.machines import Machine
from tailcontrol.policy import expand_alias, get_users_in_group
from tailcontrol.policy_types import ACLPolicy, EmptyPolicyError

log = logging.getLogger(__name__)

_UNIT_NANOSECONDS = {
    "ns": 1,
    "us": 1_000,
    "µs": 1_000,
    "μs": 1_000,
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60 * 1_000_000_000,
    "h": 3600 * 1_000_000_000,
}
_COMPONENT = re.compile(r"([0-9]*(?:\.[0-9]*)?)(ns|us|µs|μs|ms|s|m|h)?")
_MAX_NANOSECONDS = 2**63 - 1


def parse_go_duration(text: str) -> timedelta:
    """Parse a duration such as "1h30m", "250ms" or "-1.5h".

    Precision below a microsecond is dropped. Raises ValueError for
    malformed text.
    """
    rest = text
    negative = False
    if rest and rest[0] in "+-":
        negative = rest[0] == "-"
        rest = rest[1:]
    if rest == "0":
        return timedelta(0)
    if not rest:
        raise ValueError(f"invalid duration {text!r}")

    total = Decimal(0)
    position = 0
    while position < len(rest):
        match = _COMPONENT.match(rest, position)
        number, unit = match.group(1), match.group(2)
        if not any(char.isdigit() for char in number):
            raise ValueError(f"invalid duration {text!r}")
        if unit is None:
            raise ValueError(f"missing unit in duration {text!r}")
        total += Decimal(number) * _UNIT_NANOSECONDS[unit]
        position = match.end()

    nanoseconds = int(total)
    if nanoseconds > _MAX_NANOSECONDS:
        raise ValueError(f"invalid duration {text!r}")
    duration = timedelta(microseconds=nanoseconds // 1000)
    return -duration if negative else duration


def _accept_action() -> SSHAction:
    return SSHAction(accept=True, allow_local_port_forwarding=True)


def _reject_action() -> SSHAction:
    return SSHAction(reject=True)


def ssh_check_action(duration: str) -> SSHAction:
    """Return an accepting action whose session lasts the given duration.

    Raises ValueError if the duration cannot be parsed.
    """
    return SSHAction(
        accept=True,
        session_duration=parse_go_duration(duration),
        allow_local_port_forwarding=True,
    )


def generate_ssh_rules(
    policy: ACLPolicy | None,
    machines: Iterable[Machine],
    strip_email_domain: bool,
) -> list[SSHRule]:
    """Build SSH rules from the policy's ``ssh`` section.

    Entries with an unknown action are skipped; a "check" entry with an
    unparsable period rejects. Raises EmptyPolicyError without a policy and
    the policy errors of expanding sources.
    """
    if policy is None:
        raise EmptyPolicyError()
    machines = list(machines)

    rules: list[SSHRule] = []
    for index, entry in enumerate(policy.sshs):
        if entry.action == "accept":
            action = _accept_action()
        elif entry.action == "check":
            try:
                action = ssh_check_action(entry.check_period)
            except ValueError:
                log.error(
                    "error parsing SSH %d, check action with unparsable duration %r",
                    index,
                    entry.check_period,
                )
                action = _reject_action()
        else:
            log.error(
                "error parsing SSH %d, unknown action %r, skipping", index, entry.action
            )
            continue

        principals: list[SSHPrincipal] = []
        for source in entry.sources:
            if source == "*":
                principals.append(SSHPrincipal(any=True))
            elif source.startswith("group:"):
                users = get_users_in_group(policy, source, strip_email_domain)
                principals.extend(SSHPrincipal(user_login=user) for user in users)
            else:
                expanded = expand_alias(policy, machines, source, strip_email_domain)
                principals.extend(
                    SSHPrincipal(node_ip=str(prefix.network_address))
                    for prefix in expanded.prefixes()
                )

        rules.append(
            SSHRule(
                principals=principals,
                ssh_users={user: "=" for user in entry.users},
                action=action,
            )
        )
    return rules