from datetime import timedelta

import pytest

from tailcontrol.filter_types import (
    FilterRule,
    NetPortRange,
    PortRange,
    SSHAction,
    SSHPrincipal,
    SSHRule,
)


def test_port_range_bounds_accepted():
    full = PortRange(first=0, last=65535)
    assert (full.first, full.last) == (0, 65535)


@pytest.mark.parametrize("first,last", [(0, 65536), (-1, 10), (70000, 70000)])
def test_port_range_out_of_bounds(first, last):
    with pytest.raises(ValueError):
        PortRange(first=first, last=last)


def test_port_range_equality():
    assert PortRange(80, 80) == PortRange(first=80, last=80)
    assert PortRange(80, 80) != PortRange(80, 443)


def test_net_port_range_default_ports_are_zero():
    dest = NetPortRange(ip="100.64.0.2/32")
    assert dest.ports == PortRange(0, 0)
    assert dest.ip == "100.64.0.2/32"


def test_filter_rule_defaults_are_independent():
    first = FilterRule()
    second = FilterRule()
    first.src_ips.append("10.0.0.1/32")
    assert second.src_ips == []
    assert first.ip_proto == []


def test_filter_rule_equality_compares_contents():
    rule = FilterRule(
        src_ips=["0.0.0.0/0", "::/0"],
        dst_ports=[NetPortRange(ip="0.0.0.0/0", ports=PortRange(0, 65535))],
    )
    same = FilterRule(
        src_ips=["0.0.0.0/0", "::/0"],
        dst_ports=[NetPortRange(ip="0.0.0.0/0", ports=PortRange(0, 65535))],
    )
    assert rule == same
    same.ip_proto.append(6)
    assert rule != same


def test_ssh_action_defaults():
    action = SSHAction()
    assert action.accept is False
    assert action.reject is False
    assert action.session_duration == timedelta(0)
    assert action.allow_local_port_forwarding is False


def test_ssh_rule_holds_principals_and_users():
    principal = SSHPrincipal(any=True)
    rule = SSHRule(principals=[principal], ssh_users={"root": "="}, action=SSHAction(accept=True))
    assert rule.principals[0].any is True
    assert rule.ssh_users == {"root": "="}
    assert rule.action.accept is True
    assert SSHRule().action is None