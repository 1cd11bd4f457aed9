import ipaddress

import pytest

from tailcontrol import hujson
from tailcontrol.policy_types import (
    ACL,
    ACLPolicy,
    AutoApprovers,
    PolicyError,
    parse_hosts_json,
    parse_hosts_yaml,
)

RULES_DOCUMENT = """
{
	// Declare static groups of users beyond those in the identity service.
	"groups": {
		"group:example": [
			"user1@example.com",
			"user2@example.com",
		],
	},
	"hosts": {
		"example-host-1": "100.100.100.100",
		"example-host-2": "100.100.101.100/24",
	},
	"tagOwners": {
		"tag:montreal-webserver": [
			"group:montreal-admins",
			"group:global-admins",
		],
		"tag:api-server": [
			"group:global-admins",
			"example-host-1",
		],
	},
	"acls": [
		{"action": "accept", "src": ["group:engineering", "president@example.com"],
		 "dst": ["*:22,3389", "git-server:*", "ci-server:*"]},
		{"action": "accept", "src": ["group:engineers"], "dst": ["tag:production:*"]},
		{"action": "accept", "src": ["my-subnet", "192.168.1.0/24"],
		 "dst": ["my-subnet:*", "192.168.1.0/24:*"]},
		{"action": "accept", "src": ["*"], "dst": ["*:*"]},
		{"action": "accept", "src": ["group:montreal-users"],
		 "dst": ["tag:montreal-webserver:80,443"]},
		{"action": "accept", "src": ["tag:montreal-webserver"], "dst": ["tag:api-server:443"]},
	],
	"tests": [
		{"src": "user1@example.com", "accept": ["example-host-1:22", "example-host-2:80"],
		 "deny": ["exapmle-host-2:100"]},
		{"src": "user2@example.com", "accept": ["100.60.3.4:22"]},
	],
}
"""


def test_parse_hosts():
    hosts = parse_hosts_json(
        '{"example-host-1": "100.100.100.100","example-host-2": "100.100.101.100/24"}'
    )
    assert hosts == {
        "example-host-1": ipaddress.ip_network("100.100.100.100/32"),
        "example-host-2": ipaddress.ip_network("100.100.101.0/24"),
    }


def test_parse_invalid_cidr():
    with pytest.raises(ValueError):
        parse_hosts_json('{"example-host-1": "100.100.100.100/42"}')


def test_parse_hosts_yaml_needs_prefix_length():
    hosts = parse_hosts_yaml("host-1: 100.100.100.100/32\nsubnet-1: 100.100.101.100/24\n")
    assert hosts["host-1"] == ipaddress.ip_network("100.100.100.100/32")
    assert hosts["subnet-1"] == ipaddress.ip_network("100.100.101.0/24")
    with pytest.raises(ValueError):
        parse_hosts_yaml("host-1: 100.100.100.100\n")


def test_invalid_policy_document_is_zero():
    data = hujson.loads('{\n\t"valid_json": true,\n\t"but_a_policy_though": false\n}')
    assert ACLPolicy.from_mapping(data).is_zero()


def test_full_document_is_parsed():
    policy = ACLPolicy.from_mapping(hujson.loads(RULES_DOCUMENT))
    assert len(policy.acls) == 6
    assert not policy.is_zero()
    assert policy.groups["group:example"] == ["user1@example.com", "user2@example.com"]
    assert policy.hosts["example-host-1"] == ipaddress.ip_network("100.100.100.100/32")
    assert policy.acls[0].destinations == ["*:22,3389", "git-server:*", "ci-server:*"]
    assert policy.tests[0].deny == ["exapmle-host-2:100"]
    assert policy.tests[1].deny == []


def test_keys_match_case_insensitively():
    data = hujson.loads('{"acls": [{"Action": "accept", "src": ["*"], "proto": "tcp", "dst": ["host-1:*"]}]}')
    policy = ACLPolicy.from_mapping(data)
    assert policy.acls == [
        ACL(action="accept", protocol="tcp", sources=["*"], destinations=["host-1:*"])
    ]


def test_ssh_section_is_parsed():
    data = {
        "ssh": [
            {
                "action": "check",
                "src": ["group:admins"],
                "dst": ["tag:server"],
                "users": ["root"],
                "checkPeriod": "12h",
            }
        ]
    }
    policy = ACLPolicy.from_mapping(data)
    assert policy.sshs[0].check_period == "12h"
    assert policy.sshs[0].users == ["root"]
    assert policy.is_zero()


def test_wrong_shapes_raise():
    with pytest.raises(PolicyError):
        ACLPolicy.from_mapping(["not", "a", "mapping"])
    with pytest.raises(PolicyError):
        ACLPolicy.from_mapping({"acls": {"action": "accept"}})
    with pytest.raises(PolicyError):
        ACLPolicy.from_mapping({"groups": {"group:a": "joe"}})


def test_route_approvers_exit_node():
    approvers = AutoApprovers(routes={"10.0.0.0/8": ["group:a"]}, exit_node=["tag:exit"])
    assert approvers.get_route_approvers("0.0.0.0/0") == ["tag:exit"]
    assert approvers.get_route_approvers("::/0") == ["tag:exit"]


def test_route_approvers_match_contained_routes():
    approvers = AutoApprovers(
        routes={"10.0.0.0/8": ["group:a"], "192.168.0.0/16": ["joe"]},
    )
    assert approvers.get_route_approvers("10.1.0.0/16") == ["group:a"]
    assert approvers.get_route_approvers("10.0.0.0/8") == ["group:a"]
    assert approvers.get_route_approvers("10.0.0.0/7") == []
    assert approvers.get_route_approvers("fd00::/64") == []


def test_route_approvers_invalid_route_raises():
    approvers = AutoApprovers(routes={"not-a-prefix": ["joe"]})
    with pytest.raises(ValueError):
        approvers.get_route_approvers("10.0.0.0/24")