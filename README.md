# tailcontrol

A library of building blocks for the control plane of a mesh VPN:

- reading ACL policies written as HuJSON (JSON with comments and trailing commas) or as YAML
- expanding policy aliases (users, groups, tags, hosts, addresses and CIDRs) into IP sets
- parsing destination ports and protocol names
- generating SSH rules from a policy's `ssh` section
- deciding whether one machine may reach another under a list of filter rules
- checking tag names
- checking OIDC ID token claims and rendering the login callback page
- encoding and decoding the early payload sent over a Noise connection

## Installation

```
pip install tailcontrol
```

To run the tests, install the `test` extra and run `pytest`.

## Loading a policy

```python
from tailcontrol.policy import load_acl_policy_from_bytes

policy = load_acl_policy_from_bytes(b"""
{
    // hosts may be single addresses or subnets
    "hosts": {"host-1": "100.100.100.100"},
    "acls": [
        {"action": "accept", "src": ["*"], "dst": ["host-1:22,443"]},
    ],
}
""", "hujson")
```

`load_acl_policy_from_bytes(data, fmt)` reads YAML when `fmt` is `"yaml"` and HuJSON otherwise. `load_acl_policy_from_path(path)` reads a file, as YAML when it ends in `.yml` or `.yaml` and as HuJSON otherwise. The result is an `ACLPolicy` (from `tailcontrol.policy_types`) with `groups`, `hosts`, `tag_owners`, `acls`, `tests`, `auto_approvers` and `sshs`. Keys in the document match case-insensitively. In HuJSON a host without a prefix length is taken as `/32`; in YAML every host needs one.

A document that cannot be parsed raises `PolicyError`. A document with no groups, hosts or ACLs raises `EmptyPolicyError`. The errors in `tailcontrol.policy_types` all derive from `PolicyError` (itself a `ValueError`):

- `EmptyPolicyError`
- `InvalidActionError`
- `InvalidGroupError`
- `InvalidTagError`
- `InvalidPortFormatError`
- `WildcardRequiredError`

`AutoApprovers.get_route_approvers(prefix)` returns the aliases allowed to approve a route. For a `/0` prefix these are the `exitNode` entries.

`tailcontrol.hujson` offers `standardize(text)` and `loads(text)` on their own.

## Expanding aliases

```python
from tailcontrol.machines import Machine, User
from tailcontrol.policy import expand_alias

machines = [
    Machine(id=1, user=User(name="joe"), ip_addresses=["100.64.0.1"]),
    Machine(id=2, user=User(name="marc"), ip_addresses=["100.64.0.2"]),
]
expand_alias(policy, machines, "joe", True)      # IPSet([100.64.0.1/32])
expand_alias(policy, machines, "*", True)        # IPSet([0.0.0.0/0, ::/0])
```

`expand_alias` resolves its alias in this order:

- the wildcard
- a `group:` name
- a `tag:` name
- a user's machines, leaving out those carrying a declared or forced tag
- a host
- an address
- a CIDR

An alias that matches nothing gives an empty set. Other helpers in `tailcontrol.policy`:

- `get_users_in_group(policy, group, strip_email_domain)` returns a group's members, normalised. An undefined group, a nested group or a member that cannot be normalised raises `InvalidGroupError`.
- `get_tag_owners(policy, tag, strip_email_domain)` returns a tag's owners and expands owner groups. A tag with no owners raises `InvalidTagError`.
- `filter_machines_by_user(machines, user)` returns the machines that belong to `user`.
- `exclude_correctly_tagged_nodes(policy, nodes, user, strip_email_domain)` drops the nodes that carry a tag.
- `expand_ports("80-1024,443", False)` returns a list of `PortRange`. `"*"` gives 0–65535.
- `parse_protocol("icmp")` returns `([1, 58], True)`, where the flag means the destinations must use `*` as port.

`tailcontrol.netset.IPSet` is an immutable, normalised set of IPv4 and IPv6 prefixes. It has `contains`, `prefixes` and `union`. `parse_ip_set(text)` accepts `*`, an address, a CIDR or a `first-last` range.

## Filter rules and reachability

The records in `tailcontrol.filter_types` are:

- `FilterRule`
- `NetPortRange`
- `PortRange`
- `SSHRule`
- `SSHPrincipal`
- `SSHAction`

`Machine.can_access(rules, peer)` is true when some rule has one of the machine's addresses among its sources and one of the peer's addresses among its destinations:

```python
from tailcontrol.filter_types import FilterRule, NetPortRange

rules = [FilterRule(src_ips=["100.64.0.1"], dst_ports=[NetPortRange(ip="100.64.0.2")])]
machines[0].can_access(rules, machines[1])   # True
machines[1].can_access(rules, machines[0])   # False
```

`tailcontrol.matcher.match_from_filter_rule(rule)` builds the underlying `Match`, which holds the source and destination sets. `tailcontrol.machines` also provides:

- `filter_by_ip(machines, address)`
- `normalize_to_fqdn_rules(name, strip_email_domain)`, which turns a user name or e-mail address into a DNS-safe name

## SSH rules

```python
from tailcontrol.ssh_rules import generate_ssh_rules

ssh_rules = generate_ssh_rules(policy, machines, True)
```

How each `ssh` entry is handled:

- An `accept` entry allows the session.
- A `check` entry allows it for the entry's `checkPeriod`, a duration such as `"12h"` read by `parse_go_duration`. An unparsable period makes the entry reject.
- An entry with any other action is skipped.

Sources become principals:

- `*` matches anyone.
- A group gives user logins.
- Any other alias gives node addresses.

`ssh_check_action(duration)` builds the action of a `check` entry.

## Tags

```python
from tailcontrol.tags import validate_tag

validate_tag("tag:web")   # passes
validate_tag("web")       # raises InvalidTagFormatError
```

A tag must start with `tag:`, be lowercase and contain no whitespace.

## OIDC login

Claims and checks live in `tailcontrol.oidc_claims`:

- `IDTokenClaims.from_mapping(payload)` reads `name`, `groups`, `email` and `preferred_username`.
- `validate_callback_params(code, state)` checks the callback's parameters.
- `validate_allowed_domains`, `validate_allowed_groups` and `validate_allowed_users` apply the configured restrictions, each of which is skipped when its list is empty.

Failures raise subclasses of `OIDCError`. Each carries a `response_message` for the browser and an HTTP `status`.

The helpers in `tailcontrol.oidc` are:

- `new_state()` returns 32 random hexadecimal characters.
- `redirect_url(server_url)` returns `<server_url>/oidc/callback`.
- `determine_token_expiration(...)` picks the token's expiry or now plus a configured duration.
- `get_user_name(claims, strip_email_domain)` derives the user name from the e-mail address.
- `render_callback_page(user, verb)` returns the HTML page, with values escaped.

## Noise early payload

```python
from tailcontrol.noise import encode_early_payload, decode_early_payload

payload = encode_early_payload(49, "chalpub:1234")
challenge, rest = decode_early_payload(payload)
```

The payload is a 5-byte magic, a 4-byte big-endian length and a JSON body. Clients below protocol version 49 get an empty payload.

## What this package does not do

This is a library, not a server:

- It has no HTTP or gRPC endpoints.
- It has no database of users, machines, keys or routes.
- It has no command-line tool.
- It does not perform the Noise handshake or talk to an identity provider.

It also has no single call that turns a whole policy into the packet filter rules handed to clients. It does not render client configuration files such as Windows registry files or Apple profiles.