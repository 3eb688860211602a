"""
Read-only view of the platform objects the orchestration service needs:
zones, accounts, domains, VPCs, networks, public IP ranges and the rules
attached to networks.  The records are loaded from the ``platform`` section
of the input configuration.
"""

import collections

from .exceptions import NetrisConfigError


def _record(name, fields, defaults=()):
    return collections.namedtuple(name, fields, defaults=defaults)


Zone = _record("Zone", ["id", "name", "netris_tag"], (None, None))
Domain = _record("Domain", ["id", "name"], (None,))
Account = _record("Account", ["id", "name", "domain_id"], (None, None))
Vpc = _record(
    "Vpc",
    ["id", "name", "zone_id", "account_id", "domain_id", "cidr",
     "source_nat_ip"],
    (None,))
Network = _record(
    "Network",
    ["id", "name", "zone_id", "account_id", "domain_id", "cidr", "gateway",
     "vpc_id", "vxlan_id", "ipv6_cidr", "source_nat", "source_nat_ip"],
    (None, None, None, None, False, None))
PublicRange = _record(
    "PublicRange",
    ["id", "zone_id", "gateway", "netmask", "ip_range", "ip6_gateway",
     "ip6_cidr"],
    (None, None, None, None, None))
NetworkRule = _record(
    "NetworkRule",
    ["rule_id", "network_id", "traffic_type", "source_cidrs",
     "private_port", "protocol", "action", "icmp_type", "reason",
     "public_ip", "public_port", "vm_ip"],
    ("INGRESS", ("ANY",), "null", "ALL", "allow", None, None,
     None, None, None))
StaticRoute = _record(
    "StaticRoute",
    ["id", "zone_id", "prefix", "next_hop", "vpc_id", "network_id"],
    (None, None))


def _build(record, entries, key="id"):
    ret = collections.OrderedDict()
    for entry in entries or []:
        try:
            item = record(**entry)
        except TypeError as e:
            raise NetrisConfigError("Invalid %s entry %s: %s" %
                                    (record.__name__, entry, e))
        ret[getattr(item, key)] = item
    return ret


class PlatformInventory(object):
    def __init__(self, zones=None, domains=None, accounts=None, vpcs=None,
                 networks=None, public_ranges=None, firewall_rules=None,
                 port_forwarding_rules=None, static_routes=None):
        self.zones = _build(Zone, zones)
        self.domains = _build(Domain, domains)
        self.accounts = _build(Account, accounts)
        self.vpcs = _build(Vpc, vpcs)
        self.networks = _build(Network, networks)
        self.public_ranges = _build(PublicRange, public_ranges)
        self.firewall_rules = _build(NetworkRule, firewall_rules,
                                     key="rule_id")
        self.port_forwarding_rules = _build(NetworkRule,
                                            port_forwarding_rules,
                                            key="rule_id")
        self.static_routes = _build(StaticRoute, static_routes)

    @classmethod
    def from_config(cls, platform):
        platform = platform or {}
        return cls(**dict((k, platform.get(k)) for k in (
            "zones", "domains", "accounts", "vpcs", "networks",
            "public_ranges", "firewall_rules", "port_forwarding_rules",
            "static_routes")))

    def find_zone(self, zone_id):
        return self.zones.get(zone_id)

    def find_domain(self, domain_id):
        return self.domains.get(domain_id)

    def find_account(self, account_id):
        return self.accounts.get(account_id)

    def find_vpc(self, vpc_id):
        return self.vpcs.get(vpc_id)

    def find_network(self, network_id):
        return self.networks.get(network_id)

    def list_public_ranges(self, zone_id):
        return [r for r in self.public_ranges.values()
                if r.zone_id == zone_id]

    def list_firewall_rules(self, network_id):
        return [r for r in self.firewall_rules.values()
                if r.network_id == network_id]

    def list_port_forwarding_rules(self, network_id):
        return [r for r in self.port_forwarding_rules.values()
                if r.network_id == network_id]

    def list_static_routes(self, zone_id=None):
        return [r for r in self.static_routes.values()
                if zone_id is None or r.zone_id == zone_id]
