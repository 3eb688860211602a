"""
Orchestration of the Netris resources behind platform lifecycle events.

Each public method turns one platform event into one or more commands,
names the Netris objects they touch and sends them, in order, to the Netris
host of the zone.  The first failing command raises; nothing that already
succeeded is rolled back.  Creation goes parent first (VPC, its IPAM
allocation, then vNets and rules) and deletion child first.
"""

import ipaddress
import logging

from . import commands
from . import constants
from . import naming
from .dispatch import send_command
from .exceptions import NetrisConfigError, NetrisError

_log = logging.getLogger(__name__)


def split_port_range(port):
    """Return the (start, end) ports of a rule's port specification.

    ``"8080-8090"`` gives (8080, 8090), ``"22"`` gives (22, 22) and an unset
    port (``"null"``) covers the whole range.
    """
    port = constants.PORT_UNSET if port is None else str(port).strip()
    if "-" in port:
        start, end = port.split("-", 1)
    else:
        start = end = port
    start = constants.PORT_MIN if start == constants.PORT_UNSET else int(start)
    end = constants.PORT_MAX if end == constants.PORT_UNSET else int(end)
    return start, end


def get_prefix(prefix):
    if prefix is None or prefix.upper() == constants.ANY_PREFIX:
        return constants.ALL_IP4_CIDRS
    return prefix


def acl_prefixes(traffic_type, rule_cidr, network_cidr):
    """Return (source, destination) prefixes of an ACL.

    For ingress traffic the rule's CIDR is where traffic comes from; for
    egress it is where traffic goes to.
    """
    if traffic_type.upper() == constants.TRAFFIC_INGRESS:
        return get_prefix(rule_cidr), get_prefix(network_cidr)
    return get_prefix(network_cidr), get_prefix(rule_cidr)


def calculate_subnet_cidr_from_ip_range(ip_range):
    """Return the smallest CIDR covering a ``start-end`` IP range."""
    if not ip_range or "-" not in ip_range:
        return None
    start, end = [ipaddress.ip_address(x.strip())
                  for x in ip_range.split("-", 1)]
    for prefixlen in range(start.max_prefixlen, -1, -1):
        net = ipaddress.ip_network("%s/%s" % (start, prefixlen), strict=False)
        if end in net:
            return str(net)
    return None


def cidr_from_gateway_and_netmask(gateway, netmask):
    return str(ipaddress.ip_network("%s/%s" % (gateway, netmask),
                                    strict=False))


def _is_ip_version(address, version):
    try:
        return ipaddress.ip_address(address).version == version
    except ValueError:
        return False


def vpc_hierarchy(vpc):
    return naming.Hierarchy.for_vpc(vpc.zone_id, vpc.account_id, vpc.domain_id,
                                    vpc.id, vpc.name)


class NetrisService(object):
    def __init__(self, dispatcher, inventory):
        self.dispatcher = dispatcher
        self.inventory = inventory

    def send(self, cmd, zone_id):
        answer = send_command(self.dispatcher, cmd, zone_id)
        return answer.result

    # Platform lookups

    def _zone(self, zone_id):
        zone = self.inventory.find_zone(zone_id)
        if zone is None:
            raise NetrisConfigError("Failed to find zone with id: %s" %
                                    zone_id)
        return zone

    def _account(self, account_id):
        account = self.inventory.find_account(account_id)
        if account is None:
            msg = "Unable to find account with id: %s" % account_id
            _log.error(msg)
            raise NetrisConfigError(msg)
        return account

    def _domain(self, domain_id):
        domain = self.inventory.find_domain(domain_id)
        if domain is None:
            msg = "Unable to find domain with id: %s" % domain_id
            _log.error(msg)
            raise NetrisConfigError(msg)
        return domain

    def _vpc(self, vpc_id):
        vpc = self.inventory.find_vpc(vpc_id)
        if vpc is None:
            raise NetrisConfigError("Failed to find VPC network with id: %s"
                                    % vpc_id)
        return vpc

    def _network(self, network_id):
        network = self.inventory.find_network(network_id)
        if network is None:
            raise NetrisConfigError("Failed to find network with id: %s" %
                                    network_id)
        return network

    def _resource_hierarchy(self, zone_id, account_id, domain_id,
                            resource_name, resource_id, is_for_vpc):
        if is_for_vpc:
            return naming.Hierarchy.for_vpc(zone_id, account_id, domain_id,
                                            resource_id, resource_name)
        return naming.Hierarchy.for_network(zone_id, account_id, domain_id,
                                            resource_id, resource_name)

    def _network_hierarchy(self, network):
        vpc_name = None
        if network.vpc_id is not None:
            vpc_name = self._vpc(network.vpc_id).name
        return naming.Hierarchy.for_network(
            network.zone_id, network.account_id, network.domain_id,
            network.id, network.name, vpc_id=network.vpc_id,
            vpc_name=vpc_name)

    # VPC and vNet

    def create_vpc_resource(self, zone_id, account_id, domain_id, vpc_id,
                            vpc_name, source_nat_enabled, cidr, is_vpc):
        hierarchy = self._resource_hierarchy(zone_id, account_id, domain_id,
                                             vpc_name, vpc_id, is_vpc)
        cmd = commands.CreateNetrisVpcCommand(hierarchy, cidr,
                                              source_nat_enabled)
        return self.send(cmd, zone_id)

    def delete_vpc_resource(self, zone_id, account_id, domain_id, vpc):
        hierarchy = naming.Hierarchy.for_vpc(zone_id, account_id, domain_id,
                                             vpc.id, vpc.name)
        cmd = commands.DeleteNetrisVpcCommand(hierarchy, vpc.cidr)
        return self.send(cmd, zone_id)

    def create_vnet_resource(self, zone_id, account_id, domain_id, vpc_name,
                             vpc_id, network_name, network_id, cidr):
        network = self._network(network_id)
        zone = self._zone(zone_id)
        hierarchy = naming.Hierarchy.for_network(
            zone_id, account_id, domain_id, network_id, network_name,
            vpc_id=vpc_id, vpc_name=vpc_name)
        cmd = commands.CreateNetrisVnetCommand(
            hierarchy, cidr, gateway=network.gateway,
            vxlan_id=network.vxlan_id, netris_tag=zone.netris_tag,
            ipv6_cidr=network.ipv6_cidr)
        return self.send(cmd, zone_id)

    def delete_vnet_resource(self, zone_id, account_id, domain_id, vpc_name,
                             vpc_id, network_name, network_id, cidr):
        network = self._network(network_id)
        hierarchy = naming.Hierarchy.for_network(
            zone_id, account_id, domain_id, network_id, network_name,
            vpc_id=vpc_id, vpc_name=vpc_name)
        cmd = commands.DeleteNetrisVnetCommand(hierarchy, cidr,
                                               ipv6_cidr=network.ipv6_cidr)
        return self.send(cmd, zone_id)

    def implement_vpc(self, vpc_id):
        vpc = self._vpc(vpc_id)
        self._zone(vpc.zone_id)
        self.create_vpc_resource(vpc.zone_id, vpc.account_id, vpc.domain_id,
                                 vpc.id, vpc.name, vpc.source_nat_ip
                                 is not None, vpc.cidr, True)
        if vpc.source_nat_ip:
            self.update_vpc_source_nat_ip(vpc, vpc.source_nat_ip)
        return True

    def delete_vpc(self, vpc_id):
        vpc = self._vpc(vpc_id)
        if vpc.source_nat_ip:
            self.delete_snat_rule(vpc_hierarchy(vpc), vpc.source_nat_ip)
        return self.delete_vpc_resource(vpc.zone_id, vpc.account_id,
                                        vpc.domain_id, vpc)

    def implement_network(self, network_id):
        """Create the Netris objects of a network.

        A network outside of any VPC still needs a VPC on Netris, so its own
        VPC-like container is created first.
        """
        network = self._network(network_id)
        zone = self._zone(network.zone_id)
        account = self._account(network.account_id)
        domain = self._domain(network.domain_id)
        vpc_name = None
        vpc_id = None
        if network.vpc_id is not None:
            vpc = self._vpc(network.vpc_id)
            vpc_name = vpc.name
            vpc_id = vpc.id
        else:
            _log.debug("Creating a Netris VPC for the network %s before "
                       "creating its vNet", network.name)
            result = self.create_vpc_resource(
                zone.id, account.id, domain.id, network.id, network.name,
                network.source_nat, network.cidr, False)
            if not result:
                msg = ("Error creating Netris VPC for the network: %s" %
                       network.name)
                _log.error(msg)
                raise NetrisError(msg)
        result = self.create_vnet_resource(
            zone.id, account.id, domain.id, vpc_name, vpc_id, network.name,
            network.id, network.cidr)
        if not result:
            raise NetrisError("Failed to create Netris vNet resource for "
                              "network: %s" % network.name)
        if network.vpc_id is None and network.source_nat_ip:
            self.create_snat_rule(zone.id, account.id, domain.id, None, None,
                                  network.name, network.id, False,
                                  network.cidr, network.source_nat_ip)
        return True

    def delete_network(self, network_id):
        network = self._network(network_id)
        vpc_name = None
        if network.vpc_id is not None:
            vpc_name = self._vpc(network.vpc_id).name
        self.delete_vnet_resource(
            network.zone_id, network.account_id, network.domain_id, vpc_name,
            network.vpc_id, network.name, network.id, network.cidr)
        if network.vpc_id is None:
            hierarchy = naming.Hierarchy.for_network(
                network.zone_id, network.account_id, network.domain_id,
                network.id, network.name)
            if network.source_nat_ip:
                self.delete_snat_rule(hierarchy, network.source_nat_ip)
            cmd = commands.DeleteNetrisVpcCommand(hierarchy, network.cidr)
            self.send(cmd, network.zone_id)
        return True

    # NAT

    def create_snat_rule(self, zone_id, account_id, domain_id, vpc_name,
                         vpc_id, network_name, network_id, is_for_vpc,
                         vpc_cidr, snat_ip):
        if is_for_vpc:
            hierarchy = naming.Hierarchy.for_vpc(zone_id, account_id,
                                                 domain_id, vpc_id, vpc_name)
        else:
            hierarchy = naming.Hierarchy.for_network(
                zone_id, account_id, domain_id, network_id, network_name)
        cmd = commands.CreateOrUpdateNetrisNatCommand(
            hierarchy, constants.NAT_SNAT,
            naming.resource_name(naming.SNAT, hierarchy),
            vpc_cidr=vpc_cidr, nat_ip=snat_ip,
            protocol=constants.NAT_PROTOCOL_ALL,
            state=constants.NAT_STATE_ENABLED)
        return self.send(cmd, zone_id)

    def delete_snat_rule(self, hierarchy, snat_ip):
        cmd = commands.DeleteNetrisNatRuleCommand(
            hierarchy, constants.NAT_SNAT,
            naming.resource_name(naming.SNAT, hierarchy), nat_ip=snat_ip)
        return self.send(cmd, hierarchy.zone_id)

    def update_vpc_source_nat_ip(self, vpc, address):
        if vpc is None or address is None:
            return False
        _log.debug("Updating the source NAT IP for Netris VPC %s to IP: %s",
                   vpc.name, address)
        hierarchy = vpc_hierarchy(vpc)
        cmd = commands.CreateOrUpdateNetrisNatCommand(
            hierarchy, constants.NAT_SNAT,
            naming.resource_name(naming.SNAT, hierarchy),
            vpc_cidr=vpc.cidr, nat_ip=address,
            protocol=constants.NAT_PROTOCOL_ALL,
            state=constants.NAT_STATE_ENABLED)
        return self.send(cmd, vpc.zone_id)

    def _dnat_hierarchy(self, zone_id, account_id, domain_id, vpc_name,
                        vpc_id, network_name, network_id, is_for_vpc):
        if is_for_vpc:
            return naming.Hierarchy.for_vpc(zone_id, account_id, domain_id,
                                            vpc_id, vpc_name)
        return naming.Hierarchy.for_network(zone_id, account_id, domain_id,
                                            network_id, network_name)

    def create_port_forwarding_rule(self, zone_id, account_id, domain_id,
                                    vpc_name, vpc_id, network_name,
                                    network_id, is_for_vpc, vpc_cidr, rule):
        hierarchy = self._dnat_hierarchy(zone_id, account_id, domain_id,
                                         vpc_name, vpc_id, network_name,
                                         network_id, is_for_vpc)
        cmd = commands.CreateOrUpdateNetrisNatCommand(
            hierarchy, constants.NAT_DNAT,
            naming.resource_name(naming.DNAT, hierarchy,
                                 naming.rule_suffix(rule.rule_id)),
            vpc_cidr=vpc_cidr, protocol=rule.protocol.lower(),
            state=constants.NAT_STATE_ENABLED,
            destination_address=rule.public_ip,
            destination_port=rule.public_port,
            source_address=rule.vm_ip, source_port=rule.private_port)
        return self.send(cmd, zone_id)

    def delete_port_forwarding_rule(self, zone_id, account_id, domain_id,
                                    vpc_name, vpc_id, network_name,
                                    network_id, is_for_vpc, rule):
        hierarchy = self._dnat_hierarchy(zone_id, account_id, domain_id,
                                         vpc_name, vpc_id, network_name,
                                         network_id, is_for_vpc)
        cmd = commands.DeleteNetrisNatRuleCommand(
            hierarchy, constants.NAT_DNAT,
            naming.resource_name(naming.DNAT, hierarchy,
                                 naming.rule_suffix(rule.rule_id)))
        return self.send(cmd, zone_id)

    def create_static_nat_rule(self, zone_id, account_id, domain_id,
                               resource_name, resource_id, is_for_vpc,
                               vpc_cidr, static_nat_ip, vm_ip):
        hierarchy = self._resource_hierarchy(zone_id, account_id, domain_id,
                                             resource_name, resource_id,
                                             is_for_vpc)
        cmd = commands.CreateOrUpdateNetrisNatCommand(
            hierarchy, constants.NAT_STATICNAT,
            naming.resource_name(naming.STATICNAT, hierarchy),
            vpc_cidr=vpc_cidr, nat_ip=static_nat_ip, vm_ip=vm_ip)
        return self.send(cmd, zone_id)

    def delete_static_nat_rule(self, zone_id, account_id, domain_id,
                               resource_name, resource_id, is_for_vpc,
                               static_nat_ip):
        hierarchy = self._resource_hierarchy(zone_id, account_id, domain_id,
                                             resource_name, resource_id,
                                             is_for_vpc)
        cmd = commands.DeleteNetrisNatRuleCommand(
            hierarchy, constants.NAT_STATICNAT,
            naming.resource_name(naming.STATICNAT, hierarchy),
            nat_ip=static_nat_ip)
        return self.send(cmd, zone_id)

    def release_nat_ip(self, zone_id, public_ip):
        cmd = commands.ReleaseNatIpCommand(
            naming.Hierarchy.for_zone(zone_id), public_ip)
        return self.send(cmd, zone_id)

    # Firewall

    def _acl_name(self, hierarchy, rule):
        return naming.resource_name(naming.ACL, hierarchy,
                                    naming.rule_suffix(rule.rule_id))

    def acl_command(self, network, hierarchy, rule):
        cidrs = list(rule.source_cidrs or [constants.ANY_PREFIX])
        source, destination = acl_prefixes(rule.traffic_type, cidrs[0],
                                           network.cidr)
        source_port, destination_port = split_port_range(rule.private_port)
        icmp_type = None
        if (rule.protocol or "").upper() == "ICMP":
            icmp_type = rule.icmp_type
        return commands.CreateNetrisACLCommand(
            hierarchy, self._acl_name(hierarchy, rule),
            (rule.action or "allow").lower(), source, destination,
            source_port, destination_port, rule.protocol,
            icmp_type=icmp_type, reason=rule.reason)

    def add_firewall_rules(self, network, rules):
        hierarchy = self._network_hierarchy(network)
        for rule in rules:
            self.send(self.acl_command(network, hierarchy, rule),
                      network.zone_id)
        return True

    def delete_firewall_rules(self, network, rules):
        hierarchy = self._network_hierarchy(network)
        cmd = commands.DeleteNetrisACLCommand(
            hierarchy, [self._acl_name(hierarchy, rule) for rule in rules])
        return self.send(cmd, network.zone_id)

    # Static routes

    def add_or_update_static_route(self, zone_id, account_id, domain_id,
                                   resource_name, resource_id, is_for_vpc,
                                   prefix, next_hop, route_id, update_route):
        hierarchy = self._resource_hierarchy(zone_id, account_id, domain_id,
                                             resource_name, resource_id,
                                             is_for_vpc)
        cmd = commands.AddOrUpdateNetrisStaticRouteCommand(
            hierarchy,
            naming.resource_name(naming.STATICROUTE, hierarchy,
                                 naming.rule_suffix(route_id)),
            prefix, next_hop, update_route=update_route)
        return self.send(cmd, zone_id)

    def delete_static_route(self, zone_id, account_id, domain_id,
                            resource_name, resource_id, is_for_vpc, prefix,
                            next_hop, route_id):
        hierarchy = self._resource_hierarchy(zone_id, account_id, domain_id,
                                             resource_name, resource_id,
                                             is_for_vpc)
        cmd = commands.DeleteNetrisStaticRouteCommand(
            hierarchy,
            naming.resource_name(naming.STATICROUTE, hierarchy,
                                 naming.rule_suffix(route_id)),
            prefix=prefix, next_hop=next_hop)
        return self.send(cmd, zone_id)

    # Zone

    def public_range_command(self, zone_id, public_range):
        hierarchy = naming.Hierarchy.for_zone(zone_id)
        gateway = public_range.gateway or public_range.ip6_gateway
        if _is_ip_version(gateway, 4):
            super_cidr = cidr_from_gateway_and_netmask(gateway,
                                                       public_range.netmask)
            exact_cidr = calculate_subnet_cidr_from_ip_range(
                public_range.ip_range)
            return commands.SetupNetrisPublicRangeCommand(
                hierarchy, super_cidr, exact_cidr)
        if _is_ip_version(gateway, 6):
            return commands.SetupNetrisPublicRangeCommand(
                hierarchy, public_range.ip6_cidr, public_range.ip6_cidr)
        raise NetrisConfigError("Incorrect gateway and netmask details "
                                "provided for the Netris Public IP range "
                                "setup")

    def create_ipam_allocations_for_zone_public_ranges(self, zone_id):
        self._zone(zone_id)
        ranges = self.inventory.list_public_ranges(zone_id)
        if not ranges:
            msg = ("Cannot find a public IP range VLAN range for the Netris "
                   "Public traffic")
            _log.error(msg)
            raise NetrisConfigError(msg)
        for public_range in ranges:
            self.send(self.public_range_command(zone_id, public_range),
                      zone_id)
        return True

    def check_health(self, zone_id):
        cmd = commands.ReadyCommand(naming.Hierarchy.for_zone(zone_id))
        return self.send(cmd, zone_id)
