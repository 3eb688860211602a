"""
Commands sent from the orchestration service to the Netris host of a zone.

A command only carries data: the platform hierarchy it applies to plus the
parameters of the operation.  Names of the Netris objects are either set by
the service (NAT, ACL rules) or derived by the client from the hierarchy.
"""


class NetrisCommand(object):
    def __init__(self, hierarchy):
        self.hierarchy = hierarchy

    @property
    def zone_id(self):
        return self.hierarchy.zone_id

    @property
    def name(self):
        return self.__class__.__name__

    def __repr__(self):
        attrs = ", ".join("%s=%r" % (k, v)
                          for k, v in sorted(vars(self).items()))
        return "%s(%s)" % (self.name, attrs)


class ReadyCommand(NetrisCommand):
    """Handshake sent when a Netris host connects for a zone."""

    def __init__(self, hierarchy, host_id=None, host_name=None):
        super(ReadyCommand, self).__init__(hierarchy)
        self.host_id = host_id
        self.host_name = host_name
        self.details = None


class CreateNetrisVpcCommand(NetrisCommand):
    def __init__(self, hierarchy, cidr, source_nat_enabled=False):
        super(CreateNetrisVpcCommand, self).__init__(hierarchy)
        self.cidr = cidr
        self.source_nat_enabled = source_nat_enabled


class DeleteNetrisVpcCommand(NetrisCommand):
    def __init__(self, hierarchy, cidr):
        super(DeleteNetrisVpcCommand, self).__init__(hierarchy)
        self.cidr = cidr


class CreateNetrisVnetCommand(NetrisCommand):
    def __init__(self, hierarchy, cidr, gateway=None, vxlan_id=None,
                 netris_tag=None, ipv6_cidr=None):
        super(CreateNetrisVnetCommand, self).__init__(hierarchy)
        self.cidr = cidr
        self.gateway = gateway
        self.vxlan_id = vxlan_id
        self.netris_tag = netris_tag
        self.ipv6_cidr = ipv6_cidr


class DeleteNetrisVnetCommand(NetrisCommand):
    def __init__(self, hierarchy, cidr, ipv6_cidr=None):
        super(DeleteNetrisVnetCommand, self).__init__(hierarchy)
        self.cidr = cidr
        self.ipv6_cidr = ipv6_cidr


class SetupNetrisPublicRangeCommand(NetrisCommand):
    def __init__(self, hierarchy, super_cidr, exact_cidr):
        super(SetupNetrisPublicRangeCommand, self).__init__(hierarchy)
        self.super_cidr = super_cidr
        self.exact_cidr = exact_cidr


class CreateOrUpdateNetrisNatCommand(NetrisCommand):
    def __init__(self, hierarchy, nat_rule_type, nat_rule_name, vpc_cidr=None,
                 nat_ip=None, vm_ip=None, protocol=None, state=None,
                 source_address=None, source_port=None,
                 destination_address=None, destination_port=None):
        super(CreateOrUpdateNetrisNatCommand, self).__init__(hierarchy)
        self.nat_rule_type = nat_rule_type
        self.nat_rule_name = nat_rule_name
        self.vpc_cidr = vpc_cidr
        self.nat_ip = nat_ip
        self.vm_ip = vm_ip
        self.protocol = protocol
        self.state = state
        self.source_address = source_address
        self.source_port = source_port
        self.destination_address = destination_address
        self.destination_port = destination_port


class DeleteNetrisNatRuleCommand(NetrisCommand):
    def __init__(self, hierarchy, nat_rule_type, nat_rule_name, nat_ip=None):
        super(DeleteNetrisNatRuleCommand, self).__init__(hierarchy)
        self.nat_rule_type = nat_rule_type
        self.nat_rule_name = nat_rule_name
        self.nat_ip = nat_ip


class ReleaseNatIpCommand(NetrisCommand):
    def __init__(self, hierarchy, nat_ip):
        super(ReleaseNatIpCommand, self).__init__(hierarchy)
        self.nat_ip = nat_ip


class CreateNetrisACLCommand(NetrisCommand):
    def __init__(self, hierarchy, acl_name, action, source_prefix,
                 destination_prefix, source_port, destination_port, protocol,
                 icmp_type=None, reason=None):
        super(CreateNetrisACLCommand, self).__init__(hierarchy)
        self.acl_name = acl_name
        self.action = action
        self.source_prefix = source_prefix
        self.destination_prefix = destination_prefix
        self.source_port = source_port
        self.destination_port = destination_port
        self.protocol = protocol
        self.icmp_type = icmp_type
        self.reason = reason


class DeleteNetrisACLCommand(NetrisCommand):
    def __init__(self, hierarchy, acl_rule_names):
        super(DeleteNetrisACLCommand, self).__init__(hierarchy)
        self.acl_rule_names = list(acl_rule_names)


class AddOrUpdateNetrisStaticRouteCommand(NetrisCommand):
    def __init__(self, hierarchy, route_name, prefix, next_hop,
                 update_route=False):
        super(AddOrUpdateNetrisStaticRouteCommand, self).__init__(hierarchy)
        self.route_name = route_name
        self.prefix = prefix
        self.next_hop = next_hop
        self.update_route = update_route


class DeleteNetrisStaticRouteCommand(NetrisCommand):
    def __init__(self, hierarchy, route_name, prefix=None, next_hop=None):
        super(DeleteNetrisStaticRouteCommand, self).__init__(hierarchy)
        self.route_name = route_name
        self.prefix = prefix
        self.next_hop = next_hop
