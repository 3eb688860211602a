import collections
import ipaddress
import logging

from . import constants
from . import naming
from .exceptions import (NetrisApiError, NetrisConfigError, NetrisError,
                         NetrisNotFoundError)
from .netris_api import ref

_log = logging.getLogger(__name__)


NetrisContext = collections.namedtuple(
    "NetrisContext", ["site_id", "site_name", "tenant_id", "tenant_name"])


def succeeded(resp):
    return resp is not None and resp.get("isSuccess") is True


def failure_reason(resp):
    if resp is None:
        return constants.REASON_EMPTY
    return constants.REASON_FAILED


class Failure(object):
    """False result of an operation Netris answered without success."""

    def __init__(self, reason):
        self.reason = reason

    def __bool__(self):
        return False

    def __repr__(self):
        return "Failure(%r)" % self.reason


def listing(resp, operation):
    if resp is None:
        return []
    if resp.get("isSuccess") is False:
        raise NetrisApiError(operation, resp.get("message",
                                                 constants.REASON_FAILED))
    return resp.get("data") or []


def host_prefix(ip):
    addr = ipaddress.ip_address(ip)
    return "%s/%s" % (addr, addr.max_prefixlen)


def gateway_prefix(gateway, cidr):
    if not gateway:
        return cidr
    net = ipaddress.ip_network(cidr, strict=False)
    return "%s/%s" % (gateway, net.prefixlen)


def list_sites(api):
    return listing(api.get_sites(), "Error listing Netris Sites")


def list_tenants(api):
    return listing(api.get_tenants(), "Error listing Netris Tenants")


def _match_one(entries, name, kind):
    if not entries:
        raise NetrisConfigError(
            "There are no Netris %ss, please check the Netris endpoint" % kind)
    matches = [x for x in entries if x.get("name") == name]
    if not matches:
        raise NetrisConfigError(
            "Cannot find a %s matching name %s on Netris, please check the "
            "Netris endpoint" % (kind, name))
    if len(matches) > 1:
        raise NetrisConfigError(
            "Found %d Netris %ss named %s, expected exactly one" %
            (len(matches), kind, name))
    return matches[0]


def resolve_context(api, site_name, tenant_name):
    """Resolve the configured site and admin tenant names to Netris ids."""
    site = _match_one(list_sites(api), site_name, "site")
    tenant = _match_one(list_tenants(api), tenant_name, "tenant")
    _log.info("Using Netris site %s (%s) and tenant %s (%s)",
              site_name, site["id"], tenant_name, tenant["id"])
    return NetrisContext(int(site["id"]), site_name,
                         int(tenant["id"]), tenant_name)


class NetrisClient(object):
    """Typed Netris operations, scoped to one site and admin tenant.

    Nothing is cached besides the resolved context: every operation lists the
    controller objects again and matches them by name.
    """

    def __init__(self, api, context):
        self.api = api
        self.context = context

    @classmethod
    def connect(cls, api, site_name, tenant_name):
        return cls(api, resolve_context(api, site_name, tenant_name))

    def site_ref(self):
        return {"id": self.context.site_id, "name": self.context.site_name}

    def tenant_ref(self):
        return {"id": self.context.tenant_id,
                "name": self.context.tenant_name}

    def is_session_alive(self):
        try:
            return self.api.auth_status() == 200
        except NetrisApiError as e:
            raise NetrisConfigError(
                "Error checking the Netris API session is alive: %s" % e)

    def list_sites(self):
        return list_sites(self.api)

    def list_tenants(self):
        return list_tenants(self.api)

    def list_vpcs(self):
        return listing(self.api.get_vpcs(), "Error listing Netris VPCs")

    # VPC lookups

    def find_vpc(self, vpc_name):
        for vpc in self.list_vpcs():
            tenant = vpc.get("adminTenant") or {}
            if vpc.get("name") == vpc_name and \
                    tenant.get("id") == self.context.tenant_id:
                return vpc
        return None

    def get_vpc(self, vpc_name):
        vpc = self.find_vpc(vpc_name)
        if vpc is None:
            msg = ("Could not find the Netris VPC resource with name %s and "
                   "tenant ID %s" % (vpc_name, self.context.tenant_id))
            _log.error(msg)
            raise NetrisNotFoundError(msg)
        return vpc

    def get_system_vpc(self):
        for vpc in self.list_vpcs():
            if vpc.get("isSystem"):
                return vpc
        msg = "Cannot find any system VPC"
        _log.error(msg)
        raise NetrisNotFoundError(msg)

    def _vpc_allocations(self, vpc):
        resources = listing(self.api.get_vpc_resources(vpc["id"]),
                            "Error listing resources of Netris VPC %s" %
                            vpc["name"])
        if not resources:
            return []
        return resources[0].get("allocation") or []

    # IPAM helpers

    def _create_ipam_allocation(self, name, prefix, vpc):
        _log.debug("Creating Netris IPAM Allocation %s for VPC %s",
                   prefix, vpc["name"])
        body = {
            "name": name,
            "prefix": prefix,
            "tenant": self.tenant_ref(),
            "vpc": ref(vpc),
        }
        resp = self.api.post_ipam_allocation(body)
        if not succeeded(resp):
            _log.debug("The Netris Allocation %s for VPC %s creation "
                       "failed: %s", prefix, vpc["name"], failure_reason(resp))
            return None
        return resp.get("data") or {}

    def _list_subnets(self, vpc):
        return listing(self.api.get_ipam_subnets([vpc["id"]]),
                       "Error listing Netris IPAM subnets for VPC %s" %
                       vpc["name"])

    def _create_ipam_subnet(self, name, prefix, purpose, vpc):
        _log.debug("Creating Netris IPAM Subnet %s for VPC %s",
                   prefix, vpc["name"])
        body = {
            "name": name,
            "prefix": prefix,
            "purpose": purpose,
            "tenant": self.tenant_ref(),
            "vpc": ref(vpc),
            "sites": [self.site_ref()],
        }
        resp = self.api.post_ipam_subnet(body)
        if not succeeded(resp):
            reason = failure_reason(resp)
            _log.debug("The Netris IPAM Subnet %s creation failed: %s",
                       name, reason)
            raise NetrisError("Could not create the Netris IPAM Subnet %s: %s"
                              % (name, reason))
        return resp.get("data") or {}

    def _ensure_ipam_subnet(self, name, prefix, purpose, vpc):
        for subnet in self._list_subnets(vpc):
            if subnet.get("name") == name:
                _log.info("Netris IPAM Subnet %s already exists", name)
                return subnet
        return self._create_ipam_subnet(name, prefix, purpose, vpc)

    def _delete_ipam_subnet_by_name(self, vpc, subnet_name, owner_name):
        matches = [s for s in self._list_subnets(vpc)
                   if s.get("name") == subnet_name]
        if not matches:
            _log.info("IPAM subnet: %s for the given vNet: %s appears to "
                      "already be deleted on Netris", subnet_name, owner_name)
            return True
        resp = self.api.delete_ipam(constants.IPAM_TYPE_SUBNET,
                                    matches[0]["id"])
        if not succeeded(resp):
            return Failure(failure_reason(resp))
        return True

    # VPC

    def create_vpc(self, cmd):
        """Create the Netris VPC and its IPAM allocation for the VPC CIDR.

        Both objects are looked up first and reused when present.  A failure
        after the VPC exists leaves it in place.
        """
        hierarchy = cmd.hierarchy
        vpc_name = naming.resource_name(naming.VPC, hierarchy)
        vpc = self.find_vpc(vpc_name)
        if vpc is not None:
            _log.info("Netris VPC %s already exists, reusing it", vpc_name)
        else:
            _log.debug("Creating Netris VPC %s with source NAT %s", vpc_name,
                       "enabled" if cmd.source_nat_enabled else "disabled")
            body = {
                "name": vpc_name,
                "adminTenant": self.tenant_ref(),
                "guestTenant": [],
                "tags": [],
            }
            resp = self.api.post_vpc(body)
            if not succeeded(resp):
                _log.debug("The Netris VPC %s creation failed: %s",
                           vpc_name, failure_reason(resp))
                return Failure(failure_reason(resp))
            vpc = resp.get("data") or {}
            vpc.setdefault("name", vpc_name)

        for allocation in self._vpc_allocations(vpc):
            if allocation.get("prefix") == cmd.cidr:
                _log.info("Netris IPAM Allocation %s already exists for VPC "
                          "%s", cmd.cidr, vpc_name)
                return True
        allocation_name = naming.resource_name(naming.IPAM_ALLOCATION,
                                               hierarchy, cmd.cidr)
        allocation = self._create_ipam_allocation(allocation_name, cmd.cidr,
                                                  vpc)
        if allocation is None:
            return False
        _log.debug("Successfully created VPC %s and its IPAM Allocation %s "
                   "on Netris", vpc_name, cmd.cidr)
        return True

    def delete_vpc(self, cmd):
        vpc_name = naming.resource_name(naming.VPC, cmd.hierarchy)
        vpc = self.get_vpc(vpc_name)
        result = self._delete_vpc_allocation(vpc, cmd.cidr)
        if not result:
            return result
        _log.debug("Removing the VPC %s with ID %s", vpc["name"], vpc["id"])
        resp = self.api.delete_vpc(vpc["id"])
        if not succeeded(resp):
            _log.debug("The Netris VPC %s deletion failed: %s",
                       vpc_name, failure_reason(resp))
            return Failure(failure_reason(resp))
        return True

    def _delete_vpc_allocation(self, vpc, vpc_cidr):
        _log.debug("Deleting Netris VPC IPAM Allocation %s for VPC %s",
                   vpc_cidr, vpc["name"])
        allocations = self._vpc_allocations(vpc)
        if not allocations:
            _log.info("No VPC IPAM Allocation found for VPC %s", vpc_cidr)
            return True
        if len(allocations) > 1:
            _log.warning("Unexpected VPC allocations size %d, one expected",
                         len(allocations))
        allocation = allocations[0]
        for candidate in allocations:
            if candidate.get("prefix") == vpc_cidr:
                allocation = candidate
                break
        _log.debug("Removing the IPAM allocation %s with ID %s",
                   allocation.get("name"), allocation["id"])
        resp = self.api.delete_ipam(constants.IPAM_TYPE_ALLOCATION,
                                    allocation["id"])
        if not succeeded(resp):
            _log.debug("The Netris IPAM Allocation %s deletion failed: %s",
                       vpc_cidr, failure_reason(resp))
            return Failure(failure_reason(resp))
        return True

    # vNet

    def _find_vnet(self, vpc, vnet_name):
        vnets = listing(
            self.api.get_vnets([self.context.site_id], [vpc["id"]]),
            "Failed to list vNets for the given VPC: %s and site: %s" %
            (vpc["name"], self.context.site_name))
        for vnet in vnets:
            if vnet.get("name") == vnet_name:
                return vnet
        return None

    def _vnet_body(self, cmd, vnet_name, vpc):
        gateways = [gateway_prefix(cmd.gateway, cmd.cidr)]
        if cmd.ipv6_cidr:
            gateways.append(cmd.ipv6_cidr)
        body = {
            "name": vnet_name,
            "customAnycastMac": "",
            "gateways": [
                {
                    "prefix": gw,
                    "dhcpEnabled": False,
                    "dhcp": {"start": "", "end": "", "optionSet": {}},
                }
                for gw in gateways
            ],
            "guestTenants": [],
            "l3vpn": False,
            "nativeVlan": 0,
            "ports": [],
            "sites": [self.site_ref()],
            "state": constants.VNET_STATE_ACTIVE,
            "tags": [cmd.netris_tag] if cmd.netris_tag else [],
            "tenant": self.tenant_ref(),
            "vlan": 0,
            "vlanAware": False,
            "vlans": "",
            "vpc": ref(vpc),
        }
        if cmd.vxlan_id is not None:
            body["vxlanID"] = int(cmd.vxlan_id)
        return body

    def create_vnet(self, cmd):
        hierarchy = cmd.hierarchy
        vpc_name = naming.resource_name(naming.VPC, hierarchy)
        vpc = self.find_vpc(vpc_name)
        if vpc is None:
            msg = ("Failed to find Netris VPC with name: %s, to create the "
                   "corresponding vNet for network %s" %
                   (vpc_name, hierarchy.network_name))
            _log.error(msg)
            raise NetrisNotFoundError(msg)

        vnet_name = naming.resource_name(naming.VNET, hierarchy)
        subnet_name = naming.resource_name(naming.IPAM_SUBNET, hierarchy,
                                           cmd.cidr)
        self._ensure_ipam_subnet(subnet_name, cmd.cidr,
                                 constants.PURPOSE_COMMON, vpc)
        _log.debug("Successfully created IPAM Subnet %s for network %s on "
                   "Netris", subnet_name, hierarchy.network_name)
        if cmd.ipv6_cidr:
            ipv6_subnet_name = naming.resource_name(
                naming.IPAM_SUBNET, hierarchy, cmd.ipv6_cidr)
            self._ensure_ipam_subnet(ipv6_subnet_name, cmd.ipv6_cidr,
                                     constants.PURPOSE_COMMON, vpc)

        if self._find_vnet(vpc, vnet_name) is not None:
            _log.info("Netris vNet %s already exists", vnet_name)
            return True

        _log.debug("Creating Netris VPC vNet %s for CIDR %s",
                   vnet_name, cmd.cidr)
        resp = self.api.post_vnet(self._vnet_body(cmd, vnet_name, vpc))
        if not succeeded(resp):
            _log.debug("The Netris vNet creation %s failed: %s",
                       vnet_name, failure_reason(resp))
            return Failure(failure_reason(resp))
        return True

    def delete_vnet(self, cmd):
        """Delete the vNet, then its IPv4 and IPv6 IPAM subnets.

        The subnet cannot go first: Netris refuses to delete a subnet that a
        vNet still uses.
        """
        hierarchy = cmd.hierarchy
        vpc_name = naming.resource_name(naming.VPC, hierarchy)
        vpc = self.find_vpc(vpc_name)
        if vpc is None:
            msg = ("Failed to find Netris VPC with name: %s, to delete the "
                   "corresponding vNet for network %s" %
                   (vpc_name, hierarchy.network_name))
            _log.error(msg)
            raise NetrisNotFoundError(msg)

        vnet_name = naming.resource_name(naming.VNET, hierarchy)
        subnet_name = naming.resource_name(naming.IPAM_SUBNET, hierarchy,
                                           cmd.cidr)
        vnet = self._find_vnet(vpc, vnet_name)
        if vnet is None:
            _log.info("vNet: %s for the given VPC: %s appears to already be "
                      "deleted on Netris", vnet_name, vpc["name"])
        else:
            resp = self.api.delete_vnet(vnet["id"])
            if not succeeded(resp):
                raise NetrisError("Failed to delete vNet: %s" % vnet_name)
            _log.debug("Successfully deleted vNet %s", vnet_name)
        result = self._delete_ipam_subnet_by_name(vpc, subnet_name,
                                                  vnet_name)
        if not result:
            return result
        if cmd.ipv6_cidr:
            ipv6_subnet_name = naming.resource_name(
                naming.IPAM_SUBNET, hierarchy, cmd.ipv6_cidr)
            return self._delete_ipam_subnet_by_name(vpc, ipv6_subnet_name,
                                                    vnet_name)
        return True

    # Zone public range

    def _allocation_id_by_prefix(self, prefix, vpc):
        tree = listing(
            self.api.get_ipam([self.context.site_id], [vpc["id"]]),
            "Error listing Netris IPAM for VPC %s" % vpc["name"])
        for allocation in tree:
            if allocation.get("prefix") == prefix:
                return allocation["id"]
        return None

    def setup_zone_level_public_range(self, cmd):
        super_cidr = cmd.super_cidr
        exact_cidr = cmd.exact_cidr
        system_vpc = self.get_system_vpc()
        _log.debug("Checking if the Netris Public Super CIDR %s exists",
                   super_cidr)
        allocation_id = self._allocation_id_by_prefix(super_cidr, system_vpc)
        if allocation_id is None:
            name = naming.resource_name(naming.IPAM_ALLOCATION,
                                        cmd.hierarchy, super_cidr)
            allocation = self._create_ipam_allocation(name, super_cidr,
                                                      system_vpc)
            if allocation is None:
                msg = ("Could not create the zone level super CIDR %s for "
                       "the system VPC" % super_cidr)
                _log.error(msg)
                raise NetrisError(msg)
            allocation_id = allocation["id"]

        for subnet in self._list_subnets(system_vpc):
            if subnet.get("allocationID") == allocation_id and \
                    subnet.get("prefix") == exact_cidr and \
                    subnet.get("purpose") == constants.PURPOSE_NAT:
                _log.debug("Netris Public range %s already exists",
                           exact_cidr)
                return True
        name = naming.resource_name(naming.IPAM_SUBNET, cmd.hierarchy,
                                    exact_cidr)
        self._create_ipam_subnet(name, exact_cidr, constants.PURPOSE_NAT,
                                 system_vpc)
        return True

    # NAT

    def _nat_subnet_name(self, hierarchy, prefix):
        zone = naming.Hierarchy.for_zone(hierarchy.zone_id)
        return naming.resource_name(naming.IPAM_SUBNET, zone, prefix)

    def _reserve_nat_ip(self, hierarchy, nat_ip):
        system_vpc = self.get_system_vpc()
        prefix = host_prefix(nat_ip)
        for subnet in self._list_subnets(system_vpc):
            if subnet.get("prefix") == prefix and \
                    subnet.get("purpose") == constants.PURPOSE_NAT:
                return subnet
        return self._create_ipam_subnet(
            self._nat_subnet_name(hierarchy, prefix), prefix,
            constants.PURPOSE_NAT, system_vpc)

    def _release_nat_ip(self, nat_ip):
        system_vpc = self.get_system_vpc()
        prefix = host_prefix(nat_ip)
        for subnet in self._list_subnets(system_vpc):
            if subnet.get("prefix") == prefix and \
                    subnet.get("purpose") == constants.PURPOSE_NAT:
                resp = self.api.delete_ipam(constants.IPAM_TYPE_SUBNET,
                                            subnet["id"])
                if not succeeded(resp):
                    return Failure(failure_reason(resp))
                return True
        _log.info("NAT IP %s is not reserved on Netris", nat_ip)
        return True

    def _find_nat_rule(self, rule_name):
        for rule in listing(self.api.get_nat_rules(),
                            "Error listing Netris NAT rules"):
            if rule.get("name") == rule_name:
                return rule
        return None

    def _nat_body(self, cmd, vpc):
        body = {
            "name": cmd.nat_rule_name,
            "action": cmd.nat_rule_type,
            "state": cmd.state or constants.NAT_STATE_ENABLED,
            "protocol": cmd.protocol or constants.NAT_PROTOCOL_ALL,
            "site": self.site_ref(),
            "vpc": ref(vpc),
        }
        if cmd.nat_rule_type == constants.NAT_SNAT:
            body.update({
                "srcAddress": cmd.vpc_cidr,
                "dstAddress": constants.ALL_IP4_CIDRS,
                "natIP": cmd.nat_ip,
            })
        elif cmd.nat_rule_type == constants.NAT_DNAT:
            body.update({
                "srcAddress": constants.ALL_IP4_CIDRS,
                "dstAddress": host_prefix(cmd.destination_address),
                "dstPort": str(cmd.destination_port),
                "dnatToIP": cmd.source_address,
                "dnatToPort": str(cmd.source_port),
            })
        else:
            body.update({
                "srcAddress": host_prefix(cmd.vm_ip),
                "dstAddress": constants.ALL_IP4_CIDRS,
                "natIP": cmd.nat_ip,
                "dnatToIP": cmd.vm_ip,
            })
        return body

    def create_or_update_nat_rule(self, cmd):
        hierarchy = cmd.hierarchy
        vpc = self.get_vpc(naming.resource_name(naming.VPC, hierarchy))
        public_ip = cmd.destination_address \
            if cmd.nat_rule_type == constants.NAT_DNAT else cmd.nat_ip
        if public_ip:
            self._reserve_nat_ip(hierarchy, public_ip)
        body = self._nat_body(cmd, vpc)
        existing = self._find_nat_rule(cmd.nat_rule_name)
        if existing is not None:
            _log.debug("Updating Netris %s rule %s", cmd.nat_rule_type,
                       cmd.nat_rule_name)
            resp = self.api.put_nat_rule(existing["id"], body)
        else:
            _log.debug("Creating Netris %s rule %s", cmd.nat_rule_type,
                       cmd.nat_rule_name)
            resp = self.api.post_nat_rule(body)
        if not succeeded(resp):
            _log.debug("The Netris NAT rule %s creation failed: %s",
                       cmd.nat_rule_name, failure_reason(resp))
            return Failure(failure_reason(resp))
        return True

    def delete_nat_rule(self, cmd):
        rule = self._find_nat_rule(cmd.nat_rule_name)
        if rule is None:
            _log.info("NAT rule: %s appears to already be deleted on Netris",
                      cmd.nat_rule_name)
        else:
            resp = self.api.delete_nat_rule(rule["id"])
            if not succeeded(resp):
                _log.debug("The Netris NAT rule %s deletion failed: %s",
                           cmd.nat_rule_name, failure_reason(resp))
                return Failure(failure_reason(resp))
        if cmd.nat_ip:
            return self._release_nat_ip(cmd.nat_ip)
        return True

    def release_nat_ip(self, cmd):
        return self._release_nat_ip(cmd.nat_ip)

    # ACL

    def _list_acls(self):
        return listing(self.api.get_acls(), "Error listing Netris ACLs")

    def create_acl_rule(self, cmd):
        vpc = self.get_vpc(naming.resource_name(naming.VPC, cmd.hierarchy))
        for acl in self._list_acls():
            if acl.get("name") == cmd.acl_name:
                _log.info("Netris ACL %s already exists", cmd.acl_name)
                return True
        # The rule's port range applies to the destination side.
        body = {
            "name": cmd.acl_name,
            "action": cmd.action,
            "protocol": (cmd.protocol or constants.NAT_PROTOCOL_ALL).lower(),
            "srcPrefix": cmd.source_prefix,
            "srcPortFrom": constants.PORT_MIN,
            "srcPortTo": constants.PORT_MAX,
            "dstPrefix": cmd.destination_prefix,
            "dstPortFrom": cmd.source_port,
            "dstPortTo": cmd.destination_port,
            "comment": cmd.reason or "",
            "vpc": ref(vpc),
        }
        if cmd.icmp_type is not None:
            body["icmpType"] = cmd.icmp_type
        _log.debug("Creating Netris ACL %s", cmd.acl_name)
        resp = self.api.post_acl(body)
        if not succeeded(resp):
            _log.debug("The Netris ACL %s creation failed: %s",
                       cmd.acl_name, failure_reason(resp))
            return Failure(failure_reason(resp))
        return True

    def delete_acl_rules(self, cmd):
        names = set(cmd.acl_rule_names)
        ids = [acl["id"] for acl in self._list_acls()
               if acl.get("name") in names]
        if not ids:
            _log.info("ACL rules %s appear to already be deleted on Netris",
                      ", ".join(cmd.acl_rule_names))
            return True
        resp = self.api.delete_acls(ids)
        if not succeeded(resp):
            _log.debug("The Netris ACL deletion failed: %s",
                       failure_reason(resp))
            return Failure(failure_reason(resp))
        return True

    # Static routes

    def _find_route(self, route_name):
        for route in listing(self.api.get_routes(),
                             "Error listing Netris static routes"):
            if route.get("description") == route_name:
                return route
        return None

    def add_or_update_static_route(self, cmd):
        vpc = self.get_vpc(naming.resource_name(naming.VPC, cmd.hierarchy))
        body = {
            "description": cmd.route_name,
            "prefix": cmd.prefix,
            "nextHop": cmd.next_hop,
            "site": self.site_ref(),
            "vpc": ref(vpc),
            "state": constants.NAT_STATE_ENABLED,
        }
        existing = self._find_route(cmd.route_name)
        if existing is not None:
            if not cmd.update_route:
                _log.info("Netris static route %s already exists",
                          cmd.route_name)
                return True
            resp = self.api.put_route(existing["id"], body)
        else:
            resp = self.api.post_route(body)
        if not succeeded(resp):
            _log.debug("The Netris static route %s failed: %s",
                       cmd.route_name, failure_reason(resp))
            return Failure(failure_reason(resp))
        return True

    def delete_static_route(self, cmd):
        route = self._find_route(cmd.route_name)
        if route is None:
            _log.info("Static route: %s appears to already be deleted on "
                      "Netris", cmd.route_name)
            return True
        resp = self.api.delete_route(route["id"])
        if not succeeded(resp):
            _log.debug("The Netris static route %s deletion failed: %s",
                       cmd.route_name, failure_reason(resp))
            return Failure(failure_reason(resp))
        return True
