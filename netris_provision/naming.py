"""
Names of the objects created on the Netris controller.

Netris has no idea about the platform identifiers, so every object is named
from the platform hierarchy and looked up again by that name later on.  A
name is built as::

    D<domain>-A<account>-Z<zone>-<owner>-<TYPE>[-<suffix>...]

where the owner is ``V<vpc>`` or ``N<network>`` for objects that belong to a
VPC (or to the VPC-like container of a standalone network) and
``V<vpc>-N<network>`` / ``N<network>`` for objects that belong to a network.
Zone level objects only carry ``Z<zone>``.
"""

import collections

VPC = "VPC"
IPAM_ALLOCATION = "IPAM_ALLOCATION"
IPAM_SUBNET = "IPAM_SUBNET"
VNET = "VNET"
SNAT = "SNAT"
DNAT = "DNAT"
STATICNAT = "STATICNAT"
ACL = "ACL"
STATICROUTE = "STATICROUTE"

OBJECT_TYPES = (
    VPC, IPAM_ALLOCATION, IPAM_SUBNET, VNET,
    SNAT, DNAT, STATICNAT, ACL, STATICROUTE,
)

VPC_SCOPED = frozenset([VPC, IPAM_ALLOCATION, SNAT, DNAT, STATICNAT,
                        STATICROUTE])
NETWORK_SCOPED = frozenset([VNET, IPAM_SUBNET, ACL])

DELIMITER = "-"


class Hierarchy(collections.namedtuple(
        "Hierarchy", ["zone_id", "account_id", "domain_id",
                      "vpc_id", "vpc_name", "network_id", "network_name"])):
    __slots__ = ()

    @property
    def is_vpc(self):
        return self.vpc_id is not None

    @property
    def is_zone_level(self):
        return self.account_id is None and self.domain_id is None

    @classmethod
    def for_zone(cls, zone_id):
        _require(zone_id=zone_id)
        return cls(zone_id, None, None, None, None, None, None)

    @classmethod
    def for_vpc(cls, zone_id, account_id, domain_id, vpc_id, vpc_name):
        _require(zone_id=zone_id, account_id=account_id,
                 domain_id=domain_id, vpc_id=vpc_id)
        return cls(zone_id, account_id, domain_id, vpc_id, vpc_name,
                   None, None)

    @classmethod
    def for_network(cls, zone_id, account_id, domain_id, network_id,
                    network_name, vpc_id=None, vpc_name=None):
        _require(zone_id=zone_id, account_id=account_id,
                 domain_id=domain_id, network_id=network_id)
        return cls(zone_id, account_id, domain_id, vpc_id, vpc_name,
                   network_id, network_name)


def _require(**ids):
    for key in sorted(ids):
        if ids[key] is None:
            raise ValueError("Missing %s for a Netris object name" % key)


def hierarchy_prefix(hierarchy):
    if hierarchy.is_zone_level:
        return "Z%s" % hierarchy.zone_id
    return "D%s-A%s-Z%s" % (hierarchy.domain_id, hierarchy.account_id,
                            hierarchy.zone_id)


def owner_marker(object_type, hierarchy):
    if hierarchy.vpc_id is None and hierarchy.network_id is None:
        return None
    if object_type in NETWORK_SCOPED:
        if hierarchy.is_vpc:
            return "V%s-N%s" % (hierarchy.vpc_id, hierarchy.network_id)
        return "N%s" % hierarchy.network_id
    if hierarchy.is_vpc:
        return "V%s" % hierarchy.vpc_id
    return "N%s" % hierarchy.network_id


def default_suffixes(object_type, hierarchy):
    if object_type == VPC:
        name = hierarchy.vpc_name if hierarchy.is_vpc \
            else hierarchy.network_name
        return (name,) if name else ()
    if object_type == VNET and hierarchy.network_name:
        return (hierarchy.network_name,)
    return ()


def resource_name(object_type, hierarchy, *suffixes):
    if object_type not in OBJECT_TYPES:
        raise ValueError("Unknown Netris object type: %s" % object_type)
    if not suffixes:
        suffixes = default_suffixes(object_type, hierarchy)
    parts = [hierarchy_prefix(hierarchy)]
    owner = owner_marker(object_type, hierarchy)
    if owner:
        parts.append(owner)
    parts.append(object_type)
    parts.extend(str(s) for s in suffixes)
    return DELIMITER.join(parts)


def rule_suffix(rule_id):
    return "R%s" % rule_id
