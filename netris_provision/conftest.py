import ipaddress
import logging

import pytest

from .client import NetrisClient, NetrisContext
from .dispatch import AgentDispatcher
from .inventory import PlatformInventory
from .resource import NetrisResource
from .service import NetrisService

SYSTEM_VPC_ID = 1
ADMIN_TENANT = {"id": 1, "name": "Admin"}


class FakeNetris(object):
    """In-memory Netris controller with the methods of netris_api.Netris.

    Every call is recorded in ``calls``.  Methods named in ``failing`` answer
    with ``isSuccess: false`` and methods named in ``empty`` with no body;
    neither changes the stored objects.
    """

    def __init__(self):
        self.calls = []
        self.failing = set()
        self.empty = set()
        self.last_id = 100
        self.sites = [{"id": 1, "name": "Default"}]
        self.tenants = [dict(ADMIN_TENANT)]
        self.vpcs = [{
            "id": SYSTEM_VPC_ID,
            "name": "Default System VPC",
            "isSystem": True,
            "adminTenant": dict(ADMIN_TENANT),
        }]
        self.allocations = []
        self.subnets = []
        self.vnets = []
        self.nat_rules = []
        self.acls = []
        self.routes = []

    def mutations(self):
        return [c for c in self.calls
                if not c.startswith("get_") and c != "auth_status"]

    def _result(self, method, action=None):
        self.calls.append(method)
        if method in self.empty:
            return None
        if method in self.failing:
            return {"isSuccess": False, "message": "%s failed" % method}
        return {"isSuccess": True, "data": action() if action else None}

    def _add(self, store, body):
        self.last_id += 1
        obj = dict(body, id=self.last_id)
        store.append(obj)
        return obj

    def _remove(self, store, obj_id):
        store[:] = [o for o in store if o["id"] != obj_id]

    def _replace(self, store, obj_id, body):
        for obj in store:
            if obj["id"] == obj_id:
                obj.update(body)
                return obj
        return None

    @staticmethod
    def _vpc_id(obj):
        return obj["vpc"]["id"]

    def auth_status(self):
        self.calls.append("auth_status")
        return 200

    def get_sites(self):
        return self._result("get_sites", lambda: list(self.sites))

    def get_tenants(self):
        return self._result("get_tenants", lambda: list(self.tenants))

    def get_vpcs(self):
        return self._result("get_vpcs", lambda: list(self.vpcs))

    def post_vpc(self, body):
        return self._result("post_vpc", lambda: self._add(self.vpcs, {
            "name": body["name"],
            "adminTenant": body["adminTenant"],
            "isSystem": False,
        }))

    def get_vpc_resources(self, vpc_id):
        return self._result("get_vpc_resources", lambda: [{
            "allocation": [a for a in self.allocations
                           if self._vpc_id(a) == vpc_id],
        }])

    def delete_vpc(self, vpc_id):
        return self._result("delete_vpc",
                            lambda: self._remove(self.vpcs, vpc_id))

    def get_ipam(self, site_ids, vpc_ids):
        def tree():
            ret = []
            for allocation in self.allocations:
                if self._vpc_id(allocation) in vpc_ids:
                    children = [s for s in self.subnets
                                if s["allocationID"] == allocation["id"]]
                    ret.append(dict(allocation, children=children))
            return ret
        return self._result("get_ipam", tree)

    def get_ipam_subnets(self, vpc_ids):
        return self._result("get_ipam_subnets", lambda: [
            s for s in self.subnets if self._vpc_id(s) in vpc_ids])

    def post_ipam_allocation(self, body):
        return self._result("post_ipam_allocation",
                            lambda: self._add(self.allocations, body))

    def _parent_allocation(self, body):
        net = ipaddress.ip_network(body["prefix"], strict=False)
        for allocation in self.allocations:
            parent = ipaddress.ip_network(allocation["prefix"], strict=False)
            if self._vpc_id(allocation) == self._vpc_id(body) and \
                    net.version == parent.version and net.subnet_of(parent):
                return allocation["id"]
        return None

    def post_ipam_subnet(self, body):
        return self._result("post_ipam_subnet", lambda: self._add(
            self.subnets,
            dict(body, allocationID=self._parent_allocation(body))))

    def delete_ipam(self, ipam_type, ipam_id):
        store = self.allocations if ipam_type == "allocation" \
            else self.subnets
        return self._result("delete_ipam",
                            lambda: self._remove(store, ipam_id))

    def get_vnets(self, site_ids, vpc_ids):
        return self._result("get_vnets", lambda: [
            v for v in self.vnets if self._vpc_id(v) in vpc_ids])

    def post_vnet(self, body):
        return self._result("post_vnet", lambda: self._add(self.vnets, body))

    def delete_vnet(self, vnet_id):
        return self._result("delete_vnet",
                            lambda: self._remove(self.vnets, vnet_id))

    def get_nat_rules(self):
        return self._result("get_nat_rules", lambda: list(self.nat_rules))

    def post_nat_rule(self, body):
        return self._result("post_nat_rule",
                            lambda: self._add(self.nat_rules, body))

    def put_nat_rule(self, nat_id, body):
        return self._result("put_nat_rule", lambda: self._replace(
            self.nat_rules, nat_id, body))

    def delete_nat_rule(self, nat_id):
        return self._result("delete_nat_rule",
                            lambda: self._remove(self.nat_rules, nat_id))

    def get_acls(self):
        return self._result("get_acls", lambda: list(self.acls))

    def post_acl(self, body):
        return self._result("post_acl", lambda: self._add(self.acls, body))

    def delete_acls(self, acl_ids):
        def remove():
            for acl_id in acl_ids:
                self._remove(self.acls, acl_id)
        return self._result("delete_acls", remove)

    def get_routes(self):
        return self._result("get_routes", lambda: list(self.routes))

    def post_route(self, body):
        return self._result("post_route",
                            lambda: self._add(self.routes, body))

    def put_route(self, route_id, body):
        return self._result("put_route", lambda: self._replace(
            self.routes, route_id, body))

    def delete_route(self, route_id):
        return self._result("delete_route",
                            lambda: self._remove(self.routes, route_id))


def platform_config():
    return {
        "zones": [{"id": 1, "name": "zone1", "netris_tag": "zone1"}],
        "domains": [{"id": 1, "name": "ROOT"}],
        "accounts": [{"id": 2, "name": "admin", "domain_id": 1}],
        "public_ranges": [{
            "id": 1, "zone_id": 1, "gateway": "203.0.113.1",
            "netmask": "255.255.255.0",
            "ip_range": "203.0.113.10-203.0.113.20",
        }],
        "vpcs": [{
            "id": 10, "name": "web", "zone_id": 1, "account_id": 2,
            "domain_id": 1, "cidr": "10.0.0.0/16",
        }],
        "networks": [
            {
                "id": 100, "name": "tier1", "zone_id": 1, "account_id": 2,
                "domain_id": 1, "vpc_id": 10, "cidr": "10.0.1.0/24",
                "gateway": "10.0.1.1", "vxlan_id": 1100,
            },
            {
                "id": 101, "name": "isolated", "zone_id": 1,
                "account_id": 2, "domain_id": 1, "cidr": "192.168.50.0/24",
                "gateway": "192.168.50.1", "vxlan_id": 1101,
            },
        ],
    }


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    logging.getLogger("netris_provision").handlers = []


@pytest.fixture
def fake_netris():
    return FakeNetris()


@pytest.fixture
def context():
    return NetrisContext(1, "Default", 1, "Admin")


@pytest.fixture
def client(fake_netris, context):
    return NetrisClient(fake_netris, context)


@pytest.fixture
def inventory():
    return PlatformInventory.from_config(platform_config())


@pytest.fixture
def service(client, inventory):
    dispatcher = AgentDispatcher()
    dispatcher.register(1, NetrisResource(client, host_id=1,
                                          host_name="netris"))
    return NetrisService(dispatcher, inventory)
