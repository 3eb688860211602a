import json
import logging

import requests
import urllib3

from . import constants
from .exceptions import NetrisApiError

urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

_log = logging.getLogger(__name__)


def ref(obj):
    """Reduce a Netris object to the {id, name} reference used in bodies."""
    return {"id": obj["id"], "name": obj["name"]}


class Netris(object):
    """Thin binding of the Netris REST API.

    Every call returns the decoded JSON body.  Transport errors and non 2xx
    responses raise NetrisApiError.  Apart from the login, the ``isSuccess``
    flag of the body is left to the caller.
    """

    def __init__(self, url, username, password, verify=False, timeout=None,
                 session=None):
        self.base_url = url.rstrip("/")
        self.username = username
        self.password = password
        self.verify = verify
        self.timeout = timeout if timeout else constants.NETRIS_DEFAULT_TIMEOUT
        self.session = session if session is not None else requests.Session()
        self.login()

    def url(self, path):
        return "%s%s" % (self.base_url, path)

    def request(self, method, path, operation, params=None, data=None):
        try:
            resp = self.session.request(
                method, self.url(path), params=params,
                data=json.dumps(data) if data is not None else None,
                headers={"Content-Type": "application/json"},
                verify=self.verify, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise NetrisApiError(operation, str(e))
        _log.debug("%s %s: %s %s", method, path, resp.status_code, resp.text)
        return self.check_resp(resp, operation)

    def check_resp(self, resp, operation):
        if resp.status_code < 200 or resp.status_code >= 300:
            raise NetrisApiError(operation, resp.reason,
                                 status_code=resp.status_code, body=resp.text)
        if not resp.text:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise NetrisApiError(operation, "Invalid JSON response: %s" % e,
                                 status_code=resp.status_code, body=resp.text)

    def get(self, path, operation, params=None):
        return self.request("GET", path, operation, params=params)

    def post(self, path, data, operation):
        return self.request("POST", path, operation, data=data)

    def put(self, path, data, operation):
        return self.request("PUT", path, operation, data=data)

    def delete(self, path, operation, data=None):
        return self.request("DELETE", path, operation, data=data)

    def login(self):
        data = {
            "user": self.username,
            "password": self.password,
            "auth_scheme_id": constants.NETRIS_AUTH_SCHEME,
        }
        operation = "Error logging in to Netris at %s" % self.base_url
        resp = self.post(constants.AUTH_PATH, data, operation)
        if resp is not None and resp.get("isSuccess") is False:
            raise NetrisApiError(operation, resp.get("message",
                                                     "Login rejected"),
                                 body=resp)
        return resp

    def auth_status(self):
        try:
            resp = self.session.get(self.url(constants.AUTH_PATH),
                                    verify=self.verify, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise NetrisApiError(
                "Error checking the Netris API session is alive", str(e))
        return resp.status_code

    def get_sites(self):
        return self.get(constants.SITES_PATH, "Error listing Netris Sites")

    def get_tenants(self):
        return self.get(constants.TENANTS_PATH, "Error listing Netris Tenants")

    def get_vpcs(self):
        return self.get(constants.VPC_PATH, "Error listing Netris VPCs")

    def post_vpc(self, body):
        return self.post(constants.VPC_PATH, body, "Error creating Netris VPC")

    def get_vpc_resources(self, vpc_id):
        return self.get(constants.VPC_RESOURCES_PATH % vpc_id,
                        "Error listing resources of Netris VPC %s" % vpc_id)

    def delete_vpc(self, vpc_id):
        return self.delete(constants.VPC_ID_PATH % vpc_id,
                           "Error deleting Netris VPC %s" % vpc_id)

    def get_ipam(self, site_ids, vpc_ids):
        params = {"sites": site_ids, "vpc": vpc_ids}
        return self.get(constants.IPAM_PATH, "Error listing Netris IPAM",
                        params=params)

    def get_ipam_subnets(self, vpc_ids):
        return self.get(constants.IPAM_SUBNETS_PATH,
                        "Error listing Netris IPAM subnets",
                        params={"vpc": vpc_ids})

    def post_ipam_allocation(self, body):
        return self.post(constants.IPAM_ALLOCATION_PATH, body,
                         "Error creating Netris IPAM Allocation %s" %
                         body.get("prefix"))

    def post_ipam_subnet(self, body):
        return self.post(constants.IPAM_SUBNET_PATH, body,
                         "Error creating Netris IPAM Subnet %s" %
                         body.get("prefix"))

    def delete_ipam(self, ipam_type, ipam_id):
        return self.delete(constants.IPAM_TYPE_ID_PATH % (ipam_type, ipam_id),
                           "Error deleting Netris IPAM %s %s" %
                           (ipam_type, ipam_id))

    def get_vnets(self, site_ids, vpc_ids):
        params = {"sites": site_ids, "vpc": vpc_ids}
        return self.get(constants.VNET_PATH, "Error listing Netris vNets",
                        params=params)

    def post_vnet(self, body):
        return self.post(constants.VNET_PATH, body,
                         "Error creating Netris vNet %s" % body.get("name"))

    def delete_vnet(self, vnet_id):
        return self.delete(constants.VNET_ID_PATH % vnet_id,
                           "Error deleting Netris vNet %s" % vnet_id)

    def get_nat_rules(self):
        return self.get(constants.NAT_PATH, "Error listing Netris NAT rules")

    def post_nat_rule(self, body):
        return self.post(constants.NAT_PATH, body,
                         "Error creating Netris NAT rule %s" %
                         body.get("name"))

    def put_nat_rule(self, nat_id, body):
        return self.put(constants.NAT_ID_PATH % nat_id, body,
                        "Error updating Netris NAT rule %s" %
                        body.get("name"))

    def delete_nat_rule(self, nat_id):
        return self.delete(constants.NAT_ID_PATH % nat_id,
                           "Error deleting Netris NAT rule %s" % nat_id)

    def get_acls(self):
        return self.get(constants.ACL_PATH, "Error listing Netris ACLs")

    def post_acl(self, body):
        return self.post(constants.ACL_PATH, body,
                         "Error creating Netris ACL %s" % body.get("name"))

    def delete_acls(self, acl_ids):
        return self.delete(constants.ACL_PATH,
                           "Error deleting Netris ACLs %s" % acl_ids,
                           data={"id": acl_ids})

    def get_routes(self):
        return self.get(constants.ROUTES_PATH,
                        "Error listing Netris static routes")

    def post_route(self, body):
        return self.post(constants.ROUTES_PATH, body,
                         "Error creating Netris static route %s" %
                         body.get("prefix"))

    def put_route(self, route_id, body):
        return self.put(constants.ROUTES_ID_PATH % route_id, body,
                        "Error updating Netris static route %s" %
                        body.get("prefix"))

    def delete_route(self, route_id):
        return self.delete(constants.ROUTES_ID_PATH % route_id,
                           "Error deleting Netris static route %s" % route_id)
