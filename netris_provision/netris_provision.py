#!/usr/bin/env python

import argparse
import copy
import functools
import importlib.metadata
import logging
import os
import pkgutil
import sys

import yaml

from jinja2 import Environment, PackageLoader

from . import constants
from . import naming
from .client import NetrisClient
from .dispatch import AgentDispatcher
from .exceptions import NetrisApiError, NetrisError
from .inventory import PlatformInventory
from .netris_api import Netris
from .resource import NetrisResource
from .service import (NetrisService, calculate_subnet_cidr_from_ip_range,
                      cidr_from_gateway_and_netmask, vpc_hierarchy)

_log = logging.getLogger("netris_provision")

LIST_CHOICES = ("sites", "tenants", "vpcs")


def yaml_quote(s):
    return "'%s'" % str(s).replace("'", "''")


def deep_merge(user, default):
    if isinstance(user, dict) and isinstance(default, dict):
        for k, v in default.items():
            if k not in user:
                user[k] = v
            else:
                user[k] = deep_merge(user[k], v)
    return copy.deepcopy(user)


def config_default():
    # Default values for configuration
    default_config = {
        "netris_config": {
            "url": None,
            "username": None,
            "password": None,
            "site": "Default",
            "admin_tenant": "Admin",
            "host_name": "netris",
            "timeout": None,
            "verify": False,
        },
        "platform": {
            "zones": [],
            "domains": [],
            "accounts": [],
            "vpcs": [],
            "networks": [],
            "public_ranges": [],
            "firewall_rules": [],
            "port_forwarding_rules": [],
            "static_routes": [],
        },
        "provision": {
            "prov_netris": None,
            "netris_access": False,
            "debug": False,
        },
    }
    return default_config


def config_user(config_file):
    config = {}
    if config_file:
        if config_file == "-":
            _log.info("Loading configuration from \"STDIN\"")
            config = yaml.safe_load(sys.stdin)
        else:
            _log.info("Loading configuration from \"%s\"", config_file)
            with open(config_file, 'r') as file:
                config = yaml.safe_load(file)
    if config is None:
        config = {}
    return config


def config_validate(config):
    def Raise(exception):
        raise exception

    required = lambda x: True if x else Raise(Exception("Missing option"))
    is_list = lambda x: True if isinstance(x, list) else Raise(
        Exception("Expected a list, got %s" % type(x).__name__))
    get = lambda t: functools.reduce(lambda x, y: x and x.get(y), t, config)

    checks = {
        "netris_config/url": (get(("netris_config", "url")), required),
        "netris_config/site": (get(("netris_config", "site")), required),
        "netris_config/admin_tenant":
        (get(("netris_config", "admin_tenant")), required),
    }
    for section in config_default()["platform"]:
        checks["platform/" + section] = (get(("platform", section)), is_list)

    if get(("provision", "netris_access")):
        checks.update({
            # auth for API access
            "netris_config/username":
            (get(("netris_config", "username")), required),
            "netris_config/password":
            (get(("netris_config", "password")), required),
        })

    ret = True
    for k in sorted(checks.keys()):
        value, validator = checks[k]
        try:
            if not validator(value):
                raise Exception(k)
        except Exception as e:
            _log.error("Invalid configuration for %s: %s", k, e)
            ret = False
    return ret


def config_validate_references(inventory):
    """Check that every platform record points at known parents."""
    ret = True

    def missing(what, ref_id, owner):
        _log.error("Invalid configuration: %s %s referenced by %s does not "
                   "exist", what, ref_id, owner)
        return False

    for account in inventory.accounts.values():
        if inventory.find_domain(account.domain_id) is None:
            ret = missing("domain", account.domain_id,
                          "account %s" % account.id)
    for kind, records in (("VPC", inventory.vpcs),
                          ("network", inventory.networks)):
        for record in records.values():
            owner = "%s %s" % (kind, record.id)
            if inventory.find_zone(record.zone_id) is None:
                ret = missing("zone", record.zone_id, owner)
            if inventory.find_account(record.account_id) is None:
                ret = missing("account", record.account_id, owner)
            if inventory.find_domain(record.domain_id) is None:
                ret = missing("domain", record.domain_id, owner)
    for network in inventory.networks.values():
        if network.vpc_id is not None and \
                inventory.find_vpc(network.vpc_id) is None:
            ret = missing("VPC", network.vpc_id, "network %s" % network.id)
    for rules in (inventory.firewall_rules, inventory.port_forwarding_rules):
        for rule in rules.values():
            if inventory.find_network(rule.network_id) is None:
                ret = missing("network", rule.network_id,
                              "rule %s" % rule.rule_id)
    for route in inventory.static_routes.values():
        if route.vpc_id is None and route.network_id is None:
            _log.error("Invalid configuration: static route %s needs a "
                       "vpc_id or a network_id", route.id)
            ret = False
        elif route.vpc_id is not None and \
                inventory.find_vpc(route.vpc_id) is None:
            ret = missing("VPC", route.vpc_id, "static route %s" % route.id)
        elif route.vpc_id is None and \
                inventory.find_network(route.network_id) is None:
            ret = missing("network", route.network_id,
                          "static route %s" % route.id)
    return ret


def generate_sample(filep):
    data = pkgutil.get_data('netris_provision',
                            'templates/provision-config.yaml')
    filep.write(data.decode("utf-8"))
    filep.flush()
    return filep


def get_jinja_template(file):
    env = Environment(
        loader=PackageLoader('netris_provision', 'templates'),
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True
    )
    env.filters['yaml_quote'] = yaml_quote
    template = env.get_template(file)
    return template


def manifest_entries(inventory):
    """Return the Netris objects the platform configuration maps to."""
    entries = []

    def add(object_type, hierarchy, owner, *suffixes):
        entries.append({
            "type": object_type,
            "owner": owner,
            "name": naming.resource_name(object_type, hierarchy, *suffixes),
        })

    for public_range in inventory.public_ranges.values():
        hierarchy = naming.Hierarchy.for_zone(public_range.zone_id)
        owner = "public_range %s" % public_range.id
        if public_range.gateway:
            add(naming.IPAM_ALLOCATION, hierarchy, owner,
                cidr_from_gateway_and_netmask(public_range.gateway,
                                              public_range.netmask))
            add(naming.IPAM_SUBNET, hierarchy, owner,
                calculate_subnet_cidr_from_ip_range(public_range.ip_range))
        elif public_range.ip6_cidr:
            add(naming.IPAM_ALLOCATION, hierarchy, owner,
                public_range.ip6_cidr)
            add(naming.IPAM_SUBNET, hierarchy, owner, public_range.ip6_cidr)

    for vpc in inventory.vpcs.values():
        hierarchy = vpc_hierarchy(vpc)
        owner = "vpc %s" % vpc.id
        add(naming.VPC, hierarchy, owner)
        add(naming.IPAM_ALLOCATION, hierarchy, owner, vpc.cidr)
        if vpc.source_nat_ip:
            add(naming.SNAT, hierarchy, owner)

    for network in inventory.networks.values():
        owner = "network %s" % network.id
        vpc = inventory.find_vpc(network.vpc_id)
        hierarchy = naming.Hierarchy.for_network(
            network.zone_id, network.account_id, network.domain_id,
            network.id, network.name,
            vpc_id=network.vpc_id, vpc_name=vpc.name if vpc else None)
        if network.vpc_id is None:
            add(naming.VPC, hierarchy, owner)
            add(naming.IPAM_ALLOCATION, hierarchy, owner, network.cidr)
            if network.source_nat_ip:
                add(naming.SNAT, hierarchy, owner)
        add(naming.VNET, hierarchy, owner)
        add(naming.IPAM_SUBNET, hierarchy, owner, network.cidr)
        for rule in inventory.list_firewall_rules(network.id):
            add(naming.ACL, hierarchy, owner,
                naming.rule_suffix(rule.rule_id))
        for rule in inventory.list_port_forwarding_rules(network.id):
            add(naming.DNAT, _nat_owner(inventory, network), owner,
                naming.rule_suffix(rule.rule_id))

    for route in inventory.list_static_routes():
        record, is_for_vpc = _route_owner(inventory, route)
        if is_for_vpc:
            hierarchy = vpc_hierarchy(record)
        else:
            hierarchy = _nat_owner(inventory, record)
        add(naming.STATICROUTE, hierarchy, "static_route %s" % route.id,
            naming.rule_suffix(route.id))
    return entries


def _nat_owner(inventory, network):
    if network.vpc_id is not None:
        return vpc_hierarchy(inventory.find_vpc(network.vpc_id))
    return naming.Hierarchy.for_network(network.zone_id, network.account_id,
                                        network.domain_id, network.id,
                                        network.name)


def _route_owner(inventory, route):
    """Return (owner record, is_for_vpc) of a static route.

    A route given for a network inside a VPC belongs to that VPC.
    """
    if route.vpc_id is not None:
        return inventory.find_vpc(route.vpc_id), True
    network = inventory.find_network(route.network_id)
    if network.vpc_id is not None:
        return inventory.find_vpc(network.vpc_id), True
    return network, False


def generate_manifest(config, inventory, output):
    template = get_jinja_template('netris-resources.yaml')
    if output and output != "/dev/null":
        outname = output
        if output == "-":
            outname = "<stdout>"
            output = sys.stdout
        _log.info("Writing Netris resource manifest to %s", outname)
        template.stream(config=config,
                        entries=manifest_entries(inventory)).dump(output)
    return config


def get_netris(config):
    netris_config = config["netris_config"]
    try:
        api = Netris(
            netris_config["url"], netris_config["username"],
            netris_config["password"], verify=netris_config["verify"],
            timeout=netris_config["timeout"])
    except NetrisApiError as e:
        _log.error("%s", e)
        return None
    return NetrisClient.connect(api, netris_config["site"],
                                netris_config["admin_tenant"])


def get_service(config, client, inventory):
    dispatcher = AgentDispatcher()
    host_name = config["netris_config"]["host_name"]
    for zone in inventory.zones.values():
        dispatcher.register(zone.id, NetrisResource(client, host_id=zone.id,
                                                    host_name=host_name))
    return NetrisService(dispatcher, inventory)


def _pf_args(inventory, network):
    """Owner arguments of the port forwarding rules of a network."""
    if network.vpc_id is not None:
        vpc = inventory.find_vpc(network.vpc_id)
        return (network.zone_id, network.account_id, network.domain_id,
                vpc.name, vpc.id, network.name, network.id, True)
    return (network.zone_id, network.account_id, network.domain_id,
            None, None, network.name, network.id, False)


def _route_args(inventory, route):
    record, is_for_vpc = _route_owner(inventory, route)
    return (record.zone_id, record.account_id, record.domain_id,
            record.name, record.id, is_for_vpc)


def apply_resources(service, inventory):
    """Create the Netris resources of every configured platform object.

    Parents go first: zone public ranges, VPCs, networks, the rules of each
    network and finally static routes.
    """
    for zone in inventory.zones.values():
        if inventory.list_public_ranges(zone.id):
            service.create_ipam_allocations_for_zone_public_ranges(zone.id)
    for vpc in inventory.vpcs.values():
        _log.info("Implementing VPC %s", vpc.name)
        service.implement_vpc(vpc.id)
    for network in inventory.networks.values():
        _log.info("Implementing network %s", network.name)
        service.implement_network(network.id)
        rules = inventory.list_firewall_rules(network.id)
        if rules:
            service.add_firewall_rules(network, rules)
        pf_args = _pf_args(inventory, network)
        vpc_cidr = network.cidr
        if network.vpc_id is not None:
            vpc_cidr = inventory.find_vpc(network.vpc_id).cidr
        for rule in inventory.list_port_forwarding_rules(network.id):
            service.create_port_forwarding_rule(
                *(pf_args + (vpc_cidr, rule)))
    for route in inventory.list_static_routes():
        service.add_or_update_static_route(
            *(_route_args(inventory, route) +
              (route.prefix, route.next_hop, route.id, False)))
    return True


def delete_resources(service, inventory):
    """Tear down what apply_resources creates, children first."""
    for route in reversed(inventory.list_static_routes()):
        service.delete_static_route(
            *(_route_args(inventory, route) +
              (route.prefix, route.next_hop, route.id)))
    for network in reversed(list(inventory.networks.values())):
        pf_args = _pf_args(inventory, network)
        for rule in inventory.list_port_forwarding_rules(network.id):
            service.delete_port_forwarding_rule(*(pf_args + (rule,)))
        rules = inventory.list_firewall_rules(network.id)
        if rules:
            service.delete_firewall_rules(network, rules)
        _log.info("Deleting network %s", network.name)
        service.delete_network(network.id)
    for vpc in reversed(list(inventory.vpcs.values())):
        _log.info("Deleting VPC %s", vpc.name)
        service.delete_vpc(vpc.id)
    return True


def list_objects(client, what, filep):
    if what == "sites":
        objects = client.list_sites()
    elif what == "tenants":
        objects = client.list_tenants()
    else:
        objects = client.list_vpcs()
    entries = [{"id": o.get("id"), "name": o.get("name")} for o in objects]
    yaml.safe_dump(entries, filep, default_flow_style=False)
    return True


def check_health(client, service, inventory):
    if not inventory.zones:
        return client.is_session_alive()
    for zone in inventory.zones.values():
        service.check_health(zone.id)
        _log.info("Netris host ready for zone %s", zone.id)
    return True


def setup_logging(debug):
    log_level = os.environ.get(constants.ENV_LOG_LEVEL, "info").upper()
    if debug:
        log_level = "DEBUG"
    formatter = logging.Formatter(constants.LOG_FORMAT)
    stderr_hdlr = logging.StreamHandler(sys.stderr)
    stderr_hdlr.setFormatter(formatter)
    _log.handlers = [stderr_hdlr]
    _log.setLevel(log_level)


class CustomFormatter(argparse.HelpFormatter):
    def _format_action_invocation(self, action):
        ret = super(CustomFormatter, self)._format_action_invocation(action)
        ret = ret.replace(' ,', ',')
        ret = ret.replace(' file,', ',')
        ret = ret.replace(' name,', ',')
        ret = ret.replace(' pass,', ',')
        return ret


def parse_args(argv=None):
    version = 'Unknown'
    try:
        version = importlib.metadata.version("netris_provision")
    except importlib.metadata.PackageNotFoundError:
        # ignore, expected in case running from source
        pass

    parser = argparse.ArgumentParser(
        description='Provision platform networks on a Netris controller',
        formatter_class=CustomFormatter,
    )
    parser.add_argument(
        '-v', '--version', action='version', version=version)
    parser.add_argument(
        '--debug', action='store_true', default=False,
        help='enable debug')
    parser.add_argument(
        '--sample', action='store_true', default=False,
        help='print a sample input file with platform configuration')
    parser.add_argument(
        '-c', '--config', default="-", metavar='file',
        help='input file with your platform configuration')
    parser.add_argument(
        '-o', '--output', default="-", metavar='file',
        help='output file for the Netris resource manifest')
    parser.add_argument(
        '-a', '--apply', action='store_true', default=False,
        help='create the Netris resources of the platform configuration')
    parser.add_argument(
        '-d', '--delete', action='store_true', default=False,
        help='delete the Netris resources that would have been created')
    parser.add_argument(
        '--check', action='store_true', default=False,
        help='check that the Netris controller can be reached')
    parser.add_argument(
        '-l', '--list', default=None, choices=LIST_CHOICES,
        help='list Netris objects of the given kind')
    parser.add_argument(
        '-u', '--username', default=None, metavar='name',
        help='username to use for Netris API access')
    parser.add_argument(
        '-p', '--password', default=None, metavar='pass',
        help='password to use for Netris API access')
    parser.add_argument(
        '-w', '--timeout', default=None, metavar='timeout',
        help='wait/timeout to use for Netris API access')
    return parser.parse_args(argv)


def provision(args):
    config_file = args.config
    output_file = args.output

    prov_netris = None
    if args.apply:
        prov_netris = True
    if args.delete:
        prov_netris = False
        output_file = "/dev/null"
    needs_netris = prov_netris is not None or args.check or args.list

    timeout = None
    if args.timeout:
        try:
            if int(args.timeout) >= 0:
                timeout = int(args.timeout)
        except ValueError:
            # ignore that timeout value
            _log.warning("Invalid timeout value ignored: '%s'", args.timeout)

    # Print sample, if needed
    if args.sample:
        generate_sample(sys.stdout)
        return True

    # command line config
    config = {
        "netris_config": {},
        "provision": {
            "prov_netris": prov_netris,
            "netris_access": bool(needs_netris),
            "debug": args.debug,
        },
    }
    if args.username:
        config["netris_config"]["username"] = args.username
    password = args.password if args.password \
        else os.environ.get(constants.ENV_PASSWORD)
    if password:
        config["netris_config"]["password"] = password
    if timeout is not None:
        config["netris_config"]["timeout"] = timeout

    # Create config
    user_config = config_user(config_file)
    deep_merge(config, user_config)
    deep_merge(config, config_default())

    if not config_validate(config):
        _log.error("Please fix configuration and retry.")
        return False
    inventory = PlatformInventory.from_config(config["platform"])
    if not config_validate_references(inventory):
        _log.error("Please fix configuration and retry.")
        return False

    client = None
    if needs_netris:
        client = get_netris(config)
        if client is None:
            _log.error("Not able to login to Netris, please check username "
                       "or password")
            return False

    if args.list:
        return list_objects(client, args.list, sys.stdout)

    service = None
    if client is not None:
        service = get_service(config, client, inventory)
    if args.check:
        return check_health(client, service, inventory)

    if prov_netris is True:
        apply_resources(service, inventory)
    elif prov_netris is False:
        delete_resources(service, inventory)

    generate_manifest(config, inventory, output_file)
    return True


def main(args=None):
    if args is None:
        args = parse_args()
    setup_logging(args.debug)

    success = True
    if args.debug:
        success = provision(args)
    else:
        try:
            success = provision(args)
        except KeyboardInterrupt:
            pass
        except NetrisError as e:
            success = False
            _log.error("%s (%s): %s", e.__class__.__name__, e.kind, e)
        except Exception as e:
            success = False
            _log.error("%s: %s", e.__class__.__name__, e)

    if not success:
        sys.exit(1)


if __name__ == "__main__":
    main()
