import logging

from . import commands
from .client import Failure
from .constants import KIND_FAILURE
from .dispatch import Answer
from .exceptions import NetrisError

_log = logging.getLogger(__name__)


class NetrisResource(object):
    """Netris host of a zone: executes commands against the controller."""

    def __init__(self, client, host_id=None, host_name=None):
        self.client = client
        self.host_id = host_id
        self.host_name = host_name
        self.handlers = {
            commands.ReadyCommand: self.execute_ready,
            commands.CreateNetrisVpcCommand: client.create_vpc,
            commands.DeleteNetrisVpcCommand: client.delete_vpc,
            commands.CreateNetrisVnetCommand: client.create_vnet,
            commands.DeleteNetrisVnetCommand: client.delete_vnet,
            commands.SetupNetrisPublicRangeCommand:
                client.setup_zone_level_public_range,
            commands.CreateOrUpdateNetrisNatCommand:
                client.create_or_update_nat_rule,
            commands.DeleteNetrisNatRuleCommand: client.delete_nat_rule,
            commands.ReleaseNatIpCommand: client.release_nat_ip,
            commands.CreateNetrisACLCommand: client.create_acl_rule,
            commands.DeleteNetrisACLCommand: client.delete_acl_rules,
            commands.AddOrUpdateNetrisStaticRouteCommand:
                client.add_or_update_static_route,
            commands.DeleteNetrisStaticRouteCommand:
                client.delete_static_route,
        }

    def execute_ready(self, cmd):
        cmd.details = "Netris host %s ready for zone %s" % (
            self.host_name or self.host_id, cmd.zone_id)
        return self.client.is_session_alive()

    def execute_request(self, cmd):
        handler = self.handlers.get(type(cmd))
        if handler is None:
            return Answer(cmd, False, "Unsupported command: %s" % cmd.name,
                          error_kind=KIND_FAILURE)
        _log.debug("Executing %r", cmd)
        try:
            result = handler(cmd)
        except NetrisError as e:
            _log.error("%s failed: %s", cmd.name, e)
            return Answer(cmd, False, str(e), error_kind=e.kind)
        if not result:
            details = "%s failed on Netris" % cmd.name
            if isinstance(result, Failure):
                details = "%s: %s" % (details, result.reason)
            return Answer(cmd, False, details, error_kind=KIND_FAILURE)
        return Answer(cmd, True, "OK")
