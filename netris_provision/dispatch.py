import logging

from .exceptions import NetrisCommandError, NetrisConfigError

_log = logging.getLogger(__name__)


class Answer(object):
    def __init__(self, command, result, details=None, error_kind=None):
        self.command = command
        self.result = result
        self.details = details
        self.error_kind = error_kind

    def __repr__(self):
        return "Answer(%s, result=%s, details=%r)" % (
            self.command.name if self.command is not None else None,
            self.result, self.details)


class AgentDispatcher(object):
    """Delivers commands to the Netris host registered for each zone.

    Hosts are registered once; sending is synchronous and returns whatever
    the host answers, or None when the zone has no host.
    """

    def __init__(self):
        self.hosts = {}

    def register(self, zone_id, resource):
        _log.info("Registering Netris host %s for zone %s",
                  resource.host_name or resource.host_id, zone_id)
        self.hosts[zone_id] = resource

    def has_host(self, zone_id):
        return zone_id in self.hosts

    def send(self, command, zone_id):
        resource = self.hosts.get(zone_id)
        if resource is None:
            return None
        return resource.execute_request(command)


def send_command(dispatcher, command, zone_id):
    """Send a command and fail loudly unless the host reports success."""
    if not dispatcher.has_host(zone_id):
        _log.error("No Netris controller was found for zone %s", zone_id)
        raise NetrisConfigError(
            "Failed to find a Netris controller for zone %s" % zone_id)
    answer = dispatcher.send(command, zone_id)
    if answer is None or not answer.result:
        _log.error("Netris API Command %s failed for zone %s",
                   command.name, zone_id)
        raise NetrisCommandError(command.name, zone_id, answer)
    return answer
