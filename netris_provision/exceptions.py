from .constants import KIND_CONFIGURATION, KIND_FAILURE, KIND_TRANSPORT


class NetrisError(Exception):
    """Base class for every error raised by netris_provision.

    ``kind`` lets callers branch on the category of the failure instead of
    matching on the message text.
    """
    kind = KIND_FAILURE


class NetrisConfigError(NetrisError):
    """A required entity (site, tenant, system VPC, zone, account, ...)
    could not be found or the input configuration is invalid."""
    kind = KIND_CONFIGURATION


class NetrisNotFoundError(NetrisConfigError):
    """A controller object that must already exist is missing."""


class NetrisApiError(NetrisError):
    kind = KIND_TRANSPORT

    def __init__(self, operation, reason, status_code=None, body=None):
        self.operation = operation
        self.reason = reason
        self.status_code = status_code
        self.body = body
        super(NetrisApiError, self).__init__(
            "%s: (%s, %s, %s)" % (operation, status_code, reason, body))


class NetrisCommandError(NetrisError):
    """A command sent to a zone's Netris host did not succeed."""

    def __init__(self, command_name, zone_id, answer=None):
        self.command_name = command_name
        self.zone_id = zone_id
        self.answer = answer
        if answer is None:
            details = "no answer from the Netris host"
        else:
            details = answer.details
            if answer.error_kind:
                self.kind = answer.error_kind
        super(NetrisCommandError, self).__init__(
            "Failed API call to Netris controller for zone %s (%s): %s" %
            (zone_id, command_name, details))
