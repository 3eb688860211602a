import pytest

from . import commands
from . import constants
from .dispatch import AgentDispatcher, Answer, send_command
from .exceptions import NetrisCommandError, NetrisConfigError, NetrisError
from .naming import Hierarchy
from .resource import NetrisResource

ZONE = Hierarchy.for_zone(1)


class SilentResource(object):
    host_id = 1
    host_name = "silent"

    def execute_request(self, cmd):
        return None


class StubClient(object):
    """Client whose every operation answers with ``result``."""

    def __init__(self, result):
        self.result = result

    def __getattr__(self, name):
        def call(*args):
            if isinstance(self.result, Exception):
                raise self.result
            return self.result
        return call


def test_no_host():
    dispatcher = AgentDispatcher()
    assert dispatcher.send(commands.ReadyCommand(ZONE), 1) is None
    with pytest.raises(NetrisConfigError):
        send_command(dispatcher, commands.ReadyCommand(ZONE), 1)


def test_no_answer():
    dispatcher = AgentDispatcher()
    dispatcher.register(1, SilentResource())
    with pytest.raises(NetrisCommandError) as e:
        send_command(dispatcher, commands.ReadyCommand(ZONE), 1)
    assert e.value.zone_id == 1
    assert e.value.command_name == "ReadyCommand"
    assert e.value.answer is None
    assert e.value.kind == constants.KIND_FAILURE


def test_success_answer():
    dispatcher = AgentDispatcher()
    dispatcher.register(1, NetrisResource(StubClient(True)))
    cmd = commands.ReleaseNatIpCommand(ZONE, "203.0.113.5")
    answer = send_command(dispatcher, cmd, 1)
    assert answer.result
    assert answer.command is cmd


def test_false_result():
    resource = NetrisResource(StubClient(False))
    answer = resource.execute_request(
        commands.ReleaseNatIpCommand(ZONE, "203.0.113.5"))
    assert not answer.result
    assert answer.error_kind == constants.KIND_FAILURE


def test_error_result():
    resource = NetrisResource(StubClient(NetrisConfigError("no system VPC")))
    answer = resource.execute_request(
        commands.ReleaseNatIpCommand(ZONE, "203.0.113.5"))
    assert not answer.result
    assert answer.details == "no system VPC"
    assert answer.error_kind == constants.KIND_CONFIGURATION

    dispatcher = AgentDispatcher()
    dispatcher.register(1, resource)
    with pytest.raises(NetrisCommandError) as e:
        send_command(dispatcher,
                     commands.ReleaseNatIpCommand(ZONE, "203.0.113.5"), 1)
    assert e.value.kind == constants.KIND_CONFIGURATION
    assert isinstance(e.value, NetrisError)


def test_unsupported_command():
    resource = NetrisResource(StubClient(True))
    answer = resource.execute_request(commands.NetrisCommand(ZONE))
    assert not answer.result
    assert "Unsupported" in answer.details


def test_ready_command():
    resource = NetrisResource(StubClient(True), host_name="netris1")
    cmd = commands.ReadyCommand(ZONE)
    answer = resource.execute_request(cmd)
    assert answer.result
    assert cmd.details == "Netris host netris1 ready for zone 1"


def test_answer_repr():
    cmd = commands.ReadyCommand(ZONE)
    assert repr(Answer(cmd, True, "OK")) == \
        "Answer(ReadyCommand, result=True, details='OK')"
