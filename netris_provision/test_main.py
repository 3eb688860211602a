import collections
import filecmp
import functools
import os
import sys
import tempfile

import pytest
import yaml

from . import naming
from . import netris_provision
from . import service as netris_service
from .client import NetrisClient, NetrisContext
from .conftest import FakeNetris

PKG_DIR = os.path.dirname(os.path.abspath(__file__))


def in_testdir(f):
    @functools.wraps(f)
    def wrapper(*args, **kwds):
        cwd = os.getcwd()
        os.chdir(os.path.join(PKG_DIR, "testdata"))
        try:
            ret = f(*args, **kwds)
        finally:
            os.chdir(cwd)
        return ret
    return wrapper


def get_args(**overrides):
    arg = {
        "config": None,
        "output": None,
        "apply": False,
        "delete": False,
        "check": False,
        "list": None,
        "username": None,
        "password": "secret",
        "sample": False,
        "timeout": None,
        "debug": True,
    }
    argc = collections.namedtuple('argc', list(arg.keys()))
    args = argc(**arg)
    args = args._replace(**overrides)
    return args


def run_provision(inpfile, expected=None, **overrides):
    with tempfile.NamedTemporaryFile("w+") as output:
        args = get_args(config=inpfile, output=output.name, **overrides)
        netris_provision.main(args)
        if expected is not None:
            with open(expected, "r") as f:
                assert output.read() == f.read()


@pytest.fixture
def fake_controller(monkeypatch):
    fake = FakeNetris()
    client = NetrisClient(fake, NetrisContext(1, "Default", 1, "Admin"))
    monkeypatch.setattr(netris_provision, "get_netris", lambda config: client)
    return fake


@in_testdir
def test_base_case():
    run_provision("base_case.inp.yaml", "base_case.resources.yaml")


@in_testdir
def test_sample():
    with tempfile.NamedTemporaryFile("w") as tmpout:
        sys.stdout = tmpout
        try:
            args = get_args(sample=True)
            netris_provision.main(args)
        finally:
            sys.stdout = sys.__stdout__
        assert filecmp.cmp(
            tmpout.name,
            os.path.join(PKG_DIR, "templates", "provision-config.yaml"),
            shallow=False)
        run_provision(tmpout.name)


@in_testdir
def test_bad_reference():
    with pytest.raises(SystemExit):
        run_provision("bad_reference.inp.yaml", debug=False)


@in_testdir
def test_missing_password(fake_controller):
    with pytest.raises(SystemExit):
        run_provision("base_case.inp.yaml", apply=True, password=None)
    assert fake_controller.calls == []


@in_testdir
def test_apply_and_delete(fake_controller):
    run_provision("base_case.inp.yaml", "base_case.resources.yaml",
                  apply=True)
    assert sorted(v["name"] for v in fake_controller.vpcs) == [
        "D1-A2-Z1-N101-VPC-isolated", "D1-A2-Z1-V10-VPC-web",
        "Default System VPC"]
    assert sorted(v["name"] for v in fake_controller.vnets) == [
        "D1-A2-Z1-N101-VNET-isolated", "D1-A2-Z1-V10-N100-VNET-tier1"]
    assert [a["name"] for a in fake_controller.acls] == \
        ["D1-A2-Z1-N101-ACL-R7"]
    assert [r["name"] for r in fake_controller.nat_rules] == \
        ["D1-A2-Z1-V10-DNAT-R8"]
    assert [r["description"] for r in fake_controller.routes] == \
        ["D1-A2-Z1-V10-STATICROUTE-R3"]
    # zone public range is set up before anything else
    assert fake_controller.mutations()[:2] == \
        ["post_ipam_allocation", "post_ipam_subnet"]

    del fake_controller.calls[:]
    run_provision("base_case.inp.yaml", apply=True)
    assert fake_controller.mutations() == ["put_nat_rule"]

    run_provision("base_case.inp.yaml", delete=True)
    assert [v["name"] for v in fake_controller.vpcs] == \
        ["Default System VPC"]
    assert fake_controller.vnets == []
    assert fake_controller.acls == []
    assert fake_controller.nat_rules == []
    assert fake_controller.routes == []


@in_testdir
def test_check(fake_controller):
    run_provision("base_case.inp.yaml", check=True)
    assert "auth_status" in fake_controller.calls


@in_testdir
def test_list(fake_controller, capsys):
    args = get_args(config="base_case.inp.yaml", list="sites")
    netris_provision.main(args)
    out = capsys.readouterr().out
    assert yaml.safe_load(out) == [{"id": 1, "name": "Default"}]


def test_deep_merge():
    user = {"netris_config": {"url": "https://a"}, "platform": None}
    merged = netris_provision.deep_merge(
        user, netris_provision.config_default())
    assert merged["netris_config"]["url"] == "https://a"
    assert merged["netris_config"]["site"] == "Default"
    assert merged["platform"] is None


def test_config_validate():
    config = netris_provision.config_default()
    assert not netris_provision.config_validate(config)
    config["netris_config"]["url"] = "https://netris.example.com"
    assert netris_provision.config_validate(config)
    config["provision"]["netris_access"] = True
    assert not netris_provision.config_validate(config)


def test_timeout_arg():
    args = netris_provision.parse_args(["-a", "-w", "30", "-c", "x.yaml"])
    assert args.apply
    assert args.timeout == "30"
    assert args.config == "x.yaml"


def test_manifest_vpc_names(inventory):
    assert netris_provision.vpc_hierarchy is netris_service.vpc_hierarchy
    names = [e["name"] for e in netris_provision.manifest_entries(inventory)
             if e["type"] == naming.VPC]
    assert "D1-A2-Z1-V10-VPC-web" in names
