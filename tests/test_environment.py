# tests/test_environment.py

from pathlib import Path
import ipaddress
import os
import platform
import sys
import tempfile

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from confpp.config.environment import EnvironmentVars, network_info
from confpp.config.errors import MacroRecursionError


@pytest.fixture()
def env():
	return EnvironmentVars(environ={"FOO": "bar", "Temp": "not-the-builtin"})


def test_variables_are_case_insensitive(env):
	assert env.get("foo") == "bar"
	assert env.get("FOO") == "bar"
	assert env.is_variable("Foo")
	assert env.get("missing") is None
	assert not env.is_variable("missing")


def test_builtins_win_over_variables(env):
	assert env.is_builtin("TEMP")
	assert env.get("temp") == tempfile.gettempdir()
	assert env.get("TMP") == tempfile.gettempdir()


def test_builtin_values(env):
	assert env.get("MachineName") == platform.node()
	assert env.get("ProcessorCount") == str(os.cpu_count() or 1)
	assert env.get("OS") == platform.system()
	assert env.get("IsDebug") in {"true", "false"}
	assert env.get("IsDebug") != env.get("IsRelease")
	ipaddress.ip_address(env.get("ip-address"))
	assert "/" in env.get("ip-subnet")


@pytest.mark.skipif(os.name != "posix", reason="posix only")
def test_platform_flags_on_posix(env):
	assert env.get("os.unix") == "1"
	assert env.get("os.windows") is None
	assert env.get("SystemRoot") == "/"


def test_guid_changes_on_every_lookup(env):
	assert env.get("guid") != env.get("guid")


def test_server_id_defaults_to_machine_name(env):
	assert env.get("ServerID") == platform.node()
	env.server_id = "srv-01"
	assert env.get("serverid") == "srv-01"
	env.server_id = None
	assert env.server_id == platform.node()


def test_expand_both_forms(env):
	assert env.expand("$(foo)-%FOO%-$(nothing)") == "bar-bar-$(nothing)"
	assert env.expand(None) is None


def test_load_text_adds_variables(monkeypatch):
	monkeypatch.setenv("CONFPP_TEST_VAR", "from-process")
	env = EnvironmentVars()
	env.load(
		"// comment\n"
		"\n"
		"alpha = 1\n"
		"beta=$(alpha)2\n"
		"no equals sign\n"
		" = orphan\n"
	)
	assert env.get("confpp_test_var") == "from-process"
	assert env.get("ALPHA") == "1"
	assert env.expand("$(beta)") == "12"
	assert env.get("no equals sign") is None


def test_constructor_text_and_set():
	env = EnvironmentVars("a=1", environ={})
	env.set("B", "2")
	assert env.get("a") == "1"
	assert env.get("b") == "2"


def test_recursive_variables_raise():
	env = EnvironmentVars("a=$(b)\nb=%a%", environ={})
	with pytest.raises(MacroRecursionError):
		env.expand("$(a)")


def test_network_info_is_ipv4():
	address, mask = network_info()
	assert isinstance(ipaddress.ip_address(address), ipaddress.IPv4Address)
	ipaddress.IPv4Network(f"0.0.0.0/{mask}")
