# tests/test_parsing.py

from datetime import timedelta
from enum import Enum
from pathlib import Path
import ipaddress
import socket
import sys
import uuid

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from confpp.config import parsing
from confpp.config.parsing import NetworkBinding, parse_as, to_text


class Color(Enum):
	Unknown = -1
	Zero = 0
	One = 1
	Two = 2


class Person:
	def __init__(self, name="Default", age=0):
		self.name = name
		self.age = age

	def try_parse(self, value):
		name, sep, age = value.partition(";")
		if not sep or not age.strip().isdigit():
			return False
		self.name = name.strip()
		self.age = int(age)
		return True


@pytest.mark.parametrize("text", ["on", "1", "yes", "enable", "true", "High", " TRUE "])
def test_parse_bool_true(text):
	assert parsing.parse_bool(text, False) is True


@pytest.mark.parametrize("text", ["off", "0", "no", "disable", "false", "low"])
def test_parse_bool_false(text):
	assert parsing.parse_bool(text, True) is False


@pytest.mark.parametrize("text", ["", "maybe", None])
def test_parse_bool_default(text):
	assert parsing.parse_bool(text, True) is True
	assert parsing.parse_bool(text, False) is False


@pytest.mark.parametrize("text, expected", [
	("100", 100),
	("-100", -100),
	("2M", 2 * 1024 * 1024),
	("4k", 4096),
	("int.max", 2 ** 31 - 1),
	("short.min", -(2 ** 15)),
	("--xx", 1000),
	("", 1000),
	("3G", 1000),
	("1.5", 1000),
])
def test_parse_int(text, expected):
	assert parsing.parse_int(text, 1000) == expected


def test_parse_long():
	assert parsing.parse_long("2T", 0) == 2 * 1024 ** 4
	assert parsing.parse_long("long.max", 0) == 2 ** 63 - 1
	assert parsing.parse_long("uint.max", 0) == 2 ** 32 - 1
	assert parsing.parse_long("9999999999T", 7) == 7


def test_parse_float():
	assert parsing.parse_float("100.0", 0.0) == 100.0
	assert parsing.parse_float("123.456", 0.0) == 123.456
	assert parsing.parse_float("2T", 0.0) == float(2 * 1024 ** 4)
	assert parsing.parse_float("1e3", 0.0) == 1000.0
	assert parsing.parse_float("abc", 5.0) == 5.0


@pytest.mark.parametrize("text, expected", [
	("10", timedelta(seconds=10)),
	("10s", timedelta(seconds=10)),
	("250ms", timedelta(milliseconds=250)),
	("5m", timedelta(minutes=5)),
	("1.5h", timedelta(minutes=90)),
	("2d", timedelta(days=2)),
	("1:30", timedelta(hours=1, minutes=30)),
	("00:00:05.5", timedelta(seconds=5.5)),
	("2.04:00:00", timedelta(days=2, hours=4)),
	("-0:10", -timedelta(minutes=10)),
	("infinite", timedelta.max),
	("INFINITE", timedelta.max),
	("", timedelta(seconds=55)),
	("10x", timedelta(seconds=55)),
	("25:00", timedelta(seconds=55)),
])
def test_parse_timespan(text, expected):
	assert parsing.parse_timespan(text, timedelta(seconds=55)) == expected


def test_parse_ip_address():
	assert parsing.parse_ip_address("10.10.10.10", None) == ipaddress.ip_address("10.10.10.10")
	assert parsing.parse_ip_address("::1", None) == ipaddress.ip_address("::1")
	assert parsing.parse_ip_address("test", None) is None


def test_parse_network_binding():
	assert parsing.parse_network_binding("127.0.0.1:80", None) == NetworkBinding("127.0.0.1", 80)
	assert parsing.parse_network_binding("[::1]:8080", None) == NetworkBinding("::1", 8080)
	assert parsing.parse_network_binding("0.0.0.0:0", None) == parsing.ANY_BINDING
	assert parsing.parse_network_binding("test", None) is None
	assert parsing.parse_network_binding("host:70000", None) is None
	assert str(NetworkBinding("::1", 8080)) == "[::1]:8080"
	assert str(NetworkBinding("1.2.3.4", 5)) == "1.2.3.4:5"


def test_parse_network_binding_service_name():
	try:
		port = socket.getservbyname("http")
	except OSError:
		pytest.skip("no services database")
	assert parsing.parse_network_binding("localhost:HTTP", None) == NetworkBinding("localhost", port)


def test_parse_uuid():
	expected = uuid.UUID("B86978CF-3B36-4e91-8955-146DDE3F8CFC")
	assert parsing.parse_uuid("{B86978CF-3B36-4e91-8955-146DDE3F8CFC}", None) == expected
	assert parsing.parse_uuid("b86978cf-3b36-4e91-8955-146dde3f8cfc", None) == expected
	assert parsing.parse_uuid("nope", uuid.UUID(int=0)) == uuid.UUID(int=0)


def test_parse_uri():
	assert parsing.parse_uri("http://www.lilltek.com/", None) == "http://www.lilltek.com/"
	assert parsing.parse_uri(" file:///tmp/x ", None) == "file:///tmp/x"
	assert parsing.parse_uri("foo", None) is None
	assert parsing.parse_uri("c:/windows", None) is None


def test_parse_bytes():
	assert parsing.parse_bytes("010203A1A2BB", None) == bytes([0x01, 0x02, 0x03, 0xA1, 0xA2, 0xBB])
	assert parsing.parse_bytes("", None) == b""
	assert parsing.parse_bytes("01 02", None) == b"\x01\x02"
	assert parsing.parse_bytes("zz", b"\x00") == b"\x00"


@pytest.mark.parametrize("text, expected", [
	("Zero", Color.Zero),
	("one", Color.One),
	("TWO", Color.Two),
	("2", Color.Two),
	("bad", Color.Unknown),
	("7", Color.Unknown),
])
def test_parse_enum(text, expected):
	assert parsing.parse_enum(text, Color, Color.Unknown) is expected


def test_parse_type():
	assert parsing.parse_type("confpp.config.parsing:NetworkBinding", None) is NetworkBinding
	assert parsing.parse_type("confpp.config.parsing.NetworkBinding", None) is NetworkBinding
	assert parsing.parse_type("confpp.config.parsing:Missing", int) is int
	assert parsing.parse_type("no_such_module_xyz:Thing", int) is int
	assert parsing.parse_type("confpp.config.parsing:parse_int", int) is int
	assert parsing.parse_type("Thing", int) is int


@pytest.mark.parametrize("text", [".foo:Bar", "..x", " .relative.module:Thing", ":Thing", "module:"])
def test_parse_type_rejects_malformed_names(text):
	assert parsing.parse_type(text, int) is int


def test_parse_type_survives_failing_module(tmp_path, monkeypatch):
	(tmp_path / "confpp_broken_target.py").write_text("raise RuntimeError('boom')\n", encoding="utf-8")
	(tmp_path / "confpp_bad_syntax.py").write_text("def (:\n", encoding="utf-8")
	monkeypatch.syspath_prepend(str(tmp_path))

	assert parsing.parse_type("confpp_broken_target:Thing", int) is int
	assert parsing.parse_type("confpp_bad_syntax:Thing", int) is int
	assert parse_as("..x", int) is int


class Exploding:
	def try_parse(self, value):
		raise ValueError(value)


def test_parse_custom_returns_default_when_try_parse_raises():
	fallback = Exploding()
	assert parsing.parse_custom("anything", Exploding, fallback) is fallback


def test_parse_custom():
	person = parsing.parse_custom("Jeff;50", Person, None)
	assert (person.name, person.age) == ("Jeff", 50)
	assert parsing.parse_custom("garbage", Person, Person()).name == "Default"
	assert parsing.parse_custom(None, Person, Person()).name == "Default"

	with pytest.raises(TypeError):
		parsing.parse_custom("x", object, None)


def test_parse_as_dispatches_on_default_type():
	assert parse_as("10", "x") == "10"
	assert parse_as(None, None) is None
	assert parse_as("yes", False) is True
	assert parse_as("2T", 0) == 2 * 1024 ** 4
	assert parse_as("1.5", 0.0) == 1.5
	assert parse_as("10s", timedelta(0)) == timedelta(seconds=10)
	assert parse_as("1.2.3.4", ipaddress.ip_address("0.0.0.0")) == ipaddress.ip_address("1.2.3.4")
	assert parse_as("1.2.3.4:5", parsing.ANY_BINDING) == NetworkBinding("1.2.3.4", 5)
	assert parse_as("one", Color.Unknown) is Color.One
	assert parse_as("0a", b"") == b"\n"
	assert parse_as("confpp.config.parsing:NetworkBinding", int) is NetworkBinding
	assert parse_as("Jeff;50", Person()).age == 50

	with pytest.raises(TypeError):
		parse_as("x", object())


def test_to_text_round_trips_through_parsers():
	assert to_text(True) == "true"
	assert to_text(False) == "false"
	assert to_text(Color.Two) == "Two"
	assert to_text(timedelta(seconds=1.5)) == "1500ms"
	assert to_text(timedelta.max) == "infinite"
	assert to_text(b"\x01\xff") == "01ff"
	assert to_text(NetworkBinding) == "confpp.config.parsing:NetworkBinding"
	assert to_text(42) == "42"

	assert parsing.parse_timespan(to_text(timedelta(microseconds=1500)), timedelta(0)) == timedelta(microseconds=1500)
