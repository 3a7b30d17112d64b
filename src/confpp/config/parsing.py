"""
Lenient parsers turning raw configuration strings into typed values.

Every ``parse_*`` function takes the raw text and a default and returns the
default whenever the text is ``None`` or cannot be parsed. None of them
raise on bad input.
"""

from __future__ import annotations

import importlib
import ipaddress
import logging
import re
import socket
import uuid
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Any, Callable, Dict, Optional, Protocol, Tuple, Type, TypeVar, Union, runtime_checkable
from urllib.parse import urlsplit

LOG = logging.getLogger(__name__)

T = TypeVar("T")
E = TypeVar("E", bound=Enum)
IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]

_MAGNITUDES: Dict[str, int] = {"k": 1024, "m": 1024 ** 2, "g": 1024 ** 3, "t": 1024 ** 4}

INT_CONSTANTS: Dict[str, int] = {
	"short.min": -(2 ** 15),
	"short.max": 2 ** 15 - 1,
	"ushort.max": 2 ** 16 - 1,
	"int.min": -(2 ** 31),
	"int.max": 2 ** 31 - 1,
}

LONG_CONSTANTS: Dict[str, int] = {
	**INT_CONSTANTS,
	"uint.max": 2 ** 32 - 1,
	"long.min": -(2 ** 63),
	"long.max": 2 ** 63 - 1,
}

_TRUE_WORDS = {"1", "yes", "on", "true", "high", "enable"}
_FALSE_WORDS = {"0", "no", "off", "false", "low", "disable"}

_INT_RE = re.compile(r"^[+-]?\d+$")
_FLOAT_RE = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?$")
_CLOCK_RE = re.compile(r"^(-)?(?:(\d+)\.)?(\d+):(\d+)(?::(\d+)(?:\.(\d+))?)?$")

_TIME_UNITS: Tuple[Tuple[str, float], ...] = (
	("ms", 0.001),
	("s", 1.0),
	("m", 60.0),
	("h", 3600.0),
	("d", 86400.0),
)


# ----- Custom values -----
@runtime_checkable
class Parseable(Protocol):
	"""
	Value types that know how to load themselves from configuration text.

	Implementations need a no-argument constructor; ``try_parse`` fills the
	instance and reports success.
	"""
	def try_parse(self, value: str) -> bool:
		...


@dataclass(frozen=True)
class NetworkBinding:
	"""
	A ``host:port`` pair. The port may be a number or a service name
	(``http``, ``smtp``...) known to the local services database.
	"""
	host: str
	port: int

	def __str__(self) -> str:
		host = f"[{self.host}]" if ":" in self.host else self.host
		return f"{host}:{self.port}"

	@classmethod
	def parse(cls, text: str) -> "NetworkBinding":
		"""
		Parse ``host:port`` (IPv6 hosts in brackets).

		:raises ValueError: For anything that is not a valid binding.
		"""
		host, sep, port_text = text.strip().rpartition(":")
		if not sep or not host or not port_text:
			raise ValueError(f"Invalid network binding: {text!r}")
		if host.startswith("[") and host.endswith("]"):
			host = host[1:-1]
		if _INT_RE.match(port_text):
			port = int(port_text)
		else:
			try:
				port = socket.getservbyname(port_text.lower())
			except OSError:
				raise ValueError(f"Unknown service name: {port_text!r}") from None
		if not 0 <= port <= 65535:
			raise ValueError(f"Port out of range: {port}")
		return cls(host, port)


ANY_BINDING = NetworkBinding("0.0.0.0", 0)


# ----- Scalars -----
def parse_string(value: Optional[str], default: Optional[str] = None) -> Optional[str]:
	return default if value is None else value


def parse_bool(value: Optional[str], default: bool) -> bool:
	"""``1/yes/on/true/high/enable`` or ``0/no/off/false/low/disable`` (any case)."""
	if value is None:
		return default
	word = value.strip().lower()
	if word in _TRUE_WORDS:
		return True
	if word in _FALSE_WORDS:
		return False
	return default


def _split_magnitude(text: str) -> Tuple[str, int]:
	if text and text[-1].lower() in _MAGNITUDES:
		return text[:-1].rstrip(), _MAGNITUDES[text[-1].lower()]
	return text, 1


def _parse_integer(value: Optional[str], default: int, constants: Dict[str, int], bits: int) -> int:
	if value is None:
		return default
	text = value.strip()
	if text.lower() in constants:
		return constants[text.lower()]

	number, multiplier = _split_magnitude(text)
	if not _INT_RE.match(number):
		return default
	result = int(number) * multiplier
	if not -(2 ** (bits - 1)) <= result <= 2 ** (bits - 1) - 1:
		return default
	return result


def parse_int(value: Optional[str], default: int) -> int:
	"""
	Parse a 32-bit integer with an optional K/M/G/T suffix (powers of 1024).

	Also accepts ``short.min``, ``short.max``, ``ushort.max``, ``int.min`` and
	``int.max``. Out-of-range results give the default.
	"""
	return _parse_integer(value, default, INT_CONSTANTS, 32)


def parse_long(value: Optional[str], default: int) -> int:
	"""Like :func:`parse_int` with a 64-bit range plus ``uint.max``, ``long.min``, ``long.max``."""
	return _parse_integer(value, default, LONG_CONSTANTS, 64)


def parse_float(value: Optional[str], default: float) -> float:
	"""Parse a decimal number, with the same magnitude suffixes as integers."""
	if value is None:
		return default
	number, multiplier = _split_magnitude(value.strip())
	if not _FLOAT_RE.match(number):
		return default
	return float(number) * multiplier


def parse_timespan(value: Optional[str], default: timedelta) -> timedelta:
	"""
	Parse a duration.

	Accepted forms:
		- ``infinite`` gives :attr:`datetime.timedelta.max`,
		- ``[-][d.]h:m[:s[.fff]]``, e.g. ``1:30`` (90 minutes) or ``2.04:00:00``,
		- a number with a unit: ``250ms``, ``10s``, ``5m``, ``1.5h``, ``2d``;
		  no unit means seconds.

	:param value: Raw text.
	:param default: Returned for missing or bad input.
	:return: The duration.
	"""
	if value is None:
		return default
	text = value.strip().lower()
	if text == "infinite":
		return timedelta.max

	if ":" in text:
		m = _CLOCK_RE.match(text)
		if not m:
			return default
		sign, days, hours, minutes, seconds, fraction = m.groups()
		if int(hours) > 23 or int(minutes) > 59 or int(seconds or 0) > 59:
			return default
		try:
			span = timedelta(
				days=int(days or 0),
				hours=int(hours),
				minutes=int(minutes),
				seconds=int(seconds or 0) + (float("0." + fraction) if fraction else 0.0)
			)
		except OverflowError:
			return default
		return -span if sign else span

	factor = 1.0
	for suffix, unit in _TIME_UNITS:
		if text.endswith(suffix) and len(text) > len(suffix):
			text = text[:-len(suffix)].rstrip()
			factor = unit
			break
	if not _FLOAT_RE.match(text):
		return default
	try:
		return timedelta(seconds=float(text) * factor)
	except OverflowError:
		return default


# ----- Network / identity -----
def parse_ip_address(value: Optional[str], default: Optional[IPAddress]) -> Optional[IPAddress]:
	if value is None:
		return default
	try:
		return ipaddress.ip_address(value.strip())
	except ValueError:
		return default


def parse_network_binding(value: Optional[str], default: Optional[NetworkBinding]) -> Optional[NetworkBinding]:
	if value is None:
		return default
	try:
		return NetworkBinding.parse(value)
	except ValueError:
		return default


def parse_uuid(value: Optional[str], default: Optional[uuid.UUID]) -> Optional[uuid.UUID]:
	"""Parse a GUID; braces and ``urn:uuid:`` prefixes are accepted."""
	if value is None:
		return default
	try:
		return uuid.UUID(value.strip())
	except ValueError:
		return default


def parse_uri(value: Optional[str], default: Optional[str]) -> Optional[str]:
	"""Return the trimmed text when it is an absolute URI (scheme plus location)."""
	if value is None:
		return default
	text = value.strip()
	try:
		parts = urlsplit(text)
	except ValueError:
		return default
	if len(parts.scheme) < 2 or not (parts.netloc or parts.path):
		return default
	return text


def parse_bytes(value: Optional[str], default: Optional[bytes]) -> Optional[bytes]:
	"""Parse hex text (``"0a1b2c"``); an empty string gives ``b""``."""
	if value is None:
		return default
	try:
		return bytes.fromhex(value.strip())
	except ValueError:
		return default


# ----- Reflection -----
def parse_enum(value: Optional[str], enum_type: Type[E], default: Optional[E]) -> Optional[E]:
	"""
	Match a member name case-insensitively, or a member value given as an integer.
	"""
	if value is None:
		return default
	text = value.strip()
	for name, member in enum_type.__members__.items():
		if name.lower() == text.lower():
			return member
	if _INT_RE.match(text):
		try:
			return enum_type(int(text))
		except ValueError:
			return default
	return default


def parse_type(value: Optional[str], default: Optional[type]) -> Optional[type]:
	"""
	Load a class from ``package.module:QualName`` (or ``package.module.Name``).
	"""
	if value is None:
		return default
	text = value.strip()
	if ":" in text:
		module_name, _, qualname = text.partition(":")
	else:
		module_name, _, qualname = text.rpartition(".")
	module_name = module_name.strip()
	if not module_name or not qualname or module_name.startswith("."):
		return default
	try:
		obj: Any = importlib.import_module(module_name)
		for part in qualname.strip().split("."):
			obj = getattr(obj, part)
	except Exception:
		LOG.debug("Type not found: %s", text, exc_info=True)
		return default
	return obj if isinstance(obj, type) else default


def parse_custom(value: Optional[str], factory: Callable[[], T], default: Optional[T]) -> Optional[T]:
	"""
	Build a fresh instance with *factory* and let it ``try_parse`` the text.
	"""
	if value is None:
		return default
	instance = factory()
	if not isinstance(instance, Parseable):
		raise TypeError(f"{type(instance).__name__} does not implement try_parse()")
	try:
		parsed = instance.try_parse(value)
	except Exception:
		LOG.debug("%s.try_parse failed for %r", type(instance).__name__, value, exc_info=True)
		return default
	return instance if parsed else default


# ----- Dispatch -----
def parse_as(value: Optional[str], default: Any) -> Any:
	"""
	Parse *value* into the type of *default*.

	``bool`` is checked before ``int``; a plain ``int`` default uses 64-bit
	(:func:`parse_long`) rules.

	:raises TypeError: When *default* is of a type no parser handles.
	"""
	if default is None or isinstance(default, str):
		return parse_string(value, default)
	if isinstance(default, bool):
		return parse_bool(value, default)
	if isinstance(default, Enum):
		return parse_enum(value, type(default), default)
	if isinstance(default, int):
		return parse_long(value, default)
	if isinstance(default, float):
		return parse_float(value, default)
	if isinstance(default, timedelta):
		return parse_timespan(value, default)
	if isinstance(default, (ipaddress.IPv4Address, ipaddress.IPv6Address)):
		return parse_ip_address(value, default)
	if isinstance(default, NetworkBinding):
		return parse_network_binding(value, default)
	if isinstance(default, uuid.UUID):
		return parse_uuid(value, default)
	if isinstance(default, (bytes, bytearray)):
		return parse_bytes(value, bytes(default))
	if isinstance(default, type):
		return parse_type(value, default)
	if isinstance(default, Parseable):
		return parse_custom(value, type(default), default)
	raise TypeError(f"No configuration parser for {type(default).__name__}")


def to_text(value: Any) -> str:
	"""
	Render a typed value in the form the parsers read back.
	"""
	if isinstance(value, bool):
		return "true" if value else "false"
	if isinstance(value, Enum):
		return value.name
	if isinstance(value, timedelta):
		if value == timedelta.max:
			return "infinite"
		micros = value // timedelta(microseconds=1)
		if micros % 1000 == 0:
			return f"{micros // 1000}ms"
		return f"{micros / 1000}ms"
	if isinstance(value, (bytes, bytearray)):
		return bytes(value).hex()
	if isinstance(value, type):
		return f"{value.__module__}:{value.__qualname__}"
	return str(value)


__all__ = [
	"ANY_BINDING",
	"INT_CONSTANTS",
	"LONG_CONSTANTS",
	"IPAddress",
	"NetworkBinding",
	"Parseable",
	"parse_as",
	"parse_bool",
	"parse_bytes",
	"parse_custom",
	"parse_enum",
	"parse_float",
	"parse_int",
	"parse_ip_address",
	"parse_long",
	"parse_network_binding",
	"parse_string",
	"parse_timespan",
	"parse_type",
	"parse_uri",
	"parse_uuid",
	"to_text",
]
