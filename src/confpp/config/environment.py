"""Built-in variables (``Guid``, ``MachineName``, ``ip-address``, ...) layered over the process environment."""

from __future__ import annotations

import ipaddress
import logging
import os
import platform
import socket
import sys
import tempfile
import uuid
from pathlib import Path
from typing import Callable, Dict, Mapping, Optional, Tuple

import psutil

from .macros import expand_references

LOG = logging.getLogger(__name__)

_IS_WINDOWS = os.name == "nt"


# --- Network helpers
def network_info() -> Tuple[str, str]:
	"""
	Return ``(address, netmask)`` of the first non-loopback IPv4 interface.

	Falls back to the loopback address when no such interface exists.

	:return: Dotted IPv4 address and netmask.
	"""
	for addrs in psutil.net_if_addrs().values():
		for addr in addrs:
			if addr.family != socket.AF_INET or not addr.address:
				continue
			if ipaddress.ip_address(addr.address).is_loopback:
				continue
			return addr.address, addr.netmask or "255.255.255.255"
	return "127.0.0.1", "255.0.0.0"


def _subnet() -> str:
	address, mask = network_info()
	prefix = ipaddress.IPv4Network(f"0.0.0.0/{mask}").prefixlen
	return f"{address}/{prefix}"


def _flag(value: bool) -> Optional[str]:
	# "1" when set, unknown otherwise
	return "1" if value else None


def _system_root() -> Optional[str]:
	if _IS_WINDOWS:
		return os.environ.get("SYSTEMROOT", r"C:\Windows")
	return "/"


def _system_directory() -> Optional[str]:
	if _IS_WINDOWS:
		return os.path.join(_system_root() or "", "system32")
	return "/usr/bin"


def _program_data_path() -> str:
	if _IS_WINDOWS:
		return os.environ.get("PROGRAMDATA", r"C:\ProgramData").rstrip("\\/")
	return "/var/lib"


def _app_path() -> str:
	main = sys.argv[0] if sys.argv and sys.argv[0] else ""
	if main:
		return str(Path(main).resolve().parent)
	return str(Path.cwd())


class EnvironmentVars:
	"""
	Case-insensitive view over process environment variables plus a set of
	built-in variables computed on demand.

	Built-ins win over same-named variables. Each built-in is evaluated on
	every lookup, so ``Guid`` is different each time it is referenced.

	Example::

		env = EnvironmentVars()
		env.get("MachineName")
		env.expand("$(Temp)/cache-%ProcessorCount%")
	"""
	def __init__(
			self,
			text: Optional[str] = None,
			*,
			environ: Optional[Mapping[str, str]] = None,
			server_id: Optional[str] = None
	) -> None:
		self._vars: Dict[str, str] = {}
		self._server_id = server_id
		self._builtins: Dict[str, Callable[[], Optional[str]]] = {
			"temp": tempfile.gettempdir,
			"tmp": tempfile.gettempdir,
			"systemroot": _system_root,
			"systemdirectory": _system_directory,
			"os": platform.system,
			"os.windows": lambda: _flag(_IS_WINDOWS),
			"os.unix": lambda: _flag(os.name == "posix"),
			"is64bit": lambda: _flag(sys.maxsize > 2 ** 32),
			"machinename": platform.node,
			"hostname": socket.gethostname,
			"serverid": lambda: self.server_id,
			"processorcount": lambda: str(os.cpu_count() or 1),
			"ip-address": lambda: network_info()[0],
			"ip-mask": lambda: network_info()[1],
			"ip-subnet": _subnet,
			"apppath": _app_path,
			"programdatapath": _program_data_path,
			"isdebug": lambda: "true" if __debug__ else "false",
			"isrelease": lambda: "false" if __debug__ else "true",
			"guid": lambda: str(uuid.uuid4()),
		}
		self.reload(environ)
		if text:
			self._load_lines(text)

	def __repr__(self) -> str:
		return f"{self.__class__.__name__}(variables={len(self._vars)})"

	# --- loading
	def reload(self, environ: Optional[Mapping[str, str]] = None) -> "EnvironmentVars":
		"""
		Replace the variables with a snapshot of *environ* (``os.environ`` by default).

		:return: self.
		"""
		source = os.environ if environ is None else environ
		self._vars = {str(k).lower(): str(v) for k, v in source.items()}
		return self

	def load(self, text: str) -> "EnvironmentVars":
		"""
		Reload the process environment, then add ``name=value`` lines from *text*.

		Blank lines, ``//`` comments and lines without ``=`` are skipped.

		:param text: Variable definitions.
		:return: self.
		"""
		self.reload()
		self._load_lines(text)
		return self

	def _load_lines(self, text: str) -> None:
		count = 0
		for raw in text.splitlines():
			line = raw.strip()
			if not line or line.startswith("//"):
				continue
			name, sep, value = line.partition("=")
			name = name.strip()
			if not sep or not name:
				continue
			self._vars[name.lower()] = value.strip()
			count += 1
		LOG.debug("Loaded %d environment variable(s) from text", count)

	def set(self, name: str, value: str) -> None:
		self._vars[name.lower()] = value

	# --- lookups
	@property
	def server_id(self) -> str:
		"""Server identifier, defaults to the machine name."""
		return self._server_id or platform.node()

	@server_id.setter
	def server_id(self, value: Optional[str]) -> None:
		self._server_id = value

	def is_builtin(self, name: str) -> bool:
		return name.lower() in self._builtins

	def get(self, name: str) -> Optional[str]:
		"""
		Return the value of a built-in or environment variable.

		:param name: Variable name (case-insensitive).
		:return: The value or ``None`` when unknown.
		"""
		key = name.lower()
		builtin = self._builtins.get(key)
		if builtin is not None:
			value = builtin()
			if value is not None:
				return value
		return self._vars.get(key)

	def is_variable(self, name: str) -> bool:
		return self.get(name) is not None

	def expand(self, text: Optional[str]) -> Optional[str]:
		"""
		Expand ``%NAME%`` / ``$(NAME)`` references against these variables.

		:raises MacroRecursionError: On recursive variable definitions.
		"""
		return expand_references(text, self.get)


__all__ = [
	"EnvironmentVars",
	"network_info",
]
