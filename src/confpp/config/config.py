"""
:class:`Config` facade over the preprocessor and key store, and
:class:`ConfigContext` for the process-wide configuration with its override
file and custom provider.
"""

from __future__ import annotations

import logging
import threading
import uuid
from datetime import timedelta
from enum import Enum
from pathlib import Path
from types import TracebackType
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple, Type, TypeVar

from . import parsing, provider
from .environment import EnvironmentVars
from .errors import ConfigError, ConfigFormatError
from .keystore import KeyStore, combine_keys
from .macros import MacroTable, Resolver, chain, expand_references
from .preprocessor import Preprocessor, BLOCK_END, BLOCK_START
from .store import PathLike, env_path, read_text, write_text

LOG = logging.getLogger(__name__)

OVERRIDE_ENV_VAR = "CONFPP_OVERRIDE"

T = TypeVar("T")
E = TypeVar("E", bound=Enum)

_CONFIG_REF_PREFIX = "[config:"


def get_config_ref(value: Optional[str]) -> Optional[Tuple[str, Optional[str]]]:
	"""
	Decode a configuration reference ``[config:key[,default]]``.

	The ``config:`` tag is case-insensitive; key and default are trimmed.
	Plain values return ``None``.

	:param value: Candidate string.
	:return: ``(key, default)`` (default ``None`` when omitted) or ``None``.
	:raises ConfigFormatError: When the reference has an empty key.
	"""
	if not value or not value.startswith("[") or not value.endswith("]"):
		return None
	if not value.lower().startswith(_CONFIG_REF_PREFIX):
		return None

	body = value[len(_CONFIG_REF_PREFIX):-1]
	key, sep, default = body.partition(",")
	key = key.strip()
	if not key:
		raise ConfigFormatError(f"Invalid configuration key name in reference: {value}")
	return key, default.strip() if sep else None


class Config:
	"""
	A preprocessed configuration: a key store plus the macros defined while
	loading it.

	Keys are case-insensitive. Values are kept as written and expanded
	(``%NAME%`` / ``$(NAME)``) every time they are read, against the macro
	table, the configuration's own keys, built-in variables and the process
	environment, in that order.

	Typical flow::

		cfg = Config.from_file("service.ini")
		port = cfg.get_int("Service.Port", 8080)
		with cfg.get_section("Service") as svc:
			timeout = svc.get_timespan("Timeout", timedelta(seconds=30))

	A configuration built with a *key_prefix* (or returned by
	:meth:`get_section`) is a view: it shares storage with its parent and
	reads ``<prefix>.<key>``.
	"""
	def __init__(
			self,
			key_prefix: Optional[str] = None,
			text: Optional[str] = None,
			*,
			environment: Optional[EnvironmentVars] = None,
			process_environment: bool = True
	) -> None:
		self._key_prefix = self._normalize_prefix(key_prefix)
		self._environment = environment if environment is not None else EnvironmentVars()
		self._process_environment = process_environment
		self._store = KeyStore()
		self._macros = MacroTable()
		if text is not None:
			self.load_text(text)

	@staticmethod
	def _normalize_prefix(prefix: Optional[str]) -> Optional[str]:
		if prefix is None:
			return None
		prefix = prefix.strip().rstrip(".")
		return prefix or None

	# --- constructors
	@classmethod
	def from_text(cls, text: str, key_prefix: Optional[str] = None, **kwargs: Any) -> "Config":
		return cls(key_prefix, text, **kwargs)

	@classmethod
	def from_file(cls, path: PathLike, key_prefix: Optional[str] = None, *, encoding: str = "utf-8", **kwargs: Any) -> "Config":
		"""
		Load a configuration file.

		:raises FileNotFoundError: If the file does not exist.
		:raises ConfigFormatError: On directive errors.
		"""
		return cls(key_prefix, **kwargs).load_file(path, encoding=encoding)

	@classmethod
	def from_provider(
			cls,
			source: provider.ConfigProvider,
			request: Optional[provider.ProviderRequest] = None,
			**kwargs: Any
	) -> "Config":
		"""
		Load text obtained from a :class:`~confpp.config.provider.ConfigProvider`
		(or its cache file when the provider is unavailable).

		:raises ConfigError: When neither provider nor cache produced any text.
		"""
		text = provider.fetch_config(source, request or provider.ProviderRequest())
		if text is None:
			raise ConfigError(f"No configuration available from {type(source).__name__}")
		return cls(None, text, **kwargs)

	@classmethod
	def create_empty(cls) -> "Config":
		return cls(None, None)

	def _view(self, prefix: Optional[str]) -> "Config":
		view = object.__new__(type(self))
		view._key_prefix = self._normalize_prefix(prefix)
		view._environment = self._environment
		view._process_environment = self._process_environment
		view._store = self._store
		view._macros = self._macros
		return view

	# --- dunder
	def __repr__(self) -> str:
		"""Returns string like ``Config(prefix='Service', keys=12)``."""
		return f"{self.__class__.__name__}(prefix={self._key_prefix!r}, keys={len(self)})"

	def __str__(self) -> str:
		"""Groups keys by their first section for a quick overview (not a dump)."""
		keys = list(self)
		if not keys:
			return f"{self.__class__.__name__} with no keys"
		groups: Dict[str, int] = {}
		for key in keys:
			head = key.split(".", 1)[0] if "." in key else ""
			groups[head] = groups.get(head, 0) + 1
		lines = [f"[{name or '<root>'}] ({count} keys)" for name, count in sorted(groups.items())]
		return f"{self.__class__.__name__} with {len(keys)} key(s):\n" + "\n".join(lines)

	def __len__(self) -> int:
		return sum(1 for _ in self._store.scoped(self._key_prefix))

	def __iter__(self) -> Iterator[str]:
		return (key for key, _ in self._store.scoped(self._key_prefix))

	def __contains__(self, key: object) -> bool:
		return isinstance(key, str) and self.get_raw(key) is not None

	def __enter__(self) -> "Config":
		return self

	def __exit__(
			self,
			exc_type: Optional[Type[BaseException]],
			exc_val: Optional[BaseException],
			exc_tb: Optional[TracebackType]
	) -> bool:
		"""
		Logs any exception raised inside the ``with`` block and lets it propagate.

		:return: ``False``.
		"""
		if exc_type is not None:
			LOG.error("Exception inside Config context: %s", exc_type, exc_info=(exc_type, exc_val, exc_tb))
		return False

	# --- loading
	@property
	def key_prefix(self) -> Optional[str]:
		return self._key_prefix

	@property
	def macros(self) -> MacroTable:
		return self._macros

	@property
	def environment(self) -> EnvironmentVars:
		return self._environment

	def _external(self) -> Optional[Resolver]:
		return self._environment.get if self._process_environment else None

	def load_text(self, text: str) -> "Config":
		"""
		Preprocess *text* into this configuration. Later keys overwrite earlier ones.

		The text is processed against copies of the key store and macro table;
		a failed load leaves the configuration unchanged. Auto-increment
		``key[-]`` entries start at index 0 on every load and overwrite values
		left by earlier loads.

		:param text: Configuration source.
		:return: self.
		:raises ConfigFormatError: On directive errors.
		"""
		before = len(self._store)
		store, macros = self._store.copy(), self._macros.copy()
		Preprocessor(macros, store, self._external()).run(text)
		self._store.assign(store)
		self._macros.assign(macros)
		LOG.info("Loaded configuration: %d key(s) (%d new)", len(self._store), len(self._store) - before)
		return self

	def load_file(self, path: PathLike, *, encoding: str = "utf-8") -> "Config":
		p = Path(path).expanduser().resolve()
		self.load_text(read_text(p, encoding=encoding))
		LOG.info("Loaded configuration file: %s", p)
		return self

	def save(self, path: PathLike) -> Path:
		"""
		Write macros and keys back in source form (atomic replace).

		Multi-line values are written as ``{{ ... }}`` blocks. Values are
		saved unexpanded, together with the ``#define`` lines they rely on.

		:param path: Destination file.
		:return: Absolute path written.
		"""
		lines: List[str] = [f"#define {name} {value}".rstrip() for name, value in self._macros.items()]
		if lines:
			lines.append("")
		for key, value in self._store.scoped(self._key_prefix):
			if "\r" in value or "\n" in value:
				lines.append(f"{key} = {BLOCK_START}")
				lines.extend(value.splitlines())
				lines.append(BLOCK_END)
			else:
				lines.append(f"{key} = {value}")
		return write_text(path, "\n".join(lines) + "\n")

	# --- raw access
	def _full_key(self, key: str) -> str:
		return combine_keys(self._key_prefix, key) or key

	def _resolver(self) -> Resolver:
		return chain(self._macros.get, self._store.get, self._external())

	def expand(self, text: Optional[str]) -> Optional[str]:
		"""
		Expand macro references in *text* the way key values are expanded.

		:raises MacroRecursionError: On recursive definitions.
		"""
		return expand_references(text, self._resolver())

	def get_raw(self, key: str) -> Optional[str]:
		"""Return the stored, unexpanded value of *key* (``None`` when absent)."""
		return self._store.get(self._full_key(key))

	def set(self, key: str, value: Any) -> None:
		"""
		Store *value* under *key*, rendered with :func:`~confpp.config.parsing.to_text`.
		``None`` removes the key.
		"""
		if value is None:
			self.remove(key)
			return
		self._store.set(self._full_key(key), parsing.to_text(value))

	add = set

	def remove(self, key: str) -> None:
		self._store.remove(self._full_key(key))

	def keys(self) -> List[str]:
		return list(self)

	def items(self) -> List[Tuple[str, str]]:
		"""``(relative key, expanded value)`` pairs."""
		return [(key, self.expand(value) or "") for key, value in self._store.scoped(self._key_prefix)]

	def to_dict(self) -> Dict[str, str]:
		return dict(self.items())

	# --- typed access
	def get(self, key: str, default: Any = None) -> Any:
		"""
		Return the expanded value of *key*, parsed into the type of *default*.

		Missing keys and unparsable values give *default*. With a ``None`` or
		string default the expanded string itself is returned.

		:param key: Key relative to this configuration.
		:param default: Fallback value; its type selects the parser.
		:return: The value.
		:raises MacroRecursionError: If the value references itself recursively.
		"""
		raw = self.get_raw(key)
		value = self.expand(raw) if raw is not None else None
		return parsing.parse_as(value, default)

	def get_bool(self, key: str, default: bool = False) -> bool:
		return parsing.parse_bool(self.get(key), default)

	def get_int(self, key: str, default: int = 0) -> int:
		return parsing.parse_int(self.get(key), default)

	def get_long(self, key: str, default: int = 0) -> int:
		return parsing.parse_long(self.get(key), default)

	def get_float(self, key: str, default: float = 0.0) -> float:
		return parsing.parse_float(self.get(key), default)

	def get_timespan(self, key: str, default: timedelta = timedelta(0)) -> timedelta:
		return parsing.parse_timespan(self.get(key), default)

	def get_ip_address(self, key: str, default: Optional[parsing.IPAddress] = None) -> Optional[parsing.IPAddress]:
		return parsing.parse_ip_address(self.get(key), default)

	def get_network_binding(
			self,
			key: str,
			default: Optional[parsing.NetworkBinding] = None
	) -> Optional[parsing.NetworkBinding]:
		return parsing.parse_network_binding(self.get(key), default)

	def get_uuid(self, key: str, default: Optional[uuid.UUID] = None) -> Optional[uuid.UUID]:
		return parsing.parse_uuid(self.get(key), default)

	def get_uri(self, key: str, default: Optional[str] = None) -> Optional[str]:
		return parsing.parse_uri(self.get(key), default)

	def get_bytes(self, key: str, default: Optional[bytes] = None) -> Optional[bytes]:
		return parsing.parse_bytes(self.get(key), default)

	def get_enum(self, key: str, enum_type: Type[E], default: Optional[E] = None) -> Optional[E]:
		return parsing.parse_enum(self.get(key), enum_type, default)

	def get_type(self, key: str, default: Optional[type] = None) -> Optional[type]:
		return parsing.parse_type(self.get(key), default)

	def get_custom(self, key: str, factory: Callable[[], T], default: Optional[T] = None) -> Optional[T]:
		return parsing.parse_custom(self.get(key), factory, default)

	def parse_value(self, value: Optional[str], default: Any = None) -> Any:
		"""
		Parse *value*, following it into this configuration when it is a
		``[config:key,default]`` reference.

		Malformed references give *default*.
		"""
		if value is None:
			return default
		try:
			ref = get_config_ref(value)
		except ConfigFormatError:
			return default
		if ref is None:
			return parsing.parse_as(value, default)
		key, text_default = ref
		fallback = parsing.parse_as(text_default, default) if text_default is not None else default
		return self.get(key, fallback)

	# --- structural views
	def get_array(self, key: str, default: Optional[List[str]] = None) -> List[str]:
		"""
		Values of ``key[0]``, ``key[1]``, ... (expanded), stopping at the first gap.

		:param key: Array name.
		:param default: Returned when nothing named *key* exists at all.
		:return: The values; ``[]`` when *key* exists but has no indexed entries.
		"""
		full = self._full_key(key)
		values = self._store.array(full)
		if values:
			return [self.expand(v) or "" for v in values]
		if self._store.has_prefix(full) or default is None:
			return []
		return list(default)

	def get_dictionary(self, key: str) -> Dict[str, str]:
		"""``key[name]`` entries as ``{name: expanded value}``."""
		return {name: self.expand(v) or "" for name, v in self._store.dictionary(self._full_key(key)).items()}

	def get_section(self, name: Optional[str]) -> "Config":
		"""
		Return a view scoped to *name*. ``""``/``None`` gives an unscoped root view.
		"""
		if not name or not name.strip(" ."):
			return self._view(None)
		return self._view(self._full_key(name))

	def get_section_key_array(self, key: str) -> List[str]:
		"""Fully qualified names of the ``key[0]``, ``key[1]``, ... sections."""
		full = self._full_key(key)
		return [f"{full}[{i}]" for i in range(self._store.section_count(full))]

	def get_section_config_array(self, key: str) -> List["Config"]:
		return [self._view(name) for name in self.get_section_key_array(key)]


class ConfigContext:
	"""
	Owner of an application's global configuration.

	The configuration is built on first access from the text (or file) given
	to the context, optionally replaced by a custom provider's text (see
	:mod:`confpp.config.provider`), and finally overlaid with the override
	file named by the ``CONFPP_OVERRIDE`` environment variable. All state
	changes and the lazy construction are serialized by one lock.
	"""
	def __init__(
			self,
			text: Optional[str] = None,
			*,
			path: Optional[PathLike] = None,
			override_env_var: Optional[str] = OVERRIDE_ENV_VAR,
			process_environment: bool = True,
			environment: Optional[EnvironmentVars] = None
	) -> None:
		self._lock = threading.Lock()
		self._text = text
		self._path = Path(path) if path is not None else None
		self._override_env_var = override_env_var
		self._process_environment = process_environment
		self._environment = environment
		self._global: Optional[Config] = None

	def __repr__(self) -> str:
		state = "loaded" if self._global is not None else "not loaded"
		return f"{self.__class__.__name__}({state})"

	@property
	def global_config(self) -> Config:
		"""The shared configuration, loaded on first access."""
		with self._lock:
			if self._global is None:
				self._global = self._load()
			return self._global

	def config(self, key_prefix: Optional[str] = None) -> Config:
		"""Global configuration, optionally scoped to *key_prefix*."""
		cfg = self.global_config
		return cfg.get_section(key_prefix) if key_prefix else cfg

	def set_config(self, text: Optional[str]) -> None:
		"""Use *text* as the configuration source (``None`` clears it)."""
		with self._lock:
			self._text = text
			self._path = None
			self._global = None

	def append_config(self, text: str) -> None:
		"""Append *text* to the current source, separated by a line break."""
		with self._lock:
			self._text = text if self._text is None else self._text + "\r\n" + text
			self._global = None

	def set_config_path(self, path: Optional[PathLike]) -> None:
		with self._lock:
			self._path = Path(path) if path is not None else None
			self._text = None
			self._global = None

	def clear(self) -> None:
		"""Drop the loaded configuration; the next access rebuilds it."""
		with self._lock:
			self._global = None
		LOG.debug("Global configuration cleared")

	def parse_value(self, value: Optional[str], default: Any = None) -> Any:
		return self.global_config.parse_value(value, default)

	def save(self, path: Optional[PathLike] = None) -> Path:
		"""
		Save the global configuration to *path* (or the context's file).

		:raises ConfigError: When no destination is known.
		"""
		with self._lock:
			dest = path if path is not None else self._path
		if dest is None:
			raise ConfigError("No configuration path to save to.")
		return self.global_config.save(dest)

	# --- loading
	def _new_config(self, text: Optional[str]) -> Config:
		return Config(
			None,
			text,
			environment=self._environment,
			process_environment=self._process_environment
		)

	def _source_text(self) -> str:
		if self._text is not None:
			return self._text
		if self._path is not None and self._path.exists():
			return read_text(self._path)
		return ""

	def _load(self) -> Config:
		cfg = self._new_config(self._source_text())

		custom = provider.load_custom(cfg)
		if custom is not None:
			cfg = self._new_config(custom)

		override = env_path(self._override_env_var)
		if override is not None:
			try:
				layer = self._new_config(None).load_file(override)
			except (OSError, ConfigError):
				LOG.warning("Could not load configuration override %s", override, exc_info=True)
			else:
				for key, value in layer._store.items():
					cfg._store.set(key, value)
				LOG.info("Applied configuration override %s (%d key(s))", override, len(layer))
		return cfg


__all__ = [
	"OVERRIDE_ENV_VAR",
	"Config",
	"ConfigContext",
	"combine_keys",
	"get_config_ref",
]
