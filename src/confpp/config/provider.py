"""
Custom configuration providers selected by ``Config.CustomProvider`` and the
cache file used when the provider is unavailable.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Dict, Optional, Protocol, runtime_checkable

from .errors import ConfigError
from .parsing import parse_type
from .store import read_text, write_text

if TYPE_CHECKING:
	from .config import Config

LOG = logging.getLogger(__name__)

PROVIDER_KEY = "Config.CustomProvider"
SETTINGS_KEY = "Config.Settings"
CACHE_FILE_KEY = "Config.CacheFile"
MACHINE_NAME_KEY = "Config.MachineName"
EXE_FILE_KEY = "Config.ExeFile"
EXE_VERSION_KEY = "Config.ExeVersion"
USAGE_KEY = "Config.Usage"


@runtime_checkable
class ConfigProvider(Protocol):
	"""
	Source of configuration text, typically a remote configuration service.

	Return ``None`` (or raise) when the configuration cannot be obtained;
	the caller then falls back to the cache file.
	"""
	def get_config(
			self,
			settings: Dict[str, str],
			cache_file: Optional[str],
			machine_name: str,
			exe_file: str,
			exe_version: str,
			usage: str
	) -> Optional[str]:
		...


def parse_settings(text: Optional[str]) -> Dict[str, str]:
	"""
	Parse ``name=value;name=value`` provider settings.

	:param text: Settings string (``None`` gives an empty dict).
	:return: Settings mapping (names and values trimmed).
	"""
	out: Dict[str, str] = {}
	for item in (text or "").split(";"):
		name, sep, value = item.partition("=")
		if sep and name.strip():
			out[name.strip()] = value.strip()
	return out


@dataclass
class ProviderRequest:
	"""Arguments handed to :meth:`ConfigProvider.get_config`."""
	settings: Dict[str, str] = field(default_factory=dict)
	cache_file: Optional[str] = None
	machine_name: str = ""
	exe_file: str = ""
	exe_version: str = ""
	usage: str = ""

	@classmethod
	def from_config(cls, config: "Config") -> "ProviderRequest":
		return cls(
			settings=parse_settings(config.get(SETTINGS_KEY)),
			cache_file=config.get(CACHE_FILE_KEY),
			machine_name=config.get(MACHINE_NAME_KEY, "") or config.expand("$(MachineName)"),
			exe_file=config.get(EXE_FILE_KEY, ""),
			exe_version=config.get(EXE_VERSION_KEY, ""),
			usage=config.get(USAGE_KEY, ""),
		)


def load_provider(spec: str) -> ConfigProvider:
	"""
	Instantiate the provider class named by ``module:QualName``.

	:raises ConfigError: If the class cannot be found or lacks ``get_config``.
	"""
	cls = parse_type(spec, None)
	if cls is None:
		raise ConfigError(f"Config provider type not found: {spec}")
	provider = cls()
	if not isinstance(provider, ConfigProvider):
		raise ConfigError(f"{spec} does not implement get_config()")
	return provider


def fetch_config(provider: ConfigProvider, request: ProviderRequest) -> Optional[str]:
	"""
	Ask *provider* for configuration text, maintaining the cache file.

	A successful result is written atomically to ``request.cache_file``. When
	the provider fails or returns ``None``, the cached copy is returned
	instead (or ``None`` when there is none).

	:param provider: The provider.
	:param request: Provider arguments.
	:return: Configuration text or ``None``.
	"""
	try:
		text = provider.get_config(
			request.settings,
			request.cache_file,
			request.machine_name,
			request.exe_file,
			request.exe_version,
			request.usage,
		)
	except Exception:
		LOG.warning("Config provider %s failed", type(provider).__name__, exc_info=True)
		text = None

	cache = Path(request.cache_file).expanduser() if request.cache_file else None
	if text is not None:
		if cache is not None:
			try:
				write_text(cache, text)
			except OSError:
				LOG.warning("Could not write config cache %s", cache, exc_info=True)
		return text

	if cache is not None and cache.exists():
		LOG.warning("Config provider unavailable, using cached copy %s", cache)
		return read_text(cache)
	return None


def load_custom(config: "Config") -> Optional[str]:
	"""
	Fetch provider text when *config* names a provider in ``Config.CustomProvider``.

	:return: The provider (or cached) text, ``None`` when no provider is configured
	         or nothing could be obtained.
	:raises ConfigError: When the provider type cannot be loaded.
	"""
	spec = config.get(PROVIDER_KEY)
	if not spec:
		return None
	provider = load_provider(spec)
	LOG.info("Loading configuration from provider %s", spec)
	return fetch_config(provider, ProviderRequest.from_config(config))


__all__ = [
	"ConfigProvider",
	"ProviderRequest",
	"fetch_config",
	"load_custom",
	"load_provider",
	"parse_settings",
]
