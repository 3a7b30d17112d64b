"""
confpp: preprocessed configuration files.

Top-level API keeps imports lazy:

    from confpp import Config
    cfg = Config.from_file("service.conf")
    cfg.get_int("Service.Port", 8080)

    from confpp import ConfigContext
    ctx = ConfigContext(path="service.conf")
    ctx.global_config.get("Service.Name")

    from confpp import ConfigRewriter, edit_macro
    ConfigRewriter("app.conf").rewrite({"db": "connection = server=prod"})
"""

from importlib import import_module
from importlib.metadata import version, PackageNotFoundError as _PNF
from typing import TYPE_CHECKING

try:
	__version__ = version("confpp")
except _PNF:
	__version__ = "0.0.0+local"

__all__ = [
	"__version__",
	# main facades
	"Config", "ConfigContext", "EnvironmentVars", "ConfigRewriter",
	"edit_macro", "configure_logging",
	# errors
	"ConfigError", "ConfigFormatError", "MacroRecursionError",
	# namespaces
	"config", "logutil", "cli",
]

# --- lazy maps ---------------------------------------------------------------
_CONFIG_EXPORTS = {
	"Config", "ConfigContext", "EnvironmentVars", "ConfigRewriter", "edit_macro",
	"ConfigError", "ConfigFormatError", "MacroRecursionError",
	"MacroTable", "KeyStore", "NetworkBinding", "Parseable", "ConfigProvider",
	"combine_keys", "get_config_ref",
}


def __getattr__(name: str):
	if name == "configure_logging":
		return import_module("confpp.logutil").configure_logging

	# --- namespaces (lazy) ---
	if name == "config":
		return import_module("confpp.config")
	if name == "logutil":
		return import_module("confpp.logutil")
	if name == "cli":
		return import_module("confpp.cli")

	if name in _CONFIG_EXPORTS:
		return getattr(import_module("confpp.config"), name)

	raise AttributeError(f"module 'confpp' has no attribute {name!r}")


# Help type-checkers without eager imports
if TYPE_CHECKING:
	from . import config, logutil, cli  # noqa: F401
	from .logutil import configure_logging  # noqa: F401
	from .config import (
		Config, ConfigContext, EnvironmentVars, ConfigRewriter, edit_macro,  # noqa: F401
		ConfigError, ConfigFormatError, MacroRecursionError,  # noqa: F401
		MacroTable, KeyStore, NetworkBinding, Parseable, ConfigProvider,  # noqa: F401
		combine_keys, get_config_ref,  # noqa: F401
	)
