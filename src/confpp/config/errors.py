from __future__ import annotations

from typing import Optional


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------
class ConfigError(Exception):
	"""
	Base class for every error raised by the configuration package.

	Typed getters never raise it; they fall back to the caller default.
	Only structural problems (bad directives, bad references) and
	recursive macro definitions surface as exceptions.
	"""


class ConfigFormatError(ConfigError):
	"""
	Load-time structural error: unbalanced directive blocks, unknown
	directives, malformed ``[config:]`` references.

	:param message: Human readable description.
	:param line: 1-based source line number, when known.
	"""
	def __init__(self, message: str, line: Optional[int] = None) -> None:
		self.line = line
		if line is not None:
			message = f"line {line}: {message}"
		super().__init__(message)


class MacroRecursionError(ConfigError):
	"""Raised when a macro transitively references itself."""
	def __init__(self, name: str) -> None:
		self.name = name
		super().__init__(f"Recursive macro expansion detected for '{name}'.")


__all__ = [
	"ConfigError",
	"ConfigFormatError",
	"MacroRecursionError",
]
