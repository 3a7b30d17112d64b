"""
Macro table and the reference expander shared by configurations and
environment variables.

Two reference forms are recognized and may be mixed freely::

	%NAME%
	$(NAME)

A reference whose name does not resolve is left in the text untouched,
delimiters included. Unterminated forms (``$(abc``, a lone ``%``) are
plain text. Resolved values are expanded again before they are
substituted; a name that re-enters its own expansion raises
:class:`~confpp.config.errors.MacroRecursionError`.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, Iterator, List, Optional, Set, Tuple

from .errors import MacroRecursionError

LOG = logging.getLogger(__name__)

Resolver = Callable[[str], Optional[str]]

_FORMS: Tuple[Tuple[str, str], ...] = (("%", "%"), ("$(", ")"))


def has_references(text: Optional[str]) -> bool:
	"""Return ``True`` if *text* contains anything that looks like a macro reference."""
	return bool(text) and ("%" in text or "$(" in text)


def chain(*lookups: Optional[Resolver]) -> Resolver:
	"""
	Combine lookups into a single resolver returning the first non-``None`` value.

	``None`` entries are skipped, which lets callers switch a source off.

	:param lookups: Callables ``name -> Optional[str]`` in priority order.
	:return: The combined resolver.
	"""
	active = [fn for fn in lookups if fn is not None]

	def _resolve(name: str) -> Optional[str]:
		for fn in active:
			value = fn(name)
			if value is not None:
				return value
		return None
	return _resolve


def _scan(text: str, opener: str, closer: str, substitute: Callable[[str, str], str]) -> str:
	out: List[str] = []
	pos = 0
	while True:
		start = text.find(opener, pos)
		if start == -1:
			out.append(text[pos:])
			break
		end = text.find(closer, start + len(opener))
		if end == -1:
			out.append(text[pos:])
			break
		out.append(text[pos:start])
		name = text[start + len(opener):end]
		out.append(substitute(name, text[start:end + len(closer)]))
		pos = end + len(closer)
	return "".join(out)


def expand_references(text: Optional[str], resolve: Resolver, *, _active: Optional[Set[str]] = None) -> Optional[str]:
	"""
	Expand every ``%NAME%`` and ``$(NAME)`` reference in *text*.

	:param text: Input text (``None`` passes through).
	:param resolve: Lookup ``name -> value`` (``None`` when unknown).
	:return: The expanded text.
	:raises MacroRecursionError: When a reference re-enters its own expansion.
	"""
	if not has_references(text):
		return text

	active: Set[str] = set() if _active is None else _active

	def _substitute(name: str, original: str) -> str:
		if not name:
			return original
		key = name.lower()
		if key in active:
			raise MacroRecursionError(name)
		value = resolve(name)
		if value is None:
			return original
		active.add(key)
		try:
			return expand_references(value, resolve, _active=active)
		finally:
			active.discard(key)

	for opener, closer in _FORMS:
		text = _scan(text, opener, closer, _substitute)
	return text


class MacroTable:
	"""
	Case-insensitive ``name -> text`` table filled by ``#define``/``#set``.

	Values are stored as written; expansion happens when they are read
	through :meth:`expand` (or any resolver chain the table is part of).
	"""
	def __init__(self) -> None:
		self._items: Dict[str, Tuple[str, str]] = {}

	def __repr__(self) -> str:
		return f"{self.__class__.__name__}(names={self.names()})"

	def __len__(self) -> int:
		return len(self._items)

	def __contains__(self, name: object) -> bool:
		return isinstance(name, str) and name.lower() in self._items

	def __iter__(self) -> Iterator[str]:
		return iter(self.names())

	def define(self, name: str, value: str = "") -> None:
		"""Store (or replace) *name* with the raw *value*."""
		self._items[name.lower()] = (name, value)
		LOG.debug("Defined macro %s", name)

	def undefine(self, name: str) -> None:
		"""Remove *name*; absent names are ignored."""
		if self._items.pop(name.lower(), None) is not None:
			LOG.debug("Removed macro %s", name)

	def get(self, name: str) -> Optional[str]:
		"""Return the raw (unexpanded) value of *name*, or ``None``."""
		item = self._items.get(name.lower())
		return item[1] if item is not None else None

	def names(self) -> List[str]:
		return [name for name, _ in self._items.values()]

	def items(self) -> List[Tuple[str, str]]:
		return list(self._items.values())

	def copy(self) -> "MacroTable":
		clone = MacroTable()
		clone._items = dict(self._items)
		return clone

	def assign(self, other: "MacroTable") -> None:
		self._items = dict(other._items)

	def expand(self, text: Optional[str], *fallbacks: Optional[Resolver]) -> Optional[str]:
		"""
		Expand *text* against this table, then each fallback in order.

		:param text: Text to expand.
		:param fallbacks: Further resolvers consulted when the table has no entry.
		:return: Expanded text.
		:raises MacroRecursionError: On a recursive definition.
		"""
		return expand_references(text, chain(self.get, *fallbacks))


__all__ = [
	"Resolver",
	"MacroTable",
	"chain",
	"expand_references",
	"has_references",
]
