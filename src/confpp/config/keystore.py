"""
Case-insensitive key store with ``key[-]`` auto-increment arrays and
``key[name]`` dictionaries.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterator, List, Optional, Set, Tuple

LOG = logging.getLogger(__name__)

AUTO_INDEX = "[-]"


def combine_keys(key1: Optional[str], key2: Optional[str]) -> Optional[str]:
	"""
	Join two key prefixes with a single period.

	A trailing period on *key1* and a leading period on *key2* are dropped;
	blank parts are elided::

		combine_keys("key1.", ".key2")  -> "key1.key2"
		combine_keys(" ", "key2")       -> "key2"
		combine_keys(None, None)        -> None

	:param key1: Leading part (may be ``None``).
	:param key2: Trailing part (may be ``None``).
	:return: Combined key.
	"""
	if key1 is not None and key1.endswith("."):
		key1 = key1[:-1]
	if key2 is not None and key2.startswith("."):
		key2 = key2[1:]

	if key1 is None or not key1.strip():
		return key2
	if key2 is None or not key2.strip():
		return key1
	return f"{key1}.{key2}"


def split_indexed(key: str) -> Optional[Tuple[str, str]]:
	"""
	Split ``base[index]`` into ``(base, index)``; ``None`` for plain keys.
	"""
	if not key.endswith("]"):
		return None
	pos = key.rfind("[")
	if pos <= 0:
		return None
	return key[:pos], key[pos + 1:-1]


class KeyStore:
	"""
	Ordered, case-insensitive ``key -> raw value`` map.

	Keys keep the spelling of their latest write; lookups ignore case.
	Values written through the auto-increment form ``base[-]`` are queued
	per base and turned into ``base[0]``, ``base[1]``, ... by
	:meth:`merge_auto_indexes`. A ``base[n]`` written explicitly since the last
	merge wins over the queued value for the same position; values left by
	earlier loads are overwritten.
	"""
	def __init__(self) -> None:
		self._items: Dict[str, Tuple[str, str]] = {}
		self._auto: Dict[str, Tuple[str, List[str]]] = {}
		self._explicit: Set[str] = set()

	def __repr__(self) -> str:
		return f"{self.__class__.__name__}(keys={len(self._items)})"

	def __len__(self) -> int:
		return len(self._items)

	def __contains__(self, key: object) -> bool:
		return isinstance(key, str) and key.lower() in self._items

	def __iter__(self) -> Iterator[str]:
		return (key for key, _ in self._items.values())

	# --- writes
	def set(self, key: str, value: str) -> None:
		"""Insert or overwrite *key* (last write wins)."""
		self._items[key.lower()] = (key, value)
		self._explicit.add(key.lower())

	def remove(self, key: str) -> None:
		"""Delete *key*; absent keys are ignored."""
		self._items.pop(key.lower(), None)
		self._explicit.discard(key.lower())

	def append_auto(self, base: str, value: str) -> None:
		"""Queue *value* for the next auto-increment index of *base*."""
		entry = self._auto.setdefault(base.lower(), (base, []))
		entry[1].append(value)

	def merge_auto_indexes(self) -> int:
		"""
		Assign queued ``base[-]`` values to ``base[0..n]`` in encounter order.

		:return: Number of entries written.
		"""
		written = 0
		for base, values in self._auto.values():
			for index, value in enumerate(values):
				key = f"{base}[{index}]"
				if key.lower() in self._explicit:
					LOG.debug("Explicit %s overrides auto-increment value", key)
					continue
				self._items[key.lower()] = (key, value)
				written += 1
		self._auto.clear()
		self._explicit.clear()
		return written

	def copy(self) -> "KeyStore":
		clone = KeyStore()
		clone._items = dict(self._items)
		return clone

	def assign(self, other: "KeyStore") -> None:
		"""Replace the contents with those of *other*, keeping this object."""
		self._items = dict(other._items)
		self._auto.clear()
		self._explicit.clear()

	# --- reads
	def get(self, key: Optional[str]) -> Optional[str]:
		if key is None:
			return None
		item = self._items.get(key.lower())
		return item[1] if item is not None else None

	def items(self) -> List[Tuple[str, str]]:
		return list(self._items.values())

	def has_prefix(self, prefix: str) -> bool:
		"""``True`` when *prefix* is a key or the parent of any key."""
		low = prefix.lower()
		if low in self._items:
			return True
		return any(k.startswith(low + ".") or k.startswith(low + "[") for k in self._items)

	def array(self, prefix: str) -> List[str]:
		"""Values of ``prefix[0]``, ``prefix[1]``, ... up to the first gap."""
		out: List[str] = []
		while True:
			value = self.get(f"{prefix}[{len(out)}]")
			if value is None:
				return out
			out.append(value)

	def dictionary(self, prefix: str) -> Dict[str, str]:
		"""``prefix[name]`` entries as ``{name: value}``."""
		low = prefix.lower()
		out: Dict[str, str] = {}
		for key, value in self._items.values():
			parts = split_indexed(key)
			if parts is not None and parts[0].lower() == low:
				out[parts[1]] = value
		return out

	def section_count(self, prefix: str) -> int:
		"""Number of contiguous ``prefix[i].*`` sections starting at ``i == 0``."""
		count = 0
		while True:
			head = f"{prefix}[{count}].".lower()
			if not any(k.startswith(head) for k in self._items):
				return count
			count += 1

	def scoped(self, prefix: Optional[str]) -> Iterator[Tuple[str, str]]:
		"""Yield ``(relative key, value)`` for every key under *prefix*."""
		if not prefix:
			yield from self._items.values()
			return
		head = prefix.rstrip(".").lower() + "."
		for low, (key, value) in self._items.items():
			if low.startswith(head):
				yield key[len(head):], value


__all__ = [
	"AUTO_INDEX",
	"KeyStore",
	"combine_keys",
	"split_indexed",
]
