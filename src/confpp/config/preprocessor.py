"""
Directive preprocessor for the line-oriented configuration language.

Source lines look like::

	// comment
	#define   NAME [value]        raw value, expanded when read
	#set      NAME value          value expanded immediately
	#undef    NAME
	#if [!]NAME | true | false
	#else
	#endif
	#switch   NAME | text with $(macros)
	#case     literal
	#default
	#endswitch
	#section  Name
	#endsection
	key = value
	key = {{
	      multi-line value
	}}

Processing is a single forward pass. Open blocks are kept on one stack of
:class:`IfFrame`, :class:`SwitchFrame` and :class:`SectionFrame` entries;
any mismatch between a terminator and the frame on top of the stack is a
:class:`~confpp.config.errors.ConfigFormatError`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple, Union

from .errors import ConfigFormatError
from .keystore import AUTO_INDEX, KeyStore, combine_keys
from .macros import MacroTable, Resolver, chain, expand_references, has_references

LOG = logging.getLogger(__name__)

COMMENT_PREFIXES = ("//", "--", "<")
BLOCK_START = "{{"
BLOCK_END = "}}"
LINE_JOIN = "\r\n"

_RESERVED_NAMES = {"true", "false"}


# ----- Frames -----
@dataclass
class IfFrame:
	parent_enabled: bool
	condition: bool
	line: int
	in_else: bool = False

	@property
	def enabled(self) -> bool:
		return self.parent_enabled and (self.condition != self.in_else)


@dataclass
class SwitchFrame:
	parent_enabled: bool
	value: str
	line: int
	matched: bool = False
	enabled: bool = False
	has_default: bool = False


@dataclass
class SectionFrame:
	parent_enabled: bool
	previous_prefix: Optional[str]
	name: str
	line: int

	@property
	def enabled(self) -> bool:
		return self.parent_enabled


Frame = Union[IfFrame, SwitchFrame, SectionFrame]

_OPENERS: Dict[type, str] = {IfFrame: "#if", SwitchFrame: "#switch", SectionFrame: "#section"}


class Preprocessor:
	"""
	Evaluates directives and feeds the surviving ``key = value`` lines into a
	:class:`~confpp.config.keystore.KeyStore`.

	:param macros: Macro table to fill (a new one when ``None``).
	:param store: Key store to fill (a new one when ``None``).
	:param external: Resolver for built-in and environment variables, used
	                 by ``#if`` and macro expansion after the table and keys.
	"""
	def __init__(
			self,
			macros: Optional[MacroTable] = None,
			store: Optional[KeyStore] = None,
			external: Optional[Resolver] = None
	) -> None:
		self.macros = macros if macros is not None else MacroTable()
		self.store = store if store is not None else KeyStore()
		self._external = external
		self._stack: List[Frame] = []
		self._prefix: Optional[str] = None
		self._handlers: Dict[str, Callable[[str, int], None]] = {
			"define": self._define,
			"set": self._set,
			"undef": self._undef,
			"if": self._if,
			"else": self._else,
			"endif": self._endif,
			"switch": self._switch,
			"case": self._case,
			"default": self._default,
			"endswitch": self._endswitch,
			"section": self._section,
			"endsection": self._endsection,
		}

	def __repr__(self) -> str:
		return f"{self.__class__.__name__}(depth={len(self._stack)}, keys={len(self.store)})"

	# --- state helpers
	@property
	def enabled(self) -> bool:
		return self._stack[-1].enabled if self._stack else True

	def _resolver(self) -> Resolver:
		return chain(self.macros.get, self.store.get, self._external)

	def _expand(self, text: str) -> str:
		return expand_references(text, self._resolver())

	def _top(self, kind: type, directive: str, line: int) -> Frame:
		if not self._stack or not isinstance(self._stack[-1], kind):
			raise ConfigFormatError(f"#{directive} without a matching {_OPENERS[kind]}", line)
		return self._stack[-1]

	# --- entry point
	def run(self, text: str) -> KeyStore:
		"""
		Process *text* and return the filled key store.

		:param text: Configuration source.
		:return: The key store (also available as ``self.store``).
		:raises ConfigFormatError: On structural errors.
		:raises MacroRecursionError: When ``#set`` or ``#switch`` hits a recursive macro.
		"""
		lines = text.splitlines()
		index = 0
		while index < len(lines):
			number = index + 1
			line = lines[index].strip()
			index += 1

			if not line or line.startswith(COMMENT_PREFIXES):
				continue
			if line.startswith("#"):
				self._directive(line, number)
				continue

			key, sep, value = line.partition("=")
			if not sep:
				continue
			key = key.strip()
			value = value.strip()

			if value.startswith(BLOCK_START):
				value, index = self._read_block(value[len(BLOCK_START):], lines, index)

			if key and self.enabled:
				self._admit(key, value)

		if self._stack:
			frame = self._stack[-1]
			raise ConfigFormatError(f"{_OPENERS[type(frame)]} block is never closed", frame.line)

		merged = self.store.merge_auto_indexes()
		LOG.debug("Preprocessed %d line(s), %d auto-indexed value(s)", len(lines), merged)
		return self.store

	@staticmethod
	def _read_block(first: str, lines: List[str], index: int) -> Tuple[str, int]:
		parts: List[str] = []
		if first.strip():
			parts.append(first.strip())
		while index < len(lines):
			line = lines[index].strip()
			index += 1
			if line.startswith(BLOCK_END):
				break
			parts.append(line)
		return LINE_JOIN.join(parts).strip(), index

	def _admit(self, key: str, value: str) -> None:
		full = combine_keys(self._prefix, key) or key
		if full.endswith(AUTO_INDEX):
			self.store.append_auto(full[:-len(AUTO_INDEX)], value)
		else:
			self.store.set(full, value)

	def _directive(self, line: str, number: int) -> None:
		parts = line[1:].split(None, 1)
		name = parts[0].lower() if parts else ""
		arg = parts[1].strip() if len(parts) > 1 else ""
		handler = self._handlers.get(name)
		if handler is None:
			raise ConfigFormatError(f"Unknown directive: {line}", number)
		handler(arg, number)

	# --- macros
	def _macro_args(self, directive: str, arg: str, number: int) -> Tuple[str, str]:
		parts = arg.split(None, 1)
		if not parts:
			raise ConfigFormatError(f"#{directive} requires a name", number)
		name = parts[0]
		if name.lower() in _RESERVED_NAMES:
			raise ConfigFormatError(f"#{directive} cannot redefine '{name}'", number)
		return name, parts[1].strip() if len(parts) > 1 else ""

	def _define(self, arg: str, number: int) -> None:
		if self.enabled:
			name, value = self._macro_args("define", arg, number)
			self.macros.define(name, value)

	def _set(self, arg: str, number: int) -> None:
		if self.enabled:
			name, value = self._macro_args("set", arg, number)
			self.macros.define(name, self._expand(value))

	def _undef(self, arg: str, number: int) -> None:
		if self.enabled:
			name, _ = self._macro_args("undef", arg, number)
			self.macros.undefine(name)

	# --- conditionals
	def _condition(self, expr: str, number: int) -> bool:
		negate = expr.startswith("!")
		name = expr[1:].strip() if negate else expr
		if not name:
			raise ConfigFormatError("#if requires a condition", number)

		word = name.lower()
		if word == "true":
			result = True
		elif word == "false":
			result = False
		else:
			result = name in self.macros or (self._external is not None and self._external(name) is not None)
		return not result if negate else result

	def _if(self, arg: str, number: int) -> None:
		parent = self.enabled
		condition = self._condition(arg, number) if parent else False
		self._stack.append(IfFrame(parent_enabled=parent, condition=condition, line=number))

	def _else(self, arg: str, number: int) -> None:
		frame = self._top(IfFrame, "else", number)
		if frame.in_else:
			raise ConfigFormatError("Duplicate #else", number)
		frame.in_else = True

	def _endif(self, arg: str, number: int) -> None:
		self._top(IfFrame, "endif", number)
		self._stack.pop()

	# --- switch
	def _switch_value(self, expr: str) -> str:
		if has_references(expr):
			return self._expand(expr)
		value = chain(self.store.get, self.macros.get, self._external)(expr)
		return self._expand(value) if value is not None else ""

	def _switch(self, arg: str, number: int) -> None:
		if not arg:
			raise ConfigFormatError("#switch requires an expression", number)
		parent = self.enabled
		value = self._switch_value(arg) if parent else ""
		self._stack.append(SwitchFrame(parent_enabled=parent, value=value, line=number))

	def _case(self, arg: str, number: int) -> None:
		frame = self._top(SwitchFrame, "case", number)
		if frame.has_default:
			raise ConfigFormatError("#case after #default", number)
		hit = frame.parent_enabled and not frame.matched and arg.lower() == frame.value.lower()
		frame.enabled = hit
		frame.matched = frame.matched or hit

	def _default(self, arg: str, number: int) -> None:
		frame = self._top(SwitchFrame, "default", number)
		if frame.has_default:
			raise ConfigFormatError("Duplicate #default", number)
		frame.has_default = True
		frame.enabled = frame.parent_enabled and not frame.matched

	def _endswitch(self, arg: str, number: int) -> None:
		self._top(SwitchFrame, "endswitch", number)
		self._stack.pop()

	# --- sections
	def _section(self, arg: str, number: int) -> None:
		if not arg:
			raise ConfigFormatError("#section requires a name", number)
		if AUTO_INDEX in arg:
			raise ConfigFormatError(f"Section names cannot use '{AUTO_INDEX}': {arg}", number)
		self._stack.append(SectionFrame(
			parent_enabled=self.enabled,
			previous_prefix=self._prefix,
			name=arg,
			line=number
		))
		self._prefix = combine_keys(self._prefix, arg)

	def _endsection(self, arg: str, number: int) -> None:
		frame = self._top(SectionFrame, "endsection", number)
		self._stack.pop()
		self._prefix = frame.previous_prefix


def preprocess(
		text: str,
		*,
		macros: Optional[MacroTable] = None,
		store: Optional[KeyStore] = None,
		external: Optional[Resolver] = None
) -> Tuple[KeyStore, MacroTable]:
	"""
	Run the preprocessor over *text*.

	:param text: Configuration source.
	:param macros: Existing macro table to extend.
	:param store: Existing key store to extend.
	:param external: Built-in/environment resolver.
	:return: ``(store, macros)``.
	:raises ConfigFormatError: On structural errors.
	"""
	proc = Preprocessor(macros, store, external)
	proc.run(text)
	return proc.store, proc.macros


__all__ = [
	"COMMENT_PREFIXES",
	"Frame",
	"IfFrame",
	"Preprocessor",
	"SectionFrame",
	"SwitchFrame",
	"preprocess",
]
