"""
Template-driven rewriting of text files.

A file marks replaceable lines with a comment right above them::

	// $replace(connection)
	connection = server=localhost;db=dev

:class:`ConfigRewriter` swaps such lines for per-tag text and can put the
original bytes back later.
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import List, Mapping, Tuple

from .store import PathLike, backup_path, read_bytes, read_text, write_bytes, write_text

LOG = logging.getLogger(__name__)

MARKER_RE = re.compile(rb"^\s*//\s*\$replace\(\s*([^)]+?)\s*\)\s*$", re.IGNORECASE)

BACKUP_EXT = ".bak"


def _split_ending(line: bytes) -> Tuple[bytes, bytes]:
	if line.endswith(b"\r\n"):
		return line[:-2], b"\r\n"
	if line.endswith((b"\n", b"\r")):
		return line[:-1], line[-1:]
	return line, b""


class ConfigRewriter:
	"""
	Rewrites the line after every ``// $replace(tag)`` marker of one file.

	The first :meth:`rewrite` moves the original file to ``<file>.bak`` while
	atomically installing the new content, so the original survives a crash
	at any point. While that backup exists further rewrites start from it,
	and :meth:`restore` moves it back over the file.

	:param path: File to rewrite.
	:param encoding: Encoding of the replacement texts.
	"""
	def __init__(self, path: PathLike, *, encoding: str = "utf-8") -> None:
		self.path = Path(path).expanduser().resolve()
		self.encoding = encoding

	def __repr__(self) -> str:
		return f"{self.__class__.__name__}(path={str(self.path)!r}, rewritten={self.is_rewritten})"

	@property
	def backup_path(self) -> Path:
		return backup_path(self.path, BACKUP_EXT)

	@property
	def is_rewritten(self) -> bool:
		return self.backup_path.exists()

	def render(self, original: bytes, tags: Mapping[str, str]) -> Tuple[bytes, int]:
		"""
		Apply *tags* to *original* without touching the disk.

		:param original: File content.
		:param tags: Tag name (case-insensitive) to replacement line.
		:return: ``(new content, number of replaced lines)``.
		"""
		lookup = {name.lower(): text for name, text in tags.items()}
		lines = original.splitlines(keepends=True)
		out: List[bytes] = []
		replaced = 0
		index = 0
		while index < len(lines):
			line = lines[index]
			out.append(line)
			index += 1
			m = MARKER_RE.match(_split_ending(line)[0])
			if not m or index >= len(lines):
				continue
			tag = m.group(1).decode(self.encoding, errors="replace")
			text = lookup.get(tag.lower())
			if text is None:
				LOG.warning("No replacement for tag '%s' in %s", tag, self.path)
				continue
			out.append(text.encode(self.encoding) + _split_ending(lines[index])[1])
			index += 1
			replaced += 1
		return b"".join(out), replaced

	def rewrite(self, tags: Mapping[str, str]) -> int:
		"""
		Replace tagged lines, keeping the original in the backup file.

		:param tags: Tag name to replacement text.
		:return: Number of replaced lines.
		:raises FileNotFoundError: If neither the file nor a backup exists.
		"""
		if self.is_rewritten:
			original = read_bytes(self.backup_path)
			content, replaced = self.render(original, tags)
			write_bytes(self.path, content)
		else:
			original = read_bytes(self.path)
			content, replaced = self.render(original, tags)
			write_bytes(self.path, content, backup_ext=BACKUP_EXT)
		LOG.info("Rewrote %d line(s) in %s", replaced, self.path)
		return replaced

	def restore(self) -> bool:
		"""
		Put the original content back. Without a backup this does nothing.

		:return: ``True`` if the file was restored.
		"""
		backup = self.backup_path
		if not backup.exists():
			LOG.debug("Nothing to restore for %s", self.path)
			return False
		os.replace(backup, self.path)
		LOG.info("Restored %s", self.path)
		return True


def edit_macro(path: PathLike, macro: str, value: str, *, encoding: str = "utf-8") -> bool:
	"""
	Change the value of ``#define <macro>`` lines in a configuration file.

	The macro name must match exactly (case-sensitive); commented-out
	definitions are left alone. The file is rewritten with CRLF line breaks.

	:param path: Configuration file.
	:param macro: Macro name.
	:param value: New value.
	:param encoding: File encoding.
	:return: ``True`` if at least one definition was changed.
	"""
	lines: List[str] = []
	found = False
	for line in read_text(path, encoding=encoding).splitlines():
		trimmed = line.strip()
		if trimmed.startswith("#define "):
			parts = trimmed[len("#define "):].split(None, 1)
			if parts and parts[0] == macro:
				line = f"#define {macro} {value}"
				found = True
		lines.append(line)
	write_text(path, "".join(f"{line}\r\n" for line in lines), encoding=encoding)
	if found:
		LOG.info("Set macro %s in %s", macro, path)
	return found


__all__ = [
	"BACKUP_EXT",
	"MARKER_RE",
	"ConfigRewriter",
	"edit_macro",
]
