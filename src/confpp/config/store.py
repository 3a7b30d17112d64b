from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Optional, Union

LOG = logging.getLogger(__name__)

PathLike = Union[str, Path]


# --- Path helpers
def backup_path(path: PathLike, backup_ext: str = ".bak") -> Path:
	"""
	Return the backup location for *path* (``<path><backup_ext>``).

	:param path: Target file path.
	:param backup_ext: Backup extension appended to the full file name.
	:return: Absolute backup path.
	"""
	dest = Path(path).expanduser().resolve()
	return dest.with_name(dest.name + backup_ext)


def env_path(env_var: Optional[str]) -> Optional[Path]:
	"""
	Return the path named by environment variable *env_var*, or ``None`` when
	the variable is unset or empty.

	:param env_var: Environment variable name.
	:return: Absolute path or ``None``.
	"""
	if not env_var:
		return None
	value = os.getenv(env_var)
	if not value:
		return None
	return Path(value).expanduser().resolve()


# --- Low-level atomic I/O
def _ensure_parent(path: Path) -> None:
	"""Create parent directories for *path* if missing."""
	path.parent.mkdir(parents=True, exist_ok=True)


def _atomic_write_bytes(dest: Path, data: bytes, *, backup_ext: Optional[str] = None) -> None:
	"""
	Atomically write *data* to *dest*. Optionally, keep the current content as a backup.

	Strategy:
		- write to a temporary file in the same directory,
		- flush + fsync,
		- optional backup: the current *dest* is moved to ``<dest><backup_ext>``,
		- os.replace(temp, dest) (atomic on POSIX/NTFS).

	At every step the previous content exists either at *dest* or at the backup.
	A failed backup aborts the write.

	:param dest: Destination file path.
	:param data: Bytes to write.
	:param backup_ext: If provided (e.g., ``".bak"``), move the existing *dest* to a backup.
	:raises OSError: On I/O errors.
	"""
	_ensure_parent(dest)
	tmp_fd, tmp_path = tempfile.mkstemp(prefix=dest.name + ".", dir=str(dest.parent))
	try:
		with os.fdopen(tmp_fd, "wb") as fh:
			fh.write(data)
			fh.flush()
			os.fsync(fh.fileno())

		if backup_ext and dest.exists():
			backup = dest.with_name(dest.name + backup_ext)
			os.replace(dest, backup)
			LOG.debug("Moved %s to backup %s", dest, backup)

		os.replace(tmp_path, dest)
	except Exception:
		if os.path.exists(tmp_path):
			try:
				os.remove(tmp_path)
			except OSError:
				LOG.warning("Failed to remove temporary file %s", tmp_path, exc_info=True)
		raise


def _atomic_write_text(dest: Path, text: str, *, encoding: str = "utf-8", backup_ext: Optional[str] = None) -> None:
	"""
	Atomically write *text* to *dest* (no newline translation).

	:param dest: Destination file path.
	:param text: Text content to write.
	:param encoding: Target encoding.
	:param backup_ext: Optional backup extension (e.g., ``".bak"``).
	:raises OSError: On I/O errors.
	"""
	_atomic_write_bytes(dest, text.encode(encoding), backup_ext=backup_ext)


# --- Public API: read/write helpers
def read_text(path: PathLike, *, encoding: str = "utf-8") -> str:
	"""
	Read a text file.

	:param path: File path.
	:param encoding: Text encoding.
	:return: File contents as a string.
	:raises FileNotFoundError: If the file does not exist.
	:raises OSError: On I/O errors.
	"""
	p = Path(path).expanduser().resolve()
	with p.open("r", encoding=encoding) as fh:
		return fh.read()


def read_bytes(path: PathLike) -> bytes:
	"""
	Read a file as raw bytes.

	:param path: File path.
	:return: File contents.
	:raises FileNotFoundError: If the file does not exist.
	"""
	p = Path(path).expanduser().resolve()
	with p.open("rb") as fh:
		return fh.read()


def write_text(
		path: PathLike,
		text: str,
		*,
		encoding: str = "utf-8",
		overwrite: bool = True,
		backup_ext: Optional[str] = None
) -> Path:
	"""
	Write a text file atomically, optionally keeping the previous content as a backup.

	:param path: Destination path.
	:param text: Content to write.
	:param encoding: Target encoding.
	:param overwrite: If ``False`` and the file exist, raise ``FileExistsError``.
	:param backup_ext: Backup extension; ``None`` disables backups.
	:return: Absolute path written.
	:raises FileExistsError: When destination exists and ``overwrite=False``.
	:raises OSError: On I/O errors.
	"""
	dest = Path(path).expanduser().resolve()
	if dest.exists() and not overwrite:
		raise FileExistsError(f"Destination file already exists at {dest}")
	_atomic_write_text(dest, text, encoding=encoding, backup_ext=backup_ext)
	LOG.info("Wrote text to %s", dest)
	return dest


def write_bytes(path: PathLike, data: bytes, *, backup_ext: Optional[str] = None) -> Path:
	"""
	Write raw bytes atomically, optionally keeping the previous content as a backup.

	:param path: Destination path.
	:param data: Content to write.
	:param backup_ext: Backup extension; ``None`` disables backups.
	:return: Absolute path written.
	:raises OSError: On I/O errors.
	"""
	dest = Path(path).expanduser().resolve()
	_atomic_write_bytes(dest, data, backup_ext=backup_ext)
	LOG.debug("Wrote %d byte(s) to %s", len(data), dest)
	return dest


__all__ = [
	"PathLike",
	"backup_path",
	"env_path",
	"read_text",
	"read_bytes",
	"write_text",
	"write_bytes",
]
