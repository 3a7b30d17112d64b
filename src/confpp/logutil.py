# src/confpp/logutil.py

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Literal, Optional, Union

PathLike = Union[str, Path]

LevelName = Literal[
	"CRITICAL",
	"ERROR",
	"WARNING",
	"INFO",
	"DEBUG",
	"NOTSET",
]

LevelLike = Union[int, LevelName, str]

LEVEL_NAMES = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")

DEFAULT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def normalize_level(value: LevelLike, *, param_name: str = "level") -> int:
	"""
	Turn a level name or number into a :mod:`logging` level number.

	:param value: ``"DEBUG"``, ``"warning"``, ``logging.INFO``, ...
	:param param_name: Parameter name used in the error message.
	:return: Numeric level.
	:raises ValueError: For unknown level names.
	"""
	if isinstance(value, int):
		return value

	resolved = logging.getLevelName(str(value).upper())
	if isinstance(resolved, int):
		return resolved

	raise ValueError(f"Unknown logging level name for {param_name}: {value}")


def get_logger(name: str = "confpp") -> logging.Logger:
	"""
	Return the package logger, attaching a console handler the first time.

	:param name: Logger name.
	:return: The logger.
	"""
	log = logging.getLogger(name)
	if not log.handlers:
		handler = logging.StreamHandler()
		handler.setFormatter(logging.Formatter("[%(levelname)s] %(message)s"))
		log.addHandler(handler)
		log.setLevel(logging.WARNING)
	return log


def _file_handler(
		path: Path,
		*,
		mode: str,
		rotate: bool,
		max_bytes: int,
		backup_count: int
) -> logging.Handler:
	path.parent.mkdir(parents=True, exist_ok=True)
	if rotate:
		return RotatingFileHandler(
			path,
			mode=mode,
			maxBytes=max_bytes,
			backupCount=backup_count,
			encoding="utf-8"
		)
	return logging.FileHandler(path, mode=mode, encoding="utf-8")


def configure_logging(
		*,
		name: str = "confpp",
		console_level: LevelLike = "WARNING",
		file_path: Optional[PathLike] = None,
		file_level: Optional[LevelLike] = None,
		mode: str = "a",
		rotate: bool = False,
		max_bytes: int = 1_000_000,
		backup_count: int = 3,
		formatter: Optional[logging.Formatter] = None,
		propagate: bool = False
) -> logging.Logger:
	"""
	Configure the ``confpp`` logger for an application or the CLI.

	Every module in the package logs through ``logging.getLogger(__name__)``,
	so configuring the ``confpp`` parent logger covers load traces, provider
	and override warnings, and rewriter activity.

	:param name: Logger name.
	:param console_level: Console handler level.
	:param file_path: Optional log file path to add a file handler.
	:param file_level: File handler level (defaults to the console level).
	:param mode: 'w' for overwriting or 'a' for appending.
	:param rotate: Use RotatingFileHandler when True.
	:param max_bytes: Rotation threshold per file.
	:param backup_count: Number of rotated backups.
	:param formatter: Custom formatter; default includes timestamp and logger name.
	:param propagate: Whether to propagate to parent loggers.
	:return: The configured logger.
	"""
	console_value = normalize_level(console_level, param_name="console_level")
	file_value = (
		normalize_level(file_level, param_name="file_level")
		if file_level is not None
		else console_value
	)

	log = get_logger(name)
	log.setLevel(min(console_value, file_value) if file_path else console_value)
	log.propagate = propagate

	fmt = formatter or logging.Formatter(DEFAULT_FORMAT)

	for handler in log.handlers:
		if type(handler) is logging.StreamHandler:
			handler.setLevel(console_value)
			handler.setFormatter(fmt)

	if file_path:
		path = Path(file_path).expanduser().resolve()
		if not any(getattr(h, "baseFilename", None) == str(path) for h in log.handlers):
			fh = _file_handler(path, mode=mode, rotate=rotate, max_bytes=max_bytes, backup_count=backup_count)
			fh.setLevel(file_value)
			fh.setFormatter(fmt)
			log.addHandler(fh)

	return log


__all__ = [
	"LEVEL_NAMES",
	"normalize_level",
	"get_logger",
	"configure_logging",
]
