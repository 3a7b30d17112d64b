"""
Command-line front end::

	confpp dump service.conf --section Service
	confpp get service.conf Service.Port --default 8080
	confpp rewrite app.conf "db=connection = server=prod"
	confpp restore app.conf
	confpp edit-macro service.conf ENV production
"""

from __future__ import annotations

import argparse
import json
import logging
from typing import Dict, List, Optional

from .config import Config, ConfigError, ConfigRewriter, edit_macro
from .config.preprocessor import BLOCK_END, BLOCK_START
from .logutil import LEVEL_NAMES, configure_logging

LOG = logging.getLogger(__name__)


def _parse_tags(pairs: List[str]) -> Dict[str, str]:
	"""
	Turn ``TAG=TEXT`` arguments into a mapping.

	:raises ConfigError: For arguments without ``=`` or with an empty tag.
	"""
	tags: Dict[str, str] = {}
	for pair in pairs:
		tag, sep, text = pair.partition("=")
		if not sep or not tag.strip():
			raise ConfigError(f"Expected TAG=TEXT, got: {pair!r}")
		tags[tag.strip()] = text
	return tags


def _format_entries(entries: Dict[str, str]) -> str:
	lines: List[str] = []
	for key, value in entries.items():
		if "\r" in value or "\n" in value:
			lines.append(f"{key} = {BLOCK_START}")
			lines.extend(value.splitlines())
			lines.append(BLOCK_END)
		else:
			lines.append(f"{key} = {value}")
	return "\n".join(lines)


def _build_arg_parser() -> argparse.ArgumentParser:
	"""
	Build the CLI argument parser.

	:return: Configured ArgumentParser.
	"""
	p = argparse.ArgumentParser(prog="confpp", description="Preprocessed configuration utility")
	p.add_argument(
		"--log-level", choices=list(LEVEL_NAMES), default="WARNING",
		help="Console log level (default: WARNING)."
	)
	p.add_argument(
		"--log-file", default=None, help="Also write log records to this file."
	)
	sub = p.add_subparsers(dest="command", required=True)

	dump = sub.add_parser("dump", help="Print the effective keys of a file.")
	dump.add_argument("file", help="Configuration file.")
	dump.add_argument("--section", default=None, help="Only keys below this section.")
	dump.add_argument("--json", action="store_true", help="Print a JSON object instead of key = value lines.")

	get = sub.add_parser("get", help="Print one expanded value.")
	get.add_argument("file", help="Configuration file.")
	get.add_argument("key", help="Fully qualified key.")
	get.add_argument("--default", default=None, help="Printed when the key is missing.")

	rewrite = sub.add_parser("rewrite", help="Replace lines below // $replace(TAG) markers.")
	rewrite.add_argument("file", help="File to rewrite.")
	rewrite.add_argument("tags", nargs="+", metavar="TAG=TEXT", help="Replacement per tag.")

	restore = sub.add_parser("restore", help="Put back the file saved by a previous rewrite.")
	restore.add_argument("file", help="Rewritten file.")

	macro = sub.add_parser("edit-macro", help="Change the value of a #define line.")
	macro.add_argument("file", help="Configuration file.")
	macro.add_argument("name", help="Macro name (exact case).")
	macro.add_argument("value", help="New value.")
	return p


def main(argv: Optional[List[str]] = None) -> int:
	"""
	Entrypoint for the command-line interface.

	:param argv: Optional argv list for testing; defaults to sys.argv[1: ].
	:return: Process exit code (0=OK, 2=ConfigError, 1=unexpected error).
	"""
	parser = _build_arg_parser()
	args = parser.parse_args(argv)

	configure_logging(console_level=args.log_level, file_path=args.log_file)

	try:
		if args.command == "dump":
			cfg = Config.from_file(args.file)
			if args.section:
				cfg = cfg.get_section(args.section)
			entries = cfg.to_dict()
			if args.json:
				print(json.dumps(entries, indent=2, ensure_ascii=False))
			else:
				print(_format_entries(entries))
			return 0

		if args.command == "get":
			value = Config.from_file(args.file).get(args.key, args.default)
			if value is None:
				LOG.warning("Key not found: %s", args.key)
				return 1
			print(value)
			return 0

		if args.command == "rewrite":
			count = ConfigRewriter(args.file).rewrite(_parse_tags(args.tags))
			print(f"Rewrote {count} line(s)")
			return 0

		if args.command == "restore":
			restored = ConfigRewriter(args.file).restore()
			print("Restored" if restored else "Nothing to restore")
			return 0

		if args.command == "edit-macro":
			if not edit_macro(args.file, args.name, args.value):
				LOG.warning("No #define %s found in %s", args.name, args.file)
				return 1
			return 0

		parser.error(f"Unknown command: {args.command}")
		return 2

	except ConfigError as exc:
		LOG.error("Configuration error: %s", exc)
		return 2
	except Exception as exc:
		LOG.exception(f"Unexpected error: {exc}")
		return 1


if __name__ == "__main__":
	raise SystemExit(main())
