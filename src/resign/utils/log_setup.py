"""
Logging and console summaries for resign.

Log records go through a RichHandler on the shared console. With
``--save-log`` every record of the run is also written to a file, which
keeps a trace of each rewritten commit for later auditing.

"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from rich.console import Console
from rich.logging import RichHandler
from rich.rule import Rule
from rich.text import Text

if TYPE_CHECKING:
	from pathlib import Path

console = Console()

FILE_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(is_verbose: bool = False, log_file_path: Path | None = None) -> None:
	"""
	Route log records to the console and optionally to a file.

	Args:
	    is_verbose: Show debug records on the console instead of warnings only
	    log_file_path: File receiving every record at debug level

	"""
	root_logger = logging.getLogger()
	for handler in root_logger.handlers[:]:
		root_logger.removeHandler(handler)

	console_level = logging.DEBUG if is_verbose else logging.WARNING
	root_logger.setLevel(logging.DEBUG if log_file_path else console_level)
	root_logger.addHandler(
		RichHandler(level=console_level, console=console, rich_tracebacks=True, show_path=is_verbose)
	)

	if log_file_path is None:
		return

	try:
		log_file_path.parent.mkdir(parents=True, exist_ok=True)
		file_handler = logging.FileHandler(log_file_path, mode="a", encoding="utf-8")
	except OSError as e:
		root_logger.warning("Could not write the log file %s: %s", log_file_path, e)
		return
	file_handler.setLevel(logging.DEBUG)
	file_handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT))
	root_logger.addHandler(file_handler)
	root_logger.debug("Logging to file: %s", log_file_path)


def display_summary(message: str, title: str, style: str) -> None:
	"""Print a message between two rules, the first one titled."""
	console.print()
	console.print(Rule(Text(title, style=f"bold {style}"), style=style))
	console.print(Text(f"\n{message}\n"))
	console.print(Rule(style=style))
	console.print()
