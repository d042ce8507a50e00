"""Utility functions for CLI operations in resign."""

from __future__ import annotations

import contextlib
import logging
import os
import time
from typing import TYPE_CHECKING, NoReturn, Self

import typer
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn

from resign.utils.log_setup import console, display_summary

if TYPE_CHECKING:
	from collections.abc import Callable, Iterator

logger = logging.getLogger(__name__)


def is_headless() -> bool:
	"""Return True under pytest or CI, where live displays are disabled."""
	return bool(os.environ.get("PYTEST_CURRENT_TEST") or os.environ.get("CI"))


class SpinnerState:
	"""Singleton class to track spinner state."""

	_instance = None
	is_active = False

	def __new__(cls) -> Self:
		"""
		Create or return the singleton instance.

		Returns:
		    The singleton instance of SpinnerState

		"""
		if cls._instance is None:
			cls._instance = super().__new__(cls)
		return cls._instance


@contextlib.contextmanager
def loading_spinner(message: str = "Processing...") -> Iterator[None]:
	"""
	Display a loading spinner while executing a task.

	Args:
	    message: Message to display alongside the spinner

	Yields:
	    None

	"""
	if is_headless():
		yield
		return

	spinner_state = SpinnerState()
	if spinner_state.is_active:
		yield
		return

	try:
		spinner_state.is_active = True
		with console.status(message):
			yield
	finally:
		spinner_state.is_active = False


@contextlib.contextmanager
def progress_indicator(message: str, total: int, transient: bool = False) -> Iterator[Callable[[int], None]]:
	"""
	Show a determinate progress bar.

	No spinner is shown while the bar is live, since the signing agent may
	need the terminal for a passphrase prompt.

	Args:
	    message: The message to display with the progress bar
	    total: The total units of work
	    transient: Whether the bar should disappear after completion

	Yields:
	    A callable that accepts an integer amount to advance the progress

	"""
	if is_headless():
		yield lambda _: None
		return

	progress = Progress(
		TextColumn("[progress.description]{task.description}"),
		BarColumn(),
		MofNCompleteColumn(),
		transient=transient,
		console=console,
	)
	with progress:
		task_id = progress.add_task(message, total=total)
		yield lambda amount=1: progress.update(task_id, advance=amount)


def countdown(seconds: int, message: str = "Starting") -> None:
	"""
	Wait a number of seconds, showing the time left.

	Args:
	    seconds: Seconds to wait; 0 returns immediately
	    message: Text shown next to the remaining time

	"""
	if seconds <= 0:
		return
	if is_headless():
		time.sleep(seconds)
		return
	with console.status(f"{message} in {seconds}s... press Ctrl+C to cancel") as status:
		for remaining in range(seconds, 0, -1):
			status.update(f"{message} in {remaining}s... press Ctrl+C to cancel")
			time.sleep(1)


def show_error(message: str, exception: Exception | None = None) -> None:
	"""
	Display an error summary with standardized formatting.

	Args:
	        message: The error message to display
	        exception: Optional exception that caused the error

	"""
	error_text = message
	if exception:
		error_text += f"\n\nDetails: {exception!s}"
		logger.debug("Error occurred", exc_info=exception)

	display_summary(error_text, title="Error Summary", style="red")


def show_warning(message: str) -> None:
	"""
	Display a warning summary with standardized formatting.

	Args:
	        message: The warning message to display

	"""
	display_summary(message, title="Warning Summary", style="yellow")


def exit_with_error(message: str, exit_code: int = 1, exception: Exception | None = None) -> NoReturn:
	"""
	Display an error message and exit.

	Args:
	        message: Error message to display
	        exit_code: Exit code to use
	        exception: Optional exception that caused the error

	"""
	show_error(message, exception)
	raise typer.Exit(exit_code) from exception


def handle_keyboard_interrupt() -> NoReturn:
	"""Handles KeyboardInterrupt by printing a message and exiting cleanly."""
	console.print("\n[yellow]Operation cancelled by user.[/yellow]")
	raise typer.Exit(130)  # Standard exit code for SIGINT
