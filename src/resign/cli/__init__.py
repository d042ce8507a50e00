"""Command-line interface package for resign."""

import datetime
import logging
import sys
from pathlib import Path
from typing import Annotated

import typer
from dotenv import load_dotenv

from resign import __version__
from resign.utils.log_setup import setup_logging

from .rewrite_cmd import register_command as register_rewrite_command
from .verify_cmd import register_command as register_verify_command

logger = logging.getLogger(__name__)


def _load_env_files() -> None:
	"""Load environment variables from .env.local, falling back to .env."""
	for candidate in (Path(".env.local"), Path(".env")):
		if candidate.exists():
			load_dotenv(dotenv_path=candidate)
			logger.debug("Loaded environment variables from %s", candidate)
			return


app = typer.Typer(
	help=f"resign - Rebuild a git branch as a fully signed history\n\nVersion: {__version__}",
	no_args_is_help=True,
	context_settings={"help_option_names": ["-h", "--help"]},
)

# --- Global Options Callback ---


def _version_callback(value: bool) -> None:
	"""Callback for --version option."""
	if value:
		typer.echo(f"resign version: {__version__}")
		raise typer.Exit


@app.callback(invoke_without_command=True)
def global_options(
	ctx: typer.Context,
	is_verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable verbose logging.")] = False,
	is_output_log: Annotated[
		bool,
		typer.Option(
			"--save-log",
			help="Enable logging to a file. Logs to logs/resign_{datetime}.log.",
		),
	] = False,
	config_file: Annotated[
		Path | None,
		typer.Option("--config", "-c", help="Path to a configuration file."),
	] = None,
	_version: Annotated[
		bool | None,
		typer.Option("--version", help="Show version and exit.", callback=_version_callback, is_eager=True),
	] = None,
) -> None:
	"""Global CLI options and logging setup."""
	ctx.meta["is_verbose"] = is_verbose
	ctx.meta["config_file"] = config_file

	log_file_path_to_use: Path | None = None
	if is_output_log:
		current_time = datetime.datetime.now(tz=datetime.UTC).strftime("%Y-%m-%d_%H-%M-%S")
		log_file_path_to_use = Path("logs") / f"resign_{current_time}.log"

	setup_logging(is_verbose=is_verbose, log_file_path=log_file_path_to_use)
	_load_env_files()


# --- Register commands ---

register_rewrite_command(app)
register_verify_command(app)


# --- Main Entry Point ---
def main() -> int:
	"""Run the CLI application."""
	return app()


if __name__ == "__main__":
	sys.exit(main())
