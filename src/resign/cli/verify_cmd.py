"""Command for reporting the signature status of a branch."""

import logging
from pathlib import Path
from typing import Annotated

import typer

logger = logging.getLogger(__name__)

PathArg = Annotated[
	Path | None,
	typer.Argument(
		help="Path inside the repository (defaults to the current directory)",
		exists=True,
	),
]

BranchOpt = Annotated[
	str | None,
	typer.Option("--branch", "-b", help="Branch to verify (defaults to the configured source branch)"),
]


def register_command(app: typer.Typer) -> None:
	"""Register the verify command with the CLI app."""

	@app.command(name="verify")
	def verify_command(
		ctx: typer.Context,
		path: PathArg = None,
		branch: BranchOpt = None,
	) -> None:
		"""
		Show short id, signature status, signer and subject of every commit.

		Exits with status 1 when any commit lacks a valid signature.

		"""
		_verify_command_impl(path=path, branch=branch, config_file=ctx.meta.get("config_file"))


def _verify_command_impl(path: Path | None, branch: str | None, config_file: Path | None = None) -> None:
	"""Actual implementation of the verify command."""
	from resign.config import ConfigError, load_config
	from resign.git.utils import GitError, validate_repo_path
	from resign.rewrite.verify import render_signature_table, verify_branch
	from resign.utils.cli_utils import console, exit_with_error, loading_spinner

	repo_path = validate_repo_path(path)
	if repo_path is None:
		exit_with_error("Not in a Git repository")

	try:
		config = load_config(config_file, repo_root=repo_path)
	except ConfigError as e:
		exit_with_error("Invalid configuration", exception=e)

	target = branch or config.branches.source
	try:
		with loading_spinner(f"Checking signatures on {target}..."):
			result = verify_branch(target, repo_path)
	except GitError as e:
		exit_with_error(f"Could not read branch '{target}'", exception=e)

	console.print(render_signature_table(result))

	if result.all_valid:
		console.print(f"[green]All {len(result.entries)} commit(s) on '{target}' carry a valid signature.[/green]")
		return

	console.print(
		f"[red]{len(result.invalid)} of {len(result.entries)} commit(s) on '{target}' "
		f"lack a valid signature ({len(result.unsigned)} unsigned).[/red]"
	)
	raise typer.Exit(1)
