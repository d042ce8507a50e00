"""Command for rebuilding a branch as a fully signed history."""

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import typer

from resign.rewrite.models import MergePolicy

if TYPE_CHECKING:
	from collections.abc import Sequence

	from resign.config import AppConfigSchema
	from resign.rewrite import HistoryRewriter, PreflightResult

logger = logging.getLogger(__name__)

# --- Command Argument Annotations ---

PathArg = Annotated[
	Path | None,
	typer.Argument(
		help="Path inside the repository (defaults to the current directory)",
		exists=True,
	),
]

BranchOpt = Annotated[
	str | None,
	typer.Option("--branch", "-b", help="Branch to rewrite (default: main)"),
]

WorkingBranchOpt = Annotated[
	str | None,
	typer.Option("--working-branch", "-w", help="Temporary branch the new history is built on (default: new-main)"),
]

KeyOpt = Annotated[
	str | None,
	typer.Option("--key", "-k", help="Signing key id (defaults to git's user.signingkey)"),
]

MergePolicyOpt = Annotated[
	MergePolicy | None,
	typer.Option("--merge-policy", help="How merge commits are handled", case_sensitive=False),
]

NoBackupFlag = Annotated[
	bool,
	typer.Option("--no-backup", help="Delete the old branch instead of keeping it under a backup name"),
]

YesFlag = Annotated[
	bool,
	typer.Option("--yes", "-y", help="Replace the branch without asking for confirmation"),
]

DelayOpt = Annotated[
	int | None,
	typer.Option("--delay", min=0, help="Seconds to wait before modifying the repository"),
]

DryRunFlag = Annotated[
	bool,
	typer.Option("--dry-run", help="Run the checks and list the commits without changing anything"),
]

RequireValidFlag = Annotated[
	bool,
	typer.Option("--require-valid-signatures", help="Refuse to swap unless every new commit verifies"),
]

# --- Registration Function ---


def register_command(app: typer.Typer) -> None:
	"""Register the rewrite command with the CLI app."""

	@app.command(name="rewrite")
	def rewrite_command(
		ctx: typer.Context,
		path: PathArg = None,
		branch: BranchOpt = None,
		working_branch: WorkingBranchOpt = None,
		key: KeyOpt = None,
		merge_policy: MergePolicyOpt = None,
		no_backup: NoBackupFlag = False,
		yes: YesFlag = False,
		delay: DelayOpt = None,
		dry_run: DryRunFlag = False,
		require_valid_signatures: RequireValidFlag = False,
	) -> None:
		"""
		Rebuild a branch commit by commit with signed commits.

		Author, author date and message of every commit are kept. The
		rebuilt branch then replaces the original one.

		"""
		_rewrite_command_impl(
			path=path,
			branch=branch,
			working_branch=working_branch,
			key=key,
			merge_policy=merge_policy,
			no_backup=no_backup,
			yes=yes,
			delay=delay,
			dry_run=dry_run,
			require_valid_signatures=require_valid_signatures,
			config_file=ctx.meta.get("config_file"),
		)


# --- Implementation Function (Heavy imports deferred here) ---


def _build_rewriter(
	repo_path: Path,
	config: "AppConfigSchema",
	branch: str | None,
	working_branch: str | None,
	key: str | None,
	merge_policy: MergePolicy | None,
	no_backup: bool,
	require_valid_signatures: bool,
) -> "HistoryRewriter":
	"""Create the rewriter, CLI values taking precedence over the configuration."""
	from resign.rewrite import GitSigner, HistoryRewriter

	source = branch or config.branches.source
	keep_backup = config.branches.keep_backup and not no_backup
	signer = GitSigner(
		key=key or config.signing.key,
		signing_format=config.signing.format,
		program=config.signing.program,
	)
	return HistoryRewriter(
		repo_path=repo_path,
		signer=signer,
		source_branch=source,
		working_branch=working_branch or config.branches.working,
		merge_policy=merge_policy or config.rewrite.merge_policy,
		backup_branch=config.branches.backup_name(source) if keep_backup else None,
		require_valid_signatures=require_valid_signatures or config.verify.require_valid_signatures,
	)


def _print_plan(rewriter: "HistoryRewriter", preflight: "PreflightResult", commits: "Sequence[str]") -> None:
	from resign.utils.cli_utils import console

	console.print("[bold]--- Preparing to rebuild history ---[/bold]")
	console.print(f"Branch to rebuild: [cyan]{rewriter.source_branch}[/cyan] ({len(commits)} commit(s))")
	console.print(f"New working branch: [cyan]{rewriter.working_branch}[/cyan]")
	console.print(f"Merge policy: {rewriter.merge_policy.value} ({preflight.merge_commits} merge commit(s))")
	if rewriter.backup_branch:
		console.print(f"Old history will be kept as: [cyan]{rewriter.backup_branch}[/cyan]")
	else:
		console.print("[yellow]Old history will be deleted after the swap.[/yellow]")


def _print_commit_table(rewriter: "HistoryRewriter", commits: "Sequence[str]") -> None:
	from datetime import UTC, datetime

	from rich.table import Table
	from rich.text import Text

	from resign.utils.cli_utils import console

	table = Table(title=f"Commits to rewrite on {rewriter.source_branch}")
	table.add_column("#", justify="right")
	table.add_column("Commit", style="cyan", no_wrap=True)
	table.add_column("Author")
	table.add_column("Date", no_wrap=True)
	table.add_column("Subject")
	for index, commit in enumerate(rewriter.describe(commits), start=1):
		metadata = commit.metadata
		date = datetime.fromtimestamp(metadata.author_timestamp, tz=UTC).strftime("%Y-%m-%d %H:%M")
		table.add_row(
			str(index),
			commit.short_sha,
			Text(f"{metadata.author_name} <{metadata.author_email}>"),
			f"{date} UTC",
			Text(metadata.subject),
		)
	console.print(table)


def _confirm_swap(source: str, working: str) -> bool:
	import questionary

	answer = questionary.confirm(
		f"Replace '{source}' with the rewritten '{working}'?",
		default=False,
	).ask()
	return bool(answer)


def _rewrite_command_impl(
	path: Path | None,
	branch: str | None,
	working_branch: str | None,
	key: str | None,
	merge_policy: MergePolicy | None,
	no_backup: bool,
	yes: bool,
	delay: int | None,
	dry_run: bool,
	require_valid_signatures: bool,
	config_file: Path | None = None,
) -> None:
	"""Actual implementation of the rewrite command."""
	# --- Heavy Imports ---

	from resign.config import ConfigError, load_config
	from resign.git.utils import GitError, validate_repo_path
	from resign.rewrite import ResignError, RewriteError, VerificationError
	from resign.rewrite.verify import render_signature_table
	from resign.utils.cli_utils import (
		console,
		countdown,
		exit_with_error,
		handle_keyboard_interrupt,
		loading_spinner,
		progress_indicator,
		show_warning,
	)

	# --- Setup & Checks ---

	repo_path = validate_repo_path(path)
	if repo_path is None:
		exit_with_error("Not in a Git repository")

	try:
		config = load_config(config_file, repo_root=repo_path)
	except ConfigError as e:
		exit_with_error("Invalid configuration", exception=e)

	try:
		rewriter = _build_rewriter(
			repo_path,
			config,
			branch=branch,
			working_branch=working_branch,
			key=key,
			merge_policy=merge_policy,
			no_backup=no_backup,
			require_valid_signatures=require_valid_signatures,
		)
		with loading_spinner("Checking repository..."):
			preflight = rewriter.preflight()
			commits = rewriter.enumerate_commits()
	except (ResignError, GitError, ValueError) as e:
		exit_with_error(str(e))

	_print_plan(rewriter, preflight, commits)

	if preflight.merge_commits and rewriter.merge_policy is MergePolicy.LINEARIZE:
		show_warning(
			f"{preflight.merge_commits} merge commit(s) will be flattened into a linear history. "
			"Use '--merge-policy preserve' to keep them."
		)
	if preflight.untracked_files:
		show_warning(
			f"{len(preflight.untracked_files)} untracked file(s) are present. None of them share a path "
			"with the history, so they stay in place and never enter the rewritten commits."
		)

	if dry_run:
		_print_commit_table(rewriter, commits)
		console.print("[yellow]Dry run: nothing was changed.[/yellow]")
		return

	source = rewriter.source_branch
	working = rewriter.working_branch
	cleanup_hint = (
		f"'{source}' is untouched. Inspect '{working}', then remove it with "
		f"'git checkout --force {source} && git branch -D {working}' before retrying."
	)

	# --- Mutating stages ---

	branch_created = False
	try:
		countdown(config.rewrite.start_delay if delay is None else delay, message="Rebuilding history")

		branch_created = True
		rewriter.create_working_branch()
		console.print(f"--- Created orphan branch: {working} ---")

		with progress_indicator("Rewriting commits", total=len(commits)) as advance:
			rewrite_result = rewriter.rewrite(commits, progress=advance)
		console.print(f"[green]--- All {rewrite_result.rewritten} commit(s) rebuilt and signed ---[/green]")

		verification = rewriter.verify()
		console.print(render_signature_table(verification))
		rewriter.check_signatures(verification)

		if not yes and config.verify.confirm_before_swap and not _confirm_swap(source, working):
			console.print(f"[yellow]Swap skipped. '{working}' was kept for inspection; '{source}' is untouched.[/yellow]")
			return

		swap = rewriter.swap(rewrite_result)
	except KeyboardInterrupt:
		if branch_created:
			console.print(f"[yellow]{cleanup_hint}[/yellow]")
		else:
			console.print("[yellow]Nothing was changed.[/yellow]")
		handle_keyboard_interrupt()
	except RewriteError as e:
		done = f"{e.result.rewritten}/{e.result.expected}" if e.result else "0"
		exit_with_error(f"Rewrite stopped after {done} commit(s). {cleanup_hint}", exception=e)
	except VerificationError as e:
		exit_with_error(f"{e} {cleanup_hint}")
	except (ResignError, GitError) as e:
		exit_with_error(
			f"Replacing '{source}' failed. Check 'git branch --list' before doing anything else.",
			exception=e,
		)

	console.print(f"[bold green]--- History rebuilt. Now on the signed '{swap.branch}' branch. ---[/bold green]")
	if swap.backup_branch:
		console.print(f"The old history is kept as '{swap.backup_branch}'. Delete it once you are satisfied:")
		console.print(f"  git branch -D {swap.backup_branch}")
	console.print("Next, publish the new history (this overwrites the remote branch):")
	console.print(f"  git push --force origin {swap.branch}")
