"""Git utilities for resign."""

from __future__ import annotations

import logging
import os
import subprocess
from pathlib import Path

from resign.git.models import SourceCommit, parse_commit_object

logger = logging.getLogger(__name__)

# Exit status of `git diff-index --quiet` when differences were found
DIFF_INDEX_CHANGED = 1


class GitError(Exception):
	"""Custom exception for Git-related errors."""


def run_git_command(
	command: list[str],
	cwd: Path | None = None,
	env: dict[str, str] | None = None,
	input_text: str | None = None,
) -> str:
	"""
	Run a Git command and return its output.

	Args:
	    command: Git command to run
	    cwd: Working directory (optional)
	    env: Extra environment variables layered over the current environment
	    input_text: Text passed to the command on stdin

	Returns:
	    Command output as string

	Raises:
	    GitError: If the command fails

	"""
	full_env = {**os.environ, **env} if env else None
	try:
		# Arguments are passed as a list and never through a shell
		result = subprocess.run(  # noqa: S603
			command,
			cwd=cwd,
			env=full_env,
			input=input_text,
			capture_output=True,
			text=True,
			encoding="utf-8",
			errors="replace",
			check=True,
		)
	except subprocess.CalledProcessError as e:
		error_msg = f"Git command failed: {' '.join(command)}\nError: {e.stderr}"
		logger.debug(error_msg)
		raise GitError(error_msg) from e
	except FileNotFoundError as e:
		msg = "The git executable was not found in PATH"
		raise GitError(msg) from e
	else:
		return result.stdout


def run_git_command_bytes(
	command: list[str],
	cwd: Path | None = None,
	env: dict[str, str] | None = None,
	input_bytes: bytes | None = None,
) -> bytes:
	"""
	Run a Git command on raw bytes.

	Commit objects are read and written through this variant so line
	endings and non UTF-8 messages reach git unchanged.

	Raises:
	    GitError: If the command fails

	"""
	full_env = {**os.environ, **env} if env else None
	try:
		result = subprocess.run(  # noqa: S603
			command,
			cwd=cwd,
			env=full_env,
			input=input_bytes,
			capture_output=True,
			check=True,
		)
	except subprocess.CalledProcessError as e:
		stderr = e.stderr.decode("utf-8", errors="replace") if e.stderr else ""
		error_msg = f"Git command failed: {' '.join(command)}\nError: {stderr}"
		logger.debug(error_msg)
		raise GitError(error_msg) from e
	except FileNotFoundError as e:
		msg = "The git executable was not found in PATH"
		raise GitError(msg) from e
	else:
		return result.stdout


def _run_unchecked(command: list[str], cwd: Path | None = None) -> subprocess.CompletedProcess[str]:
	"""Run a Git command whose exit status carries the answer."""
	try:
		return subprocess.run(  # noqa: S603
			command,
			cwd=cwd,
			capture_output=True,
			text=True,
			check=False,
		)
	except FileNotFoundError as e:
		msg = "The git executable was not found in PATH"
		raise GitError(msg) from e


def get_repo_root(path: Path | None = None) -> Path:
	"""
	Get the root directory of the Git repository.

	Args:
	    path: Optional path to start searching from

	Returns:
	    Path to repository root

	Raises:
	    GitError: If not in a Git repository

	"""
	try:
		result = run_git_command(["git", "rev-parse", "--show-toplevel"], path)
		return Path(result.strip())
	except GitError as e:
		msg = "Not in a Git repository"
		raise GitError(msg) from e


def validate_repo_path(path: Path | None = None) -> Path | None:
	"""
	Validate and return the repository path.

	Args:
	    path: Optional path to validate (defaults to current directory)

	Returns:
	    Path to the repository root if valid, None otherwise

	"""
	try:
		if path is None:
			path = Path.cwd()
		return get_repo_root(path)
	except GitError:
		return None


def has_head_commit(cwd: Path | None = None) -> bool:
	"""Return True when HEAD points at an existing commit."""
	result = _run_unchecked(["git", "rev-parse", "--verify", "--quiet", "HEAD"], cwd)
	return result.returncode == 0


def has_uncommitted_changes(cwd: Path | None = None) -> bool:
	"""
	Check whether tracked files differ from HEAD.

	Both staged and unstaged modifications count. Untracked files do not.

	Args:
	    cwd: Repository path

	Returns:
	    True if the working tree or index differs from HEAD

	Raises:
	    GitError: If HEAD does not exist or git fails

	"""
	if not has_head_commit(cwd):
		msg = "The repository has no commits yet (HEAD is unborn)"
		raise GitError(msg)

	# Refresh stat info so files that were only touched are not reported
	_run_unchecked(["git", "update-index", "-q", "--refresh"], cwd)
	result = _run_unchecked(["git", "diff-index", "--quiet", "HEAD", "--"], cwd)
	if result.returncode == 0:
		return False
	if result.returncode == DIFF_INDEX_CHANGED:
		return True
	msg = f"Failed to compare working tree with HEAD: {result.stderr.strip()}"
	raise GitError(msg)


def get_untracked_files(cwd: Path | None = None) -> list[str]:
	"""
	Get a list of all untracked files in the repository.

	Returns:
	    List of untracked file paths

	Raises:
	    GitError: If git command fails

	"""
	try:
		output = run_git_command(["git", "ls-files", "--others", "--exclude-standard"], cwd)
		return [line for line in output.splitlines() if line]
	except GitError as e:
		msg = "Failed to get untracked files"
		raise GitError(msg) from e


def _split_nul(output: str) -> list[str]:
	return [entry.strip("\n") for entry in output.split("\0") if entry.strip("\n")]


def get_other_files(cwd: Path | None = None) -> list[str]:
	"""
	List every file git does not track, ignored files included.

	Raises:
	    GitError: If git command fails

	"""
	try:
		return _split_nul(run_git_command(["git", "ls-files", "--others", "-z"], cwd))
	except GitError as e:
		msg = "Failed to list untracked and ignored files"
		raise GitError(msg) from e


def get_history_paths(ref: str, cwd: Path | None = None) -> set[str]:
	"""
	Collect every file path touched by any commit reachable from a ref.

	Renames count as a deletion plus an addition, and merges are diffed
	against each parent, so every path that appears in any tree is included.

	Raises:
	    GitError: If git command fails

	"""
	command = ["git", "log", "--format=", "--name-only", "--no-renames", "--root", "-m", "-z", ref]
	try:
		return set(_split_nul(run_git_command(command, cwd)))
	except GitError as e:
		msg = f"Failed to list the paths in the history of {ref}"
		raise GitError(msg) from e


def branch_exists(branch_name: str, cwd: Path | None = None) -> bool:
	"""
	Check if a local branch exists.

	Args:
	    branch_name: Name of the branch to check
	    cwd: Repository path

	Returns:
	    True if the branch exists, False otherwise

	"""
	result = _run_unchecked(["git", "show-ref", "--verify", "--quiet", f"refs/heads/{branch_name}"], cwd)
	return result.returncode == 0


def get_current_branch(cwd: Path | None = None) -> str | None:
	"""Return the checked out branch name, or None when HEAD is detached."""
	result = _run_unchecked(["git", "symbolic-ref", "--quiet", "--short", "HEAD"], cwd)
	if result.returncode != 0:
		return None
	return result.stdout.strip()


def resolve_ref(ref: str, cwd: Path | None = None) -> str:
	"""
	Resolve a ref to a full commit id.

	Raises:
	    GitError: If the ref cannot be resolved

	"""
	return run_git_command(["git", "rev-parse", "--verify", f"{ref}^{{commit}}"], cwd).strip()


def list_commits(ref: str, cwd: Path | None = None) -> list[str]:
	"""
	List every commit reachable from a ref, oldest first.

	Parents always come before their children in the returned list.

	Args:
	    ref: Branch or other ref to walk
	    cwd: Repository path

	Returns:
	    List of full commit ids

	Raises:
	    GitError: If git command fails

	"""
	try:
		output = run_git_command(["git", "rev-list", "--reverse", "--topo-order", ref], cwd)
	except GitError as e:
		msg = f"Failed to list commits of {ref}"
		raise GitError(msg) from e
	return output.split()


def count_merge_commits(ref: str, cwd: Path | None = None) -> int:
	"""Count commits with more than one parent reachable from a ref."""
	output = run_git_command(["git", "rev-list", "--count", "--min-parents=2", ref], cwd)
	return int(output.strip() or 0)


def read_commit(sha: str, cwd: Path | None = None) -> SourceCommit:
	"""
	Read a commit object and parse its tree, parents and metadata.

	Args:
	    sha: Commit id
	    cwd: Repository path

	Returns:
	    Parsed source commit

	Raises:
	    GitError: If the commit cannot be read

	"""
	try:
		raw = run_git_command_bytes(["git", "cat-file", "commit", sha], cwd)
	except GitError as e:
		msg = f"Failed to read commit {sha}"
		raise GitError(msg) from e
	try:
		return parse_commit_object(sha, raw)
	except ValueError as e:
		raise GitError(str(e)) from e


def checkout_orphan(branch_name: str, cwd: Path | None = None) -> None:
	"""
	Create and check out an orphan branch with an empty index.

	Every tracked file is removed from the index and working tree so the
	first commit on the branch starts from nothing.

	Raises:
	    GitError: If git command fails

	"""
	run_git_command(["git", "checkout", "--orphan", branch_name], cwd)
	run_git_command(["git", "rm", "-r", "-f", "-q", "--ignore-unmatch", "."], cwd)


def materialize_tree(sha: str, cwd: Path | None = None) -> None:
	"""
	Replace the index and working tree with the full tree of a commit.

	Files absent from the commit are removed, modes and symlinks follow the
	commit exactly.

	Raises:
	    GitError: If git command fails

	"""
	run_git_command(["git", "read-tree", "-u", "--reset", sha], cwd)


def write_tree(cwd: Path | None = None) -> str:
	"""Write the index as a tree object and return its id."""
	return run_git_command(["git", "write-tree"], cwd).strip()


def update_branch_ref(branch_name: str, sha: str, cwd: Path | None = None) -> None:
	"""Point a local branch at a commit."""
	run_git_command(
		["git", "update-ref", "-m", f"resign: rewrite {branch_name}", f"refs/heads/{branch_name}", sha],
		cwd,
	)


def checkout_detached(ref: str, cwd: Path | None = None) -> None:
	"""Check out a ref without a branch (detached HEAD)."""
	run_git_command(["git", "checkout", "--quiet", "--detach", ref], cwd)


def checkout_branch(branch_name: str, cwd: Path | None = None) -> None:
	"""
	Checkout an existing branch.

	Raises:
	    GitError: If git command fails

	"""
	try:
		run_git_command(["git", "checkout", "--quiet", branch_name], cwd)
	except GitError as e:
		msg = f"Failed to checkout branch: {branch_name}"
		raise GitError(msg) from e


def delete_branch(branch_name: str, cwd: Path | None = None) -> None:
	"""Force-delete a local branch."""
	try:
		run_git_command(["git", "branch", "-D", branch_name], cwd)
	except GitError as e:
		msg = f"Failed to delete branch: {branch_name}"
		raise GitError(msg) from e


def rename_branch(old_name: str, new_name: str, cwd: Path | None = None) -> None:
	"""Rename a local branch. Fails if the new name is taken."""
	try:
		run_git_command(["git", "branch", "-m", old_name, new_name], cwd)
	except GitError as e:
		msg = f"Failed to rename branch {old_name} to {new_name}"
		raise GitError(msg) from e


def signature_log(ref: str, cwd: Path | None = None) -> str:
	"""
	Render short id, signature status, signer and subject of every commit.

	Fields are separated by the ASCII unit separator, one commit per line,
	newest first.

	Raises:
	    GitError: If git command fails

	"""
	return run_git_command(
		["git", "log", "--topo-order", "--format=%h%x1f%G?%x1f%GS%x1f%s", ref],
		cwd,
	)
