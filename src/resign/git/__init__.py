"""Git utilities for resign."""

from .models import CommitMetadata, SourceCommit, parse_commit_object
from .utils import (
	GitError,
	branch_exists,
	get_current_branch,
	get_repo_root,
	has_uncommitted_changes,
	list_commits,
	read_commit,
	run_git_command,
	validate_repo_path,
)

__all__ = [
	"CommitMetadata",
	"GitError",
	"SourceCommit",
	"branch_exists",
	"get_current_branch",
	"get_repo_root",
	"has_uncommitted_changes",
	"list_commits",
	"parse_commit_object",
	"read_commit",
	"run_git_command",
	"validate_repo_path",
]
