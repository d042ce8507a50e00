"""Exceptions raised by the history rewrite pipeline."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
	from resign.rewrite.models import RewriteResult, VerificationResult


class ResignError(Exception):
	"""Base class for pipeline errors."""


class PreflightError(ResignError):
	"""A check failed before any change was made to the repository."""


class DirtyWorkingTreeError(PreflightError):
	"""Tracked files differ from HEAD."""

	def __init__(self) -> None:
		super().__init__(
			"Your working tree has uncommitted changes. Commit or stash them first.\n"
			"錯誤：您的工作目錄中有未提交的變更。請先 commit 或 stash。"
		)


class BranchNotFoundError(PreflightError):
	"""The branch to rewrite does not exist."""


class BranchExistsError(PreflightError):
	"""A branch the run needs to create already exists."""


class MergeCommitError(PreflightError):
	"""The history contains merges and the merge policy refuses them."""


class UntrackedFileConflictError(PreflightError):
	"""Untracked or ignored files sit on paths the rewrite would overwrite."""

	def __init__(self, message: str, paths: list[str] | None = None) -> None:
		super().__init__(message)
		self.paths = paths or []


class RewriteError(ResignError):
	"""The rewrite loop stopped before every commit was rewritten.

	``result`` holds the commits rewritten so far; the working branch points
	at the last of them.
	"""

	def __init__(self, message: str, result: RewriteResult | None = None) -> None:
		super().__init__(message)
		self.result = result


class TreeMismatchError(RewriteError):
	"""The staged tree does not match the source commit's tree."""


class SigningError(RewriteError):
	"""Creating the signed commit failed."""


class VerificationError(ResignError):
	"""The rewritten branch carries missing or invalid signatures."""

	def __init__(self, message: str, result: VerificationResult | None = None) -> None:
		super().__init__(message)
		self.result = result


class IncompleteRewriteError(ResignError):
	"""The branch swap was attempted without a complete rewrite."""
