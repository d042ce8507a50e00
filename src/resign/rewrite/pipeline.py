"""
History rewrite pipeline.

Rebuilds a branch commit by commit on an orphan working branch, signing
every new commit while keeping the original author, author date and
message, then moves the rebuilt branch to the original name.

Stages run strictly in order and each one relies on the repository state
the previous one left behind:

1. :meth:`HistoryRewriter.preflight`
2. :meth:`HistoryRewriter.enumerate_commits`
3. :meth:`HistoryRewriter.create_working_branch`
4. :meth:`HistoryRewriter.rewrite`
5. :meth:`HistoryRewriter.verify`
6. :meth:`HistoryRewriter.swap`

"""

from __future__ import annotations

import logging
from pathlib import PurePosixPath
from typing import TYPE_CHECKING

from resign.git.utils import (
	GitError,
	branch_exists,
	checkout_branch,
	checkout_detached,
	checkout_orphan,
	count_merge_commits,
	delete_branch,
	get_current_branch,
	get_history_paths,
	get_other_files,
	get_untracked_files,
	has_uncommitted_changes,
	list_commits,
	materialize_tree,
	read_commit,
	rename_branch,
	resolve_ref,
	update_branch_ref,
	write_tree,
)
from resign.rewrite.errors import (
	BranchExistsError,
	BranchNotFoundError,
	DirtyWorkingTreeError,
	IncompleteRewriteError,
	MergeCommitError,
	RewriteError,
	TreeMismatchError,
	UntrackedFileConflictError,
	VerificationError,
)
from resign.rewrite.models import (
	MergePolicy,
	PipelineResult,
	PreflightResult,
	RewriteResult,
	SwapResult,
	VerificationResult,
)
from resign.rewrite.verify import verify_branch

if TYPE_CHECKING:
	from collections.abc import Callable, Iterable, Sequence
	from pathlib import Path

	from resign.git.models import SourceCommit
	from resign.rewrite.signer import Signer

logger = logging.getLogger(__name__)

# Colliding paths listed in the preflight error before it is cut short
MAX_LISTED_PATHS = 10


def find_colliding_paths(local_paths: Iterable[str], history_paths: set[str]) -> list[str]:
	"""
	Return the local paths that materializing any historical tree would replace.

	A local file collides when the history has a file at the same path, a
	directory at its path, or a file where one of its parent directories is.

	"""
	history_dirs = {str(parent) for path in history_paths for parent in PurePosixPath(path).parents}
	colliding = []
	for path in local_paths:
		normalized = PurePosixPath(path)
		parents = {str(parent) for parent in normalized.parents}
		if str(normalized) in history_paths or str(normalized) in history_dirs or parents & history_paths:
			colliding.append(path)
	return sorted(colliding)


class HistoryRewriter:
	"""Rewrites one branch into a fully signed copy of itself."""

	def __init__(
		self,
		repo_path: Path,
		signer: Signer,
		source_branch: str = "main",
		working_branch: str = "new-main",
		merge_policy: MergePolicy = MergePolicy.LINEARIZE,
		backup_branch: str | None = None,
		require_valid_signatures: bool = False,
	) -> None:
		"""
		Initialize the rewriter.

		Args:
		    repo_path: Root of the repository
		    signer: Creates the signed commits
		    source_branch: Branch to rewrite; it keeps its name at the end
		    working_branch: Temporary branch the new history is built on
		    merge_policy: How merge commits are handled
		    backup_branch: Name the old branch is moved to during the swap,
		        or None to delete it
		    require_valid_signatures: Refuse to swap unless every rewritten
		        commit has a valid signature

		"""
		if source_branch == working_branch:
			msg = "The working branch must differ from the branch being rewritten"
			raise ValueError(msg)
		if backup_branch is not None and backup_branch in (source_branch, working_branch):
			msg = "The backup branch must differ from the source and working branches"
			raise ValueError(msg)

		self.repo_path = repo_path
		self.signer = signer
		self.source_branch = source_branch
		self.working_branch = working_branch
		self.merge_policy = MergePolicy(merge_policy)
		self.backup_branch = backup_branch
		self.require_valid_signatures = require_valid_signatures

	# --- Stage 1 ---

	def preflight(self) -> PreflightResult:
		"""
		Check the repository before anything is modified.

		Returns:
		    What the checks found

		Raises:
		    DirtyWorkingTreeError: If tracked files differ from HEAD
		    BranchNotFoundError: If the source branch does not exist
		    BranchExistsError: If the working or backup branch already exists
		    MergeCommitError: If merges exist and the policy refuses them
		    UntrackedFileConflictError: If untracked or ignored files would be overwritten

		"""
		if has_uncommitted_changes(self.repo_path):
			raise DirtyWorkingTreeError

		if not branch_exists(self.source_branch, self.repo_path):
			msg = f"Branch '{self.source_branch}' does not exist"
			raise BranchNotFoundError(msg)

		for name in (self.working_branch, self.backup_branch):
			if name is not None and branch_exists(name, self.repo_path):
				msg = f"Branch '{name}' already exists. Delete or rename it before rewriting."
				raise BranchExistsError(msg)

		merge_commits = count_merge_commits(self.source_branch, self.repo_path)
		if merge_commits and self.merge_policy is MergePolicy.REFUSE:
			msg = (
				f"Branch '{self.source_branch}' contains {merge_commits} merge commit(s). "
				"Use the 'linearize' or 'preserve' merge policy to rewrite it."
			)
			raise MergeCommitError(msg)
		if merge_commits and self.merge_policy is MergePolicy.LINEARIZE:
			logger.warning(
				"%d merge commit(s) will be flattened into a linear history",
				merge_commits,
			)

		self._check_local_files()
		untracked = get_untracked_files(self.repo_path)
		if untracked:
			logger.warning(
				"%d untracked file(s) present; none share a path with the history, they stay in place",
				len(untracked),
			)

		return PreflightResult(
			source_branch=self.source_branch,
			working_branch=self.working_branch,
			current_branch=get_current_branch(self.repo_path),
			merge_commits=merge_commits,
			untracked_files=untracked,
		)

	def _check_local_files(self) -> None:
		"""
		Refuse to run when untracked or ignored files would be overwritten.

		Materializing a historical tree replaces whatever sits on its paths,
		and the next commit then deletes it as a tracked removal.

		Raises:
		    UntrackedFileConflictError: If any local file collides with the history

		"""
		colliding = find_colliding_paths(
			get_other_files(self.repo_path),
			get_history_paths(self.source_branch, self.repo_path),
		)
		if not colliding:
			return
		listed = ", ".join(colliding[:MAX_LISTED_PATHS])
		if len(colliding) > MAX_LISTED_PATHS:
			listed += f" (and {len(colliding) - MAX_LISTED_PATHS} more)"
		msg = (
			f"{len(colliding)} untracked or ignored file(s) share a path with the history of "
			f"'{self.source_branch}' and would be overwritten: {listed}. "
			"Move them out of the repository before rewriting."
		)
		raise UntrackedFileConflictError(msg, paths=colliding)

	# --- Stage 2 ---

	def enumerate_commits(self) -> tuple[str, ...]:
		"""
		Snapshot every commit reachable from the source branch, oldest first.

		Raises:
		    GitError: If the branch has no commits or cannot be walked

		"""
		commits = tuple(list_commits(self.source_branch, self.repo_path))
		if not commits:
			msg = f"Branch '{self.source_branch}' has no commits"
			raise GitError(msg)
		logger.info("Enumerated %d commit(s) on %s", len(commits), self.source_branch)
		return commits

	def describe(self, commits: Sequence[str]) -> list[SourceCommit]:
		"""Read the commits of a snapshot for display."""
		return [read_commit(sha, self.repo_path) for sha in commits]

	# --- Stage 3 ---

	def create_working_branch(self) -> None:
		"""Check out an orphan working branch with an empty index and tree."""
		checkout_orphan(self.working_branch, self.repo_path)
		logger.info("Created orphan branch %s", self.working_branch)

	# --- Stage 4 ---

	def rewrite(
		self,
		commits: Sequence[str],
		progress: Callable[[int], None] | None = None,
	) -> RewriteResult:
		"""
		Recreate every commit of the snapshot on the working branch.

		There is no rollback. On failure the working branch keeps the commits
		created so far and the raised error carries the partial result.

		Args:
		    commits: Snapshot from :meth:`enumerate_commits`
		    progress: Called with 1 after each rewritten commit

		Returns:
		    Mapping of source to rewritten commits

		Raises:
		    RewriteError: If any commit could not be rewritten

		"""
		result = RewriteResult(
			source_branch=self.source_branch,
			working_branch=self.working_branch,
			expected=len(commits),
		)

		for index, sha in enumerate(commits, start=1):
			logger.info("Rewriting commit %d/%d: %s", index, len(commits), sha)
			try:
				new_sha = self._rewrite_commit(sha, result)
			except RewriteError as e:
				e.result = result
				raise
			except GitError as e:
				msg = f"Failed to rewrite commit {sha} ({result.rewritten}/{result.expected} done)"
				raise RewriteError(msg, result=result) from e

			result.record(sha, new_sha)
			if progress is not None:
				progress(1)

		logger.info("Rewrote %d commit(s) onto %s", result.rewritten, self.working_branch)
		return result

	def _rewrite_commit(self, sha: str, result: RewriteResult) -> str:
		source = read_commit(sha, self.repo_path)

		materialize_tree(sha, self.repo_path)
		tree = write_tree(self.repo_path)
		if tree != source.tree:
			msg = f"Staged tree {tree} of {source.short_sha} does not match its original tree {source.tree}"
			raise TreeMismatchError(msg)

		parents = self._parents_for(source, result)
		new_sha = self.signer.create_commit(tree, parents, source.metadata, cwd=self.repo_path)
		update_branch_ref(self.working_branch, new_sha, self.repo_path)
		logger.debug("%s -> %s", source.short_sha, new_sha[:7])
		return new_sha

	def _parents_for(self, source: SourceCommit, result: RewriteResult) -> list[str]:
		if self.merge_policy is MergePolicy.PRESERVE:
			missing = [parent for parent in source.parents if parent not in result.mapping]
			if missing:
				msg = f"Parent {missing[0]} of {source.short_sha} has not been rewritten yet"
				raise RewriteError(msg)
			return [result.mapping[parent] for parent in source.parents]
		return [result.tip] if result.tip else []

	# --- Stage 5 ---

	def verify(self) -> VerificationResult:
		"""Report the signature status of the working branch."""
		return verify_branch(self.working_branch, self.repo_path)

	def check_signatures(self, verification: VerificationResult) -> None:
		"""
		Gate the swap on the verification result when signatures are required.

		Raises:
		    VerificationError: If any commit lacks a valid signature

		"""
		if not self.require_valid_signatures or verification.all_valid:
			return
		msg = (
			f"{len(verification.invalid)} commit(s) on '{self.working_branch}' lack a valid signature; "
			f"'{self.source_branch}' was left untouched"
		)
		raise VerificationError(msg, result=verification)

	# --- Stage 6 ---

	def swap(self, result: RewriteResult) -> SwapResult:
		"""
		Replace the source branch with the working branch.

		The old branch is renamed to the backup name when one is set,
		otherwise force-deleted.

		Raises:
		    IncompleteRewriteError: If not every enumerated commit was rewritten
		        or the working branch moved since

		"""
		if not result.is_complete:
			msg = (
				f"Only {result.rewritten} of {result.expected} commit(s) were rewritten; "
				f"'{self.source_branch}' was left untouched"
			)
			raise IncompleteRewriteError(msg)

		tip = resolve_ref(self.working_branch, self.repo_path)
		if tip != result.tip:
			msg = f"'{self.working_branch}' points at {tip}, expected {result.tip}"
			raise IncompleteRewriteError(msg)

		checkout_detached(tip, self.repo_path)
		if self.backup_branch:
			rename_branch(self.source_branch, self.backup_branch, self.repo_path)
			logger.info("Kept old history as %s", self.backup_branch)
		else:
			delete_branch(self.source_branch, self.repo_path)
			logger.info("Deleted old branch %s", self.source_branch)
		rename_branch(self.working_branch, self.source_branch, self.repo_path)
		checkout_branch(self.source_branch, self.repo_path)

		return SwapResult(branch=self.source_branch, tip=tip, backup_branch=self.backup_branch)

	# --- Whole pipeline ---

	def execute(
		self,
		commits: Sequence[str],
		confirm_swap: Callable[[VerificationResult], bool] | None = None,
		progress: Callable[[int], None] | None = None,
	) -> tuple[RewriteResult, VerificationResult, SwapResult | None]:
		"""
		Run the mutating stages for an enumerated snapshot.

		Args:
		    commits: Snapshot from :meth:`enumerate_commits`
		    confirm_swap: Asked before the swap; returning False keeps the
		        working branch for inspection and skips the swap
		    progress: Called with 1 after each rewritten commit

		Raises:
		    RewriteError: If the rewrite loop failed
		    VerificationError: If signatures are required and some are invalid

		"""
		self.create_working_branch()
		rewrite_result = self.rewrite(commits, progress=progress)
		verification = self.verify()
		self.check_signatures(verification)

		if confirm_swap is not None and not confirm_swap(verification):
			logger.info("Swap declined; %s kept for inspection", self.working_branch)
			return rewrite_result, verification, None

		return rewrite_result, verification, self.swap(rewrite_result)

	def run(
		self,
		confirm_swap: Callable[[VerificationResult], bool] | None = None,
		progress: Callable[[int], None] | None = None,
	) -> PipelineResult:
		"""Run every stage from preflight to swap."""
		preflight = self.preflight()
		commits = self.enumerate_commits()
		rewrite_result, verification, swap = self.execute(commits, confirm_swap=confirm_swap, progress=progress)
		return PipelineResult(
			preflight=preflight,
			rewrite=rewrite_result,
			verification=verification,
			swap=swap,
		)
