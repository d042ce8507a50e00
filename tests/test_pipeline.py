"""End-to-end tests of the rewrite pipeline against real repositories."""

from __future__ import annotations

import os

import pytest

from resign.git.utils import branch_exists, get_current_branch
from resign.rewrite import (
	BranchExistsError,
	BranchNotFoundError,
	DirtyWorkingTreeError,
	HistoryRewriter,
	IncompleteRewriteError,
	MergeCommitError,
	MergePolicy,
	RewriteResult,
	SigningError,
	UntrackedFileConflictError,
	VerificationError,
)
from resign.rewrite.pipeline import find_colliding_paths
from tests.base import (
	GitTestBase,
	RecordingSigner,
	commit_field,
	commit_files,
	git,
	raw_commit,
	raw_message,
	rev_parse,
)


@pytest.mark.git
class TestLinearRewrite(GitTestBase):
	"""A three commit branch C1 -> C2 -> C3 rewritten end to end."""

	@pytest.fixture(autouse=True)
	def setup_history(self, setup_repo: None) -> None:
		self.c1 = commit_files(
			self.repo,
			{"README.md": "hello\n", "run.sh": "#!/bin/sh\necho hi\n"},
			"Initial commit\n",
			author=("Jane Doe", "jane@example.com"),
			date="@1600000000 +0800",
			executable=["run.sh"],
		)
		self.c2 = commit_files(
			self.repo,
			{"src/app.py": "print('app')\n", "README.md": "hello world\n"},
			"Add app\n\nWith a body paragraph.\n\n\n",
			author=("張三", "zhang@example.com"),
			date="@1600003600 -0500",
		)
		self.c3 = commit_files(
			self.repo,
			{"run.sh": None},
			"Remove script\n",
			author=("Jane Doe", "jane@example.com"),
			date="@1600007200 +0000",
		)
		self.source_commits = [self.c1, self.c2, self.c3]
		self.signer = RecordingSigner()

	def _rewriter(self, **kwargs) -> HistoryRewriter:  # noqa: ANN003
		return HistoryRewriter(repo_path=self.repo, signer=self.signer, **kwargs)

	def test_full_run_replaces_branch(self) -> None:
		"""The branch keeps its name, gets three new commits and is checked out."""
		result = self._rewriter(backup_branch=None).run()

		assert result.rewrite.is_complete
		assert result.rewrite.rewritten == 3
		assert result.swap is not None
		assert result.swap.branch == "main"
		assert result.swap.backup_branch is None

		assert get_current_branch(self.repo) == "main"
		assert not branch_exists("new-main", self.repo)
		new_commits = git(self.repo, "rev-list", "--reverse", "main").split()
		assert len(new_commits) == 3
		assert set(new_commits).isdisjoint(self.source_commits)
		assert rev_parse(self.repo, "main") == result.swap.tip
		# Old commits are no longer reachable from any branch
		assert git(self.repo, "branch", "--contains", self.c3).strip() == ""

	def test_metadata_and_trees_match(self) -> None:
		"""Tree, author name, email, date and message are copied exactly."""
		result = self._rewriter().run()

		for source_sha, new_sha in result.rewrite.mapping.items():
			assert rev_parse(self.repo, f"{new_sha}^{{tree}}") == rev_parse(self.repo, f"{source_sha}^{{tree}}")
			for fmt in ("%an", "%ae", "%ad", "%ai", "%aI"):
				assert commit_field(self.repo, new_sha, fmt) == commit_field(self.repo, source_sha, fmt)
			assert raw_message(self.repo, new_sha) == raw_message(self.repo, source_sha)
			# The committer is the operator, not the original committer
			assert commit_field(self.repo, new_sha, "%ce").strip() == "operator@example.com"

		assert raw_message(self.repo, result.rewrite.mapping[self.c2]) == b"Add app\n\nWith a body paragraph.\n\n\n"

	def test_ancestry_is_preserved(self) -> None:
		result = self._rewriter().run()
		mapping = result.rewrite.mapping

		assert git(self.repo, "rev-list", "--max-parents=0", "main").split() == [mapping[self.c1]]
		assert rev_parse(self.repo, f"{mapping[self.c2]}^") == mapping[self.c1]
		assert rev_parse(self.repo, f"{mapping[self.c3]}^") == mapping[self.c2]

	def test_every_commit_goes_through_the_signer(self) -> None:
		result = self._rewriter().run()

		assert len(self.signer.calls) == 3
		assert [call[2].subject for call in self.signer.calls] == ["Initial commit", "Add app", "Remove script"]
		assert [call[1] for call in self.signer.calls] == [
			(),
			(result.rewrite.mapping[self.c1],),
			(result.rewrite.mapping[self.c2],),
		]

	def test_working_tree_matches_final_commit(self) -> None:
		"""Deleted files stay deleted and executable bits survive."""
		result = self._rewriter().run()

		assert not (self.repo / "run.sh").exists()
		assert (self.repo / "src" / "app.py").read_text() == "print('app')\n"
		first = result.rewrite.mapping[self.c1]
		assert git(self.repo, "ls-tree", first, "run.sh").split()[0] == "100755"
		assert git(self.repo, "status", "--porcelain").strip() == ""

	def test_backup_branch_keeps_old_history(self) -> None:
		result = self._rewriter(backup_branch="backup/main").run()

		assert result.swap is not None
		assert result.swap.backup_branch == "backup/main"
		assert rev_parse(self.repo, "backup/main") == self.c3

	def test_verification_report(self) -> None:
		"""The fake signer leaves commits unsigned, which the report shows."""
		result = self._rewriter().run()

		assert len(result.verification.entries) == 3
		assert [entry.subject for entry in result.verification.entries] == [
			"Remove script",
			"Add app",
			"Initial commit",
		]
		assert {entry.status for entry in result.verification.entries} == {"N"}

	def test_required_signatures_block_the_swap(self) -> None:
		with pytest.raises(VerificationError) as excinfo:
			self._rewriter(require_valid_signatures=True).run()

		assert excinfo.value.result is not None
		assert len(excinfo.value.result.unsigned) == 3
		assert rev_parse(self.repo, "main") == self.c3
		assert branch_exists("new-main", self.repo)

	def test_declined_swap_keeps_working_branch(self) -> None:
		seen = []

		def decline(verification) -> bool:  # noqa: ANN001
			seen.append(verification)
			return False

		result = self._rewriter().run(confirm_swap=decline)

		assert result.swap is None
		assert len(seen) == 1
		assert rev_parse(self.repo, "main") == self.c3
		assert rev_parse(self.repo, "new-main") == result.rewrite.tip

	def test_progress_is_reported_per_commit(self) -> None:
		ticks: list[int] = []

		self._rewriter().run(progress=ticks.append)

		assert ticks == [1, 1, 1]

	def test_signing_failure_leaves_prefix_and_old_branch(self) -> None:
		"""A signer failing on the second commit stops the loop with one commit done."""
		self.signer = RecordingSigner(fail_after=1)
		rewriter = self._rewriter()

		with pytest.raises(SigningError) as excinfo:
			rewriter.run()

		partial = excinfo.value.result
		assert partial is not None
		assert partial.rewritten == 1
		assert not partial.is_complete
		assert rev_parse(self.repo, "main") == self.c3
		assert git(self.repo, "rev-list", "new-main").split() == [partial.mapping[self.c1]]

		with pytest.raises(IncompleteRewriteError):
			rewriter.swap(partial)
		assert rev_parse(self.repo, "main") == self.c3

	def test_signing_failure_on_first_commit(self) -> None:
		self.signer = RecordingSigner(fail_after=0)

		with pytest.raises(SigningError) as excinfo:
			self._rewriter().run()

		assert excinfo.value.result is not None
		assert excinfo.value.result.rewritten == 0
		assert not branch_exists("new-main", self.repo)
		assert rev_parse(self.repo, "main") == self.c3

	def test_swap_refuses_moved_working_branch(self) -> None:
		rewriter = self._rewriter()
		rewriter.preflight()
		commits = rewriter.enumerate_commits()
		rewriter.create_working_branch()
		result = rewriter.rewrite(commits)
		stale = RewriteResult(
			source_branch="main",
			working_branch="new-main",
			expected=result.expected,
			mapping=dict(result.mapping),
			tip=result.mapping[self.c1],
		)

		with pytest.raises(IncompleteRewriteError, match="points at"):
			rewriter.swap(stale)

	def test_enumeration_is_a_snapshot(self) -> None:
		rewriter = self._rewriter()

		assert rewriter.enumerate_commits() == tuple(self.source_commits)


@pytest.mark.git
class TestPreflight(GitTestBase):
	"""Checks that must fail before anything is modified."""

	@pytest.fixture(autouse=True)
	def setup_history(self, setup_repo: None) -> None:
		self.c1 = commit_files(self.repo, {"a.txt": "a\n"}, "First\n")
		self.c2 = commit_files(self.repo, {"a.txt": "b\n"}, "Second\n")
		self.signer = RecordingSigner()

	def _refs(self) -> str:
		return git(self.repo, "for-each-ref")

	def test_dirty_tree_performs_no_mutation(self) -> None:
		(self.repo / "a.txt").write_text("local edit\n")
		refs_before = self._refs()

		with pytest.raises(DirtyWorkingTreeError, match="uncommitted changes"):
			HistoryRewriter(self.repo, self.signer).run()

		assert self._refs() == refs_before
		assert get_current_branch(self.repo) == "main"
		assert (self.repo / "a.txt").read_text() == "local edit\n"
		assert self.signer.calls == []

	def test_staged_change_is_dirty(self) -> None:
		(self.repo / "b.txt").write_text("new\n")
		git(self.repo, "add", "b.txt")

		with pytest.raises(DirtyWorkingTreeError):
			HistoryRewriter(self.repo, self.signer).preflight()

	def test_untracked_files_are_only_reported(self) -> None:
		(self.repo / "notes.txt").write_text("scratch\n")

		preflight = HistoryRewriter(self.repo, self.signer).preflight()

		assert preflight.untracked_files == ["notes.txt"]
		assert preflight.current_branch == "main"

	def test_missing_source_branch(self) -> None:
		with pytest.raises(BranchNotFoundError):
			HistoryRewriter(self.repo, self.signer, source_branch="trunk").preflight()

	def test_existing_working_branch(self) -> None:
		git(self.repo, "branch", "new-main")

		with pytest.raises(BranchExistsError, match="new-main"):
			HistoryRewriter(self.repo, self.signer).preflight()

	def test_existing_backup_branch(self) -> None:
		git(self.repo, "branch", "backup/main")

		with pytest.raises(BranchExistsError, match="backup/main"):
			HistoryRewriter(self.repo, self.signer, backup_branch="backup/main").preflight()

	def test_same_source_and_working_branch(self) -> None:
		with pytest.raises(ValueError, match="must differ"):
			HistoryRewriter(self.repo, self.signer, source_branch="main", working_branch="main")

	def test_rewrites_a_branch_that_is_not_checked_out(self) -> None:
		git(self.repo, "checkout", "-q", "-b", "topic")
		commit_files(self.repo, {"t.txt": "t\n"}, "Topic work\n")

		result = HistoryRewriter(self.repo, self.signer, backup_branch="backup/main").run()

		assert result.preflight.current_branch == "topic"
		assert get_current_branch(self.repo) == "main"
		assert git(self.repo, "rev-list", "--count", "main").strip() == "2"
		assert not (self.repo / "t.txt").exists()


@pytest.mark.git
class TestMessageBytes(GitTestBase):
	"""Messages are copied byte for byte, whatever their line endings or encoding."""

	def _rewrite(self) -> dict[str, str]:
		return HistoryRewriter(self.repo, RecordingSigner()).run().rewrite.mapping

	def test_carriage_returns_are_kept(self) -> None:
		source = commit_files(self.repo, {"a.txt": "a\n"}, b"Subject\r\n\r\nBody line\r\n")

		mapping = self._rewrite()

		assert raw_message(self.repo, mapping[source]) == b"Subject\r\n\r\nBody line\r\n"

	def test_legacy_encoding_is_kept(self) -> None:
		"""A latin1 message keeps its bytes and its encoding header."""
		source = commit_files(
			self.repo,
			{"a.txt": "a\n"},
			b"Caf\xe9 cr\xe8me\n",
			git_options=["-c", "i18n.commitEncoding=latin1"],
		)
		signer = RecordingSigner()

		result = HistoryRewriter(self.repo, signer).run()

		new_sha = result.rewrite.mapping[source]
		assert raw_message(self.repo, new_sha) == b"Caf\xe9 cr\xe8me\n"
		assert b"\nencoding latin1\n" in raw_commit(self.repo, new_sha)
		assert signer.calls[0][2].subject == "Café crème"

	def test_invalid_utf8_without_encoding_header(self) -> None:
		source = commit_files(self.repo, {"a.txt": "a\n"}, b"Broken \xff byte\n")

		mapping = self._rewrite()

		new_commit = raw_commit(self.repo, mapping[source])
		assert raw_message(self.repo, mapping[source]) == b"Broken \xff byte\n"
		assert b"\nencoding " not in new_commit.partition(b"\n\n")[0]

	def test_repository_encoding_setting_is_not_applied(self) -> None:
		"""A UTF-8 commit stays without encoding header even if the repository defaults to another one."""
		source = commit_files(self.repo, {"a.txt": "a\n"}, "Plain message\n")
		git(self.repo, "config", "i18n.commitEncoding", "latin1")

		mapping = self._rewrite()

		assert b"\nencoding " not in raw_commit(self.repo, mapping[source]).partition(b"\n\n")[0]


@pytest.mark.unit
@pytest.mark.parametrize(
	("local", "expected"),
	[
		(["config.env"], ["config.env"]),
		(["docs"], ["docs"]),
		(["out/result.txt"], ["out/result.txt"]),
		(["docs-old", "outputs/x", "notes.txt"], []),
	],
)
def test_find_colliding_paths(local: list[str], expected: list[str]) -> None:
	history = {"config.env", "docs/guide.md", "out"}

	assert find_colliding_paths(local, history) == expected


@pytest.mark.git
class TestLocalFiles(GitTestBase):
	"""Untracked and ignored files are never overwritten by an older tree."""

	@pytest.fixture(autouse=True)
	def setup_history(self, setup_repo: None) -> None:
		commit_files(self.repo, {"config.env": "TOKEN=old\n", "out": "artifact\n", "docs/guide.md": "guide\n"}, "Add\n")
		commit_files(
			self.repo,
			{"config.env": None, "out": None, "docs/guide.md": None, ".gitignore": "config.env\nout/\n"},
			"Remove local files\n",
		)
		self.head = rev_parse(self.repo, "main")

	def test_ignored_file_on_a_historical_path(self) -> None:
		(self.repo / "config.env").write_text("TOKEN=secret\n")

		with pytest.raises(UntrackedFileConflictError, match="config.env") as excinfo:
			HistoryRewriter(self.repo, RecordingSigner()).run()

		assert excinfo.value.paths == ["config.env"]
		assert (self.repo / "config.env").read_text() == "TOKEN=secret\n"
		assert not branch_exists("new-main", self.repo)
		assert rev_parse(self.repo, "main") == self.head

	def test_file_where_history_has_a_directory_and_the_reverse(self) -> None:
		(self.repo / "docs").write_text("not a directory\n")
		(self.repo / "out").mkdir()
		(self.repo / "out" / "result.txt").write_text("local\n")

		with pytest.raises(UntrackedFileConflictError) as excinfo:
			HistoryRewriter(self.repo, RecordingSigner()).preflight()

		assert excinfo.value.paths == ["docs", "out/result.txt"]

	def test_unrelated_untracked_file_survives(self) -> None:
		(self.repo / "notes.txt").write_text("keep me\n")

		result = HistoryRewriter(self.repo, RecordingSigner()).run()

		assert result.preflight.untracked_files == ["notes.txt"]
		assert (self.repo / "notes.txt").read_text() == "keep me\n"


@pytest.mark.git
class TestMergeHistory(GitTestBase):
	"""A history with one merge commit: C1 -> (C2, F1) -> M."""

	@pytest.fixture(autouse=True)
	def setup_history(self, setup_repo: None) -> None:
		self.c1 = commit_files(self.repo, {"base.txt": "base\n"}, "Base\n", date="@1600000000 +0000")
		git(self.repo, "checkout", "-q", "-b", "feature")
		self.f1 = commit_files(self.repo, {"feature.txt": "feature\n"}, "Feature\n", date="@1600000100 +0000")
		git(self.repo, "checkout", "-q", "main")
		self.c2 = commit_files(self.repo, {"main.txt": "main\n"}, "Main work\n", date="@1600000200 +0000")
		env = {"GIT_AUTHOR_DATE": "@1600000300 +0000", "GIT_COMMITTER_DATE": "@1600000300 +0000"}
		git(self.repo, "merge", "-q", "--no-ff", "-m", "Merge feature", "feature", env=env)
		self.merge = rev_parse(self.repo, "HEAD")
		git(self.repo, "branch", "-D", "feature")
		self.signer = RecordingSigner()

	def test_linearize_flattens_topology(self) -> None:
		"""Every reachable commit is rewritten once on a single line of history."""
		result = HistoryRewriter(self.repo, self.signer, merge_policy=MergePolicy.LINEARIZE).run()

		assert result.preflight.merge_commits == 1
		assert result.rewrite.rewritten == 4
		assert git(self.repo, "rev-list", "--count", "main").strip() == "4"
		assert git(self.repo, "rev-list", "--min-parents=2", "main").strip() == ""
		new_merge = result.rewrite.mapping[self.merge]
		assert rev_parse(self.repo, f"{new_merge}^{{tree}}") == rev_parse(self.repo, f"{self.merge}^{{tree}}")
		assert result.rewrite.tip == new_merge

	def test_linearize_keeps_ancestor_order(self) -> None:
		result = HistoryRewriter(self.repo, self.signer).run()
		mapping = result.rewrite.mapping

		for ancestor, descendant in ((self.c1, self.c2), (self.c1, self.f1), (self.c2, self.merge)):
			git(self.repo, "merge-base", "--is-ancestor", mapping[ancestor], mapping[descendant])

	def test_preserve_keeps_merge_parents(self) -> None:
		result = HistoryRewriter(self.repo, self.signer, merge_policy=MergePolicy.PRESERVE).run()
		mapping = result.rewrite.mapping

		parents = git(self.repo, "show", "-s", "--format=%P", mapping[self.merge]).split()
		assert parents == [mapping[self.c2], mapping[self.f1]]
		assert git(self.repo, "rev-list", "--count", "main").strip() == "4"
		assert rev_parse(self.repo, "main") == mapping[self.merge]

	def test_refuse_policy_stops_in_preflight(self) -> None:
		with pytest.raises(MergeCommitError, match="1 merge commit"):
			HistoryRewriter(self.repo, self.signer, merge_policy=MergePolicy.REFUSE).run()

		assert rev_parse(self.repo, "main") == self.merge
		assert not branch_exists("new-main", self.repo)


@pytest.mark.git
@pytest.mark.skipif(os.name == "nt", reason="symlinks need extra privileges on Windows")
class TestSpecialEntries(GitTestBase):
	"""Symlinks and empty commits survive the rewrite."""

	def test_symlink_and_empty_commit(self) -> None:
		commit_files(self.repo, {"target.txt": "t\n"}, "Target\n")
		(self.repo / "link").symlink_to("target.txt")
		c2 = commit_files(self.repo, {}, "Add link\n")
		c3 = commit_files(self.repo, {}, "Empty commit\n")

		result = HistoryRewriter(self.repo, RecordingSigner()).run()

		mapping = result.rewrite.mapping
		assert git(self.repo, "ls-tree", mapping[c2], "link").split()[0] == "120000"
		assert rev_parse(self.repo, f"{mapping[c3]}^{{tree}}") == rev_parse(self.repo, f"{c2}^{{tree}}")
		assert raw_message(self.repo, mapping[c3]) == b"Empty commit\n"
