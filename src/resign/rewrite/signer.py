"""Signers that turn a tree and commit metadata into a new signed commit."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from resign.git.utils import GitError, run_git_command_bytes
from resign.rewrite.errors import SigningError

if TYPE_CHECKING:
	from collections.abc import Sequence
	from pathlib import Path

	from resign.git.models import CommitMetadata

logger = logging.getLogger(__name__)


@runtime_checkable
class Signer(Protocol):
	"""Protocol for objects that create signed commits."""

	def create_commit(
		self,
		tree: str,
		parents: Sequence[str],
		metadata: CommitMetadata,
		cwd: Path | None = None,
	) -> str:
		"""Create a commit object and return its id."""
		...


class GitSigner:
	"""
	Create signed commits with ``git commit-tree -S``.

	The author is taken from the metadata while the committer stays the
	operator running the tool. The signing agent may prompt for a passphrase
	the first time a key is used; the call blocks until it is answered.

	"""

	def __init__(self, key: str | None = None, signing_format: str | None = None, program: str | None = None) -> None:
		"""
		Initialize the signer.

		Args:
		    key: Key id passed to ``-S``; git falls back to ``user.signingkey``
		        or the committer identity when unset
		    signing_format: Overrides ``gpg.format`` (openpgp, ssh or x509)
		    program: Overrides the signing program for the configured format

		"""
		self.key = key
		self.signing_format = signing_format
		self.program = program

	def build_command(self, tree: str, parents: Sequence[str], encoding: str | None = None) -> list[str]:
		"""Build the commit-tree invocation for a tree, its parents and the message encoding."""
		# Without an encoding header the message is UTF-8 whatever the repository config says
		command = ["git", "-c", f"i18n.commitEncoding={encoding or 'UTF-8'}"]
		if self.signing_format:
			command += ["-c", f"gpg.format={self.signing_format}"]
		if self.program:
			section = "gpg" if self.signing_format in (None, "openpgp") else f"gpg.{self.signing_format}"
			command += ["-c", f"{section}.program={self.program}"]
		command += ["commit-tree", f"-S{self.key}" if self.key else "-S", tree]
		for parent in parents:
			command += ["-p", parent]
		return command

	def create_commit(
		self,
		tree: str,
		parents: Sequence[str],
		metadata: CommitMetadata,
		cwd: Path | None = None,
	) -> str:
		"""
		Create a signed commit.

		Args:
		    tree: Tree id of the new commit
		    parents: Parent commit ids, empty for a root commit
		    metadata: Author identity, author date and message to copy
		    cwd: Repository path

		Returns:
		    Id of the new commit

		Raises:
		    SigningError: If git could not create or sign the commit

		"""
		command = self.build_command(tree, parents, metadata.encoding)
		logger.debug("Creating signed commit for tree %s with %d parent(s)", tree, len(parents))
		try:
			# commit-tree stores the message from stdin verbatim, no cleanup
			output = run_git_command_bytes(command, cwd=cwd, env=metadata.author_env(), input_bytes=metadata.message)
		except GitError as e:
			msg = (
				f"Failed to create a signed commit for '{metadata.subject}'. "
				"Check that a signing key is configured and unlocked."
			)
			raise SigningError(msg) from e
		return output.decode("ascii").strip()
