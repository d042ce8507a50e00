"""Data models for commits read from the repository."""

from __future__ import annotations

import re
from dataclasses import dataclass, field

# "Jane Doe <jane@example.com> 1700000000 +0800"
_IDENT_PATTERN = re.compile(r"^(?P<name>.*?)\s*<(?P<email>[^>]*)>\s+(?P<timestamp>-?\d+)\s+(?P<offset>[+-]\d{4})$")


@dataclass(frozen=True)
class CommitMetadata:
	"""Author identity, author date and message copied onto a rewritten commit."""

	author_name: str
	author_email: str
	author_timestamp: int
	author_offset: str
	message: bytes
	encoding: str | None = None

	@property
	def author_date(self) -> str:
		"""Author date in git's internal format, original offset preserved."""
		return f"@{self.author_timestamp} {self.author_offset}"

	@property
	def subject(self) -> str:
		"""First line of the message, decoded for display."""
		return self.decoded_message.split("\n", 1)[0].rstrip("\r")

	@property
	def decoded_message(self) -> str:
		"""Message decoded with its declared encoding, undecodable bytes replaced."""
		try:
			return self.message.decode(self.encoding or "utf-8", errors="replace")
		except LookupError:
			return self.message.decode("utf-8", errors="replace")

	def author_env(self) -> dict[str, str]:
		"""Environment overriding the author of a new commit."""
		return {
			"GIT_AUTHOR_NAME": self.author_name,
			"GIT_AUTHOR_EMAIL": self.author_email,
			"GIT_AUTHOR_DATE": self.author_date,
		}


@dataclass(frozen=True)
class SourceCommit:
	"""A commit of the branch being rewritten."""

	sha: str
	tree: str
	metadata: CommitMetadata
	parents: tuple[str, ...] = field(default_factory=tuple)

	@property
	def short_sha(self) -> str:
		return self.sha[:7]

	@property
	def is_merge(self) -> bool:
		return len(self.parents) > 1


def parse_ident(value: str) -> tuple[str, str, int, str]:
	"""
	Split an author or committer header value.

	Args:
	    value: Header value such as ``Jane <jane@example.com> 1700000000 +0800``

	Returns:
	    Tuple of name, email, unix timestamp and offset

	Raises:
	    ValueError: If the value is not a valid identity line

	"""
	match = _IDENT_PATTERN.match(value)
	if match is None:
		msg = f"Malformed identity line: {value!r}"
		raise ValueError(msg)
	return match["name"], match["email"], int(match["timestamp"]), match["offset"]


def parse_commit_object(sha: str, raw: bytes) -> SourceCommit:
	"""
	Parse the raw bytes of a commit object (``git cat-file commit``).

	Headers run up to the first empty line; everything after it is the
	message, kept byte for byte including trailing blank lines and
	carriage returns. Header values are decoded with ``surrogateescape``
	so identities in any encoding reach git's environment unchanged.

	Args:
	    sha: Id of the commit being parsed
	    raw: Raw commit object

	Returns:
	    The parsed commit

	Raises:
	    ValueError: If the tree or author header is missing

	"""
	header, _, message = raw.partition(b"\n\n")

	tree: str | None = None
	author: str | None = None
	encoding: str | None = None
	parents: list[str] = []
	for line in header.decode("utf-8", errors="surrogateescape").split("\n"):
		# Continuation line of a multi-line header such as gpgsig
		if line.startswith(" "):
			continue
		key, _, value = line.partition(" ")
		if key == "tree":
			tree = value
		elif key == "parent":
			parents.append(value)
		elif key == "author":
			author = value
		elif key == "encoding":
			encoding = value

	if tree is None or author is None:
		msg = f"Commit {sha} has no tree or author header"
		raise ValueError(msg)

	name, email, timestamp, offset = parse_ident(author)
	metadata = CommitMetadata(
		author_name=name,
		author_email=email,
		author_timestamp=timestamp,
		author_offset=offset,
		message=message,
		encoding=encoding,
	)
	return SourceCommit(sha=sha, tree=tree, metadata=metadata, parents=tuple(parents))
