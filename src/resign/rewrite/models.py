"""Typed results of the history rewrite stages."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

# Signature status codes git reports through %G?
VALID_SIGNATURE_CODES = frozenset({"G", "U"})

SIGNATURE_STATUS_LABELS = {
	"G": "good",
	"B": "bad",
	"U": "good, unknown validity",
	"X": "good, expired signature",
	"Y": "good, expired key",
	"R": "good, revoked key",
	"E": "cannot be checked",
	"N": "unsigned",
}


class MergePolicy(str, Enum):
	"""How merge commits in the source history are handled."""

	LINEARIZE = "linearize"
	PRESERVE = "preserve"
	REFUSE = "refuse"


@dataclass
class PreflightResult:
	"""Outcome of the checks run before anything is modified."""

	source_branch: str
	working_branch: str
	current_branch: str | None
	merge_commits: int = 0
	untracked_files: list[str] = field(default_factory=list)


@dataclass
class RewriteResult:
	"""Source to rewritten commit mapping built by the rewrite loop."""

	source_branch: str
	working_branch: str
	expected: int
	mapping: dict[str, str] = field(default_factory=dict)
	tip: str | None = None

	def record(self, source_sha: str, new_sha: str) -> None:
		self.mapping[source_sha] = new_sha
		self.tip = new_sha

	@property
	def rewritten(self) -> int:
		return len(self.mapping)

	@property
	def is_complete(self) -> bool:
		return self.expected > 0 and self.rewritten == self.expected


@dataclass(frozen=True)
class SignatureEntry:
	"""One line of the signature report."""

	short_sha: str
	status: str
	signer: str
	subject: str

	@property
	def is_valid(self) -> bool:
		return self.status in VALID_SIGNATURE_CODES

	@property
	def status_label(self) -> str:
		return SIGNATURE_STATUS_LABELS.get(self.status, "unknown")


@dataclass
class VerificationResult:
	"""Signature status of every commit on a branch, newest first."""

	branch: str
	entries: list[SignatureEntry] = field(default_factory=list)

	@property
	def all_valid(self) -> bool:
		return bool(self.entries) and all(entry.is_valid for entry in self.entries)

	@property
	def unsigned(self) -> list[SignatureEntry]:
		return [entry for entry in self.entries if entry.status == "N"]

	@property
	def invalid(self) -> list[SignatureEntry]:
		return [entry for entry in self.entries if not entry.is_valid]


@dataclass(frozen=True)
class SwapResult:
	"""Final state after the rewritten branch took the old name."""

	branch: str
	tip: str
	backup_branch: str | None = None


@dataclass
class PipelineResult:
	"""Everything a full run produced."""

	preflight: PreflightResult
	rewrite: RewriteResult
	verification: VerificationResult
	swap: SwapResult | None = None
