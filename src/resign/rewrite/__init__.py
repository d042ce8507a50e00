"""Signed history rewrite pipeline."""

from .errors import (
	BranchExistsError,
	BranchNotFoundError,
	DirtyWorkingTreeError,
	IncompleteRewriteError,
	MergeCommitError,
	PreflightError,
	ResignError,
	RewriteError,
	SigningError,
	TreeMismatchError,
	UntrackedFileConflictError,
	VerificationError,
)
from .models import (
	MergePolicy,
	PipelineResult,
	PreflightResult,
	RewriteResult,
	SignatureEntry,
	SwapResult,
	VerificationResult,
)
from .pipeline import HistoryRewriter
from .signer import GitSigner, Signer

__all__ = [
	"BranchExistsError",
	"BranchNotFoundError",
	"DirtyWorkingTreeError",
	"GitSigner",
	"HistoryRewriter",
	"IncompleteRewriteError",
	"MergeCommitError",
	"MergePolicy",
	"PipelineResult",
	"PreflightError",
	"PreflightResult",
	"ResignError",
	"RewriteError",
	"RewriteResult",
	"SignatureEntry",
	"Signer",
	"SigningError",
	"SwapResult",
	"TreeMismatchError",
	"UntrackedFileConflictError",
	"VerificationError",
	"VerificationResult",
]
