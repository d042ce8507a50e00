"""Schemas for the resign configuration file."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from resign.rewrite.models import MergePolicy


class BranchesSchema(BaseModel):
	"""Branch names used by a rewrite."""

	source: str = "main"
	working: str = "new-main"
	backup_prefix: str = "backup/"
	keep_backup: bool = True

	def backup_name(self, source: str) -> str:
		"""Name the old branch is kept under after the swap."""
		return f"{self.backup_prefix}{source}"


class SigningSchema(BaseModel):
	"""How new commits are signed."""

	key: str | None = None
	format: Literal["openpgp", "ssh", "x509"] | None = None
	program: str | None = None


class RewriteSchema(BaseModel):
	"""Rewrite loop behaviour."""

	merge_policy: MergePolicy = MergePolicy.LINEARIZE
	# Seconds to wait before the first mutation, cancel with Ctrl+C
	start_delay: int = Field(default=5, ge=0)


class VerifySchema(BaseModel):
	"""Checks between the rewrite and the branch swap."""

	require_valid_signatures: bool = False
	confirm_before_swap: bool = True


class AppConfigSchema(BaseModel):
	"""Top level configuration."""

	branches: BranchesSchema = Field(default_factory=BranchesSchema)
	signing: SigningSchema = Field(default_factory=SigningSchema)
	rewrite: RewriteSchema = Field(default_factory=RewriteSchema)
	verify: VerifySchema = Field(default_factory=VerifySchema)
