"""Signature report for a rewritten branch."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from rich.table import Table
from rich.text import Text

from resign.git.utils import signature_log
from resign.rewrite.models import SignatureEntry, VerificationResult

if TYPE_CHECKING:
	from pathlib import Path

logger = logging.getLogger(__name__)

FIELD_SEPARATOR = "\x1f"

STATUS_STYLES = {
	"G": "green",
	"U": "green",
	"B": "bold red",
	"N": "red",
	"E": "yellow",
}


def parse_signature_log(output: str) -> list[SignatureEntry]:
	"""
	Parse the output of :func:`resign.git.utils.signature_log`.

	Args:
	    output: One line per commit, fields separated by ``\\x1f``

	Returns:
	    Signature entries in the order git printed them

	"""
	entries = []
	for line in output.splitlines():
		if not line:
			continue
		fields = line.split(FIELD_SEPARATOR, 3)
		# Empty subjects drop the trailing field
		fields += [""] * (4 - len(fields))
		short_sha, status, signer, subject = fields
		entries.append(SignatureEntry(short_sha=short_sha, status=status or "N", signer=signer, subject=subject))
	return entries


def verify_branch(branch: str, cwd: Path | None = None) -> VerificationResult:
	"""
	Collect the signature status of every commit on a branch.

	Read only. The caller decides what to do with invalid entries.

	Raises:
	    GitError: If the branch cannot be logged

	"""
	entries = parse_signature_log(signature_log(branch, cwd))
	result = VerificationResult(branch=branch, entries=entries)
	logger.info(
		"Verified %d commit(s) on %s, %d without a valid signature",
		len(entries),
		branch,
		len(result.invalid),
	)
	return result


def render_signature_table(result: VerificationResult) -> Table:
	"""Build a rich table of the verification result."""
	table = Table(title=f"Signatures on {result.branch}", show_lines=False)
	table.add_column("Commit", style="cyan", no_wrap=True)
	table.add_column("Status", no_wrap=True)
	table.add_column("Signer")
	table.add_column("Subject")

	for entry in result.entries:
		style = STATUS_STYLES.get(entry.status, "yellow")
		# Subjects and signers are plain text, never markup
		table.add_row(
			entry.short_sha,
			Text(f"{entry.status} ({entry.status_label})", style=style),
			Text(entry.signer or "-"),
			Text(entry.subject),
		)
	return table
