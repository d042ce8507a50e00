"""Global test fixtures and configuration."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

if TYPE_CHECKING:
	from pathlib import Path


@pytest.fixture
def isolated_git(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
	"""Keep the user's global and system git configuration out of the tests."""
	home = tmp_path / "home"
	home.mkdir()
	global_config = home / ".gitconfig"
	global_config.write_text("")
	monkeypatch.setenv("HOME", str(home))
	monkeypatch.setenv("GIT_CONFIG_GLOBAL", str(global_config))
	monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
	for name in (
		"GIT_AUTHOR_NAME",
		"GIT_AUTHOR_EMAIL",
		"GIT_AUTHOR_DATE",
		"GIT_COMMITTER_DATE",
		"GIT_DIR",
		"GIT_WORK_TREE",
	):
		monkeypatch.delenv(name, raising=False)
