"""
Loading of the resign configuration file.

Settings come from the first file found in this order:

1. the path given with ``--config``
2. ``.resign.yml`` at the repository root
3. ``$XDG_CONFIG_HOME/resign/config.yml``
4. ``~/.resign/config.yml``

Missing sections and keys fall back to the defaults of
:class:`~resign.config.config_schema.AppConfigSchema`.

"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import ValidationError
from xdg.BaseDirectory import xdg_config_home

from resign.config.config_schema import AppConfigSchema

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = ".resign.yml"


class ConfigError(Exception):
	"""Exception raised for configuration errors."""


class ConfigFileNotFoundError(ConfigError):
	"""The file passed with --config does not exist."""


class ConfigParsingError(ConfigError):
	"""The configuration file is not valid YAML or does not match the schema."""


def find_config_file(repo_root: Path | None = None) -> Path | None:
	"""Return the first configuration file present in the standard locations."""
	candidates = (
		(repo_root or Path.cwd()) / CONFIG_FILE_NAME,
		Path(xdg_config_home) / "resign" / "config.yml",
		Path.home() / ".resign" / "config.yml",
	)
	return next((candidate for candidate in candidates if candidate.is_file()), None)


def load_config(config_file: Path | None = None, repo_root: Path | None = None) -> AppConfigSchema:
	"""
	Load and validate the configuration for a repository.

	Args:
	    config_file: Explicit configuration file; it must exist
	    repo_root: Repository whose ``.resign.yml`` is looked up

	Returns:
	    The validated configuration, defaults when no file is found

	Raises:
	    ConfigFileNotFoundError: If ``config_file`` does not exist
	    ConfigParsingError: If the file cannot be read, parsed or validated

	"""
	if config_file is not None:
		path = config_file.expanduser()
		if not path.is_file():
			msg = f"Configuration file not found: {path}"
			raise ConfigFileNotFoundError(msg)
	else:
		path = find_config_file(repo_root)

	if path is None:
		logger.info("No configuration file found, using defaults")
		return AppConfigSchema()

	try:
		with path.open(encoding="utf-8") as f:
			content = yaml.safe_load(f)
	except yaml.YAMLError as e:
		msg = f"Configuration file {path} is not valid YAML: {e}"
		raise ConfigParsingError(msg) from e
	except OSError as e:
		msg = f"Error accessing configuration file {path}: {e}"
		raise ConfigParsingError(msg) from e

	if content is None:
		content = {}
	if not isinstance(content, dict):
		msg = f"Configuration file {path} does not contain a valid YAML dictionary"
		raise ConfigParsingError(msg)

	try:
		config = AppConfigSchema(**content)
	except ValidationError as e:
		msg = f"Error parsing configuration {path}: {e}"
		raise ConfigParsingError(msg) from e

	logger.info("Loaded configuration from %s", path)
	return config
