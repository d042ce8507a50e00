"""Configuration for resign."""

from .config_loader import (
	ConfigError,
	ConfigFileNotFoundError,
	ConfigParsingError,
	find_config_file,
	load_config,
)
from .config_schema import AppConfigSchema, BranchesSchema, RewriteSchema, SigningSchema, VerifySchema

__all__ = [
	"AppConfigSchema",
	"BranchesSchema",
	"ConfigError",
	"ConfigFileNotFoundError",
	"ConfigParsingError",
	"RewriteSchema",
	"SigningSchema",
	"VerifySchema",
	"find_config_file",
	"load_config",
]
