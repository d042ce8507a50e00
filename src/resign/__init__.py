"""resign: rebuild a git branch as a fully signed history."""

__version__ = "0.1.0"
