"""Utility modules for resign."""
