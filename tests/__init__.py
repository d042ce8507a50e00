"""Tests for resign."""
