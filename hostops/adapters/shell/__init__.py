"""Subprocess-backed channels."""
