"""Merge gate that waits for every CI check run and commit status on a commit."""

__version__ = "1.0.0"
