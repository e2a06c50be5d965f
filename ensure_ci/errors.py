"""Exceptions raised by the gate. Check failures are outcomes, not exceptions."""

from __future__ import annotations


class EnsureCIError(Exception):
    """Base class for errors that abort the invocation."""


class ConfigurationError(EnsureCIError):
    """Missing or malformed input: token, commit identity, integers, patterns."""


class GitHubAPIError(EnsureCIError):
    def __init__(self, message: str, *, status_code: int | None = None, url: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.url = url
