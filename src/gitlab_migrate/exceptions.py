"""
Custom exception classes for the GitLab migration tool.
"""

from __future__ import annotations


class MigrationError(Exception):
    """Base exception for migration errors."""


class ConfigurationError(MigrationError):
    """Raised when the configuration file is missing, malformed or invalid."""


class FetchError(MigrationError):
    """Raised when a resource page cannot be fetched from an instance."""


class TransportError(FetchError):
    """Raised on connection failures and timeouts."""


class ProtocolError(FetchError):
    """Raised when the API answers with a non-2xx status."""

    status_code: int | None

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class DecodeError(FetchError):
    """Raised when a response body is not the JSON document we expected."""


class InputFileError(MigrationError):
    """Raised when a snapshot file cannot be read or has the wrong shape."""
