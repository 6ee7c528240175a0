"""Protocols for the pluggable parts of a migration.

Two collaborators are injected rather than hard-wired:

1. MatchStrategy: decides which destination project is the counterpart of a
   source project. Variable migration and mirroring use the same resolver
   code path with different strategies.
2. CredentialProvider: supplies the user name and password embedded in
   mirror URLs. The CLI provides one that reads them from the configuration
   file and prompts once when they are missing; tests provide fixed values.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from .models import MirrorCredentials


class MatchStrategy(Protocol):
    """Protocol for matching a source project to a destination project."""

    def matches(self, source: dict[str, Any], candidate: dict[str, Any]) -> bool:
        """Return True when ``candidate`` is the counterpart of ``source``.

        Both arguments are project documents as returned by the API. A
        document missing a field the strategy needs must never match.
        """
        ...

    def describe(self, source: dict[str, Any]) -> str:
        """Human-readable key of ``source`` for log messages."""
        ...


class CredentialProvider(Protocol):
    """Protocol for obtaining mirror credentials."""

    def get_credentials(self) -> MirrorCredentials:
        """Return the credentials to embed in mirror URLs.

        Raises:
            MigrationError: If no credentials can be obtained
        """
        ...
