"""
GitLab Migration Tool

Migrates CI/CD variables and repository mirror links between two GitLab
instances: paginated fetching with retries, project matching across
instances and batch creation that continues past individual failures.
"""

from __future__ import annotations

# Package version
__version__ = "1.0.2"

from .cli import main  # noqa: E402
from .config import InstanceEndpoint, MigrationConfig, load_config  # noqa: E402
from .exceptions import (  # noqa: E402
    ConfigurationError,
    DecodeError,
    FetchError,
    MigrationError,
    ProtocolError,
    TransportError,
)
from .gitlab_utils import GitLabInstance, HttpClientConfig  # noqa: E402
from .mirror import MirrorService  # noqa: E402
from .orchestrator import Migrator  # noqa: E402
from .resolver import resolve_by_exact_name  # noqa: E402
from .transfer import TransferExecutor  # noqa: E402
from .utils import setup_logging  # noqa: E402

# Public API
__all__ = [
    "ConfigurationError",
    "DecodeError",
    "FetchError",
    "GitLabInstance",
    "HttpClientConfig",
    "InstanceEndpoint",
    "MigrationConfig",
    "MigrationError",
    "Migrator",
    "MirrorService",
    "ProtocolError",
    "TransferExecutor",
    "TransportError",
    "load_config",
    "main",
    "resolve_by_exact_name",
    "setup_logging",
]
