"""
Utility functions for the GitLab migration tool.
"""

from __future__ import annotations

import logging
import re

_CONSOLE_LEVELS: tuple[int, ...] = (logging.WARNING, logging.INFO, logging.DEBUG)
_URL_CREDENTIALS = re.compile(r"(https?://)[^/@\s]+@")


def setup_logging(*, verbosity: int = 0, log_file: str | None = "migration.log") -> None:
    """Configure logging for the migration process.

    The console shows warnings by default, info with one ``-v`` and debug with
    two or more. The log file always receives everything.
    """
    console_level = _CONSOLE_LEVELS[min(max(verbosity, 0), len(_CONSOLE_LEVELS) - 1)]
    formatter = logging.Formatter("%(asctime)s - %(levelname)s - %(message)s")

    console = logging.StreamHandler()
    console.setLevel(console_level)
    console.setFormatter(formatter)
    handlers: list[logging.Handler] = [console]

    if log_file:
        file_handler = logging.FileHandler(log_file, mode="a")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    for handler in handlers:
        root_logger.addHandler(handler)


def redact_url(url: str) -> str:
    """Hide any ``user:password@`` part of a URL so it can be logged."""
    return _URL_CREDENTIALS.sub(r"\1***@", url)


def sanitize_error(error: str, secrets: list[str | None]) -> str:
    """Remove secrets from an error message to prevent leakage.

    Args:
        error: Error message that may contain secrets
        secrets: Values to redact (None values are ignored)

    Returns:
        Error message with secrets replaced by ***
    """
    result = error
    for secret in secrets:
        if secret:
            result = result.replace(secret, "***")
    return redact_url(result)
