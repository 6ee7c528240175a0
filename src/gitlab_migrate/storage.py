"""
JSON snapshot files: writing fetched data and reading it back for replay.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Final

from .exceptions import InputFileError, MigrationError

logger: logging.Logger = logging.getLogger(__name__)

DATA_DIR: Final[str] = "data"


def output_filename(
    command: str,
    group_id: str | None = None,
    project_id: str | None = None,
    *,
    destination: bool = False,
    recursive: bool = False,
    data_dir: str | Path = DATA_DIR,
) -> Path:
    """Return the default snapshot path for a ``get`` command.

    ``s-`` prefixes files read from the source instance, ``d-`` files read
    from the destination, e.g. ``data/s-gitlab_get_variables_g-42_recursive.json``.
    """
    prefix = "d" if destination else "s"

    if command == "groups":
        identifier = "groups"
    elif command == "projects":
        identifier = f"projects_g-{group_id}" if group_id else "projects"
    elif command == "variables":
        if group_id:
            identifier = f"variables_g-{group_id}_recursive" if recursive else f"variables_g-{group_id}"
        elif project_id:
            identifier = f"variables_p-{project_id}"
        else:
            identifier = "variables"
    else:
        msg = f"Unknown command for output file name: {command}"
        raise ValueError(msg)

    return Path(data_dir) / f"{prefix}-gitlab_get_{identifier}.json"


def save_output(data: Any, path: str | Path) -> Path:
    """Write ``data`` to ``path`` as indented JSON, creating parent directories.

    Raises:
        MigrationError: If the file cannot be written
    """
    file_path = Path(path)
    try:
        file_path.parent.mkdir(parents=True, exist_ok=True)
        with file_path.open("w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
            _ = f.write("\n")
    except (OSError, TypeError, ValueError) as e:
        msg = f"Failed to save output to {file_path}: {e}"
        raise MigrationError(msg) from e

    logger.info(f"Successfully saved output to {file_path}")
    return file_path


def _read_json(path: str | Path) -> Any:
    file_path = Path(path)
    try:
        with file_path.open(encoding="utf-8") as f:
            return json.load(f)
    except OSError as e:
        msg = f"Could not read input file {file_path}: {e}"
        raise InputFileError(msg) from e
    except ValueError as e:
        msg = f"Could not parse JSON in {file_path}: {e}"
        raise InputFileError(msg) from e


def load_record_list(path: str | Path) -> list[Any]:
    """Read a snapshot holding a flat list of records.

    Raises:
        InputFileError: If the file is unreadable or not a JSON list
    """
    data = _read_json(path)
    if not isinstance(data, list):
        msg = f"Input file {path} must contain a JSON list of records"
        raise InputFileError(msg)
    return data


def load_record_map(path: str | Path) -> dict[str, Any]:
    """Read a recursive snapshot: source project id -> {project_name, variables}.

    Entries are returned as-is; callers validate each one so that a single
    malformed entry does not reject the whole file.

    Raises:
        InputFileError: If the file is unreadable or not a JSON object
    """
    data = _read_json(path)
    if not isinstance(data, dict):
        msg = f"Input file {path} must contain a JSON object keyed by project id"
        raise InputFileError(msg)
    return data
