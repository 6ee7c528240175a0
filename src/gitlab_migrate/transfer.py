"""
Replay variable records onto a destination group or project.

Each record is submitted as its own creation request. A failing record is
logged and reported, and the next record is still attempted: there is no
transaction and nothing already created is rolled back. Because no existence
check is made by default, running the same transfer twice duplicates or
fails per record depending on what the destination enforces. Pass
``skip_existing=True`` to look up the target's variables first and skip
records whose ``key`` and ``environment_scope`` are already present.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from .exceptions import FetchError, MigrationError
from .fetcher import fetch_all
from .models import TransferOutcome, TransferReport

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .gitlab_utils import GitLabInstance
    from .models import TargetKind

logger: logging.Logger = logging.getLogger(__name__)

_DEFAULT_SCOPE = "*"


def _identity(record: dict[str, Any]) -> tuple[str, str] | None:
    key = record.get("key")
    if not isinstance(key, str):
        return None
    return key, str(record.get("environment_scope", _DEFAULT_SCOPE))


class TransferExecutor:
    """Creates opaque variable records on one instance."""

    instance: GitLabInstance

    def __init__(self, instance: GitLabInstance) -> None:
        self.instance = instance

    def _existing_identities(self, resource_path: str) -> set[tuple[str, str]]:
        try:
            existing = fetch_all(self.instance, resource_path)
        except FetchError as e:
            msg = f"Failed to list existing variables at {resource_path}: {e}"
            raise MigrationError(msg) from e
        identities: set[tuple[str, str]] = set()
        for record in existing:
            if isinstance(record, dict):
                identity = _identity(record)
                if identity is not None:
                    identities.add(identity)
        return identities

    def create_records_for(
        self,
        target: TargetKind,
        target_id: str | int,
        records: Sequence[Any],
        *,
        skip_existing: bool = False,
    ) -> TransferReport:
        """Create every record on the target, continuing past failures.

        Args:
            target: "group" or "project"
            target_id: Id of the group or project on this instance
            records: Variable records, sent verbatim and in order
            skip_existing: Skip records whose key/scope already exist on the target

        Returns:
            TransferReport with one outcome per record

        Raises:
            MigrationError: Only if ``skip_existing`` is set and the lookup fails
        """
        resource_path = f"{target}s/{target_id}/variables"
        report = TransferReport(target=target, target_id=str(target_id))
        existing = self._existing_identities(resource_path) if skip_existing else set()

        for index, record in enumerate(records):
            outcome = self._create_one(resource_path, index, record, existing)
            report.outcomes.append(outcome)

        logger.info(
            f"Finished {target} {target_id}: {report.created} created, "
            f"{report.failed} failed, {report.skipped} skipped"
        )
        return report

    def _create_one(
        self,
        resource_path: str,
        index: int,
        record: Any,
        existing: set[tuple[str, str]],
    ) -> TransferOutcome:
        label = f"{resource_path} record {index + 1}"

        if not isinstance(record, dict):
            error = f"record is not a JSON object: {record!r}"
            logger.error(f"Error creating variable for {label}: {error}")
            return TransferOutcome(index=index, record=record, status="failed", error=error)

        identity = _identity(record)
        if identity is not None and identity in existing:
            logger.info(f"Skipping existing variable {identity[0]!r} ({identity[1]}) for {label}")
            return TransferOutcome(index=index, record=record, status="skipped")

        try:
            _ = json.dumps(record)
        except (TypeError, ValueError) as e:
            error = f"record cannot be serialized: {e}"
            logger.error(f"Error creating variable for {label}: {error}")
            return TransferOutcome(index=index, record=record, status="failed", error=error)

        try:
            _ = self.instance.post_json(f"/{resource_path}", record)
        except MigrationError as e:
            logger.error(f"Error creating variable for {label}: {e}")
            return TransferOutcome(index=index, record=record, status="failed", error=str(e))

        logger.info(f"Successfully created variable for {label}")
        return TransferOutcome(index=index, record=record, status="created")
