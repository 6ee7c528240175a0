"""Variable migration orchestrator.

The Migrator coordinates the fetcher, the resolver and the transfer executor
for the three variable migration modes:

Single project
    The source project's variables are fetched and replayed once onto the
    destination project.

Group (non-recursive)
    The variables attached to the source group itself (not to its projects)
    are fetched and replayed once onto the destination group.

Group (recursive)
    1. List every project of the source group
    2. Fetch the variables of each, keyed by source project id
    3. List every project of the destination group
    4. Resolve each source project to a destination project (exact name by
       default)
    5. Replay the variables of every matched project

    Steps 1-4 build a complete TransferPlan before the first write. Source
    projects without a counterpart are left out of the plan with a warning.
    Each snapshot entry keeps the source project's namespace, so strategies
    other than exact name can resolve it as well.

Error Handling
--------------
- Failing to obtain a listing the plan depends on raises MigrationError:
  nothing has been written yet, so the run stops.
- Everything discovered while walking the plan (a resolution miss, a
  project whose variables cannot be read, a record the destination rejects)
  is logged, counted in MigrationStats and skipped.
- A run with per-record failures still completes; MigrationResult.success
  tells whether any occurred.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, cast

from . import fetcher
from .exceptions import FetchError, MigrationError
from .models import (
    MigrationResult,
    MigrationStats,
    PlanEntry,
    ProjectVariables,
    TransferPlan,
    source_match_document,
)
from .resolver import ExactNameMatcher, resolve
from .transfer import TransferExecutor

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from .gitlab_utils import GitLabInstance
    from .models import TargetKind
    from .protocols import MatchStrategy

logger = logging.getLogger(__name__)

# Called with the fetched source data before anything is written
Snapshot = Callable[[Any], object]


def collect_group_project_variables(
    instance: GitLabInstance,
    group_id: str | int,
    stats: MigrationStats | None = None,
) -> dict[str, ProjectVariables]:
    """Fetch the variables of every project in a group, keyed by project id.

    A project whose variables cannot be fetched is left out of the result and,
    if ``stats`` is given, counted in ``projects_failed``.

    Raises:
        MigrationError: If the group's project listing cannot be fetched
    """
    try:
        projects = fetcher.list_group_projects(instance, group_id)
    except FetchError as e:
        msg = f"Failed to list projects of group {group_id} on {instance.side}: {e}"
        raise MigrationError(msg) from e

    variables_by_project: dict[str, ProjectVariables] = {}
    for project in projects:
        project_id = project.get("id") if isinstance(project, dict) else None
        project_name = project.get("name") if isinstance(project, dict) else None
        if isinstance(project_id, bool) or not isinstance(project_id, (int, float)) or not isinstance(project_name, str):
            logger.error(f"Skipping malformed project entry in group {group_id}: {project!r}")
            continue

        key = str(int(project_id))
        try:
            variables = fetcher.get_project_variables(instance, key)
        except FetchError as e:
            logger.error(f"Error fetching variables for project {project_name} ({key}): {e}")
            if stats is not None:
                stats.projects_failed += 1
                stats.errors.append(f"project {project_name} ({key}): variables could not be fetched: {e}")
            continue

        namespace = project.get("namespace")
        variables_by_project[key] = ProjectVariables(
            project_name=project_name,
            variables=variables,
            namespace=namespace if isinstance(namespace, dict) else None,
        )

    logger.info(f"Collected variables for {len(variables_by_project)} projects of group {group_id}")
    return variables_by_project


def fetch_variables(
    instance: GitLabInstance,
    *,
    group_id: str | None = None,
    project_id: str | None = None,
    recursive: bool = False,
) -> list[Any] | dict[str, dict[str, Any]]:
    """Fetch variables in the shape they are written to snapshot files.

    Returns:
        A flat list for a group or a project, or for ``recursive`` a mapping
        of project id -> {"project_name", "variables"}

    Raises:
        MigrationError: If the variables cannot be fetched
    """
    if group_id and project_id:
        msg = "Specify either a group or a project, not both"
        raise MigrationError(msg)
    if recursive and not group_id:
        msg = "Recursive mode is not supported for individual projects"
        raise MigrationError(msg)

    try:
        if group_id:
            if recursive:
                collected = collect_group_project_variables(instance, group_id)
                return {key: entry.to_dict() for key, entry in collected.items()}
            return fetcher.get_group_variables(instance, group_id)
        if project_id:
            return fetcher.get_project_variables(instance, project_id)
    except FetchError as e:
        msg = f"Failed to fetch variables from {instance.side}: {e}"
        raise MigrationError(msg) from e

    msg = "Either a group or a project must be provided"
    raise MigrationError(msg)


class Migrator:
    """Orchestrates variable migration onto a destination instance.

    Usage:
        migrator = Migrator(destination, source=source)
        result = migrator.migrate_group_recursive("12", "34")

    The source instance is only needed by the ``migrate_*`` methods; the
    ``replay_*`` methods work from records already in memory (e.g. loaded
    from a snapshot file). The migrator holds no state between runs: all of
    it is returned in MigrationResult.
    """

    _source: GitLabInstance | None
    _destination: GitLabInstance
    _matcher: MatchStrategy
    _skip_existing: bool
    _executor: TransferExecutor

    def __init__(
        self,
        destination: GitLabInstance,
        *,
        source: GitLabInstance | None = None,
        matcher: MatchStrategy | None = None,
        skip_existing: bool = False,
    ) -> None:
        """Initialize the migrator.

        Args:
            destination: Instance the variables are created on
            source: Instance the variables are read from
            matcher: Strategy matching source projects to destination projects
            skip_existing: Skip records whose key/scope already exist on the target
        """
        self._source = source
        self._destination = destination
        self._matcher = matcher or ExactNameMatcher()
        self._skip_existing = skip_existing
        self._executor = TransferExecutor(destination)

    @property
    def source(self) -> GitLabInstance:
        if self._source is None:
            msg = "No source instance configured for this migrator"
            raise MigrationError(msg)
        return self._source

    def migrate_project(
        self,
        source_project_id: str,
        destination_project_id: str,
        *,
        snapshot: Snapshot | None = None,
    ) -> MigrationResult:
        """Copy one project's variables onto another project."""
        logger.info(f"Migrating variables from project {source_project_id} to project {destination_project_id}")
        records = cast("list[Any]", fetch_variables(self.source, project_id=source_project_id))
        if snapshot is not None:
            snapshot(records)
        return self.replay_records("project", destination_project_id, records)

    def migrate_group(
        self,
        source_group_id: str,
        destination_group_id: str,
        *,
        snapshot: Snapshot | None = None,
    ) -> MigrationResult:
        """Copy the variables of a group itself onto another group."""
        logger.info(f"Migrating variables from group {source_group_id} to group {destination_group_id}")
        records = cast("list[Any]", fetch_variables(self.source, group_id=source_group_id))
        if snapshot is not None:
            snapshot(records)
        return self.replay_records("group", destination_group_id, records)

    def migrate_group_recursive(
        self,
        source_group_id: str,
        destination_group_id: str,
        *,
        snapshot: Snapshot | None = None,
    ) -> MigrationResult:
        """Copy the variables of every project in a group onto the matching destination projects."""
        logger.info(f"Migrating variables recursively from group {source_group_id} to group {destination_group_id}")
        stats = MigrationStats()
        collected = collect_group_project_variables(self.source, source_group_id, stats)
        project_map = {key: entry.to_dict() for key, entry in collected.items()}
        if snapshot is not None:
            snapshot(project_map)
        return self.replay_project_map(project_map, destination_group_id, stats)

    def replay_records(self, target: TargetKind, target_id: str, records: Sequence[Any]) -> MigrationResult:
        """Create ``records`` on one destination group or project."""
        stats = MigrationStats()
        report = self._executor.create_records_for(target, target_id, records, skip_existing=self._skip_existing)
        stats.add_report(report)
        return MigrationResult(stats=stats, reports=[report])

    def replay_project_map(
        self,
        project_map: Mapping[str, Any],
        destination_group_id: str,
        stats: MigrationStats | None = None,
    ) -> MigrationResult:
        """Plan and replay a recursive snapshot onto the projects of a destination group."""
        stats = stats if stats is not None else MigrationStats()
        plan = self.build_transfer_plan(project_map, destination_group_id, stats)
        return self.execute_plan(plan, stats)

    def build_transfer_plan(
        self,
        project_map: Mapping[str, Any],
        destination_group_id: str,
        stats: MigrationStats | None = None,
    ) -> TransferPlan:
        """Match every source project to a destination project before anything is written.

        Args:
            project_map: Source project id -> {"project_name", "variables"}
            destination_group_id: Group whose projects are the match candidates
            stats: Collects skip counts and errors, if given

        Raises:
            MigrationError: If the destination group's projects cannot be listed
        """
        stats = stats if stats is not None else MigrationStats()
        try:
            candidates = fetcher.list_group_projects(self._destination, destination_group_id)
        except FetchError as e:
            msg = f"Failed to list projects of destination group {destination_group_id}: {e}"
            raise MigrationError(msg) from e

        plan = TransferPlan()
        for source_id, entry in project_map.items():
            project_name = entry.get("project_name") if isinstance(entry, dict) else None
            if not isinstance(project_name, str):
                logger.error(f"Project name not found for source project {source_id}")
                stats.errors.append(f"source project {source_id}: missing project name")
                plan.skipped.append(str(source_id))
                continue

            variables = entry.get("variables")
            if variables is None:
                variables = []
            if not isinstance(variables, list):
                logger.error(f"Invalid variables format for project {project_name}")
                stats.errors.append(f"project {project_name}: variables are not a list")
                plan.skipped.append(str(source_id))
                continue

            destination_id = resolve(source_match_document(entry), candidates, self._matcher)
            if destination_id is None:
                logger.warning(f"Project {project_name} not found in destination group {destination_group_id}")
                plan.skipped.append(str(source_id))
                continue

            plan.entries[str(source_id)] = PlanEntry(
                source_id=str(source_id),
                destination_id=destination_id,
                project_name=project_name,
                variables=variables,
            )

        stats.projects_skipped += len(plan.skipped)
        logger.info(f"Transfer plan: {len(plan)} projects matched, {len(plan.skipped)} skipped")
        return plan

    def execute_plan(self, plan: TransferPlan, stats: MigrationStats | None = None) -> MigrationResult:
        """Replay every planned project's variables onto its destination project."""
        stats = stats if stats is not None else MigrationStats()
        result = MigrationResult(stats=stats, plan=plan)

        for entry in plan.entries.values():
            logger.info(f"Migrating variables for project {entry.project_name} (ID: {entry.destination_id})")
            try:
                report = self._executor.create_records_for(
                    "project",
                    entry.destination_id,
                    entry.variables,
                    skip_existing=self._skip_existing,
                )
            except MigrationError as e:
                # Only the optional existence lookup raises; the project is skipped.
                logger.error(f"Skipping project {entry.project_name}: {e}")
                stats.errors.append(f"project {entry.project_name}: {e}")
                stats.projects_failed += 1
                continue
            stats.add_report(report)
            stats.projects_migrated += 1
            result.reports.append(report)

        return result
