"""
Command-line interface for the GitLab migration tool.
"""

from __future__ import annotations

import argparse
import logging
import sys
from functools import partial
from pathlib import Path
from typing import TYPE_CHECKING, Any

from . import __version__, fetcher, storage
from .config import default_config_path, load_config
from .exceptions import FetchError, MigrationError
from .gitlab_utils import DEFAULT_TIMEOUT, GitLabInstance, HttpClientConfig
from .mirror import ConfigCredentialProvider, MirrorService
from .orchestrator import Migrator, fetch_variables
from .utils import setup_logging

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .config import MigrationConfig, Side
    from .models import MigrationResult

logger: logging.Logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_PARTIAL_FAILURE = 2


class UsageError(MigrationError):
    """Raised when the combination of command-line flags is invalid."""


def parse_arguments(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="gitlab-migrate",
        description="Migrate CI/CD variables and repository mirrors between GitLab instances",
    )
    _ = parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    _ = parser.add_argument(
        "--config", "-c", help=f"Path to the config YAML file (default: {default_config_path()})"
    )
    _ = parser.add_argument(
        "--verbose", "-v", action="count", default=0, help="Increase console verbosity (-v info, -vv debug)"
    )
    _ = parser.add_argument(
        "--insecure", "-k", action="store_true", help="Do not verify TLS certificates of either instance"
    )
    _ = parser.add_argument(
        "--timeout", type=float, default=DEFAULT_TIMEOUT, help="Timeout in seconds for each HTTP request"
    )

    commands = parser.add_subparsers(dest="command", required=True)

    # get
    get_parser = commands.add_parser("get", help="Retrieve data from a GitLab instance and save it as JSON")
    get_commands = get_parser.add_subparsers(dest="resource", required=True)
    for name, help_text in (
        ("groups", "Retrieve all groups"),
        ("projects", "Retrieve all projects, or the projects of one group"),
        ("variables", "Retrieve CI/CD variables of a group, a project, or every project of a group"),
    ):
        sub = get_commands.add_parser(name, help=help_text)
        _ = sub.add_argument("--output", "-o", help="Path to save the output as a JSON file")
        _ = sub.add_argument(
            "--destination", "-d", action="store_true", help="Use the destination instance instead of the source"
        )
        if name in ("projects", "variables"):
            _ = sub.add_argument("--group", "-g", help="Group ID")
        if name == "variables":
            _ = sub.add_argument("--project", "-p", help="Project ID")
            _ = sub.add_argument(
                "--recursive", "-r", action="store_true", help="Retrieve variables of every project in the group"
            )

    # set
    set_parser = commands.add_parser("set", help="Create data on a GitLab instance from a JSON file")
    set_commands = set_parser.add_subparsers(dest="resource", required=True)
    set_variables = set_commands.add_parser("variables", help="Create CI/CD variables from an input file")
    _ = set_variables.add_argument("--input", "-i", required=True, help="Path to the input JSON file")
    _ = set_variables.add_argument("--destination-project", "-P", help="Project ID to create the variables on")
    _ = set_variables.add_argument("--destination-group", "-G", help="Group ID to create the variables on")
    _ = set_variables.add_argument(
        "--recursive", "-r", action="store_true", help="Input holds variables per project; match projects by name"
    )
    _ = set_variables.add_argument(
        "--source", "-s", action="store_true", help="Write to the source instance instead of the destination"
    )
    _add_skip_existing(set_variables)

    # migrate
    migrate_parser = commands.add_parser("migrate", help="Migrate resources between GitLab instances")
    migrate_commands = migrate_parser.add_subparsers(dest="resource", required=True)
    migrate_variables = migrate_commands.add_parser("variables", help="Migrate CI/CD variables")
    _ = migrate_variables.add_argument("--group", "-g", help="Source group ID")
    _ = migrate_variables.add_argument("--project", "-p", help="Source project ID")
    _ = migrate_variables.add_argument("--destination-group", "-G", help="Destination group ID")
    _ = migrate_variables.add_argument("--destination-project", "-P", help="Destination project ID")
    _ = migrate_variables.add_argument(
        "--recursive", "-r", action="store_true", help="Migrate the variables of every project in the group"
    )
    _add_skip_existing(migrate_variables)

    # mirror
    mirror_parser = commands.add_parser("mirror", help="Register destination projects as mirrors of source projects")
    _ = mirror_parser.add_argument("--source-project", "-p", help="Source project ID")
    _ = mirror_parser.add_argument("--target-project", "-P", help="Target project ID")
    _ = mirror_parser.add_argument("--source-group", "-g", help="Source group ID")
    _ = mirror_parser.add_argument("--target-group", "-G", help="Target group ID")

    return parser.parse_args(argv)


def _add_skip_existing(parser: argparse.ArgumentParser) -> None:
    _ = parser.add_argument(
        "--skip-existing",
        action="store_true",
        help="Skip variables whose key and environment scope already exist on the target",
    )


def _connect(config: MigrationConfig, side: Side, http_config: HttpClientConfig) -> GitLabInstance:
    return GitLabInstance.connect(config.endpoint(side), http_config)


def _print_summary(title: str, result: MigrationResult) -> None:
    """Print a human-readable summary of a migration run."""
    stats = result.stats
    print(f"\n{title}")
    print(
        f"  Variables: created={stats.variables_created} failed={stats.variables_failed} "
        f"skipped={stats.variables_skipped}"
    )
    if result.plan is not None or stats.projects_migrated or stats.projects_skipped:
        print(
            f"  Projects: migrated={stats.projects_migrated} skipped={stats.projects_skipped} "
            f"failed={stats.projects_failed}"
        )
    if stats.mirrors_created or stats.mirrors_failed:
        print(f"  Mirrors: created={stats.mirrors_created} failed={stats.mirrors_failed}")
    for error in stats.errors:
        print(f"  - {error}")


def _exit_code(result: MigrationResult) -> int:
    return EXIT_OK if result.success else EXIT_PARTIAL_FAILURE


def _run_get(args: argparse.Namespace, config: MigrationConfig, http_config: HttpClientConfig) -> int:
    side: Side = "destination" if args.destination else "source"
    group_id: str | None = getattr(args, "group", None)
    project_id: str | None = getattr(args, "project", None)
    recursive: bool = getattr(args, "recursive", False)

    if args.resource == "variables" and not group_id and not project_id:
        msg = "Either --group or --project must be provided"
        raise UsageError(msg)
    if args.resource == "variables" and recursive and not group_id:
        msg = "Recursive mode is not supported for individual projects"
        raise UsageError(msg)

    instance = _connect(config, side, http_config)
    data: Any
    try:
        if args.resource == "groups":
            data = fetcher.list_groups(instance)
        elif args.resource == "projects":
            data = fetcher.list_group_projects(instance, group_id) if group_id else fetcher.list_projects(instance)
        else:
            data = fetch_variables(instance, group_id=group_id, project_id=project_id, recursive=recursive)
    except FetchError as e:
        msg = f"Failed to retrieve {args.resource} from {side}: {e}"
        raise MigrationError(msg) from e

    output = args.output or storage.output_filename(
        args.resource,
        group_id,
        project_id,
        destination=args.destination,
        recursive=recursive,
    )
    path = storage.save_output(data, output)
    print(f"Saved {args.resource} to {path}")
    return EXIT_OK


def _run_set_variables(args: argparse.Namespace, config: MigrationConfig, http_config: HttpClientConfig) -> int:
    if bool(args.destination_project) == bool(args.destination_group):
        msg = "Either --destination-project or --destination-group must be provided"
        raise UsageError(msg)
    if args.recursive and not args.destination_group:
        msg = "Recursive mode requires --destination-group"
        raise UsageError(msg)

    side: Side = "source" if args.source else "destination"
    migrator = Migrator(_connect(config, side, http_config), skip_existing=args.skip_existing)

    if args.recursive:
        result = migrator.replay_project_map(storage.load_record_map(args.input), args.destination_group)
    elif args.destination_group:
        result = migrator.replay_records("group", args.destination_group, storage.load_record_list(args.input))
    else:
        result = migrator.replay_records("project", args.destination_project, storage.load_record_list(args.input))

    _print_summary("Variables set", result)
    return _exit_code(result)


def _run_migrate_variables(args: argparse.Namespace, config: MigrationConfig, http_config: HttpClientConfig) -> int:
    if args.group and args.project:
        msg = "Use either a source group (-g) or a source project (-p), not both"
        raise UsageError(msg)
    if not ((args.group and args.destination_group) or (args.project and args.destination_project)):
        msg = (
            "Source and destination IDs must be provided using one of:\n"
            "  - Source group (-g) and destination group (--destination-group)\n"
            "  - Source project (-p) and destination project (--destination-project)"
        )
        raise UsageError(msg)
    if args.recursive and not args.group:
        msg = "Recursive mode is not supported for individual projects"
        raise UsageError(msg)

    migrator = Migrator(
        _connect(config, "destination", http_config),
        source=_connect(config, "source", http_config),
        skip_existing=args.skip_existing,
    )
    snapshot_path = storage.output_filename("variables", args.group, args.project, recursive=args.recursive)
    snapshot = partial(storage.save_output, path=snapshot_path)

    if args.group and args.recursive:
        result = migrator.migrate_group_recursive(args.group, args.destination_group, snapshot=snapshot)
    elif args.group:
        result = migrator.migrate_group(args.group, args.destination_group, snapshot=snapshot)
    else:
        result = migrator.migrate_project(args.project, args.destination_project, snapshot=snapshot)

    _print_summary("Variables migration completed", result)
    return _exit_code(result)


def _run_mirror(
    args: argparse.Namespace,
    config: MigrationConfig,
    http_config: HttpClientConfig,
    config_path: Path,
) -> int:
    service = MirrorService(
        _connect(config, "source", http_config),
        _connect(config, "destination", http_config),
        ConfigCredentialProvider(config, config_path),
    )

    if args.source_project and args.target_project:
        _ = service.mirror_project(args.source_project, args.target_project)
        print(f"Mirror created on project {args.target_project}")
        return EXIT_OK
    if args.source_group and args.target_group:
        result = service.mirror_group(args.source_group, args.target_group)
        _print_summary("Mirroring completed", result)
        return _exit_code(result)

    msg = "Must specify either project IDs (-p, -P) or group IDs (-g, -G)"
    raise UsageError(msg)


def run(args: argparse.Namespace) -> int:
    """Execute the parsed command and return the process exit code."""
    config_path = Path(args.config) if args.config else default_config_path()
    config = load_config(config_path)
    http_config = HttpClientConfig(timeout=args.timeout, skip_tls_verify=args.insecure)

    if args.command == "get":
        return _run_get(args, config, http_config)
    if args.command == "set":
        return _run_set_variables(args, config, http_config)
    if args.command == "migrate":
        return _run_migrate_variables(args, config, http_config)
    return _run_mirror(args, config, http_config, config_path)


def main(argv: Sequence[str] | None = None) -> None:
    """Main entry point."""
    args = parse_arguments(argv)
    setup_logging(verbosity=args.verbose)

    try:
        exit_code = run(args)
    except MigrationError as e:
        logger.error(f"Error: {e}")
        sys.exit(EXIT_ERROR)

    sys.exit(exit_code)
