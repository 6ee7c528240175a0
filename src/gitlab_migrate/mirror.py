"""Remote mirror registration between instances.

A mirror is registered on a destination project and points at
``{destination base URL}/{source path_with_namespace}.git`` with the mirror
credentials embedded in the URL. Credentials come from an injected
CredentialProvider so the workflow itself never touches the terminal.
"""

from __future__ import annotations

import getpass
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any
from urllib.parse import quote, urlsplit, urlunsplit

from . import fetcher
from .config import save_config
from .exceptions import FetchError, MigrationError
from .models import MigrationResult, MigrationStats, MirrorCredentials, MirrorLink, ProjectRecord
from .resolver import NamespacedNameMatcher, resolve
from .utils import redact_url, sanitize_error

if TYPE_CHECKING:
    from pathlib import Path

    from .config import MigrationConfig
    from .gitlab_utils import GitLabInstance
    from .protocols import CredentialProvider, MatchStrategy

logger: logging.Logger = logging.getLogger(__name__)


def build_mirror_url(base_url: str, credentials: MirrorCredentials, path_with_namespace: str) -> str:
    """Embed credentials in ``base_url`` and append ``/{path_with_namespace}.git``."""
    parts = urlsplit(base_url.rstrip("/"))
    userinfo = f"{quote(credentials.user, safe='')}:{quote(credentials.password, safe='')}"
    # Host and port as written, so IPv6 literals keep their brackets
    host = parts.netloc.rpartition("@")[2]
    netloc = f"{userinfo}@{host}"
    path = f"{parts.path}/{path_with_namespace.strip('/')}.git"
    return urlunsplit((parts.scheme, netloc, path, "", ""))


class StaticCredentialProvider:
    """Credentials known up front."""

    _credentials: MirrorCredentials

    def __init__(self, user: str, password: str) -> None:
        self._credentials = MirrorCredentials(user=user, password=password)

    def get_credentials(self) -> MirrorCredentials:
        return self._credentials


class ConfigCredentialProvider:
    """Reads mirror credentials from the configuration, asking once if they are missing.

    Credentials entered at the prompt are stored back into the configuration
    file so later runs do not ask again.
    """

    config: MigrationConfig
    config_path: Path | None
    _ask: Callable[[str], str]
    _ask_secret: Callable[[str], str]

    def __init__(
        self,
        config: MigrationConfig,
        config_path: Path | None,
        *,
        ask: Callable[[str], str] = input,
        ask_secret: Callable[[str], str] = getpass.getpass,
    ) -> None:
        self.config = config
        self.config_path = config_path
        self._ask = ask
        self._ask_secret = ask_secret

    def get_credentials(self) -> MirrorCredentials:
        if not self.config.auth_user or not self.config.auth_password:
            try:
                user = self._ask("Enter mirror username: ").strip()
                password = self._ask_secret("Enter mirror password: ")
            except EOFError as e:
                msg = "Mirror credentials are not configured and input was interrupted"
                raise MigrationError(msg) from e
            if not user or not password:
                msg = "Mirror username and password must not be empty"
                raise MigrationError(msg)

            self.config.auth_user = user
            self.config.auth_password = password
            if self.config_path is not None:
                save_config(self.config, self.config_path)

        return MirrorCredentials(user=self.config.auth_user, password=self.config.auth_password)


class MirrorService:
    """Registers destination projects as remote mirrors of source repositories."""

    _source: GitLabInstance
    _destination: GitLabInstance
    _credential_provider: CredentialProvider
    _matcher: MatchStrategy
    _credentials: MirrorCredentials | None

    def __init__(
        self,
        source: GitLabInstance,
        destination: GitLabInstance,
        credential_provider: CredentialProvider,
        *,
        matcher: MatchStrategy | None = None,
    ) -> None:
        self._source = source
        self._destination = destination
        self._credential_provider = credential_provider
        self._matcher = matcher or NamespacedNameMatcher()
        self._credentials = None

    def _get_credentials(self) -> MirrorCredentials:
        if self._credentials is None:
            self._credentials = self._credential_provider.get_credentials()
        return self._credentials

    def mirror_project(self, source_project_id: str, target_project_id: str) -> dict[str, Any]:
        """Register ``target_project_id`` as a mirror of the source project.

        Returns:
            The remote mirror document created by the destination

        Raises:
            MigrationError: If the source project cannot be read or the mirror cannot be created
        """
        try:
            project = fetcher.get_project(self._source, source_project_id)
        except FetchError as e:
            msg = f"Failed to get details of source project {source_project_id}: {e}"
            raise MigrationError(msg) from e

        path_with_namespace = project.get("path_with_namespace")
        if not isinstance(path_with_namespace, str) or not path_with_namespace:
            msg = f"Source project {source_project_id} has no path_with_namespace"
            raise MigrationError(msg)

        link = MirrorLink(url=build_mirror_url(self._destination.base_url, self._get_credentials(), path_with_namespace))
        logger.debug(f"Registering mirror {redact_url(link.url)} on project {target_project_id}")

        try:
            created = self._destination.post_json(f"/projects/{target_project_id}/remote_mirrors", link.to_payload())
        except MigrationError as e:
            error = sanitize_error(str(e), [self._get_credentials().password])
            msg = f"Failed to create mirror on project {target_project_id}: {error}"
            raise MigrationError(msg) from e

        logger.info(f"Mirrored {path_with_namespace} (source {source_project_id}) to project {target_project_id}")
        return created if isinstance(created, dict) else {}

    def mirror_group(self, source_group_id: str, target_group_id: str) -> MigrationResult:
        """Mirror every source group project that has a counterpart in the target group.

        Raises:
            MigrationError: If either group's project listing cannot be fetched
        """
        try:
            source_projects = fetcher.list_group_projects(self._source, source_group_id, include_subgroups=True)
        except FetchError as e:
            msg = f"Failed to fetch source projects: {e}"
            raise MigrationError(msg) from e
        try:
            target_projects = fetcher.list_group_projects(self._destination, target_group_id, include_subgroups=True)
        except FetchError as e:
            msg = f"Failed to fetch target projects: {e}"
            raise MigrationError(msg) from e

        stats = MigrationStats()
        for source_project in source_projects:
            try:
                project = ProjectRecord.from_api(source_project)
            except (AttributeError, ValueError):
                logger.warning(f"Skipping malformed source project entry: {source_project!r}")
                stats.projects_skipped += 1
                continue

            label = self._matcher.describe(project.raw)
            target_id = resolve(project.raw, target_projects, self._matcher)
            if target_id is None:
                logger.warning(f"Target project {label} not found")
                stats.projects_skipped += 1
                continue

            try:
                _ = self.mirror_project(str(project.id), str(target_id))
            except MigrationError as e:
                logger.error(f"Error mirroring project {label}: {e}")
                stats.mirrors_failed += 1
                stats.errors.append(f"{label}: {e}")
                continue
            stats.mirrors_created += 1

        logger.info(
            f"Mirrored {stats.mirrors_created} projects from group {source_group_id} to group {target_group_id} "
            f"({stats.mirrors_failed} failed, {stats.projects_skipped} skipped)"
        )
        return MigrationResult(stats=stats)
