"""
Pytest configuration and fixtures.

The python-gitlab client is replaced by FakeGitLab, an in-memory stand-in
that answers the handful of REST endpoints the tool uses. It paginates like
GitLab (``per_page``/``page``, empty page past the end) and records every
request so tests can assert on call counts and payloads.
"""

from __future__ import annotations

import copy
import re
from typing import Any
from unittest.mock import Mock

import pytest
from gitlab.exceptions import GitlabHttpError

from gitlab_migrate.config import InstanceEndpoint, MigrationConfig
from gitlab_migrate.gitlab_utils import GitLabInstance

_GROUP_PROJECTS = re.compile(r"^/groups/(\d+)/projects$")
_VARIABLES = re.compile(r"^/(groups|projects)/(\d+)/variables$")
_PROJECT = re.compile(r"^/projects/(\d+)$")
_REMOTE_MIRRORS = re.compile(r"^/projects/(\d+)/remote_mirrors$")


def make_response(body: Any) -> Mock:
    """A requests.Response stand-in whose json() returns ``body``."""
    response = Mock()
    response.json.return_value = body
    return response


def make_project(project_id: int, name: str, namespace: str = "group") -> dict[str, Any]:
    return {
        "id": project_id,
        "name": name,
        "path_with_namespace": f"{namespace}/{name.lower()}",
        "namespace": {"id": 1, "name": namespace, "full_path": namespace},
    }


class FakeGitLab:
    """In-memory GitLab REST API answering http_get/http_post like python-gitlab."""

    def __init__(self) -> None:
        self.group_projects: dict[str, list[dict[str, Any]]] = {}
        self.projects: dict[str, dict[str, Any]] = {}
        self.variables: dict[tuple[str, str], list[dict[str, Any]]] = {}
        self.mirrors: dict[str, list[dict[str, Any]]] = {}
        self.top_level: dict[str, list[dict[str, Any]]] = {}
        # (path, 1-based index of the POST to that path) -> status code to fail with
        self.post_failures: dict[tuple[str, int], int] = {}
        self.get_calls: list[tuple[str, dict[str, Any]]] = []
        self.post_calls: list[tuple[str, Any]] = []

    def add_group(self, group_id: int, projects: list[dict[str, Any]]) -> None:
        self.group_projects[str(group_id)] = projects
        for project in projects:
            self.projects[str(project["id"])] = project

    def _collection(self, path: str) -> list[dict[str, Any]]:
        if match := _GROUP_PROJECTS.match(path):
            if match.group(1) not in self.group_projects:
                raise GitlabHttpError("404 Group Not Found", response_code=404)
            return self.group_projects[match.group(1)]
        if match := _VARIABLES.match(path):
            return self.variables.get((match.group(1), match.group(2)), [])
        if path.lstrip("/") in self.top_level:
            return self.top_level[path.lstrip("/")]
        raise GitlabHttpError("404 Not Found", response_code=404)

    def http_get(self, path: str, query_data: dict[str, Any] | None = None, **kwargs: Any) -> Mock:
        query = dict(query_data or {})
        self.get_calls.append((path, query))

        if match := _PROJECT.match(path):
            if match.group(1) not in self.projects:
                raise GitlabHttpError("404 Project Not Found", response_code=404)
            return make_response(copy.deepcopy(self.projects[match.group(1)]))

        records = self._collection(path)
        per_page = int(query.get("per_page", 20))
        page = int(query.get("page", 1))
        start = (page - 1) * per_page
        return make_response(copy.deepcopy(records[start : start + per_page]))

    def http_post(self, path: str, post_data: Any = None, **kwargs: Any) -> Any:
        self.post_calls.append((path, copy.deepcopy(post_data)))
        attempt = sum(1 for p, _ in self.post_calls if p == path)
        status = self.post_failures.get((path, attempt))
        if status is not None:
            raise GitlabHttpError(f"{status} rejected", response_code=status)

        if match := _VARIABLES.match(path):
            self.variables.setdefault((match.group(1), match.group(2)), []).append(copy.deepcopy(post_data))
            return copy.deepcopy(post_data)
        if match := _REMOTE_MIRRORS.match(path):
            mirror = {"id": len(self.post_calls), **post_data}
            self.mirrors.setdefault(match.group(1), []).append(mirror)
            return mirror
        raise GitlabHttpError("404 Not Found", response_code=404)


def make_instance(client: Any, side: str = "source", base_url: str | None = None) -> GitLabInstance:
    url = base_url or f"https://{side}.gitlab.example.com"
    endpoint = InstanceEndpoint(base_url=url, token=f"{side}-token", side=side)  # type: ignore[arg-type]
    return GitLabInstance(endpoint=endpoint, client=client)


@pytest.fixture
def instance_factory() -> Any:
    """Build a GitLabInstance around any client stand-in."""
    return make_instance


@pytest.fixture
def project_factory() -> Any:
    return make_project


@pytest.fixture
def source_api() -> FakeGitLab:
    return FakeGitLab()


@pytest.fixture
def destination_api() -> FakeGitLab:
    return FakeGitLab()


@pytest.fixture
def source(source_api: FakeGitLab) -> GitLabInstance:
    return make_instance(source_api, "source")


@pytest.fixture
def destination(destination_api: FakeGitLab) -> GitLabInstance:
    return make_instance(destination_api, "destination")


@pytest.fixture
def migration_config() -> MigrationConfig:
    return MigrationConfig(
        source_base_url="https://source.gitlab.example.com",
        source_access_token="source-token",  # noqa: S106
        destination_base_url="https://destination.gitlab.example.com",
        destination_access_token="destination-token",  # noqa: S106
    )
