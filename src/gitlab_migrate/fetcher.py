"""
Paginated collection fetching with a bounded retry loop.

Collections are requested with ``per_page=100`` starting at page 1 and
concatenated until the instance returns an empty page. Page-count headers are
never consulted: the empty page is the only terminator.

Two flavours share the same loop:

- without a retry policy, the first failing page aborts the whole listing
  (used for group project listings and variable collections),
- with a ``RetryPolicy``, each page gets up to ``max_attempts`` tries with a
  fixed delay between them (used for top-level resources such as ``groups``
  and ``projects``).
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Final

from .exceptions import DecodeError, FetchError
from .models import ResourcePage

if TYPE_CHECKING:
    from .gitlab_utils import GitLabInstance
    from .models import VariableRecord

# Module-wide logger
logger: logging.Logger = logging.getLogger(__name__)

PER_PAGE: Final[int] = 100
MAX_ATTEMPTS: Final[int] = 3
RETRY_DELAY: Final[float] = 2.0


@dataclass(frozen=True)
class RetryPolicy:
    """Fixed-delay retry budget for a single page request."""

    max_attempts: int = MAX_ATTEMPTS
    delay: float = RETRY_DELAY


def fetch_page(
    instance: GitLabInstance,
    resource_path: str,
    page: int,
    query: dict[str, Any] | None = None,
) -> ResourcePage:
    """Fetch one page of ``resource_path``.

    Raises:
        FetchError: ProtocolError, TransportError or DecodeError for this page
    """
    query_data: dict[str, Any] = {"per_page": PER_PAGE, "page": page}
    if query:
        query_data.update(query)

    body = instance.get_json(f"/{resource_path.lstrip('/')}", query_data)
    if not isinstance(body, list):
        msg = f"Expected a list from {resource_path} page {page} on {instance.side}, got {type(body).__name__}"
        raise DecodeError(msg)

    logger.debug(f"Fetched {len(body)} records from {resource_path} page {page} on {instance.side}")
    return ResourcePage(page=page, records=body)


def fetch_page_with_retry(
    instance: GitLabInstance,
    resource_path: str,
    page: int,
    query: dict[str, Any] | None = None,
    retry_policy: RetryPolicy | None = None,
) -> ResourcePage:
    """Fetch one page, retrying transport, protocol and decode errors.

    Raises:
        FetchError: After ``max_attempts`` failed attempts
    """
    policy = retry_policy or RetryPolicy()
    last_error: FetchError | None = None

    for attempt in range(1, policy.max_attempts + 1):
        if attempt > 1:
            logger.warning(f"Retrying {resource_path} page {page} (attempt {attempt}/{policy.max_attempts})")
            time.sleep(policy.delay)
        try:
            return fetch_page(instance, resource_path, page, query)
        except FetchError as e:
            last_error = e
            logger.warning(f"Attempt {attempt}/{policy.max_attempts} for {resource_path} page {page} failed: {e}")

    msg = f"Failed to fetch {resource_path} page {page} from {instance.side} after {policy.max_attempts} attempts"
    raise FetchError(msg) from last_error


def fetch_all(
    instance: GitLabInstance,
    resource_path: str,
    query: dict[str, Any] | None = None,
    retry_policy: RetryPolicy | None = None,
) -> list[Any]:
    """Fetch every record of a paginated collection.

    Args:
        instance: Instance to read from
        resource_path: Path relative to /api/v4, e.g. ``groups/42/projects``
        query: Extra query parameters sent with every page
        retry_policy: Retry each page under this policy; None fails on the first error

    Returns:
        All records, in the order the instance returned them

    Raises:
        FetchError: If a page cannot be fetched
    """
    records: list[Any] = []
    page = 1
    while True:
        if retry_policy is None:
            result = fetch_page(instance, resource_path, page, query)
        else:
            result = fetch_page_with_retry(instance, resource_path, page, query, retry_policy)
        if result.is_empty:
            break
        records.extend(result.records)
        page += 1

    logger.info(f"Fetched {len(records)} records from {resource_path} on {instance.side}")
    return records


def list_groups(instance: GitLabInstance) -> list[dict[str, Any]]:
    """All groups visible to the instance token."""
    return fetch_all(instance, "groups", retry_policy=RetryPolicy())


def list_projects(instance: GitLabInstance) -> list[dict[str, Any]]:
    """All projects visible to the instance token."""
    return fetch_all(instance, "projects", retry_policy=RetryPolicy())


def list_group_projects(
    instance: GitLabInstance,
    group_id: str | int,
    *,
    include_subgroups: bool = False,
) -> list[dict[str, Any]]:
    """All projects of a group, optionally including its subgroups."""
    query = {"include_subgroups": "true"} if include_subgroups else None
    return fetch_all(instance, f"groups/{group_id}/projects", query)


def get_group_variables(instance: GitLabInstance, group_id: str | int) -> list[VariableRecord]:
    """Variables attached to the group itself, not to its projects."""
    return fetch_all(instance, f"groups/{group_id}/variables")


def get_project_variables(instance: GitLabInstance, project_id: str | int) -> list[VariableRecord]:
    return fetch_all(instance, f"projects/{project_id}/variables")


def get_project(instance: GitLabInstance, project_id: str | int) -> dict[str, Any]:
    """Fetch a single project document.

    Raises:
        FetchError: If the request fails or the body is not a JSON object
    """
    body = instance.get_json(f"/projects/{project_id}")
    if not isinstance(body, dict):
        msg = f"Expected a project object for {project_id} on {instance.side}, got {type(body).__name__}"
        raise DecodeError(msg)
    return body
