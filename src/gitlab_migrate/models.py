"""Data models exchanged between the fetcher, resolver, executor and orchestrator.

Variable records are deliberately *not* modelled: they are opaque
provider-defined documents that travel as plain dictionaries from the source
instance, through snapshot files, to the destination instance without any
field being added, removed or renamed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

VariableRecord = dict[str, Any]
TargetKind = Literal["group", "project"]


@dataclass
class ResourcePage:
    """One page of a collection response."""

    page: int
    records: list[Any] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.records


@dataclass(frozen=True)
class ProjectRecord:
    """The few project fields the engine reads; ``raw`` keeps the rest."""

    id: int
    name: str
    namespace_name: str | None = None
    path_with_namespace: str | None = None
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> ProjectRecord:
        """Build a record from a project document as returned by the API.

        Raises:
            ValueError: If the document has no usable id or name
        """
        project_id = data.get("id")
        name = data.get("name")
        if isinstance(project_id, bool) or not isinstance(project_id, (int, float)):
            msg = f"project document has no numeric id: {data!r}"
            raise ValueError(msg)
        if not isinstance(name, str):
            msg = f"project {project_id} has no name"
            raise ValueError(msg)

        namespace = data.get("namespace")
        namespace_name = namespace.get("name") if isinstance(namespace, dict) else None
        path = data.get("path_with_namespace")
        return cls(
            id=int(project_id),
            name=name,
            namespace_name=namespace_name if isinstance(namespace_name, str) else None,
            path_with_namespace=path if isinstance(path, str) else None,
            raw=data,
        )


@dataclass
class ProjectVariables:
    """A source project's display name and the variables attached to it.

    ``namespace`` is the source project's namespace document, kept so that
    strategies matching on more than the name can resolve the project too.
    """

    project_name: str
    variables: list[VariableRecord] = field(default_factory=list)
    namespace: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"project_name": self.project_name, "variables": self.variables}
        if self.namespace is not None:
            data["namespace"] = self.namespace
        return data


def source_match_document(entry: dict[str, Any]) -> dict[str, Any]:
    """Build the document a MatchStrategy receives from a snapshot entry."""
    document: dict[str, Any] = {"name": entry.get("project_name")}
    namespace = entry.get("namespace")
    if isinstance(namespace, dict):
        document["namespace"] = namespace
    return document


@dataclass
class PlanEntry:
    """One matched project in a transfer plan."""

    source_id: str
    destination_id: int
    project_name: str
    variables: list[VariableRecord] = field(default_factory=list)


@dataclass
class TransferPlan:
    """Source project id -> matched destination project and its variables.

    Built completely before any write happens. Source projects without a
    destination counterpart are listed in ``skipped`` and never in ``entries``.
    """

    entries: dict[str, PlanEntry] = field(default_factory=dict)
    skipped: list[str] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.entries)

    def __contains__(self, source_id: object) -> bool:
        return source_id in self.entries


@dataclass(frozen=True)
class MirrorLink:
    """Body of a remote mirror registration request."""

    url: str
    enabled: bool = True

    def to_payload(self) -> dict[str, Any]:
        return {"enabled": self.enabled, "url": self.url}


@dataclass(frozen=True)
class MirrorCredentials:
    """User name and password embedded in mirror URLs."""

    user: str
    password: str


@dataclass
class TransferOutcome:
    """Result of submitting one record."""

    index: int
    record: Any
    status: Literal["created", "failed", "skipped"]
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.status != "failed"


@dataclass
class TransferReport:
    """Per-record outcomes of one batch against one target."""

    target: TargetKind
    target_id: str
    outcomes: list[TransferOutcome] = field(default_factory=list)

    @property
    def created(self) -> int:
        return sum(1 for o in self.outcomes if o.status == "created")

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if o.status == "failed")

    @property
    def skipped(self) -> int:
        return sum(1 for o in self.outcomes if o.status == "skipped")


@dataclass
class MigrationStats:
    """Statistics collected during a migration run."""

    variables_created: int = 0
    variables_failed: int = 0
    variables_skipped: int = 0
    projects_migrated: int = 0
    projects_skipped: int = 0
    projects_failed: int = 0
    mirrors_created: int = 0
    mirrors_failed: int = 0
    errors: list[str] = field(default_factory=list)

    def add_report(self, report: TransferReport) -> None:
        self.variables_created += report.created
        self.variables_failed += report.failed
        self.variables_skipped += report.skipped
        self.errors.extend(
            f"{report.target} {report.target_id} record {o.index + 1}: {o.error}"
            for o in report.outcomes
            if o.status == "failed"
        )

    @property
    def has_failures(self) -> bool:
        return self.variables_failed > 0 or self.mirrors_failed > 0 or self.projects_failed > 0


@dataclass
class MigrationResult:
    """Result of a migration run."""

    stats: MigrationStats
    reports: list[TransferReport] = field(default_factory=list)
    plan: TransferPlan | None = None

    @property
    def success(self) -> bool:
        """A batch completes even with per-record failures; this says whether any occurred."""
        return not self.stats.has_failures
