"""
Tests for replaying variable records onto a target.
"""

from typing import Any

import pytest

from gitlab_migrate.exceptions import MigrationError
from gitlab_migrate.transfer import TransferExecutor


def _variables(count: int) -> list[dict[str, Any]]:
    return [{"key": f"VAR_{i}", "value": f"value-{i}", "protected": False} for i in range(1, count + 1)]


@pytest.mark.unit
class TestCreateRecordsFor:
    def test_creates_records_in_order(self, destination_api: Any, destination: Any) -> None:
        records = _variables(3)

        report = TransferExecutor(destination).create_records_for("project", "42", records)

        assert report.created == 3
        assert [path for path, _ in destination_api.post_calls] == ["/projects/42/variables"] * 3
        assert [body for _, body in destination_api.post_calls] == records

    def test_group_target_path(self, destination_api: Any, destination: Any) -> None:
        _ = TransferExecutor(destination).create_records_for("group", 9, _variables(1))

        assert destination_api.post_calls[0][0] == "/groups/9/variables"

    def test_rejected_record_does_not_stop_batch(self, destination_api: Any, destination: Any) -> None:
        """Records 1, 2, 4 and 5 are created when the destination rejects record 3."""
        destination_api.post_failures[("/projects/42/variables", 3)] = 422
        records = _variables(5)

        report = TransferExecutor(destination).create_records_for("project", "42", records)

        assert len(destination_api.post_calls) == 5
        assert [o.status for o in report.outcomes] == ["created", "created", "failed", "created", "created"]
        assert report.outcomes[2].error is not None
        assert "422" in report.outcomes[2].error
        stored = destination_api.variables[("projects", "42")]
        assert [v["key"] for v in stored] == ["VAR_1", "VAR_2", "VAR_4", "VAR_5"]

    def test_records_are_sent_verbatim(self, destination_api: Any, destination: Any) -> None:
        record = {
            "key": "DEPLOY",
            "value": "x",
            "variable_type": "file",
            "environment_scope": "production",
            "masked": True,
            "raw": False,
            "description": None,
            "unknown_future_field": {"nested": [1, 2]},
        }

        _ = TransferExecutor(destination).create_records_for("project", "1", [record])

        assert destination_api.post_calls == [("/projects/1/variables", record)]

    def test_non_object_record_fails_without_request(self, destination_api: Any, destination: Any) -> None:
        records: list[Any] = ["KEY=value", {"key": "OK", "value": "1"}]

        report = TransferExecutor(destination).create_records_for("project", "1", records)

        assert [o.status for o in report.outcomes] == ["failed", "created"]
        assert len(destination_api.post_calls) == 1

    def test_empty_batch(self, destination_api: Any, destination: Any) -> None:
        report = TransferExecutor(destination).create_records_for("project", "1", [])

        assert report.outcomes == []
        assert destination_api.post_calls == []

    def test_repeated_transfer_creates_again(self, destination_api: Any, destination: Any) -> None:
        executor = TransferExecutor(destination)
        records = _variables(2)

        _ = executor.create_records_for("project", "1", records)
        report = executor.create_records_for("project", "1", records)

        assert report.created == 2
        assert len(destination_api.variables[("projects", "1")]) == 4


@pytest.mark.unit
class TestSkipExisting:
    def test_skips_existing_key_and_scope(self, destination_api: Any, destination: Any) -> None:
        destination_api.variables[("projects", "1")] = [
            {"key": "VAR_1", "value": "old", "environment_scope": "*"},
            {"key": "VAR_2", "value": "old", "environment_scope": "staging"},
        ]
        records = [
            {"key": "VAR_1", "value": "new"},
            {"key": "VAR_2", "value": "new", "environment_scope": "production"},
        ]

        report = TransferExecutor(destination).create_records_for("project", "1", records, skip_existing=True)

        assert [o.status for o in report.outcomes] == ["skipped", "created"]
        assert [body for _, body in destination_api.post_calls] == [records[1]]

    def test_lookup_failure_raises(self, destination: Any) -> None:
        # Unknown resource path: the lookup answers 404
        with pytest.raises(MigrationError, match="Failed to list existing variables"):
            _ = TransferExecutor(destination).create_records_for("project", "x", [], skip_existing=True)
