"""
Tests for snapshot file naming, writing and reading.
"""

import json
from pathlib import Path

import pytest

from gitlab_migrate.exceptions import InputFileError, MigrationError
from gitlab_migrate.storage import load_record_list, load_record_map, output_filename, save_output


@pytest.mark.unit
class TestOutputFilename:
    @pytest.mark.parametrize(
        ("command", "group_id", "project_id", "recursive", "expected"),
        [
            ("groups", None, None, False, "s-gitlab_get_groups.json"),
            ("projects", None, None, False, "s-gitlab_get_projects.json"),
            ("projects", "42", None, False, "s-gitlab_get_projects_g-42.json"),
            ("variables", "42", None, False, "s-gitlab_get_variables_g-42.json"),
            ("variables", "42", None, True, "s-gitlab_get_variables_g-42_recursive.json"),
            ("variables", None, "7", False, "s-gitlab_get_variables_p-7.json"),
        ],
    )
    def test_names(
        self, command: str, group_id: str | None, project_id: str | None, recursive: bool, expected: str
    ) -> None:
        assert output_filename(command, group_id, project_id, recursive=recursive) == Path("data") / expected

    def test_destination_prefix(self) -> None:
        assert output_filename("groups", destination=True).name == "d-gitlab_get_groups.json"

    def test_unknown_command(self) -> None:
        with pytest.raises(ValueError, match="Unknown command"):
            _ = output_filename("mirrors")


@pytest.mark.unit
class TestSaveOutput:
    def test_writes_indented_json(self, tmp_path: Path) -> None:
        path = save_output([{"key": "NAME", "value": "Grüße"}], tmp_path / "data" / "out.json")

        text = path.read_text(encoding="utf-8")
        assert text.startswith("[\n  {")
        assert "Grüße" in text
        assert text.endswith("\n")
        assert json.loads(text) == [{"key": "NAME", "value": "Grüße"}]

    def test_unserializable_data(self, tmp_path: Path) -> None:
        with pytest.raises(MigrationError, match="Failed to save output"):
            _ = save_output({"when": object()}, tmp_path / "out.json")


@pytest.mark.unit
class TestLoadRecords:
    def test_record_list(self, tmp_path: Path) -> None:
        path = tmp_path / "vars.json"
        _ = path.write_text('[{"key": "A", "extra": {"x": 1}}]', encoding="utf-8")

        assert load_record_list(path) == [{"key": "A", "extra": {"x": 1}}]

    def test_record_list_rejects_object(self, tmp_path: Path) -> None:
        path = tmp_path / "vars.json"
        _ = path.write_text('{"key": "A"}', encoding="utf-8")

        with pytest.raises(InputFileError, match="JSON list"):
            _ = load_record_list(path)

    def test_record_map(self, tmp_path: Path) -> None:
        path = tmp_path / "vars.json"
        _ = path.write_text('{"1": {"project_name": "A", "variables": []}, "2": "junk"}', encoding="utf-8")

        assert load_record_map(path) == {"1": {"project_name": "A", "variables": []}, "2": "junk"}

    def test_record_map_rejects_list(self, tmp_path: Path) -> None:
        path = tmp_path / "vars.json"
        _ = path.write_text("[]", encoding="utf-8")

        with pytest.raises(InputFileError, match="JSON object"):
            _ = load_record_map(path)

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(InputFileError, match="Could not read input file"):
            _ = load_record_list(tmp_path / "nope.json")

    def test_malformed_json(self, tmp_path: Path) -> None:
        path = tmp_path / "vars.json"
        _ = path.write_text("[{", encoding="utf-8")

        with pytest.raises(InputFileError, match="Could not parse JSON"):
            _ = load_record_list(path)
