"""Tests for the praxis CLI: scan, rules, check-rules, init."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from click.testing import CliRunner

from praxis import __version__
from praxis.cli import EXIT_CONFIG_ERROR, EXIT_FINDINGS, EXIT_OUTPUT_ERROR, main
from praxis.rules.loader import default_rules_text

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    WriteSource = Callable[[str, str], Path]

NAMING_ONLY = (
    "@MainActor\n"
    "final class Feed: ObservableObject {\n"
    "    @Published var loading: Bool = false\n"
    "}\n"
)


# ---------------------------------------------------------------------------
# scan
# ---------------------------------------------------------------------------


class TestScanExitCodes:
    """Exit status contract of ``praxis scan``."""

    def test_clean_project(
        self, tmp_project: Path, write_source: WriteSource, clean_swift: str
    ) -> None:
        write_source("Profile.swift", clean_swift)
        result = CliRunner().invoke(main, ["scan", "--project", str(tmp_project)])

        assert result.exit_code == 0, result.output
        assert result.output == ""

    def test_empty_project(self, tmp_project: Path) -> None:
        result = CliRunner().invoke(
            main, ["scan", "--project", str(tmp_project), "--format", "json"]
        )

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["summary"]["compliance_ratio"] == 1.0
        assert data["summary"]["files_scanned"] == 0

    def test_critical_findings(
        self, tmp_project: Path, write_source: WriteSource, dirty_swift: str
    ) -> None:
        write_source("Feed.swift", dirty_swift)
        result = CliRunner().invoke(main, ["scan", "--project", str(tmp_project)])

        assert result.exit_code == EXIT_FINDINGS
        lines = result.output.splitlines()
        assert len(lines) == 11
        assert lines[0].startswith("critical:memory-delegate-weak:Sources/Feed.swift:6:")
        assert all(line.split(":")[0] in ("critical", "warning") for line in lines)

    def test_warnings_only(self, tmp_project: Path, write_source: WriteSource) -> None:
        write_source("Feed.swift", NAMING_ONLY)
        result = CliRunner().invoke(main, ["scan", "--project", str(tmp_project)])

        assert result.exit_code == 0
        assert result.output.strip() == (
            "warning:naming-bool-state-prefix:Sources/Feed.swift:3:naming"
        )

    def test_fail_on_warning(self, tmp_project: Path, write_source: WriteSource) -> None:
        write_source("Feed.swift", NAMING_ONLY)
        result = CliRunner().invoke(
            main, ["scan", "--project", str(tmp_project), "--fail-on-warning"]
        )
        assert result.exit_code == EXIT_FINDINGS

    def test_duplicate_rule_id_is_config_error(
        self, tmp_project: Path, write_source: WriteSource, dirty_swift: str
    ) -> None:
        write_source("Feed.swift", dirty_swift)
        rules_path = tmp_project / "rules.yml"
        rules_path.write_text(
            "version: 1\n"
            "rules:\n"
            "  - id: dup\n"
            "    category: naming\n"
            "    matcher: {kind: pattern, regex: x}\n"
            "    message: m\n"
            "  - id: dup\n"
            "    category: naming\n"
            "    matcher: {kind: pattern, regex: y}\n"
            "    message: m\n"
        )
        result = CliRunner().invoke(
            main, ["scan", "--project", str(tmp_project), "--rules", str(rules_path)]
        )

        assert result.exit_code == EXIT_CONFIG_ERROR
        assert "duplicate rule id 'dup'" in result.output

    def test_invalid_project_config(self, tmp_project: Path) -> None:
        (tmp_project / "praxis.yml").write_text("max_workers: lots\n")
        result = CliRunner().invoke(main, ["scan", "--project", str(tmp_project)])

        assert result.exit_code == EXIT_CONFIG_ERROR
        assert "max_workers" in result.output

    def test_unwritable_output(
        self, tmp_project: Path, write_source: WriteSource, clean_swift: str
    ) -> None:
        write_source("Profile.swift", clean_swift)
        target = tmp_project / "missing" / "report.txt"
        result = CliRunner().invoke(
            main, ["scan", "--project", str(tmp_project), "--output", str(target)]
        )

        assert result.exit_code == EXIT_OUTPUT_ERROR
        assert "cannot write report" in result.output


class TestScanOutput:
    """Formats and destinations of ``praxis scan``."""

    def test_json(self, tmp_project: Path, write_source: WriteSource, dirty_swift: str) -> None:
        write_source("Feed.swift", dirty_swift)
        result = CliRunner().invoke(
            main, ["scan", "--project", str(tmp_project), "--format", "json"]
        )

        assert result.exit_code == EXIT_FINDINGS
        data = json.loads(result.output)
        assert data["summary"]["critical_count"] == 4
        assert data["summary"]["warning_count"] == 7
        assert data["summary"]["quality_label"] == "Poor"

    def test_rich_to_file(
        self, tmp_project: Path, write_source: WriteSource, dirty_swift: str
    ) -> None:
        write_source("Feed.swift", dirty_swift)
        target = tmp_project / "report.txt"
        result = CliRunner().invoke(
            main, ["scan", "--project", str(tmp_project), "--output", str(target)]
        )

        assert result.exit_code == EXIT_FINDINGS
        text = target.read_text(encoding="utf-8")
        assert "Critical Issues (4 found)" in text
        assert "Code Quality: Poor" in text
        assert "\x1b[" not in text

    def test_explicit_rules_file(
        self, tmp_project: Path, write_source: WriteSource, dirty_swift: str
    ) -> None:
        write_source("Feed.swift", dirty_swift)
        rules_path = tmp_project / "rules.yml"
        rules_path.write_text(
            "version: 1\n"
            "rules:\n"
            "  - id: count-zero\n"
            "    category: performance\n"
            "    matcher: {kind: pattern, regex: '\\.count == 0'}\n"
            "    message: '{snippet}'\n"
        )
        result = CliRunner().invoke(
            main, ["scan", "--project", str(tmp_project), "--rules", str(rules_path)]
        )

        assert result.exit_code == 0
        assert result.output.strip() == "warning:count-zero:Sources/Feed.swift:16:performance"

    def test_unreadable_file_reported(self, tmp_project: Path) -> None:
        (tmp_project / "Sources" / "Bad.swift").write_bytes(b"\xff\xfe\x00")
        result = CliRunner().invoke(
            main, ["scan", "--project", str(tmp_project), "--format", "porcelain"]
        )

        assert result.exit_code == 0
        assert "warning:source-unreadable:Sources/Bad.swift:1:structure" in result.output

    def test_unreadable_file_does_not_mask_critical_findings(
        self,
        tmp_project: Path,
        write_source: WriteSource,
        clean_swift: str,
        dirty_swift: str,
    ) -> None:
        for idx in range(3):
            write_source(f"Clean{idx}.swift", clean_swift)
        write_source("Feed.swift", dirty_swift)
        (tmp_project / "Sources" / "Bad.swift").write_bytes(b"let x = 1\n\xc3\x28\n")
        result = CliRunner().invoke(
            main, ["scan", "--project", str(tmp_project), "--format", "json"]
        )

        assert result.exit_code == EXIT_FINDINGS
        data = json.loads(result.output)
        assert data["summary"]["critical_count"] == 4
        assert data["summary"]["files_scanned"] == 5
        assert data["load_errors"] == [
            {"path": "Sources/Bad.swift", "detail": "invalid UTF-8 at byte 10"}
        ]
        assert {f["path"] for f in data["critical"]} == {"Sources/Feed.swift"}


# ---------------------------------------------------------------------------
# rules / check-rules
# ---------------------------------------------------------------------------


class TestRulesCommand:
    """Tests for ``praxis rules``."""

    def test_json_listing(self, tmp_project: Path) -> None:
        result = CliRunner().invoke(
            main, ["rules", "--project", str(tmp_project), "--format", "json"]
        )

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data[0]["id"] == "naming-bool-settings-field"
        assert data[-1]["id"] == "source-unreadable"
        assert {"id", "category", "severity", "kind", "description"} == set(data[0])

    def test_respects_project_overrides(self, tmp_project: Path) -> None:
        (tmp_project / "praxis.yml").write_text("disabled_rules: [error-force-try]\n")
        result = CliRunner().invoke(
            main, ["rules", "--project", str(tmp_project), "--format", "json"]
        )

        ids = [rule["id"] for rule in json.loads(result.output)]
        assert "error-force-try" not in ids

    def test_rich_table(self, tmp_project: Path) -> None:
        result = CliRunner().invoke(main, ["rules", "--project", str(tmp_project)])

        assert result.exit_code == 0
        assert "18 rules" in result.output


class TestCheckRules:
    """Tests for ``praxis check-rules``."""

    def test_valid(self, tmp_path: Path) -> None:
        rules_path = tmp_path / "rules.yml"
        rules_path.write_text(default_rules_text(), encoding="utf-8")

        result = CliRunner().invoke(main, ["check-rules", str(rules_path)])

        assert result.exit_code == 0
        assert "rules.yml: 17 rules OK" in result.output

    def test_unknown_kind(self, tmp_path: Path) -> None:
        rules_path = tmp_path / "rules.yml"
        rules_path.write_text(
            "version: 1\n"
            "rules:\n"
            "  - id: a\n"
            "    category: naming\n"
            "    matcher: {kind: ast}\n"
            "    message: m\n"
        )
        result = CliRunner().invoke(main, ["check-rules", str(rules_path)])

        assert result.exit_code == EXIT_CONFIG_ERROR
        assert "Error [unknown-matcher-kind]" in result.output


# ---------------------------------------------------------------------------
# init / version
# ---------------------------------------------------------------------------


class TestInit:
    """Tests for ``praxis init``."""

    def test_creates_files(self, tmp_path: Path) -> None:
        result = CliRunner().invoke(main, ["init", "--project", str(tmp_path)])

        assert result.exit_code == 0, result.output
        assert "Created praxis.yml" in result.output
        assert (tmp_path / "praxis.yml").is_file()
        assert (tmp_path / "praxis-rules.yml").read_text(encoding="utf-8") == default_rules_text()

    def test_refuses_to_overwrite(self, tmp_path: Path) -> None:
        (tmp_path / "praxis.yml").write_text("max_workers: 1\n")
        result = CliRunner().invoke(main, ["init", "--project", str(tmp_path)])

        assert result.exit_code == 1
        assert "already exist" in result.output
        assert (tmp_path / "praxis.yml").read_text() == "max_workers: 1\n"

    def test_force(self, tmp_path: Path) -> None:
        (tmp_path / "praxis.yml").write_text("max_workers: 1\n")
        result = CliRunner().invoke(main, ["init", "--project", str(tmp_path), "--force"])

        assert result.exit_code == 0
        assert "rules: praxis-rules.yml" in (tmp_path / "praxis.yml").read_text()

    def test_initialised_project_scans(
        self, tmp_project: Path, write_source: WriteSource, clean_swift: str
    ) -> None:
        write_source("Profile.swift", clean_swift)
        CliRunner().invoke(main, ["init", "--project", str(tmp_project)])

        result = CliRunner().invoke(main, ["scan", "--project", str(tmp_project)])

        assert result.exit_code == 0, result.output


class TestVersion:
    def test_version(self) -> None:
        result = CliRunner().invoke(main, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output
