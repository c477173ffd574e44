"""Tests for praxis.engine.coordinator - scan lifecycle, worker pool, end-to-end scans."""

from __future__ import annotations

import textwrap
from typing import TYPE_CHECKING

import pytest
import yaml

import praxis.engine.coordinator as coordinator_module
from praxis.engine.coordinator import ScanCoordinator, ScanState, build_rule_loader, run_scan
from praxis.engine.report import format_json
from praxis.infrastructure.discovery import discover_files
from praxis.rules.loader import (
    DuplicateRuleIdError,
    default_rules_text,
    load_default_rules,
    parse_rules,
)

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    from praxis.findings import Finding
    from praxis.rules.model import Rule, RuleSet
    from praxis.source.unit import SourceUnit

    WriteSource = Callable[[str, str], Path]

FEED_VIEW_MODEL = textwrap.dedent(
    """\
    import SwiftUI
    import Combine

    /// Drives the feed screen.
    @MainActor
    final class FeedViewModel: ObservableObject {
        @Published var items: [String] = []
        @Published var isRefreshing: Bool = false
        @Published var errorMessage: String?
        private var page = 0

        @Published var loading: Bool = false
    }
    """
)

FEED_LOADER = textwrap.dedent(
    """\
    import Foundation

    final class FeedLoader {
        private var items: [String] = []
        private let service = Service()

        func start() {
            refresh()
        }

        func refresh() {
            // Reload everything
            let count = items.count
            print(count)
        }

        func stop() {
        }
        func load() {
            service.fetch { result in
                self.items = result
                self.notify()
                print("done")
            }
        }
    }
    """
)


# ---------------------------------------------------------------------------
# End-to-end scans
# ---------------------------------------------------------------------------


class TestEndToEnd:
    """End-to-end scans with the bundled rules."""

    def test_misnamed_boolean_property(
        self, tmp_project: Path, write_source: WriteSource
    ) -> None:
        write_source("FeedViewModel.swift", FEED_VIEW_MODEL)
        coordinator = ScanCoordinator(load_default_rules())

        outcome = coordinator.run(discover_files(tmp_project))

        report = outcome.report
        assert report.critical == ()
        assert [(f.line, f.rule_id) for f in report.warning] == [(12, "naming-bool-state-prefix")]
        assert report.warning[0].severity == "warning"
        assert outcome.state is ScanState.DONE
        assert coordinator.state is ScanState.DONE

    def test_strong_self_capture(self, tmp_project: Path, write_source: WriteSource) -> None:
        write_source("FeedLoader.swift", FEED_LOADER)

        outcome = ScanCoordinator(load_default_rules()).run(discover_files(tmp_project))

        critical = outcome.report.critical
        assert [(f.line, f.rule_id) for f in critical] == [(20, "memory-closure-weak-self")]

    def test_empty_file_list(self) -> None:
        outcome = ScanCoordinator(load_default_rules()).run([])

        summary = outcome.report.summary
        assert outcome.report.findings == ()
        assert summary.compliance_ratio == 1.0
        assert summary.critical_count == 0
        assert summary.files_scanned == 0
        assert outcome.state is ScanState.DONE

    def test_duplicate_rule_id_fails_scan(
        self, tmp_project: Path, write_source: WriteSource, dirty_swift: str
    ) -> None:
        write_source("A.swift", dirty_swift)
        data = yaml.safe_load(default_rules_text())
        data["rules"].append(dict(data["rules"][0]))
        coordinator = ScanCoordinator(lambda: parse_rules(data))

        with pytest.raises(DuplicateRuleIdError):
            coordinator.run(discover_files(tmp_project))

        assert coordinator.state is ScanState.FAILED
        assert coordinator.rule_set is None

    def test_one_unreadable_file(
        self,
        tmp_project: Path,
        write_source: WriteSource,
        clean_swift: str,
        dirty_swift: str,
        dirty_expected: list[tuple[int, str]],
    ) -> None:
        write_source("Clean0.swift", clean_swift)
        write_source("Clean1.swift", clean_swift)
        write_source("Dirty0.swift", dirty_swift)
        write_source("Dirty1.swift", dirty_swift)
        readable = ScanCoordinator(load_default_rules()).run(discover_files(tmp_project)).report
        (tmp_project / "Sources" / "Broken.swift").write_bytes(b"let x = 1\n\xc3\x28\n")

        outcome = ScanCoordinator(load_default_rules()).run(discover_files(tmp_project))

        report = outcome.report
        assert len(report.load_errors) == 1
        assert report.load_errors[0].path == "Sources/Broken.swift"
        assert report.load_errors[0].snippet == "invalid UTF-8 at byte 10"
        others = tuple(f for f in report.findings if f not in report.load_errors)
        assert others == readable.findings
        assert sorted((f.path, f.line, f.rule_id) for f in others) == sorted(
            (f"Sources/{name}", line, rule_id)
            for name in ("Dirty0.swift", "Dirty1.swift")
            for line, rule_id in dirty_expected
        )
        assert report.critical == readable.critical
        assert report.summary.critical_count == 8
        assert report.summary.files_scanned == 5
        assert outcome.state is ScanState.DONE

    def test_dirty_file(
        self,
        tmp_project: Path,
        write_source: WriteSource,
        dirty_swift: str,
        dirty_expected: list[tuple[int, str]],
    ) -> None:
        write_source("FeedViewModel.swift", dirty_swift)

        report = ScanCoordinator(load_default_rules()).run(discover_files(tmp_project)).report

        assert sorted((f.line, f.rule_id) for f in report.findings) == sorted(dirty_expected)
        assert report.summary.critical_count == 4
        assert report.summary.warning_count == 7
        assert report.summary.quality_label == "Poor"
        # Two of six naming/structure evaluations produced findings.
        assert report.summary.evaluations == 6
        assert report.summary.compliance_percent == 67

    def test_clean_file(
        self, tmp_project: Path, write_source: WriteSource, clean_swift: str
    ) -> None:
        write_source("ProfileViewModel.swift", clean_swift)

        report = ScanCoordinator(load_default_rules()).run(discover_files(tmp_project)).report

        assert report.findings == ()
        assert report.summary.quality_label == "Excellent"
        assert len(report.positive_notes) == 8


# ---------------------------------------------------------------------------
# Properties
# ---------------------------------------------------------------------------


class TestProperties:
    """Determinism and monotonicity across runs."""

    def test_deterministic_across_worker_counts(
        self, tmp_project: Path, write_source: WriteSource, dirty_swift: str, clean_swift: str
    ) -> None:
        write_source("Dirty.swift", dirty_swift)
        write_source("Clean.swift", clean_swift)
        write_source("Other.swift", dirty_swift.replace("FeedViewModel", "OtherModel"))
        files = discover_files(tmp_project)

        single = ScanCoordinator(load_default_rules(), max_workers=1).run(files)
        many = ScanCoordinator(load_default_rules(), max_workers=8).run(files)

        assert single.report == many.report
        assert format_json(single.report) == format_json(many.report)

    def test_adding_rules_never_removes_findings(
        self, tmp_project: Path, write_source: WriteSource, dirty_swift: str
    ) -> None:
        write_source("Dirty.swift", dirty_swift)
        files = discover_files(tmp_project)
        data = yaml.safe_load(default_rules_text())
        subset = parse_rules({"version": 1, "rules": data["rules"][:6]})

        fewer = ScanCoordinator(subset).run(files).report
        more = ScanCoordinator(load_default_rules()).run(files).report

        assert fewer.findings
        assert set(fewer.findings) <= set(more.findings)

    def test_no_duplicate_findings(
        self, tmp_project: Path, write_source: WriteSource, dirty_swift: str
    ) -> None:
        write_source("Dirty.swift", dirty_swift)
        write_source("Copy.swift", dirty_swift)

        report = ScanCoordinator(load_default_rules()).run(discover_files(tmp_project)).report

        keys = [(f.rule_id, f.path, f.line) for f in report.findings]
        assert len(keys) == len(set(keys))
        assert len(keys) == 22


# ---------------------------------------------------------------------------
# Lifecycle: timeout, cancel, failing matchers
# ---------------------------------------------------------------------------


class TestLifecycle:
    """Timeouts, cancellation and matcher failures end in a partial report."""

    def test_initial_state(self) -> None:
        assert ScanCoordinator(load_default_rules()).state is ScanState.IDLE

    def test_timeout(self, tmp_project: Path, write_source: WriteSource, dirty_swift: str) -> None:
        write_source("Dirty.swift", dirty_swift)
        coordinator = ScanCoordinator(load_default_rules(), timeout_seconds=1e-9)

        outcome = coordinator.run(discover_files(tmp_project))

        assert outcome.timed_out is True
        assert outcome.state is ScanState.DONE
        assert any("timed out" in w for w in outcome.report.scan_warnings)

    def test_cancel_before_loading(
        self, tmp_project: Path, write_source: WriteSource, dirty_swift: str
    ) -> None:
        write_source("Dirty.swift", dirty_swift)
        holder: list[ScanCoordinator] = []

        def _load_and_cancel() -> RuleSet:
            holder[0].cancel()
            return load_default_rules()

        coordinator = ScanCoordinator(_load_and_cancel)
        holder.append(coordinator)

        outcome = coordinator.run(discover_files(tmp_project))

        assert outcome.cancelled is True
        assert outcome.report.findings == ()
        assert outcome.report.summary.files_scanned == 0
        assert any("cancelled" in w for w in outcome.report.scan_warnings)

    def test_failing_matcher_becomes_scan_warning(
        self,
        tmp_project: Path,
        write_source: WriteSource,
        dirty_swift: str,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        write_source("Dirty.swift", dirty_swift)
        real_apply = coordinator_module.apply

        def _apply(unit: SourceUnit, rule: Rule) -> list[Finding]:
            if rule.id == "error-force-try":
                msg = "boom"
                raise RuntimeError(msg)
            return real_apply(unit, rule)

        monkeypatch.setattr(coordinator_module, "apply", _apply)

        outcome = ScanCoordinator(load_default_rules()).run(discover_files(tmp_project))

        report = outcome.report
        rule_ids = {f.rule_id for f in report.findings}
        assert "error-force-try" not in rule_ids
        assert "performance-count-zero" in rule_ids
        assert report.scan_warnings == (
            "Rule 'error-force-try' could not be evaluated on Sources/Dirty.swift: boom",
        )
        assert outcome.state is ScanState.DONE


# ---------------------------------------------------------------------------
# run_scan
# ---------------------------------------------------------------------------


class TestRunScan:
    """Tests for the config-driven convenience entry point."""

    def test_defaults(self, tmp_project: Path, write_source: WriteSource, dirty_swift: str) -> None:
        write_source("Dirty.swift", dirty_swift)
        outcome = run_scan(tmp_project)
        assert outcome.report.summary.critical_count == 4

    def test_project_overrides(
        self, tmp_project: Path, write_source: WriteSource, dirty_swift: str
    ) -> None:
        write_source("Dirty.swift", dirty_swift)
        (tmp_project / "praxis.yml").write_text(
            "severity_overrides:\n"
            "  error-force-try: critical\n"
            "disabled_rules:\n"
            "  - memory-closure-weak-self\n"
        )

        report = run_scan(tmp_project).report

        assert "memory-closure-weak-self" not in {f.rule_id for f in report.findings}
        force = [f for f in report.findings if f.rule_id == "error-force-try"]
        assert [f.severity for f in force] == ["critical"]
        # Two closure findings disabled, one force try promoted.
        assert report.summary.critical_count == 3

    def test_custom_rules_file(
        self, tmp_project: Path, write_source: WriteSource, dirty_swift: str
    ) -> None:
        write_source("Dirty.swift", dirty_swift)
        (tmp_project / "team-rules.yml").write_text(
            "version: 1\n"
            "rules:\n"
            "  - id: no-dispatch\n"
            "    category: concurrency\n"
            "    severity: critical\n"
            "    matcher:\n"
            "      kind: pattern\n"
            "      regex: 'DispatchQueue'\n"
            "    message: 'Dispatch: {snippet}'\n"
        )
        (tmp_project / "praxis.yml").write_text("rules: team-rules.yml\n")

        report = run_scan(tmp_project).report

        assert [(f.line, f.rule_id) for f in report.findings] == [(13, "no-dispatch")]

    def test_explicit_paths(
        self, tmp_project: Path, write_source: WriteSource, dirty_swift: str, clean_swift: str
    ) -> None:
        dirty = write_source("Dirty.swift", dirty_swift)
        write_source("Clean.swift", clean_swift)

        outcome = run_scan(tmp_project, [dirty])

        assert outcome.report.summary.files_scanned == 1
        assert {f.path for f in outcome.report.findings} == {"Sources/Dirty.swift"}

    def test_missing_explicit_path_reported(self, tmp_project: Path) -> None:
        outcome = run_scan(tmp_project, [tmp_project / "Sources" / "Gone.swift"])

        (error,) = outcome.report.load_errors
        assert error.path == "Sources/Gone.swift"
        assert error.snippet == "file not found"

    def test_rule_loader_applies_overrides(self) -> None:
        loader = build_rule_loader(
            None,
            severity_overrides={"error-force-try": "critical"},
            disabled=["performance-count-zero"],
        )
        rule_set = loader()

        assert "performance-count-zero" not in rule_set
        rule = rule_set.get("error-force-try")
        assert rule is not None
        assert rule.severity == "critical"
