"""Shared test fixtures for Praxis."""

from __future__ import annotations

import textwrap
from typing import TYPE_CHECKING, Any

import pytest

from praxis.rules.loader import parse_rules
from praxis.source.unit import build_source_unit

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    from praxis.rules.model import Rule, RuleSet
    from praxis.source.unit import SourceUnit


def source(text: str) -> str:
    """Dedent a triple-quoted snippet and drop its leading newline."""
    return textwrap.dedent(text).lstrip("\n")


@pytest.fixture()
def make_unit() -> Callable[..., SourceUnit]:
    """Build a SourceUnit from a dedented snippet."""

    def _make(text: str, path: str = "Sources/Sample.swift") -> SourceUnit:
        return build_source_unit(path, source(text))

    return _make


@pytest.fixture()
def make_rule_set() -> Callable[..., RuleSet]:
    """Build a RuleSet from rule descriptor dicts."""

    def _make(*descriptors: dict[str, Any]) -> RuleSet:
        return parse_rules({"version": 1, "rules": list(descriptors)})

    return _make


@pytest.fixture()
def make_rule(make_rule_set: Callable[..., RuleSet]) -> Callable[..., Rule]:
    """Build a single Rule from a matcher mapping plus optional descriptor fields."""

    def _make(matcher: dict[str, Any], **fields: Any) -> Rule:
        descriptor: dict[str, Any] = {
            "id": "test-rule",
            "category": "naming",
            "severity": "warning",
            "message": "{snippet}",
            "matcher": matcher,
        }
        descriptor.update(fields)
        rule_set = make_rule_set(descriptor)
        rule = rule_set.get(descriptor["id"])
        assert rule is not None
        return rule

    return _make


@pytest.fixture()
def tmp_project(tmp_path: Path) -> Path:
    """Create an empty project with a ``Sources/`` directory."""
    project = tmp_path / "proj"
    (project / "Sources").mkdir(parents=True)
    return project


# ---------------------------------------------------------------------------
# Swift samples shared by engine and CLI tests
# ---------------------------------------------------------------------------

CLEAN_SWIFT = source(
    """
    import SwiftUI

    @MainActor
    final class ProfileViewModel: ObservableObject {
        @Published var isLoading: Bool = false
        @AppStorage("sound") var soundEnabled: Bool = true
        weak var delegate: ProfileDelegate?
        private let service: ProfileService

        init(service: ProfileService) {
            self.service = service
        }

        func load() {
            isLoading = true
            service.fetch { [weak self] result in
                guard let self else { return }
                self.isLoading = false
                self.apply(result)
            }
        }

        func apply(_ names: [String]) {
            if names.isEmpty {
                return
            }
            let upper = names.map { $0.uppercased() }
            do {
                try service.store(upper)
            } catch {
                print(error)
            }
        }
    }
    """
)

DIRTY_SWIFT = source(
    """
    import SwiftUI

    final class FeedViewModel: ObservableObject {
        @Published var loading: Bool = false
        @AppStorage("sound") var sound: Bool = true
        var delegate: FeedDelegate?
        private let service = FeedService()

        func refresh() {
            service.fetch { result in
                self.loading = false
            }
            DispatchQueue.main.async {
                self.loading = true
            }
            if items.count == 0 {
                return
            }
            let data = try! service.cached()
            do {
                try service.store(data)
            } catch {
            }
            UserDefaults.standard.set(authToken, forKey: "token")
        }
    }
    """
)

# (line, rule_id) pairs the bundled rules report for DIRTY_SWIFT.
DIRTY_EXPECTED: list[tuple[int, str]] = [
    (3, "concurrency-observable-mainactor"),
    (4, "naming-bool-state-prefix"),
    (5, "naming-bool-settings-field"),
    (6, "memory-delegate-weak"),
    (10, "memory-closure-weak-self"),
    (13, "concurrency-dispatch-main"),
    (13, "memory-closure-weak-self"),
    (16, "performance-count-zero"),
    (19, "error-force-try"),
    (22, "error-empty-catch"),
    (24, "security-userdefaults-secret"),
]


@pytest.fixture()
def clean_swift() -> str:
    return CLEAN_SWIFT


@pytest.fixture()
def dirty_swift() -> str:
    return DIRTY_SWIFT


@pytest.fixture()
def dirty_expected() -> list[tuple[int, str]]:
    return list(DIRTY_EXPECTED)


@pytest.fixture()
def write_source(tmp_project: Path) -> Callable[[str, str], Path]:
    """Write a file under ``<project>/Sources`` and return its path."""

    def _write(name: str, text: str) -> Path:
        path = tmp_project / "Sources" / name
        path.write_text(text, encoding="utf-8")
        return path

    return _write
