"""Scan Coordinator: load rules once, fan (file x rule) matching out to a worker pool, fan in."""

from __future__ import annotations

import enum
import logging
import queue
import threading
import time
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import TYPE_CHECKING

from praxis.engine.aggregator import AnalysisReport, MatchBatch, aggregate
from praxis.findings import build_finding
from praxis.infrastructure.config import default_max_workers, load_project_config
from praxis.infrastructure.discovery import discover_files
from praxis.matchers import apply, rule_applies
from praxis.rules.loader import ConfigError, apply_overrides, load_default_rules, load_rules
from praxis.rules.model import RuleSet
from praxis.source.unit import LoadError, load_source_unit

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from concurrent.futures import Future
    from pathlib import Path

    from praxis.rules.model import Rule
    from praxis.source.unit import SourceUnit

logger = logging.getLogger(__name__)


class ScanState(enum.Enum):
    """Lifecycle of a single scan."""

    IDLE = "idle"
    LOADING = "loading"
    MATCHING = "matching"
    AGGREGATING = "aggregating"
    REPORTING = "reporting"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class ScanOutcome:
    """What :meth:`ScanCoordinator.run` hands back to its caller."""

    report: AnalysisReport
    state: ScanState
    timed_out: bool = False
    cancelled: bool = False
    elapsed_ms: float = 0.0


class ScanCoordinator:
    """Run one scan over a list of files.

    *rules* is either a ready :class:`RuleSet` or a zero-argument callable
    that loads one; a :class:`ConfigError` raised by the callable moves the
    coordinator to ``FAILED`` and propagates.  :meth:`cancel` may be called
    from any thread.
    """

    def __init__(
        self,
        rules: RuleSet | Callable[[], RuleSet],
        *,
        max_workers: int | None = None,
        timeout_seconds: float | None = None,
    ) -> None:
        self._rules = rules
        self.max_workers = max_workers or default_max_workers()
        self.timeout_seconds = timeout_seconds
        self.rule_set: RuleSet | None = None
        self._state = ScanState.IDLE
        self._cancel_event = threading.Event()

    # -- state ------------------------------------------------------------------

    @property
    def state(self) -> ScanState:
        return self._state

    def _transition(self, state: ScanState) -> None:
        logger.debug("Scan state: %s -> %s", self._state.value, state.value)
        self._state = state

    def cancel(self) -> None:
        """Stop loading files and dispatching tasks; running tasks still finish."""
        self._cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    # -- phases -------------------------------------------------------------------

    def _load_rule_set(self) -> RuleSet:
        if isinstance(self._rules, RuleSet):
            return self._rules
        return self._rules()

    def _load_units(
        self,
        rule_set: RuleSet,
        files: Sequence[tuple[Path, str]],
        deadline: float | None,
        batches: queue.SimpleQueue[MatchBatch],
    ) -> tuple[list[SourceUnit], int, bool]:
        """Load every file, folding load errors into batches.

        Returns ``(units, files_processed, timed_out)``.
        """
        units: list[SourceUnit] = []
        processed = 0
        load_error_rule = rule_set.load_error_rule
        for path, display in files:
            if self.cancelled:
                logger.info("Scan cancelled after loading %d of %d files", processed, len(files))
                break
            if deadline is not None and time.monotonic() >= deadline:
                return units, processed, True
            processed += 1
            try:
                units.append(load_source_unit(path, display))
            except LoadError as exc:
                logger.warning("Cannot analyze %s: %s", exc.path, exc.detail)
                finding = build_finding(load_error_rule, path=exc.path, line=1, snippet=exc.detail)
                batches.put(
                    MatchBatch(
                        path=exc.path,
                        rule_id=load_error_rule.id,
                        findings=(finding,),
                        evaluation=False,
                    )
                )
        return units, processed, False

    @staticmethod
    def _match(unit: SourceUnit, rule: Rule, batches: queue.SimpleQueue[MatchBatch]) -> None:
        findings = apply(unit, rule)
        batches.put(MatchBatch(path=unit.path, rule_id=rule.id, findings=tuple(findings)))

    def _dispatch(
        self,
        pool: ThreadPoolExecutor,
        rule_set: RuleSet,
        units: list[SourceUnit],
        batches: queue.SimpleQueue[MatchBatch],
    ) -> dict[Future[None], tuple[str, str]]:
        futures: dict[Future[None], tuple[str, str]] = {}
        rules = rule_set.matching_rules
        for unit in units:
            for rule in rules:
                if self.cancelled:
                    logger.info("Scan cancelled, %d matcher tasks dispatched", len(futures))
                    return futures
                if not rule_applies(rule, unit.path):
                    continue
                futures[pool.submit(self._match, unit, rule, batches)] = (unit.path, rule.id)
        return futures

    @staticmethod
    def _drain(batches: queue.SimpleQueue[MatchBatch]) -> list[MatchBatch]:
        drained: list[MatchBatch] = []
        while True:
            try:
                drained.append(batches.get_nowait())
            except queue.Empty:
                return drained

    # -- entry point ----------------------------------------------------------------

    def run(self, files: Sequence[tuple[Path, str]]) -> ScanOutcome:
        """Scan ``(path, display_path)`` pairs and return the outcome.

        Raises :class:`ConfigError` (after moving to ``FAILED``) when the
        rule set cannot be loaded.  Per-file load errors never fail the scan.
        """
        start = time.monotonic()
        deadline = start + self.timeout_seconds if self.timeout_seconds else None
        scan_warnings: list[str] = []

        self._transition(ScanState.LOADING)
        try:
            rule_set = self._load_rule_set()
        except ConfigError:
            self._transition(ScanState.FAILED)
            raise
        self.rule_set = rule_set

        batches: queue.SimpleQueue[MatchBatch] = queue.SimpleQueue()
        units, processed, timed_out = self._load_units(rule_set, files, deadline, batches)

        self._transition(ScanState.MATCHING)
        pool = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="praxis")
        try:
            futures = {} if timed_out else self._dispatch(pool, rule_set, units, batches)
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            _done, not_done = wait(futures, timeout=remaining)
            if not_done:
                timed_out = True
                for future in not_done:
                    future.cancel()
            for future in futures:
                if future.done() and not future.cancelled() and future.exception() is not None:
                    path, rule_id = futures[future]
                    logger.error(
                        "Rule '%s' failed on %s: %s", rule_id, path, future.exception()
                    )
                    scan_warnings.append(
                        f"Rule '{rule_id}' could not be evaluated on {path}: {future.exception()}"
                    )
        finally:
            pool.shutdown(wait=not timed_out, cancel_futures=True)

        if timed_out:
            logger.warning("Scan timed out after %.1fs", self.timeout_seconds or 0.0)
            scan_warnings.append(
                f"Scan timed out after {self.timeout_seconds:g}s; "
                "the report only covers matcher tasks that completed"
            )
        if self.cancelled:
            scan_warnings.append(
                f"Scan cancelled; {processed} of {len(files)} files were loaded "
                "and only dispatched matcher tasks are reported"
            )

        self._transition(ScanState.AGGREGATING)
        report = aggregate(
            rule_set,
            self._drain(batches),
            files_scanned=processed,
            scan_warnings=sorted(scan_warnings),
        )

        self._transition(ScanState.REPORTING)
        elapsed = (time.monotonic() - start) * 1000
        self._transition(ScanState.DONE)
        return ScanOutcome(
            report=report,
            state=self._state,
            timed_out=timed_out,
            cancelled=self.cancelled,
            elapsed_ms=elapsed,
        )


# ---------------------------------------------------------------------------
# Convenience entry point
# ---------------------------------------------------------------------------


def build_rule_loader(
    rules_path: Path | None,
    *,
    severity_overrides: dict[str, str] | None = None,
    disabled: Sequence[str] = (),
) -> Callable[[], RuleSet]:
    """Return a callable that loads (and overrides) the rule set when the scan starts."""

    def _load() -> RuleSet:
        rule_set = load_rules(rules_path) if rules_path is not None else load_default_rules()
        return apply_overrides(rule_set, severity_overrides=severity_overrides, disabled=disabled)

    return _load


def run_scan(
    project_root: Path,
    paths: Sequence[Path] = (),
    *,
    config_path: Path | None = None,
    rules_path: Path | None = None,
    max_workers: int | None = None,
    timeout_seconds: float | None = None,
) -> ScanOutcome:
    """Scan *paths* (default: the whole project) with the project's configuration.

    Explicit arguments win over ``praxis.yml`` values.
    """
    config = load_project_config(project_root, config_path)
    loader = build_rule_loader(
        rules_path or config.rules_path,
        severity_overrides=config.severity_overrides,
        disabled=config.disabled_rules,
    )
    files = discover_files(project_root, paths, include=config.include, exclude=config.exclude)
    coordinator = ScanCoordinator(
        loader,
        max_workers=max_workers or config.max_workers,
        timeout_seconds=timeout_seconds or config.timeout_seconds,
    )
    return coordinator.run(files)
