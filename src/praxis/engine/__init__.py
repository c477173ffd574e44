"""Scan engine - finding aggregation, report rendering, and scan coordination."""

from praxis.engine.aggregator import AnalysisReport, MatchBatch, SummaryStats, aggregate
from praxis.engine.coordinator import ScanCoordinator, ScanOutcome, ScanState, run_scan
from praxis.engine.report import (
    format_json,
    format_porcelain,
    format_rich,
    render,
    report_to_dict,
    write_report,
)

__all__ = [
    "AnalysisReport",
    "MatchBatch",
    "ScanCoordinator",
    "ScanOutcome",
    "ScanState",
    "SummaryStats",
    "aggregate",
    "format_json",
    "format_porcelain",
    "format_rich",
    "render",
    "report_to_dict",
    "run_scan",
    "write_report",
]
