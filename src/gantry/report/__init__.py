# src/gantry/report/__init__.py
"""
Result Aggregator e publicação de relatórios do Gantry.
"""

from .aggregator import (
    AggregatedReport,
    CoverageSummary,
    CoverageThresholds,
    ResultAggregator,
    report_context_key,
)
from .report_md import REQUIRED_SECTIONS, generate_report_md
from .sinks import FileReportingSink, InMemoryReportingSink, ReportingSink

__all__ = [
    "AggregatedReport",
    "CoverageSummary",
    "CoverageThresholds",
    "ResultAggregator",
    "report_context_key",
    "REQUIRED_SECTIONS",
    "generate_report_md",
    "FileReportingSink",
    "InMemoryReportingSink",
    "ReportingSink",
]
