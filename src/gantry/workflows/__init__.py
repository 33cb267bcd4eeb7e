"""Workflows prontos construídos sobre o core do Gantry."""

from .continuous_integration import CI_FILTERS, WORKFLOW_NAME, build_ci_aggregator, build_ci_pipeline

__all__ = ["CI_FILTERS", "WORKFLOW_NAME", "build_ci_aggregator", "build_ci_pipeline"]
