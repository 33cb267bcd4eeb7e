# src/gantry/export/__init__.py
"""Exportação de relatórios (PDF)."""

from .report_pdf import ENGINE_REGISTRY, PdfEngine, ReportLabEngine, convert_md_to_pdf, get_engine, register_engine

__all__ = [
    "ENGINE_REGISTRY",
    "PdfEngine",
    "ReportLabEngine",
    "convert_md_to_pdf",
    "get_engine",
    "register_engine",
]
