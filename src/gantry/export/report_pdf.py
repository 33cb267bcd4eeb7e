"""
src/gantry/export/report_pdf.py

Conversão do relatório markdown para PDF (engine plugável).

Regras:
- Não faz parte do core semântico: não acessa Manifest nem resultado.
- Conversão determinística para entrada + engine + opções fixas.
- Engines são configuradas explicitamente (sem seleção implícita).

Engines:
- "reportlab": SimpleDocTemplate A4 com headings, listas, tabelas e blocos
  de código do markdown gerado por `gantry.report.report_md`
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List
from xml.sax.saxutils import escape

from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.platypus import (
    ListFlowable,
    ListItem,
    Paragraph,
    Preformatted,
    SimpleDocTemplate,
    Spacer,
    Table,
)


class PdfEngine(ABC):
    """Base abstrata para engines de conversão MD → PDF."""

    name: str

    @abstractmethod
    def convert(self, md_path: Path, pdf_path: Path, **opts: Any) -> None:
        raise NotImplementedError


ENGINE_REGISTRY: Dict[str, PdfEngine] = {}


def register_engine(engine: PdfEngine) -> None:
    if not engine or not getattr(engine, "name", None):
        raise ValueError("Invalid PdfEngine: missing name")
    ENGINE_REGISTRY[engine.name] = engine


def get_engine(name: str) -> PdfEngine:
    try:
        return ENGINE_REGISTRY[name]
    except KeyError:
        raise KeyError(f"PDF engine not registered: {name}")


def convert_md_to_pdf(
    *,
    md_path: Path,
    pdf_path: Path,
    engine_name: str = "reportlab",
    engine_opts: Dict[str, Any] | None = None,
) -> None:
    """Converte um arquivo markdown em PDF com a engine configurada."""
    if not md_path.exists():
        raise FileNotFoundError(f"report not found: {md_path}")

    engine = get_engine(engine_name)
    opts = engine_opts or {}

    pdf_path.parent.mkdir(parents=True, exist_ok=True)
    engine.convert(md_path=md_path, pdf_path=pdf_path, **opts)


def _table_row(line: str) -> List[str]:
    return [cell.strip() for cell in line.strip().strip("|").split("|")]


class ReportLabEngine(PdfEngine):
    name = "reportlab"

    def convert(self, md_path: Path, pdf_path: Path, **opts: Any) -> None:
        margin = float(opts.get("margin", 36))
        styles = getSampleStyleSheet()
        story: List[Any] = []

        code: List[str] = []
        in_code = False
        table: List[List[str]] = []

        def flush_table() -> None:
            if table:
                story.append(Table([list(r) for r in table], hAlign="LEFT"))
                table.clear()

        for raw in md_path.read_text(encoding="utf-8").splitlines():
            line = raw.rstrip()

            if line.startswith("```"):
                if in_code:
                    story.append(Preformatted("\n".join(code), styles["Code"]))
                    code.clear()
                in_code = not in_code
                continue
            if in_code:
                code.append(line)
                continue

            if line.startswith("|"):
                row = _table_row(line)
                # linha separadora do markdown
                if not all(set(c) <= {"-", ":"} for c in row):
                    table.append(row)
                continue
            flush_table()

            if not line:
                story.append(Spacer(1, 8))
            elif line.startswith("# "):
                story.append(Paragraph(f"<b>{escape(line[2:])}</b>", styles["Heading1"]))
            elif line.startswith("## "):
                story.append(Paragraph(f"<b>{escape(line[3:])}</b>", styles["Heading2"]))
            elif line.startswith("### "):
                story.append(Paragraph(f"<b>{escape(line[4:])}</b>", styles["Heading3"]))
            elif line.lstrip().startswith(("- ", "* ")):
                text = line.lstrip()[2:]
                story.append(ListFlowable([ListItem(Paragraph(escape(text), styles["Normal"]))]))
            else:
                story.append(Paragraph(escape(line), styles["Normal"]))

        flush_table()
        if code:
            story.append(Preformatted("\n".join(code), styles["Code"]))

        doc = SimpleDocTemplate(
            str(pdf_path),
            pagesize=A4,
            rightMargin=margin,
            leftMargin=margin,
            topMargin=margin,
            bottomMargin=margin,
            invariant=1,
        )
        doc.build(story)


register_engine(ReportLabEngine())


__all__ = [
    "PdfEngine",
    "ENGINE_REGISTRY",
    "register_engine",
    "get_engine",
    "convert_md_to_pdf",
    "ReportLabEngine",
]
