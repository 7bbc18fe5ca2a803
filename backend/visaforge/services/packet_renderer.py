from __future__ import annotations

import io
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

from reportlab.pdfgen import canvas

from visaforge.services.visa_config import UseCaseConfig
from visaforge.utils.helpers import truncate_text, wrap_text

PAGE_SIZE = (612, 792)  # US Letter
LEFT = 50
INDENT = 60
TITLE_Y = 740
TOP_Y = 710
BOTTOM_MARGIN = 60
LINE_STEP = 14
KEY_LINE_STEP = 16
WRAP_WIDTH = 96
MAX_INPUT_PAIRS = 40
MAX_INPUT_CHARS = 110

PACKET_TITLE = "VisaForge – USCIS Packet"


class _PacketCanvas:
    """Top-down text cursor that starts a continuation page at the bottom margin."""

    def __init__(self) -> None:
        self.buffer = io.BytesIO()
        self.canvas = canvas.Canvas(self.buffer, pagesize=PAGE_SIZE)
        self.y = TOP_Y
        self.section = ""
        self._started = False

    def page(self, title: str, section: Optional[str] = None) -> None:
        if self._started:
            self.canvas.showPage()
        self._started = True
        self.section = section or title
        self.canvas.setFont("Helvetica-Bold", 18)
        self.canvas.drawString(LEFT, TITLE_Y, title)
        self.canvas.setFont("Helvetica", 12)
        self.y = TOP_Y

    def line(self, text: str, x: int = LEFT, step: int = LINE_STEP, bold: bool = False) -> None:
        if self.y < BOTTOM_MARGIN:
            self.page(f"{self.section} (cont.)", section=self.section)
        if bold:
            self.canvas.setFont("Helvetica-Bold", 12)
        self.canvas.drawString(x, self.y, text)
        if bold:
            self.canvas.setFont("Helvetica", 12)
        self.y -= step

    def gap(self, points: int) -> None:
        self.y -= points

    def finish(self) -> bytes:
        self.canvas.showPage()
        self.canvas.save()
        return self.buffer.getvalue()


def _detail_pairs(inputs: Mapping[str, Any]):
    pairs = [
        (k, v) for k, v in (inputs or {}).items()
        if v is not None and v != "" and not isinstance(v, (dict, list, tuple, set))
    ]
    return pairs[:MAX_INPUT_PAIRS]


def _field(upload: Any, name: str, default: Any = None) -> Any:
    if upload is None:
        return default
    if isinstance(upload, Mapping):
        return upload.get(name, default)
    return getattr(upload, name, default)


def render_packet(
    config: UseCaseConfig,
    inputs: Mapping[str, Any],
    uploads: Dict[str, Any],
    affidavit: Optional[str],
    generated_at: Optional[datetime] = None,
) -> bytes:
    """
    Render the packet PDF: cover sheet, evidence index, affidavit.
    ``uploads`` maps evidence id to its stored upload (row or dict).
    """
    doc = _PacketCanvas()
    generated_at = generated_at or datetime.now(timezone.utc)

    doc.page(PACKET_TITLE, section="Applicant Details")
    doc.line(f"Path: {config.title}", step=KEY_LINE_STEP)
    doc.line(f"Core Forms: {', '.join(config.core_forms)}", step=KEY_LINE_STEP)
    doc.line(f"Generated: {generated_at.strftime('%Y-%m-%d %H:%M UTC')}", step=KEY_LINE_STEP)
    doc.gap(10)
    doc.line("Applicant Details", step=KEY_LINE_STEP, bold=True)
    for key, value in _detail_pairs(inputs):
        doc.line(truncate_text(f"{key}: {value}", MAX_INPUT_CHARS))

    doc.page("Evidence Index")
    for item in config.evidence:
        upload = uploads.get(item.id)
        complete = _field(upload, "complete") is True
        status = "Complete" if complete else ("In progress" if upload is not None else "Missing")
        tag = "[Required]" if item.required else "[Recommended]"
        doc.line(truncate_text(f"{tag} {item.title} - {status}", WRAP_WIDTH))

        if _field(upload, "in_english") is False:
            doc.line("• Needs certified translation", x=INDENT)
        files = _field(upload, "files") or []
        if files:
            names = ", ".join(str(f.get("name", "")) for f in files)
            doc.line(truncate_text(f"• Files: {names}", WRAP_WIDTH), x=INDENT)
        notes = _field(upload, "notes")
        if notes:
            for ln in wrap_text(f"• Notes: {notes}", WRAP_WIDTH):
                doc.line(ln, x=INDENT)
        doc.gap(6)

    doc.page("Affidavit & Narratives")
    text = affidavit if affidavit and affidavit.strip() else "(No affidavit content)"
    for ln in wrap_text(text, WRAP_WIDTH):
        doc.line(ln)

    return doc.finish()
