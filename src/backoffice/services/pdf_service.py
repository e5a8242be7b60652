"""PDF rendering for rider acknowledgement documents (reportlab).

``PdfRenderer.render(template_name, data)`` returns A4 PDF bytes. It is a
pure function of its input; storing the result is the caller's job.
"""
from __future__ import annotations

import io
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from reportlab.lib.pagesizes import A4
from reportlab.lib.utils import simpleSplit
from reportlab.pdfgen import canvas

VISA_TEMPLATE = "visa_acknowledgement"
SIM_TEMPLATE = "sim_acknowledgement"

_LEFT = 50
_BODY_FONT = ("Helvetica", 11)
_WIDTH, _HEIGHT = A4


class UnknownTemplateError(KeyError):
    """No renderer registered under the requested template name."""


def _paragraph(c: canvas.Canvas, text: str, y: float, leading: float = 15) -> float:
    """Draw wrapped text starting at ``y``; returns the y below it."""
    c.setFont(*_BODY_FONT)
    for line in simpleSplit(text, _BODY_FONT[0], _BODY_FONT[1], _WIDTH - 2 * _LEFT):
        c.drawString(_LEFT, y, line)
        y -= leading
    return y - 6


def _field_rows(c: canvas.Canvas, rows: list[tuple[str, str]], y: float) -> float:
    for label, value in rows:
        c.setFont("Helvetica-Bold", 11)
        c.drawString(_LEFT, y, f"{label}:")
        c.setFont(*_BODY_FONT)
        c.drawString(_LEFT + 130, y, value or "-")
        y -= 18
    return y - 8


def _header(c: canvas.Canvas, company: str, title: str) -> float:
    c.setFont("Helvetica-Bold", 16)
    c.drawString(_LEFT, _HEIGHT - 60, company)
    c.setFont("Helvetica-Bold", 14)
    c.drawString(_LEFT, _HEIGHT - 90, title)
    c.line(_LEFT, _HEIGHT - 98, _WIDTH - _LEFT, _HEIGHT - 98)
    return _HEIGHT - 125


def _signature_block(c: canvas.Canvas, data: dict[str, Any], y: float) -> None:
    """Signature and date lines. Left blank until the rider signs."""
    signed = bool(data.get("signed"))
    c.setFont(*_BODY_FONT)
    c.drawString(_LEFT, y, "Rider signature:")
    c.line(_LEFT + 110, y - 2, _LEFT + 300, y - 2)
    if signed and data.get("signature_name"):
        c.setFont("Helvetica-Oblique", 12)
        c.drawString(_LEFT + 115, y + 2, str(data["signature_name"]))
        c.setFont(*_BODY_FONT)

    c.drawString(_LEFT, y - 30, "Date:")
    c.line(_LEFT + 110, y - 32, _LEFT + 300, y - 32)
    if signed:
        c.drawString(_LEFT + 115, y - 28, f"{data.get('date', '')} {data.get('time', '')}".strip())

    c.drawString(_LEFT, y - 70, f"Issued by: {data.get('admin_name') or '-'}")


def _footer(c: canvas.Canvas) -> None:
    c.setFont("Helvetica", 8)
    c.drawString(_LEFT, 30, f"Generated: {datetime.now(UTC).isoformat(timespec='seconds')}")


def _render_visa(c: canvas.Canvas, data: dict[str, Any]) -> None:
    company = data.get("company_name", "")
    y = _header(c, company, "Visa Acknowledgement")
    y = _field_rows(
        c,
        [
            ("Rider name", data.get("rider_name", "")),
            ("Rider code", data.get("rider_code", "")),
            ("Nationality", data.get("nationality", "")),
            ("ID number", data.get("id_number", "")),
        ],
        y,
    )
    y = _paragraph(
        c,
        f"I, {data.get('rider_name', '')}, acknowledge that my employment visa is "
        f"sponsored by {company}. I agree to comply with the visa terms and to "
        "return all related documents upon termination of employment. I understand "
        "that any visa costs incurred due to my early resignation may be recovered "
        "from my final settlement.",
        y,
    )
    _signature_block(c, data, y - 30)


def _render_sim(c: canvas.Canvas, data: dict[str, Any]) -> None:
    company = data.get("company_name", "")
    y = _header(c, company, "Company SIM Card Acknowledgement")
    y = _field_rows(
        c,
        [
            ("Rider name", data.get("rider_name", "")),
            ("Rider code", data.get("rider_code", "")),
            ("Nationality", data.get("nationality", "")),
            ("ID number", data.get("id_number", "")),
            ("SIM number", data.get("phone", "")),
        ],
        y,
    )
    y = _paragraph(
        c,
        f"I, {data.get('rider_name', '')}, acknowledge receipt of the company SIM "
        f"card listed above, issued by {company} for work purposes only. I will "
        "keep it in my possession, report loss immediately, and return it upon "
        "termination of employment. Charges beyond the approved plan are my "
        "responsibility.",
        y,
    )
    _signature_block(c, data, y - 30)


class PdfRenderer:
    """Renders named acknowledgement templates to PDF bytes."""

    def __init__(self) -> None:
        self._templates: dict[str, Callable[[canvas.Canvas, dict[str, Any]], None]] = {
            VISA_TEMPLATE: _render_visa,
            SIM_TEMPLATE: _render_sim,
        }

    @property
    def template_names(self) -> list[str]:
        return sorted(self._templates)

    def render(self, template_name: str, data: dict[str, Any]) -> bytes:
        """Return A4 PDF bytes for ``template_name`` filled with ``data``."""
        try:
            draw = self._templates[template_name]
        except KeyError:
            raise UnknownTemplateError(template_name) from None

        buf = io.BytesIO()
        c = canvas.Canvas(buf, pagesize=A4)
        c.setTitle(template_name.replace("_", " ").title())
        draw(c, data)
        _footer(c)
        c.showPage()
        c.save()
        return buf.getvalue()


def get_pdf_renderer() -> PdfRenderer:
    return PdfRenderer()
