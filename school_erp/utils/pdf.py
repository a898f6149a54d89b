from io import BytesIO
from typing import Optional, Sequence, Tuple

from reportlab.lib import colors
from reportlab.lib.pagesizes import A5, landscape
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas

BRAND = colors.HexColor("#1e3a8a")
MUTED = colors.HexColor("#64748b")
LIGHT = colors.HexColor("#eef2ff")


def render_gate_pass(
    school_name: str,
    school_address: Optional[str],
    pass_number: str,
    rows: Sequence[Tuple[str, str]],
    status: str
) -> bytes:
    """One-page landscape A5 gate pass with a label/value block and signature lines."""
    buf = BytesIO()
    page = landscape(A5)
    c = canvas.Canvas(buf, pagesize=page)
    width, height = page
    margin = 12 * mm

    header_h = 22 * mm
    c.setFillColor(BRAND)
    c.rect(0, height - header_h, width, header_h, fill=1, stroke=0)
    c.setFillColor(colors.white)
    c.setFont("Helvetica-Bold", 15)
    c.drawString(margin, height - 10 * mm, school_name)
    if school_address:
        c.setFont("Helvetica", 9)
        c.drawString(margin, height - 16 * mm, school_address[:90])

    badge_w, badge_h = 34 * mm, 9 * mm
    badge_x = width - margin - badge_w
    badge_y = height - 11 * mm - badge_h / 2
    c.roundRect(badge_x, badge_y, badge_w, badge_h, 2 * mm, fill=1, stroke=0)
    c.setFillColor(BRAND)
    c.setFont("Helvetica-Bold", 10)
    c.drawCentredString(badge_x + badge_w / 2, badge_y + 3 * mm, "GATE PASS")

    y = height - header_h - 10 * mm
    c.setFillColor(LIGHT)
    c.roundRect(margin, y - 4 * mm, width - 2 * margin, 10 * mm, 2 * mm, fill=1, stroke=0)
    c.setFillColor(colors.black)
    c.setFont("Helvetica-Bold", 11)
    c.drawString(margin + 4 * mm, y, f"Pass No: {pass_number}")
    c.drawRightString(width - margin - 4 * mm, y, f"Status: {status.upper()}")
    y -= 14 * mm

    for label, value in rows:
        c.setFont("Helvetica", 10)
        c.setFillColor(MUTED)
        c.drawString(margin, y, label)
        c.setFillColor(colors.black)
        c.setFont("Helvetica-Bold", 10)
        c.drawString(margin + 45 * mm, y, str(value or "-")[:80])
        y -= 7 * mm

    sign_y = 16 * mm
    c.setStrokeColor(colors.lightgrey)
    for x, caption in ((margin, "Issued by"), (width / 2 + 10 * mm, "Security")):
        c.line(x, sign_y, x + 60 * mm, sign_y)
        c.setFont("Helvetica", 8)
        c.setFillColor(MUTED)
        c.drawString(x, sign_y - 4 * mm, caption)

    c.showPage()
    c.save()
    return buf.getvalue()
