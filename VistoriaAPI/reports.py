"""
Inspection report rendering.

Both renderers take a fully loaded Inspection (property, inspector, items with
rooms and photos) and group the checklist by room in item order.
"""

import base64
import io
import logging
from collections import OrderedDict
from datetime import datetime
from html import escape
from typing import Dict, List, Optional

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader
from reportlab.platypus import Image, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from VistoriaAPI import config
from VistoriaAPI.constants import CONDITION_LABELS
from VistoriaAPI.models import ChecklistItem, Inspection

logger = logging.getLogger(__name__)


def _value(enum_or_str) -> str:
    return getattr(enum_or_str, "value", enum_or_str) or ""


def condition_label(condition) -> str:
    value = _value(condition)
    return CONDITION_LABELS.get(value, value)


def group_items_by_room(inspection: Inspection) -> "OrderedDict[str, List[ChecklistItem]]":
    grouped: "OrderedDict[str, List[ChecklistItem]]" = OrderedDict()
    for item in inspection.items:
        grouped.setdefault(item.room.name, []).append(item)
    return grouped


def absolute_photo_url(url: str) -> str:
    """Locally stored photos are served relative to the API host."""
    if url.startswith("/"):
        return f"{config.APP_URL.rstrip('/')}{url}"
    return url


def _address(prop) -> str:
    return f"{prop.street}, {prop.number or 'no number'}"


def _format_date(value: Optional[datetime]) -> str:
    return value.strftime("%d/%m/%Y") if value else "-"


def build_report_html(inspection: Inspection) -> str:
    prop = inspection.property
    inspector_name = inspection.inspector.name if inspection.inspector else ""

    rooms_html = ""
    for room_name, items in group_items_by_room(inspection).items():
        rows = "".join(
            f"<tr><td>{escape(item.label)}</td>"
            f"<td>{escape(condition_label(item.condition))}</td>"
            f"<td>{escape(item.note or '-')}</td></tr>"
            for item in items
        )
        photos = [photo for item in items for photo in item.photos]
        photos_html = ""
        if photos:
            photos_html = '<div class="photos">' + "".join(
                f'<img src="{escape(absolute_photo_url(photo.url))}" alt="{escape(photo.caption or "")}" />'
                for photo in photos
            ) + "</div>"
        rooms_html += f"""
      <div class="room">
        <h3>{escape(room_name)}</h3>
        <table>
          <tr><th>Item</th><th>Condition</th><th>Note</th></tr>
          {rows}
        </table>
        {photos_html}
      </div>
    """

    notes_html = ""
    if inspection.notes:
        notes_html = f"<h2>General notes</h2><p>{escape(inspection.notes)}</p>"

    return f"""<!DOCTYPE html>
<html><head><meta charset="UTF-8"><title>Inspection - {escape(_address(prop))}</title>
<style>
  body {{ font-family: Arial, sans-serif; margin: 40px; color: #333; }}
  h1 {{ color: #1a365d; border-bottom: 2px solid #1a365d; padding-bottom: 10px; }}
  h2 {{ color: #2d3748; margin-top: 30px; }}
  h3 {{ background: #edf2f7; padding: 10px; margin: 20px 0 10px; border-radius: 5px; }}
  table {{ width: 100%; border-collapse: collapse; margin-bottom: 15px; }}
  th, td {{ border: 1px solid #e2e8f0; padding: 8px; text-align: left; }}
  th {{ background: #4a5568; color: white; }}
  .info p {{ margin: 5px 0; }}
  .photos img {{ max-width: 200px; max-height: 150px; margin: 5px; border: 1px solid #ccc; }}
  .footer {{ margin-top: 50px; border-top: 1px solid #ccc; padding-top: 20px; font-size: 12px; color: #666; }}
</style></head>
<body>
  <h1>Inspection Report</h1>
  <div class="info">
    <p><strong>Type:</strong> {_value(inspection.type)}</p>
    <p><strong>Status:</strong> {_value(inspection.status)}</p>
    <p><strong>Date:</strong> {_format_date(inspection.inspection_date)}</p>
    <p><strong>Inspector:</strong> {escape(inspector_name)}</p>
  </div>
  <h2>Property</h2>
  <div class="info">
    <p><strong>Address:</strong> {escape(_address(prop))}</p>
    <p><strong>District:</strong> {escape(prop.district or '')}</p>
    <p><strong>City:</strong> {escape(prop.city or '')} - {escape(prop.state or '')}</p>
    <p><strong>Type:</strong> {_value(prop.type)}</p>
  </div>
  <h2>Checklist by room</h2>
  {rooms_html}
  {notes_html}
  <div class="footer">
    <p>Generated on {datetime.now().strftime("%d/%m/%Y %H:%M")}</p>
  </div>
</body></html>"""


def _signature_image(data_url: Optional[str]) -> Optional[Image]:
    if not data_url:
        return None
    encoded = data_url.split(",", 1)[1] if data_url.startswith("data:") else data_url
    try:
        raw = base64.b64decode(encoded, validate=True)
        ImageReader(io.BytesIO(raw)).getSize()
        return Image(io.BytesIO(raw), width=60 * mm, height=25 * mm)
    except Exception:
        # reportlab re-raises PIL decode errors with its own annotations
        logger.warning("Unreadable signature image, rendering name only")
        return None


def build_report_pdf(inspection: Inspection) -> bytes:
    """
    Render the inspection report as an A4 PDF.

    Returns:
        PDF bytes
    """
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        rightMargin=15 * mm,
        leftMargin=15 * mm,
        topMargin=20 * mm,
        bottomMargin=20 * mm,
        title=f"Inspection {inspection.id}",
    )

    styles = getSampleStyleSheet()
    title_style = ParagraphStyle(
        "ReportTitle",
        parent=styles["Heading1"],
        fontSize=20,
        spaceAfter=12,
        textColor=colors.HexColor("#1a365d"),
    )
    heading_style = ParagraphStyle(
        "RoomHeading",
        parent=styles["Heading3"],
        spaceBefore=12,
        spaceAfter=6,
        textColor=colors.HexColor("#2d3748"),
    )
    small_style = ParagraphStyle(
        "Small",
        parent=styles["Normal"],
        fontSize=8,
        textColor=colors.HexColor("#64748b"),
    )
    normal_style = styles["Normal"]

    prop = inspection.property
    inspector_name = inspection.inspector.name if inspection.inspector else ""

    elements = [Paragraph("Inspection Report", title_style)]
    info_rows = [
        ["Type", _value(inspection.type), "Status", _value(inspection.status)],
        ["Date", _format_date(inspection.inspection_date), "Inspector", inspector_name],
        ["Address", _address(prop), "District", prop.district or ""],
        ["City", f"{prop.city} - {prop.state}", "Property type", _value(prop.type)],
    ]
    info_table = Table(info_rows, colWidths=[25 * mm, 65 * mm, 25 * mm, 65 * mm])
    info_table.setStyle(
        TableStyle(
            [
                ("FONTNAME", (0, 0), (0, -1), "Helvetica-Bold"),
                ("FONTNAME", (2, 0), (2, -1), "Helvetica-Bold"),
                ("FONTSIZE", (0, 0), (-1, -1), 9),
                ("BOTTOMPADDING", (0, 0), (-1, -1), 4),
            ]
        )
    )
    elements.append(info_table)
    elements.append(Spacer(1, 8))

    for room_name, items in group_items_by_room(inspection).items():
        elements.append(Paragraph(escape(room_name), heading_style))
        data = [["Item", "Condition", "Note"]]
        for item in items:
            data.append([
                item.label,
                condition_label(item.condition),
                Paragraph(escape(item.note or "-"), normal_style),
            ])
        table = Table(data, colWidths=[40 * mm, 30 * mm, 110 * mm], repeatRows=1)
        table.setStyle(
            TableStyle(
                [
                    ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#4a5568")),
                    ("TEXTCOLOR", (0, 0), (-1, 0), colors.whitesmoke),
                    ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
                    ("FONTSIZE", (0, 0), (-1, -1), 9),
                    ("VALIGN", (0, 0), (-1, -1), "TOP"),
                    ("GRID", (0, 0), (-1, -1), 0.5, colors.HexColor("#e2e8f0")),
                    ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, colors.HexColor("#f7fafc")]),
                ]
            )
        )
        elements.append(table)
        photo_count = sum(len(item.photos) for item in items)
        if photo_count:
            elements.append(Paragraph(f"{photo_count} photo(s) attached", small_style))

    if inspection.notes:
        elements.append(Paragraph("General notes", heading_style))
        elements.append(Paragraph(escape(inspection.notes), normal_style))

    signatures: Dict[str, Optional[str]] = {
        "Inspector": inspection.inspector_signature,
        inspection.client_name or "Client": inspection.client_signature,
    }
    if any(signatures.values()):
        elements.append(Paragraph("Signatures", heading_style))
        row = []
        names = []
        for name, data_url in signatures.items():
            row.append(_signature_image(data_url) or "")
            names.append(name if data_url else "")
        sign_table = Table([row, names], colWidths=[90 * mm, 90 * mm])
        sign_table.setStyle(
            TableStyle(
                [
                    ("ALIGN", (0, 0), (-1, -1), "CENTER"),
                    ("LINEABOVE", (0, 1), (-1, 1), 0.5, colors.HexColor("#94a3b8")),
                    ("FONTSIZE", (0, 1), (-1, 1), 9),
                ]
            )
        )
        elements.append(sign_table)

    elements.append(Spacer(1, 16))
    elements.append(Paragraph(f"Generated on {datetime.now().strftime('%d/%m/%Y %H:%M')}", small_style))

    doc.build(elements)
    return buffer.getvalue()
