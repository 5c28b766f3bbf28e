"""
PDF Generation Utilities using ReportLab
"""
import io
import os
import logging
from datetime import datetime
from xml.sax.saxutils import escape

from flask import current_app
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import cm
from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle

logger = logging.getLogger(__name__)

BRAND_COLOR = '#0066cc'
EXPORT_ROW_LIMIT = 50


def _styles():
    styles = getSampleStyleSheet()
    title_style = ParagraphStyle(
        name='DocumentTitle',
        parent=styles['Heading1'],
        fontSize=22,
        textColor=colors.HexColor(BRAND_COLOR),
        spaceAfter=6,
        alignment=1,
    )
    heading_style = ParagraphStyle(
        name='SectionHeading',
        parent=styles['Heading2'],
        fontSize=14,
        textColor=colors.HexColor(BRAND_COLOR),
        spaceAfter=8,
    )
    return styles, title_style, heading_style


def _text(value):
    return escape(str(value)) if value not in (None, '') else '-'


def prescription_pdf_path(entry_id):
    """Absolute path and public URL for a prescription PDF"""
    folder = os.path.join(current_app.config['UPLOAD_FOLDER'], 'prescriptions')
    return os.path.join(folder, f"{entry_id}.pdf"), f"/uploads/prescriptions/{entry_id}.pdf"


def generate_prescription_pdf(entry):
    """
    Render a prescription history entry to <UPLOAD_FOLDER>/prescriptions/{id}.pdf

    Args:
        entry: MedicalHistoryEntry of type Prescription (must be flushed so it has an id)

    Returns:
        str: public URL of the generated file
    """
    output_path, url = prescription_pdf_path(entry.id)
    os.makedirs(os.path.dirname(output_path), exist_ok=True, mode=0o755)

    doc = SimpleDocTemplate(
        output_path, pagesize=A4,
        leftMargin=2*cm, rightMargin=2*cm, topMargin=2*cm, bottomMargin=2*cm
    )
    styles, title_style, heading_style = _styles()
    normal = styles['Normal']
    issued = entry.date or datetime.utcnow()
    story = []

    story.append(Paragraph("PRESCRIPTION", title_style))
    story.append(Paragraph(f"Date: {issued.strftime('%d-%m-%Y')}", normal))
    story.append(Spacer(1, 16))

    story.append(Paragraph("Patient Information", heading_style))
    pt = Table([
        ["Patient Name:", _text(entry.patient_name)],
        ["Patient Email:", _text(entry.patient_email)],
    ], colWidths=[5*cm, 10*cm])
    pt.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (0, -1), colors.HexColor('#f5f5f5')),
        ('FONTNAME', (0, 0), (0, -1), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, -1), 10),
        ('GRID', (0, 0), (-1, -1), 0.5, colors.grey),
        ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
    ]))
    story.append(pt)
    story.append(Spacer(1, 20))

    story.append(Paragraph("Prescription Details", heading_style))
    cell = ParagraphStyle(name='Cell', parent=normal, fontSize=10)
    rx = Table([
        ["Medicine", "Dosage / Instructions", "Notes"],
        [Paragraph(_text(entry.medicine), cell),
         Paragraph(_text(entry.dosage_instructions), cell),
         Paragraph(_text(entry.notes), cell)],
    ], colWidths=[5*cm, 6*cm, 5*cm])
    rx.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor(BRAND_COLOR)),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.white),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, -1), 10),
        ('GRID', (0, 0), (-1, -1), 0.5, colors.grey),
        ('VALIGN', (0, 0), (-1, -1), 'TOP'),
    ]))
    story.append(rx)
    story.append(Spacer(1, 40))

    story.append(Paragraph("<b>Prescribed by:</b>", normal))
    story.append(Paragraph(f'<font color="{BRAND_COLOR}" size="14"><b>{_text(entry.doctor_name)}</b></font>', normal))
    story.append(Spacer(1, 30))
    story.append(Paragraph("_" * 30, normal))
    story.append(Spacer(1, 30))
    story.append(Paragraph(
        "<i>This is a computer-generated prescription. Please follow the dosage instructions carefully.</i>",
        ParagraphStyle(name='Footer', parent=normal, fontSize=9, textColor=colors.grey, alignment=1)
    ))
    doc.build(story)
    logger.info("Prescription PDF generated: %s", output_path)
    return url


def generate_table_pdf(title, headers, rows, total_line=None):
    """
    Render an export table (first EXPORT_ROW_LIMIT rows) as PDF bytes.

    Args:
        title: heading text
        headers: column names
        rows: list of row value lists
        total_line: optional summary printed under the table
    """
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer, pagesize=landscape(A4),
        leftMargin=1.5*cm, rightMargin=1.5*cm, topMargin=1.5*cm, bottomMargin=1.5*cm
    )
    styles, title_style, _ = _styles()
    normal = styles['Normal']
    story = [
        Paragraph(escape(title), title_style),
        Paragraph(f"Generated: {datetime.utcnow().strftime('%Y-%m-%d %H:%M')} UTC", normal),
        Spacer(1, 12),
    ]

    data = [list(headers)]
    for row in rows[:EXPORT_ROW_LIMIT]:
        data.append(['' if value is None else str(value) for value in row])
    table = Table(data, repeatRows=1)
    table.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor(BRAND_COLOR)),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.white),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, -1), 8),
        ('GRID', (0, 0), (-1, -1), 0.5, colors.grey),
        ('ROWBACKGROUNDS', (0, 1), (-1, -1), [colors.white, colors.HexColor('#f5f5f5')]),
    ]))
    story.append(table)

    if total_line:
        story.append(Spacer(1, 12))
        story.append(Paragraph(f"<b>{escape(total_line)}</b>", normal))

    doc.build(story)
    return buffer.getvalue()
