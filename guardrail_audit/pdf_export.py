"""
pdf_export.py - Readable PDF rendering of an audit trail export.

The PDF consumes the JSON export dict and never recomputes anything:
checksums and verification results are copied from the dict as-is.
The JSON export stays the only verifiable artifact.
"""

from io import BytesIO
from typing import Any
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import letter
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import (
    PageBreak,
    Paragraph,
    SimpleDocTemplate,
    Spacer,
    Table,
    TableStyle,
)

# Rows shown in the entry table
MAX_PDF_ENTRIES = 50

EXPORT_NOTICE = """AUDIT TRAIL REPORT

This report is a RENDERING of a JSON audit trail export. It is not the primary evidence artifact.
Verify the source JSON with guardrail_verify before relying on any value shown here.

Trail: {trail_name}
Verification Status: {verification_status}
Export Date: {export_date}"""


def render_pdf(export_data: dict[str, Any]) -> bytes:
    """
    Render an export dict (see export.build_export_document) to PDF bytes.

    Structure:
    1. Cover (trail, verification status, notice)
    2. Entry table (first 50 entries)
    3. Verification annex (digest, algorithm, findings)
    """
    buffer = BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=letter,
                            topMargin=0.75*inch, bottomMargin=0.75*inch)

    styles = getSampleStyleSheet()
    title_style = ParagraphStyle(
        'AuditTitle',
        parent=styles['Title'],
        fontSize=20,
        textColor=colors.HexColor('#1a1a1a'),
        spaceAfter=6
    )
    heading_style = ParagraphStyle(
        'AuditHeading',
        parent=styles['Heading1'],
        fontSize=14,
        textColor=colors.HexColor('#2a2a2a'),
        spaceAfter=10,
        spaceBefore=12
    )
    body_style = styles['BodyText']

    metadata = export_data.get('metadata') or {}
    integrity = export_data.get('integrity') or {}
    entries = export_data.get('entries', [])
    status = _verification_status(export_data)

    story = []

    # === 1. COVER ===
    story.append(Paragraph("Guardrail Audit Trail", title_style))
    story.append(Paragraph("Audit Export Report", styles['Heading2']))
    story.append(Spacer(1, 0.3*inch))

    cover_data = [
        ["Trail", metadata.get('trail_name', 'N/A')],
        ["Verification Status", status],
        ["Entries Exported", str(len(entries))],
        ["Complete Trail", "YES" if integrity.get('complete') else "NO (filtered)"],
        ["Export Timestamp", export_data.get('export_timestamp', 'N/A')],
    ]
    cover_table = Table(cover_data, colWidths=[2*inch, 4*inch])
    cover_table.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (0, -1), colors.HexColor('#e0e0e0')),
        ('FONTNAME', (0, 0), (0, -1), 'Helvetica-Bold'),
        ('GRID', (0, 0), (-1, -1), 1, colors.black),
        ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
        ('PADDING', (0, 0), (-1, -1), 8),
    ]))
    story.append(cover_table)
    story.append(Spacer(1, 0.4*inch))

    notice_text = EXPORT_NOTICE.format(
        trail_name=metadata.get('trail_name', 'N/A'),
        verification_status=status,
        export_date=export_data.get('export_timestamp', 'N/A'),
    )
    notice_style = ParagraphStyle(
        'Notice',
        parent=body_style,
        fontSize=9,
        leading=12,
        textColor=colors.HexColor('#333333'),
        borderWidth=1,
        borderColor=colors.black,
        borderPadding=10,
        backColor=colors.HexColor('#fff3cd')
    )
    story.append(Paragraph(escape(notice_text).replace('\n', '<br/>'), notice_style))

    if metadata.get('evicted_entries'):
        story.append(Spacer(1, 0.1*inch))
        warning_style = ParagraphStyle(
            'Warning',
            parent=body_style,
            fontSize=10,
            textColor=colors.red,
            fontName='Helvetica-Bold'
        )
        story.append(Paragraph(
            f"WARNING: {metadata['evicted_entries']} older entries were evicted from this trail.",
            warning_style
        ))

    # === 2. ENTRIES ===
    story.append(PageBreak())
    story.append(Paragraph("Audit Entries", heading_style))

    entry_data = [["Timestamp", "Event Type", "Severity", "Outcome"]]
    for entry in entries[:MAX_PDF_ENTRIES]:
        entry_data.append([
            (entry.get('timestamp') or '')[:23],
            entry.get('event_type', ''),
            entry.get('severity', ''),
            entry.get('outcome', ''),
        ])

    if len(entries) > MAX_PDF_ENTRIES:
        entry_data.append(["...", f"({len(entries) - MAX_PDF_ENTRIES} more entries)", "...", "..."])

    entry_table = Table(entry_data, colWidths=[1.9*inch, 2.2*inch, 1.2*inch, 1.0*inch])
    entry_table.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor('#4a4a4a')),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.whitesmoke),
        ('ALIGN', (0, 0), (-1, -1), 'LEFT'),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, -1), 9),
        ('BOTTOMPADDING', (0, 0), (-1, 0), 8),
        ('GRID', (0, 0), (-1, -1), 0.5, colors.grey),
        ('ROWBACKGROUNDS', (0, 1), (-1, -1), [colors.white, colors.HexColor('#f0f0f0')]),
    ]))
    story.append(entry_table)

    # === 3. VERIFICATION ANNEX ===
    story.append(PageBreak())
    story.append(Paragraph("Verification Annex", heading_style))
    story.append(Paragraph(
        "<i>All hashes below are copied verbatim from the JSON export.</i>",
        body_style
    ))
    story.append(Spacer(1, 0.2*inch))

    verification = integrity.get('verification')
    annex_data = [
        ["Algorithm", integrity.get('algorithm', 'N/A')],
        ["Export Digest", integrity.get('checksum', 'N/A')],
        ["Chain Anchor", metadata.get('chain_anchor') or 'NONE'],
    ]
    if verification:
        annex_data += [
            ["Verified Entries", f"{verification.get('verified_entries')} / {verification.get('total_entries')}"],
            ["Checksum Failures", str(len(verification.get('checksum_failures', [])))],
            ["Chain Breaks", str(len(verification.get('chain_breaks', [])))],
            ["Last Verified Hash", verification.get('last_verified_hash') or 'N/A'],
        ]
    else:
        annex_data.append(["Verification", "NOT INCLUDED"])

    annex_table = Table(annex_data, colWidths=[2*inch, 4*inch])
    annex_table.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (0, -1), colors.HexColor('#e8e8e8')),
        ('FONTNAME', (0, 0), (0, -1), 'Helvetica-Bold'),
        ('FONTNAME', (1, 0), (1, -1), 'Courier'),
        ('FONTSIZE', (1, 0), (1, -1), 7),
        ('GRID', (0, 0), (-1, -1), 1, colors.black),
        ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
        ('PADDING', (0, 0), (-1, -1), 6),
    ]))
    story.append(annex_table)

    doc.build(story)

    pdf_bytes = buffer.getvalue()
    buffer.close()

    return pdf_bytes


def _verification_status(export_data: dict[str, Any]) -> str:
    verification = (export_data.get('integrity') or {}).get('verification')
    if not verification:
        return 'NOT VERIFIED AT EXPORT'
    if verification.get('status') == 'verified':
        return 'VERIFIED'
    return 'CORRUPTED'
