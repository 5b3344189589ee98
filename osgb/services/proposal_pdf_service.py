"""PDF rendering for proposals (reads only the pricing snapshot)."""

from datetime import datetime
from decimal import Decimal
from io import BytesIO
from typing import Dict, Any

from reportlab.lib.pagesizes import A4
from reportlab.lib import colors
from reportlab.lib.units import inch
from reportlab.platypus import SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.enums import TA_CENTER
from xml.sax.saxutils import escape

from sqlalchemy.orm import Session

from osgb.services.pricing_service import snapshot
from osgb.services.proposal_service import get_proposal, DEFAULT_INTRO, DEFAULT_TERMS
from osgb.utils.formatters import money_tr, num_tr, date_tr, currency_symbol


def _paragraph_text(text: str) -> str:
    return escape(text or '').replace('\n', '<br/>')


def render_proposal_pdf(data: Dict[str, Any], business_info: Dict[str, Any]) -> BytesIO:
    """
    Render a proposal snapshot (see `pricing_service.snapshot`) to PDF.

    Internal cost and profit figures are present in the snapshot but are
    never printed.
    """
    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        rightMargin=0.75*inch,
        leftMargin=0.75*inch,
        topMargin=0.75*inch,
        bottomMargin=0.75*inch,
        title=f"Teklif {data.get('proposal_number') or ''}",
    )

    elements = []
    styles = getSampleStyleSheet()
    symbol = currency_symbol(data.get('currency'))
    totals = data['totals']

    title_style = ParagraphStyle(
        'CustomTitle',
        parent=styles['Heading1'],
        fontSize=22,
        textColor=colors.HexColor('#1E3A8A'),
        spaceAfter=12,
        alignment=TA_CENTER,
        fontName='Helvetica-Bold'
    )

    header_style = ParagraphStyle(
        'CustomHeader',
        parent=styles['Normal'],
        fontSize=10,
        textColor=colors.HexColor('#64748B'),
        alignment=TA_CENTER,
        spaceAfter=6
    )

    body_style = ParagraphStyle('Body', parent=styles['Normal'], fontSize=10, leading=14)

    # 1. Title and business header
    elements.append(Paragraph("HİZMET TEKLİFİ", title_style))

    if business_info.get('name'):
        elements.append(Paragraph(f"<b>{escape(business_info['name'])}</b>", header_style))

    if business_info.get('address'):
        elements.append(Paragraph(escape(business_info['address']), header_style))

    contact_parts = []
    if business_info.get('phone'):
        contact_parts.append(f"Tel: {business_info['phone']}")
    if business_info.get('email'):
        contact_parts.append(f"E-posta: {business_info['email']}")

    if contact_parts:
        elements.append(Paragraph(escape(" | ".join(contact_parts)), header_style))

    elements.append(Spacer(1, 0.3*inch))

    # 2. Proposal metadata
    info_data = [
        ['Teklif No:', data.get('proposal_number') or '-'],
        ['Tarih:', date_tr(data.get('issued_on'))],
        ['Geçerlilik:', date_tr(data.get('valid_until'))],
        ['Revizyon:', f"v{data.get('current_version_number') or 1}"],
    ]
    if data.get('company_name'):
        info_data.append(['Firma:', data['company_name']])
    if data.get('currency') and data['currency'] != 'TRY':
        info_data.append(['Kur:', f"1 {data['currency']} = {num_tr(data.get('exchange_rate'), 4)} ₺"])

    info_table = Table(info_data, colWidths=[1.6*inch, 4*inch])
    info_table.setStyle(TableStyle([
        ('ALIGN', (0, 0), (0, -1), 'RIGHT'),
        ('ALIGN', (1, 0), (1, -1), 'LEFT'),
        ('FONTNAME', (0, 0), (0, -1), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, -1), 10),
        ('TEXTCOLOR', (0, 0), (-1, -1), colors.HexColor('#334155')),
    ]))
    elements.append(info_table)
    elements.append(Spacer(1, 0.25*inch))

    # 3. Intro / cover note
    elements.append(Paragraph(_paragraph_text(data.get('notes') or DEFAULT_INTRO), body_style))
    elements.append(Spacer(1, 0.25*inch))

    # 4. Items table
    table_data = [['#', 'Hizmet', 'Adet', 'Birim Fiyat', 'İndirim', 'Tutar']]
    for position, item in enumerate(data['items'], start=1):
        table_data.append([
            str(position),
            Paragraph(escape(item['name']), body_style),
            str(item['quantity']),
            f"{money_tr(item['unit_price'])} {symbol}",
            f"%{num_tr(item['discount_percent'])}",
            f"{money_tr(item['line_total'])} {symbol}",
        ])

    items_table = Table(table_data, colWidths=[0.35*inch, 2.75*inch, 0.55*inch, 1.1*inch, 0.65*inch, 1.2*inch], repeatRows=1)
    items_table.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor('#1E3A8A')),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.whitesmoke),
        ('ALIGN', (0, 0), (-1, 0), 'CENTER'),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('BOTTOMPADDING', (0, 0), (-1, 0), 10),
        ('ALIGN', (0, 1), (0, -1), 'CENTER'),
        ('ALIGN', (2, 1), (2, -1), 'CENTER'),
        ('ALIGN', (3, 1), (-1, -1), 'RIGHT'),
        ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
        ('GRID', (0, 0), (-1, -1), 0.5, colors.HexColor('#CBD5E1')),
        ('ROWBACKGROUNDS', (0, 1), (-1, -1), [colors.white, colors.HexColor('#F1F5F9')]),
    ]))
    elements.append(items_table)
    elements.append(Spacer(1, 0.2*inch))

    # 5. Totals
    totals_data = [['Ara Toplam:', f"{money_tr(totals['sub_total'])} {symbol}"]]
    if Decimal(totals['item_discount_total']) > 0:
        totals_data.append(['Kalem İndirimleri:', f"-{money_tr(totals['item_discount_total'])} {symbol}"])
    if Decimal(totals['overall_discount_amount']) > 0:
        totals_data.append([
            f"Genel İndirim (%{num_tr(data.get('overall_discount_percent'))}):",
            f"-{money_tr(totals['overall_discount_amount'])} {symbol}",
        ])
    totals_data.extend([
        ['KDV Matrahı:', f"{money_tr(totals['tax_base'])} {symbol}"],
        [f"KDV (%{num_tr(data.get('tax_rate_percent'))}):", f"{money_tr(totals['tax_amount'])} {symbol}"],
        ['GENEL TOPLAM:', f"{money_tr(totals['grand_total'])} {symbol}"],
    ])

    totals_table = Table(totals_data, colWidths=[5.2*inch, 1.4*inch])
    totals_table.setStyle(TableStyle([
        ('ALIGN', (0, 0), (-1, -1), 'RIGHT'),
        ('FONTSIZE', (0, 0), (-1, -1), 10),
        ('FONTNAME', (0, -1), (-1, -1), 'Helvetica-Bold'),
        ('FONTSIZE', (0, -1), (-1, -1), 13),
        ('TEXTCOLOR', (0, -1), (-1, -1), colors.HexColor('#047857')),
        ('BACKGROUND', (0, -1), (-1, -1), colors.HexColor('#ECFDF5')),
        ('BOX', (0, -1), (-1, -1), 1.5, colors.HexColor('#047857')),
    ]))
    elements.append(totals_table)
    elements.append(Spacer(1, 0.35*inch))

    # 6. Terms
    terms = data.get('terms') or DEFAULT_TERMS
    footer_style = ParagraphStyle('Footer', parent=styles['Normal'], fontSize=9, textColor=colors.HexColor('#64748B'))
    elements.append(Paragraph("<b>Hüküm ve Koşullar</b>", footer_style))
    for term in terms:
        elements.append(Paragraph(f"• {escape(term)}", footer_style))

    generated = datetime.now().strftime('%d.%m.%Y %H:%M')
    elements.append(Spacer(1, 0.2*inch))
    elements.append(Paragraph(f"<i>Oluşturulma: {generated}</i>", footer_style))

    doc.build(elements)
    buffer.seek(0)
    return buffer


def generate_proposal_pdf(proposal_id: int, session: Session, business_info: dict) -> BytesIO:
    """Generate the PDF of a persisted proposal."""
    proposal = get_proposal(session, proposal_id)
    return render_proposal_pdf(snapshot(proposal), business_info)
