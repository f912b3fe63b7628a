# billing/exports.py

"""
Billing exports: student statement (PDF) and accountant billing report (Excel).
Both builders take already-filtered bills and return file content.
"""

from decimal import Decimal
from io import BytesIO
import logging

from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill, Alignment, Border, Side

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import inch
from reportlab.platypus import SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer
from reportlab.lib.enums import TA_CENTER

from billing.models import Bill
from core.models import FinancialSettings
from core.utils import get_school_current_time

logger = logging.getLogger(__name__)

HEADER_COLOR = '4472C4'


def _student_name(user):
    return user.get_full_name() or user.get_username()


def _amount_text(settings, amount):
    # Helvetica has no peso glyph, so PDFs show the currency code
    return f"{settings.school_currency} {settings.format_currency(amount, include_symbol=False)}"


# =============================================================================
# STUDENT STATEMENT (PDF)
# =============================================================================

def build_statement_pdf(student, bills):
    """
    Render a student's billing statement.

    Args:
        student: User the statement is for
        bills: iterable of Bill instances, in display order

    Returns:
        bytes: PDF document
    """
    settings = FinancialSettings.get_instance()
    bills = list(bills)

    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        rightMargin=30,
        leftMargin=30,
        topMargin=30,
        bottomMargin=18,
        title=f"Billing Statement - {_student_name(student)}",
    )

    elements = []

    styles = getSampleStyleSheet()
    title_style = ParagraphStyle(
        'StatementTitle',
        parent=styles['Heading1'],
        fontSize=20,
        textColor=colors.HexColor(f'#{HEADER_COLOR}'),
        spaceAfter=12,
        alignment=TA_CENTER,
    )
    subtitle_style = ParagraphStyle(
        'StatementSubtitle',
        parent=styles['Normal'],
        fontSize=10,
        textColor=colors.grey,
        spaceAfter=20,
        alignment=TA_CENTER,
    )

    elements.append(Paragraph("Billing Statement", title_style))
    elements.append(Paragraph(
        f"{_student_name(student)} | Generated on: {get_school_current_time().strftime('%Y-%m-%d %H:%M')}",
        subtitle_style
    ))
    elements.append(Spacer(1, 0.2*inch))

    data = [['#', 'Due Date', 'Description', 'Status', 'Reference', 'Amount']]
    total = Decimal('0.00')
    outstanding = Decimal('0.00')

    for idx, bill in enumerate(bills, start=1):
        total += bill.amount
        if bill.status == bill.STATUS_PENDING:
            outstanding += bill.amount

        data.append([
            str(idx),
            bill.due_date.strftime('%Y-%m-%d'),
            (bill.notes.splitlines()[0] if bill.notes else '')[:40],
            bill.get_status_display(),
            (bill.transaction_reference or '')[:28],
            _amount_text(settings, bill.amount),
        ])

    data.append(['', '', '', '', 'Total', _amount_text(settings, total)])

    table = Table(data, colWidths=[
        0.4*inch,   # #
        0.9*inch,   # Due Date
        2.0*inch,   # Description
        1.1*inch,   # Status
        1.9*inch,   # Reference
        1.2*inch,   # Amount
    ])

    table.setStyle(TableStyle([
        # Header
        ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor(f'#{HEADER_COLOR}')),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.whitesmoke),
        ('ALIGN', (0, 0), (-1, 0), 'CENTER'),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, 0), 10),
        ('BOTTOMPADDING', (0, 0), (-1, 0), 12),

        # Data rows
        ('FONTNAME', (0, 1), (-1, -1), 'Helvetica'),
        ('FONTSIZE', (0, 1), (-1, -1), 8),
        ('ALIGN', (0, 1), (0, -1), 'CENTER'),
        ('ALIGN', (-1, 1), (-1, -1), 'RIGHT'),
        ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
        ('ROWBACKGROUNDS', (0, 1), (-1, -2), [colors.white, colors.HexColor('#F5F5F5')]),

        # Totals
        ('FONTNAME', (0, -1), (-1, -1), 'Helvetica-Bold'),
        ('LINEABOVE', (0, -1), (-1, -1), 1, colors.black),

        ('GRID', (0, 0), (-1, -2), 0.5, colors.grey),
    ]))

    elements.append(table)
    elements.append(Spacer(1, 0.3*inch))

    summary_text = f"""
    <b>Summary:</b><br/>
    Bills: {len(bills)}<br/>
    Total Billed: {_amount_text(settings, total)}<br/>
    Outstanding: {_amount_text(settings, outstanding)}
    """
    elements.append(Paragraph(summary_text, styles['Normal']))

    doc.build(elements)

    pdf = buffer.getvalue()
    buffer.close()

    logger.info(f"Built billing statement for student {student.pk} ({len(bills)} bills)")
    return pdf


# =============================================================================
# BILLING REPORT (EXCEL)
# =============================================================================

def build_billing_workbook(bills, title="Billing Report"):
    """
    Accountant billing report.

    Returns:
        openpyxl Workbook (save it to a response or file)
    """
    settings = FinancialSettings.get_instance()

    wb = Workbook()
    ws = wb.active
    ws.title = "Bills"

    header_fill = PatternFill(start_color=HEADER_COLOR, end_color=HEADER_COLOR, fill_type="solid")
    header_font = Font(bold=True, color="FFFFFF", size=12)
    header_alignment = Alignment(horizontal="center", vertical="center", wrap_text=True)

    border_style = Border(
        left=Side(style='thin', color='000000'),
        right=Side(style='thin', color='000000'),
        top=Side(style='thin', color='000000'),
        bottom=Side(style='thin', color='000000')
    )

    ws.merge_cells('A1:J1')
    title_cell = ws['A1']
    title_cell.value = title
    title_cell.font = Font(bold=True, size=16, color=HEADER_COLOR)
    title_cell.alignment = Alignment(horizontal="center", vertical="center")

    ws.merge_cells('A2:J2')
    subtitle_cell = ws['A2']
    subtitle_cell.value = (
        f"Generated on: {get_school_current_time().strftime('%Y-%m-%d %H:%M')} | "
        f"Currency: {settings.school_currency}"
    )
    subtitle_cell.font = Font(size=10, italic=True)
    subtitle_cell.alignment = Alignment(horizontal="center")

    ws.append([])

    headers = [
        '#', 'Student', 'Username', 'Due Date', 'Amount', 'Status',
        'Payment Date', 'Payment Method', 'Reference', 'Notes'
    ]
    ws.append(headers)

    for cell in ws[4]:
        cell.fill = header_fill
        cell.font = header_font
        cell.alignment = header_alignment
        cell.border = border_style

    totals = {}
    count = 0

    for idx, bill in enumerate(bills, start=1):
        count += 1
        totals[bill.status] = totals.get(bill.status, Decimal('0.00')) + bill.amount

        ws.append([
            idx,
            _student_name(bill.student),
            bill.student.get_username(),
            bill.due_date,
            bill.amount,
            bill.get_status_display(),
            bill.payment_date,
            bill.payment_method or '',
            bill.transaction_reference or '',
            bill.notes or '',
        ])

        current_row = ws.max_row
        for cell in ws[current_row]:
            cell.border = border_style
            cell.alignment = Alignment(vertical="center", wrap_text=True)
        ws.cell(row=current_row, column=4).number_format = 'yyyy-mm-dd'
        ws.cell(row=current_row, column=5).number_format = '#,##0.00'
        ws.cell(row=current_row, column=7).number_format = 'yyyy-mm-dd'

    column_widths = {
        'A': 5, 'B': 25, 'C': 15, 'D': 12, 'E': 14,
        'F': 16, 'G': 14, 'H': 20, 'I': 32, 'J': 40
    }
    for col, width in column_widths.items():
        ws.column_dimensions[col].width = width

    summary_row = ws.max_row + 2
    ws[f'A{summary_row}'] = 'Total Bills:'
    ws[f'B{summary_row}'] = count
    ws[f'A{summary_row}'].font = Font(bold=True)
    ws[f'B{summary_row}'].font = Font(bold=True)

    status_labels = dict(Bill.STATUS_CHOICES)
    for offset, (status, amount) in enumerate(sorted(totals.items()), start=1):
        row = summary_row + offset
        ws[f'A{row}'] = f"{status_labels.get(status, status)}:"
        ws[f'B{row}'] = amount
        ws[f'A{row}'].font = Font(bold=True)
        ws[f'B{row}'].number_format = '#,##0.00'

    ws.freeze_panes = 'A5'

    logger.info(f"Built billing workbook '{title}' with {count} bills")
    return wb
