from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.platypus import SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import inch
from datetime import datetime
import os
import tempfile
import pandas as pd

ACCOUNT_COLUMNS = ['Bucket', 'Student Name', 'Admission #', 'Days Overdue', 'Amount', 'Last Payment']


def _export_path(prefix, as_of, extension):
    temp_dir = tempfile.gettempdir()
    filename = f"{prefix}_{as_of.strftime('%Y%m%d')}_{datetime.now().strftime('%Y%m%d_%H%M%S%f')}.{extension}"
    return os.path.join(temp_dir, filename)


def _account_rows(report):
    rows = []
    for bucket in report:
        for account in bucket['accounts']:
            rows.append({
                'Bucket': bucket['bucket_name'],
                'Student Name': account['student_name'],
                'Admission #': account['admission_number'],
                'Days Overdue': account['days_overdue'],
                'Amount': account['amount'],
                'Last Payment': account['last_payment_date'],
            })
    return rows


def generate_aged_receivables_excel(report, as_of, currency='KES'):
    """Generate aged receivables Excel file (Summary and Accounts sheets)"""

    filepath = _export_path('aged_receivables', as_of, 'xlsx')

    with pd.ExcelWriter(filepath, engine='openpyxl') as writer:

        # Summary sheet
        summary_df = pd.DataFrame([
            {
                'Bucket': bucket['bucket_name'],
                'Student Count': bucket['student_count'],
                f'Total Amount ({currency})': bucket['total_amount'],
                'Accounts': len(bucket['accounts']),
            }
            for bucket in report
        ])
        summary_df.to_excel(writer, sheet_name='Summary', index=False)

        # One row per account per bucket
        accounts_df = pd.DataFrame(_account_rows(report), columns=ACCOUNT_COLUMNS)
        accounts_df.to_excel(writer, sheet_name='Accounts', index=False)

    return filepath


def generate_aged_receivables_pdf(report, as_of, currency='KES'):
    """Generate aged receivables PDF report"""

    filepath = _export_path('aged_receivables', as_of, 'pdf')

    doc = SimpleDocTemplate(filepath, pagesize=landscape(A4))
    story = []

    # Styles
    styles = getSampleStyleSheet()
    title_style = ParagraphStyle(
        'CustomTitle',
        parent=styles['Heading1'],
        fontSize=18,
        spaceAfter=20,
        alignment=1  # Center alignment
    )

    # Header
    story.append(Paragraph("AGED RECEIVABLES", title_style))
    story.append(Paragraph(f"As of {as_of.strftime('%d-%m-%Y')}", styles['Heading3']))
    story.append(Spacer(1, 12))

    # Bucket summary
    summary_data = [['Bucket', 'Students', f'Total ({currency})']]
    for bucket in report:
        summary_data.append([bucket['bucket_name'], str(bucket['student_count']), f"{bucket['total_amount']:,.2f}"])
    summary_data.append(['Total', '', f"{sum(bucket['total_amount'] for bucket in report):,.2f}"])

    summary_table = Table(summary_data, colWidths=[2*inch, 1.5*inch, 2*inch])
    summary_table.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (-1, 0), colors.grey),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.whitesmoke),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('FONTNAME', (0, -1), (-1, -1), 'Helvetica-Bold'),
        ('ALIGN', (1, 0), (-1, -1), 'RIGHT'),
        ('FONTSIZE', (0, 0), (-1, -1), 10),
        ('GRID', (0, 0), (-1, -1), 1, colors.black)
    ]))
    story.append(summary_table)
    story.append(Spacer(1, 20))

    # Account detail
    account_rows = _account_rows(report)
    if account_rows:
        detail_data = [ACCOUNT_COLUMNS]
        for row in account_rows:
            detail_data.append([
                row['Bucket'],
                row['Student Name'],
                row['Admission #'] or '',
                str(row['Days Overdue']),
                f"{row['Amount']:,.2f}",
                row['Last Payment'],
            ])

        detail_table = Table(detail_data, repeatRows=1)
        detail_table.setStyle(TableStyle([
            ('BACKGROUND', (0, 0), (-1, 0), colors.lightgrey),
            ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
            ('FONTSIZE', (0, 0), (-1, -1), 9),
            ('ALIGN', (3, 1), (4, -1), 'RIGHT'),
            ('GRID', (0, 0), (-1, -1), 0.5, colors.black)
        ]))
        story.append(detail_table)
    else:
        story.append(Paragraph("No outstanding receivables.", styles['Normal']))

    story.append(Spacer(1, 20))
    story.append(Paragraph("This is a computer generated report.", styles['Normal']))

    # Build PDF
    doc.build(story)

    return filepath
