"""Payment reconciliation report and ledger export routes."""

import io
from datetime import timedelta

from flask import request, send_file, current_app
from flask_login import login_required
from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill, Alignment, Border, Side
from openpyxl.utils import get_column_letter

from models.payment import find_paid_on_cancelled_reservations, get_payment_ledger
from models.reservation_status import PaymentStatus
from utils.api_response import api_success, api_error
from utils.datetime_helpers import get_today, parse_date
from utils.decorators import permission_required


def register_routes(bp):
    """Register report routes on the blueprint."""

    @bp.route('/reports/reconciliation', methods=['GET'])
    @login_required
    @permission_required('venue.reports.view')
    def reconciliation():
        """
        Paid obligations on cancelled reservations plus ledger totals.

        Query params:
            start: First event date (optional, defaults to 30 days ago)
            end: Last event date (optional, defaults to 90 days ahead)
        """
        try:
            start, end = _date_range()
        except ValueError:
            return api_error('Invalid date range', status=400)

        needs_refund = find_paid_on_cancelled_reservations()
        ledger = get_payment_ledger(start, end)

        return api_success(data={
            'needs_refund_review': needs_refund,
            'summary': summarize_ledger(ledger),
            'start': start.isoformat(),
            'end': end.isoformat(),
        })

    @bp.route('/reports/payments/export', methods=['GET'])
    @login_required
    @permission_required('venue.reports.view')
    def export_payments():
        """Download the payment ledger for a date range as an Excel workbook."""
        try:
            start, end = _date_range()
        except ValueError:
            return api_error('Invalid date range', status=400)

        output = build_ledger_workbook(get_payment_ledger(start, end), start, end)
        filename = f'payment_ledger_{start.isoformat()}_{end.isoformat()}.xlsx'
        return send_file(
            output,
            mimetype='application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
            as_attachment=True,
            download_name=filename
        )


def _date_range() -> tuple:
    today = get_today()
    start = parse_date(request.args['start']) if request.args.get('start') else today - timedelta(days=30)
    end = parse_date(request.args['end']) if request.args.get('end') else today + timedelta(days=90)
    if end < start:
        raise ValueError('end before start')
    return start, end


def summarize_ledger(payments: list) -> dict:
    """
    Totals per obligation status.

    Returns:
        Dict keyed by status with count and amount, plus collected and outstanding
    """
    summary = {status.value: {'count': 0, 'amount': 0.0} for status in PaymentStatus}
    collected = 0.0
    refunded = 0.0
    for payment in payments:
        bucket = summary[payment['status']]
        bucket['count'] += 1
        bucket['amount'] = round(bucket['amount'] + payment['amount'], 2)
        if payment['paid_amount'] is not None:
            collected += payment['paid_amount']
        if payment['refund_amount'] is not None:
            refunded += payment['refund_amount']

    summary['collected'] = round(collected, 2)
    summary['refunded'] = round(refunded, 2)
    summary['outstanding'] = summary[PaymentStatus.PENDING.value]['amount']
    return summary


def build_ledger_workbook(payments: list, start, end) -> io.BytesIO:
    """
    Render ledger rows into an in-memory workbook.

    Args:
        payments: Rows from get_payment_ledger
        start: First event date of the range
        end: Last event date of the range

    Returns:
        BytesIO positioned at the start
    """
    wb = Workbook()
    ws = wb.active
    ws.title = "Payments"

    header_font = Font(bold=True, color="FFFFFF", size=11)
    header_fill = PatternFill(start_color="2E5E3E", end_color="2E5E3E", fill_type="solid")
    header_alignment = Alignment(horizontal="center", vertical="center", wrap_text=True)
    thin_border = Border(
        left=Side(style='thin', color="D4D4D4"),
        right=Side(style='thin', color="D4D4D4"),
        top=Side(style='thin', color="D4D4D4"),
        bottom=Side(style='thin', color="D4D4D4")
    )
    alt_fill = PatternFill(start_color="F5F5F5", end_color="F5F5F5", fill_type="solid")

    headers = [
        "Reservation", "Event Date", "Host", "Event Type", "Fee", "Amount",
        "Due Date", "Status", "Method", "Paid On", "Paid Amount", "Refunded"
    ]
    num_cols = len(headers)

    ws.merge_cells(start_row=1, start_column=1, end_row=1, end_column=num_cols)
    title_cell = ws.cell(
        row=1, column=1,
        value=f"{current_app.config.get('VENUE_NAME')} - Payment Ledger "
              f"{start.strftime('%b %d, %Y')} to {end.strftime('%b %d, %Y')}"
    )
    title_cell.font = Font(bold=True, size=14, color="2E5E3E")
    title_cell.alignment = Alignment(horizontal="center", vertical="center")

    header_row = 3
    for col, header in enumerate(headers, 1):
        cell = ws.cell(row=header_row, column=col, value=header)
        cell.font = header_font
        cell.fill = header_fill
        cell.alignment = header_alignment
        cell.border = thin_border
    ws.freeze_panes = f'A{header_row + 1}'

    for row_idx, payment in enumerate(payments, header_row + 1):
        values = [
            payment['reservation_id'],
            payment['starts_at'][:10],
            payment.get('organization_name') or payment['requestor_name'],
            payment['event_type'],
            payment['fee_type_name'],
            payment['amount'],
            payment['due_date'],
            payment['status'],
            payment['payment_method'] or '-',
            payment['payment_date'] or '-',
            payment['paid_amount'],
            payment['refund_amount'],
        ]
        is_alt = (row_idx - header_row) % 2 == 0
        for col, value in enumerate(values, 1):
            cell = ws.cell(row=row_idx, column=col, value=value)
            cell.border = thin_border
            if col in (6, 11, 12):
                cell.number_format = '"$"#,##0.00'
            if is_alt:
                cell.fill = alt_fill

    column_widths = [12, 12, 28, 20, 18, 12, 12, 12, 14, 12, 12, 12]
    for col, width in enumerate(column_widths, 1):
        ws.column_dimensions[get_column_letter(col)].width = width

    output = io.BytesIO()
    wb.save(output)
    output.seek(0)
    return output
