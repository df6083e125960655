# services/excel_generator.py - Invoice Export Workbook
# ============================================================================

import io
from datetime import date, datetime
from typing import Sequence

import openpyxl
from openpyxl.styles import Font, PatternFill

from freightdesk.models.invoice import Invoice

CURRENCY_FORMAT = "#,##0.00"

# (header, attribute, number format); the order is the column order
EXPORT_COLUMNS = [
    ("Invoice Number", "invoice_number", None),
    ("Invoice Date", "invoice_date", "DD/MM/YYYY"),
    ("Invoice Type", "invoice_type", None),
    ("Supplier Name", "supplier_name", None),
    ("Place of Supply", "place_of_supply", None),
    ("Bill To", "bill_to_name", None),
    ("Ship To", "ship_to_name", None),
    ("Product", "product_name", None),
    ("HSN Code", "hsn_code", None),
    ("Quantity", "quantity", CURRENCY_FORMAT),
    ("Rate", "rate", CURRENCY_FORMAT),
    ("Amount", "amount", CURRENCY_FORMAT),
    ("Premium Amount", "premium_amount", CURRENCY_FORMAT),
    ("Truck Number", "truck_number", None),
    ("Vehicle Number", "vehicle_number", None),
    ("Owner Name", "owner_name", None),
    ("Claim", "is_claim", None),
    ("Verified", "is_verified", None),
    ("PDF", "pdf_url", None),
    ("Created At", "created_at", "DD/MM/YYYY HH:MM"),
]


def _cell_value(invoice: Invoice, attribute: str):
    if attribute == "truck_number":
        return invoice.truck.truck_number if invoice.truck else None
    value = getattr(invoice, attribute)
    if attribute in ("quantity", "rate", "amount", "premium_amount"):
        return float(value) if value is not None else None
    if attribute in ("is_claim", "is_verified"):
        return "Yes" if value else "No"
    if hasattr(value, "value"):  # enums
        return value.value
    if isinstance(value, datetime) and value.tzinfo is not None:
        # Excel cells cannot hold tz-aware datetimes
        return value.replace(tzinfo=None)
    return value


class ExcelGenerator:

    def create_invoice_export(self, invoices: Sequence[Invoice]) -> bytes:
        """One row per invoice under a bold header row; returns .xlsx bytes."""

        workbook = openpyxl.Workbook()
        ws = workbook.active
        ws.title = "Invoices"

        for col, (header, _, _) in enumerate(EXPORT_COLUMNS, 1):
            cell = ws.cell(row=1, column=col, value=header)
            cell.font = Font(bold=True)
            cell.fill = PatternFill(start_color="E8F5E8", end_color="E8F5E8", fill_type="solid")

        for row, invoice in enumerate(invoices, 2):
            for col, (_, attribute, number_format) in enumerate(EXPORT_COLUMNS, 1):
                cell = ws.cell(row=row, column=col, value=_cell_value(invoice, attribute))
                if number_format and isinstance(cell.value, (int, float, date, datetime)):
                    cell.number_format = number_format

        ws.freeze_panes = "A2"

        # Auto-adjust column widths
        for column in ws.columns:
            column_letter = column[0].column_letter
            max_length = max(len(str(cell.value)) if cell.value is not None else 0 for cell in column)
            ws.column_dimensions[column_letter].width = min(max_length + 2, 50)

        buffer = io.BytesIO()
        workbook.save(buffer)
        workbook.close()
        return buffer.getvalue()
