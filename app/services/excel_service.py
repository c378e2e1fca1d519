"""
Excel export of event registrations
"""

import io
import re
from typing import Any, Dict, Iterable, List

import pandas as pd

from app.schemas.event import EventRecord
from app.schemas.registration import PaymentStatus, RegistrationRecord
from app.services.custom_fields import normalize_custom_field_values

MISSING = "N/A"

class ExcelService:
    """Service for handling Excel operations"""

    # Rows above the table: event name, date, venue, totals, blank
    TABLE_START_ROW = 5
    MAX_SHEET_NAME = 31

    @staticmethod
    def clean_sheet_name(name: str) -> str:
        """Excel sheet names: max 31 chars, none of * ? : \\ / [ ]"""
        cleaned = re.sub(r"[*?:\\/\[\]]", "", name or "").strip().strip("'")
        return cleaned[:ExcelService.MAX_SHEET_NAME] or "Registrations"

    @staticmethod
    def format_value(value: Any) -> Any:
        if value is None or value == "" or value == []:
            return MISSING
        if isinstance(value, bool):
            return "Yes" if value else "No"
        if isinstance(value, (list, tuple)):
            return ", ".join(str(v) for v in value)
        if isinstance(value, dict):
            return ", ".join(f"{k}: {v}" for k, v in value.items())
        return value

    @staticmethod
    def has_payment_info(event: EventRecord, registrations: List[RegistrationRecord]) -> bool:
        return not event.is_free or any(r.payment_reference or r.payment_method for r in registrations)

    @staticmethod
    def fixed_columns(include_payment: bool) -> List[str]:
        columns = ['S.No', 'Name', 'Email', 'Phone', 'Ticket ID', 'Registration Date']
        if include_payment:
            columns += [
                'Payment Status', 'Payment Reference', 'Payment Method',
                'Payment Verified', 'Verification Date', 'Verified By',
            ]
        return columns

    @staticmethod
    def custom_field_columns(field_names: List[str], include_payment: bool) -> Dict[str, str]:
        """Map each custom field to its column header.

        A field named like a fixed column gets a " (form)" suffix so both
        values are exported.
        """
        taken = set(ExcelService.fixed_columns(include_payment))
        columns: Dict[str, str] = {}
        for name in field_names:
            column = name
            while column in taken:
                column = f"{column} (form)"
            taken.add(column)
            columns[name] = column
        return columns

    @staticmethod
    def build_registration_table(event: EventRecord, registrations: Iterable[RegistrationRecord]) -> pd.DataFrame:
        """One row per registration, one column per custom field (matched by exact name)"""
        registrations = list(registrations)
        include_payment = ExcelService.has_payment_info(event, registrations)
        field_names = [field.name for field in event.custom_fields]
        field_columns = ExcelService.custom_field_columns(field_names, include_payment)

        data = []
        for index, registration in enumerate(registrations, start=1):
            row: Dict[str, Any] = {
                'S.No': index,
                'Name': registration.name,
                'Email': registration.email,
                'Phone': registration.phone or MISSING,
                'Ticket ID': registration.ticket_id if registration.ticket_id is not None else MISSING,
                'Registration Date': (
                    registration.registration_date.strftime('%Y-%m-%d %H:%M')
                    if registration.registration_date else MISSING
                ),
            }
            if include_payment:
                status = registration.payment_status
                method = registration.payment_method
                row['Payment Status'] = status.value if hasattr(status, 'value') else status
                row['Payment Reference'] = registration.payment_reference or MISSING
                row['Payment Method'] = (method.value if hasattr(method, 'value') else method) or MISSING
                row['Payment Verified'] = 'Yes' if registration.payment_verified else 'No'
                row['Verification Date'] = (
                    registration.verification_date.strftime('%Y-%m-%d %H:%M')
                    if registration.verification_date else MISSING
                )
                row['Verified By'] = registration.verified_by or MISSING

            answers = normalize_custom_field_values(registration.custom_field_values)
            for name, column in field_columns.items():
                row[column] = ExcelService.format_value(answers.get(name))
            data.append(row)

        columns = ExcelService.fixed_columns(include_payment) + list(field_columns.values())
        return pd.DataFrame(data, columns=columns)

    @staticmethod
    def summarize(registrations: Iterable[RegistrationRecord]) -> Dict[str, int]:
        registrations = list(registrations)
        return {
            'Total Registrations': len(registrations),
            'Completed': sum(1 for r in registrations if r.payment_status == PaymentStatus.COMPLETED),
            'Pending': sum(1 for r in registrations if r.payment_status == PaymentStatus.PENDING),
            'Failed': sum(1 for r in registrations if r.payment_status == PaymentStatus.FAILED),
            'Verified': sum(1 for r in registrations if r.payment_verified),
        }

    @staticmethod
    def export_registrations(event: EventRecord, registrations: Iterable[RegistrationRecord]) -> bytes:
        """Export registrations to Excel with a title block and a trailing summary"""
        registrations = list(registrations)
        df = ExcelService.build_registration_table(event, registrations)
        summary = ExcelService.summarize(registrations)
        sheet_name = ExcelService.clean_sheet_name(event.name)

        buffer = io.BytesIO()
        with pd.ExcelWriter(buffer, engine='openpyxl') as writer:
            df.to_excel(writer, index=False, sheet_name=sheet_name, startrow=ExcelService.TABLE_START_ROW)
            sheet = writer.sheets[sheet_name]

            sheet.cell(row=1, column=1, value=event.name)
            sheet.cell(row=2, column=1, value=f"Date: {event.date.strftime('%Y-%m-%d %H:%M')}")
            sheet.cell(row=3, column=1, value=f"Venue: {event.venue or MISSING}")
            sheet.cell(
                row=4, column=1,
                value=f"Registrations: {len(registrations)} / Seats: {event.seat_limit}",
            )

            # header row + data rows, then one blank row
            row = ExcelService.TABLE_START_ROW + 1 + len(df) + 2
            sheet.cell(row=row, column=1, value='Summary')
            for offset, (label, count) in enumerate(summary.items(), start=1):
                sheet.cell(row=row + offset, column=1, value=label)
                sheet.cell(row=row + offset, column=2, value=count)

        return buffer.getvalue()
