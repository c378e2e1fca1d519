"""
Tests for the Excel registration export
"""

import io

import pandas as pd
from openpyxl import load_workbook

from app.schemas.registration import AttendeeInfo, RegistrationRecord
from app.services.excel_service import MISSING, ExcelService

def test_table_has_one_column_per_custom_field(registration_service, store, make_event):
    """Scenario E: missing answers render as N/A"""
    event = make_event(custom_fields=[
        {"name": "Age", "type": "number", "required": True},
        {"name": "Company.Name", "type": "text"},
        {"name": "Topics", "type": "checkbox"},
        {"name": "Newsletter", "type": "checkbox"},
    ])
    registration_service.register(event.id, AttendeeInfo(name="Asha", email="asha@example.com"), {
        "Company.Name": "Acme", "Topics": ["AI", "Web"], "Newsletter": False,
    })

    df = ExcelService.build_registration_table(event, store.list_registrations(event.id))

    assert list(df.columns) == [
        'S.No', 'Name', 'Email', 'Phone', 'Ticket ID', 'Registration Date',
        'Age', 'Company.Name', 'Topics', 'Newsletter',
    ]
    row = df.iloc[0]
    assert row['Age'] == MISSING
    assert row['Company.Name'] == "Acme"
    assert row['Topics'] == "AI, Web"
    assert row['Newsletter'] == "No"
    assert row['Phone'] == MISSING
    assert row['Ticket ID'] == 1

def test_custom_field_named_like_fixed_column(registration_service, store, make_event):
    """The attendee's phone and the form's Phone answer both survive"""
    event = make_event(custom_fields=[{"name": "Phone", "type": "text"}])
    registration_service.register(
        event.id, AttendeeInfo(name="Asha", email="asha@example.com", phone="9876543210"), {"Phone": "alt-555"}
    )

    df = ExcelService.build_registration_table(event, store.list_registrations(event.id))

    assert list(df.columns) == [
        'S.No', 'Name', 'Email', 'Phone', 'Ticket ID', 'Registration Date', 'Phone (form)',
    ]
    assert df.iloc[0]['Phone'] == "9876543210"
    assert df.iloc[0]['Phone (form)'] == "alt-555"

def test_values_stored_as_json_string_are_normalized(store, make_event):
    event = make_event(custom_fields=[{"name": "City", "type": "text"}])
    registration = store.insert_registration(
        RegistrationRecord(event_id=event.id, name="Legacy", email="legacy@example.com", ticket_id=7)
    )
    registration.custom_field_values = '{"City": "Pune"}'

    df = ExcelService.build_registration_table(event, [registration])

    assert df.iloc[0]['City'] == "Pune"

def test_paid_export_includes_payment_columns_and_summary(registration_service, store, paid_event, proof_image):
    submitted = registration_service.submit_payment_proof(
        payment_reference="YM1700000000ABCD",
        email="asha@example.com",
        proof_image=proof_image,
        attendee=AttendeeInfo(name="Asha", email="asha@example.com"),
        event_id=paid_event.id,
    )
    registration_service.verify_payment(submitted.registration_id, True, "admin")
    registrations = store.list_registrations(paid_event.id)

    df = ExcelService.build_registration_table(paid_event, registrations)
    assert df.iloc[0]['Payment Status'] == "completed"
    assert df.iloc[0]['Payment Verified'] == "Yes"
    assert df.iloc[0]['Verified By'] == "admin"

    content = ExcelService.export_registrations(paid_event, registrations)
    sheet = load_workbook(io.BytesIO(content)).active

    assert sheet.title == "Workshop"
    assert sheet["A1"].value == "Workshop"
    assert sheet.cell(row=ExcelService.TABLE_START_ROW + 1, column=2).value == "Name"
    assert sheet.cell(row=ExcelService.TABLE_START_ROW + 2, column=2).value == "Asha"

    labels = {sheet.cell(row=r, column=1).value: sheet.cell(row=r, column=2).value for r in range(1, sheet.max_row + 1)}
    assert labels["Completed"] == 1
    assert labels["Pending"] == 0
    assert labels["Verified"] == 1

    table = pd.read_excel(io.BytesIO(content), skiprows=ExcelService.TABLE_START_ROW, nrows=1)
    assert table.loc[0, 'Email'] == "asha@example.com"

def test_sheet_names_follow_excel_rules():
    assert ExcelService.clean_sheet_name("Q1/Q2: Review [draft]?") == "Q1Q2 Review draft"
    assert len(ExcelService.clean_sheet_name("x" * 50)) == 31
    assert ExcelService.clean_sheet_name("***") == "Registrations"
