"""
Tests for custom field definitions and answer handling
"""

from datetime import date

import pytest

from app.core.errors import ValidationError
from app.schemas.event import CustomField, FieldType
from app.services.custom_fields import (
    NOT_PROVIDED,
    NOT_SELECTED,
    UNPARSED_ANSWERS_KEY,
    default_value_for,
    define_field,
    define_fields,
    normalize_custom_field_values,
    parse_answers,
    restore_sanitized_keys,
    validate_answers,
)

def test_define_field_requires_name():
    """Empty or blank names are rejected"""
    with pytest.raises(ValidationError):
        define_field("")
    with pytest.raises(ValidationError):
        define_field("   ")

def test_unknown_type_becomes_text():
    field = define_field("Nickname", "colour-picker")
    assert field.type == FieldType.TEXT

def test_select_without_options_gets_empty_list():
    field = define_field("T-Shirt", "select", options=None)
    assert field.type == FieldType.SELECT
    assert field.options == []

def test_options_dropped_for_non_select_fields():
    field = define_field("Age", "number", required=True, options=["1", "2"])
    assert field.options == []
    assert field.required is True

def test_field_names_are_kept_verbatim():
    field = define_field("Company.Name", "text")
    assert field.name == "Company.Name"

def test_define_fields_rejects_duplicates():
    with pytest.raises(ValidationError):
        define_fields([{"name": "Age", "type": "number"}, {"name": "Age", "type": "text"}])

def test_default_values_per_type():
    today = date(2026, 3, 1)
    assert default_value_for("text") == NOT_PROVIDED
    assert default_value_for(FieldType.EMAIL) == NOT_PROVIDED
    assert default_value_for("number") == 0
    assert default_value_for("date", today=today) == "2026-03-01"
    assert default_value_for("select") == NOT_SELECTED
    assert default_value_for("checkbox") is False

def test_parse_answers_from_mapping_and_json():
    """Answers arrive as a dict or as a JSON string of one"""
    assert parse_answers({"Age": 30, "Skip": None}) == {"Age": 30, "Skip": None}
    assert parse_answers('{"Age": 30, "Diet": ["veg", "nuts"]}') == {"Age": 30, "Diet": ["veg", "nuts"]}
    assert parse_answers(None) == {}
    assert parse_answers("") == {}

def test_parse_answers_keeps_unparseable_payload():
    """Malformed answers are stored under a marker rather than dropped"""
    assert parse_answers("{not json") == {UNPARSED_ANSWERS_KEY: "{not json"}
    assert parse_answers("[1, 2]") == {UNPARSED_ANSWERS_KEY: "[1, 2]"}

def test_normalize_accepts_all_stored_shapes():
    expected = {"Age": 30, "City": "Pune"}
    assert normalize_custom_field_values(expected) == expected
    assert normalize_custom_field_values('{"Age": 30, "City": "Pune"}') == expected
    assert normalize_custom_field_values([["Age", 30], ["City", "Pune"]]) == expected
    assert normalize_custom_field_values([{"key": "Age", "value": 30}, {"key": "City", "value": "Pune"}]) == expected
    assert normalize_custom_field_values(None) == {}

def test_validate_answers_is_advisory():
    schema = [
        CustomField(name="Age", type=FieldType.NUMBER, required=True),
        CustomField(name="Size", type=FieldType.SELECT, options=["S", "M", "L"]),
        CustomField(name="Birthday", type=FieldType.DATE),
    ]
    warnings = validate_answers(schema, {"Size": "XXL", "Birthday": "not a date"})

    assert len(warnings) == 3
    assert any("Age" in w for w in warnings)
    assert any("Size" in w for w in warnings)
    assert any("Birthday" in w for w in warnings)

    assert validate_answers(schema, {"Age": "42", "Size": "M", "Birthday": "1990-04-01"}) == []

def test_restore_sanitized_keys():
    schema = [CustomField(name="Company.Name"), CustomField(name="first_name")]
    values = {"Company_Name": "Acme", "first_name": "Ravi", "extra_key": 1}

    restored, changed = restore_sanitized_keys(values, schema)

    assert changed
    assert restored == {"Company.Name": "Acme", "first_name": "Ravi", "extra_key": 1}
    assert restore_sanitized_keys(restored, schema) == (restored, False)
