"""
Custom field schema: definition, answer parsing and advisory validation.

Field names are the canonical keys of ``custom_field_values`` and are never
rewritten. Answers are stored permissively: keys that are not in the event's
current schema are kept as-is.
"""

import json
import logging
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from app.core.errors import ValidationError
from app.schemas.event import CustomField, FieldType

logger = logging.getLogger(__name__)

NOT_PROVIDED = "Not provided"
NOT_SELECTED = "Not selected"

# Key under which unparseable answer payloads are kept
UNPARSED_ANSWERS_KEY = "_unparsed"

_FIELD_TYPES = {t.value for t in FieldType}


def define_field(
    name: Optional[str],
    type: Optional[str] = FieldType.TEXT.value,
    required: bool = False,
    options: Optional[Sequence[str]] = None,
    placeholder: Optional[str] = "",
) -> CustomField:
    """Build a field definition, coercing unknown types to text."""
    if not name or not str(name).strip():
        raise ValidationError("All custom fields must have a name")

    raw_type = type.value if isinstance(type, FieldType) else (type or "")
    if raw_type not in _FIELD_TYPES:
        logger.info(f"Unknown custom field type {raw_type!r} for {name!r}, using text")
        raw_type = FieldType.TEXT.value
    field_type = FieldType(raw_type)

    if field_type == FieldType.SELECT and isinstance(options, (list, tuple)):
        field_options = [str(o) for o in options]
    else:
        field_options = []

    return CustomField(
        name=str(name),
        type=field_type,
        required=bool(required),
        options=field_options,
        placeholder=placeholder or "",
    )


def define_fields(definitions: Iterable[Dict[str, Any]]) -> List[CustomField]:
    """Normalize a list of raw definitions, rejecting duplicate names"""
    fields: List[CustomField] = []
    seen = set()
    for raw in definitions:
        if isinstance(raw, CustomField):
            raw = raw.model_dump()
        if not isinstance(raw, dict):
            raise ValidationError("Custom field definitions must be objects")
        field = define_field(
            raw.get("name"),
            raw.get("type"),
            raw.get("required", False),
            raw.get("options"),
            raw.get("placeholder"),
        )
        if field.name in seen:
            raise ValidationError(f"Duplicate custom field name: {field.name}")
        seen.add(field.name)
        fields.append(field)
    return fields


def default_value_for(field_type: Any, today: Optional[date] = None) -> Any:
    """Placeholder value used only when repairing stored registrations"""
    value = field_type.value if isinstance(field_type, FieldType) else field_type
    if value == FieldType.NUMBER.value:
        return 0
    if value == FieldType.DATE.value:
        return (today or date.today()).isoformat()
    if value == FieldType.SELECT.value:
        return NOT_SELECTED
    if value == FieldType.CHECKBOX.value:
        return False
    return NOT_PROVIDED


def parse_answers(raw: Any) -> Dict[str, Any]:
    """Parse submitted answers given as a mapping or a JSON string.

    Keys are kept as submitted, ``None`` values included. A payload that
    cannot be parsed is kept under ``UNPARSED_ANSWERS_KEY`` so the
    attendee's data is never lost.
    """
    if raw is None or raw == "":
        return {}

    parsed = raw
    if isinstance(raw, (str, bytes)):
        text = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else raw
        try:
            parsed = json.loads(text)
        except ValueError:
            logger.warning("Custom field answers are not valid JSON, keeping raw text")
            return {UNPARSED_ANSWERS_KEY: text}
        if not isinstance(parsed, dict):
            return {UNPARSED_ANSWERS_KEY: text}

    if not isinstance(parsed, dict):
        return {UNPARSED_ANSWERS_KEY: json.dumps(parsed, default=str)}

    return {str(key): value for key, value in parsed.items()}


def normalize_custom_field_values(raw: Any) -> Dict[str, Any]:
    """Bring stored values into one ordered dict.

    Accepts a mapping, a JSON-encoded string of one, or a sequence of
    key/value entries (``[[key, value], ...]`` or ``[{"key": k, "value": v}]``).
    """
    if raw is None:
        return {}
    if isinstance(raw, dict):
        return dict(raw)
    if isinstance(raw, (str, bytes)):
        try:
            decoded = json.loads(raw)
        except ValueError:
            return {UNPARSED_ANSWERS_KEY: raw if isinstance(raw, str) else raw.decode("utf-8", "replace")}
        return normalize_custom_field_values(decoded)
    if isinstance(raw, (list, tuple)):
        values: Dict[str, Any] = {}
        for entry in raw:
            if isinstance(entry, dict) and "key" in entry:
                values[str(entry["key"])] = entry.get("value")
            elif isinstance(entry, (list, tuple)) and len(entry) == 2:
                values[str(entry[0])] = entry[1]
        return values
    return {}


def _matches_type(field: CustomField, value: Any) -> bool:
    if field.type == FieldType.NUMBER:
        if isinstance(value, bool):
            return False
        if isinstance(value, (int, float)):
            return True
        try:
            float(str(value))
            return True
        except ValueError:
            return False
    if field.type == FieldType.CHECKBOX:
        return isinstance(value, (bool, list))
    if field.type == FieldType.DATE:
        try:
            date.fromisoformat(str(value)[:10])
            return True
        except ValueError:
            return False
    if field.type == FieldType.EMAIL:
        return isinstance(value, str) and "@" in value
    return True


def validate_answers(schema: Sequence[CustomField], answers: Dict[str, Any]) -> List[str]:
    """Advisory checks of answers against the event schema.

    Returns human-readable warnings; required-ness is not enforced.
    """
    warnings: List[str] = []
    for field in schema:
        value = answers.get(field.name)
        if value is None or value == "" or value == []:
            if field.required:
                warnings.append(f"Missing answer for required field '{field.name}'")
            continue
        if not _matches_type(field, value):
            warnings.append(f"Answer for '{field.name}' does not look like a {field.type.value}")
        elif field.type == FieldType.SELECT and field.options and str(value) not in field.options:
            warnings.append(f"Answer for '{field.name}' is not one of the listed options")
    return warnings


def restore_sanitized_keys(values: Dict[str, Any], schema: Sequence[CustomField]) -> Tuple[Dict[str, Any], bool]:
    """Map keys whose dots were rewritten to underscores back to field names"""
    expected = [field.name for field in schema]
    restored: Dict[str, Any] = {}
    changed = False
    for key, value in values.items():
        if "_" in key and key not in expected:
            original = next(
                (name for name in expected if name.replace(".", "_") == key),
                None,
            )
            if original is not None and original not in values:
                restored[original] = value
                changed = True
                continue
        restored[key] = value
    return restored, changed
