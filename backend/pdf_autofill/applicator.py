"""
Apply one data record to a template schema.

The schema passed in is never modified: every field is cloned, and only the
clones receive values from the record.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Sequence

from .models import FieldDescriptor, FieldType, FilledField


CHECKBOX_TRUE_VALUES = {"true", "yes", "1", "checked", "on", "x"}


def normalize_checkbox_value(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value == 1
    return str(value).strip().lower() in CHECKBOX_TRUE_VALUES


def normalize_textarea_value(value: str) -> str:
    """`||` marks a paragraph break and a literal backslash-n a line break; both become newlines."""
    return value.replace("||", "\n").replace("\\n", "\n")


def invert_mapping(mapping: Mapping[str, str]) -> Dict[str, str]:
    """{column: field} → {field: column}; the last column mapped onto a field wins."""
    return {field_name: column for column, field_name in mapping.items()}


def _coerce(field: FieldDescriptor, value: Any) -> Any:
    if field.type is FieldType.CHECKBOX:
        return normalize_checkbox_value(value)
    if field.type is FieldType.TEXTAREA and isinstance(value, str):
        return normalize_textarea_value(value)
    return value


def apply_data_to_fields(
    fields: Sequence[FieldDescriptor],
    record: Mapping[str, Any],
    mapping: Mapping[str, str],
) -> List[FilledField]:
    """
    Build the filled field list for one record.

    A field takes the record's value when its mapped column is present and
    non-empty; otherwise it keeps its default value (a pre-set signature
    image, for example).
    """
    columns_by_field = invert_mapping(mapping)
    filled: List[FilledField] = []

    for field in fields:
        column = columns_by_field.get(field.name)
        value = record.get(column) if column is not None else None
        if value is not None and value != "":
            filled.append(field.with_value(_coerce(field, value)))
        else:
            filled.append(field.clone())

    return filled
