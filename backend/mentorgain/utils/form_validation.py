"""Validation of dynamic form definitions and the responses submitted to them.

Every program carries an ordered list of typed fields. A response to a
field stores its value in exactly one of five slots, picked by the field
type. The helpers here are pure: they work on anything exposing the
`FormField` attributes and raise `ValueError` with a human readable
message on the first problem found.
"""

from __future__ import annotations

from typing import Any, Iterable, Optional

from ..models import FieldType

CHOICE_TYPES = (FieldType.select, FieldType.multi_select)

SLOT_BY_TYPE = {
    FieldType.text: "text_response",
    FieldType.number: "number_response",
    FieldType.select: "select_response",
    FieldType.multi_select: "multi_select_response",
    FieldType.file: "file_response",
}
RESPONSE_SLOTS = tuple(SLOT_BY_TYPE.values())


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple)):
        return len(value) == 0
    return False


def clean_title(title: Optional[str]) -> str:
    if not isinstance(title, str) or not title.strip():
        raise ValueError("field title must not be empty")
    return title.strip()


def clean_options(field_type: FieldType, options: Optional[Iterable[str]]) -> Optional[list[str]]:
    """Return the options to store for a field of `field_type`.

    Choice fields need at least one distinct, non-blank option. Other
    field types carry no options; an empty list is tolerated and dropped.
    """
    field_type = FieldType(field_type)
    if field_type not in CHOICE_TYPES:
        if options:
            raise ValueError(f"options are only allowed for select and multi_select fields, not {field_type.value}")
        return None
    if not options:
        raise ValueError(f"{field_type.value} fields need at least one option")
    cleaned = []
    for opt in options:
        if not isinstance(opt, str) or not opt.strip():
            raise ValueError("options must be non-empty strings")
        opt = opt.strip()
        if opt in cleaned:
            raise ValueError(f"duplicate option: {opt}")
        cleaned.append(opt)
    return cleaned


def _check_value(field, value: Any) -> Any:
    """Validate `value` for the slot belonging to `field` and return it normalized."""
    ftype = FieldType(field.field_type)
    if ftype in (FieldType.text, FieldType.file):
        if not isinstance(value, str):
            raise ValueError(f"'{field.title}' expects a string")
        return value.strip() if ftype == FieldType.file else value
    if ftype == FieldType.number:
        # bool is an int subclass; a checkbox value is not a number
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"'{field.title}' expects an integer")
        return value
    options = field.options or []
    if ftype == FieldType.select:
        if not isinstance(value, str) or value not in options:
            raise ValueError(f"'{field.title}' must be one of: {', '.join(options)}")
        return value
    if not isinstance(value, (list, tuple)) or not all(isinstance(v, str) for v in value):
        raise ValueError(f"'{field.title}' expects a list of options")
    if len(set(value)) != len(value):
        raise ValueError(f"'{field.title}' contains duplicate selections")
    unknown = [v for v in value if v not in options]
    if unknown:
        raise ValueError(f"'{field.title}' has invalid selections: {', '.join(unknown)}")
    return list(value)


def validate_responses(fields: Iterable, responses: Iterable[dict]) -> list[dict]:
    """Check submitted `responses` against a program's `fields`.

    Each response is a dict with `form_field_id` plus the five value
    slots. Returns one cleaned dict per answered field holding only
    `form_field_id` and the matching slot; responses whose slot is empty
    are dropped. Raises `ValueError` for unknown or repeated fields,
    values in the wrong slot, values of the wrong shape and, last,
    required fields left unanswered.
    """
    by_id = {f.id: f for f in fields}
    seen = set()
    cleaned = []
    for resp in responses:
        field_id = resp.get("form_field_id")
        field = by_id.get(field_id)
        if field is None:
            raise ValueError(f"form field {field_id} does not belong to this program")
        if field_id in seen:
            raise ValueError(f"'{field.title}' was answered more than once")
        seen.add(field_id)
        slot = SLOT_BY_TYPE[FieldType(field.field_type)]
        stray = [s for s in RESPONSE_SLOTS if s != slot and not _is_empty(resp.get(s))]
        if stray:
            raise ValueError(f"'{field.title}' is a {FieldType(field.field_type).value} field; unexpected {', '.join(stray)}")
        value = resp.get(slot)
        if _is_empty(value):
            continue
        cleaned.append({"form_field_id": field_id, slot: _check_value(field, value)})

    answered = {c["form_field_id"] for c in cleaned}
    missing = sorted(
        (f for f in by_id.values() if f.is_required and f.id not in answered),
        key=lambda f: f.order,
    )
    if missing:
        raise ValueError(f"Missing required fields: {', '.join(f.title for f in missing)}")
    return cleaned
