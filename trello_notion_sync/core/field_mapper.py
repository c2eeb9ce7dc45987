"""
Field mapping between Trello cards and Notion entries
"""
import math
from typing import Dict, Any, List, Optional, Tuple, Union
from loguru import logger

from ..notion import properties as props
from ..models import Card, CustomFieldDefinition, FieldKind


Number = Union[int, float]

# numeric custom fields mirrored on both sides
SCORE_FIELDS = ("Reach", "Confidence", "Effort", "Impact")

# Trello custom fields
TOTAL_SCORE_FIELD = "Total Score"
NOTION_LINK_FIELD = "Notion Link"
SYNCED_FIELD = "synced"

UNKNOWN_DEPARTMENT = "Unknown"

# tolerance for floats that went through either API
NUMERIC_TOLERANCE = 0.001


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def to_number(value: Any) -> Optional[Number]:
    """
    Coerce a value to a number.

    Trello returns numbers as strings ("5", "2.5"). Integral values come back
    as int so they render the same way on both sides.

    Returns:
        The number, or None when the value is not numeric
    """
    if value is None or isinstance(value, bool):
        return None
    if _is_number(value):
        number = float(value)
    else:
        try:
            number = float(str(value).strip())
        except ValueError:
            return None

    if math.isnan(number) or math.isinf(number):
        return None
    if number.is_integer():
        return int(number)
    return number


def values_differ(a: Any, b: Any) -> bool:
    """Change predicate used for every field comparison"""
    if a is None and b is None:
        return False
    if a is None or b is None:
        return True

    if _is_number(a) and _is_number(b):
        return abs(a - b) > NUMERIC_TOLERANCE

    return str(a).strip() != str(b).strip()


def _read_number(value: Dict[str, Any]) -> Number:
    number = to_number(value.get("number"))
    return 0 if number is None else number


def _read_text(value: Dict[str, Any]) -> Optional[str]:
    return value.get("text")


def _read_checkbox(value: Dict[str, Any]) -> bool:
    return str(value.get("checked")).lower() == "true"


def _read_any(value: Dict[str, Any]) -> Any:
    if value.get("number") is not None:
        return _read_number(value)
    if value.get("text") is not None:
        return value["text"]
    if value.get("checked") is not None:
        return _read_checkbox(value)
    return 0


_READERS = {
    FieldKind.NUMBER: _read_number,
    FieldKind.TEXT: _read_text,
    FieldKind.CHECKBOX: _read_checkbox,
    FieldKind.OTHER: _read_any,
}


def read_field_value(kind: FieldKind, value: Optional[Dict[str, Any]]) -> Any:
    """Decode a raw Trello value object according to the field's kind"""
    return _READERS[kind](value or {})


def extract_custom_field_values(card: Card,
                                definitions: List[CustomFieldDefinition]) -> Dict[str, Any]:
    """
    Resolve a card's custom field items to {field name: value}.

    Items whose definition is unknown are skipped.
    """
    by_id = {definition.id: definition for definition in definitions}
    values: Dict[str, Any] = {}

    for item in card.custom_field_items:
        definition = by_id.get(item.field_id)
        if definition is None:
            continue
        values[definition.name] = read_field_value(definition.kind, item.value)

    return values


def to_notion_properties(card: Card, field_values: Dict[str, Any],
                         list_name: Optional[str]) -> Dict[str, Any]:
    """Notion properties describing a Trello card"""
    properties = {
        props.TITLE: props.title_value(card.name or ""),
        props.DEPARTMENT: props.select_value(list_name or UNKNOWN_DEPARTMENT),
        props.TRELLO_ID: props.rich_text_value(card.id),
    }

    for name in SCORE_FIELDS:
        raw = field_values.get(name)
        if raw is None:
            continue
        number = to_number(raw)
        if number is None:
            logger.warning(f"Card {card.id}: {name} value {raw!r} is not numeric, skipped")
            continue
        properties[name] = props.number_value(number)

    # every entry written by a pass is marked as synced
    properties[props.SYNCED] = props.checkbox_value(True)

    return properties


def to_trello_update(entry: Dict[str, Any]) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """
    Split a Notion entry into a Trello card update and custom field values.

    Returns:
        (card_update, custom_fields) - card_update carries the name when the
        entry has a title; custom_fields holds the score fields present on
        the entry plus the synced marker
    """
    properties = props.properties_of(entry)
    card_update: Dict[str, Any] = {}
    custom_fields: Dict[str, Any] = {}

    title = props.get_title(properties)
    if title:
        card_update["name"] = title

    for name in SCORE_FIELDS:
        number = props.get_number(properties, name)
        if number is not None:
            custom_fields[name] = number

    custom_fields[SYNCED_FIELD] = True

    return card_update, custom_fields
