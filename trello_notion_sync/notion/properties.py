"""Notion property accessors and payload builders"""

from typing import Dict, Any, List, Optional, Union


Number = Union[int, float]

# property names in the Notion database
TITLE = "Priority Name"
DEPARTMENT = "Department"
TRELLO_ID = "Trello ID"
TOTAL_SCORE = "Total Score"
SYNCED = "synced"


def _prop(properties: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = properties.get(key)
    if isinstance(value, dict):
        return value
    return {}


def _plain_text(segments: Optional[List[Dict[str, Any]]]) -> str:
    if not segments:
        return ""
    parts = []
    for segment in segments:
        text = segment.get("plain_text")
        if text is None:
            text = (segment.get("text") or {}).get("content", "")
        parts.append(text)
    return "".join(parts)


def properties_of(entry: Dict[str, Any]) -> Dict[str, Any]:
    """Property bag of a Notion page"""
    return entry.get("properties") or {}


def get_title(properties: Dict[str, Any], key: str = TITLE) -> str:
    """
    Read a title property.

    Args:
        properties: page property bag
        key: property name

    Returns:
        Concatenated text, empty string when unset
    """
    return _plain_text(_prop(properties, key).get("title"))


def get_rich_text(properties: Dict[str, Any], key: str) -> str:
    """Read a rich text property, empty string when unset"""
    return _plain_text(_prop(properties, key).get("rich_text"))


def get_select(properties: Dict[str, Any], key: str) -> str:
    """Read the option name of a select property"""
    select = _prop(properties, key).get("select")
    if isinstance(select, dict):
        return select.get("name") or ""
    return ""


def get_number(properties: Dict[str, Any], key: str) -> Optional[Number]:
    """Read a number property, None when unset"""
    return _prop(properties, key).get("number")


def get_numeric(properties: Dict[str, Any], key: str) -> Optional[Number]:
    """
    Read a value that may be either a number or a numeric formula.

    Returns:
        The number, None when unset or when the formula is not numeric
    """
    prop = _prop(properties, key)
    if "number" in prop:
        return prop["number"]

    formula = prop.get("formula")
    if isinstance(formula, dict) and formula.get("type") == "number":
        return formula.get("number")

    return None


def get_checkbox(properties: Dict[str, Any], key: str = SYNCED) -> bool:
    """Read a checkbox property, False when unset"""
    return bool(_prop(properties, key).get("checkbox"))


def get_trello_id(entry: Dict[str, Any]) -> str:
    """Cross-reference to the linked Trello card"""
    return get_rich_text(properties_of(entry), TRELLO_ID).strip()


def title_value(text: str) -> Dict[str, Any]:
    return {"title": [{"text": {"content": text}}]}


def rich_text_value(text: str) -> Dict[str, Any]:
    return {"rich_text": [{"text": {"content": text}}]}


def select_value(name: str) -> Dict[str, Any]:
    return {"select": {"name": name}}


def number_value(number: Optional[Number]) -> Dict[str, Any]:
    return {"number": number}


def checkbox_value(checked: bool) -> Dict[str, Any]:
    return {"checkbox": checked}
