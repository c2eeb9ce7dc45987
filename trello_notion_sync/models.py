"""
Domain models shared by the clients and the sync engine
"""
from typing import Dict, Any, List, Optional
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO 8601 timestamp as returned by Trello and Notion"""
    if not value:
        return None
    try:
        moment = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


class FieldKind(Enum):
    """Trello custom field types the sync understands"""
    NUMBER = "number"
    TEXT = "text"
    CHECKBOX = "checkbox"
    OTHER = "other"

    @classmethod
    def from_trello(cls, type_name: Optional[str]) -> "FieldKind":
        for kind in cls:
            if kind.value == type_name:
                return kind
        return cls.OTHER


@dataclass
class CustomFieldDefinition:
    """Board-level custom field definition"""
    id: str
    name: str
    kind: FieldKind = FieldKind.OTHER

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "CustomFieldDefinition":
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            kind=FieldKind.from_trello(data.get("type")),
        )


@dataclass
class CustomFieldItem:
    """A custom field value set on a card, as returned by Trello"""
    field_id: str
    value: Optional[Dict[str, Any]] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "CustomFieldItem":
        return cls(field_id=data["idCustomField"], value=data.get("value"))


@dataclass
class BoardList:
    """Trello list, mirrored as the Notion Department"""
    id: str
    name: str

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "BoardList":
        return cls(id=data["id"], name=data.get("name", ""))


@dataclass
class Card:
    """Trello card"""
    id: str
    name: str
    list_id: str
    custom_field_items: List[CustomFieldItem] = field(default_factory=list)
    date_last_activity: Optional[str] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Card":
        return cls(
            id=data["id"],
            name=data.get("name") or "",
            list_id=data.get("idList", ""),
            custom_field_items=[
                CustomFieldItem.from_api(item)
                for item in data.get("customFieldItems") or []
            ],
            date_last_activity=data.get("dateLastActivity"),
        )

    def custom_field_value(self, field_id: str) -> Optional[Dict[str, Any]]:
        """Raw value object of a custom field, None when unset"""
        for item in self.custom_field_items:
            if item.field_id == field_id:
                return item.value
        return None


@dataclass
class DirectionStats:
    created: int = 0
    updated: int = 0


@dataclass
class SyncStats:
    """Counters for one reconciliation pass"""
    trello_to_notion: DirectionStats = field(default_factory=DirectionStats)
    notion_to_trello: DirectionStats = field(default_factory=DirectionStats)
    errors: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "trello_to_notion": {
                "created": self.trello_to_notion.created,
                "updated": self.trello_to_notion.updated,
            },
            "notion_to_trello": {
                "created": self.notion_to_trello.created,
                "updated": self.notion_to_trello.updated,
            },
            "errors": self.errors,
        }
