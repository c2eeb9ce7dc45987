"""
Shared fixtures
"""
import pytest

from trello_notion_sync.models import BoardList, CustomFieldDefinition, FieldKind
from tests.fakes import FIELD_IDS, FIELD_KINDS, FakeBoard, FakeDatabase


@pytest.fixture
def board() -> FakeBoard:
    lists = [BoardList("list-todo", "To Do"), BoardList("list-doing", "Doing")]
    custom_fields = [
        CustomFieldDefinition(field_id, name, FIELD_KINDS.get(name, FieldKind.NUMBER))
        for name, field_id in FIELD_IDS.items()
    ]
    return FakeBoard(lists, custom_fields)


@pytest.fixture
def database() -> FakeDatabase:
    return FakeDatabase()
