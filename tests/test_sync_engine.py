"""
Sync engine tests
"""
import pytest

from trello_notion_sync.core.sync_engine import SyncEngine
from trello_notion_sync.notion import properties as props
from tests.fakes import FIELD_IDS


EARLIER = "2024-01-01T10:00:00.000Z"
LATER = "2024-01-01T11:00:00.000Z"
LINK = {"Notion Link": "https://www.notion.so/e1"}


def _engine(board, database) -> SyncEngine:
    return SyncEngine(board, database)


def _field_calls(board, field_name):
    return [
        call for call in board.calls
        if call[0] == "update_custom_field" and call[2] == FIELD_IDS[field_name]
    ]


@pytest.mark.asyncio
class TestTrelloToNotion:
    """Card -> entry direction"""

    async def test_new_card_creates_entry(self, board, database):
        board.add_card("abc", "Task A", "list-doing", Reach=5)

        stats = await _engine(board, database).perform_sync()

        assert stats.trello_to_notion.created == 1
        assert stats.errors == 0

        created = [call for call in database.calls if call[0] == "create_entry"]
        assert len(created) == 1
        properties = created[0][2]
        assert props.get_select(properties, props.DEPARTMENT) == "Doing"
        assert props.get_number(properties, "Reach") == 5
        assert props.get_rich_text(properties, props.TRELLO_ID) == "abc"
        assert props.get_checkbox(properties, props.SYNCED) is True

    async def test_new_card_is_marked_synced_and_linked(self, board, database):
        board.add_card("abc", "Task A", "list-doing", Reach=5)

        await _engine(board, database).perform_sync()

        card = board.card("abc")
        assert card.custom_field_value(FIELD_IDS["synced"]) == {"checked": "true"}
        assert card.custom_field_value(FIELD_IDS["Notion Link"]) == {
            "text": "https://www.notion.so/page1"
        }

    async def test_duplicate_card_ids_keep_first(self, board, database):
        board.add_card("dup1", "First", "list-todo")
        board.add_card("dup1", "Second", "list-todo")

        stats = await _engine(board, database).perform_sync()

        assert len(database.calls) == 1
        assert props.get_title(database.calls[0][2]) == "First"
        assert stats.trello_to_notion.created == 1

    async def test_changed_card_updates_entry(self, board, database):
        board.add_card("c1", "Renamed", "list-doing", synced=True, Reach=8,
                       **{"Notion Link": "https://www.notion.so/e1"})
        database.add_entry("e1", "Original", department="Doing", trello_id="c1",
                           synced=True, Reach=5)

        stats = await _engine(board, database).perform_sync()

        updates = [call for call in database.calls if call[0] == "update_entry"]
        assert len(updates) == 1
        assert props.get_title(database.pages["e1"]["properties"]) == "Renamed"
        assert props.get_number(database.pages["e1"]["properties"], "Reach") == 8
        assert stats.trello_to_notion.updated == 1
        assert board.calls == []
        assert board.card("c1").name == "Renamed"

    async def test_unknown_list_maps_to_unknown_department(self, board, database):
        board.add_card("c1", "Orphan list", "list-gone")

        await _engine(board, database).perform_sync()

        properties = database.calls[0][2]
        assert props.get_select(properties, props.DEPARTMENT) == "Unknown"

    async def test_synced_card_without_entry_is_not_recreated(self, board, database):
        board.add_card("c1", "Was linked", "list-todo", synced=True)

        stats = await _engine(board, database).perform_sync()

        assert not [call for call in database.calls if call[0] == "create_entry"]
        assert stats.trello_to_notion.created == 0

    async def test_failing_record_is_counted_and_pass_continues(self, board, database):
        board.add_card("c1", "Broken", "list-todo")
        board.add_card("c2", "Fine", "list-todo")
        database.fail_titles.append("Broken")

        stats = await _engine(board, database).perform_sync()

        assert stats.errors == 1
        assert stats.trello_to_notion.created == 1


@pytest.mark.asyncio
class TestNotionToTrello:
    """Entry -> card direction"""

    async def test_unlinked_entry_creates_card(self, board, database):
        database.add_entry("e1", "New idea", department="Doing", Reach=3)

        stats = await _engine(board, database).perform_sync()

        assert stats.notion_to_trello.created == 1
        assert ("create_card", "New idea", "list-doing") in board.calls

        card = board.card("new1")
        assert card.custom_field_value(FIELD_IDS["Reach"]) == {"number": "3"}
        assert card.custom_field_value(FIELD_IDS["synced"]) == {"checked": "true"}

        entry = database.pages["e1"]["properties"]
        assert props.get_rich_text(entry, props.TRELLO_ID) == "new1"
        assert props.get_checkbox(entry) is True

    async def test_unknown_department_falls_back_to_first_list(self, board, database):
        database.add_entry("e1", "Somewhere", department="Backlog")

        await _engine(board, database).perform_sync()

        assert ("create_card", "Somewhere", "list-todo") in board.calls

    async def test_entry_values_are_pushed_to_card(self, board, database):
        board.add_card("c1", "Task", "list-todo", activity=EARLIER, synced=True, Reach=1, **LINK)
        database.add_entry("e1", "Task", department="Doing", trello_id="c1",
                           synced=True, edited=LATER, Reach=1)

        stats = await _engine(board, database).perform_sync()

        assert board.calls == [("move_card", "c1", "list-doing")]
        assert database.calls == []
        assert stats.notion_to_trello.updated == 1
        assert stats.trello_to_notion.updated == 0

    async def test_equal_total_score_makes_no_calls(self, board, database):
        board.add_card("c1", "Task", "list-doing", synced=True, **{"Total Score": 42}, **LINK)
        database.add_entry("e1", "Task", department="Doing", trello_id="c1",
                           synced=True, total_score=42)

        stats = await _engine(board, database).perform_sync()

        assert board.calls == []
        assert database.calls == []
        assert stats.notion_to_trello.updated == 0

    async def test_failing_card_update_is_counted_and_pass_continues(self, board, database):
        board.add_card("c1", "One", "list-todo", activity=EARLIER, synced=True,
                       **{"Notion Link": "https://www.notion.so/e1"})
        board.add_card("c2", "Two", "list-todo", activity=EARLIER, synced=True,
                       **{"Notion Link": "https://www.notion.so/e2"})
        database.add_entry("e1", "One", department="Doing", trello_id="c1",
                           synced=True, edited=LATER)
        database.add_entry("e2", "Two renamed", department="To Do", trello_id="c2",
                           synced=True, edited=LATER)
        board.fail_on["move_card"] = RuntimeError("card is archived")

        stats = await _engine(board, database).perform_sync()

        assert stats.errors == 1
        assert ("update_card", "c2", {"name": "Two renamed"}) in board.calls
        assert board.card("c1").list_id == "list-todo"
        assert stats.notion_to_trello.updated == 1

    async def test_dangling_reference_is_skipped(self, board, database):
        database.add_entry("e1", "Lost", department="Doing", trello_id="missing")

        stats = await _engine(board, database).perform_sync()

        assert board.calls == []
        assert stats.errors == 0

    async def test_total_score_pushed_once(self, board, database):
        board.add_card("c1", "Task", "list-doing", synced=True,
                       **{"Total Score": 40, "Notion Link": "https://www.notion.so/e1"})
        database.add_entry("e1", "Task", department="Doing", trello_id="c1",
                           synced=True, total_score=42)
        engine = _engine(board, database)

        stats = await engine.perform_sync()

        assert _field_calls(board, "Total Score") == [
            ("update_custom_field", "c1", FIELD_IDS["Total Score"], 42)
        ]
        assert stats.notion_to_trello.updated == 1

        board.calls.clear()
        await engine.perform_sync()
        assert _field_calls(board, "Total Score") == []


@pytest.mark.asyncio
class TestDeletions:
    """Synced-marker driven deletion"""

    async def test_synced_entry_with_missing_card_is_archived(self, board, database):
        database.add_entry("e1", "Deleted card", department="Doing",
                           trello_id="gone", synced=True)
        database.add_entry("e2", "Never synced", department="Doing",
                           trello_id="gone-too", synced=False)

        stats = await _engine(board, database).perform_sync()

        assert database.archived == ["e1"]
        assert stats.notion_to_trello.updated == 1

    async def test_archived_entry_is_not_archived_again(self, board, database):
        database.add_entry("e1", "Deleted card", trello_id="gone", synced=True)
        engine = _engine(board, database)

        await engine.perform_sync()
        await engine.perform_sync()

        assert database.archived == ["e1"]

    async def test_synced_card_with_missing_entry_is_deleted(self, board, database):
        board.add_card("c1", "Deleted entry", "list-todo", synced=True)
        board.add_card("c2", "Unsynced", "list-todo")

        stats = await _engine(board, database).perform_sync()

        assert ("delete_card", "c1") in board.calls
        assert board.card("c1") is None
        assert board.card("c2") is not None
        assert stats.trello_to_notion.updated == 1

    async def test_card_deletion_needs_synced_field(self, board, database):
        board.custom_fields = [f for f in board.custom_fields if f.name != "synced"]
        board.add_card("c1", "Linked", "list-todo")
        database.add_entry("e1", "Gone", trello_id="missing", synced=True)

        await _engine(board, database).perform_sync()

        assert database.archived == ["e1"]
        assert not [call for call in board.calls if call[0] == "delete_card"]


@pytest.mark.asyncio
class TestPass:
    """Whole-pass behaviour"""

    async def test_second_pass_makes_no_calls(self, board, database):
        board.add_card("abc", "Task A", "list-doing", Reach=5)
        database.add_entry("e1", "New idea", department="Doing", Reach=3)
        engine = _engine(board, database)

        await engine.perform_sync()
        board.calls.clear()
        database.calls.clear()

        stats = await engine.perform_sync()

        assert board.calls == []
        assert database.calls == []
        assert stats.to_dict() == {
            "trello_to_notion": {"created": 0, "updated": 0},
            "notion_to_trello": {"created": 0, "updated": 0},
            "errors": 0,
        }

    async def _settles(self, board, database) -> None:
        """Run a pass, then check the next one makes no calls"""
        engine = _engine(board, database)
        await engine.perform_sync()

        board.calls.clear()
        database.calls.clear()
        await engine.perform_sync()

        assert board.calls == []
        assert database.calls == []

    async def test_card_rename_wins_and_settles(self, board, database):
        board.add_card("c1", "Renamed", "list-doing", activity=LATER, synced=True, **LINK)
        database.add_entry("e1", "Original", department="Doing", trello_id="c1",
                           synced=True, edited=EARLIER)

        await self._settles(board, database)

        assert board.card("c1").name == "Renamed"
        assert props.get_title(database.pages["e1"]["properties"]) == "Renamed"

    async def test_notion_rename_wins_and_settles(self, board, database):
        board.add_card("c1", "Original", "list-doing", activity=EARLIER, synced=True, **LINK)
        database.add_entry("e1", "Renamed", department="Doing", trello_id="c1",
                           synced=True, edited=LATER)

        await self._settles(board, database)

        assert board.card("c1").name == "Renamed"
        assert props.get_title(database.pages["e1"]["properties"]) == "Renamed"

    async def test_card_move_wins_and_settles(self, board, database):
        board.add_card("c1", "Task", "list-doing", activity=LATER, synced=True, **LINK)
        database.add_entry("e1", "Task", department="To Do", trello_id="c1",
                           synced=True, edited=EARLIER)

        await self._settles(board, database)

        assert board.card("c1").list_id == "list-doing"
        assert props.get_select(database.pages["e1"]["properties"], props.DEPARTMENT) == "Doing"

    async def test_notion_score_edit_wins_and_settles(self, board, database):
        board.add_card("c1", "Task", "list-doing", activity=EARLIER, synced=True, Reach=2, **LINK)
        database.add_entry("e1", "Task", department="Doing", trello_id="c1",
                           synced=True, edited=LATER, Reach=7)

        await self._settles(board, database)

        assert board.card("c1").custom_field_value(FIELD_IDS["Reach"]) == {"number": "7"}
        assert props.get_number(database.pages["e1"]["properties"], "Reach") == 7

    async def test_fetch_failure_is_raised(self, board, database):
        board.fail_on["list_cards"] = RuntimeError("board unavailable")

        with pytest.raises(RuntimeError, match="board unavailable"):
            await _engine(board, database).perform_sync()

        assert database.calls == []

    async def test_stats_are_fresh_per_pass(self, board, database):
        board.add_card("abc", "Task A", "list-doing")
        engine = _engine(board, database)

        first = await engine.perform_sync()
        second = await engine.perform_sync()

        assert first.trello_to_notion.created == 1
        assert second.trello_to_notion.created == 0
        assert first is not second
