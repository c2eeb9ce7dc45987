"""
Sync engine: one full Trello <-> Notion reconciliation pass
"""
import asyncio
from typing import Dict, Any, List, Optional, Set
from loguru import logger

from ..notion import properties as props
from ..notion.client import DatabaseClient
from ..trello.client import BoardClient
from ..models import Card, BoardList, CustomFieldDefinition, FieldKind, SyncStats, parse_timestamp
from .field_mapper import (
    SCORE_FIELDS,
    TOTAL_SCORE_FIELD,
    NOTION_LINK_FIELD,
    SYNCED_FIELD,
    UNKNOWN_DEPARTMENT,
    extract_custom_field_values,
    read_field_value,
    to_notion_properties,
    to_trello_update,
    values_differ,
)


class SyncEngine:
    """
    Reconciles a Trello board with a Notion database.

    Phases of a pass:
    1. Fetch cards, lists, custom fields and Notion entries concurrently
    2. Build lookup maps
    3. Trello -> Notion: create or update entries; a linked pair is
       updated in the direction of its most recent edit
    4. Notion -> Trello: create or update cards, then push Total Score
    5. Delete records whose synced counterpart is gone
    """

    def __init__(self, trello: BoardClient, notion: DatabaseClient):
        self.trello = trello
        self.notion = notion

    async def perform_sync(self) -> SyncStats:
        """
        Run one reconciliation pass.

        Returns:
            Statistics of this pass. Per-record failures are counted in
            ``errors``; a failing initial fetch is re-raised.
        """
        logger.info("Starting sync process...")
        stats = SyncStats()

        try:
            cards, lists, custom_fields, entries = await asyncio.gather(
                self.trello.list_cards(),
                self.trello.list_lists(),
                self.trello.list_custom_fields(),
                self.notion.list_entries(),
            )
        except Exception as e:
            stats.errors += 1
            logger.error(f"Sync process failed while fetching data: {e} {stats.to_dict()}")
            raise

        list_names = {board_list.id: board_list.name for board_list in lists}
        list_ids = self._list_ids_by_name(lists)
        fields_by_name = self._fields_by_name(custom_fields)
        card_map = self._index_cards(cards, list_names)
        entries_by_card = self._index_entries(entries)

        await self._sync_trello_to_notion(
            card_map, list_names, custom_fields, fields_by_name, entries_by_card, stats
        )
        await self._sync_notion_to_trello(
            entries, card_map, list_ids, lists, fields_by_name, stats
        )
        await self._sync_deletions(card_map, entries, fields_by_name, stats)

        logger.info(f"Sync completed: {stats.to_dict()}")
        return stats

    # ------------------------------------------------------------------
    # Lookup maps
    # ------------------------------------------------------------------

    @staticmethod
    def _list_ids_by_name(lists: List[BoardList]) -> Dict[str, str]:
        ids: Dict[str, str] = {}
        for board_list in lists:
            ids.setdefault(board_list.name, board_list.id)
        return ids

    @staticmethod
    def _fields_by_name(custom_fields: List[CustomFieldDefinition]) -> Dict[str, CustomFieldDefinition]:
        """Map custom field name -> definition (and so its id)"""
        by_name: Dict[str, CustomFieldDefinition] = {}
        for definition in custom_fields:
            by_name.setdefault(definition.name, definition)
        return by_name

    @staticmethod
    def _index_cards(cards: List[Card], list_names: Dict[str, str]) -> Dict[str, Card]:
        """
        Map card id -> card, keeping the first occurrence of an id.

        Trello should never return an id twice; when it does, the extra
        copies are logged and ignored.
        """
        card_map: Dict[str, Card] = {}
        ids_by_name: Dict[str, List[str]] = {}

        for card in cards:
            if card.id in card_map:
                logger.error(
                    f"Trello returned card {card.id} more than once "
                    f"({card.name!r} in {list_names.get(card.list_id, card.list_id)}), "
                    f"keeping the first occurrence"
                )
                continue
            card_map[card.id] = card
            ids_by_name.setdefault(card.name.strip(), []).append(card.id)

        for name, ids in ids_by_name.items():
            if len(ids) > 1:
                logger.info(f"{len(ids)} distinct cards share the name {name!r}: {', '.join(ids)}")

        return card_map

    @staticmethod
    def _index_entries(entries: List[Dict[str, Any]]) -> Dict[str, Dict[str, Any]]:
        """Map Trello card id -> linked Notion entry"""
        by_card: Dict[str, Dict[str, Any]] = {}
        for entry in entries:
            trello_id = props.get_trello_id(entry)
            if not trello_id:
                continue
            if trello_id in by_card:
                logger.warning(
                    f"Notion entries {by_card[trello_id]['id']} and {entry['id']} "
                    f"both reference card {trello_id}"
                )
                continue
            by_card[trello_id] = entry
        return by_card

    @staticmethod
    def _card_field(card: Card, definition: Optional[CustomFieldDefinition]) -> Any:
        """Current value of a custom field on a card, None when unset"""
        if definition is None:
            return None
        raw = card.custom_field_value(definition.id)
        if raw is None:
            return None
        return read_field_value(definition.kind, raw)

    # ------------------------------------------------------------------
    # Trello -> Notion
    # ------------------------------------------------------------------

    async def _sync_trello_to_notion(self, card_map: Dict[str, Card],
                                     list_names: Dict[str, str],
                                     custom_fields: List[CustomFieldDefinition],
                                     definitions: Dict[str, CustomFieldDefinition],
                                     entries_by_card: Dict[str, Dict[str, Any]],
                                     stats: SyncStats) -> None:
        logger.info("Syncing Trello → Notion")

        for card in card_map.values():
            try:
                list_name = list_names.get(card.list_id, UNKNOWN_DEPARTMENT)
                field_values = extract_custom_field_values(card, custom_fields)
                properties = to_notion_properties(card, field_values, list_name)

                entry = entries_by_card.get(card.id)
                if entry is not None:
                    if not self._notion_entry_changed(entry, properties):
                        continue
                    if self._notion_is_newer(entry, card):
                        logger.debug(f"Notion entry {entry['id']} edited after card {card.id}, keeping Notion values")
                        continue
                    # later steps of the pass compare against what Notion now holds
                    entry.setdefault("properties", {}).update(properties)
                    await self.notion.update_entry(entry["id"], properties)
                    stats.trello_to_notion.updated += 1
                    logger.info(f"Updated Notion entry for Trello card: {card.name} ({list_name})")
                    continue

                if field_values.get(SYNCED_FIELD) is True:
                    # synced marker without an entry means the entry was deleted in Notion;
                    # the deletion protocol removes the card instead of recreating the entry
                    logger.debug(f"Card {card.id} is synced but its Notion entry is gone, not recreating")
                    continue

                page = await self.notion.create_entry(properties)
                stats.trello_to_notion.created += 1
                logger.info(
                    f"Created Notion entry for Trello card: {card.name} ({list_name}) - Trello ID: {card.id}"
                )
                await self._mark_card_linked(card, page, definitions)

            except Exception as e:
                logger.error(f"Error syncing Trello card {card.id} ({card.name!r}) to Notion: {e}")
                stats.errors += 1

    async def _mark_card_linked(self, card: Card, page: Dict[str, Any],
                                definitions: Dict[str, CustomFieldDefinition]) -> None:
        """Set the synced marker and Notion Link on a card that just got an entry"""
        synced = definitions.get(SYNCED_FIELD)
        if synced is not None:
            await self.trello.update_custom_field(card.id, synced.id, True)
        else:
            logger.debug("Trello board has no synced field, card not marked")

        notion_link = definitions.get(NOTION_LINK_FIELD)
        if notion_link is not None and page.get("id"):
            await self.trello.update_custom_field(
                card.id, notion_link.id, self.notion.page_url(page["id"])
            )

    @staticmethod
    def _notion_is_newer(entry: Dict[str, Any], card: Card) -> bool:
        """
        Whether the entry was edited after the card's last activity.

        Ties and missing timestamps resolve in favour of the card. Notion
        rounds ``last_edited_time`` down to the minute.
        """
        edited = parse_timestamp(entry.get("last_edited_time"))
        activity = parse_timestamp(card.date_last_activity)
        if edited is None or activity is None:
            return False
        return edited > activity

    @staticmethod
    def _notion_entry_changed(entry: Dict[str, Any], properties: Dict[str, Any]) -> bool:
        """Whether the entry differs from the card-derived properties"""
        current = props.properties_of(entry)

        if values_differ(props.get_title(current), props.get_title(properties)):
            return True
        if values_differ(props.get_select(current, props.DEPARTMENT),
                         props.get_select(properties, props.DEPARTMENT)):
            return True

        for name in SCORE_FIELDS:
            if values_differ(props.get_number(current, name), props.get_number(properties, name)):
                return True

        return False

    # ------------------------------------------------------------------
    # Notion -> Trello
    # ------------------------------------------------------------------

    async def _sync_notion_to_trello(self, entries: List[Dict[str, Any]],
                                     card_map: Dict[str, Card],
                                     list_ids: Dict[str, str],
                                     lists: List[BoardList],
                                     definitions: Dict[str, CustomFieldDefinition],
                                     stats: SyncStats) -> None:
        logger.info("Syncing Notion → Trello")
        updated_cards: Set[str] = set()

        for entry in entries:
            try:
                trello_id = props.get_trello_id(entry)

                if not trello_id:
                    await self._create_card_from_entry(entry, list_ids, lists, definitions)
                    stats.notion_to_trello.created += 1
                    continue

                card = card_map.get(trello_id)
                if card is None:
                    logger.warning(f"Trello card {trello_id} not found for Notion entry {entry['id']}")
                    continue

                if await self._update_card_from_entry(entry, card, list_ids, definitions):
                    updated_cards.add(card.id)
                    logger.info(f"Updated Trello card from Notion: {card.name}")

            except Exception as e:
                logger.error(f"Error syncing Notion entry {entry.get('id')} to Trello: {e}")
                stats.errors += 1

        updated_cards |= await self._sync_total_scores(entries, card_map, definitions, stats)
        stats.notion_to_trello.updated += len(updated_cards)

    async def _create_card_from_entry(self, entry: Dict[str, Any],
                                      list_ids: Dict[str, str],
                                      lists: List[BoardList],
                                      definitions: Dict[str, CustomFieldDefinition]) -> Card:
        """Create the Trello counterpart of an unlinked Notion entry"""
        properties = props.properties_of(entry)
        card_update, custom_fields = to_trello_update(entry)
        title = card_update.get("name") or "Untitled"
        department = props.get_select(properties, props.DEPARTMENT)

        list_id = list_ids.get(department)
        if list_id is None:
            if not lists:
                raise RuntimeError("Trello board has no lists to create cards in")
            list_id = lists[0].id
            logger.warning(
                f"No Trello list named {department!r} for Notion entry {entry['id']}, "
                f"using {lists[0].name!r}"
            )

        card = await self.trello.create_card(title, list_id)

        await self.notion.update_entry(entry["id"], {
            props.TRELLO_ID: props.rich_text_value(card.id),
            props.SYNCED: props.checkbox_value(True),
        })

        for name, value in custom_fields.items():
            definition = definitions.get(name)
            if definition is not None:
                await self.trello.update_custom_field(card.id, definition.id, value)

        total_score = definitions.get(TOTAL_SCORE_FIELD)
        score = props.get_numeric(properties, props.TOTAL_SCORE)
        if total_score is not None and score is not None:
            await self.trello.update_custom_field(card.id, total_score.id, score)

        notion_link = definitions.get(NOTION_LINK_FIELD)
        if notion_link is not None:
            url = self.notion.page_url(entry["id"])
            await self.trello.update_custom_field(card.id, notion_link.id, url)
            logger.info(f"Set Notion Link for new Trello card {title!r}: {url}")

        logger.info(f"Created new Trello card for Notion entry: {title}")
        return card

    async def _update_card_from_entry(self, entry: Dict[str, Any], card: Card,
                                      list_ids: Dict[str, str],
                                      definitions: Dict[str, CustomFieldDefinition]) -> bool:
        """
        Push Notion values onto a linked card, one call per changed aspect.

        Returns:
            True when at least one remote update was made
        """
        properties = props.properties_of(entry)
        card_update, custom_fields = to_trello_update(entry)
        changed = False

        name = card_update.get("name")
        if name and values_differ(name, card.name):
            await self.trello.update_card(card.id, {"name": name})
            changed = True

        department = props.get_select(properties, props.DEPARTMENT)
        target_list = list_ids.get(department)
        if target_list is None:
            if department and department != UNKNOWN_DEPARTMENT:
                logger.warning(f"No Trello list named {department!r}, card {card.id} not moved")
        elif values_differ(target_list, card.list_id):
            await self.trello.move_card(card.id, target_list)
            changed = True

        for field_name, value in custom_fields.items():
            definition = definitions.get(field_name)
            if definition is None:
                continue
            if values_differ(self._card_field(card, definition), value):
                await self.trello.update_custom_field(card.id, definition.id, value)
                changed = True

        notion_link = definitions.get(NOTION_LINK_FIELD)
        if notion_link is not None:
            url = self.notion.page_url(entry["id"])
            if values_differ(self._card_field(card, notion_link), url):
                await self.trello.update_custom_field(card.id, notion_link.id, url)
                changed = True
                logger.info(f"Updated Notion Link for Trello card {card.name!r}: {url}")

        return changed

    async def _sync_total_scores(self, entries: List[Dict[str, Any]],
                                 card_map: Dict[str, Card],
                                 definitions: Dict[str, CustomFieldDefinition],
                                 stats: SyncStats) -> Set[str]:
        """
        Push the Notion Total Score formula onto linked cards.

        Uses the cards fetched at the start of the pass.

        Returns:
            Ids of the cards that were updated
        """
        logger.info("Syncing Total Score from Notion → Trello")
        updated: Set[str] = set()

        total_score = definitions.get(TOTAL_SCORE_FIELD)
        if total_score is None:
            logger.warning("Total Score custom field not found in Trello - skipping Total Score sync")
            return updated

        for entry in entries:
            try:
                trello_id = props.get_trello_id(entry)
                card = card_map.get(trello_id) if trello_id else None
                if card is None:
                    continue

                score = props.get_numeric(props.properties_of(entry), props.TOTAL_SCORE)
                if score is None:
                    logger.debug(f"No Total Score found for Notion entry {entry['id']}")
                    continue

                current = self._card_field(card, total_score)
                if values_differ(current, score):
                    await self.trello.update_custom_field(card.id, total_score.id, score)
                    updated.add(card.id)
                    logger.info(f"Updated Total Score for Trello card {card.name!r}: {current} → {score}")

            except Exception as e:
                logger.error(f"Error syncing Total Score for Notion entry {entry.get('id')}: {e}")
                stats.errors += 1

        logger.info(f"Total Score sync complete: {len(updated)} cards updated")
        return updated

    # ------------------------------------------------------------------
    # Deletions
    # ------------------------------------------------------------------

    async def _sync_deletions(self, card_map: Dict[str, Card],
                              entries: List[Dict[str, Any]],
                              definitions: Dict[str, CustomFieldDefinition],
                              stats: SyncStats) -> None:
        """
        Remove records whose synced counterpart no longer exists.

        Only records carrying the synced marker are candidates, so records
        that were never linked are left alone.
        """
        logger.info('Checking for deletion sync based on "synced" checkbox...')
        referenced: Set[str] = set()

        for entry in entries:
            trello_id = props.get_trello_id(entry)
            if trello_id:
                referenced.add(trello_id)

        for entry in entries:
            try:
                properties = props.properties_of(entry)
                trello_id = props.get_trello_id(entry)
                if not (props.get_checkbox(properties, props.SYNCED) and trello_id):
                    continue
                if trello_id in card_map:
                    continue

                logger.info(
                    f"Archiving Notion entry (synced but Trello card {trello_id} not found): "
                    f"{props.get_title(properties)}"
                )
                await self.notion.archive_entry(entry["id"])
                stats.notion_to_trello.updated += 1

            except Exception as e:
                logger.error(f"Error checking Notion entry {entry.get('id')} for deletion: {e}")
                stats.errors += 1

        synced = definitions.get(SYNCED_FIELD)
        if synced is None:
            logger.warning("Synced checkbox field not found in Trello - skipping card deletion")
            return
        if synced.kind not in (FieldKind.CHECKBOX, FieldKind.OTHER):
            logger.warning(f"Trello synced field is a {synced.kind.value} field - skipping card deletion")
            return

        for card in card_map.values():
            try:
                if self._card_field(card, synced) is not True:
                    continue
                if card.id in referenced:
                    continue

                logger.info(f"Deleting Trello card (synced but Notion entry not found): {card.name}")
                await self.trello.delete_card(card.id)
                stats.trello_to_notion.updated += 1

            except Exception as e:
                logger.error(f"Error checking Trello card {card.id} for deletion: {e}")
                stats.errors += 1

        logger.info("Deletion sync check completed")
