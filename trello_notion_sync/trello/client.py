"""
Trello REST client
"""
from abc import ABC, abstractmethod
from typing import Dict, Any, List, Optional, Union
from datetime import datetime, timezone

import httpx
from loguru import logger

from ..models import Card, BoardList, CustomFieldDefinition


FieldValue = Union[int, float, str, bool]


class BoardClient(ABC):
    """Board operations the sync engine relies on"""

    @abstractmethod
    async def list_cards(self) -> List[Card]:
        """All open cards of the board, with their custom field items"""

    @abstractmethod
    async def list_lists(self) -> List[BoardList]:
        """Lists of the board"""

    @abstractmethod
    async def list_custom_fields(self) -> List[CustomFieldDefinition]:
        """Custom field definitions of the board"""

    @abstractmethod
    async def create_card(self, name: str, list_id: str) -> Card:
        """Create a card in a list"""

    @abstractmethod
    async def update_card(self, card_id: str, fields: Dict[str, Any]) -> None:
        """Update core card attributes such as the name"""

    @abstractmethod
    async def move_card(self, card_id: str, list_id: str) -> None:
        """Move a card to another list"""

    @abstractmethod
    async def update_custom_field(self, card_id: str, field_id: str,
                                  value: FieldValue) -> None:
        """Set a custom field value on a card"""

    @abstractmethod
    async def delete_card(self, card_id: str) -> None:
        """Permanently delete a card"""


def custom_field_payload(value: FieldValue) -> Dict[str, Any]:
    """
    Body for a custom field item update.

    Trello expects every value as a string, keyed by the field type.
    """
    if isinstance(value, bool):
        return {"value": {"checked": "true" if value else "false"}}
    if isinstance(value, (int, float)):
        return {"value": {"number": str(value)}}
    return {"value": {"text": str(value)}}


class TrelloClient(BoardClient):
    """Trello client bound to one board"""

    def __init__(self, api_key: str, token: str, board_id: str,
                 base_url: str = "https://api.trello.com/1",
                 timeout: int = 30,
                 http_client: Optional[httpx.AsyncClient] = None):
        self.board_id = board_id
        # key/token ride along on every request
        self._http = http_client or httpx.AsyncClient(
            base_url=base_url,
            params={"key": api_key, "token": token},
            timeout=timeout,
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _request(self, method: str, endpoint: str,
                       params: Optional[Dict[str, Any]] = None,
                       json: Optional[Dict[str, Any]] = None) -> Any:
        """Send an authenticated request and return the decoded body"""
        try:
            response = await self._http.request(method, endpoint, params=params, json=json)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(
                f"Trello API error on {method} {endpoint}: "
                f"{e.response.status_code} {e.response.text}"
            )
            raise
        except httpx.HTTPError as e:
            logger.error(f"Trello request {method} {endpoint} failed: {e}")
            raise

        if not response.content:
            return None
        return response.json()

    async def list_cards(self) -> List[Card]:
        logger.info("Fetching cards from Trello board")
        data = await self._request("GET", f"/boards/{self.board_id}/cards", params={
            "customFieldItems": "true",
            "filter": "open",
        })
        cards = [Card.from_api(item) for item in data or []]
        logger.info(f"Retrieved {len(cards)} cards from Trello")
        return cards

    async def list_lists(self) -> List[BoardList]:
        logger.info("Fetching lists from Trello board")
        data = await self._request("GET", f"/boards/{self.board_id}/lists")
        return [BoardList.from_api(item) for item in data or []]

    async def list_custom_fields(self) -> List[CustomFieldDefinition]:
        logger.info("Fetching custom fields from Trello board")
        data = await self._request("GET", f"/boards/{self.board_id}/customFields")
        return [CustomFieldDefinition.from_api(item) for item in data or []]

    async def list_actions(self, since: datetime, action_types: List[str],
                           limit: int = 100) -> List[Dict[str, Any]]:
        """Board actions of the given types since a point in time"""
        return await self._request("GET", f"/boards/{self.board_id}/actions", params={
            "since": since.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z",
            "filter": ",".join(action_types),
            "limit": limit,
        }) or []

    async def create_card(self, name: str, list_id: str) -> Card:
        logger.info(f"Creating Trello card {name!r}")
        data = await self._request("POST", "/cards", params={"name": name, "idList": list_id})
        return Card.from_api(data)

    async def update_card(self, card_id: str, fields: Dict[str, Any]) -> None:
        logger.info(f"Updating Trello card {card_id}: {sorted(fields)}")
        await self._request("PUT", f"/cards/{card_id}", params=fields)

    async def move_card(self, card_id: str, list_id: str) -> None:
        logger.info(f"Moving card {card_id} to list {list_id}")
        await self._request("PUT", f"/cards/{card_id}", params={"idList": list_id})

    async def update_custom_field(self, card_id: str, field_id: str,
                                  value: FieldValue) -> None:
        logger.debug(f"Updating custom field {field_id} on card {card_id} to {value!r}")
        await self._request(
            "PUT",
            f"/cards/{card_id}/customField/{field_id}/item",
            json=custom_field_payload(value),
        )

    async def delete_card(self, card_id: str) -> None:
        logger.info(f"Deleting Trello card {card_id}")
        await self._request("DELETE", f"/cards/{card_id}")
