"""
Notion database client
"""
from abc import ABC, abstractmethod
from typing import Dict, Any, List, Optional

from loguru import logger
from notion_client import AsyncClient, APIResponseError

from . import properties as props


# the database query endpoint used here belongs to this API version
NOTION_API_VERSION = "2022-06-28"
PAGE_URL_BASE = "https://www.notion.so/"


class DatabaseClient(ABC):
    """Database operations the sync engine relies on"""

    @abstractmethod
    async def list_entries(self) -> List[Dict[str, Any]]:
        """Every page of the database"""

    @abstractmethod
    async def create_entry(self, properties: Dict[str, Any]) -> Dict[str, Any]:
        """Create a page in the database"""

    @abstractmethod
    async def update_entry(self, page_id: str, properties: Dict[str, Any]) -> Dict[str, Any]:
        """Update properties of a page"""

    @abstractmethod
    async def archive_entry(self, page_id: str) -> None:
        """Archive (soft delete) a page"""

    @staticmethod
    def page_url(page_id: str) -> str:
        """Public URL of a page"""
        return PAGE_URL_BASE + page_id.replace("-", "")


class NotionClient(DatabaseClient):
    """Notion client bound to one database"""

    def __init__(self, api_key: str, database_id: str,
                 timeout: int = 30,
                 client: Optional[AsyncClient] = None):
        self.database_id = database_id
        self._client = client or AsyncClient(
            auth=api_key,
            notion_version=NOTION_API_VERSION,
            timeout_ms=timeout * 1000,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def list_entries(self) -> List[Dict[str, Any]]:
        logger.info("Fetching entries from Notion database")
        entries: List[Dict[str, Any]] = []
        body: Dict[str, Any] = {"page_size": 100}

        try:
            while True:
                response = await self._client.request(
                    path=f"databases/{self.database_id}/query",
                    method="POST",
                    body=body,
                )
                entries.extend(response.get("results", []))
                if not response.get("has_more"):
                    break
                body["start_cursor"] = response.get("next_cursor")
        except APIResponseError as e:
            logger.error(f"Error fetching Notion entries: {e}")
            raise

        logger.info(f"Retrieved {len(entries)} entries from Notion")
        return entries

    async def create_entry(self, properties: Dict[str, Any]) -> Dict[str, Any]:
        title = props.get_title(properties)
        logger.info(f"Creating Notion entry {title!r}")
        try:
            page = await self._client.pages.create(
                parent={"database_id": self.database_id},
                properties=properties,
            )
        except APIResponseError as e:
            logger.error(f"Error creating Notion entry {title!r}: {e}")
            raise

        logger.info(f"Created Notion entry with ID: {page['id']}")
        return page

    async def update_entry(self, page_id: str, properties: Dict[str, Any]) -> Dict[str, Any]:
        logger.info(f"Updating Notion entry {page_id}: {sorted(properties)}")
        try:
            return await self._client.pages.update(page_id=page_id, properties=properties)
        except APIResponseError as e:
            logger.error(f"Error updating Notion entry {page_id}: {e}")
            raise

    async def archive_entry(self, page_id: str) -> None:
        logger.info(f"Archiving Notion entry {page_id}")
        try:
            await self._client.pages.update(page_id=page_id, archived=True)
        except APIResponseError as e:
            logger.error(f"Error archiving Notion entry {page_id}: {e}")
            raise
