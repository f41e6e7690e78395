"""
Discovery of the conversation and project databases.

Finds existing databases by title, creates the missing ones and writes
the result to the local cache.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .cache import CachedDatabase, DatabaseCache, DatabaseCacheData
from .errors import NotionConfigurationError
from .templates import (
    CONVERSATION_DATABASE_PROPERTIES,
    CONVERSATION_DATABASE_TITLE,
    PROJECT_DATABASE_PROPERTIES,
    PROJECT_DATABASE_TITLE,
)
from .utils import extract_title, rich_text

logger = logging.getLogger(__name__)

ROOT_PAGE_TITLE = "Gemini Extension"


def is_conversation_database(title: str) -> bool:
    return "conversation" in title.lower()


def is_project_database(title: str) -> bool:
    return "project" in title.lower()


class DatabaseDiscovery:
    """Locates or creates the databases the project and conversation tools use."""

    def __init__(
        self,
        client: Any,
        cache: DatabaseCache,
        root_page_title: str = ROOT_PAGE_TITLE
    ):
        self.client = client
        self.cache = cache
        self.root_page_title = root_page_title

    def discover(self, create_missing: bool = True) -> DatabaseCacheData:
        """
        Scan shared databases, create missing ones and save the cache.

        Args:
            create_missing: Create the conversation/project databases if absent

        Returns:
            The saved cache contents
        """
        logger.info("Discovering Notion databases...")
        data = DatabaseCacheData()
        project_parent: Optional[str] = None

        for database in self.client.iter_databases():
            title = extract_title(database) or "Untitled"
            data.all_databases.append(CachedDatabase(id=database["id"], title=title))

            if data.conversation_db_id is None and is_conversation_database(title):
                data.conversation_db_id = database["id"]
                logger.info(f"Found conversation database: {title}")
            elif data.project_db_id is None and is_project_database(title):
                data.project_db_id = database["id"]
                parent = database.get("parent") or {}
                if parent.get("type") == "page_id":
                    project_parent = parent.get("page_id")
                logger.info(f"Found project database: {title}")

        logger.info(f"Total databases found: {len(data.all_databases)}")

        if create_missing:
            if data.project_db_id is None:
                data.project_db_id = self._create_database(
                    PROJECT_DATABASE_TITLE,
                    PROJECT_DATABASE_PROPERTIES,
                    self._root_page_id()
                )
            if data.conversation_db_id is None:
                properties = dict(CONVERSATION_DATABASE_PROPERTIES)
                properties["Associated Project"] = {
                    "relation": {
                        "database_id": data.project_db_id,
                        "single_property": {},
                    }
                }
                data.conversation_db_id = self._create_database(
                    CONVERSATION_DATABASE_TITLE,
                    properties,
                    project_parent or self._root_page_id()
                )

        data.last_updated = datetime.now(timezone.utc).isoformat()
        self.cache.save(data)
        logger.info("Database discovery complete")
        return data

    def _create_database(
        self,
        title: str,
        properties: Dict[str, Any],
        parent_page_id: str
    ) -> str:
        logger.info(f"Creating database '{title}'")
        database = self.client.create_database({
            "parent": {"type": "page_id", "page_id": parent_page_id},
            "title": rich_text(title),
            "properties": properties,
        })
        logger.info(f"Created database '{title}': {database['id']}")
        return database["id"]

    def _root_page_id(self) -> str:
        """
        Find the page that holds created databases.

        Raises:
            NotionConfigurationError: If no page with the root title is shared
        """
        results = self.client.search(
            query=self.root_page_title, filter_object="page", page_size=10
        ).get("results", [])

        if not results:
            raise NotionConfigurationError(
                f'Please create a page in Notion titled "{self.root_page_title}" '
                "and share it with your integration, then run discovery again."
            )
        return results[0]["id"]
