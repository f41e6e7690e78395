"""
Local cache of discovered database IDs.

The cache is a flat JSON object:
    {"conversationDbId": ..., "projectDbId": ..., "allDatabases": [...],
     "lastUpdated": "<ISO timestamp>"}
"""

import json
import logging
import os
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError

from .config import DEFAULT_CACHE_FILE

logger = logging.getLogger(__name__)


class CachedDatabase(BaseModel):
    id: str
    title: str = "Untitled"


class DatabaseCacheData(BaseModel):
    """Contents of the cache file."""

    conversation_db_id: Optional[str] = Field(default=None, alias="conversationDbId")
    project_db_id: Optional[str] = Field(default=None, alias="projectDbId")
    all_databases: List[CachedDatabase] = Field(default_factory=list, alias="allDatabases")
    last_updated: Optional[str] = Field(default=None, alias="lastUpdated")

    class Config:
        """Pydantic model configuration."""
        populate_by_name = True
        extra = "ignore"


class DatabaseCache:
    """Reads and writes the database ID cache file."""

    def __init__(self, path: str = DEFAULT_CACHE_FILE):
        self.path = path

    def exists(self) -> bool:
        return os.path.isfile(self.path)

    def load(self) -> DatabaseCacheData:
        """
        Load the cache.

        A missing or unreadable file yields an empty cache.
        """
        if not self.exists():
            logger.info(f"Cache file not found: {self.path}")
            return DatabaseCacheData()

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                raw: Dict[str, Any] = json.load(f)
            data = DatabaseCacheData.model_validate(raw)
        except (OSError, ValueError, ValidationError) as e:
            logger.warning(f"Ignoring unreadable cache file {self.path}: {e}")
            return DatabaseCacheData()

        logger.info(f"Loaded database cache from {self.path}")
        return data

    def save(self, data: DatabaseCacheData) -> None:
        """Write the cache file, replacing any previous contents."""
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(data.model_dump(by_alias=True), f, indent=2)
        logger.info(f"Saved database cache to {self.path}")
